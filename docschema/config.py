"""Inference configuration."""

from __future__ import annotations

from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Any, Mapping

import yaml

from .field_type import SAMPLE_CAP, UNIQUE_TRACK_LIMIT


@dataclass(slots=True)
class InferenceConfig:
    """Bounds applied while accumulating field statistics."""

    sample_size: int = SAMPLE_CAP
    max_depth: int = 100
    unique_limit: int = UNIQUE_TRACK_LIMIT

    def __post_init__(self) -> None:
        if self.sample_size <= 0:
            raise ValueError("sample_size must be positive")
        if self.max_depth <= 0:
            raise ValueError("max_depth must be positive")
        if self.unique_limit <= 0:
            raise ValueError("unique_limit must be positive")

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "InferenceConfig":
        known = {item.name for item in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ValueError(f"Unknown configuration keys: {', '.join(unknown)}")
        return cls(**{key: int(value) for key, value in data.items()})

    def replace(self, **overrides: Any) -> "InferenceConfig":
        """Return a copy with every non-None override applied."""

        values = asdict(self)
        values.update({key: value for key, value in overrides.items() if value is not None})
        return InferenceConfig(**values)


def load_config(path: Path) -> InferenceConfig:
    """Load an inference configuration from YAML."""

    with path.open("r", encoding="utf-8") as handle:
        data = yaml.safe_load(handle) or {}
    if not isinstance(data, dict):
        raise ValueError("Configuration must be a mapping")
    return InferenceConfig.from_mapping(data)
