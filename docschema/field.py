"""Per-path statistics rolled up across a document batch."""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from typing import Any, Optional

from .classify import NULL, classify
from .errors import InvariantViolation
from .field_type import SAMPLE_CAP, UNIQUE_TRACK_LIMIT, FieldType


@dataclass(slots=True)
class Field:
    """Statistics for one dotted field path.

    ``count`` starts at one because a field is only created when it is first
    seen; the walker bumps it through :meth:`increment` on later sightings.
    After :meth:`reconcile_missing` the type counts add up to ``count``, with
    absent occurrences booked as synthesized ``Null`` observations. Those are
    tracked separately in ``missing`` so the probability only reflects
    documents that really declared the key.
    """

    name: str
    path: str
    parent_path: str = ""
    count: int = 1
    bson_types: list[str] = field(default_factory=list)
    types: dict[str, FieldType] = field(default_factory=dict)
    has_duplicates: bool = False
    missing: int = 0
    sample_cap: int = SAMPLE_CAP
    unique_limit: int = UNIQUE_TRACK_LIMIT
    _probability: Optional[float] = field(default=None, repr=False)

    @property
    def present(self) -> int:
        """Number of parent documents that declared this key."""

        return self.count - self.missing

    @property
    def finalized(self) -> bool:
        return self._probability is not None

    @property
    def probability(self) -> float:
        if self._probability is None:
            raise InvariantViolation(f"Probability of {self.path!r} read before finalize")
        return self._probability

    def type_exists(self, value: Any) -> bool:
        return classify(value, self.path) in self.types

    def record(self, value: Any) -> FieldType:
        """Route one observed value to its type entry, creating it on first sight."""

        type_name = classify(value, self.path)
        field_type = self.types.get(type_name)
        if field_type is None:
            field_type = FieldType.new(
                self.path,
                value,
                sample_cap=self.sample_cap,
                unique_limit=self.unique_limit,
            )
            self.types[type_name] = field_type
        self.bson_types.append(type_name)
        field_type.add_observation(value, self.count)
        return field_type

    def increment(self, by: int = 1) -> None:
        if by < 0:
            raise ValueError("increment must not be negative")
        self.count += by

    def reconcile_missing(self, missing_count: int) -> None:
        """Book documents lacking this key as synthesized null observations."""

        if self.finalized:
            raise InvariantViolation(f"Field {self.path!r} reconciled after finalize")
        if missing_count <= 0:
            return
        null_type = self.types.get(NULL)
        if null_type is None:
            null_type = FieldType(
                type_name=NULL,
                path=self.path,
                sample_cap=self.sample_cap,
                unique_limit=self.unique_limit,
            )
            self.types[NULL] = null_type
        null_type.count += missing_count
        self.missing += missing_count
        self.increment(missing_count)

    def finalize_probability(self, total_documents: int) -> None:
        if self.finalized:
            raise InvariantViolation(f"Probability of {self.path!r} finalized twice")
        if total_documents <= 0:
            raise InvariantViolation(f"Field {self.path!r} has no parent documents")
        self._probability = self.present / total_documents
        for field_type in self.types.values():
            field_type.finalize(self.count)

    def finalize_duplicates(self) -> None:
        self.has_duplicates = any(field_type.has_duplicates for field_type in self.types.values())

    def merge(self, other: "Field") -> None:
        """Fold another shard's statistics for the same path into this one."""

        if self.finalized or other.finalized:
            raise InvariantViolation(f"Field {self.path!r} merged after finalize")
        self.count += other.count
        self.missing += other.missing
        self.bson_types.extend(other.bson_types)
        for type_name, field_type in other.types.items():
            existing = self.types.get(type_name)
            if existing is None:
                self.types[type_name] = copy.deepcopy(field_type)
            else:
                existing.merge(field_type)

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "path": self.path,
            "count": self.count,
            "present": self.present,
            "missing": self.missing,
            "probability": self.probability,
            "has_duplicates": self.has_duplicates,
            "type": list(self.types),
            "types": [field_type.to_dict() for field_type in self.types.values()],
        }
