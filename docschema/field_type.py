"""Per-type statistics for a single field path."""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from typing import Any

from .classify import ARRAY, PRIMITIVE_TYPES, classify, normalize

SAMPLE_CAP = 10
UNIQUE_TRACK_LIMIT = 20000


@dataclass(slots=True)
class FieldType:
    """Statistics for one value type observed under one field path.

    Only primitive types (numbers, booleans, strings) keep a value sample.
    The sample holds the first ``sample_cap`` observations in arrival order,
    repeats included, so it previews the distribution without being an
    unbiased reservoir. Distinct values are tracked in a separate set bounded
    by ``unique_limit``; once it fills up ``unique_truncated`` is set and
    ``unique`` becomes an upper estimate.

    ``Array`` types additionally keep element-level statistics in ``items``.
    A ``Document`` element type owns ``schema``, an aggregate of the element
    documents themselves.
    """

    type_name: str
    path: str
    count: int = 0
    values: list[Any] = field(default_factory=list)
    unique: int = 0
    has_duplicates: bool = False
    probability: float = 0.0
    items: dict[str, "FieldType"] = field(default_factory=dict)
    total_items: int = 0
    unique_truncated: bool = False
    sample_cap: int = SAMPLE_CAP
    unique_limit: int = UNIQUE_TRACK_LIMIT
    distinct: set[Any] = field(default_factory=set, repr=False, compare=False)
    schema: Any = field(default=None, repr=False, compare=False)

    @classmethod
    def new(
        cls,
        path: str,
        value: Any,
        *,
        sample_cap: int = SAMPLE_CAP,
        unique_limit: int = UNIQUE_TRACK_LIMIT,
    ) -> "FieldType":
        """Create an empty type entry named after the value's classification."""

        return cls(
            type_name=classify(value, path),
            path=path,
            sample_cap=sample_cap,
            unique_limit=unique_limit,
        )

    @property
    def is_primitive(self) -> bool:
        return self.type_name in PRIMITIVE_TYPES

    @property
    def average_length(self) -> float:
        if self.type_name != ARRAY or self.count == 0:
            return 0.0
        return self.total_items / self.count

    def add_observation(self, value: Any, current_field_count: int) -> None:
        """Count one observation of this type and sample its value."""

        self.count += 1
        if current_field_count > 0:
            self.probability = self.count / current_field_count
        if not self.is_primitive:
            return

        value = normalize(value)
        if len(self.values) < self.sample_cap:
            self.values.append(value)
        self._track(value)

    def add_item(self, value: Any, path: str) -> "FieldType":
        """Record one array element and return the element's type entry."""

        type_name = classify(value, path)
        item_type = self.items.get(type_name)
        if item_type is None:
            item_type = FieldType(
                type_name=type_name,
                path=path,
                sample_cap=self.sample_cap,
                unique_limit=self.unique_limit,
            )
            self.items[type_name] = item_type
        self.total_items += 1
        item_type.add_observation(value, self.total_items)
        return item_type

    def finalize(self, field_count: int) -> None:
        self.probability = self.count / field_count if field_count else 0.0
        for item_type in self.items.values():
            item_type.finalize(self.total_items)
        if self.schema is not None:
            self.schema.finalize()

    def merge(self, other: "FieldType") -> None:
        """Fold another shard's statistics for the same type into this one."""

        if other.type_name != self.type_name:
            raise ValueError(
                f"Cannot merge {other.type_name!r} statistics into {self.type_name!r} at {self.path!r}"
            )

        self.count += other.count
        room = max(self.sample_cap - len(self.values), 0)
        self.values.extend(other.values[:room])

        overlap = self.distinct & other.distinct
        if overlap or other.has_duplicates:
            self.has_duplicates = True
        self.unique += other.unique - len(overlap)
        if other.unique_truncated:
            self.unique_truncated = True
        for value in other.distinct - overlap:
            if len(self.distinct) >= self.unique_limit:
                self.unique_truncated = True
                break
            self.distinct.add(value)

        self.total_items += other.total_items
        for type_name, item_type in other.items.items():
            existing = self.items.get(type_name)
            if existing is None:
                self.items[type_name] = copy.deepcopy(item_type)
            else:
                existing.merge(item_type)

        if other.schema is not None:
            if self.schema is None:
                self.schema = copy.deepcopy(other.schema)
            else:
                self.schema.merge(other.schema)

    def to_dict(self) -> dict[str, Any]:
        summary: dict[str, Any] = {
            "name": self.type_name,
            "path": self.path,
            "count": self.count,
            "probability": self.probability,
        }
        if self.is_primitive:
            summary["values"] = list(self.values)
            summary["unique"] = self.unique
            summary["has_duplicates"] = self.has_duplicates
            if self.unique_truncated:
                summary["unique_truncated"] = True
        if self.type_name == ARRAY:
            summary["total_items"] = self.total_items
            summary["average_length"] = self.average_length
            summary["types"] = [item.to_dict() for item in self.items.values()]
        if self.schema is not None:
            summary["fields"] = [child.to_dict() for child in self.schema.fields.values()]
        return summary

    def _track(self, value: Any) -> None:
        if value in self.distinct:
            self.has_duplicates = True
            return
        self.unique += 1
        if len(self.distinct) >= self.unique_limit:
            self.unique_truncated = True
            return
        self.distinct.add(value)
