"""Document walker and aggregate schema root."""

from __future__ import annotations

import copy
import logging
from collections.abc import Mapping
from pathlib import Path
from typing import Any, Callable, Iterable, Iterator, Optional

from .classify import ARRAY, DOCUMENT, classify, join_path
from .config import InferenceConfig
from .errors import (
    DOCUMENT_ERRORS,
    InvariantViolation,
    KeyCollisionError,
    NestingDepthError,
    SchemaError,
    UnsupportedTypeError,
)
from .field import Field
from .field_type import FieldType
from .io import DocumentStream, StreamConfig

ProgressCallback = Callable[[int], None]


logger = logging.getLogger(__name__)


class SchemaAggregator:
    """Fold documents one at a time into per-path field statistics.

    Fields live in a flat map keyed by dotted path. Sub-documents are walked
    under their parent's path, and the number of sub-documents seen at each
    path is kept so nested fields are reconciled against their own container
    count instead of the document total.

    Documents found inside arrays are not folded into this map. Each
    ``Document`` element type of an array owns a nested aggregator rooted at
    the array's path, whose documents are the array elements. Presence in
    this map therefore never exceeds ``document_count``.

    The aggregate is single-owner and not thread safe. Shards built by
    independent aggregators are combined with :meth:`merge` before
    :meth:`finalize` is called.
    """

    def __init__(self, config: Optional[InferenceConfig] = None, *, path: str = "") -> None:
        self.config = config or InferenceConfig()
        self.path = path
        self.document_count = 0
        self.skipped = 0
        self.fields: dict[str, Field] = {}
        self.containers: dict[str, int] = {}
        self._finalized = False

    @property
    def finalized(self) -> bool:
        return self._finalized

    def add_document(self, document: Mapping[str, Any]) -> None:
        """Walk one decoded document into the aggregate.

        The whole document is classified and checked for colliding keys
        before anything is recorded, so a rejected document leaves the
        aggregate exactly as it was.
        """

        if self._finalized:
            raise InvariantViolation("Cannot add documents to a finalized aggregate")
        if not isinstance(document, Mapping):
            raise UnsupportedTypeError(self.path, document)
        self._check_document(document, self.path, 0, self, "", {})
        self._ingest(document)

    def add_documents(self, documents: Iterable[Mapping[str, Any]], *, skip_invalid: bool = False) -> int:
        """Add every document of an iterable and return how many were accepted."""

        accepted = 0
        for index, document in enumerate(documents):
            try:
                self.add_document(document)
            except DOCUMENT_ERRORS as error:
                if not skip_invalid:
                    raise
                self.skipped += 1
                logger.warning("Skipping document %s: %s", index, error)
                continue
            accepted += 1
        return accepted

    def parent_count(self, field: Field) -> int:
        if field.parent_path == self.path:
            return self.document_count
        return self.containers.get(field.parent_path, 0)

    def iter_fields(self) -> Iterator[Field]:
        """Yield every field, descending into the schemas of array elements."""

        for field in self.fields.values():
            yield field
            for field_type in field.types.values():
                for schema in _element_schemas(field_type):
                    yield from schema.iter_fields()

    def finalize(self) -> "SchemaAggregator":
        """Reconcile absent fields and compute probabilities and duplicate flags."""

        if self._finalized:
            raise InvariantViolation("Aggregate already finalized")

        for field in self.fields.values():
            parent_count = self.parent_count(field)
            missing = parent_count - field.count
            if missing < 0:
                raise InvariantViolation(
                    f"Field {field.path!r} seen {field.count} times in {parent_count} parent documents"
                )
            if missing:
                field.reconcile_missing(missing)
            field.finalize_probability(parent_count)
            field.finalize_duplicates()

        self._finalized = True
        if not self.path:
            logger.info(
                "Finalized schema for %s documents (%s fields, %s skipped)",
                self.document_count,
                len(self.fields),
                self.skipped,
            )
        return self

    def merge(self, other: "SchemaAggregator") -> "SchemaAggregator":
        """Fold an independently accumulated shard into this aggregate."""

        if self._finalized or other.finalized:
            raise InvariantViolation("Aggregates must be merged before finalize")
        for path, field in other.fields.items():
            existing = self.fields.get(path)
            if existing is not None and existing.parent_path != field.parent_path:
                raise KeyCollisionError(path, "shards disagree on the enclosing document")

        self.document_count += other.document_count
        self.skipped += other.skipped
        for path, count in other.containers.items():
            self.containers[path] = self.containers.get(path, 0) + count
        for path, field in other.fields.items():
            existing = self.fields.get(path)
            if existing is None:
                self.fields[path] = copy.deepcopy(field)
            else:
                existing.merge(field)
        return self

    def to_dict(self) -> dict[str, Any]:
        if not self._finalized:
            raise InvariantViolation("Aggregate must be finalized before export")
        return {
            "count": self.document_count,
            "skipped": self.skipped,
            "fields": [field.to_dict() for field in self.fields.values()],
        }

    def _ingest(self, document: Mapping[str, Any]) -> None:
        self._walk_document(document, self.path)
        self.document_count += 1

    def _check_document(
        self,
        document: Mapping[str, Any],
        parent_path: str,
        depth: int,
        schema: Optional["SchemaAggregator"],
        scope: str,
        parents: dict[tuple[str, str], str],
    ) -> None:
        # parents maps (scope, path) to the enclosing path already claimed by this document.
        names: set[str] = set()
        for key, child in document.items():
            name = str(key)
            path = join_path(parent_path, name)
            if name in names:
                raise KeyCollisionError(path, "key appears twice in one document")
            names.add(name)

            existing = schema.fields.get(path) if schema is not None else None
            if existing is not None and existing.parent_path != parent_path:
                raise KeyCollisionError(path, f"already recorded under {existing.parent_path or '<document>'!r}")
            claimed = parents.setdefault((scope, path), parent_path)
            if claimed != parent_path:
                raise KeyCollisionError(path, f"also reached through {claimed or '<document>'!r}")

            self._check_value(child, path, depth + 1, existing, schema, scope, parents)

    def _check_value(
        self,
        value: Any,
        path: str,
        depth: int,
        field: Optional[Field],
        schema: Optional["SchemaAggregator"],
        scope: str,
        parents: dict[tuple[str, str], str],
    ) -> None:
        if depth > self.config.max_depth:
            raise NestingDepthError(path, self.config.max_depth)
        type_name = classify(value, path)
        if type_name == DOCUMENT:
            self._check_document(value, path, depth, schema, scope, parents)
        elif type_name == ARRAY:
            array_type = field.types.get(ARRAY) if field is not None else None
            self._check_items(value, path, depth, array_type, f"{scope}/{path}", parents)

    def _check_items(
        self,
        items: Iterable[Any],
        path: str,
        depth: int,
        array_type: Optional[FieldType],
        scope: str,
        parents: dict[tuple[str, str], str],
    ) -> None:
        for item in items:
            if depth + 1 > self.config.max_depth:
                raise NestingDepthError(path, self.config.max_depth)
            type_name = classify(item, path)
            item_type = array_type.items.get(type_name) if array_type is not None else None
            if type_name == DOCUMENT:
                schema = item_type.schema if item_type is not None else None
                self._check_document(item, path, depth + 1, schema, f"{scope}[]", parents)
            elif type_name == ARRAY:
                self._check_items(item, path, depth + 1, item_type, f"{scope}[]", parents)

    def _walk_document(self, document: Mapping[str, Any], parent_path: str) -> None:
        for key, value in document.items():
            name = str(key)
            path = join_path(parent_path, name)
            field = self.fields.get(path)
            if field is None:
                field = Field(
                    name=name,
                    path=path,
                    parent_path=parent_path,
                    sample_cap=self.config.sample_size,
                    unique_limit=self.config.unique_limit,
                )
                self.fields[path] = field
                logger.debug("New field %s", path)
            else:
                if not field.type_exists(value):
                    logger.debug("New type %s for field %s", classify(value, path), path)
                field.increment()
            field_type = field.record(value)
            if field_type.type_name == DOCUMENT:
                self.containers[path] = self.containers.get(path, 0) + 1
                self._walk_document(value, path)
            elif field_type.type_name == ARRAY:
                self._walk_items(field_type, value, path)

    def _walk_items(self, array_type: FieldType, items: Iterable[Any], path: str) -> None:
        for item in items:
            item_type = array_type.add_item(item, path)
            if item_type.type_name == DOCUMENT:
                if item_type.schema is None:
                    item_type.schema = SchemaAggregator(self.config, path=path)
                item_type.schema._ingest(item)
            elif item_type.type_name == ARRAY:
                self._walk_items(item_type, item, path)


def _element_schemas(field_type: FieldType) -> Iterator[SchemaAggregator]:
    for item_type in field_type.items.values():
        if item_type.schema is not None:
            yield item_type.schema
        yield from _element_schemas(item_type)


def infer_schema(
    documents: Iterable[Mapping[str, Any]],
    *,
    config: Optional[InferenceConfig] = None,
    skip_invalid: bool = False,
    finalize: bool = True,
) -> SchemaAggregator:
    """Build an aggregate schema from an iterable of decoded documents."""

    aggregator = SchemaAggregator(config)
    aggregator.add_documents(documents, skip_invalid=skip_invalid)
    if finalize:
        aggregator.finalize()
    return aggregator


def infer_stream(
    stream: DocumentStream,
    *,
    config: Optional[InferenceConfig] = None,
    skip_invalid: bool = False,
    finalize: bool = True,
    progress_callback: Optional[ProgressCallback] = None,
) -> SchemaAggregator:
    """Build an aggregate schema chunk by chunk from a document stream."""

    aggregator = SchemaAggregator(config)
    for chunk in stream.iter_chunks():
        aggregator.add_documents(chunk, skip_invalid=skip_invalid)
        if progress_callback is not None:
            progress_callback(len(chunk))
    if finalize:
        aggregator.finalize()
    return aggregator


def infer_path(
    path: Path,
    *,
    config: Optional[InferenceConfig] = None,
    chunk_size: int = 1000,
    format_hint: str | None = None,
    skip_invalid: bool = False,
) -> SchemaAggregator:
    """Convenience wrapper to infer a schema from a JSON file on disk."""

    stream = DocumentStream(path, StreamConfig(size=chunk_size, format=format_hint))
    return infer_stream(stream, config=config, skip_invalid=skip_invalid)


def merge_aggregators(aggregators: Iterable[SchemaAggregator]) -> SchemaAggregator:
    """Merge unfinalized shard aggregates and finalize the combined result."""

    combined: Optional[SchemaAggregator] = None
    for aggregator in aggregators:
        if combined is None:
            combined = SchemaAggregator(aggregator.config)
        combined.merge(aggregator)
    if combined is None:
        raise ValueError("No aggregates to merge")
    return combined.finalize()


__all__ = [
    "SchemaAggregator",
    "SchemaError",
    "KeyCollisionError",
    "infer_schema",
    "infer_stream",
    "infer_path",
    "merge_aggregators",
]
