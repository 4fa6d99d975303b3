"""Streaming decoders that turn JSON files into documents."""

from __future__ import annotations

import json
from dataclasses import dataclass
from itertools import islice
from pathlib import Path
from typing import Any, Iterator, TextIO

FORMATS = frozenset({"json_array", "jsonl", "json_object"})
_READ_SIZE = 65536


@dataclass(slots=True)
class StreamConfig:
    """How a document file is decoded and batched."""

    size: int = 1000
    format: str | None = None
    max_documents: int | None = None

    def __post_init__(self) -> None:
        if self.size <= 0:
            raise ValueError("chunk size must be positive")
        if self.format is not None and self.format not in FORMATS:
            raise ValueError("format must be 'json_array', 'json_object', 'jsonl', or None")
        if self.max_documents is not None and self.max_documents < 0:
            raise ValueError("max_documents must not be negative")


class DocumentStream:
    """Yield decoded documents from a JSON array, JSON object or JSONL file."""

    def __init__(self, path: Path, config: StreamConfig | None = None) -> None:
        self.path = path
        self.config = config or StreamConfig()

    def __iter__(self) -> Iterator[dict[str, Any]]:
        return self.iter_documents()

    def open(self) -> TextIO:
        return self.path.open("r", encoding="utf-8")

    def iter_documents(self) -> Iterator[dict[str, Any]]:
        """Yield documents one by one, honouring ``max_documents``."""

        if not self.path.exists():
            raise FileNotFoundError(self.path)

        limit = self.config.max_documents
        if limit == 0:
            return

        decoders = {
            "jsonl": self._iter_jsonl,
            "json_object": self._iter_json_object,
            "json_array": self._iter_json_array,
        }
        for produced, document in enumerate(decoders[self.detect_format()](), start=1):
            yield document
            if limit is not None and produced >= limit:
                return

    def iter_chunks(self) -> Iterator[list[dict[str, Any]]]:
        """Group documents into lists of at most ``config.size`` entries."""

        chunk: list[dict[str, Any]] = []
        for document in self.iter_documents():
            chunk.append(document)
            if len(chunk) >= self.config.size:
                yield chunk
                chunk = []
        if chunk:
            yield chunk

    def detect_format(self) -> str:
        if self.config.format:
            return self.config.format
        if self.path.suffix.lower() in {".jsonl", ".ndjson"}:
            return "jsonl"

        with self.open() as handle:
            while True:
                char = handle.read(1)
                if not char:
                    break
                if char.isspace():
                    continue
                if char == "[":
                    return "json_array"
                if char == "{":
                    # A file of several objects on separate lines is JSONL.
                    handle.seek(0)
                    lines = list(islice((line.strip() for line in handle if line.strip()), 2))
                    if len(lines) == 2 and _is_object(lines[0]):
                        return "jsonl"
                    return "json_object"
        raise ValueError(f"Unable to detect JSON format of {self.path}")

    def _iter_jsonl(self) -> Iterator[dict[str, Any]]:
        with self.open() as handle:
            for line_number, line in enumerate(handle, start=1):
                line = line.strip()
                if not line:
                    continue
                document = json.loads(line)
                if not isinstance(document, dict):
                    raise ValueError(f"Line {line_number} of {self.path} is not a JSON object")
                yield document

    def _iter_json_object(self) -> Iterator[dict[str, Any]]:
        with self.open() as handle:
            document = json.load(handle)
        if not isinstance(document, dict):
            raise ValueError(f"Expected a JSON object at the root of {self.path}")
        yield document

    def _iter_json_array(self) -> Iterator[dict[str, Any]]:
        decoder = json.JSONDecoder()
        with self.open() as handle:
            buffer = ""
            position = 0
            index = 0
            started = False
            exhausted = False

            while True:
                position = _skip_separators(buffer, position, started)
                if position >= len(buffer):
                    if exhausted:
                        raise ValueError(f"Unterminated JSON array in {self.path}")
                    data = handle.read(_READ_SIZE)
                    exhausted = not data
                    buffer = buffer[position:] + data
                    position = 0
                    continue

                if not started:
                    if buffer[position] != "[":
                        raise ValueError(f"Expected a JSON array in {self.path}")
                    started = True
                    position += 1
                    continue

                if buffer[position] == "]":
                    return

                try:
                    document, end = decoder.raw_decode(buffer, position)
                except json.JSONDecodeError:
                    if exhausted:
                        raise
                    data = handle.read(_READ_SIZE)
                    exhausted = not data
                    buffer = buffer[position:] + data
                    position = 0
                    continue

                if not isinstance(document, dict):
                    raise ValueError(f"Element {index} of {self.path} is not a JSON object")
                yield document
                index += 1
                position = end


def _skip_separators(buffer: str, position: int, started: bool) -> int:
    while position < len(buffer) and (buffer[position].isspace() or (started and buffer[position] == ",")):
        position += 1
    return position


def _is_object(text: str) -> bool:
    try:
        return isinstance(json.loads(text), dict)
    except json.JSONDecodeError:
        return False
