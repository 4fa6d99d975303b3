"""JSON schema describing the exported schema report."""

from __future__ import annotations

_TYPE_NAME: dict[str, object] = {
    "type": "string",
    "enum": ["Number", "Boolean", "String", "Null", "Document", "Array"],
}

FIELD_TYPE_SCHEMA: dict[str, object] = {
    "type": "object",
    "properties": {
        "name": _TYPE_NAME,
        "path": {"type": "string"},
        "count": {"type": "integer", "minimum": 0},
        "probability": {"type": "number", "minimum": 0.0, "maximum": 1.0},
        "values": {"type": "array"},
        "unique": {"type": "integer", "minimum": 0},
        "has_duplicates": {"type": "boolean"},
        "unique_truncated": {"type": "boolean"},
        "total_items": {"type": "integer", "minimum": 0},
        "average_length": {"type": "number", "minimum": 0.0},
        "types": {"type": "array", "items": {"$ref": "#/$defs/field_type"}},
        "fields": {"type": "array", "items": {"$ref": "#/$defs/field"}},
    },
    "required": ["name", "path", "count", "probability"],
    "additionalProperties": False,
}

FIELD_SCHEMA: dict[str, object] = {
    "type": "object",
    "properties": {
        "name": {"type": "string"},
        "path": {"type": "string"},
        "count": {"type": "integer", "minimum": 1},
        "present": {"type": "integer", "minimum": 0},
        "missing": {"type": "integer", "minimum": 0},
        "probability": {"type": "number", "minimum": 0.0, "maximum": 1.0},
        "has_duplicates": {"type": "boolean"},
        "type": {"type": "array", "items": _TYPE_NAME},
        "types": {"type": "array", "items": {"$ref": "#/$defs/field_type"}},
    },
    "required": ["name", "path", "count", "probability", "has_duplicates", "types"],
    "additionalProperties": False,
}

SCHEMA_REPORT_SCHEMA: dict[str, object] = {
    "type": "object",
    "$defs": {"field_type": FIELD_TYPE_SCHEMA, "field": FIELD_SCHEMA},
    "properties": {
        "count": {"type": "integer", "minimum": 0},
        "skipped": {"type": "integer", "minimum": 0},
        "fields": {"type": "array", "items": {"$ref": "#/$defs/field"}},
    },
    "required": ["count", "fields"],
}
