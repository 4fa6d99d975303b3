"""Aggregate schema inference for semi-structured documents."""

__all__ = [
    "aggregate",
    "classify",
    "cli",
    "config",
    "errors",
    "field",
    "field_type",
    "io",
    "report",
    "schemas",
]
