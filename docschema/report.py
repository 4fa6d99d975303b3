"""Report export for finalized schema aggregates."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Iterator

import pandas as pd
import yaml
from jinja2 import Environment, FileSystemLoader, select_autoescape
from jsonschema import validate

from .aggregate import SchemaAggregator
from .schemas import SCHEMA_REPORT_SCHEMA

_TEMPLATE_DIR = Path(__file__).resolve().parent / "templates"

FRAME_COLUMNS = [
    "path",
    "type",
    "count",
    "type_probability",
    "field_probability",
    "unique",
    "has_duplicates",
    "values",
]


def build_report(aggregator: SchemaAggregator) -> dict[str, Any]:
    """Export a finalized aggregate and check it against the report schema."""

    report = aggregator.to_dict()
    validate(instance=report, schema=SCHEMA_REPORT_SCHEMA)
    return report


def dump_report(report: dict[str, Any], fmt: str = "json") -> str:
    if fmt == "yaml":
        return yaml.safe_dump(report, sort_keys=False)
    if fmt == "json":
        return json.dumps(report, indent=2)
    raise ValueError(f"Unknown report format: {fmt}")


def load_report(path: Path) -> dict[str, Any]:
    """Read a report written as JSON or YAML and validate its shape."""

    text = path.read_text(encoding="utf-8")
    if path.suffix.lower() in {".yaml", ".yml"}:
        report = yaml.safe_load(text)
    else:
        report = json.loads(text)
    if not isinstance(report, dict):
        raise ValueError("Report must be a mapping")
    validate(instance=report, schema=SCHEMA_REPORT_SCHEMA)
    return report


def iter_report_fields(fields: list[dict[str, Any]]) -> Iterator[dict[str, Any]]:
    """Yield report fields depth first, including those of array element documents."""

    for field in fields:
        yield field
        for field_type in field.get("types", []):
            yield from _element_fields(field_type)


def _element_fields(field_type: dict[str, Any]) -> Iterator[dict[str, Any]]:
    yield from iter_report_fields(field_type.get("fields", []))
    for item_type in field_type.get("types", []):
        yield from _element_fields(item_type)


def report_frame(report: dict[str, Any]) -> pd.DataFrame:
    """Flatten a report into one row per field path and observed type."""

    rows = []
    for field in iter_report_fields(report.get("fields", [])):
        for field_type in field.get("types", []):
            rows.append(
                {
                    "path": field["path"],
                    "type": field_type["name"],
                    "count": field_type["count"],
                    "type_probability": field_type["probability"],
                    "field_probability": field["probability"],
                    "unique": field_type.get("unique"),
                    "has_duplicates": field_type.get("has_duplicates", False),
                    "values": ", ".join(str(value) for value in field_type.get("values", [])),
                }
            )
    return pd.DataFrame(rows, columns=FRAME_COLUMNS)


def render_html(report: dict[str, Any]) -> str:
    """Render an HTML preview of a schema report."""

    env = Environment(
        loader=FileSystemLoader(_TEMPLATE_DIR),
        autoescape=select_autoescape(["html", "xml"]),
        trim_blocks=True,
        lstrip_blocks=True,
    )
    template = env.get_template("report.html.j2")
    return template.render(report=report, fields=list(iter_report_fields(report.get("fields", []))))
