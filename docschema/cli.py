"""Command line interface for document schema inference."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

import rich.traceback
import typer
import yaml
from jsonschema import ValidationError
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.progress import Progress, SpinnerColumn, TimeElapsedColumn
from rich.table import Table

from . import aggregate as aggregate_module
from . import report as report_module
from .config import InferenceConfig, load_config
from .errors import SchemaError
from .io import DocumentStream, StreamConfig

rich.traceback.install(show_locals=False)

app = typer.Typer(help="Infer aggregate schemas from collections of JSON documents.")
console = Console()


def _resolve_path(path: Path | str) -> Path:
    """Resolve a string or path to an absolute Path."""
    resolved = Path(path).expanduser().resolve()
    if not resolved.exists():
        raise typer.BadParameter(f"Path does not exist: {resolved}")
    return resolved


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


def _write(path: Path, content: str) -> Path:
    destination = path.expanduser().resolve()
    destination.parent.mkdir(parents=True, exist_ok=True)
    destination.write_text(content, encoding="utf-8")
    return destination


@app.command()
def infer(
    sources: list[Path] = typer.Argument(..., help="JSON, JSON array or JSONL files to analyse."),
    output: Optional[Path] = typer.Option(
        None, "--output", "-o", help="Path to write the schema report; printed when omitted."
    ),
    fmt: str = typer.Option("json", "--format", "-f", help="Report format: json or yaml."),
    config_path: Optional[Path] = typer.Option(None, "--config", help="YAML inference configuration."),
    sample_size: Optional[int] = typer.Option(
        None, "--sample-size", help="Maximum sampled values kept per field type."
    ),
    max_depth: Optional[int] = typer.Option(None, "--max-depth", help="Maximum document nesting depth."),
    chunk_size: int = typer.Option(1000, "--chunk-size", help="Documents decoded per batch."),
    format_hint: Optional[str] = typer.Option(
        None, "--input-format", help="Force json_array, json_object or jsonl decoding."
    ),
    skip_invalid: bool = typer.Option(
        False,
        "--skip-invalid/--strict",
        help="Skip documents holding unsupported values instead of aborting.",
    ),
    html: Optional[Path] = typer.Option(None, "--html", help="Optional HTML preview destination."),
    csv: Optional[Path] = typer.Option(None, "--csv", help="Optional per-type CSV table destination."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging."),
) -> None:
    """Infer a schema report from one or more document files.

    Each source is accumulated separately and the shards are merged before
    probabilities are computed.
    """

    _configure_logging(verbose)
    if fmt not in {"json", "yaml"}:
        raise typer.BadParameter("format must be 'json' or 'yaml'")

    try:
        base_config = load_config(_resolve_path(config_path)) if config_path else InferenceConfig()
        config = base_config.replace(sample_size=sample_size, max_depth=max_depth)
        stream_config = StreamConfig(size=chunk_size, format=format_hint)
    except ValueError as error:
        raise typer.BadParameter(str(error)) from error

    shards = []
    try:
        with Progress(SpinnerColumn(), *Progress.get_default_columns(), TimeElapsedColumn()) as progress:
            for source in sources:
                source_path = _resolve_path(source)
                task = progress.add_task(f"Inferring {source_path.name}", start=True)
                shards.append(
                    aggregate_module.infer_stream(
                        DocumentStream(source_path, stream_config),
                        config=config,
                        skip_invalid=skip_invalid,
                        finalize=False,
                        progress_callback=lambda advance, task=task: progress.update(task, advance=advance),
                    )
                )
        aggregator = aggregate_module.merge_aggregators(shards)
    except (SchemaError, ValueError) as error:
        console.print(f"[red]Inference failed:[/red] {error}")
        raise typer.Exit(code=1) from error

    report = report_module.build_report(aggregator)
    rendered = report_module.dump_report(report, fmt)

    if output is not None:
        destination = _write(output, rendered)
        console.print(f"Schema written to [green]{destination}[/green]")
    else:
        console.print(rendered, markup=False, highlight=False, soft_wrap=True)

    if html is not None:
        destination = _write(html, report_module.render_html(report))
        console.print(f"HTML preview written to [green]{destination}[/green]")
    if csv is not None:
        destination = _write(csv, report_module.report_frame(report).to_csv(index=False))
        console.print(f"Type table written to [green]{destination}[/green]")


@app.command()
def show(
    report_path: Path = typer.Argument(..., help="Schema report produced by the infer command."),
) -> None:
    """Preview a saved schema report as a table."""

    try:
        report = report_module.load_report(_resolve_path(report_path))
        frame = report_module.report_frame(report)
    except (ValueError, ValidationError, yaml.YAMLError) as error:
        console.print(f"[red]Invalid report:[/red] {escape(str(error))}")
        raise typer.Exit(code=1) from error

    table = Table(title=f"{report['count']} documents")
    for column in ("path", "type", "count", "field_probability", "has_duplicates", "values"):
        table.add_column(column)
    for row in frame.to_dict("records"):
        table.add_row(
            row["path"],
            row["type"],
            str(row["count"]),
            f"{row['field_probability']:.3f}",
            "yes" if row["has_duplicates"] else "",
            row["values"],
        )
    console.print(table)


def main() -> None:
    """Entrypoint for the ``docschema`` console script."""

    app()


if __name__ == "__main__":  # pragma: no cover
    main()
