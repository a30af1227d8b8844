"""CLI entry point for sheetscope."""

from __future__ import annotations

import logging
from collections.abc import Callable
from enum import Enum
from pathlib import Path
from typing import Any

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table as RichTable

from sheetscope import __version__
from sheetscope.config import DetectorSettings, load_keyword_profile
from sheetscope.engine import DatasetEngine
from sheetscope.io import DecodeError, read_file_bytes, read_matrix, write_json
from sheetscope.models import LoadReport, RangeFilter, Record, cell_text
from sheetscope.session import DatasetSession
from sheetscope.store import JsonRecordStore, MemoryRecordStore, RecordStore
from sheetscope.tabulate import build_dataset
from sheetscope.window import RowWindow, VirtualTable
from sheetscope.worker import DecodeWorker

app = typer.Typer(
    name="sscope",
    help="sheetscope — Find the real table inside messy spreadsheets and browse it.",
    add_completion=False,
    no_args_is_help=True,
)
console = Console()
err_console = Console(stderr=True)

PREVIEW_ROWS = 5


class NumberLocaleOption(str, Enum):
    auto = "auto"
    us = "us"
    eu = "eu"


class SortDirectionOption(str, Enum):
    asc = "asc"
    desc = "desc"


def _noop(*_args: object, **_kwargs: object) -> None:
    return None


def _printer(quiet: bool) -> Callable[..., None]:
    return _noop if quiet else console.print


def _err(msg: str) -> None:
    console.print(f"[red]x[/red] {msg}")


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=err_console, show_path=False, rich_tracebacks=True)],
        force=True,
    )


# ── Helpers ──────────────────────────────────────────────────────


def _version_callback(value: bool) -> None:
    if value:
        console.print(f"sheetscope v{__version__}")
        raise typer.Exit()


def _split_pair(item: str, option: str) -> tuple[str, str]:
    if "=" not in item:
        raise ValueError(f"Invalid {option} value: {item!r}  (expected column=value)")
    column, value = item.split("=", 1)
    column = column.strip()
    if not column:
        raise ValueError(f"{option} entries must name a column (column=value)")
    return column, value


def _parse_number(text: str, option: str) -> float | None:
    text = text.strip()
    if not text:
        return None
    try:
        return float(text)
    except ValueError as exc:
        raise ValueError(f"Invalid number {text!r} in {option}") from exc


def _parse_filters(
    text_filters: list[str] | None,
    range_filters: list[str] | None,
    select_filters: list[str] | None,
) -> dict[str, Any]:
    """Build the engine's filter mapping from repeated CLI options.

    ``--filter col=text``, ``--range col=min:max`` (either side may be
    empty) and ``--select col=a|b|c``. A later option for the same column
    replaces an earlier one.
    """
    filters: dict[str, Any] = {}
    for item in text_filters or []:
        column, value = _split_pair(item, "--filter")
        filters[column] = value
    for item in range_filters or []:
        column, value = _split_pair(item, "--range")
        if ":" not in value:
            raise ValueError(f"Invalid --range value: {item!r}  (expected column=min:max)")
        low, high = value.split(":", 1)
        filters[column] = RangeFilter(
            min=_parse_number(low, "--range"), max=_parse_number(high, "--range")
        )
    for item in select_filters or []:
        column, value = _split_pair(item, "--select")
        filters[column] = frozenset(v.strip() for v in value.split("|") if v.strip())
    return filters


def _parse_columns(raw: str | None) -> list[str] | None:
    if raw is None:
        return None
    return [c.strip() for c in raw.split(",") if c.strip()]


def _detector_settings(keywords: Path | None, search_depth: int) -> DetectorSettings:
    settings = DetectorSettings(search_depth=search_depth)
    extra = load_keyword_profile(keywords)
    return settings.with_keywords(extra) if extra else settings


def _open_store(store: Path | None) -> RecordStore:
    return JsonRecordStore(store) if store else MemoryRecordStore()


def _apply_query(
    engine: DatasetEngine,
    *,
    search: str,
    filters: dict[str, Any],
    sort: str | None,
    direction: SortDirectionOption,
    columns: list[str] | None,
) -> list[str]:
    """Apply CLI query options to *engine*; return the names it did not know."""
    headers = set(engine.headers())
    named = list(filters) + ([sort] if sort else []) + (columns or [])
    unknown = sorted({name for name in named if name not in headers})
    if columns is not None:
        engine.set_visible_columns(columns)
    if filters:
        engine.set_filters(filters)
    if search:
        engine.set_search_term(search)
    if sort:
        engine.set_sort(sort, direction.value)
    return unknown


def _records_table(
    title: str, columns: list[str], rows: list[tuple[int, Record]]
) -> RichTable:
    tbl = RichTable(title=title, show_lines=False)
    tbl.add_column("#", style="dim", justify="right")
    for column in columns:
        tbl.add_column(column)
    for index, record in rows:
        tbl.add_row(str(index + 1), *[cell_text(record.get(c, "")) or "-" for c in columns])
    return tbl


def _report_table(report: LoadReport) -> RichTable:
    tbl = RichTable(title="Header Detection", show_lines=True)
    tbl.add_column("Check", style="bold")
    tbl.add_column("Result")
    tbl.add_row("Rows in", str(report.rows_in))
    tbl.add_row("Header row", str(report.header_row_index + 1))
    tbl.add_row("Score", str(report.header_score))
    tbl.add_row("Records", str(report.records_out))
    tbl.add_row("Columns", ", ".join(report.field_names) or "[dim]none[/dim]")
    for w in report.warnings:
        tbl.add_row("Warning", f"[yellow]{w}[/yellow]")
    return tbl


def _load_in_process(
    input_file: Path, settings: DetectorSettings
) -> tuple[list[Record], LoadReport]:
    matrix = read_matrix(read_file_bytes(input_file))
    return build_dataset(matrix, settings)


# ── Callbacks ────────────────────────────────────────────────────


@app.callback()
def main(
    version: bool | None = typer.Option(
        None, "--version", "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
    verbose: bool = typer.Option(
        False, "--verbose", "-v",
        help="Log header analysis and decoder diagnostics.",
    ),
) -> None:
    """sheetscope CLI."""
    _setup_logging(verbose)


# ── inspect command ──────────────────────────────────────────────


@app.command()
def inspect(
    input_file: Path = typer.Option(
        ..., "--input", "-i",
        help="Path to an .xlsx or .xls file.",
        exists=True, readable=True,
    ),
    keywords: Path | None = typer.Option(
        None, "--keywords",
        help="File with extra header keywords, one per line.",
    ),
    search_depth: int = typer.Option(
        100, "--search-depth", min=1,
        help="How many top rows are considered as header candidates.",
    ),
    report_path: Path | None = typer.Option(
        None, "--report",
        help="Also write the load report as JSON to this path.",
    ),
    preview: int = typer.Option(
        PREVIEW_ROWS, "--preview", min=0,
        help="Number of records to preview.",
    ),
) -> None:
    """Show which row was taken as the header and preview the records."""
    try:
        settings = _detector_settings(keywords, search_depth)
        records, report = _load_in_process(input_file, settings)
    except (FileNotFoundError, ValueError, OSError) as exc:
        _err(str(exc))
        raise typer.Exit(code=2)

    console.print(Panel(
        f"[bold]sheetscope[/bold] v{__version__}  [dim]inspect[/dim]\nInput: {input_file}",
        title="Inspect", border_style="cyan",
    ))
    console.print(_report_table(report))
    if records and preview:
        rows = list(enumerate(records[:preview]))
        console.print(_records_table("Preview", report.field_names, rows))
    elif not records:
        console.print("[yellow]![/yellow] No data rows found")

    if report_path:
        out = write_json(report_path, report.to_dict())
        console.print(f"  Report -> {out}")


# ── view command ─────────────────────────────────────────────────


@app.command()
def view(
    input_file: Path | None = typer.Option(
        None, "--input", "-i",
        help="Spreadsheet to load. Without it, the stored dataset is shown.",
        exists=True, readable=True,
    ),
    store: Path | None = typer.Option(
        None, "--store",
        envvar="SHEETSCOPE_STORE",
        help="JSON file that keeps the last loaded dataset.",
    ),
    search: str = typer.Option("", "--search", "-s", help="Search every visible column."),
    text_filter: list[str] | None = typer.Option(
        None, "--filter", "-f", help="Substring filter: column=text.",
    ),
    range_filter: list[str] | None = typer.Option(
        None, "--range", "-r", help="Numeric range filter: column=min:max.",
    ),
    select_filter: list[str] | None = typer.Option(
        None, "--select", help="Accepted values: column=a|b|c.",
    ),
    sort: str | None = typer.Option(None, "--sort", help="Column to sort by."),
    direction: SortDirectionOption = typer.Option(
        SortDirectionOption.asc, "--direction", "-d", help="Sort direction: asc or desc.",
    ),
    columns: str | None = typer.Option(
        None, "--columns", "-c", help="Comma-separated columns to show.",
    ),
    start_row: int = typer.Option(0, "--start-row", min=0, help="First row of the viewport."),
    page_size: int = typer.Option(25, "--rows", "-n", min=1, help="Rows in the viewport."),
    keywords: Path | None = typer.Option(
        None, "--keywords", help="File with extra header keywords, one per line.",
    ),
    search_depth: int = typer.Option(100, "--search-depth", min=1),
    number_locale: NumberLocaleOption = typer.Option(
        NumberLocaleOption.auto, "--number-locale",
        help="Numeric parsing mode for range filters and sorting: auto, us, or eu.",
    ),
    timeout: float = typer.Option(120.0, "--timeout", min=0.1, help="Seconds to wait for decoding."),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Only print the table."),
) -> None:
    """Load a spreadsheet (or the stored dataset) and browse a window of it."""
    echo = _printer(quiet)
    try:
        settings = _detector_settings(keywords, search_depth)
        filters = _parse_filters(text_filter, range_filter, select_filter)
    except ValueError as exc:
        _err(str(exc))
        raise typer.Exit(code=2)

    engine = DatasetEngine(number_locale=number_locale.value)
    session = DatasetSession(DecodeWorker(settings), _open_store(store), engine=engine, notify=_err)
    try:
        if input_file is not None:
            echo(f"[blue]>[/blue] Decoding {input_file} …")
            try:
                data = read_file_bytes(input_file)
            except (FileNotFoundError, DecodeError, OSError) as exc:
                _err(str(exc))
                raise typer.Exit(code=2)
            reply = session.upload(data, timeout=timeout)
            if reply is None:
                _err(f"Decoding did not finish within {timeout:g}s")
                raise typer.Exit(code=1)
            if not reply.success:
                raise typer.Exit(code=2)
        elif not session.restore():
            _err("No stored dataset. Pass --input to load a spreadsheet.")
            raise typer.Exit(code=2)
    finally:
        session.close()

    unknown = _apply_query(
        engine,
        search=search,
        filters=filters,
        sort=sort,
        direction=direction,
        columns=_parse_columns(columns),
    )
    for name in unknown:
        echo(f"  [yellow]![/yellow] Unknown column: {name}")

    table = VirtualTable(engine, RowWindow(page_size, estimate_size=1, overscan=0))
    window = table.scroll_to_index(start_row)
    if table.is_empty:
        console.print("[yellow]No data found[/yellow]")
        return

    visible_columns = engine.state.visible_columns
    console.print(_records_table("Records", visible_columns, table.rows()))
    echo(
        f"  {table.row_count} of {len(engine.records)} records"
        f" · showing {window.start + 1}-{window.end}"
    )


# ── export command ───────────────────────────────────────────────


@app.command()
def export(
    input_file: Path = typer.Option(
        ..., "--input", "-i",
        help="Path to an .xlsx or .xls file.",
        exists=True, readable=True,
    ),
    out: Path = typer.Option(
        Path("records.json"), "--out", "-o",
        help="Where to write the records as JSON.",
    ),
    search: str = typer.Option("", "--search", "-s", help="Search every visible column."),
    text_filter: list[str] | None = typer.Option(None, "--filter", "-f"),
    range_filter: list[str] | None = typer.Option(None, "--range", "-r"),
    select_filter: list[str] | None = typer.Option(None, "--select"),
    sort: str | None = typer.Option(None, "--sort"),
    direction: SortDirectionOption = typer.Option(SortDirectionOption.asc, "--direction", "-d"),
    keywords: Path | None = typer.Option(None, "--keywords"),
    search_depth: int = typer.Option(100, "--search-depth", min=1),
    number_locale: NumberLocaleOption = typer.Option(NumberLocaleOption.auto, "--number-locale"),
    quiet: bool = typer.Option(False, "--quiet", "-q"),
) -> None:
    """Write the (optionally filtered and sorted) records to a JSON file."""
    echo = _printer(quiet)
    try:
        settings = _detector_settings(keywords, search_depth)
        filters = _parse_filters(text_filter, range_filter, select_filter)
        records, report = _load_in_process(input_file, settings)
    except (FileNotFoundError, ValueError, OSError) as exc:
        _err(str(exc))
        raise typer.Exit(code=2)

    engine = DatasetEngine(records, number_locale=number_locale.value)
    _apply_query(
        engine, search=search, filters=filters, sort=sort, direction=direction, columns=None,
    )
    visible = engine.visible_records()
    path = write_json(
        out,
        {"header_row_index": report.header_row_index, "records": visible},
        sort_keys=False,
    )
    echo(f"  {len(visible)} records -> {path}")


# ── clear command ────────────────────────────────────────────────


@app.command()
def clear(
    store: Path = typer.Option(
        ..., "--store", envvar="SHEETSCOPE_STORE",
        help="JSON file that keeps the last loaded dataset.",
    ),
) -> None:
    """Forget the stored dataset."""
    JsonRecordStore(store).clear()
    console.print(f"  Cleared {store}")
