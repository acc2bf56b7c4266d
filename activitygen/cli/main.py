import asyncio
import logging
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional
from urllib.parse import urlparse
import urllib.request

import typer

from ..generation.assembler import ActivityMonths
from ..generation.errors import ActivityWriteError
from ..generation.output import write_months
from ..generation.schema import ActivityLogMockInput, parse_input, verify_input
from ..infrastructure.db import PostgresActivityLog, ensure_migrations, shutdown
from ..infrastructure.memory import InMemoryActivityLog
from ..infrastructure.registry import InMemoryRegistry
from ..shared.logging import setup_logging

app = typer.Typer(add_completion=False)

@app.callback()
def main():
    """Mock client activity generator."""

def _is_url(s: str) -> bool:
    u = urlparse(s)
    return u.scheme in ("http", "https")

def _download_to_temp(url: str) -> Path:
    tmp = tempfile.NamedTemporaryFile(delete=False, suffix=".json")
    tmp.close()
    urllib.request.urlretrieve(url, tmp.name)  # nosec - controlled input
    return Path(tmp.name)

def _read_input(src: str) -> str:
    path = _download_to_temp(src) if _is_url(src) else Path(src)
    if not path.exists():
        raise typer.BadParameter(f"not found: {path}")
    return path.read_text(encoding="utf-8")

def _parse_month(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    return datetime.strptime(value, "%Y-%m").replace(tzinfo=timezone.utc)

@app.command("write")
def write(
    src: str = typer.Argument(..., help="JSON input file or URL, e.g. ./examples/two_months.json"),
    dry_run: bool = typer.Option(False, "--dry-run", help="keep everything in memory and print the segment layout"),
    registry_path: Optional[Path] = typer.Option(None, "--registry", help="JSON file with namespaces and mounts"),
    now: Optional[str] = typer.Option(None, "--now", help="treat this month (YYYY-MM) as the current month"),
    verbose: bool = typer.Option(False, "--verbose", "-v"),
):
    """
    Generate mock client activity for the months described in SRC and write
    it to the activity log (Postgres unless --dry-run).
    """
    setup_logging(json_logs=False)
    if not verbose:
        logging.getLogger().setLevel(logging.WARNING)

    try:
        mock_input = parse_input(_read_input(src))
        verify_input(mock_input)
        registry = InMemoryRegistry.from_file(registry_path) if registry_path else InMemoryRegistry.from_settings()
    except ActivityWriteError as e:
        typer.secho(f"[ERROR] {e}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=2)

    try:
        paths = asyncio.run(_run_write(mock_input, registry, dry_run, _parse_month(now)))
    except ActivityWriteError as e:
        typer.secho(f"[ERROR] {e}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)

    for p in paths:
        typer.echo(p)
    typer.secho(f"[TOTAL] segments written={len(paths)}", fg=typer.colors.CYAN)

async def _run_write(
    mock_input: ActivityLogMockInput,
    registry: InMemoryRegistry,
    dry_run: bool,
    now: Optional[datetime],
):
    generated = ActivityMonths.from_input(mock_input, registry, registry)

    if dry_run:
        activity_log = InMemoryActivityLog()
        _print_layout(generated)
        paths = await write_months(generated, mock_input.write, activity_log, now=now)
        await activity_log.wait_for_refresh()
        return paths

    await ensure_migrations()
    activity_log = PostgresActivityLog()
    try:
        paths = await write_months(generated, mock_input.write, activity_log, now=now)
        await activity_log.wait_for_refresh()
        return paths
    finally:
        await shutdown()

def _print_layout(generated: ActivityMonths) -> None:
    for months_ago, pool in enumerate(generated.months):
        if not pool.populated:
            continue
        typer.secho(f"[MONTH] months_ago={months_ago} clients={len(pool.clients)}", fg=typer.colors.GREEN)
        for index, segment in pool.populate_segments().items():
            typer.echo(f"  segment {index}: {segment.state.value} ({len(segment)} clients)")
