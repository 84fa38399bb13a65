"""
pgdoctor command line interface.

Commands:
- run: execute selected checks against a database
- list: show the check catalog
- explain: show a check's documentation and SQL
- presets: show named check sets
"""

import asyncio
import io
import logging
import signal
import sys
from pathlib import Path
from typing import List, NoReturn, Optional

import asyncpg
import typer
from dotenv import load_dotenv
from rich.console import Console
from rich.markdown import Markdown
from rich.panel import Panel
from rich.syntax import Syntax
from rich.table import Table

from pgdoctor import __version__
from pgdoctor.aggregator import EXIT_FAIL, RunSummary, summarize
from pgdoctor.checks import build_registry
from pgdoctor.config import (
    DoctorSettings,
    get_settings,
    load_check_config,
    merge_check_config,
    parse_option_overrides,
    warn_unknown_checks,
)
from pgdoctor.core.context import CheckContext
from pgdoctor.core.errors import ConfigFileError, SelectionError
from pgdoctor.core.models import Category, CheckConfig
from pgdoctor.db.connection import create_pool
from pgdoctor.db.queries import PostgresQueries
from pgdoctor.orchestrator import CheckOrchestrator, ExecutionResult
from pgdoctor.reports.generator import ReportGenerator
from pgdoctor.selector import PRESETS, SelectionRequest, select

app = typer.Typer(
    name="pgdoctor",
    help="PostgreSQL health diagnostics",
    no_args_is_help=True,
)
console = Console()
err_console = Console(stderr=True)

logger = logging.getLogger(__name__)


def setup_logging(verbose: bool = False, level: str = "WARNING"):
    """Настроить логирование."""
    log_level = logging.DEBUG if verbose else getattr(logging, level.upper(), logging.WARNING)
    logging.basicConfig(
        level=log_level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        stream=sys.stderr,
    )


def fail(message: str) -> NoReturn:
    """Сообщить об ошибке конфигурации или выбора и выйти с кодом 2."""
    err_console.print(f"[red]Error:[/] {message}")
    raise typer.Exit(EXIT_FAIL)


def resolve_check_config(settings: DoctorSettings, config_path: Optional[Path], options: List[str]) -> CheckConfig:
    """Файл конфигурации (аргумент или настройка) плюс --option поверх."""
    path = config_path or settings.check_config_file
    file_config = load_check_config(path) if path else {}
    return merge_check_config(file_config, parse_option_overrides(options))


async def execute(
    settings: DoctorSettings,
    check_config: CheckConfig,
    request: SelectionRequest,
    ctx: CheckContext,
) -> ExecutionResult:
    """
    Подключиться к БД и выполнить выбранные проверки.

    Returns:
        ExecutionResult в порядке каталога
    """
    pool = await create_pool(settings)
    loop = asyncio.get_running_loop()
    handles_sigint = True
    try:
        loop.add_signal_handler(signal.SIGINT, ctx.cancel)
    except NotImplementedError:
        handles_sigint = False
        logger.debug("SIGINT handler not supported on this platform")

    try:
        registry = build_registry(PostgresQueries(pool), check_config)
        selection = select(registry, request)
        orchestrator = CheckOrchestrator(
            max_workers=settings.max_workers,
            timeout_seconds=settings.check_timeout_seconds,
        )
        return await orchestrator.run(list(selection.checkers), ctx)
    finally:
        if handles_sigint:
            loop.remove_signal_handler(signal.SIGINT)
        await pool.close()


def render(summary: RunSummary, output_format: str, output: Optional[Path], hide_ok: bool) -> None:
    if output_format == "json":
        generator = ReportGenerator(console, hide_ok=hide_ok)
        content = generator.to_json(summary)
        if output:
            generator.write(content + "\n", output)
        else:
            console.print_json(content)
        return

    if output:
        file_console = Console(file=io.StringIO(), record=True, width=120)
        generator = ReportGenerator(file_console, hide_ok=hide_ok)
        generator.render_text(summary)
        generator.write(file_console.export_text(), output)
        console.print(f"[dim]Report written to {output}[/]")
    else:
        ReportGenerator(console, hide_ok=hide_ok).render_text(summary)


@app.command()
def run(
    dsn: Optional[str] = typer.Option(None, "--dsn", help="PostgreSQL connection string (overrides PGDOCTOR_DATABASE_URL)"),
    include: Optional[str] = typer.Option(None, "--include", "-i", help="Comma-separated check IDs to run"),
    exclude: Optional[str] = typer.Option(None, "--exclude", "-e", help="Comma-separated check IDs to skip"),
    categories: Optional[str] = typer.Option(None, "--categories", "-c", help="Comma-separated categories"),
    preset: Optional[str] = typer.Option(None, "--preset", "-p", help="Named check set (see 'presets')"),
    config_path: Optional[Path] = typer.Option(None, "--config", help="JSON file with per-check options"),
    option: List[str] = typer.Option([], "--option", "-o", help="Check option as check-id.key=value"),
    output_format: str = typer.Option("text", "--format", "-f", help="Output format: text or json"),
    output: Optional[Path] = typer.Option(None, "--output", help="Write the report to a file"),
    workers: Optional[int] = typer.Option(None, "--workers", "-w", min=1, help="Checks running concurrently"),
    timeout: Optional[float] = typer.Option(None, "--timeout", "-t", min=0.1, help="Per-check timeout in seconds"),
    hide_ok: bool = typer.Option(False, "--hide-ok", help="Hide checks and findings that are OK"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
):
    """Run health checks against a database."""
    settings = get_settings()
    setup_logging(verbose, settings.log_level)

    if output_format not in ("text", "json"):
        fail(f"unknown format: {output_format!r} (expected text or json)")

    updates = {}
    if dsn:
        updates["database_url"] = dsn
    if workers is not None:
        updates["max_workers"] = workers
    if timeout is not None:
        updates["check_timeout_seconds"] = timeout
    if updates:
        settings = settings.model_copy(update=updates)

    request = SelectionRequest.from_csv(include, exclude, categories, preset)
    try:
        check_config = resolve_check_config(settings, config_path, option)
        # Selection errors surface before connecting
        catalog = build_registry(None, check_config)
        warn_unknown_checks(check_config, catalog.ids())
        selection = select(catalog, request)
    except (SelectionError, ConfigFileError) as e:
        fail(str(e))

    if selection.empty:
        summary = summarize(ExecutionResult(), selected=0)
    else:
        logger.info(f"Selected checks: {', '.join(selection.ids())}")
        ctx = CheckContext(timeout_seconds=settings.check_timeout_seconds)
        try:
            execution = asyncio.run(execute(settings, check_config, request, ctx))
        except (OSError, asyncio.TimeoutError, asyncpg.PostgresError) as e:
            fail(f"cannot connect to PostgreSQL: {e}")
        summary = summarize(execution, selected=len(selection.checkers))

    render(summary, output_format, output, hide_ok)
    raise typer.Exit(summary.exit_code)


@app.command("list")
def list_checks(
    category: Optional[str] = typer.Option(None, "--category", "-c", help="Only checks of this category"),
):
    """List available checks."""
    registry = build_registry()
    checkers = registry.all()
    if category:
        try:
            checkers = registry.by_category(Category.parse(category))
        except SelectionError as e:
            fail(str(e))

    table = Table(title="pgdoctor checks")
    table.add_column("ID", style="cyan")
    table.add_column("Name")
    table.add_column("Category", style="green")
    table.add_column("Description", style="dim")
    for checker in checkers:
        meta = checker.metadata()
        table.add_row(meta.check_id, meta.name, meta.category.value, meta.description)
    console.print(table)


@app.command()
def explain(
    check_id: str = typer.Argument(..., help="Check ID"),
    sql: bool = typer.Option(False, "--sql", help="Also print the SQL the check runs"),
):
    """Show documentation of a check."""
    checker = build_registry().find(check_id)
    if checker is None:
        fail(str(SelectionError(check_id)))

    meta = checker.metadata()
    console.print(Panel(
        f"[bold]{meta.name}[/] ([cyan]{meta.check_id}[/], {meta.category})\n[dim]{meta.description}[/]",
    ))
    if meta.readme:
        console.print(Markdown(meta.readme))
    if sql:
        console.print(Syntax(meta.sql, "sql", word_wrap=True))


@app.command()
def presets():
    """List named check sets."""
    registry = build_registry()

    table = Table(title="Presets")
    table.add_column("Preset", style="cyan")
    table.add_column("Checks")
    for name, ids in PRESETS.items():
        table.add_row(name, ", ".join(ids) if ids is not None else f"all {len(registry)} checks")
    console.print(table)


@app.command()
def version():
    """Show pgdoctor version."""
    console.print(f"pgdoctor {__version__}")


def main():
    load_dotenv()
    app()


if __name__ == "__main__":
    main()
