"""
Per-table vacuum and analyze health check.

Findings:
- Autovacuum disabled: autovacuum switched off through table storage options
- Large tables with default settings: very large tables relying on the global scale factor
- Stale vacuum: many dead tuples and no vacuum for a week
- Analyze needed: a large share of rows modified since the last analyze
"""

from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional, Protocol

from pgdoctor.checks.format import format_bytes, format_number
from pgdoctor.checks.resources import make_metadata
from pgdoctor.core.base_checker import BaseChecker
from pgdoctor.core.context import CheckContext
from pgdoctor.core.models import Category, Report, Severity, Table
from pgdoctor.db.rows import TableVacuumHealthRow

LARGE_TABLE_ROWS = 10_000_000
STALE_DEAD_TUPLES = 10_000
STALE_AFTER = timedelta(days=7)
ANALYZE_MODIFIED_RATIO = 0.10


class TableVacuumHealthQueries(Protocol):
    async def table_vacuum_health(self) -> List[TableVacuumHealthRow]:
        ...


def parse_reloptions(reloptions: Optional[str]) -> Dict[str, str]:
    """'autovacuum_enabled=false,fillfactor=90' -> {'autovacuum_enabled': 'false', ...}"""
    options: Dict[str, str] = {}
    for item in (reloptions or "").split(","):
        key, sep, value = item.partition("=")
        if sep:
            options[key.strip()] = value.strip()
    return options


def _ago(ts: Optional[datetime], now: datetime) -> str:
    if ts is None:
        return "never"
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return f"{(now - ts).days}d ago"


class TableVacuumHealthChecker(BaseChecker):
    """Проверка здоровья vacuum и analyze по таблицам."""

    meta = make_metadata(
        "table-vacuum-health",
        "Table Vacuum Health",
        Category.VACUUM,
        "Checks per-table autovacuum settings, stale vacuums and missing analyzes",
    )

    queries: TableVacuumHealthQueries

    async def _check(self, ctx: CheckContext, report: Report, options) -> None:
        rows = await self.fetch(self.queries.table_vacuum_health())
        now = datetime.now(timezone.utc)

        disabled = Table(("Table", "Rows", "Size", "Options"))
        large = Table(("Table", "Rows", "Size", "Dead tuples"))
        stale = Table(("Table", "Dead tuples", "Last vacuum"))
        analyze = Table(("Table", "Rows", "Modified", "Last analyze"))

        for row in rows:
            ctx.raise_if_cancelled()
            reloptions = parse_reloptions(row.reloptions)

            if reloptions.get("autovacuum_enabled", "").lower() in ("false", "off", "0"):
                disabled.add_row(
                    [row.table_name, format_number(row.estimated_rows),
                     format_bytes(row.table_size_bytes), row.reloptions or ""],
                    Severity.FAIL,
                )

            if row.estimated_rows > LARGE_TABLE_ROWS and "autovacuum_vacuum_scale_factor" not in reloptions:
                large.add_row(
                    [row.table_name, format_number(row.estimated_rows),
                     format_bytes(row.table_size_bytes), format_number(row.n_dead_tup)],
                    Severity.WARN,
                )

            last_vacuum = row.last_vacuum_any
            if last_vacuum is not None and last_vacuum.tzinfo is None:
                last_vacuum = last_vacuum.replace(tzinfo=timezone.utc)
            if row.n_dead_tup > STALE_DEAD_TUPLES and (last_vacuum is None or now - last_vacuum > STALE_AFTER):
                stale.add_row(
                    [row.table_name, format_number(row.n_dead_tup), _ago(row.last_vacuum_any, now)],
                    Severity.WARN,
                )

            if row.estimated_rows > 0 and row.n_mod_since_analyze / row.estimated_rows > ANALYZE_MODIFIED_RATIO:
                analyze.add_row(
                    [row.table_name, format_number(row.estimated_rows),
                     format_number(row.n_mod_since_analyze), _ago(row.last_analyze_any, now)],
                    Severity.WARN,
                )

        report.add_finding(self.table_finding(
            disabled,
            "Autovacuum is disabled on {count} table(s)",
            "Autovacuum is enabled on all tables",
            name="Autovacuum disabled",
        ))
        report.add_finding(self.table_finding(
            large,
            f"{{count}} table(s) with more than {format_number(LARGE_TABLE_ROWS)} rows "
            "use the global autovacuum_vacuum_scale_factor",
            "Large tables have per-table autovacuum tuning",
            name="Large tables with default settings",
        ))
        report.add_finding(self.table_finding(
            stale,
            f"{{count}} table(s) with more than {format_number(STALE_DEAD_TUPLES)} dead tuples "
            f"not vacuumed in {STALE_AFTER.days} days",
            "No tables with stale vacuum",
            name="Stale vacuum",
        ))
        report.add_finding(self.table_finding(
            analyze,
            f"{{count}} table(s) with more than {ANALYZE_MODIFIED_RATIO:.0%} of rows modified since last analyze",
            "Table statistics are fresh",
            name="Analyze needed",
        ))
