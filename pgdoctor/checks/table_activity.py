"""
Write activity per table.

Findings:
- High churn tables: tables rewritten many times over (updates and deletes relative
  to live rows), which drives bloat and autovacuum load
- HOT updates: update-heavy tables where few updates are heap-only, usually a
  sign of a full fillfactor or of updates touching indexed columns
"""

from typing import List, Protocol

from pgdoctor.checks.format import format_bytes, format_number
from pgdoctor.checks.resources import make_metadata
from pgdoctor.core.base_checker import BaseChecker
from pgdoctor.core.context import CheckContext
from pgdoctor.core.models import Category, Report, Severity, Table
from pgdoctor.db.rows import TableActivityRow

MIN_LIVE_ROWS = 10_000
CHURN_WARN_RATIO = 10.0
MIN_UPDATES = 10_000
HOT_WARN_PERCENT = 50.0


class TableActivityQueries(Protocol):
    async def table_activity(self) -> List[TableActivityRow]:
        ...


def churn_ratio(row: TableActivityRow) -> float:
    """Обновления и удаления на одну живую строку."""
    if row.n_live_tup <= 0:
        return 0.0
    return (row.n_tup_upd + row.n_tup_del) / row.n_live_tup


def hot_update_percent(row: TableActivityRow) -> float:
    if row.n_tup_upd <= 0:
        return 100.0
    return row.n_tup_hot_upd / row.n_tup_upd * 100


class TableActivityChecker(BaseChecker):
    """Проверка интенсивности записи в таблицы."""

    meta = make_metadata(
        "table-activity",
        "Table Activity",
        Category.PERFORMANCE,
        "Finds high-churn tables and update-heavy tables with few HOT updates",
    )

    queries: TableActivityQueries

    async def _check(self, ctx: CheckContext, report: Report, options) -> None:
        rows = await self.fetch(self.queries.table_activity())

        churn = Table(("Table", "Live rows", "Inserts", "Updates", "Deletes", "Churn", "Size"))
        hot = Table(("Table", "Updates", "HOT updates", "HOT %", "Size"))
        for row in rows:
            name = f"{row.schemaname}.{row.relname}"

            ratio = churn_ratio(row)
            if row.n_live_tup >= MIN_LIVE_ROWS and ratio >= CHURN_WARN_RATIO:
                churn.add_row(
                    [
                        name,
                        format_number(row.n_live_tup),
                        format_number(row.n_tup_ins),
                        format_number(row.n_tup_upd),
                        format_number(row.n_tup_del),
                        f"{ratio:.1f}x",
                        format_bytes(row.table_size_bytes),
                    ],
                    Severity.WARN,
                )

            hot_percent = hot_update_percent(row)
            if row.n_tup_upd >= MIN_UPDATES and hot_percent < HOT_WARN_PERCENT:
                hot.add_row(
                    [
                        name,
                        format_number(row.n_tup_upd),
                        format_number(row.n_tup_hot_upd),
                        f"{hot_percent:.1f}%",
                        format_bytes(row.table_size_bytes),
                    ],
                    Severity.WARN,
                )

        report.add_finding(self.table_finding(
            churn,
            f"{{count}} table(s) rewritten more than {CHURN_WARN_RATIO:g} times over by updates and deletes",
            "No high-churn tables",
            name="High churn tables",
        ))
        report.add_finding(self.table_finding(
            hot,
            f"{{count}} update-heavy table(s) with less than {HOT_WARN_PERCENT:g}% HOT updates; "
            "consider a lower fillfactor or fewer indexed columns in updates",
            "HOT update ratio is healthy",
            name="HOT updates",
        ))
