"""
Dead tuple (bloat) check for user tables.
"""

from typing import List, Protocol

from pydantic import Field, model_validator

from pgdoctor.checks.format import format_bytes, format_number
from pgdoctor.checks.resources import make_metadata
from pgdoctor.core.base_checker import BaseChecker, CheckOptions
from pgdoctor.core.context import CheckContext
from pgdoctor.core.models import Category, Report, Severity, Table
from pgdoctor.db.rows import TableBloatRow


class TableBloatQueries(Protocol):
    async def table_bloat(self) -> List[TableBloatRow]:
        ...


class TableBloatOptions(CheckOptions):
    warn_percent: float = Field(20.0, ge=0, le=100)
    fail_percent: float = Field(50.0, ge=0, le=100)

    @model_validator(mode="after")
    def _ordered(self):
        if self.warn_percent > self.fail_percent:
            raise ValueError("warn_percent must not exceed fail_percent")
        return self


def _last_vacuum(row: TableBloatRow) -> str:
    stamps = [ts for ts in (row.last_autovacuum, row.last_vacuum) if ts is not None]
    if not stamps:
        return "never"
    return max(stamps).strftime("%Y-%m-%d %H:%M")


class TableBloatChecker(BaseChecker):
    """Проверка доли мёртвых строк в таблицах."""

    meta = make_metadata(
        "table-bloat",
        "Table Bloat",
        Category.VACUUM,
        "Finds tables with a high share of dead tuples",
    )
    options_model = TableBloatOptions

    queries: TableBloatQueries

    async def _check(self, ctx: CheckContext, report: Report, options: TableBloatOptions) -> None:
        rows = await self.fetch(self.queries.table_bloat())

        table = Table(("Table", "Dead %", "Dead tuples", "Live tuples", "Size", "Last vacuum"))
        for row in rows:
            if row.dead_tuple_percent >= options.fail_percent:
                severity = Severity.FAIL
            elif row.dead_tuple_percent >= options.warn_percent:
                severity = Severity.WARN
            else:
                severity = Severity.OK
            table.add_row(
                [
                    row.table_name,
                    f"{row.dead_tuple_percent:.1f}%",
                    format_number(row.dead_tuples),
                    format_number(row.live_tuples),
                    format_bytes(row.total_size_bytes),
                    _last_vacuum(row),
                ],
                severity,
            )

        report.add_finding(self.table_finding(
            table,
            f"{{count}} table(s) with more than {options.warn_percent:g}% dead tuples",
            "No tables with significant bloat",
        ))
