"""
Development index check.

Indexes named `_dev...` are created by hand while investigating a query. Each
one should either be renamed into a permanent index (and added to
migrations) or dropped.
"""

from typing import List, Protocol

from pgdoctor.checks.format import format_bytes, format_number
from pgdoctor.checks.resources import make_metadata
from pgdoctor.core.base_checker import BaseChecker
from pgdoctor.core.context import CheckContext
from pgdoctor.core.models import Category, Report, Severity, Table
from pgdoctor.db.rows import DevIndexRow


class DevIndexesQueries(Protocol):
    async def dev_indexes(self) -> List[DevIndexRow]:
        ...


def recommendation(row: DevIndexRow) -> str:
    if row.idx_scan > 0:
        return "in use: promote to a permanent index"
    return "unused: drop"


class DevIndexesChecker(BaseChecker):
    """Проверка временных индексов, созданных при разработке."""

    meta = make_metadata(
        "dev-indexes",
        "Development Indexes",
        Category.INDEXES,
        "Finds temporary _dev indexes left over from development",
    )

    queries: DevIndexesQueries

    async def _check(self, ctx: CheckContext, report: Report, options) -> None:
        rows = await self.fetch(self.queries.dev_indexes())

        table = Table(("Table", "Index", "Size", "Scans", "Action"))
        for row in rows:
            table.add_row(
                [row.table_name, row.index_name, format_bytes(row.index_size_bytes),
                 format_number(row.idx_scan), recommendation(row)],
                Severity.WARN,
            )

        report.add_finding(self.table_finding(
            table,
            "{count} development index(es) should be promoted or dropped",
            "No development indexes",
        ))
