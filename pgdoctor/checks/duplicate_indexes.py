"""
Duplicate and redundant (left-prefix) index check.
"""

from typing import List, Protocol

from pgdoctor.checks.format import format_bytes
from pgdoctor.checks.resources import make_metadata
from pgdoctor.core.base_checker import BaseChecker
from pgdoctor.core.context import CheckContext
from pgdoctor.core.models import Category, Report, Severity, Table
from pgdoctor.db.rows import DuplicateIndexRow


class DuplicateIndexesQueries(Protocol):
    async def duplicate_indexes(self) -> List[DuplicateIndexRow]:
        ...


def reclaimable_bytes(row: DuplicateIndexRow) -> int:
    """Сколько места освободит удаление лишнего индекса."""
    if row.duplicate_type == "exact":
        return min(row.size_a, row.size_b)
    # prefix: index_a is covered by the wider index_b
    return row.size_a


class DuplicateIndexesChecker(BaseChecker):
    """Проверка дублирующихся индексов."""

    meta = make_metadata(
        "duplicate-indexes",
        "Duplicate Indexes",
        Category.INDEXES,
        "Finds exact duplicate and left-prefix redundant indexes",
    )

    queries: DuplicateIndexesQueries

    async def _check(self, ctx: CheckContext, report: Report, options) -> None:
        rows = await self.fetch(self.queries.duplicate_indexes())

        table = Table(("Table", "Index", "Duplicate of", "Type", "Reclaimable"))
        total = 0
        for row in rows:
            reclaim = reclaimable_bytes(row)
            total += reclaim
            table.add_row(
                [row.table_name, row.index_name_a, row.index_name_b, row.duplicate_type, format_bytes(reclaim)],
                Severity.WARN,
            )

        report.add_finding(self.table_finding(
            table,
            "{count} redundant index(es), " + format_bytes(total) + " reclaimable",
            "No duplicate indexes",
        ))
