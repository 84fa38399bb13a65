"""
Partitioning candidates among large tables.

The query returns tables with at least 10 million live rows. Partitioned
tables and partitions are fine. A plain table is reported when:
- its name looks like a queue, log or event table, or it deletes at least
  half as many rows as it inserts: time-based partitions let old data be
  dropped instead of deleted
- it has at least 100 million rows
"""

from typing import List, Protocol

from pgdoctor.checks.format import format_bytes, format_number
from pgdoctor.checks.resources import make_metadata
from pgdoctor.core.base_checker import BaseChecker
from pgdoctor.core.context import CheckContext
from pgdoctor.core.models import Category, Report, Severity, Table
from pgdoctor.db.rows import LargeTableRow

VERY_LARGE_ROWS = 100_000_000
DELETE_HEAVY_RATIO = 0.5


class PartitioningQueries(Protocol):
    async def large_tables(self) -> List[LargeTableRow]:
        ...


def is_delete_heavy(row: LargeTableRow) -> bool:
    return row.n_tup_ins > 0 and row.n_tup_del >= row.n_tup_ins * DELETE_HEAVY_RATIO


def partitioning_reasons(row: LargeTableRow) -> List[str]:
    """Причины партиционировать таблицу; пусто, если таблица в порядке."""
    if row.is_partitioned or row.is_partition:
        return []
    reasons = []
    if row.is_transient:
        reasons.append("queue/log-like table")
    elif is_delete_heavy(row):
        reasons.append("rows are deleted in bulk")
    if row.estimated_rows >= VERY_LARGE_ROWS:
        reasons.append(f"more than {format_number(VERY_LARGE_ROWS)} rows")
    return reasons


class PartitioningChecker(BaseChecker):
    """Проверка больших таблиц без партиционирования."""

    meta = make_metadata(
        "partitioning",
        "Partitioning",
        Category.SCHEMA,
        "Finds large unpartitioned tables that would benefit from partitioning",
    )

    queries: PartitioningQueries

    async def _check(self, ctx: CheckContext, report: Report, options) -> None:
        rows = await self.fetch(self.queries.large_tables())

        table = Table(("Table", "Rows", "Size", "Inserts", "Deletes", "Partitioned", "Reason"))
        for row in rows:
            reasons = partitioning_reasons(row)
            if row.is_partitioned:
                layout = "yes"
            elif row.is_partition:
                layout = f"partition of {row.parent_table}"
            else:
                layout = "no"
            table.add_row(
                [
                    row.table_name,
                    format_number(row.estimated_rows),
                    format_bytes(row.table_size_bytes),
                    format_number(row.n_tup_ins),
                    format_number(row.n_tup_del),
                    layout,
                    "; ".join(reasons),
                ],
                Severity.WARN if reasons else Severity.OK,
            )

        report.add_finding(self.table_finding(
            table,
            "{count} large table(s) should be partitioned",
            "No large tables need partitioning",
        ))
