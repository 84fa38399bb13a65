"""
Usage of partitioned tables.

Findings:
- Partition layout: partitioned tables without partitions, or whose
  partitions are read mostly by sequential scans
- Partition pruning: frequent queries from pg_stat_statements that reference
  a partitioned table without mentioning any partition key column, so the
  planner cannot prune partitions. Skipped when pg_stat_statements is not
  installed.

Query matching is textual: a query "uses the key" when a key column name
appears in it as a whole word.
"""

import re
from typing import List, Optional, Protocol

from pgdoctor.checks.format import format_bytes, format_duration_ms, format_number
from pgdoctor.checks.resources import make_metadata
from pgdoctor.core.base_checker import BaseChecker
from pgdoctor.core.context import CheckContext
from pgdoctor.core.models import Category, Report, Severity, Table
from pgdoctor.db.rows import PartitionedTableRow, QueryStatRow

MIN_SEQ_SCANS = 1000

STRATEGIES = {"r": "range", "l": "list", "h": "hash"}


class PartitionUsageQueries(Protocol):
    async def partitioned_tables(self) -> List[PartitionedTableRow]:
        ...

    async def has_pg_stat_statements(self) -> bool:
        ...

    async def query_stats(self) -> List[QueryStatRow]:
        ...


def key_columns(table: PartitionedTableRow) -> List[str]:
    if not table.partition_key_columns:
        return []
    return [c.strip() for c in table.partition_key_columns.split(",") if c.strip()]


def _word(name: str) -> re.Pattern:
    return re.compile(rf"(?<![\w$]){re.escape(name)}(?![\w$])", re.IGNORECASE)


def references_table(query: str, table: PartitionedTableRow) -> bool:
    return bool(_word(table.table_name).search(query))


def uses_partition_key(query: str, table: PartitionedTableRow) -> Optional[bool]:
    """
    Упоминает ли запрос колонку ключа партиционирования.

    Returns:
        None, если ключ состоит только из выражений (анализ невозможен)
    """
    columns = key_columns(table)
    if not columns:
        return None
    return any(_word(column).search(query) for column in columns)


class PartitionUsageChecker(BaseChecker):
    """Проверка использования партиционированных таблиц."""

    meta = make_metadata(
        "partition-usage",
        "Partition Usage",
        Category.PERFORMANCE,
        "Checks partitioned tables and whether frequent queries can prune partitions",
    )

    queries: PartitionUsageQueries

    async def _check(self, ctx: CheckContext, report: Report, options) -> None:
        tables = await self.fetch(self.queries.partitioned_tables())
        if not tables:
            report.add_finding(self.ok_finding("No partitioned tables"))
            return

        report.add_finding(self._layout_finding(tables))

        if not await self.fetch(self.queries.has_pg_stat_statements()):
            report.add_finding(self.ok_finding(
                "pg_stat_statements is not installed; partition pruning analysis skipped",
                name="Partition pruning",
            ))
            return

        ctx.raise_if_cancelled()
        stats = await self.fetch(self.queries.query_stats())
        report.add_finding(self._pruning_finding(tables, stats))

    def _layout_finding(self, tables: List[PartitionedTableRow]):
        table = Table(("Table", "Strategy", "Key", "Partitions", "Rows", "Size", "Seq scans", "Index scans", "Notes"))
        for row in tables:
            notes = []
            if row.partition_count == 0:
                notes.append("no partitions")
            if row.total_seq_scans >= MIN_SEQ_SCANS and row.total_seq_scans > row.total_idx_scans:
                notes.append("partitions read mostly by sequential scans")
            key = row.partition_key_columns or ""
            if row.has_expression_key:
                key = f"{key} (expression)" if key else "expression"
            table.add_row(
                [
                    f"{row.schema_name}.{row.table_name}",
                    STRATEGIES.get(row.partition_strategy, row.partition_strategy),
                    key,
                    row.partition_count,
                    format_number(row.estimated_rows),
                    format_bytes(row.total_size_bytes),
                    format_number(row.total_seq_scans),
                    format_number(row.total_idx_scans),
                    "; ".join(notes),
                ],
                Severity.WARN if notes else Severity.OK,
            )
        return self.table_finding(
            table,
            "{count} partitioned table(s) with layout or access problems",
            f"{len(tables)} partitioned table(s) look healthy",
            name="Partition layout",
        )

    def _pruning_finding(self, tables: List[PartitionedTableRow], stats: List[QueryStatRow]):
        table = Table(("Table", "Key", "Query", "Calls", "Mean time"))
        for parent in tables:
            for stat in stats:
                if not references_table(stat.query, parent):
                    continue
                uses_key = uses_partition_key(stat.query, parent)
                if uses_key is None:
                    continue
                table.add_row(
                    [
                        f"{parent.schema_name}.{parent.table_name}",
                        parent.partition_key_columns or "",
                        stat.query[:80],
                        format_number(stat.calls),
                        format_duration_ms(stat.mean_exec_time),
                    ],
                    Severity.OK if uses_key else Severity.WARN,
                )
        return self.table_finding(
            table,
            "{count} frequent query(ies) on partitioned tables do not filter on the partition key",
            "Frequent queries on partitioned tables filter on the partition key",
            name="Partition pruning",
        )
