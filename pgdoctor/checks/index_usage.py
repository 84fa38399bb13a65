"""
Index usage check for the public schema.

Findings:
- Unused indexes: never scanned since the statistics reset
- Low usage indexes: scanned far less often than the table is written, so
  their maintenance costs more than they save
- Index cache hit ratio: indexes mostly read from disk

Primary key and unique indexes enforce constraints and are never reported
as unused. Indexes smaller than 1MiB are ignored.
"""

from typing import List, Protocol

from pgdoctor.checks.format import MIB, format_bytes, format_number
from pgdoctor.checks.resources import make_metadata
from pgdoctor.core.base_checker import BaseChecker
from pgdoctor.core.context import CheckContext
from pgdoctor.core.models import Category, Report, Severity, Table
from pgdoctor.db.rows import IndexUsageRow

MIN_INDEX_BYTES = MIB
MIN_TABLE_WRITES = 10_000
LOW_USAGE_RATIO = 0.01
MIN_CACHE_BLOCKS = 10_000
CACHE_WARN_PERCENT = 90.0


class IndexUsageQueries(Protocol):
    async def index_usage(self) -> List[IndexUsageRow]:
        ...


def is_constraint_index(row: IndexUsageRow) -> bool:
    return row.is_primary or row.is_unique


def is_unused(row: IndexUsageRow) -> bool:
    return row.idx_scan == 0 and not is_constraint_index(row) and row.index_size_bytes >= MIN_INDEX_BYTES


def is_low_usage(row: IndexUsageRow) -> bool:
    if row.idx_scan == 0 or is_constraint_index(row) or row.index_size_bytes < MIN_INDEX_BYTES:
        return False
    if row.table_writes < MIN_TABLE_WRITES:
        return False
    return row.idx_scan / row.table_writes < LOW_USAGE_RATIO


def has_poor_cache_ratio(row: IndexUsageRow) -> bool:
    if row.cache_hit_ratio is None:
        return False
    if row.idx_blks_hit + row.idx_blks_read < MIN_CACHE_BLOCKS:
        return False
    return row.cache_hit_ratio < CACHE_WARN_PERCENT


class IndexUsageChecker(BaseChecker):
    """Проверка неиспользуемых и редко используемых индексов."""

    meta = make_metadata(
        "index-usage",
        "Index Usage",
        Category.INDEXES,
        "Finds unused and rarely used indexes and indexes with a poor cache hit ratio",
    )

    queries: IndexUsageQueries

    async def _check(self, ctx: CheckContext, report: Report, options) -> None:
        rows = await self.fetch(self.queries.index_usage())

        unused = Table(("Table", "Index", "Size", "Table writes"))
        low = Table(("Table", "Index", "Size", "Scans", "Table writes"))
        cache = Table(("Table", "Index", "Size", "Cache hit", "Blocks read"))
        wasted = 0
        for row in rows:
            if is_unused(row):
                wasted += row.index_size_bytes
                unused.add_row(
                    [row.table_name, row.index_name, format_bytes(row.index_size_bytes),
                     format_number(row.table_writes)],
                    Severity.WARN,
                )
            elif is_low_usage(row):
                low.add_row(
                    [row.table_name, row.index_name, format_bytes(row.index_size_bytes),
                     format_number(row.idx_scan), format_number(row.table_writes)],
                    Severity.WARN,
                )
            if has_poor_cache_ratio(row):
                cache.add_row(
                    [row.table_name, row.index_name, format_bytes(row.index_size_bytes),
                     f"{row.cache_hit_ratio:.1f}%", format_number(row.idx_blks_read)],
                    Severity.WARN,
                )

        report.add_finding(self.table_finding(
            unused,
            "{count} unused index(es) using " + format_bytes(wasted),
            "No unused indexes",
            name="Unused indexes",
        ))
        report.add_finding(self.table_finding(
            low,
            f"{{count}} index(es) scanned less than once per {1 / LOW_USAGE_RATIO:.0f} table writes",
            "No rarely used indexes",
            name="Low usage indexes",
        ))
        report.add_finding(self.table_finding(
            cache,
            f"{{count}} index(es) with a cache hit ratio below {CACHE_WARN_PERCENT:g}%",
            "Index cache hit ratio is healthy",
            name="Index cache hit ratio",
        ))
