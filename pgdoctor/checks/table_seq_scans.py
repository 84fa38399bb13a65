"""
Sequential scan check for public tables.

A table is scan-dominated when it has no index scans at all or more
sequential scans than index scans. Only tables with more than 10000 rows and
more than 100 sequential scans are returned by the query.
"""

from typing import List, Protocol

from pydantic import Field, model_validator

from pgdoctor.checks.format import format_bytes, format_number
from pgdoctor.checks.resources import make_metadata
from pgdoctor.core.base_checker import BaseChecker, CheckOptions
from pgdoctor.core.context import CheckContext
from pgdoctor.core.models import Category, Report, Severity, Table
from pgdoctor.db.rows import SeqScanTableRow


class TableSeqScansQueries(Protocol):
    async def high_seq_scan_tables(self) -> List[SeqScanTableRow]:
        ...


class TableSeqScansOptions(CheckOptions):
    warn_rows: int = Field(100_000, ge=0)
    fail_rows: int = Field(10_000_000, ge=0)

    @model_validator(mode="after")
    def _ordered(self):
        if self.warn_rows > self.fail_rows:
            raise ValueError("warn_rows must not exceed fail_rows")
        return self


def is_scan_dominated(row: SeqScanTableRow) -> bool:
    return row.idx_scan == 0 or row.seq_scan > row.idx_scan


class TableSeqScansChecker(BaseChecker):
    """Проверка таблиц, которые читаются в основном последовательным сканированием."""

    meta = make_metadata(
        "table-seq-scans",
        "Table Sequential Scans",
        Category.PERFORMANCE,
        "Finds large tables read mostly by sequential scans",
    )
    options_model = TableSeqScansOptions

    queries: TableSeqScansQueries

    async def _check(self, ctx: CheckContext, report: Report, options: TableSeqScansOptions) -> None:
        rows = await self.fetch(self.queries.high_seq_scan_tables())

        table = Table(("Table", "Rows", "Seq scans", "Index scans", "Seq/idx", "Indexes", "Size"))
        for row in rows:
            if not is_scan_dominated(row):
                severity = Severity.OK
            elif row.estimated_rows >= options.fail_rows:
                severity = Severity.FAIL
            elif row.estimated_rows >= options.warn_rows:
                severity = Severity.WARN
            else:
                severity = Severity.OK

            if row.seq_to_idx_ratio is None:
                ratio = "no index scans"
            else:
                ratio = f"{row.seq_to_idx_ratio:g}"
            table.add_row(
                [
                    row.table_name,
                    format_number(row.estimated_rows),
                    format_number(row.seq_scan),
                    format_number(row.idx_scan),
                    ratio,
                    "none" if row.index_count == 0 else row.index_count,
                    format_bytes(row.table_size_bytes),
                ],
                severity,
            )

        report.add_finding(self.table_finding(
            table,
            f"{{count}} table(s) with more than {format_number(options.warn_rows)} rows "
            "read mostly by sequential scans",
            "No large tables dominated by sequential scans",
        ))
