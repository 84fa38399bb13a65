"""
Sequence exhaustion check.

Usage is measured against both the sequence maximum and the maximum of the
owning column type, whichever is reached first.
"""

from typing import List, Protocol

from pgdoctor.checks.format import format_number
from pgdoctor.checks.resources import make_metadata
from pgdoctor.core.base_checker import BaseChecker
from pgdoctor.core.context import CheckContext
from pgdoctor.core.models import Category, Report, Severity, Table
from pgdoctor.db.rows import SequenceHealthRow

USAGE_FAIL_PERCENT = 90.0
USAGE_WARN_PERCENT = 75.0


class SequenceHealthQueries(Protocol):
    async def sequence_health(self) -> List[SequenceHealthRow]:
        ...


def effective_usage(row: SequenceHealthRow) -> float:
    """Процент использования с учётом типа колонки-владельца."""
    usage = row.usage_percent
    if row.column_max_value > 0 and row.current_value > 0:
        usage = max(usage, row.current_value / row.column_max_value * 100)
    return usage


class SequenceHealthChecker(BaseChecker):
    """Проверка приближения последовательностей к максимуму."""

    meta = make_metadata(
        "sequence-health",
        "Sequence Health",
        Category.SCHEMA,
        "Finds sequences close to exhausting their range or their column type",
    )

    queries: SequenceHealthQueries

    async def _check(self, ctx: CheckContext, report: Report, options) -> None:
        rows = await self.fetch(self.queries.sequence_health())

        table = Table(("Sequence", "Column", "Type", "Current", "Usage", "Notes"))
        for row in rows:
            usage = effective_usage(row)
            if usage >= USAGE_FAIL_PERCENT:
                severity = Severity.FAIL
            elif usage >= USAGE_WARN_PERCENT:
                severity = Severity.WARN
            else:
                severity = Severity.OK

            notes = []
            if row.should_be_bigint:
                notes.append("migrate column to bigint")
            if row.sequence_exceeds_column:
                notes.append("sequence max exceeds column type")
            if row.is_primary_key and row.fk_reference_count:
                notes.append(f"primary key referenced by {row.fk_reference_count} foreign key(s)")
            if row.is_cyclic:
                notes.append("cyclic")

            column = f"{row.table_name}.{row.column_name}" if row.table_name else ""
            table.add_row(
                [
                    f"{row.schema_name}.{row.sequence_name}",
                    column,
                    row.column_type or row.seq_data_type,
                    format_number(row.current_value),
                    f"{usage:.1f}%",
                    "; ".join(notes),
                ],
                severity,
            )

        report.add_finding(self.table_finding(
            table,
            f"{{count}} sequence(s) above {USAGE_WARN_PERCENT:g}% of their range",
            "All sequences are well within their range",
        ))
