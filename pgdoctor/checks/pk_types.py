"""
Primary key type check.

smallint and integer primary keys run out long before bigint ones, and
changing the type of a referenced key later means rewriting the table and
every referencing table. Every such key is reported; keys that have used
half of their type range are a failure.
"""

from typing import List, Protocol

from pgdoctor.checks.format import format_number
from pgdoctor.checks.resources import make_metadata
from pgdoctor.core.base_checker import BaseChecker
from pgdoctor.core.context import CheckContext
from pgdoctor.core.models import Category, Report, Severity, Table
from pgdoctor.db.rows import PrimaryKeyTypeRow

USAGE_FAIL_RATIO = 0.5

TYPE_NAMES = {"int2": "smallint", "int4": "integer"}


class PkTypesQueries(Protocol):
    async def primary_key_types(self) -> List[PrimaryKeyTypeRow]:
        ...


class PkTypesChecker(BaseChecker):
    """Проверка первичных ключей типа smallint/integer."""

    meta = make_metadata(
        "pk-types",
        "Primary Key Types",
        Category.SCHEMA,
        "Finds smallint and integer primary keys that should be bigint",
    )

    queries: PkTypesQueries

    async def _check(self, ctx: CheckContext, report: Report, options) -> None:
        rows = await self.fetch(self.queries.primary_key_types())

        table = Table(("Table", "Column", "Type", "Rows", "Current value", "Range used"))
        for row in rows:
            severity = Severity.FAIL if row.usage_pct >= USAGE_FAIL_RATIO else Severity.WARN
            current = "" if row.sequence_current is None else format_number(row.sequence_current)
            table.add_row(
                [
                    row.table_name,
                    row.column_name,
                    TYPE_NAMES.get(row.column_type, row.column_type),
                    format_number(row.estimated_rows),
                    current,
                    f"{row.usage_pct * 100:.1f}%",
                ],
                severity,
            )

        report.add_finding(self.table_finding(
            table,
            "{count} primary key(s) use smallint or integer; migrate them to bigint",
            "All primary keys use bigint or non-integer types",
        ))
