"""
UUIDs stored as text.
"""

from typing import List, Protocol

from pgdoctor.checks.format import format_bytes
from pgdoctor.checks.resources import make_metadata
from pgdoctor.core.base_checker import BaseChecker
from pgdoctor.core.context import CheckContext
from pgdoctor.core.models import Category, Report, Severity, Table
from pgdoctor.db.rows import UuidStringColumnRow


class UuidTypesQueries(Protocol):
    async def uuid_string_columns(self) -> List[UuidStringColumnRow]:
        ...


class UuidTypesChecker(BaseChecker):
    """Колонки с UUID в строковом типе вместо uuid."""

    meta = make_metadata(
        "uuid-types",
        "UUID Column Types",
        Category.SCHEMA,
        "Finds UUID columns stored as text instead of the uuid type",
    )

    queries: UuidTypesQueries

    async def _check(self, ctx: CheckContext, report: Report, options) -> None:
        rows = await self.fetch(self.queries.uuid_string_columns())

        table = Table(("Table", "Column", "Type", "Table size"))
        for row in rows:
            table.add_row(
                [row.table_name, row.column_name, row.column_type, format_bytes(row.table_size_bytes)],
                Severity.WARN,
            )

        report.add_finding(self.table_finding(
            table,
            "{count} UUID column(s) stored as text; the uuid type takes 16 bytes instead of 36 or more "
            "and compares faster",
            "No UUID columns stored as text",
        ))
