"""
Random UUID defaults on indexed columns.

Random (version 4) UUIDs insert at random positions in a B-tree index, which
splits pages all over the index and keeps most of it hot in the cache.
Time-ordered UUIDs (version 7) insert at the right edge like a sequence.
"""

from typing import List, Protocol

from pgdoctor.checks.resources import make_metadata
from pgdoctor.core.base_checker import BaseChecker
from pgdoctor.core.context import CheckContext
from pgdoctor.core.models import Category, Report, Severity, Table
from pgdoctor.db.rows import UuidDefaultRow

RANDOM_UUID_FUNCTIONS = ("gen_random_uuid(", "uuid_generate_v4(")


class UuidDefaultsQueries(Protocol):
    async def uuid_defaults(self) -> List[UuidDefaultRow]:
        ...


def is_random_default(expression: str) -> bool:
    lowered = expression.lower()
    return any(fn in lowered for fn in RANDOM_UUID_FUNCTIONS)


class UuidDefaultsChecker(BaseChecker):
    """Проверка индексированных uuid колонок со случайным DEFAULT."""

    meta = make_metadata(
        "uuid-defaults",
        "UUID Defaults",
        Category.SCHEMA,
        "Finds indexed uuid columns whose default generates random (v4) UUIDs",
    )

    queries: UuidDefaultsQueries

    async def _check(self, ctx: CheckContext, report: Report, options) -> None:
        rows = await self.fetch(self.queries.uuid_defaults())

        table = Table(("Table", "Column", "Default", "Indexed"))
        for row in rows:
            random_default = is_random_default(row.default_expr)
            table.add_row(
                [row.table_name, row.column_name, row.default_expr, "yes" if row.has_index else "no"],
                Severity.WARN if random_default and row.has_index else Severity.OK,
            )

        report.add_finding(self.table_finding(
            table,
            "{count} indexed uuid column(s) default to random UUIDs; consider time-ordered UUIDv7",
            "No indexed uuid columns with random defaults",
        ))
