"""
Invalid index check.
"""

from typing import List, Protocol

from pgdoctor.checks.resources import make_metadata
from pgdoctor.core.base_checker import BaseChecker
from pgdoctor.core.context import CheckContext
from pgdoctor.core.models import Category, Report, Severity
from pgdoctor.db.rows import BrokenIndexRow


class InvalidIndexesQueries(Protocol):
    async def broken_indexes(self) -> List[BrokenIndexRow]:
        ...


class InvalidIndexesChecker(BaseChecker):
    """Индексы в состоянии invalid (например, после неудачного CREATE INDEX CONCURRENTLY)."""

    meta = make_metadata(
        "invalid-indexes",
        "Invalid Indexes",
        Category.INDEXES,
        "Identifies indexes in invalid state that need rebuilding",
    )

    queries: InvalidIndexesQueries

    async def _check(self, ctx: CheckContext, report: Report, options) -> None:
        indexes = await self.fetch(self.queries.broken_indexes())

        if not indexes:
            report.add_finding(self.ok_finding())
            return

        lines = "\n".join(f"{index.table_name}\t{index.index_name}" for index in indexes)
        report.add_finding(self.finding(
            Severity.WARN,
            f"There are {len(indexes)} invalid indexes.\n{lines}\n",
        ))
