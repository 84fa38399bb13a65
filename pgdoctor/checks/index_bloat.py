"""
Estimated B-tree index bloat.

The estimate compares actual index pages with the pages expected from the
row count and column widths; it is accurate to roughly 15%, so thresholds
are set well above that.
"""

from typing import List, Protocol

from pydantic import Field, model_validator

from pgdoctor.checks.format import MIB, format_bytes
from pgdoctor.checks.resources import make_metadata
from pgdoctor.core.base_checker import BaseChecker, CheckOptions
from pgdoctor.core.context import CheckContext
from pgdoctor.core.models import Category, Report, Severity, Table
from pgdoctor.db.rows import IndexBloatRow


class IndexBloatQueries(Protocol):
    async def index_bloat(self) -> List[IndexBloatRow]:
        ...


class IndexBloatOptions(CheckOptions):
    warn_percent: float = Field(30.0, ge=0, le=100)
    fail_percent: float = Field(60.0, ge=0, le=100)
    min_bloat_bytes: int = Field(10 * MIB, ge=0)

    @model_validator(mode="after")
    def _ordered(self):
        if self.warn_percent > self.fail_percent:
            raise ValueError("warn_percent must not exceed fail_percent")
        return self


class IndexBloatChecker(BaseChecker):
    """Проверка раздутых B-tree индексов."""

    meta = make_metadata(
        "index-bloat",
        "Index Bloat",
        Category.INDEXES,
        "Estimates wasted space in B-tree indexes",
    )
    options_model = IndexBloatOptions

    queries: IndexBloatQueries

    async def _check(self, ctx: CheckContext, report: Report, options: IndexBloatOptions) -> None:
        rows = await self.fetch(self.queries.index_bloat())

        table = Table(("Index", "Table", "Size", "Bloat", "Bloat %"))
        reclaimable = 0
        for row in rows:
            if row.bloat_bytes < options.min_bloat_bytes:
                severity = Severity.OK
            elif row.bloat_percent >= options.fail_percent:
                severity = Severity.FAIL
            elif row.bloat_percent >= options.warn_percent:
                severity = Severity.WARN
            else:
                severity = Severity.OK
            if severity > Severity.OK:
                reclaimable += row.bloat_bytes
            table.add_row(
                [
                    f"{row.schemaname}.{row.indexname}",
                    f"{row.schemaname}.{row.tablename}",
                    format_bytes(row.actual_bytes),
                    format_bytes(row.bloat_bytes),
                    f"{row.bloat_percent:.1f}%",
                ],
                severity,
            )

        report.add_finding(self.table_finding(
            table,
            f"{{count}} index(es) with more than {options.warn_percent:g}% estimated bloat, "
            f"about {format_bytes(reclaimable)} reclaimable with REINDEX CONCURRENTLY",
            "No significantly bloated indexes",
        ))
