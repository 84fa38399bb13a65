"""
Buffer cache hit ratio check for the current database.
"""

from typing import Protocol

from pydantic import Field, model_validator

from pgdoctor.checks.format import format_number
from pgdoctor.checks.resources import make_metadata
from pgdoctor.core.base_checker import BaseChecker, CheckOptions
from pgdoctor.core.context import CheckContext
from pgdoctor.core.models import Category, Report, Severity
from pgdoctor.db.rows import CacheEfficiencyRow

FRESH_STATS_DAYS = 1.0


class CacheEfficiencyQueries(Protocol):
    async def cache_efficiency(self) -> CacheEfficiencyRow:
        ...


class CacheEfficiencyOptions(CheckOptions):
    warn_below_percent: float = Field(99.0, ge=0, le=100)
    fail_below_percent: float = Field(95.0, ge=0, le=100)

    @model_validator(mode="after")
    def _ordered(self):
        if self.fail_below_percent > self.warn_below_percent:
            raise ValueError("fail_below_percent must not exceed warn_below_percent")
        return self


class CacheEfficiencyChecker(BaseChecker):
    """Проверка доли чтений из shared buffers."""

    meta = make_metadata(
        "cache-efficiency",
        "Cache Efficiency",
        Category.PERFORMANCE,
        "Checks the buffer cache hit ratio of the current database",
    )
    options_model = CacheEfficiencyOptions

    queries: CacheEfficiencyQueries

    async def _check(self, ctx: CheckContext, report: Report, options: CacheEfficiencyOptions) -> None:
        row = await self.fetch(self.queries.cache_efficiency())

        if row.cache_hit_ratio is None or row.blks_hit + row.blks_read == 0:
            report.add_finding(self.ok_finding("No block activity recorded yet"))
            return

        ratio = row.cache_hit_ratio
        details = (
            f"Cache hit ratio is {ratio:.2f}% "
            f"({format_number(row.blks_hit)} hits, {format_number(row.blks_read)} reads)"
        )
        if row.stats_age_days < FRESH_STATS_DAYS:
            details += "; statistics were reset less than a day ago and may not be representative"

        if ratio < options.fail_below_percent:
            severity = Severity.FAIL
            details += f". Below {options.fail_below_percent:g}%: consider more shared_buffers or memory."
        elif ratio < options.warn_below_percent:
            severity = Severity.WARN
            details += f". Below {options.warn_below_percent:g}%."
        else:
            severity = Severity.OK
        report.add_finding(self.finding(severity, details))
