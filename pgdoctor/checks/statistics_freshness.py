"""
Age of the cumulative statistics for the current database.

Usage-based checks (index-usage, table-seq-scans, table-activity,
cache-efficiency) read counters that start from zero after a statistics
reset, so a recent reset makes their results unreliable.
"""

from typing import Protocol

from pgdoctor.checks.resources import make_metadata
from pgdoctor.core.base_checker import BaseChecker
from pgdoctor.core.context import CheckContext
from pgdoctor.core.models import Category, Report, Severity
from pgdoctor.db.rows import StatisticsFreshnessRow

NEVER_RESET_DAYS = 999
RECENT_RESET_DAYS = 1
SHORT_WINDOW_DAYS = 7


class StatisticsFreshnessQueries(Protocol):
    async def statistics_freshness(self) -> StatisticsFreshnessRow:
        ...


class StatisticsFreshnessChecker(BaseChecker):
    """Проверка давности сброса статистики."""

    meta = make_metadata(
        "statistics-freshness",
        "Statistics Freshness",
        Category.PERFORMANCE,
        "Checks how long usage statistics have been collected since the last reset",
    )

    queries: StatisticsFreshnessQueries

    async def _check(self, ctx: CheckContext, report: Report, options) -> None:
        row = await self.fetch(self.queries.statistics_freshness())

        if row.stats_reset is None or row.age_days >= NEVER_RESET_DAYS:
            report.add_finding(self.ok_finding("Statistics have never been reset"))
            return

        reset_at = row.stats_reset.strftime("%Y-%m-%d %H:%M")
        if row.age_days < 0:
            raise self.error(f"statistics reset time {reset_at} is in the future")
        if row.age_days < RECENT_RESET_DAYS:
            report.add_finding(self.finding(
                Severity.WARN,
                f"Statistics were reset less than a day ago ({reset_at}). "
                "Usage-based checks (unused indexes, sequential scans, write activity) are not reliable yet.",
            ))
        elif row.age_days < SHORT_WINDOW_DAYS:
            report.add_finding(self.ok_finding(
                f"Statistics cover {row.age_days} day(s) since {reset_at}; "
                "weekly workloads may not be represented yet."
            ))
        else:
            report.add_finding(self.ok_finding(f"Statistics cover {row.age_days} days since {reset_at}"))
