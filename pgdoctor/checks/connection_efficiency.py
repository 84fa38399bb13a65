"""
Session efficiency check based on pg_stat_database session statistics.
"""

from typing import Protocol

from pgdoctor.checks.format import format_duration_ms, format_number
from pgdoctor.checks.resources import make_metadata
from pgdoctor.core.base_checker import BaseChecker
from pgdoctor.core.context import CheckContext
from pgdoctor.core.models import Category, Report, Severity
from pgdoctor.db.rows import SessionStatisticsRow

ABNORMAL_FAIL_PERCENT = 5.0
ABNORMAL_WARN_PERCENT = 1.0
BUSY_RATIO_WARN_BELOW = 10.0
IDLE_IN_TX_TIME_WARN_PERCENT = 5.0


class ConnectionEfficiencyQueries(Protocol):
    async def session_statistics(self) -> SessionStatisticsRow:
        ...


class ConnectionEfficiencyChecker(BaseChecker):
    """Проверка того, как приложения используют свои сессии."""

    meta = make_metadata(
        "connection-efficiency",
        "Connection Efficiency",
        Category.PERFORMANCE,
        "Analyzes session busy ratio and abnormal session terminations",
    )

    queries: ConnectionEfficiencyQueries

    async def _check(self, ctx: CheckContext, report: Report, options) -> None:
        stats = await self.fetch(self.queries.session_statistics())

        if stats.total_sessions == 0:
            report.add_finding(self.ok_finding(
                "No session statistics recorded (requires PostgreSQL 14+ or statistics were just reset)"
            ))
            return

        abnormal = stats.sessions_abandoned + stats.sessions_fatal + stats.sessions_killed
        abnormal_percent = abnormal / stats.total_sessions * 100
        if abnormal_percent > ABNORMAL_FAIL_PERCENT:
            severity = Severity.FAIL
        elif abnormal_percent > ABNORMAL_WARN_PERCENT:
            severity = Severity.WARN
        else:
            severity = Severity.OK
        report.add_finding(self.finding(
            severity,
            f"{format_number(abnormal)} of {format_number(stats.total_sessions)} sessions "
            f"ended abnormally ({abnormal_percent:.1f}%): {stats.sessions_abandoned} abandoned, "
            f"{stats.sessions_fatal} fatal, {stats.sessions_killed} killed",
            name="Session terminations",
        ))

        busy = stats.session_busy_ratio_percent
        if busy < BUSY_RATIO_WARN_BELOW:
            report.add_finding(self.finding(
                Severity.WARN,
                f"Sessions are busy {busy:.1f}% of their lifetime. "
                "The connection pool is likely oversized; consider fewer pooled connections.",
                name="Session busy ratio",
            ))
        else:
            report.add_finding(self.ok_finding(
                f"Sessions are busy {busy:.1f}% of their lifetime",
                name="Session busy ratio",
            ))

        if stats.total_session_time_ms > 0:
            idle_percent = stats.total_idle_in_txn_time_ms / stats.total_session_time_ms * 100
        else:
            idle_percent = 0.0
        details = (
            f"{idle_percent:.1f}% of session time spent idle in transaction "
            f"({format_duration_ms(stats.total_idle_in_txn_time_ms)} of "
            f"{format_duration_ms(stats.total_session_time_ms)})"
        )
        if idle_percent > IDLE_IN_TX_TIME_WARN_PERCENT:
            report.add_finding(self.finding(Severity.WARN, details, name="Idle in transaction time"))
        else:
            report.add_finding(self.ok_finding(details, name="Idle in transaction time"))
