"""
Connection usage and stuck-session check.

Findings:
- Connection usage: share of usable connection slots in use
- Idle in transaction: sessions holding a transaction open while idle
- Long idle connections: connections idle for more than 30 minutes
"""

from typing import List, Protocol

from pydantic import Field, model_validator

from pgdoctor.checks.format import format_duration_sec
from pgdoctor.checks.resources import make_metadata
from pgdoctor.core.base_checker import BaseChecker, CheckOptions
from pgdoctor.core.context import CheckContext
from pgdoctor.core.models import Category, Report, Severity, Table
from pgdoctor.db.rows import ConnectionStatsRow, IdleInTransactionRow, LongIdleConnectionRow

IDLE_IN_TX_FAIL_SECONDS = 300


class ConnectionHealthQueries(Protocol):
    async def connection_stats(self) -> ConnectionStatsRow:
        ...

    async def idle_in_transaction(self) -> List[IdleInTransactionRow]:
        ...

    async def long_idle_connections(self) -> List[LongIdleConnectionRow]:
        ...


class ConnectionHealthOptions(CheckOptions):
    usage_warn_percent: float = Field(75.0, gt=0, le=100)
    usage_fail_percent: float = Field(90.0, gt=0, le=100)
    idle_in_transaction_warn_seconds: int = Field(60, ge=0)

    @model_validator(mode="after")
    def _ordered(self):
        if self.usage_warn_percent > self.usage_fail_percent:
            raise ValueError("usage_warn_percent must not exceed usage_fail_percent")
        return self


class ConnectionHealthChecker(BaseChecker):
    """Проверка заполненности пула соединений и зависших сессий."""

    meta = make_metadata(
        "connection-health",
        "Connection Health",
        Category.PERFORMANCE,
        "Checks connection slot usage and sessions idle in transaction",
    )
    options_model = ConnectionHealthOptions

    queries: ConnectionHealthQueries

    async def _check(self, ctx: CheckContext, report: Report, options: ConnectionHealthOptions) -> None:
        stats = await self.fetch(self.queries.connection_stats())
        report.add_finding(self._usage_finding(stats, options))

        idle_tx = await self.fetch(self.queries.idle_in_transaction())
        report.add_finding(self._idle_in_transaction_finding(idle_tx, options))

        long_idle = await self.fetch(self.queries.long_idle_connections())
        report.add_finding(self._long_idle_finding(long_idle))

    def _usage_finding(self, stats: ConnectionStatsRow, options: ConnectionHealthOptions):
        available = stats.max_connections - stats.reserved_connections
        if available <= 0:
            raise self.error(
                f"max_connections ({stats.max_connections}) does not exceed "
                f"superuser_reserved_connections ({stats.reserved_connections})"
            )

        usage = stats.total_connections / available * 100
        details = (
            f"{stats.total_connections}/{available} connections in use ({usage:.1f}%): "
            f"{stats.active_connections} active, {stats.idle_connections} idle, "
            f"{stats.idle_in_transaction + stats.idle_in_transaction_aborted} idle in transaction, "
            f"{stats.waiting_connections} waiting"
        )
        if usage >= options.usage_fail_percent:
            severity = Severity.FAIL
        elif usage >= options.usage_warn_percent:
            severity = Severity.WARN
        else:
            severity = Severity.OK
        return self.finding(severity, details, name="Connection usage")

    def _idle_in_transaction_finding(self, rows: List[IdleInTransactionRow], options: ConnectionHealthOptions):
        table = Table(("PID", "User", "Database", "Application", "Duration", "Query"))
        for row in rows:
            duration = row.transaction_duration_seconds or 0
            if duration > IDLE_IN_TX_FAIL_SECONDS:
                severity = Severity.FAIL
            elif duration > options.idle_in_transaction_warn_seconds:
                severity = Severity.WARN
            else:
                severity = Severity.OK
            table.add_row(
                [
                    row.pid,
                    row.username or "",
                    row.database_name or "",
                    row.application_name or "",
                    format_duration_sec(duration),
                    (row.query_preview or "").replace("\n", " "),
                ],
                severity,
            )

        healthy = "No long-running idle-in-transaction sessions"
        problem = "{count} session(s) idle in transaction for more than " + format_duration_sec(
            options.idle_in_transaction_warn_seconds
        )
        if rows and rows[0].timeout_ms == 0:
            problem += "; idle_in_transaction_session_timeout is disabled"
        return self.table_finding(table, problem, healthy, name="Idle in transaction")

    def _long_idle_finding(self, rows: List[LongIdleConnectionRow]):
        table = Table(("PID", "User", "Database", "Application", "Client", "Idle", "Age"))
        for row in rows:
            table.add_row(
                [
                    row.pid,
                    row.username or "",
                    row.database_name or "",
                    row.application_name or "",
                    row.client_address or "local",
                    format_duration_sec(row.idle_duration_seconds or 0),
                    format_duration_sec(row.connection_age_seconds or 0),
                ],
                Severity.WARN,
            )
        return self.table_finding(
            table,
            "{count} connection(s) idle for more than 30 minutes, possible pool leak",
            "No connections idle for more than 30 minutes",
            name="Long idle connections",
        )
