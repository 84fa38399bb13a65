"""
Replica replay lag check.
"""

from typing import List, Protocol

from pydantic import Field, model_validator

from pgdoctor.checks.format import GIB, MIB, format_bytes
from pgdoctor.checks.resources import make_metadata
from pgdoctor.core.base_checker import BaseChecker, CheckOptions
from pgdoctor.core.context import CheckContext
from pgdoctor.core.models import Category, Report, Severity, Table
from pgdoctor.db.rows import ReplicationLagRow

LAG_BYTES_FAIL = GIB
LAG_BYTES_WARN = 100 * MIB


class ReplicationLagQueries(Protocol):
    async def replication_lag(self) -> List[ReplicationLagRow]:
        ...


class ReplicationLagOptions(CheckOptions):
    warn_seconds: float = Field(30.0, ge=0)
    fail_seconds: float = Field(300.0, ge=0)

    @model_validator(mode="after")
    def _ordered(self):
        if self.warn_seconds > self.fail_seconds:
            raise ValueError("warn_seconds must not exceed fail_seconds")
        return self


def lag_severity(row: ReplicationLagRow, options: ReplicationLagOptions) -> Severity:
    """Severity одной реплики по задержке во времени и в байтах."""
    if row.replay_lag_seconds >= options.fail_seconds or row.replay_lag_bytes >= LAG_BYTES_FAIL:
        return Severity.FAIL
    if row.replay_lag_seconds >= options.warn_seconds or row.replay_lag_bytes >= LAG_BYTES_WARN:
        return Severity.WARN
    if row.state != "streaming":
        return Severity.WARN
    return Severity.OK


class ReplicationLagChecker(BaseChecker):
    """Проверка отставания реплик."""

    meta = make_metadata(
        "replication-lag",
        "Replication Lag",
        Category.PERFORMANCE,
        "Checks replay lag of connected replicas and logical consumers",
    )
    options_model = ReplicationLagOptions

    queries: ReplicationLagQueries

    async def _check(self, ctx: CheckContext, report: Report, options: ReplicationLagOptions) -> None:
        rows = await self.fetch(self.queries.replication_lag())

        if not rows:
            report.add_finding(self.ok_finding("No replicas connected"))
            return

        table = Table(("Replica", "Type", "State", "Lag (bytes)", "Lag (time)", "Slot"))
        for row in rows:
            table.add_row(
                [
                    row.application_name or "(unnamed)",
                    row.replication_type,
                    row.state or "unknown",
                    format_bytes(row.replay_lag_bytes),
                    f"{row.replay_lag_seconds:.1f}s",
                    row.slot_name or "",
                ],
                lag_severity(row, options),
            )

        report.add_finding(self.table_finding(
            table,
            "{count} replica(s) lagging or not streaming",
            f"{len(rows)} replica(s) streaming within {options.warn_seconds:g}s",
        ))
