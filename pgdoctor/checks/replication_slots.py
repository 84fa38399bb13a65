"""
Replication slot health check.

Inactive or lost slots pin WAL on the primary and can fill the disk.
"""

from typing import List, Protocol, Tuple

from pgdoctor.checks.format import GIB, format_bytes, format_duration_sec
from pgdoctor.checks.resources import make_metadata
from pgdoctor.core.base_checker import BaseChecker
from pgdoctor.core.context import CheckContext
from pgdoctor.core.models import Category, Report, Severity, Table
from pgdoctor.db.rows import ReplicationSlotRow

RETAINED_WAL_FAIL = 10 * GIB
RETAINED_WAL_WARN = GIB
INACTIVE_FAIL_SECONDS = 86400


class ReplicationSlotsQueries(Protocol):
    async def replication_slots(self) -> List[ReplicationSlotRow]:
        ...


def evaluate_slot(slot: ReplicationSlotRow) -> Tuple[Severity, List[str]]:
    """
    Оценить слот.

    Returns:
        (severity, список причин)
    """
    severity = Severity.OK
    reasons: List[str] = []

    def flag(level: Severity, reason: str) -> None:
        nonlocal severity
        severity = max(severity, level)
        reasons.append(reason)

    if slot.wal_status == "lost":
        flag(Severity.FAIL, "WAL lost, slot unusable")
    elif slot.wal_status == "unreserved":
        flag(Severity.WARN, "WAL about to be removed")

    if slot.conflicting:
        reason = slot.invalidation_reason or "conflict"
        flag(Severity.FAIL, f"invalidated ({reason})")

    if not slot.active:
        if slot.inactive_seconds is not None and slot.inactive_seconds > INACTIVE_FAIL_SECONDS:
            flag(Severity.FAIL, f"inactive for {format_duration_sec(slot.inactive_seconds)}")
        elif slot.inactive_seconds is not None:
            flag(Severity.WARN, f"inactive for {format_duration_sec(slot.inactive_seconds)}")
        else:
            flag(Severity.WARN, "inactive")

    retained = slot.restart_lsn_lag_bytes or 0
    if retained > RETAINED_WAL_FAIL:
        flag(Severity.FAIL, f"retains {format_bytes(retained)} of WAL")
    elif retained > RETAINED_WAL_WARN:
        flag(Severity.WARN, f"retains {format_bytes(retained)} of WAL")

    return severity, reasons


class ReplicationSlotsChecker(BaseChecker):
    """Проверка слотов репликации."""

    meta = make_metadata(
        "replication-slots",
        "Replication Slots",
        Category.PERFORMANCE,
        "Detects inactive, lost or WAL-retaining replication slots",
    )

    queries: ReplicationSlotsQueries

    async def _check(self, ctx: CheckContext, report: Report, options) -> None:
        slots = await self.fetch(self.queries.replication_slots())

        if not slots:
            report.add_finding(self.ok_finding("No replication slots"))
            return

        table = Table(("Slot", "Type", "Database", "Active", "WAL status", "Retained WAL", "Issues"))
        for slot in slots:
            severity, reasons = evaluate_slot(slot)
            table.add_row(
                [
                    slot.slot_name,
                    slot.slot_type if not slot.plugin else f"{slot.slot_type} ({slot.plugin})",
                    slot.database or "",
                    "yes" if slot.active else "no",
                    slot.wal_status or "",
                    format_bytes(slot.restart_lsn_lag_bytes or 0),
                    "; ".join(reasons) or "OK",
                ],
                severity,
            )

        report.add_finding(self.table_finding(
            table,
            "{count} replication slot(s) need attention",
            f"{len(slots)} replication slot(s) healthy",
        ))
