"""
Temporary file usage check (work_mem exhaustion).
"""

from typing import Protocol

from pgdoctor.checks.format import GIB, format_bytes
from pgdoctor.checks.resources import make_metadata
from pgdoctor.core.base_checker import BaseChecker
from pgdoctor.core.context import CheckContext
from pgdoctor.core.models import Category, Report, Severity
from pgdoctor.db.rows import TempUsageRow

BYTES_PER_HOUR_FAIL = 10 * GIB
BYTES_PER_HOUR_WARN = GIB
FILES_PER_HOUR_WARN = 100


class TempUsageQueries(Protocol):
    async def temp_usage(self) -> TempUsageRow:
        ...


class TempUsageChecker(BaseChecker):
    """Проверка скорости создания временных файлов."""

    meta = make_metadata(
        "temp-usage",
        "Temporary File Usage",
        Category.PERFORMANCE,
        "Detects queries spilling to disk because work_mem is too small",
    )

    queries: TempUsageQueries

    async def _check(self, ctx: CheckContext, report: Report, options) -> None:
        row = await self.fetch(self.queries.temp_usage())

        rate = (
            f"{format_bytes(int(row.temp_bytes_per_hour))}/hour in "
            f"{row.temp_files_per_hour:.1f} files/hour "
            f"(total {format_bytes(row.temp_bytes)} in {row.temp_files} files, work_mem={row.work_mem})"
        )
        if row.temp_bytes_per_hour > BYTES_PER_HOUR_FAIL:
            severity = Severity.FAIL
            details = f"Heavy temporary file usage: {rate}. Tune work_mem or the offending queries."
        elif row.temp_bytes_per_hour > BYTES_PER_HOUR_WARN:
            severity = Severity.WARN
            details = f"High temporary file usage: {rate}"
        elif row.temp_files_per_hour > FILES_PER_HOUR_WARN:
            severity = Severity.WARN
            details = f"Many temporary files created: {rate}"
        elif row.temp_files == 0:
            severity = Severity.OK
            details = "No temporary files created since statistics reset"
        else:
            severity = Severity.OK
            details = f"Temporary file usage is low: {rate}"
        report.add_finding(self.finding(severity, details, name="Temporary file rate"))

        if (row.log_temp_files or "").strip() == "-1":
            report.add_finding(self.finding(
                Severity.WARN,
                "log_temp_files is disabled (-1); queries spilling to disk are not logged. "
                "Set it to a threshold such as 10MB.",
                name="log_temp_files",
            ))
