"""
Severity aggregation and exit code mapping.

Reductions are max() over the fixed OK < WARN < FAIL order, so they are
monotone and independent of report or finding order.
"""

from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

from pgdoctor.core.models import Report, Severity
from pgdoctor.orchestrator import CheckFailure, ExecutionResult, Outcome


EXIT_OK = 0
EXIT_WARN = 1
EXIT_FAIL = 2

_EXIT_CODES = {
    Severity.OK: EXIT_OK,
    Severity.WARN: EXIT_WARN,
    Severity.FAIL: EXIT_FAIL,
}


def report_severity(report: Report) -> Severity:
    """Severity отчёта: максимум по Finding и строкам их таблиц."""
    return report.severity


def run_severity(reports: Iterable[Report], failures: Iterable[CheckFailure] = ()) -> Severity:
    """
    Severity всего запуска.

    Сбой проверки весит как FAIL, но Finding для него не создаётся.
    """
    if list(failures):
        return Severity.FAIL
    return Severity.worst(report_severity(r) for r in reports)


def exit_code(severity: Severity, has_errors: bool = False) -> int:
    """OK → 0, WARN → 1, FAIL или ошибки выполнения → 2."""
    if has_errors:
        return EXIT_FAIL
    return _EXIT_CODES[Severity(severity)]


@dataclass
class RunSummary:
    """Итог запуска для рендереров и кода выхода."""

    outcomes: List[Outcome]
    severity: Severity
    exit_code: int
    no_checks_selected: bool = False
    cancelled: bool = False
    duration_seconds: float = 0.0
    counts: Dict[str, int] = field(default_factory=dict)

    @property
    def reports(self) -> List[Report]:
        return [o for o in self.outcomes if isinstance(o, Report)]

    @property
    def failures(self) -> List[CheckFailure]:
        return [o for o in self.outcomes if isinstance(o, CheckFailure)]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.severity.label,
            "exit_code": self.exit_code,
            "no_checks_selected": self.no_checks_selected,
            "cancelled": self.cancelled,
            "duration_seconds": round(self.duration_seconds, 3),
            "counts": self.counts,
            "reports": [r.to_dict() for r in self.reports],
            "errors": [f.to_dict() for f in self.failures],
        }


def summarize(execution: ExecutionResult, selected: Optional[int] = None) -> RunSummary:
    """
    Свести результат выполнения к итоговой severity и коду выхода.

    Args:
        execution: Результат оркестратора
        selected: Сколько проверок было выбрано (0 означает "ничего не выбрано")
    """
    reports = execution.reports
    failures = execution.failures
    severity = run_severity(reports, failures)

    counts = Counter(report_severity(r).label for r in reports)
    summary_counts = {s.label: counts.get(s.label, 0) for s in Severity}
    summary_counts["ERROR"] = len(failures)

    if selected is None:
        selected = len(execution.outcomes)

    return RunSummary(
        outcomes=list(execution.outcomes),
        severity=severity,
        exit_code=exit_code(severity, has_errors=bool(failures)),
        no_checks_selected=selected == 0,
        cancelled=execution.cancelled,
        duration_seconds=execution.duration_seconds,
        counts=summary_counts,
    )
