"""
Report generator for run results.

Generates:
- Text output for terminals (rich)
- JSON output for machine processing
"""

import json
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.table import Table as RichTable
from rich.text import Text

from pgdoctor.aggregator import RunSummary
from pgdoctor.core.models import Finding, Report, Severity
from pgdoctor.orchestrator import CheckFailure

SEVERITY_STYLES = {
    Severity.OK: "green",
    Severity.WARN: "yellow",
    Severity.FAIL: "bold red",
}
ERROR_STYLE = "bold magenta"

NO_CHECKS_MESSAGE = "No checks selected."


class ReportGenerator:
    """Генератор отчётов о запуске."""

    def __init__(self, console: Optional[Console] = None, hide_ok: bool = False):
        """
        Args:
            console: rich Console для вывода (по умолчанию stdout)
            hide_ok: Не показывать Finding со статусом OK
        """
        self.console = console or Console()
        self.hide_ok = hide_ok

    # ==================== text ====================

    def render_text(self, summary: RunSummary) -> None:
        """Вывести отчёт в консоль."""
        if summary.no_checks_selected:
            self.console.print(f"[yellow]{NO_CHECKS_MESSAGE}[/]")
            return

        for outcome in summary.outcomes:
            if isinstance(outcome, CheckFailure):
                self._render_failure(outcome)
            else:
                self._render_report(outcome)

        self._render_summary(summary)

    def _badge(self, label: str, style: str) -> Text:
        return Text(f"[{label}]", style=style)

    def _render_report(self, report: Report) -> None:
        severity = report.severity
        if self.hide_ok and severity == Severity.OK:
            return

        header = self._badge(severity.label, SEVERITY_STYLES[severity])
        header.append(f" {report.category}/{report.check_id}", style="bold")
        header.append(f"  {report.name}", style="dim")
        self.console.print(header)

        for finding in report:
            self._render_finding(finding)
        self.console.print()

    def _render_finding(self, finding: Finding) -> None:
        severity = finding.effective_severity
        if self.hide_ok and severity == Severity.OK:
            return

        line = Text("  ")
        line.append(f"{severity.label:<4}", style=SEVERITY_STYLES[severity])
        line.append(f" {finding.name}")
        self.console.print(line)

        if finding.details:
            for detail_line in finding.details.rstrip("\n").splitlines():
                self.console.print(Text(f"       {detail_line}", style="dim"))

        if finding.table is not None:
            rows = finding.table.problem_rows()
            if rows:
                table = RichTable(show_edge=False, pad_edge=False, box=None, padding=(0, 2))
                for header in finding.table.headers:
                    table.add_column(header, style="cyan" if header == finding.table.headers[0] else None)
                for row in rows:
                    table.add_row(*row.cells, style=SEVERITY_STYLES[row.severity])
                self.console.print(table)

    def _render_failure(self, failure: CheckFailure) -> None:
        line = self._badge("ERROR", ERROR_STYLE)
        line.append(f" {failure.category}/{failure.check_id}", style="bold")
        line.append(f"  {failure.error}")
        self.console.print(line)
        self.console.print()

    def _render_summary(self, summary: RunSummary) -> None:
        counts = ", ".join(f"{label}: {count}" for label, count in summary.counts.items())
        status = self._badge(summary.severity.label, SEVERITY_STYLES[summary.severity])
        status.append(f" {len(summary.outcomes)} check(s) in {summary.duration_seconds:.2f}s ({counts})")
        self.console.rule("Summary")
        self.console.print(status)
        if summary.cancelled:
            self.console.print("[yellow]Run was cancelled; remaining checks did not complete.[/]")

    # ==================== json ====================

    def to_json(self, summary: RunSummary) -> str:
        """JSON представление итогов запуска."""
        data = summary.to_dict()
        if summary.no_checks_selected:
            data["message"] = NO_CHECKS_MESSAGE
        return json.dumps(data, indent=2, ensure_ascii=False)

    def write(self, content: str, path: Path) -> Path:
        """
        Сохранить отчёт в файл.

        Returns:
            Путь к файлу
        """
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
        return path
