"""
TOAST storage check.

Per table with more than 1MiB in TOAST:
- dead TOAST tuples: at least 20% of TOAST tuples dead (and at least 10000)
  means large values are rewritten faster than vacuum reclaims them
- TOAST-dominated: at least half of the table's total size, and at least
  1GiB, lives in TOAST
- wide columns (average width above 2KB) compressed with pglz, explicitly or
  through the server default, are noted as lz4 candidates; this does not
  change the severity. Servers before 14 report no compression method.
"""

from typing import Dict, List, Protocol, Tuple

from pgdoctor.checks.format import GIB, format_bytes, format_number
from pgdoctor.checks.resources import make_metadata
from pgdoctor.core.base_checker import BaseChecker
from pgdoctor.core.context import CheckContext
from pgdoctor.core.models import Category, Report, Severity, Table
from pgdoctor.db.rows import ToastStorageRow

DEAD_RATIO_WARN = 0.2
MIN_DEAD_TUPLES = 10_000
DOMINANT_PERCENT = 50.0
DOMINANT_MIN_BYTES = GIB
PGLZ_METHODS = ("pglz", "default")


class ToastStorageQueries(Protocol):
    async def toast_storage(self) -> List[ToastStorageRow]:
        ...


def parse_wide_columns(entries: List[str]) -> List[Tuple[str, int, str]]:
    """
    Разобрать элементы вида "column:avg_width:category".

    Raises:
        ValueError: элемент другой формы
    """
    parsed = []
    for entry in entries:
        column, width, category = entry.rsplit(":", 2)
        parsed.append((column, int(width), category))
    return parsed


def parse_compression(entries: List[str]) -> Dict[str, str]:
    """
    Алгоритм сжатия по имени колонки из элементов "column:algorithm:storage:type".

    Raises:
        ValueError: элемент другой формы
    """
    algorithms = {}
    for entry in entries:
        column, algorithm, _storage, _type = entry.rsplit(":", 3)
        algorithms[column] = algorithm
    return algorithms


def dead_ratio(row: ToastStorageRow) -> float:
    total = row.toast_live_tuples + row.toast_dead_tuples
    if total <= 0:
        return 0.0
    return row.toast_dead_tuples / total


class ToastStorageChecker(BaseChecker):
    """Проверка хранения больших значений в TOAST."""

    meta = make_metadata(
        "toast-storage",
        "TOAST Storage",
        Category.SCHEMA,
        "Checks TOAST size, dead TOAST tuples and compression of wide columns",
    )

    queries: ToastStorageQueries

    async def _check(self, ctx: CheckContext, report: Report, options) -> None:
        rows = await self.fetch(self.queries.toast_storage())

        table = Table(("Table", "TOAST size", "TOAST %", "Dead TOAST tuples", "Notes"))
        for row in rows:
            name = f"{row.schema_name}.{row.table_name}"
            try:
                wide = parse_wide_columns(row.wide_columns)
                compression = parse_compression(row.column_compression_info)
            except ValueError as e:
                raise self.error(f"unexpected column details for {name}", e) from e

            severity = Severity.OK
            notes = []
            ratio = dead_ratio(row)
            if row.toast_dead_tuples >= MIN_DEAD_TUPLES and ratio >= DEAD_RATIO_WARN:
                severity = Severity.WARN
                notes.append(f"{ratio:.0%} of TOAST tuples are dead")
            if row.toast_percent >= DOMINANT_PERCENT and row.toast_size >= DOMINANT_MIN_BYTES:
                severity = Severity.WARN
                notes.append("most of the table is stored in TOAST")
            pglz = [column for column, _width, _category in wide if compression.get(column) in PGLZ_METHODS]
            if pglz:
                notes.append("lz4 candidates: " + ", ".join(pglz))

            table.add_row(
                [
                    name,
                    format_bytes(row.toast_size),
                    f"{row.toast_percent:.1f}%",
                    format_number(row.toast_dead_tuples),
                    "; ".join(notes),
                ],
                severity,
            )

        report.add_finding(self.table_finding(
            table,
            "{count} table(s) with TOAST storage problems",
            "TOAST storage is healthy",
        ))
