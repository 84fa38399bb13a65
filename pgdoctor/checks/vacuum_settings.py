"""
Server-wide autovacuum and memory settings check.

Produces one finding per evaluated setting, named after the setting. Values are
normalized from the pg_settings unit to bytes (memory) or milliseconds (time)
before comparison. A value that cannot be interpreted is a data error.
"""

from typing import Callable, Dict, List, Optional, Protocol, Tuple

from pgdoctor.checks.format import GIB, MIB, format_bytes
from pgdoctor.checks.resources import make_metadata
from pgdoctor.core.base_checker import BaseChecker
from pgdoctor.core.context import CheckContext
from pgdoctor.core.models import Category, Report, Severity
from pgdoctor.db.rows import SettingRow

UNIT_FACTORS = {
    "B": 1,
    "kB": 1024,
    "8kB": 8 * 1024,
    "16kB": 16 * 1024,
    "MB": MIB,
    "GB": GIB,
    "us": 0.001,
    "ms": 1,
    "s": 1000,
    "min": 60 * 1000,
}


class VacuumSettingsQueries(Protocol):
    async def vacuum_settings(self) -> List[SettingRow]:
        ...


def normalize_setting(setting: str, unit: Optional[str]) -> Optional[float]:
    """
    Значение настройки в базовых единицах (байты или миллисекунды).

    Returns:
        Число или None, если значение не числовое либо единица неизвестна
    """
    try:
        value = float(setting)
    except (TypeError, ValueError):
        return None
    if not unit:
        return value
    factor = UNIT_FACTORS.get(unit)
    if factor is None:
        return None
    return value * factor


# Each rule: value -> (severity, message)
Rule = Callable[[float], Tuple[Severity, str]]


def _analyze_scale_factor(value: float) -> Tuple[Severity, str]:
    if value > 0.1:
        return Severity.WARN, (
            f"autovacuum_analyze_scale_factor is {value:g}. "
            "Values > 0.1 may delay ANALYZE on large tables, affecting query planning."
        )
    return Severity.OK, f"autovacuum_analyze_scale_factor is {value:g} (optimal)."


def _vacuum_scale_factor(value: float) -> Tuple[Severity, str]:
    if value > 0.2:
        return Severity.WARN, (
            f"autovacuum_vacuum_scale_factor is {value:g}. Values > 0.2 may cause bloat in large tables."
        )
    if value > 0.1:
        return Severity.OK, f"autovacuum_vacuum_scale_factor is {value:g} (acceptable)."
    return Severity.OK, f"autovacuum_vacuum_scale_factor is {value:g} (optimal)."


def _max_workers(value: float) -> Tuple[Severity, str]:
    workers = int(value)
    if workers < 3:
        return Severity.WARN, (
            f"autovacuum_max_workers is {workers}. "
            "Consider at least 3 for concurrent vacuum of several tables."
        )
    if workers > 10:
        return Severity.WARN, (
            f"autovacuum_max_workers is {workers}. Very high values may cause resource contention."
        )
    return Severity.OK, f"autovacuum_max_workers is {workers} (optimal)."


def _maintenance_work_mem(value: float) -> Tuple[Severity, str]:
    size = format_bytes(int(value))
    if value < 64 * MIB:
        return Severity.FAIL, (
            f"maintenance_work_mem is {size}. This is too low and slows down VACUUM "
            "and index creation significantly. Increase to at least 256MiB."
        )
    if value < 256 * MIB:
        return Severity.WARN, f"maintenance_work_mem is {size}. Consider at least 256MiB."
    if value > 2 * GIB:
        return Severity.WARN, (
            f"maintenance_work_mem is {size}. Values above 2GiB rarely help and waste memory."
        )
    return Severity.OK, f"maintenance_work_mem is {size} (optimal)."


def _cost_delay(value: float) -> Tuple[Severity, str]:
    if value > 10:
        return Severity.WARN, (
            f"vacuum_cost_delay is {value:g}ms. High values slow down vacuum; "
            "reduce it if vacuum is not keeping up."
        )
    return Severity.OK, f"vacuum_cost_delay is {value:g}ms (acceptable)."


def _cost_limit(value: float) -> Tuple[Severity, str]:
    limit = int(value)
    if limit < 200:
        return Severity.WARN, (
            f"vacuum_cost_limit is {limit}. Low values throttle vacuum too much. Consider at least 200."
        )
    return Severity.OK, f"vacuum_cost_limit is {limit} (acceptable)."


def _work_mem(value: float) -> Tuple[Severity, str]:
    size = format_bytes(int(value))
    if value < 4 * MIB:
        return Severity.WARN, (
            f"work_mem is {size}. This is very low and may cause excessive disk sorts. "
            "Consider at least 4MiB."
        )
    if value > GIB:
        return Severity.WARN, (
            f"work_mem is {size}. Very high values can exhaust memory with many concurrent connections."
        )
    return Severity.OK, f"work_mem is {size} (acceptable)."


RULES: Tuple[Tuple[str, Rule], ...] = (
    ("autovacuum_analyze_scale_factor", _analyze_scale_factor),
    ("autovacuum_vacuum_scale_factor", _vacuum_scale_factor),
    ("autovacuum_max_workers", _max_workers),
    ("maintenance_work_mem", _maintenance_work_mem),
    ("vacuum_cost_delay", _cost_delay),
    ("vacuum_cost_limit", _cost_limit),
    ("work_mem", _work_mem),
)


class VacuumSettingsChecker(BaseChecker):
    """Проверка настроек autovacuum и памяти обслуживания."""

    meta = make_metadata(
        "vacuum-settings",
        "Vacuum Settings",
        Category.CONFIGS,
        "Validates autovacuum, vacuum cost and maintenance memory settings",
    )

    queries: VacuumSettingsQueries

    async def _check(self, ctx: CheckContext, report: Report, options) -> None:
        rows = await self.fetch(self.queries.vacuum_settings())
        settings: Dict[str, SettingRow] = {row.name: row for row in rows}

        for name, rule in RULES:
            row = settings.get(name)
            if row is None:
                self.logger.debug(f"Setting {name} not returned by the server")
                continue
            value = normalize_setting(row.setting, row.unit)
            if value is None:
                raise self.error(f"cannot interpret setting {name}: {row.setting!r} (unit {row.unit!r})")
            severity, message = rule(value)
            report.add_finding(self.finding(severity, message, name=name))

        if not report.findings:
            raise self.error(f"none of the expected settings were returned ({len(rows)} row(s))")
