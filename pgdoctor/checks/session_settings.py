"""
Role-level timeout and logging settings check.

Every application role should carry its own statement, transaction and
idle-in-transaction timeouts and log slow statements. A setting absent from
the query result is read as 0, i.e. disabled.
"""

from typing import Dict, List, Optional, Protocol, Tuple

from pydantic import field_validator

from pgdoctor.checks.resources import make_metadata
from pgdoctor.core.base_checker import BaseChecker, CheckOptions
from pgdoctor.core.context import CheckContext
from pgdoctor.core.models import Category, Report, Severity, Table
from pgdoctor.db.rows import SessionSettingsRow

HEADERS = ("Role", "Parameter", "Current", "Expected", "Status")

TIMEOUT_EXPECTED = "500-5000ms"
TIMEOUT_WARN_ABOVE_MS = 5000
TIMEOUT_FAIL_ABOVE_MS = 10000
IDLE_EXPECTED = "60000ms"
LOG_EXPECTED = "2000ms"
LOG_MIN_MS = 500


class SessionSettingsQueries(Protocol):
    async def session_settings(self) -> List[SessionSettingsRow]:
        ...


class SessionSettingsOptions(CheckOptions):
    """roles: список ролей через запятую вместо автоматического обнаружения."""

    roles: Optional[Tuple[str, ...]] = None

    @field_validator("roles", mode="before")
    @classmethod
    def _split_roles(cls, value):
        if isinstance(value, str):
            return tuple(role.strip() for role in value.split(",") if role.strip())
        return value


class RoleSettings:
    """Значения настроек по ролям из результата запроса."""

    def __init__(self, rows: List[SessionSettingsRow]):
        self._values: Dict[str, Dict[str, Optional[str]]] = {}
        for row in rows:
            if row.role_name is None:
                continue
            settings = self._values.setdefault(row.role_name, {})
            if row.setting_name is not None:
                settings[row.setting_name] = row.setting_value

    def roles(self) -> List[str]:
        return sorted(self._values)

    def has_role(self, role: str) -> bool:
        return role in self._values

    def value(self, role: str, name: str) -> int:
        """
        Целое значение настройки роли.

        Returns:
            Значение; 0, если настройки нет (считается выключенной)

        Raises:
            ValueError: значение не является целым числом
        """
        raw = self._values.get(role, {}).get(name)
        if raw is None:
            return 0
        try:
            return int(raw)
        except ValueError:
            raise ValueError(f"setting {name} for role {role} has invalid integer value: {raw!r}") from None


def _timeout_row(table: Table, role: str, parameter: str, value: int, disabled_status: str) -> None:
    if value == 0:
        table.add_row([role, parameter, "0ms (disabled)", TIMEOUT_EXPECTED, disabled_status], Severity.FAIL)
    elif value > TIMEOUT_FAIL_ABOVE_MS:
        table.add_row([role, parameter, f"{value}ms", TIMEOUT_EXPECTED, "Too high"], Severity.FAIL)
    elif value > TIMEOUT_WARN_ABOVE_MS:
        table.add_row([role, parameter, f"{value}ms", TIMEOUT_EXPECTED, "High"], Severity.WARN)
    else:
        table.add_row([role, parameter, f"{value}ms", TIMEOUT_EXPECTED, "OK"])


def evaluate_role(table: Table, settings: RoleSettings, role: str) -> None:
    """Добавить в таблицу строки по всем настройкам роли."""
    _timeout_row(table, role, "statement_timeout", settings.value(role, "statement_timeout"), "MUST be set")

    idle = settings.value(role, "idle_in_transaction_session_timeout")
    if idle == 0:
        table.add_row([role, "idle_in_txn_timeout", "0ms (disabled)", IDLE_EXPECTED, "Disabled"], Severity.WARN)
    else:
        table.add_row([role, "idle_in_txn_timeout", f"{idle}ms", IDLE_EXPECTED, "OK"])

    _timeout_row(
        table, role, "transaction_timeout", settings.value(role, "transaction_timeout"), "MUST be set (PG17+)"
    )

    min_duration = settings.value(role, "log_min_duration_statement")
    if min_duration == -1:
        table.add_row([role, "log_min_duration", "-1 (disabled)", LOG_EXPECTED, "Disabled"], Severity.FAIL)
    elif min_duration < LOG_MIN_MS:
        table.add_row([role, "log_min_duration", f"{min_duration}ms", LOG_EXPECTED, "Too low"], Severity.FAIL)
    else:
        table.add_row([role, "log_min_duration", f"{min_duration}ms", LOG_EXPECTED, "OK"])


class SessionSettingsChecker(BaseChecker):
    """Проверка таймаутов и логирования на уровне ролей."""

    meta = make_metadata(
        "session-settings",
        "PostgreSQL Session Configs",
        Category.CONFIGS,
        "Validates role-level timeout and logging configurations",
    )
    options_model = SessionSettingsOptions

    queries: SessionSettingsQueries

    async def _check(self, ctx: CheckContext, report: Report, options: SessionSettingsOptions) -> None:
        rows = await self.fetch(self.queries.session_settings())
        settings = RoleSettings(rows)

        roles = list(options.roles) if options.roles is not None else settings.roles()
        if not roles:
            report.add_finding(self.ok_finding("No application roles found"))
            return

        table = Table(HEADERS)
        for role in roles:
            if not settings.has_role(role):
                table.add_row([role, "(all)", "N/A", "Role exists", "Role not found"], Severity.WARN)
                continue
            try:
                evaluate_role(table, settings, role)
            except ValueError as e:
                raise self.error(str(e), e) from e

        self.logger.debug(f"Evaluated {len(table)} settings for {len(roles)} roles")
        report.add_finding(self.table_finding(table, "Found {count} configuration issue(s)"))
