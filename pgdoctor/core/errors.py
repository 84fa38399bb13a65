"""
Error taxonomy for pgdoctor.

- SelectionError: unknown token in a selection request (run-global).
- RegistryError: broken catalog invariant detected at startup.
- ConfigFileError: unreadable or malformed check config file.
- CheckExecutionError and subclasses: failure attributed to one check.
"""

from typing import Optional


class PgDoctorError(Exception):
    """Базовое исключение pgdoctor."""
    pass


class SelectionError(PgDoctorError):
    """Неизвестный CheckID, категория или пресет в запросе на выбор проверок."""

    def __init__(self, token: str, kind: str = "check"):
        self.token = token
        self.kind = kind
        super().__init__(f"unknown {kind}: {token!r}")


class RegistryError(PgDoctorError):
    """Нарушен инвариант каталога проверок (пустой или повторяющийся CheckID)."""
    pass


class ConfigFileError(PgDoctorError):
    """Файл конфигурации проверок не читается или имеет неверную форму."""
    pass


class CheckExecutionError(PgDoctorError):
    """Ошибка выполнения конкретной проверки."""

    def __init__(self, category, check_id: str, cause: Optional[BaseException] = None, message: str = ""):
        self.category = category
        self.check_id = check_id
        self.cause = cause
        reason = message or (f"{type(cause).__name__}: {cause}" if cause is not None else "failed")
        self.reason = reason
        super().__init__(f"running {category}/{check_id}: {reason}")


class ConfigValueError(CheckExecutionError):
    """Опция проверки не приводится к ожидаемому типу."""
    pass


class CheckTimeoutError(CheckExecutionError):
    """Проверка не уложилась в таймаут."""
    pass


class CheckCancelledError(CheckExecutionError):
    """Проверка отменена вместе с запуском."""
    pass


class EmptyReportError(CheckExecutionError):
    """Проверка вернула отчёт без единого Finding."""
    pass
