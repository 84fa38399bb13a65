"""
Checker contract and shared base for concrete checks.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Any, Awaitable, ClassVar, Dict, Optional, Protocol, Type, TypeVar, runtime_checkable

from pydantic import BaseModel, ConfigDict, ValidationError

from .context import CheckContext
from .errors import CheckExecutionError, ConfigValueError
from .models import CheckConfig, Finding, Metadata, Report, Severity, Table

T = TypeVar("T")


@runtime_checkable
class Checker(Protocol):
    """Возможность, которую реализует каждая проверка."""

    def metadata(self) -> Metadata:
        ...

    async def check(self, ctx: CheckContext) -> Report:
        ...


class CheckOptions(BaseModel):
    """Опции проверки по умолчанию: опций нет, лишние ключи запрещены."""

    model_config = ConfigDict(extra="forbid", frozen=True)


class BaseChecker(ABC):
    """
    Базовый класс для проверок.

    Предоставляет:
    - metadata() из атрибута класса meta
    - Разбор опций проверки в типизированную модель
    - Обёртку ошибок запросов с привязкой к CheckID
    - Логирование

    Registry и оркестратор опираются только на протокол Checker.
    """

    meta: ClassVar[Metadata]
    options_model: ClassVar[Type[CheckOptions]] = CheckOptions

    def __init__(self, queries: Any, config: Optional[CheckConfig] = None):
        """
        Args:
            queries: Доступ к данным (методы запросов, нужные этой проверке)
            config: Конфигурация всех проверок; читается только свой раздел
        """
        self.queries = queries
        self.raw_options: Dict[str, str] = dict((config or {}).get(self.meta.check_id) or {})
        self.logger = logging.getLogger(f"pgdoctor.check.{self.meta.check_id}")

    def metadata(self) -> Metadata:
        return self.meta

    async def check(self, ctx: CheckContext) -> Report:
        """
        Запустить проверку.

        Returns:
            Report хотя бы с одним Finding

        Raises:
            CheckExecutionError: запрос упал, данные неожиданной формы или неверные опции
        """
        ctx.raise_if_cancelled()
        options = self.options()
        report = Report.for_metadata(self.meta)
        await self._check(ctx, report, options)
        return report

    @abstractmethod
    async def _check(self, ctx: CheckContext, report: Report, options: Any) -> None:
        """Заполнить report находками (реализуется в подклассах)."""
        pass

    def options(self) -> Any:
        """Привести свой раздел конфигурации к модели опций."""
        try:
            return self.options_model(**self.raw_options)
        except ValidationError as e:
            problems = "; ".join(
                f"option {'.'.join(str(p) for p in err['loc']) or '?'}: {err['msg']}"
                for err in e.errors()
            )
            raise ConfigValueError(self.meta.category, self.meta.check_id, e, message=problems) from e

    async def fetch(self, call: Awaitable[T]) -> T:
        """Выполнить вызов доступа к данным, ошибки привязать к этой проверке."""
        try:
            return await call
        except asyncio.CancelledError:
            raise
        except CheckExecutionError:
            raise
        except Exception as e:
            raise CheckExecutionError(self.meta.category, self.meta.check_id, e) from e

    def error(self, message: str, cause: Optional[BaseException] = None) -> CheckExecutionError:
        """Ошибка формы данных для этой проверки."""
        return CheckExecutionError(self.meta.category, self.meta.check_id, cause, message=message)

    def finding(
        self,
        severity: Severity,
        details: str = "",
        table: Optional[Table] = None,
        name: Optional[str] = None,
    ) -> Finding:
        """
        Удобный метод для создания Finding этой проверки.

        ID находки всегда равен CheckID; несколько находок одной проверки
        различаются по name.
        """
        return Finding(
            id=self.meta.check_id,
            name=name or self.meta.name,
            severity=severity,
            details=details,
            table=table,
        )

    def ok_finding(self, details: str = "", name: Optional[str] = None) -> Finding:
        return self.finding(Severity.OK, details, name=name)

    def table_finding(
        self,
        table: Table,
        problem: str,
        healthy: str = "",
        name: Optional[str] = None,
    ) -> Finding:
        """
        Finding с таблицей: severity равна худшей строке.

        Таблица сохраняется целиком, рендереры показывают только строки не-OK.
        Если проблемных строк нет, возвращается обычный OK без таблицы.

        Args:
            table: Все оценённые строки
            problem: Шаблон описания, {count} заменяется числом проблемных строк
            healthy: Описание, когда проблем нет
        """
        problems = table.problem_rows()
        if not problems:
            return self.ok_finding(healthy, name=name)
        return self.finding(
            table.severity,
            problem.format(count=len(problems)),
            table=table,
            name=name,
        )
