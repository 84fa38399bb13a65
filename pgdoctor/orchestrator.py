"""
Check orchestrator: runs selected checks and collects their outcomes.

Features:
- Sequential or bounded-parallel execution
- Per-check failure isolation and attribution
- Timeout handling
- Cooperative cancellation through CheckContext
- Deterministic result order (slots indexed by selection order)
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Union

from pgdoctor.core.base_checker import Checker
from pgdoctor.core.context import CheckContext
from pgdoctor.core.errors import (
    CheckCancelledError,
    CheckExecutionError,
    CheckTimeoutError,
    EmptyReportError,
)
from pgdoctor.core.models import Category, Metadata, Report


logger = logging.getLogger(__name__)


@dataclass
class CheckFailure:
    """Сбой проверки (ошибка, а не Finding)."""

    check_id: str
    name: str
    category: Category
    error: CheckExecutionError

    @property
    def cancelled(self) -> bool:
        return isinstance(self.error, CheckCancelledError)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "check_id": self.check_id,
            "name": self.name,
            "category": self.category.value,
            "error": str(self.error),
            "error_type": type(self.error).__name__,
        }


Outcome = Union[Report, CheckFailure]


@dataclass
class ExecutionResult:
    """Итог выполнения: исходы в порядке выборки."""

    outcomes: List[Outcome] = field(default_factory=list)
    duration_seconds: float = 0.0
    cancelled: bool = False

    @property
    def reports(self) -> List[Report]:
        return [o for o in self.outcomes if isinstance(o, Report)]

    @property
    def failures(self) -> List[CheckFailure]:
        return [o for o in self.outcomes if isinstance(o, CheckFailure)]


class CheckOrchestrator:
    """Оркестратор для управления выполнением проверок."""

    def __init__(self, max_workers: int = 4, timeout_seconds: Optional[float] = 30.0):
        """
        Args:
            max_workers: Максимум одновременно выполняемых проверок (1 = последовательно)
            timeout_seconds: Таймаут одной проверки (None = без таймаута)
        """
        self.max_workers = max(1, int(max_workers))
        self.timeout_seconds = timeout_seconds

    async def run(self, checkers: Sequence[Checker], ctx: Optional[CheckContext] = None) -> ExecutionResult:
        """
        Запустить проверки.

        Args:
            checkers: Проверки в порядке выборки
            ctx: Контекст запуска (отмена, таймаут)

        Returns:
            ExecutionResult с отчётами и сбоями в порядке выборки
        """
        ctx = ctx or CheckContext(timeout_seconds=self.timeout_seconds)
        start_time = time.perf_counter()

        if self.max_workers == 1:
            outcomes = await self.run_checkers_sequential(checkers, ctx)
        else:
            outcomes = await self.run_checkers_parallel(checkers, ctx)

        return ExecutionResult(
            outcomes=outcomes,
            duration_seconds=time.perf_counter() - start_time,
            cancelled=ctx.cancelled,
        )

    async def run_checkers_sequential(self, checkers: Sequence[Checker], ctx: CheckContext) -> List[Outcome]:
        """Запустить проверки последовательно."""
        if not checkers:
            return []

        logger.info(f"Running {len(checkers)} checks sequentially...")

        outcomes: List[Outcome] = []
        for i, checker in enumerate(checkers, 1):
            logger.debug(f"[{i}/{len(checkers)}] {checker.metadata().check_id}")
            outcomes.append(await self._run_cancellable(checker, ctx))

        return outcomes

    async def run_checkers_parallel(self, checkers: Sequence[Checker], ctx: CheckContext) -> List[Outcome]:
        """
        Запустить проверки параллельно, не более max_workers одновременно.

        Результаты раскладываются по слотам исходного порядка, а не по порядку завершения.
        """
        if not checkers:
            return []

        logger.info(f"Running {len(checkers)} checks with up to {self.max_workers} workers...")

        semaphore = asyncio.Semaphore(self.max_workers)
        slots: List[Optional[Outcome]] = [None] * len(checkers)

        async def run_slot(index: int, checker: Checker) -> None:
            async with semaphore:
                slots[index] = await self._run_cancellable(checker, ctx)

        await asyncio.gather(*(run_slot(i, c) for i, c in enumerate(checkers)))

        return [outcome for outcome in slots if outcome is not None]

    async def _run_cancellable(self, checker: Checker, ctx: CheckContext) -> Outcome:
        """Выполнить проверку, прервав её при отмене контекста."""
        meta = checker.metadata()
        if ctx.cancelled:
            return self._cancelled(meta, "run cancelled before the check started")

        task = asyncio.ensure_future(self._run_one(checker, meta, ctx))
        waiter = asyncio.ensure_future(ctx.wait_cancelled())
        try:
            await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            task.cancel()
            raise
        finally:
            waiter.cancel()

        if not task.done():
            task.cancel()

        try:
            return await task
        except asyncio.CancelledError:
            if not ctx.cancelled:
                raise
            return self._cancelled(meta, "run cancelled while the check was running")

    async def _run_one(self, checker: Checker, meta: Metadata, ctx: CheckContext) -> Outcome:
        """Запустить одну проверку с таймаутом и изоляцией ошибок."""
        timeout = ctx.timeout_seconds if ctx.timeout_seconds is not None else self.timeout_seconds
        logger.debug(f"Starting {meta.category}/{meta.check_id} (timeout={timeout}s)")
        start_time = time.perf_counter()

        try:
            report = await asyncio.wait_for(checker.check(ctx), timeout=timeout)
        except asyncio.TimeoutError as e:
            error: CheckExecutionError = CheckTimeoutError(
                meta.category, meta.check_id, e, message=f"timed out after {timeout}s"
            )
        except asyncio.CancelledError:
            if not ctx.cancelled:
                raise
            return self._cancelled(meta, "run cancelled while the check was running")
        except CheckExecutionError as e:
            error = e
        except Exception as e:
            error = CheckExecutionError(meta.category, meta.check_id, e)
        else:
            duration_ms = (time.perf_counter() - start_time) * 1000
            if not report.findings:
                error = EmptyReportError(meta.category, meta.check_id, message="check returned no findings")
            else:
                logger.info(
                    f"Completed {meta.check_id}: "
                    f"{len(report.findings)} findings, "
                    f"severity={report.severity.label}, "
                    f"duration={duration_ms:.2f}ms"
                )
                return report

        logger.error(f"{meta.check_id} failed: {error}", exc_info=error.cause)
        return CheckFailure(check_id=meta.check_id, name=meta.name, category=meta.category, error=error)

    def _cancelled(self, meta: Metadata, message: str) -> CheckFailure:
        logger.warning(f"{meta.check_id}: {message}")
        return CheckFailure(
            check_id=meta.check_id,
            name=meta.name,
            category=meta.category,
            error=CheckCancelledError(meta.category, meta.check_id, message=message),
        )
