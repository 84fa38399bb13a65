"""Execution context shared by the orchestrator and running checks."""

import asyncio
from typing import Optional


class CheckContext:
    """
    Контекст запуска: сигнал отмены и таймаут одной проверки.

    Отмена наблюдается в начале каждой проверки и в циклах опроса внутри
    проверок (raise_if_cancelled).
    """

    def __init__(self, timeout_seconds: Optional[float] = None):
        self.timeout_seconds = timeout_seconds
        self._cancelled = asyncio.Event()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def cancel(self) -> None:
        """Отменить запуск: новые проверки не стартуют, текущие прерываются."""
        self._cancelled.set()

    async def wait_cancelled(self) -> None:
        await self._cancelled.wait()

    def raise_if_cancelled(self) -> None:
        if self.cancelled:
            raise asyncio.CancelledError()
