"""
Connection pool for the query layer.

The pool is sized to the worker limit so concurrent checks never share a
single connection, and every session is read-only. Opening the pool is
retried with exponential backoff when the server is unreachable, starting up
or out of connection slots; checks themselves are never retried.
"""

import asyncio
import logging
from urllib.parse import urlsplit

import asyncpg

from pgdoctor.config import DoctorSettings

logger = logging.getLogger(__name__)

RETRYABLE_ERRORS = (
    OSError,
    asyncio.TimeoutError,
    asyncpg.exceptions.CannotConnectNowError,
    asyncpg.exceptions.TooManyConnectionsError,
)

BASE_DELAY_SECONDS = 0.5


def describe_target(dsn: str) -> str:
    """
    Хост и порт из DSN для логов (без пользователя и пароля).

    Пустой DSN означает переменные окружения libpq (PGHOST и т.п.).
    """
    if not dsn:
        return "default host"
    try:
        parts = urlsplit(dsn)
        host = parts.hostname
        port = parts.port
    except ValueError:
        return "unparsed DSN"
    if not host:
        return "default host"
    return f"{host}:{port}" if port else host


async def _open_pool(settings: DoctorSettings) -> asyncpg.Pool:
    return await asyncpg.create_pool(
        dsn=settings.database_url or None,
        min_size=1,
        max_size=max(1, settings.max_workers),
        timeout=settings.connect_timeout_seconds,
        command_timeout=settings.check_timeout_seconds,
        server_settings={
            "application_name": settings.application_name,
            "default_transaction_read_only": "on",
        },
    )


async def create_pool(settings: DoctorSettings) -> asyncpg.Pool:
    """
    Создать пул соединений с повторными попытками подключения.

    Повторяются только ошибки из RETRYABLE_ERRORS; остальные (неверный
    пароль, неизвестная база) пробрасываются сразу.

    Args:
        settings: Настройки (DSN, таймауты, число воркеров, connect_attempts)

    Returns:
        asyncpg.Pool размером max_workers

    Raises:
        Последнюю ошибку подключения, если попытки исчерпаны
    """
    target = describe_target(settings.database_url)
    max_attempts = max(1, settings.connect_attempts)
    delay = BASE_DELAY_SECONDS

    for attempt in range(1, max_attempts + 1):
        try:
            pool = await _open_pool(settings)
        except RETRYABLE_ERRORS as exc:
            if attempt >= max_attempts:
                logger.error(f"Connection to {target} failed after {max_attempts} attempt(s): {exc}")
                raise
            logger.warning(
                f"Connection to {target} failed (attempt {attempt}/{max_attempts}): {exc}; "
                f"retrying in {delay:.1f}s"
            )
            await asyncio.sleep(delay)
            delay *= 2
        else:
            logger.info(f"PostgreSQL pool ready on {target} (max_size={max(1, settings.max_workers)})")
            return pool
