"""
Configuration for pgdoctor.

Two layers:
- DoctorSettings: process settings from environment / .env (PGDOCTOR_*)
- check config: per-check string options, {"check-id": {"option": "value"}}
"""

import json
import logging
from functools import lru_cache
from pathlib import Path
from typing import Iterable, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

from pgdoctor.core.errors import ConfigFileError
from pgdoctor.core.models import CheckConfig


logger = logging.getLogger(__name__)


class DoctorSettings(BaseSettings):
    """Настройки pgdoctor."""

    model_config = SettingsConfigDict(env_prefix="PGDOCTOR_", env_file=".env", extra="ignore")

    # === PostgreSQL Connection ===
    database_url: str = "postgresql://localhost:5432/postgres"
    connect_timeout_seconds: float = 10.0
    connect_attempts: int = 3
    application_name: str = "pgdoctor"

    # === Execution Settings ===
    max_workers: int = 4
    check_timeout_seconds: float = 30.0

    # === Check Options ===
    check_config_file: Optional[Path] = None

    log_level: str = "WARNING"


@lru_cache
def get_settings() -> DoctorSettings:
    return DoctorSettings()


def _normalize(data: object, source: str) -> CheckConfig:
    if not isinstance(data, dict):
        raise ConfigFileError(f"{source}: top level must be an object of check ids")

    config: CheckConfig = {}
    for check_id, options in data.items():
        if not isinstance(options, dict):
            raise ConfigFileError(f"{source}: options for {check_id!r} must be an object")
        section = {}
        for name, value in options.items():
            if isinstance(value, (dict, list)) or value is None:
                raise ConfigFileError(f"{source}: option {check_id}.{name} must be a scalar value")
            if isinstance(value, bool):
                value = "true" if value else "false"
            section[str(name)] = str(value)
        config[str(check_id)] = section
    return config


def load_check_config(path: Path) -> CheckConfig:
    """
    Загрузить конфигурацию проверок из JSON файла.

    Args:
        path: Путь к файлу

    Returns:
        {check_id: {option: value}}, все значения строковые

    Raises:
        ConfigFileError: файл не читается или имеет неверную форму
    """
    path = Path(path)
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except OSError as e:
        raise ConfigFileError(f"{path}: {e.strerror or e}") from e
    except json.JSONDecodeError as e:
        raise ConfigFileError(f"{path}: invalid JSON: {e}") from e

    return _normalize(data, str(path))


def parse_option_overrides(overrides: Iterable[str]) -> CheckConfig:
    """
    Разобрать опции командной строки вида check-id.option=value.

    Raises:
        ConfigFileError: элемент не в формате check-id.option=value
    """
    config: CheckConfig = {}
    for item in overrides:
        key, sep, value = item.partition("=")
        check_id, dot, name = key.strip().partition(".")
        if not sep or not dot or not check_id or not name:
            raise ConfigFileError(f"invalid option {item!r}, expected check-id.option=value")
        config.setdefault(check_id, {})[name] = value.strip()
    return config


def merge_check_config(*configs: Optional[CheckConfig]) -> CheckConfig:
    """Слить конфигурации, более поздние значения перекрывают ранние."""
    merged: CheckConfig = {}
    for config in configs:
        for check_id, options in (config or {}).items():
            merged.setdefault(check_id, {}).update(options)
    return merged


def warn_unknown_checks(config: CheckConfig, known_ids: Iterable[str]) -> None:
    """Предупредить о разделах конфигурации для несуществующих проверок."""
    known = set(known_ids)
    for check_id in sorted(config):
        if check_id not in known:
            logger.warning(f"Config section for unknown check {check_id!r} is ignored")
