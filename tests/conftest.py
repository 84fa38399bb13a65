"""
Pytest configuration and fixtures.

Использование:
    pytest tests/ -v
"""

import asyncio
from typing import Callable, Optional

import pytest

from pgdoctor.core.context import CheckContext
from pgdoctor.core.models import Category, Finding, Metadata, Report, Severity
from pgdoctor.db.rows import (
    CacheEfficiencyRow,
    ConnectionStatsRow,
    ServerVersionRow,
    SessionStatisticsRow,
    SettingRow,
    StatisticsFreshnessRow,
    TempUsageRow,
)
from pgdoctor.registry import Registry


# ═══════════════════════════════════════════════════════
# FAKE DATA ACCESS
# ═══════════════════════════════════════════════════════

class FakeQueries:
    """
    Доступ к данным с заранее заданными результатами.

    Каждый именованный аргумент становится async методом. Если значение
    является исключением, метод его выбрасывает.
    """

    def __init__(self, **results):
        self.results = results
        self.calls = []

    def __getattr__(self, name):
        results = self.__dict__.get("results", {})
        if name not in results:
            raise AttributeError(name)

        async def method():
            self.calls.append(name)
            value = results[name]
            if isinstance(value, BaseException):
                raise value
            return value

        return method


HEALTHY_VACUUM = [
    SettingRow("autovacuum_analyze_scale_factor", "0.05", None),
    SettingRow("autovacuum_vacuum_scale_factor", "0.1", None),
    SettingRow("autovacuum_max_workers", "3", None),
    SettingRow("maintenance_work_mem", "262144", "kB"),
    SettingRow("vacuum_cost_delay", "2", "ms"),
    SettingRow("vacuum_cost_limit", "200", None),
    SettingRow("work_mem", "4096", "kB"),
    SettingRow("max_connections", "100", None),
]


def idle_database_results() -> dict:
    """Результаты запросов для пустой здоровой базы."""
    return {
        "server_version": ServerVersionRow("PostgreSQL 16.2 on x86_64-pc-linux-gnu", 160002),
        "session_settings": [],
        "vacuum_settings": list(HEALTHY_VACUUM),
        "connection_stats": ConnectionStatsRow(
            max_connections=100,
            reserved_connections=3,
            total_connections=1,
            active_connections=1,
            idle_connections=0,
            idle_in_transaction=0,
            idle_in_transaction_aborted=0,
            waiting_connections=0,
        ),
        "idle_in_transaction": [],
        "long_idle_connections": [],
        "session_statistics": SessionStatisticsRow(),
        "cache_efficiency": CacheEfficiencyRow(
            blks_hit=0, blks_read=0, stats_reset=None, cache_hit_ratio=None, stats_age_days=999.0
        ),
        "temp_usage": TempUsageRow(
            database_name="app",
            temp_files=0,
            temp_bytes=0,
            stats_reset=None,
            seconds_since_reset=None,
            work_mem="4MB",
            temp_file_limit="-1",
            log_temp_files="0",
            max_connections="100",
            shared_buffers="128MB",
            temp_files_per_hour=0.0,
            temp_bytes_per_hour=0.0,
        ),
        "replication_lag": [],
        "replication_slots": [],
        "statistics_freshness": StatisticsFreshnessRow(stats_reset=None, age_days=999),
        "table_activity": [],
        "high_seq_scan_tables": [],
        "partitioned_tables": [],
        "has_pg_stat_statements": False,
        "query_stats": [],
        "table_bloat": [],
        "table_vacuum_health": [],
        "database_freeze_age": [],
        "table_freeze_age": [],
        "broken_indexes": [],
        "duplicate_indexes": [],
        "dev_indexes": [],
        "index_usage": [],
        "index_bloat": [],
        "sequence_health": [],
        "primary_key_types": [],
        "uuid_string_columns": [],
        "uuid_defaults": [],
        "large_tables": [],
        "toast_storage": [],
    }


@pytest.fixture
def idle_queries():
    return FakeQueries(**idle_database_results())


# ═══════════════════════════════════════════════════════
# STUB CHECKERS
# ═══════════════════════════════════════════════════════

class StubChecker:
    """Проверка-заглушка с управляемым поведением."""

    def __init__(
        self,
        check_id: str,
        category: Category = Category.CONFIGS,
        severity: Severity = Severity.OK,
        error: Optional[BaseException] = None,
        delay: float = 0.0,
        empty: bool = False,
        on_start: Optional[Callable[[CheckContext], None]] = None,
    ):
        self.meta = Metadata(
            check_id=check_id,
            name=check_id.replace("-", " ").title(),
            category=category,
            description=f"stub {check_id}",
        )
        self.severity = severity
        self.error = error
        self.delay = delay
        self.empty = empty
        self.on_start = on_start
        self.calls = 0

    def metadata(self) -> Metadata:
        return self.meta

    async def check(self, ctx: CheckContext) -> Report:
        self.calls += 1
        if self.on_start is not None:
            self.on_start(ctx)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        report = Report.for_metadata(self.meta)
        if not self.empty:
            report.add_finding(Finding(id=self.meta.check_id, name=self.meta.name, severity=self.severity))
        return report


def stub_registry() -> Registry:
    """Небольшой каталог: по одной-две проверки на категорию."""
    return Registry([
        StubChecker("alpha", Category.CONFIGS),
        StubChecker("bravo", Category.PERFORMANCE),
        StubChecker("charlie", Category.PERFORMANCE),
        StubChecker("delta", Category.VACUUM),
        StubChecker("echo", Category.INDEXES),
        StubChecker("foxtrot", Category.SCHEMA),
    ])


@pytest.fixture
def registry():
    return stub_registry()


@pytest.fixture
def ctx():
    return CheckContext()
