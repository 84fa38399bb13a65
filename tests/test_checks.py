"""
Unit tests for check interpretation logic.

Each check runs against FakeQueries with hand-written rows; no database is
needed.
"""

from datetime import datetime, timedelta, timezone

import pytest

from conftest import HEALTHY_VACUUM, FakeQueries
from pgdoctor.checks.cache_efficiency import CacheEfficiencyChecker
from pgdoctor.checks.connection_efficiency import ConnectionEfficiencyChecker
from pgdoctor.checks.connection_health import ConnectionHealthChecker
from pgdoctor.checks.duplicate_indexes import DuplicateIndexesChecker
from pgdoctor.checks.format import GIB, MIB
from pgdoctor.checks.freeze_age import FreezeAgeChecker
from pgdoctor.checks.invalid_indexes import InvalidIndexesChecker
from pgdoctor.checks.pg_version import PgVersionChecker, parse_major_version
from pgdoctor.checks.replication_lag import ReplicationLagChecker
from pgdoctor.checks.replication_slots import ReplicationSlotsChecker
from pgdoctor.checks.sequence_health import SequenceHealthChecker
from pgdoctor.checks.session_settings import SessionSettingsChecker
from pgdoctor.checks.table_bloat import TableBloatChecker
from pgdoctor.checks.table_vacuum_health import TableVacuumHealthChecker, parse_reloptions
from pgdoctor.checks.temp_usage import TempUsageChecker
from pgdoctor.checks.vacuum_settings import VacuumSettingsChecker, normalize_setting
from pgdoctor.core.errors import CheckExecutionError, ConfigValueError
from pgdoctor.core.models import Severity
from pgdoctor.db.rows import (
    BrokenIndexRow,
    CacheEfficiencyRow,
    ConnectionStatsRow,
    DatabaseFreezeAgeRow,
    DuplicateIndexRow,
    IdleInTransactionRow,
    ReplicationLagRow,
    ReplicationSlotRow,
    SequenceHealthRow,
    ServerVersionRow,
    SessionSettingsRow,
    SessionStatisticsRow,
    SettingRow,
    TableBloatRow,
    TableFreezeAgeRow,
    TableVacuumHealthRow,
    TempUsageRow,
)


def only_finding(report):
    assert len(report.findings) == 1
    return report.findings[0]


# ═══════════════════════════════════════════════════════
# CONFIGS
# ═══════════════════════════════════════════════════════

class TestPgVersion:
    """Тесты проверки версии сервера."""

    @pytest.mark.parametrize("version,severity", [
        ("PostgreSQL 9.6.24 on x86_64-pc-linux-gnu", Severity.FAIL),
        ("PostgreSQL 11.22 on x86_64-pc-linux-gnu", Severity.WARN),
        ("PostgreSQL 12.0 on x86_64-pc-linux-gnu", Severity.OK),
        ("PostgreSQL 17.2 (Debian 17.2-1.pgdg120+1) on x86_64", Severity.OK),
    ])
    @pytest.mark.asyncio
    async def test_thresholds(self, ctx, version, severity):
        checker = PgVersionChecker(FakeQueries(server_version=ServerVersionRow(version, 0)))
        report = await checker.check(ctx)
        assert only_finding(report).severity == severity

    @pytest.mark.asyncio
    async def test_unparseable_version_warns(self, ctx):
        checker = PgVersionChecker(FakeQueries(server_version=ServerVersionRow("SomeFork 3000", 0)))

        finding = only_finding(await checker.check(ctx))

        assert finding.severity == Severity.WARN
        assert "SomeFork 3000" in finding.details

    def test_parse_major_version(self):
        assert parse_major_version("PostgreSQL 15.3 on aarch64") == 15
        assert parse_major_version("garbage") is None


def role_rows(role, **settings):
    return [
        SessionSettingsRow(
            role_name=role,
            setting_name=name,
            system_default="0",
            unit="ms",
            setting_value=value,
            status="OVERRIDE",
        )
        for name, value in settings.items()
    ]


HEALTHY_ROLE = dict(
    statement_timeout="3000",
    idle_in_transaction_session_timeout="60000",
    transaction_timeout="3000",
    log_min_duration_statement="2000",
)


class TestSessionSettings:
    """Тесты проверки настроек ролей."""

    @pytest.mark.asyncio
    async def test_no_roles(self, ctx):
        checker = SessionSettingsChecker(FakeQueries(session_settings=[]))

        finding = only_finding(await checker.check(ctx))

        assert finding.severity == Severity.OK
        assert finding.details == "No application roles found"

    @pytest.mark.asyncio
    async def test_healthy_role_single_ok_finding(self, ctx):
        checker = SessionSettingsChecker(FakeQueries(session_settings=role_rows("app", **HEALTHY_ROLE)))

        finding = only_finding(await checker.check(ctx))

        assert finding.severity == Severity.OK
        assert finding.table is None

    @pytest.mark.asyncio
    async def test_disabled_statement_timeout_fails(self, ctx):
        settings = dict(HEALTHY_ROLE, statement_timeout="0")
        checker = SessionSettingsChecker(FakeQueries(session_settings=role_rows("app", **settings)))

        finding = only_finding(await checker.check(ctx))

        assert finding.effective_severity == Severity.FAIL
        assert finding.table.headers == ("Role", "Parameter", "Current", "Expected", "Status")
        problems = finding.table.problem_rows()
        assert [r.cells for r in problems] == [
            ("app", "statement_timeout", "0ms (disabled)", "500-5000ms", "MUST be set"),
        ]
        assert finding.details == "Found 1 configuration issue(s)"

    @pytest.mark.parametrize("value,severity", [
        ("5000", Severity.OK),
        ("7000", Severity.WARN),
        ("10000", Severity.WARN),
        ("10001", Severity.FAIL),
    ])
    @pytest.mark.asyncio
    async def test_transaction_timeout_thresholds(self, ctx, value, severity):
        settings = dict(HEALTHY_ROLE, transaction_timeout=value)
        checker = SessionSettingsChecker(FakeQueries(session_settings=role_rows("app", **settings)))

        assert (await checker.check(ctx)).severity == severity

    @pytest.mark.asyncio
    async def test_missing_settings_read_as_disabled(self, ctx):
        checker = SessionSettingsChecker(FakeQueries(session_settings=role_rows("app", statement_timeout="3000")))

        finding = only_finding(await checker.check(ctx))

        statuses = {r.cells[1]: (r.cells[4], r.severity) for r in finding.table.problem_rows()}
        assert statuses == {
            "idle_in_txn_timeout": ("Disabled", Severity.WARN),
            "transaction_timeout": ("MUST be set (PG17+)", Severity.FAIL),
            "log_min_duration": ("Too low", Severity.FAIL),
        }

    @pytest.mark.asyncio
    async def test_log_min_duration_disabled(self, ctx):
        settings = dict(HEALTHY_ROLE, log_min_duration_statement="-1")
        checker = SessionSettingsChecker(FakeQueries(session_settings=role_rows("app", **settings)))

        finding = only_finding(await checker.check(ctx))

        assert [r.cells[2] for r in finding.table.problem_rows()] == ["-1 (disabled)"]

    @pytest.mark.asyncio
    async def test_roles_discovered_sorted(self, ctx):
        rows = role_rows("zeta", **HEALTHY_ROLE) + role_rows("alpha", **dict(HEALTHY_ROLE, statement_timeout="0"))
        rows += role_rows("zeta", **dict(HEALTHY_ROLE, statement_timeout="0"))
        checker = SessionSettingsChecker(FakeQueries(session_settings=rows))

        finding = only_finding(await checker.check(ctx))

        assert [r.cells[0] for r in finding.table.problem_rows()] == ["alpha", "zeta"]

    @pytest.mark.asyncio
    async def test_configured_missing_role_warns(self, ctx):
        queries = FakeQueries(session_settings=role_rows("app", **HEALTHY_ROLE))
        checker = SessionSettingsChecker(queries, {"session-settings": {"roles": "app, ghost"}})

        finding = only_finding(await checker.check(ctx))

        assert finding.effective_severity == Severity.WARN
        assert [r.cells for r in finding.table.problem_rows()] == [
            ("ghost", "(all)", "N/A", "Role exists", "Role not found"),
        ]

    @pytest.mark.asyncio
    async def test_non_integer_value_is_execution_error(self, ctx):
        settings = dict(HEALTHY_ROLE, statement_timeout="5s")
        checker = SessionSettingsChecker(FakeQueries(session_settings=role_rows("app", **settings)))

        with pytest.raises(CheckExecutionError) as exc_info:
            await checker.check(ctx)

        assert "invalid integer value" in str(exc_info.value)
        assert exc_info.value.check_id == "session-settings"

    @pytest.mark.asyncio
    async def test_unknown_option_rejected(self, ctx):
        checker = SessionSettingsChecker(FakeQueries(session_settings=[]), {"session-settings": {"rolez": "x"}})

        with pytest.raises(ConfigValueError) as exc_info:
            await checker.check(ctx)

        assert "rolez" in str(exc_info.value)


def with_setting(rows, name, value, unit=None):
    return [SettingRow(name, value, unit) if r.name == name else r for r in rows]


class TestVacuumSettings:
    """Тесты проверки настроек autovacuum."""

    @pytest.mark.asyncio
    async def test_one_finding_per_setting(self, ctx):
        report = await VacuumSettingsChecker(FakeQueries(vacuum_settings=HEALTHY_VACUUM)).check(ctx)

        assert [f.name for f in report.findings] == [
            "autovacuum_analyze_scale_factor",
            "autovacuum_vacuum_scale_factor",
            "autovacuum_max_workers",
            "maintenance_work_mem",
            "vacuum_cost_delay",
            "vacuum_cost_limit",
            "work_mem",
        ]
        assert {f.id for f in report.findings} == {"vacuum-settings"}
        assert report.severity == Severity.OK

    @pytest.mark.parametrize("name,value,unit,severity", [
        ("maintenance_work_mem", "32768", "kB", Severity.FAIL),
        ("maintenance_work_mem", "131072", "kB", Severity.WARN),
        ("maintenance_work_mem", "3", "GB", Severity.WARN),
        ("work_mem", "2048", "kB", Severity.WARN),
        ("work_mem", "2", "GB", Severity.WARN),
        ("autovacuum_vacuum_scale_factor", "0.3", None, Severity.WARN),
        ("autovacuum_analyze_scale_factor", "0.2", None, Severity.WARN),
        ("autovacuum_max_workers", "12", None, Severity.WARN),
        ("vacuum_cost_delay", "20", "ms", Severity.WARN),
        ("vacuum_cost_limit", "100", None, Severity.WARN),
    ])
    @pytest.mark.asyncio
    async def test_thresholds(self, ctx, name, value, unit, severity):
        rows = with_setting(HEALTHY_VACUUM, name, value, unit)
        report = await VacuumSettingsChecker(FakeQueries(vacuum_settings=rows)).check(ctx)

        by_name = {f.name: f for f in report.findings}
        assert by_name[name].severity == severity
        assert report.severity == severity

    @pytest.mark.asyncio
    async def test_missing_setting_skipped(self, ctx):
        rows = [r for r in HEALTHY_VACUUM if r.name != "vacuum_cost_limit"]

        report = await VacuumSettingsChecker(FakeQueries(vacuum_settings=rows)).check(ctx)

        assert "vacuum_cost_limit" not in [f.name for f in report.findings]
        assert len(report.findings) == 6

    @pytest.mark.asyncio
    async def test_no_settings_is_an_error(self, ctx):
        with pytest.raises(CheckExecutionError) as exc_info:
            await VacuumSettingsChecker(FakeQueries(vacuum_settings=[])).check(ctx)
        assert exc_info.value.check_id == "vacuum-settings"

    @pytest.mark.asyncio
    async def test_only_unrelated_settings_is_an_error(self, ctx):
        rows = [SettingRow("max_connections", "100", None)]

        with pytest.raises(CheckExecutionError):
            await VacuumSettingsChecker(FakeQueries(vacuum_settings=rows)).check(ctx)

    @pytest.mark.parametrize("rows", [
        [SettingRow("work_mem", "garbage", "kB"), SettingRow("maintenance_work_mem", "64", "weird")],
        with_setting(HEALTHY_VACUUM, "work_mem", "garbage", "kB"),
        with_setting(HEALTHY_VACUUM, "maintenance_work_mem", "64", "weird"),
    ])
    @pytest.mark.asyncio
    async def test_uninterpretable_value_is_an_error(self, ctx, rows):
        with pytest.raises(CheckExecutionError) as exc_info:
            await VacuumSettingsChecker(FakeQueries(vacuum_settings=rows)).check(ctx)
        assert "cannot interpret setting" in str(exc_info.value)

    def test_normalize_setting(self):
        assert normalize_setting("8", "8kB") == 65536
        assert normalize_setting("2", "s") == 2000
        assert normalize_setting("64", "MB") == 64 * MIB
        assert normalize_setting("0.2", None) == 0.2
        assert normalize_setting("on", None) is None
        assert normalize_setting("1", "parsecs") is None


# ═══════════════════════════════════════════════════════
# PERFORMANCE
# ═══════════════════════════════════════════════════════

def connection_stats(total: int) -> ConnectionStatsRow:
    return ConnectionStatsRow(
        max_connections=103,
        reserved_connections=3,
        total_connections=total,
        active_connections=total,
        idle_connections=0,
        idle_in_transaction=0,
        idle_in_transaction_aborted=0,
        waiting_connections=0,
    )


def idle_tx(pid: int, seconds: int) -> IdleInTransactionRow:
    return IdleInTransactionRow(
        pid=pid,
        username="app",
        database_name="app",
        application_name="web",
        state="idle in transaction",
        transaction_duration_seconds=seconds,
        query_preview="SELECT 1",
        timeout_ms=0,
    )


class TestConnectionHealth:
    """Тесты проверки соединений."""

    def checker(self, total=10, idle=(), config=None):
        queries = FakeQueries(
            connection_stats=connection_stats(total),
            idle_in_transaction=list(idle),
            long_idle_connections=[],
        )
        return ConnectionHealthChecker(queries, config)

    @pytest.mark.parametrize("total,severity", [(50, Severity.OK), (80, Severity.WARN), (95, Severity.FAIL)])
    @pytest.mark.asyncio
    async def test_usage(self, ctx, total, severity):
        report = await self.checker(total=total).check(ctx)

        assert len(report.findings) == 3
        assert report.findings[0].severity == severity

    @pytest.mark.asyncio
    async def test_usage_thresholds_configurable(self, ctx):
        config = {"connection-health": {"usage_warn_percent": "40", "usage_fail_percent": "45"}}
        report = await self.checker(total=50, config=config).check(ctx)

        assert report.findings[0].severity == Severity.FAIL

    @pytest.mark.asyncio
    async def test_idle_in_transaction(self, ctx):
        idle = [idle_tx(1, 30), idle_tx(2, 120), idle_tx(3, 600)]

        finding = (await self.checker(idle=idle).check(ctx)).findings[1]

        assert finding.effective_severity == Severity.FAIL
        assert [r.cells[0] for r in finding.table.problem_rows()] == ["2", "3"]
        assert "idle_in_transaction_session_timeout is disabled" in finding.details

    @pytest.mark.asyncio
    async def test_invalid_option(self, ctx):
        config = {"connection-health": {"usage_warn_percent": "lots"}}
        with pytest.raises(ConfigValueError):
            await self.checker(config=config).check(ctx)

    @pytest.mark.asyncio
    async def test_warn_above_fail_rejected(self, ctx):
        config = {"connection-health": {"usage_warn_percent": "95", "usage_fail_percent": "90"}}
        with pytest.raises(ConfigValueError):
            await self.checker(config=config).check(ctx)

    @pytest.mark.asyncio
    async def test_no_usable_slots_is_data_error(self, ctx):
        stats = ConnectionStatsRow(3, 3, 1, 1, 0, 0, 0, 0)
        queries = FakeQueries(connection_stats=stats, idle_in_transaction=[], long_idle_connections=[])

        with pytest.raises(CheckExecutionError):
            await ConnectionHealthChecker(queries).check(ctx)


class TestConnectionEfficiency:
    """Тесты эффективности использования сессий."""

    async def run(self, ctx, **stats):
        checker = ConnectionEfficiencyChecker(FakeQueries(session_statistics=SessionStatisticsRow(**stats)))
        return await checker.check(ctx)

    @pytest.mark.asyncio
    async def test_no_sessions(self, ctx):
        assert only_finding(await self.run(ctx)).severity == Severity.OK

    @pytest.mark.asyncio
    async def test_healthy(self, ctx):
        report = await self.run(
            ctx,
            total_session_time_ms=1000.0,
            total_active_time_ms=500.0,
            total_idle_in_txn_time_ms=10.0,
            total_sessions=1000,
            session_busy_ratio_percent=50.0,
        )
        assert len(report.findings) == 3
        assert report.severity == Severity.OK

    @pytest.mark.parametrize("abnormal,severity", [(5, Severity.OK), (30, Severity.WARN), (60, Severity.FAIL)])
    @pytest.mark.asyncio
    async def test_abnormal_terminations(self, ctx, abnormal, severity):
        report = await self.run(
            ctx,
            total_session_time_ms=1000.0,
            total_sessions=1000,
            sessions_killed=abnormal,
            session_busy_ratio_percent=50.0,
        )
        assert report.findings[0].severity == severity

    @pytest.mark.asyncio
    async def test_low_busy_ratio_and_idle_time(self, ctx):
        report = await self.run(
            ctx,
            total_session_time_ms=1000.0,
            total_active_time_ms=50.0,
            total_idle_in_txn_time_ms=100.0,
            total_sessions=10,
            session_busy_ratio_percent=5.0,
        )
        assert [f.severity for f in report.findings] == [Severity.OK, Severity.WARN, Severity.WARN]


def cache_row(ratio, age_days=30.0):
    return CacheEfficiencyRow(
        blks_hit=1000, blks_read=10, stats_reset=None, cache_hit_ratio=ratio, stats_age_days=age_days
    )


class TestCacheEfficiency:
    """Тесты попаданий в кэш."""

    @pytest.mark.parametrize("ratio,severity", [
        (99.5, Severity.OK),
        (97.0, Severity.WARN),
        (90.0, Severity.FAIL),
    ])
    @pytest.mark.asyncio
    async def test_thresholds(self, ctx, ratio, severity):
        report = await CacheEfficiencyChecker(FakeQueries(cache_efficiency=cache_row(ratio))).check(ctx)
        assert only_finding(report).severity == severity

    @pytest.mark.asyncio
    async def test_no_activity(self, ctx):
        row = CacheEfficiencyRow(blks_hit=0, blks_read=0, stats_reset=None, cache_hit_ratio=None, stats_age_days=1.0)
        report = await CacheEfficiencyChecker(FakeQueries(cache_efficiency=row)).check(ctx)
        assert only_finding(report).severity == Severity.OK

    @pytest.mark.asyncio
    async def test_option_override(self, ctx):
        config = {"cache-efficiency": {"fail_below_percent": "98"}}
        report = await CacheEfficiencyChecker(FakeQueries(cache_efficiency=cache_row(97.0)), config).check(ctx)
        assert only_finding(report).severity == Severity.FAIL

    @pytest.mark.asyncio
    async def test_fresh_stats_noted(self, ctx):
        report = await CacheEfficiencyChecker(FakeQueries(cache_efficiency=cache_row(99.9, 0.2))).check(ctx)
        assert "less than a day" in only_finding(report).details


def temp_row(bytes_per_hour=0.0, files_per_hour=0.0, log_temp_files="0", temp_files=10):
    return TempUsageRow(
        database_name="app",
        temp_files=temp_files,
        temp_bytes=1024,
        stats_reset=None,
        seconds_since_reset=3600.0,
        work_mem="4MB",
        temp_file_limit="-1",
        log_temp_files=log_temp_files,
        max_connections="100",
        shared_buffers="128MB",
        temp_files_per_hour=files_per_hour,
        temp_bytes_per_hour=bytes_per_hour,
    )


class TestTempUsage:
    """Тесты временных файлов."""

    @pytest.mark.parametrize("row,severity", [
        (temp_row(bytes_per_hour=20 * GIB), Severity.FAIL),
        (temp_row(bytes_per_hour=2 * GIB), Severity.WARN),
        (temp_row(bytes_per_hour=MIB, files_per_hour=150), Severity.WARN),
        (temp_row(bytes_per_hour=MIB, files_per_hour=5), Severity.OK),
    ])
    @pytest.mark.asyncio
    async def test_rate(self, ctx, row, severity):
        report = await TempUsageChecker(FakeQueries(temp_usage=row)).check(ctx)
        assert only_finding(report).severity == severity

    @pytest.mark.asyncio
    async def test_log_temp_files_disabled(self, ctx):
        report = await TempUsageChecker(FakeQueries(temp_usage=temp_row(log_temp_files="-1"))).check(ctx)

        assert [f.severity for f in report.findings] == [Severity.OK, Severity.WARN]
        assert report.findings[1].name == "log_temp_files"


def replica(lag_seconds=0.0, lag_bytes=0, state="streaming"):
    return ReplicationLagRow(
        application_name="replica-1",
        state=state,
        replication_type="physical",
        replay_lag_bytes=lag_bytes,
        replay_lag_seconds=lag_seconds,
        slot_name=None,
        wal_status=None,
    )


class TestReplicationLag:
    """Тесты отставания реплик."""

    @pytest.mark.asyncio
    async def test_no_replicas(self, ctx):
        finding = only_finding(await ReplicationLagChecker(FakeQueries(replication_lag=[])).check(ctx))

        assert finding.severity == Severity.OK
        assert finding.details == "No replicas connected"

    @pytest.mark.parametrize("row,severity", [
        (replica(lag_seconds=1.0), Severity.OK),
        (replica(lag_seconds=45.0), Severity.WARN),
        (replica(lag_seconds=400.0), Severity.FAIL),
        (replica(lag_bytes=200 * MIB), Severity.WARN),
        (replica(lag_bytes=2 * GIB), Severity.FAIL),
        (replica(state="catchup"), Severity.WARN),
    ])
    @pytest.mark.asyncio
    async def test_thresholds(self, ctx, row, severity):
        report = await ReplicationLagChecker(FakeQueries(replication_lag=[row])).check(ctx)
        assert only_finding(report).effective_severity == severity

    @pytest.mark.asyncio
    async def test_option_override(self, ctx):
        config = {"replication-lag": {"warn_seconds": "5", "fail_seconds": "10"}}
        report = await ReplicationLagChecker(FakeQueries(replication_lag=[replica(lag_seconds=12.0)]), config).check(ctx)
        assert report.severity == Severity.FAIL


def slot(active=True, wal_status="reserved", inactive_seconds=None, retained=0, conflicting=None):
    return ReplicationSlotRow(
        slot_name="s1",
        slot_type="logical",
        plugin="pgoutput",
        database="app",
        active=active,
        active_pid=123 if active else None,
        wal_status=wal_status,
        safe_wal_size=None,
        temporary=False,
        conflicting=conflicting,
        invalidation_reason="wal_removed" if conflicting else None,
        restart_lsn_lag_bytes=retained,
        confirmed_flush_lsn_lag_bytes=0,
        inactive_seconds=inactive_seconds,
    )


class TestReplicationSlots:
    """Тесты слотов репликации."""

    @pytest.mark.asyncio
    async def test_no_slots(self, ctx):
        report = await ReplicationSlotsChecker(FakeQueries(replication_slots=[])).check(ctx)
        assert only_finding(report).severity == Severity.OK

    @pytest.mark.parametrize("row,severity", [
        (slot(), Severity.OK),
        (slot(wal_status="lost"), Severity.FAIL),
        (slot(conflicting=True), Severity.FAIL),
        (slot(wal_status="unreserved"), Severity.WARN),
        (slot(active=False), Severity.WARN),
        (slot(active=False, inactive_seconds=3600), Severity.WARN),
        (slot(active=False, inactive_seconds=2 * 86400), Severity.FAIL),
        (slot(retained=2 * GIB), Severity.WARN),
        (slot(retained=11 * GIB), Severity.FAIL),
    ])
    @pytest.mark.asyncio
    async def test_slot_severity(self, ctx, row, severity):
        report = await ReplicationSlotsChecker(FakeQueries(replication_slots=[row])).check(ctx)
        assert only_finding(report).effective_severity == severity


# ═══════════════════════════════════════════════════════
# VACUUM
# ═══════════════════════════════════════════════════════

def bloat_row(name, percent):
    return TableBloatRow(
        table_name=name,
        live_tuples=1000,
        dead_tuples=5000,
        last_autovacuum=None,
        last_vacuum=datetime(2024, 1, 1, tzinfo=timezone.utc),
        last_autoanalyze=None,
        last_analyze=None,
        autovacuum_count=0,
        vacuum_count=1,
        modifications_since_analyze=0,
        dead_tuple_percent=percent,
        total_size_bytes=10 * MIB,
    )


class TestTableBloat:
    """Тесты доли мёртвых строк."""

    @pytest.mark.asyncio
    async def test_worst_row_wins(self, ctx):
        rows = [bloat_row("public.a", 60.0), bloat_row("public.b", 25.0), bloat_row("public.c", 5.0)]

        finding = only_finding(await TableBloatChecker(FakeQueries(table_bloat=rows)).check(ctx))

        assert finding.effective_severity == Severity.FAIL
        assert len(finding.table.problem_rows()) == 2
        assert len(finding.table) == 3
        assert finding.details.startswith("2 table(s)")

    @pytest.mark.asyncio
    async def test_no_bloat(self, ctx):
        finding = only_finding(await TableBloatChecker(FakeQueries(table_bloat=[bloat_row("public.a", 5.0)])).check(ctx))

        assert finding.severity == Severity.OK
        assert finding.table is None


def vacuum_health_row(name="public.t", rows=1000, reloptions=None, dead=0, last_vacuum=None, modified=0):
    now = datetime.now(timezone.utc)
    return TableVacuumHealthRow(
        table_name=name,
        last_autovacuum=None,
        estimated_rows=rows,
        table_size_bytes=MIB,
        n_dead_tup=dead,
        autovacuum_count=0,
        reloptions=reloptions,
        last_vacuum_any=last_vacuum if last_vacuum is not None else now,
        last_analyze_any=now,
        n_mod_since_analyze=modified,
        autoanalyze_count=0,
        n_ins_since_vacuum=0,
    )


class TestTableVacuumHealth:
    """Тесты здоровья vacuum по таблицам."""

    async def run(self, ctx, rows):
        return await TableVacuumHealthChecker(FakeQueries(table_vacuum_health=rows)).check(ctx)

    @pytest.mark.asyncio
    async def test_four_findings_when_healthy(self, ctx):
        report = await self.run(ctx, [vacuum_health_row()])

        assert [f.name for f in report.findings] == [
            "Autovacuum disabled",
            "Large tables with default settings",
            "Stale vacuum",
            "Analyze needed",
        ]
        assert {f.id for f in report.findings} == {"table-vacuum-health"}
        assert report.severity == Severity.OK

    @pytest.mark.asyncio
    async def test_autovacuum_disabled(self, ctx):
        report = await self.run(ctx, [vacuum_health_row(reloptions="autovacuum_enabled=false")])
        assert report.findings[0].effective_severity == Severity.FAIL

    @pytest.mark.asyncio
    async def test_large_table_defaults(self, ctx):
        report = await self.run(ctx, [
            vacuum_health_row("public.big", rows=20_000_000),
            vacuum_health_row("public.tuned", rows=20_000_000, reloptions="autovacuum_vacuum_scale_factor=0.01"),
        ])

        finding = report.findings[1]
        assert finding.effective_severity == Severity.WARN
        assert [r.cells[0] for r in finding.table.problem_rows()] == ["public.big"]

    @pytest.mark.asyncio
    async def test_vacuum_stale(self, ctx):
        old = datetime.now(timezone.utc) - timedelta(days=30)
        report = await self.run(ctx, [
            vacuum_health_row("public.stale", dead=50_000, last_vacuum=old),
            vacuum_health_row("public.fresh", dead=50_000),
        ])

        finding = report.findings[2]
        assert [r.cells[0] for r in finding.table.problem_rows()] == ["public.stale"]

    @pytest.mark.asyncio
    async def test_analyze_needed(self, ctx):
        report = await self.run(ctx, [vacuum_health_row(rows=1000, modified=500)])
        assert report.findings[3].effective_severity == Severity.WARN

    def test_parse_reloptions(self):
        assert parse_reloptions("autovacuum_enabled=false,fillfactor=90") == {
            "autovacuum_enabled": "false",
            "fillfactor": "90",
        }
        assert parse_reloptions(None) == {}


class TestFreezeAge:
    """Тесты возраста XID."""

    async def run(self, ctx, databases, tables=()):
        queries = FakeQueries(database_freeze_age=databases, table_freeze_age=list(tables))
        return await FreezeAgeChecker(queries).check(ctx)

    @pytest.mark.parametrize("age,severity", [
        (100_000_000, Severity.OK),
        (250_000_000, Severity.WARN),
        (1_300_000_000, Severity.FAIL),
    ])
    @pytest.mark.asyncio
    async def test_database_age(self, ctx, age, severity):
        report = await self.run(ctx, [DatabaseFreezeAgeRow("app", "123", age, 200_000_000)])
        assert report.findings[0].effective_severity == severity

    @pytest.mark.asyncio
    async def test_old_tables_warn(self, ctx):
        tables = [
            TableFreezeAgeRow("public.old", "1", None, None, 0, 0, 300_000_000, GIB),
            TableFreezeAgeRow("public.young", "2", None, None, 0, 0, 1_000, MIB),
        ]
        report = await self.run(ctx, [DatabaseFreezeAgeRow("app", "1", 100, 200_000_000)], tables)

        finding = report.findings[1]
        assert finding.effective_severity == Severity.WARN
        assert [r.cells[0] for r in finding.table.problem_rows()] == ["public.old"]


# ═══════════════════════════════════════════════════════
# INDEXES / SCHEMA
# ═══════════════════════════════════════════════════════

class TestInvalidIndexes:
    """Тесты невалидных индексов."""

    @pytest.mark.asyncio
    async def test_none(self, ctx):
        report = await InvalidIndexesChecker(FakeQueries(broken_indexes=[])).check(ctx)
        assert only_finding(report).severity == Severity.OK

    @pytest.mark.asyncio
    async def test_lists_indexes(self, ctx):
        rows = [BrokenIndexRow("orders", "orders_user_idx"), BrokenIndexRow("users", "users_email_idx")]

        finding = only_finding(await InvalidIndexesChecker(FakeQueries(broken_indexes=rows)).check(ctx))

        assert finding.severity == Severity.WARN
        assert finding.details == (
            "There are 2 invalid indexes.\norders\torders_user_idx\nusers\tusers_email_idx\n"
        )


class TestDuplicateIndexes:
    """Тесты дублирующихся индексов."""

    @pytest.mark.asyncio
    async def test_none(self, ctx):
        report = await DuplicateIndexesChecker(FakeQueries(duplicate_indexes=[])).check(ctx)
        assert only_finding(report).severity == Severity.OK

    @pytest.mark.asyncio
    async def test_exact_duplicate(self, ctx):
        row = DuplicateIndexRow(
            table_name="public.orders",
            index_name_a="orders_a_idx",
            index_name_b="orders_a_idx1",
            size_a=2 * MIB,
            size_b=MIB,
            definition_a="CREATE INDEX orders_a_idx ON public.orders USING btree (a)",
            duplicate_type="exact",
        )

        finding = only_finding(await DuplicateIndexesChecker(FakeQueries(duplicate_indexes=[row])).check(ctx))

        assert finding.effective_severity == Severity.WARN
        assert finding.table.rows[0].cells[-1] == "1.0MiB"
        assert "1.0MiB reclaimable" in finding.details


def sequence(usage=10.0, current=100, column_type="bigint", column_max=9223372036854775807):
    return SequenceHealthRow(
        schema_name="public",
        sequence_name="orders_id_seq",
        seq_data_type="bigint",
        current_value=current,
        max_value=9223372036854775807,
        increment_by=1,
        is_cyclic=False,
        remaining_values=None,
        usage_percent=usage,
        table_name="orders",
        column_name="id",
        column_type=column_type,
        column_max_value=column_max,
        sequence_exceeds_column=column_type != "bigint",
        should_be_bigint=False,
        is_primary_key=True,
        fk_reference_count=0,
    )


class TestSequenceHealth:
    """Тесты исчерпания последовательностей."""

    @pytest.mark.parametrize("usage,severity", [(10.0, Severity.OK), (80.0, Severity.WARN), (95.0, Severity.FAIL)])
    @pytest.mark.asyncio
    async def test_sequence_usage(self, ctx, usage, severity):
        report = await SequenceHealthChecker(FakeQueries(sequence_health=[sequence(usage=usage)])).check(ctx)
        assert only_finding(report).effective_severity == severity

    @pytest.mark.asyncio
    async def test_integer_column_limits_usage(self, ctx):
        row = sequence(usage=0.01, current=1_800_000_000, column_type="integer", column_max=2147483647)

        finding = only_finding(await SequenceHealthChecker(FakeQueries(sequence_health=[row])).check(ctx))

        assert finding.effective_severity == Severity.WARN
        assert "sequence max exceeds column type" in finding.table.rows[0].cells[-1]
