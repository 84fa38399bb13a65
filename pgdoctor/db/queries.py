"""
Read-only query layer over an asyncpg pool.

One coroutine per diagnostic query, each returning typed rows. This is the
only place where SQL is executed; checks receive an instance of this class
(or any object with the same methods) at construction.
"""

import logging
from typing import Any, List, Optional, Type, TypeVar

from pgdoctor.db.rows import (
    BrokenIndexRow,
    CacheEfficiencyRow,
    ConnectionStatsRow,
    DatabaseFreezeAgeRow,
    DevIndexRow,
    DuplicateIndexRow,
    ExtensionRow,
    IdleInTransactionRow,
    IndexBloatRow,
    IndexUsageRow,
    LargeTableRow,
    LongIdleConnectionRow,
    PartitionedTableRow,
    PrimaryKeyTypeRow,
    QueryStatRow,
    ReplicationLagRow,
    ReplicationSlotRow,
    SeqScanTableRow,
    SequenceHealthRow,
    ServerVersionRow,
    SessionSettingsRow,
    SessionStatisticsRow,
    SettingRow,
    StatisticsFreshnessRow,
    TableActivityRow,
    TableBloatRow,
    TableFreezeAgeRow,
    TableVacuumHealthRow,
    TempUsageRow,
    ToastStorageRow,
    UuidDefaultRow,
    UuidStringColumnRow,
    from_record,
)
from pgdoctor.db.statements import named_query

logger = logging.getLogger(__name__)

R = TypeVar("R")

PG14 = 140000
PG15 = 150000
PG17 = 170000


class PostgresQueries:
    """Диагностические запросы к PostgreSQL."""

    def __init__(self, pool: Any):
        """
        Args:
            pool: asyncpg.Pool (или любой объект с fetch/fetchrow)
        """
        self.pool = pool
        self._version_num: Optional[int] = None

    async def _fetch(self, row_type: Type[R], check_id: str, name: str) -> List[R]:
        sql = named_query(check_id, name)
        logger.debug(f"Running {check_id}/{name}")
        records = await self.pool.fetch(sql)
        return [from_record(row_type, record) for record in records]

    async def _fetchrow(self, row_type: Type[R], check_id: str, name: str) -> R:
        sql = named_query(check_id, name)
        logger.debug(f"Running {check_id}/{name}")
        record = await self.pool.fetchrow(sql)
        if record is None:
            raise LookupError(f"{check_id}/{name} returned no rows")
        return from_record(row_type, record)

    # ==================== configs ====================

    async def server_version(self) -> ServerVersionRow:
        row = await self._fetchrow(ServerVersionRow, "pg-version", "ServerVersion")
        self._version_num = row.version_num
        return row

    async def server_version_num(self) -> int:
        if self._version_num is None:
            await self.server_version()
        return self._version_num

    async def session_settings(self) -> List[SessionSettingsRow]:
        return await self._fetch(SessionSettingsRow, "session-settings", "SessionSettings")

    async def vacuum_settings(self) -> List[SettingRow]:
        return await self._fetch(SettingRow, "vacuum-settings", "VacuumSettings")

    # ==================== performance ====================

    async def connection_stats(self) -> ConnectionStatsRow:
        return await self._fetchrow(ConnectionStatsRow, "connection-health", "ConnectionStats")

    async def idle_in_transaction(self) -> List[IdleInTransactionRow]:
        return await self._fetch(IdleInTransactionRow, "connection-health", "IdleInTransaction")

    async def long_idle_connections(self) -> List[LongIdleConnectionRow]:
        return await self._fetch(LongIdleConnectionRow, "connection-health", "LongIdleConnections")

    async def session_statistics(self) -> SessionStatisticsRow:
        """Статистика сессий; до PostgreSQL 14 колонок нет, возвращаются нули."""
        if await self.server_version_num() < PG14:
            return SessionStatisticsRow()
        return await self._fetchrow(SessionStatisticsRow, "connection-efficiency", "SessionStatistics")

    async def cache_efficiency(self) -> CacheEfficiencyRow:
        return await self._fetchrow(CacheEfficiencyRow, "cache-efficiency", "DatabaseCacheEfficiency")

    async def temp_usage(self) -> TempUsageRow:
        return await self._fetchrow(TempUsageRow, "temp-usage", "TempUsage")

    async def replication_lag(self) -> List[ReplicationLagRow]:
        return await self._fetch(ReplicationLagRow, "replication-lag", "ReplicationLag")

    async def replication_slots(self) -> List[ReplicationSlotRow]:
        """Слоты репликации, запрос выбирается по версии сервера."""
        version = await self.server_version_num()
        name = "ReplicationSlots" if version >= PG17 else "ReplicationSlotsPG15"
        return await self._fetch(ReplicationSlotRow, "replication-slots", name)

    async def statistics_freshness(self) -> StatisticsFreshnessRow:
        return await self._fetchrow(StatisticsFreshnessRow, "statistics-freshness", "StatisticsFreshness")

    async def table_activity(self) -> List[TableActivityRow]:
        return await self._fetch(TableActivityRow, "table-activity", "TableActivity")

    async def high_seq_scan_tables(self) -> List[SeqScanTableRow]:
        return await self._fetch(SeqScanTableRow, "table-seq-scans", "HighSeqScanTables")

    async def has_pg_stat_statements(self) -> bool:
        row = await self._fetchrow(ExtensionRow, "partition-usage", "HasPgStatStatements")
        return bool(row.installed)

    async def partitioned_tables(self) -> List[PartitionedTableRow]:
        return await self._fetch(PartitionedTableRow, "partition-usage", "PartitionedTablesWithKeys")

    async def query_stats(self) -> List[QueryStatRow]:
        """Запросы из pg_stat_statements; вызывать только если расширение установлено."""
        return await self._fetch(QueryStatRow, "partition-usage", "QueryStatsFromStatStatements")

    # ==================== vacuum ====================

    async def table_bloat(self) -> List[TableBloatRow]:
        return await self._fetch(TableBloatRow, "table-bloat", "TableBloat")

    async def table_vacuum_health(self) -> List[TableVacuumHealthRow]:
        return await self._fetch(TableVacuumHealthRow, "table-vacuum-health", "TableVacuumHealth")

    async def database_freeze_age(self) -> List[DatabaseFreezeAgeRow]:
        return await self._fetch(DatabaseFreezeAgeRow, "freeze-age", "DatabaseFreezeAge")

    async def table_freeze_age(self) -> List[TableFreezeAgeRow]:
        return await self._fetch(TableFreezeAgeRow, "freeze-age", "TableFreezeAge")

    # ==================== indexes ====================

    async def broken_indexes(self) -> List[BrokenIndexRow]:
        return await self._fetch(BrokenIndexRow, "invalid-indexes", "BrokenIndexes")

    async def duplicate_indexes(self) -> List[DuplicateIndexRow]:
        return await self._fetch(DuplicateIndexRow, "duplicate-indexes", "DuplicateIndexes")

    async def dev_indexes(self) -> List[DevIndexRow]:
        return await self._fetch(DevIndexRow, "dev-indexes", "DevIndexes")

    async def index_usage(self) -> List[IndexUsageRow]:
        return await self._fetch(IndexUsageRow, "index-usage", "IndexUsageStats")

    async def index_bloat(self) -> List[IndexBloatRow]:
        return await self._fetch(IndexBloatRow, "index-bloat", "IndexBloat")

    # ==================== schema ====================

    async def sequence_health(self) -> List[SequenceHealthRow]:
        return await self._fetch(SequenceHealthRow, "sequence-health", "SequenceHealth")

    async def primary_key_types(self) -> List[PrimaryKeyTypeRow]:
        return await self._fetch(PrimaryKeyTypeRow, "pk-types", "InvalidPrimaryKeyTypes")

    async def uuid_string_columns(self) -> List[UuidStringColumnRow]:
        return await self._fetch(UuidStringColumnRow, "uuid-types", "UuidColumnsAsString")

    async def uuid_defaults(self) -> List[UuidDefaultRow]:
        return await self._fetch(UuidDefaultRow, "uuid-defaults", "UuidColumnDefaults")

    async def large_tables(self) -> List[LargeTableRow]:
        return await self._fetch(LargeTableRow, "partitioning", "LargeTables")

    async def toast_storage(self) -> List[ToastStorageRow]:
        """Использование TOAST; до PostgreSQL 14 без колонки attcompression."""
        version = await self.server_version_num()
        name = "ToastStorage" if version >= PG14 else "ToastStoragePG13"
        return await self._fetch(ToastStorageRow, "toast-storage", name)
