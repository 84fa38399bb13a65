"""
Typed rows returned by the diagnostic queries.

Field names match the column aliases in pgdoctor/db/sql/*.sql.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, List, Mapping, Optional, Type, TypeVar

R = TypeVar("R")


def from_record(row_type: Type[R], record: Mapping[str, Any]) -> R:
    """
    Построить строку из записи драйвера.

    Raises:
        TypeError: набор колонок не совпадает с полями строки
    """
    return row_type(**dict(record))


# === configs ===

@dataclass(frozen=True)
class ServerVersionRow:
    version_string: str
    version_num: int


@dataclass(frozen=True)
class SessionSettingsRow:
    role_name: Optional[str]
    setting_name: Optional[str]
    system_default: Optional[str]
    unit: Optional[str]
    setting_value: Optional[str]
    status: Optional[str]


@dataclass(frozen=True)
class SettingRow:
    name: str
    setting: str
    unit: Optional[str]


# === performance ===

@dataclass(frozen=True)
class ConnectionStatsRow:
    max_connections: int
    reserved_connections: int
    total_connections: int
    active_connections: int
    idle_connections: int
    idle_in_transaction: int
    idle_in_transaction_aborted: int
    waiting_connections: int


@dataclass(frozen=True)
class IdleInTransactionRow:
    pid: int
    username: Optional[str]
    database_name: Optional[str]
    application_name: Optional[str]
    state: Optional[str]
    transaction_duration_seconds: Optional[int]
    query_preview: Optional[str]
    timeout_ms: int


@dataclass(frozen=True)
class LongIdleConnectionRow:
    pid: int
    username: Optional[str]
    database_name: Optional[str]
    application_name: Optional[str]
    client_address: Optional[str]
    state: Optional[str]
    idle_duration_seconds: Optional[int]
    connection_age_seconds: Optional[int]


@dataclass(frozen=True)
class SessionStatisticsRow:
    total_session_time_ms: float = 0.0
    total_active_time_ms: float = 0.0
    total_idle_in_txn_time_ms: float = 0.0
    total_sessions: int = 0
    sessions_abandoned: int = 0
    sessions_fatal: int = 0
    sessions_killed: int = 0
    session_busy_ratio_percent: float = 0.0


@dataclass(frozen=True)
class CacheEfficiencyRow:
    blks_hit: int
    blks_read: int
    stats_reset: Optional[datetime]
    cache_hit_ratio: Optional[float]
    stats_age_days: float


@dataclass(frozen=True)
class TempUsageRow:
    database_name: str
    temp_files: int
    temp_bytes: int
    stats_reset: Optional[datetime]
    seconds_since_reset: Optional[float]
    work_mem: Optional[str]
    temp_file_limit: Optional[str]
    log_temp_files: Optional[str]
    max_connections: Optional[str]
    shared_buffers: Optional[str]
    temp_files_per_hour: float
    temp_bytes_per_hour: float


@dataclass(frozen=True)
class ReplicationLagRow:
    application_name: Optional[str]
    state: Optional[str]
    replication_type: str
    replay_lag_bytes: int
    replay_lag_seconds: float
    slot_name: Optional[str]
    wal_status: Optional[str]


@dataclass(frozen=True)
class ReplicationSlotRow:
    slot_name: str
    slot_type: str
    plugin: Optional[str]
    database: Optional[str]
    active: bool
    active_pid: Optional[int]
    wal_status: Optional[str]
    safe_wal_size: Optional[int]
    temporary: bool
    conflicting: Optional[bool]
    invalidation_reason: Optional[str]
    restart_lsn_lag_bytes: Optional[int]
    confirmed_flush_lsn_lag_bytes: Optional[int]
    inactive_seconds: Optional[int]


@dataclass(frozen=True)
class StatisticsFreshnessRow:
    stats_reset: Optional[datetime]
    age_days: int


@dataclass(frozen=True)
class TableActivityRow:
    schemaname: str
    relname: str
    n_tup_ins: int
    n_tup_upd: int
    n_tup_del: int
    n_tup_hot_upd: int
    n_live_tup: int
    table_size_bytes: int


@dataclass(frozen=True)
class SeqScanTableRow:
    table_name: str
    seq_scan: int
    idx_scan: int
    seq_to_idx_ratio: Optional[float]
    estimated_rows: int
    table_size_bytes: int
    index_count: int


@dataclass(frozen=True)
class ExtensionRow:
    installed: bool


@dataclass(frozen=True)
class PartitionedTableRow:
    schema_name: str
    table_name: str
    partition_strategy: str
    partition_key_columns: Optional[str]
    has_expression_key: bool
    partition_count: int
    total_size_bytes: int
    estimated_rows: int
    total_seq_scans: int
    total_idx_scans: int


@dataclass(frozen=True)
class QueryStatRow:
    query_id: Optional[int]
    query: str
    calls: int
    total_exec_time: float
    mean_exec_time: float
    rows_returned: int


# === vacuum ===

@dataclass(frozen=True)
class TableBloatRow:
    table_name: str
    live_tuples: int
    dead_tuples: int
    last_autovacuum: Optional[datetime]
    last_vacuum: Optional[datetime]
    last_autoanalyze: Optional[datetime]
    last_analyze: Optional[datetime]
    autovacuum_count: int
    vacuum_count: int
    modifications_since_analyze: int
    dead_tuple_percent: float
    total_size_bytes: int


@dataclass(frozen=True)
class TableVacuumHealthRow:
    table_name: str
    last_autovacuum: Optional[datetime]
    estimated_rows: int
    table_size_bytes: int
    n_dead_tup: int
    autovacuum_count: int
    reloptions: Optional[str]
    last_vacuum_any: Optional[datetime]
    last_analyze_any: Optional[datetime]
    n_mod_since_analyze: int
    autoanalyze_count: int
    n_ins_since_vacuum: int


@dataclass(frozen=True)
class DatabaseFreezeAgeRow:
    database_name: str
    frozen_xid: str
    freeze_age: int
    freeze_max_age: int


@dataclass(frozen=True)
class TableFreezeAgeRow:
    table_name: str
    frozen_xid: str
    last_autovacuum: Optional[datetime]
    last_vacuum: Optional[datetime]
    autovacuum_count: Optional[int]
    vacuum_count: Optional[int]
    freeze_age: int
    table_size_bytes: int


# === indexes ===

@dataclass(frozen=True)
class BrokenIndexRow:
    table_name: str
    index_name: str


@dataclass(frozen=True)
class DuplicateIndexRow:
    table_name: str
    index_name_a: str
    index_name_b: str
    size_a: int
    size_b: int
    definition_a: str
    duplicate_type: str


@dataclass(frozen=True)
class DevIndexRow:
    table_name: str
    index_name: str
    index_size_bytes: int
    idx_scan: int
    idx_tup_read: int
    indexdef: str


@dataclass(frozen=True)
class IndexUsageRow:
    table_name: str
    index_name: str
    num_rows: int
    is_primary: bool
    is_unique: bool
    index_size_bytes: int
    idx_scan: int
    idx_tup_read: int
    idx_tup_fetch: int
    table_writes: int
    idx_blks_hit: int
    idx_blks_read: int
    cache_hit_ratio: Optional[float]
    indexdef: str


@dataclass(frozen=True)
class IndexBloatRow:
    schemaname: str
    tablename: str
    indexname: str
    actual_pages: int
    est_pages: int
    actual_bytes: int
    bloat_bytes: int
    bloat_percent: float


# === schema ===

@dataclass(frozen=True)
class SequenceHealthRow:
    schema_name: str
    sequence_name: str
    seq_data_type: str
    current_value: int
    max_value: int
    increment_by: int
    is_cyclic: bool
    remaining_values: Optional[int]
    usage_percent: float
    table_name: str
    column_name: str
    column_type: str
    column_max_value: int
    sequence_exceeds_column: Optional[bool]
    should_be_bigint: Optional[bool]
    is_primary_key: bool
    fk_reference_count: int


@dataclass(frozen=True)
class PrimaryKeyTypeRow:
    table_name: str
    column_name: str
    column_type: str
    estimated_rows: int
    sequence_current: Optional[int]
    type_max_value: int
    usage_pct: float


@dataclass(frozen=True)
class UuidStringColumnRow:
    table_name: str
    column_name: str
    column_type: str
    table_size_bytes: int


@dataclass(frozen=True)
class UuidDefaultRow:
    table_name: str
    column_name: str
    default_expr: str
    has_index: bool


@dataclass(frozen=True)
class LargeTableRow:
    table_name: str
    parent_table: Optional[str]
    table_size_bytes: int
    estimated_rows: int
    is_partitioned: bool
    is_partition: bool
    is_transient: bool
    n_tup_ins: int
    n_tup_upd: int
    n_tup_del: int


@dataclass(frozen=True)
class ToastStorageRow:
    schema_name: str
    table_name: str
    toast_table_name: str
    main_table_size: int
    toast_size: int
    total_size: int
    indexes_size: int
    toast_percent: float
    toast_live_tuples: int
    toast_dead_tuples: int
    wide_columns: List[str] = field(default_factory=list)
    column_compression_info: List[str] = field(default_factory=list)
