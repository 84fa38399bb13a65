"""
Catalog of pgdoctor checks.

build_registry() assembles every check in display and execution order.
"""

from typing import Any, Optional

from pgdoctor.checks.cache_efficiency import CacheEfficiencyChecker
from pgdoctor.checks.connection_efficiency import ConnectionEfficiencyChecker
from pgdoctor.checks.connection_health import ConnectionHealthChecker
from pgdoctor.checks.dev_indexes import DevIndexesChecker
from pgdoctor.checks.duplicate_indexes import DuplicateIndexesChecker
from pgdoctor.checks.freeze_age import FreezeAgeChecker
from pgdoctor.checks.index_bloat import IndexBloatChecker
from pgdoctor.checks.index_usage import IndexUsageChecker
from pgdoctor.checks.invalid_indexes import InvalidIndexesChecker
from pgdoctor.checks.partition_usage import PartitionUsageChecker
from pgdoctor.checks.partitioning import PartitioningChecker
from pgdoctor.checks.pg_version import PgVersionChecker
from pgdoctor.checks.pk_types import PkTypesChecker
from pgdoctor.checks.replication_lag import ReplicationLagChecker
from pgdoctor.checks.replication_slots import ReplicationSlotsChecker
from pgdoctor.checks.sequence_health import SequenceHealthChecker
from pgdoctor.checks.session_settings import SessionSettingsChecker
from pgdoctor.checks.statistics_freshness import StatisticsFreshnessChecker
from pgdoctor.checks.table_activity import TableActivityChecker
from pgdoctor.checks.table_bloat import TableBloatChecker
from pgdoctor.checks.table_seq_scans import TableSeqScansChecker
from pgdoctor.checks.table_vacuum_health import TableVacuumHealthChecker
from pgdoctor.checks.temp_usage import TempUsageChecker
from pgdoctor.checks.toast_storage import ToastStorageChecker
from pgdoctor.checks.uuid_defaults import UuidDefaultsChecker
from pgdoctor.checks.uuid_types import UuidTypesChecker
from pgdoctor.checks.vacuum_settings import VacuumSettingsChecker
from pgdoctor.core.models import CheckConfig
from pgdoctor.registry import Registry

CHECKER_CLASSES = (
    # configs
    PgVersionChecker,
    SessionSettingsChecker,
    VacuumSettingsChecker,
    # performance
    ConnectionHealthChecker,
    ConnectionEfficiencyChecker,
    CacheEfficiencyChecker,
    TempUsageChecker,
    ReplicationLagChecker,
    ReplicationSlotsChecker,
    StatisticsFreshnessChecker,
    TableActivityChecker,
    TableSeqScansChecker,
    PartitionUsageChecker,
    # vacuum
    TableBloatChecker,
    TableVacuumHealthChecker,
    FreezeAgeChecker,
    # indexes
    InvalidIndexesChecker,
    DuplicateIndexesChecker,
    DevIndexesChecker,
    IndexUsageChecker,
    IndexBloatChecker,
    # schema
    SequenceHealthChecker,
    PkTypesChecker,
    UuidTypesChecker,
    UuidDefaultsChecker,
    PartitioningChecker,
    ToastStorageChecker,
)


def build_registry(queries: Any = None, check_config: Optional[CheckConfig] = None) -> Registry:
    """
    Собрать полный каталог проверок.

    Args:
        queries: Доступ к данным (PostgresQueries); None для команд без БД (list, explain)
        check_config: Опции проверок по CheckID

    Returns:
        Registry в порядке отображения
    """
    return Registry(cls(queries, check_config) for cls in CHECKER_CLASSES)


__all__ = ["CHECKER_CLASSES", "build_registry"]
