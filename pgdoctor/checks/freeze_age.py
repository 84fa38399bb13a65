"""
Transaction ID wraparound (freeze age) check.
"""

from typing import List, Protocol

from pgdoctor.checks.format import format_bytes, format_number
from pgdoctor.checks.resources import make_metadata
from pgdoctor.core.base_checker import BaseChecker
from pgdoctor.core.context import CheckContext
from pgdoctor.core.models import Category, Report, Severity, Table
from pgdoctor.db.rows import DatabaseFreezeAgeRow, TableFreezeAgeRow

# Past this age PostgreSQL is close to forcing anti-wraparound shutdown
WRAPAROUND_DANGER_AGE = 1_200_000_000
DEFAULT_FREEZE_MAX_AGE = 200_000_000


class FreezeAgeQueries(Protocol):
    async def database_freeze_age(self) -> List[DatabaseFreezeAgeRow]:
        ...

    async def table_freeze_age(self) -> List[TableFreezeAgeRow]:
        ...


class FreezeAgeChecker(BaseChecker):
    """Проверка возраста замороженных XID баз и таблиц."""

    meta = make_metadata(
        "freeze-age",
        "Freeze Age",
        Category.VACUUM,
        "Checks transaction ID age of databases and tables against wraparound limits",
    )

    queries: FreezeAgeQueries

    async def _check(self, ctx: CheckContext, report: Report, options) -> None:
        databases = await self.fetch(self.queries.database_freeze_age())
        tables = await self.fetch(self.queries.table_freeze_age())

        freeze_max_age = databases[0].freeze_max_age if databases else DEFAULT_FREEZE_MAX_AGE

        db_table = Table(("Database", "XID age", "% of wraparound danger"))
        for row in databases:
            if row.freeze_age >= WRAPAROUND_DANGER_AGE:
                severity = Severity.FAIL
            elif row.freeze_age > row.freeze_max_age:
                severity = Severity.WARN
            else:
                severity = Severity.OK
            db_table.add_row(
                [
                    row.database_name,
                    format_number(row.freeze_age),
                    f"{row.freeze_age / WRAPAROUND_DANGER_AGE * 100:.1f}%",
                ],
                severity,
            )
        report.add_finding(self.table_finding(
            db_table,
            f"{{count}} database(s) older than autovacuum_freeze_max_age ({format_number(freeze_max_age)})",
            "Database freeze ages are within autovacuum_freeze_max_age",
            name="Database freeze age",
        ))

        tbl_table = Table(("Table", "XID age", "Size", "Last vacuum"))
        for row in tables:
            last = [ts for ts in (row.last_autovacuum, row.last_vacuum) if ts is not None]
            tbl_table.add_row(
                [
                    row.table_name,
                    format_number(row.freeze_age),
                    format_bytes(row.table_size_bytes),
                    max(last).strftime("%Y-%m-%d") if last else "never",
                ],
                Severity.WARN if row.freeze_age > freeze_max_age else Severity.OK,
            )
        report.add_finding(self.table_finding(
            tbl_table,
            "{count} table(s) need an aggressive (freeze) vacuum",
            "No tables above autovacuum_freeze_max_age",
            name="Table freeze age",
        ))
