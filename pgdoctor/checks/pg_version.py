"""
PostgreSQL server version check.
"""

import re
from typing import Optional, Protocol

from pgdoctor.checks.resources import make_metadata
from pgdoctor.core.base_checker import BaseChecker
from pgdoctor.core.context import CheckContext
from pgdoctor.core.models import Category, Report, Severity
from pgdoctor.db.rows import ServerVersionRow

_VERSION_RE = re.compile(r"^PostgreSQL\s+(\d+)")

EOL_BELOW = 10
APPROACHING_EOL_BELOW = 12


class VersionQueries(Protocol):
    async def server_version(self) -> ServerVersionRow:
        ...


def parse_major_version(version_string: str) -> Optional[int]:
    """'PostgreSQL 15.3 on x86_64...' -> 15; None, если строка не распознана."""
    match = _VERSION_RE.match(version_string.strip())
    if match is None:
        return None
    return int(match.group(1))


class PgVersionChecker(BaseChecker):
    """Проверка поддерживаемости мажорной версии сервера."""

    meta = make_metadata(
        "pg-version",
        "PostgreSQL Version",
        Category.CONFIGS,
        "Checks that the server runs a supported major version",
    )

    queries: VersionQueries

    async def _check(self, ctx: CheckContext, report: Report, options) -> None:
        row = await self.fetch(self.queries.server_version())
        major = parse_major_version(row.version_string)

        if major is None:
            report.add_finding(self.finding(
                Severity.WARN,
                f"Could not parse version from: {row.version_string}",
            ))
        elif major < EOL_BELOW:
            report.add_finding(self.finding(
                Severity.FAIL,
                f"PostgreSQL {major} is end-of-life and unsupported. Upgrade immediately.",
            ))
        elif major < APPROACHING_EOL_BELOW:
            report.add_finding(self.finding(
                Severity.WARN,
                f"PostgreSQL {major} is approaching end-of-life. Plan an upgrade.",
            ))
        else:
            report.add_finding(self.ok_finding(f"PostgreSQL {major} is supported."))
