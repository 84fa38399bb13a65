"""
Loader for the SQL files shipped in pgdoctor/db/sql.

Each file belongs to one check and holds one or more named statements:

    -- name: BrokenIndexes :many
    SELECT ...
"""

import re
from functools import lru_cache
from pathlib import Path
from typing import Dict


SQL_DIR = Path(__file__).parent / "sql"

_NAME_MARKER = re.compile(r"^--\s*name:\s*(\w+)(?:\s+:\w+)?\s*$", re.MULTILINE)


@lru_cache(maxsize=None)
def load_sql(check_id: str) -> str:
    """Текст SQL файла проверки целиком."""
    path = SQL_DIR / f"{check_id}.sql"
    return path.read_text(encoding="utf-8")


def parse_named_queries(text: str) -> Dict[str, str]:
    """Разбить текст на именованные запросы по маркерам '-- name:'."""
    markers = list(_NAME_MARKER.finditer(text))
    queries: Dict[str, str] = {}
    for i, marker in enumerate(markers):
        end = markers[i + 1].start() if i + 1 < len(markers) else len(text)
        body = text[marker.end():end].strip()
        queries[marker.group(1)] = body.rstrip(";").strip()
    return queries


@lru_cache(maxsize=None)
def load_named_queries(check_id: str) -> Dict[str, str]:
    return parse_named_queries(load_sql(check_id))


def named_query(check_id: str, name: str) -> str:
    """
    Получить именованный запрос.

    Raises:
        KeyError: в файле нет запроса с таким именем
    """
    queries = load_named_queries(check_id)
    if name not in queries:
        raise KeyError(f"query {name!r} not found in {check_id}.sql")
    return queries[name]
