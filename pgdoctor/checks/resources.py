"""
Package resources attached to check metadata: readme and SQL text.
"""

from functools import lru_cache
from pathlib import Path

from pgdoctor.core.models import Category, Metadata
from pgdoctor.db.statements import load_sql

DOCS_DIR = Path(__file__).parent / "docs"


@lru_cache(maxsize=None)
def load_readme(check_id: str) -> str:
    """Текст docs/<check_id>.md; пустая строка, если файла нет."""
    path = DOCS_DIR / f"{check_id}.md"
    if not path.exists():
        return ""
    return path.read_text(encoding="utf-8")


def make_metadata(check_id: str, name: str, category: Category, description: str) -> Metadata:
    """Metadata проверки вместе с её readme и SQL."""
    return Metadata(
        check_id=check_id,
        name=name,
        category=category,
        description=description,
        readme=load_readme(check_id),
        sql=load_sql(check_id),
    )
