"""
Core data models for pgdoctor.

Severity, categories, check metadata and the finding/report model that
checkers produce and the aggregator and renderers consume.
"""

import re
from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import Any, Dict, Iterable, Iterator, List, Optional, Sequence, Tuple

from .errors import SelectionError


CHECK_ID_PATTERN = re.compile(r"^[a-z0-9]+(-[a-z0-9]+)*$")


class Severity(IntEnum):
    """Уровень здоровья. Порядок фиксирован: OK < WARN < FAIL."""
    OK = 0
    WARN = 1
    FAIL = 2

    @property
    def label(self) -> str:
        return self.name

    @classmethod
    def worst(cls, severities: Iterable["Severity"]) -> "Severity":
        """Максимум по severity; для пустого набора OK."""
        return max(severities, default=cls.OK)


class Category(Enum):
    """Категория проверки (только для группировки и фильтрации)."""
    CONFIGS = "configs"
    PERFORMANCE = "performance"
    VACUUM = "vacuum"
    INDEXES = "indexes"
    SCHEMA = "schema"

    @classmethod
    def parse(cls, token: str) -> "Category":
        """Разобрать имя категории, для неизвестного имени SelectionError."""
        try:
            return cls(token.strip().lower())
        except ValueError:
            raise SelectionError(token, kind="category") from None

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class Metadata:
    """Статическое описание проверки."""

    check_id: str
    name: str
    category: Category
    description: str
    readme: str = ""
    sql: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "check_id": self.check_id,
            "name": self.name,
            "category": self.category.value,
            "description": self.description,
        }


@dataclass(frozen=True)
class TableRow:
    """Строка таблицы, ячейки выровнены по заголовкам."""

    cells: Tuple[str, ...]
    severity: Severity = Severity.OK

    def __post_init__(self):
        object.__setattr__(self, "cells", tuple(str(c) for c in self.cells))


@dataclass
class Table:
    """Табличное приложение к Finding (например, одна строка на роль)."""

    headers: Tuple[str, ...]
    rows: List[TableRow] = field(default_factory=list)

    def __post_init__(self):
        self.headers = tuple(self.headers)
        for row in self.rows:
            self._validate(row)

    def _validate(self, row: TableRow) -> None:
        if len(row.cells) != len(self.headers):
            raise ValueError(
                f"table row has {len(row.cells)} cells, expected {len(self.headers)}: {row.cells!r}"
            )

    def add_row(self, cells: Sequence[Any], severity: Severity = Severity.OK) -> TableRow:
        row = TableRow(cells=tuple(cells), severity=severity)
        self._validate(row)
        self.rows.append(row)
        return row

    @property
    def severity(self) -> Severity:
        return Severity.worst(row.severity for row in self.rows)

    def problem_rows(self) -> List[TableRow]:
        """Строки с severity выше OK (их и показывают рендереры)."""
        return [row for row in self.rows if row.severity > Severity.OK]

    def __len__(self) -> int:
        return len(self.rows)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "headers": list(self.headers),
            "rows": [
                {"cells": list(row.cells), "severity": row.severity.label}
                for row in self.rows
            ],
        }


@dataclass
class Finding:
    """Одно суждение проверки."""

    id: str
    name: str
    severity: Severity
    details: str = ""
    table: Optional[Table] = None

    @property
    def effective_severity(self) -> Severity:
        """Severity с учётом строк таблицы."""
        if self.table is None:
            return self.severity
        return max(self.severity, self.table.severity)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "severity": self.severity.label,
            "details": self.details,
            "table": self.table.to_dict() if self.table is not None else None,
        }


@dataclass
class Report:
    """Результат одного запуска проверки."""

    check_id: str
    name: str
    category: Category
    findings: List[Finding] = field(default_factory=list)

    @classmethod
    def for_metadata(cls, meta: Metadata) -> "Report":
        return cls(check_id=meta.check_id, name=meta.name, category=meta.category)

    def add_finding(self, finding: Finding) -> Finding:
        self.findings.append(finding)
        return finding

    @property
    def severity(self) -> Severity:
        return Severity.worst(f.effective_severity for f in self.findings)

    def __iter__(self) -> Iterator[Finding]:
        return iter(self.findings)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "check_id": self.check_id,
            "name": self.name,
            "category": self.category.value,
            "severity": self.severity.label,
            "findings": [f.to_dict() for f in self.findings],
        }


# Per-check options: {"session-settings": {"roles": "app_ro,app_rw"}}
CheckConfig = Dict[str, Dict[str, str]]
