"""
Selection of checks to run.

Precedence:
1. preset replaces the full registry as the base
2. include intersects the working set
3. categories intersect the working set
4. exclude removes from the working set, always last
"""

from dataclasses import dataclass
from typing import Dict, FrozenSet, Iterable, List, Optional, Tuple

from pgdoctor.core.base_checker import Checker
from pgdoctor.core.errors import SelectionError
from pgdoctor.core.models import Category
from pgdoctor.registry import Registry


PRESET_ALL = "all"
PRESET_TRIAGE = "triage"

# None = весь каталог
PRESETS: Dict[str, Optional[Tuple[str, ...]]] = {
    PRESET_ALL: None,
    PRESET_TRIAGE: (
        "connection-health",
        "connection-efficiency",
        "replication-lag",
        "replication-slots",
        "table-bloat",
        "table-vacuum-health",
        "freeze-age",
        "invalid-indexes",
        "temp-usage",
        "cache-efficiency",
    ),
}


def split_csv(value: Optional[str]) -> FrozenSet[str]:
    """Разобрать список через запятую, пустые элементы отбросить."""
    if not value:
        return frozenset()
    return frozenset(token.strip() for token in value.split(",") if token.strip())


@dataclass(frozen=True)
class SelectionRequest:
    """Запрос пользователя на выбор проверок."""

    include: FrozenSet[str] = frozenset()
    exclude: FrozenSet[str] = frozenset()
    categories: FrozenSet[str] = frozenset()
    preset: Optional[str] = None

    @classmethod
    def from_csv(
        cls,
        include: Optional[str] = None,
        exclude: Optional[str] = None,
        categories: Optional[str] = None,
        preset: Optional[str] = None,
    ) -> "SelectionRequest":
        return cls(
            include=split_csv(include),
            exclude=split_csv(exclude),
            categories=split_csv(categories),
            preset=preset.strip() if preset and preset.strip() else None,
        )


@dataclass(frozen=True)
class Selection:
    """Результат выбора: проверки в порядке каталога."""

    checkers: Tuple[Checker, ...]
    request: SelectionRequest

    @property
    def empty(self) -> bool:
        return not self.checkers

    def ids(self) -> List[str]:
        return [c.metadata().check_id for c in self.checkers]


def _require_known(registry: Registry, ids: Iterable[str]) -> None:
    for check_id in sorted(ids):
        if check_id not in registry:
            raise SelectionError(check_id, kind="check")


def select(registry: Registry, request: SelectionRequest) -> Selection:
    """
    Вычислить набор проверок для запуска.

    Args:
        registry: Каталог проверок
        request: Запрос на выбор

    Returns:
        Selection (пустой результат не является ошибкой)

    Raises:
        SelectionError: неизвестный CheckID, категория или пресет
    """
    # Все токены проверяются до любой фильтрации
    _require_known(registry, request.include)
    _require_known(registry, request.exclude)
    categories = {Category.parse(token) for token in sorted(request.categories)}

    working: List[Checker] = list(registry.all())

    if request.preset is not None:
        if request.preset not in PRESETS:
            raise SelectionError(request.preset, kind="preset")
        preset_ids = PRESETS[request.preset]
        if preset_ids is not None:
            allowed = set(preset_ids)
            working = [c for c in working if c.metadata().check_id in allowed]

    if request.include:
        working = [c for c in working if c.metadata().check_id in request.include]

    if categories:
        working = [c for c in working if c.metadata().category in categories]

    if request.exclude:
        working = [c for c in working if c.metadata().check_id not in request.exclude]

    return Selection(checkers=tuple(working), request=request)
