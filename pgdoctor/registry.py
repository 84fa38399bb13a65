"""
Registry of available checks.

Built once at process start and passed explicitly to the selector and the
orchestrator; tests construct smaller registries directly.
"""

from typing import Dict, Iterable, Iterator, List, Optional, Tuple

from pgdoctor.core.base_checker import Checker
from pgdoctor.core.errors import RegistryError
from pgdoctor.core.models import CHECK_ID_PATTERN, Category


class Registry:
    """Неизменяемый каталог проверок с поиском по CheckID и категории."""

    def __init__(self, checkers: Iterable[Checker]):
        """
        Args:
            checkers: Проверки в порядке выполнения и отображения

        Raises:
            RegistryError: пустой, некорректный или повторяющийся CheckID
        """
        ordered = tuple(checkers)
        index: Dict[str, Checker] = {}

        for checker in ordered:
            check_id = checker.metadata().check_id
            if not check_id:
                raise RegistryError(f"checker {type(checker).__name__} has an empty check id")
            if not CHECK_ID_PATTERN.match(check_id):
                raise RegistryError(f"check id {check_id!r} is not a kebab-case token")
            if check_id in index:
                raise RegistryError(f"duplicate check id {check_id!r}")
            index[check_id] = checker

        self._checkers: Tuple[Checker, ...] = ordered
        self._index = index

    def all(self) -> Tuple[Checker, ...]:
        """Все проверки в стабильном порядке."""
        return self._checkers

    def by_category(self, category: Category) -> List[Checker]:
        return [c for c in self._checkers if c.metadata().category == category]

    def find(self, check_id: str) -> Optional[Checker]:
        """
        Найти проверку по CheckID.

        Пара (Checker, found) выражена через Optional: None означает
        "не найдено", любое другое значение означает found=True. Проверка
        никогда не бывает None, поэтому значения не пересекаются.

        Args:
            check_id: Идентификатор проверки (kebab-case)

        Returns:
            Checker или None, если такого CheckID нет в каталоге
        """
        return self._index.get(check_id)

    def ids(self) -> List[str]:
        return [c.metadata().check_id for c in self._checkers]

    def __contains__(self, check_id: object) -> bool:
        return check_id in self._index

    def __iter__(self) -> Iterator[Checker]:
        return iter(self._checkers)

    def __len__(self) -> int:
        return len(self._checkers)
