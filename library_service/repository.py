"""
Repository interfaces for the storage layer.

These interfaces define the data-access contract without coupling the
services to a specific storage engine. ``database.SqliteStore`` and
``memory.InMemoryStore`` implement them.
"""
from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Any, Callable, Dict, Generic, Iterator, List, Mapping, Optional, Type, TypeVar

from library_service.book import Book
from library_service.entity import to_storage_value
from library_service.loan import Loan
from library_service.member import Member

T = TypeVar("T")

Filters = Mapping[str, Any]


class Repository(ABC, Generic[T]):
    """CRUD and query operations over one entity type."""

    entity_cls: Type[T]

    @abstractmethod
    def add(self, entity: T) -> T:
        """Persist a new entity and return a copy with its id assigned."""

    @abstractmethod
    def get(self, entity_id: int) -> Optional[T]:
        """Return the entity with the given id, or None."""

    @abstractmethod
    def update(self, entity: T) -> Optional[T]:
        """Overwrite a stored entity. Returns None when the id is unknown."""

    @abstractmethod
    def remove(self, entity_id: int) -> bool:
        """Delete an entity. Returns False when the id is unknown."""

    @abstractmethod
    def query(self, filters: Optional[Filters] = None) -> Iterator[T]:
        """Lazily yield entities whose fields equal the given filter values, ordered by id."""

    def count(self, filters: Optional[Filters] = None) -> int:
        return sum(1 for _ in self.query(filters))

    def find_one(self, filters: Filters) -> Optional[T]:
        results = self.query(filters)
        try:
            return next(iter(results), None)
        finally:
            close = getattr(results, "close", None)
            if close is not None:
                close()


class Store(ABC):
    """Groups the repositories behind one unit of work."""

    books: Repository[Book]
    members: Repository[Member]
    loans: Repository[Loan]

    @abstractmethod
    @contextmanager
    def atomic(self) -> Iterator[None]:
        """All writes inside the block are applied together or not at all."""
        yield

    def close(self) -> None:
        return None


class QueryResult(Generic[T]):
    """Lazy, restartable sequence over a repository query.

    Nothing is read until iteration starts, and every new iteration reads the
    store again.
    """

    def __init__(self, source: Callable[[], Iterator[T]]) -> None:
        self._source = source

    def __iter__(self) -> Iterator[T]:
        return iter(self._source())

    def first(self) -> Optional[T]:
        return next(iter(self), None)

    def all(self) -> List[T]:
        return list(self)

    def count(self) -> int:
        return sum(1 for _ in self)


def storage_filters(filters: Optional[Filters]) -> Dict[str, Any]:
    return {key: to_storage_value(value) for key, value in (filters or {}).items()}
