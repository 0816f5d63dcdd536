"""In-memory store implementation.

Rows are kept as plain dictionaries produced by the entities' own mapping
functions, so callers never share mutable objects with the store. Used by the
tests and selected by `LIBRARY_STORAGE=memory` to run without a database file.
"""
from __future__ import annotations

import copy
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterator, Optional, Sequence, Type, TypeVar

from library_service.book import Book
from library_service.errors import ConflictError
from library_service.loan import Loan
from library_service.member import Member
from library_service.repository import Filters, Repository, Store, storage_filters

T = TypeVar("T")


def _sqlite_timestamp() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S")


class InMemoryRepository(Repository[T]):
    def __init__(self, entity_cls: Type[T], unique: Sequence[str] = (),
                 defaults: Optional[Dict[str, Callable[[], Any]]] = None) -> None:
        self.entity_cls = entity_cls
        self.unique = tuple(unique)
        self.defaults = defaults or {}
        self._rows: Dict[int, Dict[str, Any]] = {}
        self._next_id = 1
        self._label = entity_cls.__name__

    def _check_unique(self, row: Dict[str, Any], own_id: Optional[int] = None) -> None:
        for field in self.unique:
            value = row.get(field)
            for entity_id, existing in self._rows.items():
                if entity_id != own_id and existing.get(field) == value:
                    raise ConflictError(f"{self._label} with {field} {value} already exists.", field=field)

    def add(self, entity: T) -> T:
        row = entity.to_dict()
        self._check_unique(row)
        for key, factory in self.defaults.items():
            if row.get(key) is None:
                row[key] = factory()
        row["id"] = self._next_id
        self._next_id += 1
        self._rows[row["id"]] = row
        return self.entity_cls.from_dict(dict(row))

    def get(self, entity_id: int) -> Optional[T]:
        row = self._rows.get(entity_id)
        return self.entity_cls.from_dict(dict(row)) if row is not None else None

    def update(self, entity: T) -> Optional[T]:
        existing = self._rows.get(entity.id)
        if existing is None:
            return None
        row = entity.to_dict()
        self._check_unique(row, own_id=entity.id)
        # Depo tarafından üretilen alanlar korunur
        for key in self.defaults:
            row[key] = existing.get(key)
        self._rows[entity.id] = row
        return self.get(entity.id)

    def remove(self, entity_id: int) -> bool:
        return self._rows.pop(entity_id, None) is not None

    def query(self, filters: Optional[Filters] = None) -> Iterator[T]:
        wanted = storage_filters(filters)
        for key in wanted:
            if key not in self.entity_cls.field_names():
                raise ValueError(f"Unknown field for {self._label}: {key}")
        for entity_id in sorted(self._rows):
            row = self._rows.get(entity_id)
            if row is None:
                continue
            if all(row.get(key) == value for key, value in wanted.items()):
                yield self.entity_cls.from_dict(dict(row))

    def snapshot(self) -> tuple:
        return copy.deepcopy(self._rows), self._next_id

    def restore(self, state: tuple) -> None:
        self._rows, self._next_id = state


class InMemoryStore(Store):
    """In-memory store; ``atomic`` restores a snapshot when the block fails."""

    def __init__(self) -> None:
        self.books = InMemoryRepository(Book, unique=("isbn",), defaults={"created_at": _sqlite_timestamp})
        self.members = InMemoryRepository(Member, unique=("email",))
        self.loans = InMemoryRepository(Loan)
        self._depth = 0

    def _repositories(self):
        return (self.books, self.members, self.loans)

    @contextmanager
    def atomic(self) -> Iterator[None]:
        if self._depth:
            self._depth += 1
            try:
                yield
            finally:
                self._depth -= 1
            return
        saved = [repo.snapshot() for repo in self._repositories()]
        self._depth = 1
        try:
            yield
        except BaseException:
            for repo, state in zip(self._repositories(), saved):
                repo.restore(state)
            raise
        finally:
            self._depth = 0
