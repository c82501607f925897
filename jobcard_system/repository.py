"""In-memory repositories backing the catalogs and job card graphs."""

from __future__ import annotations

from typing import Dict, Generic, Iterator, List, MutableMapping, Optional, TypeVar

T = TypeVar("T")


class RepositoryError(RuntimeError):
    """Base exception for repository errors."""


class DuplicateRecordError(RepositoryError):
    """Raised when attempting to insert a record that already exists."""


class RecordNotFoundError(RepositoryError):
    """Raised when a requested record is missing."""


class InMemoryRepository(Generic[T]):
    """Generic repository backed by a simple dictionary."""

    def __init__(self) -> None:
        self._items: MutableMapping[str, T] = {}

    def __contains__(self, item_id: object) -> bool:
        return item_id in self._items

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[T]:
        return iter(list(self._items.values()))

    def add(self, item_id: str, item: T) -> None:
        if item_id in self._items:
            raise DuplicateRecordError(f"Record with id {item_id!r} already exists")
        self._items[item_id] = item

    def upsert(self, item_id: str, item: T) -> None:
        self._items[item_id] = item

    def get(self, item_id: str) -> T:
        try:
            return self._items[item_id]
        except KeyError as exc:
            raise RecordNotFoundError(f"Record with id {item_id!r} not found") from exc

    def find(self, item_id: Optional[str]) -> Optional[T]:
        if item_id is None:
            return None
        return self._items.get(item_id)

    def list(self) -> List[T]:
        return list(self._items.values())

    def read_only(self) -> "CatalogView[T]":
        return CatalogView(self)


class CatalogView(Generic[T]):
    """Read-only lookup over a repository.

    Generation only ever reads catalog data; handing it a view instead of the
    repository keeps concurrent generation calls from mutating shared state.
    """

    def __init__(self, repository: InMemoryRepository[T]) -> None:
        self._repository = repository

    def __contains__(self, item_id: object) -> bool:
        return item_id in self._repository

    def __len__(self) -> int:
        return len(self._repository)

    def __iter__(self) -> Iterator[T]:
        return iter(self._repository)

    def get(self, item_id: str) -> T:
        return self._repository.get(item_id)

    def find(self, item_id: Optional[str]) -> Optional[T]:
        return self._repository.find(item_id)

    def list(self) -> List[T]:
        return self._repository.list()


def index_by_id(items: List[T], key: str = "id") -> Dict[str, T]:
    return {getattr(item, key): item for item in items}


__all__ = [
    "InMemoryRepository",
    "CatalogView",
    "RepositoryError",
    "DuplicateRecordError",
    "RecordNotFoundError",
    "index_by_id",
]
