"""
Storage port for chunked category data.

A category's product list is persisted as numbered chunks (0..n-1) so no
single row/document grows past the backing store's size limit. Older data
may still live in a single legacy row per category.

InMemoryChunkStore implements the port in-process. It is what the test suite
and the --memory CLI mode run against.
"""

import asyncio
import copy
import itertools
from abc import ABC, abstractmethod
from typing import Awaitable, Callable, Iterable, Optional

from src.logging_config import get_logger

logger = get_logger(__name__)

OnChange = Callable[[], None]
Unsubscribe = Callable[[], Awaitable[None]]


class StorageError(RuntimeError):
    """A storage operation failed."""


class ChunkStore(ABC):
    """Narrow persistence interface used by ChunkedCategoryLoader."""

    @abstractmethod
    async def list_chunks(self, category_key: str) -> list[tuple[int, list[dict]]]:
        """Return (chunk_index, products) pairs stored for the category."""

    @abstractmethod
    async def write_chunks(
        self,
        category_key: str,
        chunks: dict[int, list[dict]],
        delete_indices: Iterable[int] = (),
        delete_legacy: bool = False,
    ) -> None:
        """
        Write chunks, delete stale chunk indices and optionally the legacy row,
        all as one atomic batch.
        """

    @abstractmethod
    async def read_legacy(self, category_key: str) -> Optional[list[dict]]:
        """Return the legacy single-row product list, or None if there is none."""

    @abstractmethod
    async def subscribe_chunks(self, category_key: str, on_change: OnChange) -> Unsubscribe:
        """Call on_change whenever any chunk of the category changes."""

    @abstractmethod
    async def subscribe_legacy(self, category_key: str, on_change: OnChange) -> Unsubscribe:
        """Call on_change whenever the category's legacy row changes."""


class InMemoryChunkStore(ChunkStore):
    """Process-local ChunkStore with atomic batches and change watches."""

    def __init__(self):
        self._chunks: dict[str, dict[int, list[dict]]] = {}
        self._legacy: dict[str, list[dict]] = {}
        self._watchers: dict[tuple[str, str], dict[int, OnChange]] = {}
        self._tokens = itertools.count()
        self._fail_next: Optional[Exception] = None
        self.write_count = 0

    # ------------------------------------------------------------------
    # Test/seed helpers
    # ------------------------------------------------------------------

    def fail_next_write(self, error: Optional[Exception] = None) -> None:
        """Make the next write_chunks call raise without applying anything."""
        self._fail_next = error or StorageError("simulated write failure")

    def set_legacy(self, category_key: str, products: list[dict]) -> None:
        """Seed a legacy single-row list for a category."""
        self._legacy[category_key] = copy.deepcopy(products)
        self._notify("legacy", category_key)

    def chunk_indices(self, category_key: str) -> list[int]:
        return sorted(self._chunks.get(category_key, {}))

    def chunk_sizes(self, category_key: str) -> list[int]:
        chunks = self._chunks.get(category_key, {})
        return [len(chunks[i]) for i in sorted(chunks)]

    def has_legacy(self, category_key: str) -> bool:
        return category_key in self._legacy

    def watch_count(self, category_key: Optional[str] = None) -> int:
        """Number of live watches, optionally for one category."""
        return sum(
            len(callbacks)
            for (_, key), callbacks in self._watchers.items()
            if category_key is None or key == category_key
        )

    # ------------------------------------------------------------------
    # ChunkStore
    # ------------------------------------------------------------------

    async def list_chunks(self, category_key: str) -> list[tuple[int, list[dict]]]:
        await asyncio.sleep(0)
        chunks = self._chunks.get(category_key, {})
        return [(index, copy.deepcopy(products)) for index, products in chunks.items()]

    async def write_chunks(
        self,
        category_key: str,
        chunks: dict[int, list[dict]],
        delete_indices: Iterable[int] = (),
        delete_legacy: bool = False,
    ) -> None:
        await asyncio.sleep(0)

        if self._fail_next is not None:
            error, self._fail_next = self._fail_next, None
            raise error

        # Build the new state aside, then swap it in
        updated = dict(self._chunks.get(category_key, {}))
        for index, products in chunks.items():
            updated[int(index)] = copy.deepcopy(products)
        for index in delete_indices:
            updated.pop(int(index), None)

        legacy_removed = delete_legacy and category_key in self._legacy

        if updated:
            self._chunks[category_key] = updated
        else:
            self._chunks.pop(category_key, None)
        if legacy_removed:
            del self._legacy[category_key]
        self.write_count += 1

        self._notify("chunks", category_key)
        if legacy_removed:
            self._notify("legacy", category_key)

    async def read_legacy(self, category_key: str) -> Optional[list[dict]]:
        await asyncio.sleep(0)
        if category_key not in self._legacy:
            return None
        return copy.deepcopy(self._legacy[category_key])

    async def subscribe_chunks(self, category_key: str, on_change: OnChange) -> Unsubscribe:
        return self._watch("chunks", category_key, on_change)

    async def subscribe_legacy(self, category_key: str, on_change: OnChange) -> Unsubscribe:
        return self._watch("legacy", category_key, on_change)

    def _watch(self, kind: str, category_key: str, on_change: OnChange) -> Unsubscribe:
        key = (kind, category_key)
        token = next(self._tokens)
        self._watchers.setdefault(key, {})[token] = on_change

        async def unsubscribe() -> None:
            callbacks = self._watchers.get(key)
            if callbacks is None:
                return
            callbacks.pop(token, None)
            if not callbacks:
                del self._watchers[key]

        return unsubscribe

    def _notify(self, kind: str, category_key: str) -> None:
        for on_change in list(self._watchers.get((kind, category_key), {}).values()):
            try:
                on_change()
            except Exception:
                logger.exception("Change listener for %s/%s failed", kind, category_key)
