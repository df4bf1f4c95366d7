"""
Chunked category loader.

Persists each category's product list as bounded-size chunks through a
ChunkStore, reconstructs it on read (falling back to the legacy single-row
format), merges uploads per variant partition and keeps an in-memory cache
of every loaded category fresh through store subscriptions.

Concurrent saves to the same category are not coordinated: both load, both
merge against what they loaded, and the last batch to commit wins.
"""

import asyncio
import inspect
import math
from typing import Awaitable, Callable, Iterable, Optional, Union

from config.settings import StorageConfig
from src.logging_config import get_logger
from src.transformers.product_cleaner import ProductCleaner, ProductLike
from src.transformers.product_transformer import Product, VariantTag

from .chunk_store import ChunkStore, StorageError, Unsubscribe

logger = get_logger(__name__)

CategoryCallback = Callable[[list[Product]], Union[None, Awaitable[None]]]


class CategorySaveError(StorageError):
    """Saving a category failed; nothing was applied."""

    def __init__(self, category_key: str, cause: Exception):
        self.category_key = category_key
        super().__init__(f"Failed to save category '{category_key}': {cause}")


def _variant_tag_of(record: ProductLike) -> Optional[str]:
    """Variant tag of a Product or a raw stored record, lowercased."""
    if isinstance(record, Product):
        return record.variant_tag.value if record.variant_tag else None
    if isinstance(record, dict):
        tag = record.get("variantTag", record.get("variant_tag"))
        if tag:
            return str(tag).strip().lower() or None
    return None


def chunk_products(records: list[dict], chunk_size: int) -> dict[int, list[dict]]:
    """Split records into {0: first chunk_size, 1: next chunk_size, ...}."""
    total_chunks = math.ceil(len(records) / chunk_size)
    return {
        index: records[index * chunk_size : (index + 1) * chunk_size]
        for index in range(total_chunks)
    }


class Subscription:
    """Live view of one category; close() stops delivery and releases watches."""

    def __init__(
        self,
        loader: "ChunkedCategoryLoader",
        category_key: str,
        callback: CategoryCallback,
    ):
        self.loader = loader
        self.category_key = category_key
        self.callback = callback
        self.active = True
        # Bumped per change; only the latest reload may deliver
        self.generation = 0
        self._unsubscribers: list[Unsubscribe] = []

    async def close(self) -> None:
        if not self.active:
            return
        self.active = False
        unsubscribers, self._unsubscribers = self._unsubscribers, []
        for unsubscribe in unsubscribers:
            try:
                await unsubscribe()
            except Exception:
                logger.exception(
                    "Failed to release watch for category '%s'", self.category_key
                )
        self.loader._forget(self)


class ChunkedCategoryLoader:
    """
    Loads and saves category product lists through a ChunkStore.

    - Read: chunks sorted by integer index, else the legacy row, then cleaned
    - Write: merge by variant tag, clean, chunk, prune, drop legacy, one batch
    """

    def __init__(
        self,
        store: ChunkStore,
        storage_config: Optional[StorageConfig] = None,
        cleaner: Optional[ProductCleaner] = None,
    ):
        self.store = store
        self.config = storage_config or StorageConfig()
        self.cleaner = cleaner or ProductCleaner()

        # Process-wide cache: category key -> cleaned products
        self.products_by_category: dict[str, list[Product]] = {}

        self._subscriptions: set[Subscription] = set()
        self._pending: set[asyncio.Task] = set()

    def get_category(self, category_key: str) -> list[Product]:
        """Cached products for a category (empty until loaded)."""
        return list(self.products_by_category.get(category_key, []))

    async def _fetch_raw(self, category_key: str) -> tuple[list[dict], list[int]]:
        """
        Reconstruct the stored list without cleaning.

        Returns:
            (records, chunk indices currently present)
        """
        chunks = await self.store.list_chunks(category_key)
        if not chunks:
            legacy = await self.store.read_legacy(category_key)
            return list(legacy or []), []

        # Indices may come back as strings from some backends; "10" must sort
        # after "2".
        ordered = sorted(((int(index), products) for index, products in chunks), key=lambda c: c[0])
        records = []
        for _, products in ordered:
            records.extend(products or [])
        return records, [index for index, _ in ordered]

    async def _reconstruct(self, category_key: str) -> list[Product]:
        """Read and clean a category without touching the cache."""
        records, indices = await self._fetch_raw(category_key)
        products = self.cleaner.clean(records)

        source = f"{len(indices)} chunks" if indices else "legacy row"
        logger.debug(
            "Loaded %s: %d products from %s (%d stored)",
            category_key,
            len(products),
            source,
            len(records),
        )
        return products

    async def load_category(self, category_key: str) -> list[Product]:
        """Load, clean and cache a category's products."""
        products = await self._reconstruct(category_key)
        self.products_by_category[category_key] = products
        return list(products)

    async def save_category(
        self,
        category_key: str,
        incoming: Iterable[ProductLike],
        variant_tag: Optional[Union[VariantTag, str]] = None,
    ) -> list[Product]:
        """
        Merge incoming products into a category and persist it.

        When the first incoming product carries a variant tag, only that
        partition is replaced and products with other tags are kept. Without
        a tag the category is replaced outright.

        Args:
            category_key: Category to save
            incoming: Products (or product records) to merge in
            variant_tag: Partition to replace, overriding the tag of the first
                incoming product. Lets an empty upload clear one partition.

        Returns:
            The cleaned list now stored for the category

        Raises:
            CategorySaveError: if loading or writing failed. The store is left
                untouched and the cached list keeps its previous value.
        """
        incoming = list(incoming)
        chunk_size = self.config.chunk_size
        if variant_tag:
            incoming_tag = VariantTag(variant_tag).value
        else:
            incoming_tag = _variant_tag_of(incoming[0]) if incoming else None

        try:
            current, existing_indices = await self._fetch_raw(category_key)

            if incoming_tag:
                kept = [r for r in current if _variant_tag_of(r) != incoming_tag]
                merged = incoming + kept
            else:
                merged = incoming

            final = self.cleaner.clean(merged)
            chunks = chunk_products([p.to_record() for p in final], chunk_size)
            total_chunks = len(chunks)

            delete_indices = []
            if existing_indices and max(existing_indices) >= total_chunks:
                delete_indices = list(range(total_chunks, max(existing_indices) + 1))

            await self.store.write_chunks(
                category_key,
                chunks,
                delete_indices=delete_indices,
                delete_legacy=True,
            )
        except Exception as e:
            logger.error("Save of category '%s' failed: %s", category_key, e)
            raise CategorySaveError(category_key, e) from e

        self.products_by_category[category_key] = final

        logger.info(
            "Saved %s: %d products in %d chunks%s%s",
            category_key,
            len(final),
            total_chunks,
            f" (partition '{incoming_tag}')" if incoming_tag else "",
            f", pruned chunks {delete_indices}" if delete_indices else "",
        )
        return list(final)

    # ------------------------------------------------------------------
    # Live updates
    # ------------------------------------------------------------------

    async def subscribe(
        self, category_key: str, callback: CategoryCallback
    ) -> Subscription:
        """
        Watch a category and deliver the reconstructed, cleaned list to
        callback on every change (and once right away).
        """
        subscription = Subscription(self, category_key, callback)
        loop = asyncio.get_running_loop()

        def on_change() -> None:
            try:
                running = asyncio.get_running_loop()
            except RuntimeError:
                running = None
            if running is loop:
                self._spawn_refresh(subscription)
            else:
                loop.call_soon_threadsafe(self._spawn_refresh, subscription)

        self._subscriptions.add(subscription)
        try:
            subscription._unsubscribers.append(
                await self.store.subscribe_chunks(category_key, on_change)
            )
            subscription._unsubscribers.append(
                await self.store.subscribe_legacy(category_key, on_change)
            )
        except Exception:
            await subscription.close()
            raise

        await self._refresh(subscription, subscription.generation)
        return subscription

    def _spawn_refresh(self, subscription: Subscription) -> None:
        if not subscription.active:
            return
        subscription.generation += 1
        task = asyncio.get_running_loop().create_task(
            self._refresh(subscription, subscription.generation)
        )
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _refresh(self, subscription: Subscription, generation: int) -> None:
        """
        Reload and deliver; errors stay inside this subscription.

        A reload overtaken by a newer change is dropped before it reaches the
        cache or the callback, so a slow read can't deliver an older list last.
        """
        if not subscription.active:
            return
        try:
            products = await self._reconstruct(subscription.category_key)
            if not subscription.active:
                return
            if generation != subscription.generation:
                logger.debug(
                    "Dropped stale reload of '%s' (generation %d, latest %d)",
                    subscription.category_key,
                    generation,
                    subscription.generation,
                )
                return
            self.products_by_category[subscription.category_key] = products
            result = subscription.callback(list(products))
            if inspect.isawaitable(result):
                await result
        except Exception:
            logger.exception(
                "Live update for category '%s' failed", subscription.category_key
            )

    def _forget(self, subscription: Subscription) -> None:
        self._subscriptions.discard(subscription)

    async def flush(self) -> None:
        """Wait for in-flight live-update deliveries."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def close(self) -> None:
        """Close every subscription and wait for pending deliveries."""
        for subscription in list(self._subscriptions):
            await subscription.close()
        await self.flush()
