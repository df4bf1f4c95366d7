"""
Tests for sorting, category statistics and favorites.

Run with: pytest tests/test_insights.py -v
"""

import asyncio

import pytest

from src.favorites import FavoritesManager
from src.insights import SortKey, category_stats, sort_products
from src.loaders.chunk_store import InMemoryChunkStore
from src.loaders.chunked_loader import ChunkedCategoryLoader

from conftest import build_product


@pytest.fixture
def catalog():
    return [
        build_product("a", price=30, rating=3.0, reviewCount=10),  # low
        build_product("b", price=10, rating=5.0, reviewCount=2000),  # high
        build_product("c", price=20, rating=4.0, reviewCount=300),  # medium
        build_product("d", price=10, rating=4.9, reviewCount=5000),  # high
    ]


class TestSortProducts:
    def test_popularity_is_stable(self, catalog):
        assert [p.id for p in sort_products(catalog)] == ["b", "d", "c", "a"]

    def test_reviews(self, catalog):
        assert [p.id for p in sort_products(catalog, SortKey.REVIEWS)] == ["d", "b", "c", "a"]

    def test_rating(self, catalog):
        assert [p.id for p in sort_products(catalog, "rating")] == ["b", "d", "c", "a"]

    def test_price_ascending(self, catalog):
        assert [p.id for p in sort_products(catalog, "priceAsc")] == ["b", "d", "c", "a"]

    def test_price_descending(self, catalog):
        assert [p.id for p in sort_products(catalog, "priceDesc")] == ["a", "c", "b", "d"]

    def test_returns_copy(self, catalog):
        original = list(catalog)
        sort_products(catalog, SortKey.PRICE_DESC)
        assert catalog == original

    def test_unknown_key(self, catalog):
        with pytest.raises(ValueError):
            sort_products(catalog, "newest")


class TestCategoryStats:
    def test_empty(self):
        assert category_stats([]) is None

    def test_summary(self, catalog):
        stats = category_stats(catalog)

        assert stats.total_products == 4
        assert stats.high_popularity == 2
        assert stats.total_reviews == 7310
        assert stats.average_price == pytest.approx(17.5)
        assert stats.top_product.id == "b"


class TestFavorites:
    def test_toggle_adds_and_removes(self):
        store = InMemoryChunkStore()

        async def scenario():
            favorites = FavoritesManager(ChunkedCategoryLoader(store))
            await favorites.load()
            product = build_product("p1", variant="curvy")

            added = await favorites.toggle(product)
            stored_after_add = favorites.favorites()
            removed = not await favorites.toggle(product)
            return added, stored_after_add, removed, favorites.favorites()

        added, after_add, removed, after_remove = asyncio.run(scenario())

        assert added and removed
        assert [p.id for p in after_add] == ["p1"]
        assert after_add[0].variant_tag is None
        assert after_remove == []

    def test_favorites_persist(self):
        store = InMemoryChunkStore()

        async def scenario():
            favorites = FavoritesManager(ChunkedCategoryLoader(store))
            await favorites.add(build_product("p1"))
            await favorites.add(build_product("p2"))

            reopened = FavoritesManager(ChunkedCategoryLoader(store))
            return await reopened.load()

        assert [p.id for p in asyncio.run(scenario())] == ["p1", "p2"]

    def test_duplicate_add_and_missing_remove_are_noops(self):
        store = InMemoryChunkStore()

        async def scenario():
            favorites = FavoritesManager(ChunkedCategoryLoader(store))
            await favorites.add(build_product("p1"))
            writes = store.write_count
            await favorites.add(build_product("p1"))
            await favorites.remove("missing")
            return writes, favorites.is_favorite("p1")

        writes, is_favorite = asyncio.run(scenario())
        assert store.write_count == writes
        assert is_favorite

    def test_add_without_load_keeps_stored_favorites(self):
        store = InMemoryChunkStore()

        async def scenario():
            first = FavoritesManager(ChunkedCategoryLoader(store))
            await first.add(build_product("p1"))

            second = FavoritesManager(ChunkedCategoryLoader(store))
            await second.add(build_product("p2"))
            return await FavoritesManager(ChunkedCategoryLoader(store)).load()

        assert [p.id for p in asyncio.run(scenario())] == ["p1", "p2"]
