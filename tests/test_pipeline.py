"""
End-to-end tests for admin uploads through the ingestion pipeline.

Run with: pytest tests/test_pipeline.py -v
"""

import asyncio
import json

import pytest

from src.extractors.feed_extractor import FeedParseError
from src.loaders.chunk_store import InMemoryChunkStore, StorageError
from src.loaders.chunked_loader import CategorySaveError, ChunkedCategoryLoader
from src.pipeline import IngestionPipeline, UnknownCategoryError
from src.transformers.popularity import Popularity


def shein_feed():
    return [
        {
            "id": "p1",
            "Product Name": "Floral Dress",
            "Sale Price": "$12.99",
            "Comment Count": "1,240",
            "Average Rating": "4.8",
            "Main Image": "http://x/1.jpg",
        },
        {
            "id": "p2",
            "Product Name": "Phone Case Pink",
            "Sale Price": "$3.00",
            "Main Image": "http://x/2.jpg",
        },
        {
            "id": "p3",
            "Product Name": "Ribbed Knit Top",
            "Sale Price": "Not Available",
            "Main Image": "http://x/3.jpg",
        },
        {
            "id": "p1",
            "Product Name": "Floral Dress (copy)",
            "Sale Price": "$12.99",
            "Main Image": "http://x/1b.jpg",
        },
        {
            "id": "Free Version is limited to 25 rows, upgrade to see the 95 other rows",
        },
    ]


class TestIngestionPipeline:
    def setup_method(self):
        self.store = InMemoryChunkStore()
        self.loader = ChunkedCategoryLoader(self.store)
        self.pipeline = IngestionPipeline(self.loader, quiet=True)

    def test_raw_feed_ingest(self):
        result = asyncio.run(self.pipeline.ingest("dresses", json.dumps(shein_feed())))

        assert result.feed_format == "shein"
        assert result.received == 5
        assert result.normalized == 4
        assert result.kept == 1
        assert result.stored == 1
        assert result.chunks == 1

        [product] = self.loader.get_category("dresses")
        assert product.id == "p1"
        assert product.price == 12.99
        assert product.review_count == 1240
        assert product.rating == 4.8
        assert product.popularity == Popularity.HIGH
        assert product.images == ["http://x/1.jpg"]

    def test_canonical_ingest_with_variant(self):
        canonical = [
            {"id": "c1", "name": "Wrap Dress", "price": 21, "image": "c1.jpg", "rating": 4, "reviews": 80},
            {"id": "c2", "name": "Slip Dress", "price": "$18.50", "image": "c2.jpg"},
        ]

        result = asyncio.run(
            self.pipeline.ingest("dresses", json.dumps(canonical), variant_tag="curvy")
        )

        assert result.feed_format == "canonical"
        stored = self.loader.get_category("dresses")
        assert [p.id for p in stored] == ["c1", "c2"]
        assert all(p.variant_tag == "curvy" for p in stored)
        assert stored[1].price == 18.5

    def test_variant_upload_keeps_other_partition(self):
        standard = [{"id": "s1", "name": "Midi Dress", "price": 30, "image": "s1.jpg"}]
        curvy = [{"id": "k1", "name": "Maxi Dress", "price": 35, "image": "k1.jpg"}]

        async def scenario():
            await self.pipeline.ingest("dresses", json.dumps(standard), variant_tag="standard")
            await self.pipeline.ingest("dresses", json.dumps(curvy), variant_tag="curvy")
            await self.pipeline.ingest("dresses", json.dumps(curvy), variant_tag="curvy")

        asyncio.run(scenario())
        assert [p.id for p in self.loader.get_category("dresses")] == ["k1", "s1"]

    def test_fully_rejected_variant_upload_keeps_other_partition(self):
        standard = [{"id": "s1", "name": "Midi Dress", "price": 30, "image": "s1.jpg"}]
        rejected = [
            {
                "id": "k1",
                "Product Name": "Maxi Dress",
                "Sale Price": "Not Available",
                "Main Image": "http://x/k1.jpg",
            }
        ]

        async def scenario():
            await self.pipeline.ingest("dresses", json.dumps(standard), variant_tag="standard")
            result = await self.pipeline.ingest(
                "dresses", json.dumps(rejected), variant_tag="curvy"
            )
            return result, await self.loader.load_category("dresses")

        result, stored = asyncio.run(scenario())

        assert result.kept == 0
        assert [p.id for p in stored] == ["s1"]

    def test_malformed_json_rejected_without_writes(self):
        with pytest.raises(FeedParseError):
            asyncio.run(self.pipeline.ingest("dresses", '[{"id": '))
        assert self.store.write_count == 0

    def test_non_array_rejected(self):
        with pytest.raises(FeedParseError, match="array"):
            asyncio.run(self.pipeline.ingest("dresses", '{"products": []}'))
        assert self.store.write_count == 0

    def test_unknown_category(self):
        with pytest.raises(UnknownCategoryError):
            asyncio.run(self.pipeline.ingest("shoes", "[]"))

    def test_storage_failure_keeps_previous_data(self):
        feed = json.dumps(shein_feed())
        asyncio.run(self.pipeline.ingest("dresses", feed))
        self.store.fail_next_write(StorageError("quota exceeded"))

        with pytest.raises(CategorySaveError, match="quota exceeded"):
            asyncio.run(self.pipeline.ingest("dresses", "[]"))
        assert [p.id for p in self.loader.get_category("dresses")] == ["p1"]

    def test_ingest_file(self, tmp_path):
        path = tmp_path / "vacation.json"
        path.write_text(json.dumps(shein_feed()), encoding="utf-8")

        result = asyncio.run(self.pipeline.ingest_file("vacation", path))

        assert result.stored == 1
        assert result.category == "vacation"
