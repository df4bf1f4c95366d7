"""
Ingestion pipeline orchestrating extraction, transformation, cleaning and loading.
"""

import math
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Optional, Union

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from config.settings import PipelineConfig, config
from src.extractors.feed_extractor import FeedPayload, load_feed_file, parse_feed_json
from src.loaders.chunked_loader import ChunkedCategoryLoader
from src.transformers.product_cleaner import ProductCleaner
from src.transformers.product_transformer import Product, SheinTransformer, VariantTag

console = Console()


class UnknownCategoryError(KeyError):
    """Category key is not one of the configured dashboard categories."""

    def __str__(self) -> str:
        return f"Unknown category: {self.args[0]}"


@dataclass
class IngestResult:
    """Summary of one upload."""

    category: str
    feed_format: str
    received: int
    normalized: int
    kept: int
    stored: int
    chunks: int
    elapsed_seconds: float = 0.0


class IngestionPipeline:
    """
    Admin upload pipeline.

    Orchestrates:
    - Extract: parse the uploaded JSON and detect its format
    - Transform: normalize raw Shein rows into Products
    - Clean: drop invalid, non-apparel and duplicate products
    - Load: merge into the category and persist it in chunks
    """

    def __init__(
        self,
        loader: ChunkedCategoryLoader,
        pipeline_config: Optional[PipelineConfig] = None,
        quiet: bool = False,
    ):
        self.config = pipeline_config or config
        self.loader = loader
        self.transformer = SheinTransformer()
        self.cleaner = ProductCleaner(self.config.cleaner)
        self.quiet = quiet

    def _check_category(self, category_key: str) -> None:
        if not self.config.catalog.is_known(category_key):
            raise UnknownCategoryError(category_key)

    def _print(self, message: str) -> None:
        if not self.quiet:
            console.print(message)

    async def ingest(
        self,
        category_key: str,
        text: Union[str, bytes],
        variant_tag: Optional[Union[VariantTag, str]] = None,
    ) -> IngestResult:
        """
        Ingest an uploaded JSON document into a category.

        Raises:
            UnknownCategoryError: unknown category key
            FeedParseError: malformed JSON or non-array payload
            CategorySaveError: storage failure (nothing applied)
        """
        self._check_category(category_key)
        payload = parse_feed_json(text)
        return await self._run(category_key, payload, variant_tag)

    async def ingest_file(
        self,
        category_key: str,
        path: Union[str, Path],
        variant_tag: Optional[Union[VariantTag, str]] = None,
    ) -> IngestResult:
        """Ingest an uploaded JSON file into a category."""
        self._check_category(category_key)
        payload = load_feed_file(path)
        return await self._run(category_key, payload, variant_tag)

    def _transform(
        self, payload: FeedPayload, variant_tag: Optional[VariantTag]
    ) -> list[Product]:
        """Transform phase: raw feeds are normalized, canonical arrays coerced."""
        if payload.is_raw:
            return self.transformer.transform_batch(payload.items, variant_tag=variant_tag)

        products = [p for p in map(self.cleaner.coerce, payload.items) if p is not None]
        if variant_tag:
            products = [p.model_copy(update={"variant_tag": variant_tag}) for p in products]
        return products

    async def _run(
        self,
        category_key: str,
        payload: FeedPayload,
        variant_tag: Optional[Union[VariantTag, str]],
    ) -> IngestResult:
        start_time = datetime.now()
        variant_tag = VariantTag(variant_tag) if variant_tag else None

        self._print(
            f"\n[bold blue]═══ EXTRACT ═══[/bold blue] "
            f"{len(payload.items)} rows ({payload.format_name} format)"
        )

        normalized = self._transform(payload, variant_tag)
        self._print(
            f"[bold blue]═══ TRANSFORM ═══[/bold blue] {len(normalized)} products"
        )

        cleaned = self.cleaner.clean(normalized)
        self._print(
            f"[bold blue]═══ CLEAN ═══[/bold blue] {len(cleaned)} kept, "
            f"{len(normalized) - len(cleaned)} rejected"
        )

        stored = await self.loader.save_category(
            category_key, cleaned, variant_tag=variant_tag
        )
        chunk_size = self.loader.config.chunk_size
        self._print(
            f"[bold blue]═══ LOAD ═══[/bold blue] {len(stored)} products stored in "
            f"'{category_key}'"
        )

        result = IngestResult(
            category=category_key,
            feed_format=payload.format_name,
            received=len(payload.items),
            normalized=len(normalized),
            kept=len(cleaned),
            stored=len(stored),
            chunks=math.ceil(len(stored) / chunk_size),
            elapsed_seconds=(datetime.now() - start_time).total_seconds(),
        )
        if not self.quiet:
            self._print_summary(result)
        return result

    def _print_summary(self, result: IngestResult) -> None:
        """Print final ingestion summary."""
        label = self.config.catalog.categories.get(result.category, result.category)
        table = Table(title=f"Ingestion Results: {label}", show_header=True)
        table.add_column("Metric", style="cyan")
        table.add_column("Value", style="green")

        table.add_row("Feed Format", result.feed_format)
        table.add_row("Rows Received", str(result.received))
        table.add_row("Products Normalized", str(result.normalized))
        table.add_row("Products Kept", str(result.kept))
        table.add_row("Products Stored", str(result.stored))
        table.add_row("Chunks Written", str(result.chunks))
        table.add_row("Time Elapsed", f"{result.elapsed_seconds:.2f} seconds")

        console.print(table)


def print_header(pipeline_config: PipelineConfig, backend: str) -> None:
    header = Panel(
        "[bold white]SHEIN INSIGHTS INGESTION[/bold white]\n"
        f"[dim]Categories: {', '.join(pipeline_config.catalog.categories)}[/dim]\n"
        f"[dim]Chunk size: {pipeline_config.storage.chunk_size}[/dim]\n"
        f"[dim]Storage: {backend}[/dim]",
        title="🛍️ Product Analytics",
        border_style="blue",
    )
    console.print(header)
