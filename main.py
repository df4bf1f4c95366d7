#!/usr/bin/env python3
"""
Shein Insights - Main Entry Point

Ingests Shein product exports (or canonical product JSON) into the chunked
category store behind the analytics dashboard, and inspects what is stored.

Usage:
    python main.py --ingest feed.json -c dresses            # Upload a feed
    python main.py --ingest curvy.json -c dresses --variant curvy
    python main.py --show -c dresses --sort reviews         # Browse a category
    python main.py --stats                                  # Summary of all categories
    python main.py --watch -c dresses knitwear              # Live updates
"""
import argparse
import asyncio
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent))

from rich.console import Console
from rich.table import Table

from config.settings import CatalogConfig, LoggingConfig, PipelineConfig, StorageConfig
from src.extractors.feed_extractor import FeedParseError
from src.favorites import FavoritesManager
from src.insights import SortKey, category_stats, sort_products
from src.loaders.chunk_store import InMemoryChunkStore
from src.loaders.chunked_loader import CategorySaveError, ChunkedCategoryLoader
from src.logging_config import setup_logging
from src.pipeline import IngestionPipeline, UnknownCategoryError, print_header
from src.transformers.product_cleaner import ProductCleaner

console = Console()

POPULARITY_STYLES = {"high": "green", "medium": "yellow", "low": "red"}


class CustomHelpFormatter(argparse.RawDescriptionHelpFormatter):
    """Custom formatter that preserves formatting and adds width."""

    def __init__(self, prog):
        super().__init__(prog, max_help_position=40, width=100)


def parse_args(argv=None):
    """Parse command line arguments."""
    catalog = CatalogConfig()
    category_list = "\n".join(
        f"    {key:<14} {label}" for key, label in catalog.categories.items()
    )

    epilog = f"""
━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
AVAILABLE CATEGORIES
━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
{category_list}

━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
EXAMPLES
━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
  Uploads:
    python main.py --ingest shein.json -c dresses          Replace dresses
    python main.py --ingest curvy.json -c dresses --variant curvy
                                                           Replace only curvy dresses

  Browsing:
    python main.py --show -c knitwear                      Sorted by popularity
    python main.py --show -c knitwear --sort priceAsc      Cheapest first
    python main.py --stats                                 Summary of every category

  Favorites & Live Updates:
    python main.py --toggle-favorite p123 -c dresses       Star/unstar a product
    python main.py --watch -c dresses knitwear             Print changes as they land

  Offline:
    python main.py --memory --ingest shein.json -c dresses --show
                                                           Dry run, nothing persisted
"""

    parser = argparse.ArgumentParser(
        description="Shein product analytics ingestion pipeline",
        epilog=epilog,
        formatter_class=CustomHelpFormatter,
    )

    parser.add_argument(
        "-c",
        "--categories",
        nargs="+",
        default=[],
        metavar="CATEGORY",
        help="Category key(s) to act on",
    )

    ingest_group = parser.add_argument_group("Ingestion")
    ingest_group.add_argument(
        "--ingest",
        metavar="FILE",
        help="Upload a JSON file (Shein export or canonical products)",
    )
    ingest_group.add_argument(
        "--variant",
        choices=["standard", "curvy"],
        help="Tag uploaded products and replace only that partition",
    )

    browse_group = parser.add_argument_group("Browsing")
    browse_group.add_argument("--show", action="store_true", help="List products")
    browse_group.add_argument(
        "--sort",
        choices=[key.value for key in SortKey],
        default=SortKey.POPULARITY.value,
        help="Sort order for --show (default: popularity)",
    )
    browse_group.add_argument(
        "--limit", type=int, default=25, help="Rows to show per category (default: 25)"
    )
    browse_group.add_argument(
        "--stats", action="store_true", help="Show summary statistics per category"
    )
    browse_group.add_argument(
        "--toggle-favorite",
        metavar="PRODUCT_ID",
        help="Add/remove a product (from -c category) to favorites",
    )
    browse_group.add_argument(
        "--watch", action="store_true", help="Print live updates until Ctrl+C"
    )

    storage_group = parser.add_argument_group("Storage")
    storage_group.add_argument(
        "--memory",
        action="store_true",
        help="Use an in-memory store instead of Supabase",
    )
    storage_group.add_argument(
        "--chunk-size",
        type=int,
        default=450,
        help="Products per stored chunk (default: 450)",
    )
    storage_group.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: INFO)",
    )
    storage_group.add_argument(
        "--no-log-file",
        action="store_true",
        help="Log to the console only",
    )

    return parser.parse_args(argv)


def print_products(loader: ChunkedCategoryLoader, category_key: str, sort_by: str, limit: int):
    """Print a category's products as a table."""
    products = sort_products(loader.get_category(category_key), sort_by)

    table = Table(title=f"{category_key} ({len(products)} products)", show_header=True)
    table.add_column("ID", style="dim")
    table.add_column("Name", style="cyan")
    table.add_column("Price", justify="right")
    table.add_column("Rating", justify="right")
    table.add_column("Reviews", justify="right")
    table.add_column("Popularity")
    table.add_column("Variant", style="dim")

    for product in products[:limit]:
        popularity = product.popularity.value
        table.add_row(
            product.id,
            product.name[:50],
            f"${product.price:.2f}",
            f"{product.rating:.1f}",
            product.review_count_display,
            f"[{POPULARITY_STYLES[popularity]}]{popularity}[/{POPULARITY_STYLES[popularity]}]",
            product.variant_tag.value if product.variant_tag else "",
        )

    console.print(table)


def print_stats(loader: ChunkedCategoryLoader, pipeline_config: PipelineConfig):
    """Print summary statistics for every category."""
    table = Table(title="Category Statistics", show_header=True)
    table.add_column("Category", style="cyan")
    table.add_column("Products", justify="right")
    table.add_column("High Popularity", justify="right")
    table.add_column("Total Reviews", justify="right")
    table.add_column("Avg Price", justify="right")
    table.add_column("Top Product")

    for category_key, label in pipeline_config.catalog.categories.items():
        stats = category_stats(loader.get_category(category_key))
        if stats is None:
            table.add_row(label, "0", "-", "-", "-", "-")
            continue
        table.add_row(
            label,
            str(stats.total_products),
            str(stats.high_popularity),
            f"{stats.total_reviews:,}",
            f"${stats.average_price:.2f}",
            stats.top_product.name[:40],
        )

    console.print(table)


async def create_loader(args, pipeline_config: PipelineConfig) -> ChunkedCategoryLoader:
    """Create the loader over Supabase, or in memory with --memory."""
    if args.memory:
        store = InMemoryChunkStore()
    else:
        from src.loaders.supabase_loader import SupabaseChunkStore

        store = await SupabaseChunkStore.connect(pipeline_config.storage)

    return ChunkedCategoryLoader(
        store,
        storage_config=pipeline_config.storage,
        cleaner=ProductCleaner(pipeline_config.cleaner),
    )


async def watch(loader: ChunkedCategoryLoader, categories: list[str]):
    """Subscribe to categories and print every update until cancelled."""

    def make_callback(category_key: str):
        def on_update(products):
            console.print(
                f"[green]↻ {category_key}: {len(products)} products[/green]"
            )

        return on_update

    subscriptions = [
        await loader.subscribe(category_key, make_callback(category_key))
        for category_key in categories
    ]
    console.print("[dim]Watching for changes (Ctrl+C to stop)...[/dim]")
    try:
        await asyncio.Event().wait()
    finally:
        for subscription in subscriptions:
            await subscription.close()


async def run(args, pipeline_config: PipelineConfig) -> int:
    """Run the requested actions."""
    unknown = [c for c in args.categories if not pipeline_config.catalog.is_known(c)]
    if unknown:
        raise UnknownCategoryError(", ".join(unknown))

    loader = await create_loader(args, pipeline_config)
    print_header(pipeline_config, "memory" if args.memory else "supabase")

    if args.ingest:
        if len(args.categories) != 1:
            console.print("[red]--ingest needs exactly one category (-c)[/red]")
            return 2
        pipeline = IngestionPipeline(loader, pipeline_config)
        await pipeline.ingest_file(args.categories[0], args.ingest, variant_tag=args.variant)

    if args.toggle_favorite:
        if len(args.categories) != 1:
            console.print("[red]--toggle-favorite needs exactly one category (-c)[/red]")
            return 2
        products = await loader.load_category(args.categories[0])
        product = next((p for p in products if p.id == args.toggle_favorite), None)
        if product is None:
            console.print(
                f"[red]Product {args.toggle_favorite} not found in {args.categories[0]}[/red]"
            )
            return 1
        favorites = FavoritesManager(loader, pipeline_config.catalog)
        await favorites.load()
        if await favorites.toggle(product):
            console.print(f"[green]⭐ {product.name} added to favorites[/green]")
        else:
            console.print(f"[yellow]{product.name} removed from favorites[/yellow]")

    if args.show:
        for category_key in args.categories:
            if not args.memory:
                await loader.load_category(category_key)
            print_products(loader, category_key, args.sort, args.limit)

    if args.stats:
        if not args.memory:
            for category_key in pipeline_config.catalog.categories:
                await loader.load_category(category_key)
        print_stats(loader, pipeline_config)

    if args.watch:
        if not args.categories:
            console.print("[red]--watch needs at least one category (-c)[/red]")
            return 2
        await watch(loader, args.categories)

    return 0


def main(argv=None):
    """Main entry point."""
    args = parse_args(argv)

    try:
        pipeline_config = PipelineConfig(
            storage=StorageConfig(chunk_size=args.chunk_size),
            logging=LoggingConfig(
                log_level=args.log_level, log_to_file=not args.no_log_file
            ),
        )
    except ValueError as e:
        console.print(f"[bold red]Invalid configuration: {e}[/bold red]")
        return 2
    setup_logging(pipeline_config.logging)

    if not any([args.ingest, args.show, args.stats, args.watch, args.toggle_favorite]):
        console.print("[yellow]Nothing to do. See --help.[/yellow]")
        return 0

    try:
        return asyncio.run(run(args, pipeline_config))
    except FeedParseError as e:
        console.print(f"\n[bold red]Invalid upload: {e}[/bold red]")
        return 1
    except UnknownCategoryError as e:
        console.print(f"\n[bold red]{e}[/bold red]")
        return 2
    except CategorySaveError as e:
        console.print(f"\n[bold red]{e}[/bold red]")
        console.print("[yellow]Nothing was saved; retry the upload.[/yellow]")
        return 1
    except KeyboardInterrupt:
        console.print("\n[yellow]Stopped by user[/yellow]")
        return 130
    except Exception as e:
        console.print(f"\n[bold red]Unexpected error: {e}[/bold red]")
        return 1


if __name__ == "__main__":
    sys.exit(main())
