"""
Configuration settings for the Shein insights ingestion pipeline.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

# Load .env file from project root
load_dotenv(Path(__file__).parent.parent / ".env")


@dataclass
class StorageConfig:
    """Configuration for chunked category storage."""

    # Products per chunk. 450 keeps a chunk well under the ~1 MB row/document
    # limit of the backing store.
    chunk_size: int = 450

    # Supabase tables
    chunks_table: str = "category_chunks"
    legacy_table: str = "categories"

    # Postgres function that applies a whole save in one transaction
    save_rpc: str = "save_category_chunks"

    supabase_url: Optional[str] = field(
        default_factory=lambda: os.getenv("SUPABASE_URL")
    )
    supabase_key: Optional[str] = field(
        default_factory=lambda: os.getenv("SUPABASE_KEY")
    )

    def __post_init__(self):
        if not isinstance(self.chunk_size, int) or self.chunk_size < 1:
            raise ValueError(
                f"chunk_size must be a positive integer, got {self.chunk_size!r}"
            )


@dataclass
class CleanerConfig:
    """Configuration for product cleaning."""

    # Placeholder name given to feed rows without a product name
    unnamed_marker: str = "Sin nombre"

    # Non-apparel items that show up in the Shein feeds. Matched as
    # lowercase substrings of the product name, Spanish and English.
    excluded_keywords: list = field(
        default_factory=lambda: [
            # Glue / adhesives
            "pegamento",
            "glue",
            "adhesivo",
            "adhesive",
            # Home
            "colchón",
            "colchon",
            "mattress",
            "manta",
            "blanket",
            "desinfectante",
            "disinfectant",
            # Beauty
            "pestañas",
            "lashes",
            "uñas",
            "nail art",
            "nail polish",
            "press on nail",
            "maquillaje",
            "makeup",
            # Toys / games
            "figura de acción",
            "action figure",
            "figurine",
            "juguete",
            "toy",
            "videojuego",
            "juego de mesa",
            "board game",
            "game",
            # Electronics
            "funda para teléfono",
            "funda de teléfono",
            "funda de celular",
            "phone case",
            "cable",
            "cargador",
            "charger",
            "auriculares",
            "audífonos",
            "headphones",
            "earbuds",
            # Accessories we don't track
            "botas",
            "boots",
            "coletero",
            "liga para el cabello",
            "hair tie",
            "riñonera",
            "fanny pack",
            "calcetines",
            "socks",
        ]
    )


@dataclass
class CatalogConfig:
    """Category keys shown on the dashboard."""

    categories: dict = field(
        default_factory=lambda: {
            "knitwear": "Prendas Tejidas",
            "topsBlouses": "Tops y Blusas",
            "dresses": "Vestidos",
            "vacation": "Ropa de Vacaciones",
            "trendsNow": "Tendencias",
            "favorites": "Favoritos",
        }
    )
    favorites_key: str = "favorites"

    def is_known(self, category_key: str) -> bool:
        return category_key in self.categories


@dataclass
class LoggingConfig:
    """Configuration for logging."""

    log_dir: Path = field(default_factory=lambda: Path(__file__).parent.parent / "logs")
    log_level: str = "INFO"
    log_to_file: bool = True
    log_to_console: bool = True

    def ensure_dirs(self) -> None:
        """Create log directory if it doesn't exist."""
        self.log_dir.mkdir(parents=True, exist_ok=True)


@dataclass
class PipelineConfig:
    """Main configuration combining all settings."""

    storage: StorageConfig = field(default_factory=StorageConfig)
    cleaner: CleanerConfig = field(default_factory=CleanerConfig)
    catalog: CatalogConfig = field(default_factory=CatalogConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


# Default configuration instance
config = PipelineConfig()
