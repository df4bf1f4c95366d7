"""
Favorites management on top of the chunked category loader.

Favorites are an ordinary category. They are stored without a variant tag
so every save replaces the whole favorites list.
"""

from typing import Optional

from config.settings import CatalogConfig
from src.loaders.chunked_loader import ChunkedCategoryLoader
from src.logging_config import get_logger
from src.transformers.product_transformer import Product

logger = get_logger(__name__)


class FavoritesManager:
    """Add, remove and toggle favorite products."""

    def __init__(
        self,
        loader: ChunkedCategoryLoader,
        catalog_config: Optional[CatalogConfig] = None,
    ):
        self.loader = loader
        self.category_key = (catalog_config or CatalogConfig()).favorites_key
        self._loaded = False

    async def load(self) -> list[Product]:
        products = await self.loader.load_category(self.category_key)
        self._loaded = True
        return products

    async def _ensure_loaded(self) -> None:
        # Saves replace the whole list, so they must start from what is stored
        if not self._loaded:
            await self.load()

    def favorites(self) -> list[Product]:
        return self.loader.get_category(self.category_key)

    def is_favorite(self, product_id: str) -> bool:
        return any(p.id == product_id for p in self.favorites())

    async def add(self, product: Product) -> list[Product]:
        await self._ensure_loaded()
        if self.is_favorite(product.id):
            return self.favorites()
        updated = self.favorites() + [product.model_copy(update={"variant_tag": None})]
        saved = await self.loader.save_category(self.category_key, updated)
        logger.info("Added %s to favorites", product.name)
        return saved

    async def remove(self, product_id: str) -> list[Product]:
        await self._ensure_loaded()
        if not self.is_favorite(product_id):
            return self.favorites()
        updated = [p for p in self.favorites() if p.id != product_id]
        saved = await self.loader.save_category(self.category_key, updated)
        logger.info("Removed %s from favorites", product_id)
        return saved

    async def toggle(self, product: Product) -> bool:
        """Toggle a favorite. Returns True if the product is now a favorite."""
        await self._ensure_loaded()
        if self.is_favorite(product.id):
            await self.remove(product.id)
            return False
        await self.add(product)
        return True
