"""
Product cleaner: validity filter, non-apparel keyword filter and dedup.

Cleaning is a stable filter (input order is preserved) and idempotent:
cleaning an already-cleaned list returns it unchanged.
"""

from typing import Iterable, Optional, Union

from pydantic import ValidationError

from config.settings import CleanerConfig
from src.logging_config import get_logger

from .product_transformer import Product, is_fallback_id

logger = get_logger(__name__)

ProductLike = Union[Product, dict]


class ProductCleaner:
    """Filters a batch of product records down to displayable apparel."""

    def __init__(self, cleaner_config: Optional[CleanerConfig] = None):
        self.config = cleaner_config or CleanerConfig()
        self.excluded_keywords = [
            kw.lower() for kw in self.config.excluded_keywords if kw and kw.strip()
        ]

    @staticmethod
    def coerce(record: ProductLike) -> Optional[Product]:
        """Turn a stored/admin record into a Product, None if it can't be read."""
        if isinstance(record, Product):
            return record
        if not isinstance(record, dict):
            logger.debug("Rejected non-object record: %r", record)
            return None
        try:
            return Product.model_validate(record)
        except ValidationError as e:
            logger.debug(
                "Rejected unreadable record %r: %s",
                record.get("id"),
                e.errors()[0]["msg"] if e.errors() else e,
            )
            return None

    def rejection_reason(self, product: Product) -> Optional[str]:
        """Why the product fails the validity/keyword filters, None if it passes."""
        if not product.name:
            return "missing name"
        if product.name == self.config.unnamed_marker:
            return "unnamed product"
        if product.price <= 0:
            return "missing price"
        if not product.image:
            return "missing image"

        name_lower = product.name.lower()
        for keyword in self.excluded_keywords:
            if keyword in name_lower:
                return f"excluded keyword '{keyword}'"

        return None

    @staticmethod
    def dedup_key(product: Product) -> tuple[str, str]:
        """Feed ids when trustworthy, the name for generated ids."""
        if is_fallback_id(product.id):
            return ("name", product.name)
        return ("id", product.id)

    def clean(self, records: Iterable[ProductLike]) -> list[Product]:
        """Return the valid, apparel-only, de-duplicated products in input order."""
        seen: set[tuple[str, str]] = set()
        cleaned = []
        rejected = 0

        for record in records:
            product = self.coerce(record)
            if product is None:
                rejected += 1
                continue

            reason = self.rejection_reason(product)
            if reason:
                logger.debug("Rejected %s (%s): %s", product.id, product.name, reason)
                rejected += 1
                continue

            key = self.dedup_key(product)
            if key in seen:
                logger.debug("Rejected duplicate %s (%s)", product.id, product.name)
                rejected += 1
                continue

            seen.add(key)
            cleaned.append(product)

        if rejected:
            logger.debug("Cleaner kept %d, rejected %d", len(cleaned), rejected)
        return cleaned


_default_cleaner: Optional[ProductCleaner] = None


def clean_products(records: Iterable[ProductLike]) -> list[Product]:
    """Clean with the default configuration."""
    global _default_cleaner
    if _default_cleaner is None:
        _default_cleaner = ProductCleaner()
    return _default_cleaner.clean(records)
