"""
Sorting and summary statistics for a category's products.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union

from src.transformers.popularity import Popularity
from src.transformers.product_transformer import Product


class SortKey(str, Enum):
    POPULARITY = "popularity"
    REVIEWS = "reviews"
    RATING = "rating"
    PRICE_ASC = "priceAsc"
    PRICE_DESC = "priceDesc"


@dataclass
class CategoryStats:
    """Dashboard summary for one category."""

    total_products: int
    high_popularity: int
    total_reviews: int
    average_price: float
    top_product: Product


def sort_products(
    products: list[Product], sort_by: Union[SortKey, str] = SortKey.POPULARITY
) -> list[Product]:
    """Return a sorted copy; ties keep their original order."""
    sort_by = SortKey(sort_by)

    if sort_by == SortKey.POPULARITY:
        return sorted(products, key=lambda p: p.popularity.rank, reverse=True)
    if sort_by == SortKey.REVIEWS:
        return sorted(products, key=lambda p: p.review_count, reverse=True)
    if sort_by == SortKey.RATING:
        return sorted(products, key=lambda p: p.rating, reverse=True)
    if sort_by == SortKey.PRICE_ASC:
        return sorted(products, key=lambda p: p.price)
    return sorted(products, key=lambda p: p.price, reverse=True)


def category_stats(products: list[Product]) -> Optional[CategoryStats]:
    """Summarize a category, None when it is empty."""
    if not products:
        return None

    # max() keeps the first of equal elements
    top_product = max(products, key=lambda p: (p.popularity.rank, p.rating))

    return CategoryStats(
        total_products=len(products),
        high_popularity=sum(1 for p in products if p.popularity == Popularity.HIGH),
        total_reviews=sum(p.review_count for p in products),
        average_price=sum(p.price for p in products) / len(products),
        top_product=top_product,
    )
