"""
pytest configuration and shared fixtures for the ingestion pipeline tests.
"""

import sys
from pathlib import Path

import pytest

# Add project root to path for imports
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from src.transformers.product_transformer import Product  # noqa: E402


def build_product(product_id: str, name: str = None, variant: str = None, **fields) -> Product:
    """A valid, displayable product with sensible defaults."""
    data = {
        "id": product_id,
        "name": name or f"Dress {product_id}",
        "price": 19.99,
        "rating": 4.5,
        "reviewCount": 120,
        "image": f"https://img.example.com/{product_id}.jpg",
        "category": "Dresses",
        "variantTag": variant,
    }
    data.update(fields)
    return Product.model_validate(data)


@pytest.fixture
def make_product():
    return build_product


@pytest.fixture
def raw_row():
    """One row of a Shein export as the scraper delivers it."""
    return {
        "id": "p1",
        "Product Name": "Floral Dress",
        "Sale Price": "$12.99",
        "Retail Price": "$24.00",
        "Comment Count": "1,240",
        "Average Rating": "4.8",
        "Main Image": "http://x/1.jpg",
        "Category Name": "Dresses",
    }
