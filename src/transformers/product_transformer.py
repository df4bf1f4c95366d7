"""
Product transformer for normalizing raw Shein feed rows.

Defines the canonical Product model shared by the whole pipeline and the
transformer that maps scraped feed rows (string prices, "Not Available"
sentinels, "+"-suffixed counts) onto it.
"""

import re
import uuid
from enum import Enum
from typing import Any, Optional

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    computed_field,
    field_validator,
    model_validator,
)

from src.logging_config import get_logger

from .field_parsers import (
    NOT_AVAILABLE,
    parse_price,
    parse_rating,
    parse_review_count,
)
from .popularity import Popularity, calculate_popularity

logger = get_logger(__name__)

FALLBACK_ID_PREFIX = "fallback-"

# Older builds generated ids from Math.random(), e.g. "0.8401374125". Those
# still live in stored data and must be treated as fallbacks too.
LEGACY_FALLBACK_PREFIX = "0."

UNNAMED_PRODUCT = "Sin nombre"
DEFAULT_CATEGORY = "General"

# Marker rows injected by the free tier of the scraping service
QUOTA_SENTINEL_PREFIX = "Free Version is limited to"


def generate_fallback_id() -> str:
    """Generate an id for a row that has none."""
    return f"{FALLBACK_ID_PREFIX}{uuid.uuid4().hex}"


def is_fallback_id(product_id: Optional[str]) -> bool:
    """True if the id was generated rather than taken from the feed."""
    if not product_id:
        return True
    return product_id.startswith(FALLBACK_ID_PREFIX) or product_id.startswith(
        LEGACY_FALLBACK_PREFIX
    )


class VariantTag(str, Enum):
    """Partition label used when merging uploads into a category."""

    STANDARD = "standard"
    CURVY = "curvy"


class Product(BaseModel):
    """Canonical product record."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str = Field(default_factory=generate_fallback_id)
    name: str = ""
    price: float = 0.0
    original_price: Optional[float] = Field(
        default=None,
        validation_alias=AliasChoices("originalPrice", "original_price"),
        serialization_alias="originalPrice",
    )
    rating: float = 0.0
    review_count: int = Field(
        default=0,
        validation_alias=AliasChoices("reviewCount", "review_count", "reviews"),
        serialization_alias="reviewCount",
    )
    review_count_display: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("reviewCountDisplay", "review_count_display"),
        serialization_alias="reviewCountDisplay",
    )
    image: Optional[str] = None
    images: list[str] = Field(default_factory=list)
    category: Optional[str] = None
    variant_tag: Optional[VariantTag] = Field(
        default=None,
        validation_alias=AliasChoices("variantTag", "variant_tag"),
        serialization_alias="variantTag",
    )

    @field_validator("id", mode="before")
    @classmethod
    def coerce_id(cls, v: Any) -> str:
        """Numeric ids become strings, missing ids get a fallback."""
        if v is None or isinstance(v, bool):
            return generate_fallback_id()
        v = str(v).strip()
        return v or generate_fallback_id()

    @field_validator("name", mode="before")
    @classmethod
    def clean_name(cls, v: Any) -> str:
        """Collapse whitespace in the product name."""
        if v is None:
            return ""
        return re.sub(r"\s+", " ", str(v)).strip()

    @field_validator("price", mode="before")
    @classmethod
    def coerce_price(cls, v: Any) -> float:
        return parse_price(v)

    @field_validator("original_price", mode="before")
    @classmethod
    def coerce_original_price(cls, v: Any) -> Optional[float]:
        if v is None:
            return None
        return parse_price(v)

    @field_validator("rating", mode="before")
    @classmethod
    def coerce_rating(cls, v: Any) -> float:
        """Ratings live on a 0-5 scale."""
        return max(0.0, min(5.0, parse_rating(v)))

    @field_validator("review_count", mode="before")
    @classmethod
    def coerce_review_count(cls, v: Any) -> int:
        return parse_review_count(v)

    @field_validator("review_count_display", mode="before")
    @classmethod
    def coerce_review_count_display(cls, v: Any) -> Optional[str]:
        if v is None:
            return None
        v = str(v).strip()
        return v or None

    @field_validator("image", "category", mode="before")
    @classmethod
    def blank_to_none(cls, v: Any) -> Optional[str]:
        if v is None:
            return None
        v = str(v).strip()
        return v or None

    @field_validator("images", mode="before")
    @classmethod
    def clean_images(cls, v: Any) -> list:
        """Drop blanks and duplicates while preserving order."""
        if not v:
            return []
        if isinstance(v, str):
            v = [v]
        seen = set()
        result = []
        for url in v:
            if not isinstance(url, str):
                continue
            url = url.strip()
            if url and url not in seen:
                seen.add(url)
                result.append(url)
        return result

    @field_validator("variant_tag", mode="before")
    @classmethod
    def normalize_variant_tag(cls, v: Any) -> Optional[str]:
        if v is None:
            return None
        if isinstance(v, VariantTag):
            return v.value
        v = str(v).strip().lower()
        return v or None

    @model_validator(mode="after")
    def fill_derived_fields(self) -> "Product":
        """Keep the primary image first in the gallery and default the display count."""
        if self.review_count_display is None:
            self.review_count_display = str(self.review_count)
        if self.image and (not self.images or self.images[0] != self.image):
            self.images = [self.image] + [url for url in self.images if url != self.image]
        return self

    @computed_field
    @property
    def popularity(self) -> Popularity:
        """Derived from rating and review count, never taken from input."""
        return calculate_popularity(self.rating, self.review_count)

    def to_record(self) -> dict:
        """Serialize to the camelCase JSON shape used in storage."""
        return self.model_dump(by_alias=True, mode="json")


def _text(item: dict, key: str) -> Optional[str]:
    """Return a usable string value for key, or None if absent/sentinel."""
    value = item.get(key)
    if value is None:
        return None
    value = str(value).strip()
    if not value or value == NOT_AVAILABLE:
        return None
    return value


class SheinTransformer:
    """Transforms raw Shein feed rows into canonical Products."""

    # Feed column names
    ID = "id"
    PRODUCT_CODE = "Product Code"
    PRODUCT_NAME = "Product Name"
    SALE_PRICE = "Sale Price"
    RETAIL_PRICE = "Retail Price"
    COMMENT_COUNT = "Comment Count"
    AVERAGE_RATING = "Average Rating"
    MAIN_IMAGE = "Main Image"
    FIRST_DETAIL_IMAGE = "Detail Image 1"
    CATEGORY_NAME = "Category Name"

    DETAIL_IMAGE_PATTERN = re.compile(r"^Detail Image \d+$")

    @classmethod
    def is_quota_row(cls, item: dict) -> bool:
        """True for rows without an id or for the scraper's quota marker rows."""
        raw_id = item.get(cls.ID)
        if raw_id is None or raw_id == "":
            return True
        return str(raw_id).startswith(QUOTA_SENTINEL_PREFIX)

    def _extract_images(self, item: dict) -> list[str]:
        """Main image first, then every "Detail Image N" column in feed order."""
        images = []
        main_image = _text(item, self.MAIN_IMAGE)
        if main_image:
            images.append(main_image)

        for key, value in item.items():
            if not isinstance(key, str) or not self.DETAIL_IMAGE_PATTERN.match(key):
                continue
            if isinstance(value, str) and value.strip():
                images.append(value.strip())

        return images

    def transform(
        self, item: dict, variant_tag: Optional[VariantTag] = None
    ) -> Optional[Product]:
        """Transform one feed row into a Product (None if the row is unusable)."""
        if not isinstance(item, dict):
            logger.warning("Skipping non-object feed row: %r", item)
            return None

        product_id = (
            _text(item, self.ID)
            or _text(item, self.PRODUCT_CODE)
            or generate_fallback_id()
        )

        raw_comment_count = _text(item, self.COMMENT_COUNT)
        image = _text(item, self.MAIN_IMAGE) or _text(item, self.FIRST_DETAIL_IMAGE)

        return Product(
            id=product_id,
            name=_text(item, self.PRODUCT_NAME) or UNNAMED_PRODUCT,
            price=parse_price(item.get(self.SALE_PRICE)),
            original_price=parse_price(item.get(self.RETAIL_PRICE)),
            rating=parse_rating(item.get(self.AVERAGE_RATING)),
            review_count=parse_review_count(raw_comment_count),
            review_count_display=raw_comment_count or "0",
            image=image,
            images=self._extract_images(item),
            category=_text(item, self.CATEGORY_NAME) or DEFAULT_CATEGORY,
            variant_tag=variant_tag,
        )

    def transform_batch(
        self, items: list, variant_tag: Optional[VariantTag] = None
    ) -> list[Product]:
        """Transform a raw feed array, dropping quota marker rows."""
        results = []
        dropped = 0
        for item in items:
            if isinstance(item, dict) and self.is_quota_row(item):
                dropped += 1
                continue
            transformed = self.transform(item, variant_tag=variant_tag)
            if transformed:
                results.append(transformed)

        if dropped:
            logger.debug("Dropped %d feed rows without a usable id", dropped)
        return results
