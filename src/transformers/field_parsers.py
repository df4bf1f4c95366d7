"""
Parsers for the string-typed numeric fields of the Shein feed.

Every parser is total: malformed input degrades to 0 instead of raising,
so one bad row never aborts a batch.
"""

import math
import re
from typing import Any

NOT_AVAILABLE = "Not Available"

# Leading currency marker: "$", "US$", "€", "MX$ " ...
_CURRENCY_PREFIX = re.compile(r"^[^\d\-+.]+")


def _is_missing(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        stripped = value.strip()
        return not stripped or stripped == NOT_AVAILABLE
    return False


def _finite_or_zero(number: float) -> float:
    if math.isnan(number) or math.isinf(number):
        return 0.0
    return number


def parse_price(value: Any) -> float:
    """Parse a price like "$1,234.50" into 1234.5 (0 when absent or invalid)."""
    if _is_missing(value) or isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float)):
        return max(0.0, _finite_or_zero(float(value)))

    text = _CURRENCY_PREFIX.sub("", str(value).strip()).replace(",", "").strip()
    try:
        price = _finite_or_zero(float(text))
    except ValueError:
        return 0.0
    return max(0.0, price)


def parse_review_count(value: Any) -> int:
    """Parse a comment count like "1,000+" into 1000 (0 when absent or invalid)."""
    if _is_missing(value) or isinstance(value, bool):
        return 0
    if isinstance(value, int):
        return max(0, value)
    if isinstance(value, float):
        if math.isnan(value) or math.isinf(value):
            return 0
        return max(0, int(value))

    text = str(value).replace("+", "").replace(",", "").strip()
    try:
        count = int(text)
    except ValueError:
        return 0
    return max(0, count)


def parse_rating(value: Any) -> float:
    """Parse an average rating like "4.8" (0 when absent, "0" or invalid)."""
    if _is_missing(value) or isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float)):
        return _finite_or_zero(float(value))

    text = str(value).strip()
    if text == "0":
        return 0.0
    try:
        return _finite_or_zero(float(text))
    except ValueError:
        return 0.0
