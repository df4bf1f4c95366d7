"""
Feed extractor for admin uploads.

Accepts either a raw Shein feed array (detected by a "Product Name" key on
the first element) or an already-canonical product array. Anything else is
rejected before any data is touched.
"""

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Union

RAW_FEED_MARKER = "Product Name"


class FeedParseError(ValueError):
    """Upload is not valid JSON or not a JSON array."""


@dataclass
class FeedPayload:
    """Parsed upload plus the detected format."""

    items: list
    is_raw: bool

    @property
    def format_name(self) -> str:
        return "shein" if self.is_raw else "canonical"


def is_raw_feed(items: list) -> bool:
    """Raw Shein exports carry a "Product Name" column on every row."""
    return bool(items) and isinstance(items[0], dict) and bool(
        items[0].get(RAW_FEED_MARKER)
    )


def parse_feed_json(text: Union[str, bytes]) -> FeedPayload:
    """
    Parse an uploaded JSON document.

    Args:
        text: JSON text

    Returns:
        FeedPayload with the array items and the detected format

    Raises:
        FeedParseError: on a syntax error or a non-array top-level value
    """
    try:
        parsed = json.loads(text)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise FeedParseError(f"JSON syntax error: {e}") from e

    if not isinstance(parsed, list):
        raise FeedParseError(
            f"JSON must be an array of products [], got {type(parsed).__name__}"
        )

    return FeedPayload(items=parsed, is_raw=is_raw_feed(parsed))


def load_feed_file(path: Union[str, Path]) -> FeedPayload:
    """Read and parse an uploaded JSON file."""
    path = Path(path)
    try:
        content = path.read_bytes()
    except OSError as e:
        raise FeedParseError(f"Could not read {path}: {e}") from e
    return parse_feed_json(content)
