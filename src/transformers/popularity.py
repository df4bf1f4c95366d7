"""
Popularity scoring from rating and review volume.
"""

from enum import Enum


class Popularity(str, Enum):
    """Three-tier demand classification."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @property
    def rank(self) -> int:
        """Sort rank, higher is more popular."""
        return POPULARITY_RANK[self]


POPULARITY_RANK = {
    Popularity.HIGH: 3,
    Popularity.MEDIUM: 2,
    Popularity.LOW: 1,
}

# Score weights: rating contributes up to 40 points, reviews up to 60
# (saturating at 1000 reviews).
RATING_WEIGHT = 40
REVIEW_WEIGHT = 60
REVIEW_SATURATION = 1000

HIGH_THRESHOLD = 70
MEDIUM_THRESHOLD = 40


def popularity_score(rating: float, review_count: int) -> float:
    """Raw 0-100 score behind the popularity tier."""
    rating_score = (rating / 5) * RATING_WEIGHT
    review_score = min((review_count / REVIEW_SATURATION) * REVIEW_WEIGHT, REVIEW_WEIGHT)
    return rating_score + review_score


def calculate_popularity(rating: float, review_count: int) -> Popularity:
    """
    Classify a product's popularity.

    Thresholds are inclusive: a score of exactly 70 is high, exactly 40 is
    medium.
    """
    total = popularity_score(rating, review_count)

    if total >= HIGH_THRESHOLD:
        return Popularity.HIGH
    if total >= MEDIUM_THRESHOLD:
        return Popularity.MEDIUM
    return Popularity.LOW
