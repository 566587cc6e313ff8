"""Matching vocabularies and thresholds."""

import re
from dataclasses import dataclass

STOPWORDS = {
    "en": ("remastered", "remaster", "live", "version", "official", "audio", "video"),
    "ko": ("라이브", "버전", "공식", "오디오"),
}

FEATURE_WORDS = ("featuring", "feat", "ft", "with")

# Bracketed spans containing any of these are dropped from titles
VERSION_TAGS = (
    "remaster",
    "remastered",
    "remastering",
    "live",
    "acoustic",
    "instrumental",
    "official video",
    "official audio",
    "lyrics",
    "lyric",
    "mv",
    "m/v",
)

SEPARATORS = re.compile(r"[\s,;:\-/\[\]()]+")

YEAR_TOLERANCE = 2
AUTO_ACCEPT_THRESHOLD = 75
REVIEW_THRESHOLD = 60
SEARCH_CACHE_CAPACITY = 200


@dataclass(frozen=True)
class MatchRules:
    """Tunable matching policy.

    Only auto_accept gates automatic acceptance. review is the floor used
    when shortlisting candidates for manual review.
    """
    auto_accept: int = AUTO_ACCEPT_THRESHOLD
    review: int = REVIEW_THRESHOLD
    year_tolerance: int = YEAR_TOLERANCE
    cache_capacity: int = SEARCH_CACHE_CAPACITY


DEFAULT_RULES = MatchRules()
