"""
Track similarity scoring

Scores a candidate against a source track on a 0-100 scale built from five
independently capped components:

- title     0-50  Jaro-Winkler (0.6) blended with token-set ratio (0.4)
- artist    0-30  Jaccard index of normalized artist sets
- duration  0-10  full marks within 2s, nothing from 20s apart
- year      0-5   within YEAR_TOLERANCE years
- explicit  0/5   both flags known and equal

A missing field contributes 0 to its component; it is never treated as a
zero value.
"""

import math
from typing import NamedTuple

from listbridge.core.models import Track
from listbridge.core.normalizer import normalize_track, tokenize
from listbridge.core.rules import DEFAULT_RULES, MatchRules

WINKLER_PREFIX_LIMIT = 4
WINKLER_BOOST = 0.1

TITLE_WEIGHT = 50
ARTIST_WEIGHT = 30
DURATION_WEIGHT = 10
YEAR_WEIGHT = 5
EXPLICIT_WEIGHT = 5

DURATION_EXACT_MS = 2000
DURATION_CUTOFF_MS = 20000


class MatchScore(NamedTuple):
    score: int
    breakdown: dict[str, int]


def _round(value: float) -> int:
    """Round half up."""
    return int(math.floor(value + 0.5))


def _jaro(a: str, b: str) -> float:
    """Jaro similarity with the match window floor(max(len) / 2) - 1."""
    window = max(len(a), len(b)) // 2 - 1
    a_matched = [False] * len(a)
    b_matched = [False] * len(b)
    matches = 0

    for i, char in enumerate(a):
        for j in range(max(0, i - window), min(i + window + 1, len(b))):
            if not b_matched[j] and b[j] == char:
                a_matched[i] = b_matched[j] = True
                matches += 1
                break

    if matches == 0:
        return 0.0

    a_sequence = [char for char, matched in zip(a, a_matched) if matched]
    b_sequence = [char for char, matched in zip(b, b_matched) if matched]
    half_transpositions = sum(left != right for left, right in zip(a_sequence, b_sequence))

    return (matches / len(a) + matches / len(b)
            + (matches - half_transpositions / 2) / matches) / 3


def jaro_winkler(a: str, b: str) -> float:
    if a == b:
        return 1.0
    if not a or not b:
        return 0.0

    jaro = _jaro(a, b)
    prefix = 0
    for left, right in zip(a[:WINKLER_PREFIX_LIMIT], b[:WINKLER_PREFIX_LIMIT]):
        if left != right:
            break
        prefix += 1
    return jaro + prefix * WINKLER_BOOST * (1 - jaro)


def token_set_ratio(a: str, b: str) -> float:
    """Half Jaro-Winkler, half token intersection-over-union."""
    tokens_a = tokenize(a)
    tokens_b = tokenize(b)
    union = tokens_a | tokens_b
    overlap = len(tokens_a & tokens_b) / len(union) if union else 0.0
    return overlap * 0.5 + jaro_winkler(a, b) * 0.5


def title_score(a: str, b: str) -> int:
    if not a or not b:
        return 0
    blended = jaro_winkler(a, b) * 0.6 + token_set_ratio(a, b) * 0.4
    return min(TITLE_WEIGHT, _round(blended * TITLE_WEIGHT))


def artist_score(a: frozenset[str] | set[str], b: frozenset[str] | set[str]) -> int:
    if not a or not b:
        return 0
    return _round(len(a & b) / len(a | b) * ARTIST_WEIGHT)


def duration_score(a: int | None, b: int | None) -> int:
    if a is None or b is None:
        return 0
    diff = abs(a - b)
    if diff <= DURATION_EXACT_MS:
        return DURATION_WEIGHT
    if diff >= DURATION_CUTOFF_MS:
        return 0
    return max(0, _round(DURATION_WEIGHT - diff / DURATION_EXACT_MS))


def year_score(a: int | None, b: int | None, tolerance: int = DEFAULT_RULES.year_tolerance) -> int:
    if a is None or b is None:
        return 0
    diff = abs(a - b)
    if diff > tolerance:
        return 0
    return max(0, _round(YEAR_WEIGHT - diff * 2.5))


def explicit_score(a: bool | None, b: bool | None) -> int:
    if a is None or b is None:
        return 0
    return EXPLICIT_WEIGHT if a == b else 0


def score_match(source: Track, candidate: Track, locale: str = "en",
                rules: MatchRules = DEFAULT_RULES) -> MatchScore:
    """Score how likely candidate is the same recording as source."""
    norm_source = normalize_track(source, locale)
    norm_candidate = normalize_track(candidate, locale)

    breakdown = {
        "title": title_score(norm_source.normalized_title, norm_candidate.normalized_title),
        "artist": artist_score(norm_source.normalized_artists, norm_candidate.normalized_artists),
        "duration": duration_score(source.duration_ms, candidate.duration_ms),
        "year": year_score(source.release_year, candidate.release_year, rules.year_tolerance),
        "explicit": explicit_score(source.explicit, candidate.explicit),
    }
    return MatchScore(score=sum(breakdown.values()), breakdown=breakdown)
