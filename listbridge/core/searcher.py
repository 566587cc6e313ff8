"""Candidate search: query building, cached provider search, ranking."""

import logging
from typing import Callable

from listbridge.core.cache import LRUCache
from listbridge.core.models import CandidateScore, SearchOutcome, Track
from listbridge.core.normalizer import extract_featuring, normalize_track
from listbridge.core.rules import DEFAULT_RULES, MatchRules
from listbridge.core.scorer import score_match

logger = logging.getLogger(__name__)

SearchFunction = Callable[[str], list[Track]]


def build_queries(source_track: Track, locale: str = "en") -> list[str]:
    """Search queries for a track, most specific first, without duplicates."""
    normalized = normalize_track(source_track, locale)
    title = normalized.normalized_title
    artists = normalized.artist_order

    queries = []
    if artists:
        queries.append(f"{artists[0]} - {title}".strip(" -"))
    if len(artists) > 1:
        queries.append(f"{' '.join(artists)} {title}".strip())
    features = extract_featuring(source_track.title)
    if features:
        queries.append(f"{title} {' '.join(features)}".strip())
    queries.append(title)

    return list(dict.fromkeys(q for q in queries if q))


class CandidateSearcher:
    """Finds and ranks target-provider candidates for source tracks.

    The cache holds raw provider results keyed by "<provider>:<query>" and
    may be shared between searchers and runs.
    """

    def __init__(self, cache: LRUCache | None = None, rules: MatchRules = DEFAULT_RULES):
        self._cache = cache if cache is not None else LRUCache(rules.cache_capacity)
        self._rules = rules

    @property
    def rules(self) -> MatchRules:
        return self._rules

    def _search_cached(self, provider_name: str, query: str, search: SearchFunction) -> list[Track]:
        key = f"{provider_name}:{query}"
        results = self._cache.get(key)
        if results is not None:
            logger.debug(f"Cache hit: {key}")
            return results

        logger.debug(f"Searching {provider_name}: {query}")
        results = list(search(query))
        self._cache.set(key, results)
        return results

    def find_candidates(self, source_track: Track, provider_name: str,
                        search: SearchFunction, locale: str = "en") -> SearchOutcome:
        """Search, deduplicate and score candidates; pick best above auto-accept.

        Errors raised by search propagate unchanged.
        """
        pool: dict[str, CandidateScore] = {}

        for query in build_queries(source_track, locale):
            for result in self._search_cached(provider_name, query, search):
                unique_id = result.source_ids.get(provider_name) or result.id
                if not unique_id or unique_id in pool:
                    continue
                scored = score_match(source_track, result, locale, self._rules)
                pool[unique_id] = CandidateScore(track=result, score=scored.score,
                                                 breakdown=scored.breakdown)

        candidates = sorted(pool.values(), key=lambda c: c.score, reverse=True)
        best = candidates[0] if candidates and candidates[0].score >= self._rules.auto_accept else None

        if best:
            logger.debug(f"Best match (score={best.score}): {best.track.title}")
        return SearchOutcome(best=best, candidates=candidates)
