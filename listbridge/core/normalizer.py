"""Title and artist canonicalization for cross-provider comparison."""

import re
from typing import Iterable

from listbridge.core.models import NormalizedTrack, Track
from listbridge.core.rules import FEATURE_WORDS, SEPARATORS, STOPWORDS, VERSION_TAGS

_BRACKETED = re.compile(r"\([^)]*\)|\[[^\]]*\]")
_FEATURING = re.compile(r"\b(?:featuring|feat|ft)\b\.?", re.IGNORECASE)
_FEATURE_KEYWORD = re.compile(r"\b(?:" + "|".join(FEATURE_WORDS) + r")\b", re.IGNORECASE)
_QUOTES = re.compile(r"[\"'`]")
_WHITESPACE = re.compile(r"\s+")
_ARTIST_DELIMITERS = re.compile(r"&|,|\||\b(?:featuring|feat|ft)\b\.?", re.IGNORECASE)


def _has_version_tag(span: str) -> bool:
    return any(tag in span for tag in VERSION_TAGS)


def _strip_version_tags(match: re.Match) -> str:
    span = match.group(0)
    return "" if _has_version_tag(span) else span


def normalize_text(text: str | None, locale: str = "en") -> str:
    """Lower-case, drop version tags, punctuation and stop-words.

    The result is stable: normalizing it again returns the same string.
    """
    if not text:
        return ""
    # Quotes go first so they cannot split a featuring keyword or version tag
    lowered = _QUOTES.sub("", text.lower())
    lowered = _BRACKETED.sub(_strip_version_tags, lowered)
    lowered = _FEATURING.sub(" feat ", lowered)
    lowered = lowered.replace("&", " and ")
    lowered = _WHITESPACE.sub(" ", lowered).strip()

    stopwords = STOPWORDS.get(locale, ())
    tokens = [token for token in SEPARATORS.split(lowered) if token and token not in stopwords]
    return " ".join(tokens).strip()


def split_artists(artists: Iterable[str] | None) -> list[str]:
    """Individual lower-cased artist names in first-seen order."""
    names: list[str] = []
    for artist in artists or ():
        if not artist:
            continue
        for part in _ARTIST_DELIMITERS.split(artist):
            name = part.strip().lower()
            if name and name not in names:
                names.append(name)
    return names


def normalize_artists(artists: Iterable[str] | None) -> set[str]:
    return set(split_artists(artists))


def normalize_track(track: Track, locale: str = "en") -> NormalizedTrack:
    ordered = split_artists(track.artists)
    return NormalizedTrack(
        normalized_title=normalize_text(track.title, locale),
        normalized_artists=frozenset(ordered),
        artist_order=tuple(ordered),
    )


def tokenize(text: str | None) -> set[str]:
    if not text:
        return set()
    return {token for token in SEPARATORS.split(text) if token}


def extract_featuring(raw_title: str | None) -> list[str]:
    """Featured artist names following the first featuring keyword in a raw title."""
    if not raw_title:
        return []
    match = _FEATURE_KEYWORD.search(raw_title)
    if not match:
        return []

    names = []
    for part in re.split(r"[,&]", raw_title[match.end():].lower()):
        cleaned = "".join(ch for ch in part if ch.isalnum() or ch == " ")
        cleaned = _WHITESPACE.sub(" ", cleaned).strip()
        if cleaned:
            names.append(cleaned)
    return names
