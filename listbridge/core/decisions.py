"""Accepted match decisions keyed by track key"""

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator

from listbridge.core.models import Track
from listbridge.core.status import atomic_write_json

logger = logging.getLogger(__name__)


def track_key(track: Track, source_provider: str, target_provider: str) -> str:
    """Canonical key: source provider id, then target provider id, then local id."""
    return (track.source_ids.get(source_provider)
            or track.source_ids.get(target_provider)
            or track.id)


class MatchDecisions:
    """Mapping of track key to the accepted target track.

    Persisted to a JSON file when a path is given, in-memory otherwise.
    """

    def __init__(self, path: Path | None = None):
        self._file = path
        self._decisions: dict[str, dict] = {}
        self._dirty = False
        if path is not None:
            self._load()

    def _load(self) -> None:
        if not self._file.exists():
            return

        try:
            data = json.loads(self._file.read_text(encoding="utf-8"))
            for key, entry in data.items():
                Track.from_dict(entry["track"])  # validate
                self._decisions[key] = entry
            logger.debug(f"Loaded {len(self._decisions)} match decisions")
        except Exception as e:
            logger.warning(f"Match decisions load failed: {e}")
            self._decisions = {}

    def save(self) -> None:
        if self._file is None or not self._dirty:
            return
        if atomic_write_json(self._file, self._decisions):
            self._dirty = False

    def get(self, key: str) -> Track | None:
        entry = self._decisions.get(key)
        if not entry:
            return None
        return Track.from_dict(entry["track"])

    def set(self, key: str, track: Track) -> None:
        current = self._decisions.get(key, {}).get("track")
        if current != track.to_dict():
            self._decisions[key] = {
                "track": track.to_dict(),
                "decided_at": datetime.now(timezone.utc).isoformat(),
            }
            self._dirty = True

    def items(self) -> Iterator[tuple[str, Track]]:
        for key, entry in self._decisions.items():
            yield key, Track.from_dict(entry["track"])

    def __contains__(self, key: str) -> bool:
        return key in self._decisions

    def __len__(self) -> int:
        return len(self._decisions)
