"""Manual review queue for tracks without a confident match"""

import logging

from listbridge.core.decisions import MatchDecisions
from listbridge.core.models import PendingReview, ReviewError, Track

logger = logging.getLogger(__name__)


class ReviewQueue:
    """Pending reviews, each consumed once by resolve() or dismiss()."""

    def __init__(self, decisions: MatchDecisions):
        self._decisions = decisions
        self._items: dict[str, PendingReview] = {}

    def add(self, item: PendingReview) -> None:
        self._items[item.track_key] = item

    def pending(self) -> list[PendingReview]:
        return list(self._items.values())

    def get(self, track_key: str) -> PendingReview | None:
        return self._items.get(track_key)

    def resolve(self, track_key: str, selection: Track | int) -> Track:
        """Accept a candidate (by index) or any target track for a pending item."""
        item = self._items.get(track_key)
        if item is None:
            raise ReviewError(f"No pending review for {track_key}")

        if isinstance(selection, Track):
            chosen = selection
        else:
            if not 0 <= selection < len(item.candidates):
                raise ReviewError(
                    f"Candidate {selection} out of range for {track_key} "
                    f"({len(item.candidates)} candidates)"
                )
            chosen = item.candidates[selection].track

        self._decisions.set(track_key, chosen)
        del self._items[track_key]
        logger.info(f"Resolved review: {item.track.title} -> {chosen.title}")
        return chosen

    def dismiss(self, track_key: str) -> None:
        if self._items.pop(track_key, None) is None:
            raise ReviewError(f"No pending review for {track_key}")

    def __len__(self) -> int:
        return len(self._items)
