"""
Transfer Orchestrator

Copies a collection of source playlists into newly created playlists on a
target provider.

Run lifecycle: idle -> running -> completed | failed

Per playlist:
1. Create the destination playlist
2. Resolve every track in order: reuse an accepted match decision if one
   exists (no search), otherwise search the target and auto-accept the best
   candidate; unmatched tracks become failure records and the loop goes on
3. Add all matched ids with a single add_items call
4. Overwrite the checkpoint

Errors other than a per-track search failure abort the run. The last
checkpoint is left in place so a later run can resume after it. Retries and
rate limiting are the provider client's job, never the orchestrator's.

Tracks and playlists are processed strictly in input order, one provider
call at a time.
"""

import logging
from datetime import datetime, timezone
from typing import Callable, Protocol

from listbridge.core.checkpoint import CheckpointStore
from listbridge.core.decisions import MatchDecisions, track_key
from listbridge.core.models import (
    Collection, FailureRecord, PendingReview, Playlist, PlaylistSummary, SearchFailure,
    Track, TransferCheckpoint, TransferProgress, TransferReport, TransferStatus,
)
from listbridge.core.review import ReviewQueue
from listbridge.core.searcher import CandidateSearcher

logger = logging.getLogger(__name__)

APP_NAME = "ListBridge"
NO_CONFIDENT_MATCH = "No confident match"


class ProviderClient(Protocol):
    name: str

    def list_playlists(self) -> list[PlaylistSummary]: ...
    def read_tracks(self, playlist_id: str) -> list[Track]: ...
    def create_playlist(self, name: str, description: str | None = None,
                        visibility: str = "private") -> str: ...
    def add_items(self, playlist_id: str, ids: list[str]) -> None: ...
    def search(self, query: str) -> list[Track]: ...


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class TransferOrchestrator:
    """Drives one transfer run at a time."""

    def __init__(self, searcher: CandidateSearcher, decisions: MatchDecisions,
                 checkpoints: CheckpointStore, reviews: ReviewQueue | None = None,
                 app_name: str = APP_NAME, locale: str = "en",
                 on_progress: Callable[[TransferProgress], None] | None = None,
                 clock: Callable[[], datetime] = _utc_now):
        self._searcher = searcher
        self._decisions = decisions
        self._checkpoints = checkpoints
        self._reviews = reviews
        self._app_name = app_name
        self._locale = locale
        self._on_progress = on_progress
        self._clock = clock

        self.status = TransferStatus.IDLE
        self.processed = 0
        self.total = 0
        self.report: TransferReport | None = None

    @property
    def progress(self) -> TransferProgress:
        return TransferProgress(self.status, self.processed, self.total)

    def _announce(self) -> None:
        if self._on_progress:
            self._on_progress(self.progress)

    def _playlist_name(self, playlist: Playlist) -> str:
        return f"{playlist.name} · via {self._app_name}"

    def _playlist_description(self, source: str, existing: str | None) -> str:
        stamp = self._clock().isoformat()
        return (f"{existing or ''}\n\nImported from {source or 'unknown'} "
                f"via {self._app_name} on {stamp}").strip()

    def _resume_offset(self, collection: Collection, resume: TransferCheckpoint | None) -> int:
        """Index of the first playlist not covered by the checkpoint."""
        if resume is None:
            return 0
        for index, playlist in enumerate(collection.playlists):
            if playlist.id == resume.playlist_id:
                return index + 1
        logger.warning(f"Checkpoint playlist {resume.playlist_id} not in collection, starting over")
        return 0

    def _resolve_track(self, track: Track, key: str, target: ProviderClient,
                       failures: list[FailureRecord]) -> Track | None:
        """Accepted target track for a source track, or None after recording a failure."""
        # An empty key identifies nothing, so it is never looked up or stored
        selection = self._decisions.get(key) if key else None
        if selection is not None:
            logger.debug(f"Decision reused: {track.title}")
            return selection

        try:
            outcome = self._searcher.find_candidates(track, target.name, target.search, self._locale)
        except SearchFailure as e:
            logger.warning(f"Search failed for {track.title}: {e}")
            failures.append(FailureRecord(track, f"Search failed: {e}"))
            return None

        if outcome.best is None:
            logger.warning(f"No confident match for {track.title} ({len(outcome.candidates)} candidates)")
            failures.append(FailureRecord(track, NO_CONFIDENT_MATCH, tuple(outcome.candidates)))
            if self._reviews is not None and key:
                self._reviews.add(PendingReview(key, track, list(outcome.candidates)))
            return None

        if key:
            self._decisions.set(key, outcome.best.track)
        return outcome.best.track

    def _transfer_playlist(self, playlist: Playlist, source: str, target: ProviderClient,
                           failures: list[FailureRecord]) -> str:
        target_playlist_id = target.create_playlist(
            name=self._playlist_name(playlist),
            description=self._playlist_description(source, playlist.description),
            visibility=playlist.visibility or "private",
        )
        logger.info(f"Created playlist {target_playlist_id} for {playlist.name}")

        mapped_ids = []
        for track in playlist.tracks:
            key = track_key(track, source, target.name)
            selection = self._resolve_track(track, key, target, failures)
            if selection is not None:
                mapped_ids.append(selection.source_ids.get(target.name) or selection.id)
            self.processed += 1
            self._announce()

        if mapped_ids:
            target.add_items(target_playlist_id, mapped_ids)
            logger.info(f"Added {len(mapped_ids)} of {len(playlist.tracks)} tracks to {target_playlist_id}")

        self._checkpoints.save(TransferCheckpoint(
            playlist_id=playlist.id,
            target_playlist_id=target_playlist_id,
            processed=self.processed,
            total=self.total,
            failures=list(failures),
            saved_at=self._clock().isoformat(),
        ))
        return target_playlist_id

    def transfer_collection(self, collection: Collection, target: ProviderClient,
                            resume: TransferCheckpoint | None = None) -> TransferReport:
        """Run a full transfer. Returns the report, raises on fatal errors.

        With resume, playlists up to and including the checkpoint's playlist
        are skipped. Without it every playlist is created again.
        """
        if self.status == TransferStatus.RUNNING:
            raise RuntimeError("A transfer is already running")

        offset = self._resume_offset(collection, resume)
        skipped = collection.playlists[:offset]
        failures: list[FailureRecord] = list(resume.failures) if offset else []
        created: dict[str, str] = {}

        self.total = sum(len(p.tracks) for p in collection.playlists)
        self.processed = sum(len(p.tracks) for p in skipped)
        self.report = None
        self.status = TransferStatus.RUNNING
        self._announce()

        logger.info("=" * 50)
        logger.info(f"Transferring {len(collection.playlists)} playlists ({self.total} tracks) "
                    f"from {collection.source} to {target.name}")
        if skipped:
            logger.info(f"Resuming after playlist {resume.playlist_id}, skipping {len(skipped)}")

        try:
            for playlist in collection.playlists[offset:]:
                created[playlist.id] = self._transfer_playlist(playlist, collection.source, target, failures)
        except Exception as e:
            self.status = TransferStatus.FAILED
            self._announce()
            logger.error(f"Transfer aborted after {self.processed}/{self.total} tracks: {e}")
            raise

        self.status = TransferStatus.COMPLETED
        self.report = TransferReport(
            completed_at=self._clock().isoformat(),
            failures=failures,
            processed=self.processed,
            total=self.total,
            created_playlists=created,
        )
        self._checkpoints.clear()
        self._announce()

        logger.info(f"Transfer completed: {self.processed - len(failures)} matched, "
                    f"{len(failures)} failed")
        logger.info("=" * 50)
        return self.report
