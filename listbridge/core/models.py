"""Data models for playlist transfer."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class TransferError(Exception):
    """Base class for transfer failures surfaced to the caller."""
    pass


class AuthenticationRequired(TransferError):
    """Provider credential is missing or expired."""
    pass


class SearchFailure(TransferError):
    """A provider search call failed."""
    pass


class ProviderWriteFailure(TransferError):
    """Creating a playlist or adding items failed."""
    pass


class QuotaExceeded(TransferError):
    """Provider quota is exhausted for the day."""
    pass


class ReviewError(TransferError):
    """A manual review selection could not be applied."""
    pass


class CheckpointWriteFailure(TransferError):
    """The resume point could not be persisted."""
    pass


@dataclass
class Track:
    """A catalog item from any provider."""
    id: str
    title: str
    artists: list[str] = field(default_factory=list)
    album: str | None = None
    duration_ms: int | None = None
    isrc: str | None = None
    release_year: int | None = None
    explicit: bool | None = None
    cover_url: str | None = None
    source_ids: dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "artists": list(self.artists),
            "album": self.album,
            "duration_ms": self.duration_ms,
            "isrc": self.isrc,
            "release_year": self.release_year,
            "explicit": self.explicit,
            "cover_url": self.cover_url,
            "source_ids": dict(self.source_ids),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Track":
        return cls(
            id=data.get("id") or "",
            title=data.get("title") or "",
            artists=list(data.get("artists") or []),
            album=data.get("album"),
            duration_ms=data.get("duration_ms"),
            isrc=data.get("isrc"),
            release_year=data.get("release_year"),
            explicit=data.get("explicit"),
            cover_url=data.get("cover_url"),
            source_ids=dict(data.get("source_ids") or {}),
        )


@dataclass(frozen=True)
class NormalizedTrack:
    """Comparable view of a Track. Derived on demand, never stored."""
    normalized_title: str
    normalized_artists: frozenset[str]
    artist_order: tuple[str, ...] = ()


@dataclass
class CandidateScore:
    """A search result scored against one source track."""
    track: Track
    score: int
    breakdown: dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {"track": self.track.to_dict(), "score": self.score, "breakdown": dict(self.breakdown)}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CandidateScore":
        return cls(
            track=Track.from_dict(data["track"]),
            score=data.get("score", 0),
            breakdown=dict(data.get("breakdown") or {}),
        )


@dataclass
class SearchOutcome:
    """Ranked candidates for one track; best is set only above the auto-accept threshold."""
    best: CandidateScore | None
    candidates: list[CandidateScore]


@dataclass
class PendingReview:
    """Track awaiting a manual match decision."""
    track_key: str
    track: Track
    candidates: list[CandidateScore] = field(default_factory=list)

    def shortlist(self, threshold: int) -> list[CandidateScore]:
        return [c for c in self.candidates if c.score >= threshold]


@dataclass(frozen=True)
class FailureRecord:
    """A track that could not be transferred."""
    track: Track
    reason: str
    candidates: tuple[CandidateScore, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "track": self.track.to_dict(),
            "reason": self.reason,
            "candidates": [c.to_dict() for c in self.candidates],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "FailureRecord":
        return cls(
            track=Track.from_dict(data["track"]),
            reason=data.get("reason", ""),
            candidates=tuple(CandidateScore.from_dict(c) for c in data.get("candidates") or []),
        )


@dataclass
class TransferCheckpoint:
    """Resume point written after each playlist completes."""
    playlist_id: str
    target_playlist_id: str
    processed: int
    total: int
    failures: list[FailureRecord] = field(default_factory=list)
    saved_at: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "playlist_id": self.playlist_id,
            "target_playlist_id": self.target_playlist_id,
            "processed": self.processed,
            "total": self.total,
            "failures": [f.to_dict() for f in self.failures],
            "saved_at": self.saved_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TransferCheckpoint":
        return cls(
            playlist_id=data["playlist_id"],
            target_playlist_id=data["target_playlist_id"],
            processed=int(data.get("processed", 0)),
            total=int(data.get("total", 0)),
            failures=[FailureRecord.from_dict(f) for f in data.get("failures") or []],
            saved_at=data.get("saved_at", ""),
        )


@dataclass
class TransferReport:
    """Result of a completed transfer run."""
    completed_at: str
    failures: list[FailureRecord]
    processed: int = 0
    total: int = 0
    created_playlists: dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "completed_at": self.completed_at,
            "processed": self.processed,
            "total": self.total,
            "created_playlists": dict(self.created_playlists),
            "failures": [f.to_dict() for f in self.failures],
        }


class TransferStatus(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class TransferProgress:
    """Snapshot pushed to progress observers."""
    status: TransferStatus
    processed: int = 0
    total: int = 0


@dataclass
class PlaylistSummary:
    """A playlist as listed by a provider."""
    id: str
    name: str
    description: str | None = None
    visibility: str | None = None
    cover_url: str | None = None
    track_count: int = 0


@dataclass
class Playlist(PlaylistSummary):
    """A playlist together with its tracks."""
    tracks: list[Track] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "visibility": self.visibility,
            "cover_url": self.cover_url,
            "track_count": self.track_count,
            "tracks": [t.to_dict() for t in self.tracks],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Playlist":
        playlist_id = data.get("id") or data.get("name") or ""
        tracks = []
        for position, entry in enumerate(data.get("tracks") or [], start=1):
            track = Track.from_dict(entry)
            # Id-less tracks get a positional id so their match keys stay distinct
            if not track.id:
                track.id = f"{playlist_id}:{position}"
            tracks.append(track)
        return cls(
            id=playlist_id,
            name=data.get("name") or "",
            description=data.get("description"),
            visibility=data.get("visibility"),
            cover_url=data.get("cover_url"),
            track_count=data.get("track_count") or len(tracks),
            tracks=tracks,
        )


@dataclass
class Collection:
    """Playlists read from one source provider."""
    source: str
    playlists: list[Playlist] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {"source": self.source, "playlists": [p.to_dict() for p in self.playlists]}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Collection":
        return cls(
            source=data.get("source") or "unknown",
            playlists=[Playlist.from_dict(p) for p in data.get("playlists") or []],
        )
