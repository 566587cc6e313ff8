"""Collection import/export as JSON or a CSV pair (playlists + tracks)."""

import csv
import json
import logging
from pathlib import Path

from listbridge.core.models import Collection, Playlist, Track
from listbridge.core.status import atomic_write_json

logger = logging.getLogger(__name__)

PLAYLIST_COLUMNS = ["playlist_name", "description", "visibility", "source_name"]
TRACK_COLUMNS = [
    "playlist_name", "position", "title", "artists", "album", "duration_ms",
    "isrc", "release_year", "explicit", "cover_url",
]
ARTIST_SEPARATOR = "; "
PLAYLISTS_CSV = "playlists.csv"
TRACKS_CSV = "tracks.csv"


def export_json(collection: Collection, path: Path) -> bool:
    return atomic_write_json(path, collection.to_dict())


def import_json(path: Path) -> Collection:
    collection = Collection.from_dict(json.loads(path.read_text(encoding="utf-8")))
    logger.info(f"Imported {len(collection.playlists)} playlists from {path}")
    return collection


def _cell(value) -> str:
    return "" if value is None else str(value)


def _flag_cell(value: bool | None) -> str:
    if value is None:
        return ""
    return "true" if value else "false"


def _flag_or_none(value: str | None) -> bool | None:
    """Unknown stays unknown: an empty cell is None, not False."""
    if not value or not value.strip():
        return None
    return value.strip().lower() == "true"


def _int_or_none(value: str | None) -> int | None:
    try:
        return int(value) if value else None
    except ValueError:
        return None


def export_csv(collection: Collection, playlists_csv: Path, tracks_csv: Path) -> None:
    with open(playlists_csv, "w", newline="", encoding="utf-8") as f:
        writer = csv.DictWriter(f, fieldnames=PLAYLIST_COLUMNS)
        writer.writeheader()
        for playlist in collection.playlists:
            writer.writerow({
                "playlist_name": playlist.name,
                "description": _cell(playlist.description),
                "visibility": playlist.visibility or "private",
                "source_name": collection.source,
            })

    with open(tracks_csv, "w", newline="", encoding="utf-8") as f:
        writer = csv.DictWriter(f, fieldnames=TRACK_COLUMNS)
        writer.writeheader()
        for playlist in collection.playlists:
            for position, track in enumerate(playlist.tracks, start=1):
                writer.writerow({
                    "playlist_name": playlist.name,
                    "position": position,
                    "title": track.title,
                    "artists": ARTIST_SEPARATOR.join(track.artists),
                    "album": _cell(track.album),
                    "duration_ms": _cell(track.duration_ms),
                    "isrc": _cell(track.isrc),
                    "release_year": _cell(track.release_year),
                    "explicit": _flag_cell(track.explicit),
                    "cover_url": _cell(track.cover_url),
                })


def import_csv(playlists_csv: Path, tracks_csv: Path) -> Collection:
    """Rebuild a collection from a CSV pair. Playlist names double as ids."""
    with open(playlists_csv, newline="", encoding="utf-8") as f:
        playlist_rows = list(csv.DictReader(f))
    with open(tracks_csv, newline="", encoding="utf-8") as f:
        track_rows = list(csv.DictReader(f))

    playlists: dict[str, Playlist] = {}
    for row in playlist_rows:
        name = row.get("playlist_name") or ""
        playlists[name] = Playlist(
            id=name,
            name=name,
            description=row.get("description") or None,
            visibility=row.get("visibility") or None,
        )

    skipped = 0
    for row in track_rows:
        playlist = playlists.get(row.get("playlist_name") or "")
        if playlist is None:
            skipped += 1
            continue
        position = row.get("position") or str(len(playlist.tracks) + 1)
        artists = row.get("artists") or ""
        playlist.tracks.append(Track(
            id=f"{playlist.name}:{position}",
            title=row.get("title") or "",
            artists=[a.strip() for a in artists.split(";") if a.strip()],
            album=row.get("album") or None,
            duration_ms=_int_or_none(row.get("duration_ms")),
            isrc=row.get("isrc") or None,
            release_year=_int_or_none(row.get("release_year")),
            explicit=_flag_or_none(row.get("explicit")),
            cover_url=row.get("cover_url") or None,
        ))

    if skipped:
        logger.warning(f"Skipped {skipped} track rows for unknown playlists")
    for playlist in playlists.values():
        playlist.track_count = len(playlist.tracks)

    source = playlist_rows[0].get("source_name") if playlist_rows else None
    return Collection(source=source or "csv", playlists=list(playlists.values()))


def load_collection(path: Path) -> Collection:
    """A directory holds a CSV pair; anything else is a JSON export."""
    if path.is_dir():
        return import_csv(path / PLAYLISTS_CSV, path / TRACKS_CSV)
    return import_json(path)


def save_collection(collection: Collection, path: Path) -> None:
    """Write JSON for a .json path, otherwise a CSV pair into the directory path."""
    if path.suffix.lower() == ".json":
        if not export_json(collection, path):
            raise OSError(f"Failed to write {path}")
        return
    path.mkdir(parents=True, exist_ok=True)
    export_csv(collection, path / PLAYLISTS_CSV, path / TRACKS_CSV)


def collection_from_provider(client, playlist_ids: list[str] | None = None) -> Collection:
    """Read playlists and their tracks from a source provider client.

    With playlist_ids, only those playlists are read, in the requested order.
    """
    summaries = client.list_playlists()
    if playlist_ids:
        by_id = {s.id: s for s in summaries}
        missing = [pid for pid in playlist_ids if pid not in by_id]
        if missing:
            logger.warning(f"Playlists not found on {client.name}: {', '.join(missing)}")
        summaries = [by_id[pid] for pid in playlist_ids if pid in by_id]

    playlists = []
    for summary in summaries:
        tracks = client.read_tracks(summary.id)
        logger.info(f"Read {len(tracks)} tracks from {summary.name}")
        playlists.append(Playlist(
            id=summary.id,
            name=summary.name,
            description=summary.description,
            visibility=summary.visibility,
            cover_url=summary.cover_url,
            track_count=len(tracks),
            tracks=tracks,
        ))
    return Collection(source=client.name, playlists=playlists)
