"""Shared fixtures: sample tracks and an in-memory target provider."""

from datetime import datetime, timezone
from unittest.mock import Mock

import pytest

from listbridge.core.models import Collection, Playlist, Track


class FakeProvider:
    """Target provider answering searches from a phrase -> results table."""

    name = "youtube"

    def __init__(self, results: dict[str, list[Track]] | None = None):
        self._results = results or {}
        self._created = 0
        self.search = Mock(side_effect=self._search)
        self.create_playlist = Mock(side_effect=self._create_playlist)
        self.add_items = Mock()

    def _search(self, query: str) -> list[Track]:
        for phrase, tracks in self._results.items():
            if phrase in query:
                return list(tracks)
        return []

    def _create_playlist(self, name, description=None, visibility="private"):
        self._created += 1
        return f"target-{self._created}"

    def list_playlists(self):
        return []

    def read_tracks(self, playlist_id):
        return []


@pytest.fixture
def city_lights():
    return Track(
        id="sp-1",
        title="City Lights",
        artists=["Dreamstatic", "Feather"],
        album="Skyline",
        duration_ms=198000,
        release_year=2020,
        explicit=False,
        source_ids={"spotify": "spotify:track:1"},
    )


@pytest.fixture
def city_lights_video():
    return Track(
        id="yt-1",
        title="City Lights (Official Video)",
        artists=["Dreamstatic", "Feather"],
        duration_ms=199000,
        release_year=2020,
        explicit=False,
        source_ids={"youtube": "yt-1"},
    )


@pytest.fixture
def unknown_song():
    return Track(
        id="sp-2",
        title="Nowhere Song",
        artists=["Nobody Band"],
        duration_ms=240000,
        source_ids={"spotify": "spotify:track:2"},
    )


@pytest.fixture
def fake_target(city_lights_video):
    return FakeProvider({"city lights": [city_lights_video]})


@pytest.fixture
def two_track_collection(city_lights, unknown_song):
    return Collection(
        source="spotify",
        playlists=[Playlist(id="pl-1", name="Road Trip", tracks=[city_lights, unknown_song])],
    )


@pytest.fixture
def fixed_clock():
    return lambda: datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)
