"""Tests for the Spotify client against a mocked requests session."""

import json
import time
from unittest.mock import Mock

import pytest
import requests

from listbridge.clients.spotify import SpotifyAPIError, SpotifyAuthError, SpotifyClient, SpotifySchemaError
from listbridge.core.models import ProviderWriteFailure, SearchFailure


def response(status: int = 200, body=None, headers=None) -> Mock:
    return Mock(
        status_code=status,
        ok=200 <= status < 400,
        content=b"" if body is None else json.dumps(body).encode(),
        headers=headers or {},
        text="" if body is None else json.dumps(body),
        json=Mock(return_value=body),
    )


def track_item(n: int, **overrides) -> dict:
    data = {
        "type": "track",
        "id": f"t{n}",
        "uri": f"spotify:track:t{n}",
        "name": f"Song {n}",
        "artists": [{"name": "Band"}],
        "album": {"name": "Album", "release_date": "2019-05-01", "images": [{"url": "cover"}]},
        "duration_ms": 180000,
        "explicit": False,
        "external_ids": {"isrc": f"ISRC{n}"},
    }
    data.update(overrides)
    return data


@pytest.fixture
def session():
    return Mock()


@pytest.fixture
def sleep():
    return Mock()


@pytest.fixture
def client(session, sleep):
    return SpotifyClient(access_token="token", session=session, sleep=sleep)


class TestAuth:
    def test_refresh_on_startup(self, session, tmp_path):
        session.post.return_value = response(200, {"access_token": "fresh", "expires_in": 3600})
        cache = tmp_path / "spotify_token.json"

        SpotifyClient("id", "secret", refresh_token="rt", token_cache=cache, session=session)

        assert session.post.call_args.kwargs["auth"] == ("id", "secret")
        assert json.loads(cache.read_text())["access_token"] == "fresh"

    def test_cached_token_skips_refresh(self, session, tmp_path):
        cache = tmp_path / "spotify_token.json"
        cache.write_text(json.dumps({"access_token": "cached", "expires_at": time.time() * 1000 + 3600000}))

        SpotifyClient("id", "secret", refresh_token="rt", token_cache=cache, session=session)
        session.post.assert_not_called()

    def test_missing_credentials(self, session):
        with pytest.raises(SpotifyAuthError):
            SpotifyClient(session=session)

    def test_refresh_rejected(self, session):
        session.post.return_value = response(400, {"error": "invalid_grant"})
        with pytest.raises(SpotifyAuthError):
            SpotifyClient("id", "secret", refresh_token="rt", session=session)

    def test_unauthorized_request(self, client, session):
        session.request.return_value = response(401, {"error": {"status": 401}})
        with pytest.raises(SpotifyAuthError):
            client.list_playlists()
        assert session.request.call_count == 1


class TestReads:
    def test_list_playlists_follows_next(self, client, session):
        session.request.side_effect = [
            response(200, {"items": [{"id": "p1", "name": "One", "public": True, "tracks": {"total": 2}}],
                           "next": "https://api.spotify.com/v1/me/playlists?offset=50"}),
            response(200, {"items": [{"id": "p2", "name": "Two", "images": [{"url": "img"}]}], "next": None}),
        ]

        playlists = client.list_playlists()

        assert [(p.id, p.visibility, p.track_count) for p in playlists] == [("p1", "public", 2), ("p2", "private", 0)]
        assert playlists[1].cover_url == "img"
        assert session.request.call_args_list[1].args[1] == "https://api.spotify.com/v1/me/playlists?offset=50"
        assert session.request.call_args.kwargs["headers"] == {"Authorization": "Bearer token"}

    def test_read_tracks_skips_local_and_episodes(self, client, session):
        session.request.return_value = response(200, {"items": [
            {"track": track_item(1)},
            {"track": track_item(2, type="episode")},
            {"track": track_item(3, id=None)},
            {"track": None},
        ], "next": None})

        tracks = client.read_tracks("p1")

        assert len(tracks) == 1
        track = tracks[0]
        assert track.release_year == 2019
        assert track.isrc == "ISRC1"
        assert track.cover_url == "cover"
        assert track.source_ids == {"spotify": "spotify:track:t1"}

    def test_missing_items_is_schema_error(self, client, session):
        session.request.return_value = response(200, {"playlists": []})
        with pytest.raises(SpotifySchemaError):
            client.list_playlists()


class TestRetries:
    def test_rate_limit_honours_retry_after(self, client, session, sleep):
        session.request.side_effect = [
            response(429, {}, headers={"Retry-After": "3"}),
            response(200, {"items": [], "next": None}),
        ]
        assert client.list_playlists() == []
        sleep.assert_called_once_with(3.0)

    def test_network_errors_retried(self, client, session, sleep):
        session.request.side_effect = [
            requests.ConnectionError("reset"),
            response(200, {"items": [], "next": None}),
        ]
        assert client.list_playlists() == []
        assert sleep.call_count == 1

    def test_server_errors_exhaust(self, session, sleep):
        client = SpotifyClient(access_token="token", session=session, sleep=sleep, max_retries=2)
        session.request.return_value = response(502, {})
        with pytest.raises(SpotifyAPIError):
            client.list_playlists()
        assert session.request.call_count == 2


class TestWrites:
    def test_create_playlist(self, client, session):
        session.request.side_effect = [response(200, {"id": "me"}), response(201, {"id": "new"})]

        assert client.create_playlist("Mix · via ListBridge", "desc") == "new"
        method, url = session.request.call_args.args
        assert (method, url) == ("POST", "https://api.spotify.com/v1/users/me/playlists")
        assert session.request.call_args.kwargs["json"] == {
            "name": "Mix · via ListBridge", "description": "desc", "public": False,
        }

    def test_create_playlist_failure(self, client, session):
        session.request.side_effect = [response(200, {"id": "me"}), response(403, {"error": "forbidden"})]
        with pytest.raises(ProviderWriteFailure):
            client.create_playlist("x")

    def test_add_items_chunks_by_hundred(self, client, session):
        session.request.return_value = response(201, {"snapshot_id": "s"})
        uris = [f"spotify:track:{i}" for i in range(250)]

        client.add_items("p1", uris)

        sizes = [len(c.kwargs["json"]["uris"]) for c in session.request.call_args_list]
        assert sizes == [100, 100, 50]

    def test_add_items_failure(self, client, session):
        session.request.return_value = response(400, {"error": "bad uri"})
        with pytest.raises(ProviderWriteFailure):
            client.add_items("p1", ["bad"])


class TestSearch:
    def test_search(self, client, session):
        session.request.return_value = response(200, {"tracks": {"items": [track_item(1), track_item(2, id="")]}})

        results = client.search("band - song")

        assert [t.id for t in results] == ["t1"]
        assert session.request.call_args.kwargs["params"] == {"q": "band - song", "type": "track", "limit": 10}

    def test_empty_body(self, client, session):
        session.request.return_value = response(204)
        assert client.search("nothing") == []

    def test_search_error(self, client, session):
        session.request.return_value = response(400, {"error": "bad query"})
        with pytest.raises(SearchFailure):
            client.search("x")
