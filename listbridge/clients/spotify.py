"""Spotify Web API Client - refresh-token auth, paginated reads, chunked writes"""

import json
import logging
import time
from pathlib import Path
from typing import Any, Callable

import requests

from listbridge.clients.retry import RetryableError, with_backoff
from listbridge.core.models import (
    AuthenticationRequired, PlaylistSummary, ProviderWriteFailure, SearchFailure,
    Track, TransferError,
)

logger = logging.getLogger(__name__)

PROVIDER_NAME = "spotify"
API_BASE = "https://api.spotify.com/v1"
TOKEN_URL = "https://accounts.spotify.com/api/token"
ADD_CHUNK = 100
SEARCH_LIMIT = 10
REQUEST_TIMEOUT = 30
TOKEN_MARGIN_MS = 300000


class SpotifyAuthError(AuthenticationRequired):
    pass


class SpotifyAPIError(TransferError):
    pass


class SpotifySchemaError(TransferError):
    pass


def _release_year(album: dict) -> int | None:
    release_date = album.get("release_date") or ""
    return int(release_date[:4]) if release_date[:4].isdigit() else None


def _chunks(items: list[str], size: int) -> list[list[str]]:
    return [items[i:i + size] for i in range(0, len(items), size)]


class SpotifyClient:
    name = PROVIDER_NAME

    def __init__(self, client_id: str | None = None, client_secret: str | None = None,
                 refresh_token: str | None = None, access_token: str | None = None,
                 token_cache: Path | None = None, session: requests.Session | None = None,
                 max_retries: int = 5, sleep: Callable[[float], None] = time.sleep):
        self._client_id = client_id
        self._client_secret = client_secret
        self._refresh = refresh_token
        self._token: str | None = access_token
        # A fixed access token never expires from our side
        self._token_expires: int = 0 if not access_token else 2 ** 62
        self._token_cache = token_cache
        self._session = session or requests.Session()
        self._max_retries = max_retries
        self._sleep = sleep
        self._user_id: str | None = None

        if not self._token and not self._load_cached_token():
            self._refresh_token()

        logger.info("Spotify client initialized")

    def _load_cached_token(self) -> bool:
        if not self._token_cache:
            return False
        try:
            if self._token_cache.exists():
                data = json.loads(self._token_cache.read_text())
                expires = data.get("expires_at", 0)
                if time.time() * 1000 < (expires - TOKEN_MARGIN_MS):
                    self._token = data["access_token"]
                    self._token_expires = expires
                    logger.debug("Loaded cached Spotify token")
                    return True
        except Exception as e:
            logger.debug(f"Token cache load failed: {e}")
        return False

    def _save_token(self) -> None:
        if not self._token_cache:
            return
        try:
            self._token_cache.parent.mkdir(parents=True, exist_ok=True)
            self._token_cache.write_text(json.dumps({
                "access_token": self._token,
                "expires_at": self._token_expires
            }))
        except Exception as e:
            logger.warning(f"Failed to cache token: {e}")

    def _refresh_token(self) -> None:
        if not (self._refresh and self._client_id and self._client_secret):
            raise SpotifyAuthError("Spotify refresh token and client credentials required")

        logger.info("Refreshing Spotify access token...")
        try:
            response = self._session.post(
                TOKEN_URL,
                data={"grant_type": "refresh_token", "refresh_token": self._refresh},
                auth=(self._client_id, self._client_secret),
                timeout=REQUEST_TIMEOUT,
            )
        except requests.RequestException as e:
            raise SpotifyAuthError(f"Token refresh failed: {e}") from e

        if response.status_code != 200:
            raise SpotifyAuthError(f"Token refresh rejected ({response.status_code}): {response.text[:200]}")

        data = response.json()
        self._token = data["access_token"]
        self._token_expires = int(time.time() * 1000) + int(data.get("expires_in", 3600)) * 1000
        # Spotify may rotate the refresh token
        self._refresh = data.get("refresh_token", self._refresh)
        self._save_token()
        logger.info("Spotify token obtained")

    def _ensure_token(self) -> None:
        if time.time() * 1000 >= (self._token_expires - TOKEN_MARGIN_MS):
            self._refresh_token()

    def _request(self, method: str, path: str, name: str, **kwargs) -> Any:
        url = path if path.startswith("http") else f"{API_BASE}{path}"

        def attempt():
            self._ensure_token()
            try:
                response = self._session.request(
                    method, url,
                    headers={"Authorization": f"Bearer {self._token}"},
                    timeout=REQUEST_TIMEOUT,
                    **kwargs
                )
            except (requests.ConnectionError, requests.Timeout) as e:
                raise RetryableError(f"Network error on {name}: {e}") from e

            if response.status_code == 401:
                raise SpotifyAuthError(f"Spotify token rejected on {name}")
            if response.status_code == 429:
                retry_after = response.headers.get("Retry-After")
                raise RetryableError(f"Rate limited on {name}",
                                     float(retry_after) if retry_after else None)
            if response.status_code >= 500:
                raise RetryableError(f"Server error {response.status_code} on {name}")
            if not response.ok:
                logger.error(f"Spotify error {response.status_code}: {response.text[:200]}")
                raise SpotifyAPIError(f"API error {response.status_code} on {name}")
            if response.status_code == 204 or not response.content:
                return None
            return response.json()

        try:
            return with_backoff(attempt, name, max_attempts=self._max_retries, sleep=self._sleep)
        except RetryableError as e:
            raise SpotifyAPIError(f"{name} failed after {self._max_retries} attempts: {e}") from e

    def _paginate(self, path: str, name: str) -> list[dict]:
        items = []
        next_url: str | None = path
        while next_url:
            page = self._request("GET", next_url, name)
            if not isinstance(page, dict) or "items" not in page:
                raise SpotifySchemaError(f"Response for {name} missing 'items'")
            items.extend(page["items"])
            next_url = page.get("next")
        return items

    def _current_user_id(self) -> str:
        if self._user_id is None:
            profile = self._request("GET", "/me", "profile")
            if not profile or "id" not in profile:
                raise SpotifySchemaError("Profile response missing 'id'")
            self._user_id = profile["id"]
        return self._user_id

    def list_playlists(self) -> list[PlaylistSummary]:
        playlists = []
        for item in self._paginate("/me/playlists?limit=50", "list playlists"):
            if not item or not item.get("id"):
                continue
            images = item.get("images") or []
            playlists.append(PlaylistSummary(
                id=item["id"],
                name=item.get("name", ""),
                description=item.get("description") or None,
                visibility="public" if item.get("public") else "private",
                cover_url=images[0].get("url") if images else None,
                track_count=(item.get("tracks") or {}).get("total", 0),
            ))
        logger.info(f"Retrieved {len(playlists)} Spotify playlists")
        return playlists

    def read_tracks(self, playlist_id: str) -> list[Track]:
        tracks = []
        for item in self._paginate(f"/playlists/{playlist_id}/tracks?limit=100",
                                   f"read playlist {playlist_id}"):
            track = self._extract_track((item or {}).get("track"))
            if track:
                tracks.append(track)
        logger.info(f"Retrieved {len(tracks)} tracks from Spotify playlist {playlist_id}")
        return tracks

    def _extract_track(self, data: dict | None) -> Track | None:
        # Local files and podcast episodes have no usable id
        if not data or data.get("type", "track") != "track" or not data.get("id"):
            return None

        album = data.get("album") or {}
        images = album.get("images") or []
        return Track(
            id=data["id"],
            title=data.get("name", ""),
            artists=[a.get("name", "") for a in data.get("artists") or [] if a.get("name")],
            album=album.get("name"),
            duration_ms=data.get("duration_ms"),
            isrc=(data.get("external_ids") or {}).get("isrc"),
            release_year=_release_year(album),
            explicit=data.get("explicit"),
            cover_url=images[0].get("url") if images else None,
            source_ids={PROVIDER_NAME: data.get("uri") or f"spotify:track:{data['id']}"},
        )

    def create_playlist(self, name: str, description: str | None = None,
                        visibility: str = "private") -> str:
        try:
            user_id = self._current_user_id()
            response = self._request(
                "POST", f"/users/{user_id}/playlists", f"create playlist '{name}'",
                json={"name": name, "description": description or "", "public": visibility == "public"},
            )
        except (SpotifyAPIError, SpotifySchemaError) as e:
            raise ProviderWriteFailure(str(e)) from e
        if not response or "id" not in response:
            raise ProviderWriteFailure(f"Create playlist '{name}' returned no id")
        return response["id"]

    def add_items(self, playlist_id: str, ids: list[str]) -> None:
        """Add track URIs in chunks of 100."""
        for uris in _chunks(ids, ADD_CHUNK):
            try:
                self._request("POST", f"/playlists/{playlist_id}/tracks", f"add to {playlist_id}",
                              json={"uris": uris})
            except SpotifyAPIError as e:
                raise ProviderWriteFailure(str(e)) from e
            logger.debug(f"Added {len(uris)} tracks to {playlist_id}")

    def search(self, query: str) -> list[Track]:
        try:
            response = self._request("GET", "/search", f"search '{query}'",
                                     params={"q": query, "type": "track", "limit": SEARCH_LIMIT})
        except SpotifyAPIError as e:
            raise SearchFailure(str(e)) from e
        items = ((response or {}).get("tracks") or {}).get("items") or []
        return [t for t in (self._extract_track(item) for item in items) if t]
