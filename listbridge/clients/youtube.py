"""
YouTube Data API v3 Client

Handles OAuth authentication and playlist operations as a transfer
provider. Includes retry logic for rate limiting and transient errors, and
keeps a running estimate of quota spent.

Quota costs:
- search.list: 100 units
- videos.list, playlists.list, playlistItems.list: 1 unit
- playlists.insert, playlistItems.insert: 50 units
"""

import json
import logging
import os
import re
import time
from pathlib import Path
from typing import Any, Callable

from google.auth.exceptions import RefreshError
from google.oauth2.credentials import Credentials
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from listbridge.clients.retry import RetryableError, with_backoff
from listbridge.core.models import (
    AuthenticationRequired, PlaylistSummary, ProviderWriteFailure, QuotaExceeded,
    SearchFailure, Track, TransferError,
)

logger = logging.getLogger(__name__)

PROVIDER_NAME = "youtube"
TOKEN_URI = "https://oauth2.googleapis.com/token"
SCOPES = ["https://www.googleapis.com/auth/youtube"]
DAILY_QUOTA = 10_000
QUOTA_COST = {
    "search.list": 100,
    "videos.list": 1,
    "playlists.list": 1,
    "playlists.insert": 50,
    "playlistItems.list": 1,
    "playlistItems.insert": 50,
}
SEARCH_RESULTS = 10
MUSIC_CATEGORY = "10"
INSERT_PAUSE = 0.5
RATE_LIMIT_WAIT = 60.0

_ISO_DURATION = re.compile(r"^P(?:(\d+)D)?(?:T(?:(\d+)H)?(?:(\d+)M)?(?:(\d+)S)?)?$")
_CHANNEL_SUFFIX = re.compile(r"\s*(?:-\s*topic|vevo)$", re.IGNORECASE)
_UNAVAILABLE_TITLES = {"Deleted video", "Private video"}


class YouTubeAuthError(AuthenticationRequired):
    """YouTube authentication failed."""
    pass


class YouTubeAPIError(TransferError):
    """YouTube API operation failed."""
    pass


class YouTubeQuotaExceededError(QuotaExceeded):
    """YouTube API quota exceeded."""
    pass


def _load_client_credentials(secrets_file: Path | None = None) -> tuple[str, str]:
    """Load OAuth client credentials from env vars or client_secrets.json."""
    client_id = os.environ.get("GOOGLE_CLIENT_ID")
    client_secret = os.environ.get("GOOGLE_CLIENT_SECRET")

    if client_id and client_secret:
        return client_id, client_secret

    if secrets_file and secrets_file.exists():
        try:
            secrets = json.loads(secrets_file.read_text())
            creds = secrets.get("installed") or secrets.get("web")
            if creds:
                return creds["client_id"], creds["client_secret"]
        except Exception as e:
            logger.warning(f"Failed to parse {secrets_file.name}: {e}")

    raise YouTubeAuthError(
        "OAuth credentials not found. Set GOOGLE_CLIENT_ID/GOOGLE_CLIENT_SECRET "
        "or provide client_secrets.json"
    )


def parse_iso_duration(duration: str | None) -> int | None:
    """Milliseconds for an ISO 8601 duration such as PT3M18S."""
    match = _ISO_DURATION.match(duration or "")
    if not match or not any(match.groups()):
        return None
    days, hours, minutes, seconds = (int(g or 0) for g in match.groups())
    return (((days * 24 + hours) * 60 + minutes) * 60 + seconds) * 1000


def _clean_channel(channel: str | None) -> str:
    return _CHANNEL_SUFFIX.sub("", channel or "").strip()


def _thumbnail(snippet: dict) -> str | None:
    thumbs = snippet.get("thumbnails", {})
    for size in ("high", "standard", "medium", "default"):
        if size in thumbs:
            return thumbs[size].get("url")
    return None


class YouTubeClient:
    """YouTube Data API client with retry logic."""

    name = PROVIDER_NAME

    def __init__(self, refresh_token: str | None = None, service: Any = None,
                 secrets_file: Path | None = None, max_retries: int = 3,
                 sleep: Callable[[float], None] = time.sleep):
        self._max_retries = max_retries
        self._sleep = sleep
        self._quota_used = 0

        if service is not None:
            self._service = service
            return

        if not refresh_token:
            raise YouTubeAuthError("YouTube refresh token required")
        try:
            client_id, client_secret = _load_client_credentials(secrets_file)

            credentials = Credentials(
                token=None,
                refresh_token=refresh_token,
                token_uri=TOKEN_URI,
                client_id=client_id,
                client_secret=client_secret,
                scopes=SCOPES
            )

            self._service = build("youtube", "v3", credentials=credentials)
            logger.info("YouTube client initialized")

        except YouTubeAuthError:
            raise
        except Exception as e:
            raise YouTubeAuthError(f"Failed to authenticate: {e}")

    def _classify(self, error: HttpError, name: str, first_attempt: bool) -> Exception:
        status = error.resp.status if error.resp else 0
        error_str = str(error)

        if status == 401:
            return YouTubeAuthError(f"YouTube token rejected on {name}")
        if status == 403 and ("quotaExceeded" in error_str or "dailyLimitExceeded" in error_str):
            return YouTubeQuotaExceededError(f"Quota exceeded: {error}")
        if status in (403, 429):
            # Rate limit: one long wait, then regular backoff
            return RetryableError(f"Rate limited on {name}", RATE_LIMIT_WAIT if first_attempt else None)
        if status == 409 or status >= 500:
            return RetryableError(f"Server error {status} on {name}")
        return YouTubeAPIError(f"API error on {name}: {error}")

    def _execute(self, request_factory: Callable[[], Any], cost_key: str, name: str) -> dict:
        """Execute an API request with retry, charging its quota cost on success."""
        attempts = [0]

        def attempt():
            attempts[0] += 1
            try:
                return request_factory().execute()
            except HttpError as e:
                raise self._classify(e, name, attempts[0] == 1) from e
            except RefreshError as e:
                raise YouTubeAuthError(f"Token refresh failed: {e}") from e
            except OSError as e:
                raise RetryableError(f"Network error on {name}: {e}") from e

        try:
            response = with_backoff(attempt, name, max_attempts=self._max_retries, sleep=self._sleep)
        except RetryableError as e:
            raise YouTubeAPIError(f"{name} failed after {self._max_retries} attempts: {e}") from e
        self._quota_used += QUOTA_COST[cost_key]
        return response or {}

    def quota_usage(self) -> dict[str, int]:
        return {
            "used": self._quota_used,
            "remaining": max(0, DAILY_QUOTA - self._quota_used),
            "daily": DAILY_QUOTA,
        }

    def list_playlists(self) -> list[PlaylistSummary]:
        """Get all playlists owned by the authenticated channel."""
        playlists = []
        page_token = None

        while True:
            response = self._execute(
                lambda: self._service.playlists().list(
                    part="snippet,contentDetails,status",
                    mine=True,
                    maxResults=50,
                    pageToken=page_token
                ),
                "playlists.list", "list playlists"
            )

            for item in response.get("items", []):
                snippet = item.get("snippet", {})
                privacy = item.get("status", {}).get("privacyStatus")
                playlists.append(PlaylistSummary(
                    id=item["id"],
                    name=snippet.get("title", ""),
                    description=snippet.get("description") or None,
                    visibility="public" if privacy == "public" else "private",
                    cover_url=_thumbnail(snippet),
                    track_count=item.get("contentDetails", {}).get("itemCount", 0),
                ))

            page_token = response.get("nextPageToken")
            if not page_token:
                break

        logger.info(f"Retrieved {len(playlists)} YouTube playlists")
        return playlists

    def read_tracks(self, playlist_id: str) -> list[Track]:
        """Get all videos in a playlist as tracks."""
        tracks = []
        page_token = None

        while True:
            response = self._execute(
                lambda: self._service.playlistItems().list(
                    part="snippet,contentDetails",
                    playlistId=playlist_id,
                    maxResults=50,
                    pageToken=page_token
                ),
                "playlistItems.list", f"list playlist {playlist_id}"
            )

            for item in response.get("items", []):
                track = self._extract_item(item)
                if track:
                    tracks.append(track)

            page_token = response.get("nextPageToken")
            if not page_token:
                break

        logger.info(f"Retrieved {len(tracks)} items from YouTube playlist {playlist_id}")
        return tracks

    def _extract_item(self, item: dict) -> Track | None:
        snippet = item.get("snippet", {})
        video_id = item.get("contentDetails", {}).get("videoId") \
            or snippet.get("resourceId", {}).get("videoId")
        title = snippet.get("title", "")
        if not video_id or title in _UNAVAILABLE_TITLES:
            return None

        channel = _clean_channel(snippet.get("videoOwnerChannelTitle"))
        return Track(
            id=video_id,
            title=title,
            artists=[channel] if channel else [],
            cover_url=_thumbnail(snippet),
            source_ids={PROVIDER_NAME: video_id},
        )

    def create_playlist(self, name: str, description: str | None = None,
                        visibility: str = "private") -> str:
        body = {
            "snippet": {"title": name, "description": description or ""},
            "status": {"privacyStatus": "public" if visibility == "public" else "private"},
        }
        try:
            response = self._execute(
                lambda: self._service.playlists().insert(part="snippet,status", body=body),
                "playlists.insert", f"create playlist '{name}'"
            )
        except YouTubeAPIError as e:
            raise ProviderWriteFailure(str(e)) from e
        return response["id"]

    def add_items(self, playlist_id: str, ids: list[str]) -> None:
        """Insert videos one by one; each insert costs 50 quota units."""
        for video_id in ids:
            body = {
                "snippet": {
                    "playlistId": playlist_id,
                    "resourceId": {"kind": "youtube#video", "videoId": video_id}
                }
            }
            try:
                self._execute(
                    lambda: self._service.playlistItems().insert(part="snippet", body=body),
                    "playlistItems.insert", f"add {video_id}"
                )
            except YouTubeAPIError as e:
                raise ProviderWriteFailure(str(e)) from e
            logger.debug(f"Added: {video_id}")
            self._sleep(INSERT_PAUSE)

    def search(self, query: str) -> list[Track]:
        """Music-category video search, with durations from videos.list."""
        try:
            response = self._execute(
                lambda: self._service.search().list(
                    part="snippet",
                    q=query,
                    type="video",
                    videoCategoryId=MUSIC_CATEGORY,
                    maxResults=SEARCH_RESULTS
                ),
                "search.list", f"search '{query}'"
            )
            ids = [item["id"]["videoId"] for item in response.get("items", [])
                   if item.get("id", {}).get("videoId")]
            if not ids:
                return []

            details = self._execute(
                lambda: self._service.videos().list(part="snippet,contentDetails", id=",".join(ids)),
                "videos.list", f"video details for '{query}'"
            )
        except YouTubeAPIError as e:
            raise SearchFailure(str(e)) from e

        return [self._extract_video(item) for item in details.get("items", [])]

    def _extract_video(self, item: dict) -> Track:
        snippet = item.get("snippet", {})
        content = item.get("contentDetails", {})
        channel = _clean_channel(snippet.get("channelTitle"))
        return Track(
            id=item["id"],
            title=snippet.get("title", ""),
            artists=[channel] if channel else [],
            duration_ms=parse_iso_duration(content.get("duration")),
            explicit=content.get("contentRating", {}).get("ytRating") == "ytAgeRestricted",
            cover_url=_thumbnail(snippet),
            source_ids={PROVIDER_NAME: item["id"]},
        )
