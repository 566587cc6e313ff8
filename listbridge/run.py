#!/usr/bin/env python3
"""ListBridge - playlist transfer entry point"""

import fcntl
import logging
import os
import sys
import time
from pathlib import Path

from listbridge.clients.spotify import SpotifyClient
from listbridge.clients.youtube import YouTubeClient
from listbridge.core.cache import LRUCache
from listbridge.core.checkpoint import FileCheckpointStore
from listbridge.core.collection_io import collection_from_provider, load_collection, save_collection
from listbridge.core.decisions import MatchDecisions
from listbridge.core.models import (
    AuthenticationRequired, CheckpointWriteFailure, Collection, ProviderWriteFailure, QuotaExceeded,
    TransferProgress, TransferStatus,
)
from listbridge.core.review import ReviewQueue
from listbridge.core.rules import MatchRules
from listbridge.core.searcher import CandidateSearcher
from listbridge.core.status import write_report, write_status
from listbridge.core.transfer import TransferOrchestrator

DEFAULT_DATA_DIR = Path.home() / ".listbridge"
STALE_LOCK_SECONDS = 1800
PROVIDERS = ("spotify", "youtube")

# Rough per-track cost on YouTube: up to four searches plus one insert
YOUTUBE_TRACK_COST = 4 * 101 + 50

logger = logging.getLogger(__name__)


def _data_dir() -> Path:
    return Path(os.environ.get("LISTBRIDGE_DATA_DIR", DEFAULT_DATA_DIR)).expanduser()


def setup_logging(data_dir: Path) -> None:
    level = getattr(logging, os.environ.get("LOG_LEVEL", "INFO").upper(), logging.INFO)
    data_dir.mkdir(parents=True, exist_ok=True)
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(levelname)s - %(name)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        handlers=[
            logging.FileHandler(data_dir / "listbridge.log", encoding="utf-8"),
            logging.StreamHandler()
        ]
    )


def acquire_lock(lock_file: Path) -> int | None:
    try:
        # Older than 30 min = likely orphaned
        if lock_file.exists():
            age = time.time() - lock_file.stat().st_mtime
            if age > STALE_LOCK_SECONDS:
                logger.warning(f"Removing stale lock file (age: {age:.0f}s)")
                lock_file.unlink(missing_ok=True)

        fd = os.open(str(lock_file), os.O_CREAT | os.O_RDWR)
        fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
        os.write(fd, f"{os.getpid()}\n".encode())
        return fd
    except OSError:
        return None


def release_lock(fd: int, lock_file: Path) -> None:
    try:
        fcntl.flock(fd, fcntl.LOCK_UN)
        os.close(fd)
        lock_file.unlink(missing_ok=True)
    except OSError as e:
        logger.warning(f"Failed to release lock: {e}")


def _flag(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def load_config() -> dict:
    """Read settings from the environment. Exits on invalid configuration."""
    config = {
        "source": os.environ.get("SOURCE_PROVIDER", "spotify").lower(),
        "target": os.environ.get("TARGET_PROVIDER", "youtube").lower(),
        "playlist_ids": [p.strip() for p in os.environ.get("PLAYLIST_IDS", "").split(",") if p.strip()],
        "collection_file": os.environ.get("COLLECTION_FILE") or None,
        "export_path": os.environ.get("EXPORT_PATH") or None,
        "locale": os.environ.get("LOCALE", "en"),
        "resume": _flag(os.environ.get("RESUME"), True),
    }
    problems = []

    for role in ("source", "target"):
        if config[role] not in PROVIDERS:
            problems.append(f"{role.upper()}_PROVIDER must be one of {', '.join(PROVIDERS)}")
    if config["source"] == config["target"]:
        problems.append("SOURCE_PROVIDER and TARGET_PROVIDER must differ")

    try:
        config["rules"] = MatchRules(
            auto_accept=int(os.environ.get("AUTO_ACCEPT_THRESHOLD", MatchRules.auto_accept)),
            review=int(os.environ.get("REVIEW_THRESHOLD", MatchRules.review)),
        )
    except ValueError:
        problems.append("AUTO_ACCEPT_THRESHOLD and REVIEW_THRESHOLD must be integers")

    needed = set() if config["export_path"] else {config["target"]}
    if not config["collection_file"]:
        needed.add(config["source"])
    if "spotify" in needed and not (
        os.environ.get("SPOTIFY_ACCESS_TOKEN") or os.environ.get("SPOTIFY_REFRESH_TOKEN")
    ):
        problems.append("Missing config: SPOTIFY_REFRESH_TOKEN or SPOTIFY_ACCESS_TOKEN")
    if "youtube" in needed and not os.environ.get("YOUTUBE_REFRESH_TOKEN"):
        problems.append("Missing config: YOUTUBE_REFRESH_TOKEN")

    if problems:
        for problem in problems:
            logger.error(problem)
        sys.exit(1)

    return config


def build_client(provider: str, data_dir: Path):
    if provider == "spotify":
        return SpotifyClient(
            client_id=os.environ.get("SPOTIFY_CLIENT_ID"),
            client_secret=os.environ.get("SPOTIFY_CLIENT_SECRET"),
            refresh_token=os.environ.get("SPOTIFY_REFRESH_TOKEN"),
            access_token=os.environ.get("SPOTIFY_ACCESS_TOKEN"),
            token_cache=data_dir / ".spotify_token.json",
        )
    return YouTubeClient(
        os.environ.get("YOUTUBE_REFRESH_TOKEN"),
        secrets_file=data_dir / "client_secrets.json",
    )


def warn_on_quota(target, collection: Collection) -> None:
    """Advisory only: the transfer proceeds whatever the estimate says."""
    if not hasattr(target, "quota_usage"):
        return
    tracks = sum(len(p.tracks) for p in collection.playlists)
    estimate = tracks * YOUTUBE_TRACK_COST + len(collection.playlists) * 50
    remaining = target.quota_usage()["remaining"]
    if estimate > remaining:
        logger.warning(f"Transfer may need ~{estimate} quota units, {remaining} remaining today")


def export_only(collection: Collection, export_path: Path, status_file: Path) -> int:
    """Write the collection instead of transferring it."""
    save_collection(collection, export_path)
    tracks = sum(len(p.tracks) for p in collection.playlists)
    logger.info(f"Exported {len(collection.playlists)} playlists ({tracks} tracks) to {export_path}")
    write_status(TransferProgress(TransferStatus.COMPLETED), status_file)
    return 0


def main() -> int:
    data_dir = _data_dir()
    setup_logging(data_dir)
    status_file = data_dir / "transfer_status.json"
    lock_file = data_dir / ".transfer.lock"

    lock_fd = acquire_lock(lock_file)
    if lock_fd is None:
        logger.warning("Another transfer running, exiting")
        return 0

    def fail(message: str) -> int:
        logger.error(message)
        write_status(TransferProgress(TransferStatus.FAILED), status_file, message)
        return 1

    try:
        config = load_config()
        write_status(TransferProgress(TransferStatus.RUNNING), status_file)

        checkpoints = FileCheckpointStore(data_dir / "checkpoint.json")
        resume = checkpoints.load() if config["resume"] else None
        decisions = MatchDecisions(data_dir / "matches.json")
        reviews = ReviewQueue(decisions)
        rules = config["rules"]

        try:
            if config["collection_file"]:
                collection = load_collection(Path(config["collection_file"]))
            else:
                source = build_client(config["source"], data_dir)
                collection = collection_from_provider(source, config["playlist_ids"] or None)
            if config["export_path"]:
                return export_only(collection, Path(config["export_path"]), status_file)
            target = build_client(config["target"], data_dir)
        except AuthenticationRequired as e:
            return fail(f"Authentication failed: {e}")

        if resume:
            logger.info(f"Found checkpoint at {resume.processed}/{resume.total} "
                        f"(playlist {resume.playlist_id}, saved {resume.saved_at})")
        warn_on_quota(target, collection)

        orchestrator = TransferOrchestrator(
            CandidateSearcher(LRUCache(rules.cache_capacity), rules),
            decisions,
            checkpoints,
            reviews,
            locale=config["locale"],
            on_progress=lambda progress: write_status(progress, status_file),
        )

        try:
            report = orchestrator.transfer_collection(collection, target, resume=resume)
        finally:
            decisions.save()

        write_report(report, data_dir / "transfer_report.json")
        shortlisted = sum(1 for item in reviews.pending() if item.shortlist(rules.review))
        logger.info(f"Transfer report: {len(report.failures)} failures, "
                    f"{len(reviews)} awaiting review ({shortlisted} with candidates above {rules.review})")
        return 0

    except AuthenticationRequired as e:
        return fail(f"Authentication required: {e}")
    except QuotaExceeded as e:
        return fail(f"Quota exceeded: {e}")
    except ProviderWriteFailure as e:
        return fail(f"Provider write failed: {e}")
    except CheckpointWriteFailure as e:
        return fail(f"Checkpoint write failed: {e}")
    except Exception as e:
        logger.exception(f"Unexpected error: {e}")
        write_status(TransferProgress(TransferStatus.FAILED), status_file, f"Unexpected error: {e}")
        return 1
    finally:
        release_lock(lock_fd, lock_file)


if __name__ == "__main__":
    sys.exit(main())
