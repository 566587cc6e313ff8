"""Transfer checkpoint persistence. One live checkpoint, overwritten on save."""

import json
import logging
from pathlib import Path
from typing import Protocol

from listbridge.core.models import CheckpointWriteFailure, TransferCheckpoint
from listbridge.core.status import atomic_write_json

logger = logging.getLogger(__name__)


class CheckpointStore(Protocol):
    def save(self, checkpoint: TransferCheckpoint) -> None: ...
    def load(self) -> TransferCheckpoint | None: ...
    def clear(self) -> None: ...


class MemoryCheckpointStore:
    """Keeps the live checkpoint plus every checkpoint saved so far."""

    def __init__(self, checkpoint: TransferCheckpoint | None = None):
        self._current = checkpoint
        self.history: list[TransferCheckpoint] = []

    def save(self, checkpoint: TransferCheckpoint) -> None:
        self._current = checkpoint
        self.history.append(checkpoint)

    def load(self) -> TransferCheckpoint | None:
        return self._current

    def clear(self) -> None:
        self._current = None


class FileCheckpointStore:
    def __init__(self, path: Path):
        self._file = path

    def save(self, checkpoint: TransferCheckpoint) -> None:
        """Raises CheckpointWriteFailure when the file cannot be written."""
        if not atomic_write_json(self._file, checkpoint.to_dict()):
            raise CheckpointWriteFailure(
                f"Checkpoint not saved for playlist {checkpoint.playlist_id} at {self._file}"
            )

    def load(self) -> TransferCheckpoint | None:
        if not self._file.exists():
            return None
        try:
            return TransferCheckpoint.from_dict(json.loads(self._file.read_text(encoding="utf-8")))
        except Exception as e:
            logger.warning(f"Checkpoint load failed: {e}")
            return None

    def clear(self) -> None:
        self._file.unlink(missing_ok=True)
