"""Status and report file writers"""

import json
import logging
import os
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from listbridge.core.models import TransferProgress, TransferReport

logger = logging.getLogger(__name__)


def write_status(progress: TransferProgress, status_file: Path, last_error: str | None = None) -> bool:
    data = {
        "status": progress.status.value,
        "updated_at": datetime.now(timezone.utc).isoformat(),
        "processed": progress.processed,
        "total": progress.total,
        "last_error": last_error,
    }
    return atomic_write_json(status_file, data)


def write_report(report: TransferReport, report_file: Path) -> bool:
    return atomic_write_json(report_file, report.to_dict())


def atomic_write_json(path: Path, data: Any) -> bool:
    """Write JSON via a temp file and rename. Returns False on failure."""
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, temp_path = tempfile.mkstemp(dir=path.parent, prefix=f".{path.stem}_", suffix=".tmp")
        try:
            with os.fdopen(fd, 'w', encoding='utf-8') as f:
                json.dump(data, f, indent=2, ensure_ascii=False)
            os.replace(temp_path, path)
            return True
        except Exception:
            if os.path.exists(temp_path):
                os.unlink(temp_path)
            raise
    except Exception as e:
        logger.error(f"Failed to write {path}: {e}")
        return False
