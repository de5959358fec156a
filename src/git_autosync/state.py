import contextlib
import json
import logging
import os
from pathlib import Path

from .constants import APP_NAME, SYNC_STATE_NAME

logger = logging.getLogger(APP_NAME)


def _state_file(repo_path: Path) -> Path:
    return repo_path / ".git" / SYNC_STATE_NAME


def get_last_sync(repo_path: Path) -> float | None:
    """Retrieves the persisted time of the last successful sync.

    One-shot commands start with an empty scheduler, so the throttle
    timestamp is kept inside the repository's `.git` directory between runs.

    Args:
        repo_path (Path): The path to the repository.

    Returns:
        float | None: A Unix timestamp, or None if no sync was recorded or the
                      file is unreadable.
    """
    state_file = _state_file(repo_path)
    if not state_file.exists():
        return None

    try:
        content = state_file.read_text().strip()
        if not content:
            return None
        value = json.loads(content).get("last_sync_ts")
        return float(value) if value is not None else None
    except (OSError, ValueError, AttributeError, TypeError) as e:
        logger.debug(f"Failed to read sync state: {e}")
        return None


def set_last_sync(repo_path: Path, last_sync_ts: float) -> None:
    """Persists the time of the last successful sync atomically.

    Args:
        repo_path (Path): The path to the repository.
        last_sync_ts (float): The Unix timestamp to record.
    """
    state_file = _state_file(repo_path)
    tmp_file = state_file.with_suffix(".tmp")

    try:
        with open(tmp_file, "w") as f:
            json.dump({"last_sync_ts": last_sync_ts}, f)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_file, state_file)
    except OSError as e:
        logger.debug(f"Failed to write sync state: {e}")
        if tmp_file.exists():
            with contextlib.suppress(OSError):
                tmp_file.unlink()
