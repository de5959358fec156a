import os
from pathlib import Path

"""Global constants and path definitions for git-autosync.

This module defines the filesystem layout (adhering to XDG standards where
applicable), application identifiers, scheduling defaults and the literal
messages shown to the user by the sync engine.
"""

# --- Identity ---
APP_NAME = "git-autosync"
"""str: The human-readable application name."""

COMMIT_TAG = "git-autosync"
"""str: The default tag embedded in generated commit messages."""

# --- Paths ---
_XDG_STATE = os.environ.get("XDG_STATE_HOME")
_BASE_STATE = Path(_XDG_STATE) if _XDG_STATE else Path.home() / ".local/state"

STATE_DIR = _BASE_STATE / "git-autosync"
"""Path: The directory for runtime state data (logs)."""

# Ensure state directory exists immediately upon module import.
STATE_DIR.mkdir(parents=True, exist_ok=True)

LOG_FILE = STATE_DIR / "autosync.log"
"""Path: The file path for the watch session logs."""

# --- Configuration Paths ---
CONFIG_DIR: Path = Path.home() / ".config/git-autosync"
"""Path: The directory for user configuration files."""

CONFIG_FILE: Path = CONFIG_DIR / "config.toml"
"""Path: The main configuration file path."""

LOCAL_CONFIG_NAME = "autosync.toml"
"""str: Per-repository configuration file name."""

SYNC_STATE_NAME = "autosync_state"
"""str: File under `.git` holding the last successful sync time."""

# --- Scheduling ---
MIN_SYNC_INTERVAL = 300
"""int: Seconds required between two automatic syncs."""

BLUR_SYNC_INTERVAL = 300
"""int: Seconds between resyncs while the host is unfocused."""

STATUS_DEBOUNCE = 2.0
"""float: Seconds of quiet before a debounced status refresh runs."""

OPERATION_DEBOUNCE = 0.1
"""float: Seconds of quiet before a debounced manual operation runs."""

TIMEOUT_EXIT_CODE = 124
"""int: Exit code reported for a git command killed by the timeout."""

# --- Messages ---
MSG_ALREADY_SYNCED = "No changes — already synced"
MSG_PULLED = "Remote changes pulled to local"
MSG_PUSHED = "Local changes pushed to remote"
MSG_PULLED_AND_PUSHED = "Remote changes pulled, then local changes pushed"
MSG_SYNCING = "Syncing files with remote…"
MSG_REMOTE_UNKNOWN = "Unable to check remote files, please wait and try again"
MSG_SYNC_ERROR = "Error syncing files"
MSG_SYNCED_AWAY = "Files synced while you were away"
MSG_NOT_SYNCED = (
    "The current repository is not synchronized with the remote repository, "
    "please check."
)
MSG_NO_LOCAL_CHANGES = "No changes detected."
MSG_LOCAL_CHANGES = "Changes detected:\n"

# --- Message timeouts (seconds, 0 means persistent) ---
SYNCING_TIMEOUT = 5
REMOTE_UNKNOWN_TIMEOUT = 3
OUTCOME_TIMEOUT = 8
SYNCED_AWAY_TIMEOUT = 4
PERSISTENT = 0
