import logging
import re
import tomllib
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any

from .constants import (
    APP_NAME,
    BLUR_SYNC_INTERVAL,
    COMMIT_TAG,
    CONFIG_FILE,
    LOCAL_CONFIG_NAME,
    MIN_SYNC_INTERVAL,
    STATUS_DEBOUNCE,
)

logger = logging.getLogger(APP_NAME)

_SIZE_UNITS = {"k": 1024, "m": 1024**2, "g": 1024**3}
_TIME_UNITS = {
    "ms": 0.001,
    "s": 1,
    "sec": 1,
    "m": 60,
    "min": 60,
    "h": 3600,
    "hr": 3600,
}
_SIZE_RE = re.compile(r"^(\d+(?:\.\d+)?)\s*([kmg])b?$")
_TIME_RE = re.compile(r"^(\d+(?:\.\d+)?)\s*(ms|sec|min|hr|s|m|h)s?$")


def parse_size(value: int | str) -> int:
    """Turns '512kb', '5 MB' or a plain byte count into bytes."""
    if isinstance(value, int):
        return value
    found = _SIZE_RE.match(str(value).strip().lower())
    if found is None:
        raise ValueError(f"Invalid size format '{value}'")
    return int(float(found.group(1)) * _SIZE_UNITS[found.group(2)])


def parse_time(value: int | float | str) -> float:
    """Turns '300ms', '2s', '5m' or a plain number of seconds into seconds."""
    if isinstance(value, bool):
        raise ValueError(f"Invalid time format '{value}'")
    if isinstance(value, (int, float)):
        if value < 0:
            raise ValueError(f"Negative duration '{value}'")
        return float(value)
    found = _TIME_RE.match(str(value).strip().lower())
    if found is None:
        raise ValueError(f"Invalid time format '{value}'")
    return float(found.group(1)) * _TIME_UNITS[found.group(2)]


@dataclass
class CoreConfig:
    """Which remote to track and how generated commits are labelled.

    Attributes:
        remote_name (str): The git remote that is fetched and compared against.
        commit_tag (str): Tag embedded in generated commit messages.
    """

    remote_name: str = "origin"
    commit_tag: str = COMMIT_TAG


@dataclass
class SyncConfig:
    """Sync scheduling settings.

    Attributes:
        auto_sync (bool): Sync on startup and while the host is unfocused.
        auto_push (bool): Commit and push when the host is hidden.
        check_when_changed (bool): Refresh status on data-change events.
        min_interval (float): Seconds between two automatic syncs.
        blur_interval (float): Seconds between resyncs while unfocused.
        status_debounce (float): Quiet period before a status refresh.
        command_timeout (float): Seconds before a git command is abandoned.
            0 disables the timeout.
    """

    auto_sync: bool = True
    auto_push: bool = False
    check_when_changed: bool = True
    min_interval: float = MIN_SYNC_INTERVAL
    blur_interval: float = BLUR_SYNC_INTERVAL
    status_debounce: float = STATUS_DEBOUNCE
    command_timeout: float = 0


@dataclass
class LimitsConfig:
    """Log file bounds for the background watch.

    Attributes:
        max_log_size (int): Bytes before the log file rotates.
    """

    max_log_size: int = 5 * 1024 * 1024


@dataclass
class NotifyConfig:
    """Notification settings.

    Attributes:
        desktop (bool): Also raise desktop notifications for sync outcomes.
    """

    desktop: bool = False


# Keys whose values go through a human-readable parser.
_PARSERS = {
    "min_interval": parse_time,
    "blur_interval": parse_time,
    "status_debounce": parse_time,
    "command_timeout": parse_time,
    "max_log_size": parse_size,
}


@dataclass
class Config:
    """All settings, one dataclass per TOML table.

    Attributes:
        core (CoreConfig): Remote and commit labelling.
        sync (SyncConfig): Scheduling settings.
        limits (LimitsConfig): Log rotation bounds.
        notify (NotifyConfig): Notification settings.
    """

    core: CoreConfig = field(default_factory=CoreConfig)
    sync: SyncConfig = field(default_factory=SyncConfig)
    limits: LimitsConfig = field(default_factory=LimitsConfig)
    notify: NotifyConfig = field(default_factory=NotifyConfig)

    # The user-wide layer is read once per process.
    _global_cache: "Config | None" = None

    @classmethod
    def load(cls, repo_path: Path | None = None) -> "Config":
        """Builds the effective configuration for a repository.

        Layers, later ones winning: built-in defaults, the user-wide
        config file, then the repository's own `autosync.toml` or, failing
        that, `[tool.autosync]` in its `pyproject.toml`.

        Args:
            repo_path (Path | None): Repository root. None skips the local layer.

        Returns:
            Config: A fresh instance the caller may mutate freely.
        """
        if cls._global_cache is None:
            user_wide = cls()
            if CONFIG_FILE.exists():
                user_wide.merge_file(CONFIG_FILE)
            cls._global_cache = user_wide

        config = cls._global_cache.copy()
        if repo_path is not None:
            if (repo_path / LOCAL_CONFIG_NAME).exists():
                config.merge_file(repo_path / LOCAL_CONFIG_NAME)
            elif (repo_path / "pyproject.toml").exists():
                config.merge_file(repo_path / "pyproject.toml", table="tool.autosync")
        return config

    def copy(self) -> "Config":
        return Config(
            **{
                f.name: replace(getattr(self, f.name))
                for f in fields(self)
                if not f.name.startswith("_")
            }
        )

    def merge_file(self, path: Path, table: str | None = None) -> None:
        """Overlays the settings found in a TOML file.

        Unreadable or malformed files are logged and leave the instance as
        it was.

        Args:
            path (Path): The TOML file.
            table (str | None): Dotted path of the table holding the settings,
                                e.g. 'tool.autosync'. None means the file root.
        """
        try:
            with open(path, "rb") as f:
                document = tomllib.load(f)
        except tomllib.TOMLDecodeError as e:
            logger.error(f"Config syntax error in {path}: {e}")
            return
        except OSError as e:
            logger.warning(f"Failed to load config from {path}: {e}")
            return

        for part in table.split(".") if table else ():
            document = document.get(part, {})

        for f in fields(self):
            raw = document.get(f.name)
            if f.name.startswith("_") or not isinstance(raw, dict):
                continue
            setattr(self, f.name, _coerce_section(f.name, getattr(self, f.name), raw))


def _coerce_section(name: str, current: Any, raw: dict) -> Any:
    """Returns `current` updated from `raw`, skipping bad keys and values."""
    known = {f.name for f in fields(current)}
    unknown = sorted(set(raw) - known)
    if unknown:
        logger.warning(
            f"Unknown config keys in [{name}]: {', '.join(unknown)}. Ignoring."
        )

    changes = {}
    for key in known & set(raw):
        parser = _PARSERS.get(key)
        try:
            changes[key] = parser(raw[key]) if parser else raw[key]
        except ValueError as e:
            logger.warning(
                f"Config error in [{name}].{key}: {e}. Falling back to default."
            )
    return replace(current, **changes)
