import argparse
import asyncio
import logging
import os
import subprocess
import sys
import time
from collections.abc import Awaitable, Callable
from pathlib import Path

from rich.console import Console
from rich.table import Table

from . import daemon
from .constants import APP_NAME, CONFIG_FILE, LOG_FILE
from .git_wrapper import CommandResult
from .notifier import IndicatorState
from .scheduler import Trigger
from .session import Session
from .state import get_last_sync, set_last_sync
from .status import RemoteStatus, is_local_dirty

logger = logging.getLogger(APP_NAME)
console = Console()

INDICATOR_LABELS = {
    IndicatorState.INACTIVE: "[green]clean[/green]",
    IndicatorState.ACTIVE: "[red]changes pending[/red]",
    IndicatorState.LOADING: "[yellow]syncing[/yellow]",
}

REMOTE_LABELS = {
    RemoteStatus.UP_TO_DATE: "[green]up to date[/green]",
    RemoteStatus.DIVERGED: "[yellow]diverged[/yellow]",
    RemoteStatus.UNKNOWN: "[red]unknown[/red]",
}


def _open_session(repo_path: Path | None = None) -> Session:
    """Builds a session for the given path or the current directory.

    Raises:
        SystemExit: If the path is not a git repository.
    """
    path = (repo_path or Path.cwd()).resolve()
    try:
        return Session(path)
    except ValueError as e:
        console.print(f"[bold red]ERROR:[/bold red] {e}")
        sys.exit(1)


def run_sync(auto: bool = False) -> int:
    """Runs one sync sequence.

    Args:
        auto (bool): Use the throttled automatic trigger instead of a manual one.

    Returns:
        int: Process exit code (1 if the sequence failed).
    """
    session = _open_session()
    scheduler = session.scheduler
    # Each invocation is a new process, so the throttle timestamp comes from disk.
    scheduler.clock = time.time
    scheduler.state.last_sync = previous = get_last_sync(session.git.path)

    trigger = Trigger.AUTO if auto else Trigger.COMMAND
    with console.status("Syncing with remote...", spinner="dots"):
        outcome = asyncio.run(session.sync(trigger))

    if scheduler.state.last_sync not in (None, previous):
        set_last_sync(session.git.path, scheduler.state.last_sync)
    if outcome.skipped:
        console.print(f"[dim]Skipped: {outcome.message}[/dim]")
    return 1 if outcome.was_error else 0


def show_status() -> None:
    """Displays local and remote divergence for the current repository."""
    session = _open_session()

    async def probe() -> tuple[CommandResult, RemoteStatus]:
        local = await session.oracle.check_local_status()
        remote = await session.oracle.check_remote_divergence()
        return local, remote

    with console.status("Checking repository...", spinner="dots"):
        local, remote = asyncio.run(probe())

    table = Table(title=f"{APP_NAME}: {session.git.path.name}", show_header=False)
    table.add_column("Item", style="cyan", justify="right")
    table.add_column("State")
    table.add_row("Working tree", INDICATOR_LABELS[session.indicator.state])
    table.add_row(f"Remote ({session.git.remote})", REMOTE_LABELS[remote])
    table.add_row(
        "Auto sync",
        "enabled" if session.config.sync.auto_sync else "[dim]disabled[/dim]",
    )
    console.print(table)

    if is_local_dirty(local) and local.stdout.strip():
        console.print(local.stdout.rstrip(), highlight=False)


def check_remote() -> int:
    """Reports whether the current branch matches its upstream."""
    session = _open_session()
    with console.status("Fetching remote...", spinner="dots"):
        status = asyncio.run(session.oracle.check_is_synced(show_message=True))
    if status is RemoteStatus.UP_TO_DATE:
        console.print("[bold green]SUCCESS:[/bold green] Up to date with remote.")
        return 0
    if status is RemoteStatus.UNKNOWN:
        console.print("[bold yellow]WARNING:[/bold yellow] Could not check remote.")
    return 1


def run_operation(name: str) -> int:
    """Runs a single manual git operation by name.

    Args:
        name (str): One of the `Operations` method names.

    Returns:
        int: Process exit code.
    """
    session = _open_session()
    action: Callable[[], Awaitable[CommandResult | None]] = getattr(
        session.operations, name
    )
    result = asyncio.run(action())
    if result is None:
        return 0
    return 0 if result.ok else 1


def open_config() -> None:
    """Opens the global configuration file in the system default editor."""
    if not CONFIG_FILE.exists():
        CONFIG_FILE.parent.mkdir(parents=True, exist_ok=True)
        with open(CONFIG_FILE, "w") as f:
            f.write(
                "# git-autosync configuration\n\n"
                "[sync]\n"
                "# auto_sync = true\n"
                '# min_interval = "5m"\n'
            )

    editor = os.environ.get("EDITOR")
    if not editor:
        editor = "open" if sys.platform == "darwin" else "nano"

    console.print(f"Opening [cyan]{CONFIG_FILE}[/cyan]...")

    try:
        subprocess.run([editor, str(CONFIG_FILE)])
    except OSError as e:
        console.print(f"[red]Could not open editor: {e}[/red]")


def show_config_reference() -> None:
    """Displays a formatted table of all available configuration options."""
    table = Table(title="git-autosync Configuration Schema", show_lines=True)
    table.add_column("Section", style="cyan", justify="right")
    table.add_column("Key", style="green")
    table.add_column("Type", style="dim")
    table.add_column("Default", style="yellow")
    table.add_column("Description")

    table.add_row(
        "core", "remote_name", "str", '"origin"', "The remote fetched and compared."
    )
    table.add_row(
        "",
        "commit_tag",
        "str",
        '"git-autosync"',
        "Tag in generated commit messages: '[tag:commit] <timestamp>'.",
    )

    table.add_row(
        "sync",
        "auto_sync",
        "bool",
        "true",
        "Sync on startup and periodically while unattended.",
    )
    table.add_row(
        "", "auto_push", "bool", "false", "Commit and push when the host is hidden."
    )
    table.add_row(
        "",
        "check_when_changed",
        "bool",
        "true",
        "Refresh the status indicator on data-change events.",
    )
    table.add_row(
        "",
        "min_interval",
        "int | str",
        '"5m"',
        "Minimum time between automatic syncs. Manual syncs ignore it.",
    )
    table.add_row(
        "", "blur_interval", "int | str", '"5m"', "Resync period while unattended."
    )
    table.add_row(
        "",
        "status_debounce",
        "int | str",
        '"2s"',
        "Quiet period before a status refresh runs.",
    )
    table.add_row(
        "",
        "command_timeout",
        "int | str",
        "0",
        "Abandon a git command after this long (0 waits forever).",
    )

    table.add_row(
        "limits",
        "max_log_size",
        "int | str",
        '"5mb"',
        "Max size for log files before rotation (e.g., '5mb', '1gb').",
    )
    table.add_row(
        "notify",
        "desktop",
        "bool",
        "false",
        "Raise desktop notifications for sync outcomes.",
    )

    console.print(table)


def tail_log() -> None:
    """Follows the watch log file in real-time."""
    if not LOG_FILE.exists():
        console.print(f"[red]No log file found yet at {LOG_FILE}.[/red]")
        return

    console.print(f"Tailing [bold cyan]{LOG_FILE}[/bold cyan] (Ctrl+C to stop)...")
    try:
        subprocess.run(["tail", "-n", "1000", "-f", str(LOG_FILE)])
    except KeyboardInterrupt:
        console.print("\nStopped.", style="dim")


OPERATION_COMMANDS = {
    "check": "check",
    "pull": "pull",
    "pull-rebase": "pull_rebase",
    "push": "push",
    "commit": "commit",
    "commit-push": "commit_and_push",
    "checkout": "checkout",
    "log": "log",
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog=APP_NAME,
        description="Keep a git working copy and its remote in sync.",
    )
    subparsers = parser.add_subparsers(dest="command")

    sync_parser = subparsers.add_parser("sync", help="Sync with the remote now")
    sync_parser.add_argument(
        "--auto",
        action="store_true",
        help="Respect the minimum interval between automatic syncs",
    )
    subparsers.add_parser("status", help="Show local and remote divergence")
    subparsers.add_parser("check-remote", help="Check whether the remote moved")
    subparsers.add_parser("check", help="List uncommitted local changes")
    subparsers.add_parser("pull", help="Pull remote changes")
    subparsers.add_parser("pull-rebase", help="Pull remote changes with --rebase")
    subparsers.add_parser("push", help="Push local commits")
    subparsers.add_parser("commit", help="Commit all local changes")
    subparsers.add_parser("commit-push", help="Commit all local changes and push")
    subparsers.add_parser("checkout", help="Discard uncommitted local changes")
    subparsers.add_parser("log", help="Show recent commit history")

    watch_parser = subparsers.add_parser(
        "watch", help="Sync periodically until interrupted"
    )
    watch_parser.add_argument(
        "--background",
        action="store_true",
        help="Log to stderr and the rotating log file instead of stdout",
    )
    subparsers.add_parser("tail", help="Tail the watch log file")

    config_parser = subparsers.add_parser(
        "config", help="Open global config file or view options"
    )
    config_parser.add_argument(
        "--list",
        "-l",
        action="store_true",
        help="List all available configuration options and their descriptions",
    )
    return parser


def main(argv: list[str] | None = None) -> None:
    """Main entry point for the git-autosync CLI."""
    parser = build_parser()
    args = parser.parse_args(argv)
    code = 0
    # `watch` configures its own handlers.
    if args.command not in (None, "watch"):
        daemon.setup_logging(interactive=True)
    logger.debug(f"CLI command: {args.command}")

    if args.command == "sync":
        code = run_sync(auto=args.auto)
    elif args.command == "status":
        show_status()
    elif args.command == "check-remote":
        code = check_remote()
    elif args.command in OPERATION_COMMANDS:
        code = run_operation(OPERATION_COMMANDS[args.command])
    elif args.command == "watch":
        daemon.main(interactive=not args.background)
    elif args.command == "tail":
        tail_log()
    elif args.command == "config":
        if getattr(args, "list", False):
            show_config_reference()
        else:
            open_config()
    else:
        parser.print_help()

    if code:
        sys.exit(code)
