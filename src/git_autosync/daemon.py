import asyncio
import logging
import signal
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

from rich.console import Console

from .config import Config
from .constants import APP_NAME, LOG_FILE
from .session import Session

logger = logging.getLogger(APP_NAME)
logger.setLevel(logging.INFO)

console = Console()


def setup_logging(interactive: bool, max_log_size: int | None = None) -> None:
    """Configures the logging subsystem.

    Args:
        interactive (bool): If True, logs to stdout. If False, logs to stderr
                            and to a rotating file.
        max_log_size (int | None): Bytes before the log file rotates.
    """
    formatter = logging.Formatter(
        "[%(asctime)s] %(levelname)s: %(message)s", "%Y-%m-%d %H:%M:%S"
    )

    # Re-running setup (e.g. from tests) must not duplicate output.
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    stream_handler = logging.StreamHandler(
        sys.stderr if not interactive else sys.stdout
    )
    stream_handler.setFormatter(formatter)
    logger.addHandler(stream_handler)

    if not interactive:
        file_handler = RotatingFileHandler(
            LOG_FILE,
            maxBytes=max_log_size or Config().limits.max_log_size,
            backupCount=5,
        )
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)


async def watch(session: Session, stop: asyncio.Event | None = None) -> None:
    """Runs an unattended sync session until stopped.

    A terminal session nobody is looking at behaves like an unfocused host
    window: the scheduler syncs immediately and then periodically. Stopping
    counts as regaining focus, so a background pull is reported on exit.

    Args:
        session (Session): The repository session to drive.
        stop (asyncio.Event | None): Set to end the session. When None, SIGINT
                                     and SIGTERM end it.
    """
    loop = asyncio.get_running_loop()
    if stop is None:
        stop = asyncio.Event()
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, stop.set)
            except (NotImplementedError, RuntimeError):
                # add_signal_handler is unavailable on Windows event loops.
                signal.signal(sig, lambda *_: loop.call_soon_threadsafe(stop.set))

    logger.info(f"WATCH: {session.git.path}")
    session.scheduler.refresh_status()
    session.scheduler.on_blur()
    try:
        await stop.wait()
    finally:
        session.scheduler.on_focus()
        await session.shutdown()
        logger.info("WATCH: stopped.")


def main(repo_path: Path | None = None, interactive: bool = True) -> None:
    """Entry point for the watch loop.

    Args:
        repo_path (Path | None): Repository to watch. Defaults to the cwd.
        interactive (bool): Log to stdout instead of stderr plus file.
    """
    path = (repo_path or Path.cwd()).resolve()
    config = Config.load(path)
    setup_logging(interactive, config.limits.max_log_size)

    try:
        session = Session(path, config=config)
    except ValueError as e:
        console.print(f"[bold red]ERROR:[/bold red] {e}")
        sys.exit(1)

    console.print(
        f"[bold blue]WATCH:[/bold blue] Syncing [cyan]{path.name}[/cyan] "
        f"every {config.sync.blur_interval:.0f}s. Press Ctrl-C to stop."
    )
    asyncio.run(watch(session))


if __name__ == "__main__":
    main()
