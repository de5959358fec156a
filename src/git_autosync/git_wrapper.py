import asyncio
import datetime
import logging
import subprocess
from dataclasses import dataclass
from pathlib import Path

from .constants import APP_NAME, COMMIT_TAG, TIMEOUT_EXIT_CODE

logger = logging.getLogger(APP_NAME)

LOG_FORMAT = "--pretty=format:%h %ad | %s%d [%an]"


@dataclass(frozen=True)
class CommandResult:
    """The outcome of a single git invocation.

    Attributes:
        exit_code (int): Process exit status. Zero is the only success signal.
        stdout (str): Captured standard output.
        stderr (str): Captured standard error.
        timed_out (bool): True if the command was abandoned by the timeout.
    """

    exit_code: int
    stdout: str = ""
    stderr: str = ""
    timed_out: bool = False

    @property
    def ok(self) -> bool:
        return self.exit_code == 0


def commit_message(tag: str = COMMIT_TAG, now: datetime.datetime | None = None) -> str:
    """Builds the tagged commit message used for automatic commits.

    Args:
        tag (str): The tool tag placed inside the brackets.
        now (datetime.datetime | None): Timestamp to embed. Defaults to UTC now.

    Returns:
        str: A message of the form '[<tag>:commit] <ISO-8601 timestamp>'.
    """
    stamp = (now or datetime.datetime.now(datetime.timezone.utc)).isoformat()
    return f"[{tag}:commit] {stamp}"


class GitRepo:
    """A wrapper around the Git command-line interface for a specific repository.

    Unlike a raising wrapper, every command returns a `CommandResult`; callers
    inspect the exit code themselves. The async helpers run git in a worker
    thread so the event loop keeps serving other triggers while it waits.

    Attributes:
        path (Path): The file system path to the repository root.
        remote (str): The remote used for fetch comparisons.
        timeout (float | None): Seconds before a command is abandoned.
    """

    def __init__(
        self, path: Path, remote: str = "origin", timeout: float | None = None
    ):
        """Initializes the GitRepo instance.

        Args:
            path (Path): The path to the repository root directory.
            remote (str): The remote to fetch from. Defaults to 'origin'.
            timeout (float | None): Per-command timeout in seconds. None or 0
                                    means unbounded.

        Raises:
            ValueError: If the specified path does not contain a .git directory.
        """
        self.path = path
        self.remote = remote
        self.timeout = timeout or None
        if not (self.path / ".git").exists():
            raise ValueError(f"Not a git repository: {self.path}")

    def execute(self, args: list[str]) -> CommandResult:
        """Executes a Git command within the repository context.

        Args:
            args (list[str]): A list of arguments to pass to the git command.

        Returns:
            CommandResult: The exit code and captured output. Non-zero exits,
                           timeouts and a missing git binary are all reported
                           here rather than raised.
        """
        logger.debug(f"git {' '.join(args)}")
        try:
            res = subprocess.run(
                ["git", *args],
                cwd=self.path,
                capture_output=True,
                encoding="utf-8",
                errors="replace",
                timeout=self.timeout,
            )
        except subprocess.TimeoutExpired as e:
            logger.warning(f"TIMEOUT git {args[0]} after {self.timeout}s")
            return CommandResult(
                exit_code=TIMEOUT_EXIT_CODE,
                stdout=_decode(e.stdout),
                stderr=_decode(e.stderr),
                timed_out=True,
            )
        except OSError as e:
            logger.error(f"Git could not be started: {e}")
            return CommandResult(exit_code=127, stderr=str(e))

        return CommandResult(
            exit_code=res.returncode, stdout=res.stdout, stderr=res.stderr
        )

    async def run(self, args: list[str]) -> CommandResult:
        """Runs `execute` in a worker thread."""
        return await asyncio.to_thread(self.execute, args)

    async def status(self) -> CommandResult:
        """Returns the porcelain status of the working tree."""
        return await self.run(["status", "--porcelain"])

    async def fetch(self) -> CommandResult:
        """Refreshes remote-tracking refs from the configured remote."""
        return await self.run(["fetch", self.remote])

    async def rev_parse(self, rev: str) -> CommandResult:
        """Resolves a revision (e.g. 'HEAD', '@{u}') to a commit identifier."""
        return await self.run(["rev-parse", rev])

    async def pull(self) -> CommandResult:
        return await self.run(["pull"])

    async def pull_rebase(self) -> CommandResult:
        return await self.run(["pull", "--rebase"])

    async def push(self) -> CommandResult:
        return await self.run(["push"])

    async def stage_all(self) -> CommandResult:
        """Stages all changes (modified, deleted, and untracked files)."""
        return await self.run(["add", "--all"])

    async def commit(self, message: str) -> CommandResult:
        """Stages everything and creates a commit with the provided message.

        A failed stage is returned as the commit's result.

        Args:
            message (str): The commit message.
        """
        staged = await self.stage_all()
        if not staged.ok:
            return staged
        return await self.run(["commit", "-m", message])

    async def checkout(self) -> CommandResult:
        """Discards uncommitted edits in the working tree."""
        return await self.run(["checkout", "."])

    async def log(self, limit: int = 50) -> CommandResult:
        """Returns a one-line-per-commit history of the current branch."""
        return await self.run(["log", LOG_FORMAT, "--date=short", "-n", str(limit)])


def _decode(data: bytes | str | None) -> str:
    if data is None:
        return ""
    if isinstance(data, bytes):
        return data.decode(errors="replace")
    return data
