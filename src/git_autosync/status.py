import enum
import logging
from dataclasses import dataclass

from .constants import APP_NAME, MSG_NOT_SYNCED, PERSISTENT
from .git_wrapper import CommandResult, GitRepo
from .guard import SyncGuard
from .notifier import Indicator, IndicatorState, Notifier, Severity

logger = logging.getLogger(APP_NAME)


class RemoteStatus(enum.Enum):
    """Result of comparing the local branch head with its upstream.

    UNKNOWN is neither up to date nor diverged: the comparison could not be
    made now and the caller must abort its attempt.
    """

    UP_TO_DATE = "up_to_date"
    DIVERGED = "diverged"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class DivergenceState:
    """Which replicas changed since the last synchronization.

    Attributes:
        local_dirty (bool): The working tree has uncommitted changes.
        remote_ahead (bool): The upstream head differs from the local head.
    """

    local_dirty: bool
    remote_ahead: bool

    @property
    def diverged(self) -> bool:
        return self.local_dirty or self.remote_ahead


def is_local_dirty(result: CommandResult) -> bool:
    """Interprets a porcelain status result.

    A failed status command counts as dirty so that the indicator never
    reports a tree it could not inspect as clean.
    """
    if not result.ok:
        return True
    return result.stdout.strip() != ""


class StatusOracle:
    """Answers whether the local and remote replicas have diverged.

    Attributes:
        git (GitRepo): The command gateway.
        guard (SyncGuard): Shared with the engine; consulted before network I/O.
        indicator (Indicator): Updated on every local status check.
        notifier (Notifier): Used by the standalone remote check.
    """

    def __init__(
        self,
        git: GitRepo,
        guard: SyncGuard,
        indicator: Indicator,
        notifier: Notifier,
    ):
        self.git = git
        self.guard = guard
        self.indicator = indicator
        self.notifier = notifier

    async def check_local_status(self) -> CommandResult:
        """Runs the status query and updates the indicator to match.

        Returns:
            CommandResult: The raw porcelain status result.
        """
        result = await self.git.status()
        if not result.ok:
            logger.warning(f"STATUS ERROR: {result.stderr.strip()}")
        if is_local_dirty(result):
            logger.debug("Local changes pending.")
            self.indicator.set_state(IndicatorState.ACTIVE)
        else:
            logger.debug("Working tree clean.")
            self.indicator.set_state(IndicatorState.INACTIVE)
        return result

    async def check_remote_divergence(self, owner: bool = False) -> RemoteStatus:
        """Fetches the remote and compares HEAD with its upstream.

        Declines to touch the network while a sync sequence holds the guard,
        unless the caller is that sequence.

        Args:
            owner (bool): True when the caller itself holds the guard.

        Returns:
            RemoteStatus: UP_TO_DATE iff both identifiers are identical,
                          UNKNOWN if the guard is held or any step failed.
        """
        if self.guard.held and not owner:
            logger.info("SKIPPED remote check: git operation already in progress.")
            return RemoteStatus.UNKNOWN

        fetched = await self.git.fetch()
        if not fetched.ok:
            logger.warning(f"FETCH ERROR: {fetched.stderr.strip()}")
            return RemoteStatus.UNKNOWN

        local = await self.git.rev_parse("HEAD")
        remote = await self.git.rev_parse("@{u}")
        if not (local.ok and remote.ok):
            logger.warning(
                f"REV-PARSE ERROR: {(local.stderr or remote.stderr).strip()}"
            )
            return RemoteStatus.UNKNOWN

        if local.stdout.strip() == remote.stdout.strip():
            return RemoteStatus.UP_TO_DATE
        logger.debug(
            f"Remote diverged: local {local.stdout.strip()[:8]} "
            f"!= upstream {remote.stdout.strip()[:8]}"
        )
        return RemoteStatus.DIVERGED

    async def check_is_synced(self, show_message: bool = True) -> RemoteStatus:
        """Standalone remote check that warns the user when out of sync."""
        status = await self.check_remote_divergence()
        if status is RemoteStatus.DIVERGED and show_message:
            self.notifier.show_message(MSG_NOT_SYNCED, Severity.WARNING, PERSISTENT)
        return status

    async def divergence(self, owner: bool = False) -> DivergenceState | None:
        """Resolves local and remote divergence in one pass.

        Args:
            owner (bool): True when the caller holds the guard.

        Returns:
            DivergenceState | None: Both fields, or None if the remote state is
                                    unknown.
        """
        local = await self.check_local_status()
        remote = await self.check_remote_divergence(owner=owner)
        if remote is RemoteStatus.UNKNOWN:
            return None
        return DivergenceState(
            local_dirty=is_local_dirty(local),
            remote_ahead=remote is RemoteStatus.DIVERGED,
        )
