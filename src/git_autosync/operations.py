import logging
from collections.abc import Awaitable, Callable

from .constants import (
    APP_NAME,
    COMMIT_TAG,
    MSG_LOCAL_CHANGES,
    MSG_NO_LOCAL_CHANGES,
    OUTCOME_TIMEOUT,
    PERSISTENT,
)
from .git_wrapper import CommandResult, GitRepo, commit_message
from .guard import SyncGuard
from .notifier import Indicator, IndicatorState, Notifier, Severity
from .status import StatusOracle, is_local_dirty

logger = logging.getLogger(APP_NAME)


class Operations:
    """Single git actions a user can run by hand.

    Mutating actions take the same guard as the sync engine and are dropped
    while a sequence is in flight. Each returns the last git result it ran,
    or None if it was dropped or had nothing to do.
    """

    def __init__(
        self,
        git: GitRepo,
        oracle: StatusOracle,
        guard: SyncGuard,
        indicator: Indicator,
        notifier: Notifier,
        commit_tag: str = COMMIT_TAG,
    ):
        self.git = git
        self.oracle = oracle
        self.guard = guard
        self.indicator = indicator
        self.notifier = notifier
        self.commit_tag = commit_tag

    def _report(self, step: str, result: CommandResult) -> None:
        if result.ok:
            logger.info(f"SUCCESS: {step}.")
            return
        detail = (result.stderr or result.stdout).strip()
        logger.error(f"{step.upper()} ERROR (exit {result.exit_code}): {detail}")
        self.notifier.show_message(
            f"{step} failed: {detail}", Severity.WARNING, OUTCOME_TIMEOUT
        )

    async def check(self) -> CommandResult:
        """Shows the pending local changes."""
        result = await self.oracle.check_local_status()
        if is_local_dirty(result):
            self.notifier.show_message(
                MSG_LOCAL_CHANGES + result.stdout, Severity.SUCCESS, PERSISTENT
            )
        else:
            self.notifier.show_message(MSG_NO_LOCAL_CHANGES)
        return result

    async def pull(self) -> CommandResult | None:
        return await self._mutate("pull", self.git.pull)

    async def pull_rebase(self) -> CommandResult | None:
        return await self._mutate("pull --rebase", self.git.pull_rebase)

    async def push(self) -> CommandResult | None:
        return await self._mutate("push", self.git.push)

    async def checkout(self) -> CommandResult | None:
        """Discards uncommitted edits."""
        return await self._mutate("checkout", self.git.checkout)

    async def commit(self) -> CommandResult | None:
        return await self._mutate("commit", self._commit)

    async def _commit(self) -> CommandResult:
        return await self.git.commit(commit_message(self.commit_tag))

    async def _mutate(
        self, step: str, action: Callable[[], Awaitable[CommandResult]]
    ) -> CommandResult | None:
        async with self.guard.hold(step) as acquired:
            if not acquired:
                return None
            self.indicator.set_state(IndicatorState.LOADING)
            try:
                result = await action()
            finally:
                await self.oracle.check_local_status()
        self._report(step, result)
        return result

    async def commit_and_push(self) -> CommandResult | None:
        """Commits pending changes and pushes them if the commit succeeded."""
        async with self.guard.hold("commit and push") as acquired:
            if not acquired:
                return None
            self.indicator.set_state(IndicatorState.LOADING)
            try:
                status = await self.git.status()
                if not is_local_dirty(status):
                    logger.info("Nothing to commit.")
                    return None
                result = await self._commit()
                if result.ok:
                    result = await self.git.push()
                    step = "push"
                else:
                    step = "commit"
            finally:
                await self.oracle.check_local_status()
        self._report(step, result)
        return result

    async def log(self) -> CommandResult:
        """Shows the recent commit history."""
        result = await self.git.log()
        if result.ok:
            self.notifier.show_message(result.stdout, Severity.SUCCESS, PERSISTENT)
        else:
            self._report("log", result)
        return result
