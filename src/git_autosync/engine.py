import logging
from dataclasses import dataclass

from .constants import (
    APP_NAME,
    COMMIT_TAG,
    MSG_ALREADY_SYNCED,
    MSG_PULLED,
    MSG_PULLED_AND_PUSHED,
    MSG_PUSHED,
    MSG_REMOTE_UNKNOWN,
    MSG_SYNC_ERROR,
    MSG_SYNCING,
    OUTCOME_TIMEOUT,
    REMOTE_UNKNOWN_TIMEOUT,
    SYNCING_TIMEOUT,
)
from .git_wrapper import CommandResult, GitRepo, commit_message
from .guard import SyncGuard
from .notifier import Indicator, IndicatorState, Notifier, Severity
from .status import DivergenceState, StatusOracle

logger = logging.getLogger(APP_NAME)


@dataclass(frozen=True)
class SyncOutcome:
    """The result of one sync sequence.

    Attributes:
        message (str): Human-readable summary shown to the user.
        was_error (bool): True if any step returned a non-zero exit code.
        was_pulled (bool): True if a pull changed the local branch.
        skipped (bool): True if the sequence never ran (throttled, guard held,
                        or remote state unknown).
    """

    message: str
    was_error: bool = False
    was_pulled: bool = False
    skipped: bool = False


def _pull_changed_tree(result: CommandResult) -> bool:
    return result.ok and "already up to date" not in result.stdout.lower()


def _log_failure(step: str, result: CommandResult) -> None:
    detail = (result.stderr or result.stdout).strip()
    if result.timed_out:
        logger.error(f"{step} ERROR: timed out. {detail}")
    else:
        logger.error(f"{step} ERROR (exit {result.exit_code}): {detail}")


class DecisionEngine:
    """Chooses and runs the git sequence that reconciles both replicas.

    The sequence is a pure function of `DivergenceState`, which is always
    recomputed from the live repository. No recovery state is kept between
    runs: a partial failure is simply re-evaluated on the next attempt.

    Attributes:
        git (GitRepo): The command gateway.
        oracle (StatusOracle): Source of divergence and indicator updates.
        guard (SyncGuard): Held for the whole sequence.
        indicator (Indicator): Set to LOADING while work is in flight.
        notifier (Notifier): Receives exactly one outcome message per sequence.
        commit_tag (str): Tag used in generated commit messages.
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

    async def _commit(self) -> CommandResult:
        return await self.git.commit(commit_message(self.commit_tag))

    async def run(self, state: DivergenceState) -> SyncOutcome:
        """Executes the operation table for a resolved divergence state.

        | local_dirty | remote_ahead | steps                                   |
        |-------------|--------------|-----------------------------------------|
        | False       | False        | none                                    |
        | False       | True         | pull                                    |
        | True        | False        | commit, push                            |
        | True        | True         | commit, pull, commit retry, push        |

        Args:
            state (DivergenceState): The freshly derived divergence.

        Returns:
            SyncOutcome: The outcome. No messages are emitted here.
        """
        if not state.local_dirty and not state.remote_ahead:
            return SyncOutcome(MSG_ALREADY_SYNCED)

        if state.remote_ahead and not state.local_dirty:
            pulled = await self.git.pull()
            if not pulled.ok:
                _log_failure("PULL", pulled)
                return SyncOutcome(MSG_SYNC_ERROR, was_error=True)
            return SyncOutcome(MSG_PULLED, was_pulled=_pull_changed_tree(pulled))

        if state.local_dirty and not state.remote_ahead:
            committed = await self._commit()
            if not committed.ok:
                _log_failure("COMMIT", committed)
                return SyncOutcome(MSG_SYNC_ERROR, was_error=True)
            pushed = await self.git.push()
            if not pushed.ok:
                _log_failure("PUSH", pushed)
                return SyncOutcome(MSG_SYNC_ERROR, was_error=True)
            return SyncOutcome(MSG_PUSHED)

        # Both sides moved. Commit first to capture local work, then pull.
        committed = await self._commit()
        pulled = await self.git.pull()
        if not committed.ok:
            # The remote advanced between the status read and the commit.
            logger.info("COMMIT RETRY: first commit failed, retrying after pull.")
            committed = await self._commit()

        was_pulled = _pull_changed_tree(pulled)
        if not (pulled.ok and committed.ok):
            if not pulled.ok:
                _log_failure("PULL", pulled)
            if not committed.ok:
                _log_failure("COMMIT", committed)
            return SyncOutcome(MSG_SYNC_ERROR, was_error=True, was_pulled=was_pulled)

        pushed = await self.git.push()
        if not pushed.ok:
            _log_failure("PUSH", pushed)
            return SyncOutcome(MSG_SYNC_ERROR, was_error=True, was_pulled=was_pulled)
        return SyncOutcome(MSG_PULLED_AND_PUSHED, was_pulled=was_pulled)

    async def _derive_and_run(self) -> SyncOutcome:
        state = await self.oracle.divergence(owner=True)
        if state is None:
            logger.warning("SKIPPED sync: remote state unknown.")
            self.notifier.show_message(
                MSG_REMOTE_UNKNOWN, Severity.WARNING, REMOTE_UNKNOWN_TIMEOUT
            )
            return SyncOutcome(MSG_REMOTE_UNKNOWN, skipped=True)

        logger.info(
            f"SYNC: local_dirty={state.local_dirty} remote_ahead={state.remote_ahead}"
        )
        if state.diverged:
            self.indicator.set_state(IndicatorState.LOADING)
            self.notifier.show_message(MSG_SYNCING, Severity.INFO, SYNCING_TIMEOUT)
        return await self.run(state)

    async def sync(self) -> SyncOutcome:
        """Runs one complete sync sequence.

        Steps:
        1. Takes the guard. If it is already taken, warns and returns without
           touching git.
        2. Derives divergence; an unknown remote aborts before any mutation.
        3. Runs the operation table.
        4. Releases the guard on every path.
        5. Emits one outcome message and re-derives the indicator.

        Returns:
            SyncOutcome: The sequence outcome.
        """
        if not self.guard.try_acquire():
            logger.info("SKIPPED sync: git operation already in progress.")
            self.notifier.show_message(
                MSG_REMOTE_UNKNOWN, Severity.WARNING, REMOTE_UNKNOWN_TIMEOUT
            )
            return SyncOutcome(MSG_REMOTE_UNKNOWN, skipped=True)

        try:
            outcome = await self._derive_and_run()
        except Exception:
            logger.exception("CRITICAL sync sequence failed")
            outcome = SyncOutcome(MSG_SYNC_ERROR, was_error=True)
        finally:
            self.guard.release()

        if outcome.skipped:
            return outcome

        if outcome.was_error:
            self.notifier.show_message(MSG_SYNC_ERROR, Severity.WARNING, OUTCOME_TIMEOUT)
        else:
            self.notifier.show_message(
                outcome.message, Severity.SUCCESS, OUTCOME_TIMEOUT
            )
        logger.info(f"SYNC COMPLETE: {outcome.message}")

        # The indicator reflects the real tree, not the branch taken.
        try:
            await self.oracle.check_local_status()
        except Exception:
            logger.exception("CRITICAL status refresh after sync failed")
        return outcome
