import asyncio
import enum
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from .config import SyncConfig
from .constants import APP_NAME, MSG_SYNCED_AWAY, SYNCED_AWAY_TIMEOUT
from .debounce import Debouncer
from .engine import DecisionEngine, SyncOutcome
from .notifier import Notifier, Severity

logger = logging.getLogger(APP_NAME)


class Trigger(enum.Enum):
    """Where a sync request came from. Only AUTO is throttled."""

    AUTO = "AUTO"
    CLICK = "CLICK"
    COMMAND = "COMMAND"


@dataclass
class ThrottleState:
    """Scalars owned by the scheduler.

    Attributes:
        last_sync (float | None): Clock reading of the last successful sync.
        pulled_while_away (bool): A pull changed the tree while unfocused.
    """

    last_sync: float | None = None
    pulled_while_away: bool = False


class Scheduler:
    """Rate-limits sync triggers and drives the unfocused resync loop.

    Attributes:
        engine (DecisionEngine): Runs the actual sequences.
        settings (SyncConfig): Intervals and feature switches.
        notifier (Notifier): Receives the 'synced while away' message.
        state (ThrottleState): Throttle timestamp and away flag.
        refresh_status (Debouncer): Status-only refresh, no mutation.
    """

    def __init__(
        self,
        engine: DecisionEngine,
        settings: SyncConfig,
        notifier: Notifier,
        on_hidden: Callable[[], Awaitable[object]] | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.engine = engine
        self.settings = settings
        self.notifier = notifier
        self.state = ThrottleState()
        self.clock = clock
        self._on_hidden = on_hidden
        self._away = False
        self._resync_task: asyncio.Task | None = None
        self._inflight: asyncio.Future | None = None
        self.refresh_status = Debouncer(
            engine.oracle.check_local_status, settings.status_debounce
        )

    @property
    def resync_task(self) -> asyncio.Task | None:
        return self._resync_task

    def _throttled(self) -> bool:
        if self.state.last_sync is None:
            return False
        elapsed = self.clock() - self.state.last_sync
        if elapsed < self.settings.min_interval:
            logger.info(
                f"SKIPPED auto sync: last sync {elapsed:.0f}s ago "
                f"(minimum {self.settings.min_interval:.0f}s)."
            )
            return True
        return False

    async def sync_files(self, trigger: Trigger = Trigger.AUTO) -> SyncOutcome:
        """Runs a sync sequence if the trigger's policy allows it.

        Automatic triggers are dropped inside the minimum interval or while a
        sequence is running. Manual ones always reach the engine, which reports
        a busy guard as an unknown remote state.

        Args:
            trigger (Trigger): The trigger source.

        Returns:
            SyncOutcome: The outcome, with `skipped` set if nothing ran.
        """
        logger.debug(f"Sync requested ({trigger.value}).")
        if trigger is Trigger.AUTO and self._throttled():
            return SyncOutcome("Synced too recently", skipped=True)

        # Manual triggers go through so the engine can tell the user to retry.
        if trigger is Trigger.AUTO and self.engine.guard.held:
            logger.info("SKIPPED auto sync: git operation in progress.")
            return SyncOutcome("Sync already in progress", skipped=True)

        started_away = self._away
        outcome = await self.engine.sync()

        if not outcome.skipped and not outcome.was_error:
            self.state.last_sync = self.clock()
        if outcome.was_pulled and started_away:
            self.state.pulled_while_away = True
            # Focus came back while this sequence was still running.
            if not self._away:
                self._report_pulled_while_away()
        return outcome

    async def _resync_loop(self) -> None:
        while True:
            # Shielded: losing focus mid-sequence must not interrupt git.
            self._inflight = asyncio.ensure_future(self.sync_files(Trigger.AUTO))
            try:
                await asyncio.shield(self._inflight)
            except Exception:
                logger.exception("CRITICAL background resync failed")
            await asyncio.sleep(self.settings.blur_interval)

    def on_blur(self) -> None:
        """Host lost focus: sync now, then periodically until refocused."""
        self._away = True
        self.state.pulled_while_away = False
        if not self.settings.auto_sync:
            return
        self._cancel_resync()
        logger.info("Host unfocused: starting background resync.")
        self._resync_task = asyncio.create_task(self._resync_loop())

    def on_focus(self) -> None:
        """Host regained focus: report background pulls, stop the loop."""
        self._away = False
        self._report_pulled_while_away()
        self._cancel_resync()

    def _report_pulled_while_away(self) -> None:
        if self.state.pulled_while_away:
            self.notifier.show_message(
                MSG_SYNCED_AWAY, Severity.SUCCESS, SYNCED_AWAY_TIMEOUT
            )
            self.state.pulled_while_away = False

    async def on_hidden(self) -> None:
        """Host window hidden: commit and push if configured."""
        if self.settings.auto_push and self._on_hidden is not None:
            await self._on_hidden()

    def on_route_changed(self) -> None:
        self.refresh_status()

    def on_data_changed(self) -> None:
        if self.settings.check_when_changed:
            self.refresh_status()

    async def start(self) -> SyncOutcome | None:
        """Startup behaviour: one automatic sync if enabled, then a refresh."""
        outcome = None
        if self.settings.auto_sync:
            outcome = await self.sync_files(Trigger.AUTO)
        self.refresh_status()
        return outcome

    def _cancel_resync(self) -> None:
        if self._resync_task is not None and not self._resync_task.done():
            logger.info("Background resync stopped.")
            self._resync_task.cancel()
        self._resync_task = None

    async def shutdown(self) -> None:
        """Cancels pending timers and waits for the resync loop to unwind."""
        self.refresh_status.cancel()
        task = self._resync_task
        self._cancel_resync()
        if task is not None:
            try:
                await task
            except asyncio.CancelledError:
                pass
        # A sequence already dispatched always runs to completion.
        if self._inflight is not None and not self._inflight.done():
            await self._inflight
        await self.refresh_status.wait()
