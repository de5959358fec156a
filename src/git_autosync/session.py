import logging
from pathlib import Path

from .config import Config
from .constants import APP_NAME, OPERATION_DEBOUNCE
from .debounce import Debouncer
from .engine import DecisionEngine, SyncOutcome
from .git_wrapper import GitRepo
from .guard import SyncGuard
from .notifier import ConsoleNotifier, DesktopNotifier, Indicator, Notifier
from .operations import Operations
from .scheduler import Scheduler, Trigger
from .status import StatusOracle

logger = logging.getLogger(APP_NAME)


class Session:
    """Owns every piece of sync state for one repository.

    Nothing in the package is a module-level singleton; a session is built
    per repository and tests build as many independent ones as they need.
    The public methods are the entry points a host application calls.

    Attributes:
        config (Config): Effective configuration.
        git (GitRepo): The command gateway.
        guard (SyncGuard): The single mutual-exclusion flag.
        indicator (Indicator): Current badge state.
        notifier (Notifier): User message channel.
        oracle (StatusOracle): Divergence checks.
        engine (DecisionEngine): Sync sequences.
        operations (Operations): Manual git actions.
        scheduler (Scheduler): Trigger policy and background resync.
        buttons (dict[str, Debouncer]): Debounced manual actions by name.
    """

    def __init__(
        self,
        repo_path: Path,
        config: Config | None = None,
        git: GitRepo | None = None,
        notifier: Notifier | None = None,
        indicator: Indicator | None = None,
    ):
        self.config = config or Config.load(repo_path)
        self.git = git or GitRepo(
            repo_path,
            remote=self.config.core.remote_name,
            timeout=self.config.sync.command_timeout,
        )
        if notifier is None:
            notifier = (
                DesktopNotifier() if self.config.notify.desktop else ConsoleNotifier()
            )
        self.notifier = notifier
        self.indicator = indicator or Indicator()
        self.guard = SyncGuard()

        tag = self.config.core.commit_tag
        self.oracle = StatusOracle(self.git, self.guard, self.indicator, notifier)
        self.engine = DecisionEngine(
            self.git, self.oracle, self.guard, self.indicator, notifier, tag
        )
        self.operations = Operations(
            self.git, self.oracle, self.guard, self.indicator, notifier, tag
        )
        self.scheduler = Scheduler(
            self.engine,
            self.config.sync,
            notifier,
            on_hidden=self.operations.commit_and_push,
        )

        ops = self.operations
        self.buttons: dict[str, Debouncer] = {
            name: Debouncer(action, OPERATION_DEBOUNCE)
            for name, action in {
                "check": ops.check,
                "pull": ops.pull,
                "pull_rebase": ops.pull_rebase,
                "checkout": ops.checkout,
                "commit": ops.commit,
                "push": ops.push,
                "commit_and_push": ops.commit_and_push,
                "log": ops.log,
                "sync": self.sync,
            }.items()
        }
        logger.debug(f"Session ready for {repo_path}.")

    async def sync(self, trigger: Trigger = Trigger.CLICK) -> SyncOutcome:
        return await self.scheduler.sync_files(trigger)

    def press(self, name: str) -> None:
        """Presses a debounced button by name.

        Raises:
            KeyError: If no such button exists.
        """
        self.buttons[name]()

    def on_keybinding(self) -> None:
        """The global sync shortcut."""
        self.press("sync")

    async def start(self) -> SyncOutcome | None:
        return await self.scheduler.start()

    async def shutdown(self) -> None:
        for button in self.buttons.values():
            button.cancel()
        await self.scheduler.shutdown()
        for button in self.buttons.values():
            await button.wait()
