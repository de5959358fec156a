import enum
import logging
import subprocess
import sys

from rich.console import Console

from .constants import APP_NAME

logger = logging.getLogger(APP_NAME)


class Severity(enum.Enum):
    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


class IndicatorState(enum.Enum):
    """The passive badge reflecting the working tree.

    INACTIVE means clean, ACTIVE means uncommitted changes are pending, and
    LOADING means a sync sequence is running.
    """

    INACTIVE = "inactive"
    ACTIVE = "active"
    LOADING = "loading"


class Indicator:
    """Holds the current indicator state and logs transitions."""

    def __init__(self) -> None:
        self._state = IndicatorState.INACTIVE

    @property
    def state(self) -> IndicatorState:
        return self._state

    def set_state(self, state: IndicatorState) -> None:
        if state is not self._state:
            logger.debug(f"Indicator: {self._state.value} -> {state.value}")
        self._state = state


class Notifier:
    """Base class defining the user-facing message channel.

    The base implementation only logs, which is what a headless session needs.
    """

    def show_message(
        self, text: str, severity: Severity = Severity.INFO, timeout: float = 3
    ) -> None:
        """Shows a message to the user.

        Args:
            text (str): The message body.
            severity (Severity): Visual weight of the message.
            timeout (float): Seconds the message stays visible; 0 keeps it
                             until dismissed.
        """
        logger.info(f"NOTIFY [{severity.value}] {text}")


class ConsoleNotifier(Notifier):
    """Prints messages to the terminal using rich markup."""

    STYLES = {
        Severity.INFO: "bold blue",
        Severity.SUCCESS: "bold green",
        Severity.WARNING: "bold yellow",
        Severity.ERROR: "bold red",
    }

    def __init__(self, console: Console | None = None):
        self.console = console or Console()

    def show_message(
        self, text: str, severity: Severity = Severity.INFO, timeout: float = 3
    ) -> None:
        super().show_message(text, severity, timeout)
        style = self.STYLES[severity]
        label = severity.value.upper()
        self.console.print(f"[{style}]{label}:[/{style}] {text}", highlight=False)


class DesktopNotifier(ConsoleNotifier):
    """Echoes to the console and raises a desktop notification.

    Info messages stay in the terminal; only outcomes worth interrupting the
    user for are sent to the desktop.
    """

    def show_message(
        self, text: str, severity: Severity = Severity.INFO, timeout: float = 3
    ) -> None:
        super().show_message(text, severity, timeout)
        if severity is not Severity.INFO:
            self.notify(APP_NAME, text)

    def notify(self, title: str, message: str) -> None:
        """Sends a desktop notification on macOS or Linux.

        Args:
            title (str): The notification title.
            message (str): The notification body text.
        """
        if sys.platform == "darwin":
            # Sanitize quotes to prevent AppleScript syntax errors.
            clean_msg = message.replace('"', "'")
            script = f'display notification "{clean_msg}" with title "{title}"'
            cmd = ["osascript", "-e", script]
        elif sys.platform.startswith("linux"):
            cmd = ["notify-send", title, message]
        else:
            return
        try:
            subprocess.run(cmd, stderr=subprocess.DEVNULL)
        except OSError as e:
            logger.debug(f"Desktop notification failed: {e}")
