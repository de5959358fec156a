import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from .constants import APP_NAME

logger = logging.getLogger(APP_NAME)


class SyncGuard:
    """A non-blocking mutual-exclusion flag over one sync sequence.

    Only mutating sequences hold the guard. Acquisition never waits: a caller
    that loses the race is expected to drop its work, not queue it.
    """

    def __init__(self) -> None:
        self._held = False

    @property
    def held(self) -> bool:
        return self._held

    def try_acquire(self) -> bool:
        """Takes the guard if it is free.

        Returns:
            bool: True if the caller now owns the guard, False if it was taken.
        """
        if self._held:
            return False
        self._held = True
        return True

    def release(self) -> None:
        """Frees the guard. Releasing a free guard is a no-op."""
        self._held = False

    @asynccontextmanager
    async def hold(self, label: str = "sequence") -> AsyncIterator[bool]:
        """Acquires the guard for the duration of the block.

        Yields False without blocking when the guard is taken; the caller
        decides what to do. What was acquired is always released.

        Args:
            label (str): Name used in the contention log line.
        """
        acquired = self.try_acquire()
        if not acquired:
            logger.info(f"SKIPPED {label}: git operation already in progress.")
        try:
            yield acquired
        finally:
            if acquired:
                self.release()
