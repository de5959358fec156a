"""git-autosync: Keeps a git working copy and its remote convergent.

This package provides the sync decision engine, its trigger scheduler, the
manual git operations a user can run by hand, and a command-line front end
that can run an unattended watch session.
"""

from . import (
    cli,
    config,
    constants,
    daemon,
    debounce,
    engine,
    git_wrapper,
    guard,
    notifier,
    operations,
    scheduler,
    session,
    status,
)

__all__ = [
    "cli",
    "config",
    "constants",
    "daemon",
    "debounce",
    "engine",
    "git_wrapper",
    "guard",
    "notifier",
    "operations",
    "scheduler",
    "session",
    "status",
]
