"""Shared fixtures: a scripted git at the gateway boundary and a session."""

import asyncio
from collections import defaultdict
from pathlib import Path
from typing import Any

import pytest

from git_autosync.config import Config
from git_autosync.git_wrapper import CommandResult, GitRepo
from git_autosync.notifier import Notifier, Severity
from git_autosync.session import Session

MUTATING = {"add", "commit", "pull", "push", "checkout"}
LOCAL_SHA = "1111111111111111111111111111111111111111\n"
REMOTE_SHA = "2222222222222222222222222222222222222222\n"


def ok(stdout: str = "") -> CommandResult:
    return CommandResult(exit_code=0, stdout=stdout)


def fail(stderr: str = "fatal: failed", code: int = 1) -> CommandResult:
    return CommandResult(exit_code=code, stderr=stderr)


class FakeGit:
    """Stands in for the git binary behind `GitRepo.run`.

    Results are scripted per command key ('status', 'rev-parse @{u}', ...).
    A scripted queue returns its items in order and then keeps repeating its
    last item. Every call is a suspension point, like a real subprocess.
    """

    def __init__(self) -> None:
        self.calls: list[list[str]] = []
        self.results: dict[str, list[CommandResult]] = defaultdict(list)
        self.gates: dict[str, asyncio.Event] = {}
        self.guard: Any = None
        self.inflight_mutations = 0
        self.max_inflight_mutations = 0
        self.unguarded_mutations: list[list[str]] = []
        self.clean()
        self.remote_current()

    @staticmethod
    def key(args: list[str]) -> str:
        if args[0] == "rev-parse":
            return f"rev-parse {args[1]}"
        return args[0]

    def script(self, key: str, *results: CommandResult) -> None:
        self.results[key] = list(results)

    def clean(self) -> None:
        self.script("status", ok(""))

    def dirty(self) -> None:
        self.script("status", ok(" M pages/journal.md\n?? pages/new.md\n"))

    def remote_current(self) -> None:
        self.script("rev-parse HEAD", ok(LOCAL_SHA))
        self.script("rev-parse @{u}", ok(LOCAL_SHA))

    def remote_ahead(self) -> None:
        self.script("rev-parse HEAD", ok(LOCAL_SHA))
        self.script("rev-parse @{u}", ok(REMOTE_SHA))

    def count(self, name: str) -> int:
        return sum(1 for c in self.calls if c[0] == name)

    @property
    def mutating_calls(self) -> list[list[str]]:
        return [c for c in self.calls if c[0] in MUTATING]

    @property
    def commands(self) -> list[str]:
        return [self.key(c) for c in self.calls]

    async def run(self, args: list[str]) -> CommandResult:
        self.calls.append(list(args))
        key = self.key(args)
        mutating = args[0] in MUTATING
        if mutating:
            if self.guard is not None and not self.guard.held:
                self.unguarded_mutations.append(list(args))
            self.inflight_mutations += 1
            self.max_inflight_mutations = max(
                self.max_inflight_mutations, self.inflight_mutations
            )
        try:
            if key in self.gates:
                await self.gates[key].wait()
            await asyncio.sleep(0)
        finally:
            if mutating:
                self.inflight_mutations -= 1

        queue = self.results.get(key)
        if not queue:
            return ok()
        if len(queue) > 1:
            return queue.pop(0)
        return queue[0]


class RecordingNotifier(Notifier):
    """Keeps every message instead of showing it."""

    def __init__(self) -> None:
        self.messages: list[tuple[str, Severity, float]] = []

    def show_message(
        self, text: str, severity: Severity = Severity.INFO, timeout: float = 3
    ) -> None:
        self.messages.append((text, severity, timeout))

    @property
    def texts(self) -> list[str]:
        return [m[0] for m in self.messages]


def make_session(repo_path: Path, fake: FakeGit, config: Config | None = None):
    """Builds a session whose gateway is driven by `fake`."""
    (repo_path / ".git").mkdir(exist_ok=True)
    if config is None:
        config = Config()
        config.sync.status_debounce = 0.01
        config.sync.blur_interval = 0.01
    repo = GitRepo(repo_path)
    repo.run = fake.run  # type: ignore[method-assign]
    notifier = RecordingNotifier()
    session = Session(repo_path, config=config, git=repo, notifier=notifier)
    fake.guard = session.guard
    return session, notifier


@pytest.fixture
def fake_git() -> FakeGit:
    return FakeGit()


@pytest.fixture
def session(tmp_path: Path, fake_git: FakeGit) -> Session:
    sess, _ = make_session(tmp_path, fake_git)
    return sess


@pytest.fixture
def notifier(session: Session) -> RecordingNotifier:
    assert isinstance(session.notifier, RecordingNotifier)
    return session.notifier
