"""Tests for the manual git operations."""

import pytest
from conftest import FakeGit, RecordingNotifier, fail, ok

from git_autosync.constants import MSG_LOCAL_CHANGES, MSG_NO_LOCAL_CHANGES
from git_autosync.notifier import IndicatorState, Severity
from git_autosync.session import Session


async def test_check_reports_clean_tree(
    session: Session, fake_git: FakeGit, notifier: RecordingNotifier
) -> None:
    await session.operations.check()

    assert notifier.messages == [(MSG_NO_LOCAL_CHANGES, Severity.INFO, 3)]
    assert fake_git.mutating_calls == []


async def test_check_lists_pending_changes(
    session: Session, fake_git: FakeGit, notifier: RecordingNotifier
) -> None:
    """Verifies that the pending file list is shown until dismissed."""
    fake_git.dirty()

    await session.operations.check()

    text, severity, timeout = notifier.messages[0]
    assert text == MSG_LOCAL_CHANGES + " M pages/journal.md\n?? pages/new.md\n"
    assert severity is Severity.SUCCESS
    assert timeout == 0
    assert session.indicator.state is IndicatorState.ACTIVE


@pytest.mark.parametrize(
    ("name", "expected_args"),
    [
        ("pull", ["pull"]),
        ("pull_rebase", ["pull", "--rebase"]),
        ("push", ["push"]),
        ("checkout", ["checkout", "."]),
    ],
)
async def test_single_operations_run_under_guard(
    session: Session, fake_git: FakeGit, name: str, expected_args: list[str]
) -> None:
    """Verifies each operation's command and the status refresh that follows."""
    result = await getattr(session.operations, name)()

    assert result is not None and result.ok
    assert fake_git.calls == [expected_args, ["status", "--porcelain"]]
    assert fake_git.unguarded_mutations == []
    assert session.guard.held is False


async def test_operation_dropped_while_guard_held(
    session: Session, fake_git: FakeGit
) -> None:
    """Verifies that a manual action never races a running sequence."""
    session.guard.try_acquire()

    assert await session.operations.push() is None
    assert fake_git.calls == []
    assert session.guard.held is True


async def test_operation_failure_warns_user(
    session: Session, fake_git: FakeGit, notifier: RecordingNotifier
) -> None:
    fake_git.script("push", fail("! [rejected] main -> main (fetch first)"))

    result = await session.operations.push()

    assert result is not None and result.exit_code == 1
    assert notifier.messages == [
        ("push failed: ! [rejected] main -> main (fetch first)", Severity.WARNING, 8)
    ]


async def test_commit_uses_tagged_message(
    session: Session, fake_git: FakeGit
) -> None:
    fake_git.dirty()

    await session.operations.commit()

    commit_call = next(c for c in fake_git.calls if c[0] == "commit")
    assert commit_call[2].startswith("[git-autosync:commit] ")
    assert fake_git.count("push") == 0


async def test_commit_and_push_skips_clean_tree(
    session: Session, fake_git: FakeGit, notifier: RecordingNotifier
) -> None:
    result = await session.operations.commit_and_push()

    assert result is None
    assert fake_git.mutating_calls == []
    assert notifier.messages == []
    assert session.guard.held is False


async def test_commit_and_push_stops_after_failed_commit(
    session: Session, fake_git: FakeGit, notifier: RecordingNotifier
) -> None:
    fake_git.dirty()
    fake_git.script("commit", fail("nothing to commit"))

    result = await session.operations.commit_and_push()

    assert result is not None and not result.ok
    assert fake_git.count("push") == 0
    assert notifier.texts == ["commit failed: nothing to commit"]


async def test_log_shows_history(
    session: Session, fake_git: FakeGit, notifier: RecordingNotifier
) -> None:
    history = "a1b2c3d 2024-03-01 | [git-autosync:commit] ... [me]\n"
    fake_git.script("log", ok(history))

    await session.operations.log()

    assert notifier.messages == [(history, Severity.SUCCESS, 0)]
    assert session.guard.held is False
