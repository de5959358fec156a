import asyncio
import tempfile
from pathlib import Path

from conftest import FakeGit, fail, make_session
from hypothesis import given, settings
from hypothesis import strategies as st

from git_autosync.config import Config
from git_autosync.scheduler import Trigger

ACTIONS = [
    "sync_auto",
    "sync_click",
    "pull",
    "pull_rebase",
    "push",
    "commit",
    "checkout",
    "commit_and_push",
]
FAILING_STEPS = [None, "add", "commit", "pull", "push", "fetch"]

# Each entry: (action, number of scheduler turns to wait before firing it)
interleavings = st.lists(
    st.tuples(st.sampled_from(ACTIONS), st.integers(min_value=0, max_value=12)),
    min_size=1,
    max_size=8,
)


def _scripted_git(dirty: bool, ahead: bool, failing: str | None) -> FakeGit:
    fake = FakeGit()
    if dirty:
        fake.dirty()
    if ahead:
        fake.remote_ahead()
    if failing:
        fake.script(failing, fail())
    return fake


async def _fire(session, action: str, delay: int) -> None:
    for _ in range(delay):
        await asyncio.sleep(0)
    if action == "sync_auto":
        await session.scheduler.sync_files(Trigger.AUTO)
    elif action == "sync_click":
        await session.scheduler.sync_files(Trigger.CLICK)
    else:
        await getattr(session.operations, action)()


@settings(max_examples=60, deadline=None)
@given(
    plan=interleavings,
    dirty=st.booleans(),
    ahead=st.booleans(),
    failing=st.sampled_from(FAILING_STEPS),
)
def test_mutating_commands_never_overlap(
    plan: list[tuple[str, int]], dirty: bool, ahead: bool, failing: str | None
) -> None:
    """
    Property: However triggers and manual operations interleave, at most one
    mutating git command is in flight, every mutation runs under the guard,
    and the guard is free once everything settles.
    """
    fake = _scripted_git(dirty, ahead, failing)

    async def scenario() -> None:
        with tempfile.TemporaryDirectory() as tmp:
            session, _ = make_session(Path(tmp), fake)
            await asyncio.gather(
                *(_fire(session, action, delay) for action, delay in plan)
            )
            await session.shutdown()
            assert session.guard.held is False

    asyncio.run(scenario())

    assert fake.max_inflight_mutations <= 1
    assert fake.unguarded_mutations == []


@settings(max_examples=100, deadline=None)
@given(
    events=st.lists(
        st.tuples(
            st.integers(min_value=0, max_value=600),
            st.sampled_from(list(Trigger)),
        ),
        max_size=15,
    )
)
def test_auto_throttle_matches_model(events: list[tuple[int, Trigger]]) -> None:
    """
    Property: an AUTO trigger runs iff no successful sync finished within the
    minimum interval; manual triggers always run.
    """
    fake = FakeGit()
    now = [1000]
    expected_runs = 0

    async def scenario() -> None:
        nonlocal expected_runs
        with tempfile.TemporaryDirectory() as tmp:
            config = Config()
            session, _ = make_session(Path(tmp), fake, config)
            session.scheduler.clock = lambda: now[0]
            last = None
            for gap, trigger in events:
                now[0] += gap
                should_run = (
                    trigger is not Trigger.AUTO
                    or last is None
                    or now[0] - last >= config.sync.min_interval
                )
                outcome = await session.scheduler.sync_files(trigger)
                assert outcome.skipped is (not should_run)
                if should_run:
                    expected_runs += 1
                    last = now[0]

    asyncio.run(scenario())

    assert fake.count("fetch") == expected_runs


@settings(max_examples=60, deadline=None)
@given(
    rounds=st.lists(
        st.tuples(st.booleans(), st.booleans(), st.sampled_from(FAILING_STEPS)),
        min_size=1,
        max_size=6,
    )
)
def test_failing_sequences_stay_bounded(
    rounds: list[tuple[bool, bool, str | None]],
) -> None:
    """
    Property: a sequence issues at most two commits and one push, reports an
    error exactly when a step it ran failed, and always frees the guard.
    """

    async def scenario() -> None:
        with tempfile.TemporaryDirectory() as tmp:
            fake = FakeGit()
            session, _ = make_session(Path(tmp), fake)
            for dirty, ahead, failing in rounds:
                fake.calls.clear()
                fake.results.clear()
                fake.clean()
                fake.remote_current()
                if dirty:
                    fake.dirty()
                if ahead:
                    fake.remote_ahead()
                if failing:
                    fake.script(failing, fail())

                outcome = await session.engine.sync()

                ran_failing = failing is not None and failing in fake.commands
                assert fake.count("commit") <= 2
                assert fake.count("push") <= 1
                assert session.guard.held is False
                if failing == "fetch":
                    assert outcome.skipped is True
                    assert fake.mutating_calls == []
                else:
                    assert outcome.was_error is ran_failing

    asyncio.run(scenario())
