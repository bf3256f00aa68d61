"""!
@brief Application object tests.
@details Verifies that :class:`game_booster.app_state.BoosterApp` turns toggle
outcomes, cleanup results and launches into notifications.
"""

from __future__ import annotations

import pathlib
import sys
import threading
from typing import List

import pytest

PROJECT_ROOT = pathlib.Path(__file__).resolve().parents[1]
SRC_PATH = PROJECT_ROOT / "src"
if str(SRC_PATH) not in sys.path:
    sys.path.insert(0, str(SRC_PATH))

from game_booster import app_state, constants, launcher  # noqa: E402
from game_booster.actions import Action, ActionError, ActionOutcome, ActionRegistry  # noqa: E402
from game_booster.cleanup import CleanupStep  # noqa: E402
from game_booster.config import BoosterSettings  # noqa: E402
from game_booster.notifications import Severity  # noqa: E402
from game_booster.task_runner import TaskAlreadyRunningError, TaskStatus  # noqa: E402
from game_booster.toggle_store import UnknownToggleError  # noqa: E402

TOGGLE_NAMES = [str(entry["name"]) for entry in constants.TOGGLE_DEFINITIONS]


class _NullLogger:
    """!
    @brief Minimal logger stand-in discarding all messages.
    """

    def __getattr__(self, _name):  # pragma: no cover - trivial passthrough
        return lambda *args, **kwargs: None


@pytest.fixture(autouse=True)
def _quiet_logs(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(app_state.logging_ext, "get_human_logger", lambda: _NullLogger())
    monkeypatch.setattr(app_state.logging_ext, "get_machine_logger", lambda: _NullLogger())


def _registry(failing: dict[str, ActionError] | None = None) -> ActionRegistry:
    failing = failing or {}

    def _outcome(name: str):  # type: ignore[no-untyped-def]
        def _call() -> ActionOutcome:
            if name in failing:
                return ActionOutcome.failure(failing[name], "simulated")
            return ActionOutcome.success()

        return _call

    return ActionRegistry([Action(name, enable=_outcome(name), disable=_outcome(name)) for name in TOGGLE_NAMES])


def _steps(*counts: int) -> List[CleanupStep]:
    steps = [CleanupStep(name=f"step{index}", label=f"Step {index}", run=(lambda c=count: c)) for index, count in enumerate(counts)]
    steps.append(CleanupStep(name="dns", label="DNS cache", run=lambda: None, done_message="DNS cache flushed"))
    return steps


@pytest.fixture
def make_app():  # type: ignore[no-untyped-def]
    created: List[app_state.BoosterApp] = []

    def _factory(**kwargs):  # type: ignore[no-untyped-def]
        kwargs.setdefault("registry", _registry())
        kwargs.setdefault("cleanup_steps", _steps(120, 0, 40))
        app = app_state.BoosterApp(kwargs.pop("settings", BoosterSettings()), **kwargs)
        created.append(app)
        return app

    yield _factory
    for app in created:
        app.shutdown()


def test_successful_toggle_pushes_its_message(make_app) -> None:  # type: ignore[no-untyped-def]
    app = make_app()

    assert app.set_toggle("game_mode", True)
    assert app.set_toggle("game_mode", False)

    messages = [(entry.message, entry.severity) for entry in app.active_notifications()]
    assert messages == [
        ("Windows Game Mode enabled", Severity.SUCCESS),
        ("Windows Game Mode disabled", Severity.SUCCESS),
    ]


def test_noop_toggle_pushes_nothing(make_app) -> None:  # type: ignore[no-untyped-def]
    app = make_app()

    assert app.set_toggle("kill_explorer", False)

    assert app.active_notifications() == []


def _gated_registry(entered: threading.Event, release: threading.Event, calls: List[str]) -> ActionRegistry:
    def _enable() -> ActionOutcome:
        calls.append("enable")
        entered.set()
        release.wait(timeout=5)
        return ActionOutcome.success()

    def _disable() -> ActionOutcome:
        calls.append("disable")
        return ActionOutcome.success()

    actions = [Action(name, enable=ActionOutcome.success, disable=ActionOutcome.success) for name in TOGGLE_NAMES]
    actions = [action for action in actions if action.name != "game_mode"]
    actions.append(Action("game_mode", enable=_enable, disable=_disable))
    return ActionRegistry(actions)


def _run_concurrently(app, first: bool, second: bool, entered, release):  # type: ignore[no-untyped-def]
    results: List[bool] = []
    worker = threading.Thread(target=lambda: results.append(app.set_toggle("game_mode", first)))
    worker.start()
    assert entered.wait(timeout=5)
    follower = threading.Thread(target=lambda: results.append(app.set_toggle("game_mode", second)))
    follower.start()
    follower.join(timeout=0.2)
    waited = follower.is_alive()
    release.set()
    worker.join(timeout=5)
    follower.join(timeout=5)
    return results, waited


def test_concurrent_identical_requests_notify_once(make_app) -> None:  # type: ignore[no-untyped-def]
    """!
    @brief The second request waits for the in-flight one and then is a no-op.
    """

    entered, release, calls = threading.Event(), threading.Event(), []
    app = make_app(registry=_gated_registry(entered, release, calls))

    results, waited = _run_concurrently(app, True, True, entered, release)

    assert waited
    assert results == [True, True]
    assert calls == ["enable"]
    assert [entry.message for entry in app.active_notifications()] == ["Windows Game Mode enabled"]


def test_disable_during_enable_is_applied_after_it(make_app) -> None:  # type: ignore[no-untyped-def]
    entered, release, calls = threading.Event(), threading.Event(), []
    app = make_app(registry=_gated_registry(entered, release, calls))

    results, waited = _run_concurrently(app, True, False, entered, release)

    assert waited
    assert results == [True, True]
    assert calls == ["enable", "disable"]
    assert app.store.get("game_mode").active is False
    assert [entry.message for entry in app.active_notifications()] == [
        "Windows Game Mode enabled",
        "Windows Game Mode disabled",
    ]


def test_failed_toggle_pushes_error(make_app) -> None:  # type: ignore[no-untyped-def]
    app = make_app(registry=_registry({"superfetch_off": ActionError.PERMISSION_DENIED}))

    assert app.set_toggle("superfetch_off", True) is False

    entry = app.active_notifications()[-1]
    assert entry.severity is Severity.ERROR
    assert entry.message == "Disable SuperFetch: PermissionDenied (simulated)"
    assert app.score().score == 0


def test_flip_and_score(make_app) -> None:  # type: ignore[no-untyped-def]
    app = make_app()

    app.flip("high_perf_power")
    app.flip("superfetch_off")

    snapshot = app.score()
    assert snapshot.score == 35
    assert snapshot.grade.value == "Fair"


def test_unknown_toggle_raises(make_app) -> None:  # type: ignore[no-untyped-def]
    with pytest.raises(UnknownToggleError):
        make_app().set_toggle("warp_drive", True)


def test_cleanup_completion_is_notified(make_app) -> None:  # type: ignore[no-untyped-def]
    app = make_app()

    app.start_cleanup()
    final = app.runner.wait(timeout=5)

    assert final.status is TaskStatus.COMPLETED
    assert final.summary.total == 160
    assert final.log[-1] == "Total: 160 items cleared"
    assert app.active_notifications()[-1].message == "Clean complete — 160 items removed"
    assert app.acknowledge_cleanup().status is TaskStatus.IDLE


def test_cleanup_failure_is_notified(make_app) -> None:  # type: ignore[no-untyped-def]
    def _broken() -> int:
        raise OSError("locked")

    app = make_app(cleanup_steps=[CleanupStep(name="only", label="Only", run=_broken)])

    app.start_cleanup()
    final = app.runner.wait(timeout=5)

    assert final.status is TaskStatus.FAILED
    entry = app.active_notifications()[-1]
    assert entry.severity is Severity.ERROR
    assert entry.message == "Clean failed: all 1 cleanup steps failed"


def test_second_cleanup_while_running_is_rejected(make_app) -> None:  # type: ignore[no-untyped-def]
    entered = threading.Event()
    release = threading.Event()

    def _slow() -> int:
        entered.set()
        release.wait(timeout=5)
        return 1

    app = make_app(cleanup_steps=[CleanupStep(name="slow", label="Slow", run=_slow)])
    app.start_cleanup()
    assert entered.wait(timeout=5)

    with pytest.raises(TaskAlreadyRunningError):
        app.start_cleanup()

    assert app.active_notifications()[-1].message == app_state.CLEANUP_RUNNING_MESSAGE
    release.set()
    assert app.runner.wait(timeout=5).summary.total == 1


def test_launch_notifications(make_app, tmp_path, monkeypatch) -> None:  # type: ignore[no-untyped-def]
    app = make_app()

    assert app.launch_game("") is False
    assert app.active_notifications()[-1].message == launcher.NO_PATH_MESSAGE
    assert app.active_notifications()[-1].severity is Severity.ERROR

    assert app.launch_game(str(tmp_path / "missing.exe")) is False
    assert app.active_notifications()[-1].message == launcher.LAUNCH_FAILED_MESSAGE
    assert app.active_notifications()[-1].severity is Severity.ERROR

    monkeypatch.setattr(
        app_state.launcher, "launch_with_priority", lambda path, dry_run=False: ActionOutcome.success("pid 1")
    )
    assert app.launch_game("C:/Games/game.exe") is True
    assert app.active_notifications()[-1].message == launcher.LAUNCHED_MESSAGE


def test_tick_uses_configured_lifetime(make_app) -> None:  # type: ignore[no-untyped-def]
    app = make_app(settings=BoosterSettings(notification_lifetime=1.0))
    app.set_toggle("game_mode", True)

    assert app.tick(0.5) == 0
    assert app.tick(0.6) == 1
    assert app.active_notifications() == []


def test_dry_run_app_can_enable_everything() -> None:
    """!
    @brief With the real tweak bindings in dry-run mode every toggle applies.
    """

    app = app_state.BoosterApp(BoosterSettings(dry_run=True))
    try:
        for name in TOGGLE_NAMES:
            assert app.set_toggle(name, True), name
        snapshot = app.score()
    finally:
        app.shutdown()

    assert snapshot.score == 100
    assert snapshot.grade.value == "Excellent"
