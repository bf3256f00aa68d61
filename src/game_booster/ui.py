"""!
@brief Plain console user interface.
@details Interactive menu over a :class:`~game_booster.app_state.BoosterApp`:
list toggles with the current score, flip a toggle, run the cleanup job while
following its log, launch a game and review notifications. Notification
countdowns advance by the wall-clock time between menu renders.
"""
from __future__ import annotations

import argparse
import time
from typing import Callable, MutableMapping

from .app_state import BoosterApp
from .task_runner import TaskAlreadyRunningError, TaskState

MenuHandler = Callable[[MutableMapping[str, object]], None]
Printer = Callable[[str], None]

POLL_INTERVAL = 0.1


def follow_task(
    app: BoosterApp,
    *,
    printer: Printer = print,
    sleep: Callable[[float], None] = time.sleep,
    poll_interval: float = POLL_INTERVAL,
) -> TaskState:
    """!
    @brief Poll the cleanup task and print new log lines until it finishes.
    @details Once the task stops running the worker is joined so completion
    notifications are queued before this returns.
    @returns Final task state; the task is left un-acknowledged.
    """

    seen = 0
    last_progress = -1.0
    while True:
        state = app.cleanup_status()
        for line in state.log[seen:]:
            printer(f"  {line}")
        seen = len(state.log)
        if state.running and state.progress != last_progress:
            last_progress = state.progress
            printer(f"  [{state.progress:4.0%}] {len(state.completed_steps)}/{len(state.steps)} steps")
        if not state.running:
            return app.runner.wait()
        sleep(poll_interval)


def run_cli(
    app: BoosterApp,
    *,
    args: argparse.Namespace | None = None,
    input_func: Callable[[str], str] = input,
    clock: Callable[[], float] = time.monotonic,
    sleep: Callable[[float], None] = time.sleep,
) -> None:
    """!
    @brief Launch the basic interactive console menu.
    """

    human_logger = app.human_logger

    if getattr(args, "quiet", False) or getattr(args, "json", False):
        human_logger.warning("Interactive menu suppressed because quiet/json output mode was requested.")
        return

    menu: list[tuple[str, MenuHandler]] = [
        ("Show toggles and score", _menu_show),
        ("Flip a toggle", _menu_flip),
        ("Deep clean (temp, prefetch, DNS)", _menu_clean),
        ("Launch a game with HIGH priority", _menu_launch),
        ("Show notifications", _menu_notifications),
        ("Exit", _menu_exit),
    ]

    context: MutableMapping[str, object] = {
        "app": app,
        "input": input_func,
        "sleep": sleep,
        "running": True,
    }

    last_tick = clock()
    while context.get("running", True):
        now = clock()
        app.tick(max(0.0, now - last_tick))
        last_tick = now

        _print_menu(app, menu)
        selection = input_func(f"Select an option (1-{len(menu)}): ").strip()
        if not selection.isdigit():
            print(f"Please enter a number between 1 and {len(menu)}.")
            continue
        index = int(selection) - 1
        if index < 0 or index >= len(menu):
            print("Please choose a valid menu entry.")
            continue
        handler = menu[index][1]
        try:
            handler(context)
        except Exception as exc:  # pragma: no cover - user feedback
            human_logger.error("Menu action failed: %s", exc)
            print(f"Error: {exc}")


def _print_menu(app: BoosterApp, menu: list[tuple[str, MenuHandler]]) -> None:
    snapshot = app.score()
    print("================= Game Booster =================")
    print(f"Score: {snapshot.score}/100 ({snapshot.grade.value})")
    for number, (label, _handler) in enumerate(menu, start=1):
        print(f"{number}. {label}")
    print("------------------------------------------------")


def _print_toggles(app: BoosterApp) -> None:
    for number, toggle in enumerate(app.toggles(), start=1):
        mark = "x" if toggle.active else " "
        print(f"  {number:>2}. [{mark}] {toggle.label:<28} +{toggle.weight:<3} {toggle.description}")


def _menu_show(context: MutableMapping[str, object]) -> None:
    app: BoosterApp = context["app"]  # type: ignore[assignment]
    _print_toggles(app)
    snapshot = app.score()
    print(f"  Score {snapshot.score} | {snapshot.grade.value}")


def _menu_flip(context: MutableMapping[str, object]) -> None:
    app: BoosterApp = context["app"]  # type: ignore[assignment]
    input_func: Callable[[str], str] = context["input"]  # type: ignore[assignment]
    toggles = app.toggles()
    _print_toggles(app)
    choice = input_func(f"Toggle number (1-{len(toggles)}): ").strip()
    if not choice.isdigit() or not 1 <= int(choice) <= len(toggles):
        print("No toggle selected.")
        return
    toggle = toggles[int(choice) - 1]
    ok = app.flip(toggle.name)
    _print_latest_notification(app)
    if ok:
        snapshot = app.score()
        print(f"  Score {snapshot.score} | {snapshot.grade.value}")


def _menu_clean(context: MutableMapping[str, object]) -> None:
    app: BoosterApp = context["app"]  # type: ignore[assignment]
    sleep: Callable[[float], None] = context["sleep"]  # type: ignore[assignment]
    try:
        app.start_cleanup()
    except TaskAlreadyRunningError:
        print("Cleanup is already running.")
        return
    follow_task(app, sleep=sleep)
    app.acknowledge_cleanup()
    _print_latest_notification(app)


def _menu_launch(context: MutableMapping[str, object]) -> None:
    app: BoosterApp = context["app"]  # type: ignore[assignment]
    input_func: Callable[[str], str] = context["input"]  # type: ignore[assignment]
    path = input_func("Path to game executable: ")
    app.launch_game(path)
    _print_latest_notification(app)


def _menu_notifications(context: MutableMapping[str, object]) -> None:
    app: BoosterApp = context["app"]  # type: ignore[assignment]
    entries = app.active_notifications()
    if not entries:
        print("  No notifications.")
        return
    for entry in entries:
        print(f"  [{entry.severity.value:<7}] {entry.message} ({entry.remaining:.1f}s)")


def _menu_exit(context: MutableMapping[str, object]) -> None:
    context["running"] = False


def _print_latest_notification(app: BoosterApp) -> None:
    entries = app.active_notifications()
    if entries:
        print(f"  {entries[-1].message}")


__all__ = ["follow_task", "run_cli"]
