"""!
@brief Primary entry point for the Game Booster CLI.
@details Parses arguments, resolves settings from the CLI and an optional JSON
config file, sets up the human and machine logs, requests elevation when
machine state will change, and then either runs the requested actions
(``--enable``, ``--disable``, ``--clean``, ``--launch``) or the interactive
menu. Exit status is 0 on success, 1 when any requested action failed and 2
for configuration errors.
"""
from __future__ import annotations

import argparse
import logging
import os
import pathlib
import sys
import time
from typing import Iterable, Optional

from . import (
    constants,
    elevation,
    exec_utils,
    fs_tools,
    logging_ext,
    ui,
    version,
)
from .app_state import BoosterApp
from .config import BoosterSettings, ConfigError, load_config_file, resolve_settings
from .main_progress import (
    enable_vt_mode_if_possible,
    progress,
    progress_fail,
    progress_ok,
    progress_skip,
    set_main_start_time,
)
from .task_runner import TaskAlreadyRunningError, TaskStatus

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_CONFIG_ERROR = 2

TOGGLE_NAMES = tuple(str(entry["name"]) for entry in constants.TOGGLE_DEFINITIONS)


def build_arg_parser() -> argparse.ArgumentParser:
    """!
    @brief Create the top-level argument parser.
    """

    parser = argparse.ArgumentParser(
        prog="game-booster",
        add_help=True,
        description="Apply and revert gaming performance tweaks, clean scratch data and launch games.",
    )
    metadata = version.build_info()
    parser.add_argument(
        "-V",
        "--version",
        action="version",
        version=f"{metadata['version']} ({metadata['build']})",
    )

    parser.add_argument("--list", action="store_true", help="Show every toggle, its weight and the score.")
    parser.add_argument(
        "--enable",
        metavar="NAME",
        nargs="+",
        action="extend",
        choices=TOGGLE_NAMES,
        help="Switch the named toggles on.",
    )
    parser.add_argument(
        "--disable",
        metavar="NAME",
        nargs="+",
        action="extend",
        choices=TOGGLE_NAMES,
        help="Switch the named toggles off.",
    )
    parser.add_argument("--clean", action="store_true", help="Run the deep clean job.")
    parser.add_argument("--launch", metavar="PATH", help="Launch a game executable with HIGH priority.")
    parser.add_argument("--dry-run", action="store_true", help="Simulate actions without modifying the system.")
    parser.add_argument("--timeout", metavar="SEC", type=float, help="Timeout for external commands in seconds.")
    parser.add_argument("--config", metavar="FILE", help="JSON configuration file.")
    parser.add_argument("--logdir", metavar="DIR", help="Directory for human/JSONL log output.")
    parser.add_argument("--json", action="store_true", help="Mirror structured events to stdout.")
    parser.add_argument("--quiet", action="store_true", help="Minimal console output (errors only).")
    parser.add_argument("--no-elevate", action="store_true", help="Do not request administrative rights.")
    return parser


def _resolve_log_directory(candidate: Optional[pathlib.Path]) -> pathlib.Path:
    """!
    @brief Determine the log directory, falling back to the platform default.
    """

    if candidate:
        return pathlib.Path(candidate).expanduser().resolve()
    expanded = fs_tools.get_default_log_directory().expanduser()
    try:
        return expanded.resolve()
    except OSError:
        return expanded


def _bootstrap_logging(
    args: argparse.Namespace, settings: BoosterSettings
) -> tuple[logging.Logger, logging.Logger]:
    """!
    @brief Initialize human and machine loggers using :mod:`logging_ext` helpers.
    """

    logdir = _resolve_log_directory(settings.logdir)
    human_logger, machine_logger = logging_ext.setup_logging(logdir, json_to_stdout=settings.json)
    if getattr(args, "quiet", False):
        human_logger.setLevel(logging.ERROR)
    return human_logger, machine_logger


def _determine_mode(args: argparse.Namespace) -> str:
    """!
    @brief Map parsed arguments to a simple textual mode identifier.
    """

    if getattr(args, "enable", None) or getattr(args, "disable", None):
        return "actions"
    if getattr(args, "clean", False) or getattr(args, "launch", None) is not None:
        return "actions"
    if getattr(args, "list", False):
        return "list"
    return "interactive"


def _needs_elevation(args: argparse.Namespace, settings: BoosterSettings, mode: str) -> bool:
    if mode == "list" or settings.dry_run or getattr(args, "no_elevate", False):
        return False
    return os.name == "nt" and not elevation.is_admin()


def _build_app(settings: BoosterSettings) -> BoosterApp:
    return BoosterApp(settings)


def main(argv: Optional[Iterable[str]] = None) -> int:
    """!
    @brief Entry point for the ``game-booster`` console script.
    @returns Process exit code integer.
    """

    set_main_start_time(time.perf_counter())
    enable_vt_mode_if_possible()
    parser = build_arg_parser()
    arguments = list(argv) if argv is not None else sys.argv[1:]
    args = parser.parse_args(arguments)

    try:
        settings = resolve_settings(args, load_config_file(getattr(args, "config", None)))
    except ConfigError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return EXIT_CONFIG_ERROR

    human_log, machine_log = _bootstrap_logging(args, settings)
    exec_utils.set_default_timeout(settings.command_timeout)

    mode = _determine_mode(args)
    machine_log.info(
        "startup",
        extra=logging_ext.build_event_extra("startup", mode=mode, dry_run=settings.dry_run),
    )

    if _needs_elevation(args, settings, mode):
        if elevation.relaunch_as_admin(["-m", "game_booster.main", *arguments]):
            return EXIT_OK
        human_log.warning("Continuing without administrative rights; some tweaks will fail.")

    app = _build_app(settings)
    try:
        if mode == "list":
            _print_listing(app)
            return EXIT_OK
        if mode == "interactive":
            ui.run_cli(app, args=args)
            return EXIT_OK
        return _run_actions(app, args)
    finally:
        app.shutdown()


def _print_listing(app: BoosterApp) -> None:
    for toggle in app.toggles():
        state = "on " if toggle.active else "off"
        print(f"{toggle.name:<22} {state} +{toggle.weight:<3} {toggle.label}")
    snapshot = app.score()
    print(f"Score: {snapshot.score}/100 ({snapshot.grade.value})")


def _latest_message(app: BoosterApp) -> str | None:
    entries = app.active_notifications()
    return entries[-1].message if entries else None


def _run_actions(app: BoosterApp, args: argparse.Namespace) -> int:
    """!
    @brief Apply ``--enable``/``--disable``, then ``--clean``, then ``--launch``.
    @returns ``EXIT_FAILURE`` if any of them failed.
    """

    quiet = bool(getattr(args, "quiet", False))
    failures = 0

    def _report(ok: bool) -> None:
        if quiet:
            return
        if ok:
            progress_ok(_latest_message(app))
        else:
            progress_fail(_latest_message(app))

    requests = [(name, True) for name in (args.enable or [])] + [(name, False) for name in (args.disable or [])]
    for name, desired in requests:
        if not quiet:
            progress(f"{'Enabling' if desired else 'Disabling'} {name}", newline=False)
        if app.store.get(name).active == desired:
            if not quiet:
                progress_skip(f"already {'on' if desired else 'off'}")
            continue
        ok = app.set_toggle(name, desired)
        failures += 0 if ok else 1
        _report(ok)

    if args.clean:
        if not quiet:
            progress("Deep clean")
        try:
            app.start_cleanup()
        except TaskAlreadyRunningError:
            failures += 1
            _report(False)
        else:
            printer = (lambda _line: None) if quiet else (lambda line: progress(line.strip(), indent=1))
            state = ui.follow_task(app, printer=printer)
            app.acknowledge_cleanup()
            ok = state.status is TaskStatus.COMPLETED
            failures += 0 if ok else 1
            _report(ok)

    if args.launch is not None:
        if not quiet:
            progress(f"Launching {args.launch}", newline=False)
        ok = app.launch_game(args.launch)
        failures += 0 if ok else 1
        _report(ok)

    if requests and not quiet:
        snapshot = app.score()
        progress(f"Score: {snapshot.score}/100 ({snapshot.grade.value})")
    return EXIT_FAILURE if failures else EXIT_OK


if __name__ == "__main__":  # pragma: no cover - manual execution
    sys.exit(main())
