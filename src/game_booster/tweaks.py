"""!
@brief Concrete machine tweaks behind each toggle.
@details Every function here sets a feature to an explicit state (never flips
it), so calling it twice has the same end result as calling it once. Each
returns an :class:`~game_booster.actions.ActionOutcome`; OS errors raised by
the registry or ``ctypes`` layers are classified by the action registry.
Subprocess calls go through :func:`game_booster.exec_utils.run_command`, which
bounds them with the configured timeout.

:func:`default_registry` binds the toggle names from
:data:`game_booster.constants.TOGGLE_DEFINITIONS` to these functions. Toggles
named ``*_off`` enable by switching the underlying feature off; that negation
lives only in the bindings below.
"""
from __future__ import annotations

import ctypes
import os
import threading
from functools import partial
from typing import Callable, Iterable, Sequence

from . import constants, exec_utils, logging_ext, registry_tools
from .actions import Action, ActionOutcome, ActionRegistry, outcome_from_command

SPI_SETANIMATION = 0x0049
SPI_SETMENUANIMATION = 0x1003
SPI_SETLISTBOXSMOOTHSCROLLING = 0x1007
SPI_SETSELECTIONFADE = 0x1015
SPI_SETTOOLTIPANIMATION = 0x1017
SPIF_UPDATEINIFILE = 0x01
SPIF_SENDCHANGE = 0x02

_TIMER_LOCK = threading.Lock()
_TIMER_PERIOD_HELD = False


def _run_sequence(
    commands: Iterable[tuple[Sequence[str], str, Iterable[int]]],
    *,
    dry_run: bool,
) -> ActionOutcome:
    """!
    @brief Run ``(command, event, allowed_codes)`` triples, stopping at the first failure.
    """

    for command, event, allowed in commands:
        result = exec_utils.run_command(command, event=event, dry_run=dry_run)
        outcome = outcome_from_command(result, allowed_codes=allowed)
        if not outcome.ok:
            return outcome
    return ActionOutcome.success()


def _windll(name: str):
    if os.name != "nt":
        raise NotImplementedError(f"{name}.dll is only available on Windows")
    return getattr(ctypes.windll, name)  # type: ignore[attr-defined]


def set_high_performance_power(on: bool, *, dry_run: bool = False) -> ActionOutcome:
    """!
    @brief Activate the High Performance plan, or restore Balanced.
    """

    plan = constants.HIGH_PERFORMANCE_POWER_PLAN if on else constants.BALANCED_POWER_PLAN
    return _run_sequence([(["powercfg", "/setactive", plan], "power_plan", (0,))], dry_run=dry_run)


def timer_period_held() -> bool:
    return _TIMER_PERIOD_HELD


def set_high_res_timer(on: bool, *, dry_run: bool = False) -> ActionOutcome:
    """!
    @brief Request a 1 ms system timer period and the platform tick, or release both.
    @details ``timeBeginPeriod`` requests stack, so the process holds at most
    one request and releases it exactly once. The period only changes after
    ``bcdedit`` succeeded, so a failed action leaves the timer as it was.
    """

    global _TIMER_PERIOD_HELD

    if on:
        command = ["bcdedit", "/set", "useplatformtick", "yes"]
    else:
        command = ["bcdedit", "/deletevalue", "useplatformtick"]

    with _TIMER_LOCK:
        change_period = not dry_run and on != _TIMER_PERIOD_HELD
        winmm = _windll("winmm") if change_period else None
        outcome = _run_sequence([(command, "platform_tick", (0,))], dry_run=dry_run)
        if not outcome.ok or winmm is None:
            return outcome
        if on:
            winmm.timeBeginPeriod(1)
        else:
            winmm.timeEndPeriod(1)
        _TIMER_PERIOD_HELD = on
    return outcome


def set_cpu_priority_boost(on: bool, *, dry_run: bool = False) -> ActionOutcome:
    """!
    @brief Favour the foreground process in ``Win32PrioritySeparation``.
    """

    value = constants.PRIORITY_SEPARATION_BOOSTED if on else constants.PRIORITY_SEPARATION_DEFAULT
    if dry_run:
        return ActionOutcome.success("dry-run")
    registry_tools.set_dword(
        constants.HKLM,
        constants.PRIORITY_CONTROL_KEY,
        constants.PRIORITY_SEPARATION_VALUE,
        value,
    )
    return ActionOutcome.success()


def set_network_low_latency(on: bool, *, dry_run: bool = False) -> ActionOutcome:
    """!
    @brief Disable TCP autotuning/chimney and Nagle per interface, or restore defaults.
    """

    autotuning = "disabled" if on else "normal"
    commands = [
        (["netsh", "int", "tcp", "set", "global", f"autotuninglevel={autotuning}"], "tcp_autotuning", (0,)),
    ]
    if on:
        commands.append((["netsh", "int", "tcp", "set", "global", "chimney=disabled"], "tcp_chimney", (0, 1)))
    outcome = _run_sequence(commands, dry_run=dry_run)
    if not outcome.ok or dry_run:
        return outcome

    lines: list[str] = []
    for interface in registry_tools.iter_subkeys(constants.HKLM, constants.TCPIP_INTERFACES_KEY):
        path = f"{constants.TCPIP_INTERFACES_KEY}\\{interface}"
        for value_name in constants.TCP_TUNING_VALUES:
            if on:
                registry_tools.set_dword(constants.HKLM, path, value_name, 1)
            else:
                registry_tools.delete_value(constants.HKLM, path, value_name)
        lines.append(f"{interface}: {'tuned' if on else 'restored'}")
    return ActionOutcome.success(lines=lines)


def _explorer_running(*, dry_run: bool) -> bool:
    result = exec_utils.run_command(
        ["tasklist", "/FI", f"IMAGENAME eq {constants.EXPLORER_PROCESS}", "/NH"],
        event="explorer_query",
        dry_run=dry_run,
    )
    return constants.EXPLORER_PROCESS in result.stdout.lower()


def set_explorer_killed(killed: bool, *, dry_run: bool = False) -> ActionOutcome:
    """!
    @brief Terminate the Explorer shell, or start it again when it is not running.
    """

    if killed:
        result = exec_utils.run_command(
            ["taskkill", "/f", "/im", constants.EXPLORER_PROCESS],
            event="explorer_kill",
            dry_run=dry_run,
        )
        return outcome_from_command(result, allowed_codes=(0, constants.TASKKILL_NOT_FOUND))

    if not dry_run and _explorer_running(dry_run=dry_run):
        return ActionOutcome.success("explorer already running")
    result = exec_utils.spawn_process([constants.EXPLORER_PROCESS], event="explorer_start", dry_run=dry_run)
    return outcome_from_command(result)


def set_superfetch_disabled(disabled: bool, *, dry_run: bool = False) -> ActionOutcome:
    """!
    @brief Stop and disable the SysMain service, or re-enable and start it.
    """

    service = constants.SUPERFETCH_SERVICE
    if disabled:
        commands = [
            (["sc", "stop", service], "service_stop", (0, constants.SERVICE_NOT_ACTIVE)),
            (["sc", "config", service, "start=", "disabled"], "service_disable", (0,)),
        ]
    else:
        commands = [
            (["sc", "config", service, "start=", "auto"], "service_enable", (0,)),
            (["sc", "start", service], "service_start", (0, constants.SERVICE_ALREADY_RUNNING)),
        ]
    return _run_sequence(commands, dry_run=dry_run)


class _AnimationInfo(ctypes.Structure):
    _fields_ = [("cbSize", ctypes.c_uint), ("iMinAnimate", ctypes.c_int)]


def set_windows_animations(enabled: bool, *, dry_run: bool = False) -> ActionOutcome:
    """!
    @brief Turn window, menu, list-box, selection and tooltip animations on or off.
    """

    if dry_run:
        return ActionOutcome.success("dry-run")
    user32 = _windll("user32")
    info = _AnimationInfo(ctypes.sizeof(_AnimationInfo), 1 if enabled else 0)
    if not user32.SystemParametersInfoW(
        SPI_SETANIMATION, ctypes.sizeof(info), ctypes.byref(info), SPIF_UPDATEINIFILE
    ):
        raise ctypes.WinError()  # type: ignore[attr-defined]
    flag = ctypes.c_void_p(1 if enabled else 0)
    for action in (
        SPI_SETLISTBOXSMOOTHSCROLLING,
        SPI_SETMENUANIMATION,
        SPI_SETSELECTIONFADE,
        SPI_SETTOOLTIPANIMATION,
    ):
        user32.SystemParametersInfoW(action, 0, flag, SPIF_SENDCHANGE)
    return ActionOutcome.success()


def set_game_mode(on: bool, *, dry_run: bool = False) -> ActionOutcome:
    if dry_run:
        return ActionOutcome.success("dry-run")
    registry_tools.set_dword(
        constants.HKCU, constants.GAME_BAR_KEY, constants.GAME_MODE_VALUE, 1 if on else 0, create=True
    )
    return ActionOutcome.success()


def set_game_bar(enabled: bool, *, dry_run: bool = False) -> ActionOutcome:
    """!
    @brief Enable or disable Game Bar background capture (``AppCaptureEnabled``).
    """

    if dry_run:
        return ActionOutcome.success("dry-run")
    registry_tools.set_dword(
        constants.HKCU, constants.GAME_DVR_KEY, constants.GAME_DVR_VALUE, 1 if enabled else 0, create=True
    )
    return ActionOutcome.success()


def flush_dns(*, dry_run: bool = False) -> ActionOutcome:
    """!
    @brief Flush the DNS resolver cache.
    """

    result = exec_utils.run_command(["ipconfig", "/flushdns"], event="dns_flush", dry_run=dry_run)
    return outcome_from_command(result)


def _bind(name: str, setter: Callable[..., ActionOutcome], *, invert: bool, dry_run: bool) -> Action:
    return Action(
        name=name,
        enable=partial(setter, not invert, dry_run=dry_run),
        disable=partial(setter, invert, dry_run=dry_run),
    )


def default_registry(*, dry_run: bool = False) -> ActionRegistry:
    """!
    @brief Build the registry for every toggle in :data:`constants.TOGGLE_DEFINITIONS`.
    @param dry_run Bind every action in dry-run mode.
    """

    logging_ext.get_human_logger().debug("Building action registry (dry_run=%s)", dry_run)
    return ActionRegistry(
        [
            _bind("high_perf_power", set_high_performance_power, invert=False, dry_run=dry_run),
            _bind("high_res_timer", set_high_res_timer, invert=False, dry_run=dry_run),
            _bind("cpu_priority_boost", set_cpu_priority_boost, invert=False, dry_run=dry_run),
            _bind("network_low_latency", set_network_low_latency, invert=False, dry_run=dry_run),
            _bind("kill_explorer", set_explorer_killed, invert=False, dry_run=dry_run),
            _bind("superfetch_off", set_superfetch_disabled, invert=False, dry_run=dry_run),
            _bind("animations_off", set_windows_animations, invert=True, dry_run=dry_run),
            _bind("game_mode", set_game_mode, invert=False, dry_run=dry_run),
            _bind("game_bar_off", set_game_bar, invert=True, dry_run=dry_run),
        ]
    )


__all__ = [
    "default_registry",
    "flush_dns",
    "set_cpu_priority_boost",
    "set_explorer_killed",
    "set_game_bar",
    "set_game_mode",
    "set_high_performance_power",
    "set_high_res_timer",
    "set_network_low_latency",
    "set_superfetch_disabled",
    "set_windows_animations",
    "timer_period_held",
]
