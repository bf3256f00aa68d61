"""!
@file main_progress.py
@brief Progress output for the Game Booster CLI.
@details Prints timestamped, Linux init-style status lines. Output from the
cleanup worker and the main thread share one lock so lines never interleave.
"""

from __future__ import annotations

import ctypes
import os
import threading
import time

__all__ = [
    "get_elapsed_secs",
    "set_main_start_time",
    "progress",
    "progress_ok",
    "progress_fail",
    "progress_skip",
    "enable_vt_mode_if_possible",
]

_MAIN_START_TIME: float = time.perf_counter()
_PROGRESS_LOCK = threading.Lock()
_PENDING_LINE_OWNER: int | None = None


def set_main_start_time(start_time: float) -> None:
    """!
    @brief Set the reference point for progress timestamps.
    """
    global _MAIN_START_TIME
    _MAIN_START_TIME = start_time


def get_elapsed_secs() -> float:
    return time.perf_counter() - _MAIN_START_TIME


def progress(message: str, *, indent: int = 0, newline: bool = True) -> None:
    """!
    @brief Print a timestamped progress message.
    @param indent Indentation level (each level adds 2 spaces).
    @param newline ``False`` leaves the line open for a following status tag.
    """
    global _PENDING_LINE_OWNER
    text = f"[{get_elapsed_secs():12.6f}] {'  ' * indent}{message}"

    with _PROGRESS_LOCK:
        current_thread = threading.get_ident()
        if _PENDING_LINE_OWNER is not None and _PENDING_LINE_OWNER != current_thread:
            print(flush=True)
        if newline:
            print(text, flush=True)
            _PENDING_LINE_OWNER = None
        else:
            print(text, end="", flush=True)
            _PENDING_LINE_OWNER = current_thread


def _status(tag: str, detail: str | None) -> None:
    global _PENDING_LINE_OWNER
    suffix = f" ({detail})" if detail else ""
    with _PROGRESS_LOCK:
        current_thread = threading.get_ident()
        if _PENDING_LINE_OWNER == current_thread:
            print(f" [{tag}]{suffix}", flush=True)
        else:
            if _PENDING_LINE_OWNER is not None:
                print(flush=True)
            print(f"[{get_elapsed_secs():12.6f}]  [{tag}]{suffix}", flush=True)
        _PENDING_LINE_OWNER = None


def progress_ok(detail: str | None = None) -> None:
    """!
    @brief Print OK status in Linux init style [  OK  ].
    """
    _status("  \033[32mOK\033[0m  ", detail)


def progress_fail(reason: str | None = None) -> None:
    """!
    @brief Print FAILED status in Linux init style [FAILED].
    """
    _status("\033[31mFAILED\033[0m", reason)


def progress_skip(reason: str | None = None) -> None:
    _status(" \033[33mSKIP\033[0m ", reason)


def enable_vt_mode_if_possible() -> None:
    """!
    @brief Attempt to enable ANSI/VT processing on Windows consoles.
    @details Failures are ignored; colour output is optional.
    """
    if os.name != "nt":  # pragma: no cover - Windows behaviour only
        return

    try:
        from ctypes import wintypes

        kernel32 = ctypes.windll.kernel32
    except (ImportError, AttributeError, OSError):  # pragma: no cover - non-Windows
        return

    for std_handle in (-11, -12):  # STD_OUTPUT_HANDLE, STD_ERROR_HANDLE
        handle = kernel32.GetStdHandle(std_handle)
        if not handle:
            continue
        mode = wintypes.DWORD()
        if kernel32.GetConsoleMode(handle, ctypes.byref(mode)):
            kernel32.SetConsoleMode(handle, mode.value | 0x0004)
