"""!
@brief Administrative elevation helpers.
@details Most tweaks touch ``HKLM``, services, or boot configuration and only
succeed from an elevated token. The CLI checks :func:`is_admin` before it
mutates machine state and can relaunch itself through ``ShellExecuteW`` with
the ``runas`` verb.
"""
from __future__ import annotations

import ctypes
import os
import subprocess
import sys
from typing import Sequence

from . import logging_ext


def is_admin() -> bool:
    """!
    @brief Determine whether the current process token has administrative rights.
    """

    if os.name != "nt":
        geteuid = getattr(os, "geteuid", None)
        return bool(geteuid is not None and geteuid() == 0)
    try:
        shell32 = ctypes.windll.shell32  # type: ignore[attr-defined]
        return bool(shell32.IsUserAnAdmin())
    except Exception:
        return False


def relaunch_as_admin(argv: Sequence[str] | None = None) -> bool:
    """!
    @brief Relaunch the current interpreter with administrative rights.
    @returns ``True`` when the relaunch request was accepted by the shell.
    """

    if os.name != "nt":
        return False
    try:
        shell32 = ctypes.windll.shell32  # type: ignore[attr-defined]
    except Exception:
        return False

    arguments = list(argv) if argv is not None else list(sys.argv)
    params = subprocess.list2cmdline(arguments)
    result = shell32.ShellExecuteW(None, "runas", sys.executable, params, None, 1)
    accepted = int(result) > 32
    logging_ext.get_human_logger().info(
        "Elevation request %s", "accepted" if accepted else "refused"
    )
    return accepted


__all__ = ["is_admin", "relaunch_as_admin"]
