"""!
@brief Start a game executable with HIGH priority class.
"""
from __future__ import annotations

import os
from pathlib import Path

from . import exec_utils, logging_ext
from .actions import ActionError, ActionOutcome, outcome_from_command

HIGH_PRIORITY_CLASS = 0x00000080

NO_PATH_MESSAGE = "No game path set!"
LAUNCHED_MESSAGE = "Game launched with HIGH priority class"
LAUNCH_FAILED_MESSAGE = "Launch failed! Check the path."


def launch_with_priority(path: str | os.PathLike[str] | None, *, dry_run: bool = False) -> ActionOutcome:
    """!
    @brief Spawn ``path`` detached, in its own directory, at HIGH priority.
    @details The priority class only applies on Windows; other hosts start the
    program normally.
    @returns Success with the child pid in ``detail``, or a classified failure.
    """

    machine_logger = logging_ext.get_machine_logger()

    if path is None or not str(path).strip():
        outcome = ActionOutcome.failure(ActionError.RESOURCE_UNAVAILABLE, NO_PATH_MESSAGE)
    else:
        executable = Path(str(path).strip().strip('"')).expanduser()
        if not dry_run and not executable.is_file():
            outcome = ActionOutcome.failure(ActionError.RESOURCE_UNAVAILABLE, f"{executable} does not exist")
        else:
            result = exec_utils.spawn_process(
                [str(executable)],
                event="game_launch",
                dry_run=dry_run,
                creationflags=HIGH_PRIORITY_CLASS,
                cwd=str(executable.parent) if not dry_run else None,
            )
            outcome = outcome_from_command(result)
            if outcome.ok and result.pid is not None:
                outcome = ActionOutcome.success(f"pid {result.pid}")

    machine_logger.info(
        "launch_result",
        extra=logging_ext.build_event_extra(
            "launch_result",
            path=str(path) if path is not None else None,
            ok=outcome.ok,
            error=outcome.error.value if outcome.error else None,
            detail=outcome.detail,
        ),
    )
    return outcome


__all__ = [
    "HIGH_PRIORITY_CLASS",
    "LAUNCHED_MESSAGE",
    "LAUNCH_FAILED_MESSAGE",
    "NO_PATH_MESSAGE",
    "launch_with_priority",
]
