"""!
@brief External process invocation for tweaks and cleanup steps.
@details Every ``powercfg``, ``bcdedit``, ``sc``, ``netsh``, ``taskkill`` and
``ipconfig`` call goes through :func:`run_command`. The wrapper enforces a
bounded timeout (five seconds unless configured otherwise), honours dry-run,
strips virtual-environment variables from the child environment, and records
``*_plan`` / ``*_result`` / ``*_timeout`` / ``*_missing`` / ``*_error`` events
on the machine channel. It never raises for process failures; callers inspect
the returned :class:`CommandResult`.
"""
from __future__ import annotations

import os
import subprocess
import time
from collections.abc import Mapping, MutableMapping, Sequence
from dataclasses import dataclass

from . import constants, logging_ext

_SANITIZE_BLOCKLIST = frozenset(
    {
        "PYTHONPATH",
        "PYTHONHOME",
        "VIRTUAL_ENV",
        "CONDA_PREFIX",
        "__PYVENV_LAUNCHER__",
    }
)

MISSING_RETURN_CODE = 127


@dataclass
class CommandResult:
    """!
    @brief Outcome of :func:`run_command`.
    @details ``skipped`` marks dry-run results, ``timed_out`` marks commands
    that exceeded their timeout, and ``error`` carries a short failure reason
    when the process could not be run to completion.
    """

    command: Sequence[str]
    returncode: int
    stdout: str
    stderr: str
    duration: float
    skipped: bool = False
    timed_out: bool = False
    error: str | None = None
    pid: int | None = None

    @property
    def ok(self) -> bool:
        return self.returncode == 0 and self.error is None and not self.timed_out

    @property
    def output(self) -> str:
        return "\n".join(part for part in (self.stdout, self.stderr) if part)


_DEFAULT_TIMEOUT: float = constants.DEFAULT_COMMAND_TIMEOUT


def set_default_timeout(timeout_seconds: float | int | None) -> None:
    """!
    @brief Change the timeout applied when callers do not pass one.
    @details ``None`` or a non-positive value restores the built-in default.
    """

    global _DEFAULT_TIMEOUT
    try:
        parsed = float(timeout_seconds) if timeout_seconds is not None else 0.0
    except (TypeError, ValueError):
        parsed = 0.0
    _DEFAULT_TIMEOUT = parsed if parsed > 0 else constants.DEFAULT_COMMAND_TIMEOUT


def get_default_timeout() -> float:
    return _DEFAULT_TIMEOUT


def sanitize_environment(
    base_env: Mapping[str, str] | None = None,
    *,
    overrides: Mapping[str, str] | None = None,
) -> MutableMapping[str, str]:
    """!
    @brief Copy ``base_env`` (default :data:`os.environ`) without Python venv artefacts.
    """

    source = os.environ if base_env is None else base_env
    environment: MutableMapping[str, str] = {
        str(key): str(value)
        for key, value in source.items()
        if value is not None and key not in _SANITIZE_BLOCKLIST
    }
    if overrides:
        environment.update({str(key): str(value) for key, value in overrides.items()})
    return environment


def run_command(
    command: Sequence[str] | str,
    *,
    event: str,
    timeout: float | int | None = None,
    dry_run: bool = False,
    human_message: str | None = None,
    extra: Mapping[str, object] | None = None,
    env: Mapping[str, str] | None = None,
    creationflags: int = 0,
) -> CommandResult:
    """!
    @brief Execute ``command`` with telemetry, a bounded timeout, and dry-run support.
    @param command Argument sequence (a bare string is treated as one argument).
    @param event Base name for structured log events.
    @param timeout Seconds before the process is abandoned; defaults to
    :func:`get_default_timeout`.
    @param dry_run When ``True`` nothing is spawned and a ``skipped`` result is returned.
    @param human_message Optional message for the human channel.
    @param extra Additional fields merged into every machine event.
    @param env Base environment prior to sanitisation.
    @param creationflags Passed through to :func:`subprocess.run` on Windows.
    @returns :class:`CommandResult` describing the outcome.
    """

    human_logger = logging_ext.get_human_logger()
    machine_logger = logging_ext.get_machine_logger()

    command_list = [command] if isinstance(command, str) else [str(part) for part in command]
    effective_timeout = float(timeout) if timeout is not None else _DEFAULT_TIMEOUT
    fields: dict[str, object] = dict(extra or {})
    fields.update({"command": command_list, "timeout": effective_timeout})

    machine_logger.info(
        f"{event}_plan",
        extra=logging_ext.build_event_extra(f"{event}_plan", dry_run=dry_run, **fields),
    )

    if dry_run:
        human_logger.info("Dry-run: would execute %s", " ".join(command_list))
        return CommandResult(
            command=command_list,
            returncode=0,
            stdout="",
            stderr="",
            duration=0.0,
            skipped=True,
        )

    if human_message:
        human_logger.info(human_message)

    kwargs: dict[str, object] = {}
    if creationflags and os.name == "nt":
        kwargs["creationflags"] = creationflags

    start = time.monotonic()
    try:
        completed = subprocess.run(  # noqa: S603 - intentional command execution
            command_list,
            capture_output=True,
            text=True,
            timeout=effective_timeout,
            check=False,
            env=sanitize_environment(env),
            **kwargs,
        )
    except FileNotFoundError as exc:
        duration = time.monotonic() - start
        human_logger.error("Command not found: %s", command_list[0])
        machine_logger.error(
            f"{event}_missing",
            extra=logging_ext.build_event_extra(
                f"{event}_missing", duration=duration, error=str(exc), **fields
            ),
        )
        return CommandResult(
            command=command_list,
            returncode=MISSING_RETURN_CODE,
            stdout="",
            stderr="",
            duration=duration,
            error=str(exc),
        )
    except subprocess.TimeoutExpired as exc:
        duration = time.monotonic() - start
        stdout = _as_text(exc.stdout)
        stderr = _as_text(exc.stderr)
        human_logger.error("Command timed out after %.1fs: %s", duration, command_list[0])
        machine_logger.error(
            f"{event}_timeout",
            extra=logging_ext.build_event_extra(
                f"{event}_timeout", duration=duration, stdout=stdout, stderr=stderr, **fields
            ),
        )
        return CommandResult(
            command=command_list,
            returncode=1,
            stdout=stdout,
            stderr=stderr,
            duration=duration,
            timed_out=True,
            error="timeout",
        )
    except OSError as exc:
        duration = time.monotonic() - start
        human_logger.error("Failed to execute %s: %s", command_list[0], exc)
        machine_logger.error(
            f"{event}_error",
            extra=logging_ext.build_event_extra(
                f"{event}_error", duration=duration, error=str(exc), **fields
            ),
        )
        return CommandResult(
            command=command_list,
            returncode=1,
            stdout="",
            stderr="",
            duration=duration,
            error=str(exc),
        )

    duration = time.monotonic() - start
    machine_logger.info(
        f"{event}_result",
        extra=logging_ext.build_event_extra(
            f"{event}_result",
            return_code=completed.returncode,
            stdout=completed.stdout,
            stderr=completed.stderr,
            duration=duration,
            **fields,
        ),
    )
    if completed.returncode != 0:
        human_logger.warning("Command %s exited with %s", command_list[0], completed.returncode)

    return CommandResult(
        command=command_list,
        returncode=completed.returncode,
        stdout=completed.stdout or "",
        stderr=completed.stderr or "",
        duration=duration,
    )


def _as_text(stream: object) -> str:
    if stream is None:
        return ""
    if isinstance(stream, bytes):
        return stream.decode("utf-8", errors="replace")
    return str(stream)


def spawn_process(
    command: Sequence[str],
    *,
    event: str,
    dry_run: bool = False,
    creationflags: int = 0,
    cwd: str | None = None,
) -> CommandResult:
    """!
    @brief Start ``command`` without waiting for it to exit.
    @details Used for long-lived programs (the Explorer shell, a game). A
    successful spawn yields ``returncode`` 0 and the child ``pid``; the usual
    ``*_missing`` / ``*_error`` events are recorded when the spawn fails.
    """

    human_logger = logging_ext.get_human_logger()
    machine_logger = logging_ext.get_machine_logger()
    command_list = [str(part) for part in command]

    machine_logger.info(
        f"{event}_plan",
        extra=logging_ext.build_event_extra(f"{event}_plan", command=command_list, dry_run=dry_run),
    )
    if dry_run:
        human_logger.info("Dry-run: would start %s", " ".join(command_list))
        return CommandResult(command_list, 0, "", "", 0.0, skipped=True)

    kwargs: dict[str, object] = {}
    if creationflags and os.name == "nt":
        kwargs["creationflags"] = creationflags

    start = time.monotonic()
    try:
        process = subprocess.Popen(  # noqa: S603 - intentional command execution
            command_list,
            cwd=cwd,
            env=sanitize_environment(),
            stdin=subprocess.DEVNULL,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
            **kwargs,
        )
    except FileNotFoundError as exc:
        human_logger.error("Program not found: %s", command_list[0])
        machine_logger.error(
            f"{event}_missing",
            extra=logging_ext.build_event_extra(f"{event}_missing", command=command_list, error=str(exc)),
        )
        return CommandResult(
            command_list, MISSING_RETURN_CODE, "", "", time.monotonic() - start, error=str(exc)
        )
    except OSError as exc:
        human_logger.error("Failed to start %s: %s", command_list[0], exc)
        machine_logger.error(
            f"{event}_error",
            extra=logging_ext.build_event_extra(f"{event}_error", command=command_list, error=str(exc)),
        )
        return CommandResult(command_list, 1, "", "", time.monotonic() - start, error=str(exc))

    machine_logger.info(
        f"{event}_started",
        extra=logging_ext.build_event_extra(f"{event}_started", command=command_list, pid=process.pid),
    )
    return CommandResult(command_list, 0, "", "", time.monotonic() - start, pid=process.pid)
