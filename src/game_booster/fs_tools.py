"""!
@brief Filesystem utilities for the cleanup job.
@details Provides the "empty this directory and report how many entries went
away" primitive used by the cleanup steps, the guard that refuses to empty a
filesystem root or the user's home directory, and default locations for logs
and scratch directories.
"""
from __future__ import annotations

import os
import shutil
import stat
import sys
import tempfile
from pathlib import Path
from typing import Dict, Mapping

from . import constants, logging_ext

LOGDIR_ENV_VAR = "GAME_BOOSTER_LOGDIR"


class UnsafeTargetError(ValueError):
    """!
    @brief Raised when a cleanup location resolves to a protected directory.
    """


def _retry_writable(function, path: str, exc_info) -> None:  # pragma: no cover - Windows read-only files
    """!
    @brief Clear read-only attributes before retrying removal.
    @details Accepts both the ``onerror`` tuple and the ``onexc`` exception.
    """

    exc = exc_info[1] if isinstance(exc_info, tuple) else exc_info
    if isinstance(exc, PermissionError):
        os.chmod(path, stat.S_IWRITE)
        function(path)
    else:
        raise exc


def _rmtree(path: Path) -> None:
    if sys.version_info >= (3, 12):
        shutil.rmtree(path, onexc=_retry_writable)
    else:  # pragma: no cover - older interpreters
        shutil.rmtree(path, onerror=_retry_writable)


def _fully_enumerable(path: Path) -> bool:
    errors: list[OSError] = []
    for _root, _dirs, _files in os.walk(path, onerror=errors.append):
        if errors:
            break
    return not errors


def is_safe_cleanup_target(path: Path | str, *, home: Path | str | None = None) -> bool:
    """!
    @brief Return ``False`` for filesystem roots and the user's home directory.
    """

    resolved = Path(path).expanduser().resolve()
    if resolved.parent == resolved:
        return False
    home_dir = Path(home).expanduser().resolve() if home is not None else Path.home().resolve()
    return resolved != home_dir


def ensure_safe_cleanup_target(path: Path | str, *, home: Path | str | None = None) -> Path:
    """!
    @brief Validate ``path`` with :func:`is_safe_cleanup_target`.
    @throws UnsafeTargetError when the location is protected.
    """

    if not is_safe_cleanup_target(path, home=home):
        raise UnsafeTargetError(f"refusing to clear protected location: {path}")
    return Path(path)


def clear_directory(path: Path | str, *, dry_run: bool = False) -> int:
    """!
    @brief Remove every entry directly under ``path`` and return how many went away.
    @details The directory itself is kept. A sub-tree that cannot be fully
    enumerated is left untouched, and an entry whose removal errors is skipped
    and not counted; neither aborts the sweep. In dry-run mode the removable
    entries are counted but nothing is deleted.
    @throws OSError when ``path`` itself cannot be listed.
    """

    human_logger = logging_ext.get_human_logger()
    machine_logger = logging_ext.get_machine_logger()
    target = Path(path)

    machine_logger.info(
        "filesystem_clear_plan",
        extra=logging_ext.build_event_extra("filesystem_clear_plan", path=str(target), dry_run=bool(dry_run)),
    )

    removed = 0
    skipped = 0
    with os.scandir(target) as entries:
        for entry in entries:
            entry_path = Path(entry.path)
            try:
                is_tree = entry.is_dir(follow_symlinks=False)
                if is_tree and not _fully_enumerable(entry_path):
                    human_logger.debug("Skipping %s: contents cannot be enumerated", entry_path)
                    skipped += 1
                    continue
                if dry_run:
                    removed += 1
                    continue
                if is_tree:
                    _rmtree(entry_path)
                else:
                    try:
                        entry_path.unlink()
                    except PermissionError:
                        os.chmod(entry_path, stat.S_IWRITE)
                        entry_path.unlink()
            except OSError as exc:
                human_logger.debug("Could not remove %s: %s", entry_path, exc)
                skipped += 1
                continue
            removed += 1

    if dry_run:
        human_logger.info("Dry-run: would remove %d entries from %s", removed, target)
    machine_logger.info(
        "filesystem_clear_result",
        extra=logging_ext.build_event_extra(
            "filesystem_clear_result", path=str(target), removed=removed, skipped=skipped, dry_run=bool(dry_run)
        ),
    )
    return removed


def get_default_log_directory(
    *,
    env: Mapping[str, str] | None = None,
    platform: str | None = None,
) -> Path:
    """!
    @brief Resolve the directory receiving log files.
    @details ``GAME_BOOSTER_LOGDIR`` wins when set. Windows hosts use
    ``%ProgramData%\\GameBooster\\logs``; other hosts use
    ``$XDG_STATE_HOME/game-booster/logs`` or ``~/.local/state/game-booster/logs``.
    """

    environment = os.environ if env is None else env
    override = environment.get(LOGDIR_ENV_VAR)
    if override:
        return Path(override).expanduser()

    system = platform or os.name
    if system == "nt":
        base = environment.get("ProgramData") or environment.get("PROGRAMDATA") or r"C:\ProgramData"
        return Path(base) / "GameBooster" / "logs"

    state_home = environment.get("XDG_STATE_HOME")
    if state_home:
        return Path(state_home).expanduser() / "game-booster" / "logs"
    return Path.home() / ".local" / "state" / "game-booster" / "logs"


def resolve_cleanup_locations(env: Mapping[str, str] | None = None) -> Dict[str, Path]:
    """!
    @brief Map each directory cleanup step to the location it empties.
    @details The user scratch directory comes from :func:`tempfile.gettempdir`
    unless ``TEMP`` is supplied in ``env``; the system scratch and prefetch
    directories live under ``%SystemRoot%``.
    """

    environment = os.environ if env is None else env
    system_root = environment.get("SystemRoot") or environment.get("SYSTEMROOT") or r"C:\Windows"
    user_temp = environment.get("TEMP") if env is not None else None
    return {
        constants.CLEANUP_STEP_TEMP: Path(user_temp or tempfile.gettempdir()),
        constants.CLEANUP_STEP_WINDOWS_TEMP: Path(system_root) / "Temp",
        constants.CLEANUP_STEP_PREFETCH: Path(system_root) / "Prefetch",
    }


__all__ = [
    "LOGDIR_ENV_VAR",
    "UnsafeTargetError",
    "clear_directory",
    "ensure_safe_cleanup_target",
    "get_default_log_directory",
    "is_safe_cleanup_target",
    "resolve_cleanup_locations",
]
