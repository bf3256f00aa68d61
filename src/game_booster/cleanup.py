"""!
@brief One-tap cleanup job.
@details Empties the user scratch directory, the system scratch directory and
the prefetch cache, then flushes the DNS resolver cache. Every step is
attempted even when an earlier one failed; a failed step contributes zero
items and is reported as a log line. The job itself only fails when every
step failed. Each finished step is reported through
:meth:`~game_booster.task_runner.TaskContext.complete_step` so callers can show
real progress.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from functools import partial
from pathlib import Path
from typing import Callable, Dict, Iterable, Mapping, Optional, Protocol, Tuple

from . import constants, fs_tools, logging_ext, tweaks


class CleanupFailedError(RuntimeError):
    """!
    @brief Raised when no cleanup step succeeded.
    """


class CleanupStepError(RuntimeError):
    """!
    @brief Raised by a step whose external action reported failure.
    """


class _Context(Protocol):
    def log(self, line: str) -> None: ...

    def complete_step(self, step: str) -> None: ...


@dataclass(frozen=True)
class CleanupStep:
    """!
    @brief One unit of cleanup work.
    @details ``run`` returns the number of removed items, or ``None`` for steps
    without a count, in which case ``done_message`` is logged instead.
    """

    name: str
    label: str
    run: Callable[[], Optional[int]]
    done_message: str | None = None


@dataclass(frozen=True)
class CleanupSummary:
    total: int
    counts: Mapping[str, int] = field(default_factory=dict)
    failed_steps: Tuple[str, ...] = ()

    @property
    def ok(self) -> bool:
        return not self.failed_steps


def _clear_location(path: Path, *, dry_run: bool) -> int:
    fs_tools.ensure_safe_cleanup_target(path)
    return fs_tools.clear_directory(path, dry_run=dry_run)


def _flush_dns(*, dry_run: bool) -> None:
    outcome = tweaks.flush_dns(dry_run=dry_run)
    if not outcome.ok:
        raise CleanupStepError(outcome.detail or "DNS flush failed")


def default_cleanup_steps(
    *,
    locations: Mapping[str, Path] | None = None,
    dry_run: bool = False,
) -> Tuple[CleanupStep, ...]:
    """!
    @brief Build the standard four-step sequence.
    @param locations Overrides for the directory steps keyed by step name.
    @param dry_run Count what would be removed without deleting anything.
    """

    resolved: Dict[str, Path] = fs_tools.resolve_cleanup_locations()
    if locations:
        resolved.update({name: Path(path) for name, path in locations.items()})

    steps = [
        CleanupStep(
            name=name,
            label=constants.CLEANUP_LOCATION_LABELS[name],
            run=partial(_clear_location, resolved[name], dry_run=dry_run),
        )
        for name in (
            constants.CLEANUP_STEP_TEMP,
            constants.CLEANUP_STEP_WINDOWS_TEMP,
            constants.CLEANUP_STEP_PREFETCH,
        )
    ]
    steps.append(
        CleanupStep(
            name=constants.CLEANUP_STEP_DNS,
            label="DNS cache",
            run=partial(_flush_dns, dry_run=dry_run),
            done_message="DNS cache flushed",
        )
    )
    return tuple(steps)


class CleanupJob:
    """!
    @brief Task runner job executing a sequence of :class:`CleanupStep`.
    """

    name = "cleanup"

    def __init__(self, steps: Iterable[CleanupStep] | None = None, *, dry_run: bool = False) -> None:
        self._steps = tuple(steps) if steps is not None else default_cleanup_steps(dry_run=dry_run)
        if not self._steps:
            raise ValueError("cleanup job needs at least one step")

    @property
    def steps(self) -> Tuple[str, ...]:
        return tuple(step.name for step in self._steps)

    def __call__(self, context: _Context) -> CleanupSummary:
        return self.run(context)

    def run(self, context: _Context) -> CleanupSummary:
        """!
        @brief Attempt every step, logging one line per step and a closing total.
        @returns :class:`CleanupSummary` with per-step counts.
        @throws CleanupFailedError when every step failed.
        """

        human_logger = logging_ext.get_human_logger()
        machine_logger = logging_ext.get_machine_logger()

        counts: Dict[str, int] = {}
        failed: list[str] = []
        for step in self._steps:
            try:
                count = step.run()
            except Exception as exc:
                human_logger.warning("Cleanup step %s failed: %s", step.name, exc)
                failed.append(step.name)
                counts[step.name] = 0
                context.log(f"{step.label}: failed ({exc})")
                machine_logger.warning(
                    "cleanup_step",
                    extra=logging_ext.build_event_extra(
                        "cleanup_step", step=step.name, ok=False, removed=0, error=str(exc)
                    ),
                )
            else:
                if count is None:
                    context.log(step.done_message or f"{step.label}: done")
                else:
                    counts[step.name] = int(count)
                    context.log(f"{step.label}: removed {int(count)} items")
                machine_logger.info(
                    "cleanup_step",
                    extra=logging_ext.build_event_extra(
                        "cleanup_step", step=step.name, ok=True, removed=count
                    ),
                )
            context.complete_step(step.name)

        if len(failed) == len(self._steps):
            raise CleanupFailedError(f"all {len(failed)} cleanup steps failed")

        total = sum(counts.values())
        context.log(f"Total: {total} items cleared")
        human_logger.info("Cleanup finished: %d items cleared", total)
        return CleanupSummary(total=total, counts=dict(counts), failed_steps=tuple(failed))


__all__ = [
    "CleanupFailedError",
    "CleanupJob",
    "CleanupStep",
    "CleanupStepError",
    "CleanupSummary",
    "default_cleanup_steps",
]
