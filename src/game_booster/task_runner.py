"""!
@brief Single-slot background task runner.
@details Runs one long job at a time on a dedicated worker thread owned by a
:class:`concurrent.futures.ThreadPoolExecutor`. The state machine is::

    IDLE --start--> RUNNING --ok--> COMPLETED --acknowledge--> IDLE
                            --error--> FAILED  --acknowledge--> IDLE

A start request while RUNNING raises :class:`TaskAlreadyRunningError`; it is
never queued and never restarts the in-flight job. A finished task may be
started again directly. Jobs report through a :class:`TaskContext`: log lines
are appended under a lock in call order, and declared steps can be marked
complete so callers see genuine progress. :meth:`TaskRunner.status` returns an
immutable :class:`TaskState` copy and is safe to poll from any thread.
"""
from __future__ import annotations

import enum
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import wait as wait_futures
from dataclasses import dataclass
from typing import Any, Callable, List, Sequence, Tuple

from . import logging_ext


class TaskStatus(str, enum.Enum):
    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class TaskError(Exception):
    """!
    @brief Base class for task runner errors.
    """


class TaskAlreadyRunningError(TaskError):
    """!
    @brief Raised when :meth:`TaskRunner.start` is called while a job runs.
    """


@dataclass(frozen=True)
class TaskState:
    """!
    @brief Point-in-time copy of the runner state.
    """

    status: TaskStatus
    name: str | None = None
    log: Tuple[str, ...] = ()
    summary: Any = None
    error: str | None = None
    started_at: float | None = None
    finished_at: float | None = None
    steps: Tuple[str, ...] = ()
    completed_steps: Tuple[str, ...] = ()

    @property
    def running(self) -> bool:
        return self.status is TaskStatus.RUNNING

    @property
    def progress(self) -> float:
        """!
        @brief Fraction of declared steps completed (``1.0`` once finished).
        """

        if self.status in (TaskStatus.COMPLETED, TaskStatus.FAILED):
            return 1.0
        if not self.steps:
            return 0.0
        return len(self.completed_steps) / len(self.steps)


class TaskContext:
    """!
    @brief Handle passed to a running job for logging and step reporting.
    """

    def __init__(self, runner: "TaskRunner", generation: int) -> None:
        self._runner = runner
        self._generation = generation

    def log(self, line: str) -> None:
        self._runner._append_log(self._generation, str(line))

    def complete_step(self, step: str) -> None:
        self._runner._complete_step(self._generation, str(step))


Job = Callable[[TaskContext], Any]
FinishedCallback = Callable[[TaskState], None]


class TaskRunner:
    """!
    @brief Runs at most one job at a time and exposes its observable state.
    @param on_finished Called on the worker thread with the final state once a
    job completes or fails.
    """

    def __init__(self, *, on_finished: FinishedCallback | None = None) -> None:
        self._on_finished = on_finished
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="game-booster-task")
        self._lock = threading.Lock()
        self._generation = 0
        self._future: Future | None = None
        self._status = TaskStatus.IDLE
        self._name: str | None = None
        self._log: List[str] = []
        self._summary: Any = None
        self._error: str | None = None
        self._started_at: float | None = None
        self._finished_at: float | None = None
        self._steps: Tuple[str, ...] = ()
        self._completed: List[str] = []

    def start(self, job: Job, *, name: str | None = None, steps: Sequence[str] | None = None) -> TaskState:
        """!
        @brief Run ``job`` in the background.
        @param job Callable receiving a :class:`TaskContext` and returning a summary.
        @param name Display name; defaults to ``job.name`` or the callable name.
        @param steps Declared step identifiers; defaults to ``job.steps``.
        @returns State right after the start request.
        @throws TaskAlreadyRunningError when a job is already running.
        """

        human_logger = logging_ext.get_human_logger()
        machine_logger = logging_ext.get_machine_logger()
        task_name = name or getattr(job, "name", None) or getattr(job, "__name__", type(job).__name__)
        declared = tuple(steps if steps is not None else getattr(job, "steps", ()))

        with self._lock:
            if self._status is TaskStatus.RUNNING:
                raise TaskAlreadyRunningError(f"{self._name} is already running")
            self._generation += 1
            generation = self._generation
            self._status = TaskStatus.RUNNING
            self._name = str(task_name)
            self._log = []
            self._summary = None
            self._error = None
            self._started_at = time.time()
            self._finished_at = None
            self._steps = declared
            self._completed = []
            try:
                self._future = self._executor.submit(self._execute, job, generation)
            except RuntimeError as exc:
                self._status = TaskStatus.FAILED
                self._error = f"cannot start background worker: {exc}"
                self._log.append(f"ERROR: {self._error}")
                self._finished_at = time.time()
                submitted = False
            else:
                submitted = True

        machine_logger.info(
            "task_start",
            extra=logging_ext.build_event_extra(
                "task_start", task=task_name, steps=list(declared), submitted=submitted
            ),
        )
        state = self.status()
        if not submitted:
            human_logger.error("Task %s could not start: %s", task_name, state.error)
            self._notify(state)
        return state

    def status(self) -> TaskState:
        with self._lock:
            return self._state_locked()

    def acknowledge(self) -> TaskState:
        """!
        @brief Return a finished task to IDLE; the last log stays visible.
        """

        with self._lock:
            if self._status in (TaskStatus.COMPLETED, TaskStatus.FAILED):
                self._status = TaskStatus.IDLE
            return self._state_locked()

    def wait(self, timeout: float | None = None) -> TaskState:
        """!
        @brief Block until the current job finishes or ``timeout`` elapses.
        """

        with self._lock:
            future = self._future
        if future is not None:
            wait_futures([future], timeout=timeout)
        return self.status()

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)

    def _state_locked(self) -> TaskState:
        return TaskState(
            status=self._status,
            name=self._name,
            log=tuple(self._log),
            summary=self._summary,
            error=self._error,
            started_at=self._started_at,
            finished_at=self._finished_at,
            steps=self._steps,
            completed_steps=tuple(self._completed),
        )

    def _append_log(self, generation: int, line: str) -> None:
        with self._lock:
            if generation != self._generation or self._status is not TaskStatus.RUNNING:
                return
            self._log.append(line)
            name = self._name
        logging_ext.get_machine_logger().info(
            "task_log", extra=logging_ext.build_event_extra("task_log", task=name, line=line)
        )

    def _complete_step(self, generation: int, step: str) -> None:
        with self._lock:
            if generation != self._generation or self._status is not TaskStatus.RUNNING:
                return
            if step not in self._completed:
                self._completed.append(step)

    def _execute(self, job: Job, generation: int) -> None:
        human_logger = logging_ext.get_human_logger()
        context = TaskContext(self, generation)
        try:
            summary = job(context)
        except Exception as exc:
            human_logger.exception("Task %s failed", self._name)
            detail = str(exc) or type(exc).__name__
            with self._lock:
                self._log.append(f"ERROR: {detail}")
                self._status = TaskStatus.FAILED
                self._error = detail
                self._finished_at = time.time()
                state = self._state_locked()
        else:
            with self._lock:
                self._status = TaskStatus.COMPLETED
                self._summary = summary
                self._finished_at = time.time()
                state = self._state_locked()

        logging_ext.get_machine_logger().info(
            "task_finished",
            extra=logging_ext.build_event_extra(
                "task_finished", task=state.name, status=state.status.value, error=state.error
            ),
        )
        self._notify(state)

    def _notify(self, state: TaskState) -> None:
        if self._on_finished is None:
            return
        try:
            self._on_finished(state)
        except Exception:
            logging_ext.get_human_logger().exception("Task completion callback failed")


__all__ = [
    "Job",
    "TaskAlreadyRunningError",
    "TaskContext",
    "TaskError",
    "TaskRunner",
    "TaskState",
    "TaskStatus",
]
