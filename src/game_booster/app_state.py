"""!
@brief Application object shared by the CLI and the interactive menu.
@details :class:`BoosterApp` owns one toggle store, one task runner and one
notification queue, wired from :class:`~game_booster.config.BoosterSettings`.
It is the layer that turns store errors and job outcomes into notifications;
the store and runner stay free of presentation side effects.
"""

from __future__ import annotations

import logging
from typing import Iterable, List

from . import launcher, logging_ext, tweaks
from .actions import ActionRegistry
from .cleanup import CleanupJob, CleanupStep, CleanupSummary, default_cleanup_steps
from .config import BoosterSettings
from .notifications import Notification, NotificationQueue, Severity
from .scoring import ScoreSnapshot
from .task_runner import TaskAlreadyRunningError, TaskRunner, TaskState, TaskStatus
from .toggle_store import Toggle, ToggleActionError, ToggleStateStore

CLEANUP_RUNNING_MESSAGE = "Cleanup is already running"


class BoosterApp:
    """!
    @brief Composition root for toggles, cleanup and notifications.
    @param settings Resolved settings; defaults to :class:`BoosterSettings`.
    @param registry Action registry; defaults to :func:`tweaks.default_registry`.
    @param cleanup_steps Steps for the cleanup job; defaults to
    :func:`cleanup.default_cleanup_steps` with the configured locations.
    """

    def __init__(
        self,
        settings: BoosterSettings | None = None,
        *,
        registry: ActionRegistry | None = None,
        toggles: Iterable[Toggle] | None = None,
        cleanup_steps: Iterable[CleanupStep] | None = None,
    ) -> None:
        self.settings = settings or BoosterSettings()
        self.human_logger: logging.Logger = logging_ext.get_human_logger()
        self.machine_logger: logging.Logger = logging_ext.get_machine_logger()
        self.registry = registry or tweaks.default_registry(dry_run=self.settings.dry_run)
        self.store = ToggleStateStore(self.registry, toggles)
        self.notifications = NotificationQueue(self.settings.notification_lifetime)
        self.runner = TaskRunner(on_finished=self._cleanup_finished)
        self._cleanup_steps = tuple(cleanup_steps) if cleanup_steps is not None else None

    def toggles(self) -> List[Toggle]:
        return self.store.toggles()

    def score(self) -> ScoreSnapshot:
        return self.store.score()

    def set_toggle(self, name: str, desired: bool) -> bool:
        """!
        @brief Apply a toggle transition and report it as a notification.
        @returns ``True`` when the toggle now holds ``desired``.
        @throws UnknownToggleError for unregistered names.
        """

        toggle = self.store.get(name)
        try:
            changed, _snapshot = self.store.transition(name, desired)
        except ToggleActionError as exc:
            message = f"{toggle.label}: {exc.error.value}"
            if exc.detail:
                message = f"{message} ({exc.detail})"
            self.notifications.push(message, Severity.ERROR)
            return False
        if not changed:
            return True
        message = toggle.on_message if desired else toggle.off_message
        self.notifications.push(message or f"{toggle.label} {'on' if desired else 'off'}", Severity.SUCCESS)
        return True

    def flip(self, name: str) -> bool:
        return self.set_toggle(name, not self.store.get(name).active)

    def start_cleanup(self) -> TaskState:
        """!
        @brief Start the cleanup job in the background.
        @throws TaskAlreadyRunningError while a previous run is in flight.
        """

        if self._cleanup_steps is not None:
            job = CleanupJob(self._cleanup_steps)
        else:
            job = CleanupJob(
                default_cleanup_steps(
                    locations=self.settings.cleanup_location_overrides(),
                    dry_run=self.settings.dry_run,
                )
            )
        try:
            return self.runner.start(job)
        except TaskAlreadyRunningError:
            self.notifications.push(CLEANUP_RUNNING_MESSAGE, Severity.WARNING)
            raise

    def cleanup_status(self) -> TaskState:
        return self.runner.status()

    def acknowledge_cleanup(self) -> TaskState:
        return self.runner.acknowledge()

    def _cleanup_finished(self, state: TaskState) -> None:
        if state.status is TaskStatus.COMPLETED:
            total = state.summary.total if isinstance(state.summary, CleanupSummary) else 0
            self.notifications.push(f"Clean complete — {total} items removed", Severity.SUCCESS)
        else:
            self.notifications.push(f"Clean failed: {state.error or 'unknown error'}", Severity.ERROR)

    def launch_game(self, path: str | None) -> bool:
        outcome = launcher.launch_with_priority(path, dry_run=self.settings.dry_run)
        if outcome.ok:
            self.notifications.push(launcher.LAUNCHED_MESSAGE, Severity.SUCCESS)
            return True
        if outcome.detail == launcher.NO_PATH_MESSAGE:
            message = launcher.NO_PATH_MESSAGE
        else:
            message = launcher.LAUNCH_FAILED_MESSAGE
        self.notifications.push(message, Severity.ERROR)
        return False

    def tick(self, delta: float) -> int:
        return self.notifications.tick(delta)

    def active_notifications(self) -> List[Notification]:
        return self.notifications.snapshot()

    def shutdown(self) -> None:
        self.runner.shutdown(wait=True)


__all__ = ["BoosterApp", "CLEANUP_RUNNING_MESSAGE"]
