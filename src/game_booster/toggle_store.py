"""!
@brief Toggle state store.
@details Owns one :class:`Toggle` per registered name and is the only place a
toggle's ``active`` flag changes. A transition invokes the matching action and
commits the new flag only when the action reports success, so ``active``
always reflects the last successfully applied transition.

Locking: each toggle has its own lock, held for the whole
check-invoke-commit sequence, so concurrent requests for the same toggle are
serialised while different toggles proceed in parallel. A short store-wide
lock guards reads and writes of the flags themselves so snapshots are
consistent. The store does not push notifications; callers decide how to
surface a :class:`ToggleActionError`.
"""
from __future__ import annotations

import threading
from dataclasses import dataclass, replace
from typing import Dict, Iterable, List, Mapping, Tuple

from . import constants, logging_ext, scoring
from .actions import ActionError, ActionRegistry


class UnknownToggleError(KeyError):
    """!
    @brief Raised for names that are not registered in the store.
    """


class ToggleActionError(Exception):
    """!
    @brief Raised when the action behind a transition fails.
    @details The toggle keeps its previous state.
    """

    def __init__(self, name: str, error: ActionError, detail: str | None = None) -> None:
        self.name = name
        self.error = error
        self.detail = detail
        message = f"{name}: {error.value}"
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)


@dataclass(frozen=True)
class Toggle:
    """!
    @brief A named machine-state switch and its score weight.
    @details ``accent`` and the messages are display metadata the store passes
    through untouched.
    """

    name: str
    label: str
    weight: int
    accent: str = "blue"
    description: str = ""
    on_message: str = ""
    off_message: str = ""
    active: bool = False


def toggles_from_definitions(definitions: Iterable[Mapping[str, object]]) -> List[Toggle]:
    """!
    @brief Build inactive :class:`Toggle` records from definition mappings.
    """

    toggles: List[Toggle] = []
    for entry in definitions:
        name = str(entry["name"])
        toggles.append(
            Toggle(
                name=name,
                label=str(entry.get("label", name)),
                weight=int(entry.get("weight", 0)),  # type: ignore[arg-type]
                accent=str(entry.get("accent", "blue")),
                description=str(entry.get("description", "")),
                on_message=str(entry.get("on_message", "")),
                off_message=str(entry.get("off_message", "")),
            )
        )
    return toggles


class ToggleStateStore:
    """!
    @brief Current state of every toggle plus the transition operation.
    """

    def __init__(self, registry: ActionRegistry, toggles: Iterable[Toggle] | None = None) -> None:
        entries = list(toggles) if toggles is not None else toggles_from_definitions(constants.TOGGLE_DEFINITIONS)
        self._registry = registry
        self._toggles: Dict[str, Toggle] = {}
        for toggle in entries:
            if toggle.name in self._toggles:
                raise ValueError(f"duplicate toggle name: {toggle.name}")
            self._toggles[toggle.name] = toggle
        self._weights: Dict[str, int] = {name: toggle.weight for name, toggle in self._toggles.items()}
        self._state_lock = threading.Lock()
        self._toggle_locks: Dict[str, threading.Lock] = {name: threading.Lock() for name in self._toggles}

    @property
    def weights(self) -> Mapping[str, int]:
        return dict(self._weights)

    def names(self) -> List[str]:
        return list(self._toggles)

    def get(self, name: str) -> Toggle:
        with self._state_lock:
            try:
                return self._toggles[name]
            except KeyError:
                raise UnknownToggleError(name) from None

    def toggles(self) -> List[Toggle]:
        """!
        @brief Return every toggle in registration order.
        """

        with self._state_lock:
            return list(self._toggles.values())

    def snapshot(self) -> Dict[str, bool]:
        """!
        @brief Read-only copy of the ``name -> active`` mapping.
        """

        with self._state_lock:
            return {name: toggle.active for name, toggle in self._toggles.items()}

    def score(self) -> scoring.ScoreSnapshot:
        return scoring.compute(self.snapshot(), self._weights)

    def set_toggle(self, name: str, desired: bool) -> scoring.ScoreSnapshot:
        """!
        @brief Move ``name`` to ``desired``, invoking its action when the state differs.
        @details Requesting the current state is a no-op that does not touch the
        action registry.
        @returns The recomputed :class:`~game_booster.scoring.ScoreSnapshot`.
        @throws UnknownToggleError when ``name`` is not registered.
        @throws ToggleActionError when the action fails; state is unchanged.
        """

        return self.transition(name, desired)[1]

    def transition(self, name: str, desired: bool) -> Tuple[bool, scoring.ScoreSnapshot]:
        """!
        @brief Same as :meth:`set_toggle`, also reporting whether this call changed the state.
        @details The check and the action run under the toggle's lock, so of
        two concurrent identical requests exactly one reports a change.
        """

        lock = self._toggle_locks.get(name)
        if lock is None:
            raise UnknownToggleError(name)

        desired = bool(desired)
        machine_logger = logging_ext.get_machine_logger()

        with lock:
            current = self.get(name).active
            if current == desired:
                return False, self.score()

            outcome = self._registry.enable(name) if desired else self._registry.disable(name)
            if not outcome.ok:
                error = outcome.error or ActionError.UNKNOWN
                machine_logger.warning(
                    "toggle_failed",
                    extra=logging_ext.build_event_extra(
                        "toggle_failed", toggle=name, target=desired, error=error.value, detail=outcome.detail
                    ),
                )
                raise ToggleActionError(name, error, outcome.detail)

            with self._state_lock:
                self._toggles[name] = replace(self._toggles[name], active=desired)
            snapshot = self.score()

        machine_logger.info(
            "toggle_transition",
            extra=logging_ext.build_event_extra(
                "toggle_transition", toggle=name, active=desired, score=snapshot.score, grade=snapshot.grade.value
            ),
        )
        return True, snapshot


__all__ = [
    "Toggle",
    "ToggleActionError",
    "ToggleStateStore",
    "UnknownToggleError",
    "toggles_from_definitions",
]
