"""!
@brief Action registry backing the toggles.
@details Each toggle name maps to an :class:`Action`: a pair of idempotent
callables that switch a machine feature on or off and report an
:class:`ActionOutcome`. The registry is fixed once built. It never lets an
exception escape to the caller; failures come back as a typed
:class:`ActionError` so the toggle store can keep its state consistent.
"""
from __future__ import annotations

import enum
import subprocess
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Callable, Iterable, Mapping, Tuple

from . import constants, logging_ext, registry_tools
from .exec_utils import MISSING_RETURN_CODE, CommandResult


class ActionError(str, enum.Enum):
    """!
    @brief Reasons an action can fail.
    """

    PERMISSION_DENIED = "PermissionDenied"
    RESOURCE_UNAVAILABLE = "ResourceUnavailable"
    UNSUPPORTED = "Unsupported"
    TIMED_OUT = "TimedOut"
    UNKNOWN = "Unknown"


@dataclass(frozen=True)
class ActionOutcome:
    """!
    @brief Result of invoking one side of an action.
    @details ``error`` is ``None`` on success. ``detail`` holds a short
    human-readable explanation; ``lines`` carries optional log lines the
    action wants surfaced.
    """

    error: ActionError | None = None
    detail: str | None = None
    lines: Tuple[str, ...] = field(default_factory=tuple)

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, detail: str | None = None, lines: Iterable[str] = ()) -> "ActionOutcome":
        return cls(error=None, detail=detail, lines=tuple(lines))

    @classmethod
    def failure(cls, error: ActionError, detail: str | None = None) -> "ActionOutcome":
        return cls(error=error, detail=detail)


ActionCallable = Callable[[], ActionOutcome]


@dataclass(frozen=True)
class Action:
    """!
    @brief Named pair of enable/disable callables.
    """

    name: str
    enable: ActionCallable
    disable: ActionCallable


def outcome_from_command(result: CommandResult, *, allowed_codes: Iterable[int] = (0,)) -> ActionOutcome:
    """!
    @brief Classify a :class:`CommandResult` into an :class:`ActionOutcome`.
    @param allowed_codes Exit codes treated as success, for tools that report
    "already in that state" with a non-zero code.
    """

    if result.skipped:
        return ActionOutcome.success("dry-run")
    if result.timed_out:
        return ActionOutcome.failure(ActionError.TIMED_OUT, f"{result.command[0]} timed out")
    if result.returncode == MISSING_RETURN_CODE:
        return ActionOutcome.failure(ActionError.UNSUPPORTED, f"{result.command[0]} is not available")
    if result.error is None and result.returncode in set(allowed_codes):
        return ActionOutcome.success()
    text = result.output.strip()
    if result.returncode == constants.ACCESS_DENIED or "access is denied" in text.lower():
        return ActionOutcome.failure(ActionError.PERMISSION_DENIED, text or "access is denied")
    reason = result.error or text or f"exit code {result.returncode}"
    return ActionOutcome.failure(ActionError.UNKNOWN, f"{result.command[0]}: {reason}")


def outcome_from_exception(exc: BaseException) -> ActionOutcome:
    """!
    @brief Classify an exception raised by OS glue into an :class:`ActionOutcome`.
    """

    if isinstance(exc, PermissionError):
        return ActionOutcome.failure(ActionError.PERMISSION_DENIED, str(exc))
    if isinstance(exc, FileNotFoundError):
        return ActionOutcome.failure(ActionError.RESOURCE_UNAVAILABLE, str(exc))
    if isinstance(exc, (registry_tools.RegistryUnavailableError, NotImplementedError)):
        return ActionOutcome.failure(ActionError.UNSUPPORTED, str(exc) or type(exc).__name__)
    if isinstance(exc, (TimeoutError, subprocess.TimeoutExpired)):
        return ActionOutcome.failure(ActionError.TIMED_OUT, str(exc))
    return ActionOutcome.failure(ActionError.UNKNOWN, f"{type(exc).__name__}: {exc}")


class ActionRegistry:
    """!
    @brief Static mapping from toggle name to :class:`Action`.
    """

    def __init__(self, actions: Iterable[Action]) -> None:
        table: dict[str, Action] = {}
        for action in actions:
            if action.name in table:
                raise ValueError(f"duplicate action name: {action.name}")
            table[action.name] = action
        self._actions: Mapping[str, Action] = MappingProxyType(table)

    def names(self) -> Tuple[str, ...]:
        return tuple(self._actions)

    def __contains__(self, name: object) -> bool:
        return name in self._actions

    def __len__(self) -> int:
        return len(self._actions)

    def enable(self, name: str) -> ActionOutcome:
        """!
        @brief Switch the feature behind ``name`` on.
        """

        return self._invoke(name, True)

    def disable(self, name: str) -> ActionOutcome:
        """!
        @brief Switch the feature behind ``name`` off.
        """

        return self._invoke(name, False)

    def _invoke(self, name: str, target: bool) -> ActionOutcome:
        human_logger = logging_ext.get_human_logger()
        machine_logger = logging_ext.get_machine_logger()

        action = self._actions.get(name)
        if action is None:
            outcome = ActionOutcome.failure(ActionError.UNSUPPORTED, f"no action registered for {name!r}")
        else:
            operation = action.enable if target else action.disable
            try:
                outcome = operation()
            except Exception as exc:
                human_logger.exception("Action %s (%s) raised", name, "enable" if target else "disable")
                outcome = outcome_from_exception(exc)
            else:
                if not isinstance(outcome, ActionOutcome):
                    outcome = ActionOutcome.failure(
                        ActionError.UNKNOWN, f"action returned {type(outcome).__name__}"
                    )

        machine_logger.info(
            "action_result",
            extra=logging_ext.build_event_extra(
                "action_result",
                action=name,
                target=target,
                ok=outcome.ok,
                error=outcome.error.value if outcome.error else None,
                detail=outcome.detail,
                lines=list(outcome.lines),
            ),
        )
        for line in outcome.lines:
            human_logger.info("%s: %s", name, line)
        if not outcome.ok:
            human_logger.warning(
                "Action %s failed (%s): %s",
                name,
                outcome.error.value if outcome.error else "?",
                outcome.detail or "no detail",
            )
        return outcome


__all__ = [
    "Action",
    "ActionError",
    "ActionOutcome",
    "ActionRegistry",
    "outcome_from_command",
    "outcome_from_exception",
]
