"""!
@brief Action registry tests.
@details Validates outcome classification for command results and exceptions
and that :class:`game_booster.actions.ActionRegistry` never raises.
"""

from __future__ import annotations

import pathlib
import subprocess
import sys
from typing import Dict, List

import pytest

PROJECT_ROOT = pathlib.Path(__file__).resolve().parents[1]
SRC_PATH = PROJECT_ROOT / "src"
if str(SRC_PATH) not in sys.path:
    sys.path.insert(0, str(SRC_PATH))

from game_booster import actions, registry_tools  # noqa: E402
from game_booster.actions import Action, ActionError, ActionOutcome, ActionRegistry  # noqa: E402
from game_booster.exec_utils import CommandResult  # noqa: E402
from game_booster.toggle_store import Toggle, ToggleStateStore  # noqa: E402


class _StubLogger:
    """!
    @brief Logger stand-in capturing messages and ``extra`` payloads.
    """

    def __init__(self) -> None:
        self.records: List[tuple[str, str, Dict[str, object]]] = []

    def _record(self, level: str, message: str, args: tuple[object, ...], kwargs: Dict[str, object]) -> None:
        text = message % args if args else message
        self.records.append((level, text, dict(kwargs.get("extra") or {})))

    def debug(self, message: str, *args: object, **kwargs: object) -> None:
        self._record("debug", message, args, kwargs)

    def info(self, message: str, *args: object, **kwargs: object) -> None:
        self._record("info", message, args, kwargs)

    def warning(self, message: str, *args: object, **kwargs: object) -> None:
        self._record("warning", message, args, kwargs)

    def error(self, message: str, *args: object, **kwargs: object) -> None:
        self._record("error", message, args, kwargs)

    def exception(self, message: str, *args: object, **kwargs: object) -> None:
        self._record("exception", message, args, kwargs)


@pytest.fixture
def loggers(monkeypatch: pytest.MonkeyPatch) -> tuple[_StubLogger, _StubLogger]:
    human, machine = _StubLogger(), _StubLogger()
    monkeypatch.setattr(actions.logging_ext, "get_human_logger", lambda: human)
    monkeypatch.setattr(actions.logging_ext, "get_machine_logger", lambda: machine)
    return human, machine


def _result(returncode: int = 0, **kwargs: object) -> CommandResult:
    fields: Dict[str, object] = {"stdout": "", "stderr": "", "duration": 0.0}
    fields.update(kwargs)
    return CommandResult(command=["tool"], returncode=returncode, **fields)  # type: ignore[arg-type]


def test_outcome_from_command_classifies_results() -> None:
    assert actions.outcome_from_command(_result(0)).ok
    assert actions.outcome_from_command(_result(0, skipped=True)).detail == "dry-run"
    assert actions.outcome_from_command(_result(1, timed_out=True, error="timeout")).error is ActionError.TIMED_OUT
    assert actions.outcome_from_command(_result(127, error="missing")).error is ActionError.UNSUPPORTED
    assert actions.outcome_from_command(_result(5)).error is ActionError.PERMISSION_DENIED
    assert (
        actions.outcome_from_command(_result(1, stderr="Access is denied.")).error is ActionError.PERMISSION_DENIED
    )
    unknown = actions.outcome_from_command(_result(3, stderr="boom"))
    assert unknown.error is ActionError.UNKNOWN
    assert "boom" in (unknown.detail or "")


def test_outcome_from_command_accepts_allowed_codes() -> None:
    """!
    @brief Tools reporting "already in that state" should count as success.
    """

    assert actions.outcome_from_command(_result(1062), allowed_codes=(0, 1062)).ok
    assert not actions.outcome_from_command(_result(1062)).ok


@pytest.mark.parametrize(
    ("exc", "expected"),
    [
        (PermissionError("denied"), ActionError.PERMISSION_DENIED),
        (FileNotFoundError("gone"), ActionError.RESOURCE_UNAVAILABLE),
        (registry_tools.RegistryUnavailableError("no registry"), ActionError.UNSUPPORTED),
        (NotImplementedError(), ActionError.UNSUPPORTED),
        (subprocess.TimeoutExpired(["x"], 5), ActionError.TIMED_OUT),
        (RuntimeError("odd"), ActionError.UNKNOWN),
    ],
)
def test_outcome_from_exception(exc: BaseException, expected: ActionError) -> None:
    assert actions.outcome_from_exception(exc).error is expected


def test_registry_invokes_matching_side(loggers) -> None:  # type: ignore[no-untyped-def]
    calls: List[str] = []
    registry = ActionRegistry(
        [
            Action(
                "game_mode",
                enable=lambda: calls.append("on") or ActionOutcome.success(),
                disable=lambda: calls.append("off") or ActionOutcome.success(),
            )
        ]
    )

    assert registry.enable("game_mode").ok
    assert registry.disable("game_mode").ok
    assert calls == ["on", "off"]
    assert "game_mode" in registry
    assert len(registry) == 1
    assert registry.names() == ("game_mode",)

    _human, machine = loggers
    events = [extra.get("event") for _level, _text, extra in machine.records]
    assert events == ["action_result", "action_result"]


def test_registry_logs_outcome_lines(loggers) -> None:  # type: ignore[no-untyped-def]
    """!
    @brief Per-step lines reported by an action reach both log channels.
    """

    registry = ActionRegistry(
        [
            Action(
                "network_low_latency",
                enable=lambda: ActionOutcome.success(lines=["{nic-1}: tuned", "{nic-2}: tuned"]),
                disable=lambda: ActionOutcome.success(),
            )
        ]
    )
    store = ToggleStateStore(registry, [Toggle("network_low_latency", "Network", weight=7)])

    store.set_toggle("network_low_latency", True)

    human, machine = loggers
    texts = [text for level, text, _extra in human.records if level == "info"]
    assert texts == ["network_low_latency: {nic-1}: tuned", "network_low_latency: {nic-2}: tuned"]
    results = [extra for _level, _text, extra in machine.records if extra.get("event") == "action_result"]
    assert results[0]["lines"] == ["{nic-1}: tuned", "{nic-2}: tuned"]


def test_registry_unknown_name_is_unsupported(loggers) -> None:  # type: ignore[no-untyped-def]
    registry = ActionRegistry([])

    outcome = registry.enable("nope")

    assert outcome.error is ActionError.UNSUPPORTED


def test_registry_converts_exceptions(loggers) -> None:  # type: ignore[no-untyped-def]
    """!
    @brief Exceptions inside an action are logged and classified, never raised.
    """

    def _explode() -> ActionOutcome:
        raise PermissionError("Access is denied")

    registry = ActionRegistry([Action("superfetch_off", enable=_explode, disable=_explode)])

    outcome = registry.enable("superfetch_off")

    assert outcome.error is ActionError.PERMISSION_DENIED
    human, _machine = loggers
    assert any(level == "exception" for level, _text, _extra in human.records)


def test_registry_rejects_non_outcome_return(loggers) -> None:  # type: ignore[no-untyped-def]
    registry = ActionRegistry([Action("x", enable=lambda: None, disable=lambda: None)])  # type: ignore[arg-type,return-value]

    assert registry.disable("x").error is ActionError.UNKNOWN


def test_registry_rejects_duplicate_names() -> None:
    action = Action("dup", enable=ActionOutcome.success, disable=ActionOutcome.success)

    with pytest.raises(ValueError):
        ActionRegistry([action, action])
