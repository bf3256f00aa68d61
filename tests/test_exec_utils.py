"""!
@brief Exec utils behaviour tests.
@details Validates environment sanitisation, dry-run flows, timeouts and
subprocess logging behaviour for :mod:`game_booster.exec_utils`.
"""

from __future__ import annotations

import subprocess
import sys
from pathlib import Path
from types import SimpleNamespace
from typing import Dict, List

import pytest

PROJECT_ROOT = Path(__file__).resolve().parents[1]
SRC_PATH = PROJECT_ROOT / "src"
if str(SRC_PATH) not in sys.path:
    sys.path.insert(0, str(SRC_PATH))

from game_booster import constants, exec_utils  # noqa: E402


class _StubLogger:
    """!
    @brief Lightweight logger capturing structured log calls.
    """

    def __init__(self) -> None:
        self.records: List[tuple[str, str, Dict[str, object]]] = []

    def _record(self, level: str, message: str, args: tuple[object, ...], kwargs: Dict[str, object]) -> None:
        text = message % args if args else message
        self.records.append((level, text, dict(kwargs)))

    def info(self, message: str, *args: object, **kwargs: object) -> None:  # noqa: D401 - logging compatibility
        self._record("info", message, args, kwargs)

    def warning(self, message: str, *args: object, **kwargs: object) -> None:  # noqa: D401 - logging compatibility
        self._record("warning", message, args, kwargs)

    def error(self, message: str, *args: object, **kwargs: object) -> None:  # noqa: D401 - logging compatibility
        self._record("error", message, args, kwargs)


@pytest.fixture
def loggers(monkeypatch: pytest.MonkeyPatch) -> tuple[_StubLogger, _StubLogger]:
    human_logger = _StubLogger()
    machine_logger = _StubLogger()
    monkeypatch.setattr(exec_utils.logging_ext, "get_human_logger", lambda: human_logger)
    monkeypatch.setattr(exec_utils.logging_ext, "get_machine_logger", lambda: machine_logger)
    return human_logger, machine_logger


@pytest.fixture(autouse=True)
def _restore_timeout():  # type: ignore[no-untyped-def]
    yield
    exec_utils.set_default_timeout(None)


def test_sanitize_environment_strips_blocklist_and_overrides() -> None:
    """!
    @brief Ensure sanitisation removes Python-specific variables and applies overrides.
    """

    base_env = {"PYTHONPATH": "should_remove", "VIRTUAL_ENV": "venv", "LANG": "C"}

    sanitized = exec_utils.sanitize_environment(base_env=base_env, overrides={"NEW": "value"})

    assert "PYTHONPATH" not in sanitized
    assert "VIRTUAL_ENV" not in sanitized
    assert sanitized["LANG"] == "C"
    assert sanitized["NEW"] == "value"


def test_run_command_dry_run_logs_without_invocation(monkeypatch, loggers) -> None:  # type: ignore[no-untyped-def]
    """!
    @brief Dry-run execution should skip subprocess invocation while logging intent.
    """

    human_logger, machine_logger = loggers

    def fake_run(*args: object, **kwargs: object) -> None:  # pragma: no cover - should not be called
        raise AssertionError("subprocess.run should not be invoked in dry-run mode")

    monkeypatch.setattr(exec_utils.subprocess, "run", fake_run)

    result = exec_utils.run_command(["powercfg", "/setactive", "guid"], event="power_plan", dry_run=True)

    assert result.skipped is True
    assert result.returncode == 0
    assert result.ok
    assert machine_logger.records[0][1] == "power_plan_plan"
    assert machine_logger.records[0][2]["extra"]["command"] == ["powercfg", "/setactive", "guid"]
    assert machine_logger.records[0][2]["extra"]["dry_run"] is True
    assert "Dry-run" in human_logger.records[0][1]


def test_run_command_executes_with_sanitized_environment(monkeypatch, loggers) -> None:  # type: ignore[no-untyped-def]
    _human_logger, machine_logger = loggers
    captured: Dict[str, object] = {}

    def fake_run(command, *, capture_output, text, timeout, check, env):  # type: ignore[no-untyped-def]
        captured["env"] = dict(env)
        captured["timeout"] = timeout
        return SimpleNamespace(returncode=0, stdout="ok", stderr="")

    monkeypatch.setattr(exec_utils.subprocess, "run", fake_run)

    result = exec_utils.run_command(["cmd"], event="sanity", env={"PYTHONPATH": "value", "KEEP": "1"})

    assert result.stdout == "ok"
    assert result.ok
    assert "PYTHONPATH" not in captured["env"]  # type: ignore[operator]
    assert captured["env"]["KEEP"] == "1"  # type: ignore[index]
    assert captured["timeout"] == constants.DEFAULT_COMMAND_TIMEOUT
    assert machine_logger.records[-1][1] == "sanity_result"
    assert machine_logger.records[-1][2]["extra"]["return_code"] == 0


def test_run_command_nonzero_exit_warns(monkeypatch, loggers) -> None:  # type: ignore[no-untyped-def]
    human_logger, machine_logger = loggers

    monkeypatch.setattr(
        exec_utils.subprocess, "run", lambda *a, **k: SimpleNamespace(returncode=5, stdout="", stderr="boom")
    )

    result = exec_utils.run_command(["sc", "stop", "SysMain"], event="service_stop")

    assert result.returncode == 5
    assert not result.ok
    assert result.output == "boom"
    assert machine_logger.records[-1][2]["extra"]["return_code"] == 5
    warning_messages = [record for record in human_logger.records if record[0] == "warning"]
    assert warning_messages and "exited with" in warning_messages[0][1]


def test_run_command_timeout_is_reported(monkeypatch, loggers) -> None:  # type: ignore[no-untyped-def]
    """!
    @brief Commands exceeding the timeout come back as ``timed_out`` results.
    """

    _human_logger, machine_logger = loggers

    def fake_run(command, **kwargs):  # type: ignore[no-untyped-def]
        raise subprocess.TimeoutExpired(command, kwargs["timeout"], output=b"partial")

    monkeypatch.setattr(exec_utils.subprocess, "run", fake_run)
    exec_utils.set_default_timeout(2.5)

    result = exec_utils.run_command(["bcdedit"], event="platform_tick")

    assert result.timed_out
    assert result.error == "timeout"
    assert result.stdout == "partial"
    assert machine_logger.records[-1][1] == "platform_tick_timeout"
    assert machine_logger.records[-1][2]["extra"]["timeout"] == 2.5


def test_run_command_missing_binary(monkeypatch, loggers) -> None:  # type: ignore[no-untyped-def]
    def fake_run(command, **kwargs):  # type: ignore[no-untyped-def]
        raise FileNotFoundError(command[0])

    monkeypatch.setattr(exec_utils.subprocess, "run", fake_run)

    result = exec_utils.run_command(["netsh"], event="tcp_autotuning")

    assert result.returncode == exec_utils.MISSING_RETURN_CODE
    assert loggers[1].records[-1][1] == "tcp_autotuning_missing"


def test_set_default_timeout_rejects_invalid_values() -> None:
    exec_utils.set_default_timeout(12)
    assert exec_utils.get_default_timeout() == 12.0

    exec_utils.set_default_timeout(-1)
    assert exec_utils.get_default_timeout() == constants.DEFAULT_COMMAND_TIMEOUT

    exec_utils.set_default_timeout("soon")  # type: ignore[arg-type]
    assert exec_utils.get_default_timeout() == constants.DEFAULT_COMMAND_TIMEOUT


def test_spawn_process_returns_pid(monkeypatch, loggers) -> None:  # type: ignore[no-untyped-def]
    captured: Dict[str, object] = {}

    def fake_popen(command, **kwargs):  # type: ignore[no-untyped-def]
        captured.update(kwargs)
        return SimpleNamespace(pid=999)

    monkeypatch.setattr(exec_utils.subprocess, "Popen", fake_popen)

    result = exec_utils.spawn_process(["game.exe"], event="game_launch", cwd="/games")

    assert result.ok
    assert result.pid == 999
    assert captured["cwd"] == "/games"
    assert loggers[1].records[-1][1] == "game_launch_started"


def test_spawn_process_missing_program(monkeypatch, loggers) -> None:  # type: ignore[no-untyped-def]
    def fake_popen(command, **kwargs):  # type: ignore[no-untyped-def]
        raise FileNotFoundError(command[0])

    monkeypatch.setattr(exec_utils.subprocess, "Popen", fake_popen)

    result = exec_utils.spawn_process(["missing.exe"], event="game_launch")

    assert result.returncode == exec_utils.MISSING_RETURN_CODE
    assert result.pid is None
