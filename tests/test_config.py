"""!
@brief Configuration loading tests.
@details Checks JSON parsing, validation and the CLI > config > defaults
precedence implemented in :mod:`game_booster.config`.
"""

from __future__ import annotations

import json
import pathlib
import sys

import pytest

PROJECT_ROOT = pathlib.Path(__file__).resolve().parents[1]
SRC_PATH = PROJECT_ROOT / "src"
if str(SRC_PATH) not in sys.path:
    sys.path.insert(0, str(SRC_PATH))

from game_booster import config, constants, main  # noqa: E402


def _write(tmp_path: pathlib.Path, payload: object) -> str:
    path = tmp_path / "booster.json"
    path.write_text(json.dumps(payload), encoding="utf-8")
    return str(path)


def _args(*argv: str):  # type: ignore[no-untyped-def]
    return main.build_arg_parser().parse_args(list(argv))


def test_load_config_file_without_path_is_empty() -> None:
    assert config.load_config_file(None) == {}


def test_load_config_file_errors(tmp_path) -> None:
    with pytest.raises(config.ConfigError, match="not found"):
        config.load_config_file(str(tmp_path / "missing.json"))

    broken = tmp_path / "broken.json"
    broken.write_text("{not json", encoding="utf-8")
    with pytest.raises(config.ConfigError, match="Invalid JSON"):
        config.load_config_file(str(broken))

    with pytest.raises(config.ConfigError, match="JSON object"):
        config.load_config_file(_write(tmp_path, [1, 2]))

    with pytest.raises(config.ConfigError, match="Unknown configuration keys: turbo"):
        config.load_config_file(_write(tmp_path, {"turbo": True}))


def test_defaults_without_cli_or_config() -> None:
    settings = config.resolve_settings(_args())

    assert settings == config.BoosterSettings()
    assert settings.command_timeout == constants.DEFAULT_COMMAND_TIMEOUT
    assert settings.notification_lifetime == constants.DEFAULT_NOTIFICATION_LIFETIME
    assert settings.cleanup_location_overrides() == {}


def test_config_values_apply_when_cli_is_silent(tmp_path) -> None:
    path = _write(
        tmp_path,
        {
            "command-timeout": 9,
            "notification-lifetime": 1.5,
            "dry-run": True,
            "logdir": str(tmp_path / "logs"),
            "json": True,
            "cleanup-locations": [str(tmp_path / "t"), str(tmp_path / "w")],
        },
    )

    settings = config.resolve_settings(_args("--config", path))

    assert settings.command_timeout == 9.0
    assert settings.notification_lifetime == 1.5
    assert settings.dry_run is True
    assert settings.logdir == tmp_path / "logs"
    assert settings.json is True
    assert settings.cleanup_location_overrides() == {
        constants.CLEANUP_STEP_TEMP: tmp_path / "t",
        constants.CLEANUP_STEP_WINDOWS_TEMP: tmp_path / "w",
    }


def test_cli_overrides_config(tmp_path) -> None:
    path = _write(tmp_path, {"command-timeout": 9, "logdir": "/from/config"})

    settings = config.resolve_settings(
        _args("--config", path, "--timeout", "2.5", "--logdir", str(tmp_path), "--dry-run")
    )

    assert settings.command_timeout == 2.5
    assert settings.logdir == tmp_path
    assert settings.dry_run is True


@pytest.mark.parametrize(
    "payload",
    [
        {"command-timeout": 0},
        {"command-timeout": "fast"},
        {"notification-lifetime": -1},
        {"notification-lifetime": True},
        {"cleanup-locations": "C:/Temp"},
        {"cleanup-locations": ["a", "b", "c", "d"]},
        {"dry-run": "false"},
        {"json": 1},
    ],
)
def test_invalid_values_raise(tmp_path, payload) -> None:  # type: ignore[no-untyped-def]
    with pytest.raises(config.ConfigError):
        config.resolve_settings(_args(), payload)


def test_string_flag_is_rejected_even_with_cli_flag() -> None:
    with pytest.raises(config.ConfigError, match="dry-run must be true or false"):
        config.resolve_settings(_args("--dry-run"), {"dry-run": "false"})
