"""!
@brief Configuration loading and option precedence.
@details Options are resolved with the following precedence (highest first):

1. CLI arguments explicitly specified
2. JSON config file values (if ``--config`` provided)
3. Built-in defaults

JSON keys use hyphens (``command-timeout``) where the CLI uses underscores.
"""
from __future__ import annotations

import argparse
import json
import pathlib
from dataclasses import dataclass, field
from typing import Any, Mapping, Tuple

from . import constants

KNOWN_KEYS = frozenset(
    {
        "command-timeout",
        "notification-lifetime",
        "dry-run",
        "logdir",
        "json",
        "cleanup-locations",
    }
)

_LOCATION_STEPS = (
    constants.CLEANUP_STEP_TEMP,
    constants.CLEANUP_STEP_WINDOWS_TEMP,
    constants.CLEANUP_STEP_PREFETCH,
)


class ConfigError(ValueError):
    """!
    @brief Raised for unreadable or invalid configuration.
    """


@dataclass(frozen=True)
class BoosterSettings:
    """!
    @brief Resolved runtime settings.
    """

    command_timeout: float = constants.DEFAULT_COMMAND_TIMEOUT
    notification_lifetime: float = constants.DEFAULT_NOTIFICATION_LIFETIME
    dry_run: bool = False
    logdir: pathlib.Path | None = None
    json: bool = False
    cleanup_locations: Tuple[pathlib.Path, ...] = field(default_factory=tuple)

    def cleanup_location_overrides(self) -> dict[str, pathlib.Path]:
        """!
        @brief Map the configured locations onto the directory steps, in order.
        """

        return dict(zip(_LOCATION_STEPS, self.cleanup_locations))


def load_config_file(config_path: str | None) -> dict[str, object]:
    """!
    @brief Load and parse a JSON configuration file.
    @param config_path Path to the JSON config file, or None to skip.
    @returns Dictionary of configuration options, empty if no file specified.
    @throws ConfigError if the file cannot be read or parsed.
    """

    if not config_path:
        return {}

    path = pathlib.Path(config_path).expanduser().resolve()
    if not path.exists():
        raise ConfigError(f"Configuration file not found: {path}")

    try:
        with open(path, encoding="utf-8") as handle:
            config = json.load(handle)
    except json.JSONDecodeError as exc:
        raise ConfigError(f"Invalid JSON in configuration file: {path}\n{exc}") from exc
    except OSError as exc:
        raise ConfigError(f"Cannot read configuration file: {path}\n{exc}") from exc

    if not isinstance(config, dict):
        raise ConfigError(f"Configuration file must contain a JSON object: {path}")
    unknown = sorted(set(config) - KNOWN_KEYS)
    if unknown:
        raise ConfigError(f"Unknown configuration keys: {', '.join(unknown)}")
    return config


def _positive_float(value: Any, key: str) -> float:
    if isinstance(value, bool):
        raise ConfigError(f"{key} must be a number")
    try:
        parsed = float(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"{key} must be a number") from exc
    if parsed <= 0:
        raise ConfigError(f"{key} must be greater than zero")
    return parsed


def _flag(value: Any, key: str) -> bool:
    if not isinstance(value, bool):
        raise ConfigError(f"{key} must be true or false")
    return value


def _locations(value: Any) -> Tuple[pathlib.Path, ...]:
    if not isinstance(value, (list, tuple)) or not all(isinstance(item, str) for item in value):
        raise ConfigError("cleanup-locations must be a list of paths")
    if len(value) > len(_LOCATION_STEPS):
        raise ConfigError(f"cleanup-locations accepts at most {len(_LOCATION_STEPS)} entries")
    return tuple(pathlib.Path(item).expanduser() for item in value)


def resolve_settings(args: argparse.Namespace, config: Mapping[str, object] | None = None) -> BoosterSettings:
    """!
    @brief Combine CLI arguments, config file values and defaults.
    @param args Parsed command-line arguments.
    @param config Pre-loaded config mapping; loaded from ``args.config`` when omitted.
    """

    if config is None:
        config = load_config_file(getattr(args, "config", None))

    def _get(attr: str, default: object = None, config_key: str | None = None, is_bool: bool = False) -> object:
        cli_val = getattr(args, attr, None)
        cfg_key = config_key or attr.replace("_", "-")
        if is_bool:
            configured = _flag(config[cfg_key], cfg_key) if cfg_key in config else bool(default)
            return True if cli_val else configured
        if cli_val is not None:
            return cli_val
        if cfg_key in config:
            return config[cfg_key]
        return default

    logdir = _get("logdir", None)
    return BoosterSettings(
        command_timeout=_positive_float(
            _get("timeout", constants.DEFAULT_COMMAND_TIMEOUT, "command-timeout"), "command-timeout"
        ),
        notification_lifetime=_positive_float(
            _get("notification_lifetime", constants.DEFAULT_NOTIFICATION_LIFETIME), "notification-lifetime"
        ),
        dry_run=bool(_get("dry_run", False, is_bool=True)),
        logdir=pathlib.Path(str(logdir)).expanduser() if logdir else None,
        json=bool(_get("json", False, is_bool=True)),
        cleanup_locations=_locations(_get("cleanup_locations", [])),
    )


__all__ = [
    "BoosterSettings",
    "ConfigError",
    "KNOWN_KEYS",
    "load_config_file",
    "resolve_settings",
]
