#
# config/loader.py
#
"""
Loads testfork configuration from a TOML file and the environment.
"""

import os
import tomllib
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import attrs
import structlog

from testfork.config.models import RunnerConfig, TestforkConfig
from testfork.exceptions import ConfigurationError
from testfork.model import IncludeExcludeList, TestParameters
from testfork.telemetry import StructLogger

log: StructLogger = structlog.get_logger("config.loader")

DEFAULT_CONFIG_PATH = Path("testfork.toml")

# Environment variables overriding [runner] keys.
RUNNER_ENV_VARS = {
    "python_executable": "TESTFORK_PYTHON",
    "working_dir": "TESTFORK_WORKING_DIR",
    "timeout": "TESTFORK_TIMEOUT",
}

_LIST_FIELDS = ("select_packages", "select_classes", "select_methods", "select_resources", "classpath_roots")
_FILTER_FIELDS = ("filter_class_name_patterns", "filter_packages", "filter_tags")


def _str_list(name: str, value: Any) -> list[str]:
    if isinstance(value, str) or not isinstance(value, list):
        raise ConfigurationError(f"'{name}' must be a list of strings, got {type(value).__name__}")
    return [str(item) for item in value]


def _include_exclude(name: str, value: Any) -> IncludeExcludeList:
    if not isinstance(value, Mapping):
        raise ConfigurationError(f"'{name}' must be a table with 'included' and/or 'excluded' lists")
    unknown = set(value) - {"included", "excluded"}
    if unknown:
        raise ConfigurationError(f"Unknown keys in '{name}': {sorted(unknown)}")
    return IncludeExcludeList(
        included=_str_list(f"{name}.included", value.get("included", [])),
        excluded=_str_list(f"{name}.excluded", value.get("excluded", [])),
    )


def parameters_from_table(table: Mapping[str, Any]) -> TestParameters:
    """Builds TestParameters from a ``[parameters]`` table."""
    known = {a.name for a in attrs.fields(TestParameters)}
    unknown = set(table) - known
    if unknown:
        raise ConfigurationError(f"Unknown keys in [parameters]: {sorted(unknown)}")

    kwargs: dict[str, Any] = {}
    for key, value in table.items():
        if key in _LIST_FIELDS:
            kwargs[key] = _str_list(key, value)
        elif key in _FILTER_FIELDS:
            kwargs[key] = _include_exclude(key, value)
        elif key == "configuration":
            if not isinstance(value, Mapping):
                raise ConfigurationError("'configuration' must be a table of strings")
            kwargs[key] = {str(k): str(v) for k, v in value.items()}
        else:
            kwargs[key] = value
    try:
        return TestParameters(**kwargs)
    except (AttributeError, TypeError, ValueError) as e:
        raise ConfigurationError("Invalid [parameters] table", details=e) from e


def _runner_from_table(table: Mapping[str, Any], env: Mapping[str, str]) -> RunnerConfig:
    values = dict(table)
    for key, env_var in RUNNER_ENV_VARS.items():
        if env.get(env_var):
            log.debug("Runner setting overridden from environment", key=key, env_var=env_var)
            values[key] = env[env_var]
    try:
        return RunnerConfig(**values)
    except (TypeError, ValueError) as e:
        raise ConfigurationError("Invalid [runner] table", details=e) from e


def load_config(path: Path | None = None, env: Mapping[str, str] | None = None) -> TestforkConfig:
    """
    Loads configuration, letting environment variables override the file.

    Args:
        path: TOML file with optional ``[runner]`` and ``[parameters]``
            tables. None loads defaults only.
        env: Environment to read overrides from, ``os.environ`` by default.

    Raises:
        ConfigurationError: if the file is missing, not valid TOML, or
            holds unknown or invalid values.
    """
    env = os.environ if env is None else env
    data: dict[str, Any] = {}
    if path is not None:
        log.debug("Loading configuration file", path=str(path))
        try:
            with path.open("rb") as f:
                data = tomllib.load(f)
        except FileNotFoundError as e:
            raise ConfigurationError(f"Config file not found: {path}", details=e) from e
        except tomllib.TOMLDecodeError as e:
            raise ConfigurationError(f"Invalid TOML in config file '{path}': {e}", details=e) from e

    unknown = set(data) - {"runner", "parameters"}
    if unknown:
        raise ConfigurationError(f"Unknown tables in config file: {sorted(unknown)}")

    config = TestforkConfig(
        runner=_runner_from_table(data.get("runner", {}), env),
        parameters=parameters_from_table(data.get("parameters", {})),
    )
    log.debug("Configuration loaded", runner=config.runner)
    return config


# 🔼⚙️
