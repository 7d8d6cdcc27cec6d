#
# config/models.py
#
"""
Attrs-based data models for testfork configuration structure.
"""

import logging
from pathlib import Path
from typing import Any

from attrs import define, field

from testfork.model import TestParameters


# --- Validators ---
def _validate_log_level(inst: Any, attr: Any, value: str) -> None:
    """Validator for standard logging level names."""
    valid = logging.getLevelNamesMapping().keys()
    if value.upper() not in valid:
        raise ValueError(f"Invalid log_level '{value}'. Must be one of {list(valid)}.")


def _validate_timeout(inst: Any, attr: Any, value: float | None) -> None:
    """Validator ensures the timeout is unset or positive."""
    if value is not None and value <= 0:
        raise ValueError(f"Field '{attr.name}' must be a positive number of seconds, got {value}")


def _optional_float(value: Any) -> float | None:
    return None if value is None else float(value)


@define(frozen=True, slots=True)
class RunnerConfig:
    """How the forked test process is started and supervised."""
    # Interpreter of the child process; None means the current one.
    python_executable: str | None = field(default=None)
    working_dir: Path = field(default=Path("."), converter=Path)
    # Seconds without child output before the child is killed.
    timeout: float | None = field(default=None, converter=_optional_float, validator=_validate_timeout)
    log_level: str = field(default="INFO", validator=_validate_log_level)

    @property
    def numeric_log_level(self) -> int:
        return logging.getLevelNamesMapping()[self.log_level.upper()]


@define(frozen=True, slots=True)
class TestforkConfig:
    """Root configuration object for the testfork application."""

    __test__ = False

    runner: RunnerConfig = field(factory=RunnerConfig)
    # Defaults for every run; command line selectors are added on top.
    parameters: TestParameters = field(factory=TestParameters)


# 🔼⚙️
