#
# config/__init__.py
#
"""
Configuration handling sub-package for testfork.
"""

from .loader import DEFAULT_CONFIG_PATH, load_config, parameters_from_table
from .models import RunnerConfig, TestforkConfig

__all__ = [
    "DEFAULT_CONFIG_PATH",
    "RunnerConfig",
    "TestforkConfig",
    "load_config",
    "parameters_from_table",
]

# 🔼⚙️
