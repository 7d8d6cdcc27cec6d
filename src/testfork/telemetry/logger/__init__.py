#
# src/testfork/telemetry/logger/__init__.py
#
"""
structlog configuration for the parent and the forked process.
"""

from .base import BASE_LOGGER_NAME, StructLogger, setup_logging

__all__ = [
    "BASE_LOGGER_NAME",
    "StructLogger",
    "setup_logging",
]

# 🔼⚙️
