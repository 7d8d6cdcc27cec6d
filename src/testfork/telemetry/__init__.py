#
# src/testfork/telemetry/__init__.py
#
"""
Logging sub-package for testfork.
"""

from .logger import StructLogger, setup_logging

__all__ = [
    "StructLogger",
    "setup_logging",
]

# 🔼⚙️
