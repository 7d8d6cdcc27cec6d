#
# src/testfork/cli/__init__.py
#
"""
Command line interface of testfork.
"""
from .main import cli

__all__ = ["cli"]

# 🔼⚙️
