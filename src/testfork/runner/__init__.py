#
# src/testfork/runner/__init__.py
#
"""
Runs test plans in a separate Python process.
"""
from .protocols import ForkedRunResult, TestRunner
from .subprocess_runner import ForkedTestRunner

__all__ = [
    "ForkedRunResult",
    "ForkedTestRunner",
    "TestRunner",
]

# 🔼⚙️
