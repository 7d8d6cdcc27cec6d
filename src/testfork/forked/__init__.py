#
# src/testfork/forked/__init__.py
#
"""
Code that runs inside the forked test process.
"""
from .launcher import ForkedChannel, launch
from .report_builder import MISSING_TEST_SOURCE, ReportBuilder
from .stacktrace import format_exception_chain

__all__ = [
    "MISSING_TEST_SOURCE",
    "ForkedChannel",
    "ReportBuilder",
    "format_exception_chain",
    "launch",
]

# 🔼⚙️
