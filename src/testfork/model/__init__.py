#
# src/testfork/model/__init__.py
#
"""
Serializable parameter and report models exchanged with the forked process.
"""

from .data import ReportEntry, TestData, TestStatus
from .identifier import TestIdentifier
from .parameters import IncludeExcludeList, TestParameters
from .report import EXIT_CODE_FAILURE, EXIT_CODE_SUCCESS, ReportSummary, TestReport

__all__ = [
    "EXIT_CODE_FAILURE",
    "EXIT_CODE_SUCCESS",
    "IncludeExcludeList",
    "ReportEntry",
    "ReportSummary",
    "TestData",
    "TestIdentifier",
    "TestParameters",
    "TestReport",
    "TestStatus",
]

# 🔼⚙️
