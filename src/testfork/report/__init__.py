#
# src/testfork/report/__init__.py
#
"""
Presentation of test reports.
"""
from .printer import format_duration, print_report, render_report, render_summary

__all__ = [
    "format_duration",
    "print_report",
    "render_report",
    "render_summary",
]

# 🔼⚙️
