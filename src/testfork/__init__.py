#
# src/testfork/__init__.py
#
"""
testfork: run pytest test plans in a forked Python process and collect a
structured report over a framed binary channel.
"""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("testfork")
except PackageNotFoundError:
    __version__ = "0.0.0-dev"

# 🔼⚙️
