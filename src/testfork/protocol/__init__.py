#
# src/testfork/protocol/__init__.py
#
"""
Wire codec and stream framing for the parent/child channel.
"""

from .codec import MAX_UTF_LENGTH, WireReader, WireWriter
from .framing import (
    MAGIC_MESSAGE_DELIMITER_REPEAT,
    MAGIC_MESSAGE_END,
    MAGIC_MESSAGE_START,
    frame,
    unframe,
)

# Leading byte of every top-level blob.
PROTOCOL_VERSION = 1

__all__ = [
    "MAGIC_MESSAGE_DELIMITER_REPEAT",
    "MAGIC_MESSAGE_END",
    "MAGIC_MESSAGE_START",
    "MAX_UTF_LENGTH",
    "PROTOCOL_VERSION",
    "WireReader",
    "WireWriter",
    "frame",
    "unframe",
]

# 🔼⚙️
