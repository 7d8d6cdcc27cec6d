# src/testfork/protocol/framing.py

"""
Delimits the report payload inside the child's stdout.

Instrumentation agents, interpreter warnings or stray prints may write to
the same stream, so the payload is wrapped in long runs of unusual bytes
that a reader can scan for.
"""

from testfork.exceptions import IncompletePayloadError

MAGIC_MESSAGE_START = 14  # ASCII Shift Out
MAGIC_MESSAGE_END = 15  # ASCII Shift In

# A start or end run must be at least this long to count as a delimiter.
MAGIC_MESSAGE_DELIMITER_REPEAT = 10

_START_RUN = bytes((MAGIC_MESSAGE_START,)) * MAGIC_MESSAGE_DELIMITER_REPEAT
_END_RUN = bytes((MAGIC_MESSAGE_END,)) * MAGIC_MESSAGE_DELIMITER_REPEAT


def frame(payload: bytes) -> bytes:
    """Wraps the payload in start and end delimiter runs."""
    return _START_RUN + payload + _END_RUN


def _run_end(data: bytes, start: int, marker: int) -> int:
    end = start
    while end < len(data) and data[end] == marker:
        end += 1
    return end


def unframe(data: bytes) -> bytes:
    """
    Extracts the payload from output that may contain noise around it.

    The payload starts after the first run of at least ten start bytes and
    ends at the first following run of at least ten end bytes. The writer
    emits exactly ten end bytes, so when that run is longer the leading
    surplus is payload that happens to end with end-marker values.

    Raises:
        IncompletePayloadError: if either delimiter run is missing.
    """
    start_run = data.find(_START_RUN)
    if start_run < 0:
        raise IncompletePayloadError("No payload start delimiter in output")
    payload_start = _run_end(data, start_run, MAGIC_MESSAGE_START)

    end_run = data.find(_END_RUN, payload_start)
    if end_run < 0:
        raise IncompletePayloadError("Payload start found, but no end delimiter follows it")
    end_run_end = _run_end(data, end_run, MAGIC_MESSAGE_END)
    payload_end = end_run_end - MAGIC_MESSAGE_DELIMITER_REPEAT
    return data[payload_start:payload_end]


# 🔼⚙️
