# src/testfork/exceptions.py

"""
Exception hierarchy for testfork.
"""


class TestforkError(Exception):
    """Base class for all testfork errors."""

    __test__ = False

    def __init__(self, message: str, details: Exception | None = None):
        self.details = details
        super().__init__(message)
        if details is not None:
            self.add_note(f"Original error: {type(details).__name__}: {details}")


class ConfigurationError(TestforkError):
    """Invalid configuration file, option or engine name."""

    pass


# --- Protocol errors ---
class ProtocolError(TestforkError):
    """Base class for errors on the parent/child channel."""

    pass


class WireFormatError(ProtocolError):
    """Raised when a binary blob is truncated or carries impossible values."""

    pass


class WireEncodingError(ProtocolError):
    """Raised when a value cannot be represented on the wire."""

    pass


class ProtocolVersionError(ProtocolError):
    """Raised when the two ends speak different protocol revisions."""

    def __init__(self, expected: int, actual: int):
        self.expected = expected
        self.actual = actual
        super().__init__(f"Incompatible protocol version: expected {expected}, got {actual}")


class IncompletePayloadError(ProtocolError):
    """Raised when child output holds no complete delimited payload."""

    pass


# --- Execution errors ---
class EngineError(TestforkError):
    """Raised when the test engine fails during discovery or execution."""

    pass


class UnknownStatusError(TestforkError):
    """Raised when the engine reports a result status that has no mapping."""

    pass


# 🔼⚙️
