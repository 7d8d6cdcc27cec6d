# src/testfork/forked/stacktrace.py

"""
Renders failure exceptions into readable, de-noised stack trace text.

Frames are ordered innermost-first. For a raised exception they are the
frames of its traceback followed by the stack above the frame that caught
it, so that chained exceptions share a common outer stack which can be
folded into a single "... N more" line.
"""

import traceback
from collections.abc import Callable, Sequence
from types import FrameType

from attrs import define

# Frames of assertion library internals, trimmed from the innermost end.
ASSERTION_HELPER_PREFIXES = (
    "unittest.case",
    "_pytest.outcomes",
    "_pytest.python_api",
    "_pytest.raises",
)


@define(frozen=True, slots=True)
class StackFrame:
    """One call site of a stack trace."""

    module: str
    qualname: str
    filename: str
    lineno: int

    @property
    def declaring_type(self) -> str:
        """The class owning the function, or its module for plain functions."""
        owner, sep, _ = self.qualname.rpartition(".")
        return f"{self.module}.{owner}" if sep else self.module

    def __str__(self) -> str:
        return f"{self.module}.{self.qualname}({self.filename}:{self.lineno})"


FramePredicate = Callable[[StackFrame], bool]
FrameExtractor = Callable[[BaseException], Sequence[StackFrame]]


def _to_stack_frame(frame: FrameType, lineno: int | None) -> StackFrame:
    code = frame.f_code
    return StackFrame(
        module=frame.f_globals.get("__name__", "<unknown>"),
        qualname=code.co_qualname,
        filename=code.co_filename,
        lineno=lineno or 0,
    )


def extract_frames(exc: BaseException) -> list[StackFrame]:
    """Innermost-first frames of a raised exception; empty if it was never raised."""
    tb = exc.__traceback__
    if tb is None:
        return []
    frames = [_to_stack_frame(frame, lineno) for frame, lineno in traceback.walk_tb(tb)]
    frames.reverse()
    catching_frame = tb.tb_frame.f_back
    if catching_frame is not None:
        frames.extend(
            _to_stack_frame(frame, lineno) for frame, lineno in traceback.walk_stack(catching_frame)
        )
    return frames


def declaring_type_predicate(declaring_type: str) -> FramePredicate:
    """Membership predicate accepting frames declared by ``declaring_type``."""

    def belongs(frame: StackFrame) -> bool:
        return frame.declaring_type == declaring_type

    return belongs


def filter_frames(
    frames: Sequence[StackFrame],
    belongs: FramePredicate,
    assertion_prefixes: tuple[str, ...] = ASSERTION_HELPER_PREFIXES,
) -> list[StackFrame]:
    """
    Trims engine frames from the outer end and assertion helpers from the inner end.

    Outer frames are dropped until the outermost remaining one belongs to the
    test. If nothing belongs, the original frames are returned unchanged.
    """
    begin, end = 0, len(frames)
    while begin < end and not belongs(frames[end - 1]):
        end -= 1
    while begin < end and frames[begin].declaring_type.startswith(assertion_prefixes):
        begin += 1
    if begin >= end:
        return list(frames)
    return list(frames[begin:end])


def common_suffix_length(trace: Sequence[StackFrame], enclosing: Sequence[StackFrame]) -> int:
    """Number of outermost frames ``trace`` shares with ``enclosing``."""
    m = len(trace) - 1
    n = len(enclosing) - 1
    while m >= 0 and n >= 0 and trace[m] == enclosing[n]:
        m -= 1
        n -= 1
    return len(trace) - 1 - m


def describe_exception(exc: BaseException) -> str:
    """The header line of an exception: its qualified type and message."""
    cls = type(exc)
    name = cls.__qualname__ if cls.__module__ == "builtins" else f"{cls.__module__}.{cls.__qualname__}"
    try:
        message = str(exc)
    except Exception:
        message = "<exception str() failed>"
    return f"{name}: {message}" if message else name


def _cause_of(exc: BaseException) -> tuple[BaseException | None, str]:
    if exc.__cause__ is not None:
        return exc.__cause__, "Caused by: "
    if exc.__context__ is not None and not exc.__suppress_context__:
        return exc.__context__, "While handling: "
    return None, ""


def _suppressed_of(exc: BaseException) -> Sequence[BaseException]:
    if isinstance(exc, BaseExceptionGroup):
        return exc.exceptions
    return ()


class _ChainFormatter:
    """Walks one cause/suppressed graph; each exception is printed at most once."""

    def __init__(self, frames_of: FrameExtractor):
        self._frames_of = frames_of
        self._printed: set[int] = set()
        self.lines: list[str] = []

    def _header(self, exc: BaseException, prefix: str, caption: str) -> None:
        self.lines.append(f"{prefix}{caption}{describe_exception(exc)}")
        for note in getattr(exc, "__notes__", None) or ():
            self.lines.append(f"{prefix}{note}")

    def primary(self, exc: BaseException, belongs: FramePredicate | None) -> None:
        self._printed.add(id(exc))
        trace = list(self._frames_of(exc))
        if belongs is not None:
            trace = filter_frames(trace, belongs)

        self._header(exc, "", "")
        for frame in trace:
            self.lines.append(f"\tat {frame}")
        self._nested(exc, trace, "")

    def _nested(self, exc: BaseException, trace: Sequence[StackFrame], prefix: str) -> None:
        # Suppressed first, cause last.
        for member in _suppressed_of(exc):
            self._enclosed(member, trace, "Suppressed: ", prefix + "\t")
        cause, caption = _cause_of(exc)
        if cause is not None:
            self._enclosed(cause, trace, caption, prefix)

    def _enclosed(
        self,
        exc: BaseException,
        enclosing: Sequence[StackFrame],
        caption: str,
        prefix: str,
    ) -> None:
        if id(exc) in self._printed:
            self.lines.append(f"{prefix}\t[CIRCULAR REFERENCE: {describe_exception(exc)}]")
            return
        self._printed.add(id(exc))

        trace = list(self._frames_of(exc))
        shared = common_suffix_length(trace, enclosing)

        self._header(exc, prefix, caption)
        for frame in trace[: len(trace) - shared]:
            self.lines.append(f"{prefix}\tat {frame}")
        if shared:
            self.lines.append(f"{prefix}\t... {shared} more")
        self._nested(exc, trace, prefix)


def format_exception_chain(
    exc: BaseException,
    belongs: FramePredicate | None = None,
    frames_of: FrameExtractor = extract_frames,
) -> str:
    """
    Formats an exception with its suppressed members and causes.

    Args:
        exc: The failure to render.
        belongs: Frame membership predicate for the test's own code. When
            given, the primary exception's frames are trimmed with
            `filter_frames`; nested exceptions are always rendered whole.
        frames_of: Source of innermost-first frames for an exception.

    Returns:
        Multi-line text without trailing whitespace.
    """
    formatter = _ChainFormatter(frames_of)
    formatter.primary(exc, belongs)
    return "\n".join(formatter.lines).rstrip()


# 🔼⚙️
