#
# tests/unit/test_stacktrace.py
#
"""
Tests for stack trace filtering and exception chain rendering.
"""

from collections.abc import Sequence

from testfork.forked.stacktrace import (
    StackFrame,
    common_suffix_length,
    declaring_type_predicate,
    describe_exception,
    extract_frames,
    filter_frames,
    format_exception_chain,
)


def frame(owner: str, name: str, module: str = "app", lineno: int = 1) -> StackFrame:
    return StackFrame(module=module, qualname=f"{owner}.{name}", filename=f"{module}.py", lineno=lineno)


A_FOO = frame("A", "foo")
B_BAR = frame("B", "bar")
TEST_METHOD = frame("TestClass", "test_method")
RUNNER_INVOKE = frame("Runner", "invoke", module="engine")
RUNNER_RUN = frame("Runner", "run", module="engine")
STACK = [A_FOO, B_BAR, TEST_METHOD, RUNNER_INVOKE, RUNNER_RUN]


class FrameTable:
    """Frame extractor returning canned frames per exception."""

    def __init__(self):
        self._frames: dict[int, Sequence[StackFrame]] = {}

    def set(self, exc: BaseException, frames: Sequence[StackFrame]) -> BaseException:
        self._frames[id(exc)] = frames
        return exc

    def __call__(self, exc: BaseException) -> Sequence[StackFrame]:
        return self._frames.get(id(exc), [])


def _raise_inner() -> None:
    raise ValueError("boom")


class TestFilterFrames:
    """Outer and inner trimming."""

    def test_outer_frames_are_trimmed(self) -> None:
        belongs = declaring_type_predicate("app.TestClass")
        assert filter_frames(STACK, belongs) == [A_FOO, B_BAR, TEST_METHOD]

    def test_assertion_helpers_are_trimmed(self) -> None:
        helper = frame("TestCase", "assertEqual", module="unittest.case")
        belongs = declaring_type_predicate("app.TestClass")
        assert filter_frames([helper, *STACK[1:]], belongs) == [B_BAR, TEST_METHOD]

    def test_no_matching_frame_keeps_everything(self) -> None:
        belongs = declaring_type_predicate("app.Elsewhere")
        assert filter_frames(STACK, belongs) == STACK

    def test_plain_function_declared_by_module(self) -> None:
        function_frame = StackFrame(module="app.tests", qualname="test_free", filename="t.py", lineno=2)
        assert function_frame.declaring_type == "app.tests"
        assert filter_frames([function_frame, RUNNER_RUN], declaring_type_predicate("app.tests")) == [function_frame]


class TestFormatExceptionChain:
    """Rendering of causes, suppressed members and cycles."""

    def test_cause_shares_outer_frames(self) -> None:
        frames = FrameTable()
        shared = [frame("S", "one"), frame("S", "two"), frame("S", "three")]
        cause = frames.set(ValueError("inner"), [frame("C", "parse"), *shared])
        error = frames.set(RuntimeError("outer"), [frame("T", "test"), *shared])
        error.__cause__ = cause

        text = format_exception_chain(error, frames_of=frames)

        assert text.splitlines() == [
            "RuntimeError: outer",
            "\tat app.T.test(app.py:1)",
            "\tat app.S.one(app.py:1)",
            "\tat app.S.two(app.py:1)",
            "\tat app.S.three(app.py:1)",
            "Caused by: ValueError: inner",
            "\tat app.C.parse(app.py:1)",
            "\t... 3 more",
        ]

    def test_self_cause_renders_one_circular_marker(self) -> None:
        error = RuntimeError("loop")
        error.__cause__ = error

        text = format_exception_chain(error, frames_of=FrameTable())

        assert text.splitlines() == ["RuntimeError: loop", "\t[CIRCULAR REFERENCE: RuntimeError: loop]"]

    def test_indirect_cycle_terminates(self) -> None:
        first, second = RuntimeError("first"), KeyError("second")
        first.__cause__ = second
        second.__cause__ = first

        lines = format_exception_chain(first, frames_of=FrameTable()).splitlines()

        assert lines == [
            "RuntimeError: first",
            "Caused by: KeyError: 'second'",
            "\t[CIRCULAR REFERENCE: RuntimeError: first]",
        ]

    def test_group_members_are_suppressed(self) -> None:
        frames = FrameTable()
        member = frames.set(ValueError("a"), [frame("M", "check"), frame("T", "test")])
        group = frames.set(ExceptionGroup("several", [member]), [frame("T", "test")])

        lines = format_exception_chain(group, frames_of=frames).splitlines()

        assert lines == [
            "ExceptionGroup: several (1 sub-exception)",
            "\tat app.T.test(app.py:1)",
            "\tSuppressed: ValueError: a",
            "\t\tat app.M.check(app.py:1)",
            "\t\t... 1 more",
        ]

    def test_implicit_context_and_notes(self) -> None:
        error = RuntimeError("while cleaning up")
        error.__context__ = OSError("disk full")
        error.add_note("retry later")

        lines = format_exception_chain(error, frames_of=FrameTable()).splitlines()

        assert lines == ["RuntimeError: while cleaning up", "retry later", "While handling: OSError: disk full"]

    def test_suppressed_context_is_hidden(self) -> None:
        error = RuntimeError("clean")
        error.__context__ = OSError("noise")
        error.__suppress_context__ = True

        assert format_exception_chain(error, frames_of=FrameTable()) == "RuntimeError: clean"

    def test_nested_traces_are_not_filtered(self) -> None:
        frames = FrameTable()
        cause = frames.set(ValueError("inner"), [RUNNER_INVOKE, RUNNER_RUN])
        error = frames.set(RuntimeError("outer"), STACK)
        error.__cause__ = cause

        lines = format_exception_chain(error, declaring_type_predicate("app.TestClass"), frames_of=frames).splitlines()

        assert "\tat engine.Runner.invoke(engine.py:1)" in lines
        assert lines[1:4] == ["\tat app.A.foo(app.py:1)", "\tat app.B.bar(app.py:1)", "\tat app.TestClass.test_method(app.py:1)"]


class TestRealExceptions:
    """Frames taken from actually raised exceptions."""

    def test_extract_frames_innermost_first(self) -> None:
        try:
            _raise_inner()
        except ValueError as e:
            frames = extract_frames(e)

        assert frames[0].qualname == "_raise_inner"
        assert frames[1].qualname == "TestRealExceptions.test_extract_frames_innermost_first"
        assert frames[1].declaring_type == f"{__name__}.TestRealExceptions"
        assert len(frames) > 2

    def test_unraised_exception_has_no_frames(self) -> None:
        assert extract_frames(ValueError("never raised")) == []

    def test_filtering_keeps_test_code_only(self) -> None:
        try:
            _raise_inner()
        except ValueError as e:
            text = format_exception_chain(e, declaring_type_predicate(f"{__name__}.TestRealExceptions"))

        lines = text.splitlines()
        assert lines[0] == "ValueError: boom"
        assert lines[1].startswith(f"\tat {__name__}._raise_inner(")
        assert lines[2].startswith(f"\tat {__name__}.TestRealExceptions.test_filtering_keeps_test_code_only(")
        assert len(lines) == 3

    def test_common_suffix_of_chained_exceptions(self) -> None:
        try:
            try:
                _raise_inner()
            except ValueError as inner:
                raise RuntimeError("wrapped") from inner
        except RuntimeError as e:
            outer_frames = extract_frames(e)
            inner_frames = extract_frames(e.__cause__)

        # Everything above the test function is shared; the test frame itself sits on another line.
        assert common_suffix_length(inner_frames, outer_frames) == len(outer_frames) - 1


class TestDescribeException:
    def test_builtin_and_qualified_names(self) -> None:
        class LocalError(Exception):
            pass

        assert describe_exception(ValueError("x")) == "ValueError: x"
        assert describe_exception(ValueError()) == "ValueError"
        assert describe_exception(LocalError("y")) == (
            f"{__name__}.TestDescribeException.test_builtin_and_qualified_names.<locals>.LocalError: y"
        )
