"""Tests for the Case Executor."""

import sys

import pytest

from difforacle.executor import CaseExecutor, ExecutorError
from difforacle.registry import bind_spec

from widgets import Divider, Holder, Widget


# ── Fixtures ──


class Chatty:
    """Operation delegates through nested calls that each print."""

    def __init__(self):
        self.log = []

    def first(self):
        print("A", end="")
        self.log.append("first")

    def second(self):
        def deeper():
            print("B", end="")
        deeper()
        self.log.append("second")

    def run(self):
        self.first()
        self.second()
        return len(self.log)


@pytest.fixture
def executor():
    return CaseExecutor()


def _spec(target, operate, **roles):
    return bind_spec(target, generate=lambda c, r: target(), operate=operate, **roles)


# ── Normal return ──


class TestExecuteSuccess:
    def test_invokes_operation_once(self, executor):
        calls = []

        def operate(instance, *args, **kwargs):
            calls.append((instance, args, kwargs))
            return "done"

        widget = Widget(1)
        capsule = executor.execute(_spec(Widget, operate), widget, args=(1, 2), kwargs={"k": 3})
        assert calls == [(widget, (1, 2), {"k": 3})]
        assert capsule.return_value == "done"

    def test_snapshots_receiver(self, executor):
        widget = Widget(5)
        capsule = executor.execute(_spec(Widget, "more_springs"), widget, args=(4,))
        assert capsule.receiver is widget
        assert capsule.receiver_state == {"springs": 10}
        assert capsule.fault is None

    def test_snapshot_is_structural_copy(self, executor):
        widget = Widget(5)
        capsule = executor.execute(_spec(Widget, "more_springs"), widget, args=(0,))
        widget.more_springs(100)
        assert capsule.receiver_state == {"springs": 6}

    def test_capture_ordering_across_nesting(self, executor):
        capsule = executor.execute(_spec(Chatty, "run"), Chatty())
        assert capsule.captured_text == "AB"
        assert capsule.return_value == 2

    def test_captures_stderr(self, executor):
        def operate(instance):
            print("warn", file=sys.stderr, end="")

        capsule = executor.execute(_spec(Widget, operate), Widget(0))
        assert capsule.captured_err == "warn"
        assert capsule.captured_text == ""

    def test_custom_snapshot(self, executor):
        spec = _spec(Widget, "more_springs", snapshot=lambda w: {"total": w.springs})
        capsule = executor.execute(spec, Widget(1), args=(1,))
        assert capsule.receiver_state == {"total": 3}

    def test_custom_snapshot_objects_are_reduced(self, executor):
        spec = _spec(Holder, "stretch", snapshot=lambda h: h.spring)
        capsule = executor.execute(spec, Holder(2))
        assert capsule.receiver_state == {"k": 3}

    def test_nested_receiver_state(self, executor):
        capsule = executor.execute(_spec(Holder, "stretch"), Holder(2))
        assert capsule.receiver_state == {
            "spares": [{"k": 2}, {"k": 3}],
            "spring": {"k": 3},
        }

    def test_failing_custom_snapshot(self, executor):
        def broken(instance):
            raise RuntimeError("no state")

        spec = _spec(Widget, "more_springs", snapshot=broken)
        with pytest.raises(ExecutorError, match="no state"):
            executor.execute(spec, Widget(1), args=(1,))


# ── Faults ──


class TestExecuteFault:
    def test_fault_is_captured_not_raised(self, executor):
        capsule = executor.execute(_spec(Divider, "divide"), Divider(6), args=(0,))
        assert capsule.faulted
        assert capsule.fault.kind == "builtins.ZeroDivisionError"
        assert capsule.return_value is None

    def test_text_up_to_fault_is_kept(self, executor):
        def operate(instance):
            print("before", end="")
            raise ValueError("halfway")

        capsule = executor.execute(_spec(Widget, operate), Widget(0))
        assert capsule.captured_text == "before"
        assert capsule.fault.message == "halfway"

    def test_partial_state_is_snapshotted(self, executor):
        def operate(instance):
            instance.more_springs(1)
            raise ValueError("after mutation")

        capsule = executor.execute(_spec(Widget, operate), Widget(0))
        assert capsule.receiver_state == {"springs": 2}

    def test_failing_snapshot_after_fault_drops_state(self, executor):
        def snapshot(instance):
            raise RuntimeError("partial state unreadable")

        spec = _spec(Divider, "divide", snapshot=snapshot)
        capsule = executor.execute(spec, Divider(6), args=(0,))
        assert capsule.fault.kind == "builtins.ZeroDivisionError"
        assert capsule.receiver_state is None

    def test_keyboard_interrupt_propagates(self, executor):
        def operate(instance):
            raise KeyboardInterrupt

        with pytest.raises(KeyboardInterrupt):
            executor.execute(_spec(Widget, operate), Widget(0))
