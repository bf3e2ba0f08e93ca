"""Output Capsule — the observable results of one execution.

A capsule bundles what a single run of the operation-under-test left behind:
the receiver's structural state after the call, the text it printed, the
value it returned, and the fault it raised (if any).  Capsules are created by
the Case Executor, consumed once by the Equivalence Verifier, and discarded.

Pure Python. No third-party dependency.
"""

import copy
import logging
import traceback
from dataclasses import dataclass
from typing import Any, Optional

logger = logging.getLogger(__name__)

# Truncation limit for stored tracebacks
_TRACEBACK_MAX = 4000

# Values the snapshot walks into rather than copying whole
_CONTAINERS = (dict, list, tuple, set, frozenset)


# ── Data Classes ──


@dataclass(frozen=True)
class ExecutionFault:
    """Descriptor for an exception raised by the operation-under-test.

    Execution faults are data, not control flow: the executor records them
    and the verifier compares them.

    Attributes:
        kind: Qualified exception class name (e.g. "builtins.ValueError").
        message: ``str()`` of the exception.
        traceback: Formatted traceback, truncated for storage.
    """

    kind: str
    message: str = ""
    traceback: str = ""

    @classmethod
    def from_exception(cls, exc: BaseException) -> "ExecutionFault":
        """Build a descriptor from a caught exception."""
        tb = "".join(
            traceback.format_exception(type(exc), exc, exc.__traceback__)
        )
        return cls(
            kind=fault_kind(exc),
            message=str(exc),
            traceback=tb[-_TRACEBACK_MAX:],
        )

    @property
    def short_kind(self) -> str:
        """Unqualified class name (e.g. "ValueError")."""
        return self.kind.rsplit(".", 1)[-1]

    def describe(self) -> str:
        if self.message:
            return f"{self.short_kind}: {self.message}"
        return self.short_kind


@dataclass
class OutputCapsule:
    """Captured result of one execution of the operation-under-test.

    Exactly one of ``receiver_state`` / ``fault`` is meaningful for
    comparison.  When a fault occurred, ``receiver_state`` still holds the
    partial state at the throw point but the default verifier ignores it.

    Attributes:
        receiver: The live instance the operation ran on.  Exposed so custom
            verifiers can call its accessors; never used by the default rule.
            Cleared on passing verdicts collected by ``run_trials``.
        receiver_state: Structural snapshot of the instance after the call.
        captured_text: Everything written to stdout during the call, in order.
        fault: Descriptor of the raised exception, or None on normal return.
        return_value: Value returned by the operation (None if it faulted).
        captured_err: Everything written to stderr during the call.
    """

    receiver: Any = None
    receiver_state: Any = None
    captured_text: str = ""
    fault: Optional[ExecutionFault] = None
    return_value: Any = None
    captured_err: str = ""

    @property
    def faulted(self) -> bool:
        """True if the operation raised."""
        return self.fault is not None

    def describe(self) -> str:
        """One-line summary used in verdict descriptions and reports."""
        if self.fault is not None:
            return f"raised {self.fault.describe()}"
        return f"returned {self.return_value!r} with state {self.receiver_state!r}"


# ── Helpers ──


def fault_kind(exc: BaseException) -> str:
    """Qualified class name used to compare faults across implementations."""
    cls = type(exc)
    return f"{cls.__module__}.{cls.__qualname__}"


def snapshot_state(instance: Any) -> Any:
    """Take a structural snapshot of an instance's observable state.

    Objects with a ``__dict__`` or ``__slots__`` are reduced to a dict of
    their attributes, keyed by a normalized name so that a reference and a
    candidate of different classes compare by shape rather than identity:
    ``_springs``, ``__springs`` (mangled) and ``springs`` all become
    ``springs``.  The reduction recurses through attribute values and
    through dicts, lists, tuples and sets, so nested objects are compared
    field by field as well.  Anything else is deep-copied as a plain value.
    The snapshot never aliases the instance.
    """
    return _reduce(instance, set())


def _reduce(value: Any, active: set) -> Any:
    """Structural copy of ``value``; ``active`` holds ids on the current path."""
    fields = None
    if not isinstance(value, _CONTAINERS):
        fields = _state_fields(value)
        if fields is None:
            return copy_state(value)

    marker = id(value)
    if marker in active:
        return f"<cycle {type(value).__qualname__}>"
    active.add(marker)
    try:
        if fields is not None:
            return {name: _reduce(item, active) for name, item in fields.items()}
        return _reduce_container(value, active)
    finally:
        active.discard(marker)


def _reduce_container(value: Any, active: set) -> Any:
    if isinstance(value, dict):
        return {key: _reduce(item, active) for key, item in value.items()}
    if isinstance(value, list):
        return [_reduce(item, active) for item in value]
    if isinstance(value, tuple):
        return tuple(_reduce(item, active) for item in value)
    items = [_reduce(item, active) for item in value]
    try:
        return frozenset(items) if isinstance(value, frozenset) else set(items)
    except TypeError:
        # Reduced objects are dicts and unhashable
        return sorted(items, key=repr)


def normalize_field_name(owner: type, name: str) -> str:
    """Strip privacy prefixes and name mangling from an attribute name."""
    for klass in owner.__mro__:
        mangled = f"_{klass.__name__.lstrip('_')}__"
        if name.startswith(mangled):
            name = name[len(mangled):]
            break
    return name.lstrip("_") or name


def _state_fields(instance: Any) -> Optional[dict]:
    """Attributes of a class instance, or None for plain values."""
    owner = type(instance)
    if isinstance(instance, type) or owner.__module__ == "builtins":
        return None

    raw: dict = {}
    found = False
    for klass in owner.__mro__:
        slots = klass.__dict__.get("__slots__", ())
        if isinstance(slots, str):
            slots = (slots,)
        for name in slots:
            found = True
            if name in ("__dict__", "__weakref__") or name in raw:
                continue
            if hasattr(instance, name):
                raw[name] = getattr(instance, name)

    instance_dict = getattr(instance, "__dict__", None)
    if isinstance(instance_dict, dict):
        found = True
        raw.update(instance_dict)

    if not found:
        return None

    fields: dict = {}
    for name, value in raw.items():
        if name.startswith("__") and name.endswith("__"):
            continue
        fields[normalize_field_name(owner, name)] = value
    return dict(sorted(fields.items()))


def copy_state(value: Any) -> Any:
    """Deep copy a state value, falling back to repr() for uncopyable ones."""
    try:
        return copy.deepcopy(value)
    except Exception as exc:
        logger.debug("Snapshot fell back to repr() for %s: %s", type(value).__name__, exc)
        return repr(value)
