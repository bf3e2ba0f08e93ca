"""Equivalence Verifier — decides whether two runs are equivalent.

Compares a reference capsule against a candidate capsule and produces a
``Verdict``.  A candidate type may register a custom verification routine;
otherwise the default structural rule applies:

  - Both sides must agree on fault-vs-success status.
  - Both succeeded: receiver state and return value must be structurally
    equal, field by field (floats within a relative tolerance).
  - Both faulted: fault kinds must match.

Captured text is never compared.  It travels with the verdict as diagnostic
context only.

Pure Python. No third-party dependency.
"""

import logging
import math
from dataclasses import dataclass
from typing import Any, Optional

from difforacle.capsule import OutputCapsule
from difforacle.registry import CandidateSpec

logger = logging.getLogger(__name__)

# Verdict statuses
PASSED = "passed"
FAILED = "failed"
ABORTED = "aborted"
DISCARDED = "discarded"

DEFAULT_FLOAT_TOLERANCE = 1e-9

# Cap on differences listed in one description
_MAX_DIFFS = 10


# ── Exceptions ──


class VerificationFailure(AssertionError):
    """Raised by custom verifiers to report inequivalent runs.

    A normal, expected outcome rather than an infrastructure error.  Any
    ``AssertionError`` (including a bare ``assert``) is treated the same way.
    """


class VerifierError(Exception):
    """A custom verification routine crashed with a non-assertion error."""


# ── Data Classes ──


@dataclass
class Verdict:
    """Outcome of one trial.

    Attributes:
        status: "passed", "failed", "aborted", or "discarded".
        description: Human-readable diff for failures, or the abort reason.
        trial_index: Scheduler index of the trial (-1 if not from a trial).
        complexity: Complexity bound the trial ran at.
        reference: Reference capsule, when execution happened.
        candidate: Candidate capsule, when execution happened.
        args: Operation arguments given to the reference side.
        reference_generation_text: Text the reference generator printed.
        candidate_generation_text: Text the candidate generator printed.
    """

    status: str
    description: str = ""
    trial_index: int = -1
    complexity: int = 0
    reference: Optional[OutputCapsule] = None
    candidate: Optional[OutputCapsule] = None
    args: tuple = ()
    reference_generation_text: str = ""
    candidate_generation_text: str = ""

    @property
    def passed(self) -> bool:
        return self.status == PASSED

    @property
    def failed(self) -> bool:
        return self.status == FAILED

    @property
    def aborted(self) -> bool:
        """True for infrastructure failures (the harness broke)."""
        return self.status == ABORTED

    @property
    def discarded(self) -> bool:
        return self.status == DISCARDED


# ── Verifier ──


class EquivalenceVerifier:
    """Applies a type's custom verifier or the default structural rule.

    Args:
        float_tolerance: Relative tolerance for float comparison in the
            default rule.
    """

    def __init__(self, float_tolerance: float = DEFAULT_FLOAT_TOLERANCE) -> None:
        self.float_tolerance = float_tolerance

    def verify(
        self,
        spec: CandidateSpec,
        reference: OutputCapsule,
        candidate: OutputCapsule,
    ) -> Verdict:
        """Compare two capsules under ``spec``'s rule.

        Raises:
            VerifierError: If a custom routine raises a non-assertion error.
        """
        if reference.faulted != candidate.faulted and not (
            spec.verify is not None and spec.accepts_fault_mismatch
        ):
            return self._fail(reference, candidate, _describe_fault_mismatch(reference, candidate))

        if spec.verify is not None:
            return self._verify_custom(spec, reference, candidate)
        return self._verify_default(reference, candidate)

    def _verify_custom(
        self,
        spec: CandidateSpec,
        reference: OutputCapsule,
        candidate: OutputCapsule,
    ) -> Verdict:
        try:
            spec.verify(reference, candidate)
        except AssertionError as exc:
            message = str(exc) or f"Custom verifier for {spec.name} failed"
            return self._fail(reference, candidate, message)
        except Exception as exc:
            raise VerifierError(
                f"Custom verifier for {spec.name} raised "
                f"{type(exc).__name__}: {exc}"
            ) from exc
        return Verdict(status=PASSED, reference=reference, candidate=candidate)

    def _verify_default(self, reference: OutputCapsule, candidate: OutputCapsule) -> Verdict:
        if reference.faulted:
            if reference.fault.kind != candidate.fault.kind:
                return self._fail(
                    reference,
                    candidate,
                    f"Fault kinds differ: reference raised "
                    f"{reference.fault.describe()}, candidate raised "
                    f"{candidate.fault.describe()}",
                )
            return Verdict(status=PASSED, reference=reference, candidate=candidate)

        diffs = structural_diff(
            reference.receiver_state,
            candidate.receiver_state,
            path="state",
            rel_tol=self.float_tolerance,
        )
        diffs += structural_diff(
            reference.return_value,
            candidate.return_value,
            path="return",
            rel_tol=self.float_tolerance,
        )
        if diffs:
            return self._fail(reference, candidate, _format_diffs(diffs))
        return Verdict(status=PASSED, reference=reference, candidate=candidate)

    @staticmethod
    def _fail(reference: OutputCapsule, candidate: OutputCapsule, description: str) -> Verdict:
        return Verdict(
            status=FAILED,
            description=description,
            reference=reference,
            candidate=candidate,
        )


# ── Structural comparison ──


def structural_diff(
    expected: Any,
    actual: Any,
    path: str = "",
    rel_tol: float = DEFAULT_FLOAT_TOLERANCE,
) -> list[str]:
    """List every path where two structural values differ.

    Dicts are compared key by key, sequences element by element, floats with
    ``math.isclose`` (NaN equals NaN).  Everything else uses ``==``.
    """
    label = path or "value"

    if _is_number(expected) and _is_number(actual):
        if isinstance(expected, float) or isinstance(actual, float):
            if _floats_match(expected, actual, rel_tol):
                return []
        elif expected == actual:
            return []
        return [f"{label}: reference {expected!r} != candidate {actual!r}"]

    if isinstance(expected, dict) and isinstance(actual, dict):
        diffs: list[str] = []
        for key in _ordered_keys(expected, actual):
            child = f"{path}.{key}" if path else str(key)
            if key not in actual:
                diffs.append(f"{child}: missing in candidate (reference {expected[key]!r})")
            elif key not in expected:
                diffs.append(f"{child}: unexpected in candidate ({actual[key]!r})")
            else:
                diffs.extend(structural_diff(expected[key], actual[key], child, rel_tol))
        return diffs

    if isinstance(expected, (list, tuple)) and isinstance(actual, (list, tuple)):
        if type(expected) is not type(actual):
            return [
                f"{label}: reference {type(expected).__name__} != "
                f"candidate {type(actual).__name__}"
            ]
        if len(expected) != len(actual):
            return [
                f"{label}: reference length {len(expected)} != "
                f"candidate length {len(actual)}"
            ]
        diffs = []
        for i, (e, a) in enumerate(zip(expected, actual)):
            diffs.extend(structural_diff(e, a, f"{label}[{i}]", rel_tol))
        return diffs

    try:
        equal = bool(expected == actual)
    except Exception:
        equal = repr(expected) == repr(actual)
    if equal:
        return []
    return [f"{label}: reference {expected!r} != candidate {actual!r}"]


def expect_equal(expected: Any, actual: Any, label: str = "value") -> None:
    """Assertion helper for custom verifiers.

    Raises:
        VerificationFailure: Describing every differing path.
    """
    diffs = structural_diff(expected, actual, path=label)
    if diffs:
        raise VerificationFailure(_format_diffs(diffs))


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _floats_match(a: float, b: float, rel_tol: float) -> bool:
    if math.isnan(a) and math.isnan(b):
        return True
    return math.isclose(a, b, rel_tol=rel_tol)


def _ordered_keys(expected: dict, actual: dict) -> list:
    keys = list(expected)
    keys.extend(k for k in actual if k not in expected)
    return keys


def _format_diffs(diffs: list[str]) -> str:
    shown = diffs[:_MAX_DIFFS]
    text = "; ".join(shown)
    if len(diffs) > _MAX_DIFFS:
        text += f" (+{len(diffs) - _MAX_DIFFS} more)"
    return text


def _describe_fault_mismatch(reference: OutputCapsule, candidate: OutputCapsule) -> str:
    if reference.faulted:
        return (
            f"Reference raised {reference.fault.describe()} "
            f"but candidate {candidate.describe()}"
        )
    return (
        f"Candidate raised {candidate.fault.describe()} "
        f"but reference {reference.describe()}"
    )
