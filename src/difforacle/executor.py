"""Case Executor — runs the operation-under-test and captures its results.

Invokes a candidate type's designated operation exactly once on a generated
instance and packs everything observable into an ``OutputCapsule``: the
printed text (in emission order, including nested delegation), the return
value, a structural snapshot of the receiver, and any raised fault.

Execution faults are data.  They are recorded in the capsule and never
re-raised, so a candidate that correctly faults can still match a reference
that faults the same way.

Pure Python. No third-party dependency.
"""

import logging
from typing import Any, Optional

from difforacle.capsule import ExecutionFault, OutputCapsule, snapshot_state
from difforacle.capture import OutputCapturer
from difforacle.registry import CandidateSpec

logger = logging.getLogger(__name__)


class ExecutorError(Exception):
    """Base exception for case executor errors."""


class CaseExecutor:
    """Executes one operation call per capsule.

    Usage::

        executor = CaseExecutor()
        capsule = executor.execute(spec, instance, args=(4,))

    Args:
        capturer: Output capturer shared with the resolver.
    """

    def __init__(self, capturer: Optional[OutputCapturer] = None) -> None:
        self.capturer = capturer or OutputCapturer()

    def execute(
        self,
        spec: CandidateSpec,
        instance: Any,
        args: tuple = (),
        kwargs: Optional[dict] = None,
    ) -> OutputCapsule:
        """Invoke ``spec.operate(instance, *args, **kwargs)`` once.

        Returns:
            The capsule for this run.  ``fault`` is set if the call raised.

        Raises:
            ExecutorError: If the registered snapshot routine fails on a
                normal return.  After a fault the state is dropped instead.
        """
        kwargs = kwargs or {}
        fault: Optional[ExecutionFault] = None
        return_value: Any = None

        with self.capturer.capture() as captured:
            try:
                return_value = spec.operate(instance, *args, **kwargs)
            except Exception as exc:
                fault = ExecutionFault.from_exception(exc)
                logger.debug("%s.operate raised %s", spec.name, fault.describe())

        try:
            receiver_state = self._snapshot(spec, instance)
        except ExecutorError as exc:
            if fault is None:
                raise
            # Partial state after a fault is never compared
            logger.debug("Dropping partial state of %s: %s", spec.name, exc)
            receiver_state = None

        return OutputCapsule(
            receiver=instance,
            receiver_state=receiver_state,
            captured_text=captured.stdout,
            fault=fault,
            return_value=return_value,
            captured_err=captured.stderr,
        )

    @staticmethod
    def _snapshot(spec: CandidateSpec, instance: Any) -> Any:
        if spec.snapshot is None:
            return snapshot_state(instance)
        try:
            return snapshot_state(spec.snapshot(instance))
        except Exception as exc:
            raise ExecutorError(
                f"Snapshot routine for {spec.name} raised {type(exc).__name__}: {exc}"
            ) from exc
