"""Trial Pipeline — orchestrates one differential trial end to end.

Wires Complexity Scheduler → Generator Resolver → Case Executor →
Equivalence Verifier into a single entry point, ``run_trial``, and reports
a ``Verdict``.

Each trial claims its own scheduler slot and builds its own requests,
instances and capsules, so trials are independent and may run in parallel.
Within a trial every step is sequential:

  1. Claim a (trial index, complexity) slot from the scheduler
  2. Build per-side generation requests
  3. Resolve one instance per side
  4. Build per-side operation arguments and check the precondition
  5. Execute the operation-under-test on both sides
  6. Verify the capsule pair

Infrastructure faults (generation, argument construction, snapshot or
verifier crashes) produce an "aborted" verdict distinct from a behavioral
"failed" one.

Pure orchestration layer. No third-party dependency.
"""

import concurrent.futures
import copy
import dataclasses
import logging
import random
import threading
import time
from dataclasses import dataclass, field
from typing import Callable, Optional, Union

from difforacle.capture import OutputCapturer
from difforacle.executor import CaseExecutor, ExecutorError
from difforacle.registry import CandidateRegistry, CandidateSpec, default_registry
from difforacle.report import TrialRunReport
from difforacle.resolver import (
    CANDIDATE,
    REFERENCE,
    GenerationFault,
    GenerationRequest,
    GeneratorResolver,
    build_requests,
)
from difforacle.scheduler import ComplexityScheduler, SchedulerExhausted, TrialSlot
from difforacle.verifier import (
    ABORTED,
    DEFAULT_FLOAT_TOLERANCE,
    DISCARDED,
    EquivalenceVerifier,
    Verdict,
    VerifierError,
)

logger = logging.getLogger(__name__)

CandidateRef = Union[type, CandidateSpec]

# Base seed for per-trial random sources
DEFAULT_SEED = 0x0403
DEFAULT_MAX_DISCARDS = 1000


# ── Exceptions ──


class PipelineError(Exception):
    """Base exception for pipeline errors."""


class ReferenceSelfCheckError(PipelineError):
    """The reference implementation did not match itself."""


# ── Configuration ──


@dataclass
class TrialConfig:
    """Configuration for trial execution.

    Attributes:
        seed: Base seed; per-trial random sources derive from it and the
            trial index.
        shared_randomness: Give both sides identically seeded random
            sources so their draws align.  Turn off to salt each side's
            seed with its role.
        args: Fixed positional arguments for the operation-under-test.
            Deep-copied per side so mutations never cross over.
        kwargs: Fixed keyword arguments, copied the same way.
        argument_factory: Optional ``(complexity, random_source) -> tuple``
            called once per side with that side's random source, after
            generation.  Overrides ``args`` when set.
        float_tolerance: Relative tolerance for float comparison.
        max_discards: ``run_trials`` stops claiming new trials after this
            many precondition rejections.
    """

    seed: int = DEFAULT_SEED
    shared_randomness: bool = True
    args: tuple = ()
    kwargs: dict = field(default_factory=dict)
    argument_factory: Optional[Callable[[int, random.Random], tuple]] = None
    float_tolerance: float = DEFAULT_FLOAT_TOLERANCE
    max_discards: int = DEFAULT_MAX_DISCARDS


# ── Pipeline ──


class TrialPipeline:
    """Runs trials for reference/candidate pairs.

    Usage::

        pipeline = TrialPipeline(TrialConfig(args=(1,)))
        verdict = pipeline.run(Candidate, Reference, scheduler)

    Args:
        config: Trial configuration (defaults used if None).
        registry: Where candidate types are looked up (process-wide
            ``default_registry`` if None).
    """

    def __init__(
        self,
        config: Optional[TrialConfig] = None,
        registry: Optional[CandidateRegistry] = None,
    ) -> None:
        self.config = config or TrialConfig()
        self.registry = registry if registry is not None else default_registry
        capturer = OutputCapturer()
        self.resolver = GeneratorResolver(capturer)
        self.executor = CaseExecutor(capturer)
        self.verifier = EquivalenceVerifier(self.config.float_tolerance)

    def run(
        self,
        candidate_type: CandidateRef,
        reference_type: CandidateRef,
        scheduler: ComplexityScheduler,
    ) -> Verdict:
        """Run one trial.

        Raises:
            SchedulerExhausted: If the scheduler has no slots left.
            CandidateNotRegisteredError: If either type is unknown.
        """
        candidate_spec = self.registry.lookup(candidate_type)
        reference_spec = self.registry.lookup(reference_type)
        slot = scheduler.claim()
        return self.run_slot(candidate_spec, reference_spec, slot)

    def run_slot(
        self,
        candidate_spec: CandidateSpec,
        reference_spec: CandidateSpec,
        slot: TrialSlot,
    ) -> Verdict:
        """Run one trial for an already claimed scheduler slot."""
        config = self.config
        ref_request, cand_request = build_requests(
            config.seed, slot.index, slot.complexity, config.shared_randomness,
        )

        # Generation
        try:
            ref_generated = self.resolver.resolve(reference_spec, ref_request)
        except GenerationFault as exc:
            return self._abort(
                slot, f"{REFERENCE} generation failed: {exc}",
                reference_generation_text=exc.captured_text,
            )
        try:
            cand_generated = self.resolver.resolve(candidate_spec, cand_request)
        except GenerationFault as exc:
            return self._abort(
                slot, f"{CANDIDATE} generation failed: {exc}",
                reference_generation_text=ref_generated.captured_text,
                candidate_generation_text=exc.captured_text,
            )
        generation_text = {
            "reference_generation_text": ref_generated.captured_text,
            "candidate_generation_text": cand_generated.captured_text,
        }

        # Arguments
        try:
            ref_args = self._arguments(ref_request)
            cand_args = self._arguments(cand_request)
        except Exception as exc:
            return self._abort(
                slot, f"Argument factory raised {type(exc).__name__}: {exc}",
                **generation_text,
            )
        ref_kwargs = copy.deepcopy(config.kwargs)
        cand_kwargs = copy.deepcopy(config.kwargs)

        # Precondition (the reference's, as it defines valid inputs)
        if reference_spec.precondition is not None:
            try:
                accepted = reference_spec.precondition(
                    ref_generated.instance, *ref_args, **ref_kwargs
                )
            except Exception as exc:
                return self._abort(
                    slot, f"Precondition raised {type(exc).__name__}: {exc}",
                    args=ref_args, **generation_text,
                )
            if not accepted:
                logger.debug("Trial %d discarded by precondition", slot.index)
                return Verdict(
                    status=DISCARDED,
                    description="Precondition rejected the generated input",
                    trial_index=slot.index,
                    complexity=slot.complexity,
                    args=ref_args,
                    **generation_text,
                )

        # Execution
        try:
            ref_capsule = self.executor.execute(
                reference_spec, ref_generated.instance, ref_args, ref_kwargs,
            )
            cand_capsule = self.executor.execute(
                candidate_spec, cand_generated.instance, cand_args, cand_kwargs,
            )
        except ExecutorError as exc:
            return self._abort(slot, str(exc), args=ref_args, **generation_text)

        # Verification (the reference's rule governs the pair)
        try:
            verdict = self.verifier.verify(reference_spec, ref_capsule, cand_capsule)
        except VerifierError as exc:
            return self._abort(slot, str(exc), args=ref_args, **generation_text)

        verdict.trial_index = slot.index
        verdict.complexity = slot.complexity
        verdict.args = ref_args
        verdict.reference_generation_text = ref_generated.captured_text
        verdict.candidate_generation_text = cand_generated.captured_text
        if verdict.passed:
            logger.debug("Trial %d passed (complexity %d)", slot.index, slot.complexity)
        else:
            logger.info(
                "Trial %d failed (complexity %d): %s",
                slot.index, slot.complexity, verdict.description,
            )
        return verdict

    def _arguments(self, request: GenerationRequest) -> tuple:
        factory = self.config.argument_factory
        if factory is None:
            return copy.deepcopy(tuple(self.config.args))
        return tuple(factory(request.complexity, request.random_source))

    @staticmethod
    def _abort(slot: TrialSlot, reason: str, **details) -> Verdict:
        logger.warning("Trial %d aborted: %s", slot.index, reason)
        return Verdict(
            status=ABORTED,
            description=reason,
            trial_index=slot.index,
            complexity=slot.complexity,
            **details,
        )


# ── Public entry points ──


def run_trial(
    candidate_type: CandidateRef,
    reference_type: CandidateRef,
    scheduler: ComplexityScheduler,
    config: Optional[TrialConfig] = None,
    registry: Optional[CandidateRegistry] = None,
) -> Verdict:
    """Run one generate → execute → verify trial and return its verdict."""
    return TrialPipeline(config, registry).run(candidate_type, reference_type, scheduler)


def run_trials(
    candidate_type: CandidateRef,
    reference_type: CandidateRef,
    scheduler: ComplexityScheduler,
    config: Optional[TrialConfig] = None,
    registry: Optional[CandidateRegistry] = None,
    max_workers: int = 1,
) -> TrialRunReport:
    """Run trials until the scheduler is exhausted.

    With ``max_workers > 1`` trials run on a thread pool; each worker claims
    slots from the shared scheduler.  Verdicts are returned in trial-index
    order regardless of completion order.  Capsules on passing verdicts have
    their live ``receiver`` cleared.
    """
    pipeline = TrialPipeline(config, registry)
    candidate_spec = pipeline.registry.lookup(candidate_type)
    reference_spec = pipeline.registry.lookup(reference_type)
    max_discards = pipeline.config.max_discards

    verdicts: list[Verdict] = []
    state = {"discards": 0, "stopped": False}
    lock = threading.Lock()

    def _worker() -> None:
        while True:
            with lock:
                if state["stopped"]:
                    return
            try:
                slot = scheduler.claim()
            except SchedulerExhausted:
                return
            verdict = pipeline.run_slot(candidate_spec, reference_spec, slot)
            if verdict.passed:
                _release_receivers(verdict)
            with lock:
                verdicts.append(verdict)
                if verdict.discarded:
                    state["discards"] += 1
                    if state["discards"] >= max_discards:
                        state["stopped"] = True

    logger.info(
        "Running up to %d trials: %s vs reference %s",
        scheduler.remaining, candidate_spec.name, reference_spec.name,
    )
    start = time.perf_counter()
    if max_workers <= 1:
        _worker()
    else:
        with concurrent.futures.ThreadPoolExecutor(max_workers=max_workers) as pool:
            futures = [pool.submit(_worker) for _ in range(max_workers)]
            for future in concurrent.futures.as_completed(futures):
                future.result()
    duration_ms = (time.perf_counter() - start) * 1000

    report = TrialRunReport(
        reference_name=reference_spec.name,
        candidate_name=candidate_spec.name,
        verdicts=sorted(verdicts, key=lambda v: v.trial_index),
        duration_ms=round(duration_ms, 2),
        stopped_early=state["stopped"],
    )
    logger.info(
        "Run complete: %d trials, %d passed, %d failed, %d aborted, %d discarded",
        report.trials_run, report.passed, report.failed,
        report.aborted, report.discarded,
    )
    return report


def _release_receivers(verdict: Verdict) -> None:
    """Drop live instances a passing verdict no longer needs."""
    for capsule in (verdict.reference, verdict.candidate):
        if capsule is not None:
            capsule.receiver = None


def check_reference(
    reference_type: CandidateRef,
    scheduler: ComplexityScheduler,
    config: Optional[TrialConfig] = None,
    registry: Optional[CandidateRegistry] = None,
) -> TrialRunReport:
    """Run the reference against itself to confirm it is self-consistent.

    Both sides always share randomness here, whatever ``config`` says.

    Raises:
        ReferenceSelfCheckError: On the first failed or aborted trial.
    """
    config = dataclasses.replace(config or TrialConfig(), shared_randomness=True)
    report = run_trials(reference_type, reference_type, scheduler, config, registry)
    failure = report.first_failure
    if failure is not None:
        raise ReferenceSelfCheckError(
            f"Testing reference {report.reference_name} against itself "
            f"{failure.status} on trial {failure.trial_index} "
            f"(arguments {failure.args!r}): {failure.description}"
        )
    return report
