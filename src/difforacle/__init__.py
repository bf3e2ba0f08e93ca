"""difforacle — Differential-testing oracle for paired implementations."""

from difforacle.capsule import ExecutionFault, OutputCapsule, snapshot_state
from difforacle.capture import CapturedOutput, OutputCapturer
from difforacle.executor import CaseExecutor, ExecutorError
from difforacle.pipeline import (
    PipelineError,
    ReferenceSelfCheckError,
    TrialConfig,
    TrialPipeline,
    check_reference,
    run_trial,
    run_trials,
)
from difforacle.registry import (
    CandidateNotRegisteredError,
    CandidateRegistry,
    CandidateSpec,
    RegistrationError,
    RegistryError,
    RegistryFrozenError,
    candidate,
    default_registry,
)
from difforacle.report import TrialRunReport
from difforacle.resolver import (
    GeneratedInstance,
    GenerationFault,
    GenerationRequest,
    GeneratorResolver,
    ResolverError,
    build_requests,
)
from difforacle.scheduler import (
    ComplexityScheduler,
    SchedulerError,
    SchedulerExhausted,
    TrialSlot,
)
from difforacle.verifier import (
    EquivalenceVerifier,
    Verdict,
    VerificationFailure,
    VerifierError,
    expect_equal,
    structural_diff,
)

__all__ = [
    # Output Capsule
    "OutputCapsule",
    "ExecutionFault",
    "snapshot_state",
    # Output capture
    "OutputCapturer",
    "CapturedOutput",
    # Complexity Scheduler
    "ComplexityScheduler",
    "TrialSlot",
    "SchedulerError",
    "SchedulerExhausted",
    # Candidate Registry
    "CandidateRegistry",
    "CandidateSpec",
    "candidate",
    "default_registry",
    "RegistryError",
    "RegistrationError",
    "RegistryFrozenError",
    "CandidateNotRegisteredError",
    # Generator Resolver
    "GeneratorResolver",
    "GenerationRequest",
    "GeneratedInstance",
    "build_requests",
    "ResolverError",
    "GenerationFault",
    # Case Executor
    "CaseExecutor",
    "ExecutorError",
    # Equivalence Verifier
    "EquivalenceVerifier",
    "Verdict",
    "VerificationFailure",
    "VerifierError",
    "expect_equal",
    "structural_diff",
    # Trial Pipeline
    "run_trial",
    "run_trials",
    "check_reference",
    "TrialPipeline",
    "TrialConfig",
    "PipelineError",
    "ReferenceSelfCheckError",
    # Report
    "TrialRunReport",
]
