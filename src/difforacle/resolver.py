"""Generator Resolver — produces one instance per side per trial.

Invokes a candidate type's generation routine exactly once per request and
treats it as a black box: the routine may build and discard helper objects,
delegate through closures or locally scoped classes, and print along the
way.  The resolver only sees the returned instance and, separately, the
aggregate text printed during the call.

Pure Python. No third-party dependency.
"""

import logging
import random
from dataclasses import dataclass
from typing import Any, Optional

from difforacle.capture import OutputCapturer
from difforacle.registry import CandidateSpec

logger = logging.getLogger(__name__)

REFERENCE = "reference"
CANDIDATE = "candidate"


# ── Exceptions ──


class ResolverError(Exception):
    """Base exception for generator resolver errors."""


class GenerationFault(ResolverError):
    """The generation routine raised (or returned no instance).

    Infrastructure failure: aborts the trial instead of producing a
    degraded capsule.

    Attributes:
        cause: The exception raised by the generation routine, if any.
        captured_text: Text the routine printed before failing.
    """

    def __init__(
        self,
        message: str,
        cause: Optional[BaseException] = None,
        captured_text: str = "",
    ) -> None:
        super().__init__(message)
        self.cause = cause
        self.captured_text = captured_text


# ── Data Classes ──


@dataclass
class GenerationRequest:
    """Inputs for one generation call.

    Attributes:
        complexity: Non-negative bound on any internally drawn sub-value.
        random_source: Stateful seedable generator, owned by one side.
    """

    complexity: int
    random_source: random.Random


@dataclass
class GeneratedInstance:
    """The single object a generation routine returned.

    Attributes:
        instance: The generated object.
        captured_text: Text printed to stdout during generation.
        complexity: Bound the instance was generated under.
    """

    instance: Any
    captured_text: str = ""
    complexity: int = 0


# ── Request construction ──


def build_requests(
    seed: int,
    trial_index: int,
    complexity: int,
    shared_randomness: bool = True,
) -> tuple[GenerationRequest, GenerationRequest]:
    """Build the (reference, candidate) request pair for one trial.

    Each side always gets its own ``random.Random``.  By default both are
    seeded identically, so a correct candidate sees the same draws as the
    reference.  With ``shared_randomness=False`` each side's seed is salted
    with its role.  Both cases are deterministic in ``(seed, trial_index)``.
    """
    if complexity < 0:
        raise ResolverError(f"complexity must be non-negative, got {complexity}")
    base = f"{seed}/{trial_index}"
    if shared_randomness:
        ref_seed = cand_seed = base
    else:
        ref_seed = f"{base}/{REFERENCE}"
        cand_seed = f"{base}/{CANDIDATE}"
    return (
        GenerationRequest(complexity, random.Random(ref_seed)),
        GenerationRequest(complexity, random.Random(cand_seed)),
    )


# ── Resolver ──


class GeneratorResolver:
    """Invokes generation routines and wraps their failures.

    Args:
        capturer: Output capturer used to collect generation-time text.
    """

    def __init__(self, capturer: Optional[OutputCapturer] = None) -> None:
        self.capturer = capturer or OutputCapturer()

    def resolve(self, spec: CandidateSpec, request: GenerationRequest) -> GeneratedInstance:
        """Produce exactly one instance for a request.

        Raises:
            GenerationFault: If the routine raises or returns None.
        """
        logger.debug(
            "Generating %s at complexity %d", spec.name, request.complexity,
        )
        with self.capturer.capture() as captured:
            try:
                instance = spec.generate(request.complexity, request.random_source)
            except Exception as exc:
                error: Optional[Exception] = exc
                instance = None
            else:
                error = None

        if error is not None:
            raise GenerationFault(
                f"Generator for {spec.name} raised "
                f"{type(error).__name__}: {error}",
                cause=error,
                captured_text=captured.stdout,
            ) from error
        if instance is None:
            raise GenerationFault(
                f"Generator for {spec.name} returned None",
                captured_text=captured.stdout,
            )
        return GeneratedInstance(
            instance=instance,
            captured_text=captured.stdout,
            complexity=request.complexity,
        )
