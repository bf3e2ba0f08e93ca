"""Complexity Scheduler — increasing complexity bounds across trials.

Produces a non-decreasing sequence of non-negative integers, one per trial,
ramping linearly from a floor toward ``max_complexity`` so early trials
exercise trivial instances and later trials increasingly elaborate ones.
The scheduler is the only mutable object shared between concurrently
running trials, so every claim is serialized.

Pure Python. No third-party dependency.
"""

import logging
import threading
from dataclasses import dataclass
from typing import Iterator

logger = logging.getLogger(__name__)

# Default trial count and complexity ceiling
DEFAULT_TRIAL_COUNT = 1024
DEFAULT_MAX_COMPLEXITY = 100


# ── Exceptions ──


class SchedulerError(Exception):
    """Base exception for scheduler errors."""


class SchedulerExhausted(SchedulerError):
    """Raised when a bound is requested after the configured trial count.

    Signals that the run is complete; not an error to surface to users.
    """


# ── Data Classes ──


@dataclass(frozen=True)
class TrialSlot:
    """One claimed scheduler position.

    Attributes:
        index: Zero-based trial index (also used to derive per-trial seeds).
        complexity: Complexity bound for this trial.
    """

    index: int
    complexity: int


# ── Scheduler ──


class ComplexityScheduler:
    """Hands out complexity bounds for a fixed number of trials.

    The i-th bound is ``floor + ((max_complexity - floor) * i) // trial_count``,
    so the sequence starts at ``floor`` and never decreases.

    Usage::

        scheduler = ComplexityScheduler(trial_count=64, max_complexity=10)
        for bound in scheduler:
            ...

    Args:
        trial_count: Number of bounds to hand out before exhaustion.
        max_complexity: Upper cap on any bound.
        floor: First (and smallest) bound.
    """

    def __init__(
        self,
        trial_count: int = DEFAULT_TRIAL_COUNT,
        max_complexity: int = DEFAULT_MAX_COMPLEXITY,
        floor: int = 0,
    ) -> None:
        if trial_count < 0:
            raise SchedulerError(f"trial_count must be non-negative, got {trial_count}")
        if floor < 0:
            raise SchedulerError(f"floor must be non-negative, got {floor}")
        if max_complexity < floor:
            raise SchedulerError(
                f"max_complexity ({max_complexity}) must not be below floor ({floor})"
            )
        self.trial_count = trial_count
        self.max_complexity = max_complexity
        self.floor = floor
        self._position = 0
        self._lock = threading.Lock()

    @property
    def remaining(self) -> int:
        """Number of bounds still available."""
        with self._lock:
            return self.trial_count - self._position

    @property
    def exhausted(self) -> bool:
        """True once every bound has been handed out."""
        return self.remaining <= 0

    def bound_at(self, index: int) -> int:
        """Complexity bound for a given trial index (no side effects)."""
        if self.trial_count == 0:
            return self.floor
        span = self.max_complexity - self.floor
        return min(self.floor + (span * index) // self.trial_count, self.max_complexity)

    def claim(self) -> TrialSlot:
        """Atomically claim the next trial index and its bound.

        Raises:
            SchedulerExhausted: If ``trial_count`` slots were already claimed.
        """
        with self._lock:
            if self._position >= self.trial_count:
                raise SchedulerExhausted(
                    f"Scheduler exhausted after {self.trial_count} trials"
                )
            index = self._position
            self._position += 1
        return TrialSlot(index=index, complexity=self.bound_at(index))

    def next(self) -> int:
        """Return the next complexity bound."""
        return self.claim().complexity

    def __iter__(self) -> Iterator[int]:
        while True:
            try:
                yield self.next()
            except SchedulerExhausted:
                return
