"""Run report — aggregates trial verdicts into a pass/fail summary.

Keeps behavioral failures ("the candidate is wrong") apart from aborted
trials ("the harness broke") so a reader can tell the two apart.

Pure Python. No third-party dependency.
"""

import logging
from dataclasses import dataclass, field
from typing import Optional

from difforacle.verifier import ABORTED, DISCARDED, FAILED, PASSED, Verdict

logger = logging.getLogger(__name__)

# Failures listed individually in as_text()
_MAX_LISTED = 5


@dataclass
class TrialRunReport:
    """Verdicts from one multi-trial run.

    Attributes:
        reference_name: Qualified name of the reference type.
        candidate_name: Qualified name of the candidate type.
        verdicts: One verdict per trial, ordered by trial index.
        duration_ms: Wall-clock time for the whole run.
        stopped_early: True if the run stopped on the discard limit.
    """

    reference_name: str = ""
    candidate_name: str = ""
    verdicts: list[Verdict] = field(default_factory=list)
    duration_ms: float = 0.0
    stopped_early: bool = False

    @property
    def trials_run(self) -> int:
        return len(self.verdicts)

    @property
    def passed(self) -> int:
        return self._count(PASSED)

    @property
    def failed(self) -> int:
        return self._count(FAILED)

    @property
    def aborted(self) -> int:
        return self._count(ABORTED)

    @property
    def discarded(self) -> int:
        return self._count(DISCARDED)

    @property
    def success(self) -> bool:
        """True if no trial failed or aborted."""
        return self.failed == 0 and self.aborted == 0

    @property
    def first_failure(self) -> Optional[Verdict]:
        """Earliest failed or aborted verdict, or None."""
        for verdict in self.verdicts:
            if verdict.status in (FAILED, ABORTED):
                return verdict
        return None

    def _count(self, status: str) -> int:
        return sum(1 for v in self.verdicts if v.status == status)

    def as_text(self) -> str:
        """Render the report as readable plain text."""
        sections: list[str] = []

        sections.append("=" * 60)
        sections.append("  Differential Trial Report")
        sections.append("=" * 60)
        if self.reference_name or self.candidate_name:
            sections.append(
                f"\nReference: {self.reference_name}\nCandidate: {self.candidate_name}"
            )

        sections.append(
            f"\nTrials: {self.trials_run} run, {self.passed} passed, "
            f"{self.failed} failed, {self.aborted} aborted, "
            f"{self.discarded} discarded"
        )
        if self.stopped_early:
            sections.append("Stopped early: discard limit reached.")

        problems = [v for v in self.verdicts if v.status in (FAILED, ABORTED)]
        if not problems:
            if self.trials_run:
                sections.append("\nAll executed trials matched the reference.")
        else:
            sections.append("\n" + "-" * 40)
            sections.append("  Failures")
            sections.append("-" * 40)
            for verdict in problems[:_MAX_LISTED]:
                marker = "[!!]" if verdict.failed else "[ab]"
                sections.append(
                    f"\n{marker} Trial {verdict.trial_index} "
                    f"(complexity {verdict.complexity})"
                )
                sections.append(f"    {verdict.description}")
                if verdict.args:
                    sections.append(f"    Arguments: {verdict.args!r}")
                for side, text in (
                    ("reference", verdict.reference_generation_text),
                    ("candidate", verdict.candidate_generation_text),
                ):
                    if text:
                        sections.append(
                            f"    {side.capitalize()} generation output: {text!r}"
                        )
                for side, capsule in (
                    ("reference", verdict.reference),
                    ("candidate", verdict.candidate),
                ):
                    if capsule is not None and capsule.captured_text:
                        sections.append(
                            f"    {side.capitalize()} output: {capsule.captured_text!r}"
                        )
            if len(problems) > _MAX_LISTED:
                sections.append(f"\n  ... {len(problems) - _MAX_LISTED} more")

        sections.append(f"\nDuration: {self.duration_ms:.0f} ms")
        return "\n".join(sections)

    def as_dict(self) -> dict:
        """JSON-serializable summary of the run."""
        return {
            "reference": self.reference_name,
            "candidate": self.candidate_name,
            "trials_run": self.trials_run,
            "passed": self.passed,
            "failed": self.failed,
            "aborted": self.aborted,
            "discarded": self.discarded,
            "success": self.success,
            "stopped_early": self.stopped_early,
            "duration_ms": self.duration_ms,
            "verdicts": [
                {
                    "trial_index": v.trial_index,
                    "complexity": v.complexity,
                    "status": v.status,
                    "description": v.description,
                    "reference_generation_output": v.reference_generation_text,
                    "candidate_generation_output": v.candidate_generation_text,
                    "reference_output": v.reference.captured_text if v.reference else "",
                    "candidate_output": v.candidate.captured_text if v.candidate else "",
                }
                for v in self.verdicts
            ],
        }
