"""Spring Widget — demo reference/candidate pair for difforacle.

The reference generator deliberately routes construction through a locally
scoped helper class and a nested closure, and prints along the way.  The
harness treats it as an opaque factory all the same.

Run with::

    python examples/spring_widget.py [-v]
"""

import argparse
import logging
import sys

from difforacle import (
    CandidateRegistry,
    ComplexityScheduler,
    TrialConfig,
    check_reference,
    run_trials,
)


# ── Reference ──


class SpringWidget:
    """Trusted implementation: a counter of springs."""

    def __init__(self, springs: int):
        self._springs = springs

    @property
    def springs(self) -> int:
        return self._springs

    def more_springs(self, extras: int) -> None:
        self._springs += extras + 1

    @staticmethod
    def generate(complexity, random_source) -> "SpringWidget":
        holder = [None]

        class _Fiddler:
            def __init__(self, widget):
                self.widget = widget

            def fiddle(self):
                self.widget.more_springs(1)
                return self.widget

        def run():
            inner = _Fiddler(SpringWidget(random_source.randint(0, complexity)))
            holder[0] = inner.fiddle()
            print("Runnable ran", end="")

        run()
        print(", outer method ran")
        return holder[0]

    @staticmethod
    def verify(ours, theirs) -> None:
        assert ours.receiver.springs == theirs.receiver.springs, (
            f"expected {ours.receiver.springs} springs, got {theirs.receiver.springs}"
        )


# ── Candidates ──


class CoilWidget:
    """Independent implementation that agrees with SpringWidget."""

    def __init__(self, coils: int = 0):
        self.__springs = coils

    @property
    def springs(self) -> int:
        return self.__springs

    def add(self, extras: int) -> None:
        self.__springs = self.__springs + extras + 1

    @classmethod
    def build(cls, complexity, random_source) -> "CoilWidget":
        widget = cls(random_source.randint(0, complexity))
        widget.add(1)
        return widget


class OffByOneWidget(CoilWidget):
    """Buggy implementation: forgets the extra spring."""

    def add(self, extras: int) -> None:
        super().add(extras - 1)


def build_registry() -> CandidateRegistry:
    registry = CandidateRegistry()
    registry.register(
        SpringWidget,
        generate="generate",
        operate="more_springs",
        verify="verify",
    )
    registry.register(CoilWidget, generate="build", operate="add")
    registry.register(OffByOneWidget, generate="build", operate="add")
    registry.freeze()
    return registry


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("--trials", type=int, default=64)
    parser.add_argument("--max-complexity", type=int, default=10)
    parser.add_argument("-v", "--verbose", action="store_true")
    args = parser.parse_args(argv)

    level = logging.DEBUG if args.verbose else logging.WARNING
    logging.basicConfig(level=level, format="%(levelname)s: %(message)s")

    registry = build_registry()
    config = TrialConfig(
        argument_factory=lambda complexity, rnd: (rnd.randint(0, complexity),),
    )

    check_reference(
        SpringWidget,
        ComplexityScheduler(args.trials, args.max_complexity),
        config,
        registry,
    )

    exit_code = 0
    for candidate_type in (CoilWidget, OffByOneWidget):
        report = run_trials(
            candidate_type,
            SpringWidget,
            ComplexityScheduler(args.trials, args.max_complexity),
            config,
            registry,
            max_workers=4,
        )
        print(report.as_text())
        if not report.success:
            exit_code = 1
    return exit_code


if __name__ == "__main__":
    sys.exit(main())
