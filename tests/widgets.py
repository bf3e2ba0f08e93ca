"""Candidate types shared by the difforacle tests."""

from difforacle import CandidateRegistry


class FixedDraws:
    """Random source stand-in that replays a fixed list of draws."""

    def __init__(self, *draws):
        self.draws = list(draws)
        self.calls = 0

    def randint(self, low, high):
        value = self.draws[self.calls % len(self.draws)]
        self.calls += 1
        assert low <= value <= high, f"draw {value} outside [{low}, {high}]"
        return value


class Widget:
    """Reference: generation goes through a local class and a closure."""

    def __init__(self, springs):
        self._springs = springs

    @property
    def springs(self):
        return self._springs

    def more_springs(self, extras):
        self._springs += extras + 1

    @staticmethod
    def generate(complexity, random_source):
        holder = [None]

        class _Fiddler:
            def __init__(self, widget):
                self.widget = widget

            def fiddle(self):
                self.widget.more_springs(1)
                return self.widget

        def run():
            inner = _Fiddler(Widget(random_source.randint(0, complexity)))
            holder[0] = inner.fiddle()
            print("Runnable ran", end="")

        run()
        print(", outer method ran")
        return holder[0]

    @staticmethod
    def verify(ours, theirs):
        assert ours.receiver.springs == theirs.receiver.springs, (
            f"springs {ours.receiver.springs} != {theirs.receiver.springs}"
        )


class MirrorWidget:
    """Independent, correct implementation with a mangled field name."""

    def __init__(self, springs=0):
        self.__springs = springs

    @property
    def springs(self):
        return self.__springs

    def add(self, extras):
        self.__springs = self.__springs + extras + 1

    @classmethod
    def build(cls, complexity, random_source):
        widget = cls(random_source.randint(0, complexity))
        widget.add(1)
        return widget


class BrokenWidget(MirrorWidget):
    """Off by one in the operation-under-test."""

    def add(self, extras):
        super().add(extras - 1)


class Divider:
    """Operation raises ZeroDivisionError for a zero argument."""

    def __init__(self, total):
        self.total = total

    @staticmethod
    def generate(complexity, random_source):
        return Divider(random_source.randint(0, complexity))

    def divide(self, by):
        self.total = self.total // by
        return self.total


class GuardedDivider(Divider):
    """Raises ValueError instead of ZeroDivisionError."""

    @staticmethod
    def generate(complexity, random_source):
        return GuardedDivider(random_source.randint(0, complexity))

    def divide(self, by):
        if by == 0:
            raise ValueError("cannot divide by zero")
        return super().divide(by)


class SafeDivider(Divider):
    """Returns 0 instead of raising."""

    @staticmethod
    def generate(complexity, random_source):
        return SafeDivider(random_source.randint(0, complexity))

    def divide(self, by):
        if by == 0:
            return 0
        return super().divide(by)


def widget_registry(frozen=True):
    """Registry with the widget family registered."""
    registry = CandidateRegistry()
    registry.register(Widget, generate="generate", operate="more_springs", verify="verify")
    registry.register(MirrorWidget, generate="build", operate="add")
    registry.register(BrokenWidget, generate="build", operate="add")
    if frozen:
        registry.freeze()
    return registry


class Spring:
    def __init__(self, k):
        self.k = k


class Holder:
    """Receiver whose state nests user objects."""

    def __init__(self, k):
        self.spring = Spring(k)
        self.spares = [Spring(k), Spring(k + 1)]

    @staticmethod
    def generate(complexity, random_source):
        return Holder(random_source.randint(0, complexity))

    def stretch(self):
        self.spring.k += 1


class Counter:
    def __init__(self, n):
        self.n = n

    @staticmethod
    def generate(complexity, random_source):
        return Counter(random_source.randint(0, complexity))

    def bump(self, k=1):
        self.n += k


class Tally:
    """Same behavior as Counter, stored under a mangled name."""

    def __init__(self, n):
        self.__n = n

    @classmethod
    def build(cls, complexity, random_source):
        return cls(random_source.randint(0, complexity))

    def bump(self, k=1):
        self.__n = self.__n + k
