"""Tests for candidate capability registration."""

import pytest

from difforacle.registry import (
    CandidateNotRegisteredError,
    CandidateRegistry,
    CandidateSpec,
    RegistrationError,
    RegistryFrozenError,
    bind_spec,
    candidate,
    default_registry,
)

from widgets import MirrorWidget, Widget


# ── Fixtures ──


@pytest.fixture
def registry():
    return CandidateRegistry()


@pytest.fixture
def clean_default_registry():
    default_registry.clear()
    yield default_registry
    default_registry.clear()


# ── Binding ──


class TestBindSpec:
    def test_binds_attribute_names(self):
        spec = bind_spec(Widget, generate="generate", operate="more_springs", verify="verify")
        assert spec.target is Widget
        assert spec.generate is Widget.generate
        assert spec.operate is Widget.more_springs
        assert spec.verify is Widget.verify
        assert spec.precondition is None
        assert spec.name == "Widget"

    def test_binds_callables(self):
        def gen(complexity, random_source):
            return Widget(0)

        spec = bind_spec(Widget, generate=gen, operate=lambda w: None)
        assert spec.generate is gen

    def test_classmethod_is_bound(self):
        spec = bind_spec(MirrorWidget, generate="build", operate="add")
        assert spec.generate.__self__ is MirrorWidget

    def test_unbound_method_takes_instance(self):
        spec = bind_spec(Widget, generate="generate", operate="more_springs")
        widget = Widget(1)
        spec.operate(widget, 2)
        assert widget.springs == 4

    def test_missing_attribute(self):
        with pytest.raises(RegistrationError, match="no attribute 'nope'"):
            bind_spec(Widget, generate="nope", operate="more_springs")

    def test_missing_required_role(self):
        with pytest.raises(RegistrationError, match="operate role is required"):
            bind_spec(Widget, generate="generate", operate=None)

    def test_non_callable_role(self):
        class HasValue:
            value = 3

        with pytest.raises(RegistrationError, match="not callable"):
            bind_spec(HasValue, generate="value", operate=lambda x: x)

    def test_target_must_be_class(self):
        with pytest.raises(RegistrationError):
            bind_spec(Widget(1), generate="generate", operate="more_springs")


# ── Registry ──


class TestCandidateRegistry:
    def test_register_and_lookup(self, registry):
        spec = registry.register(Widget, generate="generate", operate="more_springs")
        assert registry.lookup(Widget) is spec
        assert Widget in registry
        assert len(registry) == 1

    def test_lookup_passes_specs_through(self, registry):
        spec = bind_spec(Widget, generate="generate", operate="more_springs")
        assert registry.lookup(spec) is spec

    def test_lookup_unknown(self, registry):
        with pytest.raises(CandidateNotRegisteredError, match="Widget"):
            registry.lookup(Widget)

    def test_duplicate_registration(self, registry):
        registry.register(Widget, generate="generate", operate="more_springs")
        with pytest.raises(RegistrationError, match="already registered"):
            registry.register(Widget, generate="generate", operate="more_springs")

    def test_replace(self, registry):
        registry.register(Widget, generate="generate", operate="more_springs")
        spec = registry.register(
            Widget, generate="generate", operate="more_springs", verify="verify", replace=True,
        )
        assert registry.lookup(Widget) is spec
        assert spec.verify is not None

    def test_frozen_rejects_registration(self, registry):
        registry.freeze()
        assert registry.frozen
        with pytest.raises(RegistryFrozenError):
            registry.register(Widget, generate="generate", operate="more_springs")

    def test_frozen_still_allows_lookup(self, registry):
        registry.register(Widget, generate="generate", operate="more_springs")
        registry.freeze()
        assert isinstance(registry.lookup(Widget), CandidateSpec)

    def test_clear_resets_lifecycle(self, registry):
        registry.register(Widget, generate="generate", operate="more_springs")
        registry.freeze()
        registry.clear()
        assert len(registry) == 0
        assert not registry.frozen
        registry.register(Widget, generate="generate", operate="more_springs")


# ── Decorator ──


class TestCandidateDecorator:
    def test_registers_in_default_registry(self, clean_default_registry):
        @candidate(generate="make", operate="poke")
        class Poked:
            def __init__(self):
                self.count = 0

            @staticmethod
            def make(complexity, random_source):
                return Poked()

            def poke(self):
                self.count += 1

        assert Poked in clean_default_registry
        assert clean_default_registry.lookup(Poked).operate is Poked.poke

    def test_registers_in_given_registry(self, registry):
        @candidate(generate="build", operate="add", registry=registry)
        class Local(MirrorWidget):
            pass

        assert Local in registry
        assert Local not in default_registry
