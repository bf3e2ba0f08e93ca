"""Candidate Registry — explicit capability registration for candidate types.

Each candidate type (a reference or a candidate implementation) registers a
``CandidateSpec`` binding its roles to concrete callables:

- ``generate(complexity, random_source) -> instance`` (required)
- ``operate(instance, *args, **kwargs)`` (required, the operation-under-test)
- ``verify(reference_capsule, candidate_capsule)`` (optional)
- ``precondition(instance, *args, **kwargs) -> bool`` (optional)
- ``snapshot(instance) -> state`` (optional, overrides the structural snapshot)

Roles may be given as callables or as attribute names on the class; names
are resolved once, at registration, never per trial.

The process-wide ``default_registry`` has an explicit lifecycle: populate it
at suite setup, ``freeze()`` it before trials run, ``clear()`` it at teardown.

Pure Python. No third-party dependency.
"""

import logging
import threading
from dataclasses import dataclass
from typing import Any, Callable, Optional, Union

logger = logging.getLogger(__name__)

RoleBinding = Union[str, Callable[..., Any]]


# ── Exceptions ──


class RegistryError(Exception):
    """Base exception for candidate registry errors."""


class RegistrationError(RegistryError):
    """A candidate type's roles could not be bound."""


class RegistryFrozenError(RegistryError):
    """Attempted to modify a frozen registry."""


class CandidateNotRegisteredError(RegistryError):
    """Looked up a type that was never registered."""


# ── Data Classes ──


@dataclass(frozen=True)
class CandidateSpec:
    """The bound roles of one candidate type.

    Attributes:
        target: The registered class.
        generate: Factory producing one instance from (complexity, random).
        operate: The operation-under-test, called as operate(instance, *args).
        verify: Optional custom verification routine.
        precondition: Optional input filter; returning False discards the trial.
        snapshot: Optional custom state snapshot routine.
        accepts_fault_mismatch: Let ``verify`` decide even when exactly one
            side faulted.  Without it a fault-status mismatch always fails.
    """

    target: type
    generate: Callable[..., Any]
    operate: Callable[..., Any]
    verify: Optional[Callable[..., Any]] = None
    precondition: Optional[Callable[..., bool]] = None
    snapshot: Optional[Callable[[Any], Any]] = None
    accepts_fault_mismatch: bool = False

    @property
    def name(self) -> str:
        return self.target.__qualname__


# ── Registry ──


class CandidateRegistry:
    """Maps candidate types to their bound ``CandidateSpec``.

    Usage::

        registry = CandidateRegistry()
        registry.register(Widget, generate="generate", operate="more_springs")
        registry.freeze()
        spec = registry.lookup(Widget)
    """

    def __init__(self) -> None:
        self._specs: dict[type, CandidateSpec] = {}
        self._frozen = False
        self._lock = threading.Lock()

    @property
    def frozen(self) -> bool:
        return self._frozen

    def register(
        self,
        target: type,
        *,
        generate: RoleBinding,
        operate: RoleBinding,
        verify: Optional[RoleBinding] = None,
        precondition: Optional[RoleBinding] = None,
        snapshot: Optional[RoleBinding] = None,
        accepts_fault_mismatch: bool = False,
        replace: bool = False,
    ) -> CandidateSpec:
        """Bind a type's roles and store the resulting spec.

        Raises:
            RegistryFrozenError: If the registry has been frozen.
            RegistrationError: If a role cannot be bound, or the type is
                already registered and ``replace`` is False.
        """
        spec = bind_spec(
            target,
            generate=generate,
            operate=operate,
            verify=verify,
            precondition=precondition,
            snapshot=snapshot,
            accepts_fault_mismatch=accepts_fault_mismatch,
        )
        with self._lock:
            if self._frozen:
                raise RegistryFrozenError(
                    f"Cannot register {spec.name}: registry is frozen"
                )
            if target in self._specs and not replace:
                raise RegistrationError(f"{spec.name} is already registered")
            self._specs[target] = spec
        logger.debug("Registered candidate type %s", spec.name)
        return spec

    def lookup(self, target: Union[type, CandidateSpec]) -> CandidateSpec:
        """Return the spec for a type; specs pass through unchanged.

        Raises:
            CandidateNotRegisteredError: If the type was never registered.
        """
        if isinstance(target, CandidateSpec):
            return target
        try:
            return self._specs[target]
        except KeyError:
            name = getattr(target, "__qualname__", repr(target))
            raise CandidateNotRegisteredError(
                f"{name} has no registered generate/operate roles"
            ) from None

    def __contains__(self, target: object) -> bool:
        return target in self._specs

    def __len__(self) -> int:
        return len(self._specs)

    def freeze(self) -> None:
        """Make the registry read-only for trial execution."""
        self._frozen = True

    def clear(self) -> None:
        """Drop every registration and unfreeze (suite teardown)."""
        with self._lock:
            self._specs.clear()
            self._frozen = False


# ── Binding ──


def bind_spec(
    target: type,
    *,
    generate: RoleBinding,
    operate: RoleBinding,
    verify: Optional[RoleBinding] = None,
    precondition: Optional[RoleBinding] = None,
    snapshot: Optional[RoleBinding] = None,
    accepts_fault_mismatch: bool = False,
) -> CandidateSpec:
    """Resolve role bindings into a ``CandidateSpec`` without registering it."""
    if not isinstance(target, type):
        raise RegistrationError(f"Candidate target must be a class, got {target!r}")
    return CandidateSpec(
        target=target,
        generate=_resolve_role(target, "generate", generate),
        operate=_resolve_role(target, "operate", operate),
        verify=_resolve_optional(target, "verify", verify),
        precondition=_resolve_optional(target, "precondition", precondition),
        snapshot=_resolve_optional(target, "snapshot", snapshot),
        accepts_fault_mismatch=accepts_fault_mismatch,
    )


def _resolve_role(target: type, role: str, binding: Optional[RoleBinding]) -> Callable[..., Any]:
    if binding is None:
        raise RegistrationError(f"{target.__qualname__}: the {role} role is required")
    if isinstance(binding, str):
        if not hasattr(target, binding):
            raise RegistrationError(
                f"{target.__qualname__}: no attribute {binding!r} for the {role} role"
            )
        # getattr on the class yields plain functions for methods, which
        # take the instance explicitly, and bound callables for
        # static/class methods
        binding = getattr(target, binding)
    if not callable(binding):
        raise RegistrationError(f"{target.__qualname__}: the {role} role is not callable")
    return binding


def _resolve_optional(
    target: type, role: str, binding: Optional[RoleBinding]
) -> Optional[Callable[..., Any]]:
    if binding is None:
        return None
    return _resolve_role(target, role, binding)


# ── Process-wide registry ──

default_registry = CandidateRegistry()


def candidate(
    *,
    generate: RoleBinding,
    operate: RoleBinding,
    verify: Optional[RoleBinding] = None,
    precondition: Optional[RoleBinding] = None,
    snapshot: Optional[RoleBinding] = None,
    accepts_fault_mismatch: bool = False,
    registry: Optional[CandidateRegistry] = None,
) -> Callable[[type], type]:
    """Class decorator registering a candidate type.

    Usage::

        @candidate(generate="generate", operate="more_springs", verify="verify")
        class Widget:
            ...
    """

    def decorator(target: type) -> type:
        target_registry = registry if registry is not None else default_registry
        target_registry.register(
            target,
            generate=generate,
            operate=operate,
            verify=verify,
            precondition=precondition,
            snapshot=snapshot,
            accepts_fault_mismatch=accepts_fault_mismatch,
        )
        return target

    return decorator
