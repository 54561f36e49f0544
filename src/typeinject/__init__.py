"""Runtime type-indexed dependency injection.

This package provides a small injector for Python: a registry that stores values
keyed by their type (or by an interface, or any hashable token) and hands them out
on demand, either directly or by injecting them into objects and callables.

Exports:
- `Injector`: the registry. Map values with `map`, `map_to` or `set`, look them up
  with `get`/`resolve`, inject them with `apply` (attributes) or `invoke` (arguments).
  Lookups that miss fall back to an optional parent injector.
- `Inject`: marker for `typing.Annotated` declaring an attribute or parameter
  injectable, optionally naming the token to resolve.
- `interface_of`, `is_interface`, `implements`, `satisfies`: the interface predicates the
  injector resolves Protocols and abstract classes with.
- Errors raised by the injector, all deriving from `InjectionError`.
"""

from ._conformance import implements, interface_of, is_interface, satisfies
from ._errors import (
    AmbiguousDependencyError,
    DependencyNotFoundError,
    InjectionError,
    InvalidArgumentError,
    InvalidTargetError,
)
from ._injector import Injector
from ._markers import Inject


__all__ = [
    "AmbiguousDependencyError",
    "DependencyNotFoundError",
    "Inject",
    "InjectionError",
    "Injector",
    "InvalidArgumentError",
    "InvalidTargetError",
    "implements",
    "interface_of",
    "is_interface",
    "satisfies",
]
