from __future__ import annotations

from typing import TYPE_CHECKING, Any


if TYPE_CHECKING:
    from collections.abc import Sequence


def _token_repr(token: Any) -> str:
    return getattr(token, "__qualname__", None) or repr(token)


class InjectionError(Exception):
    """Base class for every error raised by an Injector."""


class InvalidArgumentError(InjectionError, TypeError):
    pass


class InvalidTargetError(InjectionError, TypeError):
    pass


class DependencyNotFoundError(InjectionError, LookupError):
    """No value is mapped for `token` in the injector or any of its parents."""

    def __init__(self, token: Any, name: str | None = None) -> None:
        self.token = token
        self.name = name
        msg = f"Value not found for type {_token_repr(token)}"
        if name is not None:
            msg += f" (required by '{name}')"
        super().__init__(msg)


class AmbiguousDependencyError(InjectionError, LookupError):
    """More than one mapped value implements the requested interface."""

    def __init__(self, token: Any, candidates: Sequence[type]) -> None:
        self.token = token
        self.candidates = tuple(candidates)
        names = ", ".join(c.__qualname__ for c in self.candidates)
        super().__init__(f"Several mapped values implement {_token_repr(token)}: {names}")
