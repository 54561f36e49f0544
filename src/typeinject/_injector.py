from __future__ import annotations

import dataclasses
import inspect
import logging
import threading
from typing import TYPE_CHECKING, Any, TypeVar, get_type_hints, overload

from ._conformance import interface_of, is_interface, satisfies
from ._errors import (
    AmbiguousDependencyError,
    DependencyNotFoundError,
    InvalidArgumentError,
    InvalidTargetError,
)
from ._markers import find_marker, strip_annotated


logger = logging.getLogger(__name__)

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator

    T = TypeVar("T")

    Token = type[T] | str

_MISSING = object()


class Injector:
    """Type-indexed value registry.

    - map values by their type, by an interface, or by any hashable token
    - resolve by exact token, by interface satisfaction, then through the parent chain
    - inject resolved values into object attributes (`apply`) or callable arguments (`invoke`).
    """

    def __init__(self, parent: Injector | None = None, *, strict: bool = False) -> None:
        self._values: dict[Any, Any] = {}
        self._parent: Injector | None = None
        self._strict = strict
        self._lock = threading.RLock()
        if parent is not None:
            self.set_parent(parent)

    def __contains__(self, token: object) -> bool:
        with self._lock:
            return token in self._values

    def __repr__(self) -> str:
        return f"<Injector values={len(self._values)} parent={self._parent is not None} strict={self._strict}>"

    @property
    def parent(self) -> Injector | None:
        return self._parent

    @property
    def strict(self) -> bool:
        return self._strict

    def map(self, value: object) -> Injector:
        """Map `value` to its own concrete type."""
        return self.set(type(value), value)

    def map_to(self, value: object, interface: Any) -> Injector:
        """Map `value` to an interface type instead of its concrete type.

        Example:
          injector.map_to(PostgresRepo(), Repository)

        """
        iface = interface_of(interface)
        if not satisfies(value, iface):
            msg = f"{type(value).__name__} does not implement {iface.__name__}"
            raise InvalidArgumentError(msg)
        return self.set(iface, value)

    def set(self, token: Token[Any], value: object) -> Injector:
        """Map `token` to `value` directly, without inference or validation."""
        with self._lock:
            self._values[token] = value
        logger.debug("Mapped %r to %s", token, type(value).__name__)
        return self

    def set_parent(self, parent: Injector | None) -> None:
        """Replace the injector consulted when a lookup misses locally. `None` detaches it."""
        if parent is not None and not isinstance(parent, Injector):
            msg = f"Parent must be an Injector, got {type(parent).__name__}"
            raise InvalidArgumentError(msg)
        self._parent = parent

    def create_child(self) -> Injector:
        """Create an injector that resolves in itself first, then falls back to this one."""
        return Injector(self, strict=self._strict)

    @overload
    def get(self, token: type[T]) -> tuple[T | None, bool]: ...

    @overload
    def get(self, token: str) -> tuple[Any, bool]: ...

    def get(self, token: Token[T]) -> tuple[Any, bool]:
        """Look `token` up and return `(value, found)`.

        Each injector in the chain is tried in turn:
        1. exact token match
        2. first mapped value implementing `token`, when it is an interface
        then its parent. `found` is False when nothing matched; `value` is then None.
        """
        visited: set[int] = set()
        for injector in self._chain():
            if id(injector) in visited:
                logger.warning("Parent chain of %r loops back to %r; stopping lookup", self, injector)
                break
            visited.add(id(injector))
            if injector is not self:
                logger.debug("Delegating lookup of %r to parent %r", token, injector)

            value = injector._lookup_local(token)
            if value is not _MISSING:
                return value, True

        return None, False

    @overload
    def resolve(self, token: type[T]) -> T: ...

    @overload
    def resolve(self, token: str) -> Any: ...

    def resolve(self, token: Token[T]) -> Any:
        """Like `get`, but raise `DependencyNotFoundError` when nothing matches."""
        value, found = self.get(token)
        if not found:
            raise DependencyNotFoundError(token)
        return value

    def apply(self, target: object) -> None:
        """Set every attribute of `target` that is marked for injection.

        Marked attributes are the annotated ones carrying an `Inject` marker in
        `Annotated` metadata, or dataclass fields with an "inject" metadata key.
        Private (underscore) attributes are skipped. Attributes set before an
        unresolved one keep their new value.
        """
        cls = type(target)
        if (
            inspect.isclass(target)
            or inspect.isroutine(target)
            or inspect.ismodule(target)
            or cls.__module__ == "builtins"
        ):
            msg = f"Cannot inject into {cls.__name__} value {target!r}; expected an object instance"
            raise InvalidTargetError(msg)

        if dataclasses.is_dataclass(cls) and cls.__dataclass_params__.frozen:  # type: ignore[attr-defined]
            msg = f"Cannot inject into frozen dataclass {cls.__name__}"
            raise InvalidTargetError(msg)

        for name, token in _injectable_fields(cls):
            value, found = self.get(token)
            if not found:
                raise DependencyNotFoundError(token, name=f"{cls.__name__}.{name}")
            setattr(target, name, value)

    def invoke(self, fn: Callable[..., T], **overrides: Any) -> T:
        """Call `fn`, resolving each of its parameters from this injector.

        `overrides` explicitly supply arguments by name.
        """
        return Invoker(self).invoke(fn, **overrides)

    def resolve_param(self, fn: Callable[..., Any], name: str, p: inspect.Parameter, hints: dict[str, Any]) -> Any:
        """Resolving param.

        Resolution precedence:
        1. `Inject(token)` marker
        2. type-based mapping
        3. name-based mapping
        4. default
        5. error.
        """
        ann, metadata = strip_annotated(hints.get(name, p.annotation))

        # 1) explicit token
        marker = find_marker(metadata)
        if marker is not None and marker.token is not None:
            value, found = self.get(marker.token)
            if not found:
                raise DependencyNotFoundError(marker.token, name=f"{_callable_name(fn)}({name})")
            return value

        # 2) type-based; unevaluated string annotations are skipped
        if ann is not inspect.Parameter.empty and not isinstance(ann, str) and _is_hashable(ann):
            value, found = self.get(ann)
            if found:
                return value

        # 3) name-based
        value, found = self.get(name)
        if found:
            return value

        # 4) default
        if p.default is not inspect.Parameter.empty:
            return p.default

        # 5) error
        token = ann if ann is not inspect.Parameter.empty else name
        raise DependencyNotFoundError(token, name=f"{_callable_name(fn)}({name})")

    def _chain(self) -> Iterator[Injector]:
        injector: Injector | None = self
        while injector is not None:
            yield injector
            injector = injector._parent

    def _lookup_local(self, token: Any) -> Any:
        with self._lock:
            if token in self._values:
                return self._values[token]

            if not is_interface(token):
                return _MISSING

            values = list(self._values.values())

        # the scan may call into user code; it runs without the lock held
        matches = [v for v in values if satisfies(v, token)]

        if not matches:
            return _MISSING
        if len(matches) > 1:
            candidates = [type(v) for v in matches]
            if self._strict:
                raise AmbiguousDependencyError(token, candidates)
            logger.warning(
                "%d mapped values implement %s (%s); using the first mapped",
                len(matches),
                token.__qualname__,
                ", ".join(c.__name__ for c in candidates),
            )
        return matches[0]


class Invoker:
    def __init__(self, resolver: Injector) -> None:
        self._resolver = resolver

    def invoke(self, fn: Callable[..., T], **overrides: Any) -> T:
        if not callable(fn):
            msg = f"Cannot invoke {type(fn).__name__} value {fn!r}; expected a callable"
            raise InvalidArgumentError(msg)

        try:
            sig = inspect.signature(fn)
        except (TypeError, ValueError) as e:
            msg = f"Cannot inspect the signature of {_callable_name(fn)}: {e}"
            raise InvalidArgumentError(msg) from e

        bound = self._bind_explicit(sig, overrides, fn)

        self._fill_missing_arguments(fn, sig, bound)

        args, kwargs = self._materialize_call(sig, bound)
        return fn(*args, **kwargs)

    def _bind_explicit(
        self, sig: inspect.Signature, kw: dict[str, Any], fn: Callable[..., Any]
    ) -> inspect.BoundArguments:
        params = sig.parameters
        pos_only = {name: kw[name] for name, p in params.items() if p.kind is p.POSITIONAL_ONLY and name in kw}
        rest = {k: v for k, v in kw.items() if k not in pos_only}
        try:
            bound = sig.bind_partial(**rest)
        except TypeError as e:
            msg = f"Overrides don't match {_callable_name(fn)} signature: {e}"
            raise InvalidArgumentError(msg) from e

        for name, value in pos_only.items():
            bound.arguments[name] = value
        return bound

    def _fill_missing_arguments(
        self, fn: Callable[..., Any], sig: inspect.Signature, bound: inspect.BoundArguments
    ) -> None:
        hints = _get_callable_type_hints(fn)

        for name, p in sig.parameters.items():
            if p.kind in (p.VAR_POSITIONAL, p.VAR_KEYWORD):
                continue

            if name not in bound.arguments:
                bound.arguments[name] = self._resolver.resolve_param(fn, name, p, hints)

    def _materialize_call(
        self, sig: inspect.Signature, bound: inspect.BoundArguments
    ) -> tuple[list[Any], dict[str, Any]]:
        params = sig.parameters
        args, kwargs = [], {}

        # positional-only
        for name, p in params.items():
            if p.kind is p.POSITIONAL_ONLY:
                args.append(bound.arguments[name])

        # *args
        for name, p in params.items():
            if p.kind is p.VAR_POSITIONAL:
                args.extend(tuple(bound.arguments.get(name, ())))
                break

        # keywords
        for name, p in params.items():
            if p.kind in (p.POSITIONAL_OR_KEYWORD, p.KEYWORD_ONLY):
                kwargs[name] = bound.arguments[name]

        # **kwargs
        for name, p in params.items():
            if p.kind is p.VAR_KEYWORD:
                kwargs.update(bound.arguments.get(name, {}))
                break

        return args, kwargs


def _injectable_fields(cls: type) -> list[tuple[str, Any]]:
    """Return `(attribute, token)` for each attribute of `cls` marked for injection.

    Raises `InvalidTargetError` when the annotations of `cls` cannot be evaluated,
    since marked attributes could not be told apart from the others.
    """
    try:
        hints = get_type_hints(cls, include_extras=True)
    except NameError as exc:
        msg = f"Cannot evaluate annotations of {cls.__qualname__}: name '{exc.name}' is not defined"
        raise InvalidTargetError(msg) from exc
    except TypeError as exc:
        msg = f"Cannot evaluate annotations of {cls.__qualname__}: {exc}"
        raise InvalidTargetError(msg) from exc
    dc_fields = {f.name: f for f in dataclasses.fields(cls)} if dataclasses.is_dataclass(cls) else {}

    fields: list[tuple[str, Any]] = []
    for name, hint in hints.items():
        if name.startswith("_"):
            continue

        ann, metadata = strip_annotated(hint)
        marker = find_marker(metadata)
        if marker is not None:
            fields.append((name, marker.token if marker.token is not None else ann))
            continue

        field = dc_fields.get(name)
        if field is not None and "inject" in field.metadata:
            tag = field.metadata["inject"]
            fields.append((name, ann if tag is True or tag is None or tag == "" else tag))

    return fields


def _is_hashable(obj: object) -> bool:
    try:
        hash(obj)
    except TypeError:
        return False
    return True


def _callable_name(fn: Callable[..., Any]) -> str:
    return getattr(fn, "__qualname__", None) or type(fn).__name__


def _get_callable_type_hints(fn: Callable[..., Any]) -> dict[str, Any]:
    if inspect.isclass(fn):
        target: Any = inspect.getattr_static(fn, "__init__", None)
    elif inspect.isroutine(fn):
        target = fn
    else:
        target = getattr(type(fn), "__call__", None)
    return _get_type_hints(target) if target is not None else {}


def _get_type_hints(obj: Any) -> dict[str, Any]:
    try:
        hints = get_type_hints(obj, include_extras=True)
    except TypeError:
        hints = {}
    except NameError as exc:
        name = getattr(obj, "__qualname__", repr(obj))
        logger.warning("'%s' name error retrieving %s type hints", exc.name, name)
        hints = {}

    return hints
