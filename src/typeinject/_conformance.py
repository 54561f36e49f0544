from __future__ import annotations

import dataclasses
import inspect
import types
import typing
from typing import Any, Protocol, Union, cast, get_args, get_origin, get_type_hints

from ._errors import InvalidArgumentError
from ._markers import strip_annotated


def is_interface(tp: Any) -> bool:
    """Whether `tp` can only be satisfied by another type.

    Interfaces are `typing.Protocol` subclasses and abstract classes (ABCs with
    abstract members, including the `collections.abc` ones).
    """
    if not inspect.isclass(tp):
        return False
    return _is_protocol(tp) or inspect.isabstract(tp)


def interface_of(witness: Any) -> type:
    """Return the interface type denoted by `witness`.

    Any number of `Annotated[...]` layers are unwrapped first. Raises
    `InvalidArgumentError` if what remains is not an interface.
    """
    tp, _ = strip_annotated(witness)
    if not is_interface(tp):
        msg = f"Called interface_of with {witness!r}, which is not a Protocol or abstract class"
        raise InvalidArgumentError(msg)
    return cast("type", tp)


def implements(impl: type, interface: type) -> bool:
    """Whether instances of `impl` satisfy `interface`.

    - ABCs: `issubclass`, so virtual subclasses registered on the ABC count.
    - Protocols: nominal via MRO, otherwise best-effort structural conformance.
      Data members count as present when `impl` declares them as annotations
      or dataclass fields.
    """
    if not _is_protocol(interface):
        return issubclass(impl, interface)
    try:
        validate_protocol_impl(interface, impl)
    except TypeError:
        return False
    return True


def satisfies(value: object, interface: type) -> bool:
    """Whether `value` itself satisfies `interface`.

    Unlike `implements`, attributes set on the instance count as Protocol members.
    """
    if not _is_protocol(interface):
        return isinstance(value, interface)
    if implements(type(value), interface):
        return True
    try:
        validate_protocol_impl(interface, type(value), subject=value)
    except TypeError:
        return False
    return True


def validate_protocol_impl(proto_cls: type, impl: type, subject: object = None) -> None:
    # Try nominal conformance without issubclass
    if proto_cls in getattr(impl, "__mro__", ()):
        return

    _validate_protocol_structural_conformance(proto_cls, impl, impl if subject is None else subject)


def _validate_protocol_structural_conformance(proto_cls: type, impl: type, subject: object) -> None:  # noqa: C901
    """Best-effort structural conformance: presence + basic callable arity + return type checks.

    Members are looked up on `subject`, which is either `impl` or one of its instances.
    """
    missing: list[str] = []
    signature_mismatches: list[str] = []

    try:
        proto_hints = get_type_hints(proto_cls, include_extras=True)
    except (TypeError, NameError):
        proto_hints = dict.fromkeys(_annotation_names(proto_cls))

    declared = _declared_members(impl) if subject is impl else set()

    # Attributes required by annotations
    for name in proto_hints:
        if name.startswith("_"):
            continue
        if not hasattr(subject, name) and name not in declared:
            missing.append(name)

    for name, proto_attr in proto_cls.__dict__.items():
        if name.startswith("_") or not inspect.isfunction(proto_attr):
            continue

        if not hasattr(subject, name):
            missing.append(name)
            continue

        impl_attr = getattr(subject, name)
        if not callable(impl_attr):
            signature_mismatches.append(f"{name}: not Callable on {impl.__name__}")
            continue

        try:
            proto_sig = inspect.signature(proto_attr)
            impl_sig = inspect.signature(impl_attr)
        except (TypeError, ValueError) as e:
            signature_mismatches.append(f"{name}: unable to compare signatures ({e})")
            continue

        proto_params = [p for p in proto_sig.parameters.values() if p.name != "self"]
        impl_params = [p for p in impl_sig.parameters.values() if p.name != "self"]

        if _positional_arity(impl_params) < _positional_arity(proto_params) and not _has_var_positional(impl_params):
            signature_mismatches.append(
                f"{name}: impl has fewer required positional params "
                f"({_positional_arity(impl_params)}) than protocol "
                f"({_positional_arity(proto_params)})"
            )

        proto_ret = _return_hint(proto_attr)
        impl_ret = _return_hint(impl_attr)

        if (
            proto_ret is not _UNKNOWN
            and impl_ret is not _UNKNOWN
            and proto_ret is not Any
            and impl_ret is not Any
            and not _is_return_type_compatible(impl_ret, proto_ret)
        ):
            signature_mismatches.append(
                f"{name}: return type {impl_ret!r} is not compatible with protocol return type {proto_ret!r}"
            )

    if missing or signature_mismatches:
        msgs = []
        if missing:
            msgs.append(f"missing members: {', '.join(missing)}")
        if signature_mismatches:
            msgs.append(f"signature mismatches: {', '.join(signature_mismatches)}")

        msg = (
            f"Implementation {impl.__name__} does not structurally conform to protocol "
            f"{proto_cls.__name__}: {'; '.join(msgs)}"
        )
        raise TypeError(msg)


_UNKNOWN = object()


def _declared_members(impl: type) -> set[str]:
    """Names `impl` declares for its instances: class annotations and dataclass fields."""
    names: set[str] = set()
    for klass in getattr(impl, "__mro__", ()):
        names.update(_annotation_names(klass))
    if dataclasses.is_dataclass(impl):
        names.update(f.name for f in dataclasses.fields(impl))
    return names


def _annotation_names(klass: type) -> list[str]:
    try:
        return list(inspect.get_annotations(klass))
    except Exception:  # noqa: BLE001
        return list(vars(klass).get("__annotations__", {}))


def _return_hint(fn: Any) -> Any:
    """Evaluated return annotation of `fn`; `_UNKNOWN` when absent or not evaluable."""
    try:
        hints = get_type_hints(fn)
    except Exception:  # noqa: BLE001
        return _UNKNOWN
    return hints.get("return", _UNKNOWN)


def _positional_arity(params: list[inspect.Parameter]) -> int:
    return sum(
        1
        for p in params
        if p.kind in (inspect.Parameter.POSITIONAL_ONLY, inspect.Parameter.POSITIONAL_OR_KEYWORD)
        and p.default is inspect.Parameter.empty
    )


def _has_var_positional(params: list[inspect.Parameter]) -> bool:
    return any(p.kind is inspect.Parameter.VAR_POSITIONAL for p in params)


def _is_return_type_compatible(impl_ret: Any, proto_ret: Any) -> bool:
    # Exact match
    if impl_ret == proto_ret:
        return True

    # Unions: every impl member must fit the protocol, which may itself be a union
    if _is_union(impl_ret):
        return all(_is_return_type_compatible(arg, proto_ret) for arg in get_args(impl_ret))
    if _is_union(proto_ret):
        return any(_is_return_type_compatible(impl_ret, arg) for arg in get_args(proto_ret))

    # None is spelled as NoneType once evaluated
    impl_cls = type(None) if impl_ret is None else get_origin(impl_ret) or impl_ret
    proto_cls = type(None) if proto_ret is None else get_origin(proto_ret) or proto_ret

    # Class-based covariance, comparing origins of generic aliases
    if isinstance(impl_cls, type) and isinstance(proto_cls, type):
        if _is_protocol(proto_cls):
            # protocol returns are not checked recursively
            return True
        return issubclass(impl_cls, proto_cls)

    # Everything else (TypeVar, Literal, etc.) is a conservative failure
    return False


def _is_union(tp: Any) -> bool:
    origin = get_origin(tp)
    return origin is Union or (_UnionType is not None and origin is _UnionType)


_UnionType = getattr(types, "UnionType", None)


if hasattr(typing, "is_protocol"):
    # https://docs.python.org/3/library/typing.html#typing.is_protocol
    def _is_protocol(tp: type) -> bool:
        return inspect.isclass(tp) and typing.is_protocol(tp)

else:

    def _is_protocol(tp: type) -> bool:
        """Detect whether 'tp' is a Protocol class itself, not a class that merely subclasses one."""
        return inspect.isclass(tp) and bool(getattr(tp, "_is_protocol", False)) and tp is not Protocol
