from __future__ import annotations

from typing import Annotated, Any, get_args, get_origin


class Inject:
    """Marks an attribute or parameter for injection.

    Use it as `typing.Annotated` metadata, either bare or instantiated:

      db: Annotated[Database, Inject]
      db: Annotated[Database, Inject()]
      db: Annotated[Database, Inject("primary_db")]  # resolve by another token

    """

    __slots__ = ("token",)

    def __init__(self, token: Any = None) -> None:
        self.token = token

    def __repr__(self) -> str:
        return f"Inject({self.token!r})" if self.token is not None else "Inject()"


def strip_annotated(tp: Any) -> tuple[Any, tuple[Any, ...]]:
    """Unwrap nested `Annotated` layers, returning the base type and all metadata."""
    metadata: tuple[Any, ...] = ()
    while get_origin(tp) is Annotated:
        base, *extras = get_args(tp)
        metadata += tuple(extras)
        tp = base
    return tp, metadata


def find_marker(metadata: tuple[Any, ...]) -> Inject | None:
    for meta in metadata:
        if meta is Inject:
            return Inject()
        if isinstance(meta, Inject):
            return meta
    return None
