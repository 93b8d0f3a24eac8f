import sys
from itertools import islice
from typing import (
    Iterable,
    Iterator,
    List,
    NewType,
    TypeVar,
    cast,
)

T = TypeVar("T")

Const = NewType("Const", object)


def const(name: str) -> Const:
    t = type(name, (object,), {})
    t.__module__ = sys._getframe(1).f_globals.get("__name__", "__main__")
    return cast(Const, t)


def chunks(items: Iterable[T], size: int) -> Iterator[List[T]]:
    """Splits items into consecutive lists of at most ``size`` elements"""
    it = iter(items)
    while True:
        chunk = list(islice(it, size))
        if not chunk:
            return
        yield chunk


__all__ = [
    "const",
    "Const",
    "chunks",
]
