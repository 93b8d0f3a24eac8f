"""Adapters for batch functions which return a mapping instead of a list

Repositories usually have a "get all entities with these ids" method which
returns ``{id: entity}``. Loaders need one item per key, in key order, so
these adapters turn the mapping into a list:

  - key present in the mapping -> found value
  - key missing from the mapping -> absent, not an error
  - function raised -> the same error for every key of the batch

"""

from functools import wraps
from typing import (
    Any,
    Awaitable,
    Callable,
    Hashable,
    List,
    Mapping,
)

from ..result import Nothing


MappingFn = Callable[[List[Hashable]], Mapping[Hashable, Any]]
AsyncMappingFn = Callable[[List[Hashable]], Awaitable[Mapping[Hashable, Any]]]


def _to_list(mapping: Mapping[Hashable, Any], keys: List[Hashable]) -> List:
    return [mapping.get(key, Nothing) for key in keys]


def from_mapping(fn: MappingFn) -> Callable[[List[Hashable]], List]:
    @wraps(fn)
    def wrapper(keys: List[Hashable]) -> List:
        return _to_list(fn(keys), keys)

    return wrapper


def from_mapping_async(
    fn: AsyncMappingFn,
) -> Callable[[List[Hashable]], Awaitable[List]]:
    @wraps(fn)
    async def wrapper(keys: List[Hashable]) -> List:
        return _to_list(await fn(keys), keys)

    return wrapper
