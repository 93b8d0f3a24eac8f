import inspect
from functools import wraps
from typing import Any, Callable, List, Optional

from sentry_sdk import start_span

from ..loader import BatchFn, fetch_name


def _start_span(name: str, keys: List) -> Any:
    span = start_span(op="batchload.fetch", description=name)
    span.set_tag("batchload.loader", name)
    span.set_data("batchload.batch_size", len(keys))
    return span


def traced(fetch: BatchFn, name: Optional[str] = None) -> Callable:
    """Wraps batch function to report every call as a Sentry span

    Works with both regular and coroutine functions.
    """
    span_name = name or fetch_name(fetch)

    if inspect.iscoroutinefunction(fetch) or inspect.iscoroutinefunction(
        getattr(type(fetch), "__call__", None)
    ):

        @wraps(fetch)
        async def async_wrapper(keys: List) -> Any:
            with _start_span(span_name, keys):
                return await fetch(keys)  # type: ignore[misc]

        return async_wrapper

    @wraps(fetch)
    def wrapper(keys: List) -> Any:
        with _start_span(span_name, keys):
            return fetch(keys)

    return wrapper
