import inspect
from asyncio import (
    Task,
    get_running_loop,
)
from typing import Any, Awaitable, Callable

from batchload.executors.base import BaseAsyncExecutor


class AsyncIOExecutor(BaseAsyncExecutor):
    """AsyncIOExecutor is an executor that uses asyncio event loop to run
    batch functions.

    By default it allows to run both synchronous and asynchronous functions.
    To deny synchronous functions set deny_sync to True.

    :param deny_sync: deny synchronous functions -
                      raise TypeError if a result is not awaitable
    """

    def __init__(self, deny_sync: bool = False) -> None:
        self.deny_sync = deny_sync

    async def _wrap_result(self, result: Any) -> Any:
        return result

    async def _wrap_awaitable(self, awaitable: Awaitable) -> Any:
        return await awaitable

    def submit(self, fn: Callable, *args: Any, **kwargs: Any) -> Task:
        loop = get_running_loop()

        coro = fn(*args, **kwargs)
        if inspect.iscoroutine(coro):
            return loop.create_task(coro)
        elif inspect.isawaitable(coro):
            return loop.create_task(self._wrap_awaitable(coro))

        if self.deny_sync:
            raise TypeError(
                "{!r} returned non-awaitable object {!r}".format(fn, coro)
            )
        return loop.create_task(self._wrap_result(coro))
