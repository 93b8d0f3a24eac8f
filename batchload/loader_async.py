import time
import asyncio
from typing import (
    Any,
    Hashable,
    Iterable,
    List,
    Optional,
    Set,
)

from .error import LoadCancelled, LoadTimeout
from .executors.asyncio import AsyncIOExecutor
from .executors.base import BaseAsyncExecutor
from .loader import BaseLoader, BatchFn, Found
from .queue import PendingSlot
from .result import Outcome, to_outcomes


class AsyncLoader(BaseLoader):
    """Loader for asyncio code

    Keys requested during one iteration of the event loop are sent to the
    batch function together, on the next iteration. Batch is sent right away
    when it reaches ``capacity`` keys.

    Batch function can be a coroutine function or, unless executor was
    created with ``deny_sync=True``, a regular function.
    """

    executor: BaseAsyncExecutor

    def __init__(
        self,
        fetch: BatchFn,
        executor: Optional[BaseAsyncExecutor] = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(fetch, executor or AsyncIOExecutor(), **kwargs)
        self._handle: Optional[asyncio.Handle] = None
        self._tasks: Set[asyncio.Task] = set()

    def _new_future(self) -> asyncio.Future:
        return asyncio.get_running_loop().create_future()

    async def load(self, key: Hashable) -> Outcome:
        (found,) = self._request([key])
        return await self._wait(found)

    async def load_many(self, keys: Iterable[Hashable]) -> List[Outcome]:
        found = self._request(keys)
        return [await self._wait(item) for item in found]

    def prime(self, key: Hashable, value: Any) -> None:
        self._check_open()
        self._prime(key, value)

    def dispatch(self) -> None:
        """Sends every pending key to the batch function without waiting
        for the next iteration of the event loop
        """
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None
        self._dispatch(self._queue.take())

    def close(self) -> None:
        if self._closed:
            return
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None
        self._cancel()

    def _request(self, keys: Iterable[Hashable]) -> List[Found]:
        # no awaits here, so lookups and enqueues of concurrent callers
        # can not interleave
        self._check_open()
        found, batches = self._enqueue(keys)
        self._dispatch(batches)
        if self._queue and self._handle is None:
            loop = asyncio.get_running_loop()
            self._handle = loop.call_soon(self._dispatch_pending)
        return found

    async def _wait(self, found: Found) -> Outcome:
        if isinstance(found, Outcome):
            return found
        # shield: cancelled caller must not cancel the slot of other callers
        return await asyncio.shield(found.future)

    def _dispatch_pending(self) -> None:
        self._handle = None
        if not self._closed:
            self._dispatch(self._queue.take())

    def _dispatch(self, batches: List[List[PendingSlot]]) -> None:
        loop = asyncio.get_running_loop()
        for batch in batches:
            self._track_batch(batch)
            task = loop.create_task(self._run(batch))
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)

    async def _run(self, batch: List[PendingSlot]) -> None:
        keys = [slot.key for slot in batch]
        start_time = time.perf_counter()
        try:
            outcomes = await self._fetch(keys)
        except asyncio.CancelledError:
            self._resolve(
                batch,
                [Outcome.fail(LoadCancelled("Batch task was cancelled"))]
                * len(batch),
            )
            raise
        except Exception as exc:
            outcomes = [Outcome.fail(exc)] * len(batch)
        self._track_fetch(start_time)
        self._resolve(batch, outcomes)

    async def _fetch(self, keys: List[Hashable]) -> List[Outcome]:
        task = self.executor.submit(self.fetch, keys)
        if self.timeout is None:
            return to_outcomes(keys, await task)

        done, _ = await asyncio.wait([task], timeout=self.timeout)
        if not done:
            task.cancel()
            error = LoadTimeout(
                "Batch function did not complete in {} seconds".format(
                    self.timeout
                )
            )
            return [Outcome.fail(error)] * len(keys)
        return to_outcomes(keys, task.result())
