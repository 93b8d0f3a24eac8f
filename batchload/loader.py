"""
batchload.loader
~~~~~~~~~~~~~~~~

Loader collects keys requested by callers, sends them to the batch function
in as few calls as possible and remembers what was returned, so every key is
fetched at most once during the loader's lifetime.

Loader is meant to live as long as one unit of work (usually one request),
see :py:mod:`batchload.registry` for how to get a fresh set of loaders for
each unit of work.

Example:

.. code-block:: python

    def fetch_users(ids):
        users = {u.id: u for u in db.query(User).filter(User.id.in_(ids))}
        return [users.get(i) for i in ids]

    loader = Loader(fetch_users)
    author = loader.load(post.author_id)
    editor = loader.load(post.editor_id)
    # one query for both users
    print(author().get(), editor().get())

"""

import time
import threading
from concurrent.futures import (
    CancelledError as FutureCancelledError,
    Future,
    TimeoutError as FutureTimeoutError,
)
from functools import partial
from typing import (
    Any,
    Callable,
    Dict,
    Hashable,
    Iterable,
    List,
    Optional,
    Sequence,
    Tuple,
    Union,
)

from .error import LoadCancelled, LoaderClosed, LoadTimeout
from .executors.base import BaseExecutor, BaseSyncExecutor, SubmitRes
from .executors.sync import SyncExecutor
from .queue import DispatchQueue, PendingSlot
from .result import Outcome, to_outcome, to_outcomes
from .telemetry.prometheus import LoaderMetrics


DEFAULT_CAPACITY = 100

BatchFn = Callable[[List[Any]], Sequence[Any]]

Found = Union[Outcome, PendingSlot]


def fetch_name(fetch: Callable) -> str:
    func = getattr(fetch, "func", fetch)
    return getattr(func, "__name__", None) or type(func).__name__


class BaseLoader:
    executor: BaseExecutor

    def __init__(
        self,
        fetch: BatchFn,
        executor: BaseExecutor,
        *,
        name: Optional[str] = None,
        capacity: int = DEFAULT_CAPACITY,
        timeout: Optional[float] = None,
        metrics: Optional[LoaderMetrics] = None,
    ) -> None:
        self.fetch = fetch
        self.executor = executor
        self.name = name or fetch_name(fetch)
        self.timeout = timeout
        self.metrics = metrics
        self._queue = DispatchQueue(capacity)
        self._memo: Dict[Hashable, Outcome] = {}
        self._closed = False

    def __repr__(self) -> str:
        return "<{}: name={!r}, capacity={}>".format(
            self.__class__.__name__, self.name, self.capacity
        )

    @property
    def capacity(self) -> int:
        return self._queue.capacity

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        raise NotImplementedError(type(self))

    def _new_future(self) -> Any:
        raise NotImplementedError(type(self))

    def _set_outcome(self, slot: PendingSlot, outcome: Outcome) -> None:
        if not slot.future.done():
            slot.future.set_result(outcome)

    def _check_open(self) -> None:
        if self._closed:
            raise LoaderClosed(
                "Loader {!r} is closed, its unit of work has already "
                "ended".format(self.name)
            )

    def _lookup(self, key: Hashable) -> Found:
        outcome = self._memo.get(key)
        if outcome is not None:
            return outcome
        slot = self._queue.lookup(key)
        if slot is None:
            slot = self._queue.add(key, self._new_future())
        return slot

    def _enqueue(
        self, keys: Iterable[Hashable]
    ) -> Tuple[List[Found], List[List[PendingSlot]]]:
        found = []
        batches = []
        hits = 0
        for key in keys:
            item = self._lookup(key)
            if isinstance(item, Outcome):
                hits += 1
            found.append(item)
            if self._queue.full:
                batches.extend(self._queue.take())
        if self.metrics is not None:
            self.metrics.track_lookup(self.name, hits, len(found) - hits)
        return found, batches

    def _prime(self, key: Hashable, value: Any) -> None:
        if key in self._memo or self._queue.lookup(key) is not None:
            return
        self._memo[key] = to_outcome(value)

    def _batch_outcomes(
        self, batch: List[PendingSlot], future: SubmitRes
    ) -> List[Outcome]:
        keys = [slot.key for slot in batch]
        try:
            return to_outcomes(keys, future.result())
        except FutureCancelledError:
            error: BaseException = LoadCancelled(
                "Batch function call was cancelled"
            )
        except Exception as exc:
            error = exc
        return [Outcome.fail(error)] * len(batch)

    def _resolve(
        self, batch: List[PendingSlot], outcomes: List[Outcome]
    ) -> None:
        if self._closed:
            # unit of work has ended, waiters were already released
            return
        for slot, outcome in zip(batch, outcomes):
            outcome = self._memo.setdefault(slot.key, outcome)
            self._set_outcome(slot, outcome)
        self._queue.done(batch)

    def _cancel(self) -> None:
        self._closed = True
        error = LoadCancelled(
            "Loader {!r} was closed before key was resolved".format(self.name)
        )
        outcome = Outcome.fail(error)
        for slot in self._queue.clear():
            self._set_outcome(slot, outcome)

    def _track_batch(self, batch: List[PendingSlot]) -> None:
        if self.metrics is not None:
            self.metrics.track_batch(self.name, len(batch))

    def _track_fetch(self, start_time: float) -> None:
        if self.metrics is not None:
            self.metrics.track_fetch(
                self.name, time.perf_counter() - start_time
            )


class Thunk:
    """Handle for a key requested from :py:class:`Loader`

    Calling it dispatches keys which are still pending and blocks until the
    key is resolved.
    """

    __slots__ = ("_loader", "_found")

    def __init__(self, loader: "Loader", found: Found) -> None:
        self._loader = loader
        self._found = found

    def __repr__(self) -> str:
        if isinstance(self._found, Outcome):
            return "<Thunk {!r}>".format(self._found)
        return "<Thunk key={!r}>".format(self._found.key)

    def result(self) -> Outcome:
        return self._result(None)

    __call__ = result

    def _result(self, deadline: Optional[float]) -> Outcome:
        if isinstance(self._found, Outcome):
            return self._found
        return self._loader._wait(self._found, deadline)


class ManyThunk:
    """Handle for keys requested from :py:meth:`Loader.load_many`

    Loader timeout applies to all keys together, not to each of them.
    """

    __slots__ = ("_loader", "_thunks")

    def __init__(self, loader: "Loader", thunks: List[Thunk]) -> None:
        self._loader = loader
        self._thunks = thunks

    def __len__(self) -> int:
        return len(self._thunks)

    def result(self) -> List[Outcome]:
        deadline = self._loader._deadline()
        return [thunk._result(deadline) for thunk in self._thunks]

    __call__ = result


class Loader(BaseLoader):
    """Loader for synchronous code

    Safe to share between threads of one unit of work. :py:meth:`load` never
    blocks, only calling the returned :py:class:`Thunk` does. A batch which
    reaches ``capacity`` is submitted right away to an executor running in
    other threads, with :py:class:`~batchload.executors.sync.SyncExecutor`
    it waits for the next thunk call or :py:meth:`dispatch` instead.

    :param fetch: batch function, gets a list of unique keys and returns a
                  sequence with one item per key
    :param executor: :py:class:`~batchload.executors.sync.SyncExecutor`
                     (default) calls batch function in the waiting thread,
                     :py:class:`~batchload.executors.threads.ThreadsExecutor`
                     calls it in a thread pool
    :param capacity: max number of keys in one batch
    :param timeout: seconds to wait for a key before it resolves to
                    :py:class:`~batchload.error.LoadTimeout`
    """

    executor: BaseSyncExecutor

    def __init__(
        self,
        fetch: BatchFn,
        executor: Optional[BaseSyncExecutor] = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(fetch, executor or SyncExecutor(), **kwargs)
        self._lock = threading.Lock()
        self._inline = isinstance(self.executor, SyncExecutor)
        # full batches taken from the queue, waiting for the next dispatch
        self._ready: List[List[PendingSlot]] = []

    def _new_future(self) -> Future:
        return Future()

    def load(self, key: Hashable) -> Thunk:
        with self._lock:
            self._check_open()
            (found,), batches = self._enqueue([key])
            batches = self._schedule(batches)
        self._submit(batches)
        return Thunk(self, found)

    def load_many(self, keys: Iterable[Hashable]) -> ManyThunk:
        with self._lock:
            self._check_open()
            found, batches = self._enqueue(keys)
            batches = self._schedule(batches)
        self._submit(batches)
        return ManyThunk(self, [Thunk(self, item) for item in found])

    def prime(self, key: Hashable, value: Any) -> None:
        with self._lock:
            self._check_open()
            self._prime(key, value)

    def dispatch(self) -> None:
        """Sends every pending key to the batch function"""
        with self._lock:
            batches = self._ready + self._queue.take()
            self._ready = []
        self._submit(batches)

    def close(self) -> None:
        with self._lock:
            if not self._closed:
                self._ready = []
                self._cancel()

    def _schedule(
        self, batches: List[List[PendingSlot]]
    ) -> List[List[PendingSlot]]:
        if self._inline:
            self._ready.extend(batches)
            return []
        return batches

    def _submit(self, batches: List[List[PendingSlot]]) -> None:
        # never called under the lock, SyncExecutor runs batch function and
        # done callback right here
        for batch in batches:
            self._track_batch(batch)
            start_time = time.perf_counter()
            try:
                future = self.executor.submit(
                    self.fetch, [slot.key for slot in batch]
                )
            except Exception as exc:
                with self._lock:
                    self._resolve(batch, [Outcome.fail(exc)] * len(batch))
                continue
            future.add_done_callback(partial(self._done, batch, start_time))

    def _done(
        self, batch: List[PendingSlot], start_time: float, future: SubmitRes
    ) -> None:
        self._track_fetch(start_time)
        outcomes = self._batch_outcomes(batch, future)
        with self._lock:
            self._resolve(batch, outcomes)

    def _deadline(self) -> Optional[float]:
        if self.timeout is None:
            return None
        return time.monotonic() + self.timeout

    def _wait(
        self, slot: PendingSlot, deadline: Optional[float] = None
    ) -> Outcome:
        if not slot.future.done():
            self.dispatch()
        if deadline is None:
            deadline = self._deadline()
        timeout = None
        if deadline is not None:
            timeout = max(deadline - time.monotonic(), 0)
        try:
            return slot.future.result(timeout=timeout)
        except FutureTimeoutError:
            with self._lock:
                if not slot.future.done():
                    outcome = Outcome.fail(
                        LoadTimeout(
                            "Key {!r} was not resolved in {} seconds".format(
                                slot.key, self.timeout
                            )
                        )
                    )
                    if not self._closed:
                        self._memo.setdefault(slot.key, outcome)
                    slot.future.set_result(outcome)
            return slot.future.result()
