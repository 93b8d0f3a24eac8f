from concurrent.futures import (
    Executor,
    Future,
)
from typing import (
    Any,
    Callable,
)

from batchload.executors.base import BaseSyncExecutor


class ThreadsExecutor(BaseSyncExecutor):
    """Runs batch functions in a pool, so several loaders (or several
    batches of one loader) can be fetched in parallel
    """

    def __init__(self, pool: Executor):
        self._pool = pool

    def submit(self, fn: Callable, *args: Any, **kwargs: Any) -> Future:
        return self._pool.submit(fn, *args, **kwargs)
