import asyncio
import threading


class BatchFn:
    """Batch function over an in-memory "table", records every call"""

    def __init__(self, data=None, errors=None, exc=None):
        self.data = {} if data is None else data
        self.errors = {} if errors is None else errors
        self.exc = exc
        self.calls = []

    def __call__(self, keys):
        self.calls.append(list(keys))
        if self.exc is not None:
            raise self.exc
        return [
            self.errors[key] if key in self.errors else self.data.get(key)
            for key in keys
        ]

    @property
    def fetched(self):
        return [key for call in self.calls for key in call]


class AsyncBatchFn(BatchFn):
    async def __call__(self, keys):
        await asyncio.sleep(0)
        return super().__call__(keys)


class BlockingBatchFn(BatchFn):
    """Blocks until released, to keep a batch in flight"""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.started = threading.Event()
        self.release = threading.Event()

    def __call__(self, keys):
        self.started.set()
        assert self.release.wait(5), "Batch function was not released"
        return super().__call__(keys)


class AsyncBlockingBatchFn(BatchFn):
    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.release = asyncio.Event()
        self.cancelled = False

    async def __call__(self, keys):
        try:
            await self.release.wait()
        except asyncio.CancelledError:
            self.cancelled = True
            raise
        return super().__call__(keys)


USERS = {
    1: {"id": 1, "name": "james"},
    2: {"id": 2, "name": "spock"},
    3: {"id": 3, "name": "leonard"},
    4: {"id": 4, "name": "nyota"},
    5: {"id": 5, "name": "hikaru"},
}
