import asyncio

import pytest

from batchload.error import LoadCancelled, LoaderClosed, LoadTimeout
from batchload.executors.asyncio import AsyncIOExecutor
from batchload.loader_async import AsyncLoader

from .base import USERS, AsyncBatchFn, AsyncBlockingBatchFn, BatchFn


@pytest.mark.asyncio
async def test_concurrent_loads_are_batched():
    fetch = AsyncBatchFn(USERS)
    loader = AsyncLoader(fetch)

    a, b, c = await asyncio.gather(
        loader.load(1), loader.load(2), loader.load(1)
    )
    assert a is c
    assert a.get() == USERS[1]
    assert b.get() == USERS[2]
    assert fetch.calls == [[1, 2]]


@pytest.mark.asyncio
async def test_sync_batch_fn():
    fetch = BatchFn(USERS)
    loader = AsyncLoader(fetch)
    outcomes = await loader.load_many([3, 4])
    assert [o.get() for o in outcomes] == [USERS[3], USERS[4]]


@pytest.mark.asyncio
async def test_sync_batch_fn_denied():
    fetch = BatchFn(USERS)
    loader = AsyncLoader(fetch, AsyncIOExecutor(deny_sync=True))
    outcome = await loader.load(1)
    assert isinstance(outcome.error, TypeError)
    assert "returned non-awaitable object" in str(outcome.error)


@pytest.mark.asyncio
async def test_memoization():
    fetch = AsyncBatchFn(USERS)
    loader = AsyncLoader(fetch)
    first = await loader.load(1)
    second = await loader.load(1)
    assert first is second
    await loader.load_many([1, 2, 2])
    assert fetch.calls == [[1], [2]]


@pytest.mark.asyncio
async def test_load_many_order():
    fetch = AsyncBatchFn({"k1": 1, "k2": 2, "k3": 3})
    loader = AsyncLoader(fetch)
    outcomes = await loader.load_many(["k1", "k2", "k1", "k3"])
    assert [o.value for o in outcomes] == [1, 2, 1, 3]
    assert fetch.calls == [["k1", "k2", "k3"]]


@pytest.mark.asyncio
async def test_load_many_together_with_load():
    fetch = AsyncBatchFn(USERS)
    loader = AsyncLoader(fetch)
    many, one = await asyncio.gather(
        loader.load_many([1, 2]), loader.load(3)
    )
    assert [o.get() for o in many] == [USERS[1], USERS[2]]
    assert one.get() == USERS[3]
    assert fetch.calls == [[1, 2, 3]]


@pytest.mark.asyncio
async def test_error_isolation():
    error = RuntimeError("B is broken")
    fetch = AsyncBatchFn({"A": 1, "C": 3}, errors={"B": error})
    loader = AsyncLoader(fetch)
    a, b, c = await asyncio.gather(
        loader.load("A"), loader.load("B"), loader.load("C")
    )
    assert a.value == 1
    assert b.error is error
    assert c.value == 3
    assert fetch.calls == [["A", "B", "C"]]


@pytest.mark.asyncio
async def test_whole_batch_error():
    error = ConnectionError("database is unavailable")
    fetch = AsyncBatchFn(USERS, exc=error)
    loader = AsyncLoader(fetch)
    outcomes = await loader.load_many([1, 2])
    assert [o.error for o in outcomes] == [error, error]

    # no retries
    assert (await loader.load(1)).error is error
    assert fetch.calls == [[1, 2]]


@pytest.mark.asyncio
async def test_not_found_differs_from_error():
    error = LookupError("index is corrupted")
    fetch = AsyncBatchFn(USERS, errors={8: error})
    loader = AsyncLoader(fetch)
    missing, failed = await loader.load_many([7, 8])
    assert missing.error is None and not missing.found
    assert failed.error is error and not failed.found


@pytest.mark.asyncio
async def test_capacity():
    data = {i: str(i) for i in range(5)}
    fetch = AsyncBatchFn(data)
    loader = AsyncLoader(fetch, capacity=2)
    outcomes = await asyncio.gather(*[loader.load(i) for i in range(5)])

    assert [o.value for o in outcomes] == [str(i) for i in range(5)]
    assert len(fetch.calls) >= 3
    assert all(len(call) <= 2 for call in fetch.calls)
    assert sorted(fetch.fetched) == list(range(5))


@pytest.mark.asyncio
async def test_capacity_load_many():
    data = {i: i for i in range(2 * 3 + 1)}
    fetch = AsyncBatchFn(data)
    loader = AsyncLoader(fetch, capacity=3)
    outcomes = await loader.load_many(range(7))
    assert [o.value for o in outcomes] == list(range(7))
    assert fetch.calls == [[0, 1, 2], [3, 4, 5], [6]]


@pytest.mark.asyncio
async def test_prime():
    fetch = AsyncBatchFn(USERS)
    loader = AsyncLoader(fetch)
    loader.prime(1, "primed")
    assert (await loader.load(1)).value == "primed"
    assert fetch.calls == []


@pytest.mark.asyncio
async def test_explicit_dispatch():
    fetch = AsyncBlockingBatchFn(USERS)
    loader = AsyncLoader(fetch)
    task = asyncio.create_task(loader.load(1))
    await asyncio.sleep(0)
    loader.dispatch()
    loader.dispatch()
    fetch.release.set()
    assert (await task).get() == USERS[1]
    assert fetch.calls == [[1]]


@pytest.mark.asyncio
async def test_in_flight_key_is_not_fetched_twice():
    fetch = AsyncBlockingBatchFn(USERS)
    loader = AsyncLoader(fetch)
    first = asyncio.create_task(loader.load(1))
    await asyncio.sleep(0.01)
    second = asyncio.create_task(loader.load(1))
    await asyncio.sleep(0.01)
    fetch.release.set()

    assert (await first) is (await second)
    assert fetch.calls == [[1]]


@pytest.mark.asyncio
async def test_cancelled_caller_does_not_affect_others():
    fetch = AsyncBlockingBatchFn(USERS)
    loader = AsyncLoader(fetch)
    first = asyncio.create_task(loader.load(1))
    second = asyncio.create_task(loader.load(1))
    await asyncio.sleep(0.01)

    first.cancel()
    fetch.release.set()
    assert (await second).get() == USERS[1]
    with pytest.raises(asyncio.CancelledError):
        await first
    assert not fetch.cancelled


@pytest.mark.asyncio
async def test_close_before_dispatch():
    fetch = AsyncBatchFn(USERS)
    loader = AsyncLoader(fetch)
    task = asyncio.create_task(loader.load(1))
    await asyncio.sleep(0)
    loader.close()

    outcome = await task
    assert isinstance(outcome.error, LoadCancelled)
    await asyncio.sleep(0.01)
    assert fetch.calls == []

    with pytest.raises(LoaderClosed):
        await loader.load(1)


@pytest.mark.asyncio
async def test_close_with_batch_in_flight():
    fetch = AsyncBlockingBatchFn(USERS)
    loader = AsyncLoader(fetch)
    task = asyncio.create_task(loader.load(1))
    await asyncio.sleep(0.01)
    loader.close()
    assert isinstance((await task).error, LoadCancelled)

    # dispatched batch runs to completion, results are dropped
    fetch.release.set()
    await asyncio.sleep(0.01)
    assert fetch.calls == [[1]]
    assert not fetch.cancelled
    assert loader._memo == {}


@pytest.mark.asyncio
async def test_timeout():
    fetch = AsyncBlockingBatchFn(USERS)
    loader = AsyncLoader(fetch, timeout=0.01)
    outcomes = await loader.load_many([1, 2])
    assert all(isinstance(o.error, LoadTimeout) for o in outcomes)
    await asyncio.sleep(0)
    assert fetch.cancelled

    assert (await loader.load(1)) is outcomes[0]
    assert fetch.calls == []


@pytest.mark.asyncio
async def test_no_timeout_when_fast_enough():
    fetch = AsyncBatchFn(USERS)
    loader = AsyncLoader(fetch, timeout=5)
    assert (await loader.load(2)).get() == USERS[2]
