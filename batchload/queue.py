from typing import (
    Any,
    Dict,
    Hashable,
    Iterator,
    List,
    Optional,
)

from .utils import chunks


class PendingSlot:
    """Single-assignment result container shared by every caller which
    requested the same key before it was resolved.

    ``future`` is a ``concurrent.futures.Future`` or an ``asyncio.Future``,
    depending on the loader which owns the queue.
    """

    __slots__ = ("key", "future")

    def __init__(self, key: Hashable, future: Any) -> None:
        self.key = key
        self.future = future

    def __repr__(self) -> str:
        return "<{}[{!r}]>".format(self.__class__.__name__, self.key)


class DispatchQueue:
    """
    Keeps keys which were requested but are not resolved yet.

    Keys live in one of two states:

      - pending: waiting for the next dispatch, in the order they were
        first requested
      - in flight: taken by a dispatch, waiting for the batch function

    A key is never present in both states, and never present twice in the
    same state, this is how duplicate requests collapse into one fetch.
    """

    def __init__(self, capacity: int) -> None:
        if capacity < 1:
            raise ValueError(
                "Batch capacity must be a positive number, {!r} given".format(
                    capacity
                )
            )
        self.capacity = capacity
        self._pending: Dict[Hashable, PendingSlot] = {}
        self._in_flight: Dict[Hashable, PendingSlot] = {}

    def __len__(self) -> int:
        return len(self._pending)

    def __bool__(self) -> bool:
        return bool(self._pending)

    def __iter__(self) -> Iterator[PendingSlot]:
        yield from self._pending.values()
        yield from self._in_flight.values()

    @property
    def full(self) -> bool:
        return len(self._pending) >= self.capacity

    def lookup(self, key: Hashable) -> Optional[PendingSlot]:
        slot = self._pending.get(key)
        if slot is None:
            slot = self._in_flight.get(key)
        return slot

    def add(self, key: Hashable, future: Any) -> PendingSlot:
        assert self.lookup(key) is None, "Key {!r} is already queued".format(
            key
        )
        slot = self._pending[key] = PendingSlot(key, future)
        return slot

    def take(self) -> List[List[PendingSlot]]:
        """Moves every pending key in flight, split into batches of at most
        ``capacity`` keys
        """
        if not self._pending:
            return []
        pending = self._pending
        self._pending = {}
        self._in_flight.update(pending)
        return list(chunks(pending.values(), self.capacity))

    def done(self, batch: List[PendingSlot]) -> None:
        for slot in batch:
            if self._in_flight.get(slot.key) is slot:
                del self._in_flight[slot.key]

    def clear(self) -> List[PendingSlot]:
        slots = list(self)
        self._pending.clear()
        self._in_flight.clear()
        return slots
