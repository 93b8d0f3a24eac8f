"""
batchload.result
~~~~~~~~~~~~~~~~

Every key requested from a loader resolves to an :py:class:`Outcome`. An
outcome is in one of three states:

  - found: entity exists, ``outcome.value`` holds it
  - absent: entity does not exist, ``outcome.value`` is
    :py:const:`Nothing` and there is no error
  - failed: ``outcome.error`` holds the exception reported by the batch
    function (or the one raised by it for the whole batch)

Absent and failed are intentionally different states: "not found" is a
regular answer from the backing store, while an error means the store could
not answer at all.

"""

import typing as t

from .utils import const
from .error import BatchResultError


Nothing = const("Nothing")


class Outcome:
    __slots__ = ("value", "error")

    def __init__(
        self, value: t.Any = Nothing, error: t.Optional[BaseException] = None
    ) -> None:
        self.value = value
        self.error = error

    @classmethod
    def ok(cls, value: t.Any) -> "Outcome":
        if value is None:
            return ABSENT
        return cls(value)

    @classmethod
    def fail(cls, error: BaseException) -> "Outcome":
        return cls(Nothing, error)

    @property
    def found(self) -> bool:
        return self.error is None and self.value is not Nothing

    @property
    def failed(self) -> bool:
        return self.error is not None

    def get(self) -> t.Any:
        """Returns found value, ``None`` for absent entity, or raises error"""
        if self.error is not None:
            raise self.error
        if self.value is Nothing:
            return None
        return self.value

    def __eq__(self, other: t.Any) -> bool:
        if not isinstance(other, Outcome):
            return NotImplemented
        return self.value == other.value and self.error is other.error

    def __repr__(self) -> str:
        if self.error is not None:
            return "<Outcome error={!r}>".format(self.error)
        if self.value is Nothing:
            return "<Outcome absent>"
        return "<Outcome value={!r}>".format(self.value)


ABSENT = Outcome()


def to_outcome(item: t.Any) -> Outcome:
    if isinstance(item, Outcome):
        return item
    elif isinstance(item, BaseException):
        return Outcome.fail(item)
    elif item is Nothing:
        return ABSENT
    return Outcome.ok(item)


def to_outcomes(keys: t.Sequence, result: t.Any) -> t.List[Outcome]:
    """Matches batch function result to the dispatched keys

    Result must be a sequence of the same length as ``keys``, where item at
    position ``i`` belongs to ``keys[i]``.
    """
    if not isinstance(result, t.Sequence) or isinstance(result, (str, bytes)):
        raise BatchResultError(
            "Batch function must return a sequence with one item per key, "
            "{!r} returned instead".format(type(result).__name__)
        )
    if len(result) != len(keys):
        raise BatchResultError(
            "Batch function returned {} items for {} keys, "
            "keys: {!r}".format(len(result), len(keys), list(keys))
        )
    return [to_outcome(item) for item in result]


def unzip(
    outcomes: t.Iterable[Outcome],
) -> t.Tuple[t.List[t.Any], t.List[t.Optional[BaseException]]]:
    """Splits outcomes into positionally aligned values and errors

    Absent and failed outcomes give ``None`` in values.
    """
    values = []
    errors = []
    for outcome in outcomes:
        if outcome.error is not None:
            values.append(None)
        else:
            values.append(None if outcome.value is Nothing else outcome.value)
        errors.append(outcome.error)
    return values, errors
