from typing import (
    Any,
    Callable,
    Generic,
    Optional,
    TypeVar,
)

from batchload.executors.base import BaseSyncExecutor


T = TypeVar("T")


class FutureLike(Generic[T]):
    """Already completed future, holds either result or exception"""

    def __init__(
        self,
        result: Optional[T] = None,
        exception: Optional[BaseException] = None,
    ) -> None:
        self._result = result
        self._exception = exception

    def done(self) -> bool:
        return True

    def result(self) -> Optional[T]:
        if self._exception is not None:
            raise self._exception
        return self._result

    def exception(self) -> Optional[BaseException]:
        return self._exception

    def add_done_callback(self, fn: Callable[["FutureLike"], Any]) -> None:
        fn(self)


class SyncExecutor(BaseSyncExecutor):
    """Calls batch function right away, in the thread which dispatches"""

    def submit(self, fn: Callable, *args: Any, **kwargs: Any) -> FutureLike:
        try:
            return FutureLike(fn(*args, **kwargs))
        except Exception as exc:
            return FutureLike(exception=exc)
