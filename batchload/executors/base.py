import abc
from typing import (
    Any,
    Callable,
    Protocol,
    Union,
)


class SubmitRes(Protocol):
    def result(self) -> Any: ...

    def add_done_callback(self, fn: Callable[[Any], Any]) -> None: ...


class BaseExecutor(abc.ABC):
    @abc.abstractmethod
    def submit(self, fn: Callable, *args: Any, **kwargs: Any) -> SubmitRes:
        raise NotImplementedError


class BaseSyncExecutor(BaseExecutor):
    """Runs batch functions for loaders which are used from plain
    (possibly multi-threaded) code. Returned futures must be thread-safe.
    """


class BaseAsyncExecutor(BaseExecutor):
    """Runs batch functions as tasks of the running event loop"""


SyncAsyncExecutor = Union[BaseSyncExecutor, BaseAsyncExecutor]
