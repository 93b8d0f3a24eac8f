"""
batchload.registry
~~~~~~~~~~~~~~~~~~

Loaders must never outlive the unit of work (request, job, task) they were
created for, otherwise memoized entities leak between unrelated requests.
:py:class:`Loaders` is a long-lived definition of batch functions, it builds
a new :py:class:`Registry` with fresh loaders for every unit of work.

.. code-block:: python

    loaders = Loaders({"user": fetch_users, "post": fetch_posts},
                      executor=AsyncIOExecutor())

    async def handle(request):
        async with loaders.scope() as registry:
            return await render(request, registry)

    async def render(request, registry):
        user = get_loader(registry, "user")
        outcome = await user.load(request.user_id)

Registry is passed explicitly down the call chain, there is no hidden
global or context-local state.

"""

from collections.abc import Mapping
from typing import (
    Any,
    Dict,
    Iterator,
    Mapping as MappingType,
    Optional,
    Type,
)

from .error import LoaderNotConfigured
from .executors.base import BaseAsyncExecutor, SyncAsyncExecutor
from .executors.sync import SyncExecutor
from .loader import DEFAULT_CAPACITY, BaseLoader, BatchFn, Loader
from .loader_async import AsyncLoader
from .result import Nothing
from .telemetry.prometheus import LoaderMetrics


class Registry(Mapping):
    """Loaders of one unit of work, by entity name"""

    def __init__(self, loaders: MappingType[str, BaseLoader]) -> None:
        self.__loaders = dict(loaders)

    def __len__(self) -> int:
        return len(self.__loaders)

    def __iter__(self) -> Iterator[str]:
        return iter(self.__loaders)

    def __contains__(self, name: object) -> bool:
        return name in self.__loaders

    def __getitem__(self, name: str) -> BaseLoader:
        try:
            return self.__loaders[name]
        except KeyError:
            raise LoaderNotConfigured(
                "Loader {!r} is not configured, available loaders: "
                "{}".format(name, ", ".join(map(repr, self.__loaders)))
            )

    def get(self, name: str, default: Any = Nothing) -> Any:
        """Raises :py:class:`~batchload.error.LoaderNotConfigured` for unknown
        name unless default is given
        """
        if default is Nothing or name in self.__loaders:
            return self[name]
        return default

    def __repr__(self) -> str:
        return "<{}: {}>".format(
            self.__class__.__name__, ", ".join(map(repr, self.__loaders))
        )

    @property
    def closed(self) -> bool:
        return all(loader.closed for loader in self.__loaders.values())

    def close(self) -> None:
        """Ends the unit of work: releases waiters of unresolved keys with
        :py:class:`~batchload.error.LoadCancelled` and forbids further loads
        """
        for loader in self.__loaders.values():
            loader.close()

    def __enter__(self) -> "Registry":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    async def __aenter__(self) -> "Registry":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        self.close()


class Loaders:
    """Definition of batch functions, shared by all units of work

    Loader type is chosen by executor: :py:class:`AsyncLoader` for
    asyncio executors and :py:class:`Loader` for others.

    :param fetchers: batch function by entity name
    :param executor: executor to run batch functions, shared by loaders
    :param capacity: max number of keys in one batch
    :param timeout: seconds before an unresolved key times out
    :param metrics: enables prometheus metrics
    """

    def __init__(
        self,
        fetchers: MappingType[str, BatchFn],
        *,
        executor: Optional[SyncAsyncExecutor] = None,
        capacity: int = DEFAULT_CAPACITY,
        timeout: Optional[float] = None,
        metrics: Optional[LoaderMetrics] = None,
    ) -> None:
        if capacity < 1:
            raise ValueError(
                "Batch capacity must be a positive number, {!r} given".format(
                    capacity
                )
            )
        self.fetchers: Dict[str, BatchFn] = dict(fetchers)
        self.executor = executor or SyncExecutor()
        self.capacity = capacity
        self.timeout = timeout
        self.metrics = metrics

    @property
    def loader_cls(self) -> Type[BaseLoader]:
        if isinstance(self.executor, BaseAsyncExecutor):
            return AsyncLoader
        return Loader

    def new(self) -> Registry:
        loader_cls = self.loader_cls
        return Registry(
            {
                name: loader_cls(
                    fetch,
                    self.executor,  # type: ignore[arg-type]
                    name=name,
                    capacity=self.capacity,
                    timeout=self.timeout,
                    metrics=self.metrics,
                )
                for name, fetch in self.fetchers.items()
            }
        )

    def scope(self) -> Registry:
        """Same as :py:meth:`new`, meant to be used in a ``with`` or
        ``async with`` statement, which closes the registry on exit
        """
        return self.new()


def get_loader(registry: Optional[Registry], name: str) -> BaseLoader:
    if registry is None:
        raise LoaderNotConfigured(
            "Loaders registry is not attached to the current unit of work, "
            "can not load {!r}".format(name)
        )
    return registry[name]
