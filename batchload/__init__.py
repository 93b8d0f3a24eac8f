from .result import Outcome, Nothing, unzip
from .loader import Loader, Thunk, ManyThunk
from .loader_async import AsyncLoader
from .registry import Loaders, Registry, get_loader

__version__ = '0.1.0'

__all__ = [
    "Outcome",
    "Nothing",
    "unzip",
    "Loader",
    "Thunk",
    "ManyThunk",
    "AsyncLoader",
    "Loaders",
    "Registry",
    "get_loader",
]
