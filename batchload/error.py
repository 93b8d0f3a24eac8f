__all__ = [
    "LoaderError",
    "LoaderNotConfigured",
    "LoaderClosed",
    "BatchResultError",
    "LoadCancelled",
    "LoadTimeout",
]


class LoaderError(Exception):
    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class LoaderNotConfigured(LoaderError):
    """Loader was requested from a missing registry or by an unknown name.

    This is a wiring defect, never a data condition, so it is raised right
    away instead of being delivered as an outcome.
    """


class LoaderClosed(LoaderNotConfigured):
    """Loader was used after its unit of work has ended"""


class BatchResultError(LoaderError, TypeError):
    """Batch function returned something which can not be matched to keys"""


class LoadCancelled(LoaderError):
    """Key was not resolved because its unit of work was cancelled"""


class LoadTimeout(LoadCancelled):
    pass
