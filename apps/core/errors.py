"""Error taxonomy for the event search core."""


class SearchError(Exception):
    """Base class for search core failures."""


class ValidationError(SearchError, ValueError):
    """Malformed filter, e.g. a radius without a center point."""


class StoreError(SearchError):
    """An underlying store query failed. Retryable."""


class StoreTimeoutError(StoreError):
    """A store call exceeded its time budget. Retryable."""
