"""Error taxonomy for the recipe cache.

Only ``ValueError``/``TypeError`` for malformed parameters and
``RequestCancelled`` ever reach callers of the orchestrator; everything
else is handled inside the fallback chain.
"""


class RecipeCacheError(Exception):
    """Base class for recipe cache errors."""


class UpstreamError(RecipeCacheError):
    """Spoonacular call failed (transport error or non-2xx response)."""

    def __init__(self, message: str, *, endpoint: str | None = None, status_code: int | None = None):
        super().__init__(message)
        self.endpoint = endpoint
        self.status_code = status_code


class UpstreamTimeout(UpstreamError):
    """Spoonacular call exceeded the request timeout."""


class StoreUnavailable(RecipeCacheError):
    """The database backing the cache or the quota ledger could not be used."""


class RequestCancelled(RecipeCacheError):
    """The caller abandoned the request mid-chain."""
