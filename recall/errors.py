"""
Error types raised by the memory store and its collaborators.
"""


class RecallError(Exception):
    """Base class for all errors raised by this package."""


class ValidationError(RecallError, ValueError):
    """A record or query is malformed (e.g. wrong embedding dimensionality)."""


class NotFoundError(RecallError, LookupError):
    """An operation targeted a collection that does not exist."""

    def __init__(self, collection: str):
        self.collection = collection
        super().__init__(f"Collection not found: {collection}")


class ProviderError(RecallError):
    """The embedding provider failed (request error, rate limit, missing model)."""
