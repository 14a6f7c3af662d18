"""
Error types raised while reading the record store and reconciling results.
"""


class QueryError(Exception):
    """Raised when a record store call fails."""
    pass


class SourceUnavailable(Exception):
    """Raised when a whole collection could not be read for a run."""

    def __init__(self, collection, cause: Exception):
        self.collection = collection
        self.cause = cause
        super().__init__(f"{collection.label} unavailable: {cause}")


class ReconciliationError(Exception):
    """Raised when a pipeline run cannot produce a result at all."""
    pass
