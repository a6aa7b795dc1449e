"""
Domain-specific exceptions for the marketplace services.

These represent business rule violations and backend failures; route
handlers convert them to HTTP responses in app/main.py.
"""


class MarketplaceError(Exception):
    """Base exception for all marketplace service errors."""
    pass


class NotFoundError(MarketplaceError):
    """Raised when a referenced listing, offer, transaction or profile is absent."""
    pass


class ValidationFailedError(MarketplaceError):
    """Raised before any write when input is missing or out of range."""
    pass


class PermissionDeniedError(MarketplaceError):
    """Raised when a user acts on a record they do not own."""
    pass


class BackendError(MarketplaceError):
    """Raised when the document store or object storage fails."""
    pass


class QueryError(BackendError):
    """Raised when a query is rejected by the document store (e.g. IN list too long)."""
    pass


class DocumentNotFoundError(NotFoundError):
    """Raised by the document store when updating a document that does not exist."""

    def __init__(self, collection: str, doc_id: str):
        self.collection = collection
        self.doc_id = doc_id
        super().__init__(f"{collection}/{doc_id} not found")
