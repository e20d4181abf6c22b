"""Exceptions raised by the bundled storage engines and configuration layer.

The model layer never catches or translates errors: whatever an engine raises
reaches the caller unchanged. These types are what the in-memory engine and
the configuration models raise themselves.
"""

from __future__ import annotations


class PersistenceError(Exception):
    """Base exception for errors raised by the bundled engines.

    Attributes:
        collection: The name of the collection involved (``"<anonymous>"``
            for unnamed in-memory collections).
        operation: The engine operation that failed (e.g. ``"insert"``).
        detail: A description of what went wrong.
    """

    def __init__(
        self,
        *,
        collection: str,
        operation: str,
        detail: str,
        cause: Exception | None = None,
    ) -> None:
        self.collection = collection
        self.operation = operation
        self.detail = detail
        msg = f"[{collection}] {operation} failed: {detail}"
        super().__init__(msg)
        if cause is not None:
            self.__cause__ = cause


class DuplicateKeyError(PersistenceError):
    """Raised when an insert or upsert reuses an existing ``_id``."""


class QueryError(PersistenceError):
    """Raised for unknown operators, mixed update documents, or ``_id`` changes."""


class InvalidDatastoreConfig(ValueError):
    """Raised when a model's datastore configuration cannot be turned into a collection."""


class InvalidConnectionURL(ValueError):
    """Raised when a connection URL is malformed or missing required components."""
