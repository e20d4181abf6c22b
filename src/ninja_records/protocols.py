"""Storage engine protocols: what the model layer needs from a document store."""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class EngineCursor(Protocol):
    """A lazy query on a collection.

    Shaping calls return the cursor itself so they can be chained; nothing
    reaches the store until :meth:`execute` is awaited.
    """

    def sort(self, spec: dict[str, int]) -> EngineCursor: ...

    def skip(self, count: int) -> EngineCursor: ...

    def limit(self, count: int) -> EngineCursor: ...

    async def execute(self) -> list[dict[str, Any]]:
        """Run the query and return the matching records in order."""
        ...


@runtime_checkable
class Collection(Protocol):
    """Document collection interface consumed by :class:`~ninja_records.model.Model`.

    Every engine (in-memory, MongoDB) implements this protocol so that model
    classes can perform CRUD without knowing the backend.
    """

    def find(self, query: dict[str, Any], projection: dict[str, Any] | None = None) -> EngineCursor:
        """Start a lazy query over records matching *query*."""
        ...

    async def find_one(
        self, query: dict[str, Any], projection: dict[str, Any] | None = None
    ) -> dict[str, Any] | None:
        """Return the first record matching *query*, or ``None``."""
        ...

    async def count(self, query: dict[str, Any]) -> int:
        """Count the records matching *query*."""
        ...

    async def insert(
        self, records: dict[str, Any] | list[dict[str, Any]]
    ) -> dict[str, Any] | list[dict[str, Any]]:
        """Insert one record or a list of records and return what was stored."""
        ...

    async def update(
        self, query: dict[str, Any], changes: dict[str, Any], options: dict[str, Any] | None = None
    ) -> int | dict[str, Any] | list[dict[str, Any]] | None:
        """Update matching records.

        Returns the affected count, or the updated record(s) when
        ``options["return_updated_docs"]`` is set.
        """
        ...

    async def remove(self, query: dict[str, Any], options: dict[str, Any] | None = None) -> int:
        """Remove matching records and return how many were removed."""
        ...
