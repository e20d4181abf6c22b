"""Chainable query builder returned by ``Model.find``."""

from __future__ import annotations

from collections.abc import Callable, Generator
from typing import Any

from ninja_records.engines import _validate_count
from ninja_records.protocols import Collection


class Cursor:
    """Immutable query builder with a single asynchronous terminal step.

    ``sort``, ``skip`` and ``limit`` return new cursors and never touch the
    store. :meth:`execute` builds a fresh engine cursor, runs it once and
    hydrates the records. Awaiting the cursor is the same as awaiting
    :meth:`execute`::

        books = await Book.find({"author": "Le Guin"}).sort({"year": -1}).limit(5)
    """

    def __init__(
        self,
        collection: Collection,
        query: dict[str, Any],
        projection: dict[str, Any] | None,
        hydrate: Callable[[Any], Any],
        *,
        sort: dict[str, int] | None = None,
        skip: int = 0,
        limit: int = 0,
    ) -> None:
        self._collection = collection
        self._query = query
        self._projection = projection
        self._hydrate = hydrate
        self._sort = dict(sort) if sort else None
        self._skip = skip
        self._limit = limit

    @property
    def query(self) -> dict[str, Any]:
        return self._query

    @property
    def projection(self) -> dict[str, Any] | None:
        return self._projection

    def _replace(self, **changes: Any) -> Cursor:
        shaping = {"sort": self._sort, "skip": self._skip, "limit": self._limit}
        shaping.update(changes)
        return Cursor(self._collection, self._query, self._projection, self._hydrate, **shaping)

    def sort(self, spec: dict[str, int]) -> Cursor:
        """Order by ``{field: 1 | -1}``; earlier keys take precedence."""
        return self._replace(sort=spec)

    def skip(self, count: int) -> Cursor:
        return self._replace(skip=_validate_count("skip", count))

    def limit(self, count: int) -> Cursor:
        """Cap the number of results; ``0`` means no limit."""
        return self._replace(limit=_validate_count("limit", count))

    async def execute(self) -> list[Any]:
        cursor = self._collection.find(self._query, self._projection)
        if self._sort:
            cursor = cursor.sort(self._sort)
        if self._skip:
            cursor = cursor.skip(self._skip)
        if self._limit:
            cursor = cursor.limit(self._limit)
        return self._hydrate(await cursor.execute())

    def __await__(self) -> Generator[Any, None, list[Any]]:
        return self.execute().__await__()

    def __repr__(self) -> str:
        return (
            f"Cursor(query={self._query!r}, projection={self._projection!r}, "
            f"sort={self._sort!r}, skip={self._skip}, limit={self._limit})"
        )
