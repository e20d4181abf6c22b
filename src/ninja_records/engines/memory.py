"""In-memory document collection: the default engine behind model classes."""

from __future__ import annotations

import copy
import logging
from collections.abc import Mapping
from typing import Any
from uuid import uuid4

from ninja_records.engines import _validate_count
from ninja_records.engines.documents import (
    DocumentError,
    apply_update,
    is_modifier_update,
    match,
    project,
    sort_records,
    upsert_base,
)
from ninja_records.exceptions import DuplicateKeyError, QueryError

logger = logging.getLogger(__name__)


class MemoryCursor:
    """Lazy query over a :class:`MemoryCollection`; mirrors the EngineCursor protocol."""

    def __init__(
        self,
        collection: MemoryCollection,
        query: dict[str, Any],
        projection: dict[str, Any] | None = None,
    ) -> None:
        self._collection = collection
        self._query = query
        self._projection = projection
        self._sort: dict[str, int] | None = None
        self._skip = 0
        self._limit: int | None = None

    def sort(self, spec: dict[str, int]) -> MemoryCursor:
        self._sort = dict(spec)
        return self

    def skip(self, count: int) -> MemoryCursor:
        self._skip = _validate_count("skip", count)
        return self

    def limit(self, count: int) -> MemoryCursor:
        self._limit = _validate_count("limit", count)
        return self

    async def execute(self) -> list[dict[str, Any]]:
        records = self._collection._matching(self._query, "find")
        if self._sort:
            records = sort_records(records, self._sort)
        # limit(0) means no limit, as in MongoDB
        end = self._skip + self._limit if self._limit else None
        return [self._collection._project(record, self._projection, "find") for record in records[self._skip : end]]


class MemoryCollection:
    """Dict-backed document collection that mirrors the Collection protocol.

    Records are keyed by ``_id`` in insertion order and deep-copied on the way
    in and out, so callers never share state with the store. Operations never
    suspend, so each call is atomic with respect to other coroutines.
    """

    def __init__(self, name: str | None = None, options: dict[str, Any] | None = None) -> None:
        self.name = name
        self.options: dict[str, Any] = dict(options or {})
        self._records: dict[Any, dict[str, Any]] = {}

    @property
    def label(self) -> str:
        return self.name or "<anonymous>"

    def __len__(self) -> int:
        return len(self._records)

    def __repr__(self) -> str:
        return f"MemoryCollection(name={self.name!r}, records={len(self._records)})"

    # -- internals ------------------------------------------------------------

    def _query_error(self, operation: str, exc: DocumentError) -> QueryError:
        logger.debug("Memory %s rejected for %s: %s", operation, self.label, exc)
        return QueryError(collection=self.label, operation=operation, detail=str(exc), cause=exc)

    def _matching(self, query: Mapping[str, Any], operation: str) -> list[dict[str, Any]]:
        try:
            return [record for record in self._records.values() if match(record, query)]
        except DocumentError as exc:
            raise self._query_error(operation, exc) from exc

    def _project(self, record: dict[str, Any], projection: dict[str, Any] | None, operation: str) -> dict[str, Any]:
        try:
            return project(record, projection)
        except DocumentError as exc:
            raise self._query_error(operation, exc) from exc

    def _prepare(self, record: Mapping[str, Any]) -> dict[str, Any]:
        doc = copy.deepcopy(dict(record))
        if doc.get("_id") is None:
            doc["_id"] = uuid4().hex
        return doc

    def _store(self, docs: list[dict[str, Any]], operation: str) -> None:
        seen: set[Any] = set()
        for doc in docs:
            if doc["_id"] in self._records or doc["_id"] in seen:
                raise DuplicateKeyError(
                    collection=self.label,
                    operation=operation,
                    detail=f"a record with _id {doc['_id']!r} already exists.",
                )
            seen.add(doc["_id"])
        for doc in docs:
            self._records[doc["_id"]] = doc

    # -- Collection protocol --------------------------------------------------

    def find(self, query: dict[str, Any], projection: dict[str, Any] | None = None) -> MemoryCursor:
        return MemoryCursor(self, query, projection)

    async def find_one(
        self, query: dict[str, Any], projection: dict[str, Any] | None = None
    ) -> dict[str, Any] | None:
        records = self._matching(query, "find_one")
        if not records:
            return None
        return self._project(records[0], projection, "find_one")

    async def count(self, query: dict[str, Any]) -> int:
        return len(self._matching(query, "count"))

    async def insert(
        self, records: dict[str, Any] | list[dict[str, Any]]
    ) -> dict[str, Any] | list[dict[str, Any]]:
        """Insert one record or a batch; a batch is stored all-or-nothing."""
        many = isinstance(records, (list, tuple))
        docs = [self._prepare(record) for record in (records if many else [records])]
        self._store(docs, "insert")
        logger.debug("Memory insert into %s: %d record(s)", self.label, len(docs))
        stored = [copy.deepcopy(doc) for doc in docs]
        return stored if many else stored[0]

    async def update(
        self, query: dict[str, Any], changes: dict[str, Any], options: dict[str, Any] | None = None
    ) -> int | dict[str, Any] | list[dict[str, Any]] | None:
        """Apply *changes* to matching records.

        Options: ``multi`` (default False), ``upsert``, ``return_updated_docs``.
        """
        options = options or {}
        multi = bool(options.get("multi", False))
        matches = self._matching(query, "update")
        if not multi:
            matches = matches[:1]

        try:
            updated = [apply_update(record, changes) for record in matches]
            if not matches and options.get("upsert"):
                seed = upsert_base(query) if is_modifier_update(changes) else {}
                updated = [self._prepare(apply_update(seed, changes))]
                self._store(updated, "update")
        except DocumentError as exc:
            raise self._query_error("update", exc) from exc

        for doc in updated:
            self._records[doc["_id"]] = doc
        logger.debug("Memory update in %s: %d record(s)", self.label, len(updated))

        if options.get("return_updated_docs"):
            result = [copy.deepcopy(doc) for doc in updated]
            if multi:
                return result
            return result[0] if result else None
        return len(updated)

    async def remove(self, query: dict[str, Any], options: dict[str, Any] | None = None) -> int:
        """Remove matching records. Options: ``multi`` (default False)."""
        options = options or {}
        matches = self._matching(query, "remove")
        if not options.get("multi", False):
            matches = matches[:1]
        for record in matches:
            del self._records[record["_id"]]
        logger.debug("Memory remove from %s: %d record(s)", self.label, len(matches))
        return len(matches)
