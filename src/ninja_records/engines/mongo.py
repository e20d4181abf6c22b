"""Motor/MongoDB engine implementing the Collection protocol.

Requires the ``motor`` optional dependency:
    pip install ninja-records[mongo]

Driver exceptions are not caught here; they reach the model layer and its
callers unchanged.
"""

from __future__ import annotations

import logging
from typing import Any

from ninja_records.engines import _validate_count

logger = logging.getLogger(__name__)


class MongoCursor:
    """Collects shaping calls and builds the Motor cursor on :meth:`execute`."""

    def __init__(self, collection: Any, query: dict[str, Any], projection: dict[str, Any] | None = None) -> None:
        self._collection = collection
        self._query = query
        self._projection = projection
        self._sort: list[tuple[str, int]] = []
        self._skip = 0
        self._limit = 0

    def sort(self, spec: dict[str, int]) -> MongoCursor:
        self._sort = list(spec.items())
        return self

    def skip(self, count: int) -> MongoCursor:
        self._skip = _validate_count("skip", count)
        return self

    def limit(self, count: int) -> MongoCursor:
        self._limit = _validate_count("limit", count)
        return self

    async def execute(self) -> list[dict[str, Any]]:
        cursor = self._collection.find(self._query, self._projection or None)
        if self._sort:
            cursor = cursor.sort(self._sort)
        if self._skip:
            cursor = cursor.skip(self._skip)
        if self._limit:
            cursor = cursor.limit(self._limit)
        return [dict(doc) async for doc in cursor]


class MongoCollection:
    """Async MongoDB collection backed by Motor.

    Wraps an ``AsyncIOMotorCollection`` (or anything with the same async
    interface) and translates the Collection protocol's option dictionaries
    (``multi``, ``upsert``, ``return_updated_docs``) into driver calls.
    """

    def __init__(self, collection: Any) -> None:
        self._collection = collection

    @property
    def name(self) -> str | None:
        return getattr(self._collection, "name", None)

    def __repr__(self) -> str:
        return f"MongoCollection(name={self.name!r})"

    def find(self, query: dict[str, Any], projection: dict[str, Any] | None = None) -> MongoCursor:
        return MongoCursor(self._collection, query, projection)

    async def find_one(
        self, query: dict[str, Any], projection: dict[str, Any] | None = None
    ) -> dict[str, Any] | None:
        doc = await self._collection.find_one(query, projection or None)
        return dict(doc) if doc is not None else None

    async def count(self, query: dict[str, Any]) -> int:
        return await self._collection.count_documents(query)

    async def insert(
        self, records: dict[str, Any] | list[dict[str, Any]]
    ) -> dict[str, Any] | list[dict[str, Any]]:
        """Insert and return the stored record(s), including driver-assigned ``_id``."""
        if isinstance(records, (list, tuple)):
            docs = [dict(record) for record in records]
            if docs:
                result = await self._collection.insert_many(docs)
                for doc, inserted_id in zip(docs, result.inserted_ids):
                    doc["_id"] = inserted_id
            logger.debug("Mongo insert into %s: %d record(s)", self.name, len(docs))
            return docs
        doc = dict(records)
        result = await self._collection.insert_one(doc)
        doc["_id"] = result.inserted_id
        logger.debug("Mongo insert into %s: 1 record", self.name)
        return doc

    async def update(
        self, query: dict[str, Any], changes: dict[str, Any], options: dict[str, Any] | None = None
    ) -> int | dict[str, Any] | list[dict[str, Any]] | None:
        """Update matching records.

        A single-record update that returns the document uses the driver's
        atomic ``find_one_and_*`` calls. MongoDB replaces at most one document
        per call, so a ``multi`` replacement replaces each match by ``_id``,
        the same result the in-memory engine gives. For other ``multi``
        updates that return documents, the matching ids are captured first and
        the records are read back after the write.
        """
        options = options or {}
        multi = bool(options.get("multi", False))
        upsert = bool(options.get("upsert", False))
        return_docs = bool(options.get("return_updated_docs", False))
        is_modifier = any(key.startswith("$") for key in changes)

        if return_docs and not multi:
            return await self._update_one_returning(query, changes, upsert, is_modifier)
        if multi and not is_modifier:
            return await self._replace_each(query, changes, upsert, return_docs)

        ids: list[Any] = []
        if return_docs:
            ids = [doc["_id"] async for doc in self._collection.find(query, {"_id": 1})]

        if not is_modifier:
            result = await self._collection.replace_one(query, changes, upsert=upsert)
        elif multi:
            result = await self._collection.update_many(query, changes, upsert=upsert)
        else:
            result = await self._collection.update_one(query, changes, upsert=upsert)

        upserted_id = getattr(result, "upserted_id", None)
        affected = result.matched_count + (1 if upserted_id is not None else 0)
        logger.debug("Mongo update in %s: %d record(s)", self.name, affected)

        if not return_docs:
            return affected
        if upserted_id is not None:
            ids.append(upserted_id)
        return await self._read_back(ids)

    async def _update_one_returning(
        self, query: dict[str, Any], changes: dict[str, Any], upsert: bool, is_modifier: bool
    ) -> dict[str, Any] | None:
        from pymongo import ReturnDocument

        if is_modifier:
            doc = await self._collection.find_one_and_update(
                query, changes, upsert=upsert, return_document=ReturnDocument.AFTER
            )
        else:
            doc = await self._collection.find_one_and_replace(
                query, changes, upsert=upsert, return_document=ReturnDocument.AFTER
            )
        logger.debug("Mongo update in %s: %d record(s)", self.name, 0 if doc is None else 1)
        return dict(doc) if doc is not None else None

    async def _replace_each(
        self, query: dict[str, Any], changes: dict[str, Any], upsert: bool, return_docs: bool
    ) -> int | list[dict[str, Any]]:
        ids = [doc["_id"] async for doc in self._collection.find(query, {"_id": 1})]
        replaced: list[Any] = []
        for doc_id in ids:
            result = await self._collection.replace_one({"_id": doc_id}, changes)
            if result.matched_count:
                replaced.append(doc_id)
        if not ids and upsert:
            result = await self._collection.replace_one(query, changes, upsert=True)
            if result.upserted_id is not None:
                replaced.append(result.upserted_id)
        logger.debug("Mongo replace in %s: %d record(s)", self.name, len(replaced))

        if not return_docs:
            return len(replaced)
        return await self._read_back(replaced)

    async def _read_back(self, ids: list[Any]) -> list[dict[str, Any]]:
        found = {doc["_id"]: dict(doc) async for doc in self._collection.find({"_id": {"$in": ids}})}
        return [found[doc_id] for doc_id in ids if doc_id in found]

    async def remove(self, query: dict[str, Any], options: dict[str, Any] | None = None) -> int:
        options = options or {}
        if options.get("multi", False):
            result = await self._collection.delete_many(query)
        else:
            result = await self._collection.delete_one(query)
        logger.debug("Mongo remove from %s: %d record(s)", self.name, result.deleted_count)
        return result.deleted_count
