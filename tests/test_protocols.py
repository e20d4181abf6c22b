"""Tests for the Collection and EngineCursor protocols."""

from unittest.mock import MagicMock

from ninja_records.engines.memory import MemoryCollection
from ninja_records.engines.mongo import MongoCollection
from ninja_records.protocols import Collection, EngineCursor


def test_memory_collection_is_collection():
    assert isinstance(MemoryCollection(), Collection)


def test_mongo_collection_is_collection():
    assert isinstance(MongoCollection(MagicMock()), Collection)


def test_engine_cursors_are_engine_cursors():
    assert isinstance(MemoryCollection().find({}), EngineCursor)
    assert isinstance(MongoCollection(MagicMock()).find({}), EngineCursor)


def test_plain_object_is_not_collection():
    class Partial:
        def find(self, query, projection=None):
            return None

    assert not isinstance(Partial(), Collection)
    assert not isinstance(object(), EngineCursor)
