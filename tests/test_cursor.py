"""Tests for the Cursor query builder."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest
from ninja_records.cursor import Cursor
from ninja_records.engines.memory import MemoryCollection
from ninja_records.hydration import convert
from ninja_records.model import Model


class Item(Model):
    pass


def _engine_collection(records: list[dict]) -> tuple[MagicMock, MagicMock]:
    engine_cursor = MagicMock()
    engine_cursor.sort.return_value = engine_cursor
    engine_cursor.skip.return_value = engine_cursor
    engine_cursor.limit.return_value = engine_cursor
    engine_cursor.execute = AsyncMock(return_value=records)
    collection = MagicMock()
    collection.find.return_value = engine_cursor
    return collection, engine_cursor


def test_shaping_returns_new_cursors():
    collection, _ = _engine_collection([])
    base = Cursor(collection, {"a": 1}, None, convert(Item))

    sorted_cursor = base.sort({"a": -1})
    limited = sorted_cursor.limit(5)

    assert sorted_cursor is not base
    assert limited is not sorted_cursor
    assert "sort=None" in repr(base)
    assert "limit=0" in repr(sorted_cursor)
    assert "limit=5" in repr(limited)
    collection.find.assert_not_called()


def test_query_and_projection_exposed():
    collection, _ = _engine_collection([])
    cursor = Cursor(collection, {"a": 1}, {"b": 0}, convert(Item))
    assert cursor.query == {"a": 1}
    assert cursor.projection == {"b": 0}


@pytest.mark.parametrize("bad", [-1, 1.5, "3", True])
def test_skip_and_limit_validate(bad):
    collection, _ = _engine_collection([])
    cursor = Cursor(collection, {}, None, convert(Item))
    with pytest.raises(ValueError):
        cursor.skip(bad)
    with pytest.raises(ValueError):
        cursor.limit(bad)


async def test_execute_applies_shaping_and_hydrates():
    collection, engine_cursor = _engine_collection([{"_id": "1"}, {"_id": "2"}])
    cursor = Cursor(collection, {"a": 1}, {"b": 0}, convert(Item)).sort({"a": 1}).skip(2).limit(3)

    items = await cursor.execute()

    collection.find.assert_called_once_with({"a": 1}, {"b": 0})
    engine_cursor.sort.assert_called_once_with({"a": 1})
    engine_cursor.skip.assert_called_once_with(2)
    engine_cursor.limit.assert_called_once_with(3)
    engine_cursor.execute.assert_awaited_once()
    assert [type(i) for i in items] == [Item, Item]
    assert [i._id for i in items] == ["1", "2"]


async def test_unused_shaping_is_not_forwarded():
    collection, engine_cursor = _engine_collection([])
    await Cursor(collection, {}, None, convert(Item))

    engine_cursor.sort.assert_not_called()
    engine_cursor.skip.assert_not_called()
    engine_cursor.limit.assert_not_called()


async def test_await_is_execute():
    collection = MemoryCollection()
    await collection.insert([{"n": 3}, {"n": 1}, {"n": 2}])
    cursor = Cursor(collection, {}, None, convert(Item)).sort({"n": 1})

    assert [i.n for i in await cursor] == [1, 2, 3]


async def test_each_execute_runs_a_fresh_query():
    collection = MemoryCollection()
    await collection.insert({"n": 1})
    cursor = Cursor(collection, {}, None, convert(Item))

    assert len(await cursor) == 1
    await collection.insert({"n": 2})
    assert len(await cursor) == 2


async def test_branches_do_not_share_state():
    collection = MemoryCollection()
    await collection.insert([{"n": i} for i in range(5)])
    base = Cursor(collection, {}, None, convert(Item)).sort({"n": 1})

    first_two = base.limit(2)
    last_two = base.skip(3)

    assert [i.n for i in await first_two] == [0, 1]
    assert [i.n for i in await last_two] == [3, 4]
    assert len(await base) == 5
