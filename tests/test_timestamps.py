"""Tests for the Timestamps extension."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from ninja_records.extensions.timestamps import CREATED_AT, UPDATED_AT, Timestamps
from ninja_records.model import Model


def _stamped_model() -> type[Model]:
    class Note(Model):
        pass

    assert Note.use(Timestamps) is True
    return Note


async def test_insert_sets_both_fields():
    Note = _stamped_model()
    note = await Note.insert({"text": "hi"})

    created = getattr(note, CREATED_AT)
    assert isinstance(created, datetime)
    assert created.utcoffset() == timedelta(0)
    assert getattr(note, UPDATED_AT) == created


async def test_insert_list_and_instances():
    Note = _stamped_model()
    notes = await Note.insert([{"text": "a"}, Note({"text": "b"})])

    assert [n.text for n in notes] == ["a", "b"]
    assert all(hasattr(n, CREATED_AT) and hasattr(n, UPDATED_AT) for n in notes)


async def test_insert_keeps_existing_values():
    Note = _stamped_model()
    fixed = datetime(2020, 1, 1, tzinfo=timezone.utc)
    note = await Note.insert({"text": "old", CREATED_AT: fixed})

    assert getattr(note, CREATED_AT) == fixed
    assert getattr(note, UPDATED_AT) > fixed


async def test_modifier_update_refreshes_updated_at():
    Note = _stamped_model()
    original = await Note.insert({"text": "a"})

    [updated] = await Note.update(
        {"_id": original._id}, {"$set": {"text": "b"}}, {"return_updated_docs": True}
    )

    assert updated.text == "b"
    assert getattr(updated, CREATED_AT) == getattr(original, CREATED_AT)
    assert getattr(updated, UPDATED_AT) >= getattr(original, UPDATED_AT)


async def test_update_without_set_gains_one():
    Note = _stamped_model()
    await Note.insert({"n": 1})

    await Note.update({}, {"$inc": {"n": 1}})

    note = await Note.find_one()
    assert note.n == 2
    assert isinstance(getattr(note, UPDATED_AT), datetime)


async def test_replacement_update_is_stamped():
    Note = _stamped_model()
    original = await Note.insert({"text": "a"})

    await Note.update({"_id": original._id}, {"text": "replaced"})

    note = await Note.find_one({"_id": original._id})
    assert note.text == "replaced"
    assert hasattr(note, UPDATED_AT)
    assert not hasattr(note, CREATED_AT)


async def test_save_stamps_new_and_existing_instances():
    Note = _stamped_model()
    note = await Note({"text": "draft"}).save()
    first = getattr(note, UPDATED_AT)

    note.text = "final"
    await note.save()

    assert getattr(note, CREATED_AT) == first
    assert getattr(note, UPDATED_AT) >= first
    assert await Note.count() == 1


async def test_applying_twice_is_harmless():
    Note = _stamped_model()
    assert Note.use(Timestamps) is True

    assert [name for name, _ in Note.middleware("insert")] == ["timestamps"]
    assert Note.extensions() == [Timestamps]


async def test_subclasses_inherit_stamping():
    Note = _stamped_model()

    class Memo(Note):
        pass

    memo = await Memo.insert({"text": "x"})
    assert hasattr(memo, CREATED_AT)
