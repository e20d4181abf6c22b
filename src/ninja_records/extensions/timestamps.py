"""Timestamps extension: stamps ``created_at`` and ``updated_at`` on writes."""

from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime, timezone
from typing import Any

from ninja_records.extensions import BaseExtension
from ninja_records.model import Model

CREATED_AT = "created_at"
UPDATED_AT = "updated_at"


def _stamped(values: Any, now: datetime) -> Any:
    if isinstance(values, Model):
        values = values.to_dict()
    if not isinstance(values, Mapping):
        return values
    record = dict(values)
    record.setdefault(CREATED_AT, now)
    record.setdefault(UPDATED_AT, now)
    return record


async def stamp_insert(call_next: Any, model: type[Model], values: Any) -> Any:
    now = datetime.now(timezone.utc)
    if isinstance(values, (list, tuple)):
        values = [_stamped(item, now) for item in values]
    else:
        values = _stamped(values, now)
    return await call_next(values)


async def stamp_update(
    call_next: Any,
    model: type[Model],
    query: Mapping[str, Any] | None = None,
    values: Mapping[str, Any] | None = None,
    options: Mapping[str, Any] | None = None,
) -> Any:
    now = datetime.now(timezone.utc)
    changes = dict(values or {})
    if any(key.startswith("$") for key in changes):
        changes["$set"] = {**(changes.get("$set") or {}), UPDATED_AT: now}
    else:
        changes[UPDATED_AT] = now
    return await call_next(query, changes, options)


class Timestamps(BaseExtension):
    """Record creation and modification times on every record.

    Inserts get both fields unless the record already has them; updates
    always refresh ``updated_at``.
    """

    def apply(self) -> bool:
        self.model.wrap("insert", "timestamps", stamp_insert)
        self.model.wrap("update", "timestamps", stamp_update)
        return True
