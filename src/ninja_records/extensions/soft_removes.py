"""SoftRemoves extension: ``remove`` marks records instead of deleting them."""

from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime, timezone
from typing import Any

from ninja_records.cursor import Cursor
from ninja_records.defaults import augment
from ninja_records.extensions import BaseExtension
from ninja_records.model import Model

REMOVED_AT = "removed_at"

_REMOVED = {REMOVED_AT: {"$exists": True}}


async def soft_remove(
    call_next: Any,
    model: type[Model],
    query: Mapping[str, Any] | None = None,
    options: Mapping[str, Any] | None = None,
) -> int:
    multi = (options or {}).get("multi", True)
    return await model.update(
        query or {},
        {"$set": {REMOVED_AT: datetime.now(timezone.utc)}},
        {"multi": multi},
    )


async def force_remove(
    model: type[Model], query: Mapping[str, Any] | None = None, options: Mapping[str, Any] | None = None
) -> int:
    """Delete matching records for real, skipping every ``remove`` middleware."""
    return await model._remove(query, options)


async def restore(model: type[Model], query: Mapping[str, Any] | None = None) -> int:
    """Clear ``removed_at`` on matching soft-removed records."""
    return await model.update(augment(query or {})(_REMOVED), {"$unset": {REMOVED_AT: True}})


def find_removed(
    model: type[Model], query: Mapping[str, Any] | None = None, projection: Mapping[str, Any] | None = None
) -> Cursor:
    """Cursor over soft-removed records only."""
    return model.find(augment(query or {})(_REMOVED), projection)


class SoftRemoves(BaseExtension):
    """Hide removed records from queries and keep them in the store.

    Adds the query default ``{"removed_at": {"$exists": False}}`` so finds,
    counts and updates skip removed records, and turns ``remove`` into an
    update that sets ``removed_at``.
    """

    def apply(self) -> bool:
        self.model.extend_defaults({"query": {REMOVED_AT: {"$exists": False}}})
        self.model.wrap("remove", "soft_removes", soft_remove)
        return True
