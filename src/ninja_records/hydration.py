"""Turn raw engine results into model instances, keeping the result's shape."""

from __future__ import annotations

from collections.abc import Callable, Mapping
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from ninja_records.model import Model


def convert(model: type[Model]) -> Callable[[Any], Any]:
    """Return a converter for results belonging to *model*.

    - ``None`` stays ``None`` (nothing found);
    - a record becomes one instance;
    - a list or tuple of records becomes a list of instances, same order;
    - anything else (counts, flags) passes through untouched.
    """

    def hydrate(raw: Any) -> Any:
        if raw is None:
            return None
        if isinstance(raw, Mapping):
            return model(raw)
        if isinstance(raw, (list, tuple)):
            return [model(record) for record in raw]
        return raw

    return hydrate
