"""Extensions: pluggable behaviour attached to a model class after definition.

An extension is a class. :func:`use` constructs it with the target model
class and calls :meth:`Extension.apply`, which typically merges extra
defaults (``model.extend_defaults``) or registers named middleware around a
CRUD operation (``model.wrap``). ``apply`` must be idempotent.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from ninja_records.model import Model

logger = logging.getLogger(__name__)


@runtime_checkable
class Extension(Protocol):
    """Capability every constructed extension must provide."""

    def apply(self) -> bool:
        """Modify the bound model class. Returns True on success."""
        ...


class BaseExtension(ABC):
    """Convenience base holding the model class the extension is bound to."""

    def __init__(self, model: type[Model]) -> None:
        self.model = model

    @abstractmethod
    def apply(self) -> bool: ...

    def __repr__(self) -> str:
        return f"{type(self).__name__}(model={self.model.__name__})"


def use(model: type[Model], extension: Any) -> bool:
    """Apply one extension class, or a list of them, to *model*.

    Every extension in a list is attempted in order even after a failure; the
    result is True only if all of them applied. A value that is not a class,
    a class that cannot be constructed with the model (``TypeError``, as for
    a ``BaseExtension`` subclass missing ``apply``), or one whose instances
    lack ``apply()`` counts as a failure and is logged rather than raised.
    Other errors from the constructor or from ``apply()`` propagate.
    """
    if isinstance(extension, (list, tuple)):
        results = [use(model, item) for item in extension]
        return all(results)

    if not isinstance(extension, type):
        logger.warning("Rejected extension %r for %s: not a class", extension, model.__name__)
        return False

    try:
        instance = extension(model)
    except TypeError as exc:
        # Abstract classes and incompatible constructors land here.
        logger.warning(
            "Rejected extension %s for %s: not constructible (%s)",
            extension.__name__,
            model.__name__,
            exc,
        )
        return False

    if not isinstance(instance, Extension):
        logger.warning(
            "Rejected extension %s for %s: instances do not implement apply()",
            extension.__name__,
            model.__name__,
        )
        return False

    applied = bool(instance.apply())
    if applied:
        model._record_extension(extension)
        logger.info("Applied extension %s to %s", extension.__name__, model.__name__)
    else:
        logger.warning("Extension %s reported failure on %s", extension.__name__, model.__name__)
    return applied
