"""Active-record base class: typed instances over a document collection."""

from __future__ import annotations

import functools
import json
import logging
from collections.abc import Callable, Mapping
from typing import Any, Self

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ninja_records.cursor import Cursor
from ninja_records.datastore import DatastoreConfig, coerce_datastore, resolve
from ninja_records.defaults import augment
from ninja_records.extensions import use as use_extension
from ninja_records.hydration import convert

logger = logging.getLogger(__name__)

ID_FIELD = "_id"

# Operations that accept middleware, in the order they appear on Model.
OPERATIONS = ("find", "find_one", "count", "insert", "update", "remove")

_MULTI = {"multi": True}
_INHERIT = object()

Middleware = Callable[..., Any]


class Defaults(BaseModel):
    """The three default mappings every model class carries."""

    model_config = ConfigDict(extra="forbid")

    query: dict[str, Any] = Field(default_factory=dict)
    projection: dict[str, Any] = Field(default_factory=dict)
    values: dict[str, Any] = Field(default_factory=dict)

    @field_validator("query", "projection", "values", mode="before")
    @classmethod
    def _none_is_empty(cls, v: Any) -> Any:
        return {} if v is None else v


class hybridmethod:
    """Descriptor exposing one name as a class-level and an instance-level method.

    Works like ``property.setter``::

        @hybridmethod
        async def remove(cls, query=None, options=None): ...

        @remove.instancemethod
        async def remove(self): ...
    """

    def __init__(self, fclass: Callable[..., Any], finstance: Callable[..., Any] | None = None) -> None:
        self.fclass = fclass
        self.finstance = finstance
        functools.update_wrapper(self, fclass)

    def instancemethod(self, finstance: Callable[..., Any]) -> hybridmethod:
        self.finstance = finstance
        return self

    def __get__(self, obj: Any, objtype: type | None = None) -> Callable[..., Any]:
        if objtype is None:
            objtype = type(obj)
        if obj is None or self.finstance is None:
            return self.fclass.__get__(objtype, type(objtype))
        return self.finstance.__get__(obj, objtype)


class Model:
    """Base class for document-backed models.

    Each subclass is configured explicitly at definition time::

        class Book(Model, datastore="books", defaults={"query": {"archived": False}}):
            pass

    ``datastore`` is ``None`` (a private in-memory collection), a collection
    name (a shared in-memory collection) or a :class:`DatastoreConfig` /
    mapping. It is inherited when a subclass does not give one. ``defaults``
    may hold ``query``, ``projection`` and ``values`` mappings; a subclass's
    defaults are merged over its ancestors'.

    Class-level operations (``find``, ``find_one``, ``count``, ``insert``,
    ``update``, ``remove``) merge the defaults into their arguments, run on
    the model's collection and hydrate what comes back into instances. Each
    goes through the middleware registered with :meth:`wrap`. All of them
    are coroutines except ``find``, which returns a lazy :class:`Cursor`.

    Instances are plain field bags: every field of a record is an attribute.
    The ``_id`` field marks an instance as persisted. A field that shares a
    method's name shadows that method on the instance.
    """

    __model_datastore__: DatastoreConfig | None = None
    __model_defaults__: dict[str, dict[str, Any]] = {"query": {}, "projection": {}, "values": {}}
    __model_middleware__: dict[str, dict[str, Middleware]] = {}
    __model_extensions__: list[type] = []

    def __init_subclass__(cls, *, datastore: Any = _INHERIT, defaults: Mapping[str, Any] | None = None, **kwargs: Any):
        super().__init_subclass__(**kwargs)
        if datastore is not _INHERIT:
            cls.__model_datastore__ = coerce_datastore(datastore)
        cls.__model_defaults__ = Defaults.model_validate(dict(defaults or {})).model_dump()
        cls.__model_middleware__ = {}
        cls.__model_extensions__ = []

    def __init__(self, values: Any = None) -> None:
        self.assign(values)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.to_dict()!r})"

    # -- Configuration --------------------------------------------------------

    @classmethod
    def datastore(cls) -> DatastoreConfig | str | None:
        """The datastore declaration for this class; override to compute it."""
        return cls.__model_datastore__

    @classmethod
    def defaults(cls) -> dict[str, dict[str, Any]]:
        """Return ``{"query", "projection", "values"}`` merged down the class hierarchy.

        Computed on every call, so defaults added to an ancestor later (for
        instance by an extension) are visible to its subclasses.
        """
        merged: dict[str, dict[str, Any]] = {"query": {}, "projection": {}, "values": {}}
        for klass in reversed(cls.__mro__):
            own = klass.__dict__.get("__model_defaults__")
            if own:
                merged = augment(merged)(own)
        return merged

    @classmethod
    def _default(cls, key: str) -> dict[str, Any]:
        value = cls.defaults().get(key)
        return value if isinstance(value, Mapping) else {}

    @classmethod
    def extend_defaults(cls, overrides: Mapping[str, Any]) -> None:
        """Merge *overrides* into this class's own defaults."""
        validated = Defaults.model_validate(dict(overrides)).model_dump()
        cls.__model_defaults__ = augment(cls.__dict__.get("__model_defaults__", {}))(validated)

    @classmethod
    def wrap(cls, operation: str, name: str, wrapper: Middleware) -> None:
        """Register named middleware around a CRUD operation.

        The wrapper is called as ``wrapper(call_next, model, *args, **kwargs)``.
        Registering a name twice replaces the first wrapper.
        """
        if operation not in OPERATIONS:
            raise ValueError(f"Unknown operation '{operation}'. Expected one of {OPERATIONS}")
        cls.__dict__["__model_middleware__"].setdefault(operation, {})[name] = wrapper
        logger.debug("Registered middleware '%s' on %s.%s", name, cls.__name__, operation)

    @classmethod
    def middleware(cls, operation: str) -> list[tuple[str, Middleware]]:
        """Middleware for *operation*, innermost first.

        Ancestors' wrappers come before this class's; a subclass wrapper with
        the same name as an ancestor's takes its place.
        """
        chain: dict[str, Middleware] = {}
        for klass in reversed(cls.__mro__):
            own = klass.__dict__.get("__model_middleware__")
            if own:
                chain.update(own.get(operation, {}))
        return list(chain.items())

    @classmethod
    def extensions(cls) -> list[type]:
        """Extension classes applied to this class or its ancestors, in order."""
        applied: list[type] = []
        for klass in reversed(cls.__mro__):
            for extension in klass.__dict__.get("__model_extensions__", ()):
                if extension not in applied:
                    applied.append(extension)
        return applied

    @classmethod
    def _record_extension(cls, extension: type) -> None:
        own = cls.__dict__["__model_extensions__"]
        if extension not in own:
            own.append(extension)

    @classmethod
    def use(cls, extension: Any) -> bool:
        """Apply an extension class or a list of them; see :func:`ninja_records.extensions.use`."""
        return use_extension(cls, extension)

    @classmethod
    def _dispatch(cls, operation: str, *args: Any, **kwargs: Any) -> Any:
        call = getattr(cls, f"_{operation}")
        for _name, wrapper in cls.middleware(operation):
            call = functools.partial(wrapper, call, cls)
        return call(*args, **kwargs)

    # -- Base operations ------------------------------------------------------

    @classmethod
    def _find(cls, query: Mapping[str, Any] | None = None, projection: Mapping[str, Any] | None = None) -> Cursor:
        query = augment(cls._default("query"))(query)
        projection = augment(cls._default("projection"))(projection)
        return Cursor(resolve(cls)(), query, projection, convert(cls))

    @classmethod
    async def _find_one(
        cls, query: Mapping[str, Any] | None = None, projection: Mapping[str, Any] | None = None
    ) -> Any:
        query = augment(cls._default("query"))(query)
        projection = augment(cls._default("projection"))(projection)
        return convert(cls)(await resolve(cls)().find_one(query, projection))

    @classmethod
    async def _count(cls, query: Mapping[str, Any] | None = None) -> int:
        query = augment(cls._default("query"))(query)
        return convert(cls)(await resolve(cls)().count(query))

    @classmethod
    async def _insert(cls, values: Any) -> Any:
        merge = augment(cls._default("values"))
        if isinstance(values, (list, tuple)):
            records: Any = [merge(_fields(item)) for item in values]
        else:
            records = merge(_fields(values))
        return convert(cls)(await resolve(cls)().insert(records))

    @classmethod
    async def _update(
        cls,
        query: Mapping[str, Any] | None = None,
        values: Mapping[str, Any] | None = None,
        options: Mapping[str, Any] | None = None,
    ) -> Any:
        query = augment(cls._default("query"))(query)
        options = augment(_MULTI)(options)
        return convert(cls)(await resolve(cls)().update(query, dict(values or {}), options))

    @classmethod
    async def _remove(cls, query: Mapping[str, Any] | None = None, options: Mapping[str, Any] | None = None) -> int:
        query = dict(query or {})
        options = augment(_MULTI)(options)
        return convert(cls)(await resolve(cls)().remove(query, options))

    # -- Public class-level operations ----------------------------------------

    @classmethod
    def find(cls, query: Mapping[str, Any] | None = None, projection: Mapping[str, Any] | None = None) -> Cursor:
        """Return a lazy cursor over matching records.

        Nothing is read until the cursor is awaited (or ``execute()`` is
        awaited), so it can be shaped first::

            await Book.find({"year": {"$gte": 1970}}).sort({"year": 1}).limit(10)
        """
        return cls._dispatch("find", query, projection)

    @classmethod
    async def find_one(
        cls, query: Mapping[str, Any] | None = None, projection: Mapping[str, Any] | None = None
    ) -> Self | None:
        """Return the first matching instance, or ``None``."""
        return await cls._dispatch("find_one", query, projection)

    @classmethod
    async def count(cls, query: Mapping[str, Any] | None = None) -> int:
        return await cls._dispatch("count", query)

    @classmethod
    async def insert(cls, values: Any) -> Any:
        """Insert one record or a list of records.

        A single mapping gives back one instance; a list gives back a list of
        instances in the same order. The ``values`` default is merged into
        every record.
        """
        return await cls._dispatch("insert", values)

    @classmethod
    async def create(cls, values: Any) -> Any:
        """Alias of :meth:`insert`."""
        return await cls.insert(values)

    @classmethod
    async def update(
        cls,
        query: Mapping[str, Any] | None = None,
        values: Mapping[str, Any] | None = None,
        options: Mapping[str, Any] | None = None,
    ) -> Any:
        """Update matching records; every match by default (``multi=True``).

        Returns the number of affected records, or the updated instance(s)
        when ``options["return_updated_docs"]`` is true. *values* is required:
        an empty replacement would erase every matching record.
        """
        if values is None:
            raise ValueError(f"{cls.__name__}.update() requires a change document")
        return await cls._dispatch("update", query, values, options)

    @hybridmethod
    async def remove(cls, query: Mapping[str, Any] | None = None, options: Mapping[str, Any] | None = None) -> int:
        """Remove matching records (every match unless ``options["multi"]`` is false).

        Called on an instance, removes just that record (see below).
        """
        return await cls._dispatch("remove", query, options)

    # -- Instance behaviour ---------------------------------------------------

    def get_class(self) -> type[Self]:
        return type(self)

    def assign(self, values: Any) -> None:
        """Copy every key of *values* onto the instance; non-mappings are ignored.

        Keys are set as plain attributes, so a field named like an instance
        method (``save``, ``remove``, ``assign`` ...) hides that method on this
        instance. The field is still stored and round-trips through
        :meth:`to_dict`; the class-level operations are unaffected.
        """
        if isinstance(values, Model):
            values = values.to_dict()
        if not isinstance(values, Mapping):
            values = {}
        for key, value in values.items():
            setattr(self, key, value)

    def to_dict(self) -> dict[str, Any]:
        """Shallow snapshot of the instance's fields."""
        return dict(vars(self))

    def to_json(self, **kwargs: Any) -> str:
        kwargs.setdefault("default", str)
        return json.dumps(self.to_dict(), **kwargs)

    def _identifier(self) -> Any:
        return vars(self).get(ID_FIELD)

    async def save(self) -> Self:
        """Insert the instance, or write its fields back if it has an ``_id``.

        Fields are refreshed from the stored record afterwards, so a new
        instance picks up its generated ``_id``.
        """
        model = self.get_class()
        identifier = self._identifier()
        if identifier is not None:
            result = await model.update(
                {ID_FIELD: identifier},
                {"$set": self.to_dict()},
                {"return_updated_docs": True},
            )
        else:
            values = self.to_dict()
            values.pop(ID_FIELD, None)
            result = await model.insert(values)

        if isinstance(result, list):
            result = result[0] if result else None
        self.assign(result)
        return self

    @remove.instancemethod
    async def remove(self) -> int:
        """Delete this record. Never-saved instances return 0 without touching the store."""
        identifier = self._identifier()
        if identifier is None:
            return 0
        return await self.get_class().remove({ID_FIELD: identifier}, {"multi": False})

    async def duplicate(self) -> Self:
        """Insert a copy of the current fields as a new record and return it."""
        values = self.to_dict()
        values.pop(ID_FIELD, None)
        return await self.get_class().insert(values)


def _fields(values: Any) -> Any:
    return values.to_dict() if isinstance(values, Model) else values
