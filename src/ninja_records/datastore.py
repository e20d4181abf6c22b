"""Datastore routing: maps a model class to its memoized collection handle."""

from __future__ import annotations

import functools
import hashlib
import logging
from collections.abc import Callable, Mapping
from typing import TYPE_CHECKING, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from ninja_records.connections import ConnectionManager, ConnectionProfile
from ninja_records.engines.memory import MemoryCollection
from ninja_records.exceptions import InvalidDatastoreConfig
from ninja_records.protocols import Collection

if TYPE_CHECKING:
    from ninja_records.model import Model

logger = logging.getLogger(__name__)


class DatastoreConfig(BaseModel):
    """Structured datastore configuration for a model class.

    ``engine="memory"`` keeps records in process; a ``collection`` name makes
    the collection shared by every model that names it. ``engine="mongo"``
    needs either a connection ``profile`` or a ``url``; the collection name
    defaults to the model's class name in lower case.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    engine: Literal["memory", "mongo"] = "memory"
    collection: str | None = None
    profile: str | None = None
    url: str | None = None
    database: str | None = None
    options: dict[str, Any] = Field(default_factory=dict)

    @model_validator(mode="after")
    def _check_engine(self) -> DatastoreConfig:
        if self.engine == "memory" and (self.profile or self.url or self.database):
            raise ValueError("memory datastores take no profile, url or database")
        if self.engine == "mongo":
            if not (self.profile or self.url):
                raise ValueError("mongo datastores need a connection profile or url")
            if self.profile and self.url:
                raise ValueError("give either a connection profile or a url, not both")
        return self


def coerce_datastore(value: Any) -> DatastoreConfig | None:
    """Normalize a model's datastore declaration.

    ``None`` stays ``None``; a string names a shared in-memory collection; a
    mapping is validated into a :class:`DatastoreConfig`.
    """
    if value is None or isinstance(value, DatastoreConfig):
        return value
    if isinstance(value, str):
        if not value:
            raise InvalidDatastoreConfig("datastore name must not be empty")
        return DatastoreConfig(collection=value)
    if isinstance(value, Mapping):
        try:
            return DatastoreConfig.model_validate(dict(value))
        except ValidationError as exc:
            raise InvalidDatastoreConfig(f"invalid datastore configuration: {exc}") from exc
    raise InvalidDatastoreConfig(f"unsupported datastore declaration: {value!r}")


class DatastoreRegistry:
    """Creates and memoizes one collection handle per model class.

    Handles are built on first access from ``model.datastore()`` and reused
    for the lifetime of the registry.
    """

    def __init__(self, connection_manager: ConnectionManager | None = None) -> None:
        self._connection_manager = connection_manager or ConnectionManager()
        self._handles: dict[type, Collection] = {}
        self._named: dict[str, MemoryCollection] = {}

    @property
    def connection_manager(self) -> ConnectionManager:
        return self._connection_manager

    def register(self, model: type[Model], collection: Collection) -> None:
        """Register a custom collection handle for a model class."""
        self._handles[model] = collection

    def named_collection(self, name: str, options: dict[str, Any] | None = None) -> MemoryCollection:
        """Return the shared in-memory collection called *name*, creating it once."""
        if name not in self._named:
            logger.debug("Creating in-memory collection '%s'", name)
            self._named[name] = MemoryCollection(name=name, options=options)
        return self._named[name]

    def get_collection(self, model: type[Model]) -> Collection:
        """Resolve the collection handle for a model class, memoized."""
        if model not in self._handles:
            self._handles[model] = self._build(model)
        return self._handles[model]

    def reset(self) -> None:
        """Forget every memoized handle and named in-memory collection."""
        self._handles.clear()
        self._named.clear()

    def _build(self, model: type[Model]) -> Collection:
        config = coerce_datastore(model.datastore())

        if config is None:
            logger.debug("Creating anonymous in-memory collection for %s", model.__name__)
            return MemoryCollection()

        if config.engine == "memory":
            if config.collection is None:
                logger.debug("Creating anonymous in-memory collection for %s", model.__name__)
                return MemoryCollection(options=config.options)
            return self.named_collection(config.collection, config.options)

        from ninja_records.engines.mongo import MongoCollection

        profile_name = config.profile
        if profile_name is None:
            profile_name = f"url:{hashlib.sha256(config.url.encode()).hexdigest()[:12]}"
            try:
                self._connection_manager.get_profile(profile_name)
            except KeyError:
                self._connection_manager.add_profile(profile_name, ConnectionProfile(url=config.url))

        database = self._connection_manager.get_mongo_database(profile_name, config.database)
        name = config.collection or model.__name__.lower()
        logger.debug("Binding %s to MongoDB collection '%s' (profile '%s')", model.__name__, name, profile_name)
        return MongoCollection(database.get_collection(name, **config.options))


_default_registry = DatastoreRegistry()


def get_registry() -> DatastoreRegistry:
    """Return the process-wide registry used when none is passed explicitly."""
    return _default_registry


def set_registry(registry: DatastoreRegistry) -> None:
    """Replace the process-wide registry (handles already resolved are kept by their callers)."""
    global _default_registry
    _default_registry = registry


def resolve(model: type[Model], registry: DatastoreRegistry | None = None) -> Callable[[], Collection]:
    """Return a zero-argument accessor for *model*'s collection handle."""
    return functools.partial((registry or _default_registry).get_collection, model)
