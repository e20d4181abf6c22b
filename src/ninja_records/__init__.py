"""Ninja Records: active-record models over document collections for Ninja Stack."""

from ninja_records.connections import ConnectionManager, ConnectionProfile, redact_url
from ninja_records.cursor import Cursor
from ninja_records.datastore import DatastoreConfig, DatastoreRegistry, get_registry, resolve, set_registry
from ninja_records.defaults import augment
from ninja_records.engines.memory import MemoryCollection
from ninja_records.engines.mongo import MongoCollection
from ninja_records.exceptions import (
    DuplicateKeyError,
    InvalidConnectionURL,
    InvalidDatastoreConfig,
    PersistenceError,
    QueryError,
)
from ninja_records.extensions import BaseExtension, Extension, use
from ninja_records.extensions.soft_removes import SoftRemoves
from ninja_records.extensions.timestamps import Timestamps
from ninja_records.hydration import convert
from ninja_records.model import ID_FIELD, Model
from ninja_records.protocols import Collection, EngineCursor

__all__ = [
    "ID_FIELD",
    "BaseExtension",
    "Collection",
    "ConnectionManager",
    "ConnectionProfile",
    "Cursor",
    "DatastoreConfig",
    "DatastoreRegistry",
    "DuplicateKeyError",
    "EngineCursor",
    "Extension",
    "InvalidConnectionURL",
    "InvalidDatastoreConfig",
    "MemoryCollection",
    "Model",
    "MongoCollection",
    "PersistenceError",
    "QueryError",
    "SoftRemoves",
    "Timestamps",
    "augment",
    "convert",
    "get_registry",
    "redact_url",
    "resolve",
    "set_registry",
    "use",
]
