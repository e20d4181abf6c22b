"""Tests for the engine and configuration exceptions."""

import pytest
from ninja_records.exceptions import (
    DuplicateKeyError,
    InvalidConnectionURL,
    InvalidDatastoreConfig,
    PersistenceError,
    QueryError,
)


def test_persistence_error_message():
    """PersistenceError formats collection, operation and detail into the message."""
    exc = PersistenceError(collection="books", operation="insert", detail="something broke")
    assert str(exc) == "[books] insert failed: something broke"
    assert exc.collection == "books"
    assert exc.operation == "insert"
    assert exc.detail == "something broke"


def test_persistence_error_with_cause():
    cause = ValueError("original")
    exc = PersistenceError(collection="books", operation="update", detail="wrapped", cause=cause)
    assert exc.__cause__ is cause


def test_persistence_error_requires_keywords():
    with pytest.raises(TypeError):
        PersistenceError("books", "insert", "detail")


@pytest.mark.parametrize("exc_type", [DuplicateKeyError, QueryError])
def test_engine_errors_are_persistence_errors(exc_type):
    exc = exc_type(collection="books", operation="find", detail="bad")
    assert isinstance(exc, PersistenceError)


@pytest.mark.parametrize("exc_type", [InvalidDatastoreConfig, InvalidConnectionURL])
def test_configuration_errors_are_value_errors(exc_type):
    assert issubclass(exc_type, ValueError)
    assert not issubclass(exc_type, PersistenceError)
