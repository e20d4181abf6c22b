"""Document helpers for the in-memory engine: matching, updates, projection, sorting.

Everything here works on plain ``dict`` records and raises
:class:`DocumentError` for malformed queries; the collection re-raises those
as :class:`~ninja_records.exceptions.QueryError` with its own context.
"""

from __future__ import annotations

import copy
import re
from collections.abc import Callable, Mapping
from datetime import date, datetime
from typing import Any

_MISSING = object()


class DocumentError(ValueError):
    """A query, update or projection document that cannot be evaluated."""


# -- Paths --------------------------------------------------------------------


def get_path(doc: Any, path: str) -> Any:
    """Return the value at dotted *path*, or the module's missing sentinel.

    Numeric segments index into lists; other segments applied to a list
    collect the value from every element that has it.
    """
    current = doc
    parts = path.split(".")
    for position, part in enumerate(parts):
        if isinstance(current, Mapping):
            if part not in current:
                return _MISSING
            current = current[part]
        elif isinstance(current, list):
            if part.isdigit():
                index = int(part)
                if index >= len(current):
                    return _MISSING
                current = current[index]
            else:
                rest = ".".join(parts[position:])
                values = [get_path(item, rest) for item in current]
                return [value for value in values if value is not _MISSING]
        else:
            return _MISSING
    return current


def is_missing(value: Any) -> bool:
    return value is _MISSING


def _parent(doc: dict[str, Any], path: str, create: bool) -> tuple[Any, str] | None:
    parts = path.split(".")
    current: Any = doc
    for part in parts[:-1]:
        if isinstance(current, list) and part.isdigit() and int(part) < len(current):
            current = current[int(part)]
        elif isinstance(current, dict):
            if part not in current:
                if not create:
                    return None
                current[part] = {}
            current = current[part]
        else:
            return None
    return current, parts[-1]


def set_path(doc: dict[str, Any], path: str, value: Any) -> None:
    located = _parent(doc, path, create=True)
    if located is None:
        raise DocumentError(f"cannot set field '{path}': parent is not a document")
    container, key = located
    if isinstance(container, list):
        if not key.isdigit() or int(key) >= len(container):
            raise DocumentError(f"cannot set field '{path}': index out of range")
        container[int(key)] = value
    else:
        container[key] = value


def unset_path(doc: dict[str, Any], path: str) -> None:
    located = _parent(doc, path, create=False)
    if located is None:
        return
    container, key = located
    if isinstance(container, dict):
        container.pop(key, None)


# -- Matching -----------------------------------------------------------------


def match(doc: Mapping[str, Any], query: Mapping[str, Any]) -> bool:
    """Return True when *doc* satisfies every clause of *query*."""
    for key, condition in query.items():
        if key.startswith("$"):
            if not _match_logical(doc, key, condition):
                return False
        elif not match_value(get_path(doc, key), condition):
            return False
    return True


def _match_logical(doc: Mapping[str, Any], operator: str, condition: Any) -> bool:
    if operator == "$not":
        if not isinstance(condition, Mapping):
            raise DocumentError("$not expects a query document")
        return not match(doc, condition)
    if operator not in ("$and", "$or", "$nor"):
        raise DocumentError(f"unknown logical operator '{operator}'")
    if not isinstance(condition, (list, tuple)):
        raise DocumentError(f"{operator} expects a list of query documents")
    results = (match(doc, clause) for clause in condition)
    if operator == "$and":
        return all(results)
    if operator == "$or":
        return any(results)
    return not any(results)


def _is_operator_document(condition: Any) -> bool:
    if not isinstance(condition, Mapping) or not condition:
        return False
    operator_keys = [key for key in condition if isinstance(key, str) and key.startswith("$")]
    if operator_keys and len(operator_keys) != len(condition):
        raise DocumentError("cannot mix operators and plain fields in one condition")
    return bool(operator_keys)


def match_value(value: Any, condition: Any) -> bool:
    """Match a single field value against a literal or an operator document."""
    if _is_operator_document(condition):
        return all(_apply_operator(value, op, arg) for op, arg in condition.items())
    return _equals(value, condition)


def _equals(value: Any, expected: Any) -> bool:
    if value is _MISSING:
        return expected is None
    if isinstance(value, list) and not isinstance(expected, list):
        return any(item == expected for item in value)
    return value == expected


def _compare(value: Any, bound: Any, check: Callable[[Any, Any], bool]) -> bool:
    if value is _MISSING or value is None:
        return False
    candidates = value if isinstance(value, list) else [value]
    for candidate in candidates:
        try:
            if check(candidate, bound):
                return True
        except TypeError:
            continue
    return False


def _regex(value: Any, pattern: Any) -> bool:
    compiled = pattern if isinstance(pattern, re.Pattern) else re.compile(pattern)
    candidates = value if isinstance(value, list) else [value]
    return any(isinstance(item, str) and compiled.search(item) is not None for item in candidates)


def _elem_match(value: Any, condition: Any) -> bool:
    if not isinstance(value, list):
        return False
    for item in value:
        if isinstance(item, Mapping) and not _is_operator_document(condition):
            if match(item, condition):
                return True
        elif match_value(item, condition):
            return True
    return False


def _in(value: Any, options: Any) -> bool:
    if not isinstance(options, (list, tuple)):
        raise DocumentError("$in and $nin expect a list")
    return any(_equals(value, option) for option in options)


def _apply_operator(value: Any, operator: str, argument: Any) -> bool:
    if operator == "$eq":
        return _equals(value, argument)
    if operator == "$ne":
        return not _equals(value, argument)
    if operator == "$lt":
        return _compare(value, argument, lambda a, b: a < b)
    if operator == "$lte":
        return _compare(value, argument, lambda a, b: a <= b)
    if operator == "$gt":
        return _compare(value, argument, lambda a, b: a > b)
    if operator == "$gte":
        return _compare(value, argument, lambda a, b: a >= b)
    if operator == "$in":
        return _in(value, argument)
    if operator == "$nin":
        return not _in(value, argument)
    if operator == "$exists":
        return (value is not _MISSING) == bool(argument)
    if operator == "$regex":
        return _regex(value, argument)
    if operator == "$size":
        return isinstance(value, list) and len(value) == argument
    if operator == "$elemMatch":
        return _elem_match(value, argument)
    if operator == "$not":
        return not match_value(value, argument)
    raise DocumentError(f"unknown operator '{operator}'")


# -- Updates ------------------------------------------------------------------


def _each(argument: Any) -> list[Any]:
    if isinstance(argument, Mapping) and "$each" in argument:
        items = argument["$each"]
        if not isinstance(items, list):
            raise DocumentError("$each expects a list")
        return list(items)
    return [argument]


def _array_at(doc: dict[str, Any], path: str, operator: str) -> list[Any]:
    current = get_path(doc, path)
    if current is _MISSING:
        current = []
        set_path(doc, path, current)
    if not isinstance(current, list):
        raise DocumentError(f"{operator} on non-array field '{path}'")
    return current


def _set(doc: dict[str, Any], path: str, argument: Any) -> None:
    set_path(doc, path, copy.deepcopy(argument))


def _unset(doc: dict[str, Any], path: str, argument: Any) -> None:
    unset_path(doc, path)


def _inc(doc: dict[str, Any], path: str, argument: Any) -> None:
    current = get_path(doc, path)
    if current is _MISSING:
        current = 0
    if not isinstance(argument, (int, float)) or not isinstance(current, (int, float)):
        raise DocumentError(f"$inc needs numbers at field '{path}'")
    set_path(doc, path, current + argument)


def _push(doc: dict[str, Any], path: str, argument: Any) -> None:
    _array_at(doc, path, "$push").extend(copy.deepcopy(_each(argument)))


def _add_to_set(doc: dict[str, Any], path: str, argument: Any) -> None:
    array = _array_at(doc, path, "$addToSet")
    for item in _each(argument):
        if item not in array:
            array.append(copy.deepcopy(item))


def _pull(doc: dict[str, Any], path: str, argument: Any) -> None:
    array = _array_at(doc, path, "$pull")

    def pulled(item: Any) -> bool:
        if isinstance(item, Mapping) and isinstance(argument, Mapping) and not _is_operator_document(argument):
            return match(item, argument)
        return match_value(item, argument)

    array[:] = [item for item in array if not pulled(item)]


def _pop(doc: dict[str, Any], path: str, argument: Any) -> None:
    array = _array_at(doc, path, "$pop")
    if array:
        array.pop(0 if argument < 0 else -1)


def _bound(keep_lower: bool) -> Callable[[dict[str, Any], str, Any], None]:
    def apply(doc: dict[str, Any], path: str, argument: Any) -> None:
        current = get_path(doc, path)
        try:
            replace = current is _MISSING or (argument < current if keep_lower else argument > current)
        except TypeError as exc:
            raise DocumentError(f"cannot compare values at field '{path}'") from exc
        if replace:
            set_path(doc, path, copy.deepcopy(argument))

    return apply


_MODIFIERS: dict[str, Callable[[dict[str, Any], str, Any], None]] = {
    "$set": _set,
    "$unset": _unset,
    "$inc": _inc,
    "$push": _push,
    "$addToSet": _add_to_set,
    "$pull": _pull,
    "$pop": _pop,
    "$min": _bound(keep_lower=True),
    "$max": _bound(keep_lower=False),
}


def is_modifier_update(changes: Mapping[str, Any]) -> bool:
    modifiers = [key for key in changes if key.startswith("$")]
    if modifiers and len(modifiers) != len(changes):
        raise DocumentError("cannot mix modifiers and plain fields in an update")
    return bool(modifiers)


def apply_update(doc: Mapping[str, Any], changes: Mapping[str, Any]) -> dict[str, Any]:
    """Return a new record with *changes* applied to *doc*.

    *changes* is either a replacement document (``_id`` is kept) or a document
    of modifiers such as ``$set``. Changing ``_id`` is rejected.
    """
    if not is_modifier_update(changes):
        updated = copy.deepcopy(dict(changes))
        if "_id" in doc:
            if "_id" in updated and updated["_id"] != doc["_id"]:
                raise DocumentError("_id cannot be modified")
            updated["_id"] = doc["_id"]
        return updated

    updated = copy.deepcopy(dict(doc))
    for operator, fields in changes.items():
        modifier = _MODIFIERS.get(operator)
        if modifier is None:
            raise DocumentError(f"unknown update modifier '{operator}'")
        if not isinstance(fields, Mapping):
            raise DocumentError(f"{operator} expects a document of fields")
        for path, argument in fields.items():
            modifier(updated, path, argument)
    if updated.get("_id") != doc.get("_id"):
        raise DocumentError("_id cannot be modified")
    return updated


def upsert_base(query: Mapping[str, Any]) -> dict[str, Any]:
    """Seed document for an upsert: the plain equality clauses of *query*."""
    seed: dict[str, Any] = {}
    for key, condition in query.items():
        if key.startswith("$") or _is_operator_document(condition):
            continue
        set_path(seed, key, copy.deepcopy(condition))
    return seed


# -- Projection ---------------------------------------------------------------


def project(doc: Mapping[str, Any], projection: Mapping[str, Any] | None) -> dict[str, Any]:
    """Return a copy of *doc* restricted by an inclusion or exclusion projection."""
    if not projection:
        return copy.deepcopy(dict(doc))

    keep_id = bool(projection.get("_id", 1))
    fields = {key: bool(flag) for key, flag in projection.items() if key != "_id"}
    if len(set(fields.values())) > 1:
        raise DocumentError("cannot mix inclusion and exclusion in a projection")

    if fields and all(fields.values()):
        result: dict[str, Any] = {}
        if keep_id and "_id" in doc:
            result["_id"] = doc["_id"]
        for path in fields:
            value = get_path(doc, path)
            if value is not _MISSING:
                set_path(result, path, copy.deepcopy(value))
        return result

    result = copy.deepcopy(dict(doc))
    for path in fields:
        unset_path(result, path)
    if not keep_id:
        result.pop("_id", None)
    return result


# -- Sorting ------------------------------------------------------------------


def _sort_key(value: Any) -> tuple[int, Any]:
    if value is _MISSING or value is None:
        return (0, 0)
    if isinstance(value, bool):
        return (5, value)
    if isinstance(value, (int, float)):
        return (1, value)
    if isinstance(value, str):
        return (2, value)
    if isinstance(value, Mapping):
        return (3, repr(sorted(value.items(), key=repr)))
    if isinstance(value, list):
        return (4, repr(value))
    if isinstance(value, datetime):
        return (6, value.timestamp())
    if isinstance(value, date):
        return (6, datetime.combine(value, datetime.min.time()).timestamp())
    return (7, repr(value))


def sort_records(records: list[dict[str, Any]], spec: Mapping[str, int]) -> list[dict[str, Any]]:
    """Sort *records* by a ``{field: 1 | -1}`` spec; earlier keys take precedence."""
    ordered = list(records)
    for path, direction in reversed(list(spec.items())):
        ordered.sort(key=lambda record: _sort_key(get_path(record, path)), reverse=direction < 0)
    return ordered
