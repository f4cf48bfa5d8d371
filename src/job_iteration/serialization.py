"""
Cursor serialization helpers.

Cursors are persisted alongside the job arguments, so every position must be
made of values the host can store and load back unchanged: strings, integers,
floats, booleans, None, and lists or dicts of those.
"""

import json
import logging
import warnings
from datetime import date, datetime
from typing import Any, List

from .models import CursorError

logger = logging.getLogger(__name__)

SQL_DATETIME_WITH_USEC = "%Y-%m-%d %H:%M:%S.%f"

_SIMPLE_SERIALIZABLE_TYPES = (str, int, float, type(None), bool)


def is_serializable(value: Any) -> bool:
    """
    Check whether a cursor survives a JSON round trip unchanged.

    Subclasses are rejected: a str subclass or an OrderedDict comes
    back as the plain base type.

    Args:
        value: Cursor or cursor component

    Returns:
        True if the value is composed only of built-in serializable types
    """
    value_type = type(value)
    if value_type is list:
        return all(is_serializable(element) for element in value)
    if value_type is dict:
        return all(
            type(key) is str and is_serializable(item)
            for key, item in value.items()
        )
    if value_type is float and value != value:
        return False
    return value_type in _SIMPLE_SERIALIZABLE_TYPES


def assert_valid_cursor(cursor: Any, enforce: bool = True) -> None:
    """
    Validate that a cursor can be persisted.

    Args:
        cursor: Cursor yielded by a producer
        enforce: Raise CursorError when True, otherwise warn and continue

    Raises:
        CursorError: If the cursor is not serializable and enforce is True
    """
    if is_serializable(cursor):
        return

    message = (
        "Cursor must be composed of objects capable of built-in (de)serialization: "
        "str, int, float, list, dict, True, False, or None."
    )
    if enforce:
        raise CursorError(message, cursor=cursor)

    warnings.warn(
        f"{message} ({cursor!r}) This will raise once serializable cursors are enforced.",
        DeprecationWarning,
        stacklevel=3,
    )
    logger.warning(f"Non-serializable cursor accepted in warn mode: {cursor!r}")


def serialize_cursor(cursor: Any) -> str:
    """Return the canonical JSON text of a cursor."""
    return json.dumps(cursor, sort_keys=True)


def deserialize_cursor(payload: str) -> Any:
    """Load a cursor from its canonical JSON text."""
    return json.loads(payload)


def column_value(value: Any) -> Any:
    """
    Convert a database value into its cursor representation.

    Datetimes become SQL-style strings with microseconds and dates become ISO
    strings; everything else is returned unchanged.
    """
    if isinstance(value, datetime):
        return value.strftime(SQL_DATETIME_WITH_USEC)
    if isinstance(value, date):
        return value.isoformat()
    return value


def as_position(cursor: Any) -> List[Any]:
    """Normalize a scalar, list or missing cursor into a list of components."""
    if cursor is None:
        return []
    if isinstance(cursor, (list, tuple)):
        return list(cursor)
    return [cursor]


def cursor_value(position: List[Any]) -> Any:
    """Collapse a single-component position into a scalar cursor."""
    if len(position) == 1:
        return position[0]
    return list(position)
