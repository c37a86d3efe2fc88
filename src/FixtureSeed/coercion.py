"""Convert raw fixture text into typed property values.

Rules, in order:

1. ``null`` in any case means no value.
2. Enum properties take the member *name* (``Manager``), never its value.
3. Identifier properties parse the canonical UUID text.
4. Everything else goes through a pydantic ``TypeAdapter`` for the property's
   python type (numbers, booleans, dates, times, decimals, strings).
"""

from __future__ import annotations

import uuid
from functools import lru_cache
from typing import Any

from pydantic import TypeAdapter, ValidationError

from FixtureSeed.registry import EntityProperty, PropertyKind

NULL_LITERAL = "null"


class CoercionError(ValueError):
    """Raised when text is not a valid representation of the target type."""


def is_null(value: str) -> bool:
    return value.lower() == NULL_LITERAL


def unescape(value: str, newline: str = "\n") -> str:
    """Expand the two-character ``\\n`` escape used to embed line breaks in a column."""
    return value.replace("\\n", newline)


@lru_cache(maxsize=128)
def _adapter(python_type: type) -> TypeAdapter:
    return TypeAdapter(python_type)


def coerce_value(prop: EntityProperty, value: str) -> Any:
    if is_null(value):
        return None

    if prop.kind is PropertyKind.ENUM:
        enum_class = prop.python_type
        try:
            return enum_class[value]  # type: ignore[index]
        except KeyError as exc:
            raise CoercionError(f"{value!r} is not a member of {enum_class.__name__}") from exc

    if prop.kind is PropertyKind.IDENTIFIER:
        try:
            return uuid.UUID(value)
        except ValueError as exc:
            raise CoercionError(f"{value!r} is not a valid identifier") from exc

    if prop.kind is PropertyKind.RELATION:
        raise CoercionError(f"{prop.name} is a relation and cannot hold a scalar value")

    python_type = prop.python_type or str
    if python_type is str:
        return value
    try:
        if python_type in (dict, list):
            # JSON columns hold their value as JSON text in the fixture
            return _adapter(python_type).validate_json(value)
        return _adapter(python_type).validate_python(value)
    except ValidationError as exc:
        raise CoercionError(f"{value!r} is not a valid {python_type.__name__}") from exc
