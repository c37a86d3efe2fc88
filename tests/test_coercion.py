import uuid
from datetime import date, datetime
from decimal import Decimal

import pytest

from entities import Role
from FixtureSeed.coercion import CoercionError, coerce_value, is_null, unescape
from FixtureSeed.registry import EntityProperty, PropertyKind


def scalar(python_type):
    return EntityProperty("field", PropertyKind.SCALAR, python_type=python_type)


ROLE = EntityProperty("role", PropertyKind.ENUM, python_type=Role)
BADGE = EntityProperty("badge", PropertyKind.IDENTIFIER, python_type=uuid.UUID)


@pytest.mark.parametrize("text", ["null", "NULL", "Null"])
def test_null_in_any_case_is_none(text):
    assert is_null(text)
    assert coerce_value(scalar(int), text) is None
    assert coerce_value(ROLE, text) is None
    assert coerce_value(BADGE, text) is None


@pytest.mark.parametrize(
    "python_type,text,expected",
    [
        (str, "Acme Pty", "Acme Pty"),
        (str, "", ""),
        (int, "42", 42),
        (int, "-7", -7),
        (float, "2.5", 2.5),
        (Decimal, "91000.50", Decimal("91000.50")),
        (bool, "true", True),
        (bool, "False", False),
        (bool, "1", True),
        (date, "1999-03-01", date(1999, 3, 1)),
        (datetime, "2024-05-06T07:08:09", datetime(2024, 5, 6, 7, 8, 9)),
        (dict, '{"a": 1}', {"a": 1}),
    ],
)
def test_scalar_conversion(python_type, text, expected):
    assert coerce_value(scalar(python_type), text) == expected


@pytest.mark.parametrize(
    "python_type,text",
    [(int, "4.5"), (int, "forty"), (bool, "maybe"), (date, "1999-13-01"), (Decimal, "abc")],
)
def test_invalid_scalar_text(python_type, text):
    with pytest.raises(CoercionError):
        coerce_value(scalar(python_type), text)


def test_enum_parses_member_name():
    assert coerce_value(ROLE, "Manager") is Role.Manager


def test_enum_rejects_values_and_unknown_names():
    with pytest.raises(CoercionError, match="not a member of Role"):
        coerce_value(ROLE, "manager")
    with pytest.raises(CoercionError):
        coerce_value(ROLE, "Director")


def test_identifier_parses_canonical_text():
    value = "3f0b8a1e-2c4d-4e8f-9a6b-1c2d3e4f5a6b"
    assert coerce_value(BADGE, value) == uuid.UUID(value)


def test_identifier_rejects_malformed_text():
    with pytest.raises(CoercionError, match="not a valid identifier"):
        coerce_value(BADGE, "3f0b8a1e-nope")


def test_relation_cannot_take_scalar():
    relation = EntityProperty("organisation", PropertyKind.RELATION, target="Organisation")
    with pytest.raises(CoercionError):
        coerce_value(relation, "ABC")


def test_unescape_newlines():
    assert unescape("Line one\\nLine two") == "Line one\nLine two"
    assert unescape("a\\nb", "\r\n") == "a\r\nb"
    assert unescape("plain") == "plain"
