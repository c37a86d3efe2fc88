"""Tests for the entity registry built from the declarative test model."""

import uuid
from decimal import Decimal

import pytest

from entities import Base, Organisation, Role
from FixtureSeed.errors import UnknownEntityTypeError, UnknownPropertyError
from FixtureSeed.registry import EntityProperty, EntityRegistry, EntityType, PropertyKind


@pytest.fixture
def registry() -> EntityRegistry:
    return EntityRegistry.from_base(Base)


def test_registers_every_mapped_class(registry):
    assert sorted(registry.names()) == ["Employee", "Organisation"]
    assert len(registry) == 2
    assert "Employee" in registry


def test_lookup_is_tolerant_of_case_and_table_names(registry):
    assert registry.get("Organisation").mapped_class is Organisation
    assert registry.get("organisation").mapped_class is Organisation
    assert registry.get("organisations").mapped_class is Organisation


def test_unknown_entity(registry):
    with pytest.raises(UnknownEntityTypeError, match="Entity type not found: Widget"):
        registry.get("Widget")
    assert registry.find("Widget") is None
    assert "Widget" not in registry


def test_property_kinds(registry):
    employee = registry.get("Employee")
    assert employee.property("role") == EntityProperty("role", PropertyKind.ENUM, python_type=Role)
    assert employee.property("badge").kind is PropertyKind.IDENTIFIER
    assert employee.property("badge").python_type is uuid.UUID
    assert employee.property("salary").python_type is Decimal
    assert employee.property("active").python_type is bool

    relation = employee.property("organisation")
    assert relation.kind is PropertyKind.RELATION
    assert relation.target == "Organisation"


def test_collections_are_not_settable(registry):
    assert registry.get("Organisation").find_property("employees") is None


def test_property_lookup_accepts_fixture_spelling(registry):
    employee = registry.get("Employee")
    assert employee.property("Name").name == "name"
    assert employee.property("OrganisationId").name == "organisation_id"
    assert employee.property("Organisation").name == "organisation"
    with pytest.raises(UnknownPropertyError, match="Property not found: Employee.Colour"):
        employee.property("Colour")


def test_create_and_set(registry):
    org_type = registry.get("Organisation")
    org = org_type.create()
    assert isinstance(org, Organisation)
    org_type.set(org, "Code", "ABC")
    assert org.code == "ABC"


def test_hand_registered_type():
    class Point:
        x = 0

    point_type = EntityType(
        "Point", Point, [EntityProperty("x", PropertyKind.SCALAR, python_type=int)]
    )
    registry = EntityRegistry([point_type])
    point = registry.get("Point").create()
    registry.get("Point").set(point, "X", 3)
    assert point.x == 3
