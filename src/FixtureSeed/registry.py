"""Entity registry: entity kind name -> factory and typed property table.

Fixture files name entity kinds and properties as plain strings. The registry
resolves those names against SQLAlchemy declarative classes, tagging each
settable property with the kind of value it holds so the importer knows how to
coerce fixture text into it.
"""

from __future__ import annotations

import enum
import uuid
from collections.abc import Callable, Iterable, Iterator
from dataclasses import dataclass
from typing import Any

import sqlalchemy as sa
from sqlalchemy.orm import DeclarativeBase

from FixtureSeed.errors import UnknownEntityTypeError, UnknownPropertyError


class PropertyKind(str, enum.Enum):
    SCALAR = "scalar"
    ENUM = "enum"
    IDENTIFIER = "identifier"
    RELATION = "relation"


@dataclass(frozen=True)
class EntityProperty:
    name: str
    kind: PropertyKind
    python_type: type | None = None
    # Entity name of the related class for RELATION properties
    target: str | None = None


def normalize_name(name: str) -> str:
    """Key used for tolerant lookups: ``OrganisationId`` and ``organisation_id`` collide."""
    return name.replace("_", "").lower()


def _column_property(name: str, column: sa.Column) -> EntityProperty:
    try:
        python_type = column.type.python_type
    except NotImplementedError:
        python_type = str
    if isinstance(python_type, type) and issubclass(python_type, enum.Enum):
        kind = PropertyKind.ENUM
    elif python_type is uuid.UUID:
        kind = PropertyKind.IDENTIFIER
    else:
        kind = PropertyKind.SCALAR
    return EntityProperty(name, kind, python_type=python_type)


class EntityType:
    def __init__(
        self,
        name: str,
        factory: Callable[[], Any],
        properties: Iterable[EntityProperty],
        *,
        table_name: str | None = None,
        mapped_class: type | None = None,
    ):
        self.name = name
        self.factory = factory
        self.table_name = table_name
        self.mapped_class = mapped_class
        self.properties: dict[str, EntityProperty] = {}
        self._tolerant: dict[str, EntityProperty] = {}
        for prop in properties:
            self.properties[prop.name] = prop
            self._tolerant.setdefault(normalize_name(prop.name), prop)

    @classmethod
    def from_mapped_class(cls, mapped_class: type, name: str | None = None) -> EntityType:
        mapper = sa.inspect(mapped_class)
        props: list[EntityProperty] = []
        for attr in mapper.column_attrs:
            props.append(_column_property(attr.key, attr.columns[0]))
        for rel in mapper.relationships:
            # Collections cannot be assigned from a single fixture value
            if rel.uselist:
                continue
            props.append(
                EntityProperty(
                    rel.key,
                    PropertyKind.RELATION,
                    python_type=rel.mapper.class_,
                    target=rel.mapper.class_.__name__,
                )
            )
        table = getattr(mapped_class, "__tablename__", None)
        return cls(
            name or mapped_class.__name__,
            mapped_class,
            props,
            table_name=table,
            mapped_class=mapped_class,
        )

    def create(self) -> Any:
        return self.factory()

    def find_property(self, name: str) -> EntityProperty | None:
        return self.properties.get(name) or self._tolerant.get(normalize_name(name))

    def property(self, name: str) -> EntityProperty:
        prop = self.find_property(name)
        if prop is None:
            raise UnknownPropertyError(self.name, name)
        return prop

    def set(self, entity: Any, name: str, value: Any) -> None:
        setattr(entity, self.property(name).name, value)

    def __repr__(self) -> str:
        return f"EntityType({self.name!r}, properties={list(self.properties)!r})"


class EntityRegistry:
    """Entity types known to a store, looked up by fixture entity name."""

    def __init__(self, types: Iterable[EntityType] = ()):
        self._types: dict[str, EntityType] = {}
        for entity_type in types:
            self.add(entity_type)

    @classmethod
    def from_base(cls, base: type[DeclarativeBase]) -> EntityRegistry:
        registry = cls()
        for mapper in base.registry.mappers:
            registry.register(mapper.class_)
        return registry

    def add(self, entity_type: EntityType) -> EntityType:
        self._types[entity_type.name] = entity_type
        return entity_type

    def register(self, mapped_class: type, name: str | None = None) -> EntityType:
        return self.add(EntityType.from_mapped_class(mapped_class, name))

    def find(self, name: str) -> EntityType | None:
        found = self._types.get(name)
        if found is not None:
            return found
        key = normalize_name(name)
        for entity_type in self._types.values():
            if normalize_name(entity_type.name) == key:
                return entity_type
            if entity_type.table_name and normalize_name(entity_type.table_name) == key:
                return entity_type
        return None

    def get(self, name: str) -> EntityType:
        entity_type = self.find(name)
        if entity_type is None:
            raise UnknownEntityTypeError(name)
        return entity_type

    def names(self) -> list[str]:
        return list(self._types)

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and self.find(name) is not None

    def __iter__(self) -> Iterator[EntityType]:
        return iter(self._types.values())

    def __len__(self) -> int:
        return len(self._types)
