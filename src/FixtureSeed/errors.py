"""Error taxonomy for the fixture import engine.

Every failure raised while loading, ordering or importing fixture files derives
from :class:`FixtureImportError` so callers can catch the whole family at once.
Errors that concern a specific entity or field keep those names as attributes
for structured logging.
"""

from __future__ import annotations

from typing import Any


class FixtureImportError(Exception):
    """Base class for fixture import failures."""


class DataFolderNotFoundError(FixtureImportError):
    """Raised when the configured fixture folder does not exist."""

    def __init__(self, path: Any):
        self.path = path
        super().__init__(f"Fixture data folder not found: {path}")


class FormatError(FixtureImportError):
    """Raised when fixture text cannot be parsed as fixed-width data."""

    def __init__(self, message: str, *, path: Any = None, line_number: int | None = None):
        self.path = path
        self.line_number = line_number
        super().__init__(message)


class CyclicDependencyError(FixtureImportError):
    """Raised when fixture files reference each other in a cycle."""

    def __init__(self, remaining: list[str]):
        self.remaining = remaining
        names = ", ".join(remaining)
        super().__init__(f"Cyclic connections are not allowed between fixture files: {names}")


class UnknownEntityTypeError(FixtureImportError):
    def __init__(self, entity_name: str):
        self.entity_name = entity_name
        super().__init__(f"Entity type not found: {entity_name}")


class UnknownPropertyError(FixtureImportError):
    def __init__(self, entity_name: str, field_name: str):
        self.entity_name = entity_name
        self.field_name = field_name
        super().__init__(f"Property not found: {entity_name}.{field_name}")


class ReferenceNotFoundError(FixtureImportError):
    """Raised when a reference column names an entity that has not been imported."""

    def __init__(self, entity_name: str, field_name: str, value: Any):
        self.entity_name = entity_name
        self.field_name = field_name
        self.value = value
        super().__init__(f"Entity not found: {entity_name}.{field_name} = {value}")


class AmbiguousReferenceError(FixtureImportError):
    """Raised when a reference column matches more than one existing entity."""

    def __init__(self, entity_name: str, field_name: str, value: Any):
        self.entity_name = entity_name
        self.field_name = field_name
        self.value = value
        super().__init__(f"More than one entity found: {entity_name}.{field_name} = {value}")


class ValueConversionError(FixtureImportError):
    def __init__(self, entity_name: str, field_name: str, value: str):
        self.entity_name = entity_name
        self.field_name = field_name
        self.value = value
        super().__init__(f"Could not convert value for {entity_name}.{field_name}: {value}")


class PersistenceError(FixtureImportError):
    """Raised when the store fails to create, add or save an entity.

    The underlying exception is chained as ``__cause__``.
    """

    def __init__(self, phase: str, entity_name: str):
        self.phase = phase
        self.entity_name = entity_name
        super().__init__(f"Error {phase} {entity_name}")


class PreviousImportFailedError(FixtureImportError):
    """Replays the failure of the first import attempt in this process."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)
