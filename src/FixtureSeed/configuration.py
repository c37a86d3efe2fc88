"""Naming policies and lifecycle hooks for an import.

Subclass :class:`FixtureConfiguration` to map file and column names onto a
project's entity model, or to run code at points in the import. Hook methods
may be plain functions or coroutines. Extra callbacks for the same points can
be attached with :meth:`FixtureConfiguration.add_listener`.
"""

from __future__ import annotations

import inspect
from collections import defaultdict
from collections.abc import Callable
from pathlib import Path
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from FixtureSeed.fixture_file import FixtureFile, FixtureRow
    from FixtureSeed.store import FixtureStore

HOOK_EVENTS = (
    "before_import",
    "database_created",
    "entity_added",
    "entities_saved",
    "after_import",
)


class FixtureConfiguration:
    def __init__(self, data_folder: str | Path | None = None, file_pattern: str | None = None):
        # Folder holding the fixture files; resolved from settings or the
        # caller's location when left unset
        self.data_folder = Path(data_folder) if data_folder is not None else None
        self.file_pattern = file_pattern
        self._listeners: dict[str, list[Callable[..., Any]]] = defaultdict(list)

    # --- Naming policies ---

    def should_map_field(self, entity_name: str, field_name: str) -> bool:
        """Whether a column is copied onto the entity; ``-Name`` columns are not."""
        return not field_name.startswith("-")

    def get_entity_name(self, file_name: str) -> str:
        """Entity kind for a fixture file, given its name without extension."""
        return file_name

    def get_field_name(self, entity_name: str, field_name: str) -> str:
        """Property name for a column header."""
        return field_name

    def get_entity_name_for_field(self, entity_name: str, field_name: str) -> str:
        """Entity kind referenced by a foreign-key column.

        Returning ``field_name`` unchanged means "strip the Id suffix".
        """
        return field_name

    # --- Lifecycle hooks ---

    def on_before_import(self, store: FixtureStore) -> Any:
        pass

    def on_database_created(self, store: FixtureStore) -> Any:
        pass

    def on_entity_added(
        self, store: FixtureStore, entity_name: str, entity: Any, row: FixtureRow
    ) -> Any:
        """Called after an entity's first save; changes made here are saved again."""

    def on_entities_saved(
        self, store: FixtureStore, entity_name: str, entities: list[Any], fixture_file: FixtureFile
    ) -> Any:
        pass

    def on_after_import(self, store: FixtureStore) -> Any:
        pass

    def add_listener(self, event: str, callback: Callable[..., Any]) -> None:
        if event not in HOOK_EVENTS:
            raise ValueError(f"Unknown hook event: {event}")
        self._listeners[event].append(callback)

    async def notify(self, event: str, *args: Any) -> None:
        """Run the hook method for ``event`` and then its listeners, in order."""
        callbacks = [getattr(self, f"on_{event}"), *self._listeners.get(event, [])]
        for callback in callbacks:
            result = callback(*args)
            if inspect.isawaitable(result):
                await result
