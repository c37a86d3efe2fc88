"""Fixture import orchestrator.

``import_fixtures`` is meant to be awaited at the start of every test that
needs seeded data. The first call in the process recreates the store and
imports every fixture file; all later calls, including ones that were waiting
while the first ran, return its outcome without touching the store. A failed
import is never retried: its message is replayed to every later caller as a
:class:`PreviousImportFailedError`, so one root cause shows up against every
test instead of a cascade of unrelated errors.

Within an import, files are processed in dependency order and rows in file
order, saving each entity before the next row is read. Generated ids therefore
follow the fixture files, and a row can refer to any row imported before it.
"""

from __future__ import annotations

import asyncio
import enum
import inspect
import os
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import structlog
from structlog.contextvars import bound_contextvars

from FixtureSeed.coercion import CoercionError, coerce_value, is_null, unescape
from FixtureSeed.config import Settings, load_settings
from FixtureSeed.configuration import FixtureConfiguration
from FixtureSeed.dependencies import (
    build_dependencies,
    is_dotted_field,
    is_foreign_key_field,
    split_dotted_field,
    topological_sort,
)
from FixtureSeed.errors import (
    DataFolderNotFoundError,
    FixtureImportError,
    PersistenceError,
    PreviousImportFailedError,
    ReferenceNotFoundError,
    UnknownPropertyError,
    ValueConversionError,
)
from FixtureSeed.fixture_file import FixtureFile, FixtureRow, load_fixture_file
from FixtureSeed.metrics import inc_counter, timed
from FixtureSeed.registry import EntityType, PropertyKind
from FixtureSeed.store import FixtureStore

log = structlog.get_logger()

DEFAULT_DATA_SUBFOLDER = "data"
DEFAULT_FILE_PATTERN = "*.txt"
# Generated by the store, never copied from a fixture
IDENTIFIER_FIELD = "ID"


class ImportStatus(str, enum.Enum):
    NOT_STARTED = "not_started"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass(frozen=True)
class ImportSummary:
    """Entity kinds in import order with the number of rows saved for each."""

    order: list[str] = field(default_factory=list)
    rows: dict[str, int] = field(default_factory=dict)

    @property
    def total_rows(self) -> int:
        return sum(self.rows.values())


@dataclass(frozen=True)
class ImportOutcome:
    status: ImportStatus = ImportStatus.NOT_STARTED
    message: str | None = None
    summary: ImportSummary | None = None

    @property
    def succeeded(self) -> bool:
        return self.status is ImportStatus.SUCCEEDED

    @property
    def failed(self) -> bool:
        return self.status is ImportStatus.FAILED


def describe_failure(exc: BaseException) -> str:
    message = f"{type(exc).__name__}: {exc}"
    cause = exc.__cause__
    if cause is not None:
        message += f" (caused by {type(cause).__name__}: {cause})"
    return message


class ImportBarrier:
    """Runs an import at most once and replays its outcome to every caller.

    Entry is serialized by a lock; the outcome is only written while holding it.
    """

    def __init__(self) -> None:
        self._lock = asyncio.Lock()
        self._outcome = ImportOutcome()

    @property
    def outcome(self) -> ImportOutcome:
        return self._outcome

    async def run(self, pipeline: Callable[[], Awaitable[ImportSummary | None]]) -> ImportOutcome:
        async with self._lock:
            if self._outcome.succeeded:
                inc_counter("fixtures.import.replayed")
                return self._outcome
            if self._outcome.failed:
                inc_counter("fixtures.import.replayed")
                log.warning("fixtures.import.replayed", error=self._outcome.message)
                raise PreviousImportFailedError(self._outcome.message or "")

            inc_counter("fixtures.import.runs")
            try:
                with timed("fixtures.import.duration_ms"):
                    summary = await pipeline()
            except BaseException as exc:
                # Recorded even on cancellation so the import is never attempted twice
                self._outcome = ImportOutcome(ImportStatus.FAILED, message=describe_failure(exc))
                inc_counter("fixtures.import.failed")
                log.error("fixtures.import.failed", error=self._outcome.message, exc_info=True)
                raise

            self._outcome = ImportOutcome(ImportStatus.SUCCEEDED, summary=summary)
            inc_counter("fixtures.import.succeeded")
            return self._outcome


def discover_fixture_files(
    folder: Path,
    configuration: FixtureConfiguration,
    pattern: str = DEFAULT_FILE_PATTERN,
) -> list[FixtureFile]:
    """Parse every fixture file in ``folder``, in file name order."""
    folder = Path(folder)
    if not folder.is_dir():
        raise DataFolderNotFoundError(folder)
    files: list[FixtureFile] = []
    for path in sorted(folder.glob(pattern)):
        if not path.is_file():
            continue
        fixture = load_fixture_file(path, configuration.get_entity_name(path.stem))
        inc_counter("fixtures.files.loaded")
        log.debug(
            "fixtures.file.loaded",
            path=str(path),
            entity=fixture.entity_name,
            fields=fixture.field_names,
            rows=len(fixture.rows),
        )
        files.append(fixture)
    return files


def load_fixture_files(
    folder: Path,
    configuration: FixtureConfiguration | None = None,
    pattern: str = DEFAULT_FILE_PATTERN,
) -> list[FixtureFile]:
    """Parse the fixture files in ``folder`` and return them in import order."""
    configuration = configuration or FixtureConfiguration()
    files = discover_fixture_files(folder, configuration, pattern)
    build_dependencies(files, configuration)
    ordered = topological_sort(files)
    log.info("fixtures.files.sequenced", order=[f.entity_name for f in ordered])
    return ordered


class FixtureImporter:
    """Imports one folder of fixture files into a store, once, unguarded.

    Use :func:`import_fixtures` from tests; this class is the pipeline it runs.
    """

    def __init__(
        self,
        store: FixtureStore,
        configuration: FixtureConfiguration | None = None,
        *,
        settings: Settings | None = None,
        caller_file: str | None = None,
    ):
        self.store = store
        self.configuration = configuration or FixtureConfiguration()
        self.settings = settings or load_settings()
        self.data_folder = self._resolve_data_folder(caller_file)
        self.file_pattern = (
            self.configuration.file_pattern or self.settings.fixtures_file_pattern
        )
        self.files: list[FixtureFile] = []

    def _resolve_data_folder(self, caller_file: str | None) -> Path:
        if self.configuration.data_folder is not None:
            return Path(self.configuration.data_folder)
        if self.settings.fixtures_data_folder:
            return Path(self.settings.fixtures_data_folder)
        base = Path(caller_file).resolve().parent if caller_file else Path.cwd()
        return base / DEFAULT_DATA_SUBFOLDER

    async def run(self) -> ImportSummary:
        with bound_contextvars(data_folder=str(self.data_folder)):
            log.info("fixtures.import.start")
            await self.configuration.notify("before_import", self.store)

            self.files = load_fixture_files(self.data_folder, self.configuration, self.file_pattern)
            await self.recreate_store()

            rows: dict[str, int] = {}
            for fixture in self.files:
                entities = await self.import_file(fixture)
                rows[fixture.entity_name] = len(entities)

            await self.configuration.notify("after_import", self.store)
            summary = ImportSummary(order=[f.entity_name for f in self.files], rows=rows)
            log.info("fixtures.import.complete", files=len(self.files), rows=summary.total_rows)
            return summary

    async def recreate_store(self) -> None:
        try:
            await self.store.ensure_deleted()
            await self.store.ensure_created()
        except FixtureImportError:
            raise
        except Exception as exc:
            raise PersistenceError("recreating", "database") from exc
        log.info("fixtures.store.recreated")
        await self.configuration.notify("database_created", self.store)

    async def import_file(self, fixture: FixtureFile) -> list[Any]:
        entity_type = self.store.entity_type(fixture.entity_name)
        entities: list[Any] = []
        for row in fixture.rows:
            entity = self.store.create_instance(fixture.entity_name)
            await self.populate(entity_type, entity, fixture, row)
            entities.append(entity)

            await self._save(entity_type, entity, "adding")
            await self.configuration.notify(
                "entity_added", self.store, fixture.entity_name, entity, row
            )
            # Hooks may have changed the entity
            await self._save(entity_type, entity, "saving")
            inc_counter("fixtures.rows.imported", entity=fixture.entity_name)

        await self.configuration.notify(
            "entities_saved", self.store, fixture.entity_name, entities, fixture
        )
        log.info("fixtures.file.imported", entity=fixture.entity_name, rows=len(entities))
        return entities

    async def populate(
        self, entity_type: EntityType, entity: Any, fixture: FixtureFile, row: FixtureRow
    ) -> None:
        for column, raw in row.items():
            if column.upper() == IDENTIFIER_FIELD:
                continue
            if not self.configuration.should_map_field(fixture.entity_name, column):
                continue

            value = unescape(raw, os.linesep)
            if is_dotted_field(column):
                relation, other = split_dotted_field(column)
                await self.set_reference(entity_type, entity, relation, other, value)
                continue

            field_name = self.configuration.get_field_name(fixture.entity_name, column)
            if is_foreign_key_field(column):
                relation, other = field_name[:-2], field_name[-2:]
                prop = entity_type.find_property(relation)
                # A plain column such as ExternalId is set like any other value
                if prop is not None and prop.kind is PropertyKind.RELATION:
                    await self.set_reference(entity_type, entity, relation, other, value)
                    continue
            self.set_value(entity_type, entity, field_name, value)

    async def set_reference(
        self, entity_type: EntityType, entity: Any, relation: str, other_field: str, value: str
    ) -> None:
        prop = entity_type.property(relation)
        if prop.kind is not PropertyKind.RELATION:
            raise UnknownPropertyError(entity_type.name, relation)
        if is_null(value):
            entity_type.set(entity, relation, None)
            return

        target = self.store.entity_type(prop.target)
        other_prop = target.property(other_field)
        try:
            lookup = coerce_value(other_prop, value)
        except CoercionError as exc:
            raise ValueConversionError(target.name, other_prop.name, value) from exc

        other = await self.store.find_one(target.name, other_prop.name, lookup)
        if other is None:
            raise ReferenceNotFoundError(target.name, other_prop.name, value)
        entity_type.set(entity, relation, other)
        inc_counter("fixtures.references.resolved", entity=entity_type.name)

    def set_value(self, entity_type: EntityType, entity: Any, field_name: str, value: str) -> None:
        prop = entity_type.property(field_name)
        try:
            converted = coerce_value(prop, value)
        except CoercionError as exc:
            raise ValueConversionError(entity_type.name, prop.name, value) from exc
        entity_type.set(entity, field_name, converted)

    async def _save(self, entity_type: EntityType, entity: Any, phase: str) -> None:
        try:
            await self.store.save(entity)
        except Exception as exc:
            raise PersistenceError(phase, entity_type.name) from exc


_barrier = ImportBarrier()


def import_fixtures(
    store: FixtureStore,
    configuration: FixtureConfiguration | None = None,
    *,
    settings: Settings | None = None,
) -> Awaitable[ImportOutcome]:
    """Seed ``store`` from fixture files, at most once per process.

    Await the result. Without a configured data folder, fixtures are read from
    the ``data`` folder next to the module that made the call.

    Raises:
        PreviousImportFailedError: An earlier call in this process failed.
        FixtureImportError: This call ran the import and it failed.
    """
    # Not a coroutine function: the caller's frame is only visible here,
    # before the returned coroutine is handed to a task
    frame = inspect.currentframe()
    caller_file = frame.f_back.f_code.co_filename if frame and frame.f_back else None

    async def pipeline() -> ImportSummary:
        importer = FixtureImporter(
            store, configuration, settings=settings, caller_file=caller_file
        )
        return await importer.run()

    return _barrier.run(pipeline)


def import_outcome() -> ImportOutcome:
    """Outcome of this process's import so far."""
    return _barrier.outcome
