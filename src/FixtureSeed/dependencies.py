"""Infer which fixture files depend on which, and order them for import.

A column references another entity kind in one of two ways:

* ``Organisation.Code`` - a dotted name, looked up by the field after the dot.
* ``OrganisationId`` - a foreign-key style name ending in ``Id`` in any case.

A file that references another file's entity must be imported after it.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import TYPE_CHECKING

import structlog

from FixtureSeed.errors import CyclicDependencyError
from FixtureSeed.fixture_file import FixtureFile

if TYPE_CHECKING:
    from FixtureSeed.configuration import FixtureConfiguration

log = structlog.get_logger()

ID_SUFFIX = "id"
EXCLUDED_PREFIX = "-"


def is_dotted_field(field_name: str) -> bool:
    return "." in field_name


def is_foreign_key_field(field_name: str) -> bool:
    return field_name.lower().endswith(ID_SUFFIX)


def is_reference_field(field_name: str) -> bool:
    return is_dotted_field(field_name) or is_foreign_key_field(field_name)


def split_dotted_field(field_name: str) -> tuple[str, str]:
    """Split ``Entity.Field`` into the relation name and the looked-up field."""
    relation, _, other = field_name.partition(".")
    return relation, other


def referenced_entity_name(
    entity_name: str, field_name: str, configuration: FixtureConfiguration
) -> str | None:
    """Return the entity kind a column refers to, or None for plain columns."""
    if not is_reference_field(field_name):
        return None
    if is_dotted_field(field_name):
        return split_dotted_field(field_name)[0].lstrip(EXCLUDED_PREFIX)
    mapped = configuration.get_field_name(entity_name, field_name)
    target = configuration.get_entity_name_for_field(entity_name, mapped)
    if target == mapped:
        target = mapped[:-2]
    return target.lstrip(EXCLUDED_PREFIX)


def build_dependencies(
    files: Iterable[FixtureFile], configuration: FixtureConfiguration
) -> list[FixtureFile]:
    """Populate ``dependencies`` on every file from its column names."""
    files = list(files)
    by_entity: dict[str, FixtureFile] = {}
    for f in files:
        by_entity.setdefault(f.entity_name, f)

    for f in files:
        for field_name in f.field_names:
            target = referenced_entity_name(f.entity_name, field_name, configuration)
            if not target:
                continue
            dep = by_entity.get(target)
            if dep is not None:
                f.add_dependency(dep)
        if f.dependencies:
            log.debug(
                "fixtures.file.dependencies",
                entity=f.entity_name,
                depends_on=[d.entity_name for d in f.dependencies],
            )
    return files


def topological_sort(files: Iterable[FixtureFile]) -> list[FixtureFile]:
    """Order files so that each one follows everything it depends on.

    Among files that are ready at the same time the earliest one in the input
    is emitted first, so a sorted discovery order gives a reproducible import
    order (and therefore reproducible generated ids).

    Raises:
        CyclicDependencyError: The remaining files all wait on each other.
    """
    pending: dict[FixtureFile, set[FixtureFile]] = {}
    for f in files:
        pending[f] = set(f.dependencies)
    # Dependencies outside the input set can never be emitted, ignore them
    for deps in pending.values():
        deps.intersection_update(pending)

    ordered: list[FixtureFile] = []
    while pending:
        ready = next((f for f, deps in pending.items() if not deps), None)
        if ready is None:
            raise CyclicDependencyError([f.entity_name for f in pending])
        del pending[ready]
        for deps in pending.values():
            deps.discard(ready)
        ordered.append(ready)

    return ordered
