"""End-to-end check of the process-wide import entry point.

This is the only test that calls ``import_fixtures``: its outcome is cached for
the rest of the process, exactly as it would be in a project's own test suite.
Fixtures come from tests/data, the default folder beside this module.
"""

import asyncio

import pytest
from sqlalchemy import func, select
from sqlalchemy.orm import selectinload

from entities import Employee, Organisation
from FixtureSeed.importer import ImportStatus, import_fixtures, import_outcome


@pytest.mark.asyncio
async def test_import_fixtures_once_per_process(store, read_session):
    assert import_outcome().status is ImportStatus.NOT_STARTED

    first, second = await asyncio.gather(import_fixtures(store), import_fixtures(store))
    again = await import_fixtures(store)

    assert store.deleted == 1
    assert store.created == 1
    assert first is second is again
    assert first.succeeded
    assert first.summary.order == ["Organisation", "Employee"]
    assert import_outcome() is first

    await store.close()
    assert await read_session.scalar(select(func.count()).select_from(Organisation)) == 2
    assert await read_session.scalar(select(func.count()).select_from(Employee)) == 4

    result = await read_session.execute(
        select(Employee).options(selectinload(Employee.organisation))
    )
    codes = {e.name: e.organisation.code for e in result.scalars()}
    assert codes == {"Ron": "ABC", "Darren": "ABC", "Lisa": "XYZ", "Marie": "XYZ"}
