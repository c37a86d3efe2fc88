"""Persistence collaborator used by the importer.

``FixtureStore`` is the contract the importer relies on; ``SQLAlchemyStore``
implements it on an async SQLAlchemy engine and a declarative base.
"""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable

import sqlalchemy as sa
import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import DeclarativeBase

from FixtureSeed.errors import AmbiguousReferenceError
from FixtureSeed.registry import EntityRegistry, EntityType

log = structlog.get_logger()


@runtime_checkable
class FixtureStore(Protocol):
    async def ensure_deleted(self) -> None: ...

    async def ensure_created(self) -> None: ...

    def entity_type(self, name: str) -> EntityType: ...

    def create_instance(self, name: str) -> Any: ...

    async def find_one(self, name: str, field_name: str, value: Any) -> Any | None: ...

    async def save(self, entity: Any) -> None: ...


class SQLAlchemyStore:
    """Store backed by one long-lived ``AsyncSession``.

    Every ``save`` commits, so generated ids follow save order and later
    lookups see earlier rows.
    """

    def __init__(
        self,
        engine: AsyncEngine,
        base: type[DeclarativeBase],
        registry: EntityRegistry | None = None,
    ):
        self.engine = engine
        self.metadata = base.metadata
        self.registry = registry if registry is not None else EntityRegistry.from_base(base)
        self._sessionmaker = async_sessionmaker(engine, expire_on_commit=False)
        self._session: AsyncSession | None = None

    @property
    def session(self) -> AsyncSession:
        if self._session is None:
            self._session = self._sessionmaker()
        return self._session

    async def ensure_deleted(self) -> None:
        await self.close()
        async with self.engine.begin() as conn:
            is_sqlite = conn.dialect.name == "sqlite"
            if is_sqlite:
                await conn.execute(sa.text("PRAGMA foreign_keys=OFF"))
            await conn.run_sync(self.metadata.drop_all)
            if is_sqlite:
                await conn.execute(sa.text("PRAGMA foreign_keys=ON"))

    async def ensure_created(self) -> None:
        async with self.engine.begin() as conn:
            await conn.run_sync(self.metadata.create_all)
        log.debug("db.schema.created", tables=sorted(self.metadata.tables))

    def entity_type(self, name: str) -> EntityType:
        return self.registry.get(name)

    def create_instance(self, name: str) -> Any:
        return self.entity_type(name).create()

    def query(self, name: str) -> sa.Select:
        return select(self.entity_type(name).mapped_class)

    async def find_one(self, name: str, field_name: str, value: Any) -> Any | None:
        entity_type = self.entity_type(name)
        column = getattr(entity_type.mapped_class, entity_type.property(field_name).name)
        # The entity being populated must not be flushed half-built by the lookup
        with self.session.no_autoflush:
            result = await self.session.execute(self.query(name).where(column == value).limit(2))
            matches = result.scalars().all()
        if len(matches) > 1:
            raise AmbiguousReferenceError(entity_type.name, field_name, value)
        return matches[0] if matches else None

    async def save(self, entity: Any) -> None:
        self.session.add(entity)
        try:
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise

    async def close(self) -> None:
        if self._session is not None:
            await self._session.close()
            self._session = None

    async def __aenter__(self) -> SQLAlchemyStore:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()
