#!/usr/bin/env python3
"""Recreate a database and seed it from a folder of fixture files.

Usage:
  python scripts/seed_fixtures.py --base myapp.models:Base --data-folder tests/data \
      [--database-url sqlite:///./dev.sqlite3]

Unset options fall back to settings (env, .env, config.toml).
"""
from __future__ import annotations

import argparse
import asyncio
import importlib
import json
from pathlib import Path
import sys

import structlog

# Ensure src is on the import path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from FixtureSeed.config import load_settings  # type: ignore
from FixtureSeed.configuration import FixtureConfiguration  # type: ignore
from FixtureSeed.db import create_engine  # type: ignore
from FixtureSeed.errors import FixtureImportError  # type: ignore
from FixtureSeed.importer import import_fixtures  # type: ignore
from FixtureSeed.logging import redact_settings, setup_logging  # type: ignore
from FixtureSeed.store import SQLAlchemyStore  # type: ignore

log = structlog.get_logger()


def load_base(path: str):
    """Resolve ``package.module:Attribute`` to the declarative base it names."""
    module_name, sep, attr = path.partition(":")
    if not sep or not module_name or not attr:
        raise ValueError(f"Expected module:Base, got {path!r}")
    module = importlib.import_module(module_name)
    return getattr(module, attr)


async def seed(base, data_folder: Path | None, database_url: str | None, settings) -> dict:
    engine = create_engine(database_url, settings=settings)
    try:
        async with SQLAlchemyStore(engine, base) as store:
            outcome = await import_fixtures(
                store, FixtureConfiguration(data_folder=data_folder), settings=settings
            )
    finally:
        await engine.dispose()
    summary = outcome.summary
    return {
        "status": outcome.status.value,
        "order": summary.order if summary else [],
        "rows": summary.rows if summary else {},
    }


def main(argv: list[str] | None = None) -> int:
    ap = argparse.ArgumentParser(description="Seed a database from fixture files")
    ap.add_argument("--base", help="Declarative base as module:Attribute")
    ap.add_argument("--data-folder", type=Path)
    ap.add_argument("--database-url")
    args = ap.parse_args(argv)

    settings = load_settings()
    setup_logging(settings)
    log.info("seed.startup", config=redact_settings(settings))

    base_path = args.base or settings.fixtures_entity_module
    if not base_path:
        print("Error: --base is required (or set fixtures_entity_module)")
        return 2
    try:
        base = load_base(base_path)
    except (ValueError, ImportError, AttributeError) as exc:
        print(f"Error: cannot load {base_path}: {exc}")
        return 2

    data_folder = args.data_folder
    if data_folder is None and settings.fixtures_data_folder:
        data_folder = Path(settings.fixtures_data_folder)
    if data_folder is None:
        data_folder = Path.cwd() / "data"

    try:
        result = asyncio.run(seed(base, data_folder, args.database_url, settings))
    except FixtureImportError as exc:
        print(f"FixtureImportError: {exc}")
        return 1

    print("=== Seed Summary ===")
    print(json.dumps(result, indent=2, default=str))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
