"""Settings loader for FixtureSeed."""

from pathlib import Path
from typing import Any

import tomllib
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

CONFIG_FILE = "config.toml"

# config.toml section -> {key: Settings field}
_TOML_KEYS: dict[str, dict[str, str]] = {
    "app": {"env": "env"},
    "database": {"url": "database_url"},
    "fixtures": {
        "data_folder": "fixtures_data_folder",
        "file_pattern": "fixtures_file_pattern",
        "entity_module": "fixtures_entity_module",
    },
    "logging": {
        "level": "logging_level",
        "file_path": "logging_file_path",
        "max_bytes": "logging_max_bytes",
        "backup_count": "logging_backup_count",
    },
}


def _handler_level(value: Any, overall: str) -> str | None:
    # Strings name a level or NONE; True means the overall level, False means NONE
    if isinstance(value, bool):
        return overall if value else "NONE"
    if isinstance(value, str):
        return value.upper()
    return None


def _toml_settings_source() -> dict[str, Any]:
    """Settings read from config.toml in the working directory.

    Ranked below the environment and .env, so either can override a file value.
    """
    path = Path(CONFIG_FILE)
    if not path.exists():
        return {}
    with path.open("rb") as f:
        doc = tomllib.load(f)

    out: dict[str, Any] = {}
    for section, keys in _TOML_KEYS.items():
        table = doc.get(section) or {}
        for key, field_name in keys.items():
            if table.get(key) not in (None, ""):
                out[field_name] = table[key]

    log_cfg = doc.get("logging") or {}
    overall = str(out.get("logging_level", "INFO")).upper()
    for key, field_name in (("console", "logging_console"), ("to_file", "logging_file")):
        level = _handler_level(log_cfg.get(key), overall)
        if level is not None:
            out[field_name] = level
    return out


class Settings(BaseSettings):
    env: str = Field(default="dev")
    database_url: str = Field(default="sqlite+aiosqlite:///./fixtures.sqlite3")

    # --- Fixtures ---
    # Folder of fixture files; unset means "data" beside the calling module
    fixtures_data_folder: str | None = None
    fixtures_file_pattern: str = "*.txt"
    # "package.module:Base" path used by the command-line driver
    fixtures_entity_module: str | None = None

    # --- Logging ---
    logging_level: str = "INFO"
    logging_console: str = "INFO"
    logging_file: str = "NONE"
    logging_file_path: str = "logs/fixtureseed.jsonl"
    logging_max_bytes: int = 5_000_000
    logging_backup_count: int = 5

    model_config = SettingsConfigDict(
        env_prefix="",
        case_sensitive=False,
        env_file=".env",
        extra="ignore",
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls,
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        # Highest first: explicit kwargs, .env, OS environment, config.toml, secrets
        return (
            init_settings,
            dotenv_settings,
            env_settings,
            _toml_settings_source,
            file_secret_settings,
        )


def load_settings(**overrides: Any) -> Settings:
    """Fresh settings; keyword overrides take precedence over every source."""
    return Settings(**overrides)
