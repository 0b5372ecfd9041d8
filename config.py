"""
config.py
---------
Centralised configuration management for the schema migrator.

Loads settings from environment variables (with .env file support via
python-dotenv). Provides typed, validated settings as frozen dataclasses
so configuration is immutable at runtime.

Design Decision:
    Using a dataclass with class-level defaults means the library works
    "out of the box" without any .env file, while still allowing
    environment-based overrides for production deployments.
"""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

_env_path = Path(__file__).parent / ".env"
if _env_path.exists():
    load_dotenv(dotenv_path=_env_path)

TRACE = 5  # Below DEBUG; per-row messages during data transfer

_DEFAULT_PORTS = {
    "mysql": 3306,
    "postgresql": 5432,
    "db2": 50000,
}


@dataclass(frozen=True)
class DatabaseConfig:
    """
    Connection settings for one side (source or target) of a migration.

    Username / password are NOT stored here; callers pass them to
    :func:`core.database.connect` so credentials never persist in config files.
    """
    dialect: str = "mysql"
    host: str = "localhost"
    port: int = 3306
    database: str = ""
    connect_timeout: int = 10

    @classmethod
    def from_env(cls, prefix: str, default_dialect: str) -> "DatabaseConfig":
        """Build a config from ``<prefix>_DIALECT``, ``<prefix>_HOST`` etc."""
        dialect = os.getenv(f"{prefix}_DIALECT", default_dialect).lower()
        return cls(
            dialect=dialect,
            host=os.getenv(f"{prefix}_HOST", "localhost"),
            port=int(os.getenv(f"{prefix}_PORT", str(_DEFAULT_PORTS.get(dialect, 0)))),
            database=os.getenv(f"{prefix}_NAME", ""),
            connect_timeout=int(os.getenv("DB_CONNECT_TIMEOUT", "10")),
        )


@dataclass(frozen=True)
class MigrationConfig:
    """Migration engine settings."""
    batch_size: int = field(
        default_factory=lambda: int(os.getenv("MIGRATION_BATCH_SIZE", "100"))
    )
    data_option: str = field(
        default_factory=lambda: os.getenv("MIGRATION_DATA_OPTION", "none").lower()
    )
    log_level: str = field(
        default_factory=lambda: os.getenv("LOG_LEVEL", "INFO").upper()
    )
    log_file: str | None = field(
        default_factory=lambda: os.getenv("LOG_FILE")  # None → log to stderr only
    )
    scripts_dir: Path = field(
        default_factory=lambda: Path(os.getenv("SCRIPTS_DIR", "."))
    )


@dataclass(frozen=True)
class AppConfig:
    """Root application configuration."""
    source: DatabaseConfig = field(
        default_factory=lambda: DatabaseConfig.from_env("SOURCE_DB", "mysql")
    )
    target: DatabaseConfig = field(
        default_factory=lambda: DatabaseConfig.from_env("TARGET_DB", "postgresql")
    )
    migration: MigrationConfig = field(default_factory=MigrationConfig)
    app_name: str = "Schema Migrator"
    app_version: str = "1.0.0"


def load_config() -> AppConfig:
    """
    Build and return the application configuration.

    Returns:
        AppConfig: Fully populated (and frozen) configuration object.

    Example::

        cfg = load_config()
        print(cfg.source.dialect)          # "mysql"
        print(cfg.migration.batch_size)    # 100
    """
    return AppConfig()


# Module-level singleton used throughout the application
CONFIG: AppConfig = load_config()


def get_log_level() -> int:
    """Convert string log level from config to logging module constant."""
    if CONFIG.migration.log_level == "TRACE":
        return TRACE
    level = getattr(logging, CONFIG.migration.log_level, None)
    if not isinstance(level, int):
        return logging.INFO
    return level
