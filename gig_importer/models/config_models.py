from __future__ import annotations

from dataclasses import dataclass, field

from .import_result import ImportOptions
from .rows import ColumnMapping

"""Config dataclasses for the gig importer.

These are the typed shapes produced by ``gig_importer.config.loader`` after the
YAML file passed schema validation.
"""


@dataclass(frozen=True)
class DatabaseConfig:
    """Database connection configuration.

    Used as fallback when environment variables are not set.
    Environment variables take precedence over these values.
    """
    host: str | None = None
    port: int | None = None
    user: str | None = None
    password: str | None = None
    database: str | None = None
    dsn: str | None = None


@dataclass(frozen=True)
class ImportConfig:
    """Root configuration object for one import run."""
    input_file: str  # CSV / XLSX path
    user_id: str  # owner of every record written
    database: DatabaseConfig
    options: ImportOptions = field(default_factory=ImportOptions)
    column_mapping: ColumnMapping | None = None  # None -> auto-detect from headers
    null_sentinels: set[str] | None = None  # 空扱いする文字列 (大文字化済)
