"""Pydantic models for export configuration."""

from enum import Enum
from pathlib import Path

from pydantic import BaseModel, Field


# ============================================================================
# Enums
# ============================================================================


class ExportFormat(str, Enum):
    """Which sinks an export writes to."""

    JSON = "json"
    SQL = "sql"
    BOTH = "both"


class LogLevel(str, Enum):
    """Console verbosity."""

    QUIET = "quiet"
    NORMAL = "normal"
    VERBOSE = "verbose"


# ============================================================================
# Configuration Models
# ============================================================================


class SqlOptions(BaseModel):
    """SQL Server script options from the ``[sql]`` table."""

    schema_name: str = "dbo"  # Empty string = no schema prefix
    include_create_table: bool = True
    include_drop_table: bool = True


class ExportConfig(BaseModel):
    """Complete export configuration from export.toml."""

    service_account_path: Path = Path("./serviceAccountKey.json")
    project: str | None = None
    collections: list[str] = Field(default_factory=list)  # Empty = all root collections
    output_dir: Path = Path("./output")
    batch_size: int = Field(default=500, gt=0)
    continue_on_error: bool = True
    log_level: LogLevel = LogLevel.NORMAL
    state_file: Path = Path(".export-state.json")
    format: ExportFormat = ExportFormat.BOTH
    sql: SqlOptions = Field(default_factory=SqlOptions)

    @property
    def json_dir(self) -> Path:
        return self.output_dir / "json"

    @property
    def sql_dir(self) -> Path:
        return self.output_dir / "sql"
