"""Export configuration: TOML loading and pydantic models."""

from docstore_export.config.loader import load_export_config, resolve_config_path
from docstore_export.config.models import ExportConfig, ExportFormat, LogLevel, SqlOptions

__all__ = [
    "ExportConfig",
    "ExportFormat",
    "LogLevel",
    "SqlOptions",
    "load_export_config",
    "resolve_config_path",
]
