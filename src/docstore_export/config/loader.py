"""Configuration loading from export.toml."""

import os
import tomllib
from pathlib import Path

from pydantic import ValidationError

from docstore_export.config.models import ExportConfig

DEFAULT_CONFIG_FILE = Path("export.toml")
CONFIG_ENV_SUFFIX = "EXPORT_CONFIG"


def resolve_config_path(explicit: Path | None = None, env_prefix: str = "") -> Path:
    """Pick the config file to load.

    Priority:
    1. Explicit path (``--config``)
    2. ``<PREFIX>EXPORT_CONFIG`` env var
    3. ``export.toml`` in the working directory

    Args:
        explicit: Path given on the command line, if any.
        env_prefix: Environment variable prefix (e.g., ``"DOCSTORE_"``).

    Returns:
        Path to the config file (which may not exist).
    """
    if explicit is not None:
        return Path(explicit)

    env_path = os.environ.get(f"{env_prefix}{CONFIG_ENV_SUFFIX}")
    if env_path:
        return Path(env_path)

    return DEFAULT_CONFIG_FILE


def load_export_config(config_path: Path | None = None) -> ExportConfig:
    """Load export configuration from a TOML file.

    Top-level keys map onto ``ExportConfig`` fields; the ``[sql]`` table
    maps onto ``SqlOptions``.  Relative paths are kept as written and
    resolve against the working directory.

    Args:
        config_path: Path to export.toml (default: ./export.toml)

    Returns:
        ExportConfig; all defaults when the file does not exist.

    Raises:
        ValueError: If the file exists but is not valid TOML or has
            invalid values.

    Example:
        >>> config = load_export_config(Path("export.toml"))
        >>> config.batch_size
        500
    """
    if config_path is None:
        config_path = DEFAULT_CONFIG_FILE

    if not config_path.exists():
        return ExportConfig()

    try:
        with open(config_path, "rb") as f:
            data = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ValueError(f"Invalid TOML in {config_path}: {e}") from e

    # Accept an [export] table as well as top-level keys
    settings = dict(data.get("export", {}))
    settings.update({key: value for key, value in data.items() if key != "export"})

    try:
        return ExportConfig(**settings)
    except ValidationError as e:
        raise ValueError(f"Invalid configuration in {config_path}:\n{e}") from e
