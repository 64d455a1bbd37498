"""
Configuration Loader for Denormalizer Service

This module loads the denormalizer settings from `config/denormalizer.yml`
and applies environment overrides on top of the file:

    DATABASE_URL                   store.database_url
    DENORMALIZER_DOCUMENTS_TABLE   store.documents_table
    DENORMALIZER_LOG_LEVEL         logging.level

The resulting DenormalizerConfig is built once by the entry point and passed
to the components that need it.
"""

from __future__ import annotations

import logging
import os
import re
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

import yaml

logger = logging.getLogger(__name__)

VALID_LOG_LEVELS = {'DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'}
_TABLE_NAME = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


@dataclass
class DenormalizerConfig:
    """Complete denormalizer configuration."""

    database_url: str = ""
    documents_table: str = "documents"
    log_level: str = "INFO"

    def validate(self) -> None:
        """
        Validate settings that would otherwise fail late.

        Raises:
            ValueError: If a setting is missing or invalid
        """
        if not self.database_url:
            raise ValueError("store.database_url (or DATABASE_URL) must be set")
        if not _TABLE_NAME.match(self.documents_table):
            raise ValueError(f"Invalid documents table name: {self.documents_table!r}")
        if self.log_level not in VALID_LOG_LEVELS:
            raise ValueError(
                f"Invalid log level {self.log_level!r}, expected one of {sorted(VALID_LOG_LEVELS)}"
            )

    @classmethod
    def from_dict(cls, config_dict: Mapping[str, Any]) -> "DenormalizerConfig":
        """Create DenormalizerConfig from a parsed YAML dictionary."""
        store = config_dict.get("store") or {}
        logging_section = config_dict.get("logging") or {}
        if not isinstance(store, Mapping):
            raise ValueError("`store` section must be a mapping")
        if not isinstance(logging_section, Mapping):
            raise ValueError("`logging` section must be a mapping")

        return cls(
            database_url=str(store.get("database_url") or ""),
            documents_table=str(store.get("documents_table") or "documents"),
            log_level=str(logging_section.get("level") or "INFO").upper(),
        )

    def with_env_overrides(self, environ: Optional[Mapping[str, str]] = None) -> "DenormalizerConfig":
        """Return a copy with environment variables applied on top."""
        environ = os.environ if environ is None else environ
        return DenormalizerConfig(
            database_url=environ.get("DATABASE_URL") or self.database_url,
            documents_table=environ.get("DENORMALIZER_DOCUMENTS_TABLE") or self.documents_table,
            log_level=(environ.get("DENORMALIZER_LOG_LEVEL") or self.log_level).upper(),
        )


def _project_root() -> Path:
    """Return the project root path based on this file's location."""
    return Path(__file__).resolve().parent.parent.parent


def load_denormalizer_config(
    config_path: Optional[str] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> DenormalizerConfig:
    """
    Load denormalizer configuration from YAML file and environment.

    Args:
        config_path: Path to a YAML file. If None, uses config/denormalizer.yml
                     relative to the project root, falling back to defaults
                     when that file does not exist.
        environ: Environment mapping (defaults to os.environ)

    Returns:
        Validated DenormalizerConfig

    Raises:
        FileNotFoundError: If an explicit config file doesn't exist
        ValueError: If the YAML is invalid or a setting is invalid

    Example:
        >>> config = load_denormalizer_config(environ={'DATABASE_URL': 'postgresql://localhost/docs'})
        >>> config.documents_table
        'documents'
    """
    if config_path is None:
        path = _project_root() / "config" / "denormalizer.yml"
        required = False
    else:
        path = Path(config_path)
        required = True

    config_dict: Any = {}
    if path.exists():
        try:
            with path.open("r", encoding="utf-8") as handle:
                config_dict = yaml.safe_load(handle) or {}
        except yaml.YAMLError as e:
            logger.error(f"Failed to parse YAML: {e}")
            raise ValueError(f"Invalid YAML in config file: {e}") from e
    elif required:
        logger.error(f"Configuration file not found: {path}")
        raise FileNotFoundError(f"Configuration file not found: {path}")
    else:
        logger.debug("No configuration file found, using defaults", extra={'config_path': str(path)})

    if not isinstance(config_dict, Mapping):
        raise ValueError("Configuration root must be a mapping")

    config = DenormalizerConfig.from_dict(config_dict).with_env_overrides(environ)
    config.validate()

    logger.info(
        "Denormalizer configuration loaded",
        extra={
            'config_path': str(path),
            'documents_table': config.documents_table,
            'log_level': config.log_level,
        },
    )
    return config


__all__ = ["DenormalizerConfig", "load_denormalizer_config"]
