"""
Configuration for gpgbuffer.

Loaded from YAML at $GPGBUFFER_CONFIG (default
~/.config/gpgbuffer/config.yaml). A missing or broken file never stops
a document from opening; defaults are used instead.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional, Union

import yaml
from pydantic import BaseModel, Field

from . import CONFIG_PATH

logger = logging.getLogger("gpgbuffer.config")


class ToolConfig(BaseModel):
    """Scoped settings applied to every gpg invocation.

    ``env`` is merged onto a copy of the process environment for the
    child only; the parent environment is never changed.
    """

    executable: str = "gpg"
    homedir: Optional[Path] = None
    extra_args: list[str] = Field(default_factory=list)
    env: dict[str, str] = Field(default_factory=dict)


class GpgBufferConfig(BaseModel):
    """Persistent user preferences."""

    tool: ToolConfig = Field(default_factory=ToolConfig)
    prefer_symmetric: bool = False
    prefer_armor: bool = False
    default_recipients: list[str] = Field(default_factory=list)
    encrypted_suffixes: list[str] = Field(
        default_factory=lambda: [".gpg", ".pgp", ".asc"]
    )

    def is_encrypted_path(self, path: Union[str, Path]) -> bool:
        """Whether a filename denotes an encrypted document."""
        name = Path(path).name.lower()
        return any(name.endswith(suffix.lower()) for suffix in self.encrypted_suffixes)


def load_config(path: Optional[Path] = None) -> GpgBufferConfig:
    """Load configuration from disk.

    Args:
        path: Explicit config file. Defaults to CONFIG_PATH.

    Returns:
        GpgBufferConfig loaded from YAML, or defaults.
    """
    config_file = Path(path or CONFIG_PATH).expanduser()
    if not config_file.exists():
        logger.debug("No config at %s, using defaults", config_file)
        return GpgBufferConfig()

    try:
        data = yaml.safe_load(config_file.read_text(encoding="utf-8")) or {}
        return GpgBufferConfig(**data)
    except (yaml.YAMLError, ValueError, TypeError) as exc:
        logger.warning("Failed to load config %s: %s; using defaults", config_file, exc)
    return GpgBufferConfig()
