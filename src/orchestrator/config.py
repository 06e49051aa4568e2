"""Orchestrator configuration: paths, defaults and the YAML config file."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, ValidationError, model_validator

from main_config import (
    COMPELL_DIR_NAME,
    PROJECT_CONFIG_PATH as _PROJECT_CONFIG_PATH,
    SESSIONS_DIR as _SESSIONS_DIR,
    USER_CONFIG_PATH as _USER_CONFIG_PATH,
)

from .errors import ConfigError
from .models import DEFAULT_TOOLSET

logger = logging.getLogger(__name__)

# Path objects for use in this package (main_config uses os.path strings)
SESSIONS_DIR = Path(_SESSIONS_DIR)
PROJECT_CONFIG_PATH = Path(_PROJECT_CONFIG_PATH)
USER_CONFIG_PATH = Path(_USER_CONFIG_PATH)

DEFAULT_LLM = "mock"
DEFAULT_MODEL = "gpt-4.1-nano"
MAX_RESOURCE_CONTENT_SIZE = 50000

ALWAYS_HIDDEN = [COMPELL_DIR_NAME, f"{COMPELL_DIR_NAME}/**"]


class FilesystemAccess(BaseModel):
    """Glob patterns restricting what the filesystem tools may touch."""

    hidden: list[str] = Field(default_factory=list)
    read_only: list[str] = Field(default_factory=list)


class MCPServerConfig(BaseModel):
    """An external tool server started as a subprocess."""

    name: str
    command: str
    args: list[str] = Field(default_factory=list)
    env: dict[str, str] | None = None


class Toolset(BaseModel):
    name: str
    tools: list[str] = Field(default_factory=list)


class CompellConfig(BaseModel):
    """Merged user + project configuration."""

    llm: str = DEFAULT_LLM
    model: str = DEFAULT_MODEL
    toolsets: list[Toolset] = Field(default_factory=list)
    additional_mcp_servers: list[MCPServerConfig] = Field(default_factory=list)
    allowed_commands: list[str] = Field(default_factory=list)
    filesystem_access: FilesystemAccess = Field(default_factory=FilesystemAccess)

    @model_validator(mode="after")
    def _hide_compell_dir(self) -> CompellConfig:
        for pattern in reversed(ALWAYS_HIDDEN):
            if pattern not in self.filesystem_access.hidden:
                self.filesystem_access.hidden.insert(0, pattern)
        return self

    def get_toolset(self, name: str | None) -> Toolset:
        """Find a toolset by name, falling back to the mandatory 'default' toolset."""
        wanted = name or DEFAULT_TOOLSET
        for ts in self.toolsets:
            if ts.name == wanted:
                return ts
        if wanted == DEFAULT_TOOLSET:
            raise ConfigError("mandatory 'default' toolset not found in configuration")
        logger.warning("toolset '%s' not found, falling back to '%s'", wanted, DEFAULT_TOOLSET)
        return self.get_toolset(DEFAULT_TOOLSET)


def _read_yaml(path: Path) -> dict[str, Any]:
    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"could not parse config file {path}: {e}") from e
    except OSError as e:
        raise ConfigError(f"could not read config file {path}: {e}") from e
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"config file {path} must contain a mapping")
    return data


def load_config(
    user_path: Path | None = USER_CONFIG_PATH,
    project_path: Path | None = PROJECT_CONFIG_PATH,
) -> CompellConfig:
    """Load the user-level config, then the project-level one.

    Keys present in the project file replace the same top-level keys of the
    user file. Missing files are skipped.
    """
    merged: dict[str, Any] = {}
    for path in (user_path, project_path):
        if path is None or not path.exists():
            continue
        logger.debug("loading config from %s", path)
        merged.update(_read_yaml(path))
    try:
        return CompellConfig.model_validate(merged)
    except ValidationError as e:
        raise ConfigError(f"invalid configuration: {e}") from e
