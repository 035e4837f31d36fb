"""
Core configuration for delivr.

Provides:
- Path constants (DELIVR_HOME, DELIVR_LOG_DIR, etc.)
- Configuration models (DelivrConfig, DiscordConfig, DockerConfig, LogConfig, Command)
- Config resolution, loading, saving and default generation
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any, NamedTuple, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic.alias_generators import to_camel

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Path constants
# ---------------------------------------------------------------------------

DELIVR_HOME: Path = Path.home() / ".delivr"
DELIVR_LOG_DIR: Path = DELIVR_HOME / "logs"
CONFIG_ENV_VAR = "DELIVR_CONFIG"

DEFAULT_CONFIG_NAME = ".delivr.yml"
LOCAL_CONFIG_NAMES = (".delivr.yml", ".delivr.json")
DEPRECATED_CONFIG_NAMES = ("config.yml", "config.json")
HOME_CONFIG_NAMES = ("config.yml", "config.json")

WEBHOOK_PLACEHOLDER = "YOUR_DISCORD_WEBHOOK_URL_HERE"


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


class ConfigError(Exception):
    """Configuration could not be loaded."""


class ConfigNotFoundError(ConfigError):
    def __init__(self, path: Path) -> None:
        super().__init__(f"configuration file not found: {path}")
        self.path = path


class ConfigParseError(ConfigError):
    def __init__(self, path: Path, fmt: str, reason: str) -> None:
        super().__init__(f"error parsing {fmt} config {path}: {reason}")
        self.path = path


# ---------------------------------------------------------------------------
# Configuration models
# ---------------------------------------------------------------------------


class _ConfigModel(BaseModel):
    """Base for on-disk models: camelCase keys, unknown keys ignored."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


class DiscordConfig(_ConfigModel):
    """Discord integration settings."""

    channel_id: str = ""  # holds the webhook URL


class DockerConfig(_ConfigModel):
    """Docker-specific settings."""

    host: Optional[str] = None


class LogConfig(_ConfigModel):
    """Per-command log file settings. Zero or missing means 'use default'."""

    directory: Optional[str] = None
    max_size: Optional[int] = None  # MB before rotation
    max_age: Optional[int] = None  # days before deletion
    max_backups: Optional[int] = None
    compress: Optional[bool] = None


class Command(_ConfigModel):
    """A single command to execute."""

    model_config = ConfigDict(frozen=True)

    name: str
    description: str = ""
    command: str
    args: list[str] = Field(default_factory=list)
    dir: Optional[str] = None
    env_vars: list[str] = Field(default_factory=list)

    @field_validator("description", mode="before")
    @classmethod
    def _null_description(cls, value: Any) -> Any:
        return "" if value is None else value

    @field_validator("args", "env_vars", mode="before")
    @classmethod
    def _null_list(cls, value: Any) -> Any:
        return [] if value is None else value

    @property
    def command_line(self) -> str:
        return " ".join([self.command, *self.args])


class DelivrConfig(_ConfigModel):
    """Main configuration for delivr."""

    discord: DiscordConfig = Field(default_factory=DiscordConfig)
    docker: Optional[DockerConfig] = None
    logs: Optional[LogConfig] = None
    commands: list[Command] = Field(default_factory=list)
    working_dir: Optional[str] = None

    # Empty YAML keys (``commands:``) parse as null; treat them as unset.
    @field_validator("discord", mode="before")
    @classmethod
    def _null_discord(cls, value: Any) -> Any:
        return {} if value is None else value

    @field_validator("commands", mode="before")
    @classmethod
    def _null_commands(cls, value: Any) -> Any:
        return [] if value is None else value

    @property
    def docker_host(self) -> str:
        if self.docker and self.docker.host:
            return self.docker.host
        return ""


class LoadedConfig(NamedTuple):
    """A parsed configuration and the file it was read from."""

    config: DelivrConfig
    path: Path


# ---------------------------------------------------------------------------
# Config resolution
# ---------------------------------------------------------------------------


def is_yaml_file(path: str | Path) -> bool:
    return Path(path).suffix.lower() in (".yml", ".yaml")


def default_config_path() -> Path:
    """First existing conventional config file, else ``.delivr.yml``."""
    for name in (*LOCAL_CONFIG_NAMES, *DEPRECATED_CONFIG_NAMES):
        if Path(name).exists():
            return Path(name)
    for name in HOME_CONFIG_NAMES:
        candidate = DELIVR_HOME / name
        if candidate.exists():
            return candidate
    return Path(DEFAULT_CONFIG_NAME)


def resolve_config_path(custom_path: str | Path | None = None) -> Path:
    """
    Resolve which config file to use.

    Precedence: explicit path, then $DELIVR_CONFIG, then the conventional
    names in the current directory, then ~/.delivr. The explicit and
    environment paths are returned even when they do not exist so that the
    loader can report them.
    """
    if custom_path:
        return Path(custom_path)
    env_path = os.environ.get(CONFIG_ENV_VAR, "")
    if env_path:
        return Path(env_path)

    path = default_config_path()
    if path.name in DEPRECATED_CONFIG_NAMES and path.parent == Path("."):
        preferred = ".delivr" + path.suffix
        logger.warning(
            "Using deprecated config name '%s'. Consider renaming to '%s'",
            path, preferred,
        )
    return path


# ---------------------------------------------------------------------------
# Config loading/saving
# ---------------------------------------------------------------------------


def load_config(custom_path: str | Path | None = None) -> LoadedConfig:
    """Load configuration from a JSON or YAML file."""
    path = resolve_config_path(custom_path)
    if not path.is_file():
        raise ConfigNotFoundError(path)

    fmt = "YAML" if is_yaml_file(path) else "JSON"
    try:
        text = path.read_text(encoding="utf-8")
    except UnicodeDecodeError as exc:
        raise ConfigParseError(path, fmt, f"file is not valid UTF-8: {exc}") from exc
    except OSError as exc:
        raise ConfigError(f"cannot read config {path}: {exc}") from exc

    try:
        if fmt == "YAML":
            data = yaml.safe_load(text)
        else:
            data = json.loads(text)
        config = DelivrConfig.model_validate(data or {})
    except (yaml.YAMLError, json.JSONDecodeError, ValidationError) as exc:
        raise ConfigParseError(path, fmt, str(exc)) from exc

    logger.debug("Loaded %d commands from %s", len(config.commands), path)
    return LoadedConfig(config=config, path=path)


def dump_config(config: DelivrConfig, path: str | Path) -> str:
    """Serialize a config in the format implied by the path's extension."""
    data = config.model_dump(mode="json", by_alias=True, exclude_none=True)
    if is_yaml_file(path):
        return yaml.safe_dump(data, sort_keys=False, allow_unicode=True)
    return json.dumps(data, indent=2, ensure_ascii=False) + "\n"


def save_config(config: DelivrConfig, path: str | Path) -> None:
    """Write a config file, creating parent directories as needed."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(dump_config(config, path), encoding="utf-8")


def default_config() -> DelivrConfig:
    """Example configuration written by ``delivr --init``."""
    return DelivrConfig(
        docker=DockerConfig(host="unix:///var/run/docker.sock"),
        logs=LogConfig(
            directory="./logs",
            max_size=10,
            max_age=30,
            max_backups=5,
            compress=True,
        ),
        discord=DiscordConfig(channel_id=WEBHOOK_PLACEHOLDER),
        commands=[
            Command(
                name="Show Docker Status",
                description="Lists all running Docker containers",
                command="docker",
                args=["ps", "-a"],
            ),
            Command(
                name="Git Status",
                description="Shows the working tree status",
                command="git",
                args=["status"],
            ),
        ],
    )


def create_default_config(path: str | Path) -> None:
    save_config(default_config(), path)


__all__ = [
    "DELIVR_HOME",
    "DELIVR_LOG_DIR",
    "CONFIG_ENV_VAR",
    "WEBHOOK_PLACEHOLDER",
    "ConfigError",
    "ConfigNotFoundError",
    "ConfigParseError",
    "DiscordConfig",
    "DockerConfig",
    "LogConfig",
    "Command",
    "DelivrConfig",
    "LoadedConfig",
    "is_yaml_file",
    "default_config_path",
    "resolve_config_path",
    "load_config",
    "dump_config",
    "save_config",
    "default_config",
    "create_default_config",
]
