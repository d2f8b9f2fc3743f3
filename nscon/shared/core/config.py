from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Any, Optional
import os
import structlog
import yaml
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, field_validator

from nscon.core.exceptions import ConfigurationError

ENV_PREFIX = "NSCON_"
CONFIG_HOME = Path.home() / ".nscon"
DEFAULT_CONFIG_FILE = CONFIG_HOME / "config.yaml"
DEFAULT_INVENTORY_LOCATION = CONFIG_HOME / "namespaces.yaml"
DEFAULT_GCLOUD_CONFIG_DIR = Path.home() / ".config" / "gcloud" / "configurations"


@lru_cache
def get_settings() -> "Settings":
    """Returns a singleton instance of the settings read from the default config file."""
    return load_settings()


class Settings(BaseSettings):
    """
    Runtime configuration for nscon.
    Values come from ~/.nscon/config.yaml and NSCON_* environment variables.
    """

    model_config = SettingsConfigDict(
        env_prefix=ENV_PREFIX, case_sensitive=False, frozen=True, extra="ignore"
    )

    INVENTORY_LOCATION: Path = DEFAULT_INVENTORY_LOCATION
    GCLOUD_CONFIG_DIR: Path = DEFAULT_GCLOUD_CONFIG_DIR
    # Only gcloud profiles whose account contains this string are scanned.
    ACCOUNT_FILTER: Optional[str] = None
    SCAN_MAX_WORKERS: int = Field(default=8, ge=1)
    # None keeps the scan waiting on every project indefinitely.
    SCAN_PROJECT_TIMEOUT_SECONDS: Optional[float] = Field(default=None, gt=0)
    PROMPT_MAX_ATTEMPTS: int = Field(default=3, ge=1)
    DEBUG: bool = False

    @field_validator("INVENTORY_LOCATION", "GCLOUD_CONFIG_DIR")
    @classmethod
    def expand_home(cls, value: Path) -> Path:
        return value.expanduser()


@dataclass(frozen=True)
class ScanOptions:
    """Immutable knobs for one scan run."""

    max_workers: int = 8
    project_timeout_seconds: Optional[float] = None
    verbose: bool = False

    def __post_init__(self) -> None:
        if self.max_workers < 1:
            raise ConfigurationError("max_workers must be at least 1")

    @classmethod
    def from_settings(cls, settings: Settings, verbose: bool = False) -> "ScanOptions":
        return cls(
            max_workers=settings.SCAN_MAX_WORKERS,
            project_timeout_seconds=settings.SCAN_PROJECT_TIMEOUT_SECONDS,
            verbose=verbose,
        )


@dataclass(frozen=True)
class LookupFilter:
    """Namespace name plus optional cluster/project substring constraints."""

    namespace: str
    project: Optional[str] = None
    cluster: Optional[str] = None

    def describe(self) -> str:
        scope = [f"namespace {self.namespace}"]
        if self.cluster:
            scope.append(f"cluster {self.cluster}")
        if self.project:
            scope.append(f"project {self.project}")
        return " in ".join(scope)


def resolve_config_file(config_file: Optional[Path] = None) -> Path:
    if config_file is not None:
        return Path(config_file).expanduser()
    from_env = os.environ.get(f"{ENV_PREFIX}CONFIG_FILE")
    if from_env:
        return Path(from_env).expanduser()
    return DEFAULT_CONFIG_FILE


def read_config_file(path: Path) -> dict[str, Any]:
    """Read the YAML config file. Keys are returned upper-cased to match Settings fields."""
    try:
        raw = yaml.safe_load(path.read_text(encoding="utf-8"))
    except OSError as exc:
        raise ConfigurationError(f"can't read configuration file {path}: {exc}") from exc
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"can't parse configuration file {path}: {exc}") from exc
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise ConfigurationError(f"configuration file {path} must contain a mapping")
    return {str(key).upper(): value for key, value in raw.items()}


def load_settings(config_file: Optional[Path] = None) -> Settings:
    """
    Build Settings from defaults, the YAML config file and the environment.
    Environment variables win over the file.
    """
    path = resolve_config_file(config_file)
    file_values = read_config_file(path) if path.exists() else {}
    env_keys = {key.upper() for key in os.environ}
    init_values = {
        key: value
        for key, value in file_values.items()
        if f"{ENV_PREFIX}{key}" not in env_keys
    }
    try:
        return Settings(**init_values)
    except ValueError as exc:
        raise ConfigurationError(f"invalid configuration in {path}: {exc}") from exc


def bootstrap_config(config_file: Optional[Path] = None) -> Path:
    """
    First-run setup: create the config directory, a config file pointing at
    the inventory location, and an empty inventory file.
    """
    logger = structlog.get_logger()
    path = resolve_config_file(config_file)
    inventory_location = path.parent / DEFAULT_INVENTORY_LOCATION.name
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(
            yaml.safe_dump({"inventory_location": str(inventory_location)}),
            encoding="utf-8",
        )
        inventory_location.touch(exist_ok=True)
    except OSError as exc:
        raise ConfigurationError(f"configuration file initialisation failed: {exc}") from exc
    logger.info("config_bootstrapped", config_file=str(path), inventory=str(inventory_location))
    return path
