"""Configuration management built on top of the policy primitives."""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Literal

import yaml
from pydantic import BaseModel, Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .policies import Policies, load_policies

DEFAULT_CONFIG_DIR = Path.cwd() / "config"
ENV_OVERRIDE_PREFIX = "APPSTREAM_BUILDER_SETTINGS__"


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Recursively merge two dictionaries."""

    result = dict(base)
    for key, value in override.items():
        if (
            key in result
            and isinstance(result[key], dict)
            and isinstance(value, dict)
        ):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def _load_yaml_file(path: Path) -> Dict[str, Any]:
    if not path.exists():
        return {}
    with path.open("r", encoding="utf-8") as handle:
        return yaml.safe_load(handle) or {}


def _apply_env_overrides(base: Dict[str, Any]) -> Dict[str, Any]:
    """Apply overrides from APPSTREAM_BUILDER_SETTINGS__* environment variables."""

    result = dict(base)
    for key, value in os.environ.items():
        if not key.startswith(ENV_OVERRIDE_PREFIX):
            continue
        path = key[len(ENV_OVERRIDE_PREFIX) :].lower().split("__")
        cursor = result
        for part in path[:-1]:
            cursor = cursor.setdefault(part, {})
        cursor[path[-1]] = value
    return result


class PathsConfig(BaseModel):
    """Filesystem layout used by a build run.

    Relative paths are resolved against the current working directory when
    :meth:`ensure_exists` runs.
    """

    packages_dir: Path = Field(default=Path("packages"))
    temp_dir: Path = Field(default=Path("tmp"))
    log_dir: Path = Field(default=Path("logs"))
    output_dir: Path = Field(default=Path("."))
    cache_dir: Path = Field(default=Path("cache"))

    def ensure_exists(self) -> None:
        """Create directories backing every configured path if they are missing."""
        for field_name in type(self).model_fields:
            path = Path(getattr(self, field_name)).expanduser()
            if not path.is_absolute():
                path = Path.cwd() / path
            path.mkdir(parents=True, exist_ok=True)
            object.__setattr__(self, field_name, path)


class Settings(BaseSettings):
    """Primary configuration object for a catalog build.

    Precedence (highest first): explicit kwargs or CLI arguments, environment
    variables prefixed with ``APPSTREAM_BUILDER_`` (handled by
    :class:`BaseSettings`), nested overrides via ``APPSTREAM_BUILDER_SETTINGS__``
    variables, environment-specific YAML (e.g. ``production.yaml``), the
    default YAML file, and finally the class defaults.
    """

    model_config = SettingsConfigDict(
        env_prefix="APPSTREAM_BUILDER_",
        validate_assignment=True,
        extra="ignore",
    )

    environment: Literal["development", "testing", "production"] = Field(
        default="development",
        description="Active runtime environment",
    )
    config_dir: Path = Field(default=DEFAULT_CONFIG_DIR)
    paths: PathsConfig = Field(default_factory=PathsConfig)
    create_dirs: bool = Field(
        default=True,
        description="Create filesystem directories declared in `paths` during initialisation.",
    )
    old_metadata: Path | None = Field(
        default=None,
        description="Catalog produced by a previous run, used as the incremental cache.",
    )
    extra_components_dir: Path | None = Field(default=None)
    policies: Policies

    @model_validator(mode="before")
    @classmethod
    def _bootstrap_from_files(cls, values: Dict[str, Any]) -> Dict[str, Any]:
        """Load YAML files and merge with provided overrides."""

        config_dir = Path(values.get("config_dir") or DEFAULT_CONFIG_DIR)
        environment = values.get("environment") or os.getenv(
            "APPSTREAM_BUILDER_ENV", "development"
        )
        base_config = _load_yaml_file(config_dir / "default.yaml")
        env_config = _load_yaml_file(config_dir / f"{environment}.yaml")
        merged = _deep_merge(base_config, env_config)
        hydrated = _apply_env_overrides(merged)

        combined = _deep_merge(hydrated, {k: v for k, v in values.items() if v is not None})
        combined.setdefault("environment", environment)

        policies_data = combined.pop("policies", None)
        if isinstance(policies_data, Policies):
            combined["policies"] = policies_data
            return combined
        combined["policies"] = load_policies(policies_data)
        return combined

    @model_validator(mode="after")
    def _ensure_paths(self) -> "Settings":
        """Ensure filesystem paths exist when directory creation is enabled."""

        if self.create_dirs:
            self.paths.ensure_exists()
        return self

    @property
    def policy_version(self) -> str:
        return self.policies.policy_version

    @property
    def log_file(self) -> Path:
        return self.paths.log_dir / "appstream-builder.log"

    @property
    def icons_dir(self) -> Path:
        return self.paths.temp_dir / "icons"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a singleton settings instance."""

    return Settings()


__all__ = ["Settings", "get_settings", "PathsConfig"]
