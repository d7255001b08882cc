"""Tests for configuration loading and validation."""

from __future__ import annotations

from pathlib import Path

import pytest
import yaml
from pydantic import ValidationError

from appstream_builder.config.policies import Policies, ValidationPolicy, load_policies
from appstream_builder.config.settings import Settings


def _write_yaml(path: Path, payload: dict) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(yaml.safe_dump(payload), encoding="utf-8")


def test_policy_defaults() -> None:
    policies = Policies()

    assert policies.scheduler.max_threads == 4
    assert policies.validation.required_fields == ["icon", "name", "comment"]
    assert policies.packages.overlay_suffixes == ["-data", "-common"]
    assert policies.output.basename == "fedora-21"
    assert policies.output.add_cache_id is False


def test_load_policies_accepts_none() -> None:
    assert load_policies(None) == Policies()


def test_validation_policy_rejects_unknown_required_field() -> None:
    with pytest.raises(ValidationError):
        ValidationPolicy(required_fields=["icon", "screenshot"])


def test_scheduler_requires_a_worker() -> None:
    with pytest.raises(ValidationError):
        load_policies({"scheduler": {"max_threads": 0}})


def test_settings_layers_default_and_environment_yaml(settings_factory, tmp_path: Path) -> None:
    config_dir = tmp_path / "config"
    _write_yaml(config_dir / "default.yaml", {"policies": {"output": {"basename": "base"}, "scheduler": {"max_threads": 2}}})
    _write_yaml(config_dir / "production.yaml", {"policies": {"scheduler": {"max_threads": 6}}})

    settings = settings_factory(environment="production")

    assert settings.environment == "production"
    assert settings.policies.output.basename == "base"
    assert settings.policies.scheduler.max_threads == 6


def test_explicit_values_beat_yaml(settings_factory, tmp_path: Path) -> None:
    _write_yaml(tmp_path / "config" / "default.yaml", {"policies": {"output": {"basename": "from-yaml"}}})

    settings = settings_factory(policies={"output": {"basename": "explicit"}})

    assert settings.policies.output.basename == "explicit"


def test_nested_environment_overrides(settings_factory, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("APPSTREAM_BUILDER_SETTINGS__POLICIES__OUTPUT__BASENAME", "from-env")

    settings = settings_factory()

    assert settings.policies.output.basename == "from-env"


def test_settings_creates_directories(settings_factory, tmp_path: Path) -> None:
    settings = settings_factory()

    for name in ("packages", "tmp", "logs", "out", "cache"):
        assert (tmp_path / name).is_dir()
    assert settings.icons_dir == tmp_path / "tmp" / "icons"
    assert settings.log_file == tmp_path / "logs" / "appstream-builder.log"


def test_settings_rejects_unknown_environment(tmp_path: Path) -> None:
    with pytest.raises(ValidationError):
        Settings(environment="staging", config_dir=str(tmp_path), create_dirs=False)
