"""Policy models controlling scheduling, validation, packages and output."""

from __future__ import annotations

from typing import Any, Dict, List, Mapping

from pydantic import BaseModel, Field, field_validator

REQUIRED_FIELD_CHOICES = ("icon", "name", "comment")


class SchedulerPolicy(BaseModel):
    """Worker pool sizing."""

    max_threads: int = Field(default=4, ge=1, description="Number of concurrent package tasks.")


class ValidationPolicy(BaseModel):
    """Rules applied to candidate records before they reach the catalog."""

    denylisted_ids: List[str] = Field(
        default_factory=list,
        description="Glob patterns; matching record ids are dropped.",
    )
    required_fields: List[str] = Field(
        default_factory=lambda: list(REQUIRED_FIELD_CHOICES),
        description="Fields that must be non-empty or the record is vetoed.",
    )
    check_urls: bool = Field(
        default=False,
        description="Probe every record URL over the network and log failures.",
    )
    url_timeout_s: float = Field(default=5.0, gt=0.0)

    @field_validator("required_fields")
    @classmethod
    def _validate_required(cls, value: List[str]) -> List[str]:
        unknown = [item for item in value if item not in REQUIRED_FIELD_CHOICES]
        if unknown:
            raise ValueError(f"unknown required fields: {', '.join(unknown)}")
        return value


class PackagePolicy(BaseModel):
    """Package universe filtering and overlay resolution."""

    denylisted_packages: List[str] = Field(
        default_factory=list,
        description="Glob patterns; matching package names are never processed.",
    )
    overlay_overrides: Dict[str, str] = Field(
        default_factory=dict,
        description="Glob on package name mapped to an explicit overlay package name.",
    )
    overlay_suffixes: List[str] = Field(default_factory=lambda: ["-data", "-common"])

    @field_validator("overlay_suffixes")
    @classmethod
    def _strip_suffixes(cls, value: List[str]) -> List[str]:
        return [suffix.strip() for suffix in value if suffix.strip()]


class OutputPolicy(BaseModel):
    """Catalog naming and cache tagging."""

    basename: str = Field(default="fedora-21", min_length=1)
    api_version: float = Field(default=0.41, gt=0.0)
    add_cache_id: bool = Field(
        default=False,
        description="Tag every emitted record with the cache key of its package.",
    )


class Policies(BaseModel):
    """Root policy container."""

    policy_version: str = Field(default="2014-08-01", min_length=1)
    scheduler: SchedulerPolicy = Field(default_factory=SchedulerPolicy)
    validation: ValidationPolicy = Field(default_factory=ValidationPolicy)
    packages: PackagePolicy = Field(default_factory=PackagePolicy)
    output: OutputPolicy = Field(default_factory=OutputPolicy)


def load_policies(data: Mapping[str, Any] | None) -> Policies:
    """Validate a raw mapping into :class:`Policies`."""

    return Policies.model_validate(dict(data or {}))


__all__ = [
    "SchedulerPolicy",
    "ValidationPolicy",
    "PackagePolicy",
    "OutputPolicy",
    "Policies",
    "load_policies",
    "REQUIRED_FIELD_CHOICES",
]
