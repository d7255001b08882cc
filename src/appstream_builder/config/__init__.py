"""Configuration package exposing settings and policies."""

from .policies import (
    OutputPolicy,
    PackagePolicy,
    Policies,
    SchedulerPolicy,
    ValidationPolicy,
    load_policies,
)
from .settings import PathsConfig, Settings, get_settings

__all__ = [
    "Settings",
    "PathsConfig",
    "get_settings",
    "Policies",
    "SchedulerPolicy",
    "ValidationPolicy",
    "PackagePolicy",
    "OutputPolicy",
    "load_policies",
]
