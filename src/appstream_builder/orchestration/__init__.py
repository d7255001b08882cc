"""Orchestration public API."""

from __future__ import annotations

from .extra import load_extra_components
from .main import BuildError, BuildOrchestrator, BuildResult, discover_packages, run_build
from .manifest import BuildManifest, manifest_path

__all__ = [
    "run_build",
    "BuildOrchestrator",
    "BuildResult",
    "BuildError",
    "BuildManifest",
    "discover_packages",
    "load_extra_components",
    "manifest_path",
]
