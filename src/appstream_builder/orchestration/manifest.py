"""Run manifest written next to the catalog."""
from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, TYPE_CHECKING

from appstream_builder.utils.helpers import serialize_json
from appstream_builder.utils.logging import get_logger

if TYPE_CHECKING:  # pragma: no cover - typing convenience
    from appstream_builder.config.settings import Settings
    from appstream_builder.observability import CounterRegistry

_LOGGER = get_logger(module=__name__)


def manifest_path(output_dir: Path | str, basename: str) -> Path:
    return Path(output_dir) / f"{basename}.manifest.json"


class BuildManifest:
    """Collects structured metadata about a build run."""

    def __init__(self, run_id: str) -> None:
        self.run_id = run_id
        self._data: Dict[str, Any] = {
            "run_id": run_id,
            "generated_at": datetime.now(timezone.utc).isoformat(),
            "versions": {},
            "configuration": {},
            "statistics": {},
            "performance": {},
            "artifacts": [],
        }

    def collect_versions(self, *, settings: "Settings") -> None:
        from appstream_builder import __version__

        self._data["versions"] = {
            "appstream_builder": __version__,
            "policy_version": settings.policies.policy_version,
            "environment": settings.environment,
        }

    def capture_configuration(self, *, settings: "Settings") -> None:
        self._data["configuration"] = settings.model_dump(mode="json")

    def capture_counters(self, counters: "CounterRegistry") -> None:
        self._data["statistics"] = counters.as_dict()["counters"]

    def record_timing(self, step: str, seconds: float) -> None:
        self._data["performance"][step] = round(seconds, 3)

    def add_artifact(self, path: Path | str, *, kind: str) -> None:
        self._data["artifacts"].append({"path": str(path), "kind": kind})

    def finalize(self) -> Dict[str, Any]:
        self._data["finished_at"] = datetime.now(timezone.utc).isoformat()
        return dict(self._data)

    def write(self, output_dir: Path | str, basename: str) -> Path:
        path = serialize_json(self.finalize(), manifest_path(output_dir, basename))
        _LOGGER.info("Wrote run manifest", path=str(path))
        return path


__all__ = ["BuildManifest", "manifest_path"]
