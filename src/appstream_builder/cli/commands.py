"""Build and inspection commands."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List, Optional

import typer
from rich.progress import BarColumn, MofNCompleteColumn, Progress, TextColumn
from rich.table import Table

from appstream_builder.orchestration import BuildError, run_build
from appstream_builder.packages import PackageError, open_package
from appstream_builder.utils.logging import configure_logging

from .common import CLIError, console, get_state, merge_overrides, resolve_path, resolve_settings


def _build_overrides(
    *,
    packages_dir: Optional[Path],
    temp_dir: Optional[Path],
    log_dir: Optional[Path],
    output_dir: Optional[Path],
    basename: Optional[str],
    max_threads: Optional[int],
    old_metadata: Optional[Path],
    add_cache_id: bool,
    extra_checks: bool,
    extra_components_dir: Optional[Path],
) -> Dict[str, Any]:
    paths = {
        "packages_dir": packages_dir,
        "temp_dir": temp_dir,
        "log_dir": log_dir,
        "output_dir": output_dir,
    }
    overrides: Dict[str, Any] = {"paths": {key: str(value) for key, value in paths.items() if value is not None}}
    policies: Dict[str, Any] = {}
    if basename:
        policies.setdefault("output", {})["basename"] = basename
    if add_cache_id:
        policies.setdefault("output", {})["add_cache_id"] = True
    if max_threads is not None:
        policies["scheduler"] = {"max_threads": max_threads}
    if extra_checks:
        policies["validation"] = {"check_urls": True}
    if policies:
        overrides["policies"] = policies
    if old_metadata is not None:
        overrides["old_metadata"] = str(resolve_path(old_metadata))
    if extra_components_dir is not None:
        overrides["extra_components_dir"] = str(resolve_path(extra_components_dir))
    return overrides


def build_command(
    ctx: typer.Context,
    packages: List[Path] = typer.Argument(  # noqa: B008 - Typer signature
        None,
        help="Package files to process; defaults to every package in --packages-dir.",
        show_default=False,
    ),
    packages_dir: Optional[Path] = typer.Option(None, "--packages-dir", help="Directory scanned for packages."),
    temp_dir: Optional[Path] = typer.Option(None, "--temp-dir", help="Scratch directory for workspaces."),
    log_dir: Optional[Path] = typer.Option(None, "--log-dir", help="Directory for per-package logs."),
    output_dir: Optional[Path] = typer.Option(None, "--output-dir", help="Directory for the catalog and icons."),
    basename: Optional[str] = typer.Option(None, "--basename", help="Catalog origin and file basename."),
    max_threads: Optional[int] = typer.Option(None, "--max-threads", min=1, help="Concurrent package tasks."),
    old_metadata: Optional[Path] = typer.Option(
        None,
        "--old-metadata",
        help="Catalog from a previous run used as the incremental cache.",
    ),
    add_cache_id: bool = typer.Option(False, "--add-cache-id", help="Tag records with their package cache key."),
    extra_checks: bool = typer.Option(False, "--extra-checks", help="Probe record URLs over the network."),
    extra_components_dir: Optional[Path] = typer.Option(
        None,
        "--extra-components-dir",
        help="Directory of YAML/JSON components added to the catalog.",
    ),
) -> None:
    """Build the catalog and icon bundle from a set of packages."""

    state = get_state(ctx)
    overrides = _build_overrides(
        packages_dir=packages_dir,
        temp_dir=temp_dir,
        log_dir=log_dir,
        output_dir=output_dir,
        basename=basename,
        max_threads=max_threads,
        old_metadata=old_metadata,
        add_cache_id=add_cache_id,
        extra_checks=extra_checks,
        extra_components_dir=extra_components_dir,
    )
    settings = resolve_settings(state.environment, merge_overrides([state.overrides, overrides]))
    configure_logging(settings, level="DEBUG" if state.verbose else "WARNING")
    files = [resolve_path(item) for item in packages or []]

    with Progress(
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        MofNCompleteColumn(),
        console=console,
        transient=True,
    ) as progress:
        task_id = progress.add_task("Processing packages", total=None)

        def _on_progress(completed: int, total: int, name: str) -> None:
            progress.update(task_id, completed=completed, total=total, description=f"Processed {name}")

        try:
            result = run_build(files or None, settings=settings, progress=_on_progress)
        except BuildError as exc:
            raise CLIError(str(exc)) from exc

    table = Table(title="Build summary", show_header=True, header_style="bold")
    table.add_column("Phase")
    table.add_column("Counter")
    table.add_column("Value", justify="right")
    for phase, counters in result.counters.items():
        for name, value in counters.items():
            if isinstance(value, dict):
                value = ", ".join(f"{label}={count}" for label, count in value.items()) or "-"
            table.add_row(phase, name, str(value))
    console.print(table)
    console.print(f"Wrote [bold]{len(result.records)}[/bold] components to {result.catalog_path}")
    console.print(f"Icons: {result.icons_path}")


def inspect_command(
    ctx: typer.Context,
    package: Path = typer.Argument(..., help="Package file to inspect."),
    files: bool = typer.Option(True, "--files/--no-files", help="List the installed files."),
) -> None:
    """Print a package's identity and file list."""

    get_state(ctx)
    try:
        opened = open_package(resolve_path(package))
        filelist = opened.filelist if files else []
    except PackageError as exc:
        raise CLIError(f"Cannot read {package}: {exc}") from exc

    table = Table(show_header=False, box=None)
    table.add_row("Name", opened.name or "")
    table.add_row("NEVRA", opened.nevra)
    table.add_row("Epoch", str(opened.epoch))
    table.add_row("Version", opened.version or "")
    table.add_row("Release", opened.release or "-")
    table.add_row("Arch", opened.arch or "-")
    table.add_row("URL", opened.url or "-")
    table.add_row("License", opened.license or "-")
    console.print(table)
    for path in filelist:
        console.print(path, markup=False, highlight=False)


__all__ = ["build_command", "inspect_command"]
