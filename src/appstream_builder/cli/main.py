"""Primary Typer application wiring the appstream-builder CLI."""

from __future__ import annotations

from typing import Any, Callable, List, Optional

import typer
from rich.table import Table

from . import commands
from .common import CLIError, configure_state, console, parse_override


class BuilderTyper(typer.Typer):
    """Typer subclass that supports registering exception handlers."""

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self._exception_handlers: list[tuple[type[BaseException], Callable[[BaseException], Any]]] = []

    def exception_handler(
        self, exception_type: type[BaseException]
    ) -> Callable[[Callable[[BaseException], Any]], Callable[[BaseException], Any]]:
        def decorator(handler: Callable[[BaseException], Any]) -> Callable[[BaseException], Any]:
            self._exception_handlers.append((exception_type, handler))
            return handler

        return decorator

    def _resolve_handler(self, exception: BaseException) -> Callable[[BaseException], Any] | None:
        for registered_type, handler in self._exception_handlers:
            if isinstance(exception, registered_type):
                return handler
        return None

    def __call__(self, *args: Any, **kwargs: Any) -> Any:
        try:
            return super().__call__(*args, **kwargs)
        except BaseException as exc:  # pragma: no cover - CLI surface behaviour
            handler = self._resolve_handler(exc)
            if handler is None:
                raise
            result = handler(exc)
            if isinstance(result, BaseException):
                raise result
            return result


app = BuilderTyper(
    add_completion=False,
    help="Build an AppStream-style component catalog from RPM and Deb packages.",
    no_args_is_help=True,
)


@app.exception_handler(CLIError)
def handle_cli_error(exception: CLIError) -> typer.Exit:
    """Render ``CLIError`` messages without stack traces."""

    console.print(f"[bold red]Error:[/bold red] {exception}")
    return typer.Exit(code=2)


@app.callback()
def main(
    ctx: typer.Context,
    environment: Optional[str] = typer.Option(
        None,
        "--environment",
        "-e",
        help="Active configuration environment (development, testing, production).",
        show_default=False,
    ),
    override: List[str] = typer.Option(  # noqa: B008 - Typer callback signature
        [],
        "--override",
        "-o",
        metavar="KEY=VALUE",
        help="Configuration override in dotted.key=value notation (repeatable).",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Emit verbose diagnostic output.",
    ),
) -> None:
    """Configure shared CLI state prior to executing subcommands."""

    overrides = [parse_override(item) for item in override]
    configure_state(ctx, environment=environment, overrides=overrides, verbose=verbose)

    if verbose:
        state = ctx.obj
        table = Table(title="CLI Context", show_header=False, box=None)
        table.add_row("Environment", state.environment)
        table.add_row("Packages", str(state.settings.paths.packages_dir))
        table.add_row("Output", str(state.settings.paths.output_dir))
        console.print(table)


app.command("build")(commands.build_command)
app.command("inspect")(commands.inspect_command)
