"""Typer application and CLI entry point for roc.

The command tree is only partly static. The ``config`` group is registered
on the Typer app; every other command comes from the action registry of the
project roc runs in. :class:`RocGroup` resolves the project the first time
click asks for a command, reading ``--directory``, ``--config`` and
``--set`` from the root context, and caches the result on ``ctx.meta``.

Outside a roc project (no ``roc.config.yaml`` and no ``roc-package-*`` or
``roc-plugin-*`` dependency) extensions are not loaded and only the
built-in actions are offered.

:func:`main` is the console-script entry point. It maps
:class:`~roc.exceptions.RocError` to its exit code and writes a crash log
for anything unexpected.
"""

from __future__ import annotations

import signal
import sys
import traceback
from datetime import datetime
from typing import Any, Optional

import click
import typer
from typer.core import TyperGroup

from roc import __version__
from roc.exit_codes import EXIT_GENERIC_FAILURE, EXIT_INTERRUPTED

_RESOLVED_KEY = "roc.resolved"
_OUTPUT_KEY = "roc.output"
_COMMANDS_KEY = "roc.commands"


class RocGroup(TyperGroup):
    """Root group that adds the project's actions to the static commands."""

    def list_commands(self, ctx: click.Context) -> list[str]:
        static = super().list_commands(ctx)
        try:
            dynamic = action_commands(ctx)
        except Exception as exc:
            from roc.exceptions import RocError
            from roc.output import warning

            if not isinstance(exc, RocError):
                raise
            warning(f"Could not load project actions: {exc}")
            dynamic = {}
        names = sorted(name for name, cmd in dynamic.items() if not cmd.hidden)
        return static + [name for name in names if name not in static]

    def invoke(self, ctx: click.Context) -> Any:
        from roc.exceptions import RocError
        from roc.output import error

        try:
            return super().invoke(ctx)
        except RocError as exc:
            error(str(exc))
            raise typer.Exit(code=exc.exit_code) from exc

    def get_command(self, ctx: click.Context, cmd_name: str) -> Optional[click.Command]:
        command = super().get_command(ctx, cmd_name)
        if command is not None:
            return command
        return action_commands(ctx).get(cmd_name)


app = typer.Typer(
    name="roc",
    cls=RocGroup,
    help="Create projects and run the actions their extensions provide.",
    no_args_is_help=True,
    add_completion=False,
    rich_markup_mode="rich",
)

from roc.commands.config import config_app  # noqa: E402

app.add_typer(config_app, name="config", help="Inspect the resolved configuration.")


def _version_callback(value: bool) -> None:
    """Print version and exit when --version is passed."""
    if value:
        typer.echo(f"roc {__version__}")
        raise typer.Exit()


@app.callback()
def main_callback(
    ctx: typer.Context,
    version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
    directory: Optional[str] = typer.Option(
        None,
        "--directory",
        "-d",
        is_eager=True,
        help="Project directory, defaults to the current one.",
    ),
    config: Optional[str] = typer.Option(
        None,
        "--config",
        "-c",
        is_eager=True,
        help="Application config file, defaults to roc.config.yaml.",
    ),
    overrides: Optional[list[str]] = typer.Option(
        None,
        "--set",
        is_eager=True,
        help="Override a setting, e.g. --set settings.port=3000.",
    ),
    json_output: bool = typer.Option(False, "--json", help="JSON output format."),
    plain_output: bool = typer.Option(False, "--plain", help="Plain text output."),
    no_color: bool = typer.Option(False, "--no-color", help="Disable color output."),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Suppress non-essential output."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug output."),
) -> None:
    """Root callback executed before every sub-command.

    Installs the :class:`~roc.output.OutputManager` and logging from the
    flags. The project itself is resolved lazily by :class:`RocGroup`.
    """
    setup_output(ctx)
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose


def setup_output(ctx: click.Context) -> None:
    """Install output and logging from the root context's flags, once per run."""
    from roc.output import OutputFormat, OutputManager, configure_logging, set_output

    root = ctx.find_root()
    if root.meta.get(_OUTPUT_KEY):
        return
    params = root.params
    fmt = OutputFormat.AUTO
    if params.get("json_output"):
        fmt = OutputFormat.JSON
    elif params.get("plain_output"):
        fmt = OutputFormat.PLAIN
    set_output(
        OutputManager(
            format=fmt,
            no_color=bool(params.get("no_color")),
            quiet=bool(params.get("quiet")),
            verbose=bool(params.get("verbose")),
        )
    )
    configure_logging(bool(params.get("verbose")))
    root.meta[_OUTPUT_KEY] = True


def resolve_project(ctx: click.Context) -> Any:
    """Resolve the project named by the root context's flags.

    Returns:
        The cached :class:`~roc.orchestrator.ResolvedConfig`.

    Raises:
        RocError: If the config cannot be read or the extensions not loaded.
    """
    from roc.config import (
        get_absolute_path,
        get_application_config,
        is_roc_project,
        parse_overrides,
    )
    from roc.orchestrator import build_complete_config

    root = ctx.find_root()
    if _RESOLVED_KEY in root.meta:
        return root.meta[_RESOLVED_KEY]

    setup_output(ctx)
    params = root.params
    verbose = bool(params.get("verbose"))
    project_path = get_absolute_path(params.get("directory"))
    config_path = params.get("config")
    application_config = get_application_config(config_path, project_path, verbose)
    enabled = is_roc_project(project_path, config_path)
    resolved = build_complete_config(
        verbose,
        application_config,
        None,
        {},
        parse_overrides(params.get("overrides") or []),
        project_path,
        extensions_enabled=enabled,
    )
    root.meta[_RESOLVED_KEY] = resolved
    return resolved


def action_commands(ctx: click.Context) -> dict[str, click.Command]:
    """Build the commands for every action available in the current project."""
    from roc.actions import CommandContext, build_action_commands
    from roc.commands import BUILTIN_ACTIONS
    from roc.exceptions import ConfigValidationError

    root = ctx.find_root()
    if _COMMANDS_KEY in root.meta:
        return root.meta[_COMMANDS_KEY]

    resolved = resolve_project(ctx)
    verbose = bool(root.params.get("verbose"))
    actions = resolved.actions.all() if resolved.extensions_enabled else dict(BUILTIN_ACTIONS)

    def _context_factory(
        parsed_arguments: dict[str, Any], parsed_options: dict[str, Any]
    ) -> CommandContext:
        if resolved.validation_errors:
            raise ConfigValidationError(resolved.validation_errors)
        return CommandContext(
            directory=resolved.project_path,
            verbose=verbose,
            parsed_arguments=parsed_arguments,
            parsed_options=parsed_options,
            config=resolved.config,
            meta=resolved.meta,
            hooks=resolved.hooks,
            actions=resolved.actions,
            hook_runner=resolved.hook_runner,
            project_extensions=resolved.extensions,
            package_config=resolved.package_config,
            dependencies=resolved.dependencies,
        )

    reserved = frozenset(app_group(ctx).commands)
    root.meta[_COMMANDS_KEY] = build_action_commands(actions, _context_factory, reserved)
    return root.meta[_COMMANDS_KEY]


def app_group(ctx: click.Context) -> click.Group:
    """The root :class:`click.Group` of the running invocation."""
    return ctx.find_root().command  # type: ignore[return-value]


def _setup_signal_handlers() -> None:
    """Install a SIGINT handler so Ctrl-C exits cleanly."""

    def _handler(signum: int, frame: Any) -> None:  # noqa: ANN401
        sys.stderr.write("\nCancelled.\n")
        sys.exit(EXIT_INTERRUPTED)

    signal.signal(signal.SIGINT, _handler)


def _write_crash_log(exc: Exception) -> str:
    """Write a crash traceback to disk and return the log file path."""
    from roc.config import get_data_dir

    logs_dir = get_data_dir() / "logs"
    logs_dir.mkdir(parents=True, exist_ok=True)
    timestamp = datetime.now().strftime("%Y%m%d-%H%M%S")
    log_path = logs_dir / f"crash-{timestamp}.log"
    log_path.write_text(traceback.format_exc())
    return str(log_path)


def main() -> None:
    """CLI entry point invoked by the ``roc`` console script.

    :class:`~roc.exceptions.RocError` exits with the error's ``exit_code``;
    any other exception produces a crash log and a generic failure exit.

    Raises:
        SystemExit: Always raised (either by Typer or explicitly).
    """
    _setup_signal_handlers()
    try:
        app(standalone_mode=True)
    except SystemExit:
        raise
    except KeyboardInterrupt:
        sys.stderr.write("\nCancelled.\n")
        sys.exit(EXIT_INTERRUPTED)
    except Exception as exc:
        from roc.exceptions import RocError
        from roc.output import error

        if isinstance(exc, RocError):
            error(str(exc))
            sys.exit(exc.exit_code)
        else:
            log_path = _write_crash_log(exc)
            error(f"Unexpected error. Debug log: {log_path}")
            sys.exit(EXIT_GENERIC_FAILURE)
