"""Config commands -- inspect the resolved configuration of a project.

Provides the ``roc config`` sub-command group. Every command resolves the
project with the root flags (``--directory``, ``--config``, ``--set``) and
reports on the result without running any action.
"""

from __future__ import annotations

import typer

from roc.output import format_data, info, print_table, success

config_app = typer.Typer(no_args_is_help=True)


@config_app.command("show")
def config_show(
    ctx: typer.Context,
    key: str = typer.Argument(None, help="Dotted key to show, e.g. 'settings.build'."),
) -> None:
    """Show the resolved configuration.

    Example::

        roc config show
        roc config show settings.build --json
    """
    from roc.app import resolve_project
    from roc.configuration import get_path
    from roc.exceptions import ConfigError

    resolved = resolve_project(ctx)
    info(f"Project directory: {resolved.project_path}")
    if not key:
        format_data(resolved.config)
        return
    missing = object()
    value = get_path(resolved.config, key, missing)
    if value is missing:
        raise ConfigError(f"No configuration value at '{key}'")
    format_data(value)


@config_app.command("validate")
def config_validate(ctx: typer.Context) -> None:
    """Validate the resolved configuration against the meta of every extension.

    Raises:
        ConfigValidationError: Listing every failing key; exits with code 1.
    """
    from roc.app import resolve_project
    from roc.exceptions import ConfigValidationError

    resolved = resolve_project(ctx)
    if resolved.validation_errors:
        raise ConfigValidationError(resolved.validation_errors)
    success("Configuration is valid.")


@config_app.command("extensions")
def config_extensions(ctx: typer.Context) -> None:
    """List the loaded extensions in merge order."""
    from roc.app import resolve_project

    resolved = resolve_project(ctx)
    print_table(
        ["Name", "Version", "Type", "Path"],
        [
            [ext.name, ext.version, ext.type.value, str(ext.path or "")]
            for ext in resolved.extensions
        ],
        title="Extensions",
    )


@config_app.command("dependencies")
def config_dependencies(ctx: typer.Context) -> None:
    """List the dependencies declared by the extensions and whether they are installed."""
    from roc.app import resolve_project
    from roc.documentation.markdown import dependency_status

    resolved = resolve_project(ctx)
    rows = []
    for dep in resolved.dependencies:
        installed = dependency_status(dep)
        rows.append([dep, installed or "missing"])
    print_table(["Dependency", "Installed"], rows, title="Dependencies")
