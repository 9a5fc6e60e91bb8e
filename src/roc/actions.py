"""Turning registered actions into click commands and running them.

Every :class:`~roc.models.ActionDefinition` becomes a :class:`click.Command`
whose options and arguments mirror the action's ``options`` and
``arguments`` specs. When the command runs, the raw values are checked
with their validators, a :class:`CommandContext` is built from the
resolved configuration and handed to ``action.command``.

Actions carrying a ``group`` are placed in a :class:`click.Group` of that
name. They are also reachable from the top level by their own name as a
hidden alias, unless another command already uses it.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable

import click

from roc.configuration.validator import run_validator
from roc.configuration.validators import is_boolean, is_integer
from roc.exceptions import InvalidUsageError
from roc.hooks import ActionRegistry, HookRegistry, HookRunner
from roc.models import ActionDefinition, ArgumentSpec, Extension, OptionSpec

logger = logging.getLogger(__name__)


@dataclass
class CommandContext:
    """What an action receives when it runs.

    Attributes:
        directory: Absolute project directory.
        verbose: Whether ``--verbose`` was given.
        parsed_arguments: Positional argument values keyed by argument name.
        parsed_options: Option values keyed by option name.
        config: The canonical configuration.
        meta: The merged meta tree.
        hooks: Registered hooks.
        actions: Registered actions.
        hook_runner: Runner for the hook handlers of all extensions.
        project_extensions: Loaded extensions in merge order.
        package_config: The project's parsed ``pyproject.toml``.
        dependencies: Union of the extensions' declared dependencies.
    """

    directory: Path
    verbose: bool = False
    parsed_arguments: dict[str, Any] = field(default_factory=dict)
    parsed_options: dict[str, Any] = field(default_factory=dict)
    config: dict[str, Any] = field(default_factory=dict)
    meta: dict[str, Any] = field(default_factory=dict)
    hooks: HookRegistry = field(default_factory=HookRegistry)
    actions: ActionRegistry = field(default_factory=ActionRegistry)
    hook_runner: HookRunner | None = None
    project_extensions: list[Extension] = field(default_factory=list)
    package_config: dict[str, Any] = field(default_factory=dict)
    dependencies: list[str] = field(default_factory=list)

    def run_hook(self, name: str, **kwargs: Any) -> Any:
        """Run the handlers of hook *name* with this context."""
        runner = self.hook_runner or HookRunner(self.hooks)
        return runner.run(name, self, **kwargs)


ContextFactory = Callable[[dict[str, Any], dict[str, Any]], CommandContext]
"""``factory(parsed_arguments, parsed_options) -> CommandContext``."""


def param_name(name: str) -> str:
    """Python identifier used by click for an option or argument name."""
    return name.replace("-", "_").lower()


def _is_flag(spec: OptionSpec) -> bool:
    return spec.validator is is_boolean or isinstance(spec.default, bool)


def _coerce(value: Any, spec: OptionSpec | ArgumentSpec) -> Any:
    if spec.validator is is_integer and isinstance(value, str):
        try:
            return int(value)
        except ValueError:
            return value
    return value


def validate_inputs(
    action: ActionDefinition,
    parsed_arguments: Mapping[str, Any],
    parsed_options: Mapping[str, Any],
) -> list[str]:
    """Run the validators of *action*'s arguments and options.

    Returns:
        One message per failing value; empty when everything is valid.
    """
    problems: list[str] = []
    for name, spec in action.arguments.items():
        if spec.validator is None:
            continue
        message = run_validator(spec.validator, parsed_arguments.get(name))
        if message is not None:
            problems.append(f"Argument {name.upper()}: {message}")
    for name, spec in action.options.items():
        if spec.validator is None:
            continue
        message = run_validator(spec.validator, parsed_options.get(name))
        if message is not None:
            problems.append(f"Option --{name}: {message}")
    return problems


def run_action(action: ActionDefinition, context: CommandContext) -> Any:
    """Invoke ``action.command`` with *context*, awaiting it if it is a coroutine."""
    logger.debug("Running action '%s' from '%s'", action.name, action.extension)
    result = action.command(context)
    if inspect.isawaitable(result):
        return asyncio.run(_await(result))
    return result


async def _await(awaitable: Any) -> Any:
    return await awaitable


def _help_text(action: ActionDefinition) -> str:
    from roc.configuration.meta import render_description

    text = action.help or render_description(action.description, None, action.extension)
    text = inspect.cleandoc(text)
    if action.arguments:
        lines = [f"  {name.upper()}  {spec.description}" for name, spec in action.arguments.items()]
        text += "\n\n\b\nArguments:\n" + "\n".join(lines)
    return text


def build_action_command(
    action: ActionDefinition,
    context_factory: ContextFactory,
    name: str | None = None,
    hidden: bool = False,
) -> click.Command:
    """Create the :class:`click.Command` that runs *action*.

    Args:
        action: The action to expose.
        context_factory: Builds the :class:`CommandContext` from the parsed
            values once they have passed validation.
        name: Command name; defaults to ``action.name``.
        hidden: Hide the command from ``--help`` listings.

    Raises:
        InvalidUsageError: At run time, listing every option or argument
            whose validator failed.
    """
    params: list[click.Parameter] = []
    for arg_name, spec in action.arguments.items():
        params.append(
            click.Argument([param_name(arg_name)], required=False, default=spec.default)
        )
    for opt_name, spec in action.options.items():
        decls = [f"--{opt_name}"]
        if spec.alias:
            decls.append(f"-{spec.alias}")
        decls.append(param_name(opt_name))
        if _is_flag(spec):
            params.append(
                click.Option(decls, is_flag=True, default=bool(spec.default), help=spec.description)
            )
        else:
            params.append(
                click.Option(
                    decls,
                    default=spec.default,
                    help=spec.description,
                    show_default=spec.default is not None,
                )
            )

    def _callback(**values: Any) -> Any:
        parsed_arguments = {
            arg: _coerce(values.get(param_name(arg)), spec)
            for arg, spec in action.arguments.items()
        }
        parsed_options = {
            opt: _coerce(values.get(param_name(opt)), spec)
            for opt, spec in action.options.items()
        }
        problems = validate_inputs(action, parsed_arguments, parsed_options)
        if problems:
            raise InvalidUsageError("\n".join(problems))
        return run_action(action, context_factory(parsed_arguments, parsed_options))

    help_text = _help_text(action)
    return click.Command(
        name or action.name,
        callback=_callback,
        params=params,
        help=help_text,
        short_help=help_text.splitlines()[0] if help_text else None,
        hidden=hidden,
    )


def build_action_commands(
    actions: Mapping[str, ActionDefinition],
    context_factory: ContextFactory,
    reserved: frozenset[str] = frozenset(),
) -> dict[str, click.Command]:
    """Build the top-level commands for every action in *actions*.

    Args:
        actions: Actions keyed by name, usually ``ActionRegistry.all()``.
        context_factory: See :func:`build_action_command`.
        reserved: Names already taken by static commands; actions never
            replace them.

    Returns:
        Commands keyed by top-level name: ungrouped actions, one
        :class:`click.Group` per action group and hidden aliases for
        grouped actions.
    """
    commands: dict[str, click.Command] = {}
    groups: dict[str, click.Group] = {}

    for name, action in actions.items():
        if action.group is None:
            if name not in reserved:
                commands[name] = build_action_command(action, context_factory, name)
            continue
        group = groups.get(action.group)
        if group is None:
            group = click.Group(action.group, help=action.group_description)
            groups[action.group] = group
        group.add_command(build_action_command(action, context_factory, name))

    for group_name, group in groups.items():
        if group_name not in reserved and group_name not in commands:
            commands[group_name] = group

    for name, action in actions.items():
        if action.group is not None and name not in commands and name not in reserved:
            commands[name] = build_action_command(action, context_factory, name, hidden=True)
    return commands
