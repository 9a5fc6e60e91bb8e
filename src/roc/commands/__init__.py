"""Built-in actions and command groups of roc.

* :mod:`~roc.commands.init` -- ``create init`` / ``create new``: scaffold a
  project from a template.
* :mod:`~roc.commands.docs` -- ``docs``: write markdown documentation.
* :mod:`~roc.commands.config` -- ``config`` group: inspect the resolved
  configuration.

The actions in :data:`BUILTIN_ACTIONS` are registered before any extension,
so an extension may shadow them. Their commands import lazily to keep
``roc --help`` fast.
"""

from __future__ import annotations

from typing import Any

from roc.configuration.validators import is_boolean, is_path, is_string, not_empty, required
from roc.models import ActionDefinition, ArgumentSpec, OptionSpec


def _init(context: Any) -> Any:
    from roc.commands.init import init

    return init(context)


def _docs(context: Any) -> Any:
    from roc.commands.docs import docs

    return docs(context)


INIT_OPTIONS = {
    "list-versions": OptionSpec(
        alias="l",
        validator=is_boolean,
        description="List the available versions of a template.",
    ),
    "force": OptionSpec(
        alias="f",
        validator=is_boolean,
        description="Ignore non empty directory warning.",
    ),
    "clone": OptionSpec(
        validator=is_boolean,
        description="Use git clone instead of downloading the template archive.",
    ),
}

INIT_ARGUMENTS = {
    "template": ArgumentSpec(
        validator=not_empty(is_path),
        description="The template to use.",
    ),
    "version": ArgumentSpec(
        validator=not_empty(is_string),
        description="The version of the template to use.",
    ),
}

_CREATE_GROUP = "create"
_CREATE_DESCRIPTION = "Commands that can be used to create new projects."

BUILTIN_ACTIONS: dict[str, ActionDefinition] = {
    "init": ActionDefinition(
        name="init",
        command=_init,
        description="Init a new project.",
        help="""
            Init a new project from a template.

            If no template is given a prompt asks for one. Templates are
            fetched from GitHub (user/repo) or read from a local zip file.
        """,
        markdown="""
            The __init__ command initiates a new roc project and expects an
            empty directory. __template__ is either a short name (`web`,
            `web-react`), a GitHub repository (`USERNAME/PROJECT`) or a local
            `.zip` file. The template must contain a `template` folder with a
            `pyproject.toml` depending on a `roc-package-*` distribution or a
            `roc.config.yaml`.

            __version__ should match a tag of the repository and defaults to
            the newest tag. Versions starting with a digit get a `v` prefix;
            `master` is always available.
        """,
        options=INIT_OPTIONS,
        arguments=INIT_ARGUMENTS,
        group=_CREATE_GROUP,
        group_description=_CREATE_DESCRIPTION,
    ),
    "new": ActionDefinition(
        name="new",
        command=_init,
        description="Create a new project.",
        help='Alias for "init" that always creates a new directory.',
        options=INIT_OPTIONS,
        arguments={
            "name": ArgumentSpec(
                validator=required(not_empty(is_string)),
                description="Name for a new directory to create the project in.",
            ),
            **INIT_ARGUMENTS,
        },
        group=_CREATE_GROUP,
        group_description=_CREATE_DESCRIPTION,
    ),
    "docs": ActionDefinition(
        name="docs",
        command=_docs,
        description="Generate markdown documentation for the project.",
        options={
            "output": OptionSpec(
                alias="o",
                validator=not_empty(is_path),
                description="Directory to write the documentation to.",
                default="docs",
            ),
        },
    ),
}
