"""Markdown documentation for a resolved roc project.

:func:`write_documentation` renders one file per topic into a directory:

* ``README.md`` -- project overview and the extensions in use;
* ``Extensions.md`` -- every package and plugin with its description;
* ``Settings.md`` -- every configuration key with description, value and
  whether it is validated;
* ``Actions.md`` -- every action, its options and arguments, plus the
  actions that were shadowed by a later extension;
* ``Hooks.md`` -- every hook and the extensions handling it;
* ``Dependencies.md`` -- declared dependencies and whether they are installed.

Descriptions given as callables are evaluated here, with the
:class:`~roc.actions.CommandContext` and the owning extension, and nowhere
else. Templates live in ``documentation/templates/`` and are rendered with
Jinja2.
"""

from __future__ import annotations

import importlib.metadata
import json
import re
from collections.abc import Mapping
from pathlib import Path
from typing import Any, Optional

from jinja2 import Environment, FileSystemLoader, select_autoescape

from roc.actions import CommandContext
from roc.configuration.merger import get_path
from roc.configuration.meta import GROUP_KEY, MetaLeaf, iter_meta_leaves, render_description
from roc.models import Extension, ExtensionType

TEMPLATE_DIR = Path(__file__).parent / "templates"

DOCUMENTS = ["Extensions", "Settings", "Actions", "Hooks", "Dependencies"]
PYPI_URL = "https://pypi.org/project"


def _create_jinja_env() -> Environment:
    return Environment(
        loader=FileSystemLoader(str(TEMPLATE_DIR)),
        autoescape=select_autoescape(disabled_extensions=("md.j2",)),
        trim_blocks=True,
        lstrip_blocks=True,
        keep_trailing_newline=True,
    )


def project_name(context: CommandContext) -> str:
    """Name from ``pyproject.toml``, falling back to the directory name."""
    project = context.package_config.get("project") or {}
    return project.get("name") or context.directory.name


def _extension_entries(context: CommandContext, kind: ExtensionType) -> list[dict[str, str]]:
    return [
        {
            "name": ext.name,
            "version": ext.version,
            "url": f"{PYPI_URL}/{ext.name}/",
            "description": render_description(ext.description, context, ext),
        }
        for ext in context.project_extensions
        if ext.type == kind
    ]


def _format_value(value: Any) -> str:
    if value is None:
        return ""
    return f"`{json.dumps(value, default=str)}`"


def _escape_cell(text: str) -> str:
    return text.replace("|", "\\|").replace("\n", " ")


def _owner_of(path: tuple[str, ...], extensions: list[Extension]) -> Optional[Extension]:
    owner = None
    for ext in extensions:
        if get_path(ext.meta, path) is not None or get_path(ext.config, path) is not None:
            owner = ext
    return owner


def _config_paths(config: Mapping[str, Any], prefix: tuple[str, ...] = ()) -> list[tuple[str, ...]]:
    paths: list[tuple[str, ...]] = []
    for key, value in config.items():
        path = prefix + (key,)
        if isinstance(value, Mapping) and value:
            paths.extend(_config_paths(value, path))
        else:
            paths.append(path)
    return paths


def _group_titles(meta: Mapping[str, Any]) -> dict[str, str]:
    titles = {}
    for key, value in meta.items():
        if isinstance(value, Mapping) and isinstance(value.get(GROUP_KEY), Mapping):
            titles[key] = value[GROUP_KEY].get("name") or key
    return titles


def settings_rows(context: CommandContext) -> list[dict[str, Any]]:
    """One row per configuration key, documented keys first in meta order."""
    leaves: dict[tuple[str, ...], MetaLeaf] = dict(iter_meta_leaves(context.meta))
    ordered = list(leaves)
    ordered += [p for p in _config_paths(context.config) if p not in leaves]

    rows = []
    for path in ordered:
        leaf = leaves.get(path)
        extension = _owner_of(path, context.project_extensions)
        rows.append(
            {
                "path": ".".join(path),
                "group": path[0],
                "description": _escape_cell(
                    render_description(leaf.description, context, extension) if leaf else ""
                ),
                "value": _escape_cell(_format_value(get_path(context.config, path))),
                "validated": bool(leaf and leaf.validator),
                "documented": leaf is not None and leaf.description is not None,
            }
        )
    return rows


def create_readme(context: CommandContext, directory: str) -> str:
    """Render ``README.md`` for the project."""
    return _create_jinja_env().get_template("readme.md.j2").render(
        name=project_name(context),
        packages=_extension_entries(context, ExtensionType.PACKAGE),
        plugins=_extension_entries(context, ExtensionType.PLUGIN),
        directory=directory,
        documents=DOCUMENTS,
    )


def extensions_to_markdown(context: CommandContext) -> str:
    """Render ``Extensions.md``: every package and plugin, direct and indirect."""
    return _create_jinja_env().get_template("extensions.md.j2").render(
        name=project_name(context),
        packages=_extension_entries(context, ExtensionType.PACKAGE),
        plugins=_extension_entries(context, ExtensionType.PLUGIN),
    )


def settings_to_markdown(context: CommandContext) -> str:
    """Render ``Settings.md`` grouped by top-level configuration key."""
    rows = settings_rows(context)
    titles = _group_titles(context.meta)
    groups: dict[str, list[dict[str, Any]]] = {}
    for row in rows:
        groups.setdefault(row["group"], []).append(row)
    return _create_jinja_env().get_template("settings.md.j2").render(
        name=project_name(context),
        groups=[(titles.get(key, key), items) for key, items in groups.items()],
    )


def actions_to_markdown(context: CommandContext) -> str:
    """Render ``Actions.md`` including the actions shadowed by later extensions."""
    entries = []
    for name, action in context.actions.all().items():
        extension = next(
            (e for e in context.project_extensions if e.name == action.extension), None
        )
        entries.append(
            {
                "name": name,
                "command": f"{action.group} {name}" if action.group else name,
                "extension": context.actions.owner(name),
                "description": render_description(action.description, context, extension),
                "markdown": (action.markdown or "").strip(),
                "options": [
                    {
                        "flag": f"--{opt}" + (f", -{spec.alias}" if spec.alias else ""),
                        "description": spec.description,
                        "default": _format_value(spec.default),
                    }
                    for opt, spec in action.options.items()
                ],
                "arguments": [
                    {"name": arg.upper(), "description": spec.description}
                    for arg, spec in action.arguments.items()
                ],
            }
        )
    return _create_jinja_env().get_template("actions.md.j2").render(
        name=project_name(context),
        actions=entries,
        conflicts=context.actions.conflicts(),
    )


def hooks_to_markdown(context: CommandContext) -> str:
    """Render ``Hooks.md`` with the extensions handling each hook."""
    entries = []
    for name, hook in context.hooks.all().items():
        extension = next((e for e in context.project_extensions if e.name == hook.extension), None)
        handlers = context.hook_runner.handlers(name) if context.hook_runner else []
        entries.append(
            {
                "name": name,
                "extension": hook.extension or "",
                "description": render_description(hook.description, context, extension),
                "arguments": ", ".join(hook.arguments),
                "initial_value": _format_value(hook.initial_value),
                "handlers": [h.extension for h in handlers],
            }
        )
    return _create_jinja_env().get_template("hooks.md.j2").render(
        name=project_name(context), hooks=entries
    )


def dependency_status(name: str) -> Optional[str]:
    """Installed version of distribution *name*, or ``None`` if it is missing.

    Version specifiers and extras (``requests[socks]>=2``) are ignored.
    """
    distribution = re.split(r"[\s<>=!~\[;@]", name.strip(), maxsplit=1)[0]
    try:
        return importlib.metadata.version(distribution)
    except importlib.metadata.PackageNotFoundError:
        return None


def dependencies_to_markdown(context: CommandContext) -> str:
    """Render ``Dependencies.md`` with the installed version of each dependency."""
    owners: dict[str, list[str]] = {}
    for ext in context.project_extensions:
        for dep in ext.dependencies:
            owners.setdefault(dep, []).append(ext.name)
    entries = [
        {"name": dep, "installed": dependency_status(dep), "required_by": owners.get(dep, [])}
        for dep in context.dependencies
    ]
    return _create_jinja_env().get_template("dependencies.md.j2").render(
        name=project_name(context), dependencies=entries
    )


def write_documentation(context: CommandContext, output_dir: Path) -> list[Path]:
    """Write every markdown document into *output_dir* and return the written paths."""
    output_dir.mkdir(parents=True, exist_ok=True)
    documents = {
        "README": create_readme(context, output_dir.name),
        "Extensions": extensions_to_markdown(context),
        "Settings": settings_to_markdown(context),
        "Actions": actions_to_markdown(context),
        "Hooks": hooks_to_markdown(context),
        "Dependencies": dependencies_to_markdown(context),
    }
    written = []
    for title, text in documents.items():
        path = output_dir / f"{title}.md"
        path.write_text(text, encoding="utf-8")
        written.append(path)
    return written
