"""Markdown documentation generated from a resolved project."""

from roc.documentation.markdown import (
    actions_to_markdown,
    create_readme,
    dependencies_to_markdown,
    extensions_to_markdown,
    hooks_to_markdown,
    settings_to_markdown,
    write_documentation,
)

__all__ = [
    "actions_to_markdown",
    "create_readme",
    "dependencies_to_markdown",
    "extensions_to_markdown",
    "hooks_to_markdown",
    "settings_to_markdown",
    "write_documentation",
]
