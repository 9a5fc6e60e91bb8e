"""The ``docs`` action -- write markdown documentation for the project."""

from __future__ import annotations

from pathlib import Path

from roc.actions import CommandContext
from roc.documentation import write_documentation
from roc.output import info, success


def docs(context: CommandContext) -> list[Path]:
    """Write the documentation into ``--output``, relative to the project directory."""
    output = Path(context.parsed_options.get("output") or "docs").expanduser()
    if not output.is_absolute():
        output = context.directory / output
    written = write_documentation(context, output)
    for path in written:
        info(f"Wrote {path}")
    success(f"Documentation written to {output}")
    return written
