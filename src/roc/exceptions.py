"""Exception hierarchy for roc.

All exceptions inherit from :class:`RocError`, which carries an
``exit_code`` taken from :mod:`roc.exit_codes`. The resolution core only
raises these; :func:`roc.app.main` is the single place that prints them
and terminates the process.

Subclass hierarchy::

    RocError (exit 1)
    +-- ExtensionLoadError
    |   +-- DuplicateExtensionError
    +-- DuplicateHookError
    +-- HookNotFoundError
    +-- ActionNotFoundError
    +-- ConfigMergeTypeError
    +-- ConfigError
    +-- ConfigValidationError
    +-- TemplateError
    +-- InvalidUsageError (exit 2)
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from roc.exit_codes import EXIT_GENERIC_FAILURE, EXIT_INVALID_USAGE

if TYPE_CHECKING:
    from roc.models import ValidationError


class RocError(Exception):
    """Base exception for all roc errors.

    Args:
        message: Human-readable error description printed to stderr.
        exit_code: Optional override for the class-level exit code.
    """

    exit_code: int = EXIT_GENERIC_FAILURE

    def __init__(self, message: str, exit_code: int | None = None):
        super().__init__(message)
        if exit_code is not None:
            self.exit_code = exit_code


class ExtensionLoadError(RocError):
    """Raised when a declared extension cannot be located or raises while loading."""


class DuplicateExtensionError(ExtensionLoadError):
    """Raised when two distinct declarations resolve to the same extension name."""


class DuplicateHookError(RocError):
    """Raised when a hook name is registered by more than one extension."""

    def __init__(self, name: str, first: str | None, second: str | None):
        super().__init__(
            f"Hook '{name}' is registered by both "
            f"'{first or 'unknown'}' and '{second or 'unknown'}'"
        )
        self.name = name
        self.first = first
        self.second = second


class HookNotFoundError(RocError):
    """Raised when a hook is looked up or handled but was never registered."""


class ActionNotFoundError(RocError):
    """Raised when an action name is not present in the action registry."""


class ConfigMergeTypeError(RocError):
    """Raised when a mapping and a non-mapping meet at the same key path."""

    def __init__(self, path: str, existing: object, incoming: object):
        super().__init__(
            f"Cannot merge {type(incoming).__name__} into "
            f"{type(existing).__name__} at '{path or '<root>'}'"
        )
        self.path = path


class ConfigError(RocError):
    """Raised for unreadable or malformed application config and project files."""


class ConfigValidationError(RocError):
    """Raised at the CLI boundary when the resolved config has validation errors.

    The core returns validation errors as data; this wrapper exists so the
    entry point can report every one of them and exit non-zero.
    """

    def __init__(self, errors: list[ValidationError]):
        lines = [f"  {err.path}: {err.message}" for err in errors]
        super().__init__(
            f"Configuration is invalid ({len(errors)} problem(s)):\n" + "\n".join(lines)
        )
        self.errors = errors


class TemplateError(RocError):
    """Raised when a project template cannot be fetched, validated or installed."""


class InvalidUsageError(RocError):
    """Raised when an action option or argument fails its validator."""

    exit_code = EXIT_INVALID_USAGE
