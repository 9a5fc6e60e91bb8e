"""Numeric process exit codes returned by the ``roc`` command.

Each constant is referenced by the matching
:class:`~roc.exceptions.RocError` subclass so shell scripts can tell a
broken project apart from a mistyped command without parsing stderr.
"""

EXIT_SUCCESS = 0
"""The command completed successfully."""

EXIT_GENERIC_FAILURE = 1
"""Configuration resolution or validation failed, or an action raised."""

EXIT_INVALID_USAGE = 2
"""An option or argument failed its validator."""

EXIT_INTERRUPTED = 130
"""The user pressed Ctrl-C."""
