"""Reusable validators for meta leaves and action options/arguments.

Every validator takes one value and returns ``True`` when it is acceptable
or an explanatory string when it is not. ``None`` is accepted by the type
validators so optional settings can stay unset; wrap a validator in
:func:`required` to reject it and in :func:`not_empty` to reject empty
values.

Example::

    meta = {
        "build": {
            "minify": {"description": "Minify output.", "validator": is_boolean},
            "targets": {"validator": required(not_empty(is_array(is_string)))},
        }
    }
"""

from __future__ import annotations

from collections.abc import Iterable, Sized
from pathlib import Path
from typing import Any

from roc.configuration.validator import run_validator
from roc.models import Validator


def _check(validator: Validator, value: Any) -> bool | str:
    message = run_validator(validator, value)
    return True if message is None else message


def is_string(value: Any) -> bool | str:
    if value is None or isinstance(value, str):
        return True
    return f"Expected a string, got {value!r}"


def is_boolean(value: Any) -> bool | str:
    if value is None or isinstance(value, bool):
        return True
    return f"Expected a boolean, got {value!r}"


def is_integer(value: Any) -> bool | str:
    if value is None or (isinstance(value, int) and not isinstance(value, bool)):
        return True
    return f"Expected an integer, got {value!r}"


def is_path(value: Any) -> bool | str:
    """Accept strings and :class:`~pathlib.Path` objects. Existence is not checked."""
    if value is None or isinstance(value, (str, Path)):
        return True
    return f"Expected a path, got {value!r}"


def is_array(validator: Validator | None = None) -> Validator:
    """Accept a list whose items all pass *validator*."""

    def _is_array(value: Any) -> bool | str:
        if value is None:
            return True
        if not isinstance(value, (list, tuple)):
            return f"Expected an array, got {value!r}"
        if validator is None:
            return True
        for index, item in enumerate(value):
            result = _check(validator, item)
            if result is not True:
                return f"Item {index}: {result}"
        return True

    return _is_array


def is_valid_choice(choices: Iterable[Any]) -> Validator:
    """Accept ``None`` or one of *choices*."""
    allowed = list(choices)

    def _is_valid_choice(value: Any) -> bool | str:
        if value is None or value in allowed:
            return True
        return f"Expected one of {', '.join(map(str, allowed))}, got {value!r}"

    return _is_valid_choice


def one_of(*validators: Validator) -> Validator:
    """Accept a value that passes at least one of *validators*."""

    def _one_of(value: Any) -> bool | str:
        messages = []
        for validator in validators:
            result = _check(validator, value)
            if result is True:
                return True
            messages.append(result)
        return " or ".join(messages)

    return _one_of


def not_empty(validator: Validator) -> Validator:
    """Reject ``""``, empty lists and empty mappings, then apply *validator*."""

    def _not_empty(value: Any) -> bool | str:
        if isinstance(value, Sized) and not isinstance(value, (bytes, bytearray)) and len(value) == 0:
            return "Value can not be empty"
        return _check(validator, value)

    return _not_empty


def required(validator: Validator) -> Validator:
    """Reject ``None``, then apply *validator*."""

    def _required(value: Any) -> bool | str:
        if value is None:
            return "A value is required"
        return _check(validator, value)

    return _required
