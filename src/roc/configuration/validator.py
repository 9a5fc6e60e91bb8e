"""Validation of the canonical configuration against the merged meta tree."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any, Optional

from roc.configuration.merger import get_path
from roc.configuration.meta import iter_meta_leaves
from roc.models import ValidationError, Validator

logger = logging.getLogger(__name__)


def run_validator(validator: Validator, value: Any) -> Optional[str]:
    """Apply *validator* to *value* and return a failure message, or ``None``.

    A validator fails by returning ``False``, by returning a message string,
    or by raising. An unexpected exception, e.g. an :class:`AttributeError`
    from a validator that does not handle ``None``, is reported as a failure
    of that value so the remaining values are still checked.
    """
    try:
        result = validator(value)
    except (ValueError, TypeError) as exc:
        return str(exc) or f"Invalid value {value!r}"
    except Exception as exc:
        logger.debug("Validator %r raised for %r", validator, value, exc_info=True)
        return f"Validator failed on {value!r}: {type(exc).__name__}: {exc}"
    if result is True or result is None:
        return None
    if result is False:
        return f"Invalid value {value!r}"
    return str(result)


def validate(config: Mapping[str, Any], meta: Mapping[str, Any]) -> list[ValidationError]:
    """Check every value in *config* that has a validator in *meta*.

    Every failure is collected, nothing stops early and *config* is never
    modified. Keys without a validator always pass. Values missing from
    *config* are validated as ``None``.

    Returns:
        One :class:`~roc.models.ValidationError` per failing validator; an
        empty list when the configuration is acceptable.
    """
    errors: list[ValidationError] = []
    for path, leaf in iter_meta_leaves(meta):
        if leaf.validator is None:
            continue
        value = get_path(config, path)
        message = run_validator(leaf.validator, value)
        if message is not None:
            dotted = ".".join(path)
            logger.debug("Validation failed for %s: %s", dotted, message)
            errors.append(ValidationError(path=dotted, value=value, message=message))
    return errors
