"""Deep merge of configuration fragments into the canonical configuration.

Precedence, lowest to highest::

    base defaults -> extension fragments (load order) -> application config -> overrides

Merge rules for two values at the same key path:

* both mappings -- merged recursively;
* exactly one mapping -- :class:`~roc.exceptions.ConfigMergeTypeError`;
* anything else -- the later value replaces the earlier one. Lists are
  replaced, never concatenated.

``None`` is treated as an absent value and never erases what was merged
before it. Inputs are never mutated; every result is a fresh deep copy.
"""

from __future__ import annotations

import copy
import logging
from collections.abc import Iterable, Mapping
from typing import Any, Optional

from roc.exceptions import ConfigMergeTypeError
from roc.models import Extension

logger = logging.getLogger(__name__)


def deep_merge(
    base: Mapping[str, Any], incoming: Mapping[str, Any], path: str = ""
) -> dict[str, Any]:
    """Return a new mapping with *incoming* merged over *base*.

    Args:
        base: The lower-precedence mapping.
        incoming: The higher-precedence mapping.
        path: Dotted key path of *base* within the whole config, used in
            error messages.

    Raises:
        ConfigMergeTypeError: If a mapping meets a non-mapping at some key.
    """
    result = copy.deepcopy(dict(base))
    for key, value in incoming.items():
        if value is None:
            continue
        key_path = f"{path}.{key}" if path else str(key)
        existing = result.get(key)
        if existing is None:
            result[key] = copy.deepcopy(value)
        elif isinstance(existing, Mapping) and isinstance(value, Mapping):
            result[key] = deep_merge(existing, value, key_path)
        elif isinstance(existing, Mapping) or isinstance(value, Mapping):
            raise ConfigMergeTypeError(key_path, existing, value)
        else:
            result[key] = copy.deepcopy(value)
    return result


def merge(
    base_defaults: Mapping[str, Any],
    extensions: Iterable[Extension],
    application_config: Mapping[str, Any],
    overrides: Optional[Mapping[str, Any]] = None,
    apply_overrides: bool = False,
) -> dict[str, Any]:
    """Build the canonical configuration.

    Args:
        base_defaults: Built-in defaults, lowest precedence.
        extensions: Loaded extensions in load order; later ones win.
        application_config: The project's own config file contents.
        overrides: Caller-supplied values, applied last.
        apply_overrides: When ``False`` *overrides* are ignored.

    Returns:
        A new nested mapping. Identical inputs yield equal results.
    """
    config = copy.deepcopy(dict(base_defaults))
    for extension in extensions:
        if extension.config:
            logger.debug("Merging config from '%s'", extension.name)
            config = deep_merge(config, extension.config)
    config = deep_merge(config, application_config)
    if apply_overrides and overrides:
        logger.debug("Applying overrides for %s", ", ".join(sorted(overrides)))
        config = deep_merge(config, overrides)
    return config


def get_path(config: Mapping[str, Any], path: str | tuple[str, ...], default: Any = None) -> Any:
    """Look up a dotted *path* (or tuple of keys) in *config*."""
    keys = path.split(".") if isinstance(path, str) else path
    current: Any = config
    for key in keys:
        if not isinstance(current, Mapping) or key not in current:
            return default
        current = current[key]
    return current
