"""Merging of meta fragments and lazy rendering of descriptions.

A meta fragment mirrors the shape of a config fragment. Its leaves are
:class:`~roc.models.MetaLeaf` values, or plain dicts using only the keys
``description``, ``validator`` and ``group``. A branch may hold a
``__meta`` entry (``{"name": ..., "description": ...}``) naming the group
it documents.

A plain dict whose keys all fall in ``description``, ``validator`` and
``group`` is always read as a leaf. To document config keys with those
names, give each one a full leaf: ``{"server": {"description":
{"description": "..."}}}`` or a :class:`~roc.models.MetaLeaf`. The bare
string shorthand ``{"server": {"description": "..."}}`` documents
``server`` itself.

Descriptions and validators that are callables are stored as-is. They run
only when :func:`render_description` or the validator is called, never
while merging.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator, Mapping
from typing import Any, Optional

from roc.models import Description, Extension, MetaLeaf

logger = logging.getLogger(__name__)

GROUP_KEY = "__meta"
LEAF_KEYS = frozenset({"description", "validator", "group"})


def is_meta_leaf(value: Any) -> bool:
    """Return ``True`` if *value* is a meta leaf rather than a branch."""
    if isinstance(value, MetaLeaf):
        return True
    if not isinstance(value, Mapping) or not value:
        return False
    if not set(value) <= LEAF_KEYS:
        return False
    return all(v is None or isinstance(v, str) or callable(v) for v in value.values())


def to_meta_leaf(value: Any) -> MetaLeaf:
    """Normalise a leaf (dict, :class:`MetaLeaf` or bare description) to :class:`MetaLeaf`."""
    if isinstance(value, MetaLeaf):
        return value
    if isinstance(value, Mapping):
        return MetaLeaf(**value)
    return MetaLeaf(description=value)


def _merge_leaf(existing: Optional[MetaLeaf], incoming: MetaLeaf) -> MetaLeaf:
    if existing is None:
        return incoming
    updates = {
        field: getattr(incoming, field)
        for field in ("description", "validator", "group")
        if getattr(incoming, field) is not None
    }
    return existing.model_copy(update=updates)


def merge_meta_fragment(base: Mapping[str, Any], incoming: Mapping[str, Any]) -> dict[str, Any]:
    """Return a new meta tree with *incoming* merged over *base*.

    Leaves merge field by field, so a later leaf that only changes the
    description keeps the earlier validator. A leaf replaces a branch (and
    vice versa) outright.
    """
    result = dict(base)
    for key, value in incoming.items():
        if value is None:
            continue
        if key == GROUP_KEY:
            result[key] = {**result.get(key, {}), **value}
            continue
        existing = result.get(key)
        if is_meta_leaf(value) or not isinstance(value, Mapping):
            leaf = to_meta_leaf(value)
            result[key] = _merge_leaf(existing if isinstance(existing, MetaLeaf) else None, leaf)
        elif isinstance(existing, Mapping):
            result[key] = merge_meta_fragment(existing, value)
        else:
            result[key] = merge_meta_fragment({}, value)
    return result


def merge_meta(base_meta: Mapping[str, Any], extensions: Iterable[Extension]) -> dict[str, Any]:
    """Merge the meta fragments of all *extensions* in load order.

    Args:
        base_meta: Built-in meta for the default config keys.
        extensions: Loaded extensions, in the same order used for config.

    Returns:
        One meta tree with every leaf normalised to :class:`MetaLeaf`.
    """
    meta = merge_meta_fragment({}, base_meta)
    for extension in extensions:
        if extension.meta:
            logger.debug("Merging meta from '%s'", extension.name)
            meta = merge_meta_fragment(meta, extension.meta)
    return meta


def iter_meta_leaves(
    meta: Mapping[str, Any], prefix: tuple[str, ...] = ()
) -> Iterator[tuple[tuple[str, ...], MetaLeaf]]:
    """Yield ``(key_path, leaf)`` for every leaf in *meta*, depth first, in key order."""
    for key, value in meta.items():
        if key == GROUP_KEY:
            continue
        path = prefix + (key,)
        if isinstance(value, MetaLeaf):
            yield path, value
        elif isinstance(value, Mapping):
            yield from iter_meta_leaves(value, path)


def render_description(
    description: Optional[Description], context: Any = None, extension: Any = None
) -> str:
    """Evaluate a description for display.

    Static strings are returned unchanged. Callables are invoked with
    ``(context, extension)`` at this point and nowhere else.
    """
    if description is None:
        return ""
    if callable(description):
        return str(description(context, extension))
    return str(description)
