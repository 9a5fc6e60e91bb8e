"""Configuration resolution -- merging, meta schema and validation.

* :func:`merge` / :func:`deep_merge` -- build the canonical configuration.
* :func:`merge_meta` -- combine the meta fragments of all extensions.
* :func:`validate` -- run every meta validator against the configuration.
* :func:`render_description` -- evaluate a (possibly lazy) description.
"""

from roc.configuration.merger import deep_merge, get_path, merge
from roc.configuration.meta import iter_meta_leaves, merge_meta, render_description
from roc.configuration.validator import validate

__all__ = [
    "deep_merge",
    "get_path",
    "iter_meta_leaves",
    "merge",
    "merge_meta",
    "render_description",
    "validate",
]
