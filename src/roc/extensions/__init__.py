"""Extension discovery and loading.

Third-party distributions expose extensions through the ``roc.extensions``
entry-point group; projects can also point at local extension directories
from their ``roc.config.yaml``. :class:`ExtensionLoader` turns every
declaration into an immutable :class:`~roc.models.Extension`.
"""

from roc.extensions.loader import (
    ENTRY_POINT_GROUP,
    ExtensionLoader,
    ExtensionSource,
    build_extension,
    declared_dependency_extensions,
    default_importer,
)

__all__ = [
    "ENTRY_POINT_GROUP",
    "ExtensionLoader",
    "ExtensionSource",
    "build_extension",
    "declared_dependency_extensions",
    "default_importer",
]
