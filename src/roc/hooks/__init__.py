"""Hook and action registries plus the hook handler runner.

* :class:`HookRegistry` -- unique named extension points.
* :class:`ActionRegistry` -- CLI actions where later registrations shadow
  earlier ones and every claim is remembered.
* :class:`HookRunner` -- pipes a hook value through the handlers that
  extensions attach to it.
"""

from roc.hooks.registry import ActionRegistry, HookRegistry
from roc.hooks.runner import HookHandler, HookRunner

__all__ = ["ActionRegistry", "HookHandler", "HookRegistry", "HookRunner"]
