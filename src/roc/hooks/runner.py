"""Running hook handlers contributed by extensions.

An extension may expose ``handlers``: a mapping from a hook name to a
callable ``handler(value, context) -> value``. :class:`HookRunner` pipes a
hook's value through every handler in extension load order, each handler
receiving the previous handler's result. The first handler sees the hook's
``initial_value`` unless the caller supplies one.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable

from roc.exceptions import HookNotFoundError
from roc.hooks.registry import HookRegistry

logger = logging.getLogger(__name__)

_UNSET = object()


@dataclass(frozen=True)
class HookHandler:
    """A handler bound to the extension that contributed it."""

    hook: str
    extension: str
    handler: Callable[..., Any]


class HookRunner:
    """Executes hook handlers in registration order.

    The runner holds a snapshot of the handler list; handlers added to it
    after a :meth:`run` has started do not affect that run.
    """

    def __init__(self, registry: HookRegistry) -> None:
        self._registry = registry
        self._handlers: list[HookHandler] = []

    def add(self, hook: str, extension: str, handler: Callable[..., Any]) -> None:
        """Attach *handler* from *extension* to *hook*.

        Raises:
            HookNotFoundError: If *hook* has not been registered.
        """
        if hook not in self._registry:
            raise HookNotFoundError(
                f"Extension '{extension}' handles unknown hook '{hook}'"
            )
        self._handlers.append(HookHandler(hook, extension, handler))

    def handlers(self, hook: str) -> list[HookHandler]:
        """Return the handlers attached to *hook*, in execution order."""
        return [h for h in self._handlers if h.hook == hook]

    def run(self, hook: str, context: Any = None, value: Any = _UNSET) -> Any:
        """Pipe *value* through every handler of *hook* and return the result.

        Args:
            hook: Registered hook name.
            context: Passed unchanged to every handler, usually the
                :class:`~roc.actions.CommandContext` of the running action.
            value: Starting value; defaults to the hook's ``initial_value``.

        Raises:
            HookNotFoundError: If *hook* has not been registered.
        """
        definition = self._registry.get(hook)
        if value is _UNSET:
            value = definition.initial_value
        for entry in self.handlers(hook):
            logger.debug("Running hook '%s' handler from '%s'", hook, entry.extension)
            value = entry.handler(value, context)
        return value
