"""Per-resolution registries for hooks and actions.

Both registries are created fresh by
:func:`~roc.orchestrator.build_complete_config` and handed to consumers
explicitly; nothing here is module-level state.

* :class:`HookRegistry` -- hook names are unique. A second registration
  is an error because two extensions assuming the same extension point
  almost always conflict.
* :class:`ActionRegistry` -- later registrations shadow earlier ones so an
  extension can specialise a built-in action such as ``init``. Every claim
  is recorded so the documentation can list the conflicts.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from typing import Optional

from roc.exceptions import ActionNotFoundError, DuplicateHookError, HookNotFoundError
from roc.models import ActionDefinition, HookDefinition

logger = logging.getLogger(__name__)


class HookRegistry:
    """Named extension points, in registration order."""

    def __init__(self) -> None:
        self._hooks: dict[str, HookDefinition] = {}

    def register(self, name: str, definition: HookDefinition) -> None:
        """Register *definition* under *name*.

        Raises:
            DuplicateHookError: If *name* is already registered.
        """
        if name in self._hooks:
            raise DuplicateHookError(name, self._hooks[name].extension, definition.extension)
        self._hooks[name] = definition
        logger.debug("Registered hook '%s' from '%s'", name, definition.extension)

    def get(self, name: str) -> HookDefinition:
        """Return the hook registered under *name*.

        Raises:
            HookNotFoundError: If no such hook exists.
        """
        try:
            return self._hooks[name]
        except KeyError:
            raise HookNotFoundError(f"Hook '{name}' is not registered") from None

    def all(self) -> dict[str, HookDefinition]:
        """Return a copy of all hooks keyed by name."""
        return dict(self._hooks)

    def __contains__(self, name: object) -> bool:
        return name in self._hooks

    def __iter__(self) -> Iterator[str]:
        return iter(self._hooks)

    def __len__(self) -> int:
        return len(self._hooks)


class ActionRegistry:
    """CLI actions keyed by name; the last registration wins."""

    def __init__(self) -> None:
        self._actions: dict[str, ActionDefinition] = {}
        self._claims: dict[str, list[str]] = {}

    def register(
        self, name: str, definition: ActionDefinition, owner: Optional[str] = None
    ) -> None:
        """Register *definition* under *name*, shadowing any earlier action.

        Args:
            name: Action name as typed on the command line.
            definition: The action.
            owner: Name of the contributing extension. Defaults to
                ``definition.extension``.
        """
        owner = owner or definition.extension or "unknown"
        if definition.extension != owner:
            definition = definition.model_copy(update={"extension": owner})
        claims = self._claims.setdefault(name, [])
        if claims:
            logger.debug("Action '%s' from '%s' shadows '%s'", name, owner, claims[-1])
        claims.append(owner)
        self._actions[name] = definition

    def get(self, name: str) -> ActionDefinition:
        """Return the action currently registered under *name*.

        Raises:
            ActionNotFoundError: If no such action exists.
        """
        try:
            return self._actions[name]
        except KeyError:
            raise ActionNotFoundError(f"Action '{name}' is not registered") from None

    def all(self) -> dict[str, ActionDefinition]:
        """Return a copy of the current actions keyed by name."""
        return dict(self._actions)

    def owner(self, name: str) -> str:
        """Return the extension that last claimed *name*."""
        if name not in self._claims:
            raise ActionNotFoundError(f"Action '{name}' is not registered")
        return self._claims[name][-1]

    def claims(self, name: str) -> list[str]:
        """Return every extension that registered *name*, oldest first."""
        return list(self._claims.get(name, []))

    def conflicts(self) -> dict[str, list[str]]:
        """Return the claim history of every action registered more than once."""
        return {name: list(owners) for name, owners in self._claims.items() if len(owners) > 1}

    def __contains__(self, name: object) -> bool:
        return name in self._actions

    def __iter__(self) -> Iterator[str]:
        return iter(self._actions)

    def __len__(self) -> int:
        return len(self._actions)
