"""Pydantic models shared across roc.

The models describe what an extension contributes once it has been
loaded, independent of how its code was located:

* :class:`Extension` -- one loaded package or plugin with its fragments.
* :class:`HookDefinition` -- a named extension point.
* :class:`ActionDefinition` with :class:`OptionSpec` / :class:`ArgumentSpec`
  -- a CLI command contributed by an extension.
* :class:`MetaLeaf` -- documentation and validator for one config key.
* :class:`ValidationError` -- one failing validator, returned as data.

Callables (descriptions, validators, commands) are stored as plain values
and only invoked at their documented call sites, never during loading or
merging.
"""

from __future__ import annotations

import enum
from pathlib import Path
from typing import Any, Callable, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


Description = Union[str, Callable[..., str]]
"""Either a static string or a ``(context, extension) -> str`` callable."""

Validator = Callable[[Any], Any]
"""A callable returning ``True``/``None`` on success, ``False`` or a message on failure."""


class ExtensionType(str, enum.Enum):
    """Kind of extension. Packages bring features, plugins adjust them."""

    PACKAGE = "package"
    PLUGIN = "plugin"


# --- Hooks and actions ---


class HookDefinition(BaseModel):
    """A named extension point exposed by an extension.

    ``initial_value`` is the value a :class:`~roc.hooks.runner.HookRunner`
    starts from before piping it through the registered handlers.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    name: str
    description: Optional[Description] = None
    initial_value: Any = None
    arguments: list[str] = Field(default_factory=list)
    extension: Optional[str] = None


class OptionSpec(BaseModel):
    """A ``--flag`` accepted by an action."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    alias: Optional[str] = None
    validator: Optional[Validator] = None
    description: str = ""
    default: Any = None


class ArgumentSpec(BaseModel):
    """A positional argument accepted by an action. Arguments are optional unless
    their validator rejects a missing value."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    validator: Optional[Validator] = None
    description: str = ""
    default: Any = None


class ActionDefinition(BaseModel):
    """A CLI command contributed by an extension.

    ``command`` receives a single :class:`~roc.actions.CommandContext`.
    ``group`` and ``group_description`` come from a ``__meta`` entry in the
    contributing action tree and place the command in a sub-group.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    name: str
    command: Callable[..., Any]
    description: Description = ""
    help: Optional[str] = None
    markdown: Optional[str] = None
    options: dict[str, OptionSpec] = Field(default_factory=dict)
    arguments: dict[str, ArgumentSpec] = Field(default_factory=dict)
    group: Optional[str] = None
    group_description: Optional[str] = None
    extension: Optional[str] = None


# --- Meta ---


class MetaLeaf(BaseModel):
    """Documentation and validation for a single configuration key."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    description: Optional[Description] = None
    validator: Optional[Validator] = None
    group: Optional[str] = None


class ValidationError(BaseModel):
    """One failing validator, reported against a dotted config path."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    path: str
    value: Any = None
    message: str


# --- Extensions ---


class Extension(BaseModel):
    """A loaded package or plugin and everything it contributes.

    Immutable once created by :class:`~roc.extensions.loader.ExtensionLoader`.
    ``packages`` and ``plugins`` hold the raw declarations of the
    extensions this one depends on; they are always loaded before it.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    name: str
    version: str = "0.0.0"
    type: ExtensionType = ExtensionType.PACKAGE
    description: Optional[Description] = None
    config: dict[str, Any] = Field(default_factory=dict)
    meta: dict[str, Any] = Field(default_factory=dict)
    hooks: dict[str, HookDefinition] = Field(default_factory=dict)
    actions: dict[str, ActionDefinition] = Field(default_factory=dict)
    handlers: dict[str, Callable[..., Any]] = Field(default_factory=dict)
    dependencies: list[str] = Field(default_factory=list)
    packages: list[str] = Field(default_factory=list)
    plugins: list[str] = Field(default_factory=list)
    path: Optional[Path] = None
