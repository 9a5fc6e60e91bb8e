"""Builds the complete configuration for a project.

:func:`build_complete_config` runs the resolution pipeline strictly in
order, each stage feeding the next:

1. load extensions (:class:`~roc.extensions.loader.ExtensionLoader`);
2. merge their meta fragments (:func:`~roc.configuration.merge_meta`);
3. merge defaults, extension configs, application config and overrides
   (:func:`~roc.configuration.merge`);
4. validate the result against the meta (:func:`~roc.configuration.validate`);
5. register hooks, hook handlers and actions in fresh registries.

Any fatal error propagates and nothing partial is returned. Validation
errors are not fatal here: they are returned on the result and the caller
decides whether to stop.

:func:`get_configuration` is the library entry point for tools that need
the resolved configuration without CLI override semantics.
"""

from __future__ import annotations

import copy
import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

from roc.configuration import merge, merge_meta, validate
from roc.configuration.validators import is_array, is_string
from roc.extensions.loader import ExtensionLoader
from roc.hooks import ActionRegistry, HookRegistry, HookRunner
from roc.models import Extension, MetaLeaf, ValidationError

logger = logging.getLogger(__name__)

CORE_NAME = "roc"
"""Owner recorded for the built-in actions."""

BASE_CONFIG: dict[str, Any] = {
    "packages": [],
    "plugins": [],
    "settings": {},
}

BASE_META: dict[str, Any] = {
    "packages": MetaLeaf(
        description="Extensions of type package used by the project.",
        validator=is_array(is_string),
    ),
    "plugins": MetaLeaf(
        description="Extensions of type plugin used by the project.",
        validator=is_array(is_string),
    ),
    "settings": {},
}


@dataclass(frozen=True)
class ResolvedConfig:
    """Everything one resolution produced.

    Attributes:
        package_config: Parsed ``pyproject.toml`` of the project.
        config: The canonical configuration. Treat as read-only.
        meta: Merged meta tree.
        dependencies: Sorted union of every extension's dependencies.
        extensions: Loaded extensions in merge order.
        hooks: Hook registry for this resolution.
        actions: Action registry for this resolution.
        hook_runner: Runner holding the hook handlers of all extensions.
        validation_errors: Every failing validator; empty when valid.
        extensions_enabled: ``False`` when extensions were skipped.
        parsed_arguments: Positional arguments passed by the caller.
        parsed_options: Options passed by the caller.
        project_path: Absolute project directory.
    """

    package_config: dict[str, Any]
    config: dict[str, Any]
    meta: dict[str, Any]
    dependencies: list[str]
    extensions: list[Extension]
    hooks: HookRegistry
    actions: ActionRegistry
    hook_runner: HookRunner
    validation_errors: list[ValidationError] = field(default_factory=list)
    extensions_enabled: bool = True
    parsed_arguments: dict[str, Any] = field(default_factory=dict)
    parsed_options: dict[str, Any] = field(default_factory=dict)
    project_path: Optional[Path] = None

    @property
    def config_object(self) -> dict[str, Any]:
        return self.config

    @property
    def meta_object(self) -> dict[str, Any]:
        return self.meta

    @property
    def is_valid(self) -> bool:
        return not self.validation_errors


def build_complete_config(
    verbose: bool,
    application_config: Mapping[str, Any],
    parsed_arguments: Optional[Mapping[str, Any]],
    options: Optional[Mapping[str, Any]],
    overrides: Optional[Mapping[str, Any]],
    project_path: Path,
    extensions_enabled: bool = True,
    apply_overrides: bool = True,
    loader: Optional[ExtensionLoader] = None,
    package_config: Optional[Mapping[str, Any]] = None,
) -> ResolvedConfig:
    """Resolve the complete configuration of the project at *project_path*.

    Args:
        verbose: Log each stage at INFO instead of DEBUG.
        application_config: Contents of the project's ``roc.config.yaml``.
        parsed_arguments: Positional CLI arguments, stored on the result.
        options: Parsed CLI options, stored on the result.
        overrides: Values applied after everything else.
        project_path: Absolute project directory.
        extensions_enabled: When ``False`` no extension is loaded and the
            configuration is the application config alone.
        apply_overrides: When ``False`` *overrides* are ignored.
        loader: Extension loader to use; defaults to one for *project_path*.
        package_config: Parsed ``pyproject.toml``; read from *project_path*
            when omitted.

    Returns:
        A :class:`ResolvedConfig` built from fresh registries.

    Raises:
        RocError: Any fatal error from loading, merging or registration.
    """
    from roc.config import get_package_config

    log = logger.info if verbose else logger.debug
    if package_config is None:
        package_config = get_package_config(project_path)

    hooks = HookRegistry()
    actions = ActionRegistry()
    hook_runner = HookRunner(hooks)
    common = dict(
        package_config=copy.deepcopy(dict(package_config)),
        hooks=hooks,
        actions=actions,
        hook_runner=hook_runner,
        parsed_arguments=dict(parsed_arguments or {}),
        parsed_options=dict(options or {}),
        project_path=project_path,
    )

    if not extensions_enabled:
        log("Extensions disabled, using the application config alone")
        config = copy.deepcopy(dict(application_config))
        if apply_overrides and overrides:
            config = merge({}, [], config, overrides, apply_overrides=True)
        return ResolvedConfig(
            config=config,
            meta={},
            dependencies=[],
            extensions=[],
            extensions_enabled=False,
            **common,
        )

    loader = loader or ExtensionLoader(project_path)
    extensions = loader.load(application_config, package_config)
    log("Loaded %d extension(s)", len(extensions))

    meta = merge_meta(BASE_META, extensions)
    config = merge(BASE_CONFIG, extensions, application_config, overrides, apply_overrides)

    validation_errors = validate(config, meta)
    if validation_errors:
        log("Configuration has %d validation error(s)", len(validation_errors))

    _register_builtin_actions(actions)
    for extension in extensions:
        for name, hook in extension.hooks.items():
            hooks.register(name, hook)
    for extension in extensions:
        for hook_name, handler in extension.handlers.items():
            hook_runner.add(hook_name, extension.name, handler)
        for name, action in extension.actions.items():
            actions.register(name, action, owner=extension.name)

    dependencies = sorted({dep for ext in extensions for dep in ext.dependencies})
    return ResolvedConfig(
        config=config,
        meta=meta,
        dependencies=dependencies,
        extensions=extensions,
        validation_errors=validation_errors,
        extensions_enabled=True,
        **common,
    )


def _register_builtin_actions(actions: ActionRegistry) -> None:
    from roc.commands import BUILTIN_ACTIONS

    for name, action in BUILTIN_ACTIONS.items():
        actions.register(name, action, owner=CORE_NAME)


def get_configuration(
    project_directory: str | Path,
    application_config_path: Optional[str | Path] = None,
) -> ResolvedConfig:
    """Resolve a project's configuration without running the CLI.

    Extensions are always enabled and overrides are never applied.

    Args:
        project_directory: The project directory, relative or absolute.
        application_config_path: Path of the application config file;
            defaults to ``roc.config.yaml`` in the project directory.

    Returns:
        The :class:`ResolvedConfig`; ``config_object`` and ``meta_object``
        hold the configuration and meta, ``hooks`` and ``actions`` the
        registries.
    """
    from roc.config import get_absolute_path, get_application_config

    path = get_absolute_path(project_directory)
    application_config = get_application_config(application_config_path, path, False)
    return build_complete_config(
        False, application_config, None, {}, {}, path,
        extensions_enabled=True, apply_overrides=False,
    )
