"""Extension discovery and loading.

A project declares extensions in two places, read in this order:

1. ``pyproject.toml`` dependencies named ``roc-package-*`` or
   ``roc-plugin-*``;
2. the ``packages`` and ``plugins`` lists of the application config.

Each declaration is turned into an :class:`ExtensionSource` by an
*importer*. The default importer understands three forms:

* a path to a directory holding an ``extension.yaml`` manifest and an
  optional ``extension.py`` module::

      my-extension/
      ├── extension.yaml
      └── extension.py

* the name of an entry point in the ``roc.extensions`` group, which third
  party distributions declare in their ``pyproject.toml``::

      [project.entry-points."roc.extensions"]
      roc-package-web = "roc_package_web.extension"

* an importable dotted module name.

The module exposes its contribution as attributes: ``name``, ``version``,
``type``, ``description``, ``config``, ``meta``, ``hooks``, ``actions``,
``handlers``, ``dependencies``, ``packages`` and ``plugins``. Values in the
manifest take precedence for the identity fields.

Extensions are loaded depth first: an extension's own ``packages`` and
``plugins`` are fully loaded before it, so the returned order is also the
config merge order.
"""

from __future__ import annotations

import importlib
import importlib.metadata
import importlib.util
import logging
import re
import sys
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Optional

import yaml
from pydantic import ValidationError as PydanticValidationError

from roc.configuration.meta import GROUP_KEY
from roc.exceptions import DuplicateExtensionError, ExtensionLoadError
from roc.models import ActionDefinition, Extension, ExtensionType, HookDefinition

logger = logging.getLogger(__name__)

ENTRY_POINT_GROUP = "roc.extensions"
"""Entry-point group that installed distributions register extensions under."""

MANIFEST_FILENAME = "extension.yaml"
DEFAULT_MODULE_FILENAME = "extension.py"

_DEPENDENCY_PATTERN = re.compile(r"^roc-(package|plugin)-[A-Za-z0-9][A-Za-z0-9._-]*$")
_REQUIREMENT_NAME = re.compile(r"^\s*([A-Za-z0-9][A-Za-z0-9._-]*)")
_MODULE_NAME = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*(\.[A-Za-z_][A-Za-z0-9_]*)*$")


@dataclass(frozen=True)
class ExtensionSource:
    """The raw material for one extension, before normalisation.

    Attributes:
        declaration: The string the extension was declared with.
        module: Object (or mapping) exposing the contribution attributes.
        manifest: Parsed manifest values; empty for module-only extensions.
        path: Directory the extension lives in, if it is a local one.
    """

    declaration: str
    module: Any = None
    manifest: dict[str, Any] = field(default_factory=dict)
    path: Optional[Path] = None


Importer = Callable[[str, Path], ExtensionSource]
"""``importer(declaration, base_path) -> ExtensionSource``."""


# --- Declarations ---


def declared_dependency_extensions(package_config: Mapping[str, Any]) -> list[tuple[str, ExtensionType]]:
    """Return the ``roc-package-*`` / ``roc-plugin-*`` requirements of a ``pyproject.toml``."""
    project = package_config.get("project") or {}
    found: list[tuple[str, ExtensionType]] = []
    for requirement in project.get("dependencies") or []:
        match = _REQUIREMENT_NAME.match(str(requirement))
        if not match:
            continue
        name = match.group(1)
        kind = _DEPENDENCY_PATTERN.match(name)
        if kind:
            found.append((name, ExtensionType(kind.group(1))))
    return found


def _is_path_declaration(declaration: str, base_path: Path) -> bool:
    if declaration.startswith((".", "/", "~")) or "\\" in declaration:
        return True
    return (base_path / declaration / MANIFEST_FILENAME).is_file()


def _declaration_key(declaration: str, base_path: Path) -> str:
    if _is_path_declaration(declaration, base_path):
        return str((base_path / Path(declaration).expanduser()).resolve())
    return declaration


# --- Default importer ---


def _load_module_file(path: Path, declaration: str) -> Any:
    module_name = "roc_extension_" + re.sub(r"\W", "_", str(path.parent.resolve()))
    spec = importlib.util.spec_from_file_location(module_name, path)
    if spec is None or spec.loader is None:
        raise ExtensionLoadError(f"Cannot load module {path} for extension '{declaration}'")
    module = importlib.util.module_from_spec(spec)
    sys.modules[module_name] = module
    try:
        spec.loader.exec_module(module)
    except Exception as exc:
        sys.modules.pop(module_name, None)
        raise ExtensionLoadError(
            f"Extension '{declaration}' raised while loading {path}: {exc}"
        ) from exc
    return module


def _load_local(declaration: str, base_path: Path) -> ExtensionSource:
    directory = (base_path / Path(declaration).expanduser()).resolve()
    manifest_path = directory / MANIFEST_FILENAME
    if not manifest_path.is_file():
        raise ExtensionLoadError(
            f"Extension '{declaration}' not found: no {MANIFEST_FILENAME} in {directory}"
        )
    try:
        manifest = yaml.safe_load(manifest_path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as exc:
        raise ExtensionLoadError(f"Invalid manifest {manifest_path}: {exc}") from exc
    if not isinstance(manifest, dict):
        raise ExtensionLoadError(f"Manifest {manifest_path} must be a mapping")

    module = None
    module_file = manifest.get("module")
    module_path = directory / (module_file or DEFAULT_MODULE_FILENAME)
    if module_path.is_file():
        module = _load_module_file(module_path, declaration)
    elif module_file:
        raise ExtensionLoadError(
            f"Extension '{declaration}' declares module {module_file} which does not exist"
        )
    return ExtensionSource(declaration, module=module, manifest=manifest, path=directory)


def _find_entry_point(name: str) -> Optional[importlib.metadata.EntryPoint]:
    for ep in importlib.metadata.entry_points(group=ENTRY_POINT_GROUP):
        if ep.name == name:
            return ep
    return None


def default_importer(declaration: str, base_path: Path) -> ExtensionSource:
    """Locate and import the extension named by *declaration*.

    Raises:
        ExtensionLoadError: If nothing matches *declaration* or its code raises.
    """
    if _is_path_declaration(declaration, base_path):
        return _load_local(declaration, base_path)

    ep = _find_entry_point(declaration)
    try:
        if ep is not None:
            return ExtensionSource(declaration, module=ep.load())
        if _MODULE_NAME.match(declaration):
            return ExtensionSource(declaration, module=importlib.import_module(declaration))
    except ModuleNotFoundError as exc:
        if ep is None and exc.name and (declaration + ".").startswith(exc.name + "."):
            raise ExtensionLoadError(f"Extension '{declaration}' is not installed") from exc
        raise ExtensionLoadError(f"Extension '{declaration}' failed to import: {exc}") from exc
    except Exception as exc:
        raise ExtensionLoadError(f"Extension '{declaration}' raised while loading: {exc}") from exc
    raise ExtensionLoadError(
        f"Extension '{declaration}' is not installed "
        f"(no '{ENTRY_POINT_GROUP}' entry point or module of that name)"
    )


# --- Normalisation ---


def _get(source: Any, attr: str, default: Any = None) -> Any:
    if source is None:
        return default
    if isinstance(source, Mapping):
        return source.get(attr, default)
    return getattr(source, attr, default)


def _contribution(source: ExtensionSource, attr: str, default: Any = None) -> Any:
    """Manifest value first, then module attribute."""
    value = source.manifest.get(attr)
    if value is None:
        value = _get(source.module, attr)
    return default if value is None else value


def _fragment(source: ExtensionSource, attr: str) -> Any:
    """Module attribute first, then manifest value."""
    value = _get(source.module, attr)
    if value is None:
        value = source.manifest.get(attr)
    return value or {}


def _list_contribution(source: ExtensionSource, attr: str, name: str) -> list[Any]:
    """A contribution that must be a list; a bare string is rejected."""
    value = _contribution(source, attr, [])
    if not isinstance(value, (list, tuple)):
        raise ExtensionLoadError(
            f"Extension '{name}' has an invalid contribution: "
            f"'{attr}' must be a list, got {type(value).__name__}"
        )
    return list(value)


def _normalise_hooks(raw: Mapping[str, Any], extension: str) -> dict[str, HookDefinition]:
    hooks: dict[str, HookDefinition] = {}
    for name, value in raw.items():
        if isinstance(value, HookDefinition):
            hooks[name] = value.model_copy(update={"name": name, "extension": extension})
        elif isinstance(value, Mapping):
            hooks[name] = HookDefinition(**{**value, "name": name, "extension": extension})
        else:
            hooks[name] = HookDefinition(name=name, description=value, extension=extension)
    return hooks


def _normalise_action(
    name: str, value: Any, extension: str, group: Optional[str], group_description: Optional[str]
) -> ActionDefinition:
    updates = {"name": name, "extension": extension}
    if group is not None:
        updates.update(group=group, group_description=group_description)
    if isinstance(value, ActionDefinition):
        return value.model_copy(update=updates)
    if callable(value):
        doc = (value.__doc__ or "").strip().splitlines()
        return ActionDefinition(command=value, description=doc[0] if doc else "", **updates)
    return ActionDefinition(**{**value, **updates})


def _normalise_actions(raw: Mapping[str, Any], extension: str) -> dict[str, ActionDefinition]:
    actions: dict[str, ActionDefinition] = {}
    for name, value in raw.items():
        if isinstance(value, Mapping) and GROUP_KEY in value:
            group_meta = value[GROUP_KEY] or {}
            group_description = group_meta.get("description") or group_meta.get("name")
            for child, child_value in value.items():
                if child == GROUP_KEY:
                    continue
                actions[child] = _normalise_action(
                    child, child_value, extension, name, group_description
                )
        else:
            actions[name] = _normalise_action(name, value, extension, None, None)
    return actions


def build_extension(source: ExtensionSource, default_type: ExtensionType) -> Extension:
    """Turn an :class:`ExtensionSource` into an immutable :class:`~roc.models.Extension`.

    Raises:
        ExtensionLoadError: If the contribution has the wrong shape.
    """
    fallback_name = Path(source.declaration).name if source.path else source.declaration
    name = str(_contribution(source, "name", fallback_name))
    try:
        return Extension(
            name=name,
            version=str(_contribution(source, "version", "0.0.0")),
            type=_contribution(source, "type", default_type),
            description=_contribution(source, "description"),
            config=_fragment(source, "config"),
            meta=_fragment(source, "meta"),
            hooks=_normalise_hooks(_fragment(source, "hooks"), name),
            actions=_normalise_actions(_fragment(source, "actions"), name),
            handlers=_fragment(source, "handlers"),
            dependencies=list(dict.fromkeys(_list_contribution(source, "dependencies", name))),
            packages=_list_contribution(source, "packages", name),
            plugins=_list_contribution(source, "plugins", name),
            path=source.path,
        )
    except (PydanticValidationError, TypeError, AttributeError) as exc:
        raise ExtensionLoadError(f"Extension '{name}' has an invalid contribution: {exc}") from exc


# --- Loader ---


class ExtensionLoader:
    """Loads every extension a project declares, dependencies first.

    Each call to :meth:`load` starts from a clean slate, so one loader can
    be reused for several resolutions.

    Args:
        project_path: Absolute project directory; relative path
            declarations in the application config resolve against it.
        importer: Callable locating one declaration. Defaults to
            :func:`default_importer`; tests inject their own.

    Example::

        loader = ExtensionLoader(Path.cwd())
        extensions = loader.load(application_config, package_config)
    """

    def __init__(self, project_path: Path, importer: Optional[Importer] = None) -> None:
        self.project_path = project_path
        self.importer: Importer = importer or default_importer
        self._loaded: list[Extension] = []
        self._by_name: dict[str, str] = {}
        self._done: set[str] = set()

    def load(
        self,
        application_config: Mapping[str, Any],
        package_config: Optional[Mapping[str, Any]] = None,
    ) -> list[Extension]:
        """Load all declared extensions.

        Returns:
            Extensions in dependency order: everything an extension depends
            on comes before it.

        Raises:
            ExtensionLoadError: If an extension is missing, raises while
                loading, or the declarations form a cycle.
            DuplicateExtensionError: If two different declarations produce
                the same extension name.
        """
        self._loaded = []
        self._by_name = {}
        self._done = set()

        declarations = declared_dependency_extensions(package_config or {})
        declarations += [(d, ExtensionType.PACKAGE) for d in application_config.get("packages") or []]
        declarations += [(d, ExtensionType.PLUGIN) for d in application_config.get("plugins") or []]

        for declaration, kind in declarations:
            self._load_one(str(declaration), kind, self.project_path, ())
        return list(self._loaded)

    def _load_one(
        self,
        declaration: str,
        kind: ExtensionType,
        base_path: Path,
        stack: tuple[str, ...],
    ) -> None:
        key = _declaration_key(declaration, base_path)
        if key in self._done:
            return
        if key in stack:
            cycle = " -> ".join(stack[stack.index(key):] + (key,))
            raise ExtensionLoadError(f"Extension dependency cycle: {cycle}")

        logger.debug("Loading extension '%s'", declaration)
        source = self.importer(declaration, base_path)
        child_base = source.path or self.project_path
        for child in _list_contribution(source, "packages", declaration):
            self._load_one(str(child), ExtensionType.PACKAGE, child_base, stack + (key,))
        for child in _list_contribution(source, "plugins", declaration):
            self._load_one(str(child), ExtensionType.PLUGIN, child_base, stack + (key,))

        extension = build_extension(source, kind)
        if extension.name in self._by_name:
            raise DuplicateExtensionError(
                f"Extension '{extension.name}' is declared twice "
                f"('{self._by_name[extension.name]}' and '{declaration}')"
            )
        self._by_name[extension.name] = declaration
        self._done.add(key)
        self._loaded.append(extension)
        logger.info("Loaded extension '%s' v%s", extension.name, extension.version)
