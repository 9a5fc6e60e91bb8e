"""Tests for roc.extensions.loader -- discovery, ordering and failure modes."""

from __future__ import annotations

from pathlib import Path
from types import SimpleNamespace
from typing import Any
from unittest.mock import patch

import pytest

from roc.exceptions import DuplicateExtensionError, ExtensionLoadError
from roc.extensions.loader import (
    ENTRY_POINT_GROUP,
    ExtensionLoader,
    ExtensionSource,
    build_extension,
    declared_dependency_extensions,
    default_importer,
)
from roc.models import ActionDefinition, ExtensionType


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _importer(modules: dict[str, Any]):
    """An importer serving in-memory modules and recording every call."""
    calls: list[str] = []

    def _import(declaration: str, base_path: Path) -> ExtensionSource:
        calls.append(declaration)
        if declaration not in modules:
            raise ExtensionLoadError(f"Extension '{declaration}' is not installed")
        return ExtensionSource(declaration, module=modules[declaration])

    _import.calls = calls  # type: ignore[attr-defined]
    return _import


def _module(**attrs: Any) -> SimpleNamespace:
    return SimpleNamespace(**attrs)


# ---------------------------------------------------------------------------
# Declarations
# ---------------------------------------------------------------------------


class TestDeclaredDependencyExtensions:
    def test_finds_packages_and_plugins(self) -> None:
        package_config = {
            "project": {
                "dependencies": [
                    "roc-package-web>=1.0",
                    "requests",
                    "roc-plugin-style[extra]==2",
                ]
            }
        }
        assert declared_dependency_extensions(package_config) == [
            ("roc-package-web", ExtensionType.PACKAGE),
            ("roc-plugin-style", ExtensionType.PLUGIN),
        ]

    def test_empty_config(self) -> None:
        assert declared_dependency_extensions({}) == []


# ---------------------------------------------------------------------------
# Loading order
# ---------------------------------------------------------------------------


class TestLoadOrder:
    def test_application_config_order(self, tmp_path: Path) -> None:
        importer = _importer({"a": _module(name="a"), "b": _module(name="b")})
        loader = ExtensionLoader(tmp_path, importer)

        extensions = loader.load({"packages": ["a"], "plugins": ["b"]})

        assert [e.name for e in extensions] == ["a", "b"]
        assert extensions[0].type == ExtensionType.PACKAGE
        assert extensions[1].type == ExtensionType.PLUGIN

    def test_dependencies_load_first(self, tmp_path: Path) -> None:
        importer = _importer(
            {
                "app": _module(name="app", packages=["base"], plugins=["style"]),
                "base": _module(name="base"),
                "style": _module(name="style"),
            }
        )
        extensions = ExtensionLoader(tmp_path, importer).load({"packages": ["app"]})
        assert [e.name for e in extensions] == ["base", "style", "app"]

    def test_shared_dependency_loaded_once(self, tmp_path: Path) -> None:
        importer = _importer(
            {
                "a": _module(name="a", packages=["shared"]),
                "b": _module(name="b", packages=["shared"]),
                "shared": _module(name="shared"),
            }
        )
        extensions = ExtensionLoader(tmp_path, importer).load({"packages": ["a", "b"]})

        assert [e.name for e in extensions] == ["shared", "a", "b"]
        assert importer.calls.count("shared") == 1

    def test_pyproject_dependencies_come_first(self, tmp_path: Path) -> None:
        importer = _importer({"roc-package-web": _module(name="web"), "local": _module(name="local")})
        package_config = {"project": {"dependencies": ["roc-package-web"]}}

        extensions = ExtensionLoader(tmp_path, importer).load({"packages": ["local"]}, package_config)

        assert [e.name for e in extensions] == ["web", "local"]

    def test_loader_can_be_reused(self, tmp_path: Path) -> None:
        loader = ExtensionLoader(tmp_path, _importer({"a": _module(name="a")}))
        assert len(loader.load({"packages": ["a"]})) == 1
        assert len(loader.load({"packages": ["a"]})) == 1


# ---------------------------------------------------------------------------
# Failures
# ---------------------------------------------------------------------------


class TestLoadFailures:
    def test_missing_extension(self, tmp_path: Path) -> None:
        loader = ExtensionLoader(tmp_path, _importer({}))
        with pytest.raises(ExtensionLoadError, match="not installed"):
            loader.load({"packages": ["missing"]})

    def test_cycle_is_reported(self, tmp_path: Path) -> None:
        importer = _importer(
            {"a": _module(name="a", packages=["b"]), "b": _module(name="b", packages=["a"])}
        )
        with pytest.raises(ExtensionLoadError, match="cycle: a -> b -> a"):
            ExtensionLoader(tmp_path, importer).load({"packages": ["a"]})

    def test_duplicate_names(self, tmp_path: Path) -> None:
        importer = _importer({"one": _module(name="same"), "two": _module(name="same")})
        with pytest.raises(DuplicateExtensionError, match="same"):
            ExtensionLoader(tmp_path, importer).load({"packages": ["one", "two"]})

    def test_invalid_contribution(self, tmp_path: Path) -> None:
        importer = _importer({"bad": _module(name="bad", config="not a mapping")})
        with pytest.raises(ExtensionLoadError, match="invalid contribution"):
            ExtensionLoader(tmp_path, importer).load({"packages": ["bad"]})


# ---------------------------------------------------------------------------
# Normalisation
# ---------------------------------------------------------------------------


class TestBuildExtension:
    def test_actions_from_callables_and_groups(self) -> None:
        def build(context):
            """Build the project."""

        module = _module(
            name="web",
            actions={
                "build": build,
                "dev": {"__meta": {"name": "Dev"}, "serve": {"command": build}},
            },
        )

        ext = build_extension(ExtensionSource("web", module=module), ExtensionType.PACKAGE)

        assert isinstance(ext.actions["build"], ActionDefinition)
        assert ext.actions["build"].description == "Build the project."
        assert ext.actions["build"].extension == "web"
        assert ext.actions["serve"].group == "dev"
        assert ext.actions["serve"].group_description == "Dev"
        assert "dev" not in ext.actions

    def test_hooks_get_owner(self) -> None:
        module = _module(name="web", hooks={"targets": {"initial_value": []}, "plain": "Desc."})
        ext = build_extension(ExtensionSource("web", module=module), ExtensionType.PACKAGE)
        assert ext.hooks["targets"].extension == "web"
        assert ext.hooks["plain"].description == "Desc."

    def test_manifest_identity_wins(self) -> None:
        source = ExtensionSource(
            "web",
            module=_module(name="module-name", version="0.1"),
            manifest={"name": "manifest-name", "version": "2.0.0"},
        )
        ext = build_extension(source, ExtensionType.PLUGIN)
        assert (ext.name, ext.version, ext.type) == ("manifest-name", "2.0.0", ExtensionType.PLUGIN)

    def test_dependencies_deduplicated(self) -> None:
        module = _module(name="x", dependencies=["a", "b", "a"])
        ext = build_extension(ExtensionSource("x", module=module), ExtensionType.PACKAGE)
        assert ext.dependencies == ["a", "b"]

    def test_dependencies_must_be_a_list(self) -> None:
        source = ExtensionSource("x", module=_module(name="x"), manifest={"dependencies": "pyyaml"})
        with pytest.raises(ExtensionLoadError, match="'dependencies' must be a list"):
            build_extension(source, ExtensionType.PACKAGE)

    def test_nested_packages_must_be_a_list(self, tmp_path: Path) -> None:
        loader = ExtensionLoader(tmp_path, _importer({"web": _module(name="web", packages="base")}))
        with pytest.raises(ExtensionLoadError, match="'packages' must be a list"):
            loader.load({"packages": ["web"]})


# ---------------------------------------------------------------------------
# Default importer
# ---------------------------------------------------------------------------


class TestDefaultImporter:
    def test_local_directory(self, tmp_path: Path, write_extension) -> None:
        write_extension(
            "local",
            manifest={"description": "A local extension."},
            module="""
                config = {"settings": {"local": True}}
            """,
        )

        extensions = ExtensionLoader(tmp_path).load({"packages": ["./extensions/local"]})

        assert extensions[0].name == "local"
        assert extensions[0].description == "A local extension."
        assert extensions[0].config == {"settings": {"local": True}}
        assert extensions[0].path == (tmp_path / "extensions" / "local").resolve()

    def test_local_nested_declarations_resolve_against_extension(
        self, tmp_path: Path, write_extension
    ) -> None:
        root = tmp_path / "extensions"
        write_extension("base", root=root / "app" / "vendor")
        write_extension("app", manifest={"packages": ["./vendor/base"]})

        extensions = ExtensionLoader(tmp_path).load({"packages": ["./extensions/app"]})

        assert [e.name for e in extensions] == ["base", "app"]

    def test_local_module_error(self, tmp_path: Path, write_extension) -> None:
        write_extension("broken", module="raise RuntimeError('boom')")
        with pytest.raises(ExtensionLoadError, match="boom"):
            ExtensionLoader(tmp_path).load({"packages": ["./extensions/broken"]})

    def test_missing_local_manifest(self, tmp_path: Path) -> None:
        with pytest.raises(ExtensionLoadError, match="extension.yaml"):
            default_importer("./nowhere", tmp_path)

    def test_entry_point(self, tmp_path: Path) -> None:
        module = _module(name="web")

        class FakeEntryPoint:
            name = "roc-package-web"

            def load(self):
                return module

        with patch(
            "roc.extensions.loader.importlib.metadata.entry_points",
            return_value=[FakeEntryPoint()],
        ) as entry_points:
            source = default_importer("roc-package-web", tmp_path)

        entry_points.assert_called_with(group=ENTRY_POINT_GROUP)
        assert source.module is module

    def test_dotted_module(self, tmp_path: Path) -> None:
        source = default_importer("json", tmp_path)
        assert source.module.__name__ == "json"

    def test_unknown_module(self, tmp_path: Path) -> None:
        with pytest.raises(ExtensionLoadError, match="not installed"):
            default_importer("roc_extension_that_does_not_exist", tmp_path)
