"""Tests for roc.orchestrator -- the complete-config resolution pipeline."""

from __future__ import annotations

import copy
from pathlib import Path
from types import SimpleNamespace
from typing import Any

import pytest

from roc.configuration.validators import is_boolean, is_integer
from roc.exceptions import DuplicateHookError, ExtensionLoadError, HookNotFoundError
from roc.extensions.loader import ExtensionLoader, ExtensionSource
from roc.orchestrator import CORE_NAME, build_complete_config, get_configuration


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _loader(tmp_path: Path, modules: dict[str, Any]) -> ExtensionLoader:
    def _import(declaration: str, base_path: Path) -> ExtensionSource:
        if declaration not in modules:
            raise ExtensionLoadError(f"Extension '{declaration}' is not installed")
        return ExtensionSource(declaration, module=modules[declaration])

    return ExtensionLoader(tmp_path, _import)


def _resolve(tmp_path: Path, modules: dict[str, Any], app_config: dict[str, Any], **kwargs: Any):
    return build_complete_config(
        False,
        app_config,
        None,
        {},
        kwargs.pop("overrides", None),
        tmp_path,
        loader=_loader(tmp_path, modules),
        package_config={},
        **kwargs,
    )


def _command(context):
    return None


WEB = SimpleNamespace(
    name="web",
    version="1.2.0",
    config={"settings": {"build": {"port": 3000, "targets": ["web", "node"]}}},
    meta={"settings": {"build": {"port": {"description": "Port.", "validator": is_integer}}}},
    hooks={"targets": {"initial_value": ["web"]}},
    handlers={"targets": lambda value, context: value + ["web-handler"]},
    actions={"build": _command, "init": _command},
    dependencies=["pyyaml", "jinja2"],
)

STYLE = SimpleNamespace(
    name="style",
    config={"settings": {"build": {"minify": True}}},
    meta={"settings": {"build": {"minify": {"validator": is_boolean}}}},
    handlers={"targets": lambda value, context: value + ["style-handler"]},
    dependencies=["jinja2", "rich"],
)


# ---------------------------------------------------------------------------
# Resolution
# ---------------------------------------------------------------------------


class TestBuildCompleteConfig:
    def test_application_config_beats_extension_defaults(self, tmp_path: Path) -> None:
        resolved = _resolve(
            tmp_path, {"web": WEB}, {"packages": ["web"], "settings": {"build": {"port": 8080}}}
        )
        assert resolved.config["settings"]["build"]["port"] == 8080

    def test_lists_replaced(self, tmp_path: Path) -> None:
        resolved = _resolve(
            tmp_path,
            {"web": WEB},
            {"packages": ["web"], "settings": {"build": {"targets": ["cordova"]}}},
        )
        assert resolved.config["settings"]["build"]["targets"] == ["cordova"]

    def test_deterministic(self, tmp_path: Path) -> None:
        app = {"packages": ["web"], "plugins": ["style"]}
        first = _resolve(tmp_path, {"web": WEB, "style": STYLE}, app)
        second = _resolve(tmp_path, {"web": WEB, "style": STYLE}, app)
        assert first.config == second.config
        assert first.dependencies == second.dependencies

    def test_application_config_not_mutated(self, tmp_path: Path) -> None:
        app = {"packages": ["web"], "settings": {"build": {"port": 8080}}}
        snapshot = copy.deepcopy(app)
        resolved = _resolve(tmp_path, {"web": WEB}, app)
        resolved.config["settings"]["build"]["port"] = 1
        assert app == snapshot

    def test_overrides_applied_last(self, tmp_path: Path) -> None:
        resolved = _resolve(
            tmp_path,
            {"web": WEB},
            {"packages": ["web"], "settings": {"build": {"port": 8080}}},
            overrides={"settings": {"build": {"port": 9000}}},
        )
        assert resolved.config["settings"]["build"]["port"] == 9000

    def test_overrides_skipped_when_disabled(self, tmp_path: Path) -> None:
        resolved = _resolve(
            tmp_path,
            {"web": WEB},
            {"packages": ["web"]},
            overrides={"settings": {"build": {"port": 9000}}},
            apply_overrides=False,
        )
        assert resolved.config["settings"]["build"]["port"] == 3000

    def test_dependencies_sorted_union(self, tmp_path: Path) -> None:
        resolved = _resolve(
            tmp_path, {"web": WEB, "style": STYLE}, {"packages": ["web"], "plugins": ["style"]}
        )
        assert resolved.dependencies == ["jinja2", "pyyaml", "rich"]

    def test_meta_merged_from_all_extensions(self, tmp_path: Path) -> None:
        resolved = _resolve(
            tmp_path, {"web": WEB, "style": STYLE}, {"packages": ["web"], "plugins": ["style"]}
        )
        build_meta = resolved.meta_object["settings"]["build"]
        assert build_meta["port"].description == "Port."
        assert build_meta["minify"].validator is is_boolean

    def test_validation_errors_returned_not_raised(self, tmp_path: Path) -> None:
        resolved = _resolve(
            tmp_path,
            {"web": WEB, "style": STYLE},
            {
                "packages": ["web"],
                "plugins": ["style"],
                "settings": {"build": {"port": "http", "minify": "yes"}},
            },
        )
        assert not resolved.is_valid
        assert sorted(e.path for e in resolved.validation_errors) == [
            "settings.build.minify",
            "settings.build.port",
        ]
        assert resolved.config["settings"]["build"]["port"] == "http"

    def test_base_defaults_present(self, tmp_path: Path) -> None:
        resolved = _resolve(tmp_path, {}, {})
        assert resolved.config == {"packages": [], "plugins": [], "settings": {}}
        assert resolved.is_valid
        assert resolved.meta["packages"].description


class TestRegistries:
    def test_builtin_actions_seeded_and_shadowed(self, tmp_path: Path) -> None:
        resolved = _resolve(tmp_path, {"web": WEB}, {"packages": ["web"]})

        assert resolved.actions.owner("docs") == CORE_NAME
        assert resolved.actions.owner("build") == "web"
        assert resolved.actions.owner("init") == "web"
        assert resolved.actions.conflicts() == {"init": [CORE_NAME, "web"]}

    def test_hooks_and_handlers_registered(self, tmp_path: Path) -> None:
        resolved = _resolve(
            tmp_path, {"web": WEB, "style": STYLE}, {"packages": ["web"], "plugins": ["style"]}
        )
        assert resolved.hooks.get("targets").extension == "web"
        assert resolved.hook_runner.run("targets") == ["web", "web-handler", "style-handler"]

    def test_duplicate_hook_is_fatal(self, tmp_path: Path) -> None:
        other = SimpleNamespace(name="other", hooks={"targets": {}})
        with pytest.raises(DuplicateHookError, match="'web' and 'other'"):
            _resolve(tmp_path, {"web": WEB, "other": other}, {"packages": ["web", "other"]})

    def test_handler_for_unknown_hook_is_fatal(self, tmp_path: Path) -> None:
        with pytest.raises(HookNotFoundError):
            _resolve(tmp_path, {"style": STYLE}, {"plugins": ["style"]})

    def test_missing_extension_is_fatal(self, tmp_path: Path) -> None:
        with pytest.raises(ExtensionLoadError):
            _resolve(tmp_path, {}, {"packages": ["missing"]})

    def test_registries_are_fresh_per_call(self, tmp_path: Path) -> None:
        first = _resolve(tmp_path, {"web": WEB}, {"packages": ["web"]})
        second = _resolve(tmp_path, {"web": WEB}, {"packages": ["web"]})
        assert first.actions is not second.actions
        assert first.hooks is not second.hooks


class TestExtensionsDisabled:
    def test_returns_application_config_alone(self, tmp_path: Path) -> None:
        app = {"packages": ["web"], "settings": {"port": 1}}
        resolved = _resolve(tmp_path, {"web": WEB}, app, extensions_enabled=False)

        assert resolved.extensions_enabled is False
        assert resolved.config == app
        assert resolved.meta == {}
        assert resolved.dependencies == []
        assert resolved.extensions == []
        assert len(resolved.hooks) == 0
        assert len(resolved.actions) == 0

    def test_overrides_still_apply(self, tmp_path: Path) -> None:
        resolved = _resolve(
            tmp_path, {}, {"a": 1}, overrides={"b": 2}, extensions_enabled=False
        )
        assert resolved.config == {"a": 1, "b": 2}


class TestLazyDescriptions:
    def test_description_callables_not_invoked_during_resolution(self, tmp_path: Path) -> None:
        calls: list[Any] = []

        def describe(context, extension):
            calls.append((context, extension))
            return "described"

        module = SimpleNamespace(name="lazy", description=describe, meta={"key": {"description": describe}})
        resolved = _resolve(tmp_path, {"lazy": module}, {"packages": ["lazy"]})

        assert calls == []
        assert resolved.meta["key"].description is describe


# ---------------------------------------------------------------------------
# get_configuration
# ---------------------------------------------------------------------------


class TestGetConfiguration:
    def test_reads_project_with_local_extension(self, isolated_env: Path, roc_project: Path) -> None:
        resolved = get_configuration(roc_project)

        assert resolved.extensions_enabled
        assert [e.name for e in resolved.extensions] == ["web"]
        assert resolved.config_object["settings"]["build"] == {
            "port": 8080,
            "minify": True,
            "output": "build",
        }
        assert "build" in resolved.actions
        assert "build-targets" in resolved.hooks
        assert resolved.package_config == {}

    def test_explicit_config_path(self, isolated_env: Path, roc_project: Path) -> None:
        (roc_project / "other.yaml").write_text("settings:\n  name: other\n", encoding="utf-8")
        resolved = get_configuration(roc_project, "other.yaml")
        assert resolved.extensions == []
        assert resolved.config["settings"] == {"name": "other"}

    def test_relative_directory(self, isolated_env: Path, roc_project: Path) -> None:
        resolved = get_configuration("project")
        assert resolved.project_path == roc_project.resolve()
