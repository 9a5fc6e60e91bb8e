"""Shared test fixtures for roc.

Provides fixtures for isolating the environment, managing output state,
writing local extensions and projects to ``tmp_path``, and running CLI
commands. These fixtures are automatically discovered by pytest and
available to all test modules without explicit imports.
"""

from __future__ import annotations

import textwrap
from pathlib import Path
from typing import Any, Callable, Optional

import pytest
import yaml

from roc.output import OutputFormat, OutputManager, reset_output, set_output


# ---------------------------------------------------------------------------
# Auto-reset global output state between tests
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_output_between_tests() -> None:
    """Reset the global OutputManager after every test.

    The OutputManager caches references to sys.stdout/sys.stderr at
    creation time. When Typer's CliRunner redirects those streams and the
    test finishes, the cached references become stale. Resetting forces a
    fresh manager on next use.
    """
    yield
    reset_output()


# ---------------------------------------------------------------------------
# Environment isolation
# ---------------------------------------------------------------------------


@pytest.fixture
def isolated_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Isolate roc from the real environment.

    Points XDG_DATA_HOME into tmp_path, clears the ROC_* and GITHUB_TOKEN
    variables and changes the working directory to tmp_path.

    Returns:
        The tmp_path root directory.
    """
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "data"))
    for var in ["ROC_CONFIG_PATH", "ROC_DIRECTORY", "GITHUB_TOKEN"]:
        monkeypatch.delenv(var, raising=False)
    monkeypatch.chdir(tmp_path)
    return tmp_path


# ---------------------------------------------------------------------------
# Extension and project builders
# ---------------------------------------------------------------------------


ExtensionWriter = Callable[..., Path]


@pytest.fixture
def write_extension(tmp_path: Path) -> ExtensionWriter:
    """Return a function writing a local extension directory.

    ``write_extension("web", manifest={...}, module="...")`` creates
    ``tmp_path/extensions/web/extension.yaml`` and, when *module* is given,
    an ``extension.py`` with that (dedented) source.
    """

    def _write(
        name: str,
        manifest: Optional[dict[str, Any]] = None,
        module: Optional[str] = None,
        root: Optional[Path] = None,
    ) -> Path:
        directory = (root or tmp_path / "extensions") / name
        directory.mkdir(parents=True, exist_ok=True)
        data = {"name": name, "version": "1.0.0"}
        data.update(manifest or {})
        (directory / "extension.yaml").write_text(yaml.safe_dump(data), encoding="utf-8")
        if module is not None:
            (directory / "extension.py").write_text(textwrap.dedent(module), encoding="utf-8")
        return directory

    return _write


WEB_EXTENSION_MODULE = '''
    from roc.configuration.validators import is_boolean, is_integer, is_string, required

    description = "Builds web applications."
    dependencies = ["pyyaml"]

    config = {
        "settings": {
            "build": {"port": 3000, "minify": True, "output": "build"},
        },
    }

    meta = {
        "settings": {
            "build": {
                "__meta": {"name": "Build", "description": "Build settings."},
                "port": {"description": "Port of the dev server.", "validator": is_integer},
                "minify": {"description": "Minify the output.", "validator": is_boolean},
                "output": {
                    "description": lambda context, extension: f"Output folder used by {extension.name}.",
                    "validator": required(is_string),
                },
            },
        },
    }

    hooks = {
        "build-targets": {
            "description": "Collect the build targets.",
            "initial_value": ["web"],
            "arguments": ["target"],
        },
    }

    handlers = {
        "build-targets": lambda value, context: value + ["node"],
    }


    def build(context):
        """Build the project."""
        targets = context.run_hook("build-targets")
        port = context.config["settings"]["build"]["port"]
        print(f"building {','.join(targets)} on {port}")


    def greet(context):
        """Greet someone."""
        name = context.parsed_arguments.get("name") or "world"
        shout = context.parsed_options.get("shout")
        message = f"hello {name}"
        print(message.upper() if shout else message)


    actions = {
        "build": build,
        "greet": {
            "command": greet,
            "description": "Greet someone.",
            "arguments": {"name": {"validator": is_string, "description": "Who to greet."}},
            "options": {"shout": {"alias": "s", "validator": is_boolean, "description": "Shout."}},
        },
        "dev": {
            "__meta": {"name": "Development", "description": "Development commands."},
            "serve": {"command": build, "description": "Serve the project."},
        },
    }
'''


@pytest.fixture
def roc_project(tmp_path: Path, write_extension: ExtensionWriter) -> Path:
    """A project using one local package extension with hooks and actions.

    Layout::

        tmp_path/project/roc.config.yaml   packages: [../extensions/web]
        tmp_path/extensions/web/           extension.yaml + extension.py
    """
    write_extension("web", module=WEB_EXTENSION_MODULE)
    project = tmp_path / "project"
    project.mkdir()
    (project / "roc.config.yaml").write_text(
        yaml.safe_dump({"packages": ["../extensions/web"], "settings": {"build": {"port": 8080}}}),
        encoding="utf-8",
    )
    return project


# ---------------------------------------------------------------------------
# Output fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def quiet_output() -> OutputManager:
    """Install a PLAIN-format, quiet OutputManager for tests that ignore output."""
    output = OutputManager(format=OutputFormat.PLAIN, quiet=True)
    set_output(output)
    yield output
    reset_output()


@pytest.fixture
def plain_output() -> OutputManager:
    """Install a PLAIN-format OutputManager for tests that check plain output."""
    output = OutputManager(format=OutputFormat.PLAIN, no_color=True)
    set_output(output)
    yield output
    reset_output()


# ---------------------------------------------------------------------------
# CLI runner fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def cli_runner():
    """Typer CLI test runner capturing stdout and stderr."""
    from typer.testing import CliRunner

    return CliRunner()
