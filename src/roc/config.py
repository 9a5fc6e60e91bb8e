"""Application config, project manifest and override handling.

This module is the file-facing side of configuration resolution:

* **Project directory** -- :func:`get_absolute_path` resolves the directory
  roc operates on (``--directory`` flag, ``ROC_DIRECTORY``, or the cwd).
* **Application config** -- :func:`get_application_config` reads the
  project's ``roc.config.yaml`` (or the file named by ``--config`` /
  ``ROC_CONFIG_PATH``). It has the highest precedence below overrides.
* **Package config** -- :func:`get_package_config` reads the project's
  ``pyproject.toml``, used to discover extensions from dependencies.
* **Overrides** -- :func:`parse_overrides` turns repeated
  ``--set key.path=value`` flags into a nested mapping.
* **Data directory** -- :func:`get_data_dir` for crash logs, XDG aware.
"""

from __future__ import annotations

import logging
import os
import platform
import tomllib
from pathlib import Path
from typing import Any, Optional

import yaml

from roc.exceptions import ConfigError

logger = logging.getLogger(__name__)

_APP_NAME = "roc"
APPLICATION_CONFIG_FILENAME = "roc.config.yaml"
PACKAGE_CONFIG_FILENAME = "pyproject.toml"
CONFIG_PATH_ENV = "ROC_CONFIG_PATH"
DIRECTORY_ENV = "ROC_DIRECTORY"


# --- Paths ---


def get_absolute_path(directory: Optional[str | Path] = None) -> Path:
    """Return the absolute project directory.

    Precedence: the *directory* argument, then ``ROC_DIRECTORY``, then the
    current working directory. Relative paths resolve against the cwd.
    """
    value = directory or os.environ.get(DIRECTORY_ENV) or Path.cwd()
    return Path(value).expanduser().resolve()


def get_data_dir() -> Path:
    """Return the data directory used for crash logs, creating it if necessary.

    On Linux/BSD: ``$XDG_DATA_HOME/roc/`` (default ``~/.local/share/roc/``).
    Elsewhere: ``~/.roc/``.
    """
    system = platform.system()
    if system == "Linux" or system.endswith("BSD"):
        base = os.environ.get("XDG_DATA_HOME") or str(Path.home() / ".local" / "share")
        path = Path(base) / _APP_NAME
    else:
        path = Path.home() / f".{_APP_NAME}"
    path.mkdir(parents=True, exist_ok=True)
    return path


# --- Application config ---


def get_application_config_path(
    project_path: Path, config_path: Optional[str | Path] = None
) -> Path:
    """Locate the application config file for *project_path*.

    An explicit *config_path* wins, then ``ROC_CONFIG_PATH``, then
    ``roc.config.yaml`` in the project root. Relative paths are taken
    relative to the project root.
    """
    explicit = config_path or os.environ.get(CONFIG_PATH_ENV)
    if explicit:
        path = Path(explicit).expanduser()
        return path if path.is_absolute() else project_path / path
    return project_path / APPLICATION_CONFIG_FILENAME


def get_application_config(
    config_path: Optional[str | Path],
    project_path: Path,
    verbose: bool = False,
) -> dict[str, Any]:
    """Load the project's application config.

    Args:
        config_path: Explicit path to the config file, or ``None`` for the
            default location.
        project_path: Absolute project directory.
        verbose: Log the file that was read.

    Returns:
        The parsed mapping. A missing default file yields ``{}``.

    Raises:
        ConfigError: If an explicitly named file is missing, or the file is
            not valid YAML or does not contain a mapping.
    """
    path = get_application_config_path(project_path, config_path)
    explicit = bool(config_path or os.environ.get(CONFIG_PATH_ENV))

    if not path.is_file():
        if explicit:
            raise ConfigError(f"Application config not found at {path}")
        return {}

    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as exc:
        raise ConfigError(f"Invalid application config at {path}: {exc}") from exc

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigError(
            f"Application config at {path} must be a mapping, got {type(data).__name__}"
        )

    if verbose:
        logger.info("Using application config %s", path)
    return data


# --- Package config ---


def get_package_config(project_path: Path) -> dict[str, Any]:
    """Load ``pyproject.toml`` from *project_path*, or ``{}`` if there is none.

    Raises:
        ConfigError: If the file exists but is not valid TOML.
    """
    path = project_path / PACKAGE_CONFIG_FILENAME
    if not path.is_file():
        return {}
    try:
        with path.open("rb") as fh:
            return tomllib.load(fh)
    except tomllib.TOMLDecodeError as exc:
        raise ConfigError(f"Invalid {PACKAGE_CONFIG_FILENAME} at {path}: {exc}") from exc


def is_roc_project(project_path: Path, config_path: Optional[str | Path] = None) -> bool:
    """Return ``True`` if *project_path* has an application config or roc dependencies.

    The application config is located like :func:`get_application_config_path`
    does, so ``--config`` and ``ROC_CONFIG_PATH`` count as well.
    """
    from roc.extensions.loader import declared_dependency_extensions

    if get_application_config_path(project_path, config_path).is_file():
        return True
    return bool(declared_dependency_extensions(get_package_config(project_path)))


# --- Overrides ---


def parse_overrides(assignments: list[str]) -> dict[str, Any]:
    """Turn ``key.path=value`` strings into a nested mapping.

    Values are parsed as YAML scalars so ``true``, ``3`` and ``[a, b]`` get
    their natural types.

    Example::

        >>> parse_overrides(["build.minify=false", "build.port=3000"])
        {'build': {'minify': False, 'port': 3000}}

    Raises:
        ConfigError: If an assignment has no ``=`` or an empty key.
    """
    overrides: dict[str, Any] = {}
    for assignment in assignments:
        key, sep, raw = assignment.partition("=")
        key = key.strip()
        if not sep or not key:
            raise ConfigError(f"Invalid override '{assignment}', expected key.path=value")
        try:
            value = yaml.safe_load(raw) if raw.strip() else ""
        except yaml.YAMLError:
            value = raw

        target = overrides
        parts = key.split(".")
        for part in parts[:-1]:
            existing = target.get(part)
            if not isinstance(existing, dict):
                existing = {}
                target[part] = existing
            target = existing
        target[parts[-1]] = value
    return overrides
