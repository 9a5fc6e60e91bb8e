"""The ``init`` and ``new`` actions -- scaffold a project from a template.

Flow:

1. Make sure the target directory exists and is empty (or ``--force``).
2. Ask for a template when none was given.
3. Fetch the template (GitHub archive, ``git clone`` or local zip).
4. Check that ``template/`` holds a roc project.
5. Ask the template's questions and fill ``{{ key }}`` placeholders.
6. Copy ``template/`` into the target directory and ``pip install -e .``.

Prompting, downloading and installing are collaborators: this module only
cares whether they succeeded.
"""

from __future__ import annotations

import importlib.util
import re
import shutil
import subprocess
import sys
import tempfile
from pathlib import Path
from typing import Any, Optional

import click
import typer

from roc.actions import CommandContext
from roc.commands import templates
from roc.config import APPLICATION_CONFIG_FILENAME, PACKAGE_CONFIG_FILENAME, get_package_config
from roc.exceptions import TemplateError
from roc.exit_codes import EXIT_GENERIC_FAILURE
from roc.extensions.loader import declared_dependency_extensions
from roc.output import info, print_data, success, suggest, warning

SETUP_FILENAME = "roc_setup.py"
HISTORY_FILENAME = ".roc"

DEFAULT_PROMPT: list[dict[str, Any]] = [
    {"name": "name", "message": "Project name", "default": "my-roc-project"},
    {"name": "description", "message": "Project description", "default": ""},
    {"name": "author", "message": "Author", "default": ""},
]


def init(context: CommandContext) -> None:
    """Run ``init`` or ``new`` with the values in *context*."""
    options = context.parsed_options
    arguments = context.parsed_arguments

    directory = check_folder(
        context.directory, bool(options.get("force")), arguments.get("name") or ""
    )
    template = arguments.get("template") or interactive_menu()
    fetch_template(
        template,
        arguments.get("version"),
        directory,
        list_versions=bool(options.get("list-versions")),
        use_clone=bool(options.get("clone")),
    )


def fetch_template(
    template: str,
    version: Optional[str],
    directory: Path,
    list_versions: bool = False,
    use_clone: bool = False,
    client: Any = None,
) -> None:
    """Fetch *template*, set it up and install it into *directory*.

    Raises:
        TemplateError: If any step fails.
    """
    with tempfile.TemporaryDirectory(prefix="roc-template-") as tmp:
        workdir = Path(tmp)
        if templates.is_local_archive(template):
            archive = Path(template).expanduser()
            if not archive.is_file():
                raise TemplateError(f"Template archive {archive} does not exist")
            root = templates.extract_archive(archive, workdir)
        else:
            repo = templates.resolve_template(template)
            own_client = client is None
            client = client or templates.create_client()
            try:
                versions = templates.get_versions(repo, client)
                if list_versions:
                    print_data("The available versions are:")
                    for name in versions:
                        print_data(f" {name}")
                    return
                selected, found = templates.select_version(versions, version)
                if version and not found:
                    warning(f"Selected template version not found, using {selected}")
                elif not version:
                    info(f"Using {selected} as template version")
                if use_clone:
                    root = templates.clone(repo, selected, workdir)
                else:
                    root = templates.download(repo, selected, workdir, client)
            finally:
                if own_client:
                    client.close()

        template_dir = root / "template"
        if not valid_roc_project(template_dir):
            raise TemplateError("Seems like this is not a roc template.")

        setup = load_setup(root)
        answers = ask_questions(getattr(setup, "prompt", None) or DEFAULT_PROMPT)
        replace_templated_values(answers, template_dir)
        configure_files(root, directory)

    info("Installing template dependencies… (if this fails run pip install -e . yourself)")
    pip_install(directory)
    success("Setup completed!")
    message = getattr(setup, "completion_message", None)
    if message:
        print_data(str(message))
    suggest(f"cd {directory} && roc --help")


def valid_roc_project(path: Path) -> bool:
    """Return ``True`` if *path* has a roc config or depends on roc extensions."""
    if not path.is_dir():
        return False
    if (path / APPLICATION_CONFIG_FILENAME).is_file():
        return True
    return bool(declared_dependency_extensions(get_package_config(path)))


def load_setup(root: Path) -> Any:
    """Import ``roc_setup.py`` from the template root, or return ``None`` if absent."""
    path = root / SETUP_FILENAME
    if not path.is_file():
        return None
    spec = importlib.util.spec_from_file_location("roc_template_setup", path)
    if spec is None or spec.loader is None:
        return None
    module = importlib.util.module_from_spec(spec)
    try:
        spec.loader.exec_module(module)
    except Exception as exc:
        raise TemplateError(f"Template setup file {path} raised: {exc}") from exc
    return module


def ask_questions(questions: list[dict[str, Any]]) -> dict[str, str]:
    """Prompt for each question and return the answers keyed by name."""
    answers: dict[str, str] = {}
    for question in questions:
        answers[question["name"]] = typer.prompt(
            question.get("message", question["name"]),
            default=question.get("default", ""),
            show_default=bool(question.get("default")),
        )
    return answers


def replace_templated_values(answers: dict[str, str], template_dir: Path) -> None:
    """Replace ``{{ key }}`` in every text file under *template_dir* with its answer."""
    patterns = {
        key: re.compile(r"\{\{\s*" + re.escape(key) + r"\s*\}\}") for key in answers
    }
    for path in template_dir.rglob("*"):
        if not path.is_file():
            continue
        try:
            text = path.read_text(encoding="utf-8")
        except (UnicodeDecodeError, OSError):
            continue
        updated = text
        for key, pattern in patterns.items():
            updated = pattern.sub(lambda _m, v=str(answers[key]): v, updated)
        if updated != text:
            path.write_text(updated, encoding="utf-8")


def configure_files(root: Path, directory: Path) -> None:
    """Copy ``template/`` into *directory*, keeping the template's manifest as ``.roc``."""
    manifest = root / PACKAGE_CONFIG_FILENAME
    if manifest.is_file():
        shutil.copyfile(manifest, root / "template" / HISTORY_FILENAME)
    shutil.copytree(root / "template", directory, dirs_exist_ok=True)


def pip_install(directory: Path) -> None:
    """Run ``pip install -e .`` in *directory* when it has a ``pyproject.toml``.

    Raises:
        TemplateError: If pip exits with a non-zero status.
    """
    if not (directory / PACKAGE_CONFIG_FILENAME).is_file():
        return
    result = subprocess.run(
        [sys.executable, "-m", "pip", "install", "-e", "."],
        cwd=directory,
    )
    if result.returncode != 0:
        raise TemplateError(f"pip install failed with status code: {result.returncode}")


def interactive_menu() -> str:
    """Ask which of the known templates to use and return its identifier."""
    for index, template in enumerate(templates.TEMPLATES, start=1):
        info(f"{index}) {template.name} -- {template.description}")
    choice = typer.prompt(
        "Select a template",
        type=click.IntRange(1, len(templates.TEMPLATES)),
        default=1,
    )
    return templates.TEMPLATES[choice - 1].identifier


def check_folder(base: Path, force: bool = False, name: str = "") -> Path:
    """Return an empty directory to create the project in.

    With *name* the directory ``base/name`` is created. A non-empty
    directory prompts for a new folder, running anyway or aborting.

    Raises:
        typer.Exit: If the user aborts.
    """
    path = base / name if name else base
    if name and path.exists():
        warning(f"Found a folder named {name} at {base}, will try to use it.")
    path.mkdir(parents=True, exist_ok=True)

    if force or not any(path.iterdir()):
        return path

    selection = typer.prompt(
        "The directory is not empty, what do you want to do? [new/force/abort]",
        type=click.Choice(["new", "force", "abort"]),
        default="new",
        show_choices=False,
    )
    if selection == "abort":
        raise typer.Exit(code=EXIT_GENERIC_FAILURE)
    if selection == "force":
        return path
    return ask_for_directory(base)


def ask_for_directory(base: Path) -> Path:
    """Prompt until the user names a directory that does not exist yet."""
    while True:
        name = typer.prompt("What do you want to name the directory?")
        path = base / name
        try:
            path.mkdir(parents=True)
        except FileExistsError:
            warning("The directory already exists.")
            continue
        return path
