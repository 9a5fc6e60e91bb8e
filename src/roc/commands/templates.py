"""Fetching project templates from GitHub or local archives.

A template is a GitHub repository (``user/repo``) or a local ``.zip`` of
one. Versions are the repository's tags, listed through the GitHub API,
with ``master`` always available. Downloads go through :mod:`httpx`; a
``--clone`` run shells out to ``git`` instead. Failures surface as
:class:`~roc.exceptions.TemplateError`, there is no retry.
"""

from __future__ import annotations

import logging
import os
import shutil
import subprocess
import zipfile
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import httpx

from roc.exceptions import TemplateError

logger = logging.getLogger(__name__)

GITHUB_API_URL = "https://api.github.com"
GITHUB_URL = "https://github.com"
DEFAULT_VERSION = "master"
TIMEOUT_SECONDS = 30.0


@dataclass(frozen=True)
class TemplateInfo:
    """A template offered in the interactive menu."""

    name: str
    description: str
    identifier: str
    repo: str


TEMPLATES: list[TemplateInfo] = [
    TemplateInfo(
        name="Simple roc App",
        description="A simple start on a generic web application",
        identifier="web",
        repo="rocjs/roc-template-web",
    ),
    TemplateInfo(
        name="Simple roc React App",
        description="A simple start on a React web application",
        identifier="web-react",
        repo="rocjs/roc-template-web-react",
    ),
]


def create_client(transport: Optional[httpx.BaseTransport] = None) -> httpx.Client:
    """Return an :class:`httpx.Client` for GitHub, authenticated by ``GITHUB_TOKEN`` if set."""
    headers = {"Accept": "application/vnd.github+json", "User-Agent": "roc"}
    token = os.environ.get("GITHUB_TOKEN")
    if token:
        headers["Authorization"] = f"Bearer {token}"
    return httpx.Client(
        headers=headers,
        timeout=TIMEOUT_SECONDS,
        follow_redirects=True,
        transport=transport,
    )


def is_local_archive(template: str) -> bool:
    return template.lower().endswith(".zip")


def resolve_template(template: str) -> str:
    """Expand a short template name to its repository.

    Raises:
        TemplateError: If *template* is neither a known short name nor
            ``user/repo``.
    """
    if "/" in template:
        return template
    for info in TEMPLATES:
        if info.identifier == template:
            return info.repo
    known = ", ".join(t.identifier for t in TEMPLATES)
    raise TemplateError(f"Invalid template name given: '{template}' (known: {known})")


def get_versions(repo: str, client: httpx.Client) -> list[str]:
    """Return the tag names of *repo*, newest first, followed by ``master``.

    Raises:
        TemplateError: If GitHub cannot be reached or answers with an error.
    """
    url = f"{GITHUB_API_URL}/repos/{repo}/tags"
    try:
        response = client.get(url, params={"per_page": 100})
    except httpx.HTTPError as exc:
        raise TemplateError(f"Could not reach GitHub for {repo}: {exc}") from exc
    if response.status_code == 404:
        raise TemplateError(f"Template repository '{repo}' was not found on GitHub")
    if response.is_error:
        raise TemplateError(
            f"GitHub answered {response.status_code} when listing versions of {repo}"
        )
    versions = [tag["name"] for tag in response.json() if "name" in tag]
    if DEFAULT_VERSION not in versions:
        versions.append(DEFAULT_VERSION)
    return versions


def select_version(versions: list[str], requested: Optional[str]) -> tuple[str, bool]:
    """Pick the version to install.

    A requested version starting with a digit gets a ``v`` prefix to match
    GitHub tag conventions.

    Returns:
        ``(version, found)`` where *found* tells whether *requested* was
        among *versions*. Without a match the first version is used.
    """
    if requested and requested[0].isdigit():
        requested = f"v{requested}"
    if requested and requested in versions:
        return requested, True
    return (versions[0] if versions else DEFAULT_VERSION), False


def extract_archive(archive: Path, destination: Path) -> Path:
    """Extract *archive* into *destination* and return the template root.

    GitHub archives wrap everything in one ``repo-version/`` directory;
    that directory is returned when present.

    Raises:
        TemplateError: If the file is not a valid zip archive.
    """
    try:
        with zipfile.ZipFile(archive) as zf:
            zf.extractall(destination)
    except (zipfile.BadZipFile, OSError) as exc:
        raise TemplateError(f"Could not extract template archive {archive}: {exc}") from exc
    entries = [p for p in destination.iterdir() if not p.name.startswith(".")]
    if len(entries) == 1 and entries[0].is_dir():
        return entries[0]
    return destination


def download(repo: str, version: str, destination: Path, client: httpx.Client) -> Path:
    """Download the zip archive of *repo* at *version* and extract it.

    Raises:
        TemplateError: If the download fails.
    """
    url = f"{GITHUB_URL}/{repo}/archive/{version}.zip"
    archive = destination / "template.zip"
    logger.debug("Downloading %s", url)
    try:
        with client.stream("GET", url) as response:
            if response.is_error:
                raise TemplateError(
                    f"Downloading {repo}@{version} failed with status {response.status_code}"
                )
            with archive.open("wb") as fh:
                for chunk in response.iter_bytes():
                    fh.write(chunk)
    except httpx.HTTPError as exc:
        raise TemplateError(f"Downloading {repo}@{version} failed: {exc}") from exc
    extracted = destination / "extracted"
    extracted.mkdir()
    return extract_archive(archive, extracted)


def clone(repo: str, version: str, destination: Path) -> Path:
    """Shallow-clone *repo* at *version* into *destination* with ``git``.

    Raises:
        TemplateError: If ``git`` is missing or the clone fails.
    """
    target = destination / "clone"
    command = [
        "git", "clone", "--depth", "1", "--branch", version,
        f"{GITHUB_URL}/{repo}.git", str(target),
    ]
    try:
        result = subprocess.run(command, capture_output=True, text=True)
    except FileNotFoundError as exc:
        raise TemplateError("git is not installed, run without --clone") from exc
    if result.returncode != 0:
        raise TemplateError(
            f"git clone of {repo}@{version} failed: {result.stderr.strip()}"
        )
    shutil.rmtree(target / ".git", ignore_errors=True)
    return target
