"""Run configuration listing the downstream projects to stage and patch.

The configuration is a TOML file with one ``[[projects]]`` entry per
downstream repository::

    [[projects]]
    repo = "https://github.com/org/app.git"
    root = "."
    subprojects = ["crates/app-core", "crates/app-cli"]

``root`` is the directory of the project's root ``Cargo.toml`` relative to the
checkout and defaults to ``"."``. ``subprojects`` lists workspace members,
relative to ``root``, that depend on the local crate; it defaults to an empty
list, meaning the root manifest declares the dependency itself.
"""

from __future__ import annotations

import collections.abc as cabc
import dataclasses as dc
import tomllib
import typing as typ
from pathlib import Path

from crater_errors import MissingFieldError, ParseError, ReadError

__all__ = ["MANIFEST_NAME", "RunConfig", "RunProject", "load_run_config"]

MANIFEST_NAME: typ.Final[str] = "Cargo.toml"


@dc.dataclass(frozen=True)
class RunProject:
    """A downstream repository and the manifests to patch inside it."""

    repo: str
    root: str = "."
    subprojects: tuple[str, ...] = ()

    def manifests(self, checkout: Path) -> tuple[Path, tuple[Path, ...]]:
        """Return the root manifest and member manifests within ``checkout``."""
        project_root = Path(checkout) / self.root
        children = tuple(
            project_root / subproject / MANIFEST_NAME for subproject in self.subprojects
        )
        return project_root / MANIFEST_NAME, children


@dc.dataclass(frozen=True)
class RunConfig:
    """The ordered set of projects processed by a run."""

    projects: tuple[RunProject, ...]


def load_run_config(path: Path) -> RunConfig:
    """Load and validate the run configuration at ``path``.

    Raises
    ------
    ReadError
        Raised when the file cannot be read.
    ParseError
        Raised when the file is not valid TOML.
    MissingFieldError
        Raised when ``projects`` or a project's fields are missing or have the
        wrong type.
    """
    path = Path(path)
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as error:
        message = f"unable to open configuration from {path}"
        raise ReadError(message) from error
    try:
        data = tomllib.loads(text)
    except tomllib.TOMLDecodeError as error:
        message = f"unable to parse configuration from {path}"
        raise ParseError(message) from error

    entries = data.get("projects")
    if not isinstance(entries, list):
        message = f"expected [[projects]] entries in {path}"
        raise MissingFieldError(message)
    projects = tuple(
        _parse_project(entry, index, path) for index, entry in enumerate(entries)
    )
    return RunConfig(projects=projects)


def _parse_project(entry: object, index: int, path: Path) -> RunProject:
    """Convert one ``[[projects]]`` table into a :class:`RunProject`."""
    label = f"projects[{index}]"
    if not isinstance(entry, cabc.Mapping):
        message = f"expected {label} to be a table in {path}"
        raise MissingFieldError(message)

    repo = entry.get("repo")
    if not isinstance(repo, str) or not repo:
        message = f"expected string {label}.repo in {path}"
        raise MissingFieldError(message)

    root = entry.get("root", ".")
    if not isinstance(root, str):
        message = f"expected string {label}.root in {path}"
        raise MissingFieldError(message)

    subprojects = entry.get("subprojects", [])
    if not isinstance(subprojects, list) or not all(
        isinstance(subproject, str) for subproject in subprojects
    ):
        message = f"expected {label}.subprojects to be a list of strings in {path}"
        raise MissingFieldError(message)

    return RunProject(repo=repo, root=root, subprojects=tuple(subprojects))
