"""Tests for loading the run configuration."""

from __future__ import annotations

from pathlib import Path

import pytest
from crater_config import RunConfig, RunProject, load_run_config
from crater_errors import MissingFieldError, ParseError, ReadError


def _write_config(tmp_path: Path, text: str) -> Path:
    path = tmp_path / "crater.toml"
    path.write_text(text, encoding="utf-8")
    return path


def test_loads_projects_in_order(tmp_path: Path) -> None:
    """Projects should be parsed with defaults for optional fields."""
    config = _write_config(
        tmp_path,
        "\n".join(
            (
                "[[projects]]",
                'repo = "https://github.com/org/app.git"',
                'root = "rust"',
                'subprojects = ["crates/core", "crates/cli"]',
                "",
                "[[projects]]",
                'repo = "https://github.com/org/tool.git"',
                "",
            )
        ),
    )

    assert load_run_config(config) == RunConfig(
        projects=(
            RunProject(
                repo="https://github.com/org/app.git",
                root="rust",
                subprojects=("crates/core", "crates/cli"),
            ),
            RunProject(repo="https://github.com/org/tool.git"),
        )
    )


def test_missing_file_raises_read_error(tmp_path: Path) -> None:
    """Unreadable configuration should be reported with its path."""
    with pytest.raises(ReadError, match="unable to open configuration"):
        load_run_config(tmp_path / "absent.toml")


def test_invalid_toml_raises_parse_error(tmp_path: Path) -> None:
    """Malformed configuration should raise ``ParseError``."""
    config = _write_config(tmp_path, "[[projects]\nrepo = ")

    with pytest.raises(ParseError, match="unable to parse configuration"):
        load_run_config(config)


@pytest.mark.parametrize(
    ("text", "fragment"),
    [
        ("", "[[projects]]"),
        ('projects = "app"\n', "[[projects]]"),
        ("projects = [1]\n", "projects[0] to be a table"),
        ('[[projects]]\nroot = "."\n', "projects[0].repo"),
        ('[[projects]]\nrepo = ""\n', "projects[0].repo"),
        ('[[projects]]\nrepo = "a.git"\nroot = 1\n', "projects[0].root"),
        (
            '[[projects]]\nrepo = "a.git"\nsubprojects = "crates/a"\n',
            "projects[0].subprojects",
        ),
        (
            '[[projects]]\nrepo = "a.git"\nsubprojects = ["crates/a", 2]\n',
            "projects[0].subprojects",
        ),
    ],
    ids=[
        "empty",
        "scalar_projects",
        "non_table_project",
        "missing_repo",
        "empty_repo",
        "non_string_root",
        "scalar_subprojects",
        "mixed_subprojects",
    ],
)
def test_rejects_malformed_projects(tmp_path: Path, text: str, fragment: str) -> None:
    """Shape errors should surface as ``MissingFieldError``."""
    config = _write_config(tmp_path, text)

    with pytest.raises(MissingFieldError) as excinfo:
        load_run_config(config)

    assert fragment in str(excinfo.value)


def test_project_manifests_join_root_and_members() -> None:
    """Manifest paths should be resolved below the project root."""
    project = RunProject(
        repo="https://github.com/org/app.git",
        root="rust",
        subprojects=("crates/core",),
    )

    root, children = project.manifests(Path("/stage/app"))

    assert root == Path("/stage/app/rust/Cargo.toml")
    assert children == (Path("/stage/app/rust/crates/core/Cargo.toml"),)
