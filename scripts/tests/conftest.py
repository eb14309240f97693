"""Shared fixtures for crater staging and patching tests."""

from __future__ import annotations

import contextlib
import sys
import typing as typ
from pathlib import Path

import pytest

SCRIPTS_DIR = Path(__file__).resolve().parents[1]
if str(SCRIPTS_DIR) not in sys.path:
    sys.path.insert(0, str(SCRIPTS_DIR))

if typ.TYPE_CHECKING:
    import collections.abc as cabc

GitCallable = typ.Callable[[list[str], Path | None], tuple[int, str, str]]


class FakeGitInvocation:
    """Record a git invocation and proxy execution to the fake runner."""

    def __init__(self, local: FakeLocal, args: list[str]) -> None:
        """Store the invocation context for later assertions."""
        self._local = local
        self._args = args

    def run(
        self, *, retcode: object | None, timeout: int | None
    ) -> tuple[int, str, str]:
        """Record an invocation and delegate to the configured callable."""
        cwd = self._local.current_cwd
        self._local.invocations.append((self._args, cwd, timeout))
        return self._local.run_callable(self._args, cwd)


class FakeGit:
    """Proxy indexing calls into ``FakeGitInvocation`` instances."""

    def __init__(self, local: FakeLocal) -> None:
        """Initialise the git proxy for a fake local environment."""
        self._local = local

    def __getitem__(self, args: object) -> FakeGitInvocation:
        """Return an invocation wrapper for the provided command arguments."""
        extras = list(args) if isinstance(args, (list, tuple)) else [str(args)]
        return FakeGitInvocation(self._local, extras)


class FakeLocal:
    """Mimic ``plumbum.local`` for git staging tests."""

    def __init__(self, run_callable: GitCallable) -> None:
        """Store the callable that will service fake git invocations."""
        self.run_callable = run_callable
        self.current_cwd: Path | None = None
        self.invocations: list[tuple[list[str], Path | None, int | None]] = []

    def __getitem__(self, command: str) -> FakeGit:
        """Return a ``FakeGit`` proxy for the ``git`` command."""
        if command != "git":
            msg = f"FakeLocal only understands the 'git' command, received {command!r}"
            raise RuntimeError(msg)
        return FakeGit(self)

    @contextlib.contextmanager
    def cwd(self, path: Path) -> cabc.Iterator[None]:
        """Track the working directory while the context is active."""
        previous = self.current_cwd
        self.current_cwd = Path(path)
        try:
            yield
        finally:
            self.current_cwd = previous


@pytest.fixture
def patch_git_runner(
    monkeypatch: pytest.MonkeyPatch,
) -> typ.Callable[[GitCallable], FakeLocal]:
    """Install a ``FakeLocal`` in :mod:`crater_stage` around the callable."""
    import crater_stage

    def _install(run_callable: GitCallable) -> FakeLocal:
        fake_local = FakeLocal(run_callable)
        monkeypatch.setattr(crater_stage, "local", fake_local)
        return fake_local

    return _install


def write_manifest(path: Path, *lines: str) -> Path:
    """Write ``lines`` to ``path`` as a manifest, creating parent directories."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text("\n".join((*lines, "")), encoding="utf-8")
    return path


@pytest.fixture
def local_crate_manifest(tmp_path: Path) -> Path:
    """Provision a local ``widget`` crate checkout."""
    return write_manifest(
        tmp_path / "widget" / "Cargo.toml",
        "[package]",
        'name = "widget"',
        'version = "2.0.0-local"',
        'edition = "2021"',
    )


@pytest.fixture
def make_manifest() -> typ.Callable[..., Path]:
    """Provide :func:`write_manifest` to tests that build manifests inline."""
    return write_manifest
