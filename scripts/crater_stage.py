"""Stage downstream repositories into a local working directory.

Each repository is cloned into ``<staging dir>/<stage name>`` where the stage
name is the file stem of the URL. When the directory is already present from
an earlier run the existing checkout is reused, which makes staging
idempotent.

Example
-------
>>> from pathlib import Path
>>> RemoteRepo("https://github.com/tokio-rs/tracing.git").stage_name()
'tracing'
>>> RemoteRepo("https://github.com/org/app").download(Path("/tmp/crater"))  # doctest: +SKIP
PosixPath('/tmp/crater/app')
"""

from __future__ import annotations

import dataclasses as dc
import logging
from pathlib import Path, PurePosixPath

from crater_errors import NameResolutionError, VcsError
from plumbum import local
from plumbum.commands import CommandNotFound
from plumbum.commands.processes import ProcessTimedOut

__all__ = ["DEFAULT_CLONE_TIMEOUT_SECS", "RemoteRepo"]

LOGGER = logging.getLogger(__name__)

DEFAULT_CLONE_TIMEOUT_SECS = 600

ALREADY_EXISTS_MARKER = "already exists"


def _git_diagnostics(stdout: str, stderr: str) -> str:
    return (stderr or stdout or "").strip()


@dc.dataclass(frozen=True)
class RemoteRepo:
    """A clonable git repository identified by ``url``."""

    url: str

    def stage_name(self) -> str:
        """Return the local directory name derived from the URL.

        Raises
        ------
        NameResolutionError
            Raised when the URL has no usable final path segment.
        """
        stem = PurePosixPath(self.url.strip()).stem
        if stem in {"", ".", ".."}:
            message = f"unable to determine project name from {self.url!r}"
            raise NameResolutionError(message)
        return stem

    def download(
        self, into: Path, *, timeout_secs: int = DEFAULT_CLONE_TIMEOUT_SECS
    ) -> Path:
        """Clone the repository below ``into`` or reuse an existing checkout.

        Parameters
        ----------
        into : Path
            Staging directory that receives the checkout.
        timeout_secs : int, optional
            Upper bound for each ``git`` invocation.

        Returns
        -------
        Path
            ``into / stage_name()`` for both fresh clones and reused checkouts.

        Raises
        ------
        NameResolutionError
            Raised when the stage name cannot be derived.
        VcsError
            Raised when cloning fails for any reason other than the
            destination already existing, or when an existing destination is
            not the top level of a git work tree.
        """
        full = Path(into) / self.stage_name()
        return_code, stdout, stderr = self._git(
            ["clone", self.url, str(full)], full, timeout_secs=timeout_secs
        )
        if return_code == 0:
            LOGGER.info("cloned %s into %s", self.url, full)
            return full

        diagnostics = _git_diagnostics(stdout, stderr)
        if ALREADY_EXISTS_MARKER not in diagnostics.casefold():
            message = (
                f"unable to clone repository {self.url} at {full}: "
                f"git exited with code {return_code}"
            )
            if diagnostics:
                message = f"{message}: {diagnostics}"
            raise VcsError(message)

        self._open_existing(full, timeout_secs=timeout_secs)
        LOGGER.warning("reusing existing checkout of %s at %s", self.url, full)
        return full

    def _open_existing(self, full: Path, *, timeout_secs: int) -> None:
        """Ensure ``full`` is the top level of a git work tree."""
        if not full.is_dir():
            message = (
                f"unable to open existing repository {self.url} at {full}: "
                "destination is not a directory"
            )
            raise VcsError(message)
        return_code, stdout, stderr = self._git(
            ["rev-parse", "--show-toplevel"],
            full,
            timeout_secs=timeout_secs,
            cwd=full,
        )
        if return_code != 0:
            diagnostics = _git_diagnostics(stdout, stderr)
            message = f"unable to open existing repository {self.url} at {full}"
            if diagnostics:
                message = f"{message}: {diagnostics}"
            raise VcsError(message)

        toplevel = Path(stdout.strip()).resolve()
        if toplevel != full.resolve():
            message = (
                f"unable to open existing repository {self.url} at {full}: "
                f"directory belongs to the work tree at {toplevel}"
            )
            raise VcsError(message)

    def _git(
        self,
        args: list[str],
        full: Path,
        *,
        timeout_secs: int,
        cwd: Path | None = None,
    ) -> tuple[int, str, str]:
        """Run ``git`` with ``args`` and return the exit code and output."""
        try:
            git = local["git"][args]
            if cwd is None:
                return git.run(retcode=None, timeout=timeout_secs)
            with local.cwd(cwd):
                return git.run(retcode=None, timeout=timeout_secs)
        except CommandNotFound as error:
            message = "git not found on PATH; unable to stage repositories"
            raise VcsError(message) from error
        except ProcessTimedOut as error:
            message = (
                f"git {args[0]} timed out after {timeout_secs} seconds for "
                f"{self.url} at {full}"
            )
            raise VcsError(message) from error
        except OSError as error:
            message = f"unable to run git {args[0]} for {self.url} at {full}"
            raise VcsError(message) from error
