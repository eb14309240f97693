"""Error taxonomy shared by the crater staging and patching helpers.

Every error carries a context message naming the manifest, directory or URL
involved. Lower-level failures are attached with ``raise ... from error`` and
rendered after the context so the whole chain is visible in one line:

>>> try:
...     raise ReadError("unable to read TOML file Cargo.toml") from OSError("gone")
... except ReadError as err:
...     str(err)
'unable to read TOML file Cargo.toml: gone'
"""

from __future__ import annotations

__all__ = [
    "CraterError",
    "MissingDependencySectionError",
    "MissingFieldError",
    "NameResolutionError",
    "ParseError",
    "PathResolutionError",
    "ReadError",
    "SerializeError",
    "VcsError",
    "WriteError",
]


class CraterError(Exception):
    """Base class for failures raised while staging or patching projects."""

    def __str__(self) -> str:
        """Render the context message followed by the chained cause, if any."""
        message = super().__str__()
        cause = self.__cause__
        if cause is None:
            return message
        return f"{message}: {cause}"


class ReadError(CraterError):
    """A manifest or configuration file could not be read."""


class ParseError(CraterError):
    """A manifest or configuration file is not valid TOML."""


class MissingFieldError(CraterError):
    """A required key or table is absent or has the wrong type."""


class MissingDependencySectionError(CraterError):
    """A manifest has no ``[dependencies]`` table to override."""


class SerializeError(CraterError):
    """A manifest document could not be rendered back to TOML."""


class WriteError(CraterError):
    """Writing, syncing or renaming a manifest failed."""


class VcsError(CraterError):
    """A repository could not be cloned or reused."""


class NameResolutionError(CraterError):
    """A stage directory name could not be derived from a repository URL."""


class PathResolutionError(CraterError):
    """A filesystem path could not be canonicalised or rendered as text."""
