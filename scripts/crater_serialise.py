"""Manifest serialisation and crash-safe replacement of ``Cargo.toml`` files.

Rewritten manifests are rendered into a temporary file beside the target,
synced to disk and then renamed over the original. A reader of the manifest
therefore sees either the old or the new contents, and an interruption before
the rename leaves the original file untouched.

The temporary name is derived from the target file name and the current
process id, so different manifests in one directory never share a temporary
file. Two writers targeting the *same* manifest at once are not supported.
"""

from __future__ import annotations

import contextlib
import logging
import os
import typing as typ
from pathlib import Path

from crater_errors import SerializeError, WriteError
from tomlkit import dumps
from tomlkit.exceptions import TOMLKitError

if typ.TYPE_CHECKING:
    from tomlkit.toml_document import TOMLDocument

__all__ = [
    "ManifestWriter",
    "dump_manifest",
    "render_manifest",
    "temporary_path",
    "write_manifest_atomically",
]

LOGGER = logging.getLogger(__name__)

ManifestWriter = typ.Callable[["TOMLDocument", Path], None]


def dump_manifest(document: TOMLDocument, manifest: Path | None = None) -> str:
    """Render ``document`` as TOML text ending with a newline."""
    try:
        rendered = dumps(document)
    except (TOMLKitError, TypeError, ValueError) as error:
        target = f" for writing to {manifest}" if manifest is not None else ""
        message = f"unable to serialise TOML{target}"
        raise SerializeError(message) from error
    if not rendered.endswith("\n"):
        rendered = f"{rendered}\n"
    return rendered


def temporary_path(manifest: Path) -> Path:
    """Return the sibling temporary path used while rewriting ``manifest``."""
    manifest = Path(manifest)
    return manifest.with_name(f".{manifest.name}.crater-{os.getpid()}.tmp")


def write_manifest_atomically(document: TOMLDocument, manifest: Path) -> None:
    """Serialise ``document`` and atomically replace ``manifest`` with it.

    Parameters
    ----------
    document : TOMLDocument
        Manifest document to persist.
    manifest : Path
        Destination ``Cargo.toml``. Its directory must already exist.

    Raises
    ------
    SerializeError
        Raised when the document cannot be rendered.
    WriteError
        Raised when writing, syncing or renaming the temporary file fails. The
        temporary file is removed and ``manifest`` keeps its previous contents.
    """
    manifest = Path(manifest)
    rendered = dump_manifest(document, manifest)
    tmp_path = temporary_path(manifest)
    try:
        with tmp_path.open("w", encoding="utf-8") as handle:
            handle.write(rendered)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(tmp_path, manifest)
    except OSError as error:
        with contextlib.suppress(OSError):
            tmp_path.unlink()
        message = f"unable to write to TOML file {manifest}"
        raise WriteError(message) from error
    LOGGER.info("wrote %s", manifest)


def render_manifest(document: TOMLDocument, manifest: Path) -> None:
    """Print the rendered ``document`` to stdout instead of writing ``manifest``.

    Each document is preceded by a ``# <manifest>`` header line so output for
    several manifests can be told apart.
    """
    rendered = dump_manifest(document, manifest)
    print(f"# {manifest}")
    print(rendered, end="")
    LOGGER.info("dry run, %s not written", manifest)
