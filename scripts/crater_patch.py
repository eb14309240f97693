"""Redirect downstream manifests to a local crate checkout.

Two mutations are applied to consumer ``Cargo.toml`` documents:

* the *source override* adds ``<crate> = { path = "<local path>" }`` to the
  root manifest's ``[patch.crates-io]`` table so every crate in the workspace
  resolves the dependency from the local checkout;
* the *version override* sets ``dependencies.<crate>`` to the local version so
  the patched source actually satisfies the requirement.

Single-crate projects receive both mutations in their only manifest. For
workspaces the root receives the source override and each member manifest
receives the version override.
"""

from __future__ import annotations

import collections.abc as cabc
import logging
import typing as typ
from pathlib import Path

from crater_errors import MissingDependencySectionError
from crater_manifest import Table, get_table, load_manifest
from crater_serialise import write_manifest_atomically
from tomlkit import inline_table, table

if typ.TYPE_CHECKING:
    from crater_serialise import ManifestWriter
    from tomlkit.items import InlineTable
    from tomlkit.toml_document import TOMLDocument

__all__ = [
    "ManifestPatcher",
    "build_path_override",
    "override_source",
    "override_version",
]

LOGGER = logging.getLogger(__name__)

PATCH_REGISTRY: typ.Final[str] = "crates-io"


class ManifestPatcher:
    """Patch a project's root manifest and any member manifests.

    Parameters
    ----------
    crate : str
        Name of the dependency being redirected, e.g. ``"cadence"``.
    root : Path
        Root ``Cargo.toml`` of the project (the workspace manifest for
        multi-crate projects). It always receives the source override.
    children : cabc.Sequence[Path], optional
        Member manifests that should receive the version override. When empty
        the root receives it instead.
    writer : ManifestWriter, optional
        Callable persisting a document; defaults to
        :func:`crater_serialise.write_manifest_atomically`.
    """

    def __init__(
        self,
        crate: str,
        root: Path,
        children: cabc.Sequence[Path] = (),
        *,
        writer: ManifestWriter = write_manifest_atomically,
    ) -> None:
        """Store the patch targets without touching the filesystem."""
        self.crate = crate
        self.root = Path(root)
        self.children = tuple(Path(child) for child in children)
        self._writer = writer

    def patch(self, version: str, local_path: str) -> None:
        """Rewrite the manifests to depend on the local crate.

        Children are written one by one before the root. A failure part way
        through leaves earlier children patched; re-running is safe because
        both overrides replace existing entries rather than appending.

        Raises
        ------
        ReadError, ParseError
            Raised when a manifest cannot be loaded.
        MissingFieldError
            Raised when the root's ``patch`` entry exists but is not a table.
        MissingDependencySectionError
            Raised when a manifest due for a version override has no
            ``[dependencies]`` table.
        SerializeError, WriteError
            Raised when a rewritten manifest cannot be persisted.
        """
        root_document = load_manifest(self.root)
        override_source(root_document, self.crate, local_path, manifest=self.root)

        if not self.children:
            override_version(root_document, self.crate, version, manifest=self.root)
        else:
            for child in self.children:
                child_document = load_manifest(child)
                override_version(child_document, self.crate, version, manifest=child)
                self._writer(child_document, child)

        self._writer(root_document, self.root)


def build_path_override(local_path: str) -> InlineTable:
    """Return the inline ``{ path = ... }`` table used in ``[patch.crates-io]``.

    Examples
    --------
    >>> dict(build_path_override("/src/cadence"))
    {'path': '/src/cadence'}
    """
    override = inline_table()
    override["path"] = local_path
    override.trailing_comma = False
    return override


def _ensure_table(
    container: Table, key: str, *, manifest: Path, label: str, super_table: bool
) -> Table:
    """Return the table at ``container[key]``, creating it when absent."""
    if key not in container:
        container[key] = table(is_super_table=super_table)
    return get_table(container, key, manifest=manifest, label=label)


def override_source(
    document: TOMLDocument, crate: str, local_path: str, *, manifest: Path
) -> None:
    r"""Point ``patch.crates-io.<crate>`` at ``local_path``.

    The ``patch`` and ``patch.crates-io`` tables are created when missing.
    Other entries in those tables are left as they are; only ``crate`` is
    replaced.

    Examples
    --------
    >>> from pathlib import Path
    >>> from tomlkit import parse
    >>> doc = parse('[patch.crates-io]\nother = { path = "../other" }\n')
    >>> override_source(doc, "cadence", "/src/cadence", manifest=Path("Cargo.toml"))
    >>> sorted(doc["patch"]["crates-io"])
    ['cadence', 'other']
    """
    patch_table = _ensure_table(
        typ.cast("Table", document),
        "patch",
        manifest=manifest,
        label="patch",
        super_table=True,
    )
    crates_io = _ensure_table(
        patch_table,
        PATCH_REGISTRY,
        manifest=manifest,
        label=f"patch.{PATCH_REGISTRY}",
        super_table=False,
    )
    crates_io[crate] = build_path_override(local_path)
    LOGGER.debug("patched %s source to %s in %s", crate, local_path, manifest)


def override_version(
    document: TOMLDocument, crate: str, version: str, *, manifest: Path
) -> None:
    r"""Set ``dependencies.<crate>`` to ``version``.

    An existing entry, whether a version string or a dependency table, is
    replaced by the plain version string. A missing entry is inserted.

    Raises
    ------
    MissingDependencySectionError
        Raised when ``document`` has no ``[dependencies]`` table.

    Examples
    --------
    >>> from pathlib import Path
    >>> from tomlkit import parse
    >>> doc = parse('[dependencies]\ncadence = "0.29"\n')
    >>> override_version(doc, "cadence", "1.0.0", manifest=Path("Cargo.toml"))
    >>> str(doc["dependencies"]["cadence"])
    '1.0.0'
    """
    dependencies = document.get("dependencies")
    if not isinstance(dependencies, cabc.MutableMapping):
        message = f"missing or corrupt [dependencies] section in {manifest}"
        raise MissingDependencySectionError(message)
    dependencies[crate] = version
    LOGGER.debug("patched %s version to %s in %s", crate, version, manifest)
