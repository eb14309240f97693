"""Resolve the version, name and location of a local crate checkout.

The local crate is the in-progress library that downstream projects are
redirected to. Its ``Cargo.toml`` supplies the version string they will
require, and the directory holding it becomes the ``path`` of the
``[patch.crates-io]`` override.
"""

from __future__ import annotations

import dataclasses as dc
from pathlib import Path

from crater_errors import CraterError, MissingFieldError, PathResolutionError
from crater_manifest import load_manifest, lookup_string

__all__ = ["LocalCrate", "LocalCrateInfo"]


@dc.dataclass(frozen=True)
class LocalCrateInfo:
    """Everything the patcher needs to know about the local crate."""

    name: str
    version: str
    absolute_path: str


@dc.dataclass(frozen=True)
class LocalCrate:
    """Determine the version and path of a local crate from its manifest."""

    manifest: Path

    def version(self) -> str:
        """Return ``package.version`` verbatim.

        Raises
        ------
        ReadError, ParseError
            Raised when the manifest cannot be loaded.
        MissingFieldError
            Raised when ``[package]`` or its string ``version`` key is absent
            or empty.
        """
        return self._package_field("version")

    def name(self) -> str:
        """Return ``package.name`` verbatim."""
        return self._package_field("name")

    def path(self) -> str:
        """Return the canonical directory containing the manifest as text.

        Raises
        ------
        PathResolutionError
            Raised when the directory does not exist, cannot be resolved, or
            its canonical form is not representable as UTF-8 text.
        """
        manifest = Path(self.manifest)
        try:
            resolved = manifest.parent.resolve(strict=True)
        except (OSError, RuntimeError) as error:
            message = f"unable to determine crate path from {manifest}"
            raise PathResolutionError(message) from error
        text = str(resolved)
        try:
            text.encode("utf-8")
        except UnicodeEncodeError as error:
            message = f"unable to render crate path for {manifest} as text"
            raise PathResolutionError(message) from error
        return text

    def info(self) -> LocalCrateInfo:
        """Bundle name, version and canonical path in one value."""
        return LocalCrateInfo(
            name=self.name(),
            version=self.version(),
            absolute_path=self.path(),
        )

    def _package_field(self, key: str) -> str:
        manifest = Path(self.manifest)
        try:
            document = load_manifest(manifest)
        except CraterError as error:
            message = f"unable to open {manifest} to determine crate {key}"
            raise type(error)(message) from error
        value = lookup_string(document, ("package", key), manifest=manifest)
        if not value:
            message = f"expected non-empty string package.{key} in {manifest}"
            raise MissingFieldError(message)
        return value
