"""Manifest loading and typed lookups for ``Cargo.toml`` documents.

Documents are parsed with :mod:`tomlkit` so that later rewrites keep the
comments and layout of everything they do not touch. The accessors below
treat the parsed value tree as a closed set of strings, tables and arrays and
raise :class:`MissingFieldError` instead of ``KeyError`` or ``TypeError`` when
a lookup finds something of the wrong shape.
"""

from __future__ import annotations

import collections.abc as cabc
import typing as typ
from pathlib import Path

from crater_errors import MissingFieldError, ParseError, ReadError
from tomlkit import parse
from tomlkit.exceptions import ParseError as TOMLParseError

if typ.TYPE_CHECKING:
    from tomlkit.toml_document import TOMLDocument

__all__ = [
    "Table",
    "get_string",
    "get_table",
    "load_manifest",
    "lookup_string",
]

Table = cabc.MutableMapping[str, typ.Any]


def load_manifest(manifest: Path) -> TOMLDocument:
    """Read and parse ``manifest`` into a :class:`TOMLDocument`.

    Parameters
    ----------
    manifest : Path
        Path to the ``Cargo.toml`` file to load.

    Returns
    -------
    TOMLDocument
        The parsed document, ready to be mutated in place.

    Raises
    ------
    ReadError
        Raised when the file cannot be opened or is not valid UTF-8.
    ParseError
        Raised when the contents are not a valid TOML document.
    """
    manifest = Path(manifest)
    try:
        text = manifest.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as error:
        message = f"unable to read TOML file {manifest}"
        raise ReadError(message) from error
    try:
        return parse(text)
    except TOMLParseError as error:
        message = f"unable to parse TOML file {manifest}"
        raise ParseError(message) from error


def get_table(
    container: cabc.Mapping[str, typ.Any], key: str, *, manifest: Path, label: str
) -> Table:
    """Return ``container[key]`` when it is a table.

    ``label`` is the dotted key reported in the error message, for example
    ``"package"`` or ``"patch.crates-io"``.
    """
    value = container.get(key)
    if not isinstance(value, cabc.MutableMapping):
        message = f"expected [{label}] table in {manifest}"
        raise MissingFieldError(message)
    return typ.cast("Table", value)


def get_string(
    container: cabc.Mapping[str, typ.Any], key: str, *, manifest: Path, label: str
) -> str:
    """Return ``container[key]`` as a plain ``str`` when it is a string."""
    value = container.get(key)
    if not isinstance(value, str):
        message = f"expected string {label} in {manifest}"
        raise MissingFieldError(message)
    return str(value)


def lookup_string(
    document: cabc.Mapping[str, typ.Any], keys: tuple[str, ...], *, manifest: Path
) -> str:
    """Walk ``keys`` through nested tables and return the final string value.

    Examples
    --------
    >>> from pathlib import Path
    >>> doc = parse('[package]\\nversion = "1.2.3"\\n')
    >>> lookup_string(doc, ("package", "version"), manifest=Path("Cargo.toml"))
    '1.2.3'
    """
    *tables, leaf = keys
    container: cabc.Mapping[str, typ.Any] = document
    for depth, key in enumerate(tables, start=1):
        label = ".".join(keys[:depth])
        container = get_table(container, key, manifest=manifest, label=label)
    return get_string(container, leaf, manifest=manifest, label=".".join(keys))
