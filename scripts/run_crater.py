#!/usr/bin/env -S uv run python
"""Stage downstream projects and point them at a local crate checkout.

The workflow reads the local crate's ``Cargo.toml`` to learn its name,
version and location, then clones (or reuses) every project listed in the run
configuration and rewrites its manifests so ``cargo`` resolves the crate from
the local checkout. Building or testing the patched projects is left to the
caller.

Examples
--------
Patch every configured project, staging checkouts in ``/tmp/crater``::

    python scripts/run_crater.py ../cadence/Cargo.toml crater.toml --dest /tmp/crater

Preview the rewritten manifests without modifying them::

    CRATER_DRY_RUN=1 python scripts/run_crater.py ../cadence/Cargo.toml crater.toml
"""

# /// script
# requires-python = ">=3.11"
# dependencies = [
#     "cyclopts>=2.9",
#     "plumbum",
#     "tomlkit",
# ]
# ///
from __future__ import annotations

import logging
import tempfile
import typing as typ
from pathlib import Path

import cyclopts
from crater_config import load_run_config
from crater_errors import CraterError, PathResolutionError
from crater_local_crate import LocalCrate, LocalCrateInfo
from crater_patch import ManifestPatcher
from crater_serialise import render_manifest, write_manifest_atomically
from crater_stage import DEFAULT_CLONE_TIMEOUT_SECS, RemoteRepo
from cyclopts import App, Parameter

LOGGER = logging.getLogger(__name__)

app = App(config=cyclopts.config.Env("CRATER_", command=False))


def resolve_destination(dest: Path | None) -> Path:
    """Create and canonicalise the staging directory.

    Falls back to the system temporary directory, which honours ``TMPDIR``,
    when ``dest`` is omitted.
    """
    destination = Path(dest) if dest is not None else Path(tempfile.gettempdir())
    try:
        destination.mkdir(parents=True, exist_ok=True)
        return destination.resolve(strict=True)
    except OSError as error:
        message = f"unable to determine repository destination {destination}"
        raise PathResolutionError(message) from error


def resolve_local_crate(local_manifest: Path, crate: str | None) -> LocalCrateInfo:
    """Return the local crate details, optionally overriding its name."""
    local_crate = LocalCrate(Path(local_manifest))
    if crate is None:
        return local_crate.info()
    return LocalCrateInfo(
        name=crate,
        version=local_crate.version(),
        absolute_path=local_crate.path(),
    )


def run_crater(
    local_manifest: Path,
    config: Path,
    *,
    dest: Path | None = None,
    crate: str | None = None,
    dry_run: bool = False,
    timeout_secs: int = DEFAULT_CLONE_TIMEOUT_SECS,
) -> list[Path]:
    """Stage and patch every configured project in order.

    Projects are processed sequentially and the first failure aborts the run;
    projects already patched keep their changes.

    Returns
    -------
    list[Path]
        Checkout directories of the patched projects, in configuration order.

    Raises
    ------
    CraterError
        Raised by any resolution, staging or patching step.
    """
    if timeout_secs <= 0:
        message = "timeout-secs must be a positive integer"
        raise SystemExit(message)

    local_crate = resolve_local_crate(local_manifest, crate)
    LOGGER.info(
        "using %s %s from %s",
        local_crate.name,
        local_crate.version,
        local_crate.absolute_path,
    )
    run_config = load_run_config(config)
    downloads = resolve_destination(dest)
    writer = render_manifest if dry_run else write_manifest_atomically

    checkouts: list[Path] = []
    for project in run_config.projects:
        checkout = RemoteRepo(project.repo).download(
            downloads, timeout_secs=timeout_secs
        )
        root, children = project.manifests(checkout)
        LOGGER.info("patching %s (%d member manifests)", root, len(children))
        patcher = ManifestPatcher(local_crate.name, root, children, writer=writer)
        patcher.patch(local_crate.version, local_crate.absolute_path)
        checkouts.append(checkout)
    return checkouts


@app.default
def main(
    local_manifest: Path,
    config: Path,
    *,
    dest: typ.Annotated[Path | None, Parameter(env_var="CRATER_DEST")] = None,
    crate: typ.Annotated[str | None, Parameter(env_var="CRATER_CRATE")] = None,
    dry_run: typ.Annotated[bool, Parameter(env_var="CRATER_DRY_RUN")] = False,
    timeout_secs: typ.Annotated[
        int, Parameter(env_var="CRATER_TIMEOUT_SECS")
    ] = DEFAULT_CLONE_TIMEOUT_SECS,
) -> None:
    """Patch downstream projects to build against a local crate.

    Parameters
    ----------
    local_manifest : Path
        ``Cargo.toml`` of the local crate checkout.
    config : Path
        TOML run configuration listing the downstream projects.
    dest : Path, optional
        Staging directory for checkouts. Defaults to the system temporary
        directory and may be set with ``CRATER_DEST``.
    crate : str, optional
        Dependency name to redirect. Defaults to ``package.name`` of the
        local manifest and may be set with ``CRATER_CRATE``.
    dry_run : bool, optional
        Print the rewritten manifests to stdout instead of writing them. May
        be set with ``CRATER_DRY_RUN``.
    timeout_secs : int, optional
        Timeout for each ``git`` invocation. Defaults to 600 seconds and may
        be set with ``CRATER_TIMEOUT_SECS``.
    """
    try:
        run_crater(
            local_manifest,
            config,
            dest=dest,
            crate=crate,
            dry_run=dry_run,
            timeout_secs=timeout_secs,
        )
    except CraterError as error:
        LOGGER.error("crater run failed: %s", error)
        message = f"crater: {error}"
        raise SystemExit(message) from error


def cli() -> None:
    """Console entry point configuring logging before dispatching to ``app``."""
    logging.basicConfig(
        level=logging.INFO, format="%(levelname)s %(name)s: %(message)s"
    )
    app()


if __name__ == "__main__":
    cli()
