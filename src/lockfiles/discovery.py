"""Locate manifests under project directories and parse them by file name."""
from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import List, Union

from constants import Constants
from common.logging_utils import extra_context, is_debug_enabled
from engine.models import PackageIdentity
from lockfiles.common import LockfileError
from lockfiles.csproj import parse_csproj
from lockfiles.npm import parse_package_lock
from lockfiles.poetry import parse_poetry_lock, parse_pyproject_toml
from lockfiles.yarn import parse_yarn_lock

logger = logging.getLogger(__name__)

_UNSUPPORTED = {
    Constants.PNPM_LOCK_FILE: "pnpm-lock.yaml is not supported yet",
    Constants.BUN_LOCK_FILE: "bun.lock is not supported yet",
}


def _read(path: Path) -> str:
    try:
        return path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise LockfileError(f"Failed to read {path}: {exc}") from exc


def _merge_pyproject(path: Path, identities: List[PackageIdentity]) -> List[PackageIdentity]:
    """Add direct dependencies from a sibling pyproject.toml not already locked."""
    pyproject = path.parent / Constants.PYPROJECT_TOML_FILE
    if not pyproject.is_file():
        return identities
    try:
        extra = parse_pyproject_toml(_read(pyproject))
    except LockfileError as exc:
        logger.warning("Ignoring %s: %s", pyproject, exc)
        return identities
    seen = {(i.name.lower(), i.version) for i in identities}
    merged = list(identities)
    for identity in extra:
        if (identity.name.lower(), identity.version) not in seen:
            merged.append(identity)
    return merged


def parse_lockfile(path: Union[str, Path]) -> List[PackageIdentity]:
    """Parse one manifest, choosing the parser from its file name.

    Raises:
        LockfileError: when the file is missing, unreadable, invalid or of an
            unsupported format.
    """
    path = Path(path)
    if not path.is_file():
        raise LockfileError(f"File not found: {path}")
    name = path.name
    if name in _UNSUPPORTED:
        raise LockfileError(_UNSUPPORTED[name])
    if name == Constants.YARN_LOCK_FILE:
        return parse_yarn_lock(_read(path))
    if name == Constants.PACKAGE_LOCK_FILE:
        return parse_package_lock(_read(path))
    if name == Constants.POETRY_LOCK_FILE:
        return _merge_pyproject(path, parse_poetry_lock(_read(path)))
    if path.suffix == Constants.CSPROJ_SUFFIX:
        return parse_csproj(_read(path))
    raise LockfileError(f"Unsupported lock file format: {name}")


def _is_manifest(name: str) -> bool:
    return name in Constants.SUPPORTED_LOCKFILES or name.endswith(Constants.CSPROJ_SUFFIX)


def find_lockfiles(root: Union[str, Path], recursive: bool = False) -> List[Path]:
    """Manifests under ``root``.

    Without ``recursive`` only ``root/yarn.lock`` is considered. Recursive
    search walks the tree, skipping dependency and build output directories.
    """
    root = Path(root)
    if not recursive:
        candidate = root / Constants.YARN_LOCK_FILE
        if candidate.is_file():
            return [candidate]
        logger.warning("yarn.lock not found at %s", candidate)
        return []

    found: List[Path] = []
    for dirpath, dirnames, filenames in os.walk(root):
        dirnames[:] = sorted(d for d in dirnames if d not in Constants.SKIPPED_DIRS)
        for filename in sorted(filenames):
            if _is_manifest(filename):
                found.append(Path(dirpath) / filename)
    if is_debug_enabled(logger):
        logger.debug(
            "Discovered manifests",
            extra=extra_context(
                event="discovery", component="lockfiles", action="find_lockfiles",
                target=str(root), count=len(found)
            )
        )
    return found
