"""package-lock.json parser (lockfileVersion 1, 2 and 3)."""
from __future__ import annotations

import json
import logging
from typing import Dict, List, Set, Tuple

from constants import Constants
from engine.models import PackageIdentity
from lockfiles.common import LockfileError, npm_tarball_url, with_checksum

logger = logging.getLogger(__name__)

_NODE_MODULES = "node_modules/"


def _identity(name: str, info: dict) -> PackageIdentity:
    version = str(info["version"])
    resolved = info.get("resolved")
    return PackageIdentity(
        name=name,
        version=version,
        resolution=resolved if isinstance(resolved, str) and resolved
        else npm_tarball_url(name, version, Constants.REGISTRY_URL_NPM),
        checksum=info.get("integrity") or None,
    )


def _name_from_path(path: str) -> str:
    """``node_modules/a/node_modules/@s/b`` gives ``@s/b``."""
    return path.rsplit(_NODE_MODULES, 1)[-1]


def parse_package_lock(content: str) -> List[PackageIdentity]:
    """Parse package-lock.json content into identities.

    Raises:
        LockfileError: when the content is not valid JSON.
    """
    try:
        data = json.loads(content)
    except json.JSONDecodeError as exc:
        raise LockfileError(f"Invalid package-lock.json: {exc}") from exc
    if not isinstance(data, dict):
        raise LockfileError("Invalid package-lock.json: top level is not an object")

    seen: Set[Tuple[str, str]] = set()
    identities: List[PackageIdentity] = []

    def add(name: str, info: dict) -> None:
        if not name or not isinstance(info.get("version"), str):
            return
        identity = _identity(name, info)
        if Constants.LOCAL_VERSION_MARKER in identity.version:
            return
        key = (identity.name, identity.version)
        if key in seen:
            return
        seen.add(key)
        identities.append(with_checksum(identity))

    # Version 1: nested dependencies structure
    def walk(deps: Dict[str, dict]) -> None:
        for name, info in deps.items():
            if not isinstance(info, dict):
                continue
            add(name, info)
            if isinstance(info.get("dependencies"), dict):
                walk(info["dependencies"])

    if isinstance(data.get("dependencies"), dict):
        walk(data["dependencies"])

    # Version 2/3: flat packages structure keyed by install path
    packages = data.get("packages")
    if isinstance(packages, dict):
        for path, info in packages.items():
            if not path or not isinstance(info, dict) or info.get("link"):
                continue
            if _NODE_MODULES not in path:
                # workspace members are local
                continue
            add(str(info.get("name") or _name_from_path(path)), info)

    logger.debug("package-lock.json yielded %d packages", len(identities))
    return identities
