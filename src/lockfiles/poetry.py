"""poetry.lock and pyproject.toml parsers for the PyPI ecosystem."""
from __future__ import annotations

import logging
import re
from typing import Any, List

try:
    import tomllib as toml  # type: ignore
except ImportError:
    import tomli as toml  # type: ignore

from constants import Constants, Registries
from engine.models import PackageIdentity
from lockfiles.common import LockfileError, with_checksum
from registry.pypi.resolver import LATEST, parse_requires_dist

logger = logging.getLogger(__name__)

_CONSTRAINT_PREFIX = re.compile(r"^[\s^~>=<!]+")


def _load(content: str, label: str) -> dict:
    try:
        return toml.loads(content) or {}
    except toml.TOMLDecodeError as exc:
        raise LockfileError(f"Invalid {label}: {exc}") from exc


def _package_identity(pkg: dict) -> PackageIdentity:
    name = str(pkg["name"])
    version = str(pkg["version"])
    source = pkg.get("source") if isinstance(pkg.get("source"), dict) else {}
    source_type = str(source.get("type") or Registries.PYPI.value)
    source_url = str(source.get("url") or "")

    if source_type == "git" and "github.com" in source_url:
        reference = source.get("resolved_reference") or source.get("reference")
        if reference and "#" not in source_url:
            source_url = f"{source_url}#{reference}"
        registry = Registries.GITHUB.value
    else:
        registry = source_type

    files = pkg.get("files")
    checksum = None
    if isinstance(files, list) and files and isinstance(files[0], dict):
        checksum = files[0].get("hash")
    return PackageIdentity(
        name=name,
        version=version,
        resolution=source_url or f"{Constants.PACKAGE_URL_PYPI}{name}/{version}/",
        checksum=checksum,
        registry=registry,
    )


def parse_poetry_lock(content: str) -> List[PackageIdentity]:
    """Every ``[[package]]`` of a poetry.lock; transitive ones are already listed.

    Raises:
        LockfileError: when the content is not valid TOML.
    """
    data = _load(content, "poetry.lock")
    identities = []
    for pkg in data.get("package", []) or []:
        if not isinstance(pkg, dict) or "name" not in pkg or "version" not in pkg:
            continue
        identities.append(with_checksum(_package_identity(pkg)))
    return identities


def version_from_constraint(constraint: Any) -> str:
    """Lowest version named by a poetry constraint (``^2.0`` gives ``2.0``)."""
    if isinstance(constraint, dict):
        constraint = constraint.get("version", "")
    if not isinstance(constraint, str):
        return LATEST
    first = constraint.split(",", 1)[0]
    version = _CONSTRAINT_PREFIX.sub("", first).strip()
    return version if version and version != "*" else LATEST


def parse_pyproject_toml(content: str) -> List[PackageIdentity]:
    """Direct dependencies declared in pyproject.toml.

    Reads PEP 621 ``[project].dependencies`` and
    ``[tool.poetry.dependencies]``; ``python`` itself is skipped.

    Raises:
        LockfileError: when the content is not valid TOML.
    """
    data = _load(content, "pyproject.toml")
    identities: List[PackageIdentity] = []

    project = data.get("project") if isinstance(data.get("project"), dict) else {}
    identities.extend(parse_requires_dist(project.get("dependencies") or []))

    poetry = (data.get("tool") or {}).get("poetry") or {}
    for name, constraint in (poetry.get("dependencies") or {}).items():
        if name.lower() == "python":
            continue
        if isinstance(constraint, dict) and "github.com" in str(constraint.get("git", "")):
            ref = constraint.get("rev") or constraint.get("tag") or constraint.get("branch") or "HEAD"
            identities.append(PackageIdentity(
                name=name,
                version=str(ref),
                resolution=f"{constraint['git']}#{ref}",
                registry=Registries.GITHUB.value,
            ))
            continue
        identities.append(PackageIdentity(
            name=name,
            version=version_from_constraint(constraint),
            registry=Registries.PYPI.value,
        ))
    return [with_checksum(identity) for identity in identities]
