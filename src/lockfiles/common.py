"""Helpers shared by the manifest parsers."""
from __future__ import annotations

import hashlib

from engine.models import PackageIdentity, default_registry


class LockfileError(Exception):
    """A manifest could not be read or its format is not supported."""


def fallback_checksum(identity: PackageIdentity) -> str:
    """Deterministic stand-in checksum for entries that carry none.

    Built from ``registry:name parts:version`` so the same package always
    maps to the same value.
    """
    parts = [default_registry(identity), *identity.name.split("/"), identity.version]
    digest = hashlib.sha256(":".join(parts).encode("utf-8")).hexdigest()
    return f"fallback:{digest}"


def with_checksum(identity: PackageIdentity) -> PackageIdentity:
    if identity.checksum:
        return identity
    return PackageIdentity(
        name=identity.name,
        version=identity.version,
        resolution=identity.resolution,
        checksum=fallback_checksum(identity),
        registry=identity.registry,
    )


def npm_tarball_url(name: str, version: str, base: str) -> str:
    tarball_name = name.replace("@", "").replace("/", "-")
    return f"{base}{name}/-/{tarball_name}-{version}.tgz"
