"""Canonical identity hashing used for deduplication and cache addressing.

Classification, first match wins:

1. repository-addressed (``github:`` in the name prefix or the resolution)
   -> ``github:{name}/{resolution}``
2. archive-addressed (``__archiveUrl=`` in the resolution)
   -> ``url:{archive url}``, so identities pointing at the same archive
   collapse regardless of their display names
3. registry default -> ``{registry}:{name}@{version}``, with PyPI names
   canonicalized

Markers are matched case-insensitively. The order decides which identities
count as the same graph node, so it must not change without invalidating
existing caches.
"""
from __future__ import annotations

import hashlib

from packaging.utils import canonicalize_name

from constants import Constants, Registries
from engine.models import PackageIdentity, is_repository_addressed


def _strip_marker(text: str, marker: str) -> str:
    if text.lower().startswith(marker):
        return text[len(marker):]
    return text


def canonical_id(identity: PackageIdentity) -> str:
    """Return the canonical string hashed for ``identity``."""
    if is_repository_addressed(identity):
        marker = Constants.REPOSITORY_MARKER
        name = _strip_marker(identity.name, marker)
        resolution = identity.resolution
        index = resolution.lower().find(marker)
        if index != -1:
            resolution = resolution[:index] + marker + resolution[index + len(marker):]
        return f"{marker}{name}/{resolution}"

    marker = Constants.ARCHIVE_URL_MARKER.lower()
    index = identity.resolution.lower().find(marker)
    if index != -1:
        return f"url:{identity.resolution[index + len(marker):]}"

    registry = identity.registry or Registries.NPM.value
    name = identity.name
    if registry == Registries.PYPI.value:
        # PEP 503: "Django", "django" and "DJANGO" are one distribution.
        name = canonicalize_name(name)
    return f"{registry}:{name}@{identity.version}"


def package_hash(identity: PackageIdentity) -> str:
    """SHA-256 hex digest of the canonical id; safe to call from any thread."""
    return hashlib.sha256(canonical_id(identity).encode("utf-8")).hexdigest()
