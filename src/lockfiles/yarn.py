"""yarn.lock parser for the classic (v1) and Berry (v2+) formats.

Classic lockfiles use yarn's own indentation format and are read with the
``yarnlock`` library. Berry lockfiles are YAML documents with a
``__metadata`` block and are loaded with PyYAML.
"""
from __future__ import annotations

import logging
from typing import List

import yaml
import yarnlock

from constants import Constants
from engine.models import PackageIdentity
from lockfiles.common import LockfileError, with_checksum

logger = logging.getLogger(__name__)

_BERRY_MARKER = "__metadata:"


def extract_package_name(descriptor: str) -> str:
    """Base package name of a lockfile descriptor.

    ``lodash@^4.17.21`` gives ``lodash``, ``@babel/core@^7.0.0`` gives
    ``@babel/core``, and for comma-grouped descriptors the first one wins.
    """
    first = descriptor.split(",", 1)[0].strip().strip('"')
    start = 1 if first.startswith("@") else 0
    at = first.find("@", start)
    return first[:at] if at > 0 else first


def _descriptors(key: str) -> List[str]:
    return [part.strip().strip('"') for part in key.split(",") if part.strip()]


def _classic_identities(content: str) -> List[PackageIdentity]:
    try:
        parsed = yarnlock.yarnlock_parse(content)
    except Exception as exc:  # pylint: disable=broad-exception-caught
        raise LockfileError(f"Invalid yarn.lock: {exc}") from exc
    if not isinstance(parsed, dict):
        raise LockfileError("Invalid yarn.lock: top level is not a mapping")

    identities = []
    seen = set()
    for key, entry in parsed.items():
        if not key or not isinstance(key, str):
            continue
        if not isinstance(entry, dict):
            raise LockfileError(f"Invalid yarn.lock entry: {key!r}")
        descriptors = _descriptors(key)
        version = str(entry.get("version") or "")
        if not descriptors or not version:
            logger.debug("Skipping yarn.lock entry without version: %s", key)
            continue
        resolution = str(entry.get("resolved") or descriptors[0])
        name = extract_package_name(descriptors[0])
        # grouped descriptors may come back as one key per range
        if (name, version, resolution) in seen:
            continue
        seen.add((name, version, resolution))
        identities.append(PackageIdentity(
            name=name,
            version=version,
            resolution=resolution,
            checksum=str(entry["integrity"]) if entry.get("integrity") else None,
        ))
    return identities


def _berry_identities(content: str) -> List[PackageIdentity]:
    try:
        data = yaml.safe_load(content) or {}
    except yaml.YAMLError as exc:
        raise LockfileError(f"Invalid yarn.lock: {exc}") from exc
    if not isinstance(data, dict):
        raise LockfileError("Invalid yarn.lock: top level is not a mapping")

    identities = []
    for descriptor, entry in data.items():
        if descriptor == "__metadata" or not isinstance(entry, dict):
            continue
        version = str(entry.get("version") or "")
        if not version:
            continue
        identities.append(PackageIdentity(
            name=extract_package_name(str(descriptor)),
            version=version,
            resolution=str(entry.get("resolution") or descriptor),
            checksum=str(entry["checksum"]) if entry.get("checksum") else None,
        ))
    return identities


def parse_yarn_lock(content: str) -> List[PackageIdentity]:
    """Parse yarn.lock content into identities, skipping local workspace entries.

    Raises:
        LockfileError: when the content is not a valid lockfile.
    """
    if _BERRY_MARKER in content:
        identities = _berry_identities(content)
    else:
        identities = _classic_identities(content)

    result = []
    for identity in identities:
        if Constants.LOCAL_VERSION_MARKER in identity.version:
            continue
        result.append(with_checksum(identity))
    return result
