"""PyPI resolver: license from the JSON API and dependencies from requires_dist."""
from __future__ import annotations

import logging
from typing import List, Optional, Tuple

import requirements
from packaging.utils import canonicalize_name
from packaging.version import InvalidVersion, Version

from constants import Constants, Registries
from common.logging_utils import extra_context, is_debug_enabled, Timer, safe_url
from engine.models import PackageIdentity, PackageRecord
from licenses import (
    detect_license_from_text,
    get_license_url,
    license_from_classifiers,
    normalize_license_id,
)
from registry.errors import ResolutionError
import registry.pypi as pypi_pkg

logger = logging.getLogger(__name__)

LATEST = "latest"
# Free-text license fields longer than this are full license texts, not ids.
_LICENSE_ID_MAX_LEN = 60
_LOWER_BOUND_OPS = ("==", "===", ">=", "~=")


def is_concrete_version(version: str) -> bool:
    if not version or version == LATEST:
        return False
    try:
        Version(version)
    except InvalidVersion:
        return False
    return True


def _fetch(url: str) -> Tuple[int, Optional[dict]]:
    with Timer() as timer:
        status, _, data = pypi_pkg.get_json(url, headers={"Accept": "application/json"})
    if is_debug_enabled(logger):
        logger.debug(
            "PyPI response",
            extra=extra_context(
                event="http_response", component="pypi", action="GET",
                status_code=status, duration_ms=timer.duration_ms(), target=safe_url(url),
                package_manager="pypi"
            )
        )
    return status, data if isinstance(data, dict) else None


def fetch_metadata(name: str, version: str) -> dict:
    """Fetch the JSON document for ``name`` at ``version`` (latest when not concrete).

    Raises:
        ResolutionError: on network failure or when no document is found.
    """
    base = f"{Constants.REGISTRY_URL_PYPI}{name}"
    if is_concrete_version(version):
        status, data = _fetch(f"{base}/{version}/json")
        if status == 200 and data:
            return data
        if status == 0:
            raise ResolutionError(f"Network error when contacting PyPI for {name}")
        if status != 404:
            raise ResolutionError(f"PyPI returned status code {status}", status)
        logger.info("PyPI has no release %s of %s, using latest", version, name)
    status, data = _fetch(f"{base}/json")
    if status == 0:
        raise ResolutionError(f"Network error when contacting PyPI for {name}")
    if status != 200 or not data:
        raise ResolutionError(f"PyPI returned status code {status}", status)
    return data


def extract_license(info: dict) -> Tuple[str, Optional[str]]:
    """Return (license, debug text) from a release's ``info`` section."""
    expression = info.get("license_expression")
    if isinstance(expression, str) and expression.strip():
        return normalize_license_id(expression), None

    value = info.get("license")
    if isinstance(value, str) and value.strip():
        text = value.strip()
        if len(text) <= _LICENSE_ID_MAX_LEN and "\n" not in text:
            return normalize_license_id(text), None
        detected = detect_license_from_text(text)
        if detected:
            return detected, "License detected from license text in metadata"

    from_classifiers = license_from_classifiers(info.get("classifiers") or [])
    if from_classifiers:
        return from_classifiers, None
    return Constants.UNKNOWN_LICENSE, "No license, license_expression or license classifier in PyPI metadata"


def _pinned_version(specs) -> str:
    for op, version in specs:
        if op in _LOWER_BOUND_OPS:
            return version
    return LATEST


def parse_requires_dist(requires: Optional[List[str]]) -> List[PackageIdentity]:
    """Turn ``requires_dist`` entries into identities, skipping extras-only ones."""
    deps: List[PackageIdentity] = []
    seen = set()
    for entry in requires or []:
        if not isinstance(entry, str):
            continue
        spec, _, marker = entry.partition(";")
        if "extra" in marker:
            continue
        # "name (>=1.0)" is the legacy form of "name>=1.0"
        spec = spec.replace("(", "").replace(")", "").strip()
        if not spec:
            continue
        try:
            parsed = list(requirements.parse(spec))
        except Exception:  # pylint: disable=broad-exception-caught
            logger.debug("Skipping unparsable requirement %r", entry)
            continue
        for req in parsed:
            if not req.name:
                continue
            name = canonicalize_name(req.name)
            if name in seen:
                continue
            seen.add(name)
            deps.append(PackageIdentity(
                name=name,
                version=_pinned_version(req.specs),
                registry=Registries.PYPI.value,
            ))
    return deps


def get_package_info(identity: PackageIdentity) -> PackageRecord:
    """Resolve a PyPI distribution.

    Raises:
        ResolutionError: on network failure or a missing package.
    """
    name = canonicalize_name(identity.name)
    data = fetch_metadata(name, identity.version)
    info = data.get("info") or {}
    version = identity.version if is_concrete_version(identity.version) else str(info.get("version") or identity.version)

    license_id, debug_info = extract_license(info)
    return PackageRecord.from_identity(
        identity,
        registry=Registries.PYPI.value,
        display_name=f"{info.get('name') or identity.name}@{version}",
        license=license_id,
        license_url=get_license_url(license_id),
        url=f"{Constants.PACKAGE_URL_PYPI}{name}/",
        debug_info=debug_info,
        dependencies=parse_requires_dist(info.get("requires_dist")),
        processed=True,
    )
