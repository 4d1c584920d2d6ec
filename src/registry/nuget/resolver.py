"""NuGet resolver: license and dependency groups from the package .nuspec."""
from __future__ import annotations

import logging
from typing import List, Optional, Tuple
from urllib.parse import quote
from xml.etree import ElementTree as ET

from constants import Constants, Registries
from common.logging_utils import extra_context, is_debug_enabled, Timer, safe_url
from engine.models import PackageIdentity, PackageRecord
from licenses import get_license_url, normalize_license_id
from registry.errors import ResolutionError
import registry.nuget as nuget_pkg

logger = logging.getLogger(__name__)

_LICENSES_NUGET_ORG = "licenses.nuget.org/"


def _local(tag: str) -> str:
    """Tag name without its XML namespace; nuspec schemas vary by version."""
    return tag.rsplit("}", 1)[-1]


def _find(parent: ET.Element, name: str) -> Optional[ET.Element]:
    for child in parent:
        if _local(child.tag) == name:
            return child
    return None


def _iter_named(parent: ET.Element, name: str):
    for element in parent.iter():
        if _local(element.tag) == name:
            yield element


def nuspec_url(package_id: str, version: str) -> str:
    lowered_id = quote(package_id.lower(), safe="")
    lowered_version = quote(version.lower(), safe="")
    return f"{Constants.REGISTRY_URL_NUGET}{lowered_id}/{lowered_version}/{lowered_id}.nuspec"


def range_lower_bound(version_range: str) -> str:
    """Lowest version admitted by a NuGet range such as ``[1.2.0, 2.0.0)``.

    A bare version is already a minimum. Ranges without a lower bound fall
    back to their upper bound.
    """
    text = (version_range or "").strip()
    if not text:
        return ""
    if text[0] not in "[(":
        return text
    inner = text.strip("[]()")
    low, _, high = inner.partition(",")
    return low.strip() or high.strip()


def extract_license(metadata: ET.Element) -> Tuple[str, Optional[str]]:
    """Return (license, license_url) from a nuspec ``metadata`` element."""
    license_el = _find(metadata, "license")
    if license_el is not None and (license_el.text or "").strip():
        if (license_el.get("type") or "").lower() == "expression":
            license_id = normalize_license_id(license_el.text.strip())
            return license_id, get_license_url(license_id)

    url_el = _find(metadata, "licenseUrl")
    license_url = (url_el.text or "").strip() if url_el is not None else ""
    if license_url:
        if _LICENSES_NUGET_ORG in license_url:
            license_id = normalize_license_id(license_url.split(_LICENSES_NUGET_ORG, 1)[1].strip("/"))
            return license_id, get_license_url(license_id) or license_url
        return Constants.UNKNOWN_LICENSE, license_url
    return Constants.UNKNOWN_LICENSE, None


def extract_dependencies(metadata: ET.Element) -> List[PackageIdentity]:
    """Collect dependencies across every target-framework group, deduplicated."""
    deps_el = _find(metadata, "dependencies")
    if deps_el is None:
        return []
    seen = set()
    deps: List[PackageIdentity] = []
    for dep in _iter_named(deps_el, "dependency"):
        dep_id = (dep.get("id") or "").strip()
        version = range_lower_bound(dep.get("version") or "")
        if not dep_id or not version:
            continue
        key = (dep_id.lower(), version.lower())
        if key in seen:
            continue
        seen.add(key)
        deps.append(PackageIdentity(name=dep_id, version=version, registry=Registries.NUGET.value))
    return deps


def get_package_info(identity: PackageIdentity) -> PackageRecord:
    """Resolve a NuGet package from its nuspec.

    Raises:
        ResolutionError: on network failure, non-2xx status or invalid XML.
    """
    url = nuspec_url(identity.name, identity.version)
    with Timer() as timer:
        status, _, text = nuget_pkg.robust_get(url)
    if is_debug_enabled(logger):
        logger.debug(
            "NuGet nuspec response",
            extra=extra_context(
                event="http_response", component="nuget", action="GET",
                status_code=status, duration_ms=timer.duration_ms(), target=safe_url(url),
                package_manager="nuget"
            )
        )
    if status == 0:
        raise ResolutionError(f"Network error when contacting NuGet for {identity.name}")
    if status != 200:
        raise ResolutionError(f"NuGet returned status code {status}", status)

    try:
        root = ET.fromstring(text)
    except ET.ParseError as exc:
        raise ResolutionError(f"Invalid nuspec for {identity.node_id}: {exc}") from exc
    metadata = _find(root, "metadata")
    if metadata is None:
        raise ResolutionError(f"nuspec for {identity.node_id} has no metadata element")

    license_id, license_url = extract_license(metadata)
    id_el = _find(metadata, "id")
    package_id = (id_el.text or "").strip() if id_el is not None else identity.name
    return PackageRecord.from_identity(
        identity,
        registry=Registries.NUGET.value,
        display_name=f"{package_id or identity.name}@{identity.version}",
        license=license_id,
        license_url=license_url,
        url=f"{Constants.PACKAGE_URL_NUGET}{identity.name}/{identity.version}",
        debug_info=None if license_id != Constants.UNKNOWN_LICENSE else "No license expression in nuspec",
        dependencies=extract_dependencies(metadata),
        processed=True,
    )
