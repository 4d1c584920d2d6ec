"""MSBuild project parser: NuGet ``PackageReference`` items of a .csproj."""
from __future__ import annotations

import logging
import xml.etree.ElementTree as ET
from typing import List

from constants import Registries
from engine.models import PackageIdentity
from lockfiles.common import LockfileError, with_checksum

logger = logging.getLogger(__name__)


def parse_csproj(content: str) -> List[PackageIdentity]:
    """Parse .csproj content into NuGet identities.

    The version may be an attribute or a child element. References without a
    version are centrally managed and cannot be resolved on their own.

    Raises:
        LockfileError: when the content is not valid XML.
    """
    try:
        root = ET.fromstring(content)
    except ET.ParseError as exc:
        raise LockfileError(f"Invalid .csproj: {exc}") from exc
    # Remove namespace for easier parsing
    for elem in root.iter():
        if '}' in elem.tag:
            elem.tag = elem.tag.split('}')[1]

    identities = []
    seen = set()
    for package_ref in root.findall(".//PackageReference"):
        package_id = (package_ref.get("Include") or "").strip()
        version = package_ref.get("Version")
        if version is None:
            child = package_ref.find("Version")
            version = child.text if child is not None else None
        version = (version or "").strip()
        if not package_id or not version:
            logger.debug("Skipping PackageReference without id or version: %r", package_id)
            continue
        if (package_id.lower(), version) in seen:
            continue
        seen.add((package_id.lower(), version))
        identities.append(with_checksum(PackageIdentity(
            name=package_id,
            version=version,
            resolution=f"nuget:{package_id}/{version}",
            registry=Registries.NUGET.value,
        )))
    return identities
