"""``--info`` report: parsed identities enriched from the cache, no network."""
from __future__ import annotations

from collections import Counter
from typing import List, Optional, Sequence

from engine.hashing import package_hash
from engine.models import PackageIdentity, PackageRecord
from engine.pool import RecordCache


def registry_bucket(identity: PackageIdentity) -> str:
    resolution = identity.resolution
    if "github.com" in resolution:
        return "GitHub"
    if "npmjs.org" in resolution or "npmjs.com" in resolution:
        return "npm"
    if not resolution:
        return "Unknown"
    return "Other"


def _cached(cache: Optional[RecordCache], identity: PackageIdentity) -> Optional[PackageRecord]:
    if cache is None:
        return None
    return cache.get(package_hash(identity))


def render_info(identities: Sequence[PackageIdentity], cache: Optional[RecordCache] = None) -> List[str]:
    lines = ["", "=== PARSED LOCKFILE INFORMATION ===", "", f"Total packages found: {len(identities)}"]
    for identity in identities:
        lines.extend(["", f"Package: {identity.name}", f"  Version: {identity.version}"])
        lines.append(f"  Resolution: {identity.resolution or '<not specified>'}")
        if identity.checksum:
            lines.append(f"  Checksum: {identity.checksum}")
        cached = _cached(cache, identity)
        if cached is not None and cached.url:
            lines.append(f"  URL: {cached.url}")
        if cached is not None and not cached.is_unknown:
            lines.append(f"  License: {cached.license}")
            if cached.license_url:
                lines.append(f"  License URL: {cached.license_url}")

    counts = Counter(registry_bucket(identity) for identity in identities)
    lines.extend(["", "=== REGISTRY SUMMARY ==="])
    for bucket, count in sorted(counts.items(), key=lambda item: (-item[1], item[0])):
        lines.append(f"{bucket}: {count} packages")
    lines.extend(["", "To perform full license analysis, run without the --info flag."])
    return lines
