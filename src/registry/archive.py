"""License discovery inside downloadable package archives (.tgz, .tar.gz, .zip)."""
from __future__ import annotations

import io
import json
import logging
import posixpath
import tarfile
import zipfile
from typing import Dict, Optional, Tuple
from urllib.parse import unquote, urlsplit

from constants import Constants, Registries
from engine.models import PackageIdentity, PackageRecord
from licenses import detect_license_from_text, get_license_url, normalize_license_id
from registry.errors import ResolutionError
from registry.github.resolver import LICENSE_FILE_PATTERNS, dependencies_from_package_json
import registry

logger = logging.getLogger(__name__)

ARCHIVE_SUFFIXES = (".tgz", ".tar.gz", ".zip")
_MAX_MEMBER_BYTES = 1024 * 1024
_LICENSE_NAMES = {p.lower() for p in LICENSE_FILE_PATTERNS}


def archive_url_from_resolution(resolution: str) -> Optional[str]:
    """Extract the archive URL embedded in a resolution string, if any."""
    marker = Constants.ARCHIVE_URL_MARKER.lower()
    index = resolution.lower().find(marker)
    if index != -1:
        return unquote(resolution[index + len(marker):].split("&", 1)[0])
    path = urlsplit(resolution).path.lower()
    if resolution.startswith(("http://", "https://")) and path.endswith(ARCHIVE_SUFFIXES):
        return resolution
    return None


def is_archive_url(resolution: str) -> bool:
    return archive_url_from_resolution(resolution) is not None


def _read_members(payload: bytes, url: str) -> Dict[str, bytes]:
    """Return the small text members of interest keyed by their path."""
    wanted: Dict[str, bytes] = {}

    def interesting(path: str) -> bool:
        base = posixpath.basename(path)
        return base == "package.json" or base.lower() in _LICENSE_NAMES

    if urlsplit(url).path.lower().endswith(".zip"):
        with zipfile.ZipFile(io.BytesIO(payload)) as zf:
            for info in zf.infolist():
                if info.is_dir() or info.file_size > _MAX_MEMBER_BYTES or not interesting(info.filename):
                    continue
                wanted[info.filename] = zf.read(info)
        return wanted

    with tarfile.open(fileobj=io.BytesIO(payload), mode="r:*") as tf:
        for member in tf.getmembers():
            if not member.isfile() or member.size > _MAX_MEMBER_BYTES or not interesting(member.name):
                continue
            handle = tf.extractfile(member)
            if handle is not None:
                wanted[member.name] = handle.read()
    return wanted


def _shallowest(members: Dict[str, bytes], predicate) -> Optional[Tuple[str, bytes]]:
    matches = [(path, data) for path, data in members.items() if predicate(posixpath.basename(path))]
    if not matches:
        return None
    return min(matches, key=lambda item: (item[0].count("/"), item[0]))


def _license_from_package_json(package_json: dict) -> Optional[str]:
    value = package_json.get("license")
    if isinstance(value, dict):
        value = value.get("type")
    if not value:
        licenses = package_json.get("licenses")
        if isinstance(licenses, list) and licenses:
            first = licenses[0]
            value = first.get("type") if isinstance(first, dict) else first
    return normalize_license_id(value) if isinstance(value, str) and value.strip() else None


def extract_info_from_archive(identity: PackageIdentity) -> PackageRecord:
    """Download the identity's archive and read its license and dependencies.

    Raises:
        ResolutionError: when the archive cannot be downloaded or opened.
    """
    url = archive_url_from_resolution(identity.resolution)
    if not url:
        raise ResolutionError(f"No archive URL in resolution of {identity.name}")

    status, payload = registry.get_bytes(url)
    if status != 200 or not payload:
        raise ResolutionError(f"Failed to download archive {url} (status {status})", status)
    try:
        members = _read_members(payload, url)
    except (tarfile.TarError, zipfile.BadZipFile, OSError, EOFError) as exc:
        raise ResolutionError(f"Failed to extract from archive {url}: {exc}") from exc

    package_json: dict = {}
    found = _shallowest(members, lambda base: base == "package.json")
    if found:
        try:
            parsed = json.loads(found[1].decode("utf-8", errors="replace"))
            package_json = parsed if isinstance(parsed, dict) else {}
        except json.JSONDecodeError:
            logger.debug("Ignoring invalid package.json in %s", url)

    license_id = _license_from_package_json(package_json)
    debug_info = None
    if not license_id:
        license_file = _shallowest(members, lambda base: base.lower() in _LICENSE_NAMES)
        if license_file:
            text = license_file[1].decode("utf-8", errors="replace")
            license_id = detect_license_from_text(text)
            if not license_id:
                preview = " ".join(text.split())[:100]
                debug_info = f"License file found but type unknown. Preview: {preview}..."
        else:
            debug_info = f"No license information found in archive: {url}"
    license_id = license_id or Constants.UNKNOWN_LICENSE

    return PackageRecord.from_identity(
        identity,
        registry=identity.registry or Registries.NPM.value,
        display_name=f"{identity.name}@{identity.version}",
        license=license_id,
        license_url=get_license_url(license_id),
        url=f"{Constants.PACKAGE_URL_NPM}{identity.name}",
        debug_info=debug_info,
        dependencies=dependencies_from_package_json(package_json),
        processed=True,
    )
