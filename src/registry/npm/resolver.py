"""NPM registry resolver: license, license URL and dependencies from the packument."""

from __future__ import annotations

import json
import logging
from typing import Any, List, Optional, Tuple
from urllib.parse import quote

from constants import Constants, Registries
from common.logging_utils import extra_context, is_debug_enabled, Timer, safe_url
from engine.models import PackageIdentity, PackageRecord
from licenses import detect_license_from_text, get_license_url, normalize_license_id
from registry.errors import ResolutionError
from registry import archive
from registry.github import resolver as github_resolver
import registry.npm as npm_pkg

logger = logging.getLogger(__name__)

_RAW_RESPONSE_LIMIT = 10000


def _clean_name(name: str) -> str:
    return name.strip("\"' ")


def lookup_name(identity: PackageIdentity) -> str:
    """Registry name to query, following ``alias@npm:real@range`` resolutions."""
    name = _clean_name(identity.name)
    if name.lower().startswith(Constants.REPOSITORY_MARKER):
        # github:owner/repo is often published as "repo"
        parts = name[len(Constants.REPOSITORY_MARKER):].split("/")
        return parts[1] if len(parts) >= 2 else name
    resolution = identity.resolution
    if "@npm:" in resolution:
        target = resolution.split("@npm:", 1)[1]
        if target and (target[0].isalpha() or target[0] == "@"):
            at = target.find("@", 1)
            return target[:at] if at != -1 else target
    return name


def registry_url(name: str) -> str:
    return f"{Constants.REGISTRY_URL_NPM}{quote(name, safe='')}"


def is_github_resolution(resolution: str) -> bool:
    lowered = resolution.lower()
    return Constants.REPOSITORY_MARKER in lowered or "github.com" in lowered


def _license_value(data: Any) -> Optional[str]:
    """Read ``license`` (string or object) or the legacy ``licenses`` array."""
    if not isinstance(data, dict):
        return None
    value = data.get("license")
    if isinstance(value, dict):
        value = value.get("type")
    if isinstance(value, str) and value.strip():
        return normalize_license_id(value)
    licenses = data.get("licenses")
    if isinstance(licenses, list) and licenses:
        first = licenses[0]
        value = first.get("type") if isinstance(first, dict) else first
        if isinstance(value, str) and value.strip():
            return normalize_license_id(value)
    return None


def _latest_version(packument: dict) -> Optional[str]:
    tags = packument.get("dist-tags")
    if isinstance(tags, dict) and isinstance(tags.get("latest"), str):
        return tags["latest"]
    return None


def _select_version_data(packument: dict, version: str) -> dict:
    versions = packument.get("versions")
    if not isinstance(versions, dict):
        return {}
    data = versions.get(version)
    if data is None:
        latest = _latest_version(packument)
        data = versions.get(latest) if latest else None
    return data if isinstance(data, dict) else {}


def extract_license_info_with_debug(packument: dict, version: str) -> Tuple[str, str]:
    """Return (license, debug text); looks at the version, then latest, then top level."""
    notes: List[str] = []
    versions = packument.get("versions") if isinstance(packument.get("versions"), dict) else {}

    if version in versions:
        found = _license_value(versions[version])
        if found:
            return found, ""
        notes.append(f"No license field in version {version}")
    else:
        notes.append(f"Version {version} not found in package metadata")

    latest = _latest_version(packument)
    if latest and latest != version and latest in versions:
        found = _license_value(versions[latest])
        if found:
            return found, ""
        notes.append(f"Could not find license in latest version {latest}")

    found = _license_value(packument)
    if found:
        return found, ""
    notes.append("No top-level license field in package metadata")
    return Constants.UNKNOWN_LICENSE, "; ".join(notes)


def extract_license_url(packument: dict, license_id: str) -> Optional[str]:
    """Canonical URL for the license, else one found in the metadata or repository."""
    canonical = get_license_url(license_id)
    if canonical:
        return canonical
    for key in ("license_url", "licenseUrl"):
        if isinstance(packument.get(key), str):
            return packument[key]
    license_obj = packument.get("license")
    if isinstance(license_obj, dict) and isinstance(license_obj.get("url"), str):
        return license_obj["url"]
    if license_id != Constants.UNKNOWN_LICENSE:
        return None
    repo = packument.get("repository")
    repo_url = repo.get("url") if isinstance(repo, dict) else repo
    if isinstance(repo_url, str) and "github.com" in repo_url:
        return github_resolver.license_file_url(repo_url, "HEAD")
    return None


def extract_dependencies(packument: dict, version: str) -> List[PackageIdentity]:
    deps = _select_version_data(packument, version).get("dependencies") or {}
    if not isinstance(deps, dict):
        return []
    return [
        github_resolver.npm_dependency_identity(name, spec)
        for name, spec in deps.items()
        if isinstance(spec, str)
    ]


def try_detect_license_from_url(url: str) -> Optional[str]:
    """Download a license file and detect its type; None when undetectable."""
    fetch_url = url
    if "github.com" in url and "/blob/" in url:
        normalized = github_resolver.normalize_github_url(url)
        if normalized:
            owner, repo = normalized[len(Constants.GITHUB_URL):].split("/", 1)
            ref, _, path = url.split("/blob/", 1)[1].partition("/")
            fetch_url = github_resolver.raw_file_url(owner, repo, ref, path)
    status, _, text = npm_pkg.robust_get(fetch_url, timeout=Constants.LICENSE_FETCH_TIMEOUT)
    if status != 200:
        raise ResolutionError(f"Failed to download license: HTTP status {status}", status)
    return detect_license_from_text(text)


def _fetch_packument(name: str) -> Tuple[int, Optional[dict], str]:
    url = registry_url(name)
    with Timer() as timer:
        status, _, text = npm_pkg.robust_get(url, headers={"Accept": "application/json"})
    if is_debug_enabled(logger):
        logger.debug(
            "npm registry response",
            extra=extra_context(
                event="http_response", component="npm", action="GET",
                status_code=status, duration_ms=timer.duration_ms(), target=safe_url(url),
                package_manager="npm"
            )
        )
    if status != 200:
        return status, None, text
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise ResolutionError(f"Failed to parse JSON from npm registry: {exc}") from exc
    if not isinstance(data, dict):
        raise ResolutionError("Unexpected npm registry payload")
    return status, data, text


def _build_record(identity: PackageIdentity, name: str, packument: dict, raw: str) -> PackageRecord:
    version = identity.version
    license_id, license_debug = extract_license_info_with_debug(packument, version)
    license_url = extract_license_url(packument, license_id)
    debug_info = license_debug or None

    if license_id == Constants.UNKNOWN_LICENSE and license_url:
        try:
            detected = try_detect_license_from_url(license_url)
        except ResolutionError as exc:
            debug_info = f"{license_debug}; Failed to download license from URL: {license_url} ({exc})"
        else:
            if detected:
                license_id = detected
                debug_info = f"License detected from URL: {license_url}"
            else:
                debug_info = f"{license_debug}; Attempted license detection from URL: {license_url}"

    return PackageRecord.from_identity(
        identity,
        registry=Registries.NPM.value,
        display_name=f"{name}@{version}",
        license=license_id,
        license_url=license_url,
        url=f"{Constants.PACKAGE_URL_NPM}{name}",
        debug_info=debug_info,
        dependencies=extract_dependencies(packument, version),
        processed=True,
        raw_api_response=raw[:_RAW_RESPONSE_LIMIT] if Constants.KEEP_RAW_RESPONSES else None,
    )


def try_npm_registry(identity: PackageIdentity) -> Optional[PackageRecord]:
    """Look the package up on npm; None when it is not published there."""
    name = lookup_name(identity)
    try:
        status, packument, raw = _fetch_packument(name)
    except ResolutionError:
        return None
    if packument is None:
        return None
    return _build_record(identity, name, packument, raw)


def get_package_info(identity: PackageIdentity) -> PackageRecord:
    """Resolve an npm package.

    GitHub and archive resolutions are looked up on npm first, since many of
    them are published there too, then fall back to their own source.

    Raises:
        ResolutionError: on network failure or a non-2xx registry response.
    """
    if is_github_resolution(identity.resolution):
        record = try_npm_registry(identity)
        if record is not None:
            logger.info("GitHub package %s found in npm registry", identity.name)
            return record
        logger.info("GitHub package %s not found in npm, using GitHub API", identity.name)
        return github_resolver.get_package_info(identity)

    if archive.is_archive_url(identity.resolution):
        record = try_npm_registry(identity)
        if record is not None:
            return record
        logger.info("Archive package %s not found in npm, downloading and extracting", identity.name)
        return archive.extract_info_from_archive(identity)

    if identity.name.startswith('resolution: "'):
        return PackageRecord.from_identity(
            identity,
            registry=Registries.NPM.value,
            license=Constants.UNKNOWN_LICENSE,
            debug_info="Entry is a resolution definition, not a package",
            processed=True,
        )

    name = lookup_name(identity)
    status, packument, raw = _fetch_packument(name)
    if status == 0:
        raise ResolutionError(f"Network error when contacting npm registry: {raw}")
    if packument is None:
        raise ResolutionError(f"npm registry returned status code {status}", status)
    return _build_record(identity, name, packument, raw)
