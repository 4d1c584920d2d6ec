"""Resolve packages that are addressed by a GitHub repository."""
from __future__ import annotations

import base64
import json
import logging
import os
import re
from typing import Dict, List, Optional, Tuple

from constants import Constants, Registries
from common.logging_utils import extra_context, is_debug_enabled
from engine.models import PackageIdentity, PackageRecord
from licenses import detect_license_from_text, get_license_url, normalize_license_id
from registry.errors import ResolutionError
import registry.github as github_pkg

logger = logging.getLogger(__name__)

LICENSE_FILE_PATTERNS = [
    "LICENSE",
    "LICENSE.txt",
    "LICENSE.md",
    "License",
    "License.txt",
    "License.md",
    "license",
    "COPYING",
    "COPYING.txt",
]

_REPO_IN_URL = re.compile(r"github\.com[/:]([^/\s#]+)/([^/\s#?]+)")


def _auth_headers() -> Dict[str, str]:
    headers = {"Accept": "application/vnd.github+json"}
    token = os.environ.get(Constants.ENV_GITHUB_TOKEN)
    if token:
        headers["Authorization"] = f"Bearer {token}"
    return headers


def _strip_git_suffix(repo: str) -> str:
    return repo[:-4] if repo.endswith(".git") else repo


def normalize_github_url(url: str) -> Optional[str]:
    """Normalize any GitHub repository URL form to https://github.com/owner/repo."""
    if not url or "github.com" not in url:
        return None
    match = _REPO_IN_URL.search(url.replace("git+", "").replace("git://", "https://"))
    if not match:
        return None
    return f"{Constants.GITHUB_URL}{match.group(1)}/{_strip_git_suffix(match.group(2))}"


def extract_github_details(identity: PackageIdentity) -> Tuple[str, str, str]:
    """Return (owner, repo, ref) for a repository-addressed identity.

    Raises:
        ResolutionError: when no repository can be found in the identity.
    """
    marker = Constants.REPOSITORY_MARKER
    candidates = [identity.resolution, identity.name]
    for text in candidates:
        if not text:
            continue
        ref = ""
        if "#" in text:
            text, ref = text.split("#", 1)
            ref = ref.replace("commit=", "").split("&", 1)[0]
        index = text.lower().find(marker)
        if index != -1:
            path = text[index + len(marker):].strip("/")
            parts = path.split("/")
            if len(parts) >= 2 and parts[0] and parts[1]:
                return parts[0], _strip_git_suffix(parts[1]), ref or "HEAD"
        match = _REPO_IN_URL.search(text)
        if match:
            return match.group(1), _strip_git_suffix(match.group(2)), ref or "HEAD"
    raise ResolutionError(f"Could not extract a GitHub repository from {identity.name} ({identity.resolution})")


def raw_file_url(owner: str, repo: str, ref: str, path: str) -> str:
    return f"https://raw.githubusercontent.com/{owner}/{repo}/{ref}/{path}"


def license_file_url(repo_url: str, ref: str) -> Optional[str]:
    """Find a license file in the repository at ``ref``.

    Falls back to a generic LICENSE link, the most common name, when none
    of the known names can be confirmed (rate limits included).
    """
    normalized = normalize_github_url(repo_url)
    if not normalized:
        return None
    owner, repo = normalized[len(Constants.GITHUB_URL):].split("/", 1)
    for pattern in LICENSE_FILE_PATTERNS:
        api_url = f"{Constants.GITHUB_API_BASE}/repos/{owner}/{repo}/contents/{pattern}?ref={ref}"
        status, _, _ = github_pkg.robust_get(api_url, headers=_auth_headers())
        if status == 200:
            return f"{normalized}/blob/{ref}/{pattern}"
        if status in (0, 403, 429):
            break
    return f"{normalized}/blob/{ref}/LICENSE"


def _decode_content(payload: dict) -> Optional[str]:
    content = payload.get("content")
    if not isinstance(content, str):
        return None
    try:
        return base64.b64decode(content).decode("utf-8", errors="replace")
    except (ValueError, TypeError):
        return None


def _fetch_license(owner: str, repo: str, ref: str) -> Tuple[str, Optional[str], List[str]]:
    """Return (license, license_url, debug notes) from the repository license API."""
    notes: List[str] = []
    api_url = f"{Constants.GITHUB_API_BASE}/repos/{owner}/{repo}/license?ref={ref}"
    status, _, data = github_pkg.get_json(api_url, headers=_auth_headers())
    if status == 0:
        raise ResolutionError(f"Network error when contacting GitHub API for {owner}/{repo}")
    if status != 200 or not isinstance(data, dict):
        notes.append(f"GitHub license API returned status {status}")
        return Constants.UNKNOWN_LICENSE, None, notes

    info = data.get("license") or {}
    spdx = info.get("spdx_id") if isinstance(info, dict) else None
    license_url = data.get("html_url")
    if spdx and spdx != "NOASSERTION":
        license_id = normalize_license_id(spdx)
        return license_id, get_license_url(license_id) or license_url, notes

    detected = detect_license_from_text(_decode_content(data) or "")
    if detected:
        notes.append(f"License detected from repository license file: {license_url}")
        return detected, license_url, notes
    notes.append(f"License file found at {license_url} but type could not be detected")
    return Constants.UNKNOWN_LICENSE, license_url, notes


def _fetch_package_json(owner: str, repo: str, ref: str) -> Optional[dict]:
    api_url = f"{Constants.GITHUB_API_BASE}/repos/{owner}/{repo}/contents/package.json?ref={ref}"
    status, _, data = github_pkg.get_json(api_url, headers=_auth_headers())
    if status != 200 or not isinstance(data, dict):
        return None
    text = _decode_content(data)
    if not text:
        return None
    try:
        parsed = json.loads(text)
    except json.JSONDecodeError:
        logger.debug("package.json of %s/%s is not valid JSON", owner, repo)
        return None
    return parsed if isinstance(parsed, dict) else None


def dependencies_from_package_json(package_json: dict) -> List[PackageIdentity]:
    """Build child identities from a package.json ``dependencies`` map."""
    deps = []
    for name, spec in (package_json.get("dependencies") or {}).items():
        if not isinstance(spec, str):
            continue
        deps.append(npm_dependency_identity(name, spec))
    return deps


def npm_dependency_identity(name: str, spec: str) -> PackageIdentity:
    """Identity for an npm dependency declared as ``name: spec``."""
    if spec.lower().startswith(Constants.REPOSITORY_MARKER):
        ref = spec.split("#", 1)[1] if "#" in spec else "HEAD"
        return PackageIdentity(name=name, version=ref, resolution=spec)
    version = spec.lstrip("^~")
    tarball_name = name.replace("@", "").replace("/", "-")
    return PackageIdentity(
        name=name,
        version=version,
        resolution=f"{Constants.REGISTRY_URL_NPM}{name}/-/{tarball_name}-{version}.tgz",
    )


def get_package_info(identity: PackageIdentity) -> PackageRecord:
    """Resolve a GitHub-hosted package.

    Raises:
        ResolutionError: when the repository cannot be identified or reached.
    """
    owner, repo, ref = extract_github_details(identity)
    if is_debug_enabled(logger):
        logger.debug(
            "Resolving GitHub package",
            extra=extra_context(
                event="function_entry", component="github", action="get_package_info",
                target=f"{owner}/{repo}#{ref}"
            )
        )

    license_id, license_url, notes = _fetch_license(owner, repo, ref)
    package_json = _fetch_package_json(owner, repo, ref) or {}

    # name and version stay those of the identity so graph edges line up
    display = package_json.get("name") or f"{owner}/{repo}"
    return PackageRecord.from_identity(
        identity,
        registry=Registries.GITHUB.value,
        display_name=f"{display}@{package_json.get('version') or ref}",
        license=license_id,
        license_url=license_url,
        url=f"{Constants.GITHUB_URL}{owner}/{repo}",
        debug_info="; ".join(notes) if license_id == Constants.UNKNOWN_LICENSE and notes else None,
        dependencies=dependencies_from_package_json(package_json),
        processed=True,
    )
