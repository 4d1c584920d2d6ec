"""GitHub-hosted packages.

- resolver.py: license via the repository license API, dependencies from
  the package.json at the referenced commit

Patch points: tests monkeypatch ``registry.github.get_json`` and
``registry.github.robust_get``.
"""

from common.http_client import get_json, robust_get  # noqa: F401

from .resolver import (  # noqa: F401
    get_package_info,
    extract_github_details,
    normalize_github_url,
    license_file_url,
    raw_file_url,
)

__all__ = [
    "get_package_info",
    "extract_github_details",
    "normalize_github_url",
    "license_file_url",
    "raw_file_url",
    "get_json",
    "robust_get",
]
