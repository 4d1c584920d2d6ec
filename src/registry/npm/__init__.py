"""NPM registry package.

- resolver.py: packument lookup, license extraction and dependency discovery

Patch points: tests monkeypatch ``registry.npm.robust_get``.
"""

from common.http_client import robust_get  # noqa: F401

from .resolver import (  # noqa: F401
    get_package_info,
    try_npm_registry,
    extract_license_info_with_debug,
    extract_license_url,
    extract_dependencies,
    lookup_name,
)

__all__ = [
    "get_package_info",
    "try_npm_registry",
    "extract_license_info_with_debug",
    "extract_license_url",
    "extract_dependencies",
    "lookup_name",
    "robust_get",
]
