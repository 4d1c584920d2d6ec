"""NuGet registry package.

- resolver.py: nuspec download from the V3 flat container, license and
  dependency-group extraction

Patch points: tests monkeypatch ``registry.nuget.robust_get``.
"""

from common.http_client import robust_get  # noqa: F401

from .resolver import (  # noqa: F401
    get_package_info,
    extract_license,
    extract_dependencies,
    range_lower_bound,
    nuspec_url,
)

__all__ = [
    "get_package_info",
    "extract_license",
    "extract_dependencies",
    "range_lower_bound",
    "nuspec_url",
    "robust_get",
]
