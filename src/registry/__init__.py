"""Registry resolvers.

Each subpackage turns a PackageIdentity into a PackageRecord for one
source: npm, github, pypi and nuget. archive.py reads packages shipped as
downloadable tarballs or zips, and dispatch.py routes an identity to the
right resolver.

Patch points: tests monkeypatch ``registry.get_bytes`` for archive downloads.
"""

from common.http_client import get_bytes, get_json, robust_get  # noqa: F401
from registry.errors import ResolutionError  # noqa: F401

from .dispatch import resolve_package  # noqa: F401

__all__ = ["ResolutionError", "resolve_package", "get_bytes", "get_json", "robust_get"]
