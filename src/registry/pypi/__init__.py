"""PyPI registry package.

- resolver.py: release metadata, license fields and requires_dist parsing

Patch points: tests monkeypatch ``registry.pypi.get_json``.
"""

from common.http_client import get_json  # noqa: F401

from .resolver import (  # noqa: F401
    get_package_info,
    extract_license,
    parse_requires_dist,
    is_concrete_version,
)

__all__ = [
    "get_package_info",
    "extract_license",
    "parse_requires_dist",
    "is_concrete_version",
    "get_json",
]
