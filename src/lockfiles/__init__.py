"""Manifest parsers feeding the resolution engine.

- yarn.py: yarn.lock (classic and Berry)
- npm.py: package-lock.json
- poetry.py: poetry.lock and pyproject.toml
- csproj.py: .csproj PackageReference items
- discovery.py: manifest search and dispatch by file name
"""

from .common import LockfileError, fallback_checksum
from .discovery import find_lockfiles, parse_lockfile
from .yarn import extract_package_name

__all__ = [
    "LockfileError",
    "fallback_checksum",
    "find_lockfiles",
    "parse_lockfile",
    "extract_package_name",
]
