"""Allow-list matching for license identifiers."""

from __future__ import annotations

import re
from typing import Iterable, List


class LicenseChecker:
    """Checks licenses against allowed patterns; ``*`` matches any run of characters.

    An empty allow-list allows every license.
    """

    def __init__(self, allowed_patterns: Iterable[str] = ()):
        self.allowed_patterns: List[str] = [p.strip() for p in allowed_patterns if p and p.strip()]
        self._compiled = [self._compile(p) for p in self.allowed_patterns]

    @staticmethod
    def _compile(pattern: str) -> re.Pattern:
        parts = (re.escape(chunk) for chunk in pattern.split("*"))
        return re.compile("^" + ".*".join(parts) + "$")

    @property
    def enabled(self) -> bool:
        return bool(self.allowed_patterns)

    def is_allowed(self, license_id: str) -> bool:
        if not self._compiled:
            return True
        return any(regex.match(license_id) for regex in self._compiled)
