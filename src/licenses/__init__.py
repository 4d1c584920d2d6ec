"""License identification, canonical URLs and allow-list checks."""

from .checker import LicenseChecker
from .detection import detect_license_from_text, normalize_license_id, license_from_classifiers
from .urls import get_license_url

__all__ = [
    "LicenseChecker",
    "detect_license_from_text",
    "normalize_license_id",
    "license_from_classifiers",
    "get_license_url",
]
