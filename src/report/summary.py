"""Standard license summary: per-package lines, totals and usage statistics."""
from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

from constants import Constants, Registries
from engine.models import PackageRecord
from licenses import LicenseChecker, get_license_url


@dataclass
class SummaryOptions:
    verbose: bool = False
    unknown: bool = False
    debug: bool = False
    retry: bool = False


def should_display(record: PackageRecord, is_allowed: bool, options: SummaryOptions) -> bool:
    """Debug shows everything, --unknown only UNKNOWN, otherwise violations (or all with -v)."""
    if options.debug:
        return True
    if options.unknown:
        return record.license == Constants.UNKNOWN_LICENSE
    return not is_allowed or options.verbose


def registry_label(record: PackageRecord) -> str:
    if record.registry in (Registries.NUGET.value, Registries.PYPI.value):
        return f"{record.registry}/{record.get_display_name()}"
    if record.display_name:
        return f"{record.registry or Registries.NPM.value}/{record.display_name}"
    return record.node_id


def format_package(record: PackageRecord, is_allowed: bool, options: SummaryOptions) -> List[str]:
    """Lines describing one package; empty when it is filtered out."""
    if not should_display(record, is_allowed, options):
        return []
    label = registry_label(record)
    license_url = f" ({record.license_url})" if record.license_url else ""
    flagged = not is_allowed or record.license == Constants.UNKNOWN_LICENSE
    detailed = options.verbose or options.debug or (flagged and options.unknown)

    if not detailed:
        if not flagged:
            return [f"{label}: {record.license}"]
        lines = [f"{label}: {record.license}{license_url}"]
        if record.license == Constants.UNKNOWN_LICENSE:
            lines.append(f"    Registry URL: {record.url}")
        return lines

    lines = [f"{label} ({record.url}): {record.license}{license_url}"]
    if record.debug_info:
        lines.append(f"    Info: {record.debug_info}")
    if options.debug and record.raw_api_response:
        lines.extend(["", "=== RAW API RESPONSE ===", record.raw_api_response, "=== END API RESPONSE ===", ""])
    return lines


def license_statistics(records: Sequence[PackageRecord]) -> List[Tuple[str, int, Optional[str]]]:
    """(license, count, url) sorted by frequency, most common first.

    The canonical URL of a well-known license wins over the first URL seen on
    a record.
    """
    counts: Counter = Counter()
    first_url: Dict[str, Optional[str]] = {}
    for record in records:
        counts[record.license] += 1
        first_url.setdefault(record.license, record.license_url)
    return [
        (license_id, count, get_license_url(license_id) or first_url.get(license_id))
        for license_id, count in sorted(counts.items(), key=lambda item: (-item[1], item[0]))
    ]


def render_summary(
    records: Sequence[PackageRecord],
    checker: LicenseChecker,
    options: SummaryOptions,
) -> Tuple[List[str], int]:
    """Render the summary report.

    Returns:
        Tuple of (lines, number of allow-list violations).
    """
    lines = ["", "=== DEPENDENCY LICENSE SUMMARY ===", ""]
    violations = 0
    unknown = 0
    for record in records:
        if record.license == Constants.UNKNOWN_LICENSE:
            unknown += 1
        allowed = checker.is_allowed(record.license)
        if not allowed:
            violations += 1
        lines.extend(format_package(record, allowed, options))

    total = len(records)
    lines.extend(["", f"Total packages processed: {total}"])
    if unknown:
        lines.append(f"Packages with unknown licenses: {unknown}")
    if checker.enabled:
        if violations:
            lines.append(f"{violations} with non-compliant licenses")
        else:
            lines.append("All licenses are compliant!")
        lines.append(f"Allowed license patterns: {', '.join(checker.allowed_patterns)}")
    if options.unknown:
        lines.extend(["", "Running in DEBUG mode - showing only packages with unknown licenses"])
        if options.retry:
            lines.append("Retry mode enabled - cached results for unknown licenses will be ignored")

    lines.extend(["", "=== LICENSE USAGE STATISTICS ==="])
    for license_id, count, url in license_statistics(records):
        display = f"{license_id} ({url})" if url else license_id
        percentage = count / total * 100.0 if total else 0.0
        suffix = "" if checker.is_allowed(license_id) else " [NOT ALLOWED]"
        lines.append(f"{display}: {count} packages ({percentage:.1f}%){suffix}")
    lines.extend(["", "Scan complete."])
    return lines, violations
