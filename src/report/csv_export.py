"""CSV export of unique packages (``name,url,license``)."""
from __future__ import annotations

import csv
import logging
import sys
from typing import Dict, List, Optional, Sequence, TextIO

import semantic_version

from constants import Constants
from engine.models import PackageRecord

logger = logging.getLogger(__name__)

HEADERS = ["name", "url", "license"]


def normalize_version(version: str) -> str:
    """Comparable form of a version: range markers and prerelease tags dropped.

    ``^1.2`` and ``1.2.0-beta.1`` both become ``1.2.0``.
    """
    text = version.lstrip("^~")
    try:
        coerced = semantic_version.Version.coerce(text)
    except ValueError:
        return text.split("-", 1)[0]
    return f"{coerced.major}.{coerced.minor}.{coerced.patch}"


def unique_package_key(record: PackageRecord) -> str:
    name = record.name
    if name.startswith(Constants.REPOSITORY_MARKER):
        name = name[len(Constants.REPOSITORY_MARKER):]
    return f"{name.lower()}|{normalize_version(record.version)}|{record.url.lower()}"


def unique_packages(records: Sequence[PackageRecord]) -> List[PackageRecord]:
    """One record per normalized key, preferring a known license, sorted by key."""
    chosen: Dict[str, PackageRecord] = {}
    for record in records:
        key = unique_package_key(record)
        existing = chosen.get(key)
        if existing is None or (existing.is_unknown and not record.is_unknown):
            chosen[key] = record

    result = []
    emitted = set()
    for key in sorted(chosen):
        record = chosen[key]
        output_key = (record.name, record.url)
        if output_key in emitted:
            continue
        emitted.add(output_key)
        result.append(record)
    return result


def _clean(value: str) -> str:
    return value.replace(",", " ").replace('"', "'")


def write_csv(records: Sequence[PackageRecord], stream: TextIO) -> int:
    """Write the CSV to ``stream``; returns the number of data rows."""
    rows = [[_clean(r.name), _clean(r.url), _clean(r.license)] for r in unique_packages(records)]
    writer = csv.writer(stream, quoting=csv.QUOTE_ALL, lineterminator="\n")
    writer.writerow(HEADERS)
    writer.writerows(rows)
    return len(rows)


def export_csv(records: Sequence[PackageRecord], path: Optional[str] = None) -> bool:
    """Write the CSV to ``path``, or to stdout when no path is given."""
    if path is None:
        write_csv(records, sys.stdout)
        return True
    try:
        with open(path, 'w', newline='', encoding='utf-8') as file:
            count = write_csv(records, file)
        logging.info("CSV data written to %s (%d packages)", path, count)
        return True
    except (OSError, csv.Error) as e:
        logging.error("CSV file couldn't be written to disk: %s", e)
        return False
