"""License identification from free text and loose identifiers."""

from __future__ import annotations

import re
from typing import List, Optional, Tuple

# Ordered: more specific texts must be tried before the ones they contain
# (LGPL before GPL, BSD-3 before BSD-2).
_LICENSE_PATTERNS: List[Tuple[str, re.Pattern]] = [
    ("LGPL-2.1", re.compile(r"GNU Lesser General Public License.*Version 2\.1", re.I | re.S)),
    ("LGPL-3.0", re.compile(r"GNU Lesser General Public License.*Version 3", re.I | re.S)),
    ("GPL-3.0", re.compile(r"GNU General Public License.*Version 3", re.I | re.S)),
    ("GPL-2.0", re.compile(r"GNU General Public License.*Version 2", re.I | re.S)),
    ("Apache-2.0", re.compile(
        r"Apache License.*Version 2\.0|Licensed under the Apache License, Version 2\.0", re.I | re.S)),
    ("MPL-2.0", re.compile(r"Mozilla Public License.*Version 2\.0|MPL 2\.0", re.I | re.S)),
    ("EPL-2.0", re.compile(r"Eclipse Public License.*2\.0|EPL-2\.0", re.I | re.S)),
    ("ISC", re.compile(r"ISC License.*Permission to use, copy, modify, and/or distribute", re.I | re.S)),
    ("MIT", re.compile(
        r"Permission is hereby granted, free of charge,.*MIT License"
        r"|The MIT License \(MIT\)"
        r"|MIT License Copyright"
        r"|Permission is hereby granted, free of charge,.*subject to the following conditions",
        re.I | re.S)),
    ("BSD-3-Clause", re.compile(
        r"redistribution and use.*permitted provided that.*conditions are met.*neither the name.*nor the names of"
        r"|3-Clause BSD License",
        re.I | re.S)),
    ("BSD-2-Clause", re.compile(
        r"redistribution and use.*permitted provided that.*conditions are met.*binary form must", re.I | re.S)),
    ("Unlicense", re.compile(
        r"This is free and unencumbered software released into the public domain", re.I | re.S)),
    ("CC0-1.0", re.compile(
        r"Creative Commons Legal Code.*CC0 1\.0|CC0 1\.0 Universal", re.I | re.S)),
]

_ALIASES = {
    "mit": "MIT",
    "mit license": "MIT",
    "apache2": "Apache-2.0",
    "apache 2": "Apache-2.0",
    "apache2.0": "Apache-2.0",
    "apache 2.0": "Apache-2.0",
    "apache-2": "Apache-2.0",
    "apache license 2.0": "Apache-2.0",
    "apache license, version 2.0": "Apache-2.0",
    "apache software license": "Apache-2.0",
    "bsd": "BSD-3-Clause",
    "bsd-3": "BSD-3-Clause",
    "bsd license": "BSD-3-Clause",
    "new bsd license": "BSD-3-Clause",
    "bsd-2": "BSD-2-Clause",
    "simplified bsd license": "BSD-2-Clause",
    "gpl": "GPL-3.0",
    "gpl3": "GPL-3.0",
    "gplv3": "GPL-3.0",
    "gpl-3": "GPL-3.0",
    "gpl2": "GPL-2.0",
    "gplv2": "GPL-2.0",
    "gpl-2": "GPL-2.0",
    "isc license": "ISC",
    "isc license (iscl)": "ISC",
    "public domain": "Unlicense",
}

# Trove classifiers on PyPI, matched as substrings.
_CLASSIFIER_LICENSES = [
    ("License :: OSI Approved :: MIT License", "MIT"),
    ("License :: OSI Approved :: Apache Software License", "Apache-2.0"),
    ("License :: OSI Approved :: BSD 3-Clause License", "BSD-3-Clause"),
    ("License :: OSI Approved :: BSD 2-Clause License", "BSD-2-Clause"),
    ("License :: OSI Approved :: BSD License", "BSD-3-Clause"),
    ("License :: OSI Approved :: GNU Lesser General Public License v3 (LGPLv3)", "LGPL-3.0"),
    ("License :: OSI Approved :: GNU Lesser General Public License v2.1 (LGPLv2.1)", "LGPL-2.1"),
    ("License :: OSI Approved :: GNU General Public License v3 (GPLv3)", "GPL-3.0"),
    ("License :: OSI Approved :: GNU General Public License v2 (GPLv2)", "GPL-2.0"),
    ("License :: OSI Approved :: Mozilla Public License 2.0 (MPL 2.0)", "MPL-2.0"),
    ("License :: OSI Approved :: ISC License (ISCL)", "ISC"),
    ("License :: OSI Approved :: Python Software Foundation License", "PSF"),
    ("License :: OSI Approved :: zlib/libpng License", "Zlib"),
    ("License :: CC0 1.0 Universal (CC0 1.0) Public Domain Dedication", "CC0-1.0"),
    ("License :: Public Domain", "Unlicense"),
]
_OSI_PREFIX = "License :: OSI Approved :: "


def detect_license_from_text(text: str) -> Optional[str]:
    """Attempt to detect the license type from license file text."""
    if not text:
        return None
    for license_id, pattern in _LICENSE_PATTERNS:
        if pattern.search(text):
            return license_id
    return None


def normalize_license_id(license_id: str) -> str:
    """Clean up commonly found license variations; unknown ids pass through."""
    cleaned = license_id.strip()
    if cleaned.startswith("(") and cleaned.endswith(")") and " " not in cleaned[1:-1]:
        cleaned = cleaned[1:-1]
    return _ALIASES.get(cleaned.lower(), cleaned)


def license_from_classifiers(classifiers) -> Optional[str]:
    """Map PyPI trove classifiers to an SPDX-like id."""
    for classifier in classifiers or []:
        if not isinstance(classifier, str):
            continue
        for pattern, license_id in _CLASSIFIER_LICENSES:
            if pattern in classifier:
                return license_id
        if _OSI_PREFIX in classifier:
            name = classifier.split(_OSI_PREFIX, 1)[1].strip()
            if "MIT" in name:
                return "MIT"
            if "Apache" in name:
                return "Apache-2.0"
            if "BSD" in name:
                return "BSD-2-Clause" if "2" in name else "BSD-3-Clause"
            return normalize_license_id(name)
    return None
