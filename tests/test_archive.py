"""Tests for license discovery inside package archives."""

import io
import json
import tarfile
import zipfile
from unittest.mock import patch

import pytest

from engine.models import PackageIdentity
from registry.archive import archive_url_from_resolution, extract_info_from_archive, is_archive_url
from registry.errors import ResolutionError

MIT_TEXT = (
    "Permission is hereby granted, free of charge, to any person obtaining a copy of this software, "
    "subject to the following conditions:"
)


def make_tgz(files):
    buf = io.BytesIO()
    with tarfile.open(fileobj=buf, mode="w:gz") as tf:
        for path, text in files.items():
            data = text.encode("utf-8")
            info = tarfile.TarInfo(path)
            info.size = len(data)
            tf.addfile(info, io.BytesIO(data))
    return buf.getvalue()


def make_zip(files):
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w") as zf:
        for path, text in files.items():
            zf.writestr(path, text)
    return buf.getvalue()


def _ident(resolution):
    return PackageIdentity(name="pkg", version="1.0.0", resolution=resolution)


class TestArchiveUrls:
    """Recognising archive resolutions."""

    @pytest.mark.parametrize("resolution, expected", [
        ("https://example.com/pkg-1.0.0.tgz", "https://example.com/pkg-1.0.0.tgz"),
        ("https://example.com/pkg.zip?token=1", "https://example.com/pkg.zip?token=1"),
        ("pkg@patch:pkg@npm%3A1.0.0#./p.patch::__archiveUrl=https%3A%2F%2Fx.test%2Fp.tgz",
         "https://x.test/p.tgz"),
        ("pkg@npm:1.0.0", None),
        ("", None),
    ])
    def test_archive_url_from_resolution(self, resolution, expected):
        assert archive_url_from_resolution(resolution) == expected
        assert is_archive_url(resolution) is (expected is not None)


class TestExtractInfo:
    """Reading package.json and license files from the downloaded archive."""

    def test_package_json_license(self):
        payload = make_tgz({
            "package/package.json": json.dumps({"name": "pkg", "license": "ISC", "dependencies": {"a": "1.0.0"}}),
        })
        with patch("registry.get_bytes", return_value=(200, payload)):
            record = extract_info_from_archive(_ident("https://example.com/pkg-1.0.0.tgz"))

        assert record.license == "ISC"
        assert record.license_url == "https://opensource.org/licenses/ISC"
        assert [d.name for d in record.dependencies] == ["a"]

    def test_license_file_detected(self):
        payload = make_tgz({
            "package/package.json": json.dumps({"name": "pkg"}),
            "package/LICENSE": MIT_TEXT,
        })
        with patch("registry.get_bytes", return_value=(200, payload)):
            record = extract_info_from_archive(_ident("https://example.com/pkg-1.0.0.tgz"))
        assert record.license == "MIT"

    def test_shallowest_package_json_wins(self):
        payload = make_zip({
            "pkg/node_modules/inner/package.json": json.dumps({"license": "GPL-3.0"}),
            "pkg/package.json": json.dumps({"license": "MIT"}),
        })
        with patch("registry.get_bytes", return_value=(200, payload)):
            record = extract_info_from_archive(_ident("https://example.com/pkg.zip"))
        assert record.license == "MIT"

    def test_unrecognised_license_file(self):
        payload = make_tgz({"package/LICENSE": "All rights reserved."})
        with patch("registry.get_bytes", return_value=(200, payload)):
            record = extract_info_from_archive(_ident("https://example.com/pkg-1.0.0.tgz"))
        assert record.license == "UNKNOWN"
        assert record.debug_info.startswith("License file found but type unknown. Preview: All rights reserved.")

    def test_no_license_anywhere(self):
        payload = make_tgz({"package/index.js": "module.exports = 1"})
        with patch("registry.get_bytes", return_value=(200, payload)):
            record = extract_info_from_archive(_ident("https://example.com/pkg-1.0.0.tgz"))
        assert record.license == "UNKNOWN"
        assert "No license information found in archive" in record.debug_info

    def test_download_failure_raises(self):
        with patch("registry.get_bytes", return_value=(404, b"")):
            with pytest.raises(ResolutionError):
                extract_info_from_archive(_ident("https://example.com/pkg-1.0.0.tgz"))

    def test_corrupt_archive_raises(self):
        with patch("registry.get_bytes", return_value=(200, b"not an archive")):
            with pytest.raises(ResolutionError, match="Failed to extract"):
                extract_info_from_archive(_ident("https://example.com/pkg-1.0.0.tgz"))

    def test_archive_fallback_from_npm_resolver(self):
        from registry.npm.resolver import get_package_info

        payload = make_tgz({"package/package.json": json.dumps({"license": "MIT"})})
        with patch("registry.npm.robust_get", return_value=(404, {}, "Not Found")), \
                patch("registry.get_bytes", return_value=(200, payload)):
            record = get_package_info(_ident("https://example.com/pkg-1.0.0.tgz"))
        assert record.license == "MIT"
