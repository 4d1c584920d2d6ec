"""Tests for the PyPI resolver."""

from unittest.mock import patch

import pytest

from engine.models import PackageIdentity
from registry.errors import ResolutionError
from registry.pypi.resolver import (
    extract_license,
    get_package_info,
    is_concrete_version,
    parse_requires_dist,
)

APACHE_TEXT = "Apache License\nVersion 2.0, January 2004\nhttp://www.apache.org/licenses/"


class TestExtractLicense:
    """License lookup order in the release info."""

    def test_expression_wins(self):
        assert extract_license({"license_expression": "MIT", "license": "BSD"}) == ("MIT", None)

    def test_short_license_field(self):
        assert extract_license({"license": "Apache 2.0"}) == ("Apache-2.0", None)

    def test_full_text_is_detected(self):
        license_id, note = extract_license({"license": APACHE_TEXT})
        assert license_id == "Apache-2.0"
        assert note

    def test_classifiers(self):
        info = {"license": "", "classifiers": ["License :: OSI Approved :: BSD License"]}
        assert extract_license(info) == ("BSD-3-Clause", None)

    def test_unknown(self):
        license_id, note = extract_license({})
        assert license_id == "UNKNOWN"
        assert "classifier" in note


class TestRequiresDist:
    """Dependency identities from requires_dist."""

    def test_pins_and_ranges(self):
        deps = parse_requires_dist([
            "charset-normalizer (<4,>=2)",
            "idna==3.4",
            "urllib3<3",
            "PySocks!=1.5.7,>=1.5.6; extra == \"socks\"",
            "typing_extensions>=4.0; python_version < \"3.11\"",
        ])
        assert [(d.name, d.version) for d in deps] == [
            ("charset-normalizer", "2"),
            ("idna", "3.4"),
            ("urllib3", "latest"),
            ("typing-extensions", "4.0"),
        ]
        assert all(d.registry == "pypi" for d in deps)

    def test_duplicates_and_empty(self):
        assert parse_requires_dist(None) == []
        deps = parse_requires_dist(["Foo>=1", "foo>=2"])
        assert [(d.name, d.version) for d in deps] == [("foo", "1")]

    @pytest.mark.parametrize("version, expected", [
        ("1.2.3", True), ("2.0rc1", True), ("latest", False), ("", False), ("not a version", False),
    ])
    def test_is_concrete_version(self, version, expected):
        assert is_concrete_version(version) is expected


class TestGetPackageInfo:
    """Resolution against a patched JSON API."""

    def _routes(self, routes):
        def _get(url, headers=None, **kwargs):
            return routes.get(url, (404, {}, None))
        return _get

    def test_pinned_release(self):
        routes = {
            "https://pypi.org/pypi/requests/2.31.0/json": (200, {}, {"info": {
                "name": "requests", "version": "2.31.0", "license": "Apache 2.0",
                "requires_dist": ["idna<4,>=2.5"],
            }}),
        }
        with patch("registry.pypi.get_json", side_effect=self._routes(routes)):
            record = get_package_info(PackageIdentity(name="Requests", version="2.31.0", registry="pypi"))

        assert record.license == "Apache-2.0"
        assert record.url == "https://pypi.org/project/requests/"
        assert record.display_name == "requests@2.31.0"
        assert record.version == "2.31.0"
        assert record.dependencies[0].name == "idna"

    def test_missing_release_falls_back_to_latest(self):
        routes = {
            "https://pypi.org/pypi/six/json": (200, {}, {"info": {"name": "six", "version": "1.16.0", "license": "MIT"}}),
        }
        with patch("registry.pypi.get_json", side_effect=self._routes(routes)):
            record = get_package_info(PackageIdentity(name="six", version="0.0.1", registry="pypi"))
        assert record.license == "MIT"

    def test_latest_uses_reported_version_for_display(self):
        routes = {
            "https://pypi.org/pypi/six/json": (200, {}, {"info": {"name": "six", "version": "1.16.0", "license": "MIT"}}),
        }
        with patch("registry.pypi.get_json", side_effect=self._routes(routes)):
            record = get_package_info(PackageIdentity(name="six", version="latest", registry="pypi"))
        assert record.display_name == "six@1.16.0"
        assert record.version == "latest"

    def test_not_found_raises(self):
        with patch("registry.pypi.get_json", return_value=(404, {}, None)):
            with pytest.raises(ResolutionError) as exc:
                get_package_info(PackageIdentity(name="nope", version="latest", registry="pypi"))
        assert exc.value.status_code == 404

    def test_server_error_raises_without_fallback(self):
        with patch("registry.pypi.get_json", return_value=(503, {}, None)) as get:
            with pytest.raises(ResolutionError):
                get_package_info(PackageIdentity(name="six", version="1.0.0", registry="pypi"))
        assert get.call_count == 1
