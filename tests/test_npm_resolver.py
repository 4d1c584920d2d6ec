"""Tests for the npm registry resolver."""

import json
from unittest.mock import patch

import pytest

from engine.models import PackageIdentity
from registry.errors import ResolutionError
from registry.npm.resolver import (
    extract_dependencies,
    extract_license_info_with_debug,
    extract_license_url,
    get_package_info,
    lookup_name,
    registry_url,
    try_npm_registry,
)

MIT_TEXT = (
    "MIT License\n\nPermission is hereby granted, free of charge, to any person obtaining a copy "
    "of this software, subject to the following conditions: ..."
)


def routes_get(routes):
    """Fake robust_get serving fixed (status, headers, text) tuples by URL."""
    def _get(url, headers=None, timeout=None, **kwargs):
        return routes.get(url, (404, {}, "Not Found"))
    return _get


def packument(**versions):
    latest = list(versions)[-1] if versions else None
    return {"name": "pkg", "dist-tags": {"latest": latest}, "versions": versions}


class TestLicenseExtraction:
    """License lookup order in the packument."""

    def test_requested_version(self):
        doc = packument(**{"1.0.0": {"license": "MIT"}, "2.0.0": {"license": "ISC"}})
        assert extract_license_info_with_debug(doc, "1.0.0") == ("MIT", "")

    def test_falls_back_to_latest(self):
        doc = packument(**{"1.0.0": {}, "2.0.0": {"license": "ISC"}})
        assert extract_license_info_with_debug(doc, "1.0.0") == ("ISC", "")

    def test_missing_version_uses_latest(self):
        doc = packument(**{"2.0.0": {"license": "Apache-2.0"}})
        assert extract_license_info_with_debug(doc, "9.9.9")[0] == "Apache-2.0"

    def test_object_and_legacy_array(self):
        assert extract_license_info_with_debug(packument(**{"1.0.0": {"license": {"type": "BSD"}}}), "1.0.0")[0] \
            == "BSD-3-Clause"
        legacy = packument(**{"1.0.0": {"licenses": [{"type": "MIT", "url": "x"}]}})
        assert extract_license_info_with_debug(legacy, "1.0.0")[0] == "MIT"

    def test_top_level(self):
        doc = packument(**{"1.0.0": {}})
        doc["license"] = "mit"
        assert extract_license_info_with_debug(doc, "1.0.0")[0] == "MIT"

    def test_unknown_with_notes(self):
        license_id, notes = extract_license_info_with_debug(packument(**{"1.0.0": {}}), "1.0.0")
        assert license_id == "UNKNOWN"
        assert "No license field in version 1.0.0" in notes
        assert "No top-level license field" in notes


class TestHelpers:
    """Name lookup, URLs and dependencies."""

    def test_scoped_name_is_encoded(self):
        assert registry_url("@babel/core") == "https://registry.npmjs.org/%40babel%2Fcore"

    def test_alias_lookup(self):
        ident = PackageIdentity(
            name="string-width-cjs",
            version="4.2.3",
            resolution="string-width-cjs@npm:string-width@^4.2.0",
        )
        assert lookup_name(ident) == "string-width"

    def test_scoped_alias_lookup(self):
        ident = PackageIdentity(name="alias", version="1.0.0", resolution="alias@npm:@scope/real@1.0.0")
        assert lookup_name(ident) == "@scope/real"

    def test_repository_name_lookup(self):
        ident = PackageIdentity(name="github:owner/repo", version="1.0.0")
        assert lookup_name(ident) == "repo"

    def test_canonical_license_url(self):
        assert extract_license_url({}, "MIT") == "https://opensource.org/licenses/MIT"

    def test_license_url_from_metadata(self):
        assert extract_license_url({"license": {"url": "https://x.test/L"}}, "Custom") == "https://x.test/L"

    def test_dependencies_strip_ranges(self):
        doc = packument(**{"1.0.0": {"dependencies": {"a": "^1.2.3", "b": "~2.0.0", "c": "github:o/c#v1"}}})
        deps = extract_dependencies(doc, "1.0.0")
        assert deps[0] == PackageIdentity(
            name="a", version="1.2.3", resolution="https://registry.npmjs.org/a/-/a-1.2.3.tgz"
        )
        assert deps[1].version == "2.0.0"
        assert deps[2] == PackageIdentity(name="c", version="v1", resolution="github:o/c#v1")


class TestGetPackageInfo:
    """End-to-end resolution with a patched HTTP layer."""

    def test_resolves_license_and_dependencies(self):
        doc = packument(**{"1.0.0": {"license": "MIT", "dependencies": {"dep": "^2.0.0"}}})
        routes = {"https://registry.npmjs.org/pkg": (200, {}, json.dumps(doc))}
        with patch("registry.npm.robust_get", side_effect=routes_get(routes)):
            record = get_package_info(PackageIdentity(name="pkg", version="1.0.0"))

        assert record.license == "MIT"
        assert record.license_url == "https://opensource.org/licenses/MIT"
        assert record.url == "https://www.npmjs.com/package/pkg"
        assert record.display_name == "pkg@1.0.0"
        assert record.registry == "npm"
        assert [d.name for d in record.dependencies] == ["dep"]
        assert record.raw_api_response is None

    def test_not_found_raises(self):
        with patch("registry.npm.robust_get", side_effect=routes_get({})):
            with pytest.raises(ResolutionError) as exc:
                get_package_info(PackageIdentity(name="missing", version="1.0.0"))
        assert exc.value.status_code == 404

    def test_network_error_raises(self):
        with patch("registry.npm.robust_get", return_value=(0, {}, "timeout")):
            with pytest.raises(ResolutionError, match="Network error"):
                get_package_info(PackageIdentity(name="pkg", version="1.0.0"))

    def test_invalid_json_raises(self):
        routes = {"https://registry.npmjs.org/pkg": (200, {}, "<html>")}
        with patch("registry.npm.robust_get", side_effect=routes_get(routes)):
            with pytest.raises(ResolutionError):
                get_package_info(PackageIdentity(name="pkg", version="1.0.0"))

    def test_registry_tarball_resolution_uses_registry(self):
        doc = packument(**{"1.0.0": {"license": "ISC"}})
        routes = {"https://registry.npmjs.org/pkg": (200, {}, json.dumps(doc))}
        ident = PackageIdentity(
            name="pkg", version="1.0.0", resolution="https://registry.npmjs.org/pkg/-/pkg-1.0.0.tgz"
        )
        with patch("registry.npm.robust_get", side_effect=routes_get(routes)), \
                patch("registry.get_bytes") as download:
            record = get_package_info(ident)
        assert record.license == "ISC"
        download.assert_not_called()

    def test_unknown_license_detected_from_repository_file(self):
        doc = packument(**{"1.0.0": {}})
        doc["repository"] = {"type": "git", "url": "git+https://github.com/owner/pkg.git"}
        npm_routes = {
            "https://registry.npmjs.org/pkg": (200, {}, json.dumps(doc)),
            "https://raw.githubusercontent.com/owner/pkg/HEAD/LICENSE": (200, {}, MIT_TEXT),
        }
        gh_routes = {
            "https://api.github.com/repos/owner/pkg/contents/LICENSE?ref=HEAD": (200, {}, "{}"),
        }
        with patch("registry.npm.robust_get", side_effect=routes_get(npm_routes)), \
                patch("registry.github.robust_get", side_effect=routes_get(gh_routes)):
            record = get_package_info(PackageIdentity(name="pkg", version="1.0.0"))

        assert record.license == "MIT"
        assert record.license_url == "https://github.com/owner/pkg/blob/HEAD/LICENSE"
        assert record.debug_info.startswith("License detected from URL")

    def test_github_resolution_falls_back_to_github(self):
        ident = PackageIdentity(name="tool", version="abc123", resolution="tool@github:owner/tool#abc123")
        gh_json = {
            "https://api.github.com/repos/owner/tool/license?ref=abc123":
                (200, {}, {"license": {"spdx_id": "Apache-2.0"}, "html_url": "https://github.com/owner/tool"}),
        }
        with patch("registry.npm.robust_get", side_effect=routes_get({})), \
                patch("registry.github.get_json", side_effect=lambda url, headers=None: gh_json.get(url, (404, {}, None))):
            record = get_package_info(ident)

        assert record.registry == "github"
        assert record.license == "Apache-2.0"
        assert record.url == "https://github.com/owner/tool"
        assert record.name == "tool"
        assert record.version == "abc123"

    def test_resolution_pseudo_entry(self):
        ident = PackageIdentity(name='resolution: "foo@npm:1.0.0"', version="1.0.0")
        with patch("registry.npm.robust_get") as get:
            record = get_package_info(ident)
        get.assert_not_called()
        assert record.license == "UNKNOWN"

    def test_try_registry_returns_none_when_absent(self):
        with patch("registry.npm.robust_get", side_effect=routes_get({})):
            assert try_npm_registry(PackageIdentity(name="nope", version="1.0.0")) is None

    def test_raw_response_kept_in_debug_mode(self, monkeypatch):
        from constants import Constants
        monkeypatch.setattr(Constants, "KEEP_RAW_RESPONSES", True)
        doc = packument(**{"1.0.0": {"license": "MIT"}})
        routes = {"https://registry.npmjs.org/pkg": (200, {}, json.dumps(doc))}
        with patch("registry.npm.robust_get", side_effect=routes_get(routes)):
            record = get_package_info(PackageIdentity(name="pkg", version="1.0.0"))
        assert json.loads(record.raw_api_response)["name"] == "pkg"
