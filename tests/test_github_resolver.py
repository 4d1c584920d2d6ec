"""Tests for the GitHub repository resolver."""

import base64
import json
from unittest.mock import patch

import pytest

from engine.models import PackageIdentity
from registry.errors import ResolutionError
from registry.github.resolver import (
    extract_github_details,
    get_package_info,
    license_file_url,
    normalize_github_url,
    npm_dependency_identity,
)

MIT_TEXT = (
    "Permission is hereby granted, free of charge, to any person obtaining a copy of this software, "
    "subject to the following conditions:"
)


def _b64(text):
    return base64.b64encode(text.encode("utf-8")).decode("ascii")


def json_routes(routes):
    def _get(url, headers=None, **kwargs):
        return routes.get(url, (404, {}, None))
    return _get


class TestRepositoryDetails:
    """Owner, repository and ref extraction."""

    @pytest.mark.parametrize("ident, expected", [
        (PackageIdentity(name="x", version="1", resolution="x@github:owner/repo#abc"), ("owner", "repo", "abc")),
        (PackageIdentity(name="github:owner/repo", version="1"), ("owner", "repo", "HEAD")),
        (PackageIdentity(name="x", version="1", resolution="GitHub:Owner/Repo.git"), ("Owner", "Repo", "HEAD")),
        (
            PackageIdentity(name="x", version="1", resolution="git+https://github.com/o/r.git#commit=deadbeef"),
            ("o", "r", "deadbeef"),
        ),
    ])
    def test_extract(self, ident, expected):
        assert extract_github_details(ident) == expected

    def test_extract_without_repository_raises(self):
        with pytest.raises(ResolutionError):
            extract_github_details(PackageIdentity(name="plain", version="1.0.0"))

    @pytest.mark.parametrize("url, expected", [
        ("git+https://github.com/o/r.git", "https://github.com/o/r"),
        ("git://github.com/o/r.git", "https://github.com/o/r"),
        ("git@github.com:o/r.git", "https://github.com/o/r"),
        ("https://github.com/o/r/blob/main/LICENSE", "https://github.com/o/r"),
        ("https://gitlab.com/o/r", None),
        ("", None),
    ])
    def test_normalize(self, url, expected):
        assert normalize_github_url(url) == expected

    def test_dependency_identity_from_github_spec(self):
        ident = npm_dependency_identity("lib", "github:o/lib")
        assert ident.version == "HEAD"
        assert ident.resolution == "github:o/lib"

    def test_dependency_identity_scoped(self):
        ident = npm_dependency_identity("@scope/lib", "^1.0.0")
        assert ident.resolution == "https://registry.npmjs.org/@scope/lib/-/scope-lib-1.0.0.tgz"


class TestLicenseFileUrl:
    """Probing for a license file in a repository."""

    def test_finds_second_pattern(self):
        routes = {
            "https://api.github.com/repos/o/r/contents/LICENSE.txt?ref=v1": (200, {}, "{}"),
        }
        with patch("registry.github.robust_get", side_effect=lambda url, headers=None: routes.get(url, (404, {}, ""))):
            assert license_file_url("https://github.com/o/r", "v1") == "https://github.com/o/r/blob/v1/LICENSE.txt"

    def test_rate_limited_falls_back_to_generic_name(self):
        with patch("registry.github.robust_get", return_value=(403, {}, "rate limited")) as get:
            assert license_file_url("https://github.com/o/r", "HEAD") == "https://github.com/o/r/blob/HEAD/LICENSE"
        assert get.call_count == 1

    def test_non_github_url(self):
        assert license_file_url("https://example.com/x", "HEAD") is None


class TestGetPackageInfo:
    """Record building from the license API and package.json."""

    def test_license_and_dependencies(self):
        package_json = {"name": "tool", "version": "2.0.0", "dependencies": {"dep": "^1.0.0"}}
        routes = {
            "https://api.github.com/repos/o/tool/license?ref=v2": (
                200, {}, {"license": {"spdx_id": "MIT"}, "html_url": "https://github.com/o/tool/blob/v2/LICENSE"}
            ),
            "https://api.github.com/repos/o/tool/contents/package.json?ref=v2": (
                200, {}, {"content": _b64(json.dumps(package_json))}
            ),
        }
        ident = PackageIdentity(name="tool", version="v2", resolution="tool@github:o/tool#v2", registry="github")
        with patch("registry.github.get_json", side_effect=json_routes(routes)):
            record = get_package_info(ident)

        assert record.license == "MIT"
        assert record.license_url == "https://opensource.org/licenses/MIT"
        assert record.display_name == "tool@2.0.0"
        assert record.node_id == "tool@v2"
        assert [d.name for d in record.dependencies] == ["dep"]
        assert record.debug_info is None

    def test_noassertion_detected_from_content(self):
        routes = {
            "https://api.github.com/repos/o/r/license?ref=HEAD": (
                200, {}, {"license": {"spdx_id": "NOASSERTION"}, "html_url": "https://github.com/o/r/blob/HEAD/LICENSE",
                          "content": _b64(MIT_TEXT)}
            ),
        }
        with patch("registry.github.get_json", side_effect=json_routes(routes)):
            record = get_package_info(PackageIdentity(name="github:o/r", version="1.0.0"))
        assert record.license == "MIT"
        assert record.license_url == "https://github.com/o/r/blob/HEAD/LICENSE"
        assert record.display_name == "o/r@HEAD"

    def test_missing_license_is_unknown(self):
        with patch("registry.github.get_json", return_value=(404, {}, None)):
            record = get_package_info(PackageIdentity(name="github:o/r", version="1.0.0"))
        assert record.license == "UNKNOWN"
        assert "status 404" in record.debug_info
        assert record.dependencies == []

    def test_network_error_raises(self):
        with patch("registry.github.get_json", return_value=(0, {}, None)):
            with pytest.raises(ResolutionError):
                get_package_info(PackageIdentity(name="github:o/r", version="1.0.0"))
