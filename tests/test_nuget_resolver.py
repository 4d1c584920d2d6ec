"""Tests for the NuGet nuspec resolver."""

from unittest.mock import patch
from xml.etree import ElementTree as ET

import pytest

from engine.models import PackageIdentity
from registry.errors import ResolutionError
from registry.nuget.resolver import (
    extract_dependencies,
    extract_license,
    get_package_info,
    nuspec_url,
    range_lower_bound,
)

NUSPEC = """<?xml version="1.0" encoding="utf-8"?>
<package xmlns="http://schemas.microsoft.com/packaging/2013/05/nuspec.xsd">
  <metadata>
    <id>Newtonsoft.Json</id>
    <version>13.0.3</version>
    <license type="expression">MIT</license>
    <licenseUrl>https://licenses.nuget.org/MIT</licenseUrl>
    <dependencies>
      <group targetFramework=".NETFramework4.5" />
      <group targetFramework=".NETStandard2.0">
        <dependency id="System.Runtime" version="[4.3.0, )" />
        <dependency id="Microsoft.CSharp" version="4.3.0" />
      </group>
      <group targetFramework=".NETStandard1.3">
        <dependency id="System.Runtime" version="4.3.0" />
      </group>
    </dependencies>
  </metadata>
</package>
"""


def _metadata(body):
    return ET.fromstring(f"<package><metadata>{body}</metadata></package>").find("metadata")


class TestHelpers:
    """URL building and version ranges."""

    def test_nuspec_url_is_lowercase(self):
        assert nuspec_url("Newtonsoft.Json", "13.0.3-Beta") == (
            "https://api.nuget.org/v3-flatcontainer/newtonsoft.json/13.0.3-beta/newtonsoft.json.nuspec"
        )

    @pytest.mark.parametrize("value, expected", [
        ("1.2.0", "1.2.0"),
        ("[1.2.0, 2.0.0)", "1.2.0"),
        ("[1.0.0]", "1.0.0"),
        ("(, 3.0.0]", "3.0.0"),
        ("", ""),
    ])
    def test_range_lower_bound(self, value, expected):
        assert range_lower_bound(value) == expected


class TestExtractLicense:
    """License element, then licenseUrl."""

    def test_expression(self):
        meta = _metadata('<license type="expression">Apache-2.0</license>')
        assert extract_license(meta) == ("Apache-2.0", "https://opensource.org/licenses/Apache-2.0")

    def test_licenses_nuget_org_url(self):
        meta = _metadata("<licenseUrl>https://licenses.nuget.org/MIT</licenseUrl>")
        assert extract_license(meta) == ("MIT", "https://opensource.org/licenses/MIT")

    def test_other_url_is_unknown(self):
        meta = _metadata("<licenseUrl>https://example.com/eula</licenseUrl>")
        assert extract_license(meta) == ("UNKNOWN", "https://example.com/eula")

    def test_file_license_without_url(self):
        meta = _metadata('<license type="file">LICENSE.txt</license>')
        assert extract_license(meta) == ("UNKNOWN", None)


class TestGetPackageInfo:
    """Resolution against a patched flat container."""

    def test_nuspec_with_namespace(self):
        with patch("registry.nuget.robust_get", return_value=(200, {}, NUSPEC)) as get:
            record = get_package_info(PackageIdentity(name="Newtonsoft.Json", version="13.0.3", registry="nuget"))

        get.assert_called_once_with(
            "https://api.nuget.org/v3-flatcontainer/newtonsoft.json/13.0.3/newtonsoft.json.nuspec"
        )
        assert record.license == "MIT"
        assert record.url == "https://www.nuget.org/packages/Newtonsoft.Json/13.0.3"
        assert [(d.name, d.version) for d in record.dependencies] == [
            ("System.Runtime", "4.3.0"),
            ("Microsoft.CSharp", "4.3.0"),
        ]
        assert all(d.registry == "nuget" for d in record.dependencies)

    def test_dependencies_without_groups(self):
        meta = _metadata('<dependencies><dependency id="A" version="1.0" /><dependency id="B" /></dependencies>')
        assert [(d.name, d.version) for d in extract_dependencies(meta)] == [("A", "1.0")]

    @pytest.mark.parametrize("response", [
        (0, {}, "connection refused"),
        (404, {}, "Not Found"),
        (200, {}, "<not xml"),
        (200, {}, "<package><other /></package>"),
    ])
    def test_failures_raise(self, response):
        with patch("registry.nuget.robust_get", return_value=response):
            with pytest.raises(ResolutionError):
                get_package_info(PackageIdentity(name="X", version="1.0.0", registry="nuget"))
