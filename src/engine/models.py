"""Data models for package identities and resolved records."""

from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Optional

from constants import Constants, Registries


@dataclass(frozen=True)
class PackageIdentity:
    """A package reference as read from a manifest, before resolution."""
    name: str
    version: str
    resolution: str = ""
    checksum: Optional[str] = None
    registry: str = ""  # hint from the manifest parser; empty means npm
    retry_for_unknown: bool = False

    @property
    def node_id(self) -> str:
        """Graph node id used by the edge recorder and tree output."""
        return f"{self.name}@{self.version}"

    def marked_for_retry(self) -> "PackageIdentity":
        return replace(self, retry_for_unknown=True)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "version": self.version,
            "resolution": self.resolution,
            "checksum": self.checksum,
            "registry": self.registry,
            "retry_for_unknown": self.retry_for_unknown,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PackageIdentity":
        return cls(
            name=str(data.get("name", "")),
            version=str(data.get("version", "")),
            resolution=str(data.get("resolution") or ""),
            checksum=data.get("checksum"),
            registry=str(data.get("registry") or ""),
            retry_for_unknown=bool(data.get("retry_for_unknown", False)),
        )


@dataclass
class PackageRecord:
    """Resolution outcome for one identity (or an engine-made error placeholder).

    ``dependencies`` holds the still-unresolved identities of this package's
    dependencies so a cached record can re-seed the queue without a lookup.
    """
    name: str
    version: str
    resolution: str = ""
    checksum: Optional[str] = None
    registry: str = ""
    display_name: str = ""
    license: str = ""
    license_url: Optional[str] = None
    url: str = ""
    debug_info: Optional[str] = None
    dependencies: List[PackageIdentity] = field(default_factory=list)
    processed: bool = False
    retry_for_unknown: bool = False
    raw_api_response: Optional[str] = None

    @classmethod
    def from_identity(cls, identity: PackageIdentity, **fields: Any) -> "PackageRecord":
        """Start a record carrying the identity's own fields."""
        base = {
            "name": identity.name,
            "version": identity.version,
            "resolution": identity.resolution,
            "checksum": identity.checksum,
            "registry": identity.registry,
        }
        base.update(fields)
        return cls(**base)

    @classmethod
    def with_error(
        cls,
        identity: PackageIdentity,
        registry: str,
        url: str,
        error_msg: str,
    ) -> "PackageRecord":
        """Placeholder for an identity whose resolution failed."""
        return cls(
            name=identity.name,
            version=identity.version,
            resolution=identity.resolution,
            checksum=identity.checksum,
            registry=registry,
            display_name=f"{identity.name}@{identity.version}",
            license=Constants.UNKNOWN_LICENSE,
            url=url,
            debug_info=error_msg,
            processed=True,
        )

    @property
    def identity(self) -> PackageIdentity:
        return PackageIdentity(
            name=self.name,
            version=self.version,
            resolution=self.resolution,
            checksum=self.checksum,
            registry=self.registry,
        )

    @property
    def node_id(self) -> str:
        return f"{self.name}@{self.version}"

    @property
    def is_unknown(self) -> bool:
        return not self.license or self.license == Constants.UNKNOWN_LICENSE

    def get_display_name(self) -> str:
        return self.display_name or self.node_id

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "version": self.version,
            "resolution": self.resolution,
            "checksum": self.checksum,
            "registry": self.registry,
            "display_name": self.display_name,
            "license": self.license,
            "license_url": self.license_url,
            "url": self.url,
            "debug_info": self.debug_info,
            "dependencies": [dep.to_dict() for dep in self.dependencies],
            "processed": self.processed,
            "retry_for_unknown": self.retry_for_unknown,
            "raw_api_response": self.raw_api_response,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PackageRecord":
        deps = data.get("dependencies") or []
        return cls(
            name=str(data.get("name", "")),
            version=str(data.get("version", "")),
            resolution=str(data.get("resolution") or ""),
            checksum=data.get("checksum"),
            registry=str(data.get("registry") or ""),
            display_name=str(data.get("display_name") or ""),
            license=str(data.get("license") or ""),
            license_url=data.get("license_url"),
            url=str(data.get("url") or ""),
            debug_info=data.get("debug_info"),
            dependencies=[PackageIdentity.from_dict(d) for d in deps if isinstance(d, dict)],
            processed=bool(data.get("processed", False)),
            retry_for_unknown=bool(data.get("retry_for_unknown", False)),
            raw_api_response=data.get("raw_api_response"),
        )


def default_registry(identity: PackageIdentity) -> str:
    """Registry an identity will be resolved against when no hint is set."""
    if identity.registry:
        return identity.registry
    if is_repository_addressed(identity):
        return Registries.GITHUB.value
    return Registries.NPM.value


def is_repository_addressed(identity: PackageIdentity) -> bool:
    marker = Constants.REPOSITORY_MARKER
    return identity.name.lower().startswith(marker) or marker in identity.resolution.lower()
