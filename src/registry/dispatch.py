"""Route an identity to the resolver for its source."""
from __future__ import annotations

import logging

from constants import Constants, Registries
from engine.models import PackageIdentity, PackageRecord
from registry import github, npm, nuget, pypi

logger = logging.getLogger(__name__)

_KNOWN = {r.value for r in Registries}


def resolve_package(identity: PackageIdentity) -> PackageRecord:
    """Resolve one package against its registry.

    Identities without a registry hint are npm packages; GitHub and archive
    resolutions among them are handled by the npm resolver's fallbacks.

    Raises:
        ResolutionError: propagated from the resolver; the engine records it.
    """
    registry = (identity.registry or "").lower()
    if registry == Registries.NUGET.value:
        return nuget.get_package_info(identity)
    if registry == Registries.PYPI.value:
        return pypi.get_package_info(identity)
    if registry == Registries.GITHUB.value:
        return github.get_package_info(identity)
    if registry and registry not in _KNOWN:
        logger.warning("Unsupported source type '%s' for %s", identity.registry, identity.node_id)
        return PackageRecord.from_identity(
            identity,
            license=Constants.UNKNOWN_LICENSE,
            debug_info=f"Unsupported source type: {identity.registry}",
            processed=True,
        )
    return npm.get_package_info(identity)
