"""
LicenseKeeper licensing package.

Coordinates renewal of a license shared by several instances and serves the
resulting entitlements to the rest of the application.

Components:
- features: FeatureCode and QuotaCode enums, sentinels and fallbacks
- snapshot: Immutable EntitlementGrant / EntitlementSnapshot values
- store: EntitlementStore holding the current snapshot
- resolver: FeatureResolver read API
- leadership: Renewal ownership decision and leadership signal interface
- scheduler: RenewalScheduler state machine and timer
- management_token: Signed entitlement tokens for internal callers
- license_service: LicenseService facade and process-wide registration
- feature_gate: Decorators for feature and quota access control

Note: Imports are done lazily to avoid circular import issues.
Use: from licensekeeper.licensing.license_service import get_license_service
"""

from licensekeeper.licensing.features import FeatureCode, QuotaCode, UNLIMITED_QUOTA

__all__ = [
    "FeatureCode",
    "QuotaCode",
    "UNLIMITED_QUOTA",
]


def __getattr__(name):
    """Lazy import to avoid circular dependencies."""
    if name in ("requires_feature", "requires_quota"):
        from licensekeeper.licensing import feature_gate

        return getattr(feature_gate, name)
    if name in ("LicenseService", "get_license_service", "set_license_service"):
        from licensekeeper.licensing import license_service

        return getattr(license_service, name)
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
