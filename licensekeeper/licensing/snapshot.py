"""
Immutable entitlement data.

EntitlementGrant is what the license authority hands back; it carries no
version.  EntitlementSnapshot is a grant stamped with a store version and the
time it was fetched.  Snapshots are never modified: every renewal produces a
new one that replaces the old one as a whole.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional

from licensekeeper.licensing.features import DEFAULT_PLAN_NAME, UNKNOWN_CONSUMER_ID


def _freeze(values: Optional[Mapping]) -> Mapping:
    return MappingProxyType(dict(values or {}))


@dataclass(frozen=True)
class EntitlementGrant:
    """Entitlements as returned by a renew, reload or activate call."""

    boolean_features: Mapping[str, bool] = field(default_factory=dict)
    numeric_quotas: Mapping[str, int] = field(default_factory=dict)
    plan_name: Optional[str] = None
    valid_from: Optional[datetime] = None
    valid_to: Optional[datetime] = None
    consumer_id: Optional[str] = None
    certificate: Optional[str] = None

    def to_snapshot(
        self, version: int, fetched_at: Optional[datetime] = None
    ) -> "EntitlementSnapshot":
        """Stamp this grant with a store version."""
        return EntitlementSnapshot(
            version=version,
            fetched_at=fetched_at or datetime.now(timezone.utc),
            boolean_features=self.boolean_features,
            numeric_quotas=self.numeric_quotas,
            plan_name=self.plan_name or DEFAULT_PLAN_NAME,
            valid_from=self.valid_from,
            valid_to=self.valid_to,
            consumer_id=self.consumer_id or UNKNOWN_CONSUMER_ID,
            certificate=self.certificate,
        )


@dataclass(frozen=True)
class EntitlementSnapshot:
    """
    The entitlement set known at one point in time.

    version 0 is reserved for the "unloaded" snapshot that the store serves
    before the first successful load.
    """

    version: int
    fetched_at: Optional[datetime]
    boolean_features: Mapping[str, bool] = field(default_factory=dict)
    numeric_quotas: Mapping[str, int] = field(default_factory=dict)
    plan_name: str = DEFAULT_PLAN_NAME
    valid_from: Optional[datetime] = None
    valid_to: Optional[datetime] = None
    consumer_id: str = UNKNOWN_CONSUMER_ID
    certificate: Optional[str] = None

    def __post_init__(self):
        if self.version < 0:
            raise ValueError(f"Snapshot version must not be negative: {self.version}")
        # Copy into read-only views so the caller's dicts cannot leak mutation in
        object.__setattr__(self, "boolean_features", _freeze(self.boolean_features))
        object.__setattr__(self, "numeric_quotas", _freeze(self.numeric_quotas))

    @classmethod
    def unloaded(cls) -> "EntitlementSnapshot":
        """The zero-version snapshot served before anything has been loaded."""
        return cls(version=0, fetched_at=None)

    @property
    def is_loaded(self) -> bool:
        return self.version > 0

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        """
        Check whether the validity window has closed.  Expiry is reported,
        never enforced: an expired snapshot keeps serving until replaced.
        """
        if self.valid_to is None:
            return False
        now = now or datetime.now(timezone.utc)
        valid_to = (
            self.valid_to.replace(tzinfo=timezone.utc)
            if self.valid_to.tzinfo is None
            else self.valid_to
        )
        return valid_to <= now

    def to_dict(self) -> Dict[str, Any]:
        """Plain-data view, certificate excluded."""
        return {
            "version": self.version,
            "fetched_at": self.fetched_at.isoformat() if self.fetched_at else None,
            "plan_name": self.plan_name,
            "consumer_id": self.consumer_id,
            "features": dict(self.boolean_features),
            "quotas": dict(self.numeric_quotas),
            "valid_from": self.valid_from.isoformat() if self.valid_from else None,
            "valid_to": self.valid_to.isoformat() if self.valid_to else None,
        }
