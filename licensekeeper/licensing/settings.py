"""
Typed view of the "license" configuration section.
"""

import socket
from dataclasses import dataclass
from typing import Any, Dict, Optional

from licensekeeper.config.config import LICENSE_DEFAULTS, get_license_config
from licensekeeper.licensing.leadership import InstanceRole

# Never arm the timer for less than this many seconds
MINIMUM_TICK_SECONDS = 1.0


@dataclass(frozen=True)
class RenewalSettings:
    """Renewal, backoff and token settings for one instance."""

    auto_renew_enabled: bool = True
    auto_renew_offset: float = 72 * 3600
    renewal_interval: float = 7 * 24 * 3600
    multi_instance_enabled: bool = False
    tenant_id: Any = 1
    server_url: Optional[str] = None
    instance_role: InstanceRole = InstanceRole.MAIN
    instance_id: str = ""
    activation_key: Optional[str] = None
    backoff_initial: float = 5
    backoff_max: float = 3600
    shutdown_grace: float = 10
    default_feature_enabled: bool = True
    management_token_secret: str = ""
    management_token_algorithm: str = "HS256"
    management_token_ttl: float = 3600

    def __post_init__(self):
        if self.renewal_interval <= 0:
            raise ValueError("renewal_interval must be positive")
        if not 0 <= self.auto_renew_offset < self.renewal_interval:
            raise ValueError("auto_renew_offset must be shorter than renewal_interval")
        if self.backoff_initial <= 0 or self.backoff_max < self.backoff_initial:
            raise ValueError("backoff_max must be >= backoff_initial > 0")

    @property
    def tick_interval(self) -> float:
        """Delay between scheduled renewals: the interval minus the pre-expiry offset."""
        return max(self.renewal_interval - self.auto_renew_offset, MINIMUM_TICK_SECONDS)

    @classmethod
    def from_config(cls, license_config: Optional[Dict[str, Any]] = None):
        """Build settings from a "license" section, the loaded config by default."""
        if license_config is None:
            license_config = get_license_config()
        values = dict(LICENSE_DEFAULTS)
        values.update(license_config)

        return cls(
            auto_renew_enabled=bool(values["auto_renew_enabled"]),
            auto_renew_offset=float(values["auto_renew_offset_seconds"]),
            renewal_interval=float(values["renewal_interval_seconds"]),
            multi_instance_enabled=bool(values["multi_instance_enabled"]),
            tenant_id=values["tenant_id"],
            server_url=values["server_url"],
            instance_role=InstanceRole(values["instance_role"]),
            instance_id=values["instance_id"] or socket.gethostname(),
            activation_key=values["activation_key"],
            backoff_initial=float(values["backoff_initial_seconds"]),
            backoff_max=float(values["backoff_max_seconds"]),
            shutdown_grace=float(values["shutdown_grace_seconds"]),
            default_feature_enabled=bool(values["default_feature_enabled"]),
            management_token_secret=values["management_token_secret"] or "",
            management_token_algorithm=values["management_token_algorithm"],
            management_token_ttl=float(values["management_token_ttl_seconds"]),
        )
