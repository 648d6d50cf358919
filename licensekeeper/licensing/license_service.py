"""
License service: the one object the rest of the application talks to.

Handles:
- Wiring store, resolver, scheduler and token issuer together
- Startup load and optional activation from configuration
- Entitlement reads that never fail
- Management tokens for internal callers
- Registration of the process-wide instance used by feature gates and routes
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from licensekeeper.licensing.authority import (
    CertificateSink,
    LicenseAuthority,
    RenewalAttempt,
)
from licensekeeper.licensing.errors import AuthorityError
from licensekeeper.licensing.leadership import LeadershipSignal, LeadershipStatus
from licensekeeper.licensing.management_token import ManagementTokenIssuer
from licensekeeper.licensing.resolver import FeatureResolver
from licensekeeper.licensing.scheduler import RenewalScheduler, SchedulerState
from licensekeeper.licensing.settings import RenewalSettings
from licensekeeper.licensing.snapshot import EntitlementSnapshot
from licensekeeper.licensing.store import EntitlementStore
from licensekeeper.utils.verbosity_logger import get_logger, sanitize_log

logger = get_logger("licensekeeper.licensing.license_service")


class LicenseService:
    """
    Service for license renewal coordination and entitlement reads.
    """

    def __init__(
        self,
        authority: LicenseAuthority,
        settings: Optional[RenewalSettings] = None,
        leadership: Optional[LeadershipSignal] = None,
        certificate_sink: Optional[CertificateSink] = None,
        store: Optional[EntitlementStore] = None,
        scheduler: Optional[RenewalScheduler] = None,
    ):
        self.settings = settings or RenewalSettings.from_config()
        self.store = store or EntitlementStore()
        self.resolver = FeatureResolver(
            self.store, default_feature_enabled=self.settings.default_feature_enabled
        )
        self.scheduler = scheduler or RenewalScheduler(
            self.store,
            authority,
            self.settings,
            leadership=leadership,
            certificate_sink=certificate_sink,
        )
        self.token_issuer = ManagementTokenIssuer(self.store, self.settings)

    # Lifecycle

    async def init(self, force_recreate: bool = False) -> None:
        """
        Load entitlements and start the renewal timer.

        When nothing could be loaded and an activation key is configured, the
        key is activated.  Failures are logged; the instance keeps serving with
        default entitlements.
        """
        logger.info("Initializing license service")
        await self.scheduler.init(force_recreate=force_recreate)

        if not self.store.read().is_loaded and self.settings.activation_key:
            logger.info("No license loaded - activating configured key")
            try:
                await self.scheduler.activate(self.settings.activation_key)
            except AuthorityError as e:
                logger.warning("License activation failed: %s", sanitize_log(e))

        logger.info(
            "License service ready: plan=%s, version=%d",
            sanitize_log(self.resolver.get_plan_name()),
            self.store.version,
        )

    async def reinit(self) -> None:
        await self.init(force_recreate=True)
        logger.debug("License service reinitialized")

    async def activate(self, activation_key: str) -> EntitlementSnapshot:
        """
        Activate a license key.  Unlike renewal, failures propagate.

        Args:
            activation_key: The key entered by the user

        Returns:
            The installed snapshot
        """
        snapshot = await self.scheduler.activate(activation_key)
        logger.info(
            "License activated: plan=%s, version=%d",
            sanitize_log(snapshot.plan_name),
            snapshot.version,
        )
        return snapshot

    async def reload(self) -> RenewalAttempt:
        return await self.scheduler.reload()

    async def renew_now(self) -> Optional[RenewalAttempt]:
        return await self.scheduler.renew_now()

    async def shutdown(self) -> None:
        """Stop renewal; in-flight calls get the configured grace period."""
        await self.scheduler.shutdown()
        logger.info("License service shut down")

    def on_leadership_change(self, status: LeadershipStatus) -> None:
        self.scheduler.notify_leadership_change(status)

    # Reads

    def is_feature_enabled(self, feature) -> bool:
        return self.resolver.is_feature_enabled(feature)

    def get_quota(self, quota) -> int:
        return self.resolver.get_quota(quota)

    def get_plan_name(self) -> str:
        return self.resolver.get_plan_name()

    def is_within_limit(self, quota, current_usage: int) -> bool:
        return self.resolver.is_within_limit(quota, current_usage)

    def issue_management_token(self) -> str:
        return self.token_issuer.issue_token()

    def current_snapshot_version(self) -> int:
        return self.store.version

    @property
    def last_successful_renewal(self) -> Optional[datetime]:
        return self.scheduler.last_successful_renewal

    @property
    def renewal_state(self) -> SchedulerState:
        return self.scheduler.state

    def get_current_entitlements(self) -> List[Dict]:
        return self.resolver.get_current_entitlements()

    def get_license_info(self) -> Dict[str, Any]:
        """
        Get information about the current license and renewal status.

        Returns:
            Dictionary with snapshot data and renewal status
        """
        snapshot = self.store.read()
        info = snapshot.to_dict()
        info["loaded"] = snapshot.is_loaded
        info["expired"] = snapshot.is_expired()
        info["renewal_state"] = self.scheduler.state.value
        info["last_successful_renewal"] = (
            self.last_successful_renewal.isoformat()
            if self.last_successful_renewal
            else None
        )
        info["last_error"] = (
            str(self.scheduler.last_error) if self.scheduler.last_error else None
        )
        return info


# Process-wide instance, registered at startup
_registry: Dict[str, Optional[LicenseService]] = {"service": None}


def set_license_service(service: Optional[LicenseService]) -> None:
    """Register (or with None, clear) the process-wide license service."""
    _registry["service"] = service


def get_license_service() -> LicenseService:
    """
    Get the process-wide license service.

    Raises:
        RuntimeError: No service has been registered
    """
    service = _registry["service"]
    if service is None:
        raise RuntimeError("License service has not been registered")
    return service
