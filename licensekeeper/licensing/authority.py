"""
Interfaces of the collaborators that do I/O on behalf of the licensing package.

LicenseAuthority: talks to the remote license server (renew, activate, reload)
CertificateSink: persists the raw certificate that comes with a grant

Implementations live with the application; they are expected to enforce their
own network timeouts and to raise TransientAuthorityError when one expires.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Awaitable, Callable, Optional, Union

from licensekeeper.licensing.errors import AuthorityError
from licensekeeper.licensing.snapshot import EntitlementGrant, EntitlementSnapshot

CertificateSink = Callable[[str], Union[None, Awaitable[None]]]


class LicenseAuthority:
    """
    Remote license authority.  Every method returns an EntitlementGrant or
    raises TransientAuthorityError / TerminalAuthorityError.
    """

    async def renew(self, instance_id: str, tenant_id) -> EntitlementGrant:
        """Renew the shared license before it expires."""
        raise NotImplementedError

    async def activate(self, activation_key: str) -> EntitlementGrant:
        """Exchange an activation key for a license."""
        raise NotImplementedError

    async def reload(self) -> EntitlementGrant:
        """Re-read the license last persisted by whichever instance renewed it."""
        raise NotImplementedError


@dataclass
class RenewalAttempt:
    """Outcome of a single call to the license authority."""

    operation: str
    version: int
    started_at: datetime
    snapshot: Optional[EntitlementSnapshot] = None
    error: Optional[AuthorityError] = None
    installed: bool = False

    @property
    def succeeded(self) -> bool:
        return self.error is None and self.snapshot is not None

    @property
    def error_kind(self) -> Optional[str]:
        return self.error.kind if self.error else None

    @property
    def retry_after(self) -> Optional[float]:
        return self.error.retry_after if self.error else None

    @classmethod
    def start(cls, operation: str, version: int) -> "RenewalAttempt":
        return cls(
            operation=operation,
            version=version,
            started_at=datetime.now(timezone.utc),
        )
