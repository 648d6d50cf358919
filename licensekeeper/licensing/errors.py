"""
Exceptions raised by the licensing package.
"""

from typing import Optional


class LicenseError(Exception):
    """Base class for licensing errors."""


class AuthorityError(LicenseError):
    """A call to the license authority failed."""

    kind = "unknown"

    def __init__(self, message: str, retry_after: Optional[float] = None):
        super().__init__(message)
        self.retry_after = retry_after


class TransientAuthorityError(AuthorityError):
    """
    Network failure, timeout or rate limiting.  Retried with backoff.

    retry_after, when the authority supplies one, is the minimum number of
    seconds to wait before the next call.
    """

    kind = "transient"


class TerminalAuthorityError(AuthorityError):
    """
    Invalid key or unauthorized tenant.  Not retried automatically; the
    last-known entitlements stay in service.
    """

    kind = "terminal"


class StaleReplaceRejected(LicenseError):
    """
    A snapshot was offered to the store that is not newer than the one it
    holds.  Not a failure: an older attempt finished after a newer one.
    """

    def __init__(self, current_version: int, rejected_version: int):
        super().__init__(
            f"Snapshot version {rejected_version} is not newer than "
            f"stored version {current_version}"
        )
        self.current_version = current_version
        self.rejected_version = rejected_version


class LeadershipUnknown(LicenseError):
    """
    Renewal skipped because leader election has not settled yet.  This is the
    normal state of every instance at startup in multi-instance deployments.
    """


class LicenseServiceShutDown(LicenseError):
    """The service is shutting down and will not start new authority calls."""


class InvalidManagementToken(LicenseError):
    """A management token failed signature, expiry or claim validation."""


class LicenseRequiredError(LicenseError):
    """Exception raised when an entitlement required by a caller is missing."""

    def __init__(
        self, message: str, feature: Optional[str] = None, quota: Optional[str] = None
    ):
        super().__init__(message)
        self.feature = feature
        self.quota = quota
