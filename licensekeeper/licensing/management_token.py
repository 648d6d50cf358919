"""
Short-lived signed tokens asserting the active entitlements.

Internal services present these tokens to each other instead of asking the
license service directly.  A token never outlives one renewal interval, so it
cannot keep asserting entitlements that a renewal has since changed.
"""

import time
from typing import Optional

import jwt
import jwt.exceptions

from licensekeeper.licensing.errors import InvalidManagementToken
from licensekeeper.licensing.settings import RenewalSettings
from licensekeeper.licensing.store import EntitlementStore
from licensekeeper.utils.verbosity_logger import get_logger

logger = get_logger("licensekeeper.licensing.management_token")

TOKEN_ISSUER = "licensekeeper"


class ManagementTokenIssuer:
    """Builds and checks management tokens from the current snapshot."""

    def __init__(self, store: EntitlementStore, settings: RenewalSettings):
        if not settings.management_token_secret:
            logger.warning(
                "No management_token_secret configured - management tokens "
                "will be signed with an empty key"
            )
        self._store = store
        self._secret = settings.management_token_secret
        self._algorithm = settings.management_token_algorithm
        self._tenant_id = settings.tenant_id
        # Expiry is capped by the renewal interval
        self.ttl = min(settings.management_token_ttl, settings.renewal_interval)

    def issue_token(self, now: Optional[float] = None) -> str:
        """
        Sign the plan, features and quotas of the current snapshot.

        Returns:
            The encoded JWT
        """
        snapshot = self._store.read()
        issued_at = int(now if now is not None else time.time())
        payload = {
            "iss": TOKEN_ISSUER,
            "sub": snapshot.consumer_id,
            "tenant": self._tenant_id,
            "plan": snapshot.plan_name,
            "features": dict(snapshot.boolean_features),
            "quotas": dict(snapshot.numeric_quotas),
            "ver": snapshot.version,
            "iat": issued_at,
            "exp": issued_at + int(self.ttl),
        }
        return jwt.encode(payload, self._secret, algorithm=self._algorithm)

    def verify_token(self, token: str) -> dict:
        """
        Decode a management token and check its signature and expiry.

        Raises:
            InvalidManagementToken: The token cannot be trusted
        """
        try:
            return jwt.decode(
                token,
                self._secret,
                algorithms=[self._algorithm],
                issuer=TOKEN_ISSUER,
                options={"require": ["exp", "iat", "iss", "ver"]},
            )
        except jwt.exceptions.ExpiredSignatureError as exc:
            raise InvalidManagementToken("Management token has expired") from exc
        except jwt.exceptions.InvalidTokenError as exc:
            raise InvalidManagementToken(f"Invalid management token: {exc}") from exc
