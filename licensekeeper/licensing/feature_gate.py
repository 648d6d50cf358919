"""
Feature and quota gating decorators.

Async callables (FastAPI endpoints) are denied with an HTTP 403; plain
callables raise LicenseRequiredError.
"""

import asyncio
import functools
from typing import Callable

from fastapi import HTTPException, status

from licensekeeper.licensing.errors import LicenseRequiredError
from licensekeeper.licensing.features import FeatureCode, QuotaCode
from licensekeeper.licensing.license_service import get_license_service
from licensekeeper.utils.verbosity_logger import get_logger

logger = get_logger("licensekeeper.licensing.feature_gate")


def _forbidden(detail: dict) -> HTTPException:
    return HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=detail)


def _wrap(func: Callable, check: Callable[[tuple, dict], None]) -> Callable:
    """Run check(args, kwargs) before func, keeping func sync or async."""

    @functools.wraps(func)
    async def async_wrapper(*args, **kwargs):
        try:
            check(args, kwargs)
        except LicenseRequiredError as exc:
            raise _forbidden(
                {
                    "error": "license_required",
                    "message": str(exc),
                    "feature": exc.feature,
                    "quota": exc.quota,
                }
            ) from exc
        return await func(*args, **kwargs)

    @functools.wraps(func)
    def sync_wrapper(*args, **kwargs):
        check(args, kwargs)
        return func(*args, **kwargs)

    if asyncio.iscoroutinefunction(func):
        return async_wrapper
    return sync_wrapper


def requires_feature(feature: FeatureCode | str) -> Callable:
    """
    Decorator to require a licensed feature.

    Usage:
        @requires_feature(FeatureCode.SAML)
        async def configure_saml():
            ...

    Args:
        feature: The required feature code or raw feature key

    Raises:
        HTTPException: 403 from async callables if the feature is not enabled
        LicenseRequiredError: from sync callables if the feature is not enabled
    """
    feature_key = feature.value if isinstance(feature, FeatureCode) else feature

    def check(_args, _kwargs):
        if not get_license_service().is_feature_enabled(feature_key):
            logger.warning("Access denied to feature '%s' - not licensed", feature_key)
            raise LicenseRequiredError(
                f"This feature requires a license with '{feature_key}' enabled",
                feature=feature_key,
            )

    def decorator(func: Callable) -> Callable:
        return _wrap(func, check)

    return decorator


def requires_quota(
    quota: QuotaCode | str, current_usage: Callable[..., int]
) -> Callable:
    """
    Decorator to require headroom in a licensed quota.

    current_usage is called with the decorated function's arguments and must
    return the amount already consumed.

    Usage:
        @requires_quota(QuotaCode.USERS_LIMIT, lambda *a, **kw: count_users())
        async def invite_user(email: str):
            ...
    """
    quota_key = quota.value if isinstance(quota, QuotaCode) else quota

    def check(args, kwargs):
        usage = current_usage(*args, **kwargs)
        if not get_license_service().is_within_limit(quota_key, usage):
            logger.warning(
                "Quota '%s' exhausted (usage=%s) - request denied", quota_key, usage
            )
            raise LicenseRequiredError(
                f"The license limit for '{quota_key}' has been reached",
                quota=quota_key,
            )

    def decorator(func: Callable) -> Callable:
        return _wrap(func, check)

    return decorator
