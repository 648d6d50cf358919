"""
API routes for license inspection and activation.
"""

from typing import Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, field_validator

from licensekeeper.licensing.errors import (
    LicenseServiceShutDown,
    TerminalAuthorityError,
    TransientAuthorityError,
)
from licensekeeper.licensing.license_service import LicenseService, get_license_service
from licensekeeper.utils.verbosity_logger import get_logger, sanitize_log

logger = get_logger("licensekeeper.api.license_management")

router = APIRouter(prefix="/api/license", tags=["license"])


# Response Models


class EntitlementEntry(BaseModel):
    """A single granted feature or quota."""

    key: str
    type: str
    value: int | bool


class LicenseInfoResponse(BaseModel):
    """Response model for the current license state."""

    loaded: bool
    version: int
    plan_name: str
    consumer_id: str
    expired: bool
    renewal_state: str
    valid_to: Optional[str] = None
    last_successful_renewal: Optional[str] = None
    last_error: Optional[str] = None
    entitlements: List[EntitlementEntry] = []


class LicenseActivateRequest(BaseModel):
    """Request model for activating a license key."""

    activation_key: str

    @field_validator("activation_key")
    @classmethod
    def validate_key(cls, value: str) -> str:
        """Reject blank keys."""
        if not value or not value.strip():
            raise ValueError("Activation key must not be empty")
        return value.strip()


class LicenseActivateResponse(BaseModel):
    """Response model for a license activation."""

    success: bool
    message: str
    license_info: Optional[LicenseInfoResponse] = None


def _license_info(service: LicenseService) -> LicenseInfoResponse:
    info: Dict = service.get_license_info()
    return LicenseInfoResponse(
        loaded=info["loaded"],
        version=info["version"],
        plan_name=info["plan_name"],
        consumer_id=info["consumer_id"],
        expired=info["expired"],
        renewal_state=info["renewal_state"],
        valid_to=info["valid_to"],
        last_successful_renewal=info["last_successful_renewal"],
        last_error=info["last_error"],
        entitlements=service.get_current_entitlements(),
    )


@router.get("", response_model=LicenseInfoResponse)
async def get_license_info(service: LicenseService = Depends(get_license_service)):
    """
    Return the entitlements this instance is currently serving.
    """
    return _license_info(service)


@router.post("/activate", response_model=LicenseActivateResponse)
async def activate_license(
    request: LicenseActivateRequest,
    service: LicenseService = Depends(get_license_service),
):
    """
    Activate a license key.  Rejected keys return 400, an unreachable or
    rate-limiting authority returns 503.
    """
    try:
        await service.activate(request.activation_key)
    except TerminalAuthorityError as exc:
        logger.warning("License activation rejected: %s", sanitize_log(exc))
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"error": "activation_rejected", "message": str(exc)},
        ) from exc
    except (TransientAuthorityError, LicenseServiceShutDown) as exc:
        logger.warning("License activation unavailable: %s", sanitize_log(exc))
        headers = None
        if isinstance(exc, TransientAuthorityError) and exc.retry_after:
            headers = {"Retry-After": str(int(exc.retry_after))}
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail={"error": "authority_unavailable", "message": str(exc)},
            headers=headers,
        ) from exc

    return LicenseActivateResponse(
        success=True,
        message="License activated successfully",
        license_info=_license_info(service),
    )
