"""
Admin MFA Routes

Forced enrollment endpoints (used before the admin's first session, keyed
by ``userId``) and authenticated self-service MFA management.
"""

from fastapi import APIRouter, Depends, Request

from backoffice.auth import CurrentUser, require_admin
from backoffice.middleware.rate_limit import MFA_ENROLLMENT_LIMIT, MFA_SETUP_LIMIT, PASSWORD_LIMIT, limiter
from backoffice.schemas.auth import DisableMfaRequest, EnableMfaRequest, EnrollEnableRequest, EnrollSecretRequest
from backoffice.services.auth_service import AuthService, get_auth_service

router = APIRouter(tags=["Admin MFA"])


# ============== Forced Enrollment ==============


@router.post("/mfa/enroll/secret")
@limiter.limit(MFA_ENROLLMENT_LIMIT)
async def issue_enrollment_secret(
    request: Request,
    data: EnrollSecretRequest,
    service: AuthService = Depends(get_auth_service),
):
    """
    Issue the TOTP secret for an admin that must enroll before logging in.

    Repeated calls before confirmation return the same pending secret.
    """
    result = await service.issue_enrollment_secret(str(data.user_id))
    return {"status": "success", "data": result.to_response()}


@router.post("/mfa/enroll/enable")
@limiter.limit(MFA_ENROLLMENT_LIMIT)
async def enable_enrollment(
    request: Request,
    data: EnrollEnableRequest,
    service: AuthService = Depends(get_auth_service),
):
    """
    Confirm enrollment with the first TOTP code.

    IMPORTANT: Backup codes are only shown once.
    """
    result = await service.confirm_enrollment(str(data.user_id), data.token)
    return {
        "status": "success",
        "data": {
            "mfaEnabled": True,
            "backupCodes": result.backup_codes,
            "message": "MFA enabled successfully",
        },
    }


# ============== Self-service ==============


@router.post("/mfa/secret")
@limiter.limit(MFA_SETUP_LIMIT)
async def issue_mfa_secret(
    request: Request,
    current_user: CurrentUser = Depends(require_admin),
    service: AuthService = Depends(get_auth_service),
):
    """Generate a new pending TOTP secret for the authenticated admin."""
    result = await service.issue_mfa_secret(current_user.user_id)
    return {"status": "success", "data": result.to_response()}


@router.post("/mfa/enable")
@limiter.limit(MFA_SETUP_LIMIT)
async def enable_mfa(
    request: Request,
    data: EnableMfaRequest,
    current_user: CurrentUser = Depends(require_admin),
    service: AuthService = Depends(get_auth_service),
):
    """Enable MFA with a code from the pending secret."""
    result = await service.enable_mfa(current_user.user_id, data.token)
    return {"status": "success", "data": {"mfaEnabled": True, "backupCodes": result.backup_codes}}


@router.post("/mfa/disable")
@limiter.limit(PASSWORD_LIMIT)
async def disable_mfa(
    request: Request,
    data: DisableMfaRequest,
    current_user: CurrentUser = Depends(require_admin),
    service: AuthService = Depends(get_auth_service),
):
    """Disable MFA. Requires the current password."""
    await service.disable_mfa(current_user.user_id, data.password)
    return {"status": "success", "message": "MFA disabled successfully"}
