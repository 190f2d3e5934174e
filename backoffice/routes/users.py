"""
User Management Routes

Only the password change lives here; it revokes every session of the
target account.
"""

from fastapi import APIRouter, Depends, Request

from backoffice.auth import CurrentUser, require_admin
from backoffice.middleware.rate_limit import PASSWORD_LIMIT, limiter
from backoffice.schemas.auth import PasswordChangeRequest
from backoffice.services.auth_service import AuthService, get_auth_service

router = APIRouter(tags=["Users"])


@router.patch("/{user_id}/password")
@limiter.limit(PASSWORD_LIMIT)
async def update_user_password(
    request: Request,
    user_id: str,
    data: PasswordChangeRequest,
    current_user: CurrentUser = Depends(require_admin),
    service: AuthService = Depends(get_auth_service),
):
    """Set a new password for an account and force re-login on all devices."""
    await service.change_password(user_id, data.password)
    return {"status": "success", "message": "Password updated successfully"}
