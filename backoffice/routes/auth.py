"""
Auth Routes

Login (including the admin MFA second step), token refresh, logout and
profile endpoints.
"""

import logging

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse

from backoffice.auth import CurrentUser, get_current_user
from backoffice.exceptions import ErrorCode
from backoffice.middleware.rate_limit import AUTH_LIMIT, limiter
from backoffice.schemas.auth import LoginRequest, LogoutRequest, MfaLoginRequest, RefreshTokenRequest
from backoffice.services.auth_service import AuthService, LoginState, get_auth_service

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Auth"])


@router.post("/login")
@limiter.limit(AUTH_LIMIT)
async def login(
    request: Request,
    data: LoginRequest,
    service: AuthService = Depends(get_auth_service),
):
    """
    Authenticate with email and password.

    - Regular users receive an access and a refresh token.
    - Admins with MFA receive a short-lived ``challengeToken`` for /login/mfa.
    - Admins without MFA get 403 with ``requireMfaEnrollment``.
    """
    result = await service.login(data.email, data.password)

    if result.state == LoginState.MFA_ENROLLMENT_REQUIRED:
        return JSONResponse(
            status_code=status.HTTP_403_FORBIDDEN,
            content={
                "status": "fail",
                "error_code": ErrorCode.MFA_ENROLLMENT_REQUIRED.value,
                "data": {
                    "requireMfaEnrollment": True,
                    "userId": result.user.id,
                    "email": result.user.email,
                    "message": "MFA enrollment required for admin accounts",
                },
            },
        )

    if result.state == LoginState.MFA_CHALLENGE_ISSUED:
        return {
            "status": "success",
            "data": {
                "mfaRequired": True,
                "challengeToken": result.challenge_token,
                "user": result.user.to_response(),
            },
        }

    return {"status": "success", "data": result.session.to_response()}


@router.post("/login/mfa")
@limiter.limit(AUTH_LIMIT)
async def login_mfa(
    request: Request,
    data: MfaLoginRequest,
    service: AuthService = Depends(get_auth_service),
):
    """
    Complete an admin login with a TOTP ``token`` or a ``backupCode``.

    Backup codes are single-use; the response reports how many remain.
    """
    result = await service.verify_mfa_login(data.challenge_token, code=data.token, backup_code=data.backup_code)
    return {
        "status": "success",
        "data": {
            **result.session.to_response(),
            "mfaRequired": False,
            "backupCodesRemaining": result.backup_codes_remaining,
        },
    }


@router.post("/refresh")
@limiter.limit(AUTH_LIMIT)
async def refresh_access_token(
    request: Request,
    data: RefreshTokenRequest,
    service: AuthService = Depends(get_auth_service),
):
    """Exchange a refresh token for a new access token."""
    access_token = await service.refresh(data.refresh_token)
    return {"status": "success", "data": {"accessToken": access_token}}


@router.post("/logout")
async def logout(
    data: LogoutRequest | None = None,
    service: AuthService = Depends(get_auth_service),
):
    """Revoke a refresh token. Always succeeds."""
    await service.logout(data.refresh_token if data else None)
    return {"status": "success", "message": "Logged out successfully"}


@router.get("/profile")
async def get_profile(
    current_user: CurrentUser = Depends(get_current_user),
    service: AuthService = Depends(get_auth_service),
):
    """Profile of the authenticated account."""
    profile = await service.get_profile(current_user.user_id)
    return {"status": "success", "data": {"user": profile.to_response()}}
