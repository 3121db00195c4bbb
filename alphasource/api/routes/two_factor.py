"""
Two-factor authentication management for the logged-in user.
"""

from fastapi import APIRouter

from alphasource.api.deps import CurrentUser, SessionDep
from alphasource.schemas.base import SuccessResponse
from alphasource.schemas.two_factor import TwoFactorCodeRequest, TwoFactorSetupResponse
from alphasource.services.two_factor_service import TwoFactorService

router = APIRouter(prefix="/auth/2fa", tags=["two-factor"])


@router.post("/setup", response_model=TwoFactorSetupResponse)
def setup_two_factor(user: CurrentUser, session: SessionDep) -> TwoFactorSetupResponse:
    """
    Start enrollment: returns the QR code, the raw secret and ten backup codes.

    Two-factor authentication is not active until ``/verify`` succeeds.
    The backup codes are shown only in this response.
    """
    result = TwoFactorService.setup(session, user)
    return TwoFactorSetupResponse(
        qr_code_url=result.qr_code_url,
        backup_codes=result.backup_codes,
        secret=result.secret,
    )


@router.post("/verify", response_model=SuccessResponse)
def verify_two_factor(body: TwoFactorCodeRequest, user: CurrentUser, session: SessionDep) -> SuccessResponse:
    """Confirm enrollment with a code from the authenticator app."""
    TwoFactorService.confirm(session, user, body.code)
    return SuccessResponse()


@router.post("/disable", response_model=SuccessResponse)
def disable_two_factor(body: TwoFactorCodeRequest, user: CurrentUser, session: SessionDep) -> SuccessResponse:
    """Turn two-factor authentication off. Requires a current authenticator code."""
    TwoFactorService.disable(session, user, body.code)
    return SuccessResponse()
