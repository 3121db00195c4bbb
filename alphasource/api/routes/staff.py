"""
Staff routes. Moderation handlers for codes and advertisements mount their
endpoints behind the same guard.
"""

from fastapi import APIRouter

from alphasource.api.deps import StaffUser
from alphasource.schemas.user import UserResponse

router = APIRouter(prefix="/staff", tags=["staff"])


@router.get("/session", response_model=UserResponse)
def staff_session(current_user: StaffUser) -> UserResponse:
    """
    Access check for the staff dashboard.
    Returns the live record, so a demotion shows up here on the next request.
    """
    return UserResponse.model_validate(current_user)
