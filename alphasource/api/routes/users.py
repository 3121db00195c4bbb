"""
User routes for the logged-in user's own profile.
"""

from fastapi import APIRouter

from alphasource.api.deps import CurrentUser, SessionDep, VerifiedUser
from alphasource.core.exceptions import NotFoundError
from alphasource.schemas.user import ProfileUpdate, UserResponse
from alphasource.services.user_service import UserService

router = APIRouter(prefix="/users", tags=["users"])


@router.get("/me", response_model=UserResponse)
def get_current_user_profile(current_user: CurrentUser) -> UserResponse:
    """
    Get current user's profile.
    This is a protected route that requires authentication.
    """
    return UserResponse.model_validate(current_user)


@router.patch("/me", response_model=UserResponse)
def update_current_user_profile(
    body: ProfileUpdate,
    current_user: VerifiedUser,
    session: SessionDep,
) -> UserResponse:
    """
    Edit name and avatar. Requires a verified email address, like every
    other user-submitted content.
    """
    changes = body.model_dump(exclude_unset=True)
    updated = UserService.update(session, current_user.id, **changes) if changes else current_user
    if updated is None:
        raise NotFoundError("User not found")
    return UserResponse.model_validate(updated)
