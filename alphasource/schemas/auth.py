"""
Schemas for the login state machine and email verification.
"""

from typing import Optional

from pydantic import EmailStr, Field, model_validator

from alphasource.schemas.base import CamelModel
from alphasource.schemas.user import SessionUser, UserResponse


class LoginRequest(CamelModel):
    """
    One endpoint, two shapes: ``{email, password}`` for step one, or
    ``{challengeToken, twoFactorCode}`` to complete a two-factor login.
    """

    email: Optional[EmailStr] = None
    password: Optional[str] = None
    challenge_token: Optional[str] = None
    two_factor_code: Optional[str] = None

    @model_validator(mode="after")
    def check_shape(self) -> "LoginRequest":
        if self.challenge_token is not None:
            if not self.two_factor_code:
                raise ValueError("twoFactorCode is required with challengeToken")
        elif not self.email or not self.password:
            raise ValueError("email and password are required")
        return self

    @property
    def is_challenge_response(self) -> bool:
        return self.challenge_token is not None


class SignupResponse(CamelModel):
    success: bool = True
    user: SessionUser
    requires_email_verification: bool = True


class LoginResponse(CamelModel):
    """Either a completed login or a pending two-factor challenge."""

    success: bool = True
    user: Optional[SessionUser] = None
    requires_two_factor: bool = False
    challenge_token: Optional[str] = None


class CurrentUserResponse(CamelModel):
    user: Optional[UserResponse] = None


class VerifyEmailRequest(CamelModel):
    token: str = Field(min_length=1)


class FederatedLoginRequest(CamelModel):
    id_token: str = Field(min_length=1)
