"""
Two-factor setup schemas.
"""

from typing import List

from pydantic import Field

from alphasource.schemas.base import CamelModel


class TwoFactorSetupResponse(CamelModel):
    """Shown once; backup codes and secret are never retrievable again."""

    qr_code_url: str
    backup_codes: List[str]
    secret: str


class TwoFactorCodeRequest(CamelModel):
    code: str = Field(min_length=1, max_length=32)
