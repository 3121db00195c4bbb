"""
Owner-managed site settings, stored one row per key.
"""

from datetime import datetime
from typing import Any, Optional

from sqlmodel import JSON, Column, Field, SQLModel

from alphasource.core.timeutils import utc_now


class SiteSetting(SQLModel, table=True):
    __tablename__ = "site_settings"  # type: ignore

    key: str = Field(primary_key=True, max_length=64)
    value: Optional[Any] = Field(default=None, sa_column=Column(JSON))
    updated_by: Optional[str] = Field(default=None, max_length=36)
    updated_at: datetime = Field(default_factory=utc_now)
