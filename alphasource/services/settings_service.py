"""
Owner-managed site settings.
"""

from typing import Optional

import pydantic
from sqlmodel import Session, select

from alphasource.core.exceptions import ValidationError
from alphasource.core.logging import get_logger
from alphasource.core.timeutils import utc_now
from alphasource.models.audit_log import AuditAction
from alphasource.models.site_setting import SiteSetting
from alphasource.models.user import User
from alphasource.schemas.owner import SiteSettings, SiteSettingsUpdate
from alphasource.services.audit_service import AuditService

logger = get_logger(__name__)


class SettingsService:
    """Read and update the site settings, defaults filled in for unset keys."""

    @staticmethod
    def get(session: Session) -> SiteSettings:
        known = set(SiteSettings.model_fields)
        stored = {
            row.key: row.value
            for row in session.exec(select(SiteSetting)).all()
            if row.key in known
        }
        return SiteSettings.model_validate(stored)

    @staticmethod
    def update(
        session: Session,
        actor: User,
        changes: SiteSettingsUpdate,
        ip_address: Optional[str] = None,
    ) -> SiteSettings:
        """
        Merge a partial update and audit the old and new values.

        Raises:
            ValidationError: If the merged settings are invalid; nothing is written
        """
        current = SettingsService.get(session)
        updates = changes.model_dump(exclude_unset=True)
        if not updates:
            return current

        try:
            merged = SiteSettings.model_validate({**current.model_dump(), **updates})
        except pydantic.ValidationError as e:
            logger.warning(f"Rejected settings update from {actor.id}: {e.error_count()} errors")
            raise ValidationError("Invalid settings value")

        old_values = {key: getattr(current, key) for key in updates}
        now = utc_now()
        for key in updates:
            row = session.get(SiteSetting, key)
            if row is None:
                row = SiteSetting(key=key)
            row.value = getattr(merged, key)
            row.updated_by = actor.id
            row.updated_at = now
            session.add(row)
        session.commit()

        AuditService.record(
            session,
            actor,
            AuditAction.UPDATE_SETTINGS,
            target_type="settings",
            details={"oldValues": old_values, "newValues": updates},
            ip_address=ip_address,
        )
        return SettingsService.get(session)
