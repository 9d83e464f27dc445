"""Request dependencies shared by the moderation routers."""

from __future__ import annotations

from typing import Optional

from fastapi import Header, HTTPException, status

from hackadmin.moderation.domain.container import (
    get_ban_service,
    get_organizer_flag_service,
    get_queue_service,
    get_staff_ids,
    get_submission_service,
)
from hackadmin.moderation.domain.ban_service import BanService
from hackadmin.moderation.domain.models import AdminActor
from hackadmin.moderation.domain.organizers import OrganizerFlagService
from hackadmin.moderation.domain.queue_service import QueueService
from hackadmin.moderation.domain.submissions import SubmissionReviewService


async def get_admin_actor(
    x_admin_id: Optional[str] = Header(default=None, alias="X-Admin-Id"),
    x_admin_email: Optional[str] = Header(default=None, alias="X-Admin-Email"),
) -> AdminActor:
    """Resolve the acting admin from headers set by the authenticating proxy."""
    admin_id = (x_admin_id or "").strip()
    admin_email = (x_admin_email or "").strip()
    if not admin_id or not admin_email:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="admin_identity_required")
    if "@" not in admin_email:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="admin_identity_invalid")
    staff = get_staff_ids()
    if staff and admin_id not in staff:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="insufficient_role")
    return AdminActor(id=admin_id, email=admin_email)


def get_queue_service_dep() -> QueueService:
    return get_queue_service()


def get_ban_service_dep() -> BanService:
    return get_ban_service()


def get_submission_service_dep() -> SubmissionReviewService:
    return get_submission_service()


def get_organizer_flag_service_dep() -> OrganizerFlagService:
    return get_organizer_flag_service()
