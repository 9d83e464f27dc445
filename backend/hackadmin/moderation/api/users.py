"""User moderation endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from hackadmin.moderation.api._errors import to_http_error
from hackadmin.moderation.api.deps import get_admin_actor, get_ban_service_dep
from hackadmin.moderation.domain.ban_service import BanService
from hackadmin.moderation.domain.cascade import BanCascadePreview, BanCascadeResult, SubActionResult
from hackadmin.moderation.domain.errors import ModerationError
from hackadmin.moderation.domain.models import AdminActor

router = APIRouter(prefix="/api/admin/v1/users", tags=["moderation-users"])


class BanIn(BaseModel):
    reason: str = Field(..., min_length=1)


class CascadeFailureOut(BaseModel):
    effect: str
    target_id: str
    error: str | None

    @classmethod
    def from_model(cls, result: SubActionResult) -> "CascadeFailureOut":
        return cls(effect=result.effect.value, target_id=result.target_id, error=result.error)


class BanResultOut(BaseModel):
    user_id: str
    hackathons_unpublished: int
    teams_removed: int
    notifications_sent: int
    affected_users: list[str]
    failures: list[CascadeFailureOut]

    @classmethod
    def from_model(cls, result: BanCascadeResult) -> "BanResultOut":
        return cls(
            user_id=result.user_id,
            hackathons_unpublished=result.hackathons_unpublished,
            teams_removed=result.teams_removed,
            notifications_sent=result.notifications_sent,
            affected_users=list(result.affected_users),
            failures=[CascadeFailureOut.from_model(failure) for failure in result.failures],
        )


class BanPreviewOut(BaseModel):
    user_id: str
    is_organizer: bool
    hackathons_to_unpublish: list[str]
    teams_to_remove_from: list[str]
    users_to_notify: list[str]
    affected_users_count: int

    @classmethod
    def from_model(cls, preview: BanCascadePreview) -> "BanPreviewOut":
        return cls(
            user_id=preview.user_id,
            is_organizer=preview.is_organizer,
            hackathons_to_unpublish=list(preview.hackathons_to_unpublish),
            teams_to_remove_from=list(preview.teams_to_remove_from),
            users_to_notify=list(preview.users_to_notify),
            affected_users_count=preview.affected_users_count,
        )


@router.get("/{user_id}/ban-preview", response_model=BanPreviewOut)
async def preview_ban(
    user_id: str,
    _: AdminActor = Depends(get_admin_actor),
    service: BanService = Depends(get_ban_service_dep),
) -> BanPreviewOut:
    try:
        preview = await service.preview_ban_cascade(user_id)
    except ModerationError as exc:
        raise to_http_error(exc) from exc
    return BanPreviewOut.from_model(preview)


@router.post("/{user_id}/ban", response_model=BanResultOut)
async def ban_user(
    user_id: str,
    body: BanIn,
    actor: AdminActor = Depends(get_admin_actor),
    service: BanService = Depends(get_ban_service_dep),
) -> BanResultOut:
    try:
        result = await service.ban_user_with_cascade(user_id, body.reason, actor)
    except ModerationError as exc:
        raise to_http_error(exc) from exc
    return BanResultOut.from_model(result)
