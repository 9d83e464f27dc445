"""Organizer submission and flag endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from hackadmin.moderation.api._errors import to_http_error
from hackadmin.moderation.api.deps import (
    get_admin_actor,
    get_organizer_flag_service_dep,
    get_submission_service_dep,
)
from hackadmin.moderation.api.queue import QueueItemOut
from hackadmin.moderation.domain.errors import ModerationError
from hackadmin.moderation.domain.models import AdminActor
from hackadmin.moderation.domain.organizers import OrganizerFlagChange, OrganizerFlagService
from hackadmin.moderation.domain.submissions import SubmissionReviewService

router = APIRouter(prefix="/api/admin/v1/organizers", tags=["moderation-organizers"])


class SubmissionIn(BaseModel):
    hackathon_id: str = Field(..., min_length=1)
    title: str = Field(..., min_length=1)
    description: str | None = None
    auto_approval_enabled: bool = False


class FlagIn(BaseModel):
    reason: str = Field(..., min_length=1)


class OrganizerFlagOut(BaseModel):
    organizer_id: str
    is_flagged: bool
    flag_reason: str | None

    @classmethod
    def from_model(cls, change: OrganizerFlagChange) -> "OrganizerFlagOut":
        return cls(organizer_id=change.organizer_id, is_flagged=change.is_flagged, flag_reason=change.flag_reason)


class SubmissionDecisionOut(BaseModel):
    organizer_id: str
    hackathon_id: str
    is_flagged: bool
    requires_review: bool
    auto_approved: bool
    queue_item: QueueItemOut | None


@router.post("/{organizer_id}/submissions", response_model=SubmissionDecisionOut)
async def evaluate_submission(
    organizer_id: str,
    body: SubmissionIn,
    _: AdminActor = Depends(get_admin_actor),
    service: SubmissionReviewService = Depends(get_submission_service_dep),
) -> SubmissionDecisionOut:
    try:
        decision = await service.evaluate_submission(
            organizer_id,
            body.hackathon_id,
            title=body.title,
            description=body.description,
            auto_approval_enabled=body.auto_approval_enabled,
        )
    except ModerationError as exc:
        raise to_http_error(exc) from exc
    return SubmissionDecisionOut(
        organizer_id=decision.organizer_id,
        hackathon_id=decision.hackathon_id,
        is_flagged=decision.is_flagged,
        requires_review=decision.requires_review,
        auto_approved=decision.auto_approved,
        queue_item=QueueItemOut.from_model(decision.queue_item) if decision.queue_item else None,
    )


@router.post("/{organizer_id}/flag", response_model=OrganizerFlagOut)
async def flag_organizer(
    organizer_id: str,
    body: FlagIn,
    actor: AdminActor = Depends(get_admin_actor),
    service: OrganizerFlagService = Depends(get_organizer_flag_service_dep),
) -> OrganizerFlagOut:
    try:
        change = await service.flag_organizer(organizer_id, body.reason, actor)
    except ModerationError as exc:
        raise to_http_error(exc) from exc
    return OrganizerFlagOut.from_model(change)


@router.post("/{organizer_id}/unflag", response_model=OrganizerFlagOut)
async def unflag_organizer(
    organizer_id: str,
    body: FlagIn,
    actor: AdminActor = Depends(get_admin_actor),
    service: OrganizerFlagService = Depends(get_organizer_flag_service_dep),
) -> OrganizerFlagOut:
    try:
        change = await service.unflag_organizer(organizer_id, body.reason, actor)
    except ModerationError as exc:
        raise to_http_error(exc) from exc
    return OrganizerFlagOut.from_model(change)
