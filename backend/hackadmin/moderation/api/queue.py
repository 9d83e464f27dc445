"""Moderation queue endpoints."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, Field

from hackadmin.moderation.api._errors import to_http_error
from hackadmin.moderation.api.deps import get_admin_actor, get_queue_service_dep
from hackadmin.moderation.domain.errors import ModerationError
from hackadmin.moderation.domain.models import (
    AddToQueueInput,
    AdminActor,
    PriorityBand,
    QueueCounts,
    QueueFilters,
    QueueItem,
    QueueItemType,
    QueueResolution,
    QueueStatus,
    ResolveQueueInput,
)
from hackadmin.moderation.domain.queue_service import QueueService

router = APIRouter(prefix="/api/admin/v1/queue", tags=["moderation-queue"])


class QueueItemOut(BaseModel):
    id: str
    item_type: QueueItemType
    priority: int
    title: str
    description: str | None
    target_type: str
    target_id: str
    target_data: dict[str, Any] | None
    report_count: int
    reporter_ids: list[str]
    claimed_by: str | None
    claimed_at: datetime | None
    status: QueueStatus
    resolution: str | None
    resolved_by: str | None
    resolved_at: datetime | None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_model(cls, item: QueueItem) -> "QueueItemOut":
        return cls(
            id=item.id,
            item_type=item.item_type,
            priority=item.priority,
            title=item.title,
            description=item.description,
            target_type=item.target_type,
            target_id=item.target_id,
            target_data=dict(item.target_data) if item.target_data is not None else None,
            report_count=item.report_count,
            reporter_ids=list(item.reporter_ids),
            claimed_by=item.claimed_by,
            claimed_at=item.claimed_at,
            status=item.status,
            resolution=item.resolution,
            resolved_by=item.resolved_by,
            resolved_at=item.resolved_at,
            created_at=item.created_at,
            updated_at=item.updated_at,
        )


class QueueCountsOut(BaseModel):
    total: int
    pending: int
    claimed: int
    by_type: dict[str, int]

    @classmethod
    def from_model(cls, counts: QueueCounts) -> "QueueCountsOut":
        return cls(total=counts.total, pending=counts.pending, claimed=counts.claimed, by_type=dict(counts.by_type))


class QueueListOut(BaseModel):
    items: list[QueueItemOut]
    counts: QueueCountsOut
    page: int
    total_pages: int


class PendingCountOut(BaseModel):
    count: int


class AddToQueueIn(BaseModel):
    # Loosely typed so missing or unknown values come back as field messages from the domain validator
    item_type: str | None = None
    title: str | None = None
    target_type: str | None = None
    target_id: str | None = None
    description: str | None = None
    target_data: dict[str, Any] | None = None
    reporter_id: str | None = None
    reporter_trust_score: float | None = Field(default=None, ge=0, le=100)


class ResolveIn(BaseModel):
    resolution: QueueResolution
    reason: str = Field(..., min_length=1)
    action_taken: str | None = None


@router.get("", response_model=QueueListOut)
async def list_queue(
    *,
    item_type: Optional[list[QueueItemType]] = Query(default=None),
    priority: PriorityBand = Query(default=PriorityBand.ALL),
    status_filter: Optional[list[QueueStatus]] = Query(default=None, alias="status"),
    claimed_by: Optional[str] = Query(default=None, description="'unclaimed', 'mine' or an admin id"),
    date_from: Optional[datetime] = Query(default=None),
    date_to: Optional[datetime] = Query(default=None),
    page: int = Query(default=1, ge=1),
    limit: Optional[int] = Query(default=None, ge=1),
    actor: AdminActor = Depends(get_admin_actor),
    service: QueueService = Depends(get_queue_service_dep),
) -> QueueListOut:
    filters = QueueFilters(
        item_type=item_type or None,
        priority=priority,
        status=status_filter or None,
        claimed_by=claimed_by,
        date_from=date_from,
        date_to=date_to,
        page=page,
        limit=limit,
    )
    response = await service.query_queue(filters, admin_id=actor.id)
    return QueueListOut(
        items=[QueueItemOut.from_model(item) for item in response.items],
        counts=QueueCountsOut.from_model(response.counts),
        page=response.page,
        total_pages=response.total_pages,
    )


@router.post("", response_model=QueueItemOut, status_code=status.HTTP_201_CREATED)
async def add_to_queue(body: AddToQueueIn, service: QueueService = Depends(get_queue_service_dep)) -> QueueItemOut:
    try:
        item = await service.add_to_queue(AddToQueueInput(**body.model_dump()))
    except ModerationError as exc:
        raise to_http_error(exc) from exc
    return QueueItemOut.from_model(item)


@router.get("/pending-count", response_model=PendingCountOut)
async def pending_count(
    _: AdminActor = Depends(get_admin_actor),
    service: QueueService = Depends(get_queue_service_dep),
) -> PendingCountOut:
    return PendingCountOut(count=await service.get_pending_count())


@router.get("/target/{target_type}/{target_id}", response_model=list[QueueItemOut])
async def items_for_target(
    target_type: str,
    target_id: str,
    _: AdminActor = Depends(get_admin_actor),
    service: QueueService = Depends(get_queue_service_dep),
) -> list[QueueItemOut]:
    items = await service.get_items_for_target(target_type, target_id)
    return [QueueItemOut.from_model(item) for item in items]


@router.get("/{item_id}", response_model=QueueItemOut)
async def get_item(
    item_id: str,
    _: AdminActor = Depends(get_admin_actor),
    service: QueueService = Depends(get_queue_service_dep),
) -> QueueItemOut:
    try:
        item = await service.get_item(item_id)
    except ModerationError as exc:
        raise to_http_error(exc) from exc
    return QueueItemOut.from_model(item)


@router.post("/{item_id}/claim", response_model=QueueItemOut)
async def claim_item(
    item_id: str,
    actor: AdminActor = Depends(get_admin_actor),
    service: QueueService = Depends(get_queue_service_dep),
) -> QueueItemOut:
    try:
        item = await service.claim_item(item_id, actor)
    except ModerationError as exc:
        raise to_http_error(exc) from exc
    return QueueItemOut.from_model(item)


@router.post("/{item_id}/release", response_model=QueueItemOut)
async def release_item(
    item_id: str,
    actor: AdminActor = Depends(get_admin_actor),
    service: QueueService = Depends(get_queue_service_dep),
) -> QueueItemOut:
    try:
        item = await service.release_item(item_id, actor)
    except ModerationError as exc:
        raise to_http_error(exc) from exc
    return QueueItemOut.from_model(item)


@router.post("/{item_id}/resolve", response_model=QueueItemOut)
async def resolve_item(
    item_id: str,
    body: ResolveIn,
    actor: AdminActor = Depends(get_admin_actor),
    service: QueueService = Depends(get_queue_service_dep),
) -> QueueItemOut:
    resolution = ResolveQueueInput(resolution=body.resolution, reason=body.reason, action_taken=body.action_taken)
    try:
        item = await service.resolve_item(item_id, actor, resolution)
    except ModerationError as exc:
        raise to_http_error(exc) from exc
    return QueueItemOut.from_model(item)
