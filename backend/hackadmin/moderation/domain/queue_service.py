"""Moderation queue workflows: intake, listing and the claim lifecycle."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import NoReturn, Optional, Sequence
from uuid import uuid4

from hackadmin.moderation.domain import claims
from hackadmin.moderation.domain.audit import (
    AuditActionType,
    AuditLogInput,
    AuditSink,
    AuditTargetType,
    ensure_valid,
)
from hackadmin.moderation.domain.errors import (
    PolicyViolationError,
    QueueConflictError,
    QueueItemNotFoundError,
    QueueValidationError,
)
from hackadmin.moderation.domain.models import (
    AddToQueueInput,
    AdminActor,
    QueueFilters,
    QueueItem,
    QueueItemType,
    QueueResponse,
    QueueStatus,
    ResolveQueueInput,
)
from hackadmin.moderation.domain.ordering import normalise_page, total_pages
from hackadmin.moderation.domain.priority import calculate_priority, merged_priority
from hackadmin.moderation.domain.queue_repository import QueueRepository
from hackadmin.moderation.domain.validation import validate_add_to_queue_input
from hackadmin.obs import metrics as obs_metrics

logger = logging.getLogger(__name__)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _clean(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    return value.strip() or None


@dataclass
class QueueService:
    repository: QueueRepository
    audit: AuditSink
    page_size_default: int = 50
    page_size_max: int = 100
    merge_retries: int = 3

    async def add_to_queue(self, data: AddToQueueInput) -> QueueItem:
        """Insert a new item, or merge into the open item already tracking the same target."""
        result = validate_add_to_queue_input(data)
        if not result.valid:
            raise QueueValidationError(result.errors)
        item_type = QueueItemType(data.item_type)
        target_type = data.target_type.strip()
        target_id = data.target_id.strip()
        reporter_id = _clean(data.reporter_id)

        for attempt in range(max(1, self.merge_retries)):
            existing = await self.repository.find_open_for_target(target_type, target_id)
            if existing is None:
                inserted = await self._insert(data, item_type, target_type, target_id, reporter_id)
                if inserted is not None:
                    return inserted
            else:
                merged = await self._merge(existing, reporter_id, data.reporter_trust_score)
                if merged is not None:
                    return merged
            logger.info(
                "queue intake lost a race, retrying",
                extra={"target_type": target_type, "target_id": target_id, "attempt": attempt + 1},
            )

        obs_metrics.QUEUE_CLAIM_CONFLICTS_TOTAL.labels(operation="merge").inc()
        raise QueueConflictError("Queue item changed concurrently; retry the report")

    async def _insert(
        self,
        data: AddToQueueInput,
        item_type: QueueItemType,
        target_type: str,
        target_id: str,
        reporter_id: Optional[str],
    ) -> Optional[QueueItem]:
        now = _now()
        item = QueueItem(
            id=str(uuid4()),
            item_type=item_type,
            priority=calculate_priority(
                item_type,
                existing_report_count=0,
                has_new_reporter=reporter_id is not None,
                reporter_trust_score=data.reporter_trust_score,
            ),
            title=data.title.strip(),
            description=_clean(data.description),
            target_type=target_type,
            target_id=target_id,
            target_data=dict(data.target_data) if data.target_data else None,
            report_count=1 if reporter_id else 0,
            reporter_ids=(reporter_id,) if reporter_id else (),
            status=QueueStatus.PENDING,
            created_at=now,
            updated_at=now,
        )
        inserted = await self.repository.insert(item)
        if inserted is None:
            return None
        obs_metrics.QUEUE_TRANSITIONS_TOTAL.labels(transition="added").inc()
        obs_metrics.QUEUE_PRIORITY_ASSIGNED.labels(item_type=item_type.value).observe(inserted.priority)
        logger.info(
            "queue item added",
            extra={"queue_item_id": inserted.id, "item_type": item_type.value, "priority": inserted.priority},
        )
        return inserted

    async def _merge(
        self,
        existing: QueueItem,
        reporter_id: Optional[str],
        reporter_trust_score: Optional[float],
    ) -> Optional[QueueItem]:
        is_new_reporter = reporter_id is not None and reporter_id not in existing.reporter_ids
        recomputed = calculate_priority(
            existing.item_type,
            existing_report_count=existing.report_count,
            has_new_reporter=is_new_reporter,
            reporter_trust_score=reporter_trust_score,
        )
        priority = merged_priority(existing.priority, recomputed)
        if not is_new_reporter and priority == existing.priority:
            return existing

        fields = {"priority": priority, "updated_at": _now()}
        if is_new_reporter:
            fields["report_count"] = existing.report_count + 1
            fields["reporter_ids"] = existing.reporter_ids + (reporter_id,)
        updated = await self.repository.conditional_update(
            existing.id,
            {"report_count": existing.report_count, "priority": existing.priority},
            fields,
        )
        if updated is None:
            return None
        obs_metrics.QUEUE_TRANSITIONS_TOTAL.labels(transition="merged").inc()
        obs_metrics.QUEUE_PRIORITY_ASSIGNED.labels(item_type=updated.item_type.value).observe(updated.priority)
        logger.info(
            "queue item merged",
            extra={"queue_item_id": updated.id, "report_count": updated.report_count, "priority": updated.priority},
        )
        return updated

    async def query_queue(self, filters: QueueFilters, *, admin_id: Optional[str] = None) -> QueueResponse:
        page, limit = normalise_page(
            filters.page,
            filters.limit,
            default_limit=self.page_size_default,
            max_limit=self.page_size_max,
        )
        items, total = await self.repository.query(
            filters,
            admin_id=admin_id,
            offset=(page - 1) * limit,
            limit=limit,
        )
        counts = await self.repository.open_counts()
        return QueueResponse(items=items, counts=counts, page=page, total_pages=total_pages(total, limit))

    async def get_item(self, item_id: str) -> QueueItem:
        item = await self.repository.get(item_id)
        if item is None:
            raise QueueItemNotFoundError()
        return item

    async def get_pending_count(self) -> int:
        return await self.repository.pending_count()

    async def get_items_for_target(self, target_type: str, target_id: str) -> Sequence[QueueItem]:
        return await self.repository.list_for_target(target_type, target_id)

    async def claim_item(self, item_id: str, actor: AdminActor) -> QueueItem:
        item = await self.get_item(item_id)
        self._check(claims.can_claim(item, actor.id))
        reason = f"Claimed queue item: {item.title}"
        self._precheck_audit(actor, AuditActionType.QUEUE_ITEM_CLAIMED, item, reason)
        now = _now()
        updated = await self.repository.conditional_update(
            item_id,
            claims.expected_for_claim(),
            claims.claim_fields(actor.id, now),
        )
        if updated is None:
            self._conflict("claim", item_id, actor)
        await self._record(actor, AuditActionType.QUEUE_ITEM_CLAIMED, before=item, after=updated, reason=reason)
        obs_metrics.QUEUE_TRANSITIONS_TOTAL.labels(transition="claimed").inc()
        return updated

    async def release_item(self, item_id: str, actor: AdminActor) -> QueueItem:
        item = await self.get_item(item_id)
        self._check(claims.can_release(item, actor.id))
        reason = f"Released queue item: {item.title}"
        self._precheck_audit(actor, AuditActionType.QUEUE_ITEM_RELEASED, item, reason)
        updated = await self.repository.conditional_update(
            item_id,
            claims.expected_for_claimant(actor.id),
            claims.release_fields(_now()),
        )
        if updated is None:
            self._conflict("release", item_id, actor)
        await self._record(actor, AuditActionType.QUEUE_ITEM_RELEASED, before=item, after=updated, reason=reason)
        obs_metrics.QUEUE_TRANSITIONS_TOTAL.labels(transition="released").inc()
        return updated

    async def resolve_item(self, item_id: str, actor: AdminActor, resolution: ResolveQueueInput) -> QueueItem:
        if not resolution.reason or not resolution.reason.strip():
            raise QueueValidationError(["reason is required"])
        reason = resolution.reason.strip()
        item = await self.get_item(item_id)
        self._check(claims.can_resolve(item, actor.id))
        if claims.final_status_for(resolution.resolution) is QueueStatus.DISMISSED:
            action, transition = AuditActionType.QUEUE_ITEM_DISMISSED, "dismissed"
        else:
            action, transition = AuditActionType.QUEUE_ITEM_RESOLVED, "resolved"
        self._precheck_audit(actor, action, item, reason)
        updated = await self.repository.conditional_update(
            item_id,
            claims.expected_for_claimant(actor.id),
            claims.resolve_fields(
                actor.id,
                resolution.resolution,
                reason,
                _clean(resolution.action_taken),
                _now(),
            ),
        )
        if updated is None:
            self._conflict("resolve", item_id, actor)
        await self._record(actor, action, before=item, after=updated, reason=reason)
        obs_metrics.QUEUE_TRANSITIONS_TOTAL.labels(transition=transition).inc()
        return updated

    @staticmethod
    def _check(guard: claims.GuardResult) -> None:
        if not guard:
            raise PolicyViolationError(guard.reason)

    @staticmethod
    def _conflict(operation: str, item_id: str, actor: AdminActor) -> NoReturn:
        obs_metrics.QUEUE_CLAIM_CONFLICTS_TOTAL.labels(operation=operation).inc()
        logger.info(
            "queue write rejected by store",
            extra={"operation": operation, "queue_item_id": item_id, "admin_id": actor.id},
        )
        if operation == "claim":
            raise QueueConflictError("Item is already claimed by another admin")
        raise QueueConflictError("Queue item changed concurrently; refresh and retry")

    @staticmethod
    def _audit_entry(
        actor: AdminActor,
        action: AuditActionType,
        *,
        before: QueueItem,
        after: Optional[QueueItem],
        reason: str,
    ) -> AuditLogInput:
        return AuditLogInput(
            action_type=action,
            admin_id=actor.id,
            admin_email=actor.email,
            target_type=AuditTargetType.QUEUE_ITEM,
            target_id=before.id,
            reason=reason,
            before_state=before.snapshot(),
            after_state=after.snapshot() if after is not None else None,
        )

    def _precheck_audit(self, actor: AdminActor, action: AuditActionType, item: QueueItem, reason: str) -> None:
        # The audit entry must be writable before the transition is committed
        ensure_valid(self._audit_entry(actor, action, before=item, after=None, reason=reason))

    async def _record(
        self,
        actor: AdminActor,
        action: AuditActionType,
        *,
        before: QueueItem,
        after: QueueItem,
        reason: str,
    ) -> None:
        await self.audit.append_log(self._audit_entry(actor, action, before=before, after=after, reason=reason))
