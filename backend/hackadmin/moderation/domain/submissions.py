"""Hackathon submission intake for organizers."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from hackadmin.moderation.domain.models import AddToQueueInput, QueueItem, QueueItemType
from hackadmin.moderation.domain.platform import PlatformRepository
from hackadmin.moderation.domain.queue_service import QueueService
from hackadmin.moderation.domain.review import requires_manual_review
from hackadmin.obs import metrics as obs_metrics

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class SubmissionDecision:
    organizer_id: str
    hackathon_id: str
    is_flagged: bool
    requires_review: bool
    queue_item: Optional[QueueItem] = None

    @property
    def auto_approved(self) -> bool:
        return not self.requires_review


@dataclass
class SubmissionReviewService:
    platform: PlatformRepository
    queue: QueueService

    async def evaluate_submission(
        self,
        organizer_id: str,
        hackathon_id: str,
        *,
        title: str,
        auto_approval_enabled: bool,
        description: Optional[str] = None,
    ) -> SubmissionDecision:
        # Flag state is read fresh for every submission
        is_flagged = await self.platform.get_organizer_flag(organizer_id)
        needs_review = requires_manual_review(is_flagged, auto_approval_enabled)
        decision = SubmissionDecision(
            organizer_id=organizer_id,
            hackathon_id=hackathon_id,
            is_flagged=is_flagged,
            requires_review=needs_review,
        )
        if needs_review:
            decision.queue_item = await self.queue.add_to_queue(
                AddToQueueInput(
                    item_type=QueueItemType.HACKATHON,
                    title=title,
                    description=description,
                    target_type="hackathon",
                    target_id=hackathon_id,
                    target_data={"organizer_id": organizer_id, "organizer_flagged": is_flagged},
                )
            )
        obs_metrics.SUBMISSION_REVIEW_DECISIONS_TOTAL.labels(
            decision="manual_review" if needs_review else "auto_approved",
            flagged=str(is_flagged).lower(),
        ).inc()
        logger.info(
            "submission evaluated",
            extra={
                "organizer_id": organizer_id,
                "hackathon_id": hackathon_id,
                "flagged": is_flagged,
                "requires_review": needs_review,
            },
        )
        return decision
