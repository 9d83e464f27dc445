"""Organizer flagging.

A flag sends every later submission from the organizer to manual review
(see ``review.requires_manual_review``). Flag changes are conditional writes
and each accepted change appends one audit entry.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Mapping, Optional

from hackadmin.moderation.domain.audit import (
    AuditActionType,
    AuditLogInput,
    AuditSink,
    AuditTargetType,
    ensure_valid,
)
from hackadmin.moderation.domain.errors import FlagValidationError, OrganizerNotFoundError, PolicyViolationError
from hackadmin.moderation.domain.models import AdminActor
from hackadmin.moderation.domain.platform import PlatformRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class OrganizerFlagChange:
    organizer_id: str
    is_flagged: bool
    flag_reason: Optional[str]


@dataclass
class OrganizerFlagService:
    platform: PlatformRepository
    audit: AuditSink

    async def flag_organizer(self, organizer_id: str, reason: str, actor: AdminActor) -> OrganizerFlagChange:
        return await self._change(organizer_id, reason, actor, flagged=True)

    async def unflag_organizer(self, organizer_id: str, reason: str, actor: AdminActor) -> OrganizerFlagChange:
        return await self._change(organizer_id, reason, actor, flagged=False)

    async def _change(self, organizer_id: str, reason: str, actor: AdminActor, *, flagged: bool) -> OrganizerFlagChange:
        if not reason or not reason.strip():
            raise FlagValidationError(["reason is required"])
        reason = reason.strip()
        organizer = await self.platform.get_user(organizer_id)
        if organizer is None or not organizer.is_organizer:
            raise OrganizerNotFoundError()

        action = AuditActionType.ORGANIZER_FLAGGED if flagged else AuditActionType.ORGANIZER_UNFLAGGED
        after_state = {"is_flagged": flagged, "flag_reason": reason if flagged else None}
        ensure_valid(self._entry(action, organizer_id, reason, actor, None, after_state))

        previous = await self.platform.set_organizer_flag(
            organizer_id,
            flagged=flagged,
            reason=reason if flagged else None,
        )
        if previous is None:
            raise PolicyViolationError("Organizer is already flagged" if flagged else "Organizer is not flagged")

        await self.audit.append_log(self._entry(action, organizer_id, reason, actor, previous, after_state))
        logger.info(
            "organizer flag changed",
            extra={"organizer_id": organizer_id, "flagged": flagged, "admin_id": actor.id},
        )
        return OrganizerFlagChange(
            organizer_id=organizer_id,
            is_flagged=flagged,
            flag_reason=after_state["flag_reason"],
        )

    @staticmethod
    def _entry(
        action: AuditActionType,
        organizer_id: str,
        reason: str,
        actor: AdminActor,
        before_state: Optional[Mapping[str, Any]],
        after_state: Mapping[str, Any],
    ) -> AuditLogInput:
        return AuditLogInput(
            action_type=action,
            admin_id=actor.id,
            admin_email=actor.email,
            target_type=AuditTargetType.ORGANIZER,
            target_id=organizer_id,
            reason=reason,
            before_state=before_state,
            after_state=after_state,
        )
