"""Ban execution with cascade effects."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Mapping, Optional

from hackadmin.moderation.domain.audit import (
    AuditActionType,
    AuditLogInput,
    AuditSink,
    AuditTargetType,
    ensure_valid,
)
from hackadmin.moderation.domain.cascade import (
    BanCascadePreview,
    BanCascadeResult,
    CascadeEffectKind,
    CascadeInput,
    SubActionResult,
    dedupe_ids,
    determine_cascade_effects,
)
from hackadmin.moderation.domain.errors import BanValidationError, PolicyViolationError, UserNotFoundError
from hackadmin.moderation.domain.models import AdminActor
from hackadmin.moderation.domain.notifications import NotificationChannel
from hackadmin.moderation.domain.platform import (
    BANNED_STATUS,
    HACKATHON_ENTITY,
    UNPUBLISHED_STATUS,
    PlatformRepository,
    UserProfile,
)
from hackadmin.obs import metrics as obs_metrics

logger = logging.getLogger(__name__)


@dataclass
class BanService:
    platform: PlatformRepository
    audit: AuditSink
    notifications: NotificationChannel

    async def preview_ban_cascade(self, user_id: str) -> BanCascadePreview:
        """Describe the cascade a ban of ``user_id`` would trigger, without writing anything."""
        user = await self.platform.get_user(user_id)
        if user is None:
            raise UserNotFoundError()
        effect = determine_cascade_effects(await self._gather_facts(user))
        return BanCascadePreview(
            user_id=user.id,
            is_organizer=user.is_organizer,
            hackathons_to_unpublish=effect.hackathons_to_unpublish,
            teams_to_remove_from=effect.teams_to_remove_from,
            users_to_notify=effect.users_to_notify,
        )

    async def ban_user_with_cascade(self, user_id: str, reason: str, actor: AdminActor) -> BanCascadeResult:
        """Ban a user and run every cascade effect the ban implies.

        The request and its ``user_banned`` audit entry are validated before
        anything is written. Marking the user banned is a conditional write
        and propagates its errors; of two concurrent bans only one proceeds.
        Each unpublish, team removal and the notification fan-out is attempted
        independently; a failure is logged and reported in
        ``BanCascadeResult.failures``.
        """
        if not reason or not reason.strip():
            raise BanValidationError(["reason is required"])
        reason = reason.strip()
        start = time.perf_counter()

        user = await self.platform.get_user(user_id)
        if user is None:
            raise UserNotFoundError()
        if user.moderation_status == BANNED_STATUS:
            raise PolicyViolationError("User is already banned")
        before_state = {"role": user.role, "moderation_status": user.moderation_status}
        ensure_valid(self._ban_entry(user, reason, actor, before_state, after_state=None))

        cascade = await self._gather_facts(user)
        effect = determine_cascade_effects(cascade)

        if await self.platform.mark_user_banned(user.id) is None:
            raise PolicyViolationError("User is already banned")

        result = BanCascadeResult(user_id=user.id, affected_users=effect.users_to_notify)
        for hackathon_id in effect.hackathons_to_unpublish:
            await self._unpublish_hackathon(result, hackathon_id, user.id, reason, actor)
        for team_id in effect.teams_to_remove_from:
            await self._remove_from_team(result, team_id, user.id, reason, actor)
        if effect.should_notify_users:
            await self._notify(result, effect.users_to_notify, reason, actor)

        await self.audit.append_log(
            self._ban_entry(
                user,
                reason,
                actor,
                before_state,
                after_state={
                    "role": user.role,
                    "moderation_status": BANNED_STATUS,
                    "cascade_effects": {
                        "hackathons_unpublished": result.hackathons_unpublished,
                        "teams_removed": result.teams_removed,
                        "notifications_sent": result.notifications_sent,
                    },
                },
            )
        )
        obs_metrics.BAN_CASCADE_SECONDS.observe(time.perf_counter() - start)
        logger.info(
            "user banned",
            extra={
                "user_id": user.id,
                "hackathons_unpublished": result.hackathons_unpublished,
                "teams_removed": result.teams_removed,
                "notifications_sent": result.notifications_sent,
                "failures": len(result.failures),
            },
        )
        return result

    @staticmethod
    def _ban_entry(
        user: UserProfile,
        reason: str,
        actor: AdminActor,
        before_state: Mapping[str, Any],
        *,
        after_state: Optional[Mapping[str, Any]],
    ) -> AuditLogInput:
        return AuditLogInput(
            action_type=AuditActionType.USER_BANNED,
            admin_id=actor.id,
            admin_email=actor.email,
            target_type=AuditTargetType.USER,
            target_id=user.id,
            reason=reason,
            before_state=before_state,
            after_state=after_state,
        )

    async def _gather_facts(self, user: UserProfile) -> CascadeInput:
        active_hackathons: tuple[str, ...] = ()
        if user.is_organizer:
            active_hackathons = dedupe_ids(await self.platform.list_active_hackathon_ids(user.id))
        team_ids = dedupe_ids(await self.platform.list_team_ids(user.id))

        affected: list[str] = []
        if team_ids:
            affected.extend(await self.platform.list_team_member_ids(team_ids, exclude_user_id=user.id))
        if active_hackathons:
            affected.extend(await self.platform.list_participant_ids(active_hackathons, exclude_user_id=user.id))
        affected_ids = tuple(value for value in dedupe_ids(affected) if value != user.id)

        return CascadeInput(
            user_id=user.id,
            is_organizer=user.is_organizer,
            active_hackathon_ids=active_hackathons,
            team_ids=team_ids,
            affected_user_ids=affected_ids,
        )

    async def _unpublish_hackathon(
        self,
        result: BanCascadeResult,
        hackathon_id: str,
        user_id: str,
        reason: str,
        actor: AdminActor,
    ) -> None:
        try:
            before: Optional[Mapping[str, Any]] = await self.platform.get_entity(HACKATHON_ENTITY, hackathon_id)
            after = await self.platform.update_entity_status(
                HACKATHON_ENTITY,
                hackathon_id,
                {
                    "status": UNPUBLISHED_STATUS,
                    "admin_notes": f"Unpublished due to organizer ban: {reason}",
                },
            )
        except Exception as exc:  # noqa: BLE001 - one failed unpublish must not abort the cascade
            logger.exception(
                "failed to unpublish hackathon during ban",
                extra={"hackathon_id": hackathon_id, "banned_user_id": user_id},
            )
            self._record(result, CascadeEffectKind.UNPUBLISH_HACKATHON, hackathon_id, error=exc)
            return

        result.hackathons_unpublished += 1
        self._record(result, CascadeEffectKind.UNPUBLISH_HACKATHON, hackathon_id)
        await self._audit_step(
            AuditLogInput(
                action_type=AuditActionType.HACKATHON_UNPUBLISHED,
                admin_id=actor.id,
                admin_email=actor.email,
                target_type=AuditTargetType.HACKATHON,
                target_id=hackathon_id,
                reason=f"Cascade effect from user ban: {reason}",
                before_state=before,
                after_state=after,
            ),
            banned_user_id=user_id,
        )

    async def _remove_from_team(
        self,
        result: BanCascadeResult,
        team_id: str,
        user_id: str,
        reason: str,
        actor: AdminActor,
    ) -> None:
        try:
            await self.platform.remove_team_membership(user_id, team_id)
        except Exception as exc:  # noqa: BLE001 - one failed removal must not abort the cascade
            logger.exception(
                "failed to remove banned user from team",
                extra={"team_id": team_id, "banned_user_id": user_id},
            )
            self._record(result, CascadeEffectKind.REMOVE_FROM_TEAM, team_id, error=exc)
            return
        result.teams_removed += 1
        self._record(result, CascadeEffectKind.REMOVE_FROM_TEAM, team_id)
        await self._audit_step(
            AuditLogInput(
                action_type=AuditActionType.TEAM_MEMBER_REMOVED,
                admin_id=actor.id,
                admin_email=actor.email,
                target_type=AuditTargetType.TEAM,
                target_id=team_id,
                reason=f"User removed from team due to ban: {reason}",
                before_state={"user_id": user_id, "team_id": team_id},
                after_state={"user_id": user_id, "team_id": None},
            ),
            banned_user_id=user_id,
        )

    async def _notify(
        self,
        result: BanCascadeResult,
        user_ids: tuple[str, ...],
        reason: str,
        actor: AdminActor,
    ) -> None:
        try:
            sent = await self.notifications.notify(user_ids, reason)
        except Exception as exc:  # noqa: BLE001 - notification failures should not block the ban
            logger.exception(
                "failed to notify users affected by ban",
                extra={"banned_user_id": result.user_id, "recipients": len(user_ids)},
            )
            self._record(result, CascadeEffectKind.NOTIFY_USERS, result.user_id, error=exc)
            return
        result.notifications_sent = sent
        self._record(result, CascadeEffectKind.NOTIFY_USERS, result.user_id)
        await self._audit_step(
            AuditLogInput(
                action_type=AuditActionType.USERS_NOTIFIED,
                admin_id=actor.id,
                admin_email=actor.email,
                target_type=AuditTargetType.USER,
                target_id=result.user_id,
                reason=f"Notifications sent to {sent} affected users: {reason}",
                after_state={"affected_user_ids": list(user_ids), "notifications_sent": sent},
            ),
            banned_user_id=result.user_id,
        )

    async def _audit_step(self, entry: AuditLogInput, *, banned_user_id: str) -> None:
        try:
            await self.audit.append_log(entry)
        except Exception:  # noqa: BLE001 - audit of a cascade step must not abort the cascade
            logger.exception(
                "failed to audit ban cascade step",
                extra={
                    "action_type": entry.action_type.value,
                    "target_id": entry.target_id,
                    "banned_user_id": banned_user_id,
                },
            )

    @staticmethod
    def _record(
        result: BanCascadeResult,
        effect: CascadeEffectKind,
        target_id: str,
        *,
        error: Optional[BaseException] = None,
    ) -> None:
        outcome = "failure" if error is not None else "success"
        obs_metrics.BAN_CASCADE_EFFECTS_TOTAL.labels(effect=effect.value, outcome=outcome).inc()
        result.results.append(
            SubActionResult(
                effect=effect,
                target_id=target_id,
                ok=error is None,
                error=str(error) if error is not None else None,
            )
        )
