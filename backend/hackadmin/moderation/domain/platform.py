"""Read and write access to the platform records a ban touches."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Iterable, Mapping, Optional, Protocol, Sequence

from hackadmin.moderation.domain.cascade import dedupe_ids
from hackadmin.moderation.domain.errors import EntityUpdateError

ORGANIZER_ROLE = "organizer"
BANNED_STATUS = "banned"
UNPUBLISHED_STATUS = "unpublished"
ACTIVE_HACKATHON_STATUSES = ("published", "pending_review")

HACKATHON_ENTITY = "hackathon"


@dataclass(slots=True)
class UserProfile:
    id: str
    email: Optional[str] = None
    username: Optional[str] = None
    role: str = "user"
    moderation_status: str = "active"

    @property
    def is_organizer(self) -> bool:
        return self.role == ORGANIZER_ROLE


@dataclass(slots=True)
class Registration:
    user_id: str
    hackathon_id: str
    team_id: Optional[str] = None
    team_role: Optional[str] = None


class PlatformRepository(Protocol):
    async def get_user(self, user_id: str) -> Optional[UserProfile]:
        ...

    async def list_active_hackathon_ids(self, organizer_id: str) -> Sequence[str]:
        ...

    async def list_team_ids(self, user_id: str) -> Sequence[str]:
        ...

    async def list_team_member_ids(self, team_ids: Sequence[str], *, exclude_user_id: str) -> Sequence[str]:
        ...

    async def list_participant_ids(self, hackathon_ids: Sequence[str], *, exclude_user_id: str) -> Sequence[str]:
        ...

    async def get_entity(self, entity_type: str, entity_id: str) -> Optional[Mapping[str, Any]]:
        ...

    async def update_entity_status(
        self,
        entity_type: str,
        entity_id: str,
        fields: Mapping[str, Any],
    ) -> Mapping[str, Any]:
        """Write ``fields`` onto one entity and return its new state.

        Raises ``EntityUpdateError`` when the entity is missing or the write fails.
        """
        ...

    async def mark_user_banned(self, user_id: str) -> Optional[Mapping[str, Any]]:
        """Set the profile's moderation status to banned unless it already is.

        Returns the new profile state, or ``None`` when the profile was
        already banned. Raises ``EntityUpdateError`` when the profile is
        missing or the write fails.
        """
        ...

    async def remove_team_membership(self, user_id: str, team_id: str) -> None:
        ...

    async def get_organizer_flag(self, organizer_id: str) -> bool:
        ...

    async def set_organizer_flag(
        self,
        organizer_id: str,
        *,
        flagged: bool,
        reason: Optional[str] = None,
    ) -> Optional[Mapping[str, Any]]:
        """Flip the organizer flag and return the previous flag state.

        ``None`` means the flag was already in the requested state and nothing was written.
        """
        ...


class InMemoryPlatformRepository(PlatformRepository):
    """Dict-backed platform records for development and tests."""

    def __init__(
        self,
        *,
        users: Iterable[UserProfile] = (),
        hackathons: Iterable[Mapping[str, Any]] = (),
        registrations: Iterable[Registration] = (),
        flagged_organizers: Iterable[str] = (),
    ) -> None:
        self.users: dict[str, UserProfile] = {user.id: user for user in users}
        self.hackathons: dict[str, dict[str, Any]] = {str(row["id"]): dict(row) for row in hackathons}
        self.registrations: list[Registration] = list(registrations)
        self.flagged: set[str] = set(flagged_organizers)
        self.flag_reasons: dict[str, Optional[str]] = {}

    async def get_user(self, user_id: str) -> Optional[UserProfile]:
        return self.users.get(user_id)

    async def list_active_hackathon_ids(self, organizer_id: str) -> Sequence[str]:
        return [
            hackathon_id
            for hackathon_id, row in self.hackathons.items()
            if row.get("organizer_id") == organizer_id and row.get("status") in ACTIVE_HACKATHON_STATUSES
        ]

    async def list_team_ids(self, user_id: str) -> Sequence[str]:
        return dedupe_ids([reg.team_id for reg in self.registrations if reg.user_id == user_id and reg.team_id])

    async def list_team_member_ids(self, team_ids: Sequence[str], *, exclude_user_id: str) -> Sequence[str]:
        wanted = set(team_ids)
        return [reg.user_id for reg in self.registrations if reg.team_id in wanted and reg.user_id != exclude_user_id]

    async def list_participant_ids(self, hackathon_ids: Sequence[str], *, exclude_user_id: str) -> Sequence[str]:
        wanted = set(hackathon_ids)
        return [
            reg.user_id
            for reg in self.registrations
            if reg.hackathon_id in wanted and reg.user_id != exclude_user_id
        ]

    async def get_entity(self, entity_type: str, entity_id: str) -> Optional[Mapping[str, Any]]:
        if entity_type == HACKATHON_ENTITY:
            row = self.hackathons.get(entity_id)
            return dict(row) if row else None
        raise ValueError(f"unknown entity type: {entity_type}")

    async def update_entity_status(
        self,
        entity_type: str,
        entity_id: str,
        fields: Mapping[str, Any],
    ) -> Mapping[str, Any]:
        if entity_type == HACKATHON_ENTITY:
            row = self.hackathons.get(entity_id)
            if row is None:
                raise EntityUpdateError(f"hackathon {entity_id} not found")
            row.update(fields)
            row["updated_at"] = datetime.now(timezone.utc)
            return dict(row)
        raise ValueError(f"unknown entity type: {entity_type}")

    async def mark_user_banned(self, user_id: str) -> Optional[Mapping[str, Any]]:
        user = self.users.get(user_id)
        if user is None:
            raise EntityUpdateError(f"profile {user_id} not found")
        if user.moderation_status == BANNED_STATUS:
            return None
        user.moderation_status = BANNED_STATUS
        return {"id": user.id, "role": user.role, "moderation_status": user.moderation_status}

    async def remove_team_membership(self, user_id: str, team_id: str) -> None:
        matched = False
        for reg in self.registrations:
            if reg.user_id == user_id and reg.team_id == team_id:
                reg.team_id = None
                reg.team_role = None
                matched = True
        if not matched:
            raise EntityUpdateError(f"no membership for {user_id} in team {team_id}")

    async def get_organizer_flag(self, organizer_id: str) -> bool:
        return organizer_id in self.flagged

    async def set_organizer_flag(
        self,
        organizer_id: str,
        *,
        flagged: bool,
        reason: Optional[str] = None,
    ) -> Optional[Mapping[str, Any]]:
        was_flagged = organizer_id in self.flagged
        if was_flagged == flagged:
            return None
        previous = {"is_flagged": was_flagged, "flag_reason": self.flag_reasons.get(organizer_id)}
        if flagged:
            self.flagged.add(organizer_id)
            self.flag_reasons[organizer_id] = reason
        else:
            self.flagged.discard(organizer_id)
            self.flag_reasons.pop(organizer_id, None)
        return previous
