"""Cascade effects that a user ban must trigger.

The engine is pure: it turns the banned user's facts at ban time into a
description of what has to happen. ``BanService`` executes the description.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Sequence


class CascadeEffectKind(str, Enum):
    UNPUBLISH_HACKATHON = "unpublish_hackathon"
    REMOVE_FROM_TEAM = "remove_from_team"
    NOTIFY_USERS = "notify_users"


@dataclass(frozen=True, slots=True)
class CascadeInput:
    user_id: str
    is_organizer: bool
    active_hackathon_ids: tuple[str, ...] = ()
    team_ids: tuple[str, ...] = ()
    # already deduplicated by the caller
    affected_user_ids: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class CascadeEffect:
    should_unpublish_hackathons: bool
    hackathons_to_unpublish: tuple[str, ...]
    should_remove_from_teams: bool
    teams_to_remove_from: tuple[str, ...]
    should_notify_users: bool
    users_to_notify: tuple[str, ...]


@dataclass(frozen=True, slots=True)
class SubActionResult:
    effect: CascadeEffectKind
    target_id: str
    ok: bool
    error: Optional[str] = None


@dataclass(slots=True)
class BanCascadeResult:
    user_id: str
    hackathons_unpublished: int = 0
    teams_removed: int = 0
    notifications_sent: int = 0
    affected_users: tuple[str, ...] = ()
    results: list[SubActionResult] = field(default_factory=list)

    @property
    def failures(self) -> list[SubActionResult]:
        return [result for result in self.results if not result.ok]


@dataclass(frozen=True, slots=True)
class BanCascadePreview:
    """What banning a user would do right now; nothing is written."""

    user_id: str
    is_organizer: bool
    hackathons_to_unpublish: tuple[str, ...] = ()
    teams_to_remove_from: tuple[str, ...] = ()
    users_to_notify: tuple[str, ...] = ()

    @property
    def affected_users_count(self) -> int:
        return len(self.users_to_notify)


def dedupe_ids(ids: Sequence[str]) -> tuple[str, ...]:
    """Drop duplicates, keeping first-seen order."""
    return tuple(dict.fromkeys(str(value) for value in ids))


def determine_cascade_effects(cascade: CascadeInput) -> CascadeEffect:
    hackathons = tuple(cascade.active_hackathon_ids) if cascade.is_organizer else ()
    teams = tuple(cascade.team_ids)
    users = tuple(cascade.affected_user_ids)
    return CascadeEffect(
        should_unpublish_hackathons=bool(hackathons),
        hackathons_to_unpublish=hackathons,
        should_remove_from_teams=bool(teams),
        teams_to_remove_from=teams,
        should_notify_users=bool(users),
        users_to_notify=users,
    )


def is_valid_cascade_effect(cascade: CascadeInput, effect: CascadeEffect) -> bool:
    """Check an effect against its input: every listed id is covered, nothing extra is added."""
    if cascade.is_organizer and cascade.active_hackathon_ids:
        if not effect.should_unpublish_hackathons:
            return False
        if set(effect.hackathons_to_unpublish) != set(cascade.active_hackathon_ids):
            return False
    elif effect.hackathons_to_unpublish or effect.should_unpublish_hackathons:
        return False

    if cascade.team_ids:
        if not effect.should_remove_from_teams:
            return False
        if set(effect.teams_to_remove_from) != set(cascade.team_ids):
            return False
    elif effect.teams_to_remove_from or effect.should_remove_from_teams:
        return False

    if cascade.affected_user_ids:
        if not effect.should_notify_users:
            return False
        if set(effect.users_to_notify) != set(cascade.affected_user_ids):
            return False
    elif effect.users_to_notify or effect.should_notify_users:
        return False
    return True
