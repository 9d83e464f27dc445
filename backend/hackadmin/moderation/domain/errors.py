"""Exceptions raised by the moderation queue and ban workflows."""

from __future__ import annotations

from typing import Sequence

from fastapi import status


class ModerationError(Exception):
    """Base class for moderation workflow failures."""

    status_code: int = status.HTTP_400_BAD_REQUEST
    detail: str = "moderation_error"

    def __init__(self, detail: str | None = None) -> None:
        super().__init__(detail or self.detail)
        if detail:
            self.detail = detail


class InputValidationError(ModerationError):
    """Malformed input rejected before any state mutation."""

    status_code = 422
    detail = "invalid_input"
    label = "input"

    def __init__(self, errors: Sequence[str]) -> None:
        self.errors = list(errors)
        super().__init__(f"Invalid {self.label}: {', '.join(self.errors)}")


class QueueValidationError(InputValidationError):
    label = "queue input"


class BanValidationError(InputValidationError):
    label = "ban request"


class FlagValidationError(InputValidationError):
    label = "organizer flag request"


class PolicyViolationError(ModerationError):
    """A guard refused the transition; `detail` carries the reason shown to the operator."""

    status_code = status.HTTP_403_FORBIDDEN
    detail = "policy_violation"


class QueueConflictError(ModerationError):
    """The store rejected a conditional write; the caller should refresh and retry."""

    status_code = status.HTTP_409_CONFLICT
    detail = "queue_conflict"


class QueueItemNotFoundError(ModerationError):
    status_code = status.HTTP_404_NOT_FOUND
    detail = "Queue item not found"


class UserNotFoundError(ModerationError):
    status_code = status.HTTP_404_NOT_FOUND
    detail = "User not found"


class OrganizerNotFoundError(ModerationError):
    status_code = status.HTTP_404_NOT_FOUND
    detail = "Organizer not found"


class EntityUpdateError(ModerationError):
    """A single platform entity write failed."""

    status_code = status.HTTP_502_BAD_GATEWAY
    detail = "entity_update_failed"


class AuditValidationError(InputValidationError):
    label = "audit log input"
