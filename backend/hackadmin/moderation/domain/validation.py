"""Input validation for queue submissions."""

from __future__ import annotations

from dataclasses import dataclass, field

from hackadmin.moderation.domain.models import AddToQueueInput, QueueItemType


@dataclass(slots=True)
class ValidationResult:
    errors: list[str] = field(default_factory=list)

    @property
    def valid(self) -> bool:
        return not self.errors


def is_valid_queue_item_type(value: object) -> bool:
    if not isinstance(value, str):
        return False
    return value in {member.value for member in QueueItemType}


def _require_text(errors: list[str], name: str, value: object) -> None:
    if not value:
        errors.append(f"{name} is required")
    elif not isinstance(value, str) or not value.strip():
        errors.append(f"{name} must be a non-empty string")


def validate_add_to_queue_input(data: AddToQueueInput) -> ValidationResult:
    result = ValidationResult()
    if not data.item_type:
        result.errors.append("item_type is required")
    elif not is_valid_queue_item_type(data.item_type):
        result.errors.append(f"Invalid item_type: {data.item_type}")
    _require_text(result.errors, "title", data.title)
    _require_text(result.errors, "target_type", data.target_type)
    _require_text(result.errors, "target_id", data.target_id)
    return result
