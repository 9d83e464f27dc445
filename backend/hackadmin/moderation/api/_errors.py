"""Error translation helpers for the moderation API."""

from __future__ import annotations

from fastapi import HTTPException

from hackadmin.moderation.domain.errors import InputValidationError, ModerationError


def to_http_error(exc: ModerationError) -> HTTPException:
    """Translate domain exceptions to FastAPI HTTP errors."""
    if isinstance(exc, InputValidationError):
        return HTTPException(status_code=exc.status_code, detail={"message": exc.detail, "errors": exc.errors})
    return HTTPException(status_code=exc.status_code, detail=exc.detail)
