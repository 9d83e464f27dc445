"""Moderation package integration helpers exposed to the application."""

from hackadmin.moderation.api import router
from hackadmin.moderation.domain.container import configure, configure_postgres

__all__ = ["router", "configure", "configure_postgres"]
