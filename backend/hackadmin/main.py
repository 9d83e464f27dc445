"""FastAPI application entrypoint for the hackathon admin backend."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from hackadmin import obs
from hackadmin.api import ops
from hackadmin.api.errors import install_error_handlers
from hackadmin.infra import postgres
from hackadmin.infra.redis import redis_client
from hackadmin.moderation import configure_postgres as configure_moderation
from hackadmin.moderation import router as moderation_router
from hackadmin.moderation.infra.postgres_repo import ensure_schema
from hackadmin.settings import settings

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
	if settings.moderation_backend == "postgres":
		pool = await postgres.init_pool()
		await ensure_schema(pool)
		configure_moderation(pool, redis_client)
		logger.info("moderation wired to postgres")
	else:
		logger.info("moderation using in-memory stores", extra={"backend": settings.moderation_backend})
	try:
		yield
	finally:
		await postgres.close_pool()


app = FastAPI(title="Hackathon Admin Moderation", lifespan=lifespan)
install_error_handlers(app)
obs.init(app)

app.include_router(ops.router)
app.include_router(moderation_router, tags=["moderation"])
