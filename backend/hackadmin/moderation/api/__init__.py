"""Moderation API routers."""

from fastapi import APIRouter

from . import organizers, queue, users

router = APIRouter()
router.include_router(queue.router)
router.include_router(users.router)
router.include_router(organizers.router)

__all__ = ["router"]
