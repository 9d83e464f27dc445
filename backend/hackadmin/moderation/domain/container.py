"""Lightweight service container shared by moderation modules."""

from __future__ import annotations

from typing import Optional, Sequence

import asyncpg
from redis.asyncio import Redis

from hackadmin.infra.redis import RedisProxy
from hackadmin.moderation.domain.audit import AuditSink, InMemoryAuditSink
from hackadmin.moderation.domain.ban_service import BanService
from hackadmin.moderation.domain.notifications import InMemoryNotificationChannel, NotificationChannel
from hackadmin.moderation.domain.organizers import OrganizerFlagService
from hackadmin.moderation.domain.platform import InMemoryPlatformRepository, PlatformRepository
from hackadmin.moderation.domain.queue_repository import InMemoryQueueRepository, QueueRepository
from hackadmin.moderation.domain.queue_service import QueueService
from hackadmin.moderation.domain.submissions import SubmissionReviewService
from hackadmin.moderation.infra.notifications import RedisNotificationChannel
from hackadmin.moderation.infra.postgres_repo import (
    PostgresAuditSink,
    PostgresPlatformRepository,
    PostgresQueueRepository,
)
from hackadmin.settings import settings


_queue_repository: QueueRepository = InMemoryQueueRepository()
_platform_repository: PlatformRepository = InMemoryPlatformRepository()
_audit_sink: AuditSink = InMemoryAuditSink()
_notifications: NotificationChannel = InMemoryNotificationChannel()
_staff_ids: tuple[str, ...] = tuple(settings.moderation_staff_ids)


def _build_queue_service() -> QueueService:
    return QueueService(
        repository=_queue_repository,
        audit=_audit_sink,
        page_size_default=settings.queue_page_size_default,
        page_size_max=settings.queue_page_size_max,
        merge_retries=settings.queue_merge_retries,
    )


_queue_service = _build_queue_service()
_ban_service = BanService(platform=_platform_repository, audit=_audit_sink, notifications=_notifications)
_submission_service = SubmissionReviewService(platform=_platform_repository, queue=_queue_service)
_organizer_flag_service = OrganizerFlagService(platform=_platform_repository, audit=_audit_sink)


def configure(
    *,
    queue_repository: Optional[QueueRepository] = None,
    platform_repository: Optional[PlatformRepository] = None,
    audit_sink: Optional[AuditSink] = None,
    notifications: Optional[NotificationChannel] = None,
    staff_ids: Optional[Sequence[str]] = None,
) -> None:
    global _queue_repository, _platform_repository, _audit_sink, _notifications, _staff_ids
    global _queue_service, _ban_service, _submission_service, _organizer_flag_service
    if queue_repository is not None:
        _queue_repository = queue_repository
    if platform_repository is not None:
        _platform_repository = platform_repository
    if audit_sink is not None:
        _audit_sink = audit_sink
    if notifications is not None:
        _notifications = notifications
    if staff_ids is not None:
        _staff_ids = tuple(staff_ids)
    _queue_service = _build_queue_service()
    _ban_service = BanService(platform=_platform_repository, audit=_audit_sink, notifications=_notifications)
    _submission_service = SubmissionReviewService(platform=_platform_repository, queue=_queue_service)
    _organizer_flag_service = OrganizerFlagService(platform=_platform_repository, audit=_audit_sink)


def configure_postgres(pool: asyncpg.Pool, redis_conn: Redis | RedisProxy) -> None:
    proxy = redis_conn if isinstance(redis_conn, RedisProxy) else RedisProxy(redis_conn)
    configure(
        queue_repository=PostgresQueueRepository(pool),
        platform_repository=PostgresPlatformRepository(pool),
        audit_sink=PostgresAuditSink(pool),
        notifications=RedisNotificationChannel(
            proxy,
            stream=settings.notification_stream,
            maxlen=settings.notification_stream_maxlen,
        ),
    )


def get_staff_ids() -> tuple[str, ...]:
    return _staff_ids


def get_queue_service() -> QueueService:
    return _queue_service


def get_ban_service() -> BanService:
    return _ban_service


def get_submission_service() -> SubmissionReviewService:
    return _submission_service


def get_organizer_flag_service() -> OrganizerFlagService:
    return _organizer_flag_service
