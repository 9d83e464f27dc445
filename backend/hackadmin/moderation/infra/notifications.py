"""Redis stream delivery for ban notifications."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Sequence

from redis.asyncio import Redis

from hackadmin.infra.redis import RedisProxy
from hackadmin.moderation.domain.cascade import dedupe_ids
from hackadmin.moderation.domain.notifications import NotificationChannel

logger = logging.getLogger(__name__)


class RedisNotificationChannel(NotificationChannel):
    """Appends one stream entry per recipient; a downstream worker delivers them."""

    def __init__(
        self,
        redis: Redis | RedisProxy,
        *,
        stream: str = "admin:notifications",
        maxlen: int = 10000,
        kind: str = "moderation.user_banned",
    ) -> None:
        self._redis = redis
        self._stream = stream
        self._maxlen = maxlen
        self._kind = kind

    async def notify(self, user_ids: Sequence[str], reason: str) -> int:
        recipients = dedupe_ids(user_ids)
        if not recipients:
            return 0
        sent_at = datetime.now(timezone.utc).isoformat()
        async with self._redis.pipeline(transaction=False) as pipe:
            for user_id in recipients:
                pipe.xadd(
                    self._stream,
                    {"user_id": user_id, "kind": self._kind, "reason": reason, "sent_at": sent_at},
                    maxlen=self._maxlen,
                    approximate=True,
                )
            await pipe.execute()
        logger.info("notifications queued", extra={"stream": self._stream, "recipients": len(recipients)})
        return len(recipients)
