"""
Status-change notifications.

Each committed booking transition is published as a JSON event on a
Redis pub/sub channel; SMS / push delivery subscribes downstream.
Publishing happens after the commit and never fails the transition.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from hailing.config import settings
from hailing.domain.enums import ActorRole, BookingStatus

logger = logging.getLogger(__name__)


class StatusNotifier:
    def __init__(
        self, client: aioredis.Redis, channel: str = settings.notifications_channel
    ):
        self.redis = client
        self.channel = channel

    async def booking_status_changed(
        self,
        booking_number: str,
        previous: BookingStatus,
        current: BookingStatus,
        actor_role: ActorRole,
    ) -> bool:
        event = {
            "booking_number": booking_number,
            "from": previous.value,
            "to": current.value,
            "actor_role": actor_role.value,
            "at": datetime.now(timezone.utc).isoformat(),
        }
        try:
            await self.redis.publish(self.channel, json.dumps(event))
        except RedisError:
            logger.warning(
                "Could not publish %s -> %s for %s",
                previous.value, current.value, booking_number,
                exc_info=True,
            )
            return False
        return True
