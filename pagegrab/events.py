"""In-process fan-out of job events to Server-Sent-Events observers."""

from __future__ import annotations

import asyncio
import itertools
import json
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List

logger = logging.getLogger("pagegrab.events")


class EventType(str, Enum):
    STATUS = "status"
    LOG = "log"
    LOG_ERROR = "log-error"
    PROGRESS_START = "progress-start"
    PROGRESS_UPDATE = "progress-update"
    PROGRESS_STOP = "progress-stop"


@dataclass
class ServerEvent:
    event: EventType
    data: Dict[str, Any] = field(default_factory=dict)

    def to_sse(self) -> Dict[str, str]:
        return {"event": self.event.value, "data": json.dumps(self.data)}


_subscription_ids = itertools.count(1)

MAX_QUEUED_EVENTS = 1000


class Subscription:
    """One connected observer; events queue up until the observer reads them."""

    def __init__(self, maxsize: int = MAX_QUEUED_EVENTS) -> None:
        self.id = next(_subscription_ids)
        self.queue: "asyncio.Queue[ServerEvent]" = asyncio.Queue(maxsize=maxsize)
        self.dropped = 0

    async def get(self) -> ServerEvent:
        return await self.queue.get()

    def drain(self) -> List[ServerEvent]:
        events: List[ServerEvent] = []
        while not self.queue.empty():
            events.append(self.queue.get_nowait())
        return events

    def offer(self, event: ServerEvent) -> None:
        """Queue ``event``; a full queue loses its oldest event instead of blocking."""
        if self.queue.full():
            self.queue.get_nowait()
            self.dropped += 1
            if self.dropped == 1:
                logger.warning("Observer %d is not keeping up; dropping oldest events", self.id)
        self.queue.put_nowait(event)


class EventBroadcaster:
    def __init__(self) -> None:
        self._subscribers: List[Subscription] = []

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def subscribe(self, maxsize: int = MAX_QUEUED_EVENTS) -> Subscription:
        subscription = Subscription(maxsize)
        self._subscribers.append(subscription)
        logger.debug("Observer %d connected (%d total)", subscription.id, len(self._subscribers))
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        if subscription in self._subscribers:
            self._subscribers.remove(subscription)
            logger.debug("Observer %d disconnected", subscription.id)

    def publish(self, event_type: EventType, payload: Dict[str, Any]) -> None:
        """Queue an event for every observer, in registration order. Never blocks."""
        event = ServerEvent(event=event_type, data=payload)
        for subscription in list(self._subscribers):
            subscription.offer(event)
