"""
In-process server events.

Subscribers get their own queue per topic. Nothing is persisted or replayed:
a client that connects after an event was emitted never sees it.
"""
import asyncio
import json
import logging
from collections import defaultdict
from collections.abc import AsyncIterator
from typing import Any

logger = logging.getLogger(__name__)

CONTENT_STATUS_CHANGED = "content.status.changed"
COMPETITOR_FEATURES_STATUS_CHANGED = "competitor.features.status.changed"
AGENT_KNOWLEDGE_STATUS_CHANGED = "agent.knowledge.status.changed"

SUBSCRIBER_QUEUE_SIZE = 100


class EventBus:
    def __init__(self) -> None:
        self._subscribers: dict[str, set[asyncio.Queue]] = defaultdict(set)

    def subscriber_count(self, topic: str) -> int:
        return len(self._subscribers.get(topic, ()))

    def publish(self, topic: str, payload: dict[str, Any]) -> int:
        """Deliver to current subscribers of ``topic``; returns how many received it."""
        delivered = 0
        for queue in list(self._subscribers.get(topic, ())):
            try:
                queue.put_nowait(payload)
                delivered += 1
            except asyncio.QueueFull:
                logger.warning("Dropping %s event for slow subscriber", topic)
        return delivered

    async def subscribe(self, topic: str) -> AsyncIterator[dict[str, Any]]:
        queue: asyncio.Queue = asyncio.Queue(maxsize=SUBSCRIBER_QUEUE_SIZE)
        self._subscribers[topic].add(queue)
        try:
            while True:
                yield await queue.get()
        finally:
            self._subscribers[topic].discard(queue)
            if not self._subscribers[topic]:
                self._subscribers.pop(topic, None)


event_bus = EventBus()


def content_topic(content_id: Any) -> str:
    return f"{CONTENT_STATUS_CHANGED}:{content_id}"


def competitor_topic(competitor_id: Any) -> str:
    return f"{COMPETITOR_FEATURES_STATUS_CHANGED}:{competitor_id}"


def agent_topic(agent_id: Any) -> str:
    return f"{AGENT_KNOWLEDGE_STATUS_CHANGED}:{agent_id}"


def emit_content_status_changed(
    *, content_id: Any, status: str, message: str | None = None, layout: str | None = None
) -> int:
    payload = {
        "event": CONTENT_STATUS_CHANGED,
        "content_id": str(content_id),
        "status": status,
        "message": message,
        "layout": layout,
    }
    return event_bus.publish(content_topic(content_id), payload)


def emit_competitor_features_status_changed(
    *, competitor_id: Any, status: str, message: str | None = None
) -> int:
    payload = {
        "event": COMPETITOR_FEATURES_STATUS_CHANGED,
        "competitor_id": str(competitor_id),
        "status": status,
        "message": message,
    }
    return event_bus.publish(competitor_topic(competitor_id), payload)


def emit_agent_knowledge_status_changed(*, agent_id: Any, status: str, message: str | None = None) -> int:
    payload = {
        "event": AGENT_KNOWLEDGE_STATUS_CHANGED,
        "agent_id": str(agent_id),
        "status": status,
        "message": message,
    }
    return event_bus.publish(agent_topic(agent_id), payload)


async def stream_topic(topic: str) -> AsyncIterator[str]:
    """Server-sent event payloads for one topic, serialised for EventSourceResponse."""
    async for payload in event_bus.subscribe(topic):
        yield json.dumps(payload)
