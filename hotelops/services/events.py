import asyncio
from typing import Any, Dict, Iterable, Optional, Set

import structlog
from fastapi import Request, WebSocket


log = structlog.get_logger()


def company_topic(company_id: str) -> str:
    return f"company:{company_id}"


def department_topic(company_id: str, department: str) -> str:
    return f"department:{company_id}:{department.strip().lower()}"


def normalize_topic(topic: str) -> str:
    """Canonical form of a client-supplied topic; department names match how they are published."""
    topic = topic.strip()
    kind, _, rest = topic.partition(":")
    company_id, sep, department = rest.partition(":")
    if kind == "department" and sep and department.strip():
        return department_topic(company_id, department)
    return topic


def user_topic(subject_id: str) -> str:
    return f"user:{subject_id}"


def role_topic(role: str) -> str:
    return f"role:{role}"


class EventHub:
    """Topic subscriptions for connected WebSocket clients. One hub per application."""

    def __init__(self) -> None:
        # topic -> set of WebSocket connections
        self._topics: Dict[str, Set[WebSocket]] = {}
        self._lock = asyncio.Lock()

    async def subscribe(self, topic: str, ws: WebSocket) -> None:
        async with self._lock:
            self._topics.setdefault(topic, set()).add(ws)

    async def unsubscribe(self, topic: str, ws: WebSocket) -> None:
        async with self._lock:
            self._discard(topic, ws)

    async def disconnect(self, ws: WebSocket) -> None:
        async with self._lock:
            for topic in list(self._topics):
                self._discard(topic, ws)

    def _discard(self, topic: str, ws: WebSocket) -> None:
        conns = self._topics.get(topic)
        if conns is not None:
            conns.discard(ws)
            if not conns:
                self._topics.pop(topic, None)

    def subscribers(self, topic: str) -> int:
        return len(self._topics.get(topic, ()))

    async def publish(self, topic: str, event: str, payload: Any) -> int:
        """Send to every subscriber of `topic`. Returns the number of deliveries."""
        data = {"event": event, "topic": topic, "data": payload}
        async with self._lock:
            targets = list(self._topics.get(topic, set()))
        delivered = 0
        for ws in targets:
            try:
                await ws.send_json(data)
                delivered += 1
            except Exception as e:
                # best-effort; drop the broken connection
                log.warning("event_delivery_failed", topic=topic, event_name=event, error=str(e))
                await self.disconnect(ws)
        return delivered


async def announce_operation(hub: Optional[EventHub], event: str, operation: Dict[str, Any]) -> None:
    """
    Fan an operation event out to its company topic and, for task-like
    operations, to the assigned department. Never raises.
    """
    if hub is None:
        return
    try:
        company_id = operation.get("company_id")
        topics: Iterable[str] = [company_topic(company_id)] if company_id else []
        department = operation.get("assigned_to_department")
        if company_id and department:
            topics = list(topics) + [department_topic(company_id, department)]
        for topic in topics:
            await hub.publish(topic, event, operation)
    except Exception as e:
        log.warning("event_publish_failed", event_name=event, operation_id=operation.get("id"), error=str(e))


def get_event_hub(request: Request) -> EventHub:
    return request.app.state.event_hub
