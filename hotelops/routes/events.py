import json
from typing import Optional

import structlog
from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect
from sqlalchemy.orm import Session

from ..auth.security import CallerIdentity, identity_from_token
from ..db import get_db
from ..errors import AppError
from ..services.events import EventHub, company_topic, normalize_topic, role_topic, user_topic
from ..services.scope import lookup_caller_company


router = APIRouter(tags=["events"])
log = structlog.get_logger()


def topic_allowed(topic: str, caller: CallerIdentity, role: str, company_id: Optional[str]) -> bool:
    """Whether a subscriber may join `topic`: own user and role, own company unless unscoped admin."""
    kind, _, rest = topic.partition(":")
    if not rest:
        return False
    if kind == "user":
        return rest == caller.subject_id
    if kind == "role":
        return rest == role
    if kind in ("company", "department"):
        target = rest.split(":", 1)[0]
        if company_id is None:
            return role == "admin"
        return target == company_id
    return False


@router.websocket("/ws/events")
async def ws_events(websocket: WebSocket, token: Optional[str] = None, db: Session = Depends(get_db)):
    try:
        caller = identity_from_token(token)
        company_id, role = lookup_caller_company(db, caller)
    except AppError:
        await websocket.close(code=4401)
        return

    hub: EventHub = websocket.app.state.event_hub
    await websocket.accept()
    joined = [user_topic(caller.subject_id), role_topic(role)]
    if company_id:
        joined.append(company_topic(company_id))
    for topic in joined:
        await hub.subscribe(topic, websocket)
    await websocket.send_json({"event": "connected", "topics": joined})
    log.info("ws_connected", subject_id=caller.subject_id, topics=joined)

    try:
        while True:
            raw = await websocket.receive_text()
            if raw.strip().lower() in {"ping", "keepalive"}:
                await websocket.send_text("pong")
                continue
            try:
                msg = json.loads(raw)
            except ValueError:
                await websocket.send_json({"event": "error", "message": "Invalid message"})
                continue
            action = msg.get("action") if isinstance(msg, dict) else None
            topic = normalize_topic(str(msg.get("topic") or "")) if isinstance(msg, dict) else ""
            if action not in ("join", "leave") or not topic:
                await websocket.send_json({"event": "error", "message": "Expected {action: join|leave, topic}"})
                continue
            if action == "join":
                if not topic_allowed(topic, caller, role, company_id):
                    await websocket.send_json({"event": "error", "message": "Not allowed to join topic", "topic": topic})
                    continue
                await hub.subscribe(topic, websocket)
                await websocket.send_json({"event": "joined", "topic": topic})
            else:
                await hub.unsubscribe(topic, websocket)
                await websocket.send_json({"event": "left", "topic": topic})
    except WebSocketDisconnect:
        pass
    finally:
        await hub.disconnect(websocket)
        log.info("ws_disconnected", subject_id=caller.subject_id)
