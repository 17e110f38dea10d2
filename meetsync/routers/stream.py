import asyncio
import logging
from typing import Any

from fastapi import APIRouter, Body, Depends, HTTPException, WebSocket, WebSocketDisconnect
from pydantic import ValidationError

from meetsync.deps import get_engine, get_event_source
from meetsync.models.events import INBOUND_EVENTS, InboundEvent
from meetsync.services.engine import ReconciliationEngine
from meetsync.services.event_bus import EventBus

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/api/events/{event_name}")
async def push_event(
    event_name: str,
    payload: dict[str, Any] = Body(...),
    source: EventBus = Depends(get_event_source),
):
    """Inject one producer event into the local event bus."""
    if event_name not in INBOUND_EVENTS:
        raise HTTPException(status_code=404, detail=f"Unknown event {event_name}")
    delivered = source.emit(event_name, payload)
    return {"event": event_name, "delivered": delivered}


@router.websocket("/ws/events")
async def events_ingress(websocket: WebSocket, source: EventBus = Depends(get_event_source)):
    """Producer socket: each frame is {"event": name, "payload": {...}}."""
    await websocket.accept()
    logger.info("Event producer connected")
    try:
        while True:
            raw = await websocket.receive_text()
            try:
                frame = InboundEvent.model_validate_json(raw)
            except ValidationError:
                logger.warning("Dropping malformed event frame")
                continue
            if frame.event not in INBOUND_EVENTS:
                logger.debug("Ignoring unknown event %s", frame.event)
                continue
            source.emit(frame.event, frame.payload)
    except WebSocketDisconnect:
        logger.info("Event producer disconnected")


@router.websocket("/ws/state")
async def state_stream(websocket: WebSocket, engine: ReconciliationEngine = Depends(get_engine)):
    """Push the full meeting state on connect and after every change."""
    await websocket.accept()
    queue = engine.watch()
    try:
        await websocket.send_json(engine.snapshot().model_dump(mode="json"))
        while True:
            try:
                await asyncio.wait_for(queue.get(), timeout=10.0)
            except asyncio.TimeoutError:
                await websocket.send_json({"type": "ping"})
                continue
            # Coalesce revisions that piled up while sending
            while not queue.empty():
                queue.get_nowait()
            await websocket.send_json(engine.snapshot().model_dump(mode="json"))
    except WebSocketDisconnect:
        logger.info("State client disconnected")
    except asyncio.CancelledError:
        pass
    finally:
        engine.unwatch(queue)
