"""
Pinpoint Backend — Realtime WebSocket Route
============================================

What:  WS /realtime, the push channel for saved/removed events.

Protocol:
    client → {"event": "subscribeMarker", "markerId": "<uuid>"}
    server ← {"event": "ack", "request": "subscribeMarker", "markerId": "<uuid>"}
    client → {"event": "unsubscribeMarker", "markerId": "<uuid>"}
    server ← {"event": "ack", "request": "unsubscribeMarker", "markerId": "<uuid>"}
    anything else
    server ← {"event": "error", "message": "..."}

Image and marker events reach every connection. Comment events reach only
connections subscribed to that marker. Subscribing requires no session.
"""

import logging
import uuid

from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from pydantic import ValidationError as PydanticValidationError

from pinpoint.models import topic_for_marker
from pinpoint.schemas.realtime import ClientMessage
from pinpoint.services.realtime_service import RealtimeHub

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Realtime"])


@router.websocket("/realtime")
async def realtime(websocket: WebSocket) -> None:
    hub: RealtimeHub = websocket.app.state.registry.realtime

    await websocket.accept()
    client_id = hub.connect(websocket)
    try:
        while True:
            raw = await websocket.receive_text()
            try:
                message = ClientMessage.model_validate_json(raw)
                marker_id = uuid.UUID(message.marker_id)
            except (PydanticValidationError, ValueError) as e:
                await websocket.send_json({"event": "error", "message": f"Invalid message: {e}"})
                continue

            topic = topic_for_marker(marker_id)
            if message.event == "subscribeMarker":
                hub.subscribe(client_id, topic)
            else:
                hub.unsubscribe(client_id, topic)
            await websocket.send_json(
                {"event": "ack", "request": message.event, "markerId": str(marker_id)}
            )
    except WebSocketDisconnect:
        logger.debug("Realtime client %s went away", client_id)
    finally:
        hub.disconnect(client_id)
