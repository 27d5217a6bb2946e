"""
Live directions sessions: one controller per WebSocket connection.
Inbound messages update controller inputs; every controller state change is pushed back.
"""
import asyncio
import logging
from typing import Any

from fastapi import WebSocket, WebSocketDisconnect
from pydantic import BaseModel, ValidationError

from campusnav.data.geo import Coordinate
from campusnav.directions.controller import DebouncedController, DirectionsController
from campusnav.directions.models import TravelMode
from campusnav.itinerary.controller import ShuttleDirectionsController

logger = logging.getLogger(__name__)


class DirectionsSessionMessage(BaseModel):
    """Fields present in a message are applied; omitted fields keep their previous values."""

    origin: Coordinate | None = None
    destination: Coordinate | None = None
    travel_mode: TravelMode = "walking"
    user_position: Coordinate | None = None


class ShuttleSessionMessage(BaseModel):
    origin: Coordinate | None = None
    destination: Coordinate | None = None
    origin_campus: str | None = None
    enabled: bool = True
    user_position: Coordinate | None = None


_REQUEST_FIELDS = {"origin", "destination", "travel_mode", "origin_campus", "enabled"}


def apply_directions_message(controller: DirectionsController, current: dict[str, Any], msg: DirectionsSessionMessage) -> None:
    fields = msg.model_fields_set
    if fields & _REQUEST_FIELDS:
        current.update({f: getattr(msg, f) for f in fields & _REQUEST_FIELDS})
        controller.set_request(current.get("origin"), current.get("destination"), current.get("travel_mode", "walking"))
    if "user_position" in fields:
        controller.update_user_position(msg.user_position)


def apply_shuttle_message(controller: ShuttleDirectionsController, current: dict[str, Any], msg: ShuttleSessionMessage) -> None:
    fields = msg.model_fields_set
    if fields & _REQUEST_FIELDS:
        current.update({f: getattr(msg, f) for f in fields & _REQUEST_FIELDS})
        controller.set_request(
            current.get("origin"),
            current.get("destination"),
            current.get("origin_campus"),
            enabled=current.get("enabled", True),
        )
    if "user_position" in fields:
        controller.update_user_position(msg.user_position)


async def _push_states(websocket: WebSocket, outbox: asyncio.Queue) -> None:
    while True:
        state = await outbox.get()
        await websocket.send_json({"type": "state", "state": state.model_dump(mode="json")})


async def run_session(websocket: WebSocket, controller: DebouncedController, message_model: type[BaseModel], apply) -> None:
    """Serve one connection until the client disconnects, then dispose the controller."""
    await websocket.accept()
    outbox: asyncio.Queue = asyncio.Queue()
    controller.subscribe(outbox.put_nowait)
    sender = asyncio.create_task(_push_states(websocket, outbox))
    current: dict[str, Any] = {}
    logger.info("telemetry session_opened kind=%s", type(controller).__name__)
    try:
        while True:
            raw = await websocket.receive_text()
            try:
                msg = message_model.model_validate_json(raw)
            except ValidationError as e:
                await websocket.send_json({"type": "error", "detail": str(e)})
                continue
            apply(controller, current, msg)
    except WebSocketDisconnect:
        logger.info("telemetry session_closed kind=%s", type(controller).__name__)
    finally:
        controller.dispose()
        sender.cancel()
        try:
            await sender
        except asyncio.CancelledError:
            pass
        except Exception as e:
            logger.warning("telemetry session_sender_failed kind=%s error=%s", type(controller).__name__, str(e))
