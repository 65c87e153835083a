"""
WebSocket Router
Pushes every recomputed assessment to the dashboard and accepts typing input
and monitoring control messages.

Protocol:
- Server sends:
  {"type": "assessment", "data": {...}, "facial": {...} | null, "typing": {...} | null}
  {"type": "status", "stream": "facial" | "typing", "state": ..., "message": ...}
- Client can send:
  {"type": "keystroke", "buffer": "...", "key": "a"}
  {"type": "buffer", "buffer": "..."}
  {"type": "reset_typing"} {"type": "start"} {"type": "stop"} {"type": "ping"}
"""

import asyncio
import json
import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from app.services.monitor_service import MonitorService, get_monitor_service
from app.services.websocket_manager import ws_manager

logger = logging.getLogger("lucid.ws")

router = APIRouter(tags=["WebSocket"])


async def _sender(websocket: WebSocket, queue: asyncio.Queue) -> None:
    try:
        while True:
            message = await queue.get()
            await websocket.send_json(message)
    except Exception as e:
        logger.warning(f"Monitor WS send failed: {e}")


async def _handle_message(queue: asyncio.Queue, service: MonitorService, msg: dict) -> None:
    msg_type = msg.get("type", "")

    if msg_type == "keystroke":
        service.handle_keystroke(str(msg.get("buffer", "")), key=msg.get("key"))
    elif msg_type == "buffer":
        service.handle_buffer(str(msg.get("buffer", "")))
    elif msg_type == "reset_typing":
        service.reset_typing()
    elif msg_type == "start":
        await service.start()
    elif msg_type == "stop":
        await service.stop()
    elif msg_type == "ping":
        if not queue.full():
            queue.put_nowait({"type": "pong"})
    else:
        logger.debug(f"Ignoring message type: {msg_type!r}")


@router.websocket("/ws/monitor")
async def websocket_monitor(websocket: WebSocket):
    """Real-time fatigue assessment stream"""
    queue = await ws_manager.connect(websocket, "monitor")
    service = get_monitor_service()
    queue.put_nowait(service.assessment_message())
    for stream in ("facial", "typing"):
        queue.put_nowait({"type": "status", "stream": stream, **getattr(service, f"{stream}_status")})
    sender = asyncio.create_task(_sender(websocket, queue))

    try:
        while True:
            raw = await websocket.receive_text()
            try:
                msg = json.loads(raw)
            except json.JSONDecodeError:
                logger.debug("Ignoring malformed message")
                continue
            if isinstance(msg, dict):
                await _handle_message(queue, service, msg)
    except WebSocketDisconnect:
        logger.info("Monitor client disconnected")
    except Exception as e:
        logger.error("Monitor WS error: %s", e, exc_info=True)
    finally:
        sender.cancel()
        await asyncio.gather(sender, return_exceptions=True)
        ws_manager.disconnect(websocket, "monitor")
