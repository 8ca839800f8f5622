"""
WebSocket API for ICC store change notifications
"""
import asyncio
from datetime import datetime, timezone
from typing import Dict, Optional, Set

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect

from iccmirror.core.exceptions import UnknownStoreError
from iccmirror.core.logging_config import LoggingConfig
from iccmirror.core.notifications import MMS_SMS_CHANNEL
from iccmirror.core.request_router import resolve_store
from iccmirror.services.icc_mirror_service import (IccMirrorService,
                                                   get_icc_service)

router = APIRouter(prefix="/api/ws", tags=["websocket"])
logger = LoggingConfig.get_logger(__name__)


class ConnectionManager:
    """Tracks open WebSocket connections per channel"""

    def __init__(self):
        self.active_connections: Dict[str, Set[WebSocket]] = {}

    async def connect(self, websocket: WebSocket, channel: str):
        await websocket.accept()
        self.active_connections.setdefault(channel, set()).add(websocket)
        logger.info(f"WebSocket connected for channel: {channel}")

    def disconnect(self, websocket: WebSocket, channel: str):
        connections = self.active_connections.get(channel)
        if connections is not None:
            connections.discard(websocket)
            if not connections:
                del self.active_connections[channel]
        logger.info(f"WebSocket disconnected (channel: {channel})")

    def connection_count(self) -> int:
        return sum(len(connections) for connections in self.active_connections.values())


manager = ConnectionManager()


@router.websocket("/icc")
async def icc_events(
    websocket: WebSocket,
    store: Optional[str] = None,
    service: IccMirrorService = Depends(get_icc_service),
):
    """
    Stream change notifications

    Query parameters:
    - store: ICC store segment (``icc``, ``icc1``, ``sim2``...). Without it the
      aggregate message channel is streamed, which fires on every change.
    """
    if store is None:
        channel = MMS_SMS_CHANNEL
    else:
        try:
            channel = resolve_store(store).channel
        except UnknownStoreError as e:
            await websocket.close(code=1008, reason=str(e))
            return

    await manager.connect(websocket, channel)

    loop = asyncio.get_running_loop()
    queue: asyncio.Queue = asyncio.Queue()
    # Listeners run on whichever thread performed the mutation
    unsubscribe = service.hub.subscribe(
        channel, lambda target: loop.call_soon_threadsafe(queue.put_nowait, target)
    )

    receiver = None
    getter = None
    try:
        await websocket.send_json({"event": "subscribed", "channel": channel})

        receiver = asyncio.ensure_future(websocket.receive_text())
        getter = asyncio.ensure_future(queue.get())
        while True:
            done, _ = await asyncio.wait({receiver, getter}, return_when=asyncio.FIRST_COMPLETED)
            if receiver in done:
                if receiver.result() == "ping":
                    await websocket.send_json({"event": "pong"})
                receiver = asyncio.ensure_future(websocket.receive_text())
            if getter in done:
                await websocket.send_json({
                    "event": "changed",
                    "channel": getter.result(),
                    "timestamp": datetime.now(timezone.utc).isoformat(),
                })
                getter = asyncio.ensure_future(queue.get())

    except WebSocketDisconnect:
        logger.debug(f"WebSocket client left channel {channel}")
    except Exception as e:
        logger.error(f"WebSocket error: {e}", exc_info=True)
    finally:
        for task in (receiver, getter):
            if task is not None and not task.done():
                task.cancel()
        unsubscribe()
        manager.disconnect(websocket, channel)
