# sosrelay/services/subscriber_session.py
"""
One live viewer connection: CONNECTING → OPEN → CLOSED.

On open the viewer gets `welcome` then `device-snapshot`, queued before the
session joins the hub and with no await in between, so no delta can slip in
ahead of (or be lost before) the snapshot.

Outbound frames go through a bounded queue drained by a per-session writer
task; the hub never waits on a socket. Closing cancels the writer, so nothing
is delivered after close.
"""

import asyncio
from enum import Enum
from typing import Optional

from starlette.websockets import WebSocketDisconnect

from sosrelay.config import settings
from sosrelay.errors import TransportError
from sosrelay.models import GUEST
from sosrelay.schemas.messages import (
    DeviceSnapshotMessage,
    ErrorMessage,
    HistoryMessage,
    WelcomeMessage,
    decode_history_request,
    encode_message,
)
from sosrelay.services.auth_service import session_identity
from sosrelay.services.history_service import synthetic_history
from sosrelay.utils.logger import get_logger

logger = get_logger(__name__)


class SessionState(str, Enum):
    CONNECTING = "connecting"
    OPEN = "open"
    CLOSED = "closed"


class SubscriberSession:
    def __init__(self, websocket, store, hub, send_buffer: int = None):
        self.websocket = websocket
        self.store = store
        self.hub = hub
        self.state = SessionState.CONNECTING
        self.identity = GUEST
        self._outbox: asyncio.Queue = asyncio.Queue(maxsize=send_buffer or settings.SESSION_SEND_BUFFER)
        self._writer: Optional[asyncio.Task] = None

    @property
    def is_writable(self) -> bool:
        return self.state is SessionState.OPEN and not self._outbox.full()

    def offer(self, raw: str):
        """Queue one serialized frame. Raises if the session can no longer take it."""
        if self.state is not SessionState.OPEN:
            raise TransportError("session closed")
        try:
            self._outbox.put_nowait(raw)
        except asyncio.QueueFull as e:
            raise TransportError("send buffer full") from e

    async def open(self, token: Optional[str] = None):
        await self.websocket.accept()
        self.identity = session_identity(token)
        self.state = SessionState.OPEN

        self._outbox.put_nowait(encode_message(WelcomeMessage(user=self.identity)))
        self._outbox.put_nowait(encode_message(DeviceSnapshotMessage(devices=self.store.snapshot())))
        self.hub.register(self)
        self._writer = asyncio.create_task(self._drain())

    async def run(self, token: Optional[str] = None):
        """Serve the connection until the viewer leaves or the transport fails."""
        await self.open(token)
        try:
            while self.state is SessionState.OPEN:
                message = await self.websocket.receive()
                if message["type"] == "websocket.disconnect":
                    break
                raw = message.get("text")
                if raw is None:
                    raw = message.get("bytes")
                if raw is not None:
                    self.handle_inbound(raw)
        except WebSocketDisconnect:
            pass
        except Exception as e:
            logger.warning(f"[SESSION] Transport failure ({self.identity.email}): {e}")
        finally:
            await self.close()

    def handle_inbound(self, raw):
        """History queries are answered to this session only; anything else is ignored."""
        request = decode_history_request(raw)
        if request is None:
            logger.debug("[SESSION] Ignoring malformed inbound frame")
            return

        device = self.store.get_device(request.device_id)
        if device is None:
            reply = ErrorMessage(error="device not found")
        else:
            reply = HistoryMessage(device_id=device.id, points=synthetic_history(device))
        try:
            self.offer(encode_message(reply))
        except TransportError as e:
            logger.debug(f"[SESSION] History reply dropped: {e}")

    async def close(self):
        if self.state is SessionState.CLOSED:
            return
        self._shutdown()
        await self._close_transport()

    def _shutdown(self):
        self.state = SessionState.CLOSED
        self.hub.unregister(self)
        if self._writer is not None and self._writer is not asyncio.current_task():
            self._writer.cancel()
        while not self._outbox.empty():
            self._outbox.get_nowait()

    async def _drain(self):
        try:
            while True:
                raw = await self._outbox.get()
                await self.websocket.send_text(raw)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.info(f"[SESSION] Send failed ({self.identity.email}), closing: {e}")
            self._shutdown()
            await self._close_transport()

    async def _close_transport(self):
        try:
            await self.websocket.close()
        except Exception as e:
            logger.debug(f"[SESSION] Close on dead transport: {e}")
