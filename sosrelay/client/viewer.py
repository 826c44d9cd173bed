# sosrelay/client/viewer.py
"""
Live viewer client — connects to the relay's /ws stream, keeps a reconciled
mirror of devices and SOS events, and reconnects on link loss.

Operator actions go over HTTP: seeding the mirror with recent events and
resolving / reopening an event. Their responses are applied to the mirror
the same way the matching broadcast would be, so the view updates even if
the broadcast is missed.

Usage:
    viewer = SOSViewer("ws://localhost:3000/ws", token=token)
    await viewer.load_recent()
    viewer.start()
    ...
    viewer.reconciler.recent_activity()
    await viewer.resolve(event_id)
    await viewer.stop()
"""

import json
from typing import Callable, Optional
from urllib.parse import urlencode

import httpx
import websockets

from sosrelay.client.reconciler import MirrorEntry, Reconciler
from sosrelay.client.reconnect import ConnectionStatus, ReconnectionController
from sosrelay.config import settings
from sosrelay.errors import AuthError, NotFoundError, TransportError, ValidationError
from sosrelay.schemas.messages import ServerMessage, SOSResolvedMessage, SOSUnresolvedMessage
from sosrelay.schemas.sos import SOSChangeOut, SOSListOut
from sosrelay.utils.logger import get_logger

logger = get_logger(__name__)

_HTTP_ERRORS = {400: ValidationError, 401: AuthError, 404: NotFoundError}


class SOSViewer:
    def __init__(
        self,
        url: str = None,
        token: Optional[str] = None,
        reconciler: Optional[Reconciler] = None,
        on_message: Optional[Callable[[ServerMessage], None]] = None,
        on_status: Optional[Callable[[ConnectionStatus], None]] = None,
        controller: Optional[ReconnectionController] = None,
        api_url: str = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.url = url or settings.SERVER_WS_URL
        self.api_url = (api_url or settings.SERVER_API_URL).rstrip("/")
        self.token = token
        self.reconciler = reconciler or Reconciler()
        self._on_message = on_message
        self._on_status = on_status
        self._http = http_client
        self._ws = None
        self.controller = controller or ReconnectionController(
            self._open, self._consume, on_status=self._status_changed,
        )

    @property
    def status(self) -> ConnectionStatus:
        return self.controller.status

    def start(self):
        self.controller.connect()

    async def stop(self):
        await self.controller.close()

    async def request_history(self, device_id: str):
        """Ask the relay for a device trail; the reply lands in reconciler.last_history."""
        if self._ws is None:
            raise TransportError("not connected")
        await self._ws.send(json.dumps({"type": "history", "deviceId": device_id}))

    # ── Operator actions (HTTP) ───────────────────────────────────────────

    async def load_recent(self, limit: int = None) -> int:
        """Seed the mirror with the relay's most recent events. Returns how many were listed."""
        limit = settings.DEFAULT_LIST_LIMIT if limit is None else limit
        body = await self._request("GET", "/sos/list", params={"limit": limit})
        rows = SOSListOut.model_validate(body).rows
        self.reconciler.merge_rows([MirrorEntry(event=r.event, device=r.device) for r in rows])
        return len(rows)

    async def resolve(self, event_id: int) -> SOSResolvedMessage:
        body = await self._request("POST", f"/sos/{event_id}/resolve", auth=True)
        change = SOSChangeOut.model_validate(body)
        message = SOSResolvedMessage(event_id=change.event.id, event=change.event, device=change.device)
        self.reconciler.apply(message)
        logger.info(f"[VIEWER] Event {event_id} resolved")
        return message

    async def unresolve(self, event_id: int) -> SOSUnresolvedMessage:
        body = await self._request("POST", f"/sos/{event_id}/unresolve", auth=True)
        change = SOSChangeOut.model_validate(body)
        message = SOSUnresolvedMessage(event_id=change.event.id, event=change.event, device=change.device)
        self.reconciler.apply(message)
        logger.info(f"[VIEWER] Event {event_id} reopened")
        return message

    async def _request(self, method: str, path: str, params: dict = None, auth: bool = False):
        headers = {}
        if auth:
            if not self.token:
                raise AuthError("operator token required")
            headers["Authorization"] = f"Bearer {self.token}"

        url = f"{self.api_url}{path}"
        try:
            if self._http is not None:
                resp = await self._http.request(method, url, params=params, headers=headers)
            else:
                async with httpx.AsyncClient(timeout=settings.HTTP_TIMEOUT_SECONDS) as client:
                    resp = await client.request(method, url, params=params, headers=headers)
        except httpx.HTTPError as e:
            raise TransportError(f"{method} {path} failed: {e}") from e

        if resp.status_code >= 400:
            try:
                body = resp.json()
            except ValueError:
                body = None
            reason = body.get("error") if isinstance(body, dict) else None
            raise _HTTP_ERRORS.get(resp.status_code, TransportError)(reason or resp.reason_phrase)
        return resp.json()

    # ── Live stream ───────────────────────────────────────────────────────

    def _session_url(self) -> str:
        if not self.token:
            return self.url
        sep = "&" if "?" in self.url else "?"
        return f"{self.url}{sep}{urlencode({'token': self.token})}"

    async def _open(self):
        logger.info(f"📡 Connecting to live stream: {self.url}")
        return await websockets.connect(self._session_url())

    async def _consume(self, ws):
        self._ws = ws
        try:
            async for raw in ws:
                message = self.reconciler.apply_raw(raw)
                if message is not None and self._on_message:
                    self._on_message(message)
        except websockets.ConnectionClosed as e:
            raise TransportError(f"connection closed ({e})") from e
        finally:
            self._ws = None
            await ws.close()

    def _status_changed(self, status: ConnectionStatus):
        logger.info(f"[VIEWER] Status: {status.value}")
        if self._on_status:
            self._on_status(status)
