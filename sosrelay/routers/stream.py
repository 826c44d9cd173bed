# sosrelay/routers/stream.py
"""
Live viewer stream (WebSocket /ws?token=...).

Any viewer may connect; a missing or invalid token downgrades to guest instead
of rejecting. The session sends welcome + device snapshot, then every broadcast
delta, and answers {type: 'history', deviceId} queries.
"""

from typing import Optional

from fastapi import APIRouter, Depends, WebSocket

from sosrelay.runtime import get_hub, get_store
from sosrelay.services.broadcast_hub import BroadcastHub
from sosrelay.services.event_store import EventStore
from sosrelay.services.subscriber_session import SubscriberSession

router = APIRouter()


@router.websocket("/ws")
async def live_stream(websocket: WebSocket, token: Optional[str] = None,
                      store: EventStore = Depends(get_store), hub: BroadcastHub = Depends(get_hub)):
    session = SubscriberSession(websocket, store, hub)
    await session.run(token)
