# sosrelay/routers/health.py
"""
System health check endpoint.
Returns relay status, ledger counts and live viewer sessions.
"""

from datetime import datetime, timezone

from fastapi import APIRouter, Depends

from sosrelay.config import settings
from sosrelay.runtime import get_hub, get_store
from sosrelay.services.broadcast_hub import BroadcastHub
from sosrelay.services.event_store import EventStore

router = APIRouter()


@router.get("/health", summary="System health check")
def health_check(store: EventStore = Depends(get_store), hub: BroadcastHub = Depends(get_hub)):
    """
    Returns:
    - Relay status
    - Ledger counts (devices, retained events, open SOS)
    - Number of live viewer sessions
    """
    return {
        "status": "ok",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "ledger": {**store.stats(), "limit": settings.EVENT_LEDGER_LIMIT},
        "live_sessions": hub.session_count,
    }
