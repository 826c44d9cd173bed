# sosrelay/routers/sos.py
"""
SOS ingestion, queries, and resolution.
POST /sos                     — field device report (no auth), broadcasts `sos`.
GET  /sos/latest              — most recent event + its device.
GET  /sos/history/{deviceId}  — a device's recent events, oldest first.
GET  /sos/list                — recent (event, device) rows, newest first.
POST /sos/{eventId}/resolve   — operator only, broadcasts `sos_resolved`.
POST /sos/{eventId}/unresolve — operator only, broadcasts `sos_unresolved`.
"""

import json

from fastapi import APIRouter, Depends, Request

from sosrelay.config import settings
from sosrelay.errors import ValidationError
from sosrelay.models import Actor
from sosrelay.runtime import get_hub, get_store
from sosrelay.schemas.sos import SOSAcceptedOut, SOSChangeOut, SOSListOut
from sosrelay.services.auth_service import require_actor
from sosrelay.services.broadcast_hub import BroadcastHub
from sosrelay.services.event_store import EventStore
from sosrelay.services.ingestion_service import ingest_report, resolve_event, unresolve_event
from sosrelay.utils.logger import get_logger

router = APIRouter()
logger = get_logger(__name__)


@router.post("/sos", response_model=SOSAcceptedOut, response_model_exclude_none=True,
             summary="Field device SOS report")
async def receive_sos(request: Request, store: EventStore = Depends(get_store),
                      hub: BroadcastHub = Depends(get_hub)):
    """Body: {deviceId, name?, phone?, lat, lng}. lat/lng may be numeric strings."""
    raw_body = await request.body()
    try:
        payload = json.loads(raw_body) if raw_body else None
    except (json.JSONDecodeError, UnicodeDecodeError):
        raise ValidationError("request body must be valid JSON") from None

    device, event = ingest_report(payload, store, hub)
    return {"ok": True, "event": event}


@router.get("/sos/latest", summary="Most recent SOS event")
def latest_sos(store: EventStore = Depends(get_store)):
    event, device = store.latest()
    return {"event": event.to_wire(), "device": device.to_wire() if device else None}


@router.get("/sos/history/{device_id}", summary="Recent events for one device")
def device_sos_history(device_id: str, limit: int = settings.DEFAULT_LIST_LIMIT,
                       store: EventStore = Depends(get_store)):
    """Oldest first, for polyline drawing. Unknown devices yield {device: null, points: []}."""
    device, events = store.history(device_id, limit)
    return {"device": device.to_wire() if device else None, "points": [e.to_wire() for e in events]}


@router.get("/sos/list", response_model=SOSListOut, response_model_exclude_none=True,
            summary="Recent SOS events, newest first")
def list_sos(limit: int = settings.DEFAULT_LIST_LIMIT, store: EventStore = Depends(get_store)):
    return {"rows": [{"event": e, "device": d} for e, d in store.list_rows(limit)]}


@router.post("/sos/{event_id}/resolve", response_model=SOSChangeOut,
             response_model_exclude_none=True, summary="Mark an SOS event resolved")
async def resolve_sos(event_id: int, actor: Actor = Depends(require_actor),
                      store: EventStore = Depends(get_store), hub: BroadcastHub = Depends(get_hub)):
    event, device = resolve_event(event_id, actor, store, hub)
    return {"ok": True, "event": event, "device": device}


@router.post("/sos/{event_id}/unresolve", response_model=SOSChangeOut,
             response_model_exclude_none=True, summary="Reopen a resolved SOS event")
async def unresolve_sos(event_id: int, actor: Actor = Depends(require_actor),
                        store: EventStore = Depends(get_store), hub: BroadcastHub = Depends(get_hub)):
    event, device = unresolve_event(event_id, actor, store, hub)
    return {"ok": True, "event": event, "device": device}
