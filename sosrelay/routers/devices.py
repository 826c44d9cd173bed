# sosrelay/routers/devices.py
"""Operator device views: current device list + synthetic movement trail."""

from fastapi import APIRouter, Depends

from sosrelay.errors import NotFoundError
from sosrelay.models import Actor
from sosrelay.runtime import get_store
from sosrelay.services.auth_service import require_actor
from sosrelay.services.event_store import EventStore
from sosrelay.services.history_service import synthetic_history

router = APIRouter()


@router.get("/devices", summary="All known devices")
def list_devices(actor: Actor = Depends(require_actor), store: EventStore = Depends(get_store)):
    return [d.to_wire() for d in store.snapshot()]


@router.get("/devices/{device_id}/history", summary="Synthetic movement trail for a device")
def device_trail(device_id: str, actor: Actor = Depends(require_actor),
                 store: EventStore = Depends(get_store)):
    device = store.get_device(device_id)
    if not device:
        raise NotFoundError("device not found")
    return [p.model_dump() for p in synthetic_history(device)]
