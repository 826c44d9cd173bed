# sosrelay/services/ingestion_service.py
"""
SOS ingestion + resolution.

Field devices report unauthenticated; resolve/unresolve need a verified actor.
Each operation mutates the store first and only broadcasts if that succeeded,
so a rejected request never reaches any viewer.
"""

import math
from dataclasses import dataclass
from typing import Optional, Tuple

from sosrelay.errors import ValidationError
from sosrelay.models import Actor, Device, SOSEvent
from sosrelay.schemas.messages import SOSCreatedMessage, SOSResolvedMessage, SOSUnresolvedMessage
from sosrelay.utils.logger import get_logger

logger = get_logger(__name__)


@dataclass
class SOSReport:
    device_id: str
    lat: float
    lng: float
    name: Optional[str] = None
    phone: Optional[str] = None


def _parse_coordinate(value, field: str) -> float:
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be a number")
    if isinstance(value, str):
        try:
            value = float(value.strip())
        except ValueError:
            raise ValidationError(f"{field} must be a number") from None
    if not isinstance(value, (int, float)):
        raise ValidationError(f"{field} must be a number")
    value = float(value)
    if not math.isfinite(value):
        raise ValidationError(f"{field} must be a finite number")
    return value


def _optional_text(value, field: str) -> Optional[str]:
    if value is None or value == "":
        return None
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be a string")
    return value


def parse_report(payload) -> SOSReport:
    """Validate a raw report body: {deviceId, name?, phone?, lat, lng}."""
    if not isinstance(payload, dict):
        raise ValidationError("request body must be a JSON object")

    device_id = payload.get("deviceId")
    if not device_id or payload.get("lat") is None or payload.get("lng") is None:
        raise ValidationError("deviceId, lat and lng required")
    if not isinstance(device_id, str):
        raise ValidationError("deviceId must be a string")

    return SOSReport(
        device_id=device_id,
        lat=_parse_coordinate(payload["lat"], "lat"),
        lng=_parse_coordinate(payload["lng"], "lng"),
        name=_optional_text(payload.get("name"), "name"),
        phone=_optional_text(payload.get("phone"), "phone"),
    )


def ingest_report(payload, store, hub) -> Tuple[Device, SOSEvent]:
    report = parse_report(payload)
    device, event = store.report_sos(report.device_id, report.lat, report.lng,
                                     name=report.name, phone=report.phone)
    hub.broadcast(SOSCreatedMessage(event=event, device=device))
    logger.warning(f"[SOS] Received from {device.id} @ {event.lat}, {event.lng} (event {event.id})")
    return device, event


def resolve_event(event_id: int, actor: Actor, store, hub) -> Tuple[SOSEvent, Device]:
    event, device = store.resolve(event_id, actor.email)
    hub.broadcast(SOSResolvedMessage(event_id=event.id, event=event, device=device))
    logger.info(f"[SOS] Event {event_id} marked as resolved by {actor.email}")
    return event, device


def unresolve_event(event_id: int, actor: Actor, store, hub) -> Tuple[SOSEvent, Device]:
    event, device = store.unresolve(event_id)
    hub.broadcast(SOSUnresolvedMessage(event_id=event.id, event=event, device=device))
    logger.info(f"[SOS] Event {event_id} marked as unresolved by {actor.email}")
    return event, device
