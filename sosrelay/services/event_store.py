# sosrelay/services/event_store.py
"""
Authoritative in-memory ledger of devices and SOS events.

Every mutation runs under a single lock so a device's sos_active flag is always
recomputed against a consistent event set. Reads take the same lock and hand
back copies, so a record already broadcast never changes underneath a viewer.

State is volatile: nothing survives a restart.
"""

import math
import threading
import time
from collections import deque
from typing import Callable, Deque, Dict, List, Optional, Tuple

from sosrelay.config import settings
from sosrelay.errors import NotFoundError, ValidationError
from sosrelay.models import Device, SOSEvent
from sosrelay.utils.logger import get_logger

logger = get_logger(__name__)


def _now_ms() -> int:
    return int(time.time() * 1000)


def _coordinate(value, field: str) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValidationError(f"{field} must be a number")
    value = float(value)
    if not math.isfinite(value):
        raise ValidationError(f"{field} must be a finite number")
    return value


class EventStore:
    def __init__(self, max_events: int = None, clock: Callable[[], int] = _now_ms):
        self._max_events = settings.EVENT_LEDGER_LIMIT if max_events is None else max_events
        self._clock = clock
        self._lock = threading.Lock()
        self._devices: Dict[str, Device] = {}
        self._events: Deque[SOSEvent] = deque()   # newest first
        self._next_event_id = 1

    # ── Mutations ─────────────────────────────────────────────────────────

    def report_sos(self, device_id: str, lat, lng, name: Optional[str] = None,
                   phone: Optional[str] = None) -> Tuple[Device, SOSEvent]:
        """Record an SOS report. Creates the device on first contact."""
        if not device_id:
            raise ValidationError("deviceId required")
        lat = _coordinate(lat, "lat")
        lng = _coordinate(lng, "lng")

        with self._lock:
            now = self._clock()
            device = self._devices.get(device_id)
            if device is None:
                device = Device(id=device_id, name=name or device_id, phone=phone or "",
                                lat=lat, lng=lng, sos_active=True, last_seen=now)
                self._devices[device_id] = device
                logger.info(f"[STORE] New device registered: {device_id}")
            else:
                device.lat, device.lng = lat, lng
                device.sos_active = True
                device.last_seen = now
                if name:
                    device.name = name
                if phone:
                    device.phone = phone

            event = SOSEvent(id=self._next_event_id, device_id=device_id, time=now, lat=lat, lng=lng)
            self._next_event_id += 1
            self._events.appendleft(event)
            if len(self._events) > self._max_events:
                evicted = self._events.pop()
                logger.debug(f"[STORE] Ledger full, evicted event {evicted.id}")

            return device.model_copy(), event.model_copy()

    def resolve(self, event_id: int, actor_id: str) -> Tuple[SOSEvent, Device]:
        """Mark an event resolved; clear the device flag if nothing else is open."""
        with self._lock:
            event = self._find_event(event_id)
            event.resolved = True
            event.resolved_at = self._clock()
            event.resolved_by = actor_id

            device = self._devices[event.device_id]
            still_open = any(e.device_id == event.device_id and not e.resolved for e in self._events)
            if not still_open:
                device.sos_active = False
            return event.model_copy(), device.model_copy()

    def unresolve(self, event_id: int) -> Tuple[SOSEvent, Device]:
        """Reopen an event. A reopened event always puts its device back in SOS."""
        with self._lock:
            event = self._find_event(event_id)
            event.resolved = False
            event.resolved_at = None
            event.resolved_by = None

            device = self._devices[event.device_id]
            device.sos_active = True
            return event.model_copy(), device.model_copy()

    # ── Reads ─────────────────────────────────────────────────────────────

    def list_recent(self, device_id: Optional[str] = None, limit: int = None) -> List[SOSEvent]:
        """Events newest first, optionally for a single device."""
        limit = settings.DEFAULT_LIST_LIMIT if limit is None else max(0, limit)
        out: List[SOSEvent] = []
        with self._lock:
            for event in self._events:
                if len(out) >= limit:
                    break
                if device_id is None or event.device_id == device_id:
                    out.append(event.model_copy())
        return out

    def snapshot(self) -> List[Device]:
        """Full current device set, used to bootstrap a new viewer session."""
        with self._lock:
            return [d.model_copy() for d in self._devices.values()]

    def get_device(self, device_id: str) -> Optional[Device]:
        with self._lock:
            device = self._devices.get(device_id)
            return device.model_copy() if device else None

    def latest(self) -> Tuple[SOSEvent, Optional[Device]]:
        with self._lock:
            if not self._events:
                raise NotFoundError("no events")
            event = self._events[0]
            device = self._devices.get(event.device_id)
            return event.model_copy(), device.model_copy() if device else None

    def history(self, device_id: str, limit: int = None) -> Tuple[Optional[Device], List[SOSEvent]]:
        """A device's most recent events in chronological order (oldest first)."""
        events = self.list_recent(device_id, limit)
        events.reverse()
        return self.get_device(device_id), events

    def list_rows(self, limit: int = None) -> List[Tuple[SOSEvent, Optional[Device]]]:
        """Newest-first (event, current device) pairs."""
        limit = settings.DEFAULT_LIST_LIMIT if limit is None else max(0, limit)
        with self._lock:
            rows = []
            for event in list(self._events)[:limit]:
                device = self._devices.get(event.device_id)
                rows.append((event.model_copy(), device.model_copy() if device else None))
            return rows

    def stats(self) -> dict:
        with self._lock:
            return {
                "devices": len(self._devices),
                "events": len(self._events),
                "active_sos_devices": sum(1 for d in self._devices.values() if d.sos_active),
                "open_events": sum(1 for e in self._events if not e.resolved),
            }

    def _find_event(self, event_id: int) -> SOSEvent:
        for event in self._events:
            if event.id == event_id:
                return event
        raise NotFoundError("Event not found")
