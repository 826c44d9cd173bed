# sosrelay/client/reconciler.py
"""
Viewer-side mirror of the relay's state, patched only from server messages.

Messages are applied synchronously in arrival order, one at a time, so the
mirror is never seen half-way through a message. The mirror holds:
  - devices:  deviceId → latest Device seen
  - entries:  (event, device-at-time-of-event) pairs, newest first

Derived views (recent activity, follow-up groups) are recomputed on demand.
"""

from dataclasses import dataclass
from typing import Dict, List, Optional, assert_never

from sosrelay.config import settings
from sosrelay.models import Actor, Device, SOSEvent
from sosrelay.schemas.messages import (
    DeviceSnapshotMessage,
    ErrorMessage,
    HistoryMessage,
    SOSCreatedMessage,
    SOSResolvedMessage,
    SOSUnresolvedMessage,
    ServerMessage,
    WelcomeMessage,
    decode_server_message,
)
from sosrelay.utils.logger import get_logger

logger = get_logger(__name__)

RECENT_ACTIVITY_LIMIT = 10


@dataclass
class MirrorEntry:
    event: SOSEvent
    device: Optional[Device]


@dataclass
class FollowUpGroup:
    """Repeated alerts from one device beyond its newest one."""
    device_id: str
    device: Optional[Device]
    latest_follow_up: SOSEvent
    count: int

    @property
    def label(self) -> str:
        return "+1 alert" if self.count == 1 else f"+{self.count} alerts"


class Reconciler:
    def __init__(self, max_entries: int = None):
        # Mirrors the relay's ledger window; older entries are trimmed
        self.max_entries = settings.EVENT_LEDGER_LIMIT if max_entries is None else max_entries
        self.identity: Optional[Actor] = None
        self.devices: Dict[str, Device] = {}
        self.entries: List[MirrorEntry] = []
        self.last_history: Optional[HistoryMessage] = None
        self.last_error: Optional[str] = None

    def apply_raw(self, raw) -> Optional[ServerMessage]:
        """Decode and apply one frame. Frames that fail to parse are logged and dropped."""
        try:
            message = decode_server_message(raw)
        except ValueError as e:
            logger.warning(f"[MIRROR] Dropping unparseable frame: {e}")
            return None
        self.apply(message)
        return message

    def apply(self, message: ServerMessage):
        if isinstance(message, WelcomeMessage):
            self.identity = message.user
            logger.info(f"[MIRROR] Session identity: {message.user.email}")

        elif isinstance(message, DeviceSnapshotMessage):
            # Devices only accumulate for the lifetime of the mirror
            for device in message.devices:
                self.devices[device.id] = device
            logger.info(f"[MIRROR] Snapshot merged — {len(self.devices)} devices known")

        elif isinstance(message, SOSCreatedMessage):
            self._insert_entry(MirrorEntry(event=message.event, device=message.device))
            self._upsert(message.device)

        elif isinstance(message, (SOSResolvedMessage, SOSUnresolvedMessage)):
            self._replace_event(message.event)
            self._upsert(message.device)

        elif isinstance(message, HistoryMessage):
            self.last_history = message

        elif isinstance(message, ErrorMessage):
            self.last_error = message.error
            logger.warning(f"[MIRROR] Server error: {message.error}")

        else:
            assert_never(message)

    # ── Derived views ─────────────────────────────────────────────────────

    def recent_activity(self, limit: int = RECENT_ACTIVITY_LIMIT) -> List[MirrorEntry]:
        """Newest entry per device, most recently active device first."""
        seen = set()
        out = []
        for entry in self.entries:
            device_id = entry.event.device_id
            if device_id in seen:
                continue
            seen.add(device_id)
            out.append(entry)
            if len(out) >= limit:
                break
        return out

    def follow_up_groups(self) -> List[FollowUpGroup]:
        """
        One group per device with more than one event in the mirror.
        The extras are every event after the newest; unresolved extras win,
        falling back to all extras when every one of them is resolved.
        """
        by_device: Dict[str, List[MirrorEntry]] = {}
        for entry in self.entries:
            by_device.setdefault(entry.event.device_id, []).append(entry)

        groups = []
        for device_id, entries in by_device.items():
            if len(entries) <= 1:
                continue
            extras = entries[1:]
            relevant = [e for e in extras if not e.event.resolved] or extras
            groups.append(FollowUpGroup(
                device_id=device_id,
                device=entries[0].device or self.devices.get(device_id),
                latest_follow_up=relevant[0].event,
                count=len(relevant),
            ))

        groups.sort(key=lambda g: g.latest_follow_up.time, reverse=True)
        return groups

    def merge_rows(self, rows: List[MirrorEntry]):
        """Seed the mirror from a fetched (event, device) listing. Known events are refreshed in place."""
        for row in rows:
            self._insert_entry(row)
            self._upsert(row.device)
        logger.info(f"[MIRROR] Merged {len(rows)} listed events — {len(self.entries)} in mirror")

    def stats(self) -> dict:
        return {"total_sos": len(self.entries), "devices": len(self.devices)}

    def _upsert(self, device: Optional[Device]):
        if device is not None:
            self.devices[device.id] = device

    def _insert_entry(self, entry: MirrorEntry):
        """Keep entries newest first by event id; an already mirrored event is replaced."""
        for index, existing in enumerate(self.entries):
            if existing.event.id == entry.event.id:
                self.entries[index] = entry
                return
            if existing.event.id < entry.event.id:
                break
        else:
            index = len(self.entries)
        self.entries.insert(index, entry)
        del self.entries[self.max_entries:]

    def _replace_event(self, event: SOSEvent):
        for entry in self.entries:
            if entry.event.id == event.id:
                entry.event = event
                return
        logger.debug(f"[MIRROR] Event {event.id} not in mirror, device update only")
