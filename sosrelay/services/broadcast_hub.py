# sosrelay/services/broadcast_hub.py
"""
Fan-out of state-change messages to every live viewer session.

Delivery is at-most-once and best-effort: a message is serialized once and
offered to each writable session. A session that is closed or whose send
buffer is full simply misses it; the device snapshot it receives on its next
connect is the recovery path. One session failing never affects the others.
"""

from typing import Set

from sosrelay.schemas.messages import encode_message
from sosrelay.utils.logger import get_logger

logger = get_logger(__name__)


class BroadcastHub:
    def __init__(self):
        self._sessions: Set = set()

    @property
    def session_count(self) -> int:
        return len(self._sessions)

    def register(self, session):
        self._sessions.add(session)
        logger.info(f"[HUB] Session joined ({session.identity.email}) — {len(self._sessions)} live")

    def unregister(self, session):
        if session in self._sessions:
            self._sessions.discard(session)
            logger.info(f"[HUB] Session left — {len(self._sessions)} live")

    def broadcast(self, message) -> int:
        """Offer one message to all writable sessions. Returns how many accepted it."""
        raw = encode_message(message)
        delivered = 0
        for session in list(self._sessions):
            if not session.is_writable:
                logger.debug(f"[HUB] Skipping unwritable session ({session.identity.email})")
                continue
            try:
                session.offer(raw)
                delivered += 1
            except Exception as e:
                logger.warning(f"[HUB] Delivery failed, dropping session: {e}")
                self._sessions.discard(session)
        logger.debug(f"[HUB] {message.type} → {delivered}/{len(self._sessions)} sessions")
        return delivered
