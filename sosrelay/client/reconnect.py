# sosrelay/client/reconnect.py
"""
Client-side connection supervisor.

DISCONNECTED → CONNECTING → CONNECTED → DISCONNECTED → …

When the link drops (or a connect attempt fails) exactly one reconnect is
scheduled after a fixed delay. Consecutive failures are counted; once the cap
is reached the controller stops and reports FAILED. A successful connect
resets the counter. A single supervisor task means at most one attempt is in
flight; connect() while connected or already trying is a no-op.

Connect attempts have no deadline of their own: a hung attempt is expected to
surface as a transport failure.
"""

import asyncio
from enum import Enum
from typing import Any, Awaitable, Callable, Optional

from sosrelay.config import settings
from sosrelay.utils.logger import get_logger

logger = get_logger(__name__)


class ConnectionStatus(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    FAILED = "failed"          # retries exhausted, terminal until connect() is called again


class ReconnectionController:
    def __init__(
        self,
        open_connection: Callable[[], Awaitable[Any]],
        consume: Callable[[Any], Awaitable[None]],
        on_status: Optional[Callable[[ConnectionStatus], None]] = None,
        interval: float = None,
        max_attempts: int = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        """
        open_connection: establishes the transport, raises on failure.
        consume: reads the connection until it closes.
        """
        self._open_connection = open_connection
        self._consume = consume
        self._on_status = on_status
        self.interval = settings.RECONNECT_INTERVAL_SECONDS if interval is None else interval
        self.max_attempts = settings.MAX_RECONNECT_ATTEMPTS if max_attempts is None else max_attempts
        self._sleep = sleep

        self.status = ConnectionStatus.DISCONNECTED
        self.attempts = 0
        self._task: Optional[asyncio.Task] = None
        self._closed = False

    @property
    def is_supervising(self) -> bool:
        return self._task is not None and not self._task.done()

    def connect(self) -> Optional[asyncio.Task]:
        """Start supervising. No-op while connected or while an attempt is pending."""
        if self.status is ConnectionStatus.CONNECTED or self.is_supervising:
            return self._task
        self._closed = False
        self._task = asyncio.create_task(self._supervise(), name="sosrelay-reconnect")
        return self._task

    async def close(self):
        """Stop for good: cancel any pending retry and drop the live connection."""
        self._closed = True
        if self.is_supervising:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        self._set_status(ConnectionStatus.DISCONNECTED)

    async def wait(self):
        """Block until supervision ends (retries exhausted or close())."""
        if self._task is not None:
            try:
                await self._task
            except asyncio.CancelledError:
                pass

    async def _supervise(self):
        while not self._closed:
            self._set_status(ConnectionStatus.CONNECTING)
            try:
                connection = await self._open_connection()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.warning(f"❌ Connect failed: {e}")
                self._set_status(ConnectionStatus.DISCONNECTED)
                if not await self._schedule_retry():
                    return
                continue

            self.attempts = 0
            self._set_status(ConnectionStatus.CONNECTED)
            logger.info("✅ Live session connected")
            try:
                await self._consume(connection)
                logger.info("Live session closed")
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.warning(f"⚠️  Live session lost: {e}")

            self._set_status(ConnectionStatus.DISCONNECTED)
            if self._closed or not await self._schedule_retry():
                return

    async def _schedule_retry(self) -> bool:
        if self.attempts >= self.max_attempts:
            logger.error(f"Max reconnection attempts reached ({self.max_attempts}), giving up")
            self._set_status(ConnectionStatus.FAILED)
            return False
        self.attempts += 1
        logger.info(f"Reconnecting in {self.interval}s (attempt {self.attempts}/{self.max_attempts})")
        await self._sleep(self.interval)
        return not self._closed

    def _set_status(self, status: ConnectionStatus):
        if status is self.status:
            return
        self.status = status
        if self._on_status:
            self._on_status(status)
