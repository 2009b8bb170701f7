"""
Liveness Monitor - Dead Connection Cleanup for Signaling Connections

How it works:
1. The server's WebSocket protocol layer pings every socket at the transport
   level (see ``server_options`` in main.py); browsers answer those pings
   without any application code
2. A socket that misses its pong is closed by the server, which ends the
   receive loop and runs the endpoint's disconnection cleanup
3. Every HEARTBEAT_INTERVAL seconds sweep() visits every tracked connection
   and cleans up any whose transport is no longer open but which is still
   held by the relay (for example after a failed send)

Quiet sockets are never dropped here: a connected call normally sends
nothing once ICE negotiation is over. The loop runs as a task owned by the
application lifespan; tests call sweep() directly instead of waiting on the
timer.
"""
import asyncio
import logging
from typing import List, Optional, TYPE_CHECKING

from relay.config.constants import CLOSE_CODE_UNRESPONSIVE
from relay.services.metrics import liveness_evictions

if TYPE_CHECKING:
    from .models import ClientConnection
    from .relay import SignalingRelay

logger = logging.getLogger(__name__)


class LivenessMonitor:
    """Periodically releases connections whose transport has gone away."""

    def __init__(self, relay: "SignalingRelay", interval: float = 30.0):
        self.relay = relay
        self.interval = interval
        self._task: Optional[asyncio.Task] = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Start the background sweep loop."""
        if self.is_running:
            return
        self._task = asyncio.create_task(self._run())
        logger.info(f"Liveness monitor started (interval={self.interval}s)")

    async def stop(self) -> None:
        """Cancel the sweep loop and wait for it to finish."""
        if self._task is None:
            return
        task, self._task = self._task, None
        if not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        logger.info("Liveness monitor stopped")

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            try:
                await self.sweep()
            except Exception as e:
                logger.error(f"Liveness sweep error: {e}")

    async def sweep(self) -> List["ClientConnection"]:
        """
        Run one cleanup round.

        Returns:
            The connections that were dropped this round.
        """
        dropped = []
        for conn in self.relay.connections():
            if conn.is_open:
                continue
            await self._drop(conn)
            dropped.append(conn)

        if dropped:
            logger.info(f"Liveness sweep dropped {len(dropped)} connection(s)")
        return dropped

    async def _drop(self, conn: "ClientConnection") -> None:
        logger.warning(f"Connection for {conn.user_id or 'unregistered client'} lost its transport, cleaning up")
        liveness_evictions.inc()
        await conn.close(code=CLOSE_CODE_UNRESPONSIVE, reason="Transport lost")
        await self.relay.handle_disconnection(conn)
