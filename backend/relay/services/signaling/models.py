"""
Signaling Models

Data classes representing connected clients and calls in progress.
"""
from datetime import datetime, UTC
from typing import Dict, Any, Optional
import logging

from fastapi import WebSocket
from starlette.websockets import WebSocketState

from relay.config.constants import CALL_STATUS_CONNECTED, CALL_STATUS_OFFERING
from relay.schemas.signaling_events import UserData

logger = logging.getLogger(__name__)


class ClientConnection:
    """
    Represents a single WebSocket connection to the relay.

    A connection starts anonymous; ``user_id`` and ``user_data`` are bound
    when it registers.
    """

    def __init__(self, websocket: WebSocket):
        self.websocket = websocket
        self.user_id: Optional[str] = None
        self.user_data = UserData()
        self.connected_at = datetime.now(UTC)
        self.last_seen = self.connected_at
        self.closed = False

    @property
    def is_registered(self) -> bool:
        return self.user_id is not None

    @property
    def is_open(self) -> bool:
        if self.closed:
            return False
        # either side may have torn the transport down
        return (
            self.websocket.application_state == WebSocketState.CONNECTED
            and self.websocket.client_state != WebSocketState.DISCONNECTED
        )

    def touch(self) -> None:
        self.last_seen = datetime.now(UTC)

    async def send_json(self, data: Dict[str, Any]) -> bool:
        """Send JSON message to this connection. Returns False if the peer is unreachable."""
        if not self.is_open:
            return False
        try:
            await self.websocket.send_json(data)
            return True
        except Exception as e:
            logger.error(f"Error sending JSON to {self.user_id}: {e}")
            self.closed = True
            return False

    async def close(self, code: int = 1000, reason: str = "") -> None:
        """Close the underlying socket; closing twice is harmless."""
        if self.closed:
            return
        self.closed = True
        try:
            await self.websocket.close(code=code, reason=reason)
        except Exception as e:
            logger.debug(f"Error closing connection for {self.user_id}: {e}")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.user_id,
            "name": self.user_data.name,
            "avatar": self.user_data.avatar,
            "status": self.user_data.status,
            "location": self.user_data.location,
            "connectedAt": self.connected_at.isoformat(),
        }


class CallRecord:
    """Bookkeeping for one call attempt between two registered clients."""

    def __init__(self, call_id: str, caller_id: str, callee_id: str):
        self.call_id = call_id
        self.caller_id = caller_id
        self.callee_id = callee_id
        self.status = CALL_STATUS_OFFERING
        self.start_time = datetime.now(UTC)
        self.connected_time: Optional[datetime] = None

    @property
    def is_connected(self) -> bool:
        return self.status == CALL_STATUS_CONNECTED

    def involves(self, user_id: str) -> bool:
        return user_id in (self.caller_id, self.callee_id)

    def other_party(self, user_id: str) -> Optional[str]:
        """Return the counter-party of ``user_id``, or None if they are not in the call."""
        if user_id == self.caller_id:
            return self.callee_id
        if user_id == self.callee_id:
            return self.caller_id
        return None

    def mark_connected(self) -> None:
        # offering -> connected only; a repeated answer keeps the first stamp
        if self.status == CALL_STATUS_CONNECTED:
            return
        self.status = CALL_STATUS_CONNECTED
        self.connected_time = datetime.now(UTC)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "callId": self.call_id,
            "callerId": self.caller_id,
            "calleeId": self.callee_id,
            "status": self.status,
            "startTime": self.start_time.isoformat(),
            "connectedTime": self.connected_time.isoformat() if self.connected_time else None,
        }
