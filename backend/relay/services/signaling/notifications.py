"""
Signaling Notifications

Envelope builders and fan-out helpers for presence and call events:
- Roster changes (user joined / left / list)
- Call termination notices
"""
from datetime import datetime, UTC
from typing import Dict, List, Any, Optional, TYPE_CHECKING
import logging

from relay.config.constants import (
    MSG_CALL_END,
    MSG_USER_JOINED,
    MSG_USER_LEFT,
    MSG_USER_LIST,
)

if TYPE_CHECKING:
    from .models import ClientConnection, CallRecord

logger = logging.getLogger(__name__)


def _now() -> str:
    return datetime.now(UTC).isoformat()


def user_joined_message(connection: "ClientConnection") -> Dict[str, Any]:
    return {
        "type": MSG_USER_JOINED,
        "userId": connection.user_id,
        "userData": connection.to_dict(),
        "timestamp": _now(),
    }


def user_left_message(user_id: str) -> Dict[str, Any]:
    return {
        "type": MSG_USER_LEFT,
        "userId": user_id,
        "timestamp": _now(),
    }


def user_list_message(users: List[Dict[str, Any]]) -> Dict[str, Any]:
    return {
        "type": MSG_USER_LIST,
        "users": users,
    }


def call_end_message(
    record: "CallRecord",
    reason: str,
    ended_by: Optional[str] = None
) -> Dict[str, Any]:
    return {
        "type": MSG_CALL_END,
        "callId": record.call_id,
        "reason": reason,
        "endedBy": ended_by,
        "timestamp": _now(),
    }


async def broadcast(
    clients: List["ClientConnection"],
    message: Dict[str, Any],
    exclude_user: Optional[str] = None
) -> int:
    """
    Send a JSON message to every client in ``clients``.

    Args:
        clients: Snapshot of registered connections
        message: Envelope to send
        exclude_user: User ID that should not receive the message

    Returns:
        Number of clients the message reached
    """
    sent_count = 0
    for conn in clients:
        if exclude_user and conn.user_id == exclude_user:
            continue

        if await conn.send_json(message):
            sent_count += 1
        else:
            logger.debug(f"Broadcast of {message.get('type')} to {conn.user_id} failed")

    return sent_count
