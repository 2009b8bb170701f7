"""
Signaling Module

Re-exports the relay, its connection models, the liveness monitor and the
exception hierarchy.
"""
from .models import ClientConnection, CallRecord
from .relay import SignalingRelay, generate_call_id
from .liveness import LivenessMonitor
from .exceptions import (
    SignalingError,
    ProtocolError,
    NotRegisteredError,
    CallNotFoundError,
    NotACallParticipantError,
    CallFailedError,
    UserNotAvailableError,
    CallIdInUseError,
    SelfCallError,
    CallerDisconnectedError,
)

__all__ = [
    "ClientConnection",
    "CallRecord",
    "SignalingRelay",
    "generate_call_id",
    "LivenessMonitor",
    "SignalingError",
    "ProtocolError",
    "NotRegisteredError",
    "CallNotFoundError",
    "NotACallParticipantError",
    "CallFailedError",
    "UserNotAvailableError",
    "CallIdInUseError",
    "SelfCallError",
    "CallerDisconnectedError",
]
