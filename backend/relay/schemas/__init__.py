"""
Schemas Package

Pydantic models for signaling events and the read-only HTTP surface.
"""

from relay.schemas.signaling_events import (
    SignalingModel,
    UserData,
    RegisterEvent,
    CallOfferEvent,
    CallAnswerEvent,
    CallRejectEvent,
    CallBusyEvent,
    IceCandidateEvent,
    CallEndEvent,
    GetUsersEvent,
    InboundEvent,
    parse_event,
)
from relay.schemas.signaling import (
    ClientInfo,
    CallInfo,
    UsersResponse,
    StatsResponse,
    OnlineCountResponse,
    SignalingStatusResponse,
)

__all__ = [
    "SignalingModel",
    "UserData",
    "RegisterEvent",
    "CallOfferEvent",
    "CallAnswerEvent",
    "CallRejectEvent",
    "CallBusyEvent",
    "IceCandidateEvent",
    "CallEndEvent",
    "GetUsersEvent",
    "InboundEvent",
    "parse_event",
    "ClientInfo",
    "CallInfo",
    "UsersResponse",
    "StatsResponse",
    "OnlineCountResponse",
    "SignalingStatusResponse",
]
