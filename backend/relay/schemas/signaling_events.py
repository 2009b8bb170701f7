"""
Signaling Event Schemas

Pydantic models for type-safe WebSocket event handling.
Every inbound envelope is parsed into exactly one of these models through
the ``type`` discriminant; anything else is a protocol error.
"""

from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator
from pydantic.alias_generators import to_camel

from relay.config.constants import DEFAULT_DISPLAY_NAME, DEFAULT_LOCATION, DEFAULT_STATUS


# =============================================================================
# Base Models
# =============================================================================

class SignalingModel(BaseModel):
    """Wire models use camelCase keys, Python code uses snake_case."""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        coerce_numbers_to_str=True,
    )


_USER_DATA_DEFAULTS = {
    "name": DEFAULT_DISPLAY_NAME,
    "status": DEFAULT_STATUS,
    "location": DEFAULT_LOCATION,
}


class UserData(SignalingModel):
    """Display information a client publishes about itself."""
    name: str = DEFAULT_DISPLAY_NAME
    avatar: Optional[str] = None
    status: Optional[str] = DEFAULT_STATUS
    location: Optional[str] = DEFAULT_LOCATION

    @field_validator("name", "status", "location", mode="before")
    @classmethod
    def _null_means_default(cls, value, info):
        # clients send null for fields they have not filled in
        if value is None:
            return _USER_DATA_DEFAULTS[info.field_name]
        return value


# =============================================================================
# Inbound Events (client -> relay)
# =============================================================================

class RegisterEvent(SignalingModel):
    """Bind this connection to a user identity."""
    type: Literal["register"] = "register"
    user_id: str = Field(min_length=1)
    user_data: UserData = Field(default_factory=UserData)


class CallOfferEvent(SignalingModel):
    """Caller proposes a session to another user."""
    type: Literal["call-offer"] = "call-offer"
    target_user_id: str = Field(min_length=1)
    offer: Any
    call_id: Optional[str] = None


class CallAnswerEvent(SignalingModel):
    """Callee accepts an offer."""
    type: Literal["call-answer"] = "call-answer"
    call_id: str = Field(min_length=1)
    answer: Any


class CallRejectEvent(SignalingModel):
    type: Literal["call-reject"] = "call-reject"
    call_id: str = Field(min_length=1)


class CallBusyEvent(SignalingModel):
    type: Literal["call-busy"] = "call-busy"
    call_id: str = Field(min_length=1)


class IceCandidateEvent(SignalingModel):
    """Network path proposal for the other side of a call."""
    type: Literal["ice-candidate"] = "ice-candidate"
    call_id: str = Field(min_length=1)
    candidate: Any


class CallEndEvent(SignalingModel):
    type: Literal["call-end"] = "call-end"
    call_id: str = Field(min_length=1)


class GetUsersEvent(SignalingModel):
    type: Literal["get-users"] = "get-users"


InboundEvent = Annotated[
    Union[
        RegisterEvent,
        CallOfferEvent,
        CallAnswerEvent,
        CallRejectEvent,
        CallBusyEvent,
        IceCandidateEvent,
        CallEndEvent,
        GetUsersEvent,
    ],
    Field(discriminator="type"),
]

_inbound_adapter = TypeAdapter(InboundEvent)


def parse_event(raw: Union[str, bytes]) -> InboundEvent:
    """
    Parse a raw text frame into an inbound event.

    Raises:
        pydantic.ValidationError: invalid JSON, unknown ``type`` or bad fields.
    """
    return _inbound_adapter.validate_json(raw)
