"""
Signaling API - Read-only endpoints for operational inspection

Implements:
- Relay stats (connected users, active calls)
- Current roster
- Online user count
- Signaling readiness probe

None of these endpoints mutate relay state.
"""
from datetime import datetime, UTC

from fastapi import APIRouter, Depends

from relay.api.deps import get_relay
from relay.schemas.signaling import (
    OnlineCountResponse,
    SignalingStatusResponse,
    StatsResponse,
    UsersResponse,
)
from relay.services.signaling import SignalingRelay

router = APIRouter()
status_router = APIRouter()


@router.get("/signaling/stats", response_model=StatsResponse)
async def get_stats(relay: SignalingRelay = Depends(get_relay)):
    """Snapshot of the client and call registries."""
    return StatsResponse.model_validate(relay.get_stats())


@router.get("/signaling/users", response_model=UsersResponse)
async def get_users(relay: SignalingRelay = Depends(get_relay)):
    return UsersResponse.model_validate({"users": relay.list_clients()})


@router.get("/users/online-count", response_model=OnlineCountResponse)
async def get_online_count(relay: SignalingRelay = Depends(get_relay)):
    users = relay.list_clients()
    return OnlineCountResponse(count=len(users), user_ids=[u["id"] for u in users])


@status_router.get("/signaling", response_model=SignalingStatusResponse)
async def signaling_status():
    """Readiness probe for clients deciding whether to open the socket."""
    return SignalingStatusResponse(
        status="ready",
        timestamp=datetime.now(UTC),
        message="Signaling endpoint available",
    )
