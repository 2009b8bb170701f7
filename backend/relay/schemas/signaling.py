from datetime import datetime
from typing import List, Optional

from .signaling_events import SignalingModel


class ClientInfo(SignalingModel):
    id: str
    name: str
    avatar: Optional[str]
    status: str
    location: str
    connected_at: datetime


class CallInfo(SignalingModel):
    call_id: str
    caller_id: str
    callee_id: str
    status: str
    start_time: datetime
    connected_time: Optional[datetime] = None


class UsersResponse(SignalingModel):
    users: List[ClientInfo]


class StatsResponse(SignalingModel):
    connected_users: int
    active_calls: int
    users: List[ClientInfo]
    calls: List[CallInfo]


class OnlineCountResponse(SignalingModel):
    count: int
    user_ids: List[str]


class SignalingStatusResponse(SignalingModel):
    status: str
    timestamp: datetime
    message: str
