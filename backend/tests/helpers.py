import asyncio
from typing import Any, Dict, List, Optional

from starlette.websockets import WebSocketState

from relay.schemas.signaling_events import UserData
from relay.services.signaling import ClientConnection, SignalingRelay


class FakeWebSocket:
    """Records everything the relay sends; can be told to fail sends."""

    def __init__(self, fail_sends: bool = False):
        self.sent: List[Dict[str, Any]] = []
        self.application_state = WebSocketState.CONNECTED
        self.client_state = WebSocketState.CONNECTED
        self.fail_sends = fail_sends
        self.close_code: Optional[int] = None

    async def send_json(self, data: Dict[str, Any]) -> None:
        if self.fail_sends:
            raise RuntimeError("socket is gone")
        self.sent.append(data)

    async def close(self, code: int = 1000, reason: Optional[str] = None) -> None:
        self.application_state = WebSocketState.DISCONNECTED
        self.close_code = code

    def lose_transport(self) -> None:
        """Simulate the peer vanishing without a close handshake."""
        self.client_state = WebSocketState.DISCONNECTED

    def of_type(self, message_type: str) -> List[Dict[str, Any]]:
        return [m for m in self.sent if m["type"] == message_type]

    def last(self) -> Dict[str, Any]:
        return self.sent[-1]


def new_connection(fail_sends: bool = False) -> ClientConnection:
    return ClientConnection(FakeWebSocket(fail_sends=fail_sends))


async def register(relay: SignalingRelay, user_id: str, name: str = "Test User") -> ClientConnection:
    conn = new_connection()
    await relay.connect(conn)
    await relay.register(conn, user_id, UserData(name=name))
    conn.websocket.sent.clear()
    return conn


async def open_call(
    relay: SignalingRelay,
    caller: ClientConnection,
    callee: ClientConnection,
    call_id: str = "c1",
    answer: bool = False
):
    record = await relay.place_offer(caller, callee.user_id, {"type": "offer", "sdp": "v=0"}, call_id)
    if answer:
        await relay.place_answer(callee, call_id, {"type": "answer", "sdp": "v=0"})
    caller.websocket.sent.clear()
    callee.websocket.sent.clear()
    return record


class ScriptedWebSocket(FakeWebSocket):
    """
    Drives the signaling endpoint directly.

    ``receive`` hands out the queued frames in order, then blocks until
    ``hang_up`` is set and reports a disconnect. Sends block while ``gate``
    is cleared.
    """

    def __init__(self, frames: List[str]):
        super().__init__()
        self.frames = list(frames)
        self.hang_up = asyncio.Event()
        self.gate = asyncio.Event()
        self.gate.set()
        self.blocked = False

    async def accept(self) -> None:
        pass

    async def receive(self) -> Dict[str, Any]:
        if self.frames:
            return {"type": "websocket.receive", "text": self.frames.pop(0)}
        await self.hang_up.wait()
        return {"type": "websocket.disconnect", "code": 1000}

    async def send_json(self, data: Dict[str, Any]) -> None:
        if not self.gate.is_set():
            self.blocked = True
            await self.gate.wait()
            self.blocked = False
        await super().send_json(data)
