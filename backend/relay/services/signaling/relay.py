"""
Signaling Relay

Core WebRTC signaling state:
- Client registry (one live connection per user id)
- Call registry (one CallRecord per call id)
- Inbound message dispatch and offer/answer/ICE routing
"""
import asyncio
import time
import uuid
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set, Union
import logging

from pydantic import ValidationError

from relay.config.constants import (
    CLOSE_CODE_REPLACED,
    END_REASON_ENDED,
    END_REASON_USER_DISCONNECTED,
    MSG_CALL_ANSWER,
    MSG_CALL_BUSY,
    MSG_CALL_OFFER,
    MSG_CALL_REJECTED,
    MSG_ICE_CANDIDATE,
    MSG_REGISTERED,
)
from relay.schemas.signaling_events import (
    CallAnswerEvent,
    CallBusyEvent,
    CallEndEvent,
    CallOfferEvent,
    CallRejectEvent,
    GetUsersEvent,
    IceCandidateEvent,
    InboundEvent,
    RegisterEvent,
    UserData,
    parse_event,
)
from relay.services.metrics import (
    active_calls_gauge,
    connected_clients_gauge,
    messages_relayed,
    signaling_failures,
)
from .exceptions import (
    CallerDisconnectedError,
    CallIdInUseError,
    CallNotFoundError,
    NotACallParticipantError,
    NotRegisteredError,
    ProtocolError,
    SelfCallError,
    SignalingError,
    UserNotAvailableError,
)
from .models import CallRecord, ClientConnection
from .notifications import (
    broadcast,
    call_end_message,
    user_joined_message,
    user_left_message,
    user_list_message,
)

logger = logging.getLogger(__name__)

Handler = Callable[[ClientConnection, Any], Awaitable[None]]


def generate_call_id() -> str:
    return f"call_{int(time.time() * 1000)}_{uuid.uuid4().hex[:9]}"


class SignalingRelay:
    """
    Owns the client and call registries and routes signaling payloads
    between exactly two parties per call.

    All registry mutations happen under a single lock; sends to peers are
    made after the lock is released and never retried.
    """

    def __init__(self):
        # every accepted socket, registered or not (swept by the liveness monitor)
        self._connections: Set[ClientConnection] = set()
        # user_id -> ClientConnection
        self._clients: Dict[str, ClientConnection] = {}
        # call_id -> CallRecord
        self._calls: Dict[str, CallRecord] = {}
        self._lock = asyncio.Lock()

        self._handlers: Dict[type, Handler] = {
            RegisterEvent: self._on_register,
            CallOfferEvent: self._on_call_offer,
            CallAnswerEvent: self._on_call_answer,
            CallRejectEvent: self._on_call_reject,
            CallBusyEvent: self._on_call_busy,
            IceCandidateEvent: self._on_ice_candidate,
            CallEndEvent: self._on_call_end,
            GetUsersEvent: self._on_get_users,
        }

    # === Transport Hooks ===

    async def connect(self, connection: ClientConnection) -> None:
        """Track a freshly accepted socket before it registers."""
        async with self._lock:
            self._connections.add(connection)

    async def handle_message(self, connection: ClientConnection, raw: Union[str, bytes]) -> None:
        """
        Parse one inbound frame and dispatch it.

        Any SignalingError is reported to ``connection`` only; the connection
        stays open.
        """
        connection.touch()
        try:
            try:
                event = parse_event(raw)
            except ValidationError as e:
                logger.warning(f"Invalid signaling message from {connection.user_id}: {e.error_count()} error(s)")
                raise ProtocolError() from e
            await self.dispatch(connection, event)
        except SignalingError as e:
            signaling_failures.labels(reason=e.reason).inc()
            logger.info(f"Signaling failure for {connection.user_id}: {e.reason}")
            await connection.send_json(e.to_message())

    async def dispatch(self, connection: ClientConnection, event: InboundEvent) -> None:
        handler = self._handlers.get(type(event))
        if handler is None:
            raise ProtocolError(f"Unsupported message type: {event.type}")
        await handler(connection, event)

    # === Registry Operations ===

    async def register(
        self,
        connection: ClientConnection,
        user_id: str,
        user_data: Optional[UserData] = None
    ) -> List[Dict[str, Any]]:
        """
        Bind ``connection`` to ``user_id`` and announce it.

        A previous live connection for the same user is closed first.
        Returns the roster excluding the new client.
        """
        if connection.user_id is not None and connection.user_id != user_id:
            # re-registering under a new identity drops the old one
            await self.handle_disconnection(connection)

        async with self._lock:
            previous = self._clients.get(user_id)
            connection.user_id = user_id
            connection.user_data = user_data or UserData()
            self._connections.add(connection)
            self._clients[user_id] = connection
            roster = [c.to_dict() for uid, c in self._clients.items() if uid != user_id]
            others = [c for uid, c in self._clients.items() if uid != user_id]
            self._update_gauges()

        if previous is not None and previous is not connection:
            logger.info(f"User {user_id} reconnected, closing previous connection")
            async with self._lock:
                self._connections.discard(previous)
            await previous.close(code=CLOSE_CODE_REPLACED, reason="Replaced by new connection")

        logger.info(f"User {user_id} registered ({len(self._clients)} connected)")

        await connection.send_json({
            "type": MSG_REGISTERED,
            "userId": user_id,
            "userData": connection.to_dict(),
        })
        await broadcast(others, user_joined_message(connection), exclude_user=user_id)
        await connection.send_json(user_list_message(roster))
        return roster

    async def handle_disconnection(self, connection: ClientConnection) -> List[str]:
        """
        Drop a connection and every call its user was party to.

        A connection that has already been replaced by a newer one for the
        same user is only forgotten; the newer one keeps its calls.
        Returns the ids of the calls that were ended.
        """
        user_id = connection.user_id
        async with self._lock:
            self._connections.discard(connection)
            if user_id is None or self._clients.get(user_id) is not connection:
                return []

            ended = [record for record in self._calls.values() if record.involves(user_id)]
            for record in ended:
                del self._calls[record.call_id]
            del self._clients[user_id]
            others = list(self._clients.values())
            self._update_gauges()

        for record in ended:
            await self._notify_call_end(record, END_REASON_USER_DISCONNECTED, ended_by=user_id)

        logger.info(f"User {user_id} disconnected, ended {len(ended)} call(s)")
        await broadcast(others, user_left_message(user_id))
        return [record.call_id for record in ended]

    # === Call Operations ===

    async def place_offer(
        self,
        caller: ClientConnection,
        target_user_id: str,
        offer: Any,
        call_id: Optional[str] = None
    ) -> CallRecord:
        """Create a CallRecord and forward the offer to the target."""
        caller_id = self._require_registered(caller)
        if target_user_id == caller_id:
            raise SelfCallError(call_id=call_id)

        async with self._lock:
            target = self._clients.get(target_user_id)
            if target is None or not target.is_open:
                raise UserNotAvailableError(call_id=call_id)
            if call_id is None:
                call_id = generate_call_id()
            elif call_id in self._calls:
                raise CallIdInUseError(call_id=call_id)

            record = CallRecord(call_id, caller_id, target_user_id)
            self._calls[call_id] = record
            self._update_gauges()

        delivered = await target.send_json({
            "type": MSG_CALL_OFFER,
            "callId": call_id,
            "offer": offer,
            "callerId": caller_id,
            "callerName": caller.user_data.name,
            "callerData": caller.to_dict(),
        })
        if not delivered:
            await self._discard_call(call_id)
            raise UserNotAvailableError(call_id=call_id)

        messages_relayed.labels(message_type=MSG_CALL_OFFER).inc()
        logger.info(f"Call {call_id}: {caller_id} -> {target_user_id} offering")
        return record

    async def place_answer(
        self,
        callee: ClientConnection,
        call_id: str,
        answer: Any
    ) -> CallRecord:
        """Mark the call connected and forward the answer to the caller."""
        callee_id = self._require_registered(callee)

        async with self._lock:
            record = self._calls.get(call_id)
            if record is None:
                raise CallNotFoundError(call_id=call_id)
            if record.callee_id != callee_id:
                raise NotACallParticipantError(call_id=call_id)

            caller = self._clients.get(record.caller_id)
            if caller is None or not caller.is_open:
                del self._calls[call_id]
                self._update_gauges()
                raise CallerDisconnectedError(call_id=call_id)
            record.mark_connected()

        delivered = await caller.send_json({
            "type": MSG_CALL_ANSWER,
            "callId": call_id,
            "answer": answer,
            "calleeId": callee_id,
        })
        if not delivered:
            await self._discard_call(call_id)
            raise CallerDisconnectedError(call_id=call_id)

        messages_relayed.labels(message_type=MSG_CALL_ANSWER).inc()
        logger.info(f"Call {call_id} connected")
        return record

    async def reject_call(self, sender: ClientConnection, call_id: str) -> bool:
        """Tell the other party the call was rejected and discard it."""
        return await self._decline(sender, call_id, MSG_CALL_REJECTED)

    async def busy_call(self, sender: ClientConnection, call_id: str) -> bool:
        """Tell the other party the callee is busy and discard the call."""
        return await self._decline(sender, call_id, MSG_CALL_BUSY)

    async def relay_ice_candidate(
        self,
        sender: ClientConnection,
        call_id: str,
        candidate: Any
    ) -> bool:
        """
        Forward an ICE candidate to the sender's counter-party.

        Returns:
            True if the candidate reached a live counter-party.
        """
        sender_id = self._require_registered(sender)

        async with self._lock:
            record = self._calls.get(call_id)
            if record is None:
                raise CallNotFoundError(call_id=call_id)
            peer_id = record.other_party(sender_id)
            if peer_id is None:
                raise NotACallParticipantError(call_id=call_id)
            peer = self._clients.get(peer_id)

        if peer is None:
            logger.debug(f"Call {call_id}: ICE candidate dropped, {peer_id} not connected")
            return False

        delivered = await peer.send_json({
            "type": MSG_ICE_CANDIDATE,
            "callId": call_id,
            "candidate": candidate,
            "fromUserId": sender_id,
        })
        if delivered:
            messages_relayed.labels(message_type=MSG_ICE_CANDIDATE).inc()
        return delivered

    async def end_call(
        self,
        call_id: str,
        reason: str = END_REASON_ENDED,
        ended_by: Optional[str] = None
    ) -> bool:
        """
        Discard a call and notify whoever did not end it.

        Returns:
            True if a CallRecord was removed, False if it was already gone.
        """
        async with self._lock:
            record = self._calls.pop(call_id, None)
            if record is None:
                return False
            self._update_gauges()

        await self._notify_call_end(record, reason, ended_by=ended_by)
        logger.info(f"Call {call_id} ended ({reason})")
        return True

    # === Query Methods ===

    def list_clients(self) -> List[Dict[str, Any]]:
        """Snapshot of the registered roster."""
        return [conn.to_dict() for conn in self._clients.values()]

    def list_calls(self) -> List[Dict[str, Any]]:
        return [record.to_dict() for record in self._calls.values()]

    def get_stats(self) -> Dict[str, Any]:
        return {
            "connectedUsers": len(self._clients),
            "activeCalls": len(self._calls),
            "users": self.list_clients(),
            "calls": self.list_calls(),
        }

    def get_client(self, user_id: str) -> Optional[ClientConnection]:
        return self._clients.get(user_id)

    def get_call(self, call_id: str) -> Optional[CallRecord]:
        return self._calls.get(call_id)

    def is_user_connected(self, user_id: str) -> bool:
        return user_id in self._clients

    def connections(self) -> List[ClientConnection]:
        """Every tracked socket, registered or not."""
        return list(self._connections)

    def get_total_connections(self) -> int:
        return len(self._connections)

    def get_active_call_count(self) -> int:
        return len(self._calls)

    # === Message Handlers ===

    async def _on_register(self, connection: ClientConnection, event: RegisterEvent) -> None:
        await self.register(connection, event.user_id, event.user_data)

    async def _on_call_offer(self, connection: ClientConnection, event: CallOfferEvent) -> None:
        await self.place_offer(connection, event.target_user_id, event.offer, event.call_id)

    async def _on_call_answer(self, connection: ClientConnection, event: CallAnswerEvent) -> None:
        await self.place_answer(connection, event.call_id, event.answer)

    async def _on_call_reject(self, connection: ClientConnection, event: CallRejectEvent) -> None:
        await self.reject_call(connection, event.call_id)

    async def _on_call_busy(self, connection: ClientConnection, event: CallBusyEvent) -> None:
        await self.busy_call(connection, event.call_id)

    async def _on_ice_candidate(self, connection: ClientConnection, event: IceCandidateEvent) -> None:
        await self.relay_ice_candidate(connection, event.call_id, event.candidate)

    async def _on_call_end(self, connection: ClientConnection, event: CallEndEvent) -> None:
        sender_id = self._require_registered(connection)
        record = self._calls.get(event.call_id)
        if record is not None and not record.involves(sender_id):
            raise NotACallParticipantError(call_id=event.call_id)
        await self.end_call(event.call_id, END_REASON_ENDED, ended_by=sender_id)

    async def _on_get_users(self, connection: ClientConnection, event: GetUsersEvent) -> None:
        user_id = self._require_registered(connection)
        roster = [c.to_dict() for uid, c in self._clients.items() if uid != user_id]
        await connection.send_json(user_list_message(roster))

    # === Internal Helpers ===

    def _require_registered(self, connection: ClientConnection) -> str:
        if connection.user_id is None or self._clients.get(connection.user_id) is not connection:
            raise NotRegisteredError()
        return connection.user_id

    async def _decline(self, sender: ClientConnection, call_id: str, message_type: str) -> bool:
        sender_id = self._require_registered(sender)

        async with self._lock:
            record = self._calls.get(call_id)
            if record is None:
                return False
            peer_id = record.other_party(sender_id)
            if peer_id is None:
                raise NotACallParticipantError(call_id=call_id)
            del self._calls[call_id]
            self._update_gauges()
            peer = self._clients.get(peer_id)

        if peer is not None:
            await peer.send_json({
                "type": message_type,
                "callId": call_id,
                "userId": sender_id,
            })
            messages_relayed.labels(message_type=message_type).inc()

        logger.info(f"Call {call_id} declined by {sender_id} ({message_type})")
        return True

    async def _discard_call(self, call_id: str) -> None:
        async with self._lock:
            if self._calls.pop(call_id, None) is not None:
                self._update_gauges()

    async def _notify_call_end(
        self,
        record: CallRecord,
        reason: str,
        ended_by: Optional[str] = None
    ) -> None:
        message = call_end_message(record, reason, ended_by)
        for user_id in (record.caller_id, record.callee_id):
            if user_id == ended_by:
                continue
            peer = self._clients.get(user_id)
            if peer is not None:
                await peer.send_json(message)

    def _update_gauges(self) -> None:
        connected_clients_gauge.set(len(self._clients))
        active_calls_gauge.set(len(self._calls))
