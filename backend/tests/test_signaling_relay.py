"""
Tests for the SignalingRelay client and call registries.
"""
import json

import pytest
from starlette.websockets import WebSocketState

from relay.config.constants import CALL_STATUS_CONNECTED, CALL_STATUS_OFFERING
from relay.schemas.signaling_events import UserData
from relay.services.signaling import (
    CallerDisconnectedError,
    CallIdInUseError,
    CallNotFoundError,
    NotACallParticipantError,
    NotRegisteredError,
    SelfCallError,
    UserNotAvailableError,
)
from tests.helpers import new_connection, open_call, register


# =============================================================================
# Registration
# =============================================================================

@pytest.mark.asyncio
async def test_register_sends_ack_and_roster(relay):
    alice = await register(relay, "u1", name="Alice")

    bob = new_connection()
    roster = await relay.register(bob, "u2", UserData(name="Bob"))

    assert [u["id"] for u in roster] == ["u1"]
    assert [m["type"] for m in bob.websocket.sent] == ["registered", "user-list"]
    assert bob.websocket.sent[1]["users"][0]["name"] == "Alice"

    joined = alice.websocket.of_type("user-joined")
    assert len(joined) == 1
    assert joined[0]["userId"] == "u2"
    assert joined[0]["userData"]["name"] == "Bob"


@pytest.mark.asyncio
async def test_register_with_null_display_fields_uses_defaults(relay):
    alice = await register(relay, "u1")
    bob = new_connection()
    await relay.connect(bob)

    await relay.handle_message(bob, json.dumps({
        "type": "register",
        "userId": "u2",
        "userData": {"name": "Bob", "status": None, "location": None},
    }))

    assert bob.websocket.of_type("error") == []
    assert bob.websocket.sent[0]["type"] == "registered"
    joined = alice.websocket.of_type("user-joined")[0]["userData"]
    assert joined["status"] == "online"
    assert joined["location"] == "Unknown"


@pytest.mark.asyncio
async def test_reregistering_user_evicts_previous_connection(relay):
    first = await register(relay, "u1")
    second = await register(relay, "u1")

    assert relay.get_client("u1") is second
    assert first.closed
    assert first.websocket.close_code == 4000
    assert len(relay.list_clients()) == 1


@pytest.mark.asyncio
async def test_stale_connection_disconnect_leaves_new_one(relay):
    first = await register(relay, "u1")
    second = await register(relay, "u1")

    ended = await relay.handle_disconnection(first)

    assert ended == []
    assert relay.get_client("u1") is second


@pytest.mark.asyncio
async def test_register_under_new_identity_drops_old_one(relay):
    conn = await register(relay, "u1")
    other = await register(relay, "u2")

    await relay.register(conn, "u3")

    assert not relay.is_user_connected("u1")
    assert relay.get_client("u3") is conn
    assert [m["userId"] for m in other.websocket.of_type("user-left")] == ["u1"]


# =============================================================================
# Offers
# =============================================================================

@pytest.mark.asyncio
async def test_offer_creates_call_and_forwards_to_callee(relay):
    alice = await register(relay, "u1", name="Alice")
    bob = await register(relay, "u2", name="Bob")

    record = await relay.place_offer(alice, "u2", {"sdp": "offer"}, "c1")

    assert record.status == CALL_STATUS_OFFERING
    assert relay.get_call("c1") is record

    offer = bob.websocket.last()
    assert offer["type"] == "call-offer"
    assert offer["callId"] == "c1"
    assert offer["callerId"] == "u1"
    assert offer["callerName"] == "Alice"
    assert offer["offer"] == {"sdp": "offer"}


@pytest.mark.asyncio
async def test_offer_to_unknown_user_fails_without_call(relay):
    caller = await register(relay, "u3")

    with pytest.raises(UserNotAvailableError):
        await relay.place_offer(caller, "u99", {"sdp": "offer"}, "c9")

    assert relay.get_call("c9") is None
    assert relay.get_active_call_count() == 0


@pytest.mark.asyncio
async def test_offer_generates_call_id_when_missing(relay):
    alice = await register(relay, "u1")
    await register(relay, "u2")

    record = await relay.place_offer(alice, "u2", {"sdp": "offer"})

    assert record.call_id.startswith("call_")
    assert relay.get_call(record.call_id) is record


@pytest.mark.asyncio
async def test_second_offer_for_same_call_id_is_rejected(relay):
    alice = await register(relay, "u1")
    bob = await register(relay, "u2")
    mallory = await register(relay, "u3")
    record = await open_call(relay, alice, bob, "c1")

    with pytest.raises(CallIdInUseError):
        await relay.place_offer(mallory, "u2", {"sdp": "evil"}, "c1")

    assert relay.get_call("c1") is record
    assert record.caller_id == "u1"
    assert bob.websocket.sent == []


@pytest.mark.asyncio
async def test_cannot_call_yourself(relay):
    alice = await register(relay, "u1")

    with pytest.raises(SelfCallError):
        await relay.place_offer(alice, "u1", {}, "c1")


@pytest.mark.asyncio
async def test_offer_send_failure_discards_call(relay):
    alice = await register(relay, "u1")
    bob = await register(relay, "u2")
    bob.websocket.fail_sends = True

    with pytest.raises(UserNotAvailableError):
        await relay.place_offer(alice, "u2", {}, "c1")

    assert relay.get_call("c1") is None


@pytest.mark.asyncio
async def test_unregistered_connection_cannot_offer(relay):
    await register(relay, "u2")
    anonymous = new_connection()

    with pytest.raises(NotRegisteredError):
        await relay.place_offer(anonymous, "u2", {}, "c1")


# =============================================================================
# Answers
# =============================================================================

@pytest.mark.asyncio
async def test_answer_connects_call_and_forwards_to_caller(relay):
    alice = await register(relay, "u1")
    bob = await register(relay, "u2")
    await open_call(relay, alice, bob, "c1")

    record = await relay.place_answer(bob, "c1", {"sdp": "answer"})

    assert record.status == CALL_STATUS_CONNECTED
    assert record.connected_time is not None
    answer = alice.websocket.last()
    assert answer["type"] == "call-answer"
    assert answer["callId"] == "c1"
    assert answer["answer"] == {"sdp": "answer"}


@pytest.mark.asyncio
async def test_repeated_answer_keeps_connected_time(relay):
    alice = await register(relay, "u1")
    bob = await register(relay, "u2")
    record = await open_call(relay, alice, bob, "c1", answer=True)
    stamped = record.connected_time

    await relay.place_answer(bob, "c1", {"sdp": "again"})

    assert record.status == CALL_STATUS_CONNECTED
    assert record.connected_time == stamped


@pytest.mark.asyncio
async def test_answer_for_unknown_call_mutates_nothing(relay):
    await register(relay, "u1")
    bob = await register(relay, "u2")
    before = relay.get_stats()

    with pytest.raises(CallNotFoundError):
        await relay.place_answer(bob, "nope", {})

    assert relay.get_stats() == before


@pytest.mark.asyncio
async def test_only_callee_can_answer(relay):
    alice = await register(relay, "u1")
    bob = await register(relay, "u2")
    await open_call(relay, alice, bob, "c1")

    with pytest.raises(NotACallParticipantError):
        await relay.place_answer(alice, "c1", {})

    assert relay.get_call("c1").status == CALL_STATUS_OFFERING


@pytest.mark.asyncio
async def test_answer_after_caller_left_discards_call(relay):
    alice = await register(relay, "u1")
    bob = await register(relay, "u2")
    await open_call(relay, alice, bob, "c1")
    alice.websocket.application_state = WebSocketState.DISCONNECTED

    with pytest.raises(CallerDisconnectedError):
        await relay.place_answer(bob, "c1", {})

    assert relay.get_call("c1") is None


# =============================================================================
# Reject / Busy
# =============================================================================

@pytest.mark.asyncio
async def test_reject_notifies_caller_and_discards(relay):
    alice = await register(relay, "u1")
    bob = await register(relay, "u2")
    await open_call(relay, alice, bob, "c1")

    assert await relay.reject_call(bob, "c1") is True

    assert relay.get_call("c1") is None
    rejected = alice.websocket.last()
    assert rejected["type"] == "call-rejected"
    assert rejected["callId"] == "c1"


@pytest.mark.asyncio
async def test_reject_unknown_call_is_noop(relay):
    bob = await register(relay, "u2")

    assert await relay.reject_call(bob, "nope") is False
    assert bob.websocket.sent == []


@pytest.mark.asyncio
async def test_busy_notifies_caller_and_discards(relay):
    alice = await register(relay, "u1")
    bob = await register(relay, "u2")
    await open_call(relay, alice, bob, "c1")

    assert await relay.busy_call(bob, "c1") is True

    assert relay.get_call("c1") is None
    assert alice.websocket.last()["type"] == "call-busy"


# =============================================================================
# ICE candidates
# =============================================================================

@pytest.mark.asyncio
async def test_ice_candidate_goes_to_counter_party_only(relay):
    alice = await register(relay, "u1")
    bob = await register(relay, "u2")
    carol = await register(relay, "u3")
    await open_call(relay, alice, bob, "c1", answer=True)

    assert await relay.relay_ice_candidate(alice, "c1", {"candidate": "a"}) is True
    assert await relay.relay_ice_candidate(bob, "c1", {"candidate": "b"}) is True

    assert bob.websocket.of_type("ice-candidate") == [
        {"type": "ice-candidate", "callId": "c1", "candidate": {"candidate": "a"}, "fromUserId": "u1"}
    ]
    assert alice.websocket.of_type("ice-candidate")[0]["candidate"] == {"candidate": "b"}
    assert carol.websocket.sent == []


@pytest.mark.asyncio
async def test_ice_candidate_for_missing_call_reaches_nobody(relay):
    alice = await register(relay, "u1")
    bob = await register(relay, "u2")

    with pytest.raises(CallNotFoundError):
        await relay.relay_ice_candidate(alice, "c1", {"candidate": "a"})

    assert alice.websocket.of_type("ice-candidate") == []
    assert bob.websocket.of_type("ice-candidate") == []


@pytest.mark.asyncio
async def test_ice_candidate_from_outsider_is_refused(relay):
    alice = await register(relay, "u1")
    bob = await register(relay, "u2")
    carol = await register(relay, "u3")
    await open_call(relay, alice, bob, "c1")

    with pytest.raises(NotACallParticipantError):
        await relay.relay_ice_candidate(carol, "c1", {"candidate": "x"})

    assert alice.websocket.sent == []
    assert bob.websocket.sent == []


@pytest.mark.asyncio
async def test_ice_candidate_to_unreachable_peer_returns_false(relay):
    alice = await register(relay, "u1")
    bob = await register(relay, "u2")
    await open_call(relay, alice, bob, "c1")
    bob.websocket.fail_sends = True

    assert await relay.relay_ice_candidate(alice, "c1", {"candidate": "a"}) is False


# =============================================================================
# End / Disconnect
# =============================================================================

@pytest.mark.asyncio
async def test_end_call_notifies_other_party_once(relay):
    alice = await register(relay, "u1")
    bob = await register(relay, "u2")
    await open_call(relay, alice, bob, "c1", answer=True)

    assert await relay.end_call("c1", ended_by="u1") is True
    assert await relay.end_call("c1", ended_by="u1") is False

    ends = bob.websocket.of_type("call-end")
    assert len(ends) == 1
    assert ends[0]["reason"] == "ended"
    assert alice.websocket.of_type("call-end") == []


@pytest.mark.asyncio
async def test_disconnect_ends_exactly_the_users_calls(relay):
    alice = await register(relay, "u1")
    bob = await register(relay, "u2")
    carol = await register(relay, "u3")
    dave = await register(relay, "u4")
    erin = await register(relay, "u5")
    await open_call(relay, alice, bob, "c1", answer=True)
    await open_call(relay, carol, alice, "c2")
    await open_call(relay, dave, erin, "c3", answer=True)

    ended = await relay.handle_disconnection(alice)

    assert sorted(ended) == ["c1", "c2"]
    assert relay.get_call("c3") is not None
    assert not relay.is_user_connected("u1")
    assert sorted(u["id"] for u in relay.list_clients()) == ["u2", "u3", "u4", "u5"]

    for peer in (bob, carol):
        end = peer.websocket.of_type("call-end")
        assert len(end) == 1
        assert end[0]["reason"] == "user disconnected"
    assert dave.websocket.of_type("call-end") == []

    for peer in (bob, carol, dave, erin):
        assert [m["userId"] for m in peer.websocket.of_type("user-left")] == ["u1"]


@pytest.mark.asyncio
async def test_disconnect_of_unregistered_connection_is_noop(relay):
    bob = await register(relay, "u2")
    anonymous = new_connection()
    await relay.connect(anonymous)

    assert await relay.handle_disconnection(anonymous) == []
    assert bob.websocket.sent == []
    assert relay.get_total_connections() == 1


# =============================================================================
# Dispatch (wire level)
# =============================================================================

@pytest.mark.asyncio
async def test_full_call_scenario_over_messages(relay):
    a = new_connection()
    b = new_connection()
    await relay.connect(a)
    await relay.connect(b)

    await relay.handle_message(a, json.dumps({"type": "register", "userId": "u1"}))
    await relay.handle_message(b, json.dumps({"type": "register", "userId": "u2"}))

    assert b.websocket.of_type("user-list")[0]["users"][0]["id"] == "u1"
    await relay.handle_message(a, json.dumps({"type": "get-users"}))
    assert a.websocket.of_type("user-list")[-1]["users"][0]["id"] == "u2"

    await relay.handle_message(a, json.dumps({
        "type": "call-offer", "targetUserId": "u2", "offer": {"sdp": "o"}, "callId": "c1"
    }))
    offer = b.websocket.of_type("call-offer")[0]
    assert offer["callerId"] == "u1"

    await relay.handle_message(b, json.dumps({"type": "call-answer", "callId": "c1", "answer": {"sdp": "a"}}))
    assert a.websocket.of_type("call-answer")[0]["callId"] == "c1"
    assert relay.get_call("c1").status == "connected"

    await relay.handle_message(a, json.dumps({"type": "call-end", "callId": "c1"}))
    assert b.websocket.of_type("call-end")[0]["callId"] == "c1"
    assert relay.get_call("c1") is None


@pytest.mark.asyncio
async def test_offer_to_missing_user_replies_call_failed(relay):
    c = await register(relay, "u3")

    await relay.handle_message(c, json.dumps({
        "type": "call-offer", "targetUserId": "u99", "offer": {}, "callId": "c9"
    }))

    assert c.websocket.last() == {"type": "call-failed", "reason": "User not available", "callId": "c9"}
    assert relay.get_active_call_count() == 0


@pytest.mark.asyncio
async def test_malformed_message_gets_error_reply_and_stays_open(relay):
    a = await register(relay, "u1")

    await relay.handle_message(a, "{broken")
    await relay.handle_message(a, json.dumps({"type": "dance"}))

    errors = a.websocket.of_type("error")
    assert len(errors) == 2
    assert errors[0]["message"] == "Invalid message format"
    assert a.is_open
    assert relay.is_user_connected("u1")


@pytest.mark.asyncio
async def test_answer_for_unknown_call_replies_error(relay):
    b = await register(relay, "u2")

    await relay.handle_message(b, json.dumps({"type": "call-answer", "callId": "ghost", "answer": {}}))

    assert b.websocket.last() == {"type": "error", "message": "Call not found", "callId": "ghost"}


@pytest.mark.asyncio
async def test_unregistered_sender_gets_not_registered(relay):
    anonymous = new_connection()
    await relay.connect(anonymous)

    await relay.handle_message(anonymous, json.dumps({"type": "get-users"}))

    assert anonymous.websocket.last() == {"type": "error", "message": "Not registered"}


@pytest.mark.asyncio
async def test_application_ping_is_not_part_of_the_protocol(relay):
    a = await register(relay, "u1")

    await relay.handle_message(a, '{"type": "ping"}')

    assert a.websocket.last() == {"type": "error", "message": "Invalid message format"}
    assert a.websocket.of_type("pong") == []
    assert a.is_open


# =============================================================================
# Snapshots
# =============================================================================

@pytest.mark.asyncio
async def test_stats_projection(relay):
    alice = await register(relay, "u1", name="Alice")
    bob = await register(relay, "u2", name="Bob")
    await open_call(relay, alice, bob, "c1")

    stats = relay.get_stats()

    assert stats["connectedUsers"] == 2
    assert stats["activeCalls"] == 1
    assert {u["name"] for u in stats["users"]} == {"Alice", "Bob"}
    call = stats["calls"][0]
    assert call["callId"] == "c1"
    assert call["callerId"] == "u1"
    assert call["calleeId"] == "u2"
    assert call["status"] == "offering"
    assert call["connectedTime"] is None
