import asyncio
import httpx
import websockets
import json
import logging
import sys

import os

# Configure logging
logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(levelname)s - %(message)s')
logger = logging.getLogger(__name__)

BASE_URL = os.getenv("BASE_URL", "http://localhost:8000")
WS_URL = os.getenv("WS_URL", "ws://localhost:8000/ws")


async def wait_for(ws, message_type, timeout=5.0):
    """Read frames until one of ``message_type`` arrives."""
    while True:
        raw = await asyncio.wait_for(ws.recv(), timeout=timeout)
        data = json.loads(raw)
        logger.info(f"WS Message: {data['type']}")
        if data["type"] == message_type:
            return data


async def register(ws, user_id, name):
    await ws.send(json.dumps({
        "type": "register",
        "userId": user_id,
        "userData": {"name": name, "location": "Smoke Test"}
    }))
    await wait_for(ws, "registered")
    roster = await wait_for(ws, "user-list")
    logger.info(f"{user_id} registered, sees {[u['id'] for u in roster['users']]}")


async def run_scenario():
    async with httpx.AsyncClient() as client:
        resp = await client.get(f"{BASE_URL}/signaling")
        if resp.status_code != 200:
            logger.error(f"Relay not ready: {resp.status_code} {resp.text}")
            return False

        async with websockets.connect(WS_URL) as ws_a, websockets.connect(WS_URL) as ws_b:
            # 1. Both users register
            await register(ws_a, "smoke-a", "User A")
            await register(ws_b, "smoke-b", "User B")
            await wait_for(ws_a, "user-joined")

            # 2. A offers, B receives it
            await ws_a.send(json.dumps({
                "type": "call-offer",
                "targetUserId": "smoke-b",
                "offer": {"type": "offer", "sdp": "v=0"},
                "callId": "smoke-call"
            }))
            offer = await wait_for(ws_b, "call-offer")
            logger.info(f"SUCCESS: B received offer from {offer['callerId']}")

            # 3. B answers, A receives it
            await ws_b.send(json.dumps({
                "type": "call-answer",
                "callId": "smoke-call",
                "answer": {"type": "answer", "sdp": "v=0"}
            }))
            await wait_for(ws_a, "call-answer")

            stats = (await client.get(f"{BASE_URL}/api/signaling/stats")).json()
            logger.info(f"Stats during call: {stats['connectedUsers']} users, {stats['activeCalls']} calls")

            # 4. A hangs up
            await ws_a.send(json.dumps({"type": "call-end", "callId": "smoke-call"}))
            end = await wait_for(ws_b, "call-end")
            logger.info(f"SUCCESS: call ended ({end['reason']})")

        # 5. Offer to a user that does not exist
        async with websockets.connect(WS_URL) as ws_c:
            await register(ws_c, "smoke-c", "User C")
            await ws_c.send(json.dumps({"type": "call-offer", "targetUserId": "smoke-missing", "offer": {}}))
            failed = await wait_for(ws_c, "call-failed")
            logger.info(f"SUCCESS: call-failed ({failed['reason']})")

    return True

if __name__ == "__main__":
    try:
        ok = asyncio.run(run_scenario())
    except asyncio.TimeoutError:
        logger.error("FAILED: Timeout waiting for relay response.")
        ok = False
    sys.exit(0 if ok else 1)
