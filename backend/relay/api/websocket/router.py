"""
WebSocket Router - Signaling Endpoint

This is the thin transport layer that feeds inbound frames to the
SignalingRelay and guarantees disconnection cleanup.
"""
import asyncio
import logging

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect

from relay.api.deps import get_ws_relay
from relay.config.settings import settings
from relay.services.signaling import ClientConnection, SignalingRelay

logger = logging.getLogger(__name__)

router = APIRouter()


@router.websocket(settings.SIGNALING_PATH)
async def signaling_endpoint(
    websocket: WebSocket,
    relay: SignalingRelay = Depends(get_ws_relay)
):
    """
    WebSocket endpoint for WebRTC signaling.

    Message Types (JSON, field ``type``):
        - register: bind this socket to a user id
        - call-offer / call-answer / call-reject / call-busy: call setup
        - ice-candidate: network path exchange
        - call-end: hang up
        - get-users: request the roster
    """
    await websocket.accept()
    connection = ClientConnection(websocket)
    await relay.connect(connection)

    try:
        while not connection.closed:
            message = await websocket.receive()

            if message["type"] == "websocket.disconnect":
                break
            if message.get("text") is not None:
                await relay.handle_message(connection, message["text"])
            elif message.get("bytes") is not None:
                await relay.handle_message(connection, message["bytes"])
            else:
                logger.warning(f"Unexpected message structure from {connection.user_id}")

    except WebSocketDisconnect:
        logger.info(f"Signaling socket for {connection.user_id} disconnected")

    except Exception as e:
        logger.error(f"Error during signaling loop for {connection.user_id}: {e}")

    finally:
        # the server may cancel this task once the socket closes; cleanup must still finish
        await asyncio.shield(relay.handle_disconnection(connection))
