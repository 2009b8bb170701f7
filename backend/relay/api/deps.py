from fastapi import Request, WebSocket

from relay.services.signaling import SignalingRelay


def get_relay(request: Request) -> SignalingRelay:
    """
    Dependency for getting the relay owned by the running application.
    """
    return request.app.state.relay


def get_ws_relay(websocket: WebSocket) -> SignalingRelay:
    """
    WebSocket flavour of get_relay; Request is not available on socket routes.
    """
    return websocket.app.state.relay
