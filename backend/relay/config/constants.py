"""
Signaling wire constants.

This file centralizes the envelope discriminants and reason strings used
on the signaling channel so the relay, the schemas and the tests agree
on a single spelling.

Note: Environment-dependent settings (host, port, intervals) belong in settings.py.
"""

# ==============================================================================
# INBOUND MESSAGE TYPES (client -> relay)
# ==============================================================================

MSG_REGISTER: str = "register"
MSG_CALL_OFFER: str = "call-offer"
MSG_CALL_ANSWER: str = "call-answer"
MSG_CALL_REJECT: str = "call-reject"
MSG_CALL_BUSY: str = "call-busy"
MSG_ICE_CANDIDATE: str = "ice-candidate"
MSG_CALL_END: str = "call-end"
MSG_GET_USERS: str = "get-users"

# ==============================================================================
# OUTBOUND MESSAGE TYPES (relay -> client)
# ==============================================================================

MSG_REGISTERED: str = "registered"
MSG_USER_JOINED: str = "user-joined"
MSG_USER_LEFT: str = "user-left"
MSG_USER_LIST: str = "user-list"
MSG_CALL_REJECTED: str = "call-rejected"
MSG_CALL_FAILED: str = "call-failed"
MSG_ERROR: str = "error"

# ==============================================================================
# CALL STATUS
# ==============================================================================

CALL_STATUS_OFFERING: str = "offering"
CALL_STATUS_CONNECTED: str = "connected"

# ==============================================================================
# CALL END REASONS
# ==============================================================================

END_REASON_ENDED: str = "ended"
END_REASON_USER_DISCONNECTED: str = "user disconnected"

# ==============================================================================
# FAILURE REASONS
# ==============================================================================

REASON_USER_NOT_AVAILABLE: str = "User not available"
REASON_CALLER_DISCONNECTED: str = "Caller disconnected"
REASON_CALL_NOT_FOUND: str = "Call not found"
REASON_CALL_ID_IN_USE: str = "Call ID already in use"
REASON_CANNOT_CALL_SELF: str = "Cannot call yourself"
REASON_NOT_A_PARTICIPANT: str = "Not a participant in this call"
REASON_NOT_REGISTERED: str = "Not registered"
REASON_INVALID_MESSAGE: str = "Invalid message format"

# ==============================================================================
# DISPLAY DEFAULTS
# ==============================================================================

DEFAULT_DISPLAY_NAME: str = "Anonymous User"
DEFAULT_STATUS: str = "online"
DEFAULT_LOCATION: str = "Unknown"

# WebSocket close code used when a newer connection evicts an older one
# or the liveness sweep releases a dead transport (RFC 6455 private-use range).
CLOSE_CODE_REPLACED: int = 4000
CLOSE_CODE_UNRESPONSIVE: int = 4001
