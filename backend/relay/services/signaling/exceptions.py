"""
Signaling Exceptions

Custom exceptions for signaling errors. Each one knows how it is reported
back to the connection that caused it.
"""
from typing import Any, Dict, Optional

from relay.config.constants import (
    MSG_CALL_FAILED,
    MSG_ERROR,
    REASON_CALL_ID_IN_USE,
    REASON_CALL_NOT_FOUND,
    REASON_CALLER_DISCONNECTED,
    REASON_CANNOT_CALL_SELF,
    REASON_INVALID_MESSAGE,
    REASON_NOT_A_PARTICIPANT,
    REASON_NOT_REGISTERED,
    REASON_USER_NOT_AVAILABLE,
)


class SignalingError(Exception):
    """Base exception for signaling errors"""

    reply_type: str = MSG_ERROR
    default_reason: str = "Signaling error"

    def __init__(self, reason: Optional[str] = None, call_id: Optional[str] = None):
        self.reason = reason or self.default_reason
        self.call_id = call_id
        super().__init__(self.reason)

    def to_message(self) -> Dict[str, Any]:
        """Build the reply envelope sent to the originating connection."""
        message: Dict[str, Any] = {"type": self.reply_type}
        if self.reply_type == MSG_CALL_FAILED:
            message["reason"] = self.reason
        else:
            message["message"] = self.reason
        if self.call_id is not None:
            message["callId"] = self.call_id
        return message


class ProtocolError(SignalingError):
    """Raised for malformed or unknown envelopes"""
    default_reason = REASON_INVALID_MESSAGE


class NotRegisteredError(SignalingError):
    """Raised when an unregistered connection sends a call message"""
    default_reason = REASON_NOT_REGISTERED


class CallNotFoundError(SignalingError):
    """Raised when no CallRecord exists for a call id"""
    default_reason = REASON_CALL_NOT_FOUND


class NotACallParticipantError(SignalingError):
    """Raised when a connection acts on a call it is not part of"""
    default_reason = REASON_NOT_A_PARTICIPANT


class CallFailedError(SignalingError):
    """Base for failures reported as ``call-failed``"""
    reply_type = MSG_CALL_FAILED


class UserNotAvailableError(CallFailedError):
    """Raised when the call target has no live connection"""
    default_reason = REASON_USER_NOT_AVAILABLE


class CallIdInUseError(CallFailedError):
    """Raised when an offer reuses the id of an existing call"""
    default_reason = REASON_CALL_ID_IN_USE


class SelfCallError(CallFailedError):
    default_reason = REASON_CANNOT_CALL_SELF


class CallerDisconnectedError(CallFailedError):
    """Raised when the caller vanished before the answer arrived"""
    default_reason = REASON_CALLER_DISCONNECTED
