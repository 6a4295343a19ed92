"""Shared error codes, user-facing messages and exceptions."""

from __future__ import annotations

from typing import Optional

PERMISSION_DENIED = "PERMISSION_DENIED"

DEVICE_UNAVAILABLE = "DEVICE_UNAVAILABLE"
ALREADY_ACTIVE = "ALREADY_ACTIVE"
NOT_ACTIVE = "NOT_ACTIVE"
CAPTURE_FAILED = "CAPTURE_FAILED"

TOO_SHORT = "TOO_SHORT"
NETWORK_ERROR = "NETWORK_ERROR"
NO_CONNECTIVITY = "NO_CONNECTIVITY"
TIMEOUT = "TIMEOUT"
UNAUTHORIZED = "UNAUTHORIZED"
SERVER_ERROR = "SERVER_ERROR"
EMPTY_RESPONSE = "EMPTY_RESPONSE"
MALFORMED_RESPONSE = "MALFORMED_RESPONSE"
SERVICE_ERROR = "SERVICE_ERROR"
NO_SPEECH = "NO_SPEECH"
AUDIO_UNREADABLE = "AUDIO_UNREADABLE"

INSERTION_FAILED = "INSERTION_FAILED"
CANCELLED = "CANCELLED"
UNEXPECTED_ERROR = "UNEXPECTED_ERROR"

NETWORK_CODES = frozenset({NETWORK_ERROR, NO_CONNECTIVITY, TIMEOUT})

ERROR_MESSAGES = {
    PERMISSION_DENIED: "Microphone permission required",
    DEVICE_UNAVAILABLE: "Recording failed",
    ALREADY_ACTIVE: "Already recording",
    NOT_ACTIVE: "Not recording",
    CAPTURE_FAILED: "Recording error",
    TOO_SHORT: "Recording too short",
    NETWORK_ERROR: "Network error",
    NO_CONNECTIVITY: "No internet connection",
    TIMEOUT: "Request timed out",
    UNAUTHORIZED: "Invalid API key",
    SERVER_ERROR: "API error",
    EMPTY_RESPONSE: "No response data",
    MALFORMED_RESPONSE: "Invalid response format",
    SERVICE_ERROR: "API Error",
    NO_SPEECH: "No speech detected",
    AUDIO_UNREADABLE: "Failed to read audio file",
    INSERTION_FAILED: "Could not insert text",
    CANCELLED: "Cancelled",
    UNEXPECTED_ERROR: "Unexpected error",
}


def describe(code: str, detail: str = "", status: Optional[int] = None) -> str:
    """Build the status line shown to the user for an error code."""
    base = ERROR_MESSAGES.get(code, "Unexpected error")
    if code == SERVER_ERROR and status is not None:
        return f"{base} ({status})"
    if code == SERVICE_ERROR and detail:
        return f"{base}: {detail}"
    if code in (DEVICE_UNAVAILABLE, INSERTION_FAILED) and detail:
        return f"{base}: {detail}"
    return base


class DictakeyError(Exception):
    def __init__(self, code: str, message: str = "") -> None:
        super().__init__(message or ERROR_MESSAGES.get(code, code))
        self.code = code
        self.message = message or ERROR_MESSAGES.get(code, code)


class CaptureError(DictakeyError):
    pass


class MicrophonePermissionError(CaptureError):
    def __init__(self, message: str = "") -> None:
        super().__init__(PERMISSION_DENIED, message)


class TranscriptionError(DictakeyError):
    def __init__(self, code: str, message: str = "", status: Optional[int] = None) -> None:
        super().__init__(code, message)
        self.status = status

    @property
    def is_network(self) -> bool:
        return self.code in NETWORK_CODES


class InsertionError(DictakeyError):
    def __init__(self, message: str = "") -> None:
        super().__init__(INSERTION_FAILED, message)
