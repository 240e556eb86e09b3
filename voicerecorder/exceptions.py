"""
VoiceRecorder exception hierarchy.

Every collaborator failure is expressed as a VoiceRecorderError subclass
carrying the FailureReason the session controller records when it moves a
session to FAILED.
"""

from typing import Optional

from .models.session import FailureReason


class VoiceRecorderError(Exception):
    """Base exception for all VoiceRecorder errors."""

    reason: FailureReason = FailureReason.ENGINE_ERROR
    default_detail = "An unexpected error occurred"

    def __init__(self, detail: Optional[str] = None) -> None:
        self.detail = detail or self.default_detail
        super().__init__(self.detail)


class PermissionDeniedError(VoiceRecorderError):
    """Microphone consent was refused."""

    reason = FailureReason.PERMISSION_DENIED
    default_detail = "Microphone access denied"


class StorageUnavailableError(VoiceRecorderError):
    """The recordings directory could not be created or written."""

    reason = FailureReason.STORAGE_UNAVAILABLE
    default_detail = "Storage is unavailable"


class DeviceBusyError(VoiceRecorderError):
    """The capture device could not be opened."""

    reason = FailureReason.DEVICE_BUSY
    default_detail = "Audio device is busy or unavailable"


class EngineError(VoiceRecorderError):
    """The recording engine failed to start, capture or finalize."""

    reason = FailureReason.ENGINE_ERROR
    default_detail = "Recording engine error"


class NetworkError(VoiceRecorderError):
    """The HTTP exchange never completed."""

    reason = FailureReason.NETWORK_ERROR
    default_detail = "Network error"


class UploadRejectedError(VoiceRecorderError):
    """The upload endpoint answered with a non-2xx status."""

    reason = FailureReason.UPLOAD_REJECTED

    def __init__(self, status: int, body: str = "") -> None:
        self.status = status
        self.body = body
        super().__init__(f"Upload rejected with HTTP status {status}")


class AlreadyActiveError(VoiceRecorderError):
    """begin() was called while a session is still in progress."""

    reason = FailureReason.ALREADY_ACTIVE

    def __init__(self, session_id: str) -> None:
        self.session_id = session_id
        super().__init__(f"Session {session_id} is still active")


class SessionCancelledError(VoiceRecorderError):
    """The session was aborted by the user."""

    reason = FailureReason.CANCELLED
    default_detail = "Session cancelled"
