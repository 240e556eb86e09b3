"""Services layer for VoiceRecorder application logic."""

from .event_publisher import SessionEventPublisher
from .session_controller import SessionController
from .uploader import Uploader, UploadResult

__all__ = [
    "SessionEventPublisher",
    "SessionController",
    "Uploader",
    "UploadResult",
]
