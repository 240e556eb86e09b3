"""Data models for the VoiceRecorder application."""

from .audio import AudioStats, RecordedFile
from .session import (
    FailureReason,
    InvalidTransitionError,
    Session,
    SessionOutcome,
    SessionState,
)
from .events import CompletedEvent, ProgressTickEvent, StateChangedEvent

__all__ = [
    "AudioStats",
    "RecordedFile",
    "FailureReason",
    "InvalidTransitionError",
    "Session",
    "SessionOutcome",
    "SessionState",
    # Presentation events
    "StateChangedEvent",
    "ProgressTickEvent",
    "CompletedEvent",
]
