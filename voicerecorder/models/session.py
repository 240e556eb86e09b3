"""Session-related data models."""

import random
import string
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Dict, FrozenSet, List, Optional

from .audio import RecordedFile


class SessionState(Enum):
    """Lifecycle states of a recording session."""
    IDLE = "idle"
    AWAITING_PERMISSION = "awaiting_permission"
    RECORDING = "recording"
    STOPPING = "stopping"
    UPLOADING = "uploading"
    SUCCEEDED = "succeeded"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (SessionState.SUCCEEDED, SessionState.FAILED)


class FailureReason(Enum):
    """Why a session ended in FAILED (or why begin() was rejected)."""
    PERMISSION_DENIED = "PermissionDenied"
    STORAGE_UNAVAILABLE = "StorageUnavailable"
    DEVICE_BUSY = "DeviceBusy"
    ENGINE_ERROR = "EngineError"
    NETWORK_ERROR = "NetworkError"
    UPLOAD_REJECTED = "UploadRejected"
    ALREADY_ACTIVE = "AlreadyActive"
    CANCELLED = "Cancelled"


ALLOWED_TRANSITIONS: Dict[SessionState, FrozenSet[SessionState]] = {
    SessionState.IDLE: frozenset({SessionState.AWAITING_PERMISSION}),
    SessionState.AWAITING_PERMISSION: frozenset({SessionState.RECORDING, SessionState.FAILED}),
    SessionState.RECORDING: frozenset({SessionState.STOPPING}),
    SessionState.STOPPING: frozenset({SessionState.UPLOADING, SessionState.FAILED}),
    SessionState.UPLOADING: frozenset({SessionState.SUCCEEDED, SessionState.FAILED}),
    SessionState.SUCCEEDED: frozenset(),
    SessionState.FAILED: frozenset(),
}

# States from which cancel() is accepted
CANCELLABLE_STATES = frozenset({
    SessionState.AWAITING_PERMISSION,
    SessionState.RECORDING,
    SessionState.STOPPING,
})


class InvalidTransitionError(RuntimeError):
    """Raised when the state machine is asked for a transition it does not allow."""


def generate_session_id() -> str:
    """Create a session ID from the current timestamp and a random suffix."""
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    random_suffix = ''.join(random.choices(string.ascii_lowercase + string.digits, k=4))
    return f"{timestamp}_{random_suffix}"


@dataclass(frozen=True)
class SessionOutcome:
    """Terminal result of a session, delivered with the completed event."""
    state: SessionState
    reason: Optional[FailureReason] = None
    status: Optional[int] = None  # HTTP status when an upload exchange completed
    url: Optional[str] = None     # Server-provided reference on success
    detail: str = ""

    @property
    def succeeded(self) -> bool:
        return self.state is SessionState.SUCCEEDED

    @classmethod
    def success(cls, status: int, url: Optional[str] = None) -> "SessionOutcome":
        return cls(state=SessionState.SUCCEEDED, status=status, url=url)

    @classmethod
    def failure(cls, reason: FailureReason, detail: str = "",
                status: Optional[int] = None) -> "SessionOutcome":
        return cls(state=SessionState.FAILED, reason=reason, status=status, detail=detail)


@dataclass
class Session:
    """One end-to-end attempt to record and upload audio."""
    id: str
    state: SessionState = SessionState.IDLE
    file_path: Optional[Path] = None
    started_at: Optional[datetime] = None
    stopped_at: Optional[datetime] = None
    failure_reason: Optional[FailureReason] = None
    created_at: datetime = field(default_factory=datetime.now)
    history: List[SessionState] = field(default_factory=list)
    recorded_file: Optional[RecordedFile] = None
    outcome: Optional[SessionOutcome] = None

    def __post_init__(self):
        if not self.history:
            self.history.append(self.state)

    @classmethod
    def create(cls) -> "Session":
        return cls(id=generate_session_id())

    @property
    def is_active(self) -> bool:
        """A session is active from begin() until it reaches a terminal state."""
        return self.state is not SessionState.IDLE and not self.state.is_terminal

    @property
    def duration_seconds(self) -> Optional[float]:
        if self.started_at is None or self.stopped_at is None:
            return None
        return (self.stopped_at - self.started_at).total_seconds()

    def transition_to(self, new_state: SessionState) -> None:
        """Move to ``new_state``, enforcing the allowed transitions.

        Raises:
            InvalidTransitionError: If the transition is not part of the state machine
        """
        if new_state not in ALLOWED_TRANSITIONS[self.state]:
            raise InvalidTransitionError(
                f"Session {self.id}: cannot go from {self.state.name} to {new_state.name}")
        self.state = new_state
        self.history.append(new_state)

    def assign_file_path(self, path: Path) -> None:
        """Set the recording path. Allowed once, before RECORDING is entered."""
        if self.file_path is not None:
            raise InvalidTransitionError(f"Session {self.id} already has a file path: {self.file_path}")
        if self.state is not SessionState.AWAITING_PERMISSION:
            raise InvalidTransitionError(
                f"Session {self.id}: file path must be assigned before recording (state {self.state.name})")
        self.file_path = path

    def finish(self, outcome: SessionOutcome) -> None:
        """Enter the terminal state described by ``outcome``."""
        self.transition_to(outcome.state)
        if outcome.state is SessionState.FAILED:
            self.failure_reason = outcome.reason
        self.outcome = outcome
