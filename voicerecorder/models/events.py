"""Event models published to the presentation layer."""

from dataclasses import dataclass, field
from datetime import datetime

from .session import SessionOutcome, SessionState


@dataclass
class StateChangedEvent:
    """A session entered a new state."""
    session_id: str
    state: SessionState
    detail: str = ""
    timestamp: datetime = field(default_factory=datetime.now)


@dataclass
class ProgressTickEvent:
    """Periodic recording position while a session is RECORDING."""
    session_id: str
    position_ms: int
    level: float = 0.0  # Peak level of the latest chunk, 0.0 - 1.0
    timestamp: datetime = field(default_factory=datetime.now)


@dataclass
class CompletedEvent:
    """A session reached its terminal state."""
    session_id: str
    outcome: SessionOutcome
    timestamp: datetime = field(default_factory=datetime.now)
