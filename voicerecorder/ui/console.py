"""Console presentation of recording sessions."""

import logging
from typing import Optional, Tuple

from pubsub import pub
from rich.console import Console
from rich.panel import Panel

from ..models.events import CompletedEvent, ProgressTickEvent, StateChangedEvent
from ..models.session import FailureReason, SessionOutcome, SessionState
from ..services.event_publisher import SessionEventPublisher

logger = logging.getLogger(__name__)

STATE_LABELS = {
    SessionState.AWAITING_PERMISSION: ("🎙️  Requesting microphone access...", "blue"),
    SessionState.RECORDING: ("🔴 Recording in progress...", "bold red"),
    SessionState.STOPPING: ("⏹️  Stopping recording...", "yellow"),
    SessionState.UPLOADING: ("☁️  Uploading recording...", "blue"),
}

FAILURE_MESSAGES = {
    FailureReason.PERMISSION_DENIED: "Microphone access denied.",
    FailureReason.STORAGE_UNAVAILABLE: "Could not save the recording: storage is unavailable.",
    FailureReason.DEVICE_BUSY: "Failed to start recording: the microphone is busy or unavailable.",
    FailureReason.ENGINE_ERROR: "Recording failed.",
    FailureReason.NETWORK_ERROR: "Failed to upload recording: the server could not be reached.",
    FailureReason.UPLOAD_REJECTED: "Failed to upload recording.",
    FailureReason.ALREADY_ACTIVE: "A recording is already in progress.",
    FailureReason.CANCELLED: "Recording cancelled. The file was kept on disk.",
}


def describe_outcome(outcome: SessionOutcome) -> Tuple[str, str]:
    """Get the (title, message) notification for a terminal outcome."""
    if outcome.succeeded:
        message = f"URL: {outcome.url}" if outcome.url else "The server did not return a URL."
        return "Recording uploaded successfully.", message

    message = FAILURE_MESSAGES.get(outcome.reason, "Recording failed.")
    if outcome.reason is FailureReason.UPLOAD_REJECTED and outcome.status is not None:
        message = f"{message} (HTTP {outcome.status})"
    return "Recording failed", message


def render_notification(console: Console, outcome: SessionOutcome) -> None:
    title, message = describe_outcome(outcome)
    style = "green" if outcome.succeeded else "red"
    console.print(Panel(message, title=title, border_style=style))


class ConsoleRenderer:
    """Renders session events published on the pub/sub topics."""

    def __init__(self, publisher: SessionEventPublisher, console: Optional[Console] = None):
        """Initialize console renderer and subscribe to session topics.

        Args:
            publisher: Publisher whose topics to follow
            console: Rich console to render on (default: a new stdout console)
        """
        self.console = console or Console()
        self.publisher = publisher
        self.notifications = 0

        pub.subscribe(self._on_state_changed, publisher.state_topic)
        pub.subscribe(self._on_progress, publisher.progress_topic)
        pub.subscribe(self._on_completed, publisher.completed_topic)

    def close(self) -> None:
        pub.unsubscribe(self._on_state_changed, self.publisher.state_topic)
        pub.unsubscribe(self._on_progress, self.publisher.progress_topic)
        pub.unsubscribe(self._on_completed, self.publisher.completed_topic)

    def _on_state_changed(self, event: StateChangedEvent) -> None:
        label = STATE_LABELS.get(event.state)
        if label:
            text, style = label
            self.console.print(text, style=style)

    def _on_progress(self, event: ProgressTickEvent) -> None:
        bars = int(event.level * 20)
        meter = "█" * bars + "░" * (20 - bars)
        self.console.print(f"  {event.position_ms / 1000:5.1f}s  {meter}", style="dim")

    def _on_completed(self, event: CompletedEvent) -> None:
        self.notify(event.outcome)

    def notify(self, outcome: SessionOutcome) -> None:
        """Show the one notification for ``outcome``."""
        render_notification(self.console, outcome)
        self.notifications += 1
