"""Session event publisher for the presentation layer."""

import logging
from pubsub import pub

from ..models.events import CompletedEvent, ProgressTickEvent, StateChangedEvent
from ..models.session import Session, SessionOutcome

logger = logging.getLogger(__name__)


class ListenerErrorLogger:
    """pypubsub listener exception handler that logs and lets delivery continue."""

    def __call__(self, listener_id: str, topic_obj) -> None:
        logger.error(f"Listener {listener_id} failed on topic {topic_obj.getName()}", exc_info=True)


class SessionEventPublisher:
    """Publishes session events using pubsub.pub.

    Every message is sent with a single ``event`` keyword argument.
    """

    def __init__(self, topic_prefix: str = "session"):
        """Initialize session event publisher.

        Args:
            topic_prefix: Parent pub/sub topic for session events
        """
        self.state_topic = f"{topic_prefix}.state_changed"
        self.progress_topic = f"{topic_prefix}.progress"
        self.completed_topic = f"{topic_prefix}.completed"
        pub.setListenerExcHandler(ListenerErrorLogger())
        logger.info(f"SessionEventPublisher initialized with topic prefix: {topic_prefix}")

    def state_changed(self, session: Session, detail: str = "") -> None:
        event = StateChangedEvent(session_id=session.id, state=session.state, detail=detail)
        logger.debug(f"Session {session.id} -> {session.state.name} {detail}")
        pub.sendMessage(self.state_topic, event=event)

    def progress_tick(self, session_id: str, position_ms: int, level: float = 0.0) -> None:
        pub.sendMessage(
            self.progress_topic,
            event=ProgressTickEvent(session_id=session_id, position_ms=position_ms, level=level),
        )

    def completed(self, session_id: str, outcome: SessionOutcome) -> None:
        logger.debug(f"Session {session_id} completed: {outcome}")
        pub.sendMessage(self.completed_topic, event=CompletedEvent(session_id=session_id, outcome=outcome))
