"""Recording session lifecycle controller.

Drives one session at a time through

    IDLE -> AWAITING_PERMISSION -> RECORDING -> STOPPING -> UPLOADING -> SUCCEEDED
                         \\              \\            \\            \\
                          +--------------+------------+------------+--> FAILED

Every collaborator call is made from the session task. A failure raised by a
collaborator is converted at its call site into a VoiceRecorderError and ends
the session as FAILED; nothing escapes the task. RECORDING always leaves
through STOPPING, so a failure there is recorded as RECORDING -> STOPPING ->
FAILED.
"""

import asyncio
import functools
import logging
from contextlib import contextmanager
from datetime import datetime
from typing import Iterator, Optional, Type

from ..audio.base import RecordingEngine
from ..exceptions import (
    AlreadyActiveError,
    EngineError,
    NetworkError,
    PermissionDeniedError,
    SessionCancelledError,
    StorageUnavailableError,
    UploadRejectedError,
    VoiceRecorderError,
)
from ..models.audio import RecordedFile
from ..models.session import CANCELLABLE_STATES, Session, SessionOutcome, SessionState
from ..permissions.gate import PermissionGate, PermissionResult
from ..storage.locator import StorageLocator
from .event_publisher import SessionEventPublisher
from .uploader import Uploader, UploadResult

logger = logging.getLogger(__name__)


@contextmanager
def _call_site(error_class: Type[VoiceRecorderError], action: str) -> Iterator[None]:
    """Convert anything a collaborator raises into ``error_class``."""
    try:
        yield
    except VoiceRecorderError:
        raise
    except Exception as e:
        logger.error(f"{action} failed: {e}")
        raise error_class(f"{action} failed: {e}") from e


class SessionController:
    """Owns the recording session state machine."""

    def __init__(
        self,
        permission_gate: PermissionGate,
        storage_locator: StorageLocator,
        recording_engine: RecordingEngine,
        uploader: Uploader,
        publisher: SessionEventPublisher,
        endpoint: str,
        duration_seconds: float = 10.0,
        directory_name: str = "VoiceRecorder",
    ):
        """Initialize session controller.

        Args:
            permission_gate: Grants or denies microphone access
            storage_locator: Prepares the recordings directory
            recording_engine: Capture device facade
            uploader: Sends the finished recording
            publisher: Receives every state change, progress tick and outcome
            endpoint: Upload URL
            duration_seconds: Fixed recording length, counted from engine start
            directory_name: Logical name of the recordings directory
        """
        self.permission_gate = permission_gate
        self.storage_locator = storage_locator
        self.recording_engine = recording_engine
        self.uploader = uploader
        self.publisher = publisher
        self.endpoint = endpoint
        self.duration_seconds = duration_seconds
        self.directory_name = directory_name

        self._session: Optional[Session] = None
        self._task: Optional[asyncio.Task] = None
        self._timer: Optional[asyncio.Task] = None
        self._capture_done: Optional[asyncio.Future] = None
        self._cancelling = False
        self._running = False

        logger.info(f"SessionController ready: {duration_seconds}s recordings, endpoint {endpoint}")

    @property
    def current_session(self) -> Optional[Session]:
        return self._session

    @property
    def is_active(self) -> bool:
        return self._session is not None and self._session.is_active

    def begin(self) -> Session:
        """Start a new session and return it without waiting for the outcome.

        Must be called from a running event loop.

        Raises:
            AlreadyActiveError: If the current session has not reached a terminal state
        """
        if self.is_active:
            logger.warning(f"begin() rejected, session {self._session.id} is {self._session.state.name}")
            raise AlreadyActiveError(self._session.id)

        loop = asyncio.get_running_loop()
        session = Session.create()
        self._session = session
        self._cancelling = False
        self._running = False
        logger.info(f"Beginning session {session.id}")

        self._transition(session, SessionState.AWAITING_PERMISSION, "Requesting microphone access")
        self._task = loop.create_task(self._run(session), name=f"session-{session.id}")
        return session

    def cancel(self) -> bool:
        """Abort the current session.

        Only accepted while awaiting permission, recording or stopping.

        Returns:
            True if the session will end as FAILED(Cancelled), False if there
            was nothing to cancel
        """
        session = self._session
        if session is None or session.state not in CANCELLABLE_STATES:
            return False
        if self._cancelling:
            return True

        logger.info(f"Cancelling session {session.id} in state {session.state.name}")
        self._cancelling = True
        if self._running:
            self._task.cancel()
        else:
            # The task has not reached its first step yet, there is nothing to interrupt
            self._fail(session, SessionCancelledError())
        return True

    async def wait(self) -> SessionOutcome:
        """Wait for the current session's terminal outcome.

        Cancelling the waiter does not cancel the session.
        """
        if self._task is None:
            raise RuntimeError("No session has been started")
        await asyncio.shield(self._task)
        return self._session.outcome

    async def _run(self, session: Session) -> None:
        if session.state.is_terminal:
            return
        self._running = True
        try:
            await self._acquire_permission(session)
            await self._prepare_storage(session)
            self._transition(session, SessionState.RECORDING, "Recording in progress...")
            await self._record(session)
            recorded = await self._stop_recording(session)
            self._transition(session, SessionState.UPLOADING, f"Uploading {recorded.path.name}")
            result = await self._upload(recorded)
        except asyncio.CancelledError:
            await self._abort(session)
        except VoiceRecorderError as e:
            self._fail(session, e)
        except Exception as e:
            logger.exception(f"Session {session.id}: unexpected error in {session.state.name}")
            if not session.state.is_terminal:
                self._fail(session, EngineError(f"Unexpected error: {e}"))
        else:
            self._finish(session, SessionOutcome.success(result.status, result.url))

    async def _acquire_permission(self, session: Session) -> None:
        with _call_site(PermissionDeniedError, "Permission request"):
            result = await self.permission_gate.request()
        if result is not PermissionResult.GRANTED:
            raise PermissionDeniedError()
        logger.info(f"Session {session.id}: microphone permission granted")

    async def _prepare_storage(self, session: Session) -> None:
        with _call_site(StorageUnavailableError, "Preparing storage"):
            directory = await self.storage_locator.ensure_directory(self.directory_name)
            path = self.storage_locator.recording_path(directory, session.id)
        session.assign_file_path(path)
        logger.info(f"Session {session.id}: recording to {session.file_path}")

    async def _record(self, session: Session) -> None:
        """Start the engine and wait for the duration timer or a capture error."""
        loop = asyncio.get_running_loop()
        capture_done = loop.create_future()
        self._capture_done = capture_done

        with _call_site(EngineError, "Starting recording"):
            await self.recording_engine.start(
                session.file_path,
                on_progress=functools.partial(self._on_progress, session),
                on_error=functools.partial(self._on_engine_error, session),
            )
        session.started_at = datetime.now()

        self._timer = loop.create_task(self._run_timer(capture_done))
        try:
            await capture_done
        finally:
            self._cancel_timer()

    async def _run_timer(self, capture_done: asyncio.Future) -> None:
        await asyncio.sleep(self.duration_seconds)
        if not capture_done.done():
            logger.info(f"Recording duration of {self.duration_seconds}s elapsed")
            capture_done.set_result(None)

    def _cancel_timer(self) -> None:
        if self._timer is not None and not self._timer.done():
            self._timer.cancel()
        self._timer = None

    def _on_progress(self, session: Session, position_ms: int, level: float = 0.0) -> None:
        if session.state is SessionState.RECORDING:
            self.publisher.progress_tick(session.id, position_ms, level)

    def _on_engine_error(self, session: Session, error: Exception) -> None:
        if session is not self._session or session.state is not SessionState.RECORDING:
            logger.debug(f"Ignoring engine error outside of recording: {error}")
            return
        if self._capture_done is None or self._capture_done.done():
            return
        if not isinstance(error, VoiceRecorderError):
            error = EngineError(f"Capture failed: {error}")
        logger.error(f"Session {session.id}: capture error: {error}")
        self._capture_done.set_exception(error)

    async def _stop_recording(self, session: Session) -> RecordedFile:
        self._transition(session, SessionState.STOPPING, "Finalizing recording")
        session.stopped_at = datetime.now()
        with _call_site(EngineError, "Stopping recording"):
            recorded = await self.recording_engine.stop()
        session.recorded_file = recorded
        logger.info(f"Session {session.id}: saved {recorded.path} ({recorded.size_bytes} bytes)")
        return recorded

    async def _upload(self, recorded: RecordedFile) -> UploadResult:
        with _call_site(NetworkError, "Uploading recording"):
            result = await self.uploader.send(recorded.path, self.endpoint)
        if not result.ok:
            raise UploadRejectedError(result.status, result.body)
        return result

    async def _abort(self, session: Session) -> None:
        """Finish a cancelled session, releasing the device if it was recording."""
        if session.state is SessionState.RECORDING:
            self._transition(session, SessionState.STOPPING, "Cancelling recording")
            session.stopped_at = datetime.now()
            try:
                await self.recording_engine.stop()
            except Exception as e:
                # The recording is being discarded, only the device release matters
                logger.warning(f"Stopping engine after cancel failed: {e}")
        self._fail(session, SessionCancelledError())

    def _fail(self, session: Session, error: VoiceRecorderError) -> None:
        if session.state is SessionState.RECORDING:
            self._transition(session, SessionState.STOPPING, "Cleaning up after recording error")
        logger.error(f"Session {session.id} failed in {session.state.name}: "
                     f"{error.reason.value} - {error.detail}")
        self._finish(session, SessionOutcome.failure(
            error.reason,
            detail=error.detail,
            status=getattr(error, "status", None),
        ))

    def _finish(self, session: Session, outcome: SessionOutcome) -> None:
        session.finish(outcome)
        logger.info(f"Session {session.id} finished: {session.state.name}")
        self.publisher.state_changed(session, outcome.detail)
        self.publisher.completed(session.id, outcome)

    def _transition(self, session: Session, state: SessionState, detail: str = "") -> None:
        session.transition_to(state)
        logger.info(f"Session {session.id}: {state.name} {detail}".rstrip())
        self.publisher.state_changed(session, detail)
