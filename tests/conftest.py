"""Pytest configuration and fixtures for VoiceRecorder tests."""

import asyncio
import logging
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional
from unittest.mock import Mock, patch

import numpy as np
import pytest
from pubsub import pub

from voicerecorder.audio.base import RecordingEngine
from voicerecorder.exceptions import DeviceBusyError, EngineError
from voicerecorder.models.audio import RecordedFile
from voicerecorder.permissions.gate import PermissionGate, PermissionResult
from voicerecorder.services.event_publisher import SessionEventPublisher
from voicerecorder.services.session_controller import SessionController
from voicerecorder.services.uploader import Uploader, UploadResult
from voicerecorder.storage.locator import StorageLocator


# Configure logging for tests
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

TEST_ENDPOINT = "https://example.test/upload"


def pytest_addoption(parser):
    parser.addoption("--run-hardware", action="store_true", default=False,
                     help="Run tests that need a real microphone and ffmpeg")


def pytest_configure(config):
    config.addinivalue_line("markers", "unit: fast tests without I/O beyond temp dirs")
    config.addinivalue_line("markers", "integration: tests wiring several real components")
    config.addinivalue_line("markers", "hardware: tests that need a real microphone")


def pytest_collection_modifyitems(config, items):
    if config.getoption("--run-hardware"):
        return
    skip_hardware = pytest.mark.skip(reason="needs --run-hardware")
    for item in items:
        if "hardware" in item.keywords:
            item.add_marker(skip_hardware)


class FakePermissionGate(PermissionGate):
    """Permission gate with a scripted answer; can be held open to test cancellation."""

    def __init__(self, result: PermissionResult = PermissionResult.GRANTED,
                 error: Optional[Exception] = None, hold: bool = False):
        self.result = result
        self.error = error
        self.hold = hold
        self.calls = 0
        self._released: Optional[asyncio.Event] = None

    def release(self) -> None:
        if self._released is not None:
            self._released.set()

    async def request(self) -> PermissionResult:
        self.calls += 1
        if self.hold:
            self._released = asyncio.Event()
            await self._released.wait()
        if self.error:
            raise self.error
        return self.result


class FakeRecordingEngine(RecordingEngine):
    """Recording engine that writes a small file on start and records every call."""

    def __init__(self, start_error: Optional[Exception] = None,
                 stop_error: Optional[Exception] = None,
                 hold_stop: bool = False,
                 audio: bytes = b"\x00\x00\x00\x18ftypmp42 fake audio"):
        self.start_error = start_error
        self.stop_error = stop_error
        self.hold_stop = hold_stop
        self.audio = audio
        self.start_calls: List[Path] = []
        self.stop_calls = 0
        self.path: Optional[Path] = None
        self.on_progress = None
        self.on_error = None
        self._recording = False
        self._stop_released: Optional[asyncio.Event] = None

    @property
    def is_recording(self) -> bool:
        return self._recording

    async def start(self, path, on_progress=None, on_error=None) -> None:
        self.start_calls.append(Path(path))
        if self._recording:
            raise DeviceBusyError("Recording already in progress")
        if self.start_error:
            raise self.start_error
        self.path = Path(path)
        self.path.write_bytes(self.audio)
        self.on_progress = on_progress
        self.on_error = on_error
        self._recording = True

    async def stop(self) -> RecordedFile:
        self.stop_calls += 1
        if not self._recording:
            raise EngineError("No active recording")
        try:
            if self.hold_stop:
                self._stop_released = asyncio.Event()
                await self._stop_released.wait()
        finally:
            # Like the real engine, the device is released even if the caller stops waiting
            self._recording = False
        if self.stop_error:
            raise self.stop_error
        return RecordedFile(path=self.path, size_bytes=self.path.stat().st_size, duration_ms=10000)

    def release_stop(self) -> None:
        if self._stop_released is not None:
            self._stop_released.set()

    def emit_progress(self, position_ms: int, level: float = 0.5) -> None:
        self.on_progress(position_ms, level)

    def fail(self, error: Exception) -> None:
        """Simulate the device dying mid-recording."""
        self._recording = False
        self.on_error(error)


class FakeUploader(Uploader):
    """Uploader returning a scripted response without touching the network."""

    def __init__(self, status: int = 200, body: str = '{"url": "https://x/y.mp4"}',
                 error: Optional[Exception] = None):
        super().__init__()
        self.status = status
        self.body = body
        self.error = error
        self.calls = []

    async def send(self, file_path, endpoint) -> UploadResult:
        self.calls.append((Path(file_path), endpoint))
        if self.error:
            raise self.error
        return UploadResult(status=self.status, body=self.body)


class FailingStorageLocator(StorageLocator):
    """Storage locator whose directory can never be created."""

    def __init__(self, error: Exception):
        super().__init__(root="/nonexistent")
        self.error = error
        self.calls = 0

    async def ensure_directory(self, logical_name: str) -> Path:
        self.calls += 1
        raise self.error


class EventRecorder:
    """Collects everything published on the session topics."""

    def __init__(self, publisher: SessionEventPublisher):
        self.states = []
        self.progress = []
        self.completed = []
        pub.subscribe(self.on_state, publisher.state_topic)
        pub.subscribe(self.on_progress, publisher.progress_topic)
        pub.subscribe(self.on_completed, publisher.completed_topic)

    def on_state(self, event):
        self.states.append(event)

    def on_progress(self, event):
        self.progress.append(event)

    def on_completed(self, event):
        self.completed.append(event)

    @property
    def state_sequence(self):
        return [e.state for e in self.states]


@dataclass
class Harness:
    controller: SessionController
    gate: PermissionGate
    storage: StorageLocator
    engine: FakeRecordingEngine
    uploader: Uploader


@pytest.fixture
def temp_data_dir():
    """Create temporary directory for test data."""
    with tempfile.TemporaryDirectory() as temp_dir:
        yield temp_dir


@pytest.fixture
def publisher():
    """Session event publisher; all pub/sub listeners are dropped afterwards."""
    yield SessionEventPublisher()
    pub.unsubAll()


@pytest.fixture
def events(publisher):
    return EventRecorder(publisher)


@pytest.fixture
def make_harness(temp_data_dir, publisher):
    """Factory building a SessionController around fake collaborators."""
    def _make(gate=None, storage=None, engine=None, uploader=None,
              duration_seconds: float = 0.05, overwrite: bool = False) -> Harness:
        gate = gate or FakePermissionGate()
        storage = storage or StorageLocator(root=temp_data_dir, overwrite=overwrite)
        engine = engine or FakeRecordingEngine()
        uploader = uploader or FakeUploader()
        controller = SessionController(
            permission_gate=gate,
            storage_locator=storage,
            recording_engine=engine,
            uploader=uploader,
            publisher=publisher,
            endpoint=TEST_ENDPOINT,
            duration_seconds=duration_seconds,
        )
        return Harness(controller, gate, storage, engine, uploader)

    return _make


async def _wait_until(predicate, timeout: float = 2.0) -> None:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("Condition not reached in time")
        await asyncio.sleep(0.001)


@pytest.fixture
def wait_until():
    """Coroutine function polling a predicate inside the running loop."""
    return _wait_until


@pytest.fixture
def sample_audio_chunk():
    """Generate a sample audio chunk for testing."""
    # Generate 1024 samples of 16-bit audio (sine wave)
    sample_rate = 16000
    duration = 1024 / sample_rate
    freq = 440  # A4 note

    t = np.linspace(0, duration, 1024, False)
    wave_data = np.sin(2 * np.pi * freq * t)

    # Convert to 16-bit integers
    audio_data = (wave_data * 32767).astype(np.int16)
    return audio_data.tobytes()


@pytest.fixture
def mock_pyaudio(sample_audio_chunk):
    """Mock PyAudio for testing without actual audio hardware."""
    pytest.importorskip("pyaudio")
    import time

    def slow_read(*args, **kwargs):
        time.sleep(0.002)
        return sample_audio_chunk

    with patch('pyaudio.PyAudio') as mock_pyaudio_class:
        mock_pyaudio_instance = Mock()
        mock_stream = Mock()

        # Configure mock stream
        mock_stream.read.side_effect = slow_read
        mock_stream.stop_stream.return_value = None
        mock_stream.close.return_value = None

        # Configure mock PyAudio instance
        mock_pyaudio_instance.open.return_value = mock_stream
        mock_pyaudio_instance.terminate.return_value = None
        mock_pyaudio_instance.get_sample_size.return_value = 2

        # Configure mock PyAudio class
        mock_pyaudio_class.return_value = mock_pyaudio_instance

        yield {
            'class': mock_pyaudio_class,
            'instance': mock_pyaudio_instance,
            'stream': mock_stream
        }


@pytest.fixture
def mock_ffmpeg():
    """Mock the ffmpeg subprocess the encoder pipes audio into."""
    with patch('voicerecorder.audio.encoder.subprocess.Popen') as mock_popen:
        process = Mock()
        process.stdin = Mock()
        process.stderr = Mock()
        process.stderr.read.return_value = b""
        process.wait.return_value = 0
        mock_popen.return_value = process
        yield {
            'popen': mock_popen,
            'process': process,
        }
