"""Microphone recording engine built on PyAudio with streaming MP4 encoding."""

import asyncio
import pyaudio
import logging
from datetime import datetime
from pathlib import Path
from threading import Thread, Event
from typing import Optional, Union
import numpy as np

from .base import RecordingEngine, ProgressCallback, ErrorCallback
from .encoder import FfmpegEncoder
from ..exceptions import DeviceBusyError, EngineError, VoiceRecorderError
from ..models.audio import AudioStats, RecordedFile


logger = logging.getLogger(__name__)


class PyAudioRecordingEngine(RecordingEngine):
    """Captures the default microphone in a background thread and encodes it to MP4."""

    def __init__(
        self,
        sample_rate: int = 44100,
        chunk_size: int = 1024,
        channels: int = 1,
        format: int = pyaudio.paInt16,
        bitrate: str = "64k",
        progress_interval_ms: int = 500,
        ffmpeg_path: str = "ffmpeg",
        stop_timeout: float = 15.0,
    ):
        """Initialize the recording engine with specified parameters.

        Args:
            sample_rate: Audio sample rate in Hz
            chunk_size: Size of each audio chunk in samples
            channels: Number of audio channels (1 for mono)
            format: Audio format (16-bit signed int)
            bitrate: AAC bitrate passed to ffmpeg
            progress_interval_ms: Recorded audio between two progress callbacks
            ffmpeg_path: ffmpeg executable
            stop_timeout: Seconds to wait for the capture thread and encoder on stop
        """
        self.sample_rate = sample_rate
        self.chunk_size = chunk_size
        self.channels = channels
        self.format = format
        self.bitrate = bitrate
        self.progress_interval_ms = progress_interval_ms
        self.ffmpeg_path = ffmpeg_path
        self.stop_timeout = stop_timeout

        # Recording thread management
        self.recording_thread: Optional[Thread] = None
        self.stop_event = Event()
        self._is_recording = False

        # Statistics tracking
        self.start_time: Optional[datetime] = None
        self.total_chunks = 0
        self.peak_level = 0.0

        # PyAudio instance
        self.pyaudio_instance: Optional[pyaudio.PyAudio] = None

        # Per-recording state
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._started: Optional[asyncio.Future] = None
        self._output_path: Optional[Path] = None
        self._encoder: Optional[FfmpegEncoder] = None
        self._capture_error: Optional[VoiceRecorderError] = None
        self._on_progress: Optional[ProgressCallback] = None
        self._on_error: Optional[ErrorCallback] = None

    @property
    def is_recording(self) -> bool:
        return self._is_recording

    @property
    def position_ms(self) -> int:
        """Amount of audio captured so far."""
        return int(self.total_chunks * self.chunk_size * 1000 / self.sample_rate)

    async def start(
        self,
        path: Union[str, Path],
        on_progress: Optional[ProgressCallback] = None,
        on_error: Optional[ErrorCallback] = None,
    ) -> None:
        """Start recording to ``path``; resolves once the device is capturing."""
        if self._is_recording:
            raise DeviceBusyError("Recording already in progress")

        logger.info(f"Starting audio recording to {path}")
        self._loop = asyncio.get_running_loop()
        self._started = self._loop.create_future()
        self._output_path = Path(path)
        self._on_progress = on_progress
        self._on_error = on_error
        self._capture_error = None
        self.stop_event.clear()
        self.start_time = datetime.now()
        self.total_chunks = 0
        self.peak_level = 0.0

        # Start recording thread
        self.recording_thread = Thread(target=self._record_continuously, daemon=True)
        self.recording_thread.name = "AudioCaptureThread"
        self._is_recording = True
        self.recording_thread.start()

        try:
            await self._started
        except VoiceRecorderError:
            await self._loop.run_in_executor(None, self._join_thread)
            self._is_recording = False
            raise

    async def stop(self) -> RecordedFile:
        """Stop recording, wait for the encoder and return the finished file."""
        if not self._is_recording:
            raise EngineError("No active recording")

        logger.info("Stopping audio recording")
        self.stop_event.set()

        loop = asyncio.get_running_loop()
        await loop.run_in_executor(None, self._join_thread)
        self._is_recording = False

        if self._capture_error is not None:
            raise EngineError(f"Recording could not be finalized: {self._capture_error.detail}")

        if self._output_path is None or not self._output_path.exists():
            raise EngineError(f"Recording file was not written: {self._output_path}")

        recorded = RecordedFile(
            path=self._output_path,
            size_bytes=self._output_path.stat().st_size,
            duration_ms=self.position_ms,
        )
        logger.info(f"Recording stopped. Total chunks: {self.total_chunks}, "
                    f"file: {recorded.path} ({recorded.size_bytes} bytes)")
        return recorded

    def _join_thread(self) -> None:
        # Wait for recording thread to finish
        if self.recording_thread and self.recording_thread.is_alive():
            self.recording_thread.join(timeout=self.stop_timeout)
            if self.recording_thread.is_alive():
                logger.warning("Recording thread did not stop cleanly")
                if self._capture_error is None:
                    self._capture_error = EngineError("Recording thread did not stop cleanly")

    def __open_audio_stream(self) -> pyaudio.Stream:
        # Open audio stream
        self.pyaudio_instance = pyaudio.PyAudio()
        stream = self.pyaudio_instance.open(
            format=self.format,
            channels=self.channels,
            rate=self.sample_rate,
            input=True,
            frames_per_buffer=self.chunk_size,
            stream_callback=None
        )
        logger.info(f"Audio stream opened: {self.sample_rate}Hz, "
                    f"{self.chunk_size} samples/chunk")
        return stream

    def __read_audio_chunk(self, stream: pyaudio.Stream) -> bytes:
        audio_chunk = stream.read(self.chunk_size, exception_on_overflow=False)
        self.total_chunks += 1

        samples = np.frombuffer(audio_chunk, dtype=np.int16)
        if samples.size:
            self.peak_level = float(np.abs(samples.astype(np.int32)).max()) / 32768.0
        return audio_chunk

    def _notify(self, callback, *args) -> None:
        """Run ``callback`` on the event loop thread."""
        if self._loop is None or self._loop.is_closed():
            return
        try:
            self._loop.call_soon_threadsafe(callback, *args)
        except RuntimeError:
            logger.debug("Event loop closed before capture notification was delivered")

    def _resolve_start(self, error: Optional[VoiceRecorderError]) -> None:
        if self._started is None or self._started.done():
            return
        if error is None:
            self._started.set_result(None)
        else:
            self._started.set_exception(error)

    def _report_progress(self, position_ms: int, level: float) -> None:
        if self._on_progress is not None:
            self._on_progress(position_ms, level)

    def _report_error(self, error: VoiceRecorderError) -> None:
        if self._on_error is not None:
            self._on_error(error)

    def _record_continuously(self) -> None:
        """Internal method: continuous recording loop in background thread."""
        stream = None
        started = False
        try:
            try:
                stream = self.__open_audio_stream()
            except OSError as e:
                raise DeviceBusyError(f"Cannot open microphone: {e}") from e

            self._encoder = FfmpegEncoder(
                self._output_path,
                sample_rate=self.sample_rate,
                channels=self.channels,
                bitrate=self.bitrate,
                ffmpeg_path=self.ffmpeg_path,
            )
            self._encoder.open()

            started = True
            self._notify(self._resolve_start, None)

            next_tick_ms = self.progress_interval_ms
            while not self.stop_event.is_set():
                audio_chunk = self.__read_audio_chunk(stream)
                self._encoder.write(audio_chunk)
                if self.position_ms >= next_tick_ms:
                    self._notify(self._report_progress, self.position_ms, self.peak_level)
                    next_tick_ms += self.progress_interval_ms
        except Exception as e:
            if isinstance(e, VoiceRecorderError):
                error = e
            else:
                error = EngineError(f"Audio capture failed: {e}")
            logger.error(f"Recording error: {error.detail}")
            self._capture_error = error
            if started:
                self._notify(self._report_error, error)
            else:
                self._notify(self._resolve_start, error)
        finally:
            # Clean up audio resources
            if stream:
                stream.stop_stream()
                stream.close()
            if self.pyaudio_instance:
                self.pyaudio_instance.terminate()
                self.pyaudio_instance = None
            if self._encoder:
                try:
                    self._encoder.close()
                except EngineError as e:
                    logger.error(f"Encoder error: {e.detail}")
                    if self._capture_error is None:
                        self._capture_error = e
                self._encoder = None
            # Device is released; also covers a stop() whose caller stopped waiting
            self._is_recording = False

    def get_recording_stats(self) -> AudioStats:
        """Get current recording statistics."""
        duration = 0.0
        if self.start_time:
            duration = (datetime.now() - self.start_time).total_seconds()

        return AudioStats(
            is_recording=self._is_recording,
            duration_seconds=duration,
            sample_rate=self.sample_rate,
            chunk_size=self.chunk_size,
            total_chunks=self.total_chunks,
            peak_level=self.peak_level,
        )
