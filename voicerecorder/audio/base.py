"""Recording engine contract used by the session controller."""

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Callable, Optional, Union

from ..models.audio import RecordedFile

# on_progress(position_ms, peak_level)
ProgressCallback = Callable[[int, float], None]
# on_error(exception) for failures after start() resolved
ErrorCallback = Callable[[Exception], None]


class RecordingEngine(ABC):
    """Facade over a capture device that writes one compressed file per recording.

    Callbacks are always invoked on the event loop thread that called start().
    """

    @property
    @abstractmethod
    def is_recording(self) -> bool:
        """True between a successful start() and stop() or a capture error."""

    @abstractmethod
    async def start(
        self,
        path: Union[str, Path],
        on_progress: Optional[ProgressCallback] = None,
        on_error: Optional[ErrorCallback] = None,
    ) -> None:
        """Begin writing compressed audio to ``path``.

        Raises:
            DeviceBusyError: If the capture device cannot be opened
            EngineError: If capture cannot start for any other reason
        """

    @abstractmethod
    async def stop(self) -> RecordedFile:
        """Finalize the file and release the device.

        Raises:
            EngineError: If no recording is active or the file could not be finalized
        """
