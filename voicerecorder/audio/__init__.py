"""Audio capture and encoding module.

The PyAudio engine lives in ``voicerecorder.audio.capture`` and is imported
from there directly, so the contract can be used without PortAudio present.
"""

from .base import RecordingEngine, ProgressCallback, ErrorCallback
from .encoder import FfmpegEncoder

__all__ = [
    'RecordingEngine',
    'ProgressCallback',
    'ErrorCallback',
    'FfmpegEncoder',
]
