"""Audio-related data models."""

from dataclasses import dataclass
from pathlib import Path


@dataclass
class AudioStats:
    """Audio recording statistics."""
    is_recording: bool
    duration_seconds: float
    sample_rate: int
    chunk_size: int
    total_chunks: int
    peak_level: float = 0.0


@dataclass(frozen=True)
class RecordedFile:
    """A finalized recording on disk, as returned by the engine's stop()."""
    path: Path
    size_bytes: int
    duration_ms: int
