"""Local storage for recordings."""

from .locator import StorageLocator, RecordingInfo

__all__ = [
    "StorageLocator",
    "RecordingInfo",
]
