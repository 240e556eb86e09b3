"""Storage location for recordings on the local filesystem."""

import os
import logging
from pathlib import Path
from datetime import datetime
from typing import List, Optional
from dataclasses import dataclass

from ..exceptions import StorageUnavailableError


logger = logging.getLogger(__name__)

RECORDING_EXTENSION = ".mp4"
OVERWRITE_FILENAME = f"recorded_audio{RECORDING_EXTENSION}"


@dataclass
class RecordingInfo:
    """A recording file found in the storage directory."""
    path: Path
    size_bytes: int
    modified_at: datetime


class StorageLocator:
    """Resolves and prepares the directory recordings are written to."""

    def __init__(self, root: Optional[str] = None, overwrite: bool = False):
        """Initialize storage locator.

        Args:
            root: Base directory for recordings. If None, the platform's
                  Downloads directory is used, falling back to Documents
                  and then the home directory.
            overwrite: If True, every session writes the same file name
                       instead of a session-scoped one.
        """
        self.root = Path(root) if root else None
        self.overwrite = overwrite

    def resolve_root(self) -> Path:
        """Get the writable root that recording directories live under."""
        if self.root is not None:
            return self.root.absolute()

        home = Path.home()
        for candidate in (home / "Downloads", home / "Documents"):
            if candidate.is_dir():
                return candidate
        return home

    async def ensure_directory(self, logical_name: str) -> Path:
        """Create ``<root>/<logical_name>`` if missing and return its absolute path.

        Args:
            logical_name: Single path component naming the directory

        Returns:
            Absolute path to the directory

        Raises:
            StorageUnavailableError: If the directory cannot be created or written
        """
        if not logical_name or Path(logical_name).name != logical_name or logical_name in (".", ".."):
            raise StorageUnavailableError(f"Invalid storage directory name: {logical_name!r}")

        directory = self.resolve_root() / logical_name
        try:
            directory.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            logger.error(f"Cannot create recordings directory {directory}: {e}")
            raise StorageUnavailableError(f"Cannot create {directory}: {e}") from e

        if not os.access(directory, os.W_OK):
            logger.error(f"Recordings directory is not writable: {directory}")
            raise StorageUnavailableError(f"Directory is not writable: {directory}")

        logger.debug(f"Ensured directory exists: {directory}")
        return directory.absolute()

    def recording_path(self, directory: Path, session_id: str) -> Path:
        """Get the file path a session records into."""
        if self.overwrite:
            return directory / OVERWRITE_FILENAME
        return directory / f"recording_{session_id}{RECORDING_EXTENSION}"

    def list_recordings(self, directory: Path) -> List[RecordingInfo]:
        """List recordings in ``directory``, oldest first.

        Args:
            directory: Recordings directory

        Returns:
            RecordingInfo for every recording file found
        """
        if not directory.is_dir():
            return []

        recordings = []
        for path in directory.iterdir():
            if path.is_file() and path.suffix == RECORDING_EXTENSION:
                stat = path.stat()
                recordings.append(RecordingInfo(
                    path=path,
                    size_bytes=stat.st_size,
                    modified_at=datetime.fromtimestamp(stat.st_mtime),
                ))

        recordings.sort(key=lambda r: r.modified_at)
        logger.debug(f"Found {len(recordings)} recordings in {directory}")
        return recordings

    def cleanup_old_recordings(self, directory: Path, max_age_days: int = 30) -> int:
        """Delete recordings older than ``max_age_days``.

        Args:
            directory: Recordings directory
            max_age_days: Maximum age in days before cleanup

        Returns:
            Number of recordings deleted
        """
        cutoff_time = datetime.now().timestamp() - (max_age_days * 24 * 60 * 60)
        cleaned_count = 0

        for recording in self.list_recordings(directory):
            if recording.modified_at.timestamp() < cutoff_time:
                recording.path.unlink()
                cleaned_count += 1
                logger.info(f"Cleaned up old recording: {recording.path}")

        logger.info(f"Cleaned up {cleaned_count} old recordings")
        return cleaned_count
