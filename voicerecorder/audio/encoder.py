"""
Streaming AAC/MP4 encoding using ffmpeg.

Raw 16-bit PCM is piped into an ffmpeg process that writes the final
.mp4 file, so the recording is compressed while it is captured.
"""

import logging
import subprocess
from pathlib import Path
from typing import List, Optional

from ..exceptions import EngineError

logger = logging.getLogger(__name__)


class FfmpegEncoder:
    """Pipes PCM chunks into an ffmpeg subprocess producing AAC in an MP4 container."""

    def __init__(
        self,
        output_path: Path,
        sample_rate: int,
        channels: int = 1,
        bitrate: str = "64k",
        ffmpeg_path: str = "ffmpeg",
    ):
        self.output_path = Path(output_path)
        self.sample_rate = sample_rate
        self.channels = channels
        self.bitrate = bitrate
        self.ffmpeg_path = ffmpeg_path
        self.process: Optional[subprocess.Popen] = None

    def build_command(self) -> List[str]:
        return [
            self.ffmpeg_path,
            '-y',  # Overwrite output
            '-loglevel', 'error',
            '-f', 's16le',
            '-ar', str(self.sample_rate),
            '-ac', str(self.channels),
            '-i', 'pipe:0',
            '-c:a', 'aac',
            '-b:a', self.bitrate,
            '-f', 'mp4',
            str(self.output_path),
        ]

    def open(self) -> None:
        """Start the ffmpeg process.

        Raises:
            EngineError: If ffmpeg is not installed or cannot be started
        """
        cmd = self.build_command()
        try:
            self.process = subprocess.Popen(
                cmd,
                stdin=subprocess.PIPE,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.PIPE,
            )
        except FileNotFoundError as e:
            raise EngineError(f"ffmpeg not found: {self.ffmpeg_path}") from e
        except OSError as e:
            raise EngineError(f"Could not start ffmpeg: {e}") from e

        logger.debug(f"Encoder started: {' '.join(cmd)}")

    def write(self, pcm: bytes) -> None:
        if self.process is None:
            raise EngineError("Encoder is not open")
        try:
            self.process.stdin.write(pcm)
        except (BrokenPipeError, ValueError) as e:
            raise EngineError(f"Encoder stopped accepting audio: {e}") from e

    def close(self, timeout: float = 10.0) -> None:
        """Flush the input, wait for ffmpeg to finish the file.

        Raises:
            EngineError: If ffmpeg exits with an error or does not finish in time
        """
        if self.process is None:
            return

        process = self.process
        self.process = None
        try:
            process.stdin.close()
        except BrokenPipeError:
            pass  # ffmpeg already exited, its return code tells why

        try:
            returncode = process.wait(timeout=timeout)
        except subprocess.TimeoutExpired as e:
            process.kill()
            process.wait()
            raise EngineError("ffmpeg did not finish writing the recording") from e

        if returncode != 0:
            stderr = process.stderr.read().decode(errors='replace').strip() if process.stderr else ""
            raise EngineError(f"ffmpeg failed with exit code {returncode}: {stderr}")

        logger.debug(f"Encoder finished: {self.output_path}")
