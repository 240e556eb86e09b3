"""HTTP multipart uploader for finished recordings."""

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

import aiohttp
from pydantic import BaseModel, ConfigDict, ValidationError

from ..exceptions import NetworkError, StorageUnavailableError

logger = logging.getLogger(__name__)


class UploadResponse(BaseModel):
    """JSON body returned by the upload endpoint."""
    model_config = ConfigDict(extra="allow")

    url: Optional[str] = None


@dataclass(frozen=True)
class UploadResult:
    """A completed HTTP exchange with the upload endpoint."""
    status: int
    body: str = ""

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    @property
    def url(self) -> Optional[str]:
        """The ``url`` field of a JSON body, if there is one."""
        if not self.body:
            return None
        try:
            return UploadResponse.model_validate_json(self.body).url
        except ValidationError:
            logger.debug(f"Upload response is not a JSON object: {self.body[:100]!r}")
            return None


class Uploader:
    """Sends recordings to an HTTP endpoint as multipart/form-data."""

    def __init__(
        self,
        field_name: str = "audio",
        content_type: str = "audio/mp4",
        timeout_seconds: float = 30.0,
    ):
        """Initialize uploader.

        Args:
            field_name: Form field carrying the file
            content_type: Content type declared for the file part
            timeout_seconds: Total time allowed for one exchange
        """
        self.field_name = field_name
        self.content_type = content_type
        self.timeout = aiohttp.ClientTimeout(total=timeout_seconds)

        logger.info(f"Uploader initialized (field '{field_name}', timeout {timeout_seconds}s)")

    async def send(self, file_path: Union[str, Path], endpoint: str) -> UploadResult:
        """Upload ``file_path`` to ``endpoint``.

        Args:
            file_path: Local recording
            endpoint: URL to POST to

        Returns:
            UploadResult for any completed HTTP exchange, whatever its status

        Raises:
            StorageUnavailableError: If the local file cannot be read
            NetworkError: If the exchange never completes
        """
        path = Path(file_path)
        try:
            audio_file = open(path, 'rb')
        except OSError as e:
            raise StorageUnavailableError(f"Cannot read recording {path}: {e}") from e

        with audio_file:
            form = aiohttp.FormData()
            form.add_field(
                self.field_name,
                audio_file,
                filename=path.name,
                content_type=self.content_type,
            )

            logger.info(f"Uploading {path.name} to {endpoint}")
            try:
                async with aiohttp.ClientSession(timeout=self.timeout) as session:
                    async with session.post(endpoint, data=form) as response:
                        body = await response.text(errors="replace")
                        result = UploadResult(status=response.status, body=body)
            except asyncio.TimeoutError as e:
                raise NetworkError(f"Upload to {endpoint} timed out") from e
            except aiohttp.ClientError as e:
                raise NetworkError(f"Upload to {endpoint} failed: {e}") from e

        logger.info(f"Upload finished with HTTP {result.status}")
        return result
