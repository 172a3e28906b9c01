"""Immich asset upload client."""

from __future__ import annotations

import logging
import time
from datetime import datetime, timezone
from typing import TYPE_CHECKING, BinaryIO

import httpx

from ..config.constants import DEFAULT_HTTP_TIMEOUT_SECONDS
from .base import UploadError, human_readable_size

if TYPE_CHECKING:
    from pathlib import Path

LOG = logging.getLogger(__name__)

DEVICE_ID = "immich-optimizer"
SUCCESS_STATUS_CODES = frozenset({200, 201})


def format_timestamp(timestamp: float) -> str:
    """Render a POSIX timestamp as ``YYYY-MM-DDTHH:MM:SS.sssZ`` in UTC."""
    moment = datetime.fromtimestamp(timestamp, tz=timezone.utc)
    return moment.strftime("%Y-%m-%dT%H:%M:%S.") + f"{moment.microsecond // 1000:03d}Z"


def device_asset_id(filename: str, mtime: float) -> str:
    """Stable asset identifier derived from the filename and modification time."""
    return f"{filename}-{int(mtime)}"


class DeadlineReader:
    """File wrapper that stops the request body once the deadline has passed."""

    def __init__(self, file: BinaryIO, deadline: float) -> None:
        self.file = file
        self.deadline = deadline

    def read(self, size: int = -1) -> bytes:
        if time.monotonic() >= self.deadline:
            msg = "Request body not sent before the upload deadline"
            raise httpx.WriteTimeout(msg)
        return self.file.read(size)

    def fileno(self) -> int:
        return self.file.fileno()

    def seek(self, offset: int, whence: int = 0) -> int:
        return self.file.seek(offset, whence)

    def tell(self) -> int:
        return self.file.tell()


class ImmichClient:
    """
    Uploads single files to ``POST {base_url}/api/assets``; never retries.

    ``timeout_seconds`` bounds the whole request: connecting, sending the file
    and reading the response all have to finish before one deadline.
    """

    def __init__(
        self,
        base_url: str,
        api_key: str,
        *,
        timeout_seconds: float = DEFAULT_HTTP_TIMEOUT_SECONDS,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout_seconds = timeout_seconds
        self._client = httpx.Client(
            timeout=httpx.Timeout(timeout_seconds),
            headers={"x-api-key": api_key},
            transport=transport,
        )

    def close(self) -> None:
        """Close the underlying HTTP client."""
        self._client.close()

    def __enter__(self) -> ImmichClient:
        return self

    def __exit__(self, *_: object) -> None:
        self.close()

    @property
    def upload_url(self) -> str:
        return f"{self.base_url}/api/assets"

    def upload(self, file_path: Path, filename: str | None = None) -> None:
        """Upload ``file_path`` under ``filename`` (defaults to its base name)."""
        filename = filename or file_path.name
        try:
            stat = file_path.stat()
        except OSError as e:
            msg = f"Unable to get file info for {file_path}: {e}"
            raise UploadError(msg, file_path=file_path, cause=e) from e

        modified_at = format_timestamp(stat.st_mtime)
        data = {
            "deviceAssetId": device_asset_id(filename, stat.st_mtime),
            "deviceId": DEVICE_ID,
            "fileCreatedAt": modified_at,
            "fileModifiedAt": modified_at,
        }

        deadline = time.monotonic() + self.timeout_seconds
        try:
            with file_path.open("rb") as f:
                status_code, body = self._post(f, filename, data, deadline)
        except OSError as e:
            msg = f"Unable to open file {file_path}: {e}"
            raise UploadError(msg, file_path=file_path, cause=e) from e
        except httpx.HTTPError as e:
            msg = f"Upload request for {filename} failed: {e}"
            raise UploadError(msg, file_path=file_path, cause=e) from e

        if status_code is None:
            msg = f"Upload of {filename} did not complete within {self.timeout_seconds}s"
            raise UploadError(msg, file_path=file_path)

        if status_code not in SUCCESS_STATUS_CODES:
            msg = f"Upload failed with status {status_code}: {body}"
            raise UploadError(msg, status_code=status_code, body=body, file_path=file_path)

        LOG.info("Successfully uploaded %s (%s)", filename, human_readable_size(stat.st_size))

    def _post(
        self,
        file: BinaryIO,
        filename: str,
        data: dict[str, str],
        deadline: float,
    ) -> tuple[int | None, str]:
        """
        Send the request and read the response before ``deadline``.

        Returns ``(None, "")`` when the response is still arriving at the deadline.
        """
        with self._client.stream(
            "POST",
            self.upload_url,
            data=data,
            files={"assetData": (filename, DeadlineReader(file, deadline), "application/octet-stream")},
        ) as response:
            chunks: list[bytes] = []
            for chunk in response.iter_bytes():
                if time.monotonic() >= deadline:
                    return None, ""
                chunks.append(chunk)
            if time.monotonic() >= deadline:
                return None, ""
            body = b"".join(chunks).decode(response.encoding or "utf-8", errors="replace")
            return response.status_code, body
