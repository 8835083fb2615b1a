"""
Blob sources — fetch document bytes that arrive as references.

When the browser uploads straight to object storage, the process request
carries URLs instead of file bodies. Each URL is fetched by the stage
runner at the moment its document is processed, so one broken URL only
costs that document.

Supported URL schemes:

  https://…   Pre-signed / SAS URL (Azure Blob, S3 presigned GET, any HTTP
              origin). Fetched with httpx; the signature lives in the query
              string, no extra auth.

  s3://bucket/key
              Fetched with aioboto3 under the process's IAM identity
              (ECS task role / IRSA in production, env keys locally).

All failures surface as DownloadError(file_name, detail).
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from urllib.parse import urlparse

import aioboto3
import httpx
from botocore.exceptions import BotoCoreError, ClientError

from docsynth.core.config import Settings
from docsynth.core.exceptions import DownloadError

logger = logging.getLogger(__name__)


class BlobSource(ABC):
    """download(url) → bytes | DownloadError"""

    @abstractmethod
    async def download(self, url: str, *, file_name: str) -> bytes:
        """Return the full object body."""


# ---------------------------------------------------------------------------
# HTTP(S): pre-signed URLs
# ---------------------------------------------------------------------------

class HttpBlobSource(BlobSource):

    def __init__(self, http_client: httpx.AsyncClient | None = None, timeout: float = 30.0) -> None:
        self._owns_client = http_client is None
        self._http        = http_client or httpx.AsyncClient(timeout=timeout, follow_redirects=True)

    async def download(self, url: str, *, file_name: str) -> bytes:
        try:
            response = await self._http.get(url)
        except httpx.HTTPError as exc:
            raise DownloadError(file_name, f"Download failed - {type(exc).__name__}: {exc}") from exc

        if response.is_error:
            raise DownloadError(file_name, f"Download failed - HTTP {response.status_code}")

        logger.info("BlobSource | http download ok file=%s bytes=%d", file_name, len(response.content))
        return response.content

    async def aclose(self) -> None:
        if self._owns_client:
            await self._http.aclose()


# ---------------------------------------------------------------------------
# S3: s3://bucket/key
# ---------------------------------------------------------------------------

def parse_s3_url(url: str) -> tuple[str, str]:
    """``s3://bucket/path/to/key`` → (bucket, key). Raises ValueError if malformed."""
    parsed = urlparse(url)
    bucket = parsed.netloc
    key    = parsed.path.lstrip("/")
    if parsed.scheme != "s3" or not bucket or not key:
        raise ValueError(f"Not an s3://bucket/key URL: {url}")
    return bucket, key


class S3BlobSource(BlobSource):

    def __init__(self, region: str = "us-east-1", session: aioboto3.Session | None = None) -> None:
        self._region  = region
        self._session = session or aioboto3.Session()

    def _client(self):
        """Return a scoped async S3 client context manager."""
        return self._session.client("s3", region_name=self._region)

    async def download(self, url: str, *, file_name: str) -> bytes:
        try:
            bucket, key = parse_s3_url(url)
        except ValueError as exc:
            raise DownloadError(file_name, str(exc)) from exc

        async with self._client() as s3:
            try:
                resp = await s3.get_object(Bucket=bucket, Key=key)
                body = await resp["Body"].read()
            except ClientError as exc:
                code = exc.response.get("Error", {}).get("Code", "Unknown")
                if code in ("NoSuchKey", "404"):
                    raise DownloadError(file_name, f"Object not found: s3://{bucket}/{key}") from exc
                raise DownloadError(file_name, f"S3 error {code}: {exc}") from exc
            except BotoCoreError as exc:
                raise DownloadError(file_name, f"S3 transport error: {exc}") from exc

        logger.info("BlobSource | s3 download ok file=%s bucket=%s key=%s bytes=%d", file_name, bucket, key, len(body))
        return body


# ---------------------------------------------------------------------------
# Scheme router
# ---------------------------------------------------------------------------

class RoutingBlobSource(BlobSource):
    """Dispatches on URL scheme; unknown schemes are a per-document DownloadError."""

    def __init__(self, http: HttpBlobSource, s3: S3BlobSource) -> None:
        self._http = http
        self._s3   = s3

    @classmethod
    def from_settings(cls, settings: Settings, http_client: httpx.AsyncClient | None = None) -> "RoutingBlobSource":
        return cls(
            http=HttpBlobSource(http_client=http_client, timeout=settings.http_timeout_seconds),
            s3=S3BlobSource(region=settings.aws_region),
        )

    async def download(self, url: str, *, file_name: str) -> bytes:
        scheme = urlparse(url).scheme.lower()
        if scheme in ("http", "https"):
            return await self._http.download(url, file_name=file_name)
        if scheme == "s3":
            return await self._s3.download(url, file_name=file_name)
        raise DownloadError(file_name, f"Unsupported blob URL scheme: {scheme or '<none>'}")

    async def aclose(self) -> None:
        await self._http.aclose()
