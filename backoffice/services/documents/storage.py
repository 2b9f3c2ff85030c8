"""Object storage client for the BaaS storage REST API.

Endpoints used:
- POST {STORAGE_URL}/storage/v1/object/{bucket}/{key}  (x-upsert: true)
- GET  {STORAGE_URL}/storage/v1/object/{bucket}/{key}
- public URL {STORAGE_URL}/storage/v1/object/public/{bucket}/{key}
"""

import logging
from typing import Optional

import httpx

from backoffice.config import Settings
from backoffice.exceptions import StorageError

logger = logging.getLogger(__name__)


class SupabaseStorage:
    """Minimal async storage client (upload with upsert, public URL, download)."""

    def __init__(
        self,
        base_url: Optional[str],
        service_key: Optional[str],
        timeout: float = 60.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = (base_url or "").rstrip("/")
        self.service_key = service_key
        self.timeout = timeout
        self._transport = transport

    @classmethod
    def from_settings(cls, settings: Settings) -> "SupabaseStorage":
        return cls(settings.STORAGE_URL, settings.STORAGE_SERVICE_KEY, settings.STORAGE_TIMEOUT_SECONDS)

    def is_configured(self) -> bool:
        return bool(self.base_url and self.service_key)

    def _headers(self) -> dict:
        # SECURITY: service key is sent, never logged
        return {
            "Authorization": f"Bearer {self.service_key}",
            "apikey": self.service_key or "",
        }

    def _object_url(self, bucket: str, key: str) -> str:
        return f"{self.base_url}/storage/v1/object/{bucket}/{key}"

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self._transport)

    def _require_configured(self) -> None:
        if not self.is_configured():
            raise StorageError("Storage não configurado.")

    async def upload(
        self,
        bucket: str,
        key: str,
        content: bytes,
        content_type: str = "application/octet-stream",
        upsert: bool = True,
    ) -> str:
        """Upload ``content`` to ``bucket/key``; returns the stored key."""
        self._require_configured()
        headers = self._headers()
        headers["Content-Type"] = content_type
        headers["x-upsert"] = "true" if upsert else "false"

        try:
            async with self._client() as client:
                resp = await client.post(self._object_url(bucket, key), content=content, headers=headers)
                resp.raise_for_status()
        except httpx.HTTPStatusError as e:
            logger.error("Storage upload failed for %s/%s: HTTP %s", bucket, key, e.response.status_code)
            raise StorageError("Erro ao salvar arquivo final.") from e
        except httpx.HTTPError as e:
            logger.error("Storage upload failed for %s/%s: %s", bucket, key, type(e).__name__)
            raise StorageError("Erro ao salvar arquivo final.") from e

        logger.info("Uploaded %d bytes to %s/%s", len(content), bucket, key)
        return key

    def public_url(self, bucket: str, key: str) -> str:
        self._require_configured()
        return f"{self.base_url}/storage/v1/object/public/{bucket}/{key}"

    async def download(self, bucket: str, key: str) -> Optional[bytes]:
        """Fetch an object; returns None when it does not exist."""
        self._require_configured()
        try:
            async with self._client() as client:
                resp = await client.get(self._object_url(bucket, key), headers=self._headers())
                if resp.status_code in (400, 404):
                    logger.info("Storage object not found: %s/%s", bucket, key)
                    return None
                resp.raise_for_status()
        except httpx.HTTPError as e:
            logger.error("Storage download failed for %s/%s: %s", bucket, key, type(e).__name__)
            raise StorageError("Erro ao ler arquivo do storage.") from e

        return resp.content
