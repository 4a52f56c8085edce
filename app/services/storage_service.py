"""Storage service for Supabase storage operations."""

import asyncio
from typing import Any, Dict, List, Optional

import httpx

from app.core.config import settings
from app.core.exceptions import APIClientError, APITimeoutError
from app.utils.logging import get_logger

LOGGER = get_logger(__name__)


class StorageService:
    """Service for managing files in Supabase storage buckets."""

    def __init__(self, url: Optional[str] = None, service_role_key: Optional[str] = None):
        self.url = (url if url is not None else settings.supabase_url).rstrip("/")
        self.service_role_key = service_role_key if service_role_key is not None else settings.supabase_service_role_key
        self.base_api_url = f"{self.url}/storage/v1"
        self.headers = {
            "Authorization": f"Bearer {self.service_role_key}",
            "apikey": self.service_role_key,
        }

    async def _request(self, method: str, url: str, **kwargs) -> httpx.Response:
        try:
            async with httpx.AsyncClient() as client:
                return await client.request(method, url, timeout=settings.http_timeout, **kwargs)
        except httpx.TimeoutException as e:
            LOGGER.error(f"Storage request timed out: {method} {url}")
            raise APITimeoutError(f"Storage request timed out: {str(e)}", original_error=e) from e
        except httpx.HTTPError as e:
            LOGGER.error(f"Storage request failed: {method} {url}: {str(e)}", exc_info=True)
            raise APIClientError(f"Storage request error: {str(e)}", original_error=e) from e

    async def upload_file(
        self,
        file: Any,
        bucket: str,
        path: str,
        content_type: str = "application/octet-stream",
    ) -> Dict[str, Any]:
        """Upload a file to Supabase storage.

        Args:
            file: Raw bytes or an UploadFile-like object.
            bucket: Target bucket name.
            path: Target path within the bucket.
            content_type: MIME type used when the file does not carry one.

        Returns:
            Dict containing the upload result.

        Raises:
            APIClientError: If the upload fails.
        """
        if hasattr(file, "read"):
            content = file.read()
            if asyncio.iscoroutine(content):
                content = await content
        else:
            content = file

        final_content_type = getattr(file, "content_type", None) or content_type

        response = await self._request(
            "POST",
            f"{self.base_api_url}/object/{bucket}/{path}",
            headers={**self.headers, "Content-Type": final_content_type, "x-upsert": "false"},
            content=content,
        )
        if response.status_code != 200:
            LOGGER.error(
                f"Failed to upload file to Supabase: {response.text}",
                extra={"bucket": bucket, "path": path, "status_code": response.status_code},
            )
            raise APIClientError(f"Upload failed: {response.text}")

        return response.json()

    async def remove_files(self, bucket: str, paths: List[str]) -> None:
        """Delete objects from a bucket.

        Raises:
            APIClientError: If the deletion fails.
        """
        if not paths:
            return
        response = await self._request(
            "DELETE",
            f"{self.base_api_url}/object/{bucket}",
            headers=self.headers,
            json={"prefixes": paths},
        )
        if response.status_code != 200:
            LOGGER.error(
                f"Failed to remove files from Supabase: {response.text}",
                extra={"bucket": bucket, "count": len(paths), "status_code": response.status_code},
            )
            raise APIClientError(f"Remove failed: {response.text}")

    async def list_files(self, bucket: str, prefix: str, limit: int = 100) -> List[str]:
        """List object paths under a folder prefix."""
        response = await self._request(
            "POST",
            f"{self.base_api_url}/object/list/{bucket}",
            headers=self.headers,
            json={"prefix": prefix, "limit": limit, "offset": 0},
        )
        if response.status_code != 200:
            raise APIClientError(f"List failed: {response.text}")

        folder = prefix.rstrip("/")
        return [f"{folder}/{item['name']}" for item in response.json() if item.get("name")]

    async def get_signed_url(self, bucket: str, path: str, expires_in: Optional[int] = None) -> str:
        """Generate a time-limited URL for a private object.

        Args:
            bucket: Bucket name.
            path: Object path.
            expires_in: Expiration time in seconds.

        Returns:
            Absolute signed URL.

        Raises:
            APIClientError: If URL generation fails.
        """
        response = await self._request(
            "POST",
            f"{self.base_api_url}/object/sign/{bucket}/{path}",
            headers=self.headers,
            json={"expiresIn": expires_in or settings.supabase.signed_url_ttl},
        )
        if response.status_code != 200:
            LOGGER.error(
                f"Failed to generate signed URL: {response.text}",
                extra={"bucket": bucket, "path": path, "status_code": response.status_code},
            )
            raise APIClientError(f"Signed URL generation failed: {response.text}")

        signed_path = response.json().get("signedURL")
        if not signed_path:
            raise APIClientError("Supabase response did not contain signedURL")

        # Supabase answers with a path relative to /storage/v1
        if signed_path.startswith("/object"):
            return f"{self.base_api_url}{signed_path}"
        if signed_path.startswith("/"):
            return f"{self.url}{signed_path}"
        return signed_path

    def get_public_url(self, bucket: str, path: str) -> str:
        """URL of an object in a public bucket."""
        return f"{self.base_api_url}/object/public/{bucket}/{path}"

    async def create_bucket(self, name: str, public: bool = False) -> bool:
        """Create a bucket; returns False when it already exists."""
        response = await self._request(
            "POST",
            f"{self.base_api_url}/bucket",
            headers=self.headers,
            json={"id": name, "name": name, "public": public},
        )
        if response.status_code == 200:
            return True
        if response.status_code in (400, 409) and "already exists" in response.text.lower():
            return False
        raise APIClientError(f"Bucket creation failed: {response.text}")
