import httpx
import pytest
from unittest.mock import MagicMock, patch

from app.core.exceptions import APIClientError, APITimeoutError
from app.services.storage_service import StorageService


@pytest.fixture
def storage_service():
    return StorageService(url="https://test.supabase.co", service_role_key="key")


@pytest.mark.asyncio
async def test_upload_bytes_success(storage_service):
    with patch("httpx.AsyncClient.request") as mock_request:
        mock_request.return_value = MagicMock(status_code=200, json=lambda: {"Key": "user_ids/u/front.png"})

        result = await storage_service.upload_file(b"img", "user_ids", "u/front.png", content_type="image/png")

        assert result == {"Key": "user_ids/u/front.png"}
        args, kwargs = mock_request.call_args
        assert args == ("POST", "https://test.supabase.co/storage/v1/object/user_ids/u/front.png")
        assert kwargs["headers"]["Content-Type"] == "image/png"
        assert kwargs["content"] == b"img"


@pytest.mark.asyncio
async def test_upload_file_failure(storage_service):
    with patch("httpx.AsyncClient.request") as mock_request:
        mock_request.return_value = MagicMock(status_code=400, text="Bad Request")

        with pytest.raises(APIClientError, match="Upload failed: Bad Request"):
            await storage_service.upload_file(b"img", "user_ids", "u/front.png")


@pytest.mark.asyncio
async def test_timeout_is_translated(storage_service):
    with patch("httpx.AsyncClient.request", side_effect=httpx.ReadTimeout("slow")):
        with pytest.raises(APITimeoutError):
            await storage_service.remove_files("user_ids", ["u/front.png"])


@pytest.mark.asyncio
async def test_remove_nothing_makes_no_request(storage_service):
    with patch("httpx.AsyncClient.request") as mock_request:
        await storage_service.remove_files("user_ids", [])

        mock_request.assert_not_called()


@pytest.mark.asyncio
async def test_list_files_prefixes_folder(storage_service):
    with patch("httpx.AsyncClient.request") as mock_request:
        mock_request.return_value = MagicMock(
            status_code=200, json=lambda: [{"name": "front-1.png"}, {"name": "back-1.png"}, {"name": None}]
        )

        paths = await storage_service.list_files("user_ids", "abc")

        assert paths == ["abc/front-1.png", "abc/back-1.png"]


@pytest.mark.asyncio
async def test_get_signed_url_success(storage_service):
    with patch("httpx.AsyncClient.request") as mock_request:
        mock_request.return_value = MagicMock(
            status_code=200,
            json=lambda: {"signedURL": "/object/sign/user_ids/u/front.png?token=123"},
        )

        url = await storage_service.get_signed_url("user_ids", "u/front.png")

        assert url == "https://test.supabase.co/storage/v1/object/sign/user_ids/u/front.png?token=123"


@pytest.mark.asyncio
async def test_get_signed_url_failure(storage_service):
    with patch("httpx.AsyncClient.request") as mock_request:
        mock_request.return_value = MagicMock(status_code=500, text="Server Error")

        with pytest.raises(APIClientError, match="Signed URL generation failed: Server Error"):
            await storage_service.get_signed_url("user_ids", "u/front.png")


def test_public_url(storage_service):
    assert (
        storage_service.get_public_url("announcement-images", "a.png")
        == "https://test.supabase.co/storage/v1/object/public/announcement-images/a.png"
    )


@pytest.mark.asyncio
async def test_create_bucket_already_exists(storage_service):
    with patch("httpx.AsyncClient.request") as mock_request:
        mock_request.return_value = MagicMock(status_code=409, text="The resource already exists")

        assert await storage_service.create_bucket("user_ids") is False
