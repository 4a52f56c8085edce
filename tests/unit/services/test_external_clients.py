"""Email (Resend) and GIF (Tenor) HTTP clients."""

import httpx
import pytest
from unittest.mock import MagicMock, patch

from app.core.config import settings
from app.core.exceptions import APIClientError, ConfigurationError
from app.services.email_service import EmailService
from app.services.gif_service import GifService

TENOR_ITEM = {
    "id": "123",
    "title": "",
    "media_formats": {
        "gif": {"url": "https://media.tenor.com/a.gif", "dims": [220, 180]},
        "tinygif": {"url": "https://media.tenor.com/a-tiny.gif"},
    },
}


@pytest.mark.asyncio
async def test_email_requires_api_key():
    with pytest.raises(ConfigurationError):
        await EmailService(api_key="").send("a@example.com", "Hi", "<p>Hi</p>")


@pytest.mark.asyncio
async def test_verification_email_contains_code():
    with patch("httpx.AsyncClient.post") as mock_post:
        mock_post.return_value = MagicMock(status_code=200, json=lambda: {"id": "msg_1"})

        message_id = await EmailService(api_key="key").send_verification_code("a@example.com", "123456")

        assert message_id == "msg_1"
        payload = mock_post.call_args.kwargs["json"]
        assert payload["to"] == ["a@example.com"]
        assert "123456" in payload["subject"]
        assert "123456" in payload["text"]


@pytest.mark.asyncio
async def test_email_rejection_raises():
    with patch("httpx.AsyncClient.post") as mock_post:
        mock_post.return_value = MagicMock(status_code=422, text="invalid from")

        with pytest.raises(APIClientError):
            await EmailService(api_key="key").send("a@example.com", "Hi", "<p>Hi</p>")


@pytest.mark.asyncio
async def test_gif_search_maps_results():
    with patch("httpx.AsyncClient.get") as mock_get:
        mock_get.return_value = MagicMock(status_code=200, json=lambda: {"results": [TENOR_ITEM]})

        gifs = await GifService(api_key="key").search("cats")

        assert gifs == [
            {
                "id": "123",
                "title": "GIF",
                "url": "https://media.tenor.com/a.gif",
                "preview": "https://media.tenor.com/a-tiny.gif",
                "width": 220,
                "height": 180,
            }
        ]
        assert mock_get.call_args.kwargs["params"]["q"] == "cats"


@pytest.mark.asyncio
async def test_gif_trending_error():
    with patch("httpx.AsyncClient.get", side_effect=httpx.ConnectError("down")):
        with pytest.raises(APIClientError, match="Failed to fetch GIFs"):
            await GifService(api_key="key").trending()


@pytest.mark.asyncio
async def test_gif_requires_api_key():
    with pytest.raises(ConfigurationError):
        await GifService(api_key="").trending()


@pytest.mark.asyncio
async def test_contact_message_goes_to_operators_with_reply_to():
    with patch.object(settings.email, "contact_email", "team@e-community.app"), patch(
        "httpx.AsyncClient.post"
    ) as mock_post:
        mock_post.return_value = MagicMock(status_code=200, json=lambda: {"id": "msg_2"})

        await EmailService(api_key="key").send_contact_message(
            "Rita", "rita@example.com", "Parking question", "Where do <b>guests</b> park on weekends?"
        )

        payload = mock_post.call_args.kwargs["json"]
        assert payload["to"] == ["team@e-community.app"]
        assert payload["reply_to"] == "rita@example.com"
        assert payload["subject"] == "[E-Community] Parking question"
        assert "&lt;b&gt;guests&lt;/b&gt;" in payload["html"]


@pytest.mark.asyncio
async def test_contact_message_needs_operator_address():
    with patch.object(settings.email, "contact_email", ""), patch("httpx.AsyncClient.post") as mock_post:
        with pytest.raises(ConfigurationError, match="Contact email not configured"):
            await EmailService(api_key="key").send_contact_message(
                "Rita", "rita@example.com", "Parking question", "Where do guests park?"
            )

        mock_post.assert_not_called()
