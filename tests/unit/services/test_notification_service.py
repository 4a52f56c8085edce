import pytest
from datetime import datetime, timezone
from types import SimpleNamespace
from unittest.mock import AsyncMock
from uuid import uuid4

from app.core.exceptions import NotFoundError, ValidationError
from app.services.notification_service import NotificationService


@pytest.fixture
def notification_service(mock_session):
    service = NotificationService(mock_session)
    service.repository = AsyncMock()
    return service


@pytest.mark.asyncio
async def test_mark_read_requires_ids(notification_service):
    with pytest.raises(ValidationError, match="non-empty array"):
        await notification_service.mark_read(uuid4(), [])

    notification_service.repository.mark_read.assert_not_awaited()


@pytest.mark.asyncio
async def test_mark_read_reports_count(notification_service):
    user_id, ids = uuid4(), [uuid4(), uuid4()]
    notification_service.repository.mark_read.return_value = 2

    assert await notification_service.mark_read(user_id, ids) == {"success": True, "updated": 2}
    notification_service.repository.mark_read.assert_awaited_once_with(user_id, ids)


@pytest.mark.asyncio
async def test_unread_list_is_capped(notification_service):
    row = SimpleNamespace(
        id=uuid4(), user_id=uuid4(), title="Hello", message="World", type="info", link=None, read=False,
        created_at=datetime(2026, 2, 1, tzinfo=timezone.utc),
    )
    notification_service.repository.list_unread.return_value = [row]

    result = await notification_service.list_unread(row.user_id)

    assert result[0]["title"] == "Hello"
    notification_service.repository.list_unread.assert_awaited_once_with(row.user_id, limit=50)


@pytest.mark.asyncio
async def test_edit_unknown_notification(notification_service):
    notification_service.repository.update.return_value = None

    with pytest.raises(NotFoundError):
        await notification_service.edit(uuid4(), "Title", "Message")


class TestNotify:
    @pytest.mark.asyncio
    async def test_no_recipients(self, notification_service):
        assert await notification_service.notify([], "Title", "Message") == 0
        notification_service.repository.create_many.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_fan_out(self, notification_service):
        recipients = [uuid4(), uuid4()]
        notification_service.repository.create_many.return_value = 2

        assert await notification_service.notify(recipients, "Title", "Message", type="poll") == 2
        notification_service.repository.create_many.assert_awaited_once_with(
            recipients, "Title", "Message", type="poll", link=None
        )

    @pytest.mark.asyncio
    async def test_failure_is_logged_not_raised(self, notification_service):
        notification_service.repository.create_many.side_effect = RuntimeError("insert failed")

        assert await notification_service.notify([uuid4()], "Title", "Message") == 0
