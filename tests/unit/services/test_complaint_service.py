import pytest
from datetime import datetime, timezone
from types import SimpleNamespace
from unittest.mock import AsyncMock
from uuid import uuid4

from app.core.auth import CommunityContext
from app.core.exceptions import NotFoundError, PermissionDeniedError, ValidationError
from app.schemas.complaint import ComplaintCreate, ComplaintUpdate
from app.services.complaint_service import ComplaintService


def make_complaint(community_id, status="pending", user_id=None, **overrides):
    values = dict(
        id=uuid4(),
        community_id=community_id,
        user_id=user_id or uuid4(),
        title="Broken street light",
        description="The light on Oak Street has been out for a week",
        category="maintenance",
        status=status,
        priority=0,
        sentiment=-0.4,
        media_urls=None,
        resolution_message=None,
        created_at=datetime(2026, 2, 1, tzinfo=timezone.utc),
        updated_at=None,
    )
    values.update(overrides)
    return SimpleNamespace(**values)


@pytest.fixture
def complaint_service(mock_session):
    service = ComplaintService(mock_session)
    service.repository = AsyncMock()
    service.audit = AsyncMock()
    service.notifications = AsyncMock()
    return service


class TestCreate:
    @pytest.mark.asyncio
    async def test_title_and_description_required(self, complaint_service, resident_context):
        with pytest.raises(ValidationError, match="Title and description are required"):
            await complaint_service.create(resident_context, ComplaintCreate(title="  ", description="Leak"))

        complaint_service.repository.create.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_membership_required(self, complaint_service):
        with pytest.raises(PermissionDeniedError, match="User not in a community"):
            await complaint_service.create(None, ComplaintCreate(title="Leak", description="Water everywhere"))

    @pytest.mark.asyncio
    async def test_defaults_and_sentiment(self, complaint_service, resident_context):
        complaint_service.repository.create.return_value = make_complaint(resident_context.community_id)

        await complaint_service.create(
            resident_context, ComplaintCreate(title=" Broken light ", description="Terrible and dangerous")
        )

        kwargs = complaint_service.repository.create.call_args.kwargs
        assert kwargs["title"] == "Broken light"
        assert kwargs["category"] == "other"
        assert kwargs["status"] == "pending"
        assert kwargs["priority"] == 0
        assert kwargs["sentiment"] < 0
        assert kwargs["media_urls"] == []
        complaint_service.audit.record.assert_awaited_once()


@pytest.mark.asyncio
async def test_list_without_community_is_empty(complaint_service):
    assert await complaint_service.list_complaints(None) == []
    complaint_service.repository.list_for_community.assert_not_awaited()


@pytest.mark.asyncio
async def test_status_change_notifies_owner(complaint_service, admin_context):
    owner = uuid4()
    row = make_complaint(admin_context.community_id, user_id=owner)
    complaint_service.repository.get_by_id.return_value = row

    result = await complaint_service.update(admin_context, row.id, ComplaintUpdate(status="in_progress"))

    assert result["status"] == "in_progress"
    recipients, title = complaint_service.notifications.notify.await_args.args[:2]
    assert recipients == [owner]
    assert title == "Complaint Status Updated"


@pytest.mark.asyncio
async def test_other_community_complaint_is_not_found(complaint_service, admin_context):
    complaint_service.repository.get_by_id.return_value = make_complaint(uuid4())

    with pytest.raises(NotFoundError, match="Complaint not found"):
        await complaint_service.get(admin_context, uuid4())


class TestDelete:
    @pytest.mark.asyncio
    async def test_unresolved_complaint_cannot_be_deleted(self, complaint_service, admin_context):
        complaint_service.repository.get_by_id.return_value = make_complaint(admin_context.community_id)

        with pytest.raises(ValidationError, match="Only resolved complaints"):
            await complaint_service.delete(admin_context, uuid4())

        complaint_service.repository.delete.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_status_is_checked_before_role(self, complaint_service, resident_context):
        complaint_service.repository.get_by_id.return_value = make_complaint(resident_context.community_id)

        with pytest.raises(ValidationError, match="Only resolved complaints"):
            await complaint_service.delete(resident_context, uuid4())

    @pytest.mark.asyncio
    async def test_resident_cannot_delete(self, complaint_service, resident_context):
        complaint_service.repository.get_by_id.return_value = make_complaint(
            resident_context.community_id, status="resolved"
        )

        with pytest.raises(PermissionDeniedError, match="Admin access required"):
            await complaint_service.delete(resident_context, uuid4())

    @pytest.mark.asyncio
    async def test_membership_role_wins_over_account_role(self, complaint_service, current_user):
        context = CommunityContext(
            user=current_user, account_role="Admin", community_id=uuid4(), member_role="Resident"
        )
        complaint_service.repository.get_by_id.return_value = make_complaint(context.community_id, status="resolved")

        with pytest.raises(PermissionDeniedError):
            await complaint_service.delete(context, uuid4())

    @pytest.mark.asyncio
    async def test_admin_role_is_case_insensitive(self, complaint_service, current_user):
        context = CommunityContext(user=current_user, account_role="Resident", community_id=uuid4(), member_role="admin")
        row = make_complaint(context.community_id, status="resolved")
        complaint_service.repository.get_by_id.return_value = row

        result = await complaint_service.delete(context, row.id)

        assert result["success"] is True
        complaint_service.repository.delete.assert_awaited_once_with(row.id)
        complaint_service.audit.record.assert_awaited_once()
