import pytest
from datetime import datetime, timezone
from types import SimpleNamespace
from unittest.mock import AsyncMock, call
from uuid import uuid4

from app.core.exceptions import NotFoundError, ValidationError
from app.services.admin_verification_service import AdminVerificationService


def make_request(status="pending"):
    return SimpleNamespace(
        id=uuid4(),
        user_id=uuid4(),
        full_name="Rita Resident",
        age=34,
        gender="female",
        address="12 Oak Street, Maple Grove",
        id_number="ID-55501",
        email="rita@example.com",
        status=status,
        front_image_path="u/front.jpg",
        back_image_path="u/back.jpg",
        submitted_at=datetime(2026, 2, 1, 9, 30, tzinfo=timezone.utc),
        approved_at=None,
    )


@pytest.fixture
def admin_user():
    return SimpleNamespace(id=uuid4(), name="Ada Admin", email="admin@example.com")


@pytest.fixture
def verification_service(mock_session):
    service = AdminVerificationService(mock_session, storage=AsyncMock())
    service.repository = AsyncMock()
    service.users = AsyncMock()
    service.communities = AsyncMock()
    service.audit = AsyncMock()
    service.notifications = AsyncMock()
    return service


@pytest.mark.asyncio
async def test_unknown_action(verification_service, admin_user):
    with pytest.raises(ValidationError, match="Invalid action"):
        await verification_service.perform_action(admin_user, "promote", uuid4())

    verification_service.repository.get_by_id.assert_not_awaited()


@pytest.mark.asyncio
async def test_missing_request(verification_service, admin_user):
    verification_service.repository.get_by_id.return_value = None

    with pytest.raises(NotFoundError):
        await verification_service.perform_action(admin_user, "approve", uuid4())


class TestApprove:
    @pytest.mark.asyncio
    async def test_first_approval_creates_the_admin_community(self, verification_service, admin_user):
        request = make_request()
        community = SimpleNamespace(id=uuid4(), name="Ada Admin's Community", code="ADMIN002")
        verification_service.repository.get_by_id.return_value = request
        verification_service.communities.get_admin_community.return_value = None
        verification_service.communities.next_admin_code.return_value = "ADMIN002"
        verification_service.communities.create.return_value = community
        verification_service.communities.get_member.return_value = None

        result = await verification_service.perform_action(admin_user, "approve", request.id)

        assert result == {"success": True, "message": "Verification approved successfully"}
        verification_service.communities.create.assert_awaited_once_with(
            name="Ada Admin's Community", code="ADMIN002", created_by=admin_user.id
        )
        assert verification_service.communities.add_member.await_args_list == [
            call(community.id, admin_user.id, "Admin"),
            call(community.id, request.user_id, "Resident"),
        ]
        assert request.status == "approved"
        assert request.approved_at is not None
        verification_service.users.set_status.assert_awaited_once_with(request.user_id, "approved")
        verification_service.notifications.notify.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_existing_community_is_reused(self, verification_service, admin_user):
        request = make_request()
        community = SimpleNamespace(id=uuid4(), name="Maple Grove", code="MAPLE1")
        verification_service.repository.get_by_id.return_value = request
        verification_service.communities.get_admin_community.return_value = community
        verification_service.communities.get_member.return_value = SimpleNamespace(role="Resident")

        await verification_service.perform_action(admin_user, "approve", request.id)

        verification_service.communities.create.assert_not_awaited()
        verification_service.communities.add_member.assert_not_awaited()


@pytest.mark.asyncio
async def test_reject(verification_service, admin_user):
    request = make_request()
    verification_service.repository.get_by_id.return_value = request

    result = await verification_service.perform_action(admin_user, "reject", request.id)

    assert result["message"] == "Verification rejected"
    assert request.status == "rejected"
    verification_service.users.set_status.assert_awaited_once_with(request.user_id, "rejected")


@pytest.mark.asyncio
async def test_pending_request_is_not_history(verification_service, admin_user):
    verification_service.repository.get_by_id.return_value = make_request()

    with pytest.raises(ValidationError, match="Only processed requests"):
        await verification_service.perform_action(admin_user, "delete_history", uuid4())


@pytest.mark.asyncio
async def test_clear_history_is_audited(verification_service, admin_user):
    verification_service.repository.delete_by_statuses.return_value = 4

    result = await verification_service.perform_action(admin_user, "clear_history")

    assert result["deleted"] == 4
    verification_service.repository.delete_by_statuses.assert_awaited_once_with(("approved", "rejected"))
    verification_service.audit.record.assert_awaited_once()


@pytest.mark.asyncio
async def test_detail_signs_both_images(verification_service):
    request = make_request()
    verification_service.repository.get_by_id.return_value = request
    verification_service.storage.get_signed_url.side_effect = ["https://signed/front", "https://signed/back"]

    detail = await verification_service.get_request(request.id)

    assert detail["front_image_url"] == "https://signed/front"
    assert detail["back_image_url"] == "https://signed/back"
    assert detail["created_at"] == detail["submitted_at"]
    assert verification_service.storage.get_signed_url.await_args.kwargs["expires_in"] == 3600
