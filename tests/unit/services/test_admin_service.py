import pytest
from datetime import datetime, timezone
from types import SimpleNamespace
from unittest.mock import AsyncMock
from uuid import uuid4

from app.core.exceptions import ConflictError, NotFoundError, ValidationError
from app.schemas.admin import CommunitySettingsUpdate
from app.services.admin_service import AdminService, complaint_priority


@pytest.mark.parametrize(
    "sentiment,label",
    [(-0.9, "high"), (-0.51, "high"), (-0.5, "medium"), (-0.1, "medium"), (0.0, "low"), (0.7, "low"), (None, "low")],
)
def test_complaint_priority(sentiment, label):
    assert complaint_priority(sentiment) == label


def make_community(community_id, code="MAPLE1"):
    return SimpleNamespace(
        id=community_id,
        name="Maple Grove",
        code=code,
        description=None,
        logo_url=None,
        created_at=datetime(2025, 12, 1, tzinfo=timezone.utc),
    )


@pytest.fixture
def admin_service(mock_session):
    service = AdminService(mock_session)
    service.communities = AsyncMock()
    service.audit = AsyncMock()
    service.polls = AsyncMock()
    service.complaints = AsyncMock()
    service.feedback = AsyncMock()
    service.announcements = AsyncMock()
    return service


@pytest.mark.asyncio
async def test_dashboard_activity_is_newest_first_with_priority(admin_service, admin_context):
    older = SimpleNamespace(
        id=uuid4(), title="Noise", status="pending", sentiment=-0.2,
        created_at=datetime(2026, 2, 1, tzinfo=timezone.utc),
    )
    newer = SimpleNamespace(
        id=uuid4(), title="Flooded basement", status="pending", sentiment=-0.8,
        created_at=datetime(2026, 2, 3, tzinfo=timezone.utc),
    )
    admin_service.complaints.list_for_community.return_value = [older, newer]
    admin_service.polls.list_for_community.return_value = []
    admin_service.feedback.list_for_community.return_value = []
    admin_service.announcements.paginate.return_value = ([], 0)
    admin_service.communities.count_members.return_value = 12
    admin_service.polls.count.return_value = 3
    admin_service.complaints.count.return_value = 2
    admin_service.feedback.count.return_value = 5
    admin_service.feedback.average_rating.return_value = 4.26

    result = await admin_service.dashboard(admin_context)

    assert [item["title"] for item in result["recentActivity"]] == ["Flooded basement", "Noise"]
    assert [item["priority"] for item in result["recentActivity"]] == ["high", "medium"]
    assert result["stats"]["averageRating"] == 4.3
    assert result["stats"]["totalMembers"] == 12


@pytest.mark.asyncio
async def test_regenerate_rotates_code(admin_service, admin_context):
    community = make_community(admin_context.community_id)
    admin_service.communities.get_by_id.return_value = community
    admin_service.communities.next_admin_code.return_value = "ADMIN004"
    admin_service.communities.list_members.return_value = []

    result = await admin_service.list_members(admin_context, regenerate=True)

    assert result["community"]["code"] == "ADMIN004"
    assert admin_service.audit.record.await_args.args[4] == {"old_code": "MAPLE1", "new_code": "ADMIN004"}


@pytest.mark.asyncio
async def test_member_stats(admin_service, admin_context):
    admin_service.communities.get_by_id.return_value = make_community(admin_context.community_id)

    def row(role):
        member = SimpleNamespace(id=uuid4(), role=role, joined_at=None)
        user = SimpleNamespace(id=uuid4(), name="Member", email="m@example.com", image=None, status="approved")
        return member, user

    admin_service.communities.list_members.return_value = [row("Admin"), row("Resident"), row("Resident")]

    result = await admin_service.list_members(admin_context)

    assert result["stats"] == {"total": 3, "admins": 1, "residents": 2}


@pytest.mark.asyncio
async def test_cannot_change_own_role(admin_service, admin_context):
    with pytest.raises(ValidationError, match="own role"):
        await admin_service.update_member_role(admin_context, admin_context.user.id, "Resident")


@pytest.mark.asyncio
async def test_remove_unknown_member(admin_service, admin_context):
    admin_service.communities.remove_member.return_value = 0

    with pytest.raises(NotFoundError, match="Member not found"):
        await admin_service.remove_member(admin_context, uuid4())


@pytest.mark.asyncio
async def test_settings_code_must_be_unique(admin_service, admin_context):
    admin_service.communities.get_by_id.return_value = make_community(admin_context.community_id)
    admin_service.communities.code_exists.return_value = True

    with pytest.raises(ConflictError, match="already in use"):
        await admin_service.update_settings(admin_context, CommunitySettingsUpdate(code="oak7"))

    admin_service.communities.code_exists.assert_awaited_once_with("OAK7")
