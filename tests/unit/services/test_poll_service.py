import pytest
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace
from unittest.mock import AsyncMock
from uuid import uuid4

from app.core.exceptions import NotFoundError, PermissionDeniedError, ValidationError
from app.schemas.poll import PollCreate, PollUpdate
from app.services.poll_service import PollService, poll_status, validate_responses


def make_poll(community_id, multiple_choice=False, deadline=None, questions=None):
    return SimpleNamespace(
        id=uuid4(),
        community_id=community_id,
        created_by=uuid4(),
        title="Park renovation",
        description=None,
        deadline=deadline,
        multiple_choice=multiple_choice,
        questions=questions,
        created_at=datetime(2026, 1, 1, tzinfo=timezone.utc),
    )


@pytest.fixture
def poll_service(mock_session):
    service = PollService(mock_session)
    service.repository = AsyncMock()
    service.communities = AsyncMock()
    service.audit = AsyncMock()
    service.notifications = AsyncMock()
    return service


class TestPollStatus:
    def test_open_without_deadline(self):
        assert poll_status(make_poll(uuid4())) == "active"

    def test_closed_after_deadline(self):
        past = datetime.now(timezone.utc) - timedelta(minutes=1)
        assert poll_status(make_poll(uuid4(), deadline=past)) == "closed"


class TestValidateResponses:
    QUESTIONS = [
        {"id": "q1", "question": "Your block?", "type": "text", "required": True},
        {"id": "q2", "question": "Preferred day?", "type": "radio", "options": ["Sat", "Sun"]},
    ]

    def test_valid(self):
        assert validate_responses(self.QUESTIONS, {"q1": "B", "q2": "Sun"}) == []

    def test_required_and_invalid_option(self):
        errors = validate_responses(self.QUESTIONS, {"q1": "  ", "q2": "Mon"})

        assert errors == ['Question "Your block?" is required', 'Invalid option for question "Preferred day?"']


@pytest.mark.asyncio
async def test_create_requires_two_options(poll_service, admin_context):
    with pytest.raises(ValidationError, match="at least 2 options"):
        await poll_service.create_poll(admin_context, PollCreate(title="Vote", options=["Only", "  "]))

    poll_service.repository.create.assert_not_awaited()


@pytest.mark.asyncio
async def test_create_accepts_legacy_multi_select_name(poll_service, admin_context):
    poll = make_poll(admin_context.community_id, multiple_choice=True)
    poll_service.repository.create.return_value = poll
    poll_service.repository.add_options.return_value = [
        SimpleNamespace(id=uuid4(), label="A", ord=0),
        SimpleNamespace(id=uuid4(), label="B", ord=1),
    ]

    payload = PollCreate.model_validate({"title": "Vote", "options": ["A", "B"], "is_multi_select": True})
    result = await poll_service.create_poll(admin_context, payload)

    assert poll_service.repository.create.call_args.kwargs["multiple_choice"] is True
    assert [o["label"] for o in result["options"]] == ["A", "B"]


@pytest.mark.asyncio
async def test_create_removes_poll_when_options_fail(poll_service, admin_context):
    poll = make_poll(admin_context.community_id)
    poll_service.repository.create.return_value = poll
    poll_service.repository.add_options.side_effect = RuntimeError("insert failed")

    with pytest.raises(RuntimeError):
        await poll_service.create_poll(admin_context, PollCreate(title="Vote", options=["A", "B"]))

    poll_service.repository.delete.assert_awaited_once_with(poll.id)


class TestVote:
    @pytest.mark.asyncio
    async def test_empty_selection(self, poll_service, resident_context):
        with pytest.raises(ValidationError, match="At least one option"):
            await poll_service.vote(resident_context, uuid4(), [])

    @pytest.mark.asyncio
    async def test_requires_membership(self, poll_service):
        with pytest.raises(PermissionDeniedError, match="Community membership required"):
            await poll_service.vote(None, uuid4(), [uuid4()])

    @pytest.mark.asyncio
    async def test_unknown_poll(self, poll_service, resident_context):
        poll_service.repository.get_by_id.return_value = None

        with pytest.raises(NotFoundError):
            await poll_service.vote(resident_context, uuid4(), [uuid4()])

    @pytest.mark.asyncio
    async def test_closed_poll(self, poll_service, resident_context):
        past = datetime.now(timezone.utc) - timedelta(hours=1)
        poll_service.repository.get_by_id.return_value = make_poll(resident_context.community_id, deadline=past)

        with pytest.raises(ValidationError, match="Poll is closed"):
            await poll_service.vote(resident_context, uuid4(), [uuid4()])

    @pytest.mark.asyncio
    async def test_other_community(self, poll_service, resident_context):
        poll_service.repository.get_by_id.return_value = make_poll(uuid4())

        with pytest.raises(PermissionDeniedError, match="Access denied"):
            await poll_service.vote(resident_context, uuid4(), [uuid4()])

    @pytest.mark.asyncio
    async def test_single_choice_rejects_two_options(self, poll_service, resident_context):
        poll_service.repository.get_by_id.return_value = make_poll(resident_context.community_id)

        with pytest.raises(ValidationError, match="Multiple selections not allowed"):
            await poll_service.vote(resident_context, uuid4(), [uuid4(), uuid4()])

        poll_service.repository.replace_votes.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_option_from_another_poll(self, poll_service, resident_context):
        poll_service.repository.get_by_id.return_value = make_poll(resident_context.community_id)
        poll_service.repository.get_options.return_value = [SimpleNamespace(id=uuid4())]

        with pytest.raises(ValidationError, match="Invalid option selected"):
            await poll_service.vote(resident_context, uuid4(), [uuid4()])

    @pytest.mark.asyncio
    async def test_vote_replaces_previous_selection(self, poll_service, resident_context):
        poll = make_poll(resident_context.community_id, multiple_choice=True)
        first, second = uuid4(), uuid4()
        poll_service.repository.get_by_id.return_value = poll
        poll_service.repository.get_options.return_value = [SimpleNamespace(id=first), SimpleNamespace(id=second)]
        poll_service.repository.replace_votes.return_value = 2

        result = await poll_service.vote(resident_context, poll.id, [first, second, first])

        assert result["success"] is True
        poll_service.repository.replace_votes.assert_awaited_once_with(
            poll.id, resident_context.user.id, [first, second]
        )


@pytest.mark.asyncio
async def test_respond_reports_validation_details(poll_service, resident_context):
    poll = make_poll(
        resident_context.community_id,
        questions=[{"id": "q1", "question": "Name?", "required": True}],
    )
    poll_service.repository.get_by_id.return_value = poll

    with pytest.raises(ValidationError) as exc_info:
        await poll_service.respond(resident_context, poll.id, {})

    assert exc_info.value.message == "Validation errors"
    assert exc_info.value.details == ['Question "Name?" is required']


@pytest.mark.asyncio
async def test_respond_updates_existing(poll_service, resident_context):
    poll = make_poll(resident_context.community_id)
    poll_service.repository.get_by_id.return_value = poll
    poll_service.repository.get_response.return_value = SimpleNamespace(responses={"q1": "old"})

    result = await poll_service.respond(resident_context, poll.id, {"q1": "new"})

    assert result["message"] == "Response updated successfully"
    poll_service.repository.upsert_response.assert_awaited_once_with(
        poll.id, resident_context.user.id, {"q1": "new"}
    )


@pytest.mark.asyncio
async def test_close_moves_deadline_into_past(poll_service, admin_context):
    poll = make_poll(admin_context.community_id)
    poll_service.repository.get_by_id.return_value = poll
    poll_service.communities.member_user_ids.return_value = [admin_context.user.id]

    result = await poll_service.update_poll(admin_context, poll.id, PollUpdate(status="closed"))

    assert result["status"] == "closed"
    assert poll.deadline < datetime.now(timezone.utc)
    poll_service.notifications.notify.assert_awaited_once()
