import pytest
from datetime import datetime, timezone
from types import SimpleNamespace
from unittest.mock import AsyncMock
from uuid import uuid4

from app.core.exceptions import NotFoundError, PermissionDeniedError, ValidationError
from app.schemas.common import FilePayload
from app.schemas.messaging import ConversationSettingsUpdate
from app.services.messaging_service import MessagingService, attachment_kind, group_reactions


def test_group_reactions_keeps_first_seen_order():
    u1, u2 = uuid4(), uuid4()
    rows = [
        SimpleNamespace(reaction="👍", user_id=u1),
        SimpleNamespace(reaction="❤️", user_id=u2),
        SimpleNamespace(reaction="👍", user_id=u2),
    ]

    assert group_reactions(rows) == [
        {"emoji": "👍", "count": 2, "users": [str(u1), str(u2)]},
        {"emoji": "❤️", "count": 1, "users": [str(u2)]},
    ]


@pytest.mark.parametrize(
    "mime,kind",
    [("image/png", "image"), ("video/mp4", "video"), ("audio/webm", "voice"), ("application/pdf", "file"), (None, "file")],
)
def test_attachment_kind(mime, kind):
    assert attachment_kind(mime) == kind


@pytest.fixture
def messaging_service(mock_session):
    service = MessagingService(mock_session, storage=AsyncMock())
    service.repository = AsyncMock()
    service.communities = AsyncMock()
    service.audit = AsyncMock()
    return service


class TestStartConversation:
    @pytest.mark.asyncio
    async def test_exactly_one_participant(self, messaging_service, resident_context):
        with pytest.raises(ValidationError, match="Exactly one participant"):
            await messaging_service.start_conversation(resident_context, [uuid4(), uuid4()])

    @pytest.mark.asyncio
    async def test_not_with_yourself(self, messaging_service, resident_context):
        with pytest.raises(ValidationError, match="yourself"):
            await messaging_service.start_conversation(resident_context, [resident_context.user.id])

    @pytest.mark.asyncio
    async def test_target_outside_community(self, messaging_service, resident_context):
        messaging_service.communities.get_member.return_value = None

        with pytest.raises(NotFoundError, match="User not found in your community"):
            await messaging_service.start_conversation(resident_context, [uuid4()])

    @pytest.mark.asyncio
    async def test_admins_cannot_be_messaged(self, messaging_service, resident_context):
        messaging_service.communities.get_member.return_value = SimpleNamespace(role="Admin")

        with pytest.raises(PermissionDeniedError, match="Cannot message administrators"):
            await messaging_service.start_conversation(resident_context, [uuid4()])

    @pytest.mark.asyncio
    async def test_existing_conversation_is_reused(self, messaging_service, resident_context):
        existing = SimpleNamespace(id=uuid4(), title=None)
        messaging_service.communities.get_member.return_value = SimpleNamespace(role="Resident")
        messaging_service.repository.find_direct_conversation.return_value = existing

        conversation, created = await messaging_service.start_conversation(resident_context, [uuid4()])

        assert created is False
        assert conversation["id"] == str(existing.id)
        messaging_service.repository.create.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_new_conversation_adds_both_participants(self, messaging_service, resident_context):
        target = uuid4()
        conversation = SimpleNamespace(id=uuid4(), title="Hi")
        messaging_service.communities.get_member.return_value = SimpleNamespace(role="Resident")
        messaging_service.repository.find_direct_conversation.return_value = None
        messaging_service.repository.create.return_value = conversation

        result, created = await messaging_service.start_conversation(resident_context, [target], "Hi")

        assert created is True
        messaging_service.repository.add_participants.assert_awaited_once_with(
            conversation.id, [resident_context.user.id, target]
        )


class TestSendMessage:
    @pytest.fixture(autouse=True)
    def participant(self, messaging_service):
        messaging_service.repository.get_by_id.return_value = SimpleNamespace(id=uuid4())
        messaging_service.repository.get_participant.return_value = SimpleNamespace()

    @pytest.mark.asyncio
    async def test_empty_message(self, messaging_service, resident_context):
        with pytest.raises(ValidationError, match="Message content, GIF, or attachment is required"):
            await messaging_service.send_message(resident_context, uuid4(), content="   ")

    @pytest.mark.asyncio
    async def test_too_long(self, messaging_service, resident_context):
        with pytest.raises(ValidationError, match="Message exceeds 2000 characters"):
            await messaging_service.send_message(resident_context, uuid4(), content="x" * 2001)

    @pytest.mark.asyncio
    async def test_oversized_attachment(self, messaging_service, resident_context):
        big = FilePayload(content=b"0" * (50 * 1024 * 1024 + 1), filename="movie.mp4", content_type="video/mp4")

        with pytest.raises(ValidationError, match="exceeds the 50MB limit"):
            await messaging_service.send_message(resident_context, uuid4(), attachments=[big])

    @pytest.mark.asyncio
    async def test_unknown_type(self, messaging_service, resident_context):
        with pytest.raises(ValidationError, match="Invalid message type"):
            await messaging_service.send_message(resident_context, uuid4(), content="hi", message_type="sticker")

    @pytest.mark.asyncio
    async def test_reply_must_be_in_same_conversation(self, messaging_service, resident_context):
        messaging_service.repository.get_message.return_value = SimpleNamespace(conversation_id=uuid4())

        with pytest.raises(NotFoundError, match="Reply target not found"):
            await messaging_service.send_message(
                resident_context, uuid4(), content="hi", reply_to_message_id=uuid4()
            )

    @pytest.mark.asyncio
    async def test_non_participant(self, messaging_service, resident_context):
        messaging_service.repository.get_participant.return_value = None

        with pytest.raises(PermissionDeniedError):
            await messaging_service.send_message(resident_context, uuid4(), content="hi")


def make_message(conversation_id, minute):
    return SimpleNamespace(
        id=uuid4(),
        conversation_id=conversation_id,
        sender_id=uuid4(),
        body=f"message {minute}",
        type="text",
        metadata_=None,
        reply_to_message_id=None,
        created_at=datetime(2026, 3, 1, 12, minute, tzinfo=timezone.utc),
    )


class TestListMessages:
    @pytest.fixture
    def page(self, messaging_service):
        conversation_id = uuid4()
        messages = [make_message(conversation_id, minute) for minute in (1, 2, 3)]
        anchor = make_message(conversation_id, 0)
        messaging_service.repository.get_by_id.return_value = SimpleNamespace(id=conversation_id)
        messaging_service.repository.get_message.return_value = anchor
        messaging_service.repository.list_messages.return_value = messages
        messaging_service.repository.get_users.return_value = {}
        messaging_service.repository.attachments_for.return_value = []
        messaging_service.repository.reads_for.return_value = []
        messaging_service.repository.reactions_for.return_value = []
        return conversation_id, anchor, messages

    @pytest.mark.asyncio
    async def test_older_pages_continue_from_the_oldest_message(self, messaging_service, resident_context, page):
        conversation_id, anchor, messages = page

        result = await messaging_service.list_messages(
            resident_context, conversation_id, limit=3, cursor=anchor.id, direction="older"
        )

        assert result["nextCursor"] == str(messages[0].id)
        assert result["hasMore"] is True
        assert messaging_service.repository.list_messages.await_args.kwargs["before"] == anchor.created_at

    @pytest.mark.asyncio
    async def test_newer_pages_continue_from_the_newest_message(self, messaging_service, resident_context, page):
        conversation_id, anchor, messages = page

        result = await messaging_service.list_messages(
            resident_context, conversation_id, limit=3, cursor=anchor.id, direction="newer"
        )

        assert result["nextCursor"] == str(messages[-1].id)
        assert messaging_service.repository.list_messages.await_args.kwargs["after"] == anchor.created_at

    @pytest.mark.asyncio
    async def test_empty_page_has_no_cursor(self, messaging_service, resident_context, page):
        conversation_id, _, _ = page
        messaging_service.repository.list_messages.return_value = []

        result = await messaging_service.list_messages(resident_context, conversation_id, direction="newer")

        assert result == {"messages": [], "hasMore": False, "nextCursor": None}


class TestConversationSettings:
    @pytest.mark.asyncio
    async def test_defaults_for_participant(self, messaging_service, resident_context):
        messaging_service.repository.get_participant.return_value = SimpleNamespace(
            muted=False, mute_until=None, custom_title=None
        )

        settings = await messaging_service.get_settings(resident_context, uuid4())

        assert settings == {"customTitle": None, "isMuted": False, "muteUntil": None}

    @pytest.mark.asyncio
    async def test_non_participant_sees_not_found(self, messaging_service, resident_context):
        messaging_service.repository.get_participant.return_value = None

        with pytest.raises(NotFoundError, match="Conversation not found"):
            await messaging_service.get_settings(resident_context, uuid4())

    @pytest.mark.asyncio
    async def test_mute_and_rename(self, messaging_service, resident_context, now):
        conversation_id = uuid4()
        messaging_service.repository.get_participant.return_value = SimpleNamespace(
            muted=False, mute_until=None, custom_title=None
        )
        payload = ConversationSettingsUpdate(customTitle="Block C", isMuted=True, muteUntil=now)

        settings = await messaging_service.update_settings(resident_context, conversation_id, payload)

        assert settings == {"customTitle": "Block C", "isMuted": True, "muteUntil": now.isoformat()}
        messaging_service.repository.update_settings.assert_awaited_once_with(
            conversation_id, resident_context.user.id, custom_title="Block C", muted=True, mute_until=now
        )

    @pytest.mark.asyncio
    async def test_unmuting_clears_mute_until(self, messaging_service, resident_context, now):
        messaging_service.repository.get_participant.return_value = SimpleNamespace(
            muted=True, mute_until=now, custom_title="Block C"
        )

        settings = await messaging_service.update_settings(
            resident_context, uuid4(), ConversationSettingsUpdate(isMuted=False, muteUntil=now)
        )

        assert settings == {"customTitle": None, "isMuted": False, "muteUntil": None}
