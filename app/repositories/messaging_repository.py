"""Repository for conversations, messages and their side tables."""

from datetime import datetime
from typing import Dict, List, Optional, Sequence, Tuple
from uuid import UUID

from sqlalchemy import and_, delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.database.models import (
    CommunityMember,
    Conversation,
    ConversationParticipant,
    Message,
    MessageAttachment,
    MessageReaction,
    MessageRead,
    PinnedMessage,
    User,
)
from app.repositories.base_repository import BaseRepository
from app.utils.logging import get_logger

LOGGER = get_logger(__name__)


class MessagingRepository(BaseRepository[Conversation]):
    """Data access for direct messaging."""

    def __init__(self, session: AsyncSession):
        super().__init__(session, Conversation)

    # Conversations

    async def list_for_user(self, user_id: UUID) -> List[Conversation]:
        stmt = (
            select(Conversation)
            .join(ConversationParticipant, ConversationParticipant.conversation_id == Conversation.id)
            .where(ConversationParticipant.user_id == user_id)
            .order_by(Conversation.last_message_at.desc().nulls_last(), Conversation.created_at.desc())
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def get_participants(self, conversation_ids: Sequence[UUID]) -> List[Tuple[ConversationParticipant, User]]:
        if not conversation_ids:
            return []
        stmt = (
            select(ConversationParticipant, User)
            .join(User, User.id == ConversationParticipant.user_id)
            .where(ConversationParticipant.conversation_id.in_(list(conversation_ids)))
        )
        result = await self.session.execute(stmt)
        return [(row[0], row[1]) for row in result.all()]

    async def get_participant(self, conversation_id: UUID, user_id: UUID) -> Optional[ConversationParticipant]:
        stmt = select(ConversationParticipant).where(
            ConversationParticipant.conversation_id == conversation_id,
            ConversationParticipant.user_id == user_id,
        )
        return (await self.session.execute(stmt)).scalar_one_or_none()

    async def find_direct_conversation(self, user_a: UUID, user_b: UUID) -> Optional[Conversation]:
        """The existing one-to-one conversation between two users, if any."""
        mine = select(ConversationParticipant.conversation_id).where(ConversationParticipant.user_id == user_a)
        theirs = select(ConversationParticipant.conversation_id).where(ConversationParticipant.user_id == user_b)
        stmt = (
            select(Conversation)
            .where(
                Conversation.is_group.is_(False),
                Conversation.id.in_(mine),
                Conversation.id.in_(theirs),
            )
            .limit(1)
        )
        return (await self.session.execute(stmt)).scalar_one_or_none()

    async def add_participants(self, conversation_id: UUID, user_ids: Sequence[UUID]) -> None:
        self.session.add_all(
            [ConversationParticipant(conversation_id=conversation_id, user_id=user_id) for user_id in user_ids]
        )
        await self.session.flush()

    async def remove_participant(self, conversation_id: UUID, user_id: UUID) -> int:
        result = await self.session.execute(
            delete(ConversationParticipant).where(
                ConversationParticipant.conversation_id == conversation_id,
                ConversationParticipant.user_id == user_id,
            )
        )
        return result.rowcount or 0

    async def update_settings(self, conversation_id: UUID, user_id: UUID, **values) -> None:
        await self.session.execute(
            update(ConversationParticipant)
            .where(
                ConversationParticipant.conversation_id == conversation_id,
                ConversationParticipant.user_id == user_id,
            )
            .values(**values)
        )

    async def touch(self, conversation_id: UUID, when: datetime) -> None:
        await self.session.execute(
            update(Conversation).where(Conversation.id == conversation_id).values(last_message_at=when)
        )

    async def conversation_partners(self, user_id: UUID) -> Dict[UUID, UUID]:
        """Map of other user id -> conversation id across the user's conversations."""
        mine = select(ConversationParticipant.conversation_id).where(ConversationParticipant.user_id == user_id)
        stmt = select(ConversationParticipant.user_id, ConversationParticipant.conversation_id).where(
            ConversationParticipant.conversation_id.in_(mine),
            ConversationParticipant.user_id != user_id,
        )
        result = await self.session.execute(stmt)
        return {other: conversation for other, conversation in result.all()}

    async def list_contacts(self, community_id: UUID, exclude_user: UUID) -> List[Tuple[User, str]]:
        """Community members other than the caller and administrators."""
        stmt = (
            select(User, CommunityMember.role)
            .join(CommunityMember, CommunityMember.user_id == User.id)
            .where(
                CommunityMember.community_id == community_id,
                CommunityMember.user_id != exclude_user,
                CommunityMember.role != "Admin",
            )
            .order_by(User.name)
        )
        result = await self.session.execute(stmt)
        return [(row[0], row[1]) for row in result.all()]

    # Messages

    async def get_message(self, message_id: UUID, include_deleted: bool = False) -> Optional[Message]:
        stmt = select(Message).where(Message.id == message_id)
        if not include_deleted:
            stmt = stmt.where(Message.deleted_at.is_(None))
        return (await self.session.execute(stmt)).scalar_one_or_none()

    async def last_message(self, conversation_id: UUID) -> Optional[Message]:
        stmt = (
            select(Message)
            .where(Message.conversation_id == conversation_id, Message.deleted_at.is_(None))
            .order_by(Message.created_at.desc())
            .limit(1)
        )
        return (await self.session.execute(stmt)).scalar_one_or_none()

    async def unread_count(self, conversation_id: UUID, user_id: UUID) -> int:
        read_ids = select(MessageRead.message_id).where(MessageRead.user_id == user_id)
        stmt = select(func.count()).select_from(Message).where(
            Message.conversation_id == conversation_id,
            Message.sender_id != user_id,
            Message.deleted_at.is_(None),
            Message.id.not_in(read_ids),
        )
        return (await self.session.execute(stmt)).scalar_one()

    async def list_messages(
        self,
        conversation_id: UUID,
        limit: int = 50,
        before: Optional[datetime] = None,
        after: Optional[datetime] = None,
    ) -> List[Message]:
        """A window of live messages in chronological order.

        ``before`` pages towards older history, ``after`` towards newer.
        """
        conditions = [Message.conversation_id == conversation_id, Message.deleted_at.is_(None)]
        if after is not None:
            conditions.append(Message.created_at > after)
            stmt = select(Message).where(and_(*conditions)).order_by(Message.created_at.asc()).limit(limit)
            result = await self.session.execute(stmt)
            return list(result.scalars().all())

        if before is not None:
            conditions.append(Message.created_at < before)
        stmt = select(Message).where(and_(*conditions)).order_by(Message.created_at.desc()).limit(limit)
        result = await self.session.execute(stmt)
        return list(reversed(result.scalars().all()))

    async def get_users(self, user_ids: Sequence[UUID]) -> Dict[UUID, User]:
        if not user_ids:
            return {}
        result = await self.session.execute(select(User).where(User.id.in_(list(set(user_ids)))))
        return {user.id: user for user in result.scalars().all()}

    async def create_message(self, **kwargs) -> Message:
        message = Message(**kwargs)
        self.session.add(message)
        await self.session.flush()
        return message

    async def soft_delete_message(self, message_id: UUID, when: datetime) -> None:
        await self.session.execute(update(Message).where(Message.id == message_id).values(deleted_at=when))

    async def clear_messages(self, conversation_id: UUID) -> int:
        result = await self.session.execute(delete(Message).where(Message.conversation_id == conversation_id))
        return result.rowcount or 0

    async def message_ids_from_others(self, conversation_id: UUID, user_id: UUID) -> List[UUID]:
        stmt = select(Message.id).where(
            Message.conversation_id == conversation_id,
            Message.sender_id != user_id,
            Message.deleted_at.is_(None),
        )
        return list((await self.session.execute(stmt)).scalars().all())

    # Attachments

    async def add_attachment(self, **kwargs) -> MessageAttachment:
        attachment = MessageAttachment(**kwargs)
        self.session.add(attachment)
        await self.session.flush()
        return attachment

    async def attachments_for(self, message_ids: Sequence[UUID]) -> List[MessageAttachment]:
        if not message_ids:
            return []
        stmt = select(MessageAttachment).where(MessageAttachment.message_id.in_(list(message_ids)))
        return list((await self.session.execute(stmt)).scalars().all())

    async def delete_attachments(self, message_id: UUID) -> None:
        await self.session.execute(delete(MessageAttachment).where(MessageAttachment.message_id == message_id))

    # Reads

    async def reads_for(self, message_ids: Sequence[UUID]) -> List[MessageRead]:
        if not message_ids:
            return []
        stmt = select(MessageRead).where(MessageRead.message_id.in_(list(message_ids)))
        return list((await self.session.execute(stmt)).scalars().all())

    async def mark_read(self, message_ids: Sequence[UUID], user_id: UUID, when: datetime) -> int:
        """Record read receipts for messages not yet read by the user."""
        if not message_ids:
            return 0
        already = set(
            (
                await self.session.execute(
                    select(MessageRead.message_id).where(
                        MessageRead.user_id == user_id,
                        MessageRead.message_id.in_(list(message_ids)),
                    )
                )
            ).scalars().all()
        )
        fresh = [message_id for message_id in message_ids if message_id not in already]
        self.session.add_all([MessageRead(message_id=mid, user_id=user_id, read_at=when) for mid in fresh])
        await self.session.flush()
        return len(fresh)

    # Reactions

    async def reactions_for(self, message_ids: Sequence[UUID]) -> List[MessageReaction]:
        if not message_ids:
            return []
        stmt = (
            select(MessageReaction)
            .where(MessageReaction.message_id.in_(list(message_ids)))
            .order_by(MessageReaction.created_at)
        )
        return list((await self.session.execute(stmt)).scalars().all())

    async def get_reaction(self, message_id: UUID, user_id: UUID, reaction: str) -> Optional[MessageReaction]:
        stmt = select(MessageReaction).where(
            MessageReaction.message_id == message_id,
            MessageReaction.user_id == user_id,
            MessageReaction.reaction == reaction,
        )
        return (await self.session.execute(stmt)).scalars().first()

    async def delete_user_reactions(self, message_id: UUID, user_id: UUID, reaction: Optional[str] = None) -> int:
        stmt = delete(MessageReaction).where(
            MessageReaction.message_id == message_id, MessageReaction.user_id == user_id
        )
        if reaction is not None:
            stmt = stmt.where(MessageReaction.reaction == reaction)
        result = await self.session.execute(stmt)
        return result.rowcount or 0

    async def add_reaction(self, message_id: UUID, user_id: UUID, reaction: str) -> MessageReaction:
        row = MessageReaction(message_id=message_id, user_id=user_id, reaction=reaction)
        self.session.add(row)
        await self.session.flush()
        return row

    # Pins

    async def list_pinned(self, conversation_id: UUID) -> List[Tuple[PinnedMessage, Message]]:
        stmt = (
            select(PinnedMessage, Message)
            .join(Message, Message.id == PinnedMessage.message_id)
            .where(PinnedMessage.conversation_id == conversation_id, Message.deleted_at.is_(None))
            .order_by(PinnedMessage.pinned_at.desc())
        )
        result = await self.session.execute(stmt)
        return [(row[0], row[1]) for row in result.all()]

    async def get_pin(self, conversation_id: UUID, message_id: UUID) -> Optional[PinnedMessage]:
        stmt = select(PinnedMessage).where(
            PinnedMessage.conversation_id == conversation_id, PinnedMessage.message_id == message_id
        )
        return (await self.session.execute(stmt)).scalar_one_or_none()

    async def pin(self, conversation_id: UUID, message_id: UUID, user_id: UUID) -> PinnedMessage:
        row = PinnedMessage(conversation_id=conversation_id, message_id=message_id, pinned_by=user_id)
        self.session.add(row)
        await self.session.flush()
        return row

    async def unpin(self, pinned_id: UUID, user_id: UUID) -> int:
        result = await self.session.execute(
            delete(PinnedMessage).where(PinnedMessage.id == pinned_id, PinnedMessage.pinned_by == user_id)
        )
        return result.rowcount or 0
