"""Direct messaging between community members."""

import secrets
import time
from collections import defaultdict
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import CommunityContext
from app.core.config import settings
from app.core.exceptions import NotFoundError, PermissionDeniedError, ValidationError
from app.database.models import Conversation, Message, MessageAttachment, User
from app.repositories.audit_repository import AuditRepository
from app.repositories.community_repository import CommunityRepository
from app.repositories.messaging_repository import MessagingRepository
from app.schemas.common import FilePayload
from app.schemas.messaging import MESSAGE_TYPES, ConversationSettingsUpdate
from app.services.storage_service import StorageService
from app.utils.logging import get_logger

LOGGER = get_logger(__name__)

MAX_PAGE_SIZE = 100
DEFAULT_PAGE_SIZE = 50


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def _user_card(user: Optional[User]) -> Optional[Dict[str, Any]]:
    if user is None:
        return None
    return {"id": str(user.id), "name": user.name, "email": user.email, "image": user.image}


def group_reactions(reactions) -> List[Dict[str, Any]]:
    """Collapse reaction rows into ``{emoji, count, users}`` in first-seen order."""
    grouped: Dict[str, List[str]] = defaultdict(list)
    for row in reactions:
        grouped[row.reaction].append(str(row.user_id))
    return [{"emoji": emoji, "count": len(users), "users": users} for emoji, users in grouped.items()]


def attachment_kind(mime_type: Optional[str]) -> str:
    mime_type = mime_type or ""
    if mime_type.startswith("image/"):
        return "image"
    if mime_type.startswith("video/"):
        return "video"
    if mime_type.startswith("audio/"):
        return "voice"
    return "file"


def serialize_settings(participant) -> Dict[str, Any]:
    return {
        "customTitle": participant.custom_title,
        "isMuted": participant.muted,
        "muteUntil": _iso(participant.mute_until),
    }


class MessagingService:
    """Service for conversations, messages, reactions, receipts and pins."""

    def __init__(self, db_session: AsyncSession, storage: Optional[StorageService] = None):
        self.session = db_session
        self.repository = MessagingRepository(db_session)
        self.communities = CommunityRepository(db_session)
        self.audit = AuditRepository(db_session)
        self.storage = storage or StorageService()
        self.bucket = settings.supabase.message_bucket

    # Access checks

    async def _conversation(self, context: CommunityContext, conversation_id: UUID) -> Conversation:
        """The conversation, provided the caller takes part in it."""
        conversation = await self.repository.get_by_id(conversation_id)
        if not conversation:
            raise NotFoundError("Conversation not found")
        if not await self.repository.get_participant(conversation_id, context.user.id):
            raise PermissionDeniedError("You are not a participant in this conversation")
        return conversation

    async def _message(self, context: CommunityContext, message_id: UUID) -> Message:
        message = await self.repository.get_message(message_id)
        if not message:
            raise NotFoundError("Message not found")
        if not await self.repository.get_participant(message.conversation_id, context.user.id):
            raise PermissionDeniedError("You are not a participant in this conversation")
        return message

    # Serialization

    async def _serialize_messages(self, messages: List[Message], viewer_id: UUID) -> List[Dict[str, Any]]:
        ids = [m.id for m in messages]
        senders = await self.repository.get_users([m.sender_id for m in messages])

        attachments: Dict[UUID, List[MessageAttachment]] = defaultdict(list)
        for attachment in await self.repository.attachments_for(ids):
            attachments[attachment.message_id].append(attachment)

        reads: Dict[UUID, List[str]] = defaultdict(list)
        for receipt in await self.repository.reads_for(ids):
            reads[receipt.message_id].append(str(receipt.user_id))

        reactions = defaultdict(list)
        for reaction in await self.repository.reactions_for(ids):
            reactions[reaction.message_id].append(reaction)

        serialized = []
        for message in messages:
            metadata = message.metadata_ or {}
            read_by = [uid for uid in reads[message.id] if uid != str(message.sender_id)]
            serialized.append(
                {
                    "id": str(message.id),
                    "conversation_id": str(message.conversation_id),
                    "sender_id": str(message.sender_id),
                    "sender": _user_card(senders.get(message.sender_id)),
                    "content": message.body,
                    "type": message.type,
                    "metadata": metadata,
                    "reply_to_message_id": str(message.reply_to_message_id) if message.reply_to_message_id else None,
                    "created_at": _iso(message.created_at),
                    "isEdited": bool(metadata.get("isEdited")),
                    "isOwn": message.sender_id == viewer_id,
                    "isRead": bool(read_by),
                    "readBy": read_by,
                    "attachments": [await self._serialize_attachment(a) for a in attachments[message.id]],
                    "reactions": group_reactions(reactions[message.id]),
                }
            )
        return serialized

    async def _serialize_attachment(self, attachment: MessageAttachment) -> Dict[str, Any]:
        try:
            url = await self.storage.get_signed_url(
                self.bucket, attachment.storage_path, expires_in=settings.supabase.signed_url_ttl
            )
        except Exception as e:
            LOGGER.warning(f"Could not sign attachment {attachment.id}: {e}")
            url = None
        return {
            "id": str(attachment.id),
            "file_name": attachment.file_name,
            "mime_type": attachment.mime_type,
            "size_bytes": attachment.size_bytes,
            "url": url,
        }

    # Conversations

    async def list_conversations(self, context: CommunityContext) -> List[Dict[str, Any]]:
        conversations = await self.repository.list_for_user(context.user.id)
        participants = defaultdict(list)
        own = {}
        for participant, user in await self.repository.get_participants([c.id for c in conversations]):
            participants[participant.conversation_id].append(_user_card(user))
            if participant.user_id == context.user.id:
                own[participant.conversation_id] = participant

        result = []
        for conversation in conversations:
            last = await self.repository.last_message(conversation.id)
            mine = own.get(conversation.id)
            result.append(
                {
                    "id": str(conversation.id),
                    "title": conversation.title,
                    "is_group": conversation.is_group,
                    "created_by": str(conversation.created_by) if conversation.created_by else None,
                    "created_at": _iso(conversation.created_at),
                    "last_message_at": _iso(conversation.last_message_at),
                    "participants": participants[conversation.id],
                    "muted": bool(mine and mine.muted),
                    "customTitle": mine.custom_title if mine else None,
                    "lastMessage": (
                        {
                            "id": str(last.id),
                            "content": last.body,
                            "type": last.type,
                            "sender_id": str(last.sender_id),
                            "created_at": _iso(last.created_at),
                        }
                        if last
                        else None
                    ),
                    "unreadCount": await self.repository.unread_count(conversation.id, context.user.id),
                }
            )
        return result

    async def start_conversation(
        self, context: CommunityContext, participant_ids: List[UUID], title: Optional[str] = None
    ) -> Tuple[Dict[str, Any], bool]:
        """Open (or reuse) a one-to-one conversation.

        Returns:
            The conversation and whether it was newly created
        """
        if len(participant_ids) != 1:
            raise ValidationError("Exactly one participant is required")
        target_id = participant_ids[0]
        if target_id == context.user.id:
            raise ValidationError("Cannot start a conversation with yourself")

        member = await self.communities.get_member(context.community_id, target_id)
        if not member:
            raise NotFoundError("User not found in your community")
        if member.role == "Admin":
            raise PermissionDeniedError("Cannot message administrators")

        existing = await self.repository.find_direct_conversation(context.user.id, target_id)
        if existing:
            return {"id": str(existing.id), "title": existing.title, "is_group": False}, False

        conversation = await self.repository.create(
            community_id=context.community_id,
            title=title,
            is_group=False,
            created_by=context.user.id,
        )
        try:
            async with self.session.begin_nested():
                await self.repository.add_participants(conversation.id, [context.user.id, target_id])
        except Exception:
            LOGGER.error(f"Failed to add participants to {conversation.id}; removing it", exc_info=True)
            await self.repository.delete(conversation.id)
            raise

        await self.audit.record(
            context.user.id, "create", "conversations", conversation.id, {"participant": str(target_id)}
        )
        return {"id": str(conversation.id), "title": conversation.title, "is_group": False}, True

    async def delete_conversation(self, context: CommunityContext, conversation_id: UUID) -> Dict[str, Any]:
        """Admins remove the whole conversation; anyone else just leaves it."""
        conversation = await self._conversation(context, conversation_id)

        if context.is_community_admin:
            await self.repository.delete(conversation.id)
            await self.audit.record(context.user.id, "delete", "conversations", conversation_id)
            return {"success": True, "message": "Conversation deleted"}

        await self.repository.remove_participant(conversation_id, context.user.id)
        await self.audit.record(context.user.id, "leave", "conversations", conversation_id)
        return {"success": True, "message": "Left conversation"}

    async def clear_conversation(self, context: CommunityContext, conversation_id: UUID) -> Dict[str, Any]:
        if not context.is_community_admin:
            raise PermissionDeniedError("Admin access required")
        await self._conversation(context, conversation_id)

        deleted = await self.repository.clear_messages(conversation_id)
        await self.audit.record(context.user.id, "clear", "conversations", conversation_id, {"deleted": deleted})
        return {"success": True, "message": "Conversation cleared", "deleted": deleted}

    async def mark_conversation_read(self, context: CommunityContext, conversation_id: UUID) -> Dict[str, Any]:
        await self._conversation(context, conversation_id)
        ids = await self.repository.message_ids_from_others(conversation_id, context.user.id)
        marked = await self.repository.mark_read(ids, context.user.id, datetime.now(timezone.utc))
        return {"success": True, "marked": marked}

    async def get_settings(self, context: CommunityContext, conversation_id: UUID) -> Dict[str, Any]:
        participant = await self.repository.get_participant(conversation_id, context.user.id)
        if not participant:
            raise NotFoundError("Conversation not found")
        return serialize_settings(participant)

    async def update_settings(
        self, context: CommunityContext, conversation_id: UUID, payload: ConversationSettingsUpdate
    ) -> Dict[str, Any]:
        """Per-participant title override and mute state."""
        participant = await self.repository.get_participant(conversation_id, context.user.id)
        if not participant:
            raise NotFoundError("Conversation not found")

        await self.repository.update_settings(
            conversation_id,
            context.user.id,
            custom_title=payload.customTitle or None,
            muted=payload.isMuted,
            mute_until=payload.muteUntil if payload.isMuted else None,
        )
        participant.custom_title = payload.customTitle or None
        participant.muted = payload.isMuted
        participant.mute_until = payload.muteUntil if payload.isMuted else None
        return serialize_settings(participant)

    # Messages

    async def list_messages(
        self,
        context: CommunityContext,
        conversation_id: UUID,
        limit: int = DEFAULT_PAGE_SIZE,
        cursor: Optional[UUID] = None,
        direction: str = "older",
    ) -> Dict[str, Any]:
        await self._conversation(context, conversation_id)
        limit = max(1, min(limit, MAX_PAGE_SIZE))

        before = after = None
        if cursor is not None:
            anchor = await self.repository.get_message(cursor, include_deleted=True)
            if not anchor or anchor.conversation_id != conversation_id:
                raise NotFoundError("Cursor message not found")
            if direction == "newer":
                after = anchor.created_at
            else:
                before = anchor.created_at

        messages = await self.repository.list_messages(conversation_id, limit=limit, before=before, after=after)
        return {
            "messages": await self._serialize_messages(messages, context.user.id),
            "hasMore": len(messages) == limit,
            "nextCursor": str(messages[-1 if direction == "newer" else 0].id) if messages else None,
        }

    async def _store_attachment(
        self, context: CommunityContext, message: Message, file: FilePayload
    ) -> Optional[MessageAttachment]:
        path = (
            f"{context.user.id}/{message.conversation_id}/{message.id}/"
            f"{int(time.time() * 1000)}-{secrets.token_hex(4)}.{file.extension}"
        )
        try:
            await self.storage.upload_file(
                file.content, self.bucket, path, file.content_type or "application/octet-stream"
            )
        except Exception as e:
            LOGGER.warning(f"Skipping attachment {file.filename} for message {message.id}: {e}")
            return None

        return await self.repository.add_attachment(
            message_id=message.id,
            storage_path=path,
            file_name=file.filename,
            mime_type=file.content_type,
            size_bytes=file.size,
        )

    async def send_message(
        self,
        context: CommunityContext,
        conversation_id: UUID,
        content: Optional[str] = None,
        message_type: Optional[str] = None,
        reply_to_message_id: Optional[UUID] = None,
        metadata: Optional[Dict[str, Any]] = None,
        gif: Optional[Dict[str, Any]] = None,
        attachments: Optional[List[FilePayload]] = None,
    ) -> Dict[str, Any]:
        """Post a message with optional GIF and file attachments.

        Raises:
            ValidationError: Oversized file, empty message, body too long, or unknown type
            NotFoundError: Conversation or reply target missing
        """
        await self._conversation(context, conversation_id)
        attachments = attachments or []
        content = (content or "").strip()

        for file in attachments:
            if file.size > settings.messaging.max_attachment_bytes:
                raise ValidationError(f"File {file.filename} exceeds the 50MB limit")

        if gif:
            message_type = "gif"
        if not content and not gif and not attachments:
            raise ValidationError("Message content, GIF, or attachment is required")
        if len(content) > settings.messaging.max_body_length:
            raise ValidationError(f"Message exceeds {settings.messaging.max_body_length} characters")

        if not message_type:
            message_type = attachment_kind(attachments[0].content_type) if attachments and not content else "text"
        if message_type not in MESSAGE_TYPES:
            raise ValidationError("Invalid message type")

        if reply_to_message_id is not None:
            target = await self.repository.get_message(reply_to_message_id)
            if not target or target.conversation_id != conversation_id:
                raise NotFoundError("Reply target not found")

        metadata = dict(metadata or {})
        if gif:
            metadata["gif"] = gif

        now = datetime.now(timezone.utc)
        message = await self.repository.create_message(
            conversation_id=conversation_id,
            sender_id=context.user.id,
            body=content or None,
            type=message_type,
            metadata_=metadata or None,
            reply_to_message_id=reply_to_message_id,
        )

        stored = [a for a in [await self._store_attachment(context, message, f) for f in attachments] if a]
        await self.repository.touch(conversation_id, now)
        await self.audit.record(
            context.user.id, "send", "messages", message.id,
            {"conversation_id": str(conversation_id), "type": message_type, "attachments": len(stored)},
        )

        serialized = await self._serialize_messages([message], context.user.id)
        return serialized[0]

    async def edit_message(self, context: CommunityContext, message_id: UUID, content: str) -> Dict[str, Any]:
        message = await self._message(context, message_id)
        if message.sender_id != context.user.id:
            raise PermissionDeniedError("You can only edit your own messages")

        content = content.strip()
        if not content:
            raise ValidationError("Message content is required")
        if len(content) > settings.messaging.max_body_length:
            raise ValidationError(f"Message exceeds {settings.messaging.max_body_length} characters")

        message.body = content
        message.metadata_ = {
            **(message.metadata_ or {}),
            "isEdited": True,
            "editedAt": datetime.now(timezone.utc).isoformat(),
        }
        await self.session.flush()
        await self.audit.record(context.user.id, "edit", "messages", message.id)
        return (await self._serialize_messages([message], context.user.id))[0]

    async def delete_message(self, context: CommunityContext, message_id: UUID) -> Dict[str, Any]:
        message = await self._message(context, message_id)
        if message.sender_id != context.user.id:
            raise PermissionDeniedError("You can only delete your own messages")

        attachments = await self.repository.attachments_for([message.id])
        if attachments:
            try:
                await self.storage.remove_files(self.bucket, [a.storage_path for a in attachments])
            except Exception as e:
                LOGGER.warning(f"Failed to remove attachments of message {message.id}: {e}")
            await self.repository.delete_attachments(message.id)

        await self.repository.soft_delete_message(message.id, datetime.now(timezone.utc))
        await self.audit.record(context.user.id, "delete", "messages", message.id)
        return {"success": True, "message": "Message deleted"}

    # Reactions and receipts

    async def toggle_reaction(self, context: CommunityContext, message_id: UUID, reaction: str) -> Tuple[Dict[str, Any], bool]:
        """Toggle an identical reaction off, otherwise replace the caller's reaction.

        Returns:
            The outcome and whether a reaction was added
        """
        message = await self._message(context, message_id)

        if await self.repository.get_reaction(message.id, context.user.id, reaction):
            await self.repository.delete_user_reactions(message.id, context.user.id, reaction)
            return {"success": True, "action": "removed", "reaction": reaction}, False

        await self.repository.delete_user_reactions(message.id, context.user.id)
        await self.repository.add_reaction(message.id, context.user.id, reaction)
        return {"success": True, "action": "added", "reaction": reaction}, True

    async def remove_reaction(
        self, context: CommunityContext, message_id: UUID, reaction: Optional[str] = None
    ) -> Dict[str, Any]:
        message = await self._message(context, message_id)
        removed = await self.repository.delete_user_reactions(message.id, context.user.id, reaction)
        return {"success": True, "removed": removed}

    async def mark_message_read(self, context: CommunityContext, message_id: UUID) -> Dict[str, Any]:
        message = await self._message(context, message_id)
        if message.sender_id == context.user.id:
            return {"success": True, "marked": 0}
        marked = await self.repository.mark_read([message.id], context.user.id, datetime.now(timezone.utc))
        return {"success": True, "marked": marked}

    # Contacts

    async def list_contacts(self, context: CommunityContext) -> List[Dict[str, Any]]:
        partners = await self.repository.conversation_partners(context.user.id)
        contacts = await self.repository.list_contacts(context.community_id, context.user.id)
        return [
            {
                **_user_card(user),
                "role": role,
                "has_conversation": user.id in partners,
                "conversation_id": str(partners[user.id]) if user.id in partners else None,
            }
            for user, role in contacts
        ]

    # Pins

    async def list_pinned(self, context: CommunityContext, conversation_id: UUID) -> List[Dict[str, Any]]:
        await self._conversation(context, conversation_id)
        rows = await self.repository.list_pinned(conversation_id)
        messages = await self._serialize_messages([message for _, message in rows], context.user.id)
        return [
            {
                "id": str(pin.id),
                "pinned_by": str(pin.pinned_by),
                "pinned_at": _iso(pin.pinned_at),
                "message": serialized,
            }
            for (pin, _), serialized in zip(rows, messages)
        ]

    async def pin_message(self, context: CommunityContext, conversation_id: UUID, message_id: UUID) -> Dict[str, Any]:
        await self._conversation(context, conversation_id)
        message = await self.repository.get_message(message_id)
        if not message or message.conversation_id != conversation_id:
            raise NotFoundError("Message not found")
        if await self.repository.get_pin(conversation_id, message_id):
            raise ValidationError("Message already pinned")

        pin = await self.repository.pin(conversation_id, message_id, context.user.id)
        await self.audit.record(context.user.id, "pin", "pinned_messages", pin.id, {"message_id": str(message_id)})
        return {"id": str(pin.id), "message_id": str(message_id), "pinned_at": _iso(pin.pinned_at)}

    async def unpin_message(self, context: CommunityContext, pinned_id: UUID) -> Dict[str, Any]:
        if not await self.repository.unpin(pinned_id, context.user.id):
            raise NotFoundError("Pinned message not found")
        await self.audit.record(context.user.id, "unpin", "pinned_messages", pinned_id)
        return {"success": True, "message": "Message unpinned"}
