"""Direct messaging endpoints.

Origin checks and rate limits for this router run in
``MessagingGuardMiddleware``; session and membership are checked here.
"""

import json
from typing import Annotated, Any, Dict, List, Literal, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, File, Form, Query, Response, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.endpoints.users import read_upload
from app.core.auth import CommunityContext, get_community_context
from app.core.database import get_async_session as get_session
from app.core.exceptions import ValidationError
from app.schemas.messaging import (
    ContactCreate,
    ConversationCreate,
    ConversationSettingsUpdate,
    MessageEdit,
    PinRequest,
    ReactionRequest,
)
from app.services.gif_service import GifService
from app.services.messaging_service import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE, MessagingService

router = APIRouter()

Context = Annotated[CommunityContext, Depends(get_community_context)]


async def get_messaging_service(
    db_session: Annotated[AsyncSession, Depends(get_session)]
) -> MessagingService:
    return MessagingService(db_session)


def get_gif_service() -> GifService:
    return GifService()


Messaging = Annotated[MessagingService, Depends(get_messaging_service)]


def parse_json_field(raw: Optional[str], name: str) -> Optional[Any]:
    if raw is None or raw == "":
        return None
    try:
        return json.loads(raw)
    except json.JSONDecodeError as e:
        raise ValidationError(f"Invalid {name} JSON") from e


# Conversations


@router.get("/conversations", operation_id="list_conversations")
async def list_conversations(context: Context, service: Messaging) -> Dict[str, Any]:
    return {"conversations": await service.list_conversations(context)}


@router.post("/conversations", status_code=status.HTTP_201_CREATED, operation_id="start_conversation")
async def start_conversation(
    payload: ConversationCreate, response: Response, context: Context, service: Messaging
) -> Dict[str, Any]:
    """Open a one-to-one conversation, reusing an existing one."""
    conversation, created = await service.start_conversation(context, payload.participantIds, payload.title)
    if not created:
        response.status_code = status.HTTP_200_OK
    return {"conversation": conversation, "existing": not created}


@router.delete("/conversations/{conversation_id}", operation_id="delete_conversation")
async def delete_conversation(conversation_id: UUID, context: Context, service: Messaging) -> Dict[str, Any]:
    return await service.delete_conversation(context, conversation_id)


@router.delete("/conversations/{conversation_id}/clear", operation_id="clear_conversation")
async def clear_conversation(conversation_id: UUID, context: Context, service: Messaging) -> Dict[str, Any]:
    return await service.clear_conversation(context, conversation_id)


@router.post("/conversations/{conversation_id}/read", operation_id="mark_conversation_read")
async def mark_conversation_read(conversation_id: UUID, context: Context, service: Messaging) -> Dict[str, Any]:
    return await service.mark_conversation_read(context, conversation_id)


@router.get("/conversations/{conversation_id}/settings", operation_id="get_conversation_settings")
async def get_conversation_settings(conversation_id: UUID, context: Context, service: Messaging) -> Dict[str, Any]:
    return {"settings": await service.get_settings(context, conversation_id)}


@router.put("/conversations/{conversation_id}/settings", operation_id="update_conversation_settings")
async def update_conversation_settings(
    conversation_id: UUID, payload: ConversationSettingsUpdate, context: Context, service: Messaging
) -> Dict[str, Any]:
    return {"settings": await service.update_settings(context, conversation_id, payload)}


# Messages


@router.get("/conversations/{conversation_id}/messages", operation_id="list_messages")
async def list_messages(
    conversation_id: UUID,
    context: Context,
    service: Messaging,
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    cursor: Optional[UUID] = Query(None),
    direction: Literal["older", "newer"] = Query("older"),
) -> Dict[str, Any]:
    return await service.list_messages(context, conversation_id, limit, cursor, direction)


@router.post(
    "/conversations/{conversation_id}/messages",
    status_code=status.HTTP_201_CREATED,
    summary="Send a message",
    description="Multipart form with text content, an optional GIF and file attachments",
    operation_id="send_message",
)
async def send_message(
    conversation_id: UUID,
    context: Context,
    service: Messaging,
    content: Annotated[Optional[str], Form()] = None,
    type: Annotated[Optional[str], Form()] = None,
    replyToMessageId: Annotated[Optional[UUID], Form()] = None,
    metadata: Annotated[Optional[str], Form()] = None,
    gif: Annotated[Optional[str], Form()] = None,
    attachments: Annotated[Optional[List[UploadFile]], File()] = None,
) -> Dict[str, Any]:
    metadata_value = parse_json_field(metadata, "metadata")
    if metadata_value is not None and not isinstance(metadata_value, dict):
        raise ValidationError("metadata must be a JSON object")

    gif_value = parse_json_field(gif, "gif")
    if isinstance(gif_value, str):
        gif_value = {"url": gif_value}

    files = [await read_upload(upload) for upload in attachments or [] if upload.filename]
    message = await service.send_message(
        context,
        conversation_id,
        content=content,
        message_type=type,
        reply_to_message_id=replyToMessageId,
        metadata=metadata_value,
        gif=gif_value,
        attachments=files,
    )
    return {"message": message}


@router.put("/messages/{message_id}", operation_id="edit_message")
async def edit_message(message_id: UUID, payload: MessageEdit, context: Context, service: Messaging) -> Dict[str, Any]:
    return {"message": await service.edit_message(context, message_id, payload.content)}


@router.delete("/messages/{message_id}", operation_id="delete_message")
async def delete_message(message_id: UUID, context: Context, service: Messaging) -> Dict[str, Any]:
    return await service.delete_message(context, message_id)


@router.post("/messages/{message_id}/reactions", operation_id="toggle_reaction")
async def toggle_reaction(
    message_id: UUID, payload: ReactionRequest, response: Response, context: Context, service: Messaging
) -> Dict[str, Any]:
    result, added = await service.toggle_reaction(context, message_id, payload.reaction)
    response.status_code = status.HTTP_201_CREATED if added else status.HTTP_200_OK
    return result


@router.delete("/messages/{message_id}/reactions", operation_id="remove_reaction")
async def remove_reaction(
    message_id: UUID,
    context: Context,
    service: Messaging,
    reaction: Optional[str] = Query(None, max_length=10),
) -> Dict[str, Any]:
    return await service.remove_reaction(context, message_id, reaction)


@router.post("/messages/{message_id}/read", operation_id="mark_message_read")
async def mark_message_read(message_id: UUID, context: Context, service: Messaging) -> Dict[str, Any]:
    return await service.mark_message_read(context, message_id)


# Contacts


@router.get("/contacts", operation_id="list_contacts")
async def list_contacts(context: Context, service: Messaging) -> Dict[str, Any]:
    return {"contacts": await service.list_contacts(context)}


@router.post("/contacts", status_code=status.HTTP_201_CREATED, operation_id="add_contact")
async def add_contact(payload: ContactCreate, response: Response, context: Context, service: Messaging) -> Dict[str, Any]:
    conversation, created = await service.start_conversation(context, [payload.userId])
    if not created:
        response.status_code = status.HTTP_200_OK
    return {"conversation": conversation, "existing": not created}


# Pins


@router.get("/pinned-messages", operation_id="list_pinned_messages")
async def list_pinned(
    context: Context,
    service: Messaging,
    conversationId: UUID = Query(...),
) -> Dict[str, Any]:
    return {"pinned": await service.list_pinned(context, conversationId)}


@router.post("/pinned-messages", status_code=status.HTTP_201_CREATED, operation_id="pin_message")
async def pin_message(payload: PinRequest, context: Context, service: Messaging) -> Dict[str, Any]:
    return {"pinned": await service.pin_message(context, payload.conversationId, payload.messageId)}


@router.delete("/pinned-messages", operation_id="unpin_message")
async def unpin_message(
    context: Context,
    service: Messaging,
    id: UUID = Query(..., description="Pinned message id"),
) -> Dict[str, Any]:
    return await service.unpin_message(context, id)


# GIFs


@router.get("/gifs/search", operation_id="search_gifs")
async def search_gifs(
    context: Context,
    gif_service: Annotated[GifService, Depends(get_gif_service)],
    q: Optional[str] = Query(None),
) -> Dict[str, Any]:
    if not q or not q.strip():
        raise ValidationError("Search query is required")
    return {"gifs": await gif_service.search(q.strip())}


@router.get("/gifs/trending", operation_id="trending_gifs")
async def trending_gifs(
    context: Context,
    gif_service: Annotated[GifService, Depends(get_gif_service)],
) -> Dict[str, Any]:
    return {"gifs": await gif_service.trending()}
