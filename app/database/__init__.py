"""Database module for SQLAlchemy models."""

from app.core.database import Base, engine, get_async_session, db_client, init_database, close_database
from app.database.models import (
    AnomalyFlag,
    Announcement,
    AuditLog,
    ChatMessage,
    ChatSession,
    Community,
    CommunityMember,
    Complaint,
    Conversation,
    ConversationParticipant,
    EmailVerification,
    Feedback,
    IdVerification,
    Message,
    MessageAttachment,
    MessageReaction,
    MessageRead,
    Notification,
    PinnedMessage,
    Poll,
    PollOption,
    PollResponse,
    PollVote,
    SentimentCache,
    TopicCache,
    User,
)

__all__ = [
    "Base",
    "engine",
    "get_async_session",
    "db_client",
    "init_database",
    "close_database",
    "AnomalyFlag",
    "Announcement",
    "AuditLog",
    "ChatMessage",
    "ChatSession",
    "Community",
    "CommunityMember",
    "Complaint",
    "Conversation",
    "ConversationParticipant",
    "EmailVerification",
    "Feedback",
    "IdVerification",
    "Message",
    "MessageAttachment",
    "MessageReaction",
    "MessageRead",
    "Notification",
    "PinnedMessage",
    "Poll",
    "PollOption",
    "PollResponse",
    "PollVote",
    "SentimentCache",
    "TopicCache",
    "User",
]
