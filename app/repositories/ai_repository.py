"""Repository for AI memoization caches, anomaly flags and assistant chat history."""

from typing import Any, Dict, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.database.models import AnomalyFlag, ChatMessage, ChatSession, SentimentCache, TopicCache
from app.utils.logging import get_logger

LOGGER = get_logger(__name__)


class AiRepository:
    """Data access for the keyword-based AI endpoints."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_topic(self, text_hash: str) -> Optional[TopicCache]:
        result = await self.session.execute(select(TopicCache).where(TopicCache.text_hash == text_hash))
        return result.scalar_one_or_none()

    async def save_topic(self, text_hash: str, category: str, confidence: float) -> TopicCache:
        row = TopicCache(text_hash=text_hash, category=category, confidence=confidence)
        self.session.add(row)
        await self.session.flush()
        return row

    async def get_sentiment(self, text_hash: str) -> Optional[SentimentCache]:
        result = await self.session.execute(
            select(SentimentCache).where(SentimentCache.text_hash == text_hash)
        )
        return result.scalar_one_or_none()

    async def save_sentiment(self, text_hash: str, sentiment: float, confidence: float) -> SentimentCache:
        row = SentimentCache(text_hash=text_hash, sentiment=sentiment, confidence=confidence)
        self.session.add(row)
        await self.session.flush()
        return row

    async def save_anomaly(
        self,
        entity_type: str,
        entity_id: str,
        anomaly_type: str,
        severity: str,
        description: str,
        payload: Optional[Dict[str, Any]] = None,
    ) -> AnomalyFlag:
        row = AnomalyFlag(
            entity_type=entity_type,
            entity_id=entity_id,
            anomaly_type=anomaly_type,
            severity=severity,
            description=description,
            payload=payload,
        )
        self.session.add(row)
        await self.session.flush()
        return row

    async def get_or_create_chat_session(self, user_id: UUID, session_id: Optional[UUID] = None) -> ChatSession:
        if session_id is not None:
            result = await self.session.execute(
                select(ChatSession).where(ChatSession.id == session_id, ChatSession.user_id == user_id)
            )
            existing = result.scalar_one_or_none()
            if existing:
                return existing
        chat = ChatSession(user_id=user_id)
        self.session.add(chat)
        await self.session.flush()
        return chat

    async def add_chat_message(self, session_id: UUID, role: str, content: str) -> ChatMessage:
        row = ChatMessage(session_id=session_id, role=role, content=content)
        self.session.add(row)
        await self.session.flush()
        return row
