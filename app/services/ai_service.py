"""Keyword based classification, sentiment, anomaly flags and help chat.

These are deterministic heuristics, memoized by the md5 of the input text.
"""

import re
from typing import Any, Dict, List, Optional, Union
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.security import text_hash
from app.repositories.ai_repository import AiRepository
from app.utils.logging import get_logger

LOGGER = get_logger(__name__)

CLASSIFY_CONFIDENCE = 0.82
SENTIMENT_CONFIDENCE = 0.85

MAINTENANCE_KEYWORDS = [
    "repair", "fix", "broken", "maintenance", "water", "electricity", "road", "light", "facility",
]
GOVERNANCE_KEYWORDS = [
    "policy", "rule", "meeting", "decision", "budget", "administration", "governance", "management",
]

POSITIVE_WORDS = [
    "good", "great", "excellent", "amazing", "wonderful", "fantastic", "love", "like", "happy", "satisfied",
]
NEGATIVE_WORDS = [
    "bad", "terrible", "awful", "horrible", "hate", "dislike", "angry", "frustrated", "disappointed",
    "unsatisfied",
]

VOTES_PER_HOUR_LIMIT = 50
VOTES_PER_HOUR_HIGH = 100
SENTIMENT_FLOOR = -0.8
SENTIMENT_HIGH = -0.9

CHAT_REPLIES = [
    (
        ("complaint", "submit"),
        "To submit a complaint, go to the 'Complaints' section in your dashboard and click 'Submit Complaint'. "
        "You can categorize your complaint as Maintenance, Governance, or Other, and provide detailed "
        "information about the issue.",
    ),
    (
        ("poll", "vote"),
        "You can participate in community polls by visiting the 'Voting' section. Active polls will show voting "
        "options, and you can cast your vote if you're a registered community member.",
    ),
    (
        ("admin",),
        "Community administrators manage polls, review complaints, and oversee community activities. They have "
        "access to additional management features like analytics and member management.",
    ),
    (
        ("feedback",),
        "You can share feedback about the community through the 'Feedback' section. Rate your experience from "
        "1-5 stars and optionally add comments.",
    ),
]
DEFAULT_CHAT_REPLY = (
    "I'm here to help with community-related questions! You can ask me about submitting complaints, voting on "
    "polls, providing feedback, or general community information. What would you like to know?"
)


def classify_text(text: str) -> str:
    """Pick maintenance, governance or other by keyword hits."""
    lowered = text.lower()
    maintenance = sum(1 for keyword in MAINTENANCE_KEYWORDS if keyword in lowered)
    governance = sum(1 for keyword in GOVERNANCE_KEYWORDS if keyword in lowered)

    if maintenance > governance and maintenance > 0:
        return "maintenance"
    if governance > 0:
        return "governance"
    return "other"


def score_sentiment(text: str) -> float:
    """Sentiment in [-1, 1] from positive/negative word hits per token."""
    tokens = re.split(r"\s+", text.lower())
    score = 0
    for token in tokens:
        if any(word in token for word in POSITIVE_WORDS):
            score += 1
        if any(word in token for word in NEGATIVE_WORDS):
            score -= 1
    return max(-1.0, min(1.0, score / max(1, len(tokens) / 10)))


def detect_anomalies(
    entity_type: str,
    points: List[Dict[str, Any]],
    entity_id: Optional[str] = None,
) -> List[Dict[str, Any]]:
    """Flag voting spikes and extremely negative complaint sentiment."""
    anomalies = []
    for point in points:
        target = str(point.get("entity_id") or point.get("poll_id") or point.get("complaint_id") or entity_id or "")

        if entity_type == "poll_voting":
            rate = point.get("votes_per_hour")
            if isinstance(rate, (int, float)) and rate > VOTES_PER_HOUR_LIMIT:
                anomalies.append(
                    {
                        "entity_id": target,
                        "type": "unusual_voting_pattern",
                        "severity": "high" if rate > VOTES_PER_HOUR_HIGH else "medium",
                        "details": {
                            "votes_per_hour": rate,
                            "expected_range": "5-25",
                            "timestamp": point.get("timestamp"),
                        },
                    }
                )

        elif entity_type == "complaint_sentiment":
            score = point.get("sentiment_score", point.get("sentiment"))
            if isinstance(score, (int, float)) and score < SENTIMENT_FLOOR:
                anomalies.append(
                    {
                        "entity_id": target,
                        "type": "extreme_negative_sentiment",
                        "severity": "high" if score < SENTIMENT_HIGH else "medium",
                        "details": {
                            "sentiment_score": score,
                            "expected_range": "-0.3 to 0.3",
                            "timestamp": point.get("timestamp"),
                        },
                    }
                )
    return anomalies


def chat_reply(message: str) -> str:
    lowered = message.lower()
    for keywords, reply in CHAT_REPLIES:
        if any(keyword in lowered for keyword in keywords):
            return reply
    return DEFAULT_CHAT_REPLY


class AiService:
    """Memoizing front for the keyword heuristics."""

    def __init__(self, db_session: AsyncSession):
        self.session = db_session
        self.repository = AiRepository(db_session)

    async def _store(self, save, *args) -> None:
        """Cache a result; a concurrent insert of the same hash is not an error."""
        try:
            async with self.session.begin_nested():
                await save(*args)
        except IntegrityError:
            LOGGER.debug(f"Cache row for {args[0]} already written")

    async def classify(self, text: str) -> Dict[str, Any]:
        key = text_hash(text)
        cached = await self.repository.get_topic(key)
        if cached:
            return {"category": cached.category, "confidence": cached.confidence, "cached": True}

        category = classify_text(text)
        await self._store(self.repository.save_topic, key, category, CLASSIFY_CONFIDENCE)
        return {"category": category, "confidence": CLASSIFY_CONFIDENCE, "cached": False}

    async def sentiment(self, text: str) -> Dict[str, Any]:
        key = text_hash(text)
        cached = await self.repository.get_sentiment(key)
        if cached:
            return {"sentiment": cached.sentiment, "confidence": cached.confidence, "cached": True}

        value = score_sentiment(text)
        await self._store(self.repository.save_sentiment, key, value, SENTIMENT_CONFIDENCE)
        return {"sentiment": value, "confidence": SENTIMENT_CONFIDENCE, "cached": False}

    async def anomalies(
        self,
        entity_type: str,
        data: Union[Dict[str, Any], List[Dict[str, Any]]],
        entity_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        points = data if isinstance(data, list) else [data]
        found = detect_anomalies(entity_type, points, entity_id)

        for anomaly in found:
            await self.repository.save_anomaly(
                entity_type=entity_type,
                entity_id=anomaly["entity_id"],
                anomaly_type=anomaly["type"],
                severity=anomaly["severity"],
                description=anomaly["type"].replace("_", " "),
                payload=anomaly["details"],
            )
        if found:
            LOGGER.warning(f"Flagged {len(found)} {entity_type} anomalies")
        return {"anomalies": found, "total_flagged": len(found)}

    async def chat(
        self,
        message: str,
        user_id: Optional[UUID] = None,
        session_id: Optional[UUID] = None,
    ) -> Dict[str, Any]:
        reply = chat_reply(message)
        if user_id is None:
            return {"response": reply, "session_id": None}

        chat = await self.repository.get_or_create_chat_session(user_id, session_id)
        await self.repository.add_chat_message(chat.id, "user", message)
        await self.repository.add_chat_message(chat.id, "assistant", reply)
        return {"response": reply, "session_id": str(chat.id)}
