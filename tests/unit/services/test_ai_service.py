import pytest
from types import SimpleNamespace
from unittest.mock import AsyncMock
from uuid import uuid4

from app.core.security import text_hash
from app.services.ai_service import (
    CLASSIFY_CONFIDENCE,
    DEFAULT_CHAT_REPLY,
    AiService,
    chat_reply,
    classify_text,
    detect_anomalies,
    score_sentiment,
)


class TestHeuristics:
    def test_classify_maintenance(self):
        assert classify_text("The street light is broken, please repair it") == "maintenance"

    def test_classify_governance(self):
        assert classify_text("Next budget meeting agenda") == "governance"

    def test_classify_tie_goes_to_governance(self):
        assert classify_text("water policy") == "governance"

    def test_classify_other(self):
        assert classify_text("Lovely weather today") == "other"

    def test_sentiment_sign(self):
        assert score_sentiment("great job, I love it") > 0
        assert score_sentiment("terrible and awful") < 0
        assert score_sentiment("the bus leaves at noon") == 0

    def test_sentiment_is_clamped(self):
        assert score_sentiment("bad bad bad") == -1.0

    def test_voting_spike_is_flagged(self):
        found = detect_anomalies("poll_voting", [{"poll_id": "p1", "votes_per_hour": 120}, {"votes_per_hour": 10}])

        assert len(found) == 1
        assert found[0]["entity_id"] == "p1"
        assert found[0]["type"] == "unusual_voting_pattern"
        assert found[0]["severity"] == "high"

    def test_negative_sentiment_is_flagged(self):
        found = detect_anomalies("complaint_sentiment", [{"sentiment_score": -0.85}], entity_id="c9")

        assert found[0]["severity"] == "medium"
        assert found[0]["entity_id"] == "c9"

    def test_unknown_entity_type_flags_nothing(self):
        assert detect_anomalies("other", [{"votes_per_hour": 500}]) == []

    def test_chat_reply(self):
        assert "Complaints" in chat_reply("How do I submit a complaint?")
        assert chat_reply("hello") == DEFAULT_CHAT_REPLY


@pytest.fixture
def ai_service(mock_session):
    service = AiService(mock_session)
    service.repository = AsyncMock()
    return service


@pytest.mark.asyncio
async def test_classify_computes_then_caches(ai_service):
    ai_service.repository.get_topic.return_value = None

    result = await ai_service.classify("Broken water pipe")

    assert result == {"category": "maintenance", "confidence": CLASSIFY_CONFIDENCE, "cached": False}
    ai_service.repository.save_topic.assert_awaited_once_with(
        text_hash("Broken water pipe"), "maintenance", CLASSIFY_CONFIDENCE
    )


@pytest.mark.asyncio
async def test_classify_second_call_is_cached(ai_service):
    ai_service.repository.get_topic.return_value = SimpleNamespace(category="maintenance", confidence=0.82)

    result = await ai_service.classify("Broken water pipe")

    assert result["cached"] is True
    ai_service.repository.save_topic.assert_not_awaited()


@pytest.mark.asyncio
async def test_sentiment_miss_stores_score(ai_service):
    ai_service.repository.get_sentiment.return_value = None

    result = await ai_service.sentiment("I love this community")

    assert result["cached"] is False
    assert result["sentiment"] > 0
    ai_service.repository.save_sentiment.assert_awaited_once()


@pytest.mark.asyncio
async def test_anomalies_are_persisted(ai_service):
    result = await ai_service.anomalies("poll_voting", {"votes_per_hour": 75}, entity_id="p7")

    assert result["total_flagged"] == 1
    ai_service.repository.save_anomaly.assert_awaited_once()
    assert ai_service.repository.save_anomaly.call_args.kwargs["entity_id"] == "p7"


@pytest.mark.asyncio
async def test_chat_without_user_keeps_no_history(ai_service):
    result = await ai_service.chat("How do polls work?")

    assert result["session_id"] is None
    ai_service.repository.add_chat_message.assert_not_awaited()


@pytest.mark.asyncio
async def test_chat_records_both_turns(ai_service):
    chat_id = uuid4()
    ai_service.repository.get_or_create_chat_session.return_value = SimpleNamespace(id=chat_id)

    result = await ai_service.chat("feedback?", user_id=uuid4())

    assert result["session_id"] == str(chat_id)
    assert ai_service.repository.add_chat_message.await_count == 2
