"""Keyword-based AI helper endpoints."""

from typing import Annotated, Any, Dict, Optional

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import get_current_user_optional
from app.core.database import get_async_session as get_session
from app.schemas.ai import AnomalyRequest, ChatRequest, ClassifyResponse, SentimentResponse, TextRequest
from app.schemas.auth import CurrentUser
from app.services.ai_service import AiService

router = APIRouter()


async def get_ai_service(
    db_session: Annotated[AsyncSession, Depends(get_session)]
) -> AiService:
    return AiService(db_session)


@router.post(
    "/classify",
    response_model=ClassifyResponse,
    summary="Classify text into a complaint topic",
    operation_id="classify_text",
)
async def classify(
    payload: TextRequest,
    ai_service: Annotated[AiService, Depends(get_ai_service)],
) -> Dict[str, Any]:
    return await ai_service.classify(payload.text)


@router.post("/sentiment", response_model=SentimentResponse, operation_id="analyze_sentiment")
async def sentiment(
    payload: TextRequest,
    ai_service: Annotated[AiService, Depends(get_ai_service)],
) -> Dict[str, Any]:
    return await ai_service.sentiment(payload.text)


@router.post("/anomaly", operation_id="detect_anomalies")
async def anomaly(
    payload: AnomalyRequest,
    ai_service: Annotated[AiService, Depends(get_ai_service)],
) -> Dict[str, Any]:
    return await ai_service.anomalies(payload.entity_type, payload.data, payload.entity_id)


@router.post("/chat", operation_id="help_chat")
async def chat(
    payload: ChatRequest,
    ai_service: Annotated[AiService, Depends(get_ai_service)],
    current_user: Annotated[Optional[CurrentUser], Depends(get_current_user_optional)],
) -> Dict[str, Any]:
    """Canned help replies; signed-in conversations are stored."""
    user_id = current_user.id if current_user else None
    return await ai_service.chat(payload.message, user_id=user_id, session_id=payload.session_id)
