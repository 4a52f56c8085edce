"""Public community lookup."""

from typing import Annotated, Any, Dict, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_async_session as get_session
from app.core.exceptions import NotFoundError, ValidationError
from app.repositories.community_repository import CommunityRepository

router = APIRouter()


class ValidateCodeRequest(BaseModel):
    code: Optional[str] = None


@router.post(
    "/validate-code",
    summary="Validate a community join code",
    description="Codes are matched case-insensitively",
    operation_id="validate_community_code",
)
async def validate_code(
    payload: ValidateCodeRequest,
    db_session: Annotated[AsyncSession, Depends(get_session)],
) -> Dict[str, Any]:
    if not payload.code or not payload.code.strip():
        raise ValidationError("Community code is required")

    community = await CommunityRepository(db_session).get_by_code(payload.code)
    if not community:
        raise NotFoundError("Invalid community code")

    return {
        "valid": True,
        "community": {"id": str(community.id), "name": community.name, "code": community.code},
    }
