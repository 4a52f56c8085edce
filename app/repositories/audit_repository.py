"""Repository for the audit trail."""

from typing import Any, Dict, List, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.database.models import AuditLog
from app.repositories.base_repository import BaseRepository


class AuditRepository(BaseRepository[AuditLog]):
    """Append-only audit log."""

    def __init__(self, session: AsyncSession):
        super().__init__(session, AuditLog)

    async def record(
        self,
        actor_id: Optional[UUID],
        action: str,
        target_table: str,
        target_id: Any = None,
        payload: Optional[Dict[str, Any]] = None,
    ) -> AuditLog:
        return await self.create(
            actor_id=actor_id,
            action=action,
            target_table=target_table,
            target_id=str(target_id) if target_id is not None else None,
            payload=payload,
        )

    async def list_recent(self, limit: int = 50, actor_ids: Optional[List[UUID]] = None) -> List[AuditLog]:
        stmt = select(AuditLog).order_by(AuditLog.created_at.desc()).limit(limit)
        if actor_ids is not None:
            stmt = stmt.where(AuditLog.actor_id.in_(actor_ids))
        result = await self.session.execute(stmt)
        return list(result.scalars().all())
