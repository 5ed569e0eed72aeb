from typing import Optional, Dict, Any
import uuid

from sqlalchemy.ext.asyncio import AsyncSession

from app.models.audit_log import AuditLog


class AuditService:
    """
    Audit trail for promoter assignment changes.
    Rows are flushed with the caller's transaction and committed by the caller.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def log(
        self,
        action: str,
        entity_type: str,
        entity_id: Optional[uuid.UUID] = None,
        user_id: Optional[uuid.UUID] = None,
        old_values: Optional[Dict[str, Any]] = None,
        new_values: Optional[Dict[str, Any]] = None,
        description: Optional[str] = None,
    ) -> AuditLog:
        """
        Create an audit log entry.

        Args:
            action: The action performed (PROMOTER_ASSIGNED, PROMOTER_UNASSIGNED, ...)
            entity_type: Type of entity (EVENT_PROMOTER, ...)
            entity_id: ID of the affected entity
            user_id: ID of the user performing the action
            old_values: Previous values (for deletes/updates), JSON-safe
            new_values: New values (for creates/updates), JSON-safe
            description: Human-readable description

        Returns:
            The created AuditLog entry
        """
        audit_log = AuditLog(
            action=action,
            entity_type=entity_type,
            entity_id=entity_id,
            user_id=user_id,
            old_values=old_values,
            new_values=new_values,
            description=description,
        )
        self.db.add(audit_log)
        await self.db.flush()
        return audit_log
