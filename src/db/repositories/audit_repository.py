"""
Repository for the append-only audit log
"""
import json
from collections.abc import Iterable
from datetime import datetime
from typing import Any

from src.db.base import Database, db, to_db_timestamp, utc_now
from src.models.entities import AuditAction, AuditLogEntry

AUDIT_COLUMNS = """
    id, action, entity_type, entity_id, user_id, fan_id,
    details, ip_address, user_agent, created_at
"""


class AuditLogRepository:
    """Repository for audit log database operations; append is the only write"""

    def __init__(self, database: Database | None = None):
        self.db = database or db

    async def append(
        self,
        action: AuditAction,
        entity_type: str,
        entity_id: str,
        details: dict[str, Any] | None = None,
        user_id: str | None = None,
        fan_id: str | None = None,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> AuditLogEntry:
        """Append an audit entry"""
        entry_id = self.db.generate_uuid()

        query = """
            INSERT INTO audit_logs (
                id, action, entity_type, entity_id, user_id, fan_id,
                details, ip_address, user_agent, created_at
            )
            VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10)
        """

        await self.db.execute(
            query,
            entry_id,
            action.value,
            entity_type,
            entity_id,
            user_id,
            fan_id,
            json.dumps(details or {}, default=str),
            ip_address,
            user_agent,
            to_db_timestamp(utc_now()),
        )

        row = await self.db.fetchone(f"SELECT {AUDIT_COLUMNS} FROM audit_logs WHERE id = $1", entry_id)
        return self._row_to_entry(row)

    async def list_for_entity(
        self,
        entity_type: str | None = None,
        entity_id: str | None = None,
        limit: int = 100,
    ) -> list[AuditLogEntry]:
        """List entries newest first, optionally scoped to an entity type and id"""
        if entity_type and entity_id:
            query = f"""
                SELECT {AUDIT_COLUMNS} FROM audit_logs
                WHERE entity_type = $1 AND entity_id = $2
                ORDER BY created_at DESC, rowid DESC
                LIMIT $3
            """
            rows = await self.db.fetch(query, entity_type, entity_id, limit)
        elif entity_type:
            query = f"""
                SELECT {AUDIT_COLUMNS} FROM audit_logs
                WHERE entity_type = $1
                ORDER BY created_at DESC, rowid DESC
                LIMIT $2
            """
            rows = await self.db.fetch(query, entity_type, limit)
        else:
            query = f"""
                SELECT {AUDIT_COLUMNS} FROM audit_logs
                ORDER BY created_at DESC, rowid DESC
                LIMIT $1
            """
            rows = await self.db.fetch(query, limit)

        return [self._row_to_entry(row) for row in rows]

    async def list_between(self, start: datetime, end: datetime) -> list[AuditLogEntry]:
        """List entries created in [start, end], newest first"""
        query = f"""
            SELECT {AUDIT_COLUMNS} FROM audit_logs
            WHERE created_at >= $1 AND created_at <= $2
            ORDER BY created_at DESC, rowid DESC
        """
        rows = await self.db.fetch(query, to_db_timestamp(start), to_db_timestamp(end))
        return [self._row_to_entry(row) for row in rows]

    async def list_since(self, since: datetime, actions: Iterable[AuditAction]) -> list[AuditLogEntry]:
        """List entries with one of the given actions created at or after `since`"""
        action_values = [action.value for action in actions]
        if not action_values:
            return []

        placeholders = ", ".join(f"${i}" for i in range(2, len(action_values) + 2))
        query = f"""
            SELECT {AUDIT_COLUMNS} FROM audit_logs
            WHERE created_at >= $1 AND action IN ({placeholders})
            ORDER BY created_at DESC, rowid DESC
        """
        rows = await self.db.fetch(query, to_db_timestamp(since), *action_values)
        return [self._row_to_entry(row) for row in rows]

    def _row_to_entry(self, row) -> AuditLogEntry:
        """Convert database row to AuditLogEntry model"""
        details = row["details"]
        if isinstance(details, str):
            details = json.loads(details)

        return AuditLogEntry(
            id=row["id"],
            action=AuditAction(row["action"]),
            entity_type=row["entity_type"],
            entity_id=row["entity_id"],
            user_id=row["user_id"],
            fan_id=row["fan_id"],
            details=details or {},
            ip_address=row["ip_address"],
            user_agent=row["user_agent"],
            created_at=row["created_at"],
        )
