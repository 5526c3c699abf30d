"""
Repository for Message operations
"""
from datetime import datetime

from src.db.base import Database, db, to_db_timestamp, utc_now
from src.models.entities import Message, MessageSender, MessageType, ModerationStatus

MESSAGE_COLUMNS = """
    id, conversation_id, message_type, content, sender,
    moderation_status, scheduled_at, sent_at, created_at
"""


class MessageRepository:
    """Repository for message database operations"""

    def __init__(self, database: Database | None = None):
        self.db = database or db

    async def create(
        self,
        conversation_id: str,
        sender: MessageSender,
        content: str,
        message_type: MessageType = MessageType.TEXT,
        sent_at: datetime | None = None,
        scheduled_at: datetime | None = None,
    ) -> Message:
        """Append a message to a conversation"""
        message_id = self.db.generate_uuid()

        query = """
            INSERT INTO messages (
                id, conversation_id, message_type, content, sender,
                moderation_status, scheduled_at, sent_at, created_at
            )
            VALUES ($1, $2, $3, $4, $5, 'approved', $6, $7, $8)
        """

        await self.db.execute(
            query,
            message_id,
            conversation_id,
            message_type.value,
            content,
            sender.value,
            to_db_timestamp(scheduled_at) if scheduled_at else None,
            to_db_timestamp(sent_at) if sent_at else None,
            to_db_timestamp(utc_now()),
        )

        return await self.get_by_id(message_id)

    async def get_by_id(self, message_id: str) -> Message | None:
        """Get message by ID"""
        query = f"SELECT {MESSAGE_COLUMNS} FROM messages WHERE id = $1"
        row = await self.db.fetchone(query, message_id)
        return self._row_to_message(row) if row else None

    async def get_recent_for_context(self, conversation_id: str, limit: int = 10) -> list[Message]:
        """Get recent messages for AI context (ordered oldest to newest)"""
        query = f"""
            SELECT {MESSAGE_COLUMNS}
            FROM messages
            WHERE conversation_id = $1
            ORDER BY created_at DESC, rowid DESC
            LIMIT $2
        """

        rows = await self.db.fetch(query, conversation_id, limit)
        return [self._row_to_message(row) for row in reversed(rows)]

    async def count_by_conversation(self, conversation_id: str) -> int:
        """Count messages in a conversation"""
        query = "SELECT COUNT(*) FROM messages WHERE conversation_id = $1"
        return await self.db.fetchval(query, conversation_id)

    async def update_moderation_status(self, message_id: str, status: ModerationStatus) -> bool:
        """Retroactively set a message's moderation status (the only mutable field)"""
        query = "UPDATE messages SET moderation_status = $1 WHERE id = $2"
        return await self.db.execute(query, status.value, message_id) > 0

    def _row_to_message(self, row) -> Message:
        """Convert database row to Message model"""
        return Message(
            id=row["id"],
            conversation_id=row["conversation_id"],
            sender=MessageSender(row["sender"]),
            content=row["content"],
            message_type=MessageType(row["message_type"]),
            moderation_status=ModerationStatus(row["moderation_status"]),
            scheduled_at=row["scheduled_at"],
            sent_at=row["sent_at"],
            created_at=row["created_at"],
        )
