"""
Repository for Conversation operations
"""
from loguru import logger

from src.db.base import Database, DatabaseIntegrityError, db, to_db_timestamp, utc_now
from src.models.entities import Conversation, Sentiment

CONVERSATION_COLUMNS = """
    id, fan_id, persona_id, thread_summary, sentiment,
    last_message_at, is_active, created_at, updated_at
"""


class ConversationRepository:
    """Repository for conversation database operations"""

    def __init__(self, database: Database | None = None):
        self.db = database or db

    async def get_by_id(self, conversation_id: str) -> Conversation | None:
        """Get conversation by ID"""
        query = f"SELECT {CONVERSATION_COLUMNS} FROM conversations WHERE id = $1"
        row = await self.db.fetchone(query, conversation_id)
        return self._row_to_conversation(row) if row else None

    async def get_active(self, fan_id: str, persona_id: str) -> Conversation | None:
        """Get the active conversation between a fan and a persona"""
        query = f"""
            SELECT {CONVERSATION_COLUMNS}
            FROM conversations
            WHERE fan_id = $1 AND persona_id = $2 AND is_active = true
        """
        row = await self.db.fetchone(query, fan_id, persona_id)
        return self._row_to_conversation(row) if row else None

    async def get_or_create(self, fan_id: str, persona_id: str) -> tuple[Conversation, bool]:
        """
        Return the active conversation for the pair, creating it lazily

        Returns:
            Tuple of (Conversation, is_new_conversation)
        """
        existing = await self.get_active(fan_id, persona_id)
        if existing:
            return existing, False

        conversation_id = self.db.generate_uuid()
        now = to_db_timestamp(utc_now())
        query = """
            INSERT INTO conversations (
                id, fan_id, persona_id, thread_summary, sentiment,
                last_message_at, is_active, created_at, updated_at
            )
            VALUES ($1, $2, $3, '', 'neutral', $4, 1, $5, $6)
        """

        try:
            await self.db.execute(query, conversation_id, fan_id, persona_id, now, now, now)
        except DatabaseIntegrityError:
            # Another turn created it first; the partial unique index keeps one active row
            logger.info(f"Conversation for fan {fan_id} / persona {persona_id} created concurrently")
            existing = await self.get_active(fan_id, persona_id)
            if existing:
                return existing, False
            raise

        return await self.get_by_id(conversation_id), True

    async def update_summary_and_sentiment(
        self,
        conversation_id: str,
        sentiment: Sentiment,
        thread_summary: str | None = None,
    ) -> None:
        """Record sentiment, optionally a new summary, and bump last activity"""
        now = to_db_timestamp(utc_now())
        if thread_summary is None:
            query = """
                UPDATE conversations
                SET sentiment = $1, last_message_at = $2, updated_at = $3
                WHERE id = $4
            """
            await self.db.execute(query, sentiment.value, now, now, conversation_id)
            return

        query = """
            UPDATE conversations
            SET sentiment = $1, thread_summary = $2, last_message_at = $3, updated_at = $4
            WHERE id = $5
        """
        await self.db.execute(query, sentiment.value, thread_summary, now, now, conversation_id)

    def _row_to_conversation(self, row) -> Conversation:
        """Convert database row to Conversation model"""
        return Conversation(
            id=row["id"],
            fan_id=row["fan_id"],
            persona_id=row["persona_id"],
            thread_summary=row["thread_summary"] or "",
            sentiment=Sentiment(row["sentiment"]),
            last_message_at=row["last_message_at"],
            is_active=bool(row["is_active"]),
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )
