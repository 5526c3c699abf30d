"""
Repository for moderation queue operations
"""
from datetime import date, datetime, time, timedelta

from src.db.base import Database, db, to_db_timestamp, utc_now
from src.models.entities import ModerationQueueItem, ModerationStatus, Severity

QUEUE_COLUMNS = """
    id, message_id, fan_id, content, flag_reason, severity,
    status, reviewed_by, reviewed_at, created_at
"""


class ModerationRepository:
    """Repository for moderation queue database operations"""

    def __init__(self, database: Database | None = None):
        self.db = database or db

    async def create(
        self,
        content: str,
        flag_reason: str,
        severity: Severity,
        fan_id: str | None = None,
        message_id: str | None = None,
    ) -> ModerationQueueItem:
        """Store a flagged item; always starts as pending"""
        item_id = self.db.generate_uuid()

        query = """
            INSERT INTO moderation_queue (
                id, message_id, fan_id, content, flag_reason, severity, status, created_at
            )
            VALUES ($1, $2, $3, $4, $5, $6, 'pending', $7)
        """

        await self.db.execute(
            query,
            item_id,
            message_id,
            fan_id,
            content,
            flag_reason,
            severity.value,
            to_db_timestamp(utc_now()),
        )

        return await self.get_by_id(item_id)

    async def get_by_id(self, item_id: str) -> ModerationQueueItem | None:
        """Get queue item by ID"""
        query = f"SELECT {QUEUE_COLUMNS} FROM moderation_queue WHERE id = $1"
        row = await self.db.fetchone(query, item_id)
        return self._row_to_item(row) if row else None

    async def list_items(self, status: ModerationStatus | None = None) -> list[ModerationQueueItem]:
        """List queue items newest first, optionally filtered by status"""
        if status:
            query = f"""
                SELECT {QUEUE_COLUMNS}
                FROM moderation_queue
                WHERE status = $1
                ORDER BY created_at DESC, rowid DESC
            """
            rows = await self.db.fetch(query, status.value)
        else:
            query = f"""
                SELECT {QUEUE_COLUMNS}
                FROM moderation_queue
                ORDER BY created_at DESC, rowid DESC
            """
            rows = await self.db.fetch(query)

        return [self._row_to_item(row) for row in rows]

    async def resolve(
        self,
        item_id: str,
        status: ModerationStatus,
        reviewer_id: str,
    ) -> ModerationQueueItem | None:
        """
        Apply a review decision to a pending item

        The status check and the write are one conditional UPDATE, so two
        reviewers racing on the same item cannot both succeed.

        Returns:
            Updated item, or None if no pending item with this ID exists
        """
        query = """
            UPDATE moderation_queue
            SET status = $1, reviewed_by = $2, reviewed_at = $3
            WHERE id = $4 AND status = 'pending'
        """
        affected = await self.db.execute(
            query, status.value, reviewer_id, to_db_timestamp(utc_now()), item_id
        )
        if not affected:
            return None
        return await self.get_by_id(item_id)

    async def counts_by_status(self, day: date) -> dict[ModerationStatus, int]:
        """Count items created on a UTC day, grouped by status"""
        start = datetime.combine(day, time.min)
        end = start + timedelta(days=1)
        query = """
            SELECT status, COUNT(*) AS total
            FROM moderation_queue
            WHERE created_at >= $1 AND created_at < $2
            GROUP BY status
        """
        rows = await self.db.fetch(query, to_db_timestamp(start), to_db_timestamp(end))

        counts = dict.fromkeys(ModerationStatus, 0)
        for row in rows:
            counts[ModerationStatus(row["status"])] = row["total"]
        return counts

    async def compliance_counts(self) -> tuple[int, int, int]:
        """
        Count the whole queue for scoring

        Returns:
            Tuple of (total items, items resolved as blocked, critical-severity items)
        """
        query = """
            SELECT
                COUNT(*) AS total,
                COALESCE(SUM(CASE WHEN status = 'blocked' THEN 1 ELSE 0 END), 0) AS blocked,
                COALESCE(SUM(CASE WHEN severity = 'critical' THEN 1 ELSE 0 END), 0) AS critical
            FROM moderation_queue
        """
        row = await self.db.fetchone(query)
        if not row:
            return 0, 0, 0
        return row["total"], row["blocked"], row["critical"]

    def _row_to_item(self, row) -> ModerationQueueItem:
        """Convert database row to ModerationQueueItem model"""
        return ModerationQueueItem(
            id=row["id"],
            message_id=row["message_id"],
            fan_id=row["fan_id"],
            content=row["content"],
            flag_reason=row["flag_reason"],
            severity=Severity(row["severity"]),
            status=ModerationStatus(row["status"]),
            reviewed_by=row["reviewed_by"],
            reviewed_at=row["reviewed_at"],
            created_at=row["created_at"],
        )
