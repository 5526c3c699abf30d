"""
Repository for Fan operations
"""
import json
from typing import Any

from src.db.base import Database, db, to_db_timestamp, utc_now
from src.models.entities import ConsentStatus, Fan, SpendTier

FAN_COLUMNS = """
    id, x_user_id, handle, display_name, timezone, spend_tier,
    boundaries, consent_status, preferences, created_at, updated_at
"""

# Columns a partial update may touch
UPDATABLE_FIELDS = frozenset({
    "handle",
    "display_name",
    "timezone",
    "spend_tier",
    "boundaries",
    "consent_status",
    "preferences",
})


class FanRepository:
    """Repository for fan database operations"""

    def __init__(self, database: Database | None = None):
        self.db = database or db

    async def create(
        self,
        x_user_id: str,
        handle: str,
        display_name: str | None = None,
        spend_tier: SpendTier = SpendTier.FREE,
        boundaries: list[str] | None = None,
        consent_status: ConsentStatus | None = None,
        preferences: dict[str, Any] | None = None,
    ) -> Fan:
        """Create a new fan"""
        fan_id = self.db.generate_uuid()
        now = to_db_timestamp(utc_now())

        query = """
            INSERT INTO fans (
                id, x_user_id, handle, display_name, spend_tier,
                boundaries, consent_status, preferences, created_at, updated_at
            )
            VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10)
        """

        await self.db.execute(
            query,
            fan_id,
            x_user_id,
            handle,
            display_name,
            spend_tier.value,
            json.dumps(boundaries or []),
            consent_status.model_dump_json() if consent_status else None,
            json.dumps(preferences or {}),
            now,
            now,
        )

        return await self.get_by_id(fan_id)

    async def get_by_id(self, fan_id: str) -> Fan | None:
        """Get fan by ID"""
        query = f"SELECT {FAN_COLUMNS} FROM fans WHERE id = $1"
        row = await self.db.fetchone(query, fan_id)
        return self._row_to_fan(row) if row else None

    async def get_by_x_user_id(self, x_user_id: str) -> Fan | None:
        """Get fan by external platform user ID"""
        query = f"SELECT {FAN_COLUMNS} FROM fans WHERE x_user_id = $1"
        row = await self.db.fetchone(query, x_user_id)
        return self._row_to_fan(row) if row else None

    async def update(self, fan_id: str, **fields: Any) -> Fan | None:
        """
        Partially update a fan

        Only the named columns are written, so updating `boundaries` never
        resets `consent_status` or any other field.

        Returns:
            Updated fan, or None if the fan does not exist
        """
        unknown = set(fields) - UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Cannot update fan fields: {sorted(unknown)}")
        if not fields:
            return await self.get_by_id(fan_id)

        assignments = []
        values = []
        for position, (column, value) in enumerate(fields.items(), start=1):
            assignments.append(f"{column} = ${position}")
            values.append(self._encode(column, value))

        values.append(to_db_timestamp(utc_now()))
        values.append(fan_id)
        query = (
            f"UPDATE fans SET {', '.join(assignments)}, updated_at = ${len(values) - 1} "
            f"WHERE id = ${len(values)}"
        )

        affected = await self.db.execute(query, *values)
        if not affected:
            return None
        return await self.get_by_id(fan_id)

    async def list_by_spend_tier(self, tier: SpendTier) -> list[Fan]:
        """List fans in a spend tier"""
        query = f"SELECT {FAN_COLUMNS} FROM fans WHERE spend_tier = $1 ORDER BY created_at DESC"
        rows = await self.db.fetch(query, tier.value)
        return [self._row_to_fan(row) for row in rows]

    def _encode(self, column: str, value: Any) -> Any:
        """Serialize a field value for storage"""
        if column == "consent_status":
            if value is None:
                return None
            if isinstance(value, ConsentStatus):
                return value.model_dump_json()
            return ConsentStatus.model_validate(value).model_dump_json()
        if column in ("boundaries", "preferences"):
            return json.dumps(value)
        if column == "spend_tier":
            return SpendTier(value).value
        return value

    def _row_to_fan(self, row) -> Fan:
        """Convert database row to Fan model"""
        boundaries = row["boundaries"]
        if isinstance(boundaries, str):
            boundaries = json.loads(boundaries)

        preferences = row["preferences"]
        if isinstance(preferences, str):
            preferences = json.loads(preferences)

        consent_status = row["consent_status"]
        if consent_status:
            consent_status = ConsentStatus.model_validate_json(consent_status)

        return Fan(
            id=row["id"],
            x_user_id=row["x_user_id"],
            handle=row["handle"],
            display_name=row["display_name"],
            timezone=row["timezone"],
            spend_tier=SpendTier(row["spend_tier"]),
            boundaries=boundaries or [],
            consent_status=consent_status or None,
            preferences=preferences or {},
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )
