"""
Repository for Persona operations
"""
import json

from src.db.base import Database, db, to_db_timestamp, utc_now
from src.models.entities import OfferMenuItem, Persona


class PersonaRepository:
    """Repository for persona database operations"""

    def __init__(self, database: Database | None = None):
        self.db = database or db

    async def create(
        self,
        creator_id: str,
        name: str,
        bio: str | None = None,
        voice_keywords: list[str] | None = None,
        do_say: list[str] | None = None,
        dont_say: list[str] | None = None,
        offer_menu: list[OfferMenuItem] | None = None,
        disclosure: str | None = None,
    ) -> Persona:
        """Create a new persona"""
        persona_id = self.db.generate_uuid()
        now = to_db_timestamp(utc_now())

        query = """
            INSERT INTO personas (
                id, creator_id, name, bio, voice_keywords, do_say, dont_say,
                offer_menu, disclosure, is_active, created_at, updated_at
            )
            VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, 1, $10, $11)
        """

        await self.db.execute(
            query,
            persona_id,
            creator_id,
            name,
            bio,
            json.dumps(voice_keywords or []),
            json.dumps(do_say or []),
            json.dumps(dont_say or []),
            json.dumps([item.model_dump() for item in offer_menu or []]),
            disclosure,
            now,
            now,
        )

        return await self.get_by_id(persona_id)

    async def get_by_id(self, persona_id: str) -> Persona | None:
        """Get active persona by ID"""
        query = """
            SELECT
                id, creator_id, name, bio, voice_keywords, do_say, dont_say,
                offer_menu, disclosure, is_active, created_at, updated_at
            FROM personas
            WHERE id = $1 AND is_active = true
        """

        row = await self.db.fetchone(query, persona_id)
        return self._row_to_persona(row) if row else None

    def _row_to_persona(self, row) -> Persona:
        """Convert database row to Persona model"""
        list_fields = {}
        for field in ("voice_keywords", "do_say", "dont_say", "offer_menu"):
            value = row[field]
            if isinstance(value, str):
                try:
                    value = json.loads(value)
                except json.JSONDecodeError:
                    value = []
            list_fields[field] = value if isinstance(value, list) else []

        return Persona(
            id=row["id"],
            creator_id=row["creator_id"],
            name=row["name"],
            bio=row["bio"],
            disclosure=row["disclosure"],
            is_active=bool(row["is_active"]),
            created_at=row["created_at"],
            updated_at=row["updated_at"],
            **list_fields,
        )
