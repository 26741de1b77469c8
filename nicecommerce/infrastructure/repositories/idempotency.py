"""
  Idempotency key store

  Maps a client-supplied key to the resource it created, per resource type.
  A row counts only while `expires_at` is in the future. A live row is never
  replaced, so the API and the idempotency-keys consumer can both record the
  same key; an expired row is taken over by the next write.
"""
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from nicecommerce.infrastructure.database import Database


@dataclass
class IdempotencyRecord:
    idempotency_key: str
    resource_type: str
    resource_id: str
    expires_at: datetime
    created_at: Optional[datetime] = None


class IdempotencyKeyRepository:
    def __init__(self, db: Database):
        self._db = db

    async def find_live(self, key: str, resource_type: str,
                        now: Optional[datetime] = None) -> Optional[IdempotencyRecord]:
        async with self._db.connection() as conn:
            row = await conn.fetchrow(
                """
                SELECT idempotency_key, resource_type, resource_id, expires_at, created_at
                FROM idempotency_keys
                WHERE idempotency_key = $1 AND resource_type = $2 AND expires_at > $3
                """,
                key, resource_type, now or datetime.now(timezone.utc),
            )
        if row is None:
            return None
        return IdempotencyRecord(**dict(row))

    async def save_if_absent(self, record: IdempotencyRecord, conn=None) -> bool:
        """Returns True when the record was written (new key or expired row)."""
        async with self._db.connection(conn) as c:
            status = await c.execute(
                """
                INSERT INTO idempotency_keys (idempotency_key, resource_type, resource_id, expires_at)
                VALUES ($1, $2, $3, $4)
                ON CONFLICT (idempotency_key, resource_type) DO UPDATE SET
                    resource_id = EXCLUDED.resource_id,
                    expires_at = EXCLUDED.expires_at,
                    created_at = NOW()
                WHERE idempotency_keys.expires_at <= NOW()
                """,
                record.idempotency_key, record.resource_type, record.resource_id,
                record.expires_at,
            )
        return status.endswith(" 1")

    async def delete_expired(self, now: Optional[datetime] = None) -> int:
        async with self._db.connection() as conn:
            status = await conn.execute(
                "DELETE FROM idempotency_keys WHERE expires_at <= $1",
                now or datetime.now(timezone.utc),
            )
        return int(status.split()[-1])
