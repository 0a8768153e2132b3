"""
Append-only audit log repository.
"""

from typing import List, Optional

from .models import AuditAction, AuditEntry
from .sqlite import SQLiteDatabase, parse_timestamp


class AuditRepository:
    """Appends one immutable entry per sync run and per price action."""

    def __init__(self, db: SQLiteDatabase):
        self._db = db

    async def log(self, entry: AuditEntry) -> None:
        conn = await self._db.get_connection()
        await conn.execute(
            """
            INSERT INTO audit_logs (store_id, action, product_id, old_value, new_value, detail, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (
                entry.store_id,
                entry.action.value,
                entry.product_id,
                entry.old_value,
                entry.new_value,
                entry.detail,
                entry.timestamp.isoformat(),
            )
        )
        await conn.commit()

    async def get_entries(
        self,
        store_id: Optional[str] = None,
        limit: int = 50,
        offset: int = 0
    ) -> List[AuditEntry]:
        conn = await self._db.get_connection()

        query = "SELECT * FROM audit_logs WHERE 1=1"
        params: list = []

        if store_id:
            query += " AND store_id = ?"
            params.append(store_id)

        query += " ORDER BY created_at DESC, id DESC LIMIT ? OFFSET ?"
        params.extend([limit, offset])

        cursor = await conn.execute(query, params)
        rows = await cursor.fetchall()
        return [
            AuditEntry(
                id=row["id"],
                store_id=row["store_id"],
                action=AuditAction(row["action"]),
                timestamp=parse_timestamp(row["created_at"]),
                product_id=row["product_id"],
                old_value=row["old_value"],
                new_value=row["new_value"],
                detail=row["detail"],
            )
            for row in rows
        ]
