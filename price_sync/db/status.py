"""
Product status and sync history repository.
"""

from datetime import datetime
from decimal import Decimal
from typing import Dict, Iterable, List, Optional

import aiosqlite

from .models import (
    ProductStatus, ProductSyncStatus, SyncOutcome, SyncResult, TriggerType,
    UNLISTED_PRODUCT_ID
)
from .sqlite import SQLiteDatabase, parse_timestamp


def _price_to_text(value: Optional[Decimal]) -> Optional[str]:
    return str(value) if value is not None else None


def _text_to_price(value: Optional[str]) -> Optional[Decimal]:
    return Decimal(value) if value is not None else None


class StatusRepository:
    """Persists one status record per (store, platform unit, source product) key."""

    def __init__(self, db: SQLiteDatabase):
        self._db = db

    def _row_to_status(self, row: aiosqlite.Row) -> ProductStatus:
        return ProductStatus(
            store_id=row["store_id"],
            platform_product_id=row["platform_product_id"],
            source_product_id=row["source_product_id"],
            sku=row["sku"],
            status=ProductSyncStatus(row["status"]),
            current_price=_text_to_price(row["current_price"]),
            target_price=Decimal(row["target_price"]),
            last_attempt_at=parse_timestamp(row["last_attempt_at"]),
            last_success_at=parse_timestamp(row["last_success_at"]),
            error_message=row["error_message"],
        )

    def _row_to_result(self, row: aiosqlite.Row) -> SyncResult:
        return SyncResult(
            id=row["id"],
            store_id=row["store_id"],
            store_name=row["store_name"],
            status=SyncOutcome(row["status"]),
            triggered_by=TriggerType(row["triggered_by"]),
            started_at=parse_timestamp(row["started_at"]),
            finished_at=parse_timestamp(row["finished_at"]),
            matched_count=row["matched_count"],
            repriced_count=row["repriced_count"],
            pending_count=row["pending_count"],
            unlisted_count=row["unlisted_count"],
            unchanged_count=row["unchanged_count"],
            error_message=row["error_message"],
        )

    # ===== Product Status =====

    async def update_product_status(
        self,
        store_id: str,
        platform_product_id: str,
        source_product_id: str,
        sku: str,
        status: ProductSyncStatus,
        timestamp: datetime,
        target_price: Decimal,
        current_price: Optional[Decimal] = None,
        error_message: Optional[str] = None,
    ) -> None:
        """
        Upsert the status record for a key.

        Re-marking an already unlisted product with the same target price
        leaves the row untouched. last_success_at survives failed attempts.
        """
        last_success = timestamp.isoformat() if status == ProductSyncStatus.REPRICED else None

        conn = await self._db.get_connection()
        await conn.execute(
            """
            INSERT INTO product_status (
                store_id, platform_product_id, source_product_id, sku, status,
                current_price, target_price, last_attempt_at, last_success_at, error_message
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(store_id, platform_product_id, source_product_id) DO UPDATE SET
                sku = excluded.sku,
                status = excluded.status,
                current_price = excluded.current_price,
                target_price = excluded.target_price,
                last_attempt_at = excluded.last_attempt_at,
                last_success_at = COALESCE(excluded.last_success_at, product_status.last_success_at),
                error_message = excluded.error_message
            WHERE excluded.status != 'unlisted'
                OR product_status.status != 'unlisted'
                OR product_status.target_price != excluded.target_price
            """,
            (
                store_id,
                platform_product_id,
                source_product_id,
                sku,
                status.value,
                _price_to_text(current_price),
                _price_to_text(target_price),
                timestamp.isoformat(),
                last_success,
                error_message,
            )
        )
        await conn.commit()

    async def clear_unlisted(self, store_id: str, source_product_ids: Iterable[str]) -> int:
        """Remove unlisted rows for source products that are now matched."""
        ids = list(source_product_ids)
        if not ids:
            return 0

        conn = await self._db.get_connection()
        removed = 0
        for source_product_id in ids:
            cursor = await conn.execute(
                """
                DELETE FROM product_status
                WHERE store_id = ? AND platform_product_id = ? AND source_product_id = ?
                """,
                (store_id, UNLISTED_PRODUCT_ID, source_product_id)
            )
            removed += cursor.rowcount
        await conn.commit()
        return removed

    async def get_product_status(
        self,
        store_id: str,
        platform_product_id: str,
        source_product_id: str,
    ) -> Optional[ProductStatus]:
        conn = await self._db.get_connection()
        cursor = await conn.execute(
            """
            SELECT * FROM product_status
            WHERE store_id = ? AND platform_product_id = ? AND source_product_id = ?
            """,
            (store_id, platform_product_id, source_product_id)
        )
        row = await cursor.fetchone()
        return self._row_to_status(row) if row else None

    async def get_product_statuses(
        self,
        store_id: str,
        status: Optional[ProductSyncStatus] = None,
    ) -> List[ProductStatus]:
        conn = await self._db.get_connection()

        query = "SELECT * FROM product_status WHERE store_id = ?"
        params: list = [store_id]

        if status:
            query += " AND status = ?"
            params.append(status.value)

        query += " ORDER BY last_attempt_at DESC, sku"

        cursor = await conn.execute(query, params)
        rows = await cursor.fetchall()
        return [self._row_to_status(row) for row in rows]

    async def get_status_counts(self, store_id: str) -> Dict[str, int]:
        conn = await self._db.get_connection()
        cursor = await conn.execute(
            "SELECT status, COUNT(*) AS count FROM product_status WHERE store_id = ? GROUP BY status",
            (store_id,)
        )
        rows = await cursor.fetchall()
        counts = {status.value: 0 for status in ProductSyncStatus}
        for row in rows:
            counts[row["status"]] = row["count"]
        return counts

    # ===== Sync History =====

    async def save_sync_result(self, store_id: str, result: SyncResult) -> None:
        conn = await self._db.get_connection()
        await conn.execute(
            """
            INSERT INTO sync_history (id, store_id, store_name, status, triggered_by,
                                      started_at, finished_at, matched_count, repriced_count,
                                      pending_count, unlisted_count, unchanged_count, error_message)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                result.id,
                store_id,
                result.store_name,
                result.status.value,
                result.triggered_by.value,
                result.started_at.isoformat(),
                result.finished_at.isoformat() if result.finished_at else None,
                result.matched_count,
                result.repriced_count,
                result.pending_count,
                result.unlisted_count,
                result.unchanged_count,
                result.error_message,
            )
        )
        await conn.commit()

    async def get_sync_history(
        self,
        store_id: Optional[str] = None,
        limit: int = 50,
        offset: int = 0
    ) -> List[SyncResult]:
        conn = await self._db.get_connection()

        query = "SELECT * FROM sync_history WHERE 1=1"
        params: list = []

        if store_id:
            query += " AND store_id = ?"
            params.append(store_id)

        query += " ORDER BY started_at DESC LIMIT ? OFFSET ?"
        params.extend([limit, offset])

        cursor = await conn.execute(query, params)
        rows = await cursor.fetchall()
        return [self._row_to_result(row) for row in rows]

    async def get_latest_sync_result(self, store_id: str) -> Optional[SyncResult]:
        history = await self.get_sync_history(store_id, limit=1)
        return history[0] if history else None

    async def get_sync_result(self, result_id: str) -> Optional[SyncResult]:
        conn = await self._db.get_connection()
        cursor = await conn.execute("SELECT * FROM sync_history WHERE id = ?", (result_id,))
        row = await cursor.fetchone()
        return self._row_to_result(row) if row else None
