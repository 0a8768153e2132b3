"""
SQLite database implementation.
Owns the connection, the schema and store configuration. Status and audit
repositories share this connection.
"""

import aiosqlite
from datetime import datetime, timezone
from typing import List, Optional
import os

from .crypto import CredentialCipher
from .models import Platform, Store, utcnow


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    """Parse a stored ISO timestamp, assuming UTC for naive values."""
    if not value:
        return None
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class SQLiteDatabase:
    """SQLite database holding stores, product status, sync history and audit logs."""

    def __init__(self, db_path: str, cipher: CredentialCipher):
        self.db_path = db_path
        self.cipher = cipher
        self._connection: Optional[aiosqlite.Connection] = None

    async def get_connection(self) -> aiosqlite.Connection:
        """Get or create database connection."""
        if self._connection is None:
            if self.db_path != ":memory:":
                os.makedirs(os.path.dirname(self.db_path) or ".", exist_ok=True)
            self._connection = await aiosqlite.connect(self.db_path)
            self._connection.row_factory = aiosqlite.Row
            await self._connection.execute("PRAGMA foreign_keys = ON")
        return self._connection

    async def initialize(self) -> None:
        """Create database tables."""
        conn = await self.get_connection()

        await conn.executescript("""
            CREATE TABLE IF NOT EXISTS stores (
                id TEXT PRIMARY KEY,
                name TEXT NOT NULL,
                platform TEXT NOT NULL CHECK(platform IN ('woocommerce', 'shopify')),
                credentials_encrypted TEXT NOT NULL,
                credentials_iv TEXT NOT NULL,
                sync_interval INTEGER NOT NULL DEFAULT 3600,
                enabled INTEGER NOT NULL DEFAULT 1,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL
            );

            CREATE TABLE IF NOT EXISTS product_status (
                store_id TEXT NOT NULL,
                platform_product_id TEXT NOT NULL,
                source_product_id TEXT NOT NULL,
                sku TEXT NOT NULL,
                status TEXT NOT NULL CHECK(status IN ('repriced', 'pending', 'unlisted')),
                current_price TEXT,
                target_price TEXT NOT NULL,
                last_attempt_at TEXT NOT NULL,
                last_success_at TEXT,
                error_message TEXT,
                PRIMARY KEY (store_id, platform_product_id, source_product_id),
                FOREIGN KEY (store_id) REFERENCES stores(id) ON DELETE CASCADE
            );

            CREATE TABLE IF NOT EXISTS sync_history (
                id TEXT PRIMARY KEY,
                store_id TEXT NOT NULL,
                store_name TEXT NOT NULL,
                status TEXT NOT NULL CHECK(status IN ('success', 'partial', 'failed')),
                triggered_by TEXT NOT NULL,
                started_at TEXT NOT NULL,
                finished_at TEXT,
                matched_count INTEGER NOT NULL DEFAULT 0,
                repriced_count INTEGER NOT NULL DEFAULT 0,
                pending_count INTEGER NOT NULL DEFAULT 0,
                unlisted_count INTEGER NOT NULL DEFAULT 0,
                unchanged_count INTEGER NOT NULL DEFAULT 0,
                error_message TEXT,
                FOREIGN KEY (store_id) REFERENCES stores(id) ON DELETE CASCADE
            );

            CREATE TABLE IF NOT EXISTS audit_logs (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                store_id TEXT NOT NULL,
                action TEXT NOT NULL,
                product_id TEXT,
                old_value TEXT,
                new_value TEXT,
                detail TEXT NOT NULL DEFAULT '',
                created_at TEXT NOT NULL,
                FOREIGN KEY (store_id) REFERENCES stores(id) ON DELETE CASCADE
            );

            CREATE INDEX IF NOT EXISTS idx_product_status_store ON product_status(store_id, status);
            CREATE INDEX IF NOT EXISTS idx_sync_history_store ON sync_history(store_id, started_at DESC);
            CREATE INDEX IF NOT EXISTS idx_audit_logs_store ON audit_logs(store_id, created_at DESC);
        """)
        await conn.commit()

    async def close(self) -> None:
        """Close database connection."""
        if self._connection:
            await self._connection.close()
            self._connection = None

    # ===== Helper Methods =====

    def _row_to_store(self, row: aiosqlite.Row) -> Store:
        """Convert a database row to a Store model."""
        return Store(
            id=row["id"],
            name=row["name"],
            platform=Platform(row["platform"]),
            credentials=self.cipher.decrypt(row["credentials_encrypted"], row["credentials_iv"]),
            sync_interval=row["sync_interval"],
            enabled=bool(row["enabled"]),
            created_at=parse_timestamp(row["created_at"]),
            updated_at=parse_timestamp(row["updated_at"]),
        )

    # ===== Store Operations =====

    async def get_stores(self) -> List[Store]:
        conn = await self.get_connection()
        cursor = await conn.execute("SELECT * FROM stores ORDER BY name")
        rows = await cursor.fetchall()
        return [self._row_to_store(row) for row in rows]

    async def get_store(self, store_id: str) -> Optional[Store]:
        conn = await self.get_connection()
        cursor = await conn.execute("SELECT * FROM stores WHERE id = ?", (store_id,))
        row = await cursor.fetchone()
        return self._row_to_store(row) if row else None

    async def get_enabled_stores(self) -> List[Store]:
        conn = await self.get_connection()
        cursor = await conn.execute("SELECT * FROM stores WHERE enabled = 1 ORDER BY name")
        rows = await cursor.fetchall()
        return [self._row_to_store(row) for row in rows]

    async def create_store(self, store: Store) -> Store:
        encrypted, iv = self.cipher.encrypt(store.credentials)
        conn = await self.get_connection()
        await conn.execute(
            """
            INSERT INTO stores (id, name, platform, credentials_encrypted, credentials_iv,
                                sync_interval, enabled, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                store.id,
                store.name,
                store.platform.value,
                encrypted,
                iv,
                store.sync_interval,
                int(store.enabled),
                store.created_at.isoformat(),
                store.updated_at.isoformat(),
            )
        )
        await conn.commit()
        return store

    async def update_store(self, store_id: str, **kwargs) -> Optional[Store]:
        if not kwargs:
            return await self.get_store(store_id)

        updates = []
        values = []

        for key, value in kwargs.items():
            if key not in ("name", "sync_interval", "enabled", "credentials"):
                continue
            if key == "credentials":
                encrypted, iv = self.cipher.encrypt(value)
                updates.extend(["credentials_encrypted = ?", "credentials_iv = ?"])
                values.extend([encrypted, iv])
                continue
            updates.append(f"{key} = ?")
            values.append(int(value) if key == "enabled" else value)

        updates.append("updated_at = ?")
        values.append(utcnow().isoformat())
        values.append(store_id)

        conn = await self.get_connection()
        await conn.execute(f"UPDATE stores SET {', '.join(updates)} WHERE id = ?", values)
        await conn.commit()

        return await self.get_store(store_id)

    async def delete_store(self, store_id: str) -> bool:
        conn = await self.get_connection()
        await conn.execute("DELETE FROM product_status WHERE store_id = ?", (store_id,))
        await conn.execute("DELETE FROM sync_history WHERE store_id = ?", (store_id,))
        await conn.execute("DELETE FROM audit_logs WHERE store_id = ?", (store_id,))
        cursor = await conn.execute("DELETE FROM stores WHERE id = ?", (store_id,))
        await conn.commit()
        return cursor.rowcount > 0
