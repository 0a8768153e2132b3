"""
Tests for the SQLite store, status, history and audit persistence.
"""

import asyncio
from datetime import timedelta
from decimal import Decimal

import pytest

from price_sync.db import (
    AuditAction, AuditEntry, AuditRepository, CredentialCipher, Platform, ProductSyncStatus,
    SQLiteDatabase, StatusRepository, SyncOutcome, SyncResult, TriggerType, generate_encryption_key,
    utcnow
)
from price_sync.errors import ConfigurationError, CredentialError

from fakes import ENCRYPTION_KEY, make_store


@pytest.fixture
def run_with_db(tmp_path):
    """Run a coroutine function against a fresh database file."""
    def runner(fn):
        async def scenario():
            db = SQLiteDatabase(str(tmp_path / "data" / "test.db"), CredentialCipher(ENCRYPTION_KEY))
            await db.initialize()
            try:
                return await fn(db)
            finally:
                await db.close()
        return asyncio.run(scenario())
    return runner


class TestStores:

    def test_create_and_get_round_trip(self, run_with_db):
        store = make_store(
            name="Shopify Outlet",
            platform=Platform.SHOPIFY,
            sync_interval=900,
            credentials={"shop_domain": "outlet.myshopify.com", "access_token": "tok"},
        )

        async def scenario(db):
            await db.create_store(store)
            return await db.get_store(store.id)

        loaded = run_with_db(scenario)

        assert loaded.name == "Shopify Outlet"
        assert loaded.platform == Platform.SHOPIFY
        assert loaded.sync_interval == 900
        assert loaded.enabled is True
        assert loaded.credentials == {"shop_domain": "outlet.myshopify.com", "access_token": "tok"}
        assert loaded.created_at.tzinfo is not None

    def test_update_store(self, run_with_db):
        store = make_store()

        async def scenario(db):
            await db.create_store(store)
            return await db.update_store(store.id, sync_interval=120, enabled=False, ignored="x")

        updated = run_with_db(scenario)

        assert updated.sync_interval == 120
        assert updated.enabled is False
        assert updated.updated_at >= store.updated_at

    def test_enabled_stores(self, run_with_db):
        active = make_store(name="A")
        paused = make_store(name="B", enabled=False)

        async def scenario(db):
            await db.create_store(active)
            await db.create_store(paused)
            return await db.get_enabled_stores(), await db.get_stores()

        enabled, everything = run_with_db(scenario)

        assert [s.id for s in enabled] == [active.id]
        assert [s.name for s in everything] == ["A", "B"]

    def test_delete_removes_related_rows(self, run_with_db):
        store = make_store()

        async def scenario(db):
            status = StatusRepository(db)
            audit = AuditRepository(db)
            await db.create_store(store)
            await status.update_product_status(
                store.id, "101", "sp-1", "SKU1", ProductSyncStatus.REPRICED, utcnow(), Decimal("10.00"),
                current_price=Decimal("10.00"),
            )
            await status.save_sync_result(store.id, SyncResult(store_id=store.id, store_name=store.name))
            await audit.log(AuditEntry(store_id=store.id, action=AuditAction.SYNC_COMPLETED))

            deleted = await db.delete_store(store.id)
            return (
                deleted,
                await db.get_store(store.id),
                await status.get_product_statuses(store.id),
                await status.get_sync_history(store.id),
                await audit.get_entries(store.id),
            )

        deleted, loaded, statuses, history, entries = run_with_db(scenario)

        assert deleted is True
        assert loaded is None
        assert statuses == []
        assert history == []
        assert entries == []


class TestCredentialEncryption:

    def test_credentials_are_not_stored_in_plaintext(self, run_with_db):
        store = make_store(credentials={"url": "shop.example.com", "consumer_key": "ck_live", "consumer_secret": "cs_live"})

        async def scenario(db):
            await db.create_store(store)
            conn = await db.get_connection()
            cursor = await conn.execute("SELECT * FROM stores WHERE id = ?", (store.id,))
            return dict(await cursor.fetchone())

        row = run_with_db(scenario)

        assert "credentials" not in row
        assert "cs_live" not in row["credentials_encrypted"]
        assert len(row["credentials_iv"]) == 24

    def test_updated_credentials_are_re_encrypted(self, run_with_db):
        store = make_store()

        async def scenario(db):
            await db.create_store(store)
            conn = await db.get_connection()
            cursor = await conn.execute("SELECT credentials_iv FROM stores WHERE id = ?", (store.id,))
            before = (await cursor.fetchone())["credentials_iv"]

            updated = await db.update_store(
                store.id, credentials={"url": "shop.example.com", "consumer_key": "ck2", "consumer_secret": "cs2"}
            )
            cursor = await conn.execute("SELECT credentials_iv FROM stores WHERE id = ?", (store.id,))
            after = (await cursor.fetchone())["credentials_iv"]
            return updated, before, after

        updated, before, after = run_with_db(scenario)

        assert updated.credentials["consumer_key"] == "ck2"
        assert before != after

    def test_wrong_key_cannot_read_credentials(self, tmp_path):
        path = str(tmp_path / "stores.db")
        store = make_store()

        async def scenario():
            writer = SQLiteDatabase(path, CredentialCipher(ENCRYPTION_KEY))
            await writer.initialize()
            await writer.create_store(store)
            await writer.close()

            reader = SQLiteDatabase(path, CredentialCipher(generate_encryption_key()))
            try:
                await reader.get_store(store.id)
            finally:
                await reader.close()

        with pytest.raises(CredentialError, match="ENCRYPTION_KEY"):
            asyncio.run(scenario())

    def test_tampered_ciphertext_is_rejected(self):
        cipher = CredentialCipher(ENCRYPTION_KEY)
        encrypted, iv = cipher.encrypt({"access_token": "shpat_1"})
        flipped = ("0" if encrypted[0] != "0" else "1") + encrypted[1:]

        assert cipher.decrypt(encrypted, iv) == {"access_token": "shpat_1"}
        with pytest.raises(CredentialError):
            cipher.decrypt(flipped, iv)

    def test_key_must_be_64_hex_characters(self):
        for key in ("", "abc", "zz" * 32):
            with pytest.raises(ConfigurationError):
                CredentialCipher(key)

        assert len(generate_encryption_key()) == 64


class TestProductStatus:

    def test_upsert_keeps_one_row_per_key(self, run_with_db):
        store = make_store()
        first = utcnow()
        second = first + timedelta(minutes=5)

        async def scenario(db):
            repo = StatusRepository(db)
            await db.create_store(store)
            await repo.update_product_status(
                store.id, "101", "sp-1", "SKU1", ProductSyncStatus.REPRICED, first, Decimal("10.00"),
                current_price=Decimal("10.00"),
            )
            await repo.update_product_status(
                store.id, "101", "sp-1", "SKU1", ProductSyncStatus.PENDING, second, Decimal("11.00"),
                current_price=Decimal("10.00"), error_message="HTTP 503: unavailable",
            )
            return await repo.get_product_statuses(store.id)

        rows = run_with_db(scenario)

        assert len(rows) == 1
        row = rows[0]
        assert row.status == ProductSyncStatus.PENDING
        assert row.target_price == Decimal("11.00")
        assert row.current_price == Decimal("10.00")
        assert row.error_message == "HTTP 503: unavailable"
        assert row.last_attempt_at == second
        # Last success survives the failed attempt
        assert row.last_success_at == first

    def test_re_marking_unlisted_product_is_a_no_op(self, run_with_db):
        store = make_store()
        first = utcnow()
        later = first + timedelta(hours=1)

        async def scenario(db):
            repo = StatusRepository(db)
            await db.create_store(store)
            await repo.update_product_status(
                store.id, "", "sp-1", "SKU1", ProductSyncStatus.UNLISTED, first, Decimal("5.00")
            )
            await repo.update_product_status(
                store.id, "", "sp-1", "SKU1", ProductSyncStatus.UNLISTED, later, Decimal("5.00")
            )
            unchanged = await repo.get_product_status(store.id, "", "sp-1")

            await repo.update_product_status(
                store.id, "", "sp-1", "SKU1", ProductSyncStatus.UNLISTED, later, Decimal("6.00")
            )
            changed = await repo.get_product_status(store.id, "", "sp-1")
            return unchanged, changed

        unchanged, changed = run_with_db(scenario)

        assert unchanged.last_attempt_at == first
        assert changed.last_attempt_at == later
        assert changed.target_price == Decimal("6.00")

    def test_clear_unlisted(self, run_with_db):
        store = make_store()

        async def scenario(db):
            repo = StatusRepository(db)
            await db.create_store(store)
            for source_id in ("sp-1", "sp-2"):
                await repo.update_product_status(
                    store.id, "", source_id, source_id.upper(), ProductSyncStatus.UNLISTED, utcnow(), Decimal("1.00")
                )
            removed = await repo.clear_unlisted(store.id, ["sp-1", "sp-9"])
            return removed, await repo.get_product_statuses(store.id, status=ProductSyncStatus.UNLISTED)

        removed, remaining = run_with_db(scenario)

        assert removed == 1
        assert [r.source_product_id for r in remaining] == ["sp-2"]

    def test_status_counts_cover_every_status(self, run_with_db):
        store = make_store()

        async def scenario(db):
            repo = StatusRepository(db)
            await db.create_store(store)
            await repo.update_product_status(
                store.id, "101", "sp-1", "A", ProductSyncStatus.REPRICED, utcnow(), Decimal("1.00")
            )
            await repo.update_product_status(
                store.id, "102", "sp-2", "B", ProductSyncStatus.REPRICED, utcnow(), Decimal("1.00")
            )
            return await repo.get_status_counts(store.id)

        counts = run_with_db(scenario)

        assert counts == {"repriced": 2, "pending": 0, "unlisted": 0}


class TestSyncHistory:

    def test_results_newest_first(self, run_with_db):
        store = make_store()
        older = SyncResult(store_id=store.id, store_name=store.name, started_at=utcnow() - timedelta(hours=1))
        newer = SyncResult(
            store_id=store.id,
            store_name=store.name,
            status=SyncOutcome.PARTIAL,
            triggered_by=TriggerType.MANUAL,
            matched_count=3,
            repriced_count=1,
            pending_count=1,
            unchanged_count=1,
            finished_at=utcnow(),
        )

        async def scenario(db):
            repo = StatusRepository(db)
            await db.create_store(store)
            await repo.save_sync_result(store.id, older)
            await repo.save_sync_result(store.id, newer)
            return (
                await repo.get_sync_history(store.id),
                await repo.get_latest_sync_result(store.id),
                await repo.get_sync_result(older.id),
            )

        history, latest, loaded = run_with_db(scenario)

        assert [r.id for r in history] == [newer.id, older.id]
        assert latest.status == SyncOutcome.PARTIAL
        assert latest.triggered_by == TriggerType.MANUAL
        assert latest.matched_count == 3
        assert loaded.id == older.id


class TestAuditLog:

    def test_entries_newest_first_and_filtered(self, run_with_db):
        first = make_store(name="A")
        second = make_store(name="B")
        now = utcnow()

        async def scenario(db):
            audit = AuditRepository(db)
            await db.create_store(first)
            await db.create_store(second)
            await audit.log(AuditEntry(
                store_id=first.id, action=AuditAction.PRICE_UPDATED, timestamp=now - timedelta(seconds=5),
                product_id="101", old_value="12.00", new_value="10.00", detail="SKU1",
            ))
            await audit.log(AuditEntry(store_id=first.id, action=AuditAction.SYNC_COMPLETED, timestamp=now))
            await audit.log(AuditEntry(store_id=second.id, action=AuditAction.SYNC_FAILED, timestamp=now))
            return await audit.get_entries(store_id=first.id), await audit.get_entries(limit=1)

        entries, limited = run_with_db(scenario)

        assert [e.action for e in entries] == [AuditAction.SYNC_COMPLETED, AuditAction.PRICE_UPDATED]
        assert entries[1].old_value == "12.00"
        assert entries[1].new_value == "10.00"
        assert entries[1].id is not None
        assert len(limited) == 1
