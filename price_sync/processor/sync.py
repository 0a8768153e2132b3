"""
Sync processor for a single store.
"""

import logging
from decimal import Decimal
from typing import Callable, List, Optional, Protocol, Sequence

from ..clients.base import PlatformClient, PlatformClientRegistry
from ..clients.models import PlatformProduct, SourceProduct
from ..db.models import (
    AuditAction, AuditEntry, ProductSyncStatus, Store, SyncOutcome, SyncResult,
    TriggerType, UNLISTED_PRODUCT_ID, utcnow
)
from ..errors import PriceSyncError
from .matcher import MatchedPair, MatchResult, match_products
from .rules import needs_reprice, parse_price

logger = logging.getLogger(__name__)


class SourceClient(Protocol):
    async def fetch_all_products(self) -> List[SourceProduct]:
        ...


Matcher = Callable[[Sequence[SourceProduct], Sequence[PlatformProduct]], MatchResult]


class SyncService:
    """
    Runs one store's sync cycle: fetch, match, diff, update, record.

    Catalogue failures abort the cycle and yield a FAILED result. A failed
    price push only marks that product pending.
    """

    def __init__(
        self,
        source_client: SourceClient,
        platform_clients: PlatformClientRegistry,
        status_repository,
        audit_repository,
        matcher: Matcher = match_products,
    ):
        self.source_client = source_client
        self.platform_clients = platform_clients
        self.status_repository = status_repository
        self.audit_repository = audit_repository
        self.matcher = matcher

    async def sync_store(
        self,
        store: Store,
        triggered_by: TriggerType = TriggerType.SCHEDULER
    ) -> SyncResult:
        """
        Run the complete sync process for a single store.

        Never raises for channel or source failures; the outcome is in the
        returned (and persisted) SyncResult.
        """
        result = SyncResult(store_id=store.id, store_name=store.name, triggered_by=triggered_by)
        logger.info(f"Starting sync for store '{store.name}' ({store.platform.value}, run {result.id})")

        client: Optional[PlatformClient] = None

        try:
            # Step 1: Resolve and authenticate the platform client
            client = await self.platform_clients.connect(store)

            # Step 2: Fetch both catalogues
            source_products = await self.source_client.fetch_all_products()
            logger.info(f"Fetched {len(source_products)} source products")

            platform_products = await client.get_all_products()
            logger.info(f"Fetched {len(platform_products)} products from {store.platform.value}")

            # Step 3: Match
            match = self.matcher(source_products, platform_products)
            if match.duplicate_skus:
                logger.warning(
                    f"Ignoring {len(match.duplicate_skus)} duplicate SKUs for store '{store.name}': "
                    f"{', '.join(match.duplicate_skus[:10])}"
                )
            result.matched_count = len(match.matched)

            # Step 4: Record unlisted products
            await self._record_unlisted(store, match, result)

            # Step 5: Push price corrections
            for pair in match.matched:
                await self._sync_pair(store, client, pair, result)

        except PriceSyncError as e:
            self._fail(result, str(e))
            logger.error(f"Sync failed for store '{store.name}': {e}")

        except Exception as e:
            self._fail(result, f"Unexpected error: {e}")
            logger.exception(f"Unexpected error syncing store '{store.name}'")

        finally:
            if client is not None:
                await client.close()

        # Step 6: Aggregate and persist
        result.finished_at = utcnow()
        if result.status != SyncOutcome.FAILED:
            result.status = SyncOutcome.PARTIAL if result.pending_count else SyncOutcome.SUCCESS

        # A store deleted mid-cycle fails these writes on its foreign key
        try:
            await self.audit_repository.log(AuditEntry(
                store_id=store.id,
                action=AuditAction.SYNC_FAILED if result.status == SyncOutcome.FAILED else AuditAction.SYNC_COMPLETED,
                timestamp=result.finished_at,
                detail=self._summary(result),
            ))
            await self.status_repository.save_sync_result(store.id, result)
        except Exception:
            logger.exception(f"Failed to record sync result {result.id} for store '{store.name}'")

        logger.info(f"Sync finished for store '{store.name}': {self._summary(result)}")
        return result

    async def _record_unlisted(self, store: Store, match: MatchResult, result: SyncResult) -> None:
        await self.status_repository.clear_unlisted(
            store.id, [pair.source_product.id for pair in match.matched]
        )

        for product in match.unlisted:
            await self.status_repository.update_product_status(
                store.id,
                UNLISTED_PRODUCT_ID,
                product.id,
                product.sku,
                ProductSyncStatus.UNLISTED,
                utcnow(),
                product.price,
            )
            result.unlisted_count += 1

    async def _sync_pair(
        self,
        store: Store,
        client: PlatformClient,
        pair: MatchedPair,
        result: SyncResult
    ) -> None:
        """Evaluate one matched pair and push the source price if it drifted."""
        source = pair.source_product
        unit = pair.platform_product
        current_price = parse_price(unit.price)
        target_price: Decimal = source.price

        if not needs_reprice(current_price, target_price):
            result.unchanged_count += 1
            return

        await self.audit_repository.log(AuditEntry(
            store_id=store.id,
            action=AuditAction.PRICE_UPDATE_ATTEMPTED,
            product_id=unit.unit_id,
            old_value=unit.price,
            new_value=str(target_price),
            detail=f"SKU {source.sku}: pushing StreetPricer price from product {source.id}",
        ))

        try:
            await client.update_product_price(unit.id, unit.variant_id, target_price)
        except Exception as e:
            message = str(e) or e.__class__.__name__
            if isinstance(e, PriceSyncError):
                logger.warning(f"Failed to update {unit.unit_id} (SKU {source.sku}): {message}")
            else:
                logger.exception(f"Unexpected error updating {unit.unit_id} (SKU {source.sku})")

            await self.status_repository.update_product_status(
                store.id,
                unit.unit_id,
                source.id,
                source.sku,
                ProductSyncStatus.PENDING,
                utcnow(),
                target_price,
                current_price=current_price,
                error_message=message,
            )
            await self.audit_repository.log(AuditEntry(
                store_id=store.id,
                action=AuditAction.PRICE_UPDATE_FAILED,
                product_id=unit.unit_id,
                old_value=unit.price,
                new_value=str(target_price),
                detail=message,
            ))
            result.pending_count += 1
            return

        await self.status_repository.update_product_status(
            store.id,
            unit.unit_id,
            source.id,
            source.sku,
            ProductSyncStatus.REPRICED,
            utcnow(),
            target_price,
            current_price=target_price,
        )
        await self.audit_repository.log(AuditEntry(
            store_id=store.id,
            action=AuditAction.PRICE_UPDATED,
            product_id=unit.unit_id,
            old_value=unit.price,
            new_value=str(target_price),
            detail=f"SKU {source.sku}: updated from {unit.price or 'none'} to {target_price}",
        ))
        result.repriced_count += 1
        logger.debug(f"Repriced {unit.unit_id} (SKU {source.sku}) to {target_price}")

    @staticmethod
    def _fail(result: SyncResult, message: str) -> None:
        result.status = SyncOutcome.FAILED
        result.error_message = message

    @staticmethod
    def _summary(result: SyncResult) -> str:
        if result.status == SyncOutcome.FAILED:
            return f"failed: {result.error_message}"
        return (
            f"{result.status.value}: {result.matched_count} matched, "
            f"{result.repriced_count} repriced, {result.pending_count} pending, "
            f"{result.unlisted_count} unlisted, {result.unchanged_count} unchanged"
        )
