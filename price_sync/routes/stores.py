"""
Store management API routes.
"""

import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from ..clients.shopify import normalize_shop_domain
from ..config import settings
from ..dependencies import (
    get_db, get_platform_clients, get_scheduler, get_status_repository, require_auth
)
from ..db import (
    Platform, ProductStatus, ProductSyncStatus, Store, StoreCreate, StoreUpdate, StoreView
)
from ..errors import PriceSyncError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/stores", dependencies=[Depends(require_auth)])

REQUIRED_CREDENTIALS = {
    Platform.WOOCOMMERCE: ("url", "consumer_key", "consumer_secret"),
    Platform.SHOPIFY: ("shop_domain", "access_token"),
}


def _clean_credentials(platform: Platform, credentials: Dict[str, Any]) -> Dict[str, Any]:
    """Trim values and check the platform's required keys are present."""
    cleaned = {
        key: value.strip() if isinstance(value, str) else value
        for key, value in credentials.items()
    }
    missing = [key for key in REQUIRED_CREDENTIALS[platform] if not cleaned.get(key)]
    if missing:
        raise HTTPException(
            status_code=400,
            detail=f"Missing {platform.value} credentials: {', '.join(missing)}"
        )
    if platform == Platform.SHOPIFY:
        cleaned["shop_domain"] = normalize_shop_domain(cleaned["shop_domain"])
    return cleaned


async def _get_store_or_404(store_id: str) -> Store:
    store = await get_db().get_store(store_id)
    if not store:
        raise HTTPException(status_code=404, detail="Store not found")
    return store


@router.get("", response_model=List[StoreView])
async def list_stores():
    """List all stores."""
    stores = await get_db().get_stores()
    return [StoreView.from_store(store) for store in stores]


@router.post("", response_model=StoreView, status_code=201)
async def create_store(payload: StoreCreate):
    """Register a store and arm its timer."""
    store = Store(
        name=payload.name.strip(),
        platform=payload.platform,
        credentials=_clean_credentials(payload.platform, payload.credentials),
        sync_interval=payload.sync_interval or settings.default_sync_interval,
        enabled=payload.enabled,
    )
    await get_db().create_store(store)
    logger.info(f"Created {store.platform.value} store '{store.name}' ({store.id})")

    await get_scheduler().reconcile()
    return StoreView.from_store(store)


@router.get("/{store_id}", response_model=StoreView)
async def get_store(store_id: str):
    return StoreView.from_store(await _get_store_or_404(store_id))


@router.patch("/{store_id}", response_model=StoreView)
async def update_store(store_id: str, payload: StoreUpdate):
    """Update a store. Interval and enabled changes take effect immediately."""
    store = await _get_store_or_404(store_id)

    update_data = payload.model_dump(exclude_none=True)
    if "name" in update_data:
        update_data["name"] = update_data["name"].strip()
        if not update_data["name"]:
            raise HTTPException(status_code=400, detail="Name cannot be empty")
    if "credentials" in update_data:
        update_data["credentials"] = _clean_credentials(store.platform, update_data["credentials"])

    updated = await get_db().update_store(store_id, **update_data)
    await get_scheduler().reconcile()
    return StoreView.from_store(updated)


@router.delete("/{store_id}", status_code=204)
async def delete_store(store_id: str):
    """Delete a store and everything recorded for it."""
    store = await _get_store_or_404(store_id)
    await get_db().delete_store(store_id)
    logger.info(f"Deleted store '{store.name}' ({store_id})")
    await get_scheduler().reconcile()


@router.post("/{store_id}/test")
async def test_connection(store_id: str):
    """Authenticate against the store's platform without syncing."""
    store = await _get_store_or_404(store_id)

    try:
        client = await get_platform_clients().connect(store)
    except PriceSyncError as e:
        return {"success": False, "error": str(e)}

    await client.close()
    return {"success": True, "error": None}


@router.get("/{store_id}/products", response_model=List[ProductStatus])
async def list_product_statuses(
    store_id: str,
    status: Optional[ProductSyncStatus] = Query(None)
):
    """Per-product sync state, optionally filtered by status."""
    await _get_store_or_404(store_id)
    return await get_status_repository().get_product_statuses(store_id, status=status)


@router.get("/{store_id}/status")
async def store_status(store_id: str):
    """Status counts plus the latest sync result."""
    store = await _get_store_or_404(store_id)
    repository = get_status_repository()

    latest = await repository.get_latest_sync_result(store_id)
    return {
        "store": StoreView.from_store(store),
        "counts": await repository.get_status_counts(store_id),
        "latest_result": latest,
        "sync_in_progress": get_scheduler().is_running(store_id),
    }
