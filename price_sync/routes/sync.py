"""
Sync trigger API routes.
"""

import asyncio
from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from typing import Optional

from ..dependencies import get_db, get_scheduler, require_auth
from ..db import TriggerType

router = APIRouter(prefix="/api/sync", dependencies=[Depends(require_auth)])

# Background run_all tasks, kept referenced until done
_background_tasks = set()


class SyncResponse(BaseModel):
    message: str
    store_id: Optional[str] = None
    success: bool


@router.get("/status")
async def get_sync_status():
    """Scheduler state and in-flight syncs."""
    stores = await get_db().get_stores()
    scheduler_status = get_scheduler().status()
    names = {store.id: store.name for store in stores}

    return {
        "total_stores": len(stores),
        "enabled_stores": len([s for s in stores if s.enabled]),
        "running_syncs": len(scheduler_status["in_flight"]),
        "running_store_names": [names.get(sid, sid) for sid in scheduler_status["in_flight"]],
        "scheduler": scheduler_status,
    }


@router.post("/all", response_model=SyncResponse, status_code=202)
async def sync_all_stores():
    """Trigger sync for all enabled stores."""
    stores = await get_db().get_enabled_stores()

    task = asyncio.create_task(get_scheduler().run_all(TriggerType.MANUAL))
    _background_tasks.add(task)
    task.add_done_callback(_background_tasks.discard)

    return SyncResponse(
        message=f"Sync started for {len(stores)} stores",
        success=True
    )


@router.post("/{store_id}", response_model=SyncResponse, status_code=202)
async def sync_single_store(store_id: str):
    """Trigger sync for a single store."""
    store = await get_db().get_store(store_id)
    if not store:
        raise HTTPException(status_code=404, detail="Store not found")

    if not store.enabled:
        raise HTTPException(status_code=400, detail="Store is disabled")

    if get_scheduler().trigger(store_id) is None:
        raise HTTPException(status_code=409, detail=f"Sync already running for '{store.name}'")

    return SyncResponse(
        message=f"Sync started for '{store.name}'",
        store_id=store_id,
        success=True
    )
