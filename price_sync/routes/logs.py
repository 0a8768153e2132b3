"""
Audit log and sync history routes.
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import PlainTextResponse

from ..dependencies import get_audit_repository, get_status_repository, require_auth
from ..db import SyncResult

router = APIRouter(prefix="/api/logs", dependencies=[Depends(require_auth)])

PAGE_SIZE = 25


@router.get("")
async def list_audit_entries(
    store_id: Optional[str] = Query(None),
    page: int = Query(1, ge=1)
):
    """Audit entries, newest first."""
    offset = (page - 1) * PAGE_SIZE

    entries = await get_audit_repository().get_entries(
        store_id=store_id,
        limit=PAGE_SIZE + 1,
        offset=offset
    )

    has_next = len(entries) > PAGE_SIZE
    return {
        "entries": entries[:PAGE_SIZE],
        "page": page,
        "has_prev": page > 1,
        "has_next": has_next,
    }


@router.get("/history/{store_id}")
async def sync_history(
    store_id: str,
    page: int = Query(1, ge=1)
):
    """Past sync results for one store."""
    offset = (page - 1) * PAGE_SIZE

    results = await get_status_repository().get_sync_history(
        store_id=store_id,
        limit=PAGE_SIZE + 1,
        offset=offset
    )

    return {
        "results": results[:PAGE_SIZE],
        "page": page,
        "has_prev": page > 1,
        "has_next": len(results) > PAGE_SIZE,
    }


def format_sync_report(result: SyncResult) -> str:
    """Render a sync result as a plain-text report."""
    lines = [
        "=" * 80,
        f"SYNC REPORT: {result.store_name}",
        "=" * 80,
        "",
        f"Result ID:     {result.id}",
        f"Store:         {result.store_name} ({result.store_id})",
        f"Status:        {result.status.value.upper()}",
        f"Triggered By:  {result.triggered_by.value.capitalize()}",
        f"Started:       {result.started_at.strftime('%Y-%m-%d %H:%M:%S')} UTC",
        f"Finished:      {result.finished_at.strftime('%Y-%m-%d %H:%M:%S') + ' UTC' if result.finished_at else 'N/A'}",
    ]

    if result.finished_at:
        duration = (result.finished_at - result.started_at).total_seconds()
        lines.append(f"Duration:      {duration:.1f} seconds")

    lines.extend([
        "",
        "-" * 80,
        "STATISTICS",
        "-" * 80,
        "",
        f"Matched:     {result.matched_count}",
        f"Repriced:    {result.repriced_count}",
        f"Pending:     {result.pending_count}",
        f"Unlisted:    {result.unlisted_count}",
        f"Unchanged:   {result.unchanged_count}",
    ])

    if result.error_message:
        lines.extend([
            "",
            "-" * 80,
            "ERROR DETAILS",
            "-" * 80,
            "",
            f"Message: {result.error_message}",
        ])

    lines.append("")
    lines.append("=" * 80)
    return "\n".join(lines)


@router.get("/results/{result_id}/download", response_class=PlainTextResponse)
async def download_result(result_id: str):
    """Download a sync result as a text file."""
    result = await get_status_repository().get_sync_result(result_id)
    if not result:
        raise HTTPException(status_code=404, detail="Sync result not found")

    safe_name = result.store_name.replace(" ", "_") or result.store_id
    filename = f"sync_report_{safe_name}_{result.started_at.strftime('%Y%m%d_%H%M%S')}.txt"

    return PlainTextResponse(
        content=format_sync_report(result),
        headers={"Content-Disposition": f'attachment; filename="{filename}"'}
    )
