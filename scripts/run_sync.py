#!/usr/bin/env python3
"""
Run one sync cycle for every enabled store and exit.
Cron example: */30 * * * * cd /path/to/price-sync && /path/to/venv/bin/python scripts/run_sync.py

Use this instead of the web server's scheduler, not alongside it: the
single-flight guard only covers one process.
"""

import asyncio
import logging
import sys
import os

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from price_sync.config import settings
from price_sync.db import CredentialCipher, SQLiteDatabase, TriggerType
from price_sync.dependencies import create_sync_service
from price_sync.processor import SyncScheduler

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)

logger = logging.getLogger(__name__)


async def main() -> int:
    logger.info("Starting one-shot sync...")

    db = SQLiteDatabase(settings.database_path, CredentialCipher(settings.encryption_key))
    await db.initialize()

    sync_service = create_sync_service(db)
    runner = SyncScheduler(
        store_source=db,
        sync_service=sync_service,
        max_concurrent=settings.max_concurrent_syncs,
    )

    try:
        results = await runner.run_all(TriggerType.SCHEDULER)

        failed = [r for r in results if not r.success]
        for r in failed:
            logger.error(f"  {r.store_name}: {r.error_message}")
        return 1 if failed else 0

    finally:
        await sync_service.source_client.close()
        await db.close()


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
