#!/usr/bin/env python3
"""
Cron job script to run one scheduler tick for all active stores.
Add to crontab: * * * * * cd /path/to/app && /path/to/venv/bin/python scripts/run_sync.py

Use this instead of the in-process scheduler (SCHEDULER_ENABLED=false).
Stores whose interval has not elapsed are skipped.
"""

import asyncio
import logging
import sys
import os

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from warehouse_sync.auth import CredentialCipher
from warehouse_sync.config import settings
from warehouse_sync.db import SQLiteDatabase
from warehouse_sync.dependencies import build_scheduler
from warehouse_sync.processor import StoreLockRegistry
from warehouse_sync.woocommerce import ClientCache

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)

logger = logging.getLogger(__name__)


async def main():
    logger.info("Starting scheduled sync...")

    db = SQLiteDatabase(settings.database_path)
    await db.initialize()
    clients = ClientCache(
        CredentialCipher(settings.encryption_key, settings.encryption_salt),
        timeout=settings.request_timeout_seconds,
        connect_timeout=settings.connect_timeout_seconds,
        max_retries=settings.max_retries,
    )

    try:
        results = await build_scheduler(db, clients, StoreLockRegistry()).tick()

        failed = [r for r in results if not r.success]
        logger.info(f"Sync completed: {len(results) - len(failed)} successful, {len(failed)} failed")

        if failed:
            for r in failed:
                logger.error(f"  {r.store.name}: {r.error}")
            sys.exit(1)

    finally:
        await clients.close()
        await db.close()


if __name__ == "__main__":
    asyncio.run(main())
