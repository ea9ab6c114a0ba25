#!/usr/bin/env python3
"""Retry blob deletions that failed earlier.

Deleting product, category and flavor images is best-effort; failures
are recorded as cleanup tasks. Run this periodically (e.g. from cron)
to delete those blobs again.

Usage:
    python scripts/retry_blob_cleanup.py
    python scripts/retry_blob_cleanup.py --limit 500
"""

import argparse
import asyncio
import sys
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from backoffice.application.blob_cleanup import BlobCleanupService
from backoffice.infrastructure.blob_store import get_blob_store
from backoffice.infrastructure.database import get_engine, get_session_factory
from backoffice.infrastructure.log_config import configure_logging


async def main() -> None:
    """Main entry point."""
    parser = argparse.ArgumentParser(description="Retry failed blob deletions")
    parser.add_argument(
        "--limit",
        type=int,
        default=100,
        help="Maximum number of pending tasks to retry (default: 100)",
    )
    args = parser.parse_args()

    configure_logging()
    blob_store = get_blob_store()
    async with get_session_factory()() as session:
        report = await BlobCleanupService(session, blob_store).retry_pending(args.limit)

    print(f"Attempted: {report.attempted}")
    print(f"Resolved:  {report.resolved}")
    print(f"Pending:   {report.pending}")

    close = getattr(blob_store, "close", None)
    if close is not None:
        await close()
    await get_engine().dispose()


if __name__ == "__main__":
    asyncio.run(main())
