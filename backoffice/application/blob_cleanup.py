"""Blob cleanup service.

Blob deletions happen next to database transactions but cannot take part
in them. A failed deletion never fails the catalog operation; it is logged
and recorded as a cleanup task so it can be retried later.
"""

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime, timezone

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from backoffice.catalog.models import BlobCleanupTask
from backoffice.domain.exceptions import BlobStoreError
from backoffice.infrastructure.blob_store import BlobStore, get_blob_store

logger = structlog.get_logger()


@dataclass
class CleanupReport:
    """Result of a cleanup retry run.

    Attributes:
        attempted: Tasks retried.
        resolved: Tasks whose blob is now deleted.
        pending: Tasks that failed again.
    """

    attempted: int = 0
    resolved: int = 0
    pending: int = 0


class BlobCleanupService:
    """Best-effort blob deletion with a retry log.

    Example usage:
        cleanup = BlobCleanupService(session)
        await cleanup.delete_best_effort(image.url, reason="product deleted")
    """

    def __init__(self, session: AsyncSession, blob_store: BlobStore | None = None) -> None:
        """Initialize service.

        Args:
            session: Async SQLAlchemy session.
            blob_store: Blob store, the configured one if omitted.
        """
        self.session = session
        self.blob_store = blob_store or get_blob_store()

    async def record_failure(self, locator: str, reason: str, error: str) -> BlobCleanupTask:
        """Record a blob that still has to be deleted.

        Args:
            locator: Blob locator.
            reason: What the deletion was part of.
            error: Error from the failed attempt.

        Returns:
            The pending cleanup task.
        """
        task = BlobCleanupTask(locator=locator, reason=reason, last_error=error, attempts=1)
        self.session.add(task)
        await self.session.flush()
        return task

    async def delete_best_effort(self, locator: str, reason: str) -> bool:
        """Delete a blob, recording a cleanup task on failure.

        Args:
            locator: Blob locator.
            reason: What the deletion is part of.

        Returns:
            True if the blob was deleted now.
        """
        try:
            await self.blob_store.delete(locator)
            return True
        except BlobStoreError as e:
            logger.warning(
                "Blob deletion failed, scheduling cleanup",
                locator=locator,
                reason=reason,
                error=e.message,
            )
            await self.record_failure(locator, reason, e.message)
            return False

    async def discard_uploads(self, locators: Sequence[str], reason: str) -> None:
        """Delete blobs uploaded by a unit of work that was rolled back.

        Runs after the rollback, so recorded cleanup tasks are committed
        on their own.

        Args:
            locators: Blobs stored before the failure.
            reason: What the failed unit of work was.
        """
        if not locators:
            return
        recorded = False
        for locator in locators:
            recorded |= not await self.delete_best_effort(locator, reason)
        if recorded:
            await self.session.commit()
        logger.info("Discarded orphaned uploads", count=len(locators), reason=reason)

    async def list_pending(self, limit: int = 100) -> Sequence[BlobCleanupTask]:
        result = await self.session.execute(
            select(BlobCleanupTask)
            .where(BlobCleanupTask.resolved_at.is_(None))
            .order_by(BlobCleanupTask.created_at)
            .limit(limit)
        )
        return result.scalars().all()

    async def retry_pending(self, limit: int = 100) -> CleanupReport:
        """Retry pending deletions and commit the outcome.

        Args:
            limit: Maximum tasks to retry in this run.

        Returns:
            Counts of resolved and still pending tasks.
        """
        report = CleanupReport()
        for task in await self.list_pending(limit):
            report.attempted += 1
            try:
                await self.blob_store.delete(task.locator)
            except BlobStoreError as e:
                task.attempts += 1
                task.last_error = e.message
                report.pending += 1
                continue
            task.resolved_at = datetime.now(timezone.utc)
            report.resolved += 1

        await self.session.commit()
        logger.info(
            "Blob cleanup run finished",
            attempted=report.attempted,
            resolved=report.resolved,
            pending=report.pending,
        )
        return report
