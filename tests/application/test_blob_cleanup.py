"""Tests for best-effort blob deletion and the cleanup retry log."""

from collections.abc import Callable

import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from backoffice.application.blob_cleanup import BlobCleanupService
from backoffice.application.category_service import CategoryService
from backoffice.application.product_service import ProductInput, ProductService
from backoffice.application.variant_service import VariantService
from backoffice.catalog.models import BlobCleanupTask, Product
from backoffice.catalog.sku import SkuResolver
from backoffice.domain.exceptions import BlobStoreError
from backoffice.domain.value_objects import ImageUpload
from backoffice.infrastructure.blob_store import InMemoryBlobStore


class UnreliableBlobStore(InMemoryBlobStore):
    """Store whose deletions fail while ``failing`` is set."""

    def __init__(self) -> None:
        super().__init__()
        self.failing = True

    async def delete(self, locator: str) -> None:
        if self.failing:
            raise BlobStoreError(locator, "connection reset")
        await super().delete(locator)


@pytest.fixture
def store() -> UnreliableBlobStore:
    return UnreliableBlobStore()


async def _tasks(session: AsyncSession) -> list[BlobCleanupTask]:
    result = await session.execute(select(BlobCleanupTask).order_by(BlobCleanupTask.created_at))
    return list(result.scalars().all())


class TestBestEffortDeletion:
    """Tests for deletions that must not fail the caller."""

    async def test_success(self, session: AsyncSession, blob_store: InMemoryBlobStore) -> None:
        locator = await blob_store.store(b"x", "image/png", "products")
        cleanup = BlobCleanupService(session, blob_store)

        assert await cleanup.delete_best_effort(locator, "test")
        assert await _tasks(session) == []

    async def test_failure_recorded(self, session: AsyncSession, store: UnreliableBlobStore) -> None:
        cleanup = BlobCleanupService(session, store)

        assert not await cleanup.delete_best_effort("products/a.png", "product deleted")
        await session.commit()

        [task] = await _tasks(session)
        assert (task.locator, task.reason, task.last_error) == (
            "products/a.png",
            "product deleted",
            "connection reset",
        )
        assert not task.is_resolved

    async def test_category_delete_succeeds_despite_store(
        self,
        session: AsyncSession,
        store: UnreliableBlobStore,
    ) -> None:
        """The catalog change commits and the blob is queued for retry."""
        categories = CategoryService(session, store)
        category = await categories.create_category(
            "Protein",
            image=ImageUpload(data=b"\x89PNG", content_type="image/png"),
        )

        await categories.delete_category(category.id)

        assert await categories.list_categories() == []
        [task] = await _tasks(session)
        assert task.locator == category.image


class TestRetry:
    """Tests for retrying pending deletions."""

    async def test_retry_resolves_when_store_recovers(
        self,
        session: AsyncSession,
        store: UnreliableBlobStore,
    ) -> None:
        cleanup = BlobCleanupService(session, store)
        await cleanup.delete_best_effort("products/a.png", "test")
        await cleanup.delete_best_effort("products/b.png", "test")
        await session.commit()

        first = await cleanup.retry_pending()
        assert (first.attempted, first.resolved, first.pending) == (2, 0, 2)
        assert [task.attempts for task in await _tasks(session)] == [2, 2]

        store.failing = False
        second = await cleanup.retry_pending()
        assert (second.attempted, second.resolved, second.pending) == (2, 2, 0)
        assert await cleanup.list_pending() == []

    async def test_limit(self, session: AsyncSession, store: UnreliableBlobStore) -> None:
        cleanup = BlobCleanupService(session, store)
        for name in ("a", "b", "c"):
            await cleanup.delete_best_effort(f"products/{name}.png", "test")
        await session.commit()

        report = await cleanup.retry_pending(limit=2)
        assert report.attempted == 2

    async def test_product_delete_queues_blobs_with_the_row_delete(
        self,
        session: AsyncSession,
        store: UnreliableBlobStore,
        resolver: SkuResolver,
        make_category: Callable,
    ) -> None:
        """The failed blob delete is recorded in the same transaction that removes the product."""
        category = await make_category("Accessories")
        products = ProductService(session, store, variants=VariantService(session, resolver=resolver))
        product = await products.create_product(
            ProductInput(name="Shaker", category_ids=[category.id], price_cents=100),
            [ImageUpload(data=b"\x89PNG", content_type="image/png", filename="a.png")],
        )
        locator = product.images[0].url

        await products.delete_product(product.id)

        assert (await session.execute(select(Product.id))).scalars().all() == []
        [task] = await _tasks(session)
        assert (task.locator, task.reason) == (locator, "product deleted")
        assert locator in store.blobs
