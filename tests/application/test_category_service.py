"""Tests for the category hierarchy service."""

from collections.abc import Callable

import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from backoffice.application.category_service import CategoryService, CategoryUpdate
from backoffice.catalog.models import Category, Product
from backoffice.domain.exceptions import (
    CategoryCycleError,
    CategoryHasChildrenError,
    ConflictError,
    InvariantViolationError,
    NotFoundError,
    ValidationError,
)
from backoffice.domain.value_objects import DeletionOutcome, ImageUpload
from backoffice.infrastructure.blob_store import InMemoryBlobStore

PNG = ImageUpload(data=b"\x89PNG-data", content_type="image/png", filename="c.png")


@pytest.fixture
def service(session: AsyncSession, blob_store: InMemoryBlobStore) -> CategoryService:
    return CategoryService(session, blob_store)


async def _product(session: AsyncSession, slug: str) -> Product:
    product = Product(name=slug, slug=slug, category_links=[], variants=[], images=[])
    session.add(product)
    await session.flush()
    return product


class TestCreateCategory:
    """Tests for creating categories."""

    async def test_create_derives_slug(self, service: CategoryService) -> None:
        category = await service.create_category("Sports Nutrition", description="All of it")
        assert category.slug == "sports-nutrition"
        assert category.parent_id is None

    async def test_create_child(self, service: CategoryService) -> None:
        parent = await service.create_category("Supplements")
        child = await service.create_category("Protein", parent_id=parent.id)
        assert child.parent_id == parent.id

    async def test_duplicate_name_rejected_ignoring_case(self, service: CategoryService) -> None:
        """Names are unique regardless of case."""
        await service.create_category("Protein")
        with pytest.raises(ConflictError, match="already exists"):
            await service.create_category("PROTEIN")

    async def test_name_claimed_after_check_is_conflict(
        self,
        monkeypatch: pytest.MonkeyPatch,
        session: AsyncSession,
        service: CategoryService,
    ) -> None:
        """A duplicate that slips past the lookup is still reported as a conflict."""
        await service.create_category("Protein")

        async def no_conflict(*args, **kwargs):
            return None

        monkeypatch.setattr(service.repository, "find_conflicting", no_conflict)
        with pytest.raises(ConflictError, match="already exists"):
            await service.create_category("Protein")

        names = (await session.execute(select(Category.name))).scalars().all()
        assert names == ["Protein"]

    async def test_unknown_parent_rejected(self, service: CategoryService) -> None:
        with pytest.raises(NotFoundError):
            await service.create_category("Protein", parent_id="missing")

    async def test_blank_name_rejected(self, service: CategoryService) -> None:
        with pytest.raises(ValidationError):
            await service.create_category("  ")

    async def test_image_stored(self, service: CategoryService, blob_store: InMemoryBlobStore) -> None:
        category = await service.create_category("Protein", image=PNG)
        assert category.image in blob_store.blobs
        assert category.image.startswith("categories/")

    async def test_failed_create_discards_upload(
        self,
        service: CategoryService,
        blob_store: InMemoryBlobStore,
    ) -> None:
        """An image stored before a failure is removed again."""
        with pytest.raises(NotFoundError):
            await service.create_category("Protein", parent_id="missing", image=PNG)
        assert blob_store.blobs == {}


class TestUpdateCategory:
    """Tests for updating categories."""

    async def test_rename_updates_slug(self, service: CategoryService) -> None:
        category = await service.create_category("Protien")
        updated = await service.update_category(category.id, CategoryUpdate(name="Protein"))
        assert updated.slug == "protein"

    async def test_rename_onto_taken_name_is_conflict(
        self,
        monkeypatch: pytest.MonkeyPatch,
        service: CategoryService,
    ) -> None:
        await service.create_category("Protein")
        creatine = await service.create_category("Creatine")
        creatine_id = creatine.id

        async def no_conflict(*args, **kwargs):
            return None

        monkeypatch.setattr(service.repository, "find_conflicting", no_conflict)
        with pytest.raises(ConflictError):
            await service.update_category(creatine_id, CategoryUpdate(name="Protein"))

        assert (await service.get_category(creatine_id)).name == "Creatine"

    async def test_cannot_become_own_parent(self, service: CategoryService) -> None:
        category = await service.create_category("Protein")
        with pytest.raises(CategoryCycleError):
            await service.update_category(category.id, CategoryUpdate(parent_id=category.id))

    async def test_cannot_move_under_descendant(self, service: CategoryService) -> None:
        """Deep cycles are rejected too."""
        root = await service.create_category("Supplements")
        child = await service.create_category("Protein", parent_id=root.id)
        grandchild = await service.create_category("Whey", parent_id=child.id)
        with pytest.raises(CategoryCycleError):
            await service.update_category(root.id, CategoryUpdate(parent_id=grandchild.id))

    async def test_clear_parent(self, service: CategoryService) -> None:
        root = await service.create_category("Supplements")
        child = await service.create_category("Protein", parent_id=root.id)
        updated = await service.update_category(child.id, CategoryUpdate(clear_parent=True))
        assert updated.parent_id is None

    async def test_replaced_image_deleted(
        self,
        service: CategoryService,
        blob_store: InMemoryBlobStore,
    ) -> None:
        category = await service.create_category("Protein", image=PNG)
        old = category.image
        updated = await service.update_category(category.id, CategoryUpdate(image=PNG))
        assert updated.image != old
        assert old not in blob_store.blobs
        assert updated.image in blob_store.blobs


class TestDeleteCategory:
    """Tests for deleting categories."""

    async def test_delete_leaf(self, session: AsyncSession, service: CategoryService) -> None:
        category = await service.create_category("Protein")
        result = await service.delete_category(category.id)
        assert result.outcome == DeletionOutcome.DELETED
        assert (await session.execute(select(Category))).scalars().all() == []

    async def test_parent_with_children_not_deleted(
        self,
        session: AsyncSession,
        service: CategoryService,
    ) -> None:
        """A category with subcategories stays."""
        root = await service.create_category("Supplements")
        await service.create_category("Protein", parent_id=root.id)

        with pytest.raises(CategoryHasChildrenError):
            await service.delete_category(root.id)

        names = (await session.execute(select(Category.name))).scalars().all()
        assert sorted(names) == ["Protein", "Supplements"]

    async def test_category_with_products_not_deleted(
        self,
        session: AsyncSession,
        service: CategoryService,
    ) -> None:
        category = await service.create_category("Protein")
        product = await _product(session, "whey")
        await service.attach_categories(product, [category.id])
        await session.commit()

        with pytest.raises(InvariantViolationError, match="1 products"):
            await service.delete_category(category.id)

    async def test_unknown_category(self, service: CategoryService) -> None:
        with pytest.raises(NotFoundError):
            await service.delete_category("missing")


class TestProductLinks:
    """Tests for linking products to categories."""

    async def test_first_category_is_primary_by_default(
        self,
        session: AsyncSession,
        service: CategoryService,
        make_category: Callable,
    ) -> None:
        protein = await make_category("Protein")
        vegan = await make_category("Vegan")
        product = await _product(session, "whey")

        links = await service.attach_categories(product, [protein.id, vegan.id, protein.id])

        assert [link.category_id for link in links] == [protein.id, vegan.id]
        assert service.primary_category(product).id == protein.id

    async def test_explicit_primary(
        self,
        session: AsyncSession,
        service: CategoryService,
        make_category: Callable,
    ) -> None:
        protein = await make_category("Protein")
        vegan = await make_category("Vegan")
        product = await _product(session, "whey")

        await service.attach_categories(product, [protein.id, vegan.id], primary_id=vegan.id)
        assert product.primary_category.id == vegan.id

        await service.set_primary_category(product, protein.id)
        assert [link.is_primary for link in product.category_links] == [True, False]

    async def test_primary_must_be_linked(
        self,
        session: AsyncSession,
        service: CategoryService,
        make_category: Callable,
    ) -> None:
        protein = await make_category("Protein")
        product = await _product(session, "whey")
        with pytest.raises(ValidationError):
            await service.attach_categories(product, [protein.id], primary_id="other")

    async def test_at_least_one_category(self, session: AsyncSession, service: CategoryService) -> None:
        product = await _product(session, "whey")
        with pytest.raises(ValidationError):
            await service.attach_categories(product, [])

    async def test_unknown_category(
        self,
        session: AsyncSession,
        service: CategoryService,
    ) -> None:
        product = await _product(session, "whey")
        with pytest.raises(NotFoundError):
            await service.attach_categories(product, ["missing"])
