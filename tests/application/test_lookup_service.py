"""Tests for flavor and weight lookups."""

from collections.abc import Callable

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from backoffice.application.lookup_service import LookupService
from backoffice.catalog.models import Product, ProductVariant
from backoffice.domain.exceptions import ConflictError, LookupInUseError, NotFoundError, ValidationError
from backoffice.domain.value_objects import DeletionOutcome, ImageUpload
from backoffice.infrastructure.blob_store import InMemoryBlobStore


@pytest.fixture
def lookups(session: AsyncSession, blob_store: InMemoryBlobStore) -> LookupService:
    return LookupService(session, blob_store)


class TestFlavors:
    """Tests for flavors."""

    async def test_create_and_list(self, lookups: LookupService, blob_store: InMemoryBlobStore) -> None:
        image = ImageUpload(data=b"\x89PNG", content_type="image/png")
        await lookups.create_flavor(" Vanilla ", image=image)
        await lookups.create_flavor("Chocolate")

        flavors = await lookups.list_flavors()

        assert [f.name for f in flavors] == ["Chocolate", "Vanilla"]
        assert flavors[1].image in blob_store.blobs

    async def test_duplicate_name_ignoring_case(self, lookups: LookupService) -> None:
        await lookups.create_flavor("Vanilla")
        with pytest.raises(ConflictError):
            await lookups.create_flavor("VANILLA")

    async def test_name_claimed_after_check_is_conflict(
        self,
        monkeypatch: pytest.MonkeyPatch,
        lookups: LookupService,
    ) -> None:
        """The unique index still reports a duplicate the lookup missed."""
        await lookups.create_flavor("Vanilla")

        async def not_found(*args, **kwargs):
            return None

        monkeypatch.setattr(lookups.repository, "find_flavor_by_name", not_found)
        with pytest.raises(ConflictError, match="Flavor already exists"):
            await lookups.create_flavor("Vanilla")
        assert [f.name for f in await lookups.list_flavors()] == ["Vanilla"]

    async def test_flavor_in_use_not_deleted(
        self,
        session: AsyncSession,
        lookups: LookupService,
        make_flavor: Callable,
    ) -> None:
        flavor = await make_flavor("Vanilla")
        product = Product(name="Whey", slug="whey", category_links=[], variants=[], images=[])
        session.add(product)
        await session.flush()
        session.add(ProductVariant(product_id=product.id, flavor_id=flavor.id, sku="W-1", price_cents=100))
        await session.commit()

        with pytest.raises(LookupInUseError) as exc_info:
            await lookups.delete_flavor(flavor.id)
        assert exc_info.value.details["usage_count"] == 1

    async def test_delete_unused(self, lookups: LookupService, blob_store: InMemoryBlobStore) -> None:
        image = ImageUpload(data=b"\x89PNG", content_type="image/png")
        flavor = await lookups.create_flavor("Vanilla", image=image)

        result = await lookups.delete_flavor(flavor.id)

        assert result.outcome == DeletionOutcome.DELETED
        assert blob_store.blobs == {}
        assert await lookups.list_flavors() == []


class TestWeights:
    """Tests for weights."""

    async def test_unit_normalized(self, lookups: LookupService) -> None:
        weight = await lookups.create_weight(2.5, " KG ")
        assert (weight.value, weight.unit, weight.display) == (2.5, "kg", "2.5kg")

    @pytest.mark.parametrize(("value", "unit"), [(0, "g"), (-1, "kg"), (5, "stone")])
    async def test_invalid_weights(self, lookups: LookupService, value: float, unit: str) -> None:
        with pytest.raises(ValidationError):
            await lookups.create_weight(value, unit)

    async def test_duplicate_weight(self, lookups: LookupService) -> None:
        await lookups.create_weight(500, "g")
        with pytest.raises(ConflictError):
            await lookups.create_weight(500, "g")

    async def test_weight_claimed_after_check_is_conflict(
        self,
        monkeypatch: pytest.MonkeyPatch,
        lookups: LookupService,
    ) -> None:
        await lookups.create_weight(500, "g")

        async def not_found(*args, **kwargs):
            return None

        monkeypatch.setattr(lookups.repository, "find_weight", not_found)
        with pytest.raises(ConflictError, match="Weight already exists"):
            await lookups.create_weight(500, "g")

    async def test_ordered_by_value(self, lookups: LookupService) -> None:
        await lookups.create_weight(1000, "g")
        await lookups.create_weight(500, "g")
        assert [w.display for w in await lookups.list_weights()] == ["500g", "1000g"]

    async def test_delete_unknown(self, lookups: LookupService) -> None:
        with pytest.raises(NotFoundError):
            await lookups.delete_weight("missing")
