"""Tests for SKU generation and uniqueness resolution."""

import random

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from backoffice.catalog.models import Product, ProductVariant
from backoffice.catalog.sku import (
    DEFAULT_VARIANT_TOKEN,
    ProductContext,
    SkuGenerator,
    SkuResolver,
    VariantContext,
)
from backoffice.domain.exceptions import DuplicateSkuError, SkuExhaustedError

WHEY = ProductContext(name="Whey Protein", category_name="Supplements")
VANILLA_500 = VariantContext(flavor_name="Vanilla", weight_value=500, weight_unit="g")


async def _existing_variant(session: AsyncSession, sku: str) -> ProductVariant:
    product = Product(name="Existing", slug=f"existing-{sku.lower()}", category_links=[], variants=[], images=[])
    session.add(product)
    await session.flush()
    variant = ProductVariant(product_id=product.id, sku=sku, price_cents=1000, quantity=0)
    session.add(variant)
    await session.commit()
    return variant


class TestSkuGenerator:
    """Tests for SKU candidate construction."""

    def test_base_uses_name_category_and_clock(self, sku_generator: SkuGenerator) -> None:
        """Three letters of name and category plus four clock digits."""
        assert sku_generator.base(WHEY) == "WHESUP4500"

    def test_flavor_and_weight_segments(self, sku_generator: SkuGenerator) -> None:
        assert sku_generator.generate(WHEY, VANILLA_500) == "WHESUP4500-VAN-500g"

    def test_fractional_weight(self, sku_generator: SkuGenerator) -> None:
        """Weights print without trailing zeros."""
        variant = VariantContext(weight_value=1.5, weight_unit="kg")
        assert sku_generator.generate(WHEY, variant) == "WHESUP4500-1.5kg"

    def test_default_token(self, sku_generator: SkuGenerator) -> None:
        """Simple products use the DEF token."""
        sku = sku_generator.generate(
            ProductContext(name="Shaker Bottle", category_name="Accessories"),
            VariantContext(token=DEFAULT_VARIANT_TOKEN),
        )
        assert sku == "SHAACC4500-DEF"

    def test_whitespace_removed_from_parts(self, sku_generator: SkuGenerator) -> None:
        """Short names with spaces do not leak whitespace."""
        assert sku_generator.base(ProductContext(name="B 12")) == "B14500"

    def test_salt_appends_retry_segment(self) -> None:
        """Salted candidates get -<salt><two digits>."""
        generator = SkuGenerator(clock=lambda: 1_700_000_004.5, rng=random.Random(1))
        sku = generator.generate(WHEY, VANILLA_500, salt=2)
        prefix, _, tail = sku.rpartition("-")
        assert prefix == "WHESUP4500-VAN-500g"
        assert tail.startswith("2")
        assert len(tail) == 3


class TestSkuResolver:
    """Tests for resolving unique SKUs against the database."""

    async def test_unused_candidate_returned(self, resolver: SkuResolver) -> None:
        assert await resolver.resolve(WHEY, VANILLA_500) == "WHESUP4500-VAN-500g"

    async def test_collision_gets_salted_suffix(
        self,
        session: AsyncSession,
        resolver: SkuResolver,
    ) -> None:
        """A taken candidate is retried with a salted suffix."""
        await _existing_variant(session, "WHESUP4500-VAN-500g")
        sku = await resolver.resolve(WHEY, VANILLA_500)
        assert sku != "WHESUP4500-VAN-500g"
        assert sku.startswith("WHESUP4500-VAN-500g-1")

    async def test_explicit_sku_kept(self, resolver: SkuResolver) -> None:
        assert await resolver.resolve(WHEY, VANILLA_500, requested_sku=" CUSTOM-1 ") == "CUSTOM-1"

    async def test_explicit_taken_sku_rejected(
        self,
        session: AsyncSession,
        resolver: SkuResolver,
    ) -> None:
        """Requested SKUs are never silently changed."""
        await _existing_variant(session, "CUSTOM-1")
        with pytest.raises(DuplicateSkuError):
            await resolver.resolve(WHEY, VANILLA_500, requested_sku="CUSTOM-1")

    async def test_own_sku_is_not_a_collision(
        self,
        session: AsyncSession,
        resolver: SkuResolver,
    ) -> None:
        variant = await _existing_variant(session, "CUSTOM-1")
        sku = await resolver.resolve(WHEY, VANILLA_500, requested_sku="CUSTOM-1", exclude_id=variant.id)
        assert sku == "CUSTOM-1"

    async def test_placeholder_triggers_generation(self, resolver: SkuResolver) -> None:
        """Placeholder SKUs from the admin UI count as empty."""
        assert resolver.is_placeholder("-VAN-50g")
        assert resolver.is_placeholder("  ")
        assert await resolver.resolve(WHEY, VANILLA_500, requested_sku="-VAN-50g") == "WHESUP4500-VAN-500g"

    async def test_attempts_exhausted(self, session: AsyncSession) -> None:
        """Every candidate taken ends in SkuExhaustedError."""

        class ConstantRandom(random.Random):
            def randint(self, a: int, b: int) -> int:
                return 0

        generator = SkuGenerator(clock=lambda: 1_700_000_004.5, rng=ConstantRandom())
        resolver = SkuResolver(session, generator=generator, max_attempts=3, placeholders=[])
        for sku in ("WHESUP4500-VAN-500g", "WHESUP4500-VAN-500g-100", "WHESUP4500-VAN-500g-200"):
            await _existing_variant(session, sku)

        with pytest.raises(SkuExhaustedError) as exc_info:
            await resolver.resolve(WHEY, VANILLA_500)
        assert exc_info.value.details["attempts"] == 3

    async def test_insert_with_retry_recovers_from_race(
        self,
        session: AsyncSession,
        sku_generator: SkuGenerator,
    ) -> None:
        """A SKU claimed between check and insert is regenerated."""
        owner = await _existing_variant(session, "RACE-OWNER")

        class RacingResolver(SkuResolver):
            async def resolve(self, product, variant, requested_sku=None, exclude_id=None):
                # Pre-check passes for a SKU that is in fact taken
                return "RACE-OWNER"

        resolver = RacingResolver(session, generator=sku_generator, max_attempts=3, placeholders=[])

        def build(sku: str) -> ProductVariant:
            return ProductVariant(product_id=owner.product_id, sku=sku, price_cents=500, quantity=0)

        row = await resolver.insert_with_retry(build, WHEY, VANILLA_500)
        await session.commit()
        assert row.sku.startswith("WHESUP4500-VAN-500g-1")
