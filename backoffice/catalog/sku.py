"""SKU generation and uniqueness resolution.

SKUs look like ``WHESUP4821-VAN-500g``: three characters of the product
name, three of the primary category, the last four digits of the
millisecond clock, then one segment per flavor and weight. Collisions are
resolved by retrying with a salted suffix a bounded number of times; the
database unique constraint has the final word.
"""

import random
import re
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass

import structlog
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from backoffice.catalog.models import ProductVariant
from backoffice.catalog.repository import VariantRepository
from backoffice.domain.exceptions import ConflictError, DuplicateSkuError, SkuExhaustedError
from backoffice.infrastructure.config import settings

logger = structlog.get_logger()

DEFAULT_VARIANT_TOKEN = "DEF"

_WHITESPACE = re.compile(r"\s+")


@dataclass(frozen=True)
class ProductContext:
    """Product attributes a SKU is derived from.

    Attributes:
        name: Product name.
        category_name: Name of the primary category, empty if none.
    """

    name: str
    category_name: str = ""


@dataclass(frozen=True)
class VariantContext:
    """Variant attributes a SKU is derived from.

    Attributes:
        flavor_name: Flavor name, if the variant has a flavor.
        weight_value: Weight amount, if the variant has a weight.
        weight_unit: Weight unit (e.g., "g", "kg").
        token: Free-form segment used instead of flavor/weight (e.g., "DEF").
    """

    flavor_name: str | None = None
    weight_value: float | None = None
    weight_unit: str | None = None
    token: str | None = None


def _part(text: str) -> str:
    return _WHITESPACE.sub("", text[:3].upper())


class SkuGenerator:
    """Builds SKU candidates.

    The clock and random source are injectable so generated SKUs are
    reproducible in tests.
    """

    def __init__(
        self,
        clock: Callable[[], float] = time.time,
        rng: random.Random | None = None,
    ) -> None:
        """Initialize generator.

        Args:
            clock: Returns the current time in seconds.
            rng: Random source for salted suffixes.
        """
        self.clock = clock
        self.rng = rng or random.Random()

    def base(self, product: ProductContext) -> str:
        """Product-level prefix shared by all variants generated together."""
        timestamp = str(int(self.clock() * 1000))[-4:]
        return f"{_part(product.name)}{_part(product.category_name)}{timestamp}"

    def suffix(self, variant: VariantContext) -> str:
        """Variant-level segments."""
        segments = ""
        if variant.flavor_name:
            segments += f"-{_part(variant.flavor_name)}"
        if variant.weight_value is not None:
            segments += f"-{variant.weight_value:g}{variant.weight_unit or ''}"
        if variant.token:
            segments += f"-{variant.token}"
        return segments

    def generate(
        self,
        product: ProductContext,
        variant: VariantContext,
        salt: int | None = None,
    ) -> str:
        """Generate a SKU candidate.

        Args:
            product: Product context.
            variant: Variant context.
            salt: Retry number; when given a ``-<salt><2 random digits>``
                segment is appended.

        Returns:
            SKU candidate.
        """
        sku = f"{self.base(product)}{self.suffix(variant)}"
        if salt is not None:
            sku += f"-{salt}{self.rng.randint(0, 99):02d}"
        return sku


class SkuResolver:
    """Resolves a unique SKU for a new or changed variant.

    Example usage:
        resolver = SkuResolver(session)
        sku = await resolver.resolve(
            ProductContext(name="Whey Protein", category_name="Supplements"),
            VariantContext(flavor_name="Vanilla", weight_value=500, weight_unit="g"),
        )
    """

    def __init__(
        self,
        session: AsyncSession,
        generator: SkuGenerator | None = None,
        max_attempts: int | None = None,
        placeholders: Sequence[str] | None = None,
    ) -> None:
        """Initialize resolver.

        Args:
            session: Async SQLAlchemy session.
            generator: SKU generator, a default one if omitted.
            max_attempts: Candidates tried before giving up.
            placeholders: Requested SKUs that mean "generate one".
        """
        self.session = session
        self.generator = generator or SkuGenerator()
        self.max_attempts = max_attempts or settings.sku_max_attempts
        self.placeholders = frozenset(
            settings.sku_placeholders if placeholders is None else placeholders
        )
        self.variants = VariantRepository(session)

    def is_placeholder(self, sku: str | None) -> bool:
        """Check whether a requested SKU asks for generation."""
        return sku is None or not sku.strip() or sku.strip() in self.placeholders

    async def resolve(
        self,
        product: ProductContext,
        variant: VariantContext,
        requested_sku: str | None = None,
        exclude_id: str | None = None,
    ) -> str:
        """Pick a SKU that no other variant uses.

        Args:
            product: Product context.
            variant: Variant context.
            requested_sku: SKU sent by the client.
            exclude_id: Variant allowed to already hold the SKU.

        Returns:
            Unique SKU.

        Raises:
            DuplicateSkuError: If an explicitly requested SKU is taken.
            SkuExhaustedError: If every generated candidate collided.
        """
        if not self.is_placeholder(requested_sku):
            sku = requested_sku.strip()
            if await self.variants.sku_taken(sku, exclude_id=exclude_id):
                raise DuplicateSkuError(sku)
            return sku

        first = None
        for attempt in range(self.max_attempts):
            candidate = self.generator.generate(product, variant, salt=attempt or None)
            first = first or candidate
            if not await self.variants.sku_taken(candidate, exclude_id=exclude_id):
                return candidate
            logger.info("Generated SKU already taken", sku=candidate, attempt=attempt + 1)

        logger.warning("SKU generation attempts exhausted", base_sku=first, attempts=self.max_attempts)
        raise SkuExhaustedError(first, self.max_attempts)

    async def insert_with_retry(
        self,
        build: Callable[[str], ProductVariant],
        product: ProductContext,
        variant: VariantContext,
        requested_sku: str | None = None,
    ) -> ProductVariant:
        """Insert a new variant, regenerating its SKU on a constraint race.

        The insert runs inside a savepoint. If the unique constraint rejects
        a generated SKU (another writer claimed it after the pre-check), a
        fresh candidate is tried within the same attempt limit.

        Args:
            build: Creates a fresh, unsaved variant carrying the given SKU.
            product: Product context.
            variant: Variant context.
            requested_sku: SKU sent by the client.

        Returns:
            The inserted variant.

        Raises:
            DuplicateSkuError: If an explicitly requested SKU is taken.
            SkuExhaustedError: If the attempt limit ran out.
            ConflictError: If another unique constraint rejected the row.
        """
        generated = self.is_placeholder(requested_sku)
        sku = await self.resolve(product, variant, requested_sku)
        first = sku

        for attempt in range(1, self.max_attempts + 1):
            row = build(sku)
            try:
                async with self.session.begin_nested():
                    self.session.add(row)
                    await self.session.flush()
                return row
            except IntegrityError as exc:
                if not await self.variants.sku_taken(sku):
                    raise ConflictError(
                        "Variant conflicts with an existing variant",
                        details={"sku": sku},
                    ) from exc
                if not generated:
                    raise DuplicateSkuError(sku) from exc
                logger.info("SKU claimed concurrently, regenerating", sku=sku, attempt=attempt)
                sku = self.generator.generate(product, variant, salt=attempt)

        raise SkuExhaustedError(first, self.max_attempts)
