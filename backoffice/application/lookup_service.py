"""Flavor and weight lookup service.

Flavors and weights are shared by all products; values still used by a
variant cannot be deleted.
"""

import structlog
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from backoffice.application.blob_cleanup import BlobCleanupService
from backoffice.catalog.models import Flavor, ProductVariant, Weight
from backoffice.catalog.repository import LookupRepository
from backoffice.domain.exceptions import ConflictError, LookupInUseError, NotFoundError, ValidationError
from backoffice.domain.value_objects import DeletionResult, ImageUpload
from backoffice.infrastructure.blob_store import BlobStore, get_blob_store
from backoffice.infrastructure.database import atomic

logger = structlog.get_logger()

WEIGHT_UNITS = ("g", "kg", "lb", "oz", "ml", "l")


class LookupService:
    """Service for flavors and weights."""

    def __init__(self, session: AsyncSession, blob_store: BlobStore | None = None) -> None:
        self.session = session
        self.blob_store = blob_store or get_blob_store()
        self.repository = LookupRepository(session)
        self.cleanup = BlobCleanupService(session, self.blob_store)

    # ========================================================================
    # Flavors
    # ========================================================================

    async def list_flavors(self) -> list[Flavor]:
        return list(await self.repository.list_flavors())

    async def create_flavor(
        self,
        name: str,
        description: str | None = None,
        image: ImageUpload | None = None,
    ) -> Flavor:
        """Create a flavor.

        Raises:
            ValidationError: If the name is blank.
            ConflictError: If a flavor with the same name exists (ignoring case).
        """
        if not name or not name.strip():
            raise ValidationError("Flavor name is required")
        name = name.strip()

        uploaded: list[str] = []
        try:
            async with atomic(self.session):
                if await self.repository.find_flavor_by_name(name):
                    raise ConflictError("Flavor already exists", details={"name": name})
                locator = None
                if image is not None:
                    locator = await self.blob_store.store(image.data, image.content_type, "flavors")
                    uploaded.append(locator)
                flavor = Flavor(name=name, description=description, image=locator)
                self.session.add(flavor)
                try:
                    await self.session.flush()
                except IntegrityError as exc:
                    raise ConflictError("Flavor already exists", details={"name": name}) from exc
        except Exception:
            await self.cleanup.discard_uploads(uploaded, "flavor create failed")
            raise

        logger.info("Flavor created", flavor_id=flavor.id, name=name)
        return flavor

    async def delete_flavor(self, flavor_id: str) -> DeletionResult:
        """Delete a flavor no variant uses.

        Raises:
            NotFoundError: If the flavor does not exist.
            LookupInUseError: If variants reference it.
        """
        async with atomic(self.session):
            flavor = await self.repository.get_flavor(flavor_id)
            if flavor is None:
                raise NotFoundError("Flavor", flavor_id)
            usage = await self.repository.count_variants_using(ProductVariant.flavor_id, flavor_id)
            if usage:
                raise LookupInUseError("Flavor", flavor_id, usage)
            if flavor.image:
                await self.cleanup.delete_best_effort(flavor.image, "flavor deleted")
            await self.session.delete(flavor)

        logger.info("Flavor deleted", flavor_id=flavor_id)
        return DeletionResult.deleted(flavor_id, "Flavor deleted successfully")

    # ========================================================================
    # Weights
    # ========================================================================

    async def list_weights(self) -> list[Weight]:
        return list(await self.repository.list_weights())

    async def create_weight(self, value: float, unit: str) -> Weight:
        """Create a weight.

        Raises:
            ValidationError: If value is not positive or the unit is unknown.
            ConflictError: If the same value and unit already exist.
        """
        if value is None or value <= 0:
            raise ValidationError("Weight value must be positive", details={"value": value})
        unit = (unit or "").strip().lower()
        if unit not in WEIGHT_UNITS:
            raise ValidationError(
                "Unsupported weight unit",
                details={"unit": unit, "allowed": list(WEIGHT_UNITS)},
            )

        async with atomic(self.session):
            if await self.repository.find_weight(value, unit):
                raise ConflictError(
                    "Weight already exists",
                    details={"value": value, "unit": unit},
                )
            weight = Weight(value=value, unit=unit)
            self.session.add(weight)
            try:
                await self.session.flush()
            except IntegrityError as exc:
                raise ConflictError(
                    "Weight already exists",
                    details={"value": value, "unit": unit},
                ) from exc

        logger.info("Weight created", weight_id=weight.id, display=weight.display)
        return weight

    async def delete_weight(self, weight_id: str) -> DeletionResult:
        """Delete a weight no variant uses.

        Raises:
            NotFoundError: If the weight does not exist.
            LookupInUseError: If variants reference it.
        """
        async with atomic(self.session):
            weight = await self.repository.get_weight(weight_id)
            if weight is None:
                raise NotFoundError("Weight", weight_id)
            usage = await self.repository.count_variants_using(ProductVariant.weight_id, weight_id)
            if usage:
                raise LookupInUseError("Weight", weight_id, usage)
            await self.session.delete(weight)

        logger.info("Weight deleted", weight_id=weight_id)
        return DeletionResult.deleted(weight_id, "Weight deleted successfully")


def get_lookup_service(session: AsyncSession, blob_store: BlobStore | None = None) -> LookupService:
    """Get lookup service instance.

    Args:
        session: Request-scoped database session.
        blob_store: Blob store; the configured store when omitted.

    Returns:
        LookupService instance.
    """
    return LookupService(session, blob_store)
