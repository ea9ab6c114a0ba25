#!/usr/bin/env python3
"""Seed a demo catalog.

Creates a small category tree, flavors, weights and a few products
through the application services, so the seeded data obeys the same
rules as admin edits (generated SKUs, ledger entries, default variants).

Usage:
    python scripts/seed_catalog.py
    python scripts/seed_catalog.py --restock 25
"""

import argparse
import asyncio
import sys
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from backoffice.application.category_service import CategoryService
from backoffice.application.inventory_service import InventoryService
from backoffice.application.lookup_service import LookupService
from backoffice.application.product_service import ProductInput, ProductService
from backoffice.catalog import models  # noqa: F401  (registers tables)
from backoffice.domain.value_objects import VariantSelection
from backoffice.infrastructure.database import Base, get_engine, get_session_factory

SEED_ADMIN = "seed-script"

FLAVORS = ["Vanilla", "Chocolate", "Strawberry"]
WEIGHTS = [(500, "g"), (1, "kg"), (2, "kg")]


async def create_tables() -> None:
    """Create database tables if they don't exist."""
    async with get_engine().begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def seed(restock: int) -> dict:
    """Seed the demo catalog.

    Args:
        restock: Units added to every variant after creation.

    Returns:
        Counts of created entities.
    """
    async with get_session_factory()() as session:
        categories = CategoryService(session)
        lookups = LookupService(session)
        products = ProductService(session)
        ledger = InventoryService(session)

        supplements = await categories.create_category("Supplements")
        protein = await categories.create_category("Protein", parent_id=supplements.id)
        accessories = await categories.create_category("Accessories")

        flavors = [await lookups.create_flavor(name) for name in FLAVORS]
        weights = [await lookups.create_weight(value, unit) for value, unit in WEIGHTS]

        whey = await products.create_product(
            ProductInput(
                name="Whey Protein",
                category_ids=[protein.id, supplements.id],
                description="Fast-absorbing whey protein isolate.",
                is_supplement=True,
                has_variants=True,
                selection=VariantSelection(
                    flavor_ids=tuple(f.id for f in flavors),
                    weight_ids=tuple(w.id for w in weights[:2]),
                    price_cents=2999,
                    quantity=10,
                ),
            ),
            acting_admin=SEED_ADMIN,
        )
        shaker = await products.create_product(
            ProductInput(
                name="Shaker Bottle",
                category_ids=[accessories.id],
                price_cents=999,
                quantity=40,
            ),
            acting_admin=SEED_ADMIN,
        )

        restocked = 0
        if restock > 0:
            for variant in [*whey.variants, *shaker.variants]:
                await ledger.restock(variant.id, restock, acting_admin=SEED_ADMIN, note="Initial stock")
                restocked += 1

        return {
            "categories": 3,
            "flavors": len(flavors),
            "weights": len(weights),
            "products": 2,
            "variants": len(whey.variants) + len(shaker.variants),
            "restocked": restocked,
        }


async def main() -> None:
    """Main entry point."""
    parser = argparse.ArgumentParser(description="Seed a demo product catalog")
    parser.add_argument(
        "--restock",
        type=int,
        default=0,
        help="Units to add to every seeded variant (default: 0)",
    )
    args = parser.parse_args()

    print("=" * 60)
    print("Catalog Seeder")
    print("=" * 60)

    print("Creating database tables...")
    await create_tables()
    print("Tables ready.")
    print()

    result = await seed(args.restock)
    for name, count in result.items():
        print(f"  ✓ {name.capitalize()}: {count}")

    print("=" * 60)
    print("Seeding complete!")
    print("=" * 60)
    await get_engine().dispose()


if __name__ == "__main__":
    asyncio.run(main())
