#!/usr/bin/env python3
"""Seed category tree script.

Creates a starter category tree and a few shared attributes so sellers
have valid category paths for their first import. Existing categories
are left untouched; running the script twice adds nothing.

Usage:
    python scripts/seed_categories.py
    python scripts/seed_categories.py --no-attributes
"""

import argparse
import asyncio

import structlog

from catalog_engine.catalog.attributes import CategoryAttributeRegistry
from catalog_engine.catalog.hierarchy import CategoryHierarchyService
from catalog_engine.catalog.models import Category
from catalog_engine.infrastructure import models as job_models  # noqa: F401
from catalog_engine.infrastructure.database import async_session_factory, create_tables
from catalog_engine.infrastructure.logging import configure_logging

logger = structlog.get_logger()

STARTER_TREE: dict[str, dict] = {
    "Electronics": {
        "Phones": {},
        "Laptops": {},
        "Audio": {"Headphones": {}, "Speakers": {}},
    },
    "Home & Garden": {
        "Kitchen": {},
        "Furniture": {},
    },
    "Fashion": {
        "Women": {},
        "Men": {},
    },
}

# (category path, attribute name, type, required, options)
STARTER_ATTRIBUTES = [
    ("Electronics / Phones", "Storage", "list", True, "64 GB;128 GB;256 GB"),
    ("Electronics / Phones", "Color", "list", False, "Black;White;Blue"),
    ("Electronics / Laptops", "Color", "list", False, "Black;White;Blue"),
    ("Electronics / Laptops", "Screen size", "number", True, None),
    ("Fashion / Women", "Size", "list", True, "XS;S;M;L;XL"),
    ("Fashion / Men", "Size", "list", True, "XS;S;M;L;XL"),
]


async def seed_branch(
    service: CategoryHierarchyService,
    branch: dict[str, dict],
    parent: Category | None,
) -> int:
    """Create a branch of the starter tree depth-first.

    Args:
        service: Category hierarchy service.
        branch: Child names mapped to their own children.
        parent: Parent category, None at the top level.

    Returns:
        Number of categories created.
    """
    created = 0
    for name, children in branch.items():
        path = f"{parent.full_path} / {name}" if parent else name
        category = await service.find_by_full_path(path)
        if category is None:
            result = await service.create(name, parent_id=parent.id if parent else None)
            if not result.success:
                logger.warning("Category skipped", path=path, error=result.error)
                continue
            category = result.category
            created += 1
        created += await seed_branch(service, children, category)
    return created


async def main() -> None:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Seed the starter category tree",
    )
    parser.add_argument(
        "--no-attributes",
        action="store_true",
        help="Don't create the starter category attributes",
    )

    args = parser.parse_args()
    configure_logging(json_output=False)

    print("=" * 60)
    print("Catalog Engine Category Seeder")
    print("=" * 60)

    print("Creating database tables...")
    await create_tables()
    print("Tables ready.")
    print()

    async with async_session_factory() as session:
        service = CategoryHierarchyService(session)
        created = await seed_branch(service, STARTER_TREE, None)
        print(f"  ✓ Categories created: {created}")

        if not args.no_attributes:
            registry = CategoryAttributeRegistry(session)
            linked = 0
            for path, name, attribute_type, required, options in STARTER_ATTRIBUTES:
                category = await service.find_by_full_path(path)
                if category is None:
                    continue
                result = await registry.add_or_link(
                    category.id, name, attribute_type, required, options
                )
                if result.success:
                    linked += 1
            print(f"  ✓ Attributes linked: {linked}")

    print()
    print("=" * 60)
    print("Seeding complete!")
    print("=" * 60)


if __name__ == "__main__":
    asyncio.run(main())
