#!/usr/bin/env python3
"""Seed sample catalog script.

Creates the catalog tables and inserts four sample categories with
three products each. Nothing is inserted when the catalog already
holds data.

Usage:
    python scripts/seed_catalog.py
    python scripts/seed_catalog.py --no-create-tables
"""

import argparse
import asyncio

from catalog_api.catalog.seed import seed_sample_data
from catalog_api.infrastructure.database import (
    async_session_factory,
    create_schema,
    engine,
)


async def main() -> None:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Seed the product catalog with sample data",
    )
    parser.add_argument(
        "--no-create-tables",
        action="store_true",
        help="Don't create missing tables before seeding",
    )

    args = parser.parse_args()

    print("=" * 60)
    print("Catalog Seeder")
    print("=" * 60)

    if not args.no_create_tables:
        print("Creating database tables...")
        await create_schema()
        print("Tables ready.")
        print()

    try:
        async with async_session_factory() as session:
            result = await seed_sample_data(session)
    finally:
        await engine.dispose()

    if result["categories"] == 0:
        print("Catalog already contains data, nothing seeded.")
    else:
        print(f"  ✓ Categories: {result['categories']}")
        print(f"  ✓ Products: {result['products']}")

    print("=" * 60)
    print("Seeding complete!")
    print("=" * 60)


if __name__ == "__main__":
    asyncio.run(main())
