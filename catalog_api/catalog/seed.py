"""Sample catalog data.

Creates four categories with three products each. Seeding is skipped
when the catalog already holds any category or product.
"""

from decimal import Decimal

import structlog
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from catalog_api.catalog.models import Category, Product
from catalog_api.catalog.repository import CategoryRepository, ProductRepository
from catalog_api.domain.exceptions import DataInitializationError

logger = structlog.get_logger()

# (name, description, [(product name, description, price, stock)])
SAMPLE_CATALOG: list[tuple[str, str, list[tuple[str, str, str, int]]]] = [
    (
        "Electronics",
        "Electronic devices and gadgets",
        [
            ("Smartphone X", "Latest smartphone with advanced features", "999.99", 50),
            ("Laptop Pro", "High-performance laptop for professionals", "1499.99", 30),
            ("Wireless Headphones", "Noise-cancelling wireless headphones", "199.99", 100),
        ],
    ),
    (
        "Clothing",
        "Apparel and fashion items",
        [
            ("Cotton T-Shirt", "Comfortable cotton t-shirt", "19.99", 200),
            ("Slim Fit Jeans", "Classic slim fit denim jeans", "49.99", 150),
            ("Winter Jacket", "Warm jacket for cold weather", "129.99", 75),
        ],
    ),
    (
        "Books",
        "Books across all genres",
        [
            ("Bestselling Novel", "Award-winning fiction novel", "14.99", 300),
            ("Gourmet Cookbook", "Recipes from world-class chefs", "29.99", 120),
            ("Computer Science Textbook", "Comprehensive guide to algorithms", "79.99", 0),
        ],
    ),
    (
        "Home & Kitchen",
        "Appliances and essentials for the home",
        [
            ("High-Speed Blender", "Powerful blender for smoothies", "89.99", 60),
            ("Programmable Coffee Maker", "Coffee maker with timer", "59.99", 45),
            ("4-Slice Toaster", "Toaster with wide slots", "39.99", 80),
        ],
    ),
]


async def seed_sample_data(session: AsyncSession) -> dict[str, int]:
    """Insert the sample catalog if the database is empty.

    Args:
        session: Async SQLAlchemy session; committed on success.

    Returns:
        Number of categories and products created (zeros when skipped).

    Raises:
        DataInitializationError: If the inserts fail.
    """
    categories = CategoryRepository(session)
    products = ProductRepository(session)

    if await categories.count() > 0 or await products.count() > 0:
        logger.info("Sample data skipped, catalog is not empty")
        return {"categories": 0, "products": 0}

    created_categories = 0
    created_products = 0
    try:
        for name, description, items in SAMPLE_CATALOG:
            category = await categories.save(Category(name=name, description=description))
            created_categories += 1

            await products.save_all(
                [
                    Product(
                        name=product_name,
                        description=product_description,
                        price=Decimal(price),
                        stock=stock,
                        in_stock=stock > 0,
                        category_id=category.id,
                    )
                    for product_name, product_description, price, stock in items
                ]
            )
            created_products += len(items)

        await session.commit()
    except SQLAlchemyError as e:
        await session.rollback()
        logger.error("Sample data initialization failed", error=str(e))
        raise DataInitializationError(
            f"Failed to initialize sample data: {e}",
            details={"categories_created": created_categories},
        ) from e

    logger.info(
        "Sample data created",
        categories=created_categories,
        products=created_products,
    )
    return {"categories": created_categories, "products": created_products}
