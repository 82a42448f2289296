"""Item processors for export jobs.

A processor returns the item to write, or ``None`` to filter it out.
"""

import structlog

from catalog_api.catalog.models import Product

logger = structlog.get_logger()


class PassThroughProcessor:
    """Hands every product to the writer unchanged."""

    def process(self, item: Product) -> Product | None:
        logger.debug("Processing product", product_id=item.id)
        return item
