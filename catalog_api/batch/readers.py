"""Item readers for export jobs."""

from collections.abc import Sequence

import structlog
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from catalog_api.catalog.models import Product
from catalog_api.catalog.repository import ProductRepository

logger = structlog.get_logger()


class ProductPageReader:
    """Reads every product ordered by id, one page per chunk.

    The reader owns its own session, separate from any request session.
    It is exhausted once a page comes back shorter than the page size.

    Example usage:
        reader = ProductPageReader(async_session_factory, page_size=100)
        await reader.open()
        try:
            while not reader.exhausted:
                chunk = await reader.read_chunk()
        finally:
            await reader.close()
    """

    name = "productPageReader"

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        page_size: int = 100,
    ) -> None:
        """Initialize reader.

        Args:
            session_factory: Factory for the reader's own session.
            page_size: Rows fetched per page, equal to the chunk size.
        """
        if page_size < 1:
            raise ValueError("page_size must be at least 1")
        self.session_factory = session_factory
        self.page_size = page_size
        self.page = 0
        self.exhausted = False
        self._session: AsyncSession | None = None

    async def open(self) -> None:
        self._session = self.session_factory()
        self.page = 0
        self.exhausted = False

    async def read_chunk(self) -> Sequence[Product]:
        """Read the next page of products.

        Returns:
            Products on the next page; empty once exhausted.
        """
        if self.exhausted:
            return []
        if self._session is None:
            raise RuntimeError("Reader is not open")

        repository = ProductRepository(self._session)
        items = await repository.find_chunk(self.page * self.page_size, self.page_size)

        logger.debug("Read product page", page=self.page, count=len(items))

        self.page += 1
        if len(items) < self.page_size:
            self.exhausted = True
        return items

    async def close(self) -> None:
        if self._session is not None:
            await self._session.close()
            self._session = None
