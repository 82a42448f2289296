"""Item writers for export jobs.

Every writer follows the same protocol, driven by the chunk step:

    open() ─► (write(items) ─► commit() | rollback())* ─► close()

CSV and JSON writers are transactional: rows written during a chunk are
buffered and only reach the file on ``commit``. The XLSX writer keeps
the whole workbook in memory and saves it once on ``close``; it cannot
take rows back, so ``rollback`` only logs.
"""

import csv
from abc import ABC, abstractmethod
from collections.abc import Sequence
from datetime import datetime
from pathlib import Path
from typing import IO, Any

import structlog
from openpyxl import Workbook
from openpyxl.styles import Font

from catalog_api.api.converters import product_to_response
from catalog_api.catalog.models import Product
from catalog_api.domain.exceptions import WriterClosedError

logger = structlog.get_logger()

CSV_COLUMNS = ["id", "name", "description", "price", "inStock"]
XLSX_HEADER = ["ID", "Name", "Description", "Price", "In Stock"]
XLSX_PRODUCTS_SHEET = "Products"
XLSX_METADATA_SHEET = "Metadata"
EXPORT_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


class ItemWriter(ABC):
    """Base class for product writers.

    Attributes:
        path: Output file.
        closed: Whether ``close`` already ran.
    """

    name = "itemWriter"

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        self.closed = False
        self.opened = False

    def open(self) -> None:
        """Create the output file and write any preamble."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._open()
        self.opened = True
        logger.debug("Writer opened", writer=self.name, path=str(self.path))

    def write(self, items: Sequence[Product]) -> None:
        """Write one chunk of items.

        Raises:
            WriterClosedError: If the writer was already closed.
        """
        if self.closed:
            raise WriterClosedError(self.name)
        self._write(items)

    def commit(self) -> None:
        """Make the current chunk durable."""

    def rollback(self) -> None:
        """Discard the current chunk."""

    def close(self) -> None:
        """Finish the file. A second call is a no-op."""
        if self.closed:
            logger.warning("Writer already closed", writer=self.name, path=str(self.path))
            return
        self.closed = True
        if self.opened:
            self._close()
        logger.debug("Writer closed", writer=self.name, path=str(self.path))

    @abstractmethod
    def _open(self) -> None: ...

    @abstractmethod
    def _write(self, items: Sequence[Product]) -> None: ...

    @abstractmethod
    def _close(self) -> None: ...


# ============================================================================
# Transactional Writers
# ============================================================================


class _BufferedFileWriter(ItemWriter):
    """Text file writer that buffers a chunk until commit."""

    def __init__(self, path: str | Path) -> None:
        super().__init__(path)
        self._file: IO[str] | None = None
        self._buffer: list[Any] = []

    def _write(self, items: Sequence[Product]) -> None:
        self._buffer.extend(self._format(item) for item in items)

    def _require_file(self) -> IO[str]:
        if self._file is None:
            raise RuntimeError(f"Writer '{self.name}' is not open")
        return self._file

    def commit(self) -> None:
        if self._buffer:
            self._flush_buffer(self._buffer)
            self._require_file().flush()
        self._buffer = []

    def rollback(self) -> None:
        if self._buffer:
            logger.info(
                "Discarding uncommitted rows",
                writer=self.name,
                rows=len(self._buffer),
            )
        self._buffer = []

    def _close(self) -> None:
        self._buffer = []
        if self._file is not None:
            self._write_epilogue()
            self._file.close()
            self._file = None

    def _write_epilogue(self) -> None:
        pass

    @abstractmethod
    def _format(self, item: Product) -> Any: ...

    @abstractmethod
    def _flush_buffer(self, rows: list[Any]) -> None: ...


class CsvProductWriter(_BufferedFileWriter):
    """Comma-delimited export with the header ``id,name,description,price,inStock``.

    An existing file at the output path is truncated.
    """

    name = "csvProductWriter"

    def _open(self) -> None:
        self._file = self.path.open("w", newline="", encoding="utf-8")
        self._csv = csv.writer(self._file)
        self._csv.writerow(CSV_COLUMNS)

    def _format(self, item: Product) -> list[Any]:
        return [
            item.id,
            item.name,
            item.description or "",
            str(item.price),
            "true" if item.in_stock else "false",
        ]

    def _flush_buffer(self, rows: list[Any]) -> None:
        self._csv.writerows(rows)


class JsonProductWriter(_BufferedFileWriter):
    """Single JSON array of product records, one element per product."""

    name = "jsonProductWriter"

    def __init__(self, path: str | Path) -> None:
        super().__init__(path)
        self._written = 0

    def _open(self) -> None:
        self._file = self.path.open("w", encoding="utf-8")
        self._file.write("[")
        self._written = 0

    def _format(self, item: Product) -> str:
        return product_to_response(item).model_dump_json()

    def _flush_buffer(self, rows: list[Any]) -> None:
        file = self._require_file()
        for row in rows:
            file.write(",\n" if self._written else "\n")
            file.write(row)
            self._written += 1

    def _write_epilogue(self) -> None:
        self._require_file().write("\n]" if self._written else "]")


# ============================================================================
# XLSX Writer
# ============================================================================


class XlsxProductWriter(ItemWriter):
    """Excel export with a ``Products`` sheet and a ``Metadata`` sheet.

    Rows are appended in memory; the workbook is saved once on close.
    """

    name = "xlsxProductWriter"

    def __init__(self, path: str | Path) -> None:
        super().__init__(path)
        self.workbook: Workbook | None = None
        self.rows_written = 0

    def _open(self) -> None:
        self.workbook = Workbook()

        sheet = self.workbook.active
        sheet.title = XLSX_PRODUCTS_SHEET
        sheet.append(XLSX_HEADER)
        for cell in sheet[1]:
            cell.font = Font(bold=True)

        metadata = self.workbook.create_sheet(XLSX_METADATA_SHEET)
        metadata.append(["Export Date:", datetime.now().strftime(EXPORT_DATE_FORMAT)])

    def _require_workbook(self) -> Workbook:
        if self.workbook is None:
            raise RuntimeError(f"Writer '{self.name}' is not open")
        return self.workbook

    def _write(self, items: Sequence[Product]) -> None:
        sheet = self._require_workbook()[XLSX_PRODUCTS_SHEET]
        for item in items:
            sheet.append(
                [item.id, item.name, item.description, float(item.price), item.in_stock]
            )
        self.rows_written += len(items)

    def rollback(self) -> None:
        # Rows already appended to the sheet stay there
        logger.warning(
            "XLSX writer cannot roll back appended rows",
            writer=self.name,
            rows_written=self.rows_written,
        )

    def _close(self) -> None:
        self._require_workbook().save(self.path)
        logger.info("Workbook saved", path=str(self.path), rows=self.rows_written)
        self.workbook = None
