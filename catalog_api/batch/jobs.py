"""Export job definitions.

One job per output format, each with a single chunk-oriented step:

    format  job              step
    csv     exportCsvJob     exportCsvStep
    json    exportJsonJob    exportJsonStep
    xlsx    exportXlsxJob    exportXlsxStep
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Callable

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from catalog_api.batch.pipeline import (
    ChunkStep,
    Job,
    default_job_listeners,
    default_step_listeners,
)
from catalog_api.batch.processors import PassThroughProcessor
from catalog_api.batch.readers import ProductPageReader
from catalog_api.batch.writers import (
    CsvProductWriter,
    ItemWriter,
    JsonProductWriter,
    XlsxProductWriter,
)
from catalog_api.domain.exceptions import UnsupportedExportFormatError


@dataclass(frozen=True)
class ExportFormat:
    """Output format of an export job."""

    key: str
    job_name: str
    step_name: str
    writer_factory: Callable[[Path], ItemWriter]
    extension: str


EXPORT_FORMATS: dict[str, ExportFormat] = {
    "csv": ExportFormat("csv", "exportCsvJob", "exportCsvStep", CsvProductWriter, ".csv"),
    "json": ExportFormat("json", "exportJsonJob", "exportJsonStep", JsonProductWriter, ".json"),
    "xlsx": ExportFormat("xlsx", "exportXlsxJob", "exportXlsxStep", XlsxProductWriter, ".xlsx"),
}


def get_export_format(export_format: str) -> ExportFormat:
    """Look up an export format case-insensitively.

    Raises:
        UnsupportedExportFormatError: If the format is unknown.
    """
    try:
        return EXPORT_FORMATS[export_format.lower()]
    except KeyError:
        raise UnsupportedExportFormatError(export_format) from None


def build_export_job(
    export_format: str,
    session_factory: async_sessionmaker[AsyncSession],
    chunk_size: int = 100,
) -> Job:
    """Build the export job for a format.

    Args:
        export_format: ``csv``, ``json`` or ``xlsx``.
        session_factory: Factory for the reader's session.
        chunk_size: Products per chunk, also the reader page size.

    Returns:
        Job with one chunk step and logging listeners attached.
    """
    fmt = get_export_format(export_format)
    step = ChunkStep(
        name=fmt.step_name,
        reader_factory=lambda: ProductPageReader(session_factory, page_size=chunk_size),
        processor=PassThroughProcessor(),
        writer_factory=fmt.writer_factory,
        listeners=default_step_listeners(),
    )
    return Job(fmt.job_name, [step], listeners=default_job_listeners())
