"""Product export service.

Launches export jobs and looks up their executions.
"""

import structlog
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from catalog_api.batch.execution import JobExecution, JobStatus, describe_failure
from catalog_api.batch.jobs import build_export_job, get_export_format
from catalog_api.batch.pipeline import JobLauncher, get_job_launcher
from catalog_api.domain.exceptions import ExportFailedError, ExportJobNotFoundError
from catalog_api.infrastructure.config import settings
from catalog_api.infrastructure.database import get_session_factory

logger = structlog.get_logger()


class ProductExportService:
    """Service for exporting the product catalog to files.

    Example usage:
        service = ProductExportService()
        execution_id = await service.export_to_csv("exports/products.csv")
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession] | None = None,
        launcher: JobLauncher | None = None,
        chunk_size: int | None = None,
    ) -> None:
        """Initialize export service.

        Args:
            session_factory: Session factory for the job reader.
            launcher: Job launcher; the process-wide one when omitted.
            chunk_size: Products per chunk; ``settings.batch_chunk_size``
                when omitted.
        """
        self.session_factory = session_factory or get_session_factory()
        self.launcher = launcher or get_job_launcher()
        self.chunk_size = chunk_size or settings.batch_chunk_size

    async def export(self, export_format: str, file_path: str | None = None) -> int:
        """Run the export job for a format and wait for it to finish.

        Args:
            export_format: ``csv``, ``json`` or ``xlsx``.
            file_path: Output file; ``products.<ext>`` when omitted.

        Returns:
            Execution id of the completed job.

        Raises:
            UnsupportedExportFormatError: If the format is unknown.
            ExportPathError: If the output path is not allowed.
            ExportFailedError: If the job finished FAILED.
        """
        fmt = get_export_format(export_format)
        job = build_export_job(fmt.key, self.session_factory, self.chunk_size)
        output = file_path or f"products{fmt.extension}"

        logger.info("Export requested", job_name=job.name, file_path=output)

        execution = await self.launcher.run(job, {"file_path": output})

        if execution.status is JobStatus.FAILED:
            raise ExportFailedError(
                execution.id,
                execution.job_name,
                [describe_failure(e) for e in execution.all_failure_exceptions],
            )
        return execution.id

    async def export_to_csv(self, file_path: str | None = None) -> int:
        return await self.export("csv", file_path)

    async def export_to_json(self, file_path: str | None = None) -> int:
        return await self.export("json", file_path)

    async def export_to_xlsx(self, file_path: str | None = None) -> int:
        return await self.export("xlsx", file_path)

    def get_execution(self, execution_id: int) -> JobExecution:
        """Get a job execution.

        Raises:
            ExportJobNotFoundError: If no execution has this id.
        """
        execution = self.launcher.repository.get(execution_id)
        if execution is None:
            raise ExportJobNotFoundError(execution_id)
        return execution

    def list_executions(self) -> list[JobExecution]:
        return self.launcher.repository.list_all()
