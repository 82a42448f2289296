"""Product export endpoints.

Exports run synchronously: the request returns once the job finished.
"""

from typing import Annotated, Literal

from fastapi import APIRouter, Depends, Query

from catalog_api.api.schemas import (
    ExportJobResponse,
    ProblemDetail,
    StepExecutionResponse,
)
from catalog_api.batch.execution import JobExecution, describe_failure
from catalog_api.batch.service import ProductExportService

router = APIRouter(prefix="/api/products/export", tags=["Exports"])


# ============================================================================
# Dependencies
# ============================================================================


def get_export_service() -> ProductExportService:
    """Get export service using the process-wide launcher."""
    return ProductExportService()


ServiceDep = Annotated[ProductExportService, Depends(get_export_service)]


# ============================================================================
# Converters
# ============================================================================


def execution_to_response(execution: JobExecution) -> ExportJobResponse:
    """Convert JobExecution to response schema."""
    return ExportJobResponse(
        execution_id=execution.id,
        job_name=execution.job_name,
        status=execution.status.value,
        file_path=execution.file_path,
        start_time=execution.start_time,
        end_time=execution.end_time,
        duration_ms=execution.duration_ms,
        read_count=execution.read_count,
        write_count=execution.write_count,
        skip_count=execution.skip_count,
        failures=[describe_failure(e) for e in execution.all_failure_exceptions],
        steps=[
            StepExecutionResponse(
                step_name=step.step_name,
                status=step.status.value,
                read_count=step.read_count,
                write_count=step.write_count,
                filter_count=step.filter_count,
                read_skip_count=step.read_skip_count,
                process_skip_count=step.process_skip_count,
                write_skip_count=step.write_skip_count,
                commit_count=step.commit_count,
                rollback_count=step.rollback_count,
                start_time=step.start_time,
                end_time=step.end_time,
                failures=[describe_failure(e) for e in step.failure_exceptions],
            )
            for step in execution.step_executions
        ],
    )


# ============================================================================
# Endpoints
# ============================================================================


@router.post(
    "/{export_format}",
    response_model=int,
    responses={
        400: {"model": ProblemDetail},
        500: {"model": ProblemDetail, "description": "Export job failed"},
    },
    summary="Export products",
    description="Run the export job for a format and return its execution id.",
)
async def export_products(
    export_format: Literal["csv", "json", "xlsx"],
    service: ServiceDep,
    file_path: Annotated[str | None, Query(max_length=1024)] = None,
) -> int:
    """Export every product to a file.

    Args:
        export_format: Output format.
        service: Export service.
        file_path: Output file; ``products.<format>`` when omitted.

    Returns:
        Execution id of the completed job.
    """
    return await service.export(export_format, file_path)


@router.get(
    "/jobs/{execution_id}",
    response_model=ExportJobResponse,
    responses={404: {"model": ProblemDetail}},
    summary="Get export job execution",
)
async def get_export_job(execution_id: int, service: ServiceDep) -> ExportJobResponse:
    return execution_to_response(service.get_execution(execution_id))


@router.get(
    "/jobs",
    response_model=list[ExportJobResponse],
    summary="List export job executions",
)
async def list_export_jobs(service: ServiceDep) -> list[ExportJobResponse]:
    """Executions since process start, newest first."""
    return [execution_to_response(e) for e in service.list_executions()]
