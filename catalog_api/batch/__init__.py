"""Batch export pipeline.

Chunk-oriented jobs that export the product catalog to CSV, JSON and
XLSX files.
"""

from catalog_api.batch.execution import JobExecution, JobStatus, StepExecution
from catalog_api.batch.jobs import EXPORT_FORMATS, build_export_job
from catalog_api.batch.pipeline import (
    ChunkStep,
    Job,
    JobExecutionRepository,
    JobLauncher,
    get_job_launcher,
)
from catalog_api.batch.service import ProductExportService

__all__ = [
    # Execution state
    "JobExecution",
    "JobStatus",
    "StepExecution",
    # Pipeline
    "ChunkStep",
    "Job",
    "JobExecutionRepository",
    "JobLauncher",
    "get_job_launcher",
    # Jobs
    "EXPORT_FORMATS",
    "build_export_job",
    # Service
    "ProductExportService",
]
