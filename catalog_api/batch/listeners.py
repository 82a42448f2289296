"""Execution listeners for export jobs.

Listeners are called around every job and step run. The logging
listeners report status, timing and counters through structlog.
"""

import structlog

from catalog_api.batch.execution import JobExecution, StepExecution, describe_failure

logger = structlog.get_logger()


class JobExecutionListener:
    """Hooks called before and after a job run."""

    def before_job(self, execution: JobExecution) -> None:
        pass

    def after_job(self, execution: JobExecution) -> None:
        pass


class StepExecutionListener:
    """Hooks called before and after a step run."""

    def before_step(self, execution: StepExecution) -> None:
        pass

    def after_step(self, execution: StepExecution) -> None:
        pass


class JobExecutionLoggingListener(JobExecutionListener):
    """Logs job start, outcome, totals and every failure."""

    def before_job(self, execution: JobExecution) -> None:
        logger.info(
            "Job starting",
            job_name=execution.job_name,
            execution_id=execution.id,
            parameters=execution.parameters,
        )

    def after_job(self, execution: JobExecution) -> None:
        log = logger.bind(
            job_name=execution.job_name,
            execution_id=execution.id,
            status=execution.status.value,
            duration_ms=execution.duration_ms,
            read_count=execution.read_count,
            write_count=execution.write_count,
            skip_count=execution.skip_count,
        )
        failures = execution.all_failure_exceptions
        if failures:
            log.error("Job finished with errors", error_count=len(failures))
            for exc in failures:
                log.error("Job failure", error=describe_failure(exc))
        else:
            log.info("Job finished")


class StepExecutionLoggingListener(StepExecutionListener):
    """Logs step start, outcome, counters and every failure."""

    def before_step(self, execution: StepExecution) -> None:
        logger.info(
            "Step starting",
            step_name=execution.step_name,
            job_execution_id=execution.job_execution_id,
        )

    def after_step(self, execution: StepExecution) -> None:
        log = logger.bind(
            step_name=execution.step_name,
            job_execution_id=execution.job_execution_id,
            status=execution.status.value,
            duration_ms=execution.duration_ms,
        )
        log.info(
            "Step finished",
            read_count=execution.read_count,
            write_count=execution.write_count,
            filter_count=execution.filter_count,
            skip_count=execution.skip_count,
            commit_count=execution.commit_count,
            rollback_count=execution.rollback_count,
        )
        for exc in execution.failure_exceptions:
            log.error("Step failure", error=describe_failure(exc))
