"""Chunk-oriented job execution.

A ``Job`` runs its ``ChunkStep``s in order. Each step loops

    read chunk ─► process chunk ─► write chunk ─► commit

until the reader is exhausted. Any reader, processor or writer error
rolls the current chunk back and fails the step and the job. The writer
is closed on every path.

Writers do blocking file I/O, so every writer call runs in a worker
thread and the event loop keeps serving requests during an export.
"""

import asyncio
import itertools
from collections.abc import AsyncIterator, Callable, Sequence
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Protocol

import structlog
from anyio import to_thread

from catalog_api.batch.execution import JobExecution, JobStatus, StepExecution
from catalog_api.batch.listeners import (
    JobExecutionListener,
    JobExecutionLoggingListener,
    StepExecutionListener,
    StepExecutionLoggingListener,
)
from catalog_api.batch.writers import ItemWriter
from catalog_api.domain.exceptions import ExportPathError
from catalog_api.infrastructure.config import settings

logger = structlog.get_logger()

DEFAULT_EXECUTION_HISTORY = 100


class ItemReader(Protocol):
    exhausted: bool

    async def open(self) -> None: ...

    async def read_chunk(self) -> Sequence[Any]: ...

    async def close(self) -> None: ...


class ItemProcessor(Protocol):
    def process(self, item: Any) -> Any | None: ...


# ============================================================================
# Step
# ============================================================================


class ChunkStep:
    """Chunk-oriented step: one reader, one processor, one writer.

    Readers and writers are created per run from factories, so a step
    definition can be executed any number of times.
    """

    def __init__(
        self,
        name: str,
        reader_factory: Callable[[], ItemReader],
        processor: ItemProcessor,
        writer_factory: Callable[[Path], ItemWriter],
        listeners: Sequence[StepExecutionListener] = (),
    ) -> None:
        self.name = name
        self.reader_factory = reader_factory
        self.processor = processor
        self.writer_factory = writer_factory
        self.listeners = list(listeners)

    async def execute(self, execution: StepExecution, output_path: Path) -> None:
        """Run the step, recording counters and failures on ``execution``.

        Args:
            execution: Step execution to update.
            output_path: File the writer produces.
        """
        execution.transition_to(JobStatus.STARTED)
        for listener in self.listeners:
            listener.before_step(execution)

        reader = self.reader_factory()
        writer = self.writer_factory(output_path)

        try:
            await reader.open()
            await to_thread.run_sync(writer.open)
            while not reader.exhausted:
                await self._run_chunk(execution, reader, writer)
        except Exception as e:
            logger.exception("Step failed", step_name=self.name, error=str(e))
            execution.add_failure(e)
        finally:
            try:
                await to_thread.run_sync(writer.close)
            except Exception as e:
                logger.exception("Writer close failed", step_name=self.name, error=str(e))
                execution.add_failure(e)
            await reader.close()

        execution.transition_to(
            JobStatus.FAILED if execution.failure_exceptions else JobStatus.COMPLETED
        )
        for listener in self.listeners:
            listener.after_step(execution)

    async def _run_chunk(
        self, execution: StepExecution, reader: ItemReader, writer: ItemWriter
    ) -> None:
        try:
            items = await reader.read_chunk()
            if not items:
                return
            execution.read_count += len(items)

            processed = []
            for item in items:
                result = self.processor.process(item)
                if result is None:
                    execution.filter_count += 1
                else:
                    processed.append(result)

            await to_thread.run_sync(writer.write, processed)
            await to_thread.run_sync(writer.commit)
        except Exception:
            await to_thread.run_sync(writer.rollback)
            execution.rollback_count += 1
            raise

        execution.write_count += len(processed)
        execution.commit_count += 1


# ============================================================================
# Job
# ============================================================================


class Job:
    """Named sequence of steps sharing one output path."""

    def __init__(
        self,
        name: str,
        steps: Sequence[ChunkStep],
        listeners: Sequence[JobExecutionListener] = (),
    ) -> None:
        self.name = name
        self.steps = list(steps)
        self.listeners = list(listeners)

    async def execute(
        self, execution: JobExecution, repository: "JobExecutionRepository"
    ) -> None:
        """Run every step in order, stopping at the first failed one.

        Args:
            execution: Job execution to update.
            repository: Source of step execution ids.
        """
        execution.transition_to(JobStatus.STARTED)
        for listener in self.listeners:
            listener.before_job(execution)

        output_path = Path(execution.file_path)
        for step in self.steps:
            step_execution = repository.create_step_execution(execution, step.name)
            try:
                await step.execute(step_execution, output_path)
            except Exception as e:
                # Errors outside the chunk loop (listeners, state machine)
                logger.exception("Step aborted", step_name=step.name, error=str(e))
                execution.add_failure(e)
                break
            if step_execution.status is JobStatus.FAILED:
                break

        failed = execution.failure_exceptions or any(
            s.status is not JobStatus.COMPLETED for s in execution.step_executions
        )
        execution.transition_to(JobStatus.FAILED if failed else JobStatus.COMPLETED)

        for listener in self.listeners:
            listener.after_job(execution)


# ============================================================================
# Execution Repository
# ============================================================================


class JobExecutionRepository:
    """In-memory store of job executions, keyed by increasing integer ids.

    Only the newest ``max_executions`` executions are kept; older ones are
    evicted as new executions are created.
    """

    def __init__(self, max_executions: int = DEFAULT_EXECUTION_HISTORY) -> None:
        if max_executions < 1:
            raise ValueError("max_executions must be at least 1")
        self.max_executions = max_executions
        self._executions: dict[int, JobExecution] = {}
        self._job_ids = itertools.count(1)
        self._step_ids = itertools.count(1)

    def create_job_execution(
        self, job_name: str, parameters: dict[str, Any]
    ) -> JobExecution:
        execution = JobExecution(
            id=next(self._job_ids), job_name=job_name, parameters=dict(parameters)
        )
        self._executions[execution.id] = execution
        while len(self._executions) > self.max_executions:
            # dicts keep insertion order, which is id order
            oldest = next(iter(self._executions))
            del self._executions[oldest]
        return execution

    def create_step_execution(
        self, job_execution: JobExecution, step_name: str
    ) -> StepExecution:
        step = StepExecution(
            id=next(self._step_ids),
            step_name=step_name,
            job_execution_id=job_execution.id,
        )
        job_execution.step_executions.append(step)
        return step

    def get(self, execution_id: int) -> JobExecution | None:
        """Get execution by ID."""
        return self._executions.get(execution_id)

    def list_all(self) -> list[JobExecution]:
        """All executions, newest first."""
        return sorted(self._executions.values(), key=lambda e: e.id, reverse=True)


# ============================================================================
# Launcher
# ============================================================================


class JobLauncher:
    """Runs jobs synchronously, one at a time per output path.

    Example usage:
        launcher = get_job_launcher()
        execution = await launcher.run(job, {"file_path": "exports/products.csv"})
        assert execution.status is JobStatus.COMPLETED
    """

    def __init__(
        self,
        repository: JobExecutionRepository | None = None,
        export_base_dir: str | Path | None = None,
    ) -> None:
        """Initialize launcher.

        Args:
            repository: Execution store; a fresh one when omitted.
            export_base_dir: When set, output paths must resolve inside it.
        """
        self.repository = repository or JobExecutionRepository()
        self.export_base_dir = (
            Path(export_base_dir).resolve() if export_base_dir is not None else None
        )
        self._path_locks: dict[Path, asyncio.Lock] = {}
        self._path_waiters: dict[Path, int] = {}

    def resolve_output_path(self, file_path: str | Path) -> Path:
        """Resolve an output path, relative to the base directory if one is set.

        Raises:
            ExportPathError: If the path escapes the base directory.
        """
        path = Path(file_path).expanduser()
        if self.export_base_dir is not None:
            if not path.is_absolute():
                path = self.export_base_dir / path
            resolved = path.resolve()
            if not resolved.is_relative_to(self.export_base_dir):
                raise ExportPathError(str(file_path))
            return resolved
        return path.resolve()

    @asynccontextmanager
    async def _hold_path(self, path: Path) -> AsyncIterator[None]:
        """Hold the lock of ``path``, dropping it once nobody waits on it."""
        lock = self._path_locks.setdefault(path, asyncio.Lock())
        self._path_waiters[path] = self._path_waiters.get(path, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._path_waiters[path] -= 1
            if not self._path_waiters[path]:
                del self._path_waiters[path]
                del self._path_locks[path]

    async def run(self, job: Job, parameters: dict[str, Any]) -> JobExecution:
        """Run ``job`` to completion.

        Args:
            job: Job to run.
            parameters: Launch parameters; ``file_path`` is required.

        Returns:
            Finished job execution (COMPLETED or FAILED).

        Raises:
            ExportPathError: If the output path is not allowed.
        """
        output_path = self.resolve_output_path(parameters["file_path"])
        parameters = {
            **parameters,
            "file_path": str(output_path),
            "requested_at": datetime.now(timezone.utc).isoformat(),
        }

        async with self._hold_path(output_path):
            execution = self.repository.create_job_execution(job.name, parameters)
            await job.execute(execution, self.repository)

        return execution


# ============================================================================
# Singleton Access
# ============================================================================


_launcher: JobLauncher | None = None


def get_job_launcher() -> JobLauncher:
    """Get the process-wide job launcher."""
    global _launcher
    if _launcher is None:
        _launcher = JobLauncher(
            repository=JobExecutionRepository(settings.batch_execution_history),
            export_base_dir=settings.export_base_dir,
        )
    return _launcher


def reset_job_launcher() -> None:
    """Drop the process-wide launcher and its execution history."""
    global _launcher
    _launcher = None


def default_step_listeners() -> list[StepExecutionListener]:
    return [StepExecutionLoggingListener()]


def default_job_listeners() -> list[JobExecutionListener]:
    return [JobExecutionLoggingListener()]
