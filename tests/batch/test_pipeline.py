"""Tests for the chunk-oriented job pipeline."""

import asyncio
import time
from collections.abc import Sequence
from decimal import Decimal
from pathlib import Path
from typing import Any

import pytest

from catalog_api.batch.execution import JobStatus
from catalog_api.batch.jobs import EXPORT_FORMATS, build_export_job, get_export_format
from catalog_api.batch.listeners import JobExecutionListener, StepExecutionListener
from catalog_api.batch.pipeline import (
    ChunkStep,
    Job,
    JobExecutionRepository,
    JobLauncher,
    get_job_launcher,
    reset_job_launcher,
)
from catalog_api.batch.processors import PassThroughProcessor
from catalog_api.batch.readers import ProductPageReader
from catalog_api.batch.writers import CsvProductWriter, ItemWriter
from catalog_api.catalog.models import Product
from catalog_api.domain.exceptions import ExportPathError, UnsupportedExportFormatError


# ============================================================================
# Test Doubles
# ============================================================================


class ListReader:
    """Reads fixed-size chunks from a list."""

    def __init__(self, items: list[Any], chunk_size: int = 2, fail_on_chunk: int | None = None) -> None:
        self.items = items
        self.chunk_size = chunk_size
        self.fail_on_chunk = fail_on_chunk
        self.exhausted = False
        self.chunks_read = 0
        self.closed = False

    async def open(self) -> None:
        pass

    async def read_chunk(self) -> Sequence[Any]:
        if self.fail_on_chunk is not None and self.chunks_read == self.fail_on_chunk:
            raise RuntimeError("database went away")
        start = self.chunks_read * self.chunk_size
        chunk = self.items[start : start + self.chunk_size]
        self.chunks_read += 1
        if len(chunk) < self.chunk_size:
            self.exhausted = True
        return chunk

    async def close(self) -> None:
        self.closed = True


class RecordingWriter(ItemWriter):
    """Keeps committed chunks in memory."""

    def __init__(self, path: Path, fail_on_write: int | None = None, fail_on_close: bool = False) -> None:
        super().__init__(path)
        self.fail_on_write = fail_on_write
        self.fail_on_close = fail_on_close
        self.pending: list[Any] = []
        self.committed: list[Any] = []
        self.writes = 0
        self.rollbacks = 0

    def _open(self) -> None:
        pass

    def _write(self, items: Sequence[Any]) -> None:
        if self.fail_on_write is not None and self.writes == self.fail_on_write:
            raise OSError("disk full")
        self.writes += 1
        self.pending.extend(items)

    def commit(self) -> None:
        self.committed.extend(self.pending)
        self.pending = []

    def rollback(self) -> None:
        self.rollbacks += 1
        self.pending = []

    def _close(self) -> None:
        if self.fail_on_close:
            raise OSError("close failed")


class DropEvenProcessor:
    def process(self, item: int) -> int | None:
        return None if item % 2 == 0 else item


class ExplodingProcessor:
    def process(self, item: int) -> int | None:
        if item == 3:
            raise ValueError("bad item 3")
        return item


class RecordingListener(JobExecutionListener, StepExecutionListener):
    def __init__(self) -> None:
        self.events: list[str] = []

    def before_job(self, execution) -> None:
        self.events.append("before_job")

    def after_job(self, execution) -> None:
        self.events.append(f"after_job:{execution.status.value}")

    def before_step(self, execution) -> None:
        self.events.append("before_step")

    def after_step(self, execution) -> None:
        self.events.append(f"after_step:{execution.status.value}")


def make_job(
    items: list[Any],
    writer: RecordingWriter,
    reader: ListReader | None = None,
    processor: Any = None,
    listener: RecordingListener | None = None,
) -> Job:
    listeners = [listener] if listener else []
    step = ChunkStep(
        name="testStep",
        reader_factory=lambda: reader or ListReader(items),
        processor=processor or PassThroughProcessor(),
        writer_factory=lambda path: writer,
        listeners=listeners,
    )
    return Job("testJob", [step], listeners=listeners)


class IntItem(int):
    """int with an ``id`` so PassThroughProcessor can log it."""

    @property
    def id(self) -> int:
        return int(self)


def ints(n: int) -> list[IntItem]:
    return [IntItem(i) for i in range(1, n + 1)]


# ============================================================================
# Job Execution
# ============================================================================


class TestChunkStep:
    """Tests for chunk processing and counters."""

    @pytest.mark.asyncio
    async def test_successful_run_counts(self, tmp_path: Path) -> None:
        """Every item is read, written and committed in chunks."""
        writer = RecordingWriter(tmp_path / "out")
        launcher = JobLauncher()

        execution = await launcher.run(make_job(ints(5), writer), {"file_path": str(tmp_path / "out")})

        step = execution.step_executions[0]
        assert execution.status is JobStatus.COMPLETED
        assert step.status is JobStatus.COMPLETED
        assert step.read_count == 5
        assert step.write_count == 5
        assert step.commit_count == 3
        assert step.rollback_count == 0
        assert writer.committed == [1, 2, 3, 4, 5]
        assert writer.closed

    @pytest.mark.asyncio
    async def test_exact_multiple_ends_with_empty_read(self, tmp_path: Path) -> None:
        """An empty trailing chunk is not committed."""
        writer = RecordingWriter(tmp_path / "out")
        execution = await JobLauncher().run(
            make_job(ints(4), writer), {"file_path": str(tmp_path / "out")}
        )
        step = execution.step_executions[0]
        assert step.read_count == 4
        assert step.commit_count == 2

    @pytest.mark.asyncio
    async def test_filtered_items_are_counted(self, tmp_path: Path) -> None:
        """Items the processor drops count as filtered, not written."""
        writer = RecordingWriter(tmp_path / "out")
        execution = await JobLauncher().run(
            make_job(ints(5), writer, processor=DropEvenProcessor()),
            {"file_path": str(tmp_path / "out")},
        )
        step = execution.step_executions[0]
        assert step.filter_count == 2
        assert step.write_count == 3
        assert writer.committed == [1, 3, 5]

    @pytest.mark.asyncio
    async def test_writer_failure_rolls_back_and_fails(self, tmp_path: Path) -> None:
        """A write error rolls the chunk back and fails step and job."""
        writer = RecordingWriter(tmp_path / "out", fail_on_write=1)
        execution = await JobLauncher().run(
            make_job(ints(6), writer), {"file_path": str(tmp_path / "out")}
        )

        step = execution.step_executions[0]
        assert execution.status is JobStatus.FAILED
        assert step.status is JobStatus.FAILED
        assert step.write_count == 2
        assert step.commit_count == 1
        assert step.rollback_count == 1
        assert writer.committed == [1, 2]
        assert writer.closed
        assert isinstance(execution.all_failure_exceptions[0], OSError)

    @pytest.mark.asyncio
    async def test_processor_failure_fails_job(self, tmp_path: Path) -> None:
        """A processing error fails the job; earlier chunks stay committed."""
        writer = RecordingWriter(tmp_path / "out")
        execution = await JobLauncher().run(
            make_job(ints(5), writer, processor=ExplodingProcessor()),
            {"file_path": str(tmp_path / "out")},
        )
        assert execution.status is JobStatus.FAILED
        assert writer.committed == [1, 2]
        assert execution.step_executions[0].rollback_count == 1
        assert "bad item 3" in str(execution.all_failure_exceptions[0])

    @pytest.mark.asyncio
    async def test_reader_failure_closes_everything(self, tmp_path: Path) -> None:
        """Reader errors still close the reader and writer."""
        reader = ListReader(ints(5), fail_on_chunk=1)
        writer = RecordingWriter(tmp_path / "out")
        execution = await JobLauncher().run(
            make_job(ints(5), writer, reader=reader), {"file_path": str(tmp_path / "out")}
        )
        assert execution.status is JobStatus.FAILED
        assert reader.closed
        assert writer.closed
        assert execution.read_count == 2

    @pytest.mark.asyncio
    async def test_close_failure_fails_step(self, tmp_path: Path) -> None:
        """An error while closing the writer fails an otherwise good step."""
        writer = RecordingWriter(tmp_path / "out", fail_on_close=True)
        execution = await JobLauncher().run(
            make_job(ints(2), writer), {"file_path": str(tmp_path / "out")}
        )
        assert execution.status is JobStatus.FAILED
        assert execution.write_count == 2

    @pytest.mark.asyncio
    async def test_listeners_called_in_order(self, tmp_path: Path) -> None:
        """Job listeners wrap step listeners."""
        listener = RecordingListener()
        writer = RecordingWriter(tmp_path / "out")
        await JobLauncher().run(
            make_job(ints(1), writer, listener=listener), {"file_path": str(tmp_path / "out")}
        )
        assert listener.events == [
            "before_job",
            "before_step",
            "after_step:COMPLETED",
            "after_job:COMPLETED",
        ]

    @pytest.mark.asyncio
    async def test_recorded_failures_drop_tracebacks(self, tmp_path: Path) -> None:
        """Failures kept on the execution do not pin stack frames."""
        writer = RecordingWriter(tmp_path / "out", fail_on_write=0)
        execution = await JobLauncher().run(
            make_job(ints(2), writer), {"file_path": str(tmp_path / "out")}
        )

        failure = execution.all_failure_exceptions[0]
        assert isinstance(failure, OSError)
        assert failure.__traceback__ is None

    @pytest.mark.asyncio
    async def test_writer_io_runs_off_event_loop(self, tmp_path: Path) -> None:
        """Blocking writer calls leave the event loop free for other tasks."""

        class BlockingWriter(RecordingWriter):
            def _write(self, items: Sequence[Any]) -> None:
                time.sleep(0.3)
                super()._write(items)

            def _close(self) -> None:
                time.sleep(0.3)

        gaps: list[float] = []
        done = asyncio.Event()

        async def ticker() -> None:
            last = time.perf_counter()
            while not done.is_set():
                await asyncio.sleep(0.005)
                now = time.perf_counter()
                gaps.append(now - last)
                last = now

        task = asyncio.create_task(ticker())
        try:
            execution = await JobLauncher().run(
                make_job(ints(4), BlockingWriter(tmp_path / "out")),
                {"file_path": str(tmp_path / "out")},
            )
        finally:
            done.set()
            await task

        assert execution.status is JobStatus.COMPLETED
        assert len(gaps) > 20
        assert max(gaps) < 0.25

    @pytest.mark.asyncio
    async def test_job_stops_at_first_failed_step(self, tmp_path: Path) -> None:
        """Steps after a failed step do not run."""
        failing = ChunkStep(
            "first",
            lambda: ListReader(ints(2)),
            PassThroughProcessor(),
            lambda path: RecordingWriter(path, fail_on_write=0),
        )
        second_writer = RecordingWriter(tmp_path / "second")
        second = ChunkStep(
            "second",
            lambda: ListReader(ints(2)),
            PassThroughProcessor(),
            lambda path: second_writer,
        )

        execution = await JobLauncher().run(
            Job("twoSteps", [failing, second]), {"file_path": str(tmp_path / "out")}
        )

        assert execution.status is JobStatus.FAILED
        assert [s.step_name for s in execution.step_executions] == ["first"]
        assert second_writer.committed == []


# ============================================================================
# Repository and Launcher
# ============================================================================


class TestJobExecutionRepository:
    """Tests for the in-memory execution store."""

    def test_ids_increase(self) -> None:
        repo = JobExecutionRepository()
        first = repo.create_job_execution("a", {})
        second = repo.create_job_execution("b", {})
        assert second.id == first.id + 1
        assert repo.get(first.id) is first
        assert repo.get(99) is None

    def test_list_newest_first(self) -> None:
        repo = JobExecutionRepository()
        ids = [repo.create_job_execution("a", {}).id for _ in range(3)]
        assert [e.id for e in repo.list_all()] == list(reversed(ids))

    def test_step_executions_are_attached(self) -> None:
        repo = JobExecutionRepository()
        job = repo.create_job_execution("a", {})
        step = repo.create_step_execution(job, "s")
        assert job.step_executions == [step]
        assert step.job_execution_id == job.id

    def test_history_is_bounded(self) -> None:
        repo = JobExecutionRepository(max_executions=2)
        ids = [repo.create_job_execution("a", {}).id for _ in range(3)]

        assert repo.get(ids[0]) is None
        assert [e.id for e in repo.list_all()] == [ids[2], ids[1]]

    def test_history_size_must_be_positive(self) -> None:
        with pytest.raises(ValueError):
            JobExecutionRepository(max_executions=0)


class TestJobLauncher:
    """Tests for JobLauncher path handling and serialization."""

    def test_relative_path_resolves_under_base_dir(self, tmp_path: Path) -> None:
        launcher = JobLauncher(export_base_dir=tmp_path)
        assert launcher.resolve_output_path("out/p.csv") == (tmp_path / "out" / "p.csv").resolve()

    def test_path_escaping_base_dir_is_rejected(self, tmp_path: Path) -> None:
        launcher = JobLauncher(export_base_dir=tmp_path / "exports")
        with pytest.raises(ExportPathError):
            launcher.resolve_output_path("../secrets.csv")
        with pytest.raises(ExportPathError):
            launcher.resolve_output_path("/etc/passwd")

    def test_no_base_dir_allows_any_path(self, tmp_path: Path) -> None:
        assert JobLauncher().resolve_output_path(tmp_path / "x.csv") == (tmp_path / "x.csv").resolve()

    @pytest.mark.asyncio
    async def test_parameters_record_resolved_path(self, tmp_path: Path) -> None:
        launcher = JobLauncher(export_base_dir=tmp_path)
        writer = RecordingWriter(tmp_path / "p.csv")
        execution = await launcher.run(make_job(ints(1), writer), {"file_path": "p.csv"})
        assert execution.file_path == str((tmp_path / "p.csv").resolve())
        assert "requested_at" in execution.parameters

    @pytest.mark.asyncio
    async def test_runs_on_same_path_do_not_overlap(self, tmp_path: Path) -> None:
        """Two jobs writing the same file run one after the other."""
        active = 0
        overlaps = 0

        class SlowReader(ListReader):
            async def read_chunk(self) -> Sequence[Any]:
                nonlocal active, overlaps
                active += 1
                overlaps = max(overlaps, active)
                await asyncio.sleep(0.01)
                active -= 1
                return await super().read_chunk()

        def job() -> Job:
            writer = RecordingWriter(tmp_path / "same")
            return make_job(ints(3), writer, reader=SlowReader(ints(3)))

        launcher = JobLauncher()
        results = await asyncio.gather(
            launcher.run(job(), {"file_path": str(tmp_path / "same")}),
            launcher.run(job(), {"file_path": str(tmp_path / "same")}),
        )

        assert overlaps == 1
        assert all(e.status is JobStatus.COMPLETED for e in results)
        assert launcher._path_locks == {}

    def test_singleton(self) -> None:
        reset_job_launcher()
        try:
            assert get_job_launcher() is get_job_launcher()
        finally:
            reset_job_launcher()


# ============================================================================
# Export Jobs
# ============================================================================


class TestExportJobs:
    """Tests for the CSV/JSON/XLSX job definitions."""

    def test_formats(self) -> None:
        assert set(EXPORT_FORMATS) == {"csv", "json", "xlsx"}
        assert get_export_format("CSV").job_name == "exportCsvJob"
        assert get_export_format("xlsx").step_name == "exportXlsxStep"

    def test_unknown_format_raises(self) -> None:
        with pytest.raises(UnsupportedExportFormatError):
            get_export_format("pdf")

    @pytest.mark.asyncio
    async def test_csv_job_exports_catalog(self, session_factory, catalog, tmp_path: Path) -> None:
        """The CSV job writes every product with chunked reads."""
        job = build_export_job("csv", session_factory, chunk_size=2)
        execution = await JobLauncher().run(job, {"file_path": str(tmp_path / "p.csv")})

        step = execution.step_executions[0]
        assert execution.status is JobStatus.COMPLETED
        assert execution.job_name == "exportCsvJob"
        assert step.step_name == "exportCsvStep"
        assert step.read_count == 5
        assert step.write_count == 5
        assert step.commit_count == 3
        assert len((tmp_path / "p.csv").read_text(encoding="utf-8").splitlines()) == 6

    @pytest.mark.asyncio
    async def test_reader_pages_by_id(self, session_factory, catalog) -> None:
        reader = ProductPageReader(session_factory, page_size=3)
        await reader.open()
        try:
            first = await reader.read_chunk()
            assert not reader.exhausted
            second = await reader.read_chunk()
            assert reader.exhausted
            assert await reader.read_chunk() == []
        finally:
            await reader.close()

        ids = [p.id for p in list(first) + list(second)]
        assert ids == sorted(ids)
        assert len(ids) == 5

    def test_reader_rejects_bad_page_size(self, session_factory) -> None:
        with pytest.raises(ValueError):
            ProductPageReader(session_factory, page_size=0)


def test_csv_writer_is_item_writer(tmp_path: Path) -> None:
    """Format writers share the ItemWriter protocol."""
    assert isinstance(CsvProductWriter(tmp_path / "x.csv"), ItemWriter)


def test_product_price_survives_csv(tmp_path: Path) -> None:
    """Prices keep two decimals in CSV output."""
    writer = CsvProductWriter(tmp_path / "x.csv")
    writer.open()
    writer.write([Product(id=1, name="A", price=Decimal("10.50"), stock=1, in_stock=True)])
    writer.commit()
    writer.close()
    assert "10.50" in (tmp_path / "x.csv").read_text(encoding="utf-8")
