"""Job and step execution state.

A job execution owns one step execution per step. Both move through the
same status state machine:

    STARTING ──► STARTED ──► COMPLETED
        │           │
        └───────────┴──────► FAILED
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from catalog_api.domain.exceptions import InvalidJobTransitionError


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


# ============================================================================
# Status State Machine
# ============================================================================


class JobStatus(str, Enum):
    """Lifecycle of a job or step execution."""

    STARTING = "STARTING"
    STARTED = "STARTED"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"

    def can_transition_to(self, target: "JobStatus") -> bool:
        """Check if transition to target state is valid.

        Args:
            target: Target state to transition to.

        Returns:
            True if transition is valid.
        """
        return target in _JOB_TRANSITIONS.get(self, set())

    def allowed_transitions(self) -> list["JobStatus"]:
        """Get list of valid target states."""
        return list(_JOB_TRANSITIONS.get(self, set()))

    def is_terminal(self) -> bool:
        """Check if this is a terminal (final) state."""
        return len(_JOB_TRANSITIONS.get(self, set())) == 0

    def is_running(self) -> bool:
        return self in {JobStatus.STARTING, JobStatus.STARTED}


_JOB_TRANSITIONS: dict[JobStatus, set[JobStatus]] = {
    JobStatus.STARTING: {JobStatus.STARTED, JobStatus.FAILED},
    JobStatus.STARTED: {JobStatus.COMPLETED, JobStatus.FAILED},
    JobStatus.COMPLETED: set(),  # Terminal state
    JobStatus.FAILED: set(),  # Terminal state; re-run as a new execution
}


def _duration_ms(start: datetime | None, end: datetime | None) -> float | None:
    if start is None or end is None:
        return None
    return round((end - start).total_seconds() * 1000, 2)


def describe_failure(exc: BaseException) -> str:
    """One-line ``Type: message`` summary of an exception."""
    return f"{type(exc).__name__}: {exc}"


def release_traceback(exc: BaseException) -> BaseException:
    """Drop the tracebacks of ``exc`` and its chained exceptions.

    Recorded failures stay in the execution history after the job ends.
    Callers log the stack trace before recording the failure.
    """
    seen: set[int] = set()
    current: BaseException | None = exc
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        current.__traceback__ = None
        current = current.__cause__ or current.__context__
    return exc


# ============================================================================
# Step Execution
# ============================================================================


@dataclass
class StepExecution:
    """Counters and status of one chunk-oriented step run.

    Skip counters are reported but always zero: no skip policy exists.
    """

    id: int
    step_name: str
    job_execution_id: int
    status: JobStatus = JobStatus.STARTING
    read_count: int = 0
    write_count: int = 0
    filter_count: int = 0
    read_skip_count: int = 0
    process_skip_count: int = 0
    write_skip_count: int = 0
    commit_count: int = 0
    rollback_count: int = 0
    start_time: datetime | None = None
    end_time: datetime | None = None
    failure_exceptions: list[BaseException] = field(default_factory=list)

    def transition_to(self, target: JobStatus) -> None:
        """Move to ``target``.

        Raises:
            InvalidJobTransitionError: If the transition is not allowed.
        """
        if not self.status.can_transition_to(target):
            raise InvalidJobTransitionError(
                "StepExecution", self.id, self.status.value, target.value
            )
        self.status = target
        if target is JobStatus.STARTED:
            self.start_time = utc_now()
        elif target.is_terminal():
            self.end_time = utc_now()

    def add_failure(self, exc: BaseException) -> None:
        self.failure_exceptions.append(release_traceback(exc))

    @property
    def skip_count(self) -> int:
        return self.read_skip_count + self.process_skip_count + self.write_skip_count

    @property
    def duration_ms(self) -> float | None:
        return _duration_ms(self.start_time, self.end_time)


# ============================================================================
# Job Execution
# ============================================================================


@dataclass
class JobExecution:
    """Status of one job run, aggregating the counters of its steps.

    Attributes:
        id: Monotonically increasing execution id.
        job_name: Name of the job that ran.
        parameters: Launch parameters (output path, request time).
        status: Current status.
        step_executions: Step runs in execution order.
        failure_exceptions: Errors raised outside any step.
    """

    id: int
    job_name: str
    parameters: dict[str, Any] = field(default_factory=dict)
    status: JobStatus = JobStatus.STARTING
    create_time: datetime = field(default_factory=utc_now)
    start_time: datetime | None = None
    end_time: datetime | None = None
    step_executions: list[StepExecution] = field(default_factory=list)
    failure_exceptions: list[BaseException] = field(default_factory=list)

    def transition_to(self, target: JobStatus) -> None:
        """Move to ``target``.

        Raises:
            InvalidJobTransitionError: If the transition is not allowed.
        """
        if not self.status.can_transition_to(target):
            raise InvalidJobTransitionError(
                "JobExecution", self.id, self.status.value, target.value
            )
        self.status = target
        if target is JobStatus.STARTED:
            self.start_time = utc_now()
        elif target.is_terminal():
            self.end_time = utc_now()

    def add_failure(self, exc: BaseException) -> None:
        self.failure_exceptions.append(release_traceback(exc))

    @property
    def read_count(self) -> int:
        return sum(s.read_count for s in self.step_executions)

    @property
    def write_count(self) -> int:
        return sum(s.write_count for s in self.step_executions)

    @property
    def skip_count(self) -> int:
        return sum(s.skip_count for s in self.step_executions)

    @property
    def all_failure_exceptions(self) -> list[BaseException]:
        """Job-level failures followed by every step's failures."""
        failures = list(self.failure_exceptions)
        for step in self.step_executions:
            failures.extend(step.failure_exceptions)
        return failures

    @property
    def duration_ms(self) -> float | None:
        return _duration_ms(self.start_time, self.end_time)

    @property
    def file_path(self) -> str:
        return str(self.parameters.get("file_path", ""))
