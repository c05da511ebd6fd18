from abc import ABC, abstractmethod
from contextlib import AbstractContextManager
from datetime import datetime

from refurb_workflow.database.models import (
    DiagnosisRecord,
    JobRecord,
    StepCompletionRecord,
    TransitionRecord,
)
from refurb_workflow.workflow.models import JobFilter, NewDiagnosis, NewTransition, WorkflowStats
from refurb_workflow.workflow.states import RefurbState


class JobSession(ABC):
    """Read-modify-write unit over one locked job.

    Everything written through a session becomes visible together when the
    enclosing ``WorkflowStore.lock_job`` block exits cleanly, and nothing does
    if it exits with an exception.
    """

    @property
    @abstractmethod
    def job(self) -> JobRecord:
        """The job as of the latest ``save_job`` in this session."""

    @abstractmethod
    def save_job(self, job: JobRecord) -> None:
        """Overwrite the locked job's mutable fields."""

    @abstractmethod
    def append_transition(self, entry: NewTransition) -> TransitionRecord:
        """Append one immutable transition log entry."""

    @abstractmethod
    def upsert_step_completion(self, completion: StepCompletionRecord) -> StepCompletionRecord:
        """Insert or overwrite the completion keyed by (job, state, step)."""

    @abstractmethod
    def count_completed_steps(self, state: RefurbState, since: datetime | None = None) -> int:
        """Count distinct step codes completed for the locked job in ``state``.

        With ``since``, only completions stamped at or after it are counted.
        """


class WorkflowStore(ABC):
    """Contract for workflow persistence adapters."""

    @abstractmethod
    def lock_job(self, job_id: str) -> AbstractContextManager[JobSession]:
        """Serialize access to one job for the duration of the block.

        Raises:
            JobNotFoundError: if no job with this id exists.
        """

    @abstractmethod
    def insert_job(self, job: JobRecord, creation: NewTransition) -> JobRecord:
        """Persist a new job together with its creation log entry.

        Raises:
            DuplicateUnitIdError: if a job already exists for ``job.unit_id``.
        """

    @abstractmethod
    def find_job(self, job_id: str) -> JobRecord | None:
        pass

    @abstractmethod
    def find_job_by_unit_id(self, unit_id: str) -> JobRecord | None:
        pass

    @abstractmethod
    def list_jobs(self, filters: JobFilter, limit: int | None = None) -> list[JobRecord]:
        """Return matching jobs, newest first."""

    @abstractmethod
    def count_jobs(self, filters: JobFilter) -> int:
        pass

    @abstractmethod
    def list_transitions(self, job_id: str) -> list[TransitionRecord]:
        """Return the job's transition log, oldest first."""

    @abstractmethod
    def list_step_completions(
        self,
        job_id: str,
        state: RefurbState | None = None,
        since: datetime | None = None,
    ) -> list[StepCompletionRecord]:
        """Return step completions for a job, oldest first.

        ``state`` narrows to one state; ``since`` drops completions stamped before it.
        """

    @abstractmethod
    def insert_diagnosis(self, diagnosis: NewDiagnosis) -> DiagnosisRecord:
        pass

    @abstractmethod
    def list_diagnoses(self, job_id: str) -> list[DiagnosisRecord]:
        """Return diagnoses for a job, most recent first."""

    @abstractmethod
    def aggregate_stats(self, day_start: datetime) -> WorkflowStats:
        """Compute job roll-ups; ``completed_today`` counts completions since ``day_start``.

        ``avg_cycle_time_hours`` is returned unrounded.
        """
