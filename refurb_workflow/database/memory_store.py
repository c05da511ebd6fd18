import itertools
import threading
from collections import Counter
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import replace
from datetime import datetime

from refurb_workflow.database.base import JobSession, WorkflowStore
from refurb_workflow.database.models import (
    DiagnosisRecord,
    JobRecord,
    StepCompletionRecord,
    TransitionRecord,
)
from refurb_workflow.workflow.exceptions import DuplicateUnitIdError, JobNotFoundError
from refurb_workflow.workflow.models import JobFilter, NewDiagnosis, NewTransition, WorkflowStats
from refurb_workflow.workflow.states import RefurbState

_StepKey = tuple[RefurbState, str]


class MemoryWorkflowStore(WorkflowStore):
    """Process-local store with one lock per job id.

    Suitable for tests and single-process tools; nothing survives a restart.
    """

    def __init__(self) -> None:
        self._data_lock = threading.RLock()
        self._job_locks: dict[str, threading.Lock] = {}
        self._jobs: dict[str, JobRecord] = {}
        self._unit_index: dict[str, str] = {}
        self._transitions: dict[str, list[TransitionRecord]] = {}
        self._completions: dict[str, dict[_StepKey, StepCompletionRecord]] = {}
        self._diagnoses: dict[str, list[DiagnosisRecord]] = {}
        self._transition_ids = itertools.count(1)
        self._diagnosis_ids = itertools.count(1)

    @contextmanager
    def lock_job(self, job_id: str) -> Iterator[JobSession]:
        with self._data_lock:
            if job_id not in self._jobs:
                raise JobNotFoundError(job_id)
            job_lock = self._job_locks.setdefault(job_id, threading.Lock())
        with job_lock:
            with self._data_lock:
                job = self._jobs[job_id]
            session = _MemoryJobSession(self, job)
            yield session
            self._publish(session)

    def insert_job(self, job: JobRecord, creation: NewTransition) -> JobRecord:
        with self._data_lock:
            if job.unit_id in self._unit_index:
                raise DuplicateUnitIdError(job.unit_id)
            self._jobs[job.id] = job
            self._unit_index[job.unit_id] = job.id
            self._transitions[job.id] = [self._to_transition_record(creation)]
            self._completions[job.id] = {}
            self._diagnoses[job.id] = []
        return job

    def find_job(self, job_id: str) -> JobRecord | None:
        with self._data_lock:
            return self._jobs.get(job_id)

    def find_job_by_unit_id(self, unit_id: str) -> JobRecord | None:
        with self._data_lock:
            job_id = self._unit_index.get(unit_id)
            return self._jobs.get(job_id) if job_id is not None else None

    def list_jobs(self, filters: JobFilter, limit: int | None = None) -> list[JobRecord]:
        with self._data_lock:
            jobs = [job for job in self._jobs.values() if filters.matches(job)]
        jobs.sort(key=lambda job: job.created_at, reverse=True)
        return jobs if limit is None else jobs[:limit]

    def count_jobs(self, filters: JobFilter) -> int:
        with self._data_lock:
            return sum(1 for job in self._jobs.values() if filters.matches(job))

    def list_transitions(self, job_id: str) -> list[TransitionRecord]:
        with self._data_lock:
            return list(self._transitions.get(job_id, []))

    def list_step_completions(
        self,
        job_id: str,
        state: RefurbState | None = None,
        since: datetime | None = None,
    ) -> list[StepCompletionRecord]:
        with self._data_lock:
            records = list(self._completions.get(job_id, {}).values())
        records = [record for record in records if _in_scope(record, state, since)]
        return sorted(records, key=lambda record: record.completed_at)

    def insert_diagnosis(self, diagnosis: NewDiagnosis) -> DiagnosisRecord:
        with self._data_lock:
            record = DiagnosisRecord(
                id=next(self._diagnosis_ids),
                job_id=diagnosis.job_id,
                defect_code=diagnosis.defect_code,
                severity=diagnosis.severity,
                diagnosed_by=diagnosis.diagnosed_by,
                diagnosed_at=diagnosis.diagnosed_at,
                measurements=diagnosis.measurements,
                repair_action=diagnosis.repair_action,
                parts_required=list(diagnosis.parts_required),
                notes=diagnosis.notes,
            )
            self._diagnoses.setdefault(diagnosis.job_id, []).append(record)
        return record

    def list_diagnoses(self, job_id: str) -> list[DiagnosisRecord]:
        with self._data_lock:
            records = list(self._diagnoses.get(job_id, []))
        return sorted(records, key=lambda record: (record.diagnosed_at, record.id), reverse=True)

    def aggregate_stats(self, day_start: datetime) -> WorkflowStats:
        with self._data_lock:
            jobs = list(self._jobs.values())
        completed = [job for job in jobs if job.current_state == RefurbState.REFURBZ_COMPLETE]
        completed_today = sum(
            1 for job in completed if job.completed_at is not None and job.completed_at >= day_start
        )
        cycle_hours = [
            (job.completed_at - job.started_at).total_seconds() / 3600
            for job in completed
            if job.started_at is not None and job.completed_at is not None
        ]
        return WorkflowStats(
            total=len(jobs),
            by_state=dict(Counter(job.current_state for job in jobs)),
            by_category=dict(Counter(job.category for job in jobs)),
            completed_today=completed_today,
            avg_cycle_time_hours=sum(cycle_hours) / len(cycle_hours) if cycle_hours else 0.0,
        )

    def _next_transition_id(self) -> int:
        with self._data_lock:
            return next(self._transition_ids)

    def _to_transition_record(self, entry: NewTransition) -> TransitionRecord:
        return TransitionRecord(
            id=self._next_transition_id(),
            job_id=entry.job_id,
            from_state=entry.from_state,
            to_state=entry.to_state,
            action=entry.action,
            created_at=entry.created_at,
            technician_id=entry.technician_id,
            reason=entry.reason,
            notes=entry.notes,
        )

    def _committed_completion(self, job_id: str, key: _StepKey) -> StepCompletionRecord | None:
        with self._data_lock:
            return self._completions.get(job_id, {}).get(key)

    def _committed_step_codes(
        self, job_id: str, state: RefurbState, since: datetime | None
    ) -> set[str]:
        with self._data_lock:
            records = list(self._completions.get(job_id, {}).values())
        return {record.step_code for record in records if _in_scope(record, state, since)}

    def _publish(self, session: "_MemoryJobSession") -> None:
        job = session.job
        with self._data_lock:
            self._jobs[job.id] = job
            self._transitions.setdefault(job.id, []).extend(session.staged_transitions)
            self._completions.setdefault(job.id, {}).update(session.staged_completions)


class _MemoryJobSession(JobSession):
    """Stages writes until the owning ``lock_job`` block exits cleanly."""

    def __init__(self, store: MemoryWorkflowStore, job: JobRecord) -> None:
        self._store = store
        self._job = job
        self.staged_transitions: list[TransitionRecord] = []
        self.staged_completions: dict[_StepKey, StepCompletionRecord] = {}

    @property
    def job(self) -> JobRecord:
        return self._job

    def save_job(self, job: JobRecord) -> None:
        if job.id != self._job.id:
            raise ValueError(f"Session is locked to job {self._job.id}, not {job.id}")
        self._job = job

    def append_transition(self, entry: NewTransition) -> TransitionRecord:
        record = self._store._to_transition_record(entry)
        self.staged_transitions.append(record)
        return record

    def upsert_step_completion(self, completion: StepCompletionRecord) -> StepCompletionRecord:
        key = (completion.state_code, completion.step_code)
        existing = self.staged_completions.get(key) or self._store._committed_completion(
            completion.job_id, key
        )
        if existing is not None:
            completion = replace(completion, id=existing.id)
        self.staged_completions[key] = completion
        return completion

    def count_completed_steps(self, state: RefurbState, since: datetime | None = None) -> int:
        codes = self._store._committed_step_codes(self._job.id, state, since)
        codes.update(
            record.step_code
            for record in self.staged_completions.values()
            if _in_scope(record, state, since)
        )
        return len(codes)


def _in_scope(
    record: StepCompletionRecord, state: RefurbState | None, since: datetime | None
) -> bool:
    if state is not None and record.state_code != state:
        return False
    return since is None or record.completed_at >= since
