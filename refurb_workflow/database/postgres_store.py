from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import asdict
from datetime import datetime
from typing import Any

import psycopg
from psycopg import errors
from psycopg.rows import dict_row
from psycopg.types.json import Jsonb

from refurb_workflow.database.base import JobSession, WorkflowStore
from refurb_workflow.database.connection import get_connection
from refurb_workflow.database.models import (
    DiagnosisRecord,
    JobRecord,
    PartRequirement,
    StepCompletionRecord,
    TransitionRecord,
)
from refurb_workflow.workflow.exceptions import DuplicateUnitIdError, JobNotFoundError
from refurb_workflow.workflow.models import JobFilter, NewDiagnosis, NewTransition, WorkflowStats
from refurb_workflow.workflow.states import (
    DiagnosisSeverity,
    FinalGrade,
    JobPriority,
    ProductCategory,
    RefurbState,
    RepairStatus,
    TransitionAction,
)

_JOB_COLUMNS = """
    id, unit_id, pallet_id, category, manufacturer, model,
    current_state, current_step_index, assigned_technician_id,
    assigned_technician_name, assigned_at, attempt_count, max_attempts,
    final_grade, warranty_eligible, disposition, priority,
    started_at, completed_at, state_entered_at, created_at, updated_at
"""

_TRANSITION_COLUMNS = """
    id, job_id, from_state, to_state, action, technician_id, reason, notes, created_at
"""

_COMPLETION_COLUMNS = """
    id, job_id, state_code, step_code, checklist_results, input_values,
    measurements, notes, photo_urls, photo_types, completed_by,
    completed_by_name, completed_at
"""

_DIAGNOSIS_COLUMNS = """
    id, job_id, defect_code, severity, measurements, notes, repair_action,
    parts_required, repair_status, diagnosed_by, diagnosed_at
"""


class PostgresWorkflowStore(WorkflowStore):
    """Database operations for the refurb workflow tables."""

    @contextmanager
    def lock_job(self, job_id: str) -> Iterator[JobSession]:
        """Lock the job row with SELECT ... FOR UPDATE for the whole block."""
        with get_connection() as conn:
            with conn.cursor(row_factory=dict_row) as cur:
                cur.execute(
                    f"SELECT {_JOB_COLUMNS} FROM refurb_jobs WHERE id = %s FOR UPDATE",
                    (job_id,),
                )
                row = cur.fetchone()
            if row is None:
                conn.rollback()
                raise JobNotFoundError(job_id)
            session = _PostgresJobSession(conn, _job_from_row(row))
            try:
                yield session
            except Exception:
                conn.rollback()
                raise
            conn.commit()

    def insert_job(self, job: JobRecord, creation: NewTransition) -> JobRecord:
        with get_connection() as conn:
            try:
                conn.execute(
                    """
                    INSERT INTO refurb_jobs (
                        id, unit_id, pallet_id, category, manufacturer, model,
                        current_state, current_step_index, attempt_count,
                        max_attempts, priority, created_at, updated_at,
                        state_entered_at
                    ) VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
                    """,
                    (
                        job.id,
                        job.unit_id,
                        job.pallet_id,
                        job.category.value,
                        job.manufacturer,
                        job.model,
                        job.current_state.value,
                        job.current_step_index,
                        job.attempt_count,
                        job.max_attempts,
                        job.priority.value,
                        job.created_at,
                        job.updated_at,
                        job.state_entered_at,
                    ),
                )
            except errors.UniqueViolation as exc:
                conn.rollback()
                raise DuplicateUnitIdError(job.unit_id) from exc
            _insert_transition(conn, creation)
            conn.commit()
        return job

    def find_job(self, job_id: str) -> JobRecord | None:
        return self._find_job_where("id = %s", job_id)

    def find_job_by_unit_id(self, unit_id: str) -> JobRecord | None:
        return self._find_job_where("unit_id = %s", unit_id)

    def list_jobs(self, filters: JobFilter, limit: int | None = None) -> list[JobRecord]:
        where_clause, params = _filter_clause(filters)
        query = f"SELECT {_JOB_COLUMNS} FROM refurb_jobs {where_clause} ORDER BY created_at DESC"
        if limit is not None:
            query += " LIMIT %s"
            params.append(limit)
        with get_connection() as conn:
            with conn.cursor(row_factory=dict_row) as cur:
                cur.execute(query, params)
                rows = cur.fetchall()
        return [_job_from_row(row) for row in rows]

    def count_jobs(self, filters: JobFilter) -> int:
        where_clause, params = _filter_clause(filters)
        with get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(f"SELECT COUNT(*) FROM refurb_jobs {where_clause}", params)
                row = cur.fetchone()
        return int(row[0]) if row is not None else 0

    def list_transitions(self, job_id: str) -> list[TransitionRecord]:
        with get_connection() as conn:
            with conn.cursor(row_factory=dict_row) as cur:
                cur.execute(
                    f"""
                    SELECT {_TRANSITION_COLUMNS} FROM workflow_transitions
                    WHERE job_id = %s
                    ORDER BY created_at ASC, id ASC
                    """,
                    (job_id,),
                )
                rows = cur.fetchall()
        return [_transition_from_row(row) for row in rows]

    def list_step_completions(
        self,
        job_id: str,
        state: RefurbState | None = None,
        since: datetime | None = None,
    ) -> list[StepCompletionRecord]:
        query = f"SELECT {_COMPLETION_COLUMNS} FROM refurb_step_completions WHERE job_id = %s"
        params: list[Any] = [job_id]
        if state is not None:
            query += " AND state_code = %s"
            params.append(state.value)
        if since is not None:
            query += " AND completed_at >= %s"
            params.append(since)
        query += " ORDER BY completed_at ASC"
        with get_connection() as conn:
            with conn.cursor(row_factory=dict_row) as cur:
                cur.execute(query, params)
                rows = cur.fetchall()
        return [_completion_from_row(row) for row in rows]

    def insert_diagnosis(self, diagnosis: NewDiagnosis) -> DiagnosisRecord:
        parts = [asdict(part) for part in diagnosis.parts_required]
        with get_connection() as conn:
            with conn.cursor(row_factory=dict_row) as cur:
                cur.execute(
                    f"""
                    INSERT INTO job_diagnoses (
                        job_id, defect_code, severity, measurements, notes,
                        repair_action, parts_required, repair_status,
                        diagnosed_by, diagnosed_at
                    ) VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
                    RETURNING {_DIAGNOSIS_COLUMNS}
                    """,
                    (
                        diagnosis.job_id,
                        diagnosis.defect_code,
                        diagnosis.severity.value,
                        _jsonb_or_none(diagnosis.measurements),
                        diagnosis.notes,
                        diagnosis.repair_action,
                        Jsonb(parts) if parts else None,
                        RepairStatus.PENDING.value,
                        diagnosis.diagnosed_by,
                        diagnosis.diagnosed_at,
                    ),
                )
                row = cur.fetchone()
            conn.commit()
        if row is None:
            raise RuntimeError(f"Diagnosis insert for job {diagnosis.job_id} returned no row")
        return _diagnosis_from_row(row)

    def list_diagnoses(self, job_id: str) -> list[DiagnosisRecord]:
        with get_connection() as conn:
            with conn.cursor(row_factory=dict_row) as cur:
                cur.execute(
                    f"""
                    SELECT {_DIAGNOSIS_COLUMNS} FROM job_diagnoses
                    WHERE job_id = %s
                    ORDER BY diagnosed_at DESC, id DESC
                    """,
                    (job_id,),
                )
                rows = cur.fetchall()
        return [_diagnosis_from_row(row) for row in rows]

    def aggregate_stats(self, day_start: datetime) -> WorkflowStats:
        with get_connection() as conn:
            with conn.cursor(row_factory=dict_row) as cur:
                cur.execute(
                    """
                    SELECT current_state, category, COUNT(*) AS count
                    FROM refurb_jobs
                    GROUP BY current_state, category
                    """
                )
                groups = cur.fetchall()
                cur.execute(
                    """
                    SELECT
                        COUNT(*) FILTER (WHERE completed_at >= %s) AS completed_today,
                        AVG(EXTRACT(EPOCH FROM (completed_at - started_at)) / 3600) AS avg_hours
                    FROM refurb_jobs
                    WHERE current_state = %s
                    """,
                    (day_start, RefurbState.REFURBZ_COMPLETE.value),
                )
                completion = cur.fetchone()

        by_state: dict[RefurbState, int] = {}
        by_category: dict[ProductCategory, int] = {}
        for group in groups:
            state = RefurbState(group["current_state"])
            category = ProductCategory(group["category"])
            by_state[state] = by_state.get(state, 0) + int(group["count"])
            by_category[category] = by_category.get(category, 0) + int(group["count"])

        completed_today = int(completion["completed_today"]) if completion else 0
        avg_hours = completion["avg_hours"] if completion else None
        return WorkflowStats(
            total=sum(by_state.values()),
            by_state=by_state,
            by_category=by_category,
            completed_today=completed_today,
            avg_cycle_time_hours=float(avg_hours) if avg_hours is not None else 0.0,
        )

    def _find_job_where(self, condition: str, value: str) -> JobRecord | None:
        with get_connection() as conn:
            with conn.cursor(row_factory=dict_row) as cur:
                cur.execute(
                    f"SELECT {_JOB_COLUMNS} FROM refurb_jobs WHERE {condition}",
                    (value,),
                )
                row = cur.fetchone()
        if row is None:
            return None
        return _job_from_row(row)


class _PostgresJobSession(JobSession):
    """Writes through the connection that holds the job's row lock."""

    def __init__(self, conn: psycopg.Connection[Any], job: JobRecord) -> None:
        self._conn = conn
        self._job = job

    @property
    def job(self) -> JobRecord:
        return self._job

    def save_job(self, job: JobRecord) -> None:
        if job.id != self._job.id:
            raise ValueError(f"Session is locked to job {self._job.id}, not {job.id}")
        self._conn.execute(
            """
            UPDATE refurb_jobs
            SET current_state = %s,
                current_step_index = %s,
                assigned_technician_id = %s,
                assigned_technician_name = %s,
                assigned_at = %s,
                attempt_count = %s,
                final_grade = %s,
                warranty_eligible = %s,
                disposition = %s,
                started_at = %s,
                completed_at = %s,
                state_entered_at = %s,
                updated_at = %s
            WHERE id = %s
            """,
            (
                job.current_state.value,
                job.current_step_index,
                job.assigned_technician_id,
                job.assigned_technician_name,
                job.assigned_at,
                job.attempt_count,
                job.final_grade.value if job.final_grade is not None else None,
                job.warranty_eligible,
                job.disposition,
                job.started_at,
                job.completed_at,
                job.state_entered_at,
                job.updated_at,
                job.id,
            ),
        )
        self._job = job

    def append_transition(self, entry: NewTransition) -> TransitionRecord:
        return _insert_transition(self._conn, entry)

    def upsert_step_completion(self, completion: StepCompletionRecord) -> StepCompletionRecord:
        with self._conn.cursor(row_factory=dict_row) as cur:
            cur.execute(
                f"""
                INSERT INTO refurb_step_completions (
                    id, job_id, state_code, step_code,
                    checklist_results, input_values, measurements,
                    notes, photo_urls, photo_types,
                    completed_by, completed_by_name, completed_at
                ) VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
                ON CONFLICT (job_id, state_code, step_code) DO UPDATE SET
                    checklist_results = EXCLUDED.checklist_results,
                    input_values = EXCLUDED.input_values,
                    measurements = EXCLUDED.measurements,
                    notes = EXCLUDED.notes,
                    photo_urls = EXCLUDED.photo_urls,
                    photo_types = EXCLUDED.photo_types,
                    completed_by = EXCLUDED.completed_by,
                    completed_by_name = EXCLUDED.completed_by_name,
                    completed_at = EXCLUDED.completed_at
                RETURNING {_COMPLETION_COLUMNS}
                """,
                (
                    completion.id,
                    completion.job_id,
                    completion.state_code.value,
                    completion.step_code,
                    _jsonb_or_none(completion.checklist_results),
                    _jsonb_or_none(completion.input_values),
                    _jsonb_or_none(completion.measurements),
                    completion.notes,
                    completion.photo_urls,
                    completion.photo_types,
                    completion.completed_by,
                    completion.completed_by_name,
                    completion.completed_at,
                ),
            )
            row = cur.fetchone()
        if row is None:
            raise RuntimeError(f"Step upsert for job {completion.job_id} returned no row")
        return _completion_from_row(row)

    def count_completed_steps(self, state: RefurbState, since: datetime | None = None) -> int:
        query = """
            SELECT COUNT(DISTINCT step_code) FROM refurb_step_completions
            WHERE job_id = %s AND state_code = %s
        """
        params: tuple[Any, ...] = (self._job.id, state.value)
        if since is not None:
            query += " AND completed_at >= %s"
            params += (since,)
        with self._conn.cursor() as cur:
            cur.execute(query, params)
            row = cur.fetchone()
        return int(row[0]) if row is not None else 0


def _insert_transition(conn: psycopg.Connection[Any], entry: NewTransition) -> TransitionRecord:
    with conn.cursor(row_factory=dict_row) as cur:
        cur.execute(
            f"""
            INSERT INTO workflow_transitions (
                job_id, from_state, to_state, action,
                technician_id, reason, notes, created_at
            ) VALUES (%s, %s, %s, %s, %s, %s, %s, %s)
            RETURNING {_TRANSITION_COLUMNS}
            """,
            (
                entry.job_id,
                entry.from_state.value if entry.from_state is not None else None,
                entry.to_state.value,
                entry.action.value,
                entry.technician_id,
                entry.reason,
                entry.notes,
                entry.created_at,
            ),
        )
        row = cur.fetchone()
    if row is None:
        raise RuntimeError(f"Transition insert for job {entry.job_id} returned no row")
    return _transition_from_row(row)


def _filter_clause(filters: JobFilter) -> tuple[str, list[Any]]:
    conditions: list[str] = []
    params: list[Any] = []
    if filters.state is not None:
        conditions.append("current_state = %s")
        params.append(filters.state.value)
    if filters.technician_id is not None:
        conditions.append("assigned_technician_id = %s")
        params.append(filters.technician_id)
    if filters.category is not None:
        conditions.append("category = %s")
        params.append(filters.category.value)
    if filters.priority is not None:
        conditions.append("priority = %s")
        params.append(filters.priority.value)
    where_clause = f"WHERE {' AND '.join(conditions)}" if conditions else ""
    return where_clause, params


def _jsonb_or_none(value: Any) -> Jsonb | None:
    return Jsonb(value) if value is not None else None


def _job_from_row(row: dict[str, Any]) -> JobRecord:
    return JobRecord(
        id=row["id"],
        unit_id=row["unit_id"],
        pallet_id=row["pallet_id"],
        category=ProductCategory(row["category"]),
        current_state=RefurbState(row["current_state"]),
        current_step_index=row["current_step_index"],
        attempt_count=row["attempt_count"],
        max_attempts=row["max_attempts"],
        priority=JobPriority(row["priority"]),
        manufacturer=row["manufacturer"],
        model=row["model"],
        assigned_technician_id=row["assigned_technician_id"],
        assigned_technician_name=row["assigned_technician_name"],
        assigned_at=row["assigned_at"],
        final_grade=FinalGrade(row["final_grade"]) if row["final_grade"] else None,
        warranty_eligible=row["warranty_eligible"],
        disposition=row["disposition"],
        started_at=row["started_at"],
        completed_at=row["completed_at"],
        state_entered_at=row["state_entered_at"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def _transition_from_row(row: dict[str, Any]) -> TransitionRecord:
    return TransitionRecord(
        id=row["id"],
        job_id=row["job_id"],
        from_state=RefurbState(row["from_state"]) if row["from_state"] else None,
        to_state=RefurbState(row["to_state"]),
        action=TransitionAction(row["action"]),
        technician_id=row["technician_id"],
        reason=row["reason"],
        notes=row["notes"],
        created_at=row["created_at"],
    )


def _completion_from_row(row: dict[str, Any]) -> StepCompletionRecord:
    return StepCompletionRecord(
        id=row["id"],
        job_id=row["job_id"],
        state_code=RefurbState(row["state_code"]),
        step_code=row["step_code"],
        checklist_results=row["checklist_results"],
        input_values=row["input_values"],
        measurements=row["measurements"],
        notes=row["notes"],
        photo_urls=row["photo_urls"],
        photo_types=row["photo_types"],
        completed_by=row["completed_by"],
        completed_by_name=row["completed_by_name"],
        completed_at=row["completed_at"],
    )


def _diagnosis_from_row(row: dict[str, Any]) -> DiagnosisRecord:
    return DiagnosisRecord(
        id=row["id"],
        job_id=row["job_id"],
        defect_code=row["defect_code"],
        severity=DiagnosisSeverity(row["severity"]),
        measurements=row["measurements"],
        notes=row["notes"],
        repair_action=row["repair_action"],
        parts_required=[PartRequirement(**part) for part in row["parts_required"] or []],
        repair_status=RepairStatus(row["repair_status"]),
        diagnosed_by=row["diagnosed_by"],
        diagnosed_at=row["diagnosed_at"],
    )
