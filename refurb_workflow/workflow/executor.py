from dataclasses import replace

from refurb_workflow.database.base import JobSession, WorkflowStore
from refurb_workflow.database.models import JobRecord
from refurb_workflow.logging.logger import Log
from refurb_workflow.workflow.clock import Clock, utc_now
from refurb_workflow.workflow.exceptions import InvalidTransitionError, MaxAttemptsExceededError
from refurb_workflow.workflow.models import NewTransition, TransitionPayload
from refurb_workflow.workflow.states import (
    STARTED_STATE,
    TERMINAL_STATES,
    RefurbState,
    TransitionAction,
)
from refurb_workflow.workflow.transitions import allowed_actions, validate_transition


class TransitionExecutor:
    """Validate an action against the transition table and apply it atomically.

    A successful call rewrites the job row and appends exactly one
    transition log entry inside the same locked session; a failed call
    leaves both untouched.
    """

    def __init__(self, store: WorkflowStore, clock: Clock = utc_now) -> None:
        self._store = store
        self._clock = clock

    def execute(
        self,
        job_id: str,
        action: TransitionAction,
        technician_id: str | None = None,
        payload: TransitionPayload | None = None,
    ) -> JobRecord:
        """Load, validate and transition a job in one unit of work.

        Raises:
            JobNotFoundError: if the job does not exist.
            InvalidTransitionError: if ``action`` is not an edge from the current state.
            MaxAttemptsExceededError: if RETRY is requested with no attempts left.
        """
        with self._store.lock_job(job_id) as session:
            return self.apply(session, action, technician_id, payload)

    def apply(
        self,
        session: JobSession,
        action: TransitionAction,
        technician_id: str | None = None,
        payload: TransitionPayload | None = None,
    ) -> JobRecord:
        """Apply a transition inside a session the caller already holds."""
        job = session.job
        target = self._check(job, action)
        payload = payload or TransitionPayload()
        now = self._clock()

        attempt_count = job.attempt_count
        if action is TransitionAction.RETRY:
            attempt_count += 1
        started_at = job.started_at
        if started_at is None and target is STARTED_STATE:
            started_at = now
        completed_at = job.completed_at
        if completed_at is None and target in TERMINAL_STATES:
            completed_at = now

        updated = replace(
            job,
            current_state=target,
            current_step_index=0,
            state_entered_at=now,
            attempt_count=attempt_count,
            started_at=started_at,
            completed_at=completed_at,
            updated_at=now,
            **_outcome_fields(payload),
        )
        session.save_job(updated)
        session.append_transition(
            NewTransition(
                job_id=job.id,
                from_state=job.current_state,
                to_state=target,
                action=action,
                created_at=now,
                technician_id=technician_id,
                reason=payload.reason,
                notes=payload.notes,
            )
        )
        Log.info(
            "Job transitioned",
            job_id=job.id,
            action=action,
            from_state=job.current_state,
            to_state=target,
            attempt=updated.attempt_count,
        )
        return updated

    def _check(self, job: JobRecord, action: TransitionAction) -> RefurbState:
        check = validate_transition(job.current_state, action)
        if check.target_state is None:
            Log.warning(
                "Rejected transition",
                job_id=job.id,
                action=action,
                state=job.current_state,
            )
            raise InvalidTransitionError(
                job.current_state, action, allowed_actions(job.current_state)
            )
        if action is TransitionAction.RETRY and job.attempt_count >= job.max_attempts:
            Log.warning(
                "Rejected retry, attempt budget spent",
                job_id=job.id,
                attempts=job.attempt_count,
                max_attempts=job.max_attempts,
            )
            raise MaxAttemptsExceededError(
                job.attempt_count, job.max_attempts, job.current_state, action
            )
        return check.target_state


def _outcome_fields(payload: TransitionPayload) -> dict[str, object]:
    """Outcome fields the caller supplied; omitted ones keep their stored value."""
    fields = {
        "final_grade": payload.final_grade,
        "warranty_eligible": payload.warranty_eligible,
        "disposition": payload.disposition,
    }
    return {name: value for name, value in fields.items() if value is not None}
