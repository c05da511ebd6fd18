import uuid
from dataclasses import replace

from refurb_workflow.database.base import WorkflowStore
from refurb_workflow.database.models import StepCompletionRecord
from refurb_workflow.logging.logger import Log
from refurb_workflow.workflow.clock import Clock, utc_now
from refurb_workflow.workflow.exceptions import StaleStateError
from refurb_workflow.workflow.models import StepCompletionData
from refurb_workflow.workflow.states import RefurbState


class StepCompletionTracker:
    """Record step outcomes against whichever state the job is in right now.

    Completions are keyed by (job, state, step code); submitting the same
    step twice overwrites the first record. After every upsert the job's
    ``current_step_index`` is recomputed from the distinct codes completed
    since the job last entered its state, so a state re-entered through
    RESOLVE or RETRY starts again from zero.
    """

    def __init__(self, store: WorkflowStore, clock: Clock = utc_now) -> None:
        self._store = store
        self._clock = clock

    def complete_step(
        self,
        job_id: str,
        step_code: str,
        technician_id: str,
        technician_name: str | None = None,
        data: StepCompletionData | None = None,
        expected_state: RefurbState | None = None,
    ) -> StepCompletionRecord:
        """Upsert one step completion and refresh the job's step index.

        Raises:
            JobNotFoundError: if the job does not exist.
            StaleStateError: if ``expected_state`` is given and the job has moved on.
        """
        data = data or StepCompletionData()
        with self._store.lock_job(job_id) as session:
            job = session.job
            if expected_state is not None and expected_state != job.current_state:
                Log.warning(
                    "Rejected step from stale state",
                    job_id=job_id,
                    step=step_code,
                    expected=expected_state,
                    state=job.current_state,
                )
                raise StaleStateError(expected_state, job.current_state)

            now = self._clock()
            completion = session.upsert_step_completion(
                StepCompletionRecord(
                    id=str(uuid.uuid4()),
                    job_id=job_id,
                    state_code=job.current_state,
                    step_code=step_code,
                    completed_by=technician_id,
                    completed_by_name=technician_name,
                    completed_at=now,
                    checklist_results=data.checklist_results,
                    input_values=data.input_values,
                    measurements=data.measurements,
                    notes=data.notes,
                    photo_urls=[photo.url for photo in data.photos] or None,
                    photo_types=[photo.type for photo in data.photos] or None,
                )
            )
            step_index = session.count_completed_steps(job.current_state, job.state_entered_at)
            session.save_job(replace(job, current_step_index=step_index, updated_at=now))

        Log.info(
            "Step completed",
            job_id=job_id,
            state=job.current_state,
            step=step_code,
            step_index=step_index,
        )
        return completion
