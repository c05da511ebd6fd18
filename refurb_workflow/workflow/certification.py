from refurb_workflow.database.base import WorkflowStore
from refurb_workflow.database.models import JobRecord
from refurb_workflow.logging.logger import Log
from refurb_workflow.workflow.exceptions import InvalidStateForCertificationError
from refurb_workflow.workflow.executor import TransitionExecutor
from refurb_workflow.workflow.models import TransitionPayload
from refurb_workflow.workflow.states import FinalGrade, RefurbState, TransitionAction


class CertificationFinalizer:
    """Certify a unit: the FINAL_TEST_PASSED -> CERTIFIED edge with a mandatory outcome."""

    def __init__(self, store: WorkflowStore, executor: TransitionExecutor) -> None:
        self._store = store
        self._executor = executor

    def certify(
        self,
        job_id: str,
        technician_id: str,
        final_grade: FinalGrade,
        warranty_eligible: bool,
        notes: str | None = None,
    ) -> JobRecord:
        """Advance a FINAL_TEST_PASSED job to CERTIFIED with its grade and warranty.

        Raises:
            JobNotFoundError: if the job does not exist.
            InvalidStateForCertificationError: if the job is not in FINAL_TEST_PASSED.
        """
        with self._store.lock_job(job_id) as session:
            state = session.job.current_state
            if state is not RefurbState.FINAL_TEST_PASSED:
                Log.warning("Rejected certification", job_id=job_id, state=state)
                raise InvalidStateForCertificationError(state)
            job = self._executor.apply(
                session,
                TransitionAction.ADVANCE,
                technician_id,
                TransitionPayload(
                    final_grade=final_grade,
                    warranty_eligible=warranty_eligible,
                    notes=notes,
                ),
            )
        Log.info("Job certified", job_id=job_id, grade=final_grade, warranty=warranty_eligible)
        return job
