from collections.abc import Sequence

from refurb_workflow.database.base import WorkflowStore
from refurb_workflow.database.models import DiagnosisRecord, PartRequirement
from refurb_workflow.logging.logger import Log
from refurb_workflow.workflow.clock import Clock, utc_now
from refurb_workflow.workflow.exceptions import JobNotFoundError
from refurb_workflow.workflow.models import NewDiagnosis
from refurb_workflow.workflow.states import DiagnosisSeverity


class DiagnosisRecorder:
    """Append-only defect findings, independent of the job's workflow state."""

    def __init__(self, store: WorkflowStore, clock: Clock = utc_now) -> None:
        self._store = store
        self._clock = clock

    def add_diagnosis(
        self,
        job_id: str,
        defect_code: str,
        severity: DiagnosisSeverity,
        diagnosed_by: str,
        measurements: dict[str, float] | None = None,
        repair_action: str | None = None,
        parts_required: Sequence[PartRequirement] = (),
        notes: str | None = None,
    ) -> DiagnosisRecord:
        if self._store.find_job(job_id) is None:
            raise JobNotFoundError(job_id)
        record = self._store.insert_diagnosis(
            NewDiagnosis(
                job_id=job_id,
                defect_code=defect_code,
                severity=severity,
                diagnosed_by=diagnosed_by,
                diagnosed_at=self._clock(),
                measurements=measurements,
                repair_action=repair_action,
                parts_required=list(parts_required),
                notes=notes,
            )
        )
        Log.info(
            "Diagnosis recorded",
            job_id=job_id,
            defect=defect_code,
            severity=severity,
            diagnosis_id=record.id,
        )
        return record

    def list_diagnoses(self, job_id: str) -> list[DiagnosisRecord]:
        """Most recent first."""
        return self._store.list_diagnoses(job_id)
