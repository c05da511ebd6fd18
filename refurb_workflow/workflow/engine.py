import uuid
from collections.abc import Sequence
from dataclasses import replace

from refurb_workflow.catalog.base import BaseStepCatalog, WorkflowStep
from refurb_workflow.catalog.factory import StepCatalogFactory
from refurb_workflow.config.settings import Settings
from refurb_workflow.database.base import WorkflowStore
from refurb_workflow.database.factory import StoreFactory
from refurb_workflow.database.models import (
    DiagnosisRecord,
    JobRecord,
    PartRequirement,
    StepCompletionRecord,
)
from refurb_workflow.logging.logger import Log
from refurb_workflow.technicians.directory import BaseTechnicianDirectory
from refurb_workflow.workflow.certification import CertificationFinalizer
from refurb_workflow.workflow.clock import Clock, utc_now
from refurb_workflow.workflow.diagnosis import DiagnosisRecorder
from refurb_workflow.workflow.exceptions import (
    JobNotFoundError,
    TechnicianNotFoundError,
    WorkflowError,
)
from refurb_workflow.workflow.executor import TransitionExecutor
from refurb_workflow.workflow.models import (
    JobFilter,
    JobHistory,
    NewTransition,
    QueueBucket,
    StepCompletionData,
    TransitionPayload,
    WorkflowPrompt,
    WorkflowStats,
)
from refurb_workflow.workflow.prompt import PromptComposer
from refurb_workflow.workflow.states import (
    INITIAL_STATE,
    DiagnosisSeverity,
    FinalGrade,
    JobPriority,
    ProductCategory,
    RefurbState,
    TransitionAction,
)
from refurb_workflow.workflow.stats import StatsAggregator
from refurb_workflow.workflow.steps import StepCompletionTracker
from refurb_workflow.workflow.transitions import TransitionCheck, replay, validate_transition

# The queue overview leaves out jobs already written off.
QUEUE_STATES: tuple[RefurbState, ...] = tuple(
    state for state in RefurbState if state is not RefurbState.REFURBZ_FAILED_DISPOSITION
)


class WorkflowEngine:
    """Operations exposed to calling layers for refurbishment jobs.

    Every mutation goes through a per-job locked session of the store;
    reads go straight to the store.
    """

    def __init__(
        self,
        store: WorkflowStore,
        catalog: BaseStepCatalog | None = None,
        technicians: BaseTechnicianDirectory | None = None,
        default_max_attempts: int = 2,
        queue_preview_limit: int = 20,
        stats_timezone: str = "UTC",
        clock: Clock = utc_now,
    ) -> None:
        self._store = store
        self._catalog = catalog
        self._technicians = technicians
        self._default_max_attempts = default_max_attempts
        self._queue_preview_limit = queue_preview_limit
        self._clock = clock
        self._executor = TransitionExecutor(store, clock)
        self._steps = StepCompletionTracker(store, clock)
        self._diagnoses = DiagnosisRecorder(store, clock)
        self._prompts = PromptComposer(store)
        self._certification = CertificationFinalizer(store, self._executor)
        self._stats = StatsAggregator(store, stats_timezone, clock)

    # Jobs

    def create_job(
        self,
        unit_id: str,
        pallet_id: str,
        category: ProductCategory | str,
        manufacturer: str | None = None,
        model: str | None = None,
        priority: JobPriority | str = JobPriority.NORMAL,
        max_attempts: int | None = None,
    ) -> JobRecord:
        """Create a job in the initial queued state and log its creation.

        Raises:
            DuplicateUnitIdError: if a job already exists for ``unit_id``.
        """
        max_attempts = max_attempts if max_attempts is not None else self._default_max_attempts
        if max_attempts < 1:
            raise ValueError(f"max_attempts must be at least 1, got {max_attempts}")
        now = self._clock()
        job = JobRecord(
            id=str(uuid.uuid4()),
            unit_id=unit_id,
            pallet_id=pallet_id,
            category=ProductCategory(category),
            current_state=INITIAL_STATE,
            created_at=now,
            updated_at=now,
            state_entered_at=now,
            max_attempts=max_attempts,
            priority=JobPriority(priority),
            manufacturer=manufacturer,
            model=model,
        )
        creation = NewTransition(
            job_id=job.id,
            from_state=None,
            to_state=INITIAL_STATE,
            action=TransitionAction.ADVANCE,
            created_at=now,
        )
        try:
            created = self._store.insert_job(job, creation)
        except WorkflowError:
            Log.warning("Rejected job creation", unit_id=unit_id)
            raise
        Log.info("Job created", job_id=created.id, unit_id=unit_id, category=created.category)
        return created

    def get_job(self, job_id: str) -> JobRecord | None:
        job = self._store.find_job(job_id)
        Log.debug("Job lookup", job_id=job_id, found=job is not None)
        return job

    def get_job_by_unit_id(self, unit_id: str) -> JobRecord | None:
        job = self._store.find_job_by_unit_id(unit_id)
        Log.debug("Job lookup", unit_id=unit_id, found=job is not None)
        return job

    def list_jobs(
        self,
        state: RefurbState | str | None = None,
        technician_id: str | None = None,
        category: ProductCategory | str | None = None,
        priority: JobPriority | str | None = None,
    ) -> list[JobRecord]:
        """Jobs matching every given filter, newest first."""
        filters = JobFilter(
            state=RefurbState(state) if state is not None else None,
            technician_id=technician_id,
            category=ProductCategory(category) if category is not None else None,
            priority=JobPriority(priority) if priority is not None else None,
        )
        jobs = self._store.list_jobs(filters)
        Log.debug("Jobs listed", filters=filters, count=len(jobs))
        return jobs

    def assign_job(
        self,
        job_id: str,
        technician_id: str,
        technician_name: str | None = None,
    ) -> JobRecord:
        """Assign a technician; a job still queued is advanced to assigned.

        Raises:
            JobNotFoundError: if the job does not exist.
            TechnicianNotFoundError: if a directory is configured and does not know the id.
        """
        if self._technicians is not None:
            known_name = self._technicians.find_name(technician_id)
            if known_name is None:
                raise TechnicianNotFoundError(technician_id)
            technician_name = technician_name or known_name

        with self._store.lock_job(job_id) as session:
            now = self._clock()
            session.save_job(
                replace(
                    session.job,
                    assigned_technician_id=technician_id,
                    assigned_technician_name=technician_name,
                    assigned_at=now,
                    updated_at=now,
                )
            )
            if session.job.current_state is INITIAL_STATE:
                job = self._executor.apply(session, TransitionAction.ADVANCE, technician_id)
            else:
                job = session.job
        Log.info("Job assigned", job_id=job_id, technician=technician_id)
        return job

    # Transitions

    def validate_transition(
        self, state: RefurbState | str, action: TransitionAction | str
    ) -> TransitionCheck:
        return validate_transition(RefurbState(state), TransitionAction(action))

    def transition_job(
        self,
        job_id: str,
        action: TransitionAction | str,
        technician_id: str | None = None,
        payload: TransitionPayload | None = None,
    ) -> JobRecord:
        return self._executor.execute(job_id, TransitionAction(action), technician_id, payload)

    def certify_job(
        self,
        job_id: str,
        technician_id: str,
        final_grade: FinalGrade | str,
        warranty_eligible: bool,
        notes: str | None = None,
    ) -> JobRecord:
        return self._certification.certify(
            job_id, technician_id, FinalGrade(final_grade), warranty_eligible, notes
        )

    # Steps and prompts

    def complete_step(
        self,
        job_id: str,
        step_code: str,
        technician_id: str,
        technician_name: str | None = None,
        data: StepCompletionData | None = None,
        expected_state: RefurbState | str | None = None,
    ) -> StepCompletionRecord:
        return self._steps.complete_step(
            job_id,
            step_code,
            technician_id,
            technician_name,
            data,
            RefurbState(expected_state) if expected_state is not None else None,
        )

    def get_completed_steps(
        self, job_id: str, state: RefurbState | str | None = None
    ) -> list[StepCompletionRecord]:
        return self._store.list_step_completions(
            job_id, RefurbState(state) if state is not None else None
        )

    def current_prompt(self, job_id: str, steps: Sequence[WorkflowStep]) -> WorkflowPrompt:
        return self._prompts.compose(job_id, steps)

    def current_prompt_from_catalog(self, job_id: str) -> WorkflowPrompt:
        """Build the prompt using the configured step catalog.

        Raises:
            JobNotFoundError: if the job does not exist.
            RuntimeError: if the engine was built without a catalog.
        """
        if self._catalog is None:
            raise RuntimeError("No step catalog configured; pass steps to current_prompt()")
        job = self._require_job(job_id)
        steps = self._catalog.steps_for(job.category, job.current_state)
        return self._prompts.compose(job_id, steps)

    # Diagnoses

    def add_diagnosis(
        self,
        job_id: str,
        defect_code: str,
        severity: DiagnosisSeverity | str,
        diagnosed_by: str,
        measurements: dict[str, float] | None = None,
        repair_action: str | None = None,
        parts_required: Sequence[PartRequirement] = (),
        notes: str | None = None,
    ) -> DiagnosisRecord:
        return self._diagnoses.add_diagnosis(
            job_id,
            defect_code,
            DiagnosisSeverity(severity),
            diagnosed_by,
            measurements=measurements,
            repair_action=repair_action,
            parts_required=parts_required,
            notes=notes,
        )

    def list_diagnoses(self, job_id: str) -> list[DiagnosisRecord]:
        return self._diagnoses.list_diagnoses(job_id)

    # Reporting

    def get_stats(self) -> WorkflowStats:
        stats = self._stats.get_stats()
        Log.debug("Stats computed", total=stats.total, completed_today=stats.completed_today)
        return stats

    def get_job_history(self, job_id: str) -> JobHistory:
        self._require_job(job_id)
        history = JobHistory(
            step_completions=self._store.list_step_completions(job_id),
            transitions=self._store.list_transitions(job_id),
        )
        Log.debug("Job history read", job_id=job_id, transitions=len(history.transitions))
        return history

    def verify_job_history(self, job_id: str) -> bool:
        """Replay the transition log and compare the result with the stored state.

        Raises:
            JobNotFoundError: if the job does not exist.
            InvalidTransitionError: if the log holds an edge the table does not allow.
        """
        job = self._require_job(job_id)
        entries = self._store.list_transitions(job_id)
        replayed = replay((entry.from_state, entry.to_state, entry.action) for entry in entries)
        if replayed is not job.current_state:
            Log.warning(
                "Transition log disagrees with job state",
                job_id=job_id,
                replayed=replayed,
                stored=job.current_state,
            )
            return False
        return True

    def get_queue(self) -> dict[RefurbState, QueueBucket]:
        """Count and newest jobs per open state."""
        queue: dict[RefurbState, QueueBucket] = {}
        for state in QUEUE_STATES:
            filters = JobFilter(state=state)
            queue[state] = QueueBucket(
                count=self._store.count_jobs(filters),
                jobs=self._store.list_jobs(filters, limit=self._queue_preview_limit),
            )
        Log.debug("Queue built", open_jobs=sum(bucket.count for bucket in queue.values()))
        return queue

    def _require_job(self, job_id: str) -> JobRecord:
        job = self._store.find_job(job_id)
        if job is None:
            raise JobNotFoundError(job_id)
        return job


def build_engine(
    settings: Settings,
    technicians: BaseTechnicianDirectory | None = None,
) -> WorkflowEngine:
    """Build a WorkflowEngine with the configured store and catalog."""
    return WorkflowEngine(
        store=StoreFactory.create(settings),
        catalog=StepCatalogFactory.create(settings),
        technicians=technicians,
        default_max_attempts=settings.default_max_attempts,
        queue_preview_limit=settings.queue_preview_limit,
        stats_timezone=settings.stats_timezone,
    )
