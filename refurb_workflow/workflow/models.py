from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from refurb_workflow.catalog.base import WorkflowStep
from refurb_workflow.database.models import (
    JobRecord,
    PartRequirement,
    StepCompletionRecord,
    TransitionRecord,
)
from refurb_workflow.workflow.states import (
    DiagnosisSeverity,
    FinalGrade,
    JobPriority,
    ProductCategory,
    RefurbState,
    TransitionAction,
)


@dataclass(frozen=True)
class TransitionPayload:
    """Optional data attached to a transition by the caller."""

    reason: str | None = None
    notes: str | None = None
    final_grade: FinalGrade | None = None
    warranty_eligible: bool | None = None
    disposition: str | None = None


@dataclass(frozen=True)
class PhotoRef:
    url: str
    type: str


@dataclass(frozen=True)
class StepCompletionData:
    """Data a technician submits when completing a step."""

    checklist_results: dict[str, bool] | None = None
    input_values: dict[str, Any] | None = None
    measurements: dict[str, float] | None = None
    notes: str | None = None
    photos: list[PhotoRef] = field(default_factory=list)


@dataclass(frozen=True)
class NewTransition:
    """A transition log entry that has not been persisted yet."""

    job_id: str
    from_state: RefurbState | None
    to_state: RefurbState
    action: TransitionAction
    created_at: datetime
    technician_id: str | None = None
    reason: str | None = None
    notes: str | None = None


@dataclass(frozen=True)
class JobFilter:
    state: RefurbState | None = None
    technician_id: str | None = None
    category: ProductCategory | None = None
    priority: JobPriority | None = None

    def matches(self, job: JobRecord) -> bool:
        return (
            (self.state is None or job.current_state == self.state)
            and (self.technician_id is None or job.assigned_technician_id == self.technician_id)
            and (self.category is None or job.category == self.category)
            and (self.priority is None or job.priority == self.priority)
        )


@dataclass(frozen=True)
class PromptProgress:
    states_completed: int
    total_states: int
    overall_percent: int


@dataclass(frozen=True)
class WorkflowPrompt:
    """What the technician should do next for one job."""

    job: JobRecord
    state: RefurbState
    state_name: str
    total_steps: int
    current_step_index: int
    current_step: WorkflowStep | None
    completed_steps: list[StepCompletionRecord]
    progress: PromptProgress
    can_advance: bool
    can_block: bool
    can_escalate: bool
    can_retry: bool


@dataclass(frozen=True)
class WorkflowStats:
    total: int
    by_state: dict[RefurbState, int]
    by_category: dict[ProductCategory, int]
    completed_today: int
    avg_cycle_time_hours: float


@dataclass(frozen=True)
class JobHistory:
    step_completions: list[StepCompletionRecord]
    transitions: list[TransitionRecord]


@dataclass(frozen=True)
class QueueBucket:
    count: int
    jobs: list[JobRecord]


@dataclass(frozen=True)
class NewDiagnosis:
    """A diagnosis record that has not been persisted yet."""

    job_id: str
    defect_code: str
    severity: DiagnosisSeverity
    diagnosed_by: str
    diagnosed_at: datetime
    measurements: dict[str, float] | None = None
    repair_action: str | None = None
    parts_required: list[PartRequirement] = field(default_factory=list)
    notes: str | None = None
