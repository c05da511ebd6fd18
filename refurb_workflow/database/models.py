from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from refurb_workflow.workflow.states import (
    DiagnosisSeverity,
    FinalGrade,
    JobPriority,
    ProductCategory,
    RefurbState,
    RepairStatus,
    TransitionAction,
)


@dataclass(frozen=True)
class JobRecord:
    """Represents a row from the refurb_jobs table."""

    id: str
    unit_id: str
    pallet_id: str
    category: ProductCategory
    current_state: RefurbState
    created_at: datetime
    updated_at: datetime
    current_step_index: int = 0
    attempt_count: int = 0
    max_attempts: int = 2
    priority: JobPriority = JobPriority.NORMAL
    manufacturer: str | None = None
    model: str | None = None
    assigned_technician_id: str | None = None
    assigned_technician_name: str | None = None
    assigned_at: datetime | None = None
    final_grade: FinalGrade | None = None
    warranty_eligible: bool | None = None
    disposition: str | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None
    state_entered_at: datetime | None = None


@dataclass(frozen=True)
class TransitionRecord:
    """Represents a row from the workflow_transitions table."""

    id: int
    job_id: str
    from_state: RefurbState | None
    to_state: RefurbState
    action: TransitionAction
    created_at: datetime
    technician_id: str | None = None
    reason: str | None = None
    notes: str | None = None


@dataclass(frozen=True)
class StepCompletionRecord:
    """Represents a row from the refurb_step_completions table."""

    id: str
    job_id: str
    state_code: RefurbState
    step_code: str
    completed_by: str
    completed_at: datetime
    completed_by_name: str | None = None
    checklist_results: dict[str, bool] | None = None
    input_values: dict[str, Any] | None = None
    measurements: dict[str, float] | None = None
    notes: str | None = None
    photo_urls: list[str] | None = None
    photo_types: list[str] | None = None


@dataclass(frozen=True)
class PartRequirement:
    sku: str
    name: str
    quantity: int = 1


@dataclass(frozen=True)
class DiagnosisRecord:
    """Represents a row from the job_diagnoses table."""

    id: int
    job_id: str
    defect_code: str
    severity: DiagnosisSeverity
    diagnosed_by: str
    diagnosed_at: datetime
    measurements: dict[str, float] | None = None
    repair_action: str | None = None
    parts_required: list[PartRequirement] = field(default_factory=list)
    repair_status: RepairStatus = RepairStatus.PENDING
    notes: str | None = None
