from refurb_workflow.workflow.exceptions import (
    DuplicateUnitIdError,
    InvalidStateForCertificationError,
    InvalidTransitionError,
    JobNotFoundError,
    MaxAttemptsExceededError,
    StaleStateError,
    StepCatalogError,
    TechnicianNotFoundError,
    WorkflowError,
)
from refurb_workflow.workflow.states import RefurbState, TransitionAction

__all__ = [
    "DuplicateUnitIdError",
    "InvalidStateForCertificationError",
    "InvalidTransitionError",
    "JobNotFoundError",
    "MaxAttemptsExceededError",
    "RefurbState",
    "StaleStateError",
    "StepCatalogError",
    "TechnicianNotFoundError",
    "TransitionAction",
    "WorkflowError",
]
