from collections.abc import Iterable

from refurb_workflow.workflow.states import RefurbState, TransitionAction


class WorkflowError(Exception):
    """Base exception for all workflow engine errors."""


class JobNotFoundError(WorkflowError):
    """Raised when a job cannot be found by id or unit id."""

    def __init__(self, job_ref: str) -> None:
        super().__init__(f"Job {job_ref} not found")
        self.job_ref = job_ref


class TechnicianNotFoundError(WorkflowError):
    """Raised when the technician directory does not know a technician id."""

    def __init__(self, technician_id: str) -> None:
        super().__init__(f"Technician {technician_id} not found")
        self.technician_id = technician_id


class InvalidTransitionError(WorkflowError):
    """Raised when an action is not a legal edge from the job's current state."""

    def __init__(
        self,
        current_state: RefurbState,
        action: TransitionAction,
        allowed_actions: Iterable[TransitionAction] = (),
    ) -> None:
        super().__init__(f"Action '{action}' not allowed from state '{current_state}'")
        self.current_state = current_state
        self.action = action
        self.allowed_actions = list(allowed_actions)


class MaxAttemptsExceededError(WorkflowError):
    """Raised when RETRY is requested after the attempt budget is spent."""

    def __init__(
        self,
        attempt_count: int,
        max_attempts: int,
        current_state: RefurbState = RefurbState.FINAL_TEST_FAILED,
        action: TransitionAction = TransitionAction.RETRY,
    ) -> None:
        super().__init__(
            f"Max attempts ({max_attempts}) exceeded after {attempt_count} attempts "
            f"for action '{action}' from state '{current_state}'. Use FAIL action instead."
        )
        self.attempt_count = attempt_count
        self.max_attempts = max_attempts
        self.current_state = current_state
        self.action = action


class InvalidStateForCertificationError(WorkflowError):
    """Raised when certification is requested outside FINAL_TEST_PASSED."""

    def __init__(self, current_state: RefurbState) -> None:
        super().__init__(
            f"Job must be in {RefurbState.FINAL_TEST_PASSED} state to certify "
            f"(current state: {current_state})"
        )
        self.current_state = current_state


class DuplicateUnitIdError(WorkflowError):
    """Raised when a job already exists for the unit identifier."""

    def __init__(self, unit_id: str) -> None:
        super().__init__(f"A job already exists for unit {unit_id}")
        self.unit_id = unit_id


class StepCatalogError(WorkflowError):
    """Raised when the step catalog cannot be loaded."""


class StaleStateError(WorkflowError):
    """Raised when a caller acts on a state the job has already left."""

    def __init__(self, expected_state: RefurbState, current_state: RefurbState) -> None:
        super().__init__(
            f"Job is in state '{current_state}', not '{expected_state}'; refresh the prompt"
        )
        self.expected_state = expected_state
        self.current_state = current_state
