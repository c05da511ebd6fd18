from enum import Enum


class _CodeEnum(str, Enum):
    """String-valued enum that renders as its bare code."""

    def __str__(self) -> str:
        return self.value


class RefurbState(_CodeEnum):
    REFURBZ_QUEUED = "REFURBZ_QUEUED"
    REFURBZ_ASSIGNED = "REFURBZ_ASSIGNED"
    REFURBZ_IN_PROGRESS = "REFURBZ_IN_PROGRESS"
    SECURITY_PREP_COMPLETE = "SECURITY_PREP_COMPLETE"
    DIAGNOSED = "DIAGNOSED"
    REPAIR_IN_PROGRESS = "REPAIR_IN_PROGRESS"
    REPAIR_COMPLETE = "REPAIR_COMPLETE"
    FINAL_TEST_IN_PROGRESS = "FINAL_TEST_IN_PROGRESS"
    FINAL_TEST_PASSED = "FINAL_TEST_PASSED"
    CERTIFIED = "CERTIFIED"
    REFURBZ_COMPLETE = "REFURBZ_COMPLETE"
    REFURBZ_BLOCKED = "REFURBZ_BLOCKED"
    REFURBZ_ESCALATED = "REFURBZ_ESCALATED"
    FINAL_TEST_FAILED = "FINAL_TEST_FAILED"
    REFURBZ_FAILED_DISPOSITION = "REFURBZ_FAILED_DISPOSITION"


class StateType(_CodeEnum):
    NORMAL = "NORMAL"
    ESCAPE = "ESCAPE"
    TERMINAL = "TERMINAL"


class TransitionAction(_CodeEnum):
    ADVANCE = "ADVANCE"
    BLOCK = "BLOCK"
    ESCALATE = "ESCALATE"
    FAIL = "FAIL"
    RESOLVE = "RESOLVE"
    RETRY = "RETRY"


class JobPriority(_CodeEnum):
    URGENT = "URGENT"
    HIGH = "HIGH"
    NORMAL = "NORMAL"
    LOW = "LOW"


class ProductCategory(_CodeEnum):
    PHONE = "PHONE"
    TABLET = "TABLET"
    LAPTOP = "LAPTOP"
    DESKTOP = "DESKTOP"
    TV = "TV"
    MONITOR = "MONITOR"
    AUDIO = "AUDIO"
    APPLIANCE_SMALL = "APPLIANCE_SMALL"
    APPLIANCE_LARGE = "APPLIANCE_LARGE"
    ICE_MAKER = "ICE_MAKER"
    VACUUM = "VACUUM"
    GAMING = "GAMING"
    WEARABLE = "WEARABLE"
    OTHER = "OTHER"


class FinalGrade(_CodeEnum):
    A = "A"
    B = "B"
    C = "C"
    D = "D"
    F = "F"
    SALVAGE = "SALVAGE"


class DiagnosisSeverity(_CodeEnum):
    CRITICAL = "CRITICAL"
    MAJOR = "MAJOR"
    MINOR = "MINOR"
    COSMETIC = "COSMETIC"


class RepairStatus(_CodeEnum):
    PENDING = "PENDING"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETE = "COMPLETE"
    SKIPPED = "SKIPPED"


class StepType(_CodeEnum):
    CHECKLIST = "CHECKLIST"
    INPUT = "INPUT"
    MEASUREMENT = "MEASUREMENT"
    PHOTO = "PHOTO"
    CONFIRMATION = "CONFIRMATION"


INITIAL_STATE = RefurbState.REFURBZ_QUEUED

# Canonical pipeline ordering; escape states have no ordinal.
STATE_ORDER: tuple[RefurbState, ...] = (
    RefurbState.REFURBZ_QUEUED,
    RefurbState.REFURBZ_ASSIGNED,
    RefurbState.REFURBZ_IN_PROGRESS,
    RefurbState.SECURITY_PREP_COMPLETE,
    RefurbState.DIAGNOSED,
    RefurbState.REPAIR_IN_PROGRESS,
    RefurbState.REPAIR_COMPLETE,
    RefurbState.FINAL_TEST_IN_PROGRESS,
    RefurbState.FINAL_TEST_PASSED,
    RefurbState.CERTIFIED,
    RefurbState.REFURBZ_COMPLETE,
)

STATE_DISPLAY: dict[RefurbState, str] = {
    RefurbState.REFURBZ_QUEUED: "Queued",
    RefurbState.REFURBZ_ASSIGNED: "Assigned",
    RefurbState.REFURBZ_IN_PROGRESS: "In Progress",
    RefurbState.SECURITY_PREP_COMPLETE: "Security Prep Complete",
    RefurbState.DIAGNOSED: "Diagnosed",
    RefurbState.REPAIR_IN_PROGRESS: "Repair In Progress",
    RefurbState.REPAIR_COMPLETE: "Repair Complete",
    RefurbState.FINAL_TEST_IN_PROGRESS: "Final Test In Progress",
    RefurbState.FINAL_TEST_PASSED: "Final Test Passed",
    RefurbState.CERTIFIED: "Certified",
    RefurbState.REFURBZ_COMPLETE: "Complete",
    RefurbState.REFURBZ_BLOCKED: "Blocked",
    RefurbState.REFURBZ_ESCALATED: "Escalated",
    RefurbState.FINAL_TEST_FAILED: "Final Test Failed",
    RefurbState.REFURBZ_FAILED_DISPOSITION: "Failed - Disposition Required",
}

STATE_TYPE: dict[RefurbState, StateType] = {
    **{state: StateType.NORMAL for state in STATE_ORDER},
    RefurbState.REFURBZ_COMPLETE: StateType.TERMINAL,
    RefurbState.REFURBZ_BLOCKED: StateType.ESCAPE,
    RefurbState.REFURBZ_ESCALATED: StateType.ESCAPE,
    RefurbState.FINAL_TEST_FAILED: StateType.ESCAPE,
    RefurbState.REFURBZ_FAILED_DISPOSITION: StateType.TERMINAL,
}

TERMINAL_STATES = frozenset(
    state for state, kind in STATE_TYPE.items() if kind is StateType.TERMINAL
)

# started_at is stamped the first time a job reaches this state.
STARTED_STATE = RefurbState.REFURBZ_IN_PROGRESS
