from datetime import datetime, timedelta, timezone

from refurb_workflow.catalog.base import WorkflowStep
from refurb_workflow.workflow.states import StepType

START = datetime(2026, 3, 10, 9, 0, tzinfo=timezone.utc)


class FixedClock:
    """Deterministic clock; only moves when a test advances it."""

    def __init__(self, now: datetime = START) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **delta: float) -> datetime:
        self.now += timedelta(**delta)
        return self.now


IN_PROGRESS_STEPS = [
    WorkflowStep(code="BACKUP_CHECK", name="Backup check", type=StepType.CHECKLIST, order=1),
    WorkflowStep(code="FACTORY_RESET", name="Factory reset", type=StepType.CONFIRMATION, order=2),
    WorkflowStep(
        code="ACCOUNT_REMOVAL",
        name="Account removal",
        type=StepType.PHOTO,
        required=False,
        order=3,
    ),
]
