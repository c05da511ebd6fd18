from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

from refurb_workflow.workflow.states import ProductCategory, RefurbState, StepType


@dataclass(frozen=True)
class WorkflowStep:
    """One step descriptor supplied by the SOP catalog."""

    code: str
    name: str = ""
    type: StepType = StepType.CONFIRMATION
    prompt: str = ""
    required: bool = True
    order: int = 0
    help_text: str | None = None
    checklist_items: list[str] = field(default_factory=list)
    input_schema: dict[str, Any] | None = None


class BaseStepCatalog(ABC):
    """Contract for step catalog adapters."""

    @abstractmethod
    def steps_for(self, category: ProductCategory, state: RefurbState) -> list[WorkflowStep]:
        """Return the ordered steps a technician performs in ``state``.

        Args:
            category: Product category of the job.
            state: Workflow state the job is in.

        Returns:
            Steps sorted by their ``order``; empty when the state has none.

        Raises:
            StepCatalogError: if the catalog cannot be read.
        """
