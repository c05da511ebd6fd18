from collections.abc import Mapping, Sequence

from refurb_workflow.catalog.base import BaseStepCatalog, WorkflowStep
from refurb_workflow.workflow.states import ProductCategory, RefurbState

CategorySteps = Mapping[RefurbState, Sequence[WorkflowStep]]


class StaticStepCatalog(BaseStepCatalog):
    """In-process catalog keyed by category, falling back to a generic SOP.

    Categories missing from ``by_category`` use the ``ProductCategory.OTHER``
    entry when present.
    """

    def __init__(self, by_category: Mapping[ProductCategory, CategorySteps]) -> None:
        self._by_category = by_category

    def steps_for(self, category: ProductCategory, state: RefurbState) -> list[WorkflowStep]:
        sop = self._by_category.get(category)
        if sop is None:
            sop = self._by_category.get(ProductCategory.OTHER, {})
        return sorted(sop.get(state, ()), key=lambda step: step.order)
