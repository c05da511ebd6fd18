from collections.abc import Callable

import pytest

from refurb_workflow.catalog.static_catalog import StaticStepCatalog
from refurb_workflow.database.memory_store import MemoryWorkflowStore
from refurb_workflow.database.models import JobRecord
from refurb_workflow.workflow.engine import WorkflowEngine
from refurb_workflow.workflow.states import (
    ProductCategory,
    RefurbState,
    TransitionAction,
)

from tests.helpers import IN_PROGRESS_STEPS, FixedClock


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock()


@pytest.fixture
def store() -> MemoryWorkflowStore:
    return MemoryWorkflowStore()


@pytest.fixture
def catalog() -> StaticStepCatalog:
    return StaticStepCatalog(
        {ProductCategory.OTHER: {RefurbState.REFURBZ_IN_PROGRESS: IN_PROGRESS_STEPS}}
    )


@pytest.fixture
def engine(
    store: MemoryWorkflowStore, clock: FixedClock, catalog: StaticStepCatalog
) -> WorkflowEngine:
    return WorkflowEngine(store, catalog=catalog, clock=clock)


@pytest.fixture
def job(engine: WorkflowEngine) -> JobRecord:
    return engine.create_job("UNIT-1", "PALLET-1", ProductCategory.PHONE)


@pytest.fixture
def advance_to(engine: WorkflowEngine) -> Callable[[str, RefurbState], JobRecord]:
    """Drive a job along the ADVANCE edges until it reaches ``target``."""

    def _advance(job_id: str, target: RefurbState) -> JobRecord:
        current = engine.get_job(job_id)
        assert current is not None
        while current.current_state is not target:
            current = engine.transition_job(job_id, TransitionAction.ADVANCE, "tech-1")
        return current

    return _advance
