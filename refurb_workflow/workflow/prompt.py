from collections.abc import Sequence

from refurb_workflow.catalog.base import WorkflowStep
from refurb_workflow.database.base import WorkflowStore
from refurb_workflow.database.models import JobRecord
from refurb_workflow.logging.logger import Log
from refurb_workflow.workflow.exceptions import JobNotFoundError
from refurb_workflow.workflow.models import PromptProgress, WorkflowPrompt
from refurb_workflow.workflow.states import STATE_DISPLAY, STATE_ORDER, TransitionAction
from refurb_workflow.workflow.transitions import has_edge


class PromptComposer:
    """Derive the technician-facing prompt for a job. Read-only."""

    def __init__(self, store: WorkflowStore) -> None:
        self._store = store

    def compose(self, job_id: str, steps: Sequence[WorkflowStep]) -> WorkflowPrompt:
        """Combine the job's state, its completed steps and the catalog steps.

        Args:
            job_id: Job to build the prompt for.
            steps: Ordered catalog steps for the job's current state and category.

        Raises:
            JobNotFoundError: if the job does not exist.
        """
        job = self._store.find_job(job_id)
        if job is None:
            raise JobNotFoundError(job_id)

        state = job.current_state
        completed = self._store.list_step_completions(job_id, state, since=job.state_entered_at)
        completed_codes = {completion.step_code for completion in completed}
        pending = [i for i, step in enumerate(steps) if step.code not in completed_codes]
        current_index = pending[0] if pending else len(steps)

        states_completed = self._pipeline_position(job)
        total_states = len(STATE_ORDER)
        Log.debug("Prompt composed", job_id=job_id, state=state, step_index=current_index)
        return WorkflowPrompt(
            job=job,
            state=state,
            state_name=STATE_DISPLAY[state],
            total_steps=len(steps),
            current_step_index=current_index,
            current_step=steps[current_index] if pending else None,
            completed_steps=completed,
            progress=PromptProgress(
                states_completed=states_completed,
                total_states=total_states,
                overall_percent=round(states_completed / total_states * 100),
            ),
            can_advance=not pending,
            can_block=has_edge(state, TransitionAction.BLOCK),
            can_escalate=has_edge(state, TransitionAction.ESCALATE),
            can_retry=has_edge(state, TransitionAction.RETRY),
        )

    def _pipeline_position(self, job: JobRecord) -> int:
        if job.current_state in STATE_ORDER:
            return STATE_ORDER.index(job.current_state)
        # Escape states sit where the job left the pipeline.
        for entry in reversed(self._store.list_transitions(job.id)):
            if entry.to_state in STATE_ORDER:
                return STATE_ORDER.index(entry.to_state)
        return 0
