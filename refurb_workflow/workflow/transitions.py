"""Declarative transition table and the pure legality checks built on it."""

from collections.abc import Iterable
from dataclasses import dataclass

from refurb_workflow.workflow.exceptions import InvalidTransitionError
from refurb_workflow.workflow.states import INITIAL_STATE, RefurbState, TransitionAction


@dataclass(frozen=True)
class Edge:
    action: TransitionAction
    to_state: RefurbState


_S = RefurbState
_A = TransitionAction

TRANSITIONS: dict[RefurbState, tuple[Edge, ...]] = {
    _S.REFURBZ_QUEUED: (
        Edge(_A.ADVANCE, _S.REFURBZ_ASSIGNED),
    ),
    _S.REFURBZ_ASSIGNED: (
        Edge(_A.ADVANCE, _S.REFURBZ_IN_PROGRESS),
        Edge(_A.BLOCK, _S.REFURBZ_BLOCKED),
    ),
    _S.REFURBZ_IN_PROGRESS: (
        Edge(_A.ADVANCE, _S.SECURITY_PREP_COMPLETE),
        Edge(_A.BLOCK, _S.REFURBZ_BLOCKED),
        Edge(_A.ESCALATE, _S.REFURBZ_ESCALATED),
    ),
    _S.SECURITY_PREP_COMPLETE: (
        Edge(_A.ADVANCE, _S.DIAGNOSED),
        Edge(_A.BLOCK, _S.REFURBZ_BLOCKED),
        Edge(_A.ESCALATE, _S.REFURBZ_ESCALATED),
    ),
    _S.DIAGNOSED: (
        Edge(_A.ADVANCE, _S.REPAIR_IN_PROGRESS),
        Edge(_A.BLOCK, _S.REFURBZ_BLOCKED),
        Edge(_A.ESCALATE, _S.REFURBZ_ESCALATED),
    ),
    _S.REPAIR_IN_PROGRESS: (
        Edge(_A.ADVANCE, _S.REPAIR_COMPLETE),
        Edge(_A.BLOCK, _S.REFURBZ_BLOCKED),
        Edge(_A.ESCALATE, _S.REFURBZ_ESCALATED),
    ),
    _S.REPAIR_COMPLETE: (
        Edge(_A.ADVANCE, _S.FINAL_TEST_IN_PROGRESS),
        Edge(_A.BLOCK, _S.REFURBZ_BLOCKED),
    ),
    _S.FINAL_TEST_IN_PROGRESS: (
        Edge(_A.ADVANCE, _S.FINAL_TEST_PASSED),
        Edge(_A.FAIL, _S.FINAL_TEST_FAILED),
        Edge(_A.BLOCK, _S.REFURBZ_BLOCKED),
    ),
    _S.FINAL_TEST_PASSED: (
        Edge(_A.ADVANCE, _S.CERTIFIED),
    ),
    _S.CERTIFIED: (
        Edge(_A.ADVANCE, _S.REFURBZ_COMPLETE),
    ),
    _S.REFURBZ_COMPLETE: (),
    _S.REFURBZ_BLOCKED: (
        Edge(_A.RESOLVE, _S.REFURBZ_IN_PROGRESS),
        Edge(_A.ESCALATE, _S.REFURBZ_ESCALATED),
        Edge(_A.FAIL, _S.REFURBZ_FAILED_DISPOSITION),
    ),
    _S.REFURBZ_ESCALATED: (
        Edge(_A.RESOLVE, _S.REFURBZ_IN_PROGRESS),
        Edge(_A.FAIL, _S.REFURBZ_FAILED_DISPOSITION),
    ),
    _S.FINAL_TEST_FAILED: (
        Edge(_A.RETRY, _S.REPAIR_IN_PROGRESS),
        Edge(_A.FAIL, _S.REFURBZ_FAILED_DISPOSITION),
    ),
    _S.REFURBZ_FAILED_DISPOSITION: (),
}


@dataclass(frozen=True)
class TransitionCheck:
    """Outcome of validating an action against the table."""

    valid: bool
    target_state: RefurbState | None = None
    error: str | None = None


def allowed_actions(state: RefurbState) -> list[TransitionAction]:
    return [edge.action for edge in TRANSITIONS[state]]


def has_edge(state: RefurbState, action: TransitionAction) -> bool:
    return any(edge.action is action for edge in TRANSITIONS[state])


def validate_transition(state: RefurbState, action: TransitionAction) -> TransitionCheck:
    """Look up ``(state, action)`` in the table without side effects."""
    for edge in TRANSITIONS[state]:
        if edge.action is action:
            return TransitionCheck(valid=True, target_state=edge.to_state)
    return TransitionCheck(
        valid=False,
        error=f"Action '{action}' not allowed from state '{state}'",
    )


def resolve_target(state: RefurbState, action: TransitionAction) -> RefurbState:
    """Return the target state, raising InvalidTransitionError when illegal."""
    check = validate_transition(state, action)
    if check.target_state is None:
        raise InvalidTransitionError(state, action, allowed_actions(state))
    return check.target_state


def replay(
    steps: Iterable[tuple[RefurbState | None, RefurbState, TransitionAction]],
) -> RefurbState:
    """Replay ``(from_state, to_state, action)`` log entries from the initial state.

    The first entry must be the creation entry (no from-state, landing in the
    initial state). Every later entry must start where the previous one ended
    and be a legal edge that lands on its recorded target.

    Raises:
        InvalidTransitionError: if any entry cannot be reproduced by the table.
        ValueError: if the log is empty or does not start with a creation entry.
    """
    current: RefurbState | None = None
    for from_state, to_state, action in steps:
        if current is None:
            if from_state is not None or to_state is not INITIAL_STATE:
                raise ValueError("Transition log must start with the creation entry")
            current = to_state
            continue
        if from_state is not current:
            raise ValueError(
                f"Transition log is discontinuous: expected from-state {current}, "
                f"got {from_state}"
            )
        target = resolve_target(current, action)
        if target is not to_state:
            raise InvalidTransitionError(current, action, allowed_actions(current))
        current = target
    if current is None:
        raise ValueError("Transition log is empty")
    return current
