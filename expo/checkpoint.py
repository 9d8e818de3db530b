"""Human checkpoint: durable suspension after quality review and validated resumption.

Suspension is not a wait: the graph stops with waiting_for_human=True and the
caller persists the state. prepare_resume() validates a decision against that
state and returns the state to feed back into the graph.
"""

import threading
from contextlib import contextmanager
from typing import Iterator

from expo.errors import ResumeConflictError, StateIntegrityError, ValidationError
from expo.quality import ACCEPT_THRESHOLD
from expo.state import (
    REQUIRED_FIELDS,
    QualityEvaluation,
    RevisionTarget,
    WorkflowState,
    dependency_violations,
    parse_target,
)

VALID_DECISIONS = ("approve", "revise", "reject")


def should_suspend(state: WorkflowState, evaluation: QualityEvaluation) -> bool:
    """Human mode pauses after every review that is not already an accept."""
    return not state["auto_approve"] and evaluation["overall_score"] < ACCEPT_THRESHOLD


def suspension_update(evaluation: QualityEvaluation) -> dict:
    """State update that marks the run as waiting for a human decision."""
    return {
        "waiting_for_human": True,
        "status": "waiting_for_human",
        "current_step": "Waiting for human review",
        "message_log": [
            f"Paused for human review (score {evaluation['overall_score'] * 100:.1f})"
        ],
    }


def check_integrity(state: WorkflowState) -> None:
    """Raise StateIntegrityError if a persisted state cannot be resumed safely."""
    if not isinstance(state, dict):
        raise StateIntegrityError("State must be a mapping.")
    missing = sorted(REQUIRED_FIELDS - set(state))
    if missing:
        raise StateIntegrityError(f"State is missing required fields: {missing}")
    if not state["requirements"]:
        raise StateIntegrityError("State has empty requirements.")
    if not isinstance(state["artifacts"], dict):
        raise StateIntegrityError("State artifacts must be a mapping.")
    violations = dependency_violations(state["artifacts"])
    if violations:
        raise StateIntegrityError("; ".join(violations))
    if state["iteration_count"] > state["max_iterations"]:
        raise StateIntegrityError(
            f"iteration_count {state['iteration_count']} exceeds "
            f"max_iterations {state['max_iterations']}."
        )


def prepare_resume(
    state: WorkflowState,
    decision: str,
    feedback: str | None = None,
    explicit_target=None,
) -> WorkflowState:
    """Validate a human decision and return the state to resume the graph with.

    Nothing is modified if validation fails. The returned state carries the
    decision with waiting_for_human=False, so the graph enters at the
    decision-handling node.
    """
    check_integrity(state)
    if not state["waiting_for_human"]:
        raise ValidationError(
            f"Workflow {state['workflow_id']} is not waiting for a human decision."
        )
    if decision not in VALID_DECISIONS:
        raise ValidationError(
            f"Invalid decision {decision!r}. Must be one of: {', '.join(VALID_DECISIONS)}"
        )
    if feedback is not None and not isinstance(feedback, str):
        raise ValidationError("Feedback must be a string.")

    target_name = None
    if explicit_target is not None:
        target = parse_target(explicit_target)
        if target is None or target is RevisionTarget.NONE:
            raise ValidationError(f"Invalid revision target {explicit_target!r}.")
        if decision != "revise":
            raise ValidationError("A revision target can only accompany a 'revise' decision.")
        target_name = target.value

    feedback = feedback.strip() if feedback else None
    return {
        **state,
        "human_decision": decision,
        "human_feedback": feedback or None,
        "human_revision_target": target_name,
        "waiting_for_human": False,
        "status": "in_progress",
    }


class ResumeGuard:
    """Per-workflow single-writer guard for resume calls.

    A second resume for a workflow that is already being resumed fails
    immediately instead of queueing behind the first one.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._active: set[str] = set()

    @contextmanager
    def hold(self, workflow_id: str) -> Iterator[None]:
        with self._lock:
            if workflow_id in self._active:
                raise ResumeConflictError(
                    f"Workflow {workflow_id} is already being resumed."
                )
            self._active.add(workflow_id)
        try:
            yield
        finally:
            with self._lock:
                self._active.discard(workflow_id)
