"""Workflow State — single source of truth passed through the graph."""

import operator
from enum import Enum
from typing import Annotated, Literal, TypedDict

CONCEPT = "concept"
SPATIAL = "spatial"
VISUAL = "visual"
INTERACTIVE = "interactive"
BUDGET = "budget"

# Fixed execution order; visual and interactive run side by side.
STAGES = (CONCEPT, SPATIAL, VISUAL, INTERACTIVE, BUDGET)
PARALLEL_GROUP = (VISUAL, INTERACTIVE)

DEPENDENCIES: dict[str, tuple[str, ...]] = {
    CONCEPT: (),
    SPATIAL: (CONCEPT,),
    VISUAL: (CONCEPT,),
    INTERACTIVE: (CONCEPT,),
    BUDGET: (CONCEPT, SPATIAL, VISUAL, INTERACTIVE),
}

STEP_LABELS = {
    CONCEPT: "Concept plan complete",
    SPATIAL: "Spatial layout complete",
    VISUAL: "Visual design complete",
    INTERACTIVE: "Interactive plan complete",
    BUDGET: "Budget estimate complete",
}


class RevisionTarget(Enum):
    """Closed set of places a revision can restart from."""

    NONE = "none"
    CONCEPT = CONCEPT
    SPATIAL = SPATIAL
    PARALLEL_DESIGNS = "parallel_designs"
    VISUAL = VISUAL
    INTERACTIVE = INTERACTIVE
    BUDGET = BUDGET


def parse_target(value) -> RevisionTarget | None:
    """Map a target name (or RevisionTarget) to the enum; None if unrecognized."""
    if isinstance(value, RevisionTarget):
        return value
    if not isinstance(value, str):
        return None
    try:
        return RevisionTarget(value.strip().lower())
    except ValueError:
        return None


Status = Literal["in_progress", "waiting_for_human", "completed", "rejected"]
HumanDecision = Literal["approve", "revise", "reject"]


class QualityEvaluation(TypedDict):
    scores: dict[str, float]  # One score in [0, 1] per stage.
    overall_score: float
    feedback: str
    revision_target: str  # "none" or a revision target name.


class WorkflowState(TypedDict):
    workflow_id: str
    requirements: dict  # Validated input. Immutable after init.
    artifacts: dict[str, dict | None]  # Stage name -> artifact, None when absent.
    current_step: str
    message_log: Annotated[list[str], operator.add]  # Append-only.
    iteration_count: int  # Starts at 0, never exceeds max_iterations.
    max_iterations: int
    quality_evaluation: QualityEvaluation | None
    feedback_history: Annotated[list[str], operator.add]  # One entry per cascade.
    needs_revision: bool
    revision_reason: str | None  # Set iff needs_revision; passed to producers as a hint.
    last_revision_step: str | None
    human_decision: HumanDecision | None
    human_feedback: str | None
    human_revision_target: str | None
    waiting_for_human: bool
    auto_approve: bool  # Fixed at start; False selects human-in-the-loop mode.
    status: Status
    final_report: str | None
    version: int


REQUIRED_FIELDS = frozenset(WorkflowState.__annotations__)


def new_state(
    workflow_id: str,
    requirements: dict,
    auto_approve: bool,
    max_iterations: int,
) -> WorkflowState:
    """Build the initial state for a fresh run."""
    return {
        "workflow_id": workflow_id,
        "requirements": requirements,
        "artifacts": {stage: None for stage in STAGES},
        "current_step": "Workflow started",
        "message_log": [
            "Exhibition design workflow started"
            + ("" if auto_approve else " (human review mode)")
        ],
        "iteration_count": 0,
        "max_iterations": max_iterations,
        "quality_evaluation": None,
        "feedback_history": [],
        "needs_revision": False,
        "revision_reason": None,
        "last_revision_step": None,
        "human_decision": None,
        "human_feedback": None,
        "human_revision_target": None,
        "waiting_for_human": False,
        "auto_approve": auto_approve,
        "status": "in_progress",
        "final_report": None,
        "version": 0,
    }


def missing_dependencies(artifacts: dict, stage: str) -> list[str]:
    """Return the dependencies of `stage` that have no artifact yet."""
    return [dep for dep in DEPENDENCIES[stage] if artifacts.get(dep) is None]


def dependency_violations(artifacts: dict) -> list[str]:
    """List present artifacts whose dependencies are absent. Empty list = consistent."""
    issues = []
    for stage in STAGES:
        if artifacts.get(stage) is None:
            continue
        for dep in missing_dependencies(artifacts, stage):
            issues.append(f"'{stage}' is present but its dependency '{dep}' is absent.")
    return issues


def is_terminal(state: WorkflowState) -> bool:
    """True once all artifacts exist, nobody is waiting and no revision is pending."""
    artifacts = state.get("artifacts") or {}
    return (
        all(artifacts.get(stage) is not None for stage in STAGES)
        and not state.get("waiting_for_human", False)
        and not state.get("needs_revision", False)
    )
