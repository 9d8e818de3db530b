"""Revision controller — turns a quality verdict or a human decision into state updates.

decide() picks between finalizing and revising; apply_cascade() computes the
state update for a revision: which artifacts to clear, the iteration bump,
the feedback entry and the hint handed to the re-run producers.
"""

import sys
from dataclasses import dataclass

from expo.config import get_config
from expo.errors import StateIntegrityError
from expo.quality import ACCEPT_THRESHOLD
from expo.state import (
    BUDGET,
    CONCEPT,
    INTERACTIVE,
    SPATIAL,
    VISUAL,
    QualityEvaluation,
    RevisionTarget,
    WorkflowState,
    parse_target,
)

PARALLEL_NODE = "parallel_designs"

# Target -> artifacts invalidated by a revision aimed at it.
CASCADE: dict[RevisionTarget, tuple[str, ...]] = {
    RevisionTarget.CONCEPT: (CONCEPT, SPATIAL, VISUAL, INTERACTIVE, BUDGET),
    RevisionTarget.SPATIAL: (SPATIAL, VISUAL, INTERACTIVE, BUDGET),
    RevisionTarget.PARALLEL_DESIGNS: (VISUAL, INTERACTIVE, BUDGET),
    RevisionTarget.VISUAL: (VISUAL, INTERACTIVE, BUDGET),
    RevisionTarget.INTERACTIVE: (VISUAL, INTERACTIVE, BUDGET),
    RevisionTarget.BUDGET: (BUDGET,),
}

# Target -> graph node where execution restarts after the cascade.
ENTRY_NODES: dict[RevisionTarget, str] = {
    RevisionTarget.CONCEPT: CONCEPT,
    RevisionTarget.SPATIAL: SPATIAL,
    RevisionTarget.PARALLEL_DESIGNS: PARALLEL_NODE,
    RevisionTarget.VISUAL: PARALLEL_NODE,
    RevisionTarget.INTERACTIVE: PARALLEL_NODE,
    RevisionTarget.BUDGET: BUDGET,
}


def _check_tables() -> None:
    """Fail at import if a revision target is missing from either table."""
    stage_targets = set(RevisionTarget) - {RevisionTarget.NONE}
    for name, table in (("CASCADE", CASCADE), ("ENTRY_NODES", ENTRY_NODES)):
        missing = stage_targets - set(table)
        extra = set(table) - stage_targets
        if missing or extra:
            raise RuntimeError(
                f"{name} must cover exactly the stage targets; "
                f"missing={sorted(t.value for t in missing)}, extra={sorted(t.value for t in extra)}"
            )


_check_tables()


@dataclass(frozen=True)
class Finalize:
    reason: str


@dataclass(frozen=True)
class Revise:
    target: RevisionTarget
    reason: str


def decide(state: WorkflowState) -> Finalize | Revise:
    """Decide what follows a quality review.

    Priority order:
    1. iteration budget exhausted -> finalize (accept current best)
    2. overall score >= ACCEPT_THRESHOLD -> finalize
    3. evaluation names a target -> revise that target
    4. otherwise -> finalize
    """
    evaluation = state.get("quality_evaluation")
    if not evaluation:
        print("[EXPO] No quality evaluation on state; finalizing.", file=sys.stderr)
        return Finalize("No quality evaluation available")

    iteration = state["iteration_count"]
    limit = state["max_iterations"]
    score = evaluation["overall_score"]

    if iteration >= limit:
        return Finalize(f"Reached max iterations ({limit}); accepting current design")

    if score >= ACCEPT_THRESHOLD:
        return Finalize(f"Quality {score:.2f} meets the acceptance threshold")

    target = parse_target(evaluation.get("revision_target"))
    if target is not None and target is not RevisionTarget.NONE:
        return Revise(target, evaluation.get("feedback") or f"Quality {score:.2f} below threshold")

    return Finalize(f"Quality {score:.2f} accepted without a revision target")


def _default_target() -> RevisionTarget:
    configured = get_config().get("default_revision_target", CONCEPT)
    target = parse_target(configured)
    if target is None or target is RevisionTarget.NONE:
        raise ValueError(
            f"default_revision_target must name a stage target, got {configured!r}"
        )
    return target


def resolve_target(explicit=None, evaluation: QualityEvaluation | None = None) -> RevisionTarget:
    """Pick the target for a human-requested revision.

    Explicit target first, then the quality gate's target, then the configured
    default. Falling back to the default is always logged.
    """
    target = parse_target(explicit) if explicit is not None else None
    if target is not None and target is not RevisionTarget.NONE:
        return target

    gate_target = parse_target((evaluation or {}).get("revision_target"))
    if gate_target is not None and gate_target is not RevisionTarget.NONE:
        return gate_target

    default = _default_target()
    print(
        f"[EXPO] Warning: no revision target given by the reviewer or the quality gate; "
        f"falling back to configured default '{default.value}'.",
        file=sys.stderr,
    )
    return default


def cleared_artifacts(target: RevisionTarget) -> tuple[str, ...]:
    """Artifacts invalidated by a revision aimed at `target`."""
    return CASCADE[target]


def entry_node(target: RevisionTarget) -> str:
    """Graph node where execution restarts after a revision aimed at `target`."""
    return ENTRY_NODES[target]


def can_revise(state: WorkflowState) -> bool:
    return state["iteration_count"] < state["max_iterations"]


def apply_cascade(state: WorkflowState, target: RevisionTarget, reason: str) -> dict:
    """Return the state update for a revision aimed at `target`.

    The update clears the cascade's artifacts, bumps iteration_count by one and
    records the reason. message_log and feedback_history hold only the new
    entries; the graph's reducers append them.

    Raises StateIntegrityError if the iteration bound is reached or the target is NONE.
    """
    if target is RevisionTarget.NONE:
        raise StateIntegrityError("Cannot apply a revision cascade without a target.")
    if not can_revise(state):
        raise StateIntegrityError(
            f"Revision refused: iteration {state['iteration_count']} has reached "
            f"max_iterations ({state['max_iterations']})."
        )

    iteration = state["iteration_count"] + 1
    artifacts = dict(state["artifacts"])
    for stage in CASCADE[target]:
        artifacts[stage] = None

    print(
        f"[EXPO] Revision {iteration}/{state['max_iterations']} -> '{target.value}' "
        f"(clearing {', '.join(CASCADE[target])})",
        file=sys.stderr,
    )

    return {
        "artifacts": artifacts,
        "iteration_count": iteration,
        "feedback_history": [f"Iteration {iteration}: {reason}"],
        "needs_revision": True,
        "revision_reason": reason,
        "last_revision_step": target.value,
        "current_step": f"Revising {target.value}",
        "message_log": [f"Iteration {iteration}: revising {target.value}: {reason}"],
    }
