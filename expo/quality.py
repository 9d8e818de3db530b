"""Quality gate — scores the current artifacts and names a revision target.

The gate only reports. Whether the run finalizes or revises is decided by
the revision controller (expo.revision.decide).

Policy applied to every evaluation, whatever the evaluator returned:
  overall >= ACCEPT_THRESHOLD            -> target "none"
  overall <  REVISE_THRESHOLD            -> target is a real stage
  REVISE_THRESHOLD <= overall < ACCEPT   -> evaluator's target kept
"""

import sys
from typing import Protocol

from expo.state import BUDGET, STAGES, QualityEvaluation, RevisionTarget, WorkflowState, parse_target
from expo.utils.costs import normalize_cost

ACCEPT_THRESHOLD = 0.85
REVISE_THRESHOLD = 0.6
BUDGET_WARNING_RATIO = 0.95


class QualityGate(Protocol):
    def evaluate(self, state: WorkflowState) -> dict: ...


def _clamp(value) -> float:
    try:
        score = float(value)
    except (TypeError, ValueError):
        return 0.0
    if score != score:  # NaN
        return 0.0
    return min(1.0, max(0.0, score))


def check_budget_overrun(state: WorkflowState) -> bool:
    """Return True if the budget estimate exceeds 95% of the available budget."""
    estimate = (state.get("artifacts") or {}).get(BUDGET)
    if not estimate:
        return False

    total_budget = state["requirements"]["budget"]["total"]
    estimated_cost = normalize_cost(estimate.get("total_cost"))
    over = estimated_cost > total_budget * BUDGET_WARNING_RATIO

    if over:
        overrun = (estimated_cost - total_budget) / total_budget * 100
        print(
            f"[EXPO] Warning: budget estimate {estimated_cost:,.0f} is above "
            f"{BUDGET_WARNING_RATIO:.0%} of the available {total_budget:,.0f} "
            f"({overrun:+.1f}% vs. total).",
            file=sys.stderr,
        )
    return over


def normalize_evaluation(data: dict, state: WorkflowState | None = None) -> QualityEvaluation:
    """Coerce a raw evaluation into a QualityEvaluation that satisfies the gate policy.

    - scores are clamped to [0, 1]; missing dimensions score 0
    - a missing overall score is the mean of the dimension scores
    - an unknown target string is treated as "none"
    - at or above ACCEPT_THRESHOLD the target is forced to "none"
    - below REVISE_THRESHOLD a "none" target becomes the lowest-scoring stage
    - if `state` is given, a budget overrun is noted in the feedback
    """
    raw_scores = data.get("scores") or {}
    scores = {stage: _clamp(raw_scores.get(stage)) for stage in STAGES}

    if data.get("overall_score") is None:
        overall = sum(scores.values()) / len(scores)
    else:
        overall = _clamp(data["overall_score"])

    feedback = str(data.get("feedback") or "").strip()

    raw_target = data.get("revision_target") or RevisionTarget.NONE.value
    target = parse_target(raw_target)
    if target is None:
        print(
            f"[EXPO] Warning: quality gate returned unknown revision target "
            f"{raw_target!r}; treating it as 'none'.",
            file=sys.stderr,
        )
        target = RevisionTarget.NONE

    if overall >= ACCEPT_THRESHOLD:
        target = RevisionTarget.NONE
    elif overall < REVISE_THRESHOLD and target is RevisionTarget.NONE:
        weakest = min(STAGES, key=lambda stage: scores[stage])
        target = RevisionTarget(weakest)
        print(
            f"[EXPO] Overall score {overall:.2f} is below {REVISE_THRESHOLD} but no "
            f"revision target was named; targeting weakest stage '{weakest}'.",
            file=sys.stderr,
        )

    if state is not None and check_budget_overrun(state):
        note = "Budget estimate exceeds 95% of the available budget."
        feedback = f"{feedback} {note}".strip()

    return {
        "scores": scores,
        "overall_score": overall,
        "feedback": feedback,
        "revision_target": target.value,
    }
