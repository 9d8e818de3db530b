"""LangGraph StateGraph definition for the exhibition design pipeline.

    START -> concept -> spatial -> parallel_designs -> budget -> quality_review
    quality_review -> END (waiting for a human) | revision_control
    revision_control / human_review -> re-entry node | finalize -> END

The Orchestrator owns the compiled graph and its collaborators; callers own
persistence. Every run/resume call executes the graph until it finalizes or
suspends for a human decision.
"""

import sys
import uuid
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass

from langgraph.graph import END, START, StateGraph

from expo.agents.designers import LLMProducer
from expo.agents.supervisor import SupervisorEvaluator
from expo.checkpoint import (
    ResumeGuard,
    check_integrity,
    prepare_resume,
    should_suspend,
    suspension_update,
)
from expo.config import get_config
from expo.errors import ProducerError, StateIntegrityError, ValidationError
from expo.events import (
    ITERATION_ADVANCED,
    QUALITY_SCORED,
    STAGE_COMPLETED,
    STAGE_FAILED,
    STAGE_STARTED,
    WAITING_FOR_HUMAN,
    WORKFLOW_COMPLETED,
    Notifier,
    build_notifier,
    safe_emit,
)
from expo.prompts import PromptRegistry, build_default_registry
from expo.quality import QualityGate, normalize_evaluation
from expo.revision import (
    PARALLEL_NODE,
    Finalize,
    apply_cascade,
    can_revise,
    decide,
    entry_node,
    resolve_target,
)
from expo.state import (
    BUDGET,
    CONCEPT,
    PARALLEL_GROUP,
    SPATIAL,
    STEP_LABELS,
    RevisionTarget,
    WorkflowState,
    missing_dependencies,
    new_state,
    parse_target,
)
from expo.utils.report import render_report
from expo.utils.validator import validate_requirements

QUALITY_NODE = "quality_review"
REVISION_NODE = "revision_control"
HUMAN_NODE = "human_review"
FINALIZE_NODE = "finalize"

# Nodes a revision may re-enter at, plus finalize.
_AFTER_DECISION = {
    CONCEPT: CONCEPT,
    SPATIAL: SPATIAL,
    PARALLEL_NODE: PARALLEL_NODE,
    BUDGET: BUDGET,
    FINALIZE_NODE: FINALIZE_NODE,
}


@dataclass(frozen=True)
class WorkflowHandle:
    workflow_id: str


def _route_entry(state: WorkflowState) -> str:
    """Conditional edge from START.

    Priority order:
    1. a recorded human decision that is no longer waiting -> human_review
    2. a pending revision (e.g. a run that failed mid-cascade) -> its re-entry node
    3. otherwise -> concept
    """
    if state.get("human_decision") and not state.get("waiting_for_human"):
        return HUMAN_NODE
    if state.get("needs_revision"):
        target = parse_target(state.get("last_revision_step"))
        if target is not None and target is not RevisionTarget.NONE:
            return entry_node(target)
    return CONCEPT


def _route_after_quality(state: WorkflowState) -> str:
    """Suspended runs stop here; everything else goes to the revision controller."""
    if state["waiting_for_human"]:
        return "end"
    return REVISION_NODE


def _route_after_decision(state: WorkflowState) -> str:
    """Re-enter at the cascade's node when a revision is pending, else finalize."""
    if state["needs_revision"]:
        return entry_node(parse_target(state["last_revision_step"]))
    return FINALIZE_NODE


def _error_text(exc: Exception) -> str:
    return str(exc) or exc.__class__.__name__


class Orchestrator:
    """Runs exhibition design workflows.

    Args:
        producers: One Producer for every stage, or a dict of stage -> Producer.
            Defaults to an LLMProducer backed by the default prompt registry.
        gate: Quality evaluator. Defaults to the LLM SupervisorEvaluator.
        notifier: Event sink. Defaults to the one selected by config.
        registry: Prompt registry used to build the default producer and gate.
    """

    def __init__(self, producers=None, gate: QualityGate | None = None,
                 notifier: Notifier | None = None, registry: PromptRegistry | None = None):
        config = get_config()

        if registry is None:
            registry = build_default_registry()

        self.producers = producers if producers is not None else LLMProducer(registry)
        self.gate = gate if gate is not None else SupervisorEvaluator(registry)
        self.notifier = notifier if notifier is not None else build_notifier()

        self.parallel_workers = max(1, int(config.get("parallel_workers", 2)))
        self._guard = ResumeGuard()
        self.graph = self._build_graph()

    # --- Public API ---

    def start(self, requirements: dict, auto_approve: bool | None = None,
              max_iterations: int | None = None) -> tuple[WorkflowHandle, WorkflowState]:
        """Validate requirements and create the initial state. Nothing runs yet."""
        config = get_config()
        validated = validate_requirements(requirements)

        if auto_approve is None:
            auto_approve = bool(config.get("auto_approve", True))
        if max_iterations is None:
            max_iterations = config.get("max_iterations", 3)
        if isinstance(max_iterations, bool) or not isinstance(max_iterations, int) or max_iterations < 0:
            raise ValidationError(f"max_iterations must be a non-negative integer, got {max_iterations!r}")

        workflow_id = f"expo-{uuid.uuid4().hex[:12]}"
        state = new_state(workflow_id, validated, auto_approve, max_iterations)
        print(
            f"[EXPO] Workflow {workflow_id} created "
            f"({'auto-approve' if auto_approve else 'human review'}, max {max_iterations} iterations)",
            file=sys.stderr,
        )
        return WorkflowHandle(workflow_id), state

    def run(self, handle: WorkflowHandle, state: WorkflowState) -> WorkflowState:
        """Execute the graph until it finalizes or suspends for a human decision."""
        self._check_handle(handle, state)
        check_integrity(state)
        if state["waiting_for_human"]:
            raise ValidationError(
                f"Workflow {handle.workflow_id} is waiting for a human decision; use resume()."
            )
        if state["status"] in ("completed", "rejected"):
            raise ValidationError(f"Workflow {handle.workflow_id} is already {state['status']}.")
        return self._execute(state)

    def resume(self, handle: WorkflowHandle, state: WorkflowState, decision: str,
               feedback: str | None = None, explicit_target=None) -> WorkflowState:
        """Apply a human decision to a suspended state and continue the run.

        Raises ResumeConflictError if another resume for the same workflow is
        still in flight.
        """
        self._check_handle(handle, state)
        with self._guard.hold(handle.workflow_id):
            resumed = prepare_resume(state, decision, feedback, explicit_target)
            print(f"[EXPO] Resuming {handle.workflow_id} with decision '{decision}'", file=sys.stderr)
            return self._execute(resumed)

    # --- Execution ---

    def _check_handle(self, handle: WorkflowHandle, state: WorkflowState) -> None:
        if not isinstance(state, dict) or state.get("workflow_id") != handle.workflow_id:
            raise StateIntegrityError(
                f"State does not belong to workflow {handle.workflow_id}."
            )

    def _execute(self, state: WorkflowState) -> WorkflowState:
        state = {**state, "version": state.get("version", 0) + 1}
        # Each loop is at most six nodes; leave headroom for entry and finalize.
        limit = 8 * (state["max_iterations"] + 2) + 10

        last = state
        try:
            for snapshot in self.graph.stream(
                state, stream_mode="values", config={"recursion_limit": limit}
            ):
                last = snapshot
        except ProducerError as exc:
            if exc.state is None:
                exc.state = last
            print(f"[EXPO] Run aborted: {exc}", file=sys.stderr)
            raise
        return last

    def _producer_for(self, stage: str):
        if isinstance(self.producers, dict):
            try:
                return self.producers[stage]
            except KeyError:
                raise StateIntegrityError(f"No producer configured for stage '{stage}'.") from None
        return self.producers

    def _run_stage(self, stage: str, state: WorkflowState, announce: bool = True) -> dict:
        """Call one producer and return its artifact, wrapping failures in ProducerError.

        With announce=False the caller emits stage_completed itself.
        """
        missing = missing_dependencies(state["artifacts"], stage)
        if missing:
            raise StateIntegrityError(f"Cannot run '{stage}': missing dependencies {missing}.")

        producer = self._producer_for(stage)
        hint = state["revision_reason"] if state["needs_revision"] else None
        payload = {"workflow_id": state["workflow_id"], "stage": stage,
                   "iteration": state["iteration_count"]}
        safe_emit(self.notifier, STAGE_STARTED, payload)

        try:
            artifact = producer.produce(stage, state, hint)
            if not isinstance(artifact, dict):
                raise TypeError(f"producer returned {type(artifact).__name__}, expected dict")
        except Exception as exc:
            safe_emit(self.notifier, STAGE_FAILED, {**payload, "error": _error_text(exc)})
            raise ProducerError(stage, _error_text(exc)) from exc

        if announce:
            safe_emit(self.notifier, STAGE_COMPLETED, payload)
        return artifact

    # --- Nodes ---

    def _stage_node(self, stage: str):
        def node(state: WorkflowState) -> dict:
            artifact = self._run_stage(stage, state)
            return {
                "artifacts": {**state["artifacts"], stage: artifact},
                "current_step": STEP_LABELS[stage],
                "message_log": [STEP_LABELS[stage]],
            }
        node.__name__ = f"{stage}_node"
        return node

    def _parallel_designs(self, state: WorkflowState) -> dict:
        """Run visual and interactive side by side; both artifacts land together or not at all."""
        for stage in PARALLEL_GROUP:
            missing = missing_dependencies(state["artifacts"], stage)
            if missing:
                raise StateIntegrityError(f"Cannot run '{stage}': missing dependencies {missing}.")

        with ThreadPoolExecutor(max_workers=self.parallel_workers) as executor:
            futures = {
                stage: executor.submit(self._run_stage, stage, state, False)
                for stage in PARALLEL_GROUP
            }
        # Leaving the executor waits for every branch.

        failures = [(stage, future.exception()) for stage, future in futures.items()
                    if future.exception() is not None]
        if failures:
            for stage, exc in failures[1:]:
                print(f"[EXPO] Parallel branch '{stage}' also failed: {exc}", file=sys.stderr)
            stage, exc = failures[0]
            if not isinstance(exc, ProducerError):
                raise exc
            message = f"branch '{stage}': {_error_text(exc.__cause__ or exc)}"
            safe_emit(self.notifier, STAGE_FAILED, {
                "workflow_id": state["workflow_id"],
                "stage": PARALLEL_NODE,
                "iteration": state["iteration_count"],
                "error": message,
            })
            raise ProducerError(PARALLEL_NODE, message) from exc

        artifacts = dict(state["artifacts"])
        for stage, future in futures.items():
            artifacts[stage] = future.result()
            safe_emit(self.notifier, STAGE_COMPLETED, {
                "workflow_id": state["workflow_id"],
                "stage": stage,
                "iteration": state["iteration_count"],
            })
        return {
            "artifacts": artifacts,
            "current_step": "Parallel designs complete",
            "message_log": [STEP_LABELS[stage] for stage in PARALLEL_GROUP],
        }

    def _quality_review(self, state: WorkflowState) -> dict:
        try:
            raw = self.gate.evaluate(state)
            evaluation = normalize_evaluation(dict(raw), state)
        except Exception as exc:
            raise ProducerError(QUALITY_NODE, _error_text(exc)) from exc

        score = evaluation["overall_score"]
        target = evaluation["revision_target"]
        safe_emit(self.notifier, QUALITY_SCORED, {
            "workflow_id": state["workflow_id"],
            "overall_score": score,
            "revision_target": target,
            "iteration": state["iteration_count"],
        })

        update = {
            "quality_evaluation": evaluation,
            "needs_revision": False,
            "revision_reason": None,
            "human_decision": None,
            "human_feedback": None,
            "human_revision_target": None,
            "current_step": "Quality review complete",
            "message_log": [f"Quality review: overall {score * 100:.1f}, target '{target}'"],
        }
        if should_suspend(state, evaluation):
            pause = suspension_update(evaluation)
            update.update({**pause, "message_log": update["message_log"] + pause["message_log"]})
            safe_emit(self.notifier, WAITING_FOR_HUMAN, {
                "workflow_id": state["workflow_id"],
                "overall_score": score,
            })
        return update

    def _revision_control(self, state: WorkflowState) -> dict:
        decision = decide(state)
        if isinstance(decision, Finalize):
            return {
                "needs_revision": False,
                "revision_reason": None,
                "current_step": "Finalizing",
                "message_log": [decision.reason],
            }
        update = apply_cascade(state, decision.target, decision.reason)
        self._emit_iteration(state, update)
        return update

    def _human_decision(self, state: WorkflowState) -> dict:
        decision = state["human_decision"]

        if decision == "approve":
            return {
                "needs_revision": False,
                "revision_reason": None,
                "current_step": "Approved by reviewer",
                "message_log": ["Human reviewer approved the design"],
            }
        if decision == "reject":
            return {
                "needs_revision": False,
                "revision_reason": None,
                "current_step": "Rejected by reviewer",
                "message_log": ["Human reviewer rejected the design"],
            }
        if decision != "revise":
            raise ValidationError(f"Invalid decision {decision!r} on state.")

        if not can_revise(state):
            print(
                f"[EXPO] Revision refused: iteration {state['iteration_count']} has reached "
                f"max_iterations ({state['max_iterations']}); finalizing current design.",
                file=sys.stderr,
            )
            return {
                "needs_revision": False,
                "revision_reason": None,
                "current_step": "Finalizing",
                "message_log": [
                    f"Revision refused: reached max iterations ({state['max_iterations']}); "
                    "finalizing current design"
                ],
            }

        evaluation = state.get("quality_evaluation") or {}
        target = resolve_target(state.get("human_revision_target"), evaluation)
        reason = (
            state.get("human_feedback")
            or evaluation.get("feedback")
            or "Revision requested by reviewer"
        )
        update = apply_cascade(state, target, reason)
        # The decision is spent; a retried run re-enters at the cascade's node.
        update["human_decision"] = None
        self._emit_iteration(state, update)
        return update

    def _finalize(self, state: WorkflowState) -> dict:
        status = "rejected" if state.get("human_decision") == "reject" else "completed"
        try:
            report = render_report({**state, "status": status})
        except Exception as exc:
            raise ProducerError(FINALIZE_NODE, _error_text(exc)) from exc
        evaluation = state.get("quality_evaluation") or {}

        safe_emit(self.notifier, WORKFLOW_COMPLETED, {
            "workflow_id": state["workflow_id"],
            "status": status,
            "overall_score": evaluation.get("overall_score"),
            "iterations": state["iteration_count"],
        })
        return {
            "status": status,
            "final_report": report,
            "needs_revision": False,
            "revision_reason": None,
            "waiting_for_human": False,
            "current_step": "Workflow rejected" if status == "rejected" else "Workflow complete",
            "message_log": [f"Workflow finished with status '{status}'"],
        }

    def _emit_iteration(self, state: WorkflowState, update: dict) -> None:
        safe_emit(self.notifier, ITERATION_ADVANCED, {
            "workflow_id": state["workflow_id"],
            "iteration": update["iteration_count"],
            "target": update["last_revision_step"],
        })

    # --- Build the graph ---

    def _build_graph(self):
        workflow = StateGraph(WorkflowState)

        workflow.add_node(CONCEPT, self._stage_node(CONCEPT))
        workflow.add_node(SPATIAL, self._stage_node(SPATIAL))
        workflow.add_node(PARALLEL_NODE, self._parallel_designs)
        workflow.add_node(BUDGET, self._stage_node(BUDGET))
        workflow.add_node(QUALITY_NODE, self._quality_review)
        workflow.add_node(REVISION_NODE, self._revision_control)
        workflow.add_node(HUMAN_NODE, self._human_decision)
        workflow.add_node(FINALIZE_NODE, self._finalize)

        workflow.add_conditional_edges(
            START,
            _route_entry,
            {
                CONCEPT: CONCEPT,
                SPATIAL: SPATIAL,
                PARALLEL_NODE: PARALLEL_NODE,
                BUDGET: BUDGET,
                HUMAN_NODE: HUMAN_NODE,
            },
        )

        workflow.add_edge(CONCEPT, SPATIAL)
        workflow.add_edge(SPATIAL, PARALLEL_NODE)
        workflow.add_edge(PARALLEL_NODE, BUDGET)
        workflow.add_edge(BUDGET, QUALITY_NODE)

        workflow.add_conditional_edges(
            QUALITY_NODE,
            _route_after_quality,
            {"end": END, REVISION_NODE: REVISION_NODE},
        )
        workflow.add_conditional_edges(REVISION_NODE, _route_after_decision, _AFTER_DECISION)
        workflow.add_conditional_edges(HUMAN_NODE, _route_after_decision, _AFTER_DECISION)

        workflow.add_edge(FINALIZE_NODE, END)

        return workflow.compile()
