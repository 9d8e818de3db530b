"""Entry point: starts, resumes and inspects workflows kept in the state directory."""

import argparse
import json
import sys
from pathlib import Path

from expo.config import get_config, project_path
from expo.errors import ExpoError, ProducerError
from expo.graph import Orchestrator, WorkflowHandle
from expo.state import WorkflowState, is_terminal
from expo.store import FileWorkflowStore
from expo.utils.report import write_report


def _store() -> FileWorkflowStore:
    return FileWorkflowStore(project_path(get_config()["state_dir"]))


def _load(store: FileWorkflowStore, workflow_id: str) -> WorkflowState:
    state = store.get(workflow_id)
    if state is None:
        raise ExpoError(f"No stored workflow with id {workflow_id!r}.")
    return state


def _report(state: WorkflowState) -> None:
    """Print the run summary and write the report once the workflow is finished."""
    evaluation = state.get("quality_evaluation") or {}
    print(f"[EXPO] Workflow: {state['workflow_id']}")
    print(f"[EXPO] Status: {state['status']}")
    print(f"[EXPO] Iterations: {state['iteration_count']}/{state['max_iterations']}")
    if evaluation:
        print(f"[EXPO] Quality: {evaluation['overall_score']:.2f} (target '{evaluation['revision_target']}')")

    if state["status"] == "waiting_for_human":
        print(
            f"[EXPO] Waiting for review. Continue with: "
            f"expo resume {state['workflow_id']} --decision approve|revise|reject"
        )
    elif is_terminal(state):
        output_path = write_report(state)
        print(f"[EXPO] Output written to: {output_path}")


def _execute(store: FileWorkflowStore, call, *args, **kwargs) -> WorkflowState:
    """Run an orchestrator call and persist whatever state it ends with."""
    try:
        state = call(*args, **kwargs)
    except ProducerError as exc:
        if exc.state is not None:
            store.put(exc.state["workflow_id"], exc.state)
            print(
                f"[EXPO] Saved last good state; retry with: expo run {exc.state['workflow_id']}",
                file=sys.stderr,
            )
        raise
    store.put(state["workflow_id"], state)
    return state


def start(requirements_path: Path, hitl: bool | None = None,
          max_iterations: int | None = None) -> WorkflowState:
    """Create a workflow from a requirements JSON file and run it."""
    requirements = json.loads(Path(requirements_path).read_text(encoding="utf-8"))
    store = _store()
    orchestrator = Orchestrator()

    auto_approve = None if hitl is None else not hitl
    handle, state = orchestrator.start(requirements, auto_approve, max_iterations)
    store.put(handle.workflow_id, state)

    state = _execute(store, orchestrator.run, handle, state)
    _report(state)
    return state


def run(workflow_id: str) -> WorkflowState:
    """Continue a stored workflow that is neither waiting nor finished."""
    store = _store()
    state = _load(store, workflow_id)
    state = _execute(store, Orchestrator().run, WorkflowHandle(workflow_id), state)
    _report(state)
    return state


def resume(workflow_id: str, decision: str, feedback: str | None = None,
           target: str | None = None) -> WorkflowState:
    """Apply a human decision to a stored, suspended workflow."""
    store = _store()
    state = _load(store, workflow_id)
    state = _execute(
        store, Orchestrator().resume, WorkflowHandle(workflow_id), state, decision, feedback, target
    )
    _report(state)
    return state


def status(workflow_id: str) -> WorkflowState:
    """Print a stored workflow's progress without running anything."""
    state = _load(_store(), workflow_id)
    print(f"[EXPO] Workflow: {workflow_id}")
    print(f"[EXPO] Status: {state['status']}")
    print(f"[EXPO] Step: {state['current_step']}")
    print(f"[EXPO] Iterations: {state['iteration_count']}/{state['max_iterations']}")
    for line in state["message_log"]:
        print(f"  - {line}")
    return state


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="expo", description="Exhibition design workflow orchestrator")
    commands = parser.add_subparsers(dest="command", required=True)

    start_cmd = commands.add_parser("start", help="Start a workflow from a requirements JSON file")
    start_cmd.add_argument("requirements", type=Path, help="Path to the requirements JSON file")
    mode = start_cmd.add_mutually_exclusive_group()
    mode.add_argument("--hitl", dest="hitl", action="store_true", default=None,
                      help="Pause for a human decision after quality review")
    mode.add_argument("--no-hitl", dest="hitl", action="store_false", default=None,
                      help="Let the quality gate decide on its own")
    start_cmd.add_argument("--max-iterations", type=int, default=None)

    run_cmd = commands.add_parser("run", help="Continue a stored workflow after a failure")
    run_cmd.add_argument("workflow_id")

    resume_cmd = commands.add_parser("resume", help="Apply a human decision to a waiting workflow")
    resume_cmd.add_argument("workflow_id")
    resume_cmd.add_argument("--decision", required=True, choices=["approve", "revise", "reject"])
    resume_cmd.add_argument("--feedback", default=None)
    resume_cmd.add_argument("--target", default=None,
                            help="Stage to revise: concept, spatial, parallel_designs, visual, interactive, budget")

    status_cmd = commands.add_parser("status", help="Show a stored workflow's progress")
    status_cmd.add_argument("workflow_id")

    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    """CLI entry point."""
    args = parse_args(argv)
    try:
        if args.command == "start":
            start(args.requirements, hitl=args.hitl, max_iterations=args.max_iterations)
        elif args.command == "run":
            run(args.workflow_id)
        elif args.command == "resume":
            resume(args.workflow_id, args.decision, args.feedback, args.target)
        else:
            status(args.workflow_id)
    except (ExpoError, OSError, json.JSONDecodeError) as exc:
        print(f"[EXPO] Error: {exc}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
