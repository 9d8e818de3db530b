"""LLM-backed quality evaluator for the finished design.

Required output schema:
{
  "scores": {"concept": 0-1, "spatial": 0-1, "visual": 0-1, "interactive": 0-1, "budget": 0-1},
  "overall_score": 0-1,
  "feedback": "string",
  "revision_target": "none | concept | spatial | parallel_designs | visual | interactive | budget"
}

The reply is only checked for shape here. The orchestrator passes every
evaluation through expo.quality.normalize_evaluation, so the gate policy
holds even when the model ignores it.
"""

import json

from langchain_anthropic import ChatAnthropic

from expo.agents.designers import prompt_variables
from expo.config import get_config
from expo.prompts import PromptRegistry
from expo.state import STAGES, WorkflowState
from expo.utils.parsing import parse_json_object

PROMPT_KEY = "supervisor.evaluate"


def _validate_response(data: dict) -> None:
    """Check the evaluator reply has the fields the gate needs."""
    if "scores" not in data or not isinstance(data["scores"], dict):
        raise ValueError("Evaluation response missing 'scores' object.")
    missing = [stage for stage in STAGES if stage not in data["scores"]]
    if missing:
        raise ValueError(f"Evaluation response missing scores for: {missing}")
    if "feedback" not in data:
        raise ValueError("Evaluation response missing 'feedback' field.")


def _history_section(state: WorkflowState) -> str:
    history = state.get("feedback_history") or []
    if not history:
        return ""
    lines = "\n".join(f"- {entry}" for entry in history)
    return f"\n## Earlier Feedback\n{lines}\n"


class SupervisorEvaluator:
    """Quality gate that asks a Claude model to score the current artifacts."""

    def __init__(self, registry: PromptRegistry):
        self.registry = registry

    def evaluate(self, state: WorkflowState) -> dict:
        variables = prompt_variables(state)
        variables.update({
            "iteration": state["iteration_count"] + 1,
            "max_iterations": state["max_iterations"],
            "design": json.dumps(state["artifacts"], indent=2, ensure_ascii=False),
            "history_section": _history_section(state),
        })
        prompt = self.registry.render(PROMPT_KEY, variables)
        if prompt is None:
            raise LookupError(f"No prompt template registered for '{PROMPT_KEY}'.")

        config = get_config()
        llm = ChatAnthropic(model=config["supervisor_model"], temperature=0)

        response = llm.invoke(prompt.as_messages())
        data = parse_json_object(response.content)
        _validate_response(data)
        return data
