"""Design producers — one LLM-backed producer per stage.

Each call renders the stage's prompt from the injected PromptRegistry,
invokes a Gemini chat model once, parses the JSON reply and normalizes it
into the stage's artifact shape:

  concept:     concept, narrative, key_exhibits[], visitor_flow
  spatial:     layout, visitor_route[], zones[{name, area, function}], accessibility
  visual:      color_scheme[], typography, brand_elements[], visual_style
  interactive: technologies[], interactives[{name, description, type, cost}], technical_requirements
  budget:      breakdown[{category, amount, description}], total_cost, recommendations[]

Producers are idempotent: a re-run replaces the stage's artifact.
"""

import json
from typing import Protocol

from langchain_google_genai import ChatGoogleGenerativeAI

from expo.config import get_config
from expo.prompts import PromptRegistry
from expo.state import BUDGET, CONCEPT, INTERACTIVE, SPATIAL, STAGES, VISUAL, WorkflowState
from expo.utils.costs import normalize_cost
from expo.utils.parsing import parse_json_object


class Producer(Protocol):
    def produce(self, stage: str, state: WorkflowState, hint: str | None = None) -> dict: ...


# Required top-level fields per stage; list-valued fields default to [].
REQUIRED_FIELDS = {
    CONCEPT: {"concept", "narrative"},
    SPATIAL: {"layout", "zones"},
    VISUAL: {"color_scheme", "visual_style"},
    INTERACTIVE: {"technologies", "interactives"},
    BUDGET: {"breakdown", "total_cost"},
}

_TEXT_DEFAULTS = {
    CONCEPT: ("concept", "narrative", "visitor_flow"),
    SPATIAL: ("layout", "accessibility"),
    VISUAL: ("typography", "visual_style"),
    INTERACTIVE: ("technical_requirements",),
    BUDGET: (),
}

_LIST_DEFAULTS = {
    CONCEPT: ("key_exhibits",),
    SPATIAL: ("visitor_route", "zones"),
    VISUAL: ("color_scheme", "brand_elements"),
    INTERACTIVE: ("technologies", "interactives"),
    BUDGET: ("breakdown", "recommendations"),
}

_MODEL_KEYS = {
    CONCEPT: "concept_model",
    SPATIAL: "design_model",
    VISUAL: "design_model",
    INTERACTIVE: "design_model",
    BUDGET: "budget_model",
}


def _validate_artifact(stage: str, data: dict) -> dict:
    """Validate and normalize a producer reply into the stage's artifact shape."""
    missing = REQUIRED_FIELDS[stage] - set(data)
    if missing:
        raise ValueError(f"{stage} response missing required fields: {sorted(missing)}")

    for field in _TEXT_DEFAULTS[stage]:
        data[field] = str(data.get(field) or "")
    for field in _LIST_DEFAULTS[stage]:
        value = data.get(field)
        if value is None:
            data[field] = []
        elif not isinstance(value, list):
            raise ValueError(f"{stage} field '{field}' must be a list.")

    if stage == SPATIAL:
        for i, zone in enumerate(data["zones"]):
            if not isinstance(zone, dict) or "name" not in zone:
                raise ValueError(f"Zone {i} must be an object with a name.")
            zone["area"] = normalize_cost(zone.get("area"))
            zone.setdefault("function", "")
    elif stage == INTERACTIVE:
        for i, item in enumerate(data["interactives"]):
            if not isinstance(item, dict) or "name" not in item:
                raise ValueError(f"Interactive {i} must be an object with a name.")
            item.setdefault("description", "")
            item.setdefault("type", "")
            item["cost"] = normalize_cost(item.get("cost"))
    elif stage == BUDGET:
        for i, line in enumerate(data["breakdown"]):
            if not isinstance(line, dict) or "category" not in line:
                raise ValueError(f"Budget line {i} must be an object with a category.")
            line["amount"] = normalize_cost(line.get("amount"))
            line.setdefault("description", "")
        data["total_cost"] = normalize_cost(data["total_cost"])

    return data


def _dump(artifact) -> str:
    return json.dumps(artifact, indent=2, ensure_ascii=False) if artifact else "(not available)"


def prompt_variables(state: WorkflowState, hint: str | None = None) -> dict:
    """Flatten requirements, upstream artifacts and the revision hint into template variables."""
    req = state["requirements"]
    artifacts = state["artifacts"]
    variables = {
        "title": req["title"],
        "theme": req["theme"],
        "target_audience": req["target_audience"],
        "venue_area": req["venue_space"]["area"],
        "venue_height": req["venue_space"]["height"],
        "venue_layout": req["venue_space"].get("layout", ""),
        "budget_total": req["budget"]["total"],
        "currency": req["budget"]["currency"],
        "start_date": req.get("duration", {}).get("start_date", ""),
        "end_date": req.get("duration", {}).get("end_date", ""),
        "special_requirements": ", ".join(req.get("special_requirements") or []) or "none",
        "revision_section": "",
    }
    for stage in STAGES:
        variables[stage] = _dump(artifacts.get(stage))

    if hint:
        variables["revision_section"] = (
            "\n## Revision Feedback\n"
            "The previous version was sent back for revision. Address this feedback:\n"
            f"{hint}\n"
        )
    return variables


class LLMProducer:
    """Produces any stage's artifact with a Gemini chat model."""

    def __init__(self, registry: PromptRegistry, temperature: float = 0.7):
        self.registry = registry
        self.temperature = temperature

    def produce(self, stage: str, state: WorkflowState, hint: str | None = None) -> dict:
        if stage not in REQUIRED_FIELDS:
            raise ValueError(f"Unknown stage '{stage}'.")

        key = f"{stage}.generate"
        prompt = self.registry.render(key, prompt_variables(state, hint))
        if prompt is None:
            raise LookupError(f"No prompt template registered for '{key}'.")

        config = get_config()
        llm = ChatGoogleGenerativeAI(model=config[_MODEL_KEYS[stage]], temperature=self.temperature)

        response = llm.invoke(prompt.as_messages())
        data = parse_json_object(response.content)
        return _validate_artifact(stage, data)
