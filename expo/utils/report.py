"""Renders a finished workflow state as a Markdown design report."""

import re
from pathlib import Path

from expo.config import get_config, project_path
from expo.state import BUDGET, CONCEPT, INTERACTIVE, SPATIAL, STAGES, VISUAL, WorkflowState
from expo.utils.costs import normalize_cost


def _slug(text: str) -> str:
    slug = re.sub(r"[^\w]+", "-", text.lower(), flags=re.UNICODE).strip("-")
    return slug or "report"


def _bullets(lines: list[str], items: list) -> None:
    for item in items:
        lines.append(f"- {item}")
    lines.append("")


def _render_concept(lines: list[str], concept: dict) -> None:
    lines.append(f"**Core concept:** {concept.get('concept', '')}")
    lines.append("")
    lines.append(f"**Narrative:** {concept.get('narrative', '')}")
    lines.append("")
    if concept.get("key_exhibits"):
        lines.append("**Key exhibits:**")
        lines.append("")
        _bullets(lines, concept["key_exhibits"])
    if concept.get("visitor_flow"):
        lines.append(f"**Visitor flow:** {concept['visitor_flow']}")
        lines.append("")


def _render_spatial(lines: list[str], spatial: dict) -> None:
    lines.append(spatial.get("layout", ""))
    lines.append("")
    route = spatial.get("visitor_route") or []
    if route:
        lines.append(f"**Route:** {' → '.join(route)}")
        lines.append("")
    zones = spatial.get("zones") or []
    if zones:
        lines.append("| Zone | Area (m²) | Function |")
        lines.append("|------|-----------|----------|")
        for zone in zones:
            lines.append(f"| {zone.get('name', '')} | {normalize_cost(zone.get('area')):g} | {zone.get('function', '')} |")
        lines.append("")
    if spatial.get("accessibility"):
        lines.append(f"**Accessibility:** {spatial['accessibility']}")
        lines.append("")


def _render_visual(lines: list[str], visual: dict) -> None:
    if visual.get("color_scheme"):
        lines.append(f"**Colour scheme:** {', '.join(visual['color_scheme'])}")
        lines.append("")
    if visual.get("typography"):
        lines.append(f"**Typography:** {visual['typography']}")
        lines.append("")
    if visual.get("brand_elements"):
        lines.append(f"**Brand elements:** {', '.join(visual['brand_elements'])}")
        lines.append("")
    lines.append(f"**Style:** {visual.get('visual_style', '')}")
    lines.append("")


def _render_interactive(lines: list[str], interactive: dict, currency: str) -> None:
    if interactive.get("technologies"):
        lines.append(f"**Technologies:** {', '.join(interactive['technologies'])}")
        lines.append("")
    items = interactive.get("interactives") or []
    if items:
        lines.append("| Installation | Type | Cost | Description |")
        lines.append("|--------------|------|------|-------------|")
        for item in items:
            desc = str(item.get("description", "")).replace("|", "\\|")
            lines.append(
                f"| {item.get('name', '')} | {item.get('type', '')} | "
                f"{normalize_cost(item.get('cost')):,.0f} {currency} | {desc} |"
            )
        lines.append("")
    if interactive.get("technical_requirements"):
        lines.append(f"**Technical requirements:** {interactive['technical_requirements']}")
        lines.append("")


def _render_budget(lines: list[str], budget: dict, available: float, currency: str) -> None:
    breakdown = budget.get("breakdown") or []
    if breakdown:
        lines.append("| Category | Amount | Notes |")
        lines.append("|----------|--------|-------|")
        for line in breakdown:
            lines.append(
                f"| {line.get('category', '')} | {normalize_cost(line.get('amount')):,.0f} {currency} | "
                f"{line.get('description', '')} |"
            )
        lines.append("")
    total = normalize_cost(budget.get("total_cost"))
    lines.append(f"**Total:** {total:,.0f} {currency} of {available:,.0f} {currency} available")
    lines.append("")
    if budget.get("recommendations"):
        lines.append("**Recommendations:**")
        lines.append("")
        _bullets(lines, budget["recommendations"])


_SECTIONS = (
    (CONCEPT, "1. Concept"),
    (SPATIAL, "2. Spatial Design"),
    (VISUAL, "3. Visual Design"),
    (INTERACTIVE, "4. Interactive Technology"),
    (BUDGET, "5. Budget Estimate"),
)


def render_report(state: WorkflowState) -> str:
    """Convert a workflow state into a Markdown report."""
    req = state["requirements"]
    artifacts = state["artifacts"]
    currency = req["budget"]["currency"]
    lines = [f"# {req['title']} — Exhibition Design Report", ""]

    lines.append("## Project Overview")
    lines.append("")
    lines.append(f"- **Theme:** {req['theme']}")
    lines.append(f"- **Target audience:** {req['target_audience']}")
    duration = req.get("duration") or {}
    if duration.get("start_date") or duration.get("end_date"):
        lines.append(f"- **Dates:** {duration.get('start_date', '')} to {duration.get('end_date', '')}")
    lines.append(f"- **Venue:** {req['venue_space']['area']:g} m², {req['venue_space']['height']:g} m high")
    lines.append(f"- **Budget:** {req['budget']['total']:,.0f} {currency}")
    lines.append("")

    lines.append("## Design")
    lines.append("")
    for stage, heading in _SECTIONS:
        lines.append(f"### {heading}")
        lines.append("")
        artifact = artifacts.get(stage)
        if artifact is None:
            lines.append("*Not completed.*")
            lines.append("")
        elif stage == CONCEPT:
            _render_concept(lines, artifact)
        elif stage == SPATIAL:
            _render_spatial(lines, artifact)
        elif stage == VISUAL:
            _render_visual(lines, artifact)
        elif stage == INTERACTIVE:
            _render_interactive(lines, artifact, currency)
        else:
            _render_budget(lines, artifact, req["budget"]["total"], currency)

    evaluation = state.get("quality_evaluation")
    if evaluation:
        lines.append("## Quality Review")
        lines.append("")
        lines.append(f"**Overall score:** {evaluation['overall_score']:.2f}")
        lines.append("")
        lines.append("| Dimension | Score |")
        lines.append("|-----------|-------|")
        for stage in STAGES:
            lines.append(f"| {stage} | {evaluation['scores'].get(stage, 0):.2f} |")
        lines.append("")
        if evaluation.get("feedback"):
            lines.append(evaluation["feedback"])
            lines.append("")

    history = state.get("feedback_history") or []
    if history:
        lines.append("## Revision History")
        lines.append("")
        _bullets(lines, history)

    completed = sum(1 for stage in STAGES if artifacts.get(stage) is not None)
    lines.append("## Status")
    lines.append("")
    lines.append(f"- **Outcome:** {state.get('status', 'in_progress')}")
    lines.append(f"- **Iterations:** {state['iteration_count']} of {state['max_iterations']}")
    lines.append(f"- **Completion:** {completed * 100 // len(STAGES)}% ({completed}/{len(STAGES)} stages)")
    if state.get("human_decision"):
        lines.append(f"- **Human decision:** {state['human_decision']}")
    if state.get("human_feedback"):
        lines.append(f"- **Reviewer notes:** {state['human_feedback']}")
    lines.append("")

    return "\n".join(lines)


def write_report(state: WorkflowState) -> Path:
    """Write the final report as Markdown next to the configured output path.

    The filename is derived from the exhibition title; existing files are not
    overwritten. Returns the Path to the written file.
    """
    config = get_config()
    base_path = project_path(config["output_path"])
    output_dir = base_path.parent
    output_dir.mkdir(parents=True, exist_ok=True)

    stem = _slug(state["requirements"].get("title", "")) or base_path.stem
    output_path = output_dir / f"{stem}.md"
    counter = 1
    while output_path.exists():
        counter += 1
        output_path = output_dir / f"{stem} ({counter}).md"

    content = state.get("final_report") or render_report(state)
    output_path.write_text(content, encoding="utf-8")
    return output_path
