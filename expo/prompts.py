"""Prompt registry — versioned prompt templates for the producers and the supervisor.

One registry object is built at startup and handed to every producer; there
is no module-level instance. Lookups return None when a key or version is
not registered, so callers decide what absence means.

Templates use str.format placeholders; literal braces are doubled.
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class PromptTemplate:
    key: str  # "<agent>.<task>", e.g. "concept.generate"
    version: str  # dotted numeric version, e.g. "1.0.0"
    system: str
    user: str
    description: str = ""


@dataclass(frozen=True)
class RenderedPrompt:
    key: str
    version: str
    system: str
    user: str

    def as_messages(self) -> list[dict]:
        return [
            {"role": "system", "content": self.system},
            {"role": "user", "content": self.user},
        ]


def _version_key(version: str) -> tuple[int, ...]:
    return tuple(int(part) for part in version.split("."))


class PromptRegistry:
    """In-memory store of prompt templates keyed by name and version."""

    def __init__(self):
        self._templates: dict[str, dict[str, PromptTemplate]] = {}

    def register(self, template: PromptTemplate) -> None:
        """Add a template. Re-registering the same key and version replaces it."""
        _version_key(template.version)  # reject malformed versions early
        self._templates.setdefault(template.key, {})[template.version] = template

    def get(self, key: str, version: str | None = None) -> PromptTemplate | None:
        """Return the requested version, or the latest one when version is None."""
        versions = self._templates.get(key)
        if not versions:
            return None
        if version is not None:
            return versions.get(version)
        latest = max(versions, key=_version_key)
        return versions[latest]

    def render(self, key: str, variables: dict, version: str | None = None) -> RenderedPrompt | None:
        """Fill a template with `variables`. Returns None if the template is not registered."""
        template = self.get(key, version)
        if template is None:
            return None
        return RenderedPrompt(
            key=template.key,
            version=template.version,
            system=template.system.format(**variables),
            user=template.user.format(**variables),
        )

    def keys(self) -> list[str]:
        return sorted(self._templates)


_JSON_ONLY = "Respond ONLY with the JSON object. No markdown fences, no commentary."

_PROJECT_BRIEF = """\
## Exhibition
- Title: {title}
- Theme: {theme}
- Target audience: {target_audience}
- Venue: {venue_area} m², ceiling height {venue_height} m. {venue_layout}
- Budget: {budget_total} {currency}
- Dates: {start_date} to {end_date}
- Special requirements: {special_requirements}
"""

_REVISION_SECTION = "{revision_section}"

DEFAULT_TEMPLATES = (
    PromptTemplate(
        key="concept.generate",
        version="1.0.0",
        description="Curator: core concept and narrative",
        system=f"""\
You are a senior exhibition curator. Produce the concept plan for the exhibition.

You MUST respond with valid JSON matching this exact schema:
{{{{
  "concept": "string — core concept in at most 150 words",
  "narrative": "string — the narrative structure of the exhibition",
  "key_exhibits": ["string — 5 to 8 key exhibits"],
  "visitor_flow": "string — the visitor flow idea"
}}}}

{_JSON_ONLY}
""",
        user=_PROJECT_BRIEF + _REVISION_SECTION,
    ),
    PromptTemplate(
        key="spatial.generate",
        version="1.0.0",
        description="Spatial designer: zones and visitor route",
        system=f"""\
You are an exhibition spatial designer. Turn the concept plan into a spatial layout.

You MUST respond with valid JSON matching this exact schema:
{{{{
  "layout": "string — overall layout description",
  "visitor_route": ["string — ordered route steps"],
  "zones": [{{{{"name": "string", "area": "number (m²)", "function": "string"}}}}],
  "accessibility": "string — accessibility provisions"
}}}}

Zone areas must add up to no more than the venue area.
{_JSON_ONLY}
""",
        user=_PROJECT_BRIEF + "\n## Concept Plan\n```json\n{concept}\n```\n" + _REVISION_SECTION,
    ),
    PromptTemplate(
        key="visual.generate",
        version="1.0.0",
        description="Visual designer: colour, type and brand",
        system=f"""\
You are an exhibition visual designer. Define the visual identity for the exhibition.

You MUST respond with valid JSON matching this exact schema:
{{{{
  "color_scheme": ["string — colour with its role"],
  "typography": "string",
  "brand_elements": ["string"],
  "visual_style": "string"
}}}}

{_JSON_ONLY}
""",
        user=_PROJECT_BRIEF + "\n## Concept Plan\n```json\n{concept}\n```\n" + _REVISION_SECTION,
    ),
    PromptTemplate(
        key="interactive.generate",
        version="1.0.0",
        description="Interactive technologist: installations and technology",
        system=f"""\
You are an interactive exhibition technologist. Plan the interactive installations.

You MUST respond with valid JSON matching this exact schema:
{{{{
  "technologies": ["string"],
  "interactives": [
    {{{{"name": "string", "description": "string", "type": "string (AR/VR/touchscreen/projection/sensor/...)", "cost": "number in {{currency}}"}}}}
  ],
  "technical_requirements": "string"
}}}}

{_JSON_ONLY}
""",
        user=_PROJECT_BRIEF + "\n## Concept Plan\n```json\n{concept}\n```\n" + _REVISION_SECTION,
    ),
    PromptTemplate(
        key="budget.generate",
        version="1.0.0",
        description="Budget controller: cost breakdown",
        system=f"""\
You are an exhibition budget controller. Estimate the full cost of the design below.

You MUST respond with valid JSON matching this exact schema:
{{{{
  "breakdown": [{{{{"category": "string", "amount": "number in {{currency}}", "description": "string"}}}}],
  "total_cost": "number in {{currency}}",
  "recommendations": ["string — cost optimisation advice"]
}}}}

Keep the total within the stated budget where possible and say so when it is not.
{_JSON_ONLY}
""",
        user=_PROJECT_BRIEF
        + "\n## Concept Plan\n```json\n{concept}\n```\n"
        + "\n## Spatial Layout\n```json\n{spatial}\n```\n"
        + "\n## Visual Design\n```json\n{visual}\n```\n"
        + "\n## Interactive Plan\n```json\n{interactive}\n```\n"
        + _REVISION_SECTION,
    ),
    PromptTemplate(
        key="supervisor.evaluate",
        version="1.0.0",
        description="Supervisor: quality evaluation of the full design",
        system=f"""\
You are the quality reviewer of an exhibition design team. Score the current design.

Dimensions (each scored 0 to 1):
1. concept: creativity, fit with the theme, narrative logic
2. spatial: layout soundness, visitor flow, functional completeness
3. visual: aesthetic value, brand consistency, feasibility
4. interactive: technical feasibility, user experience, innovation
5. budget: cost control, value for money, risk

You MUST respond with valid JSON matching this exact schema:
{{{{
  "scores": {{{{"concept": 0.9, "spatial": 0.8, "visual": 0.85, "interactive": 0.8, "budget": 0.85}}}},
  "overall_score": 0.84,
  "feedback": "string — overall assessment and what to improve",
  "revision_target": "none | concept | spatial | parallel_designs | visual | interactive | budget"
}}}}

Scale: 0.9-1.0 excellent; 0.75-0.9 good; 0.6-0.75 acceptable with light revision; below 0.6 \
unacceptable. If the overall score is below 0.6 the revision target must not be "none". When \
several parts are weak, target the one with the lowest score.
{_JSON_ONLY}
""",
        user=_PROJECT_BRIEF
        + "\n## Iteration\n{iteration} of at most {max_iterations}\n"
        + "\n## Current Design\n```json\n{design}\n```\n"
        + "{history_section}",
    ),
)


def build_default_registry() -> PromptRegistry:
    """Return a fresh registry holding the built-in templates."""
    registry = PromptRegistry()
    for template in DEFAULT_TEMPLATES:
        registry.register(template)
    return registry
