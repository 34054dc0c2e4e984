"""Prompt templates and canned fallback analyses, one per analysis kind."""

import json
from typing import Any, Dict, List, NamedTuple, Optional

TRAFFIC = "traffic"
RESOURCE = "resource"
ENVIRONMENT = "environment"
POPULATION = "population"

ANALYSIS_KINDS = (TRAFFIC, RESOURCE, ENVIRONMENT, POPULATION)
DEFAULT_KIND = TRAFFIC

# Simulation scenario names accepted as analysis kinds
KIND_ALIASES = {
    "growth": POPULATION,
    "environmental": ENVIRONMENT,
    "density": POPULATION,
}


class PromptSpec(NamedTuple):
    role: str
    subject: str
    purpose: str
    recommendation_focus: str
    insight_focus: str


PROMPT_SPECS: Dict[str, PromptSpec] = {
    TRAFFIC: PromptSpec(
        role="an urban traffic analysis AI assistant",
        subject="traffic",
        purpose="traffic management",
        recommendation_focus="traffic optimization",
        insight_focus="the current traffic situation",
    ),
    RESOURCE: PromptSpec(
        role="an urban resource management AI assistant",
        subject="resource",
        purpose="resource allocation and optimization",
        recommendation_focus="resource optimization",
        insight_focus="the current resource utilization",
    ),
    ENVIRONMENT: PromptSpec(
        role="an environmental analysis AI assistant",
        subject="environmental",
        purpose="environmental management",
        recommendation_focus="environmental improvement",
        insight_focus="the current environmental conditions",
    ),
    POPULATION: PromptSpec(
        role="an urban population analysis AI assistant",
        subject="population",
        purpose="urban planning",
        recommendation_focus="urban planning based on population trends",
        insight_focus="the current population distribution",
    ),
}

PROMPT_TEMPLATE = """You are {role}. Based on the following {subject} data, provide insights, recommendations, and forecasts for {purpose}.

Data:
{data}

Please provide:
1. 3-5 specific recommendations for {recommendation_focus}
2. A concise insight summarizing {insight_focus}
3. A short forecast of future {subject} trends

Format your response as JSON with the following structure:
{{
  "recommendations": ["recommendation 1", "recommendation 2", ...],
  "insights": "Your concise insights here",
  "forecast": "Your {subject} forecast here"
}}"""


FALLBACK_ANALYSES: Dict[str, Dict[str, Any]] = {
    TRAFFIC: {
        "recommendations": [
            "Implement adaptive traffic signal control at major intersections",
            "Create dedicated bus lanes on high-congestion corridors",
            "Encourage staggered work hours to distribute peak traffic",
            "Deploy smart parking solutions to reduce searching time",
            "Expand real-time traffic information systems",
        ],
        "insights": (
            "Current traffic patterns show significant congestion during morning and evening "
            "rush hours, with downtown areas experiencing the highest volumes."
        ),
        "forecast": (
            "Traffic volumes are expected to increase by 12% in the next year, with particular "
            "growth in the northern corridors."
        ),
    },
    RESOURCE: {
        "recommendations": [
            "Implement smart metering for electricity consumption monitoring",
            "Increase water recycling capacity in industrial zones",
            "Optimize waste collection routes based on fill-level monitoring",
            "Expand renewable energy generation capacity",
            "Implement predictive maintenance for utility infrastructure",
        ],
        "insights": (
            "Resource utilization shows seasonal patterns with peak electricity demand during "
            "summer months and water conservation issues during dry periods."
        ),
        "forecast": (
            "Resource demands are projected to grow by 15% annually, with renewable energy "
            "adoption offsetting 20% of increased electricity needs."
        ),
    },
    ENVIRONMENT: {
        "recommendations": [
            "Expand green infrastructure including urban forests and parks",
            "Implement stricter emission controls for industrial facilities",
            "Develop comprehensive stormwater management systems",
            "Increase electric vehicle charging infrastructure",
            "Implement building energy efficiency standards",
        ],
        "insights": (
            "Air quality indices show moderate improvement year-over-year, though water quality "
            "concerns persist in certain districts."
        ),
        "forecast": (
            "Environmental conditions are expected to stabilize with current interventions, but "
            "additional measures will be needed to meet 2030 sustainability goals."
        ),
    },
    POPULATION: {
        "recommendations": [
            "Develop affordable housing in areas with high job growth",
            "Improve transit connectivity between residential and commercial zones",
            "Expand healthcare facilities in underserved neighborhoods",
            "Create mixed-use development zones to reduce commute needs",
            "Implement age-friendly infrastructure in areas with aging populations",
        ],
        "insights": (
            "Population growth is concentrated in urban centers and peripheral planned "
            "developments, with demographic shifts toward younger residents in revitalized "
            "districts."
        ),
        "forecast": (
            "Population is projected to increase by 5% annually, with higher density development "
            "in transit-oriented corridors."
        ),
    },
}


def resolve_kind(kind: Optional[str], default: str = DEFAULT_KIND) -> str:
    """
    Map a requested kind (or scenario name) to a supported analysis kind.

    Unknown or empty kinds resolve to the default.
    """
    if not kind:
        return default
    normalized = kind.strip().lower()
    normalized = KIND_ALIASES.get(normalized, normalized)
    return normalized if normalized in ANALYSIS_KINDS else default


def build_prompt(kind: str, payload: Any) -> str:
    spec = PROMPT_SPECS[resolve_kind(kind)]
    data = json.dumps(payload, indent=2, default=str)
    return PROMPT_TEMPLATE.format(data=data, **spec._asdict())


def fallback_fields(kind: str) -> Dict[str, Any]:
    """Fresh copy of the canned analysis for a kind."""
    canned = FALLBACK_ANALYSES[resolve_kind(kind)]
    recommendations: List[str] = list(canned["recommendations"])
    return {**canned, "recommendations": recommendations}
