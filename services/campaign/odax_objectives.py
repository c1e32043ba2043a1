"""Legacy to outcome-driven (ODAX) objective mapping.

New campaigns must use ODAX objectives; LLM output and older callers still
speak legacy names, so everything passes through ``map_to_odax``.
"""

from typing import Dict, List, NamedTuple

import structlog

from core.models.strategy import CampaignObjective

logger = structlog.get_logger(__name__)


class ObjectiveMapping(NamedTuple):
    odax: CampaignObjective
    description: str
    optimization_goals: List[str]


ODAX_MAPPINGS: Dict[str, ObjectiveMapping] = {
    "CONVERSIONS": ObjectiveMapping(
        CampaignObjective.OUTCOME_SALES,
        "Drive sales and conversions on your website or app",
        ["OFFSITE_CONVERSIONS", "CONVERSIONS"],
    ),
    "LINK_CLICKS": ObjectiveMapping(
        CampaignObjective.OUTCOME_TRAFFIC,
        "Drive quality traffic to your website",
        ["LINK_CLICKS", "LANDING_PAGE_VIEWS"],
    ),
    "LEAD_GENERATION": ObjectiveMapping(
        CampaignObjective.OUTCOME_LEADS,
        "Collect leads through forms or instant experiences",
        ["LEAD_GENERATION", "QUALITY_LEAD"],
    ),
    "REACH": ObjectiveMapping(
        CampaignObjective.OUTCOME_AWARENESS,
        "Maximize reach and brand awareness",
        ["REACH", "IMPRESSIONS"],
    ),
    "POST_ENGAGEMENT": ObjectiveMapping(
        CampaignObjective.OUTCOME_ENGAGEMENT,
        "Increase engagement with your content",
        ["POST_ENGAGEMENT", "LINK_CLICKS"],
    ),
    "APP_INSTALLS": ObjectiveMapping(
        CampaignObjective.OUTCOME_APP_PROMOTION,
        "Drive app installs and engagement",
        ["APP_INSTALLS", "APP_EVENTS"],
    ),
    "BRAND_AWARENESS": ObjectiveMapping(
        CampaignObjective.OUTCOME_AWARENESS,
        "Build awareness for your brand",
        ["REACH", "AD_RECALL_LIFT"],
    ),
}


def map_to_odax(objective: str) -> CampaignObjective:
    """Return the ODAX objective for a legacy or ODAX name; unknown names map to traffic."""
    cleaned = (objective or "").strip().upper()
    try:
        return CampaignObjective(cleaned)
    except ValueError:
        pass

    mapping = ODAX_MAPPINGS.get(cleaned)
    if mapping:
        return mapping.odax

    logger.warning("odax_mapping_missing", objective=objective, default="OUTCOME_TRAFFIC")
    return CampaignObjective.OUTCOME_TRAFFIC


def get_optimization_goals(objective: str) -> List[str]:
    cleaned = (objective or "").strip().upper()
    goals: List[str] = []
    for legacy, mapping in ODAX_MAPPINGS.items():
        if mapping.odax.value == cleaned or legacy == cleaned:
            goals.extend(goal for goal in mapping.optimization_goals if goal not in goals)
    return goals or ["LINK_CLICKS"]


def is_compatible_goal(objective: str, optimization_goal: str) -> bool:
    return optimization_goal in get_optimization_goals(objective)
