"""Assembles pipeline output into Meta Marketing API payloads.

Pure transformation: nothing here talks to Meta. The result is consumed by an
execution layer that creates objects in ``api_execution_order`` and swaps the
``{{...}}`` tokens for the IDs Meta returns.
"""

import re
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, List, Mapping, Optional, Union
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

import structlog
from pydantic import ValidationError

from core.models.audience import AudienceResult, MetaTargeting, ValidationStatus
from core.models.audit import PixelHealth
from core.models.budget import BudgetAllocation
from core.models.creative import CreativeVariant, TrackingParameters
from core.models.orchestration import (
    APIPayload,
    CampaignOrchestrationResult,
    CampaignStructure,
    ChecklistItem,
    ChecklistStatus,
    ExecutionStep,
    RiskFlag,
    RollbackStep,
    Severity,
    SupportHook,
)
from core.models.placement import PlacementResult
from exceptions.custom_exceptions import CampaignStructureException
from services.campaign.odax_objectives import is_compatible_goal
from services.campaign.placeholder_resolver import (
    APP_STORE_URL,
    APPLICATION_ID,
    CAMPAIGN_ID,
    INSTAGRAM_ACTOR_ID,
    PAGE_ID,
    PIXEL_ID,
    adset_token,
    build_resolution_map,
    creative_token,
    resolve_payload,
)

logger = structlog.get_logger(__name__)

DEFAULT_CAMPAIGN_NAME = "Generated Campaign"
LOW_DAILY_BUDGET = 20
MIN_DELIVERABLE_REACH = 1000
MIN_CREATIVE_VARIANTS = 3

BILLING_EVENTS: Dict[str, str] = {
    "LINK_CLICKS": "LINK_CLICKS",
    "LANDING_PAGE_VIEWS": "IMPRESSIONS",
    "OFFSITE_CONVERSIONS": "IMPRESSIONS",
    "CONVERSIONS": "IMPRESSIONS",
    "LEAD_GENERATION": "IMPRESSIONS",
    "APP_INSTALLS": "IMPRESSIONS",
    "POST_ENGAGEMENT": "IMPRESSIONS",
    "PAGE_LIKES": "IMPRESSIONS",
    "EVENT_RESPONSES": "IMPRESSIONS",
    "REACH": "IMPRESSIONS",
    "IMPRESSIONS": "IMPRESSIONS",
    "THRUPLAY": "IMPRESSIONS",
    "VIDEO_VIEWS": "IMPRESSIONS",
}

DESTINATION_TYPES: Dict[str, str] = {
    "LINK_CLICKS": "WEBSITE",
    "LANDING_PAGE_VIEWS": "WEBSITE",
    "OFFSITE_CONVERSIONS": "WEBSITE",
    "CONVERSIONS": "WEBSITE",
    "APP_INSTALLS": "APP",
    "APP_ENGAGEMENT": "APP",
    "LEAD_GENERATION": "ON_AD",
    "MESSAGES": "MESSENGER",
    "POST_ENGAGEMENT": "FACEBOOK",
    "PAGE_LIKES": "FACEBOOK",
    "OUTCOME_TRAFFIC": "WEBSITE",
    "OUTCOME_SALES": "WEBSITE",
    "OUTCOME_LEADS": "WEBSITE",
    "OUTCOME_APP_PROMOTION": "APP",
}

CUSTOM_EVENT_TYPES: Dict[str, str] = {
    "OFFSITE_CONVERSIONS": "PURCHASE",
    "CONVERSIONS": "PURCHASE",
    "OUTCOME_SALES": "PURCHASE",
    "OUTCOME_LEADS": "LEAD",
    "LEAD_GENERATION": "COMPLETE_REGISTRATION",
    "LANDING_PAGE_VIEWS": "PAGE_VIEW",
    "LINK_CLICKS": "PAGE_VIEW",
    "OUTCOME_TRAFFIC": "PAGE_VIEW",
}

PIXEL_GOALS = {
    "OFFSITE_CONVERSIONS",
    "CONVERSIONS",
    "LINK_CLICKS",
    "LANDING_PAGE_VIEWS",
    "OUTCOME_TRAFFIC",
    "OUTCOME_SALES",
    "OUTCOME_LEADS",
}
APP_GOALS = {"APP_INSTALLS", "OUTCOME_APP_PROMOTION"}

# Internal bid strategy names -> Graph API values
META_BID_STRATEGIES: Dict[str, str] = {
    "TARGET_COST": "COST_CAP",
    "TARGET_ROAS": "LOWEST_COST_WITH_MIN_ROAS",
}
ROAS_FLOOR_SCALE = 10000

ATTRIBUTION_SPEC = [
    {"event_type": "CLICK_THROUGH", "window_days": 7},
    {"event_type": "VIEW_THROUGH", "window_days": 1},
]

SPECIAL_AD_CATEGORY_KEYWORDS: Dict[str, List[str]] = {
    "HOUSING": ["house", "housing", "apartment", "rent", "real estate", "property"],
    "EMPLOYMENT": ["job", "jobs", "hiring", "employment", "career", "recruit", "recruiting"],
    "CREDIT": ["loan", "loans", "credit", "mortgage", "financing", "lending"],
    "ISSUES_ELECTIONS_POLITICS": ["vote", "election", "political", "candidate", "ballot"],
}
_SPECIAL_AD_PATTERNS = {
    category: re.compile(r"\b(?:" + "|".join(re.escape(k) for k in keywords) + r")\b")
    for category, keywords in SPECIAL_AD_CATEGORY_KEYWORDS.items()
}

PLATFORM_POSITION_FIELDS = (
    ("facebook", "facebook_positions"),
    ("instagram", "instagram_positions"),
    ("audience_network", "audience_network_positions"),
    ("messenger", "messenger_positions"),
)


def to_minor_units(amount: Union[float, Decimal, int]) -> int:
    """Decimal currency -> integer minor units, half-up. Applied once per field."""
    return int((Decimal(str(amount)) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def normalize_account_id(account_id: str) -> str:
    cleaned = (account_id or "").strip()
    if cleaned.startswith("act_"):
        cleaned = cleaned[len("act_"):]
    if not cleaned:
        raise CampaignStructureException("Ad account id is required")
    return cleaned


def add_tracking_to_url(url: str, tracking: TrackingParameters) -> str:
    params = {key: value for key, value in tracking.model_dump().items() if value}
    if not params:
        return url
    parts = urlsplit(url)
    query = dict(parse_qsl(parts.query, keep_blank_values=True))
    query.update(params)
    return urlunsplit(parts._replace(query=urlencode(query)))


def detect_special_ad_categories(structure: CampaignStructure) -> List[str]:
    texts = [structure.strategy.campaign_name]
    for creative in structure.creatives:
        for variant in creative.creative_variants:
            link_data = variant.payload.object_story_spec.link_data
            texts.extend([link_data.message, link_data.name])
    haystack = " ".join(texts).lower()
    return [category for category, pattern in _SPECIAL_AD_PATTERNS.items() if pattern.search(haystack)]


def clean_targeting(targeting: MetaTargeting) -> Dict[str, Any]:
    cleaned = {
        key: value
        for key, value in targeting.model_dump().items()
        if not (isinstance(value, list) and not value)
    }
    cleaned.setdefault("age_min", 18)
    cleaned.setdefault("age_max", 65)
    return cleaned


def build_promoted_object(optimization_goal: str) -> Dict[str, str]:
    promoted = {"page_id": PAGE_ID}
    if optimization_goal in PIXEL_GOALS:
        promoted["pixel_id"] = PIXEL_ID
        promoted["custom_event_type"] = CUSTOM_EVENT_TYPES.get(optimization_goal, "OTHER")
    if optimization_goal in APP_GOALS:
        promoted["application_id"] = APPLICATION_ID
        promoted["object_store_url"] = APP_STORE_URL
    return promoted


def _load_structure(campaign_structure: Union[CampaignStructure, Mapping[str, Any]]) -> CampaignStructure:
    if isinstance(campaign_structure, CampaignStructure):
        structure = campaign_structure
    else:
        try:
            structure = CampaignStructure.model_validate(campaign_structure)
        except ValidationError as e:
            first = e.errors()[0]
            location = ".".join(str(part) for part in first["loc"])
            raise CampaignStructureException(
                f"Invalid campaign structure at '{location}': {first['msg']}"
            ) from e

    if not structure.strategy.adset_strategies:
        raise CampaignStructureException("Campaign structure has no ad set strategies")
    if not structure.audiences:
        raise CampaignStructureException("Campaign structure has no audiences")

    budgeted = {budget.adset_id for budget in structure.budgets}
    missing = [
        a.adset_id
        for a in structure.audiences
        if a.validation_status != ValidationStatus.ERROR and a.adset_id not in budgeted
    ]
    if missing:
        raise CampaignStructureException(
            f"No budget allocation for ad sets: {', '.join(missing)}"
        )
    return structure


class CampaignOrchestrator:
    def orchestrate(
        self,
        campaign_structure: Union[CampaignStructure, Mapping[str, Any]],
        account_id: str,
        page_id: Optional[str] = None,
        pixel_id: Optional[str] = None,
    ) -> CampaignOrchestrationResult:
        structure = _load_structure(campaign_structure)
        account = normalize_account_id(account_id)

        budgets = {budget.adset_id: budget for budget in structure.budgets}
        placements = {placement.adset_id: placement for placement in structure.placements}
        creatives = {creative.adset_id: creative for creative in structure.creatives}

        usable = [a for a in structure.audiences if a.validation_status != ValidationStatus.ERROR]
        skipped = [a for a in structure.audiences if a.validation_status == ValidationStatus.ERROR]
        if not usable:
            raise CampaignStructureException(
                "Every audience failed validation; no ad sets can be assembled"
            )

        adset_payloads: List[APIPayload] = []
        creative_payloads: List[APIPayload] = []
        ad_payloads: List[APIPayload] = []
        creative_index = 0
        for adset_index, audience in enumerate(usable):
            adset_payloads.append(
                self._adset_payload(
                    account, audience, budgets[audience.adset_id], placements.get(audience.adset_id)
                )
            )
            strategy = creatives.get(audience.adset_id)
            for variant in strategy.creative_variants if strategy else []:
                creative_payloads.append(self._creative_payload(account, variant))
                ad_payloads.append(
                    self._ad_payload(account, variant, adset_index, creative_index)
                )
                creative_index += 1

        used_budgets = [budgets[a.adset_id] for a in usable]
        categories = detect_special_ad_categories(structure)
        result = CampaignOrchestrationResult(
            campaign_payload=self._campaign_payload(structure, account, categories),
            adset_payloads=adset_payloads,
            creative_payloads=creative_payloads,
            ad_payloads=ad_payloads,
            api_execution_order=execution_order(),
            validation_checklist=validation_checklist(),
            risk_flags=identify_risk_flags(structure, usable, skipped, used_budgets, categories),
            support_hooks=support_hooks(),
            rollback_plan=rollback_plan(),
        )

        resolution = build_resolution_map(page_id=page_id, pixel_id=pixel_id)
        if resolution:
            result.campaign_payload = resolve_payload(result.campaign_payload, resolution)
            result.adset_payloads = [resolve_payload(p, resolution) for p in result.adset_payloads]
            result.creative_payloads = [resolve_payload(p, resolution) for p in result.creative_payloads]
            result.ad_payloads = [resolve_payload(p, resolution) for p in result.ad_payloads]

        logger.info(
            "campaign_orchestrated",
            account_id=account,
            adsets=len(adset_payloads),
            creatives=len(creative_payloads),
            ads=len(ad_payloads),
            skipped_adsets=len(skipped),
            risk_flags=len(result.risk_flags),
        )
        return result

    def _campaign_payload(
        self, structure: CampaignStructure, account: str, categories: List[str]
    ) -> APIPayload:
        strategy = structure.strategy
        payload: Dict[str, Any] = {
            "name": strategy.campaign_name or DEFAULT_CAMPAIGN_NAME,
            "objective": strategy.campaign_objective.value,
            "status": "PAUSED",
            "buying_type": "AUCTION",
            "special_ad_categories": categories,
        }
        # Lifetime cap follows the first budget in the plan
        if structure.budgets and structure.budgets[0].total_budget > 0:
            payload["spend_cap"] = to_minor_units(structure.budgets[0].total_budget)

        return APIPayload(
            endpoint=f"/act_{account}/campaigns",
            method="POST",
            payload=payload,
            dependencies=[],
            validation_rules=[
                "Campaign name must be unique",
                "Objective must match ad set optimization goals",
                "Account must have sufficient permissions",
            ],
        )

    def _adset_payload(
        self,
        account: str,
        audience: AudienceResult,
        budget: BudgetAllocation,
        placement: Optional[PlacementResult],
    ) -> APIPayload:
        bidding = budget.bidding_strategy
        goal = bidding.optimization_goal
        promoted_object = build_promoted_object(goal)

        payload: Dict[str, Any] = {
            "name": audience.name,
            "campaign_id": CAMPAIGN_ID,
            "targeting": clean_targeting(audience.targeting),
            "daily_budget": to_minor_units(budget.budget_strategy.daily_budget),
            "billing_event": BILLING_EVENTS.get(goal, "IMPRESSIONS"),
            "optimization_goal": goal,
            "bid_strategy": META_BID_STRATEGIES.get(bidding.bid_strategy, bidding.bid_strategy),
            "status": "PAUSED",
            "destination_type": DESTINATION_TYPES.get(goal, "WEBSITE"),
            "promoted_object": promoted_object,
            "attribution_spec": [dict(spec) for spec in ATTRIBUTION_SPEC],
        }

        if bidding.bid_amount:
            payload["bid_amount"] = to_minor_units(bidding.bid_amount)
        elif bidding.target_cost:
            payload["bid_amount"] = to_minor_units(bidding.target_cost)
        if bidding.target_roas:
            payload["bid_constraints"] = {
                "roas_average_floor": int(round(bidding.target_roas * ROAS_FLOOR_SCALE))
            }

        # Placements are top-level ad set fields; Meta ignores them inside targeting
        if placement and placement.placements.total():
            platforms = []
            for platform, field in PLATFORM_POSITION_FIELDS:
                positions = getattr(placement.placements, field)
                if positions:
                    platforms.append(platform)
                    payload[field] = list(positions)
            payload["publisher_platforms"] = platforms

        dependencies = [CAMPAIGN_ID, PAGE_ID]
        for token in (PIXEL_ID, APPLICATION_ID, APP_STORE_URL):
            if token in promoted_object.values():
                dependencies.append(token)

        return APIPayload(
            endpoint=f"/act_{account}/adsets",
            method="POST",
            payload=payload,
            dependencies=dependencies,
            validation_rules=[
                "Targeting must have valid audience size",
                "Budget must meet minimum requirements",
                "Optimization goal must be compatible with objective",
            ],
        )

    def _creative_payload(self, account: str, variant: CreativeVariant) -> APIPayload:
        link_data = variant.payload.object_story_spec.link_data.model_dump(exclude_none=True)
        tracked_link = add_tracking_to_url(link_data["link"], variant.tracking_parameters)
        link_data["link"] = tracked_link
        cta_value = link_data.get("call_to_action", {}).get("value", {})
        if not cta_value.get("link"):
            cta_value["link"] = tracked_link

        payload: Dict[str, Any] = {
            "name": variant.name,
            "object_story_spec": {"page_id": PAGE_ID, "link_data": link_data},
            "degrees_of_freedom_spec": {
                "creative_features_spec": {
                    "standard_enhancements": {"enroll_status": "OPT_IN"}
                }
            },
        }
        dependencies = [PAGE_ID]
        if variant.payload.instagram_actor_id:
            payload["instagram_actor_id"] = INSTAGRAM_ACTOR_ID
            dependencies.append(INSTAGRAM_ACTOR_ID)

        return APIPayload(
            endpoint=f"/act_{account}/adcreatives",
            method="POST",
            payload=payload,
            dependencies=dependencies,
            validation_rules=[
                "Creative must comply with Meta policies",
                "Media assets must be uploaded and approved",
                "Landing page must be accessible",
            ],
        )

    def _ad_payload(
        self, account: str, variant: CreativeVariant, adset_index: int, creative_index: int
    ) -> APIPayload:
        adset_id = adset_token(adset_index)
        creative_id = creative_token(creative_index)
        return APIPayload(
            endpoint=f"/act_{account}/ads",
            method="POST",
            payload={
                "name": f"Ad {creative_index + 1} - {variant.name}",
                "adset_id": adset_id,
                "creative": {"creative_id": creative_id},
                "status": "PAUSED",
                "tracking_specs": [
                    {"action.type": ["offsite_conversion"], "fb_pixel": [PIXEL_ID]}
                ],
            },
            dependencies=[adset_id, creative_id, PIXEL_ID],
            validation_rules=[
                "AdSet must be created successfully",
                "Creative must be approved",
                "Pixel must be installed on landing page",
            ],
        )


def identify_risk_flags(
    structure: CampaignStructure,
    usable: List[AudienceResult],
    skipped: List[AudienceResult],
    budgets: List[BudgetAllocation],
    categories: List[str],
) -> List[RiskFlag]:
    risks: List[RiskFlag] = []

    if skipped:
        risks.append(RiskFlag(
            severity=Severity.HIGH,
            message="Ad sets skipped due to audience validation errors: "
            + ", ".join(a.name for a in skipped),
            mitigation="Fix the audience parameters and regenerate the skipped ad sets",
        ))
    if any(b.budget_strategy.daily_budget < LOW_DAILY_BUDGET for b in budgets):
        risks.append(RiskFlag(
            severity=Severity.HIGH,
            message="Daily budget below $20 may prevent learning phase completion",
            mitigation="Increase budget or consolidate ad sets",
        ))
    if any(a.estimated_reach.max < MIN_DELIVERABLE_REACH for a in usable):
        risks.append(RiskFlag(
            severity=Severity.HIGH,
            message="Audience size too small for effective delivery",
            mitigation="Broaden targeting or use lookalike audiences",
        ))
    if structure.audit is None or structure.audit.pixel_health == PixelHealth.NONE:
        risks.append(RiskFlag(
            severity=Severity.MEDIUM,
            message="No pixel data available for optimization",
            mitigation="Install pixel and run traffic campaigns first",
        ))
    if any(a.has_unvalidated_interests for a in usable):
        risks.append(RiskFlag(
            severity=Severity.MEDIUM,
            message="Some interests are not mapped to Meta interest IDs",
            mitigation="Re-run interest validation with a live access token before launch",
        ))
    if categories:
        risks.append(RiskFlag(
            severity=Severity.MEDIUM,
            message=f"Special ad categories detected: {', '.join(categories)}",
            mitigation="Review targeting restrictions that apply to special ad categories",
        ))
    if any(len(c.creative_variants) < MIN_CREATIVE_VARIANTS for c in structure.creatives):
        risks.append(RiskFlag(
            severity=Severity.LOW,
            message="Limited creative variety may impact performance",
            mitigation="Add more creative variants for better testing",
        ))

    objective = structure.strategy.campaign_objective.value
    mismatched = sorted({
        b.bidding_strategy.optimization_goal
        for b in budgets
        if not is_compatible_goal(objective, b.bidding_strategy.optimization_goal)
    })
    if mismatched:
        risks.append(RiskFlag(
            severity=Severity.LOW,
            message=f"Optimization goals {', '.join(mismatched)} are unusual for {objective}",
            mitigation="Confirm the optimization goal matches the campaign objective",
        ))
    return risks


def execution_order() -> List[ExecutionStep]:
    return [
        ExecutionStep(
            step=1,
            description="Create Campaign",
            endpoint="POST /campaigns",
            success_criteria="Campaign ID returned, status = PAUSED",
            error_handling="Check account permissions and campaign name uniqueness",
        ),
        ExecutionStep(
            step=2,
            description="Create Ad Sets",
            endpoint="POST /adsets",
            success_criteria="All AdSet IDs returned, targeting validated",
            error_handling="Validate audience sizes and budget minimums via the learning diagnostics hook",
        ),
        ExecutionStep(
            step=3,
            description="Create Ad Creatives",
            endpoint="POST /adcreatives",
            success_criteria="All Creative IDs returned, no policy violations",
            error_handling="Send policy violations to the policy analyzer hook for resolution",
        ),
        ExecutionStep(
            step=4,
            description="Create Ads (Link AdSets to Creatives)",
            endpoint="POST /ads",
            success_criteria="All Ad IDs returned, status = PAUSED",
            error_handling="Verify AdSet and Creative IDs exist",
        ),
        ExecutionStep(
            step=5,
            description="Validate Campaign Structure",
            endpoint="GET /campaigns/{id}",
            success_criteria="Complete hierarchy visible, no errors",
            error_handling="Use the delivery optimizer hook to diagnose structural issues",
        ),
        ExecutionStep(
            step=6,
            description="Enable Campaign (Manual Step)",
            endpoint="POST /campaigns/{id}",
            success_criteria="Campaign status = ACTIVE, learning phase begins",
            error_handling="Monitor the learning diagnostics hook for learning limited issues",
        ),
    ]


def validation_checklist() -> List[ChecklistItem]:
    items = [
        ("Meta Pixel Installed", ChecklistStatus.REQUIRED,
         "Pixel must be firing on landing page for conversion tracking"),
        ("Conversions API Setup", ChecklistStatus.RECOMMENDED,
         "Server-side tracking for iOS14+ attribution"),
        ("Page Connected", ChecklistStatus.REQUIRED,
         "Facebook/Instagram page must be connected to ad account"),
        ("Payment Method Valid", ChecklistStatus.REQUIRED,
         "Active payment method with sufficient credit limit"),
        ("Domain Verification", ChecklistStatus.RECOMMENDED,
         "Verify domain ownership for better delivery"),
        ("Creative Assets Approved", ChecklistStatus.REQUIRED,
         "All images/videos must pass Meta policy review"),
        ("Landing Page Compliant", ChecklistStatus.REQUIRED,
         "Landing page must comply with Meta advertising policies"),
        ("Audience Overlap Check", ChecklistStatus.RECOMMENDED,
         "Minimize audience overlap between ad sets"),
    ]
    return [ChecklistItem(item=item, status=status, description=description)
            for item, status, description in items]


def support_hooks() -> List[SupportHook]:
    hooks = [
        ("Ad Rejected", "Analyze rejection reason and suggest fixes", "support/policy_analyzer"),
        ("Learning Limited", "Diagnose learning phase issues", "support/learning_diagnostics"),
        ("High CPM", "Analyze delivery issues and suggest optimizations", "support/delivery_optimizer"),
        ("Low CTR", "Suggest creative and targeting improvements", "support/performance_analyzer"),
        ("Audience Overlap Warning", "Provide audience consolidation recommendations",
         "support/audience_optimizer"),
    ]
    return [SupportHook(trigger=trigger, action=action, support_tool=tool)
            for trigger, action, tool in hooks]


def rollback_plan() -> List[RollbackStep]:
    return [
        RollbackStep(
            step="Pause Campaign",
            action="Set campaign status to PAUSED",
            conditions=["High spend with no conversions", "Policy violations detected"],
        ),
        RollbackStep(
            step="Pause Underperforming AdSets",
            action="Pause ad sets with CPA > 3x target",
            conditions=["CPA exceeds threshold for 24 hours", "Zero conversions after $100 spend"],
        ),
        RollbackStep(
            step="Archive Failed Creatives",
            action="Archive creatives with CTR < 0.5%",
            conditions=["CTR below threshold for 48 hours", "Creative rejected multiple times"],
        ),
        RollbackStep(
            step="Revert Budget Changes",
            action="Reset budgets to original allocation",
            conditions=["Performance degradation after scaling", "Learning phase reset"],
        ),
    ]


# Module-level singleton - reused across all requests
campaign_orchestrator = CampaignOrchestrator()


def orchestrate(
    campaign_structure: Union[CampaignStructure, Mapping[str, Any]],
    account_id: str,
    page_id: Optional[str] = None,
    pixel_id: Optional[str] = None,
) -> CampaignOrchestrationResult:
    return campaign_orchestrator.orchestrate(campaign_structure, account_id, page_id, pixel_id)
