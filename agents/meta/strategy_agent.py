import json
from dataclasses import dataclass
from typing import Dict, List, Optional, Protocol

import structlog
from pydantic import ValidationError

from agents.shared.llm import chat_completion, response_text
from config.campaign_config import CampaignConfig
from core.models.audit import AuditResult, DataLevel, StrategyApproach
from core.models.content import SemanticAnalysis
from core.models.strategy import (
    AdSetStrategy,
    AdSetType,
    AudienceParameters,
    BusinessGoal,
    CampaignInput,
    CampaignObjective,
    ExpectedMetrics,
    MetricRange,
    OptimizationStep,
    StrategyResult,
    StrategyTimeline,
    SuccessMetrics,
)
from exceptions.custom_exceptions import AIProcessingException
from services.campaign.odax_objectives import map_to_odax
from utils.json_utils import strip_code_fences
from utils.prompt_loader import load_prompt

logger = structlog.get_logger(__name__)

GOAL_OBJECTIVES: Dict[BusinessGoal, CampaignObjective] = {
    BusinessGoal.PURCHASE: CampaignObjective.OUTCOME_SALES,
    BusinessGoal.LEAD: CampaignObjective.OUTCOME_LEADS,
    BusinessGoal.TRAFFIC: CampaignObjective.OUTCOME_TRAFFIC,
    BusinessGoal.AWARENESS: CampaignObjective.OUTCOME_AWARENESS,
    BusinessGoal.ENGAGEMENT: CampaignObjective.OUTCOME_ENGAGEMENT,
}

GOAL_SUCCESS_METRICS: Dict[BusinessGoal, str] = {
    BusinessGoal.PURCHASE: "ROAS",
    BusinessGoal.LEAD: "Cost per Lead",
    BusinessGoal.TRAFFIC: "Cost per Click",
    BusinessGoal.AWARENESS: "CPM",
    BusinessGoal.ENGAGEMENT: "Cost per Engagement",
}

FALLBACK_REASONING = "Fallback rule-based strategy due to AI generation failure"
FORCED_BROAD_REASONING = "Broad discovery strategy forced by campaign flags"


@dataclass
class StrategyContext:
    audit: AuditResult
    semantic: Optional[SemanticAnalysis]
    business_goal: BusinessGoal
    campaign_input: CampaignInput


class StrategyGenerator(Protocol):
    async def generate(self, context: StrategyContext) -> StrategyResult:
        ...


def objective_for_goal(goal: BusinessGoal) -> CampaignObjective:
    return GOAL_OBJECTIVES.get(goal, CampaignObjective.OUTCOME_TRAFFIC)


def cap_creative_counts(adsets: List[AdSetStrategy], cap: int) -> None:
    """Bring the summed creative_count down to ``cap``, in place.

    Every ad set keeps one creative; what is left of the cap is handed out
    round-robin from the first ad set.
    """
    if not adsets:
        return
    if sum(adset.creative_count for adset in adsets) <= cap:
        return

    for adset in adsets:
        adset.creative_count = 1
    for i in range(max(cap - len(adsets), 0)):
        adsets[i % len(adsets)].creative_count += 1


def _unique_names(adsets: List[AdSetStrategy]) -> None:
    seen: Dict[str, int] = {}
    for adset in adsets:
        key = adset.name.strip().lower()
        if key in seen:
            seen[key] += 1
            adset.name = f"{adset.name} ({seen[key]})"
        else:
            seen[key] = 1


def finalize_strategy(result: StrategyResult, campaign_input: CampaignInput) -> StrategyResult:
    """Post-processing shared by every generator."""
    max_adsets = min(campaign_input.flags.max_adsets, CampaignConfig.MAX_TOTAL_CREATIVES)
    if len(result.adset_strategies) > max_adsets:
        logger.warning(
            "strategy.adsets_truncated",
            planned=len(result.adset_strategies),
            kept=max_adsets,
        )
        result.adset_strategies = result.adset_strategies[:max_adsets]

    _unique_names(result.adset_strategies)

    planned = sum(adset.creative_count for adset in result.adset_strategies)
    cap_creative_counts(result.adset_strategies, CampaignConfig.MAX_TOTAL_CREATIVES)
    if planned > CampaignConfig.MAX_TOTAL_CREATIVES:
        logger.info(
            "strategy.creatives_capped",
            planned=planned,
            cap=CampaignConfig.MAX_TOTAL_CREATIVES,
        )

    result.budget_allocation = {
        adset.name: adset.budget_weight for adset in result.adset_strategies
    }
    if not result.campaign_name:
        result.campaign_name = campaign_input.campaign_name
    return result


class RuleBasedStrategyGenerator:
    """Static known-good plans keyed on the audit tier. Makes no external calls."""

    async def generate(self, context: StrategyContext) -> StrategyResult:
        return self.build(context)

    def build(self, context: StrategyContext) -> StrategyResult:
        name = context.campaign_input.campaign_name
        forced = context.campaign_input.flags.force_broad
        use_scaling = context.audit.data_level == DataLevel.RICH_DATA and not forced

        if use_scaling:
            approach = StrategyApproach.PERFORMANCE_SCALING
            adsets = [self._retargeting_adset(name), self._lookalike_adset(name)]
        else:
            approach = StrategyApproach.DISCOVERY_FIRST
            adsets = [self._broad_adset(name)]

        return StrategyResult(
            approach=approach,
            campaign_objective=objective_for_goal(context.business_goal),
            campaign_name=name,
            timeline=StrategyTimeline(
                phase_1_days=14 if approach == StrategyApproach.DISCOVERY_FIRST else 7,
                scaling_triggers=["CTR > 1.5%", "CPA < target"],
            ),
            adset_strategies=adsets,
            optimization_sequence=[
                OptimizationStep(day=1, action="Launch at 70% budget", trigger="Campaign start"),
                OptimizationStep(day=3, action="Analyze performance", trigger="Learning phase check"),
                OptimizationStep(day=7, action="Scale winners", trigger="Performance threshold met"),
            ],
            success_metrics=SuccessMetrics(
                primary=GOAL_SUCCESS_METRICS.get(context.business_goal, "CTR"),
                secondary=["CTR", "Frequency", "Relevance Score"],
                thresholds={"min_ctr": 1.0, "max_cpm": 50, "max_frequency": 3.0},
            ),
            risk_mitigation=list(context.audit.risks),
            ai_reasoning=FORCED_BROAD_REASONING if forced else FALLBACK_REASONING,
            is_fallback=True,
        )

    def _retargeting_adset(self, campaign_name: str) -> AdSetStrategy:
        return AdSetStrategy(
            name=f"{campaign_name} - Retargeting 30D",
            type=AdSetType.RETARGETING,
            rationale="High-intent audience with proven conversion data",
            audience_parameters=AudienceParameters(
                type="website_visitors", days=30, exclusions=["purchasers_30d"]
            ),
            budget_weight=0.4,
            optimization_goal="OFFSITE_CONVERSIONS",
            creative_count=3,
            expected_metrics=ExpectedMetrics(
                ctr_range=MetricRange(min=2.0, max=4.0),
                cpm_range=MetricRange(min=15, max=30),
                learning_phase_days=3,
            ),
        )

    def _lookalike_adset(self, campaign_name: str) -> AdSetStrategy:
        return AdSetStrategy(
            name=f"{campaign_name} - Lookalike 1%",
            type=AdSetType.LOOKALIKE,
            rationale="Precise lookalike based on conversion data",
            audience_parameters=AudienceParameters(
                type="lookalike", percentage=1, exclusions=["website_visitors_180d"]
            ),
            budget_weight=0.3,
            optimization_goal="OFFSITE_CONVERSIONS",
            creative_count=4,
            expected_metrics=ExpectedMetrics(
                ctr_range=MetricRange(min=1.5, max=3.0),
                cpm_range=MetricRange(min=20, max=40),
                learning_phase_days=5,
            ),
        )

    def _broad_adset(self, campaign_name: str) -> AdSetStrategy:
        return AdSetStrategy(
            name=f"{campaign_name} - Broad Discovery",
            type=AdSetType.BROAD,
            rationale="Build pixel data and find new audiences",
            audience_parameters=AudienceParameters(type="broad_discovery"),
            budget_weight=0.6,
            optimization_goal="LINK_CLICKS",
            creative_count=5,
            expected_metrics=ExpectedMetrics(
                ctr_range=MetricRange(min=0.8, max=1.5),
                cpm_range=MetricRange(min=25, max=45),
                learning_phase_days=7,
            ),
        )


class LLMStrategyGenerator:
    def __init__(self, model: Optional[str] = None, timeout: Optional[float] = None):
        self.model = model or CampaignConfig.STRATEGY_MODEL
        self.timeout = timeout or CampaignConfig.LLM_TIMEOUT_SECONDS

    async def generate(self, context: StrategyContext) -> StrategyResult:
        template = load_prompt("meta/strategy.txt")
        prompt = template.format(**self._prompt_fields(context))
        geos = ", ".join(context.campaign_input.desired_geos) or "Global"

        messages = [
            {
                "role": "system",
                "content": (
                    f"You are an elite Meta Ads strategist focused on {geos} growth marketing. "
                    "Use only valid ODAX objectives and never exceed "
                    f"{CampaignConfig.MAX_TOTAL_CREATIVES} creative variants across the campaign. "
                    "Respond only with valid JSON"
                ),
            },
            {"role": "user", "content": prompt},
        ]

        response = await chat_completion(
            messages,
            model=self.model,
            timeout=self.timeout,
            temperature=0.2,
            response_format={"type": "json_object"},
        )
        content = response_text(response)
        if not content:
            raise AIProcessingException("LLM returned empty strategy")

        return self._parse(content)

    def _parse(self, content: str) -> StrategyResult:
        try:
            data = json.loads(strip_code_fences(content))
        except json.JSONDecodeError as e:
            logger.error("Failed to decode strategy JSON", error=str(e))
            raise AIProcessingException("LLM strategy is not valid JSON")

        if not isinstance(data, dict):
            raise AIProcessingException("LLM strategy must be a JSON object")

        # Objectives outside the ODAX set are mapped rather than rejected
        objective = data.get("campaign_objective")
        if isinstance(objective, str):
            data["campaign_objective"] = map_to_odax(objective).value
        if isinstance(data.get("approach"), str):
            data["approach"] = data["approach"].strip().upper()
        for adset in data.get("adset_strategies") or []:
            if isinstance(adset, dict) and isinstance(adset.get("type"), str):
                adset["type"] = adset["type"].strip().lower()

        try:
            result = StrategyResult.model_validate(data)
        except ValidationError as e:
            logger.error("Failed to parse LLM strategy", error=str(e))
            raise AIProcessingException("LLM strategy output is not valid")

        if not result.adset_strategies:
            raise AIProcessingException("LLM strategy contains no ad sets")
        result.is_fallback = False
        return result

    def _prompt_fields(self, context: StrategyContext) -> Dict[str, str]:
        audit = context.audit
        summary = audit.account_summary.last_90_days
        campaign_input = context.campaign_input
        semantic = context.semantic

        if semantic:
            product_context = "\n".join(
                [
                    f"- Summary: {semantic.summary}",
                    f"- Category: {semantic.category}",
                    f"- Value proposition: {semantic.value_proposition}",
                    f"- Audience persona: {semantic.audience_persona}",
                    f"- Keywords: {', '.join(semantic.keywords[:15])}",
                    "- Target segments: "
                    + ", ".join(segment.segment for segment in semantic.target_segments),
                    "- Competitors: "
                    + ", ".join(c.name for c in semantic.competitor_analysis.main_competitors),
                ]
            )
        else:
            product_context = "- No product analysis available"

        return {
            "data_level": audit.data_level.value,
            "total_spend": f"{summary.total_spend:.2f}",
            "total_conversions": f"{summary.total_conversions:g}",
            "avg_cpa": f"{summary.avg_cpa:.2f}",
            "avg_roas": f"{summary.avg_roas:.2f}",
            "pixel_health": audit.pixel_health.value,
            "custom_audiences": str(audit.account_summary.audience_sizes.custom_audiences),
            "risks": ", ".join(audit.risks) or "None",
            "product_context": product_context,
            "business_goal": context.business_goal.value,
            "campaign_name": campaign_input.campaign_name,
            "total_budget": f"{campaign_input.budget_total:.2f}",
            "max_adsets": str(campaign_input.flags.max_adsets),
            "asset_count": str(len(campaign_input.creative_assets)),
            "geos": ", ".join(campaign_input.desired_geos) or "Global",
            "constraints": campaign_input.constraints.model_dump_json(exclude_none=True),
            "max_creatives": str(CampaignConfig.MAX_TOTAL_CREATIVES),
        }


class StrategyEngine:
    """LLM strategy with a rule-based plan behind it.

    Generation failures of any kind are answered by the rule-based generator,
    so ``strategize`` always returns a usable plan.
    """

    def __init__(
        self,
        primary: Optional[StrategyGenerator] = None,
        fallback: Optional[RuleBasedStrategyGenerator] = None,
    ):
        self.primary = primary or LLMStrategyGenerator()
        self.fallback = fallback or RuleBasedStrategyGenerator()

    async def strategize(
        self,
        audit_result: AuditResult,
        semantic_result: Optional[SemanticAnalysis],
        business_goal: BusinessGoal,
        campaign_input: CampaignInput,
    ) -> StrategyResult:
        context = StrategyContext(
            audit=audit_result,
            semantic=semantic_result,
            business_goal=business_goal,
            campaign_input=campaign_input,
        )

        if campaign_input.flags.force_broad:
            logger.info("strategy.force_broad")
            result = await self.fallback.generate(context)
        else:
            try:
                result = await self.primary.generate(context)
                logger.info(
                    "strategy.generated",
                    approach=result.approach.value,
                    adsets=len(result.adset_strategies),
                )
            except Exception as e:
                logger.warning(
                    "strategy.fallback_used",
                    error=str(e) or type(e).__name__,
                    data_level=audit_result.data_level.value,
                )
                result = await self.fallback.generate(context)

        return finalize_strategy(result, campaign_input)


# Module-level singleton - reused across all requests
strategy_engine = StrategyEngine()
