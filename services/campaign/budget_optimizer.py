"""Per-ad-set daily budgets, bidding and learning-phase estimates.

All amounts stay in decimal currency units; conversion to minor units
happens only when the orchestrator assembles the Meta payloads.
"""

import math
from typing import Dict, List, Optional

import structlog

from core.models.audience import AudienceResult, ValidationStatus
from core.models.audit import StrategyApproach
from core.models.budget import (
    AdSetBudgetInput,
    BiddingStrategy,
    BudgetAllocation,
    BudgetStrategy,
    LearningPhase,
    PacingStrategy,
    ScalingTrigger,
)
from core.models.strategy import AdSetType, CampaignConstraints, StrategyResult

logger = structlog.get_logger(__name__)

MIN_DAILY_BUDGET = 10.0
SMALL_AUDIENCE_REACH = 100_000
SMALL_AUDIENCE_DAILY_CAP = 50.0
LARGE_AUDIENCE_REACH = 10_000_000
ACCELERATED_MAX_REACH = 50_000
BID_CAP_RATIO = 0.8
TARGET_ROAS_MIN = 2.0
OVER_ALLOCATION_TOLERANCE = 1.1

LEARNING_EVENTS: Dict[str, int] = {
    "LINK_CLICKS": 100,
    "OFFSITE_CONVERSIONS": 50,
    "LEAD_GENERATION": 50,
    "POST_ENGAGEMENT": 200,
}
DEFAULT_LEARNING_EVENTS = 50
ASSUMED_DAILY_IMPRESSIONS = 1000
LEARNING_DAYS_RANGE = (3, 14)

BID_CAP_STRATEGIES = {"LOWEST_COST_WITH_BID_CAP", "COST_CAP"}


def normalize_weights(adsets: List[AdSetBudgetInput]) -> List[float]:
    weights = [adset.strategy.budget_weight for adset in adsets]
    total = sum(weights)
    if total <= 0:
        return [1 / len(adsets)] * len(adsets) if adsets else []
    return [weight / total for weight in weights]


def budget_inputs(
    strategy: StrategyResult, audiences: List[AudienceResult]
) -> List[AdSetBudgetInput]:
    """Pair ad-set strategies with their constructed audiences by position.

    Audiences that failed validation are never launched and get no budget.
    """
    return [
        AdSetBudgetInput(
            adset_id=audience.adset_id,
            strategy=adset,
            audience_size_estimate=audience.estimated_reach,
        )
        for adset, audience in zip(strategy.adset_strategies, audiences)
        if audience.validation_status != ValidationStatus.ERROR
    ]


def _daily_budget(
    allocated: float,
    duration_days: int,
    adset: AdSetBudgetInput,
    constraints: CampaignConstraints,
) -> BudgetStrategy:
    budget = BudgetStrategy()
    daily = max(allocated / max(duration_days, 1), MIN_DAILY_BUDGET)

    if constraints.min_daily_budget and daily < constraints.min_daily_budget:
        daily = constraints.min_daily_budget
        budget.budget_rationale.append(
            f"Increased to minimum daily budget of ${constraints.min_daily_budget:g}"
        )
    elif constraints.max_daily_budget and daily > constraints.max_daily_budget:
        daily = constraints.max_daily_budget
        budget.budget_rationale.append(
            f"Capped at maximum daily budget of ${constraints.max_daily_budget:g}"
        )

    reach = adset.audience_size_estimate
    if reach.max < SMALL_AUDIENCE_REACH:
        daily = min(daily, SMALL_AUDIENCE_DAILY_CAP)
        budget.budget_rationale.append(
            "Conservative budget for small audience to prevent quick saturation"
        )
    elif reach.min > LARGE_AUDIENCE_REACH:
        budget.budget_rationale.append(
            "Higher budget allocation for large audience with scaling potential"
        )

    budget.daily_budget = round(daily, 2)
    return budget


def determine_bidding(
    adset: AdSetBudgetInput,
    approach: StrategyApproach,
    constraints: CampaignConstraints,
) -> BiddingStrategy:
    plan = adset.strategy
    bidding = BiddingStrategy(
        bid_strategy=plan.bid_strategy,
        optimization_goal=plan.optimization_goal,
    )

    if approach == StrategyApproach.PERFORMANCE_SCALING and plan.type == AdSetType.RETARGETING:
        if constraints.target_roas and constraints.target_roas > TARGET_ROAS_MIN:
            bidding.bid_strategy = "TARGET_ROAS"
        elif constraints.max_cpa:
            bidding.bid_strategy = "TARGET_COST"
    elif (
        approach == StrategyApproach.HYBRID
        and constraints.max_cpa
        and plan.type != AdSetType.BROAD
    ):
        bidding.bid_strategy = "LOWEST_COST_WITH_BID_CAP"

    if bidding.bid_strategy == "TARGET_ROAS" and constraints.target_roas:
        bidding.target_roas = constraints.target_roas
        bidding.rationale.append("Using ROAS bidding for high-intent retargeting audience")
        return bidding
    if bidding.bid_strategy == "TARGET_COST" and constraints.max_cpa:
        bidding.target_cost = constraints.max_cpa
        bidding.rationale.append("Using CPA bidding to control acquisition costs")
        return bidding
    if bidding.bid_strategy in BID_CAP_STRATEGIES and constraints.max_cpa:
        bidding.bid_amount = round(constraints.max_cpa * BID_CAP_RATIO, 2)
        bidding.rationale.append("Using bid cap to control costs during testing phase")
        return bidding

    if bidding.bid_strategy != "LOWEST_COST_WITHOUT_CAP":
        # Capped strategies cannot be submitted without an amount
        bidding.rationale.append(
            f"{bidding.bid_strategy} requested without a cost constraint - using lowest cost"
        )
        bidding.bid_strategy = "LOWEST_COST_WITHOUT_CAP"

    if approach == StrategyApproach.PERFORMANCE_SCALING:
        bidding.rationale.append("Using lowest cost for prospecting with rich data")
    elif approach == StrategyApproach.HYBRID:
        bidding.rationale.append("Using lowest cost for data collection")
    else:
        bidding.rationale.append("Using lowest cost to maximize data collection")
    return bidding


def estimate_learning_phase(adset: AdSetBudgetInput, optimization_goal: str) -> LearningPhase:
    events = LEARNING_EVENTS.get(optimization_goal, DEFAULT_LEARNING_EVENTS)
    ctr = adset.strategy.expected_metrics.ctr_range
    expected_ctr = (ctr.min + ctr.max) / 2

    low, high = LEARNING_DAYS_RANGE
    if expected_ctr <= 0:
        days = high
    else:
        days = math.ceil(events / (ASSUMED_DAILY_IMPRESSIONS * (expected_ctr / 100)))
    return LearningPhase(
        expected_duration_days=min(max(days, low), high),
        events_needed=events,
        budget_protection=True,
    )


def scaling_triggers(
    approach: StrategyApproach, constraints: CampaignConstraints
) -> List[ScalingTrigger]:
    if approach == StrategyApproach.PERFORMANCE_SCALING:
        return [
            ScalingTrigger(
                metric="CPA",
                threshold=constraints.max_cpa or 50,
                action="Scale budget by 20%",
                timeframe="3 consecutive days below threshold",
            ),
            ScalingTrigger(
                metric="ROAS",
                threshold=constraints.target_roas or 2.0,
                action="Scale budget by 30%",
                timeframe="2 consecutive days above threshold",
            ),
        ]
    return [
        ScalingTrigger(
            metric="CTR",
            threshold=1.5,
            action="Scale budget by 15%",
            timeframe="5 days above threshold",
        ),
        ScalingTrigger(
            metric="CPM",
            threshold=constraints.max_cpm or 40,
            action="Pause if exceeded for 3 days",
            timeframe="3 consecutive days above threshold",
        ),
    ]


def identify_risk_factors(adset: AdSetBudgetInput, allocation: BudgetAllocation) -> List[str]:
    risks = []
    daily = allocation.budget_strategy.daily_budget
    reach = adset.audience_size_estimate

    if daily < 20:
        risks.append("Daily budget may be too low for effective learning phase")
    if reach.max < 10_000:
        risks.append("Very small audience - high risk of quick saturation")
    if reach.min > 50_000_000 and daily < 100:
        risks.append("Large audience with small budget - may struggle to exit learning phase")
    if adset.strategy.expected_metrics.cpm_range.min > 40:
        risks.append("High expected CPM - monitor cost efficiency closely")
    return risks


def _rebalance(allocations: List[BudgetAllocation], total_budget: float, duration_days: int) -> None:
    planned = sum(a.budget_strategy.daily_budget for a in allocations) * duration_days
    if planned <= total_budget * OVER_ALLOCATION_TOLERANCE:
        return

    scale = total_budget / planned
    for allocation in allocations:
        strategy = allocation.budget_strategy
        strategy.daily_budget = round(strategy.daily_budget * scale, 2)
        strategy.budget_rationale.append("Budget adjusted to fit total allocation constraint")
    logger.info("budgets_rebalanced", planned=round(planned, 2), total_budget=total_budget)


def optimize_budgets(
    strategy: StrategyResult,
    adsets: List[AdSetBudgetInput],
    total_budget: float,
    duration_days: int,
    constraints: Optional[CampaignConstraints] = None,
) -> List[BudgetAllocation]:
    constraints = constraints or CampaignConstraints()
    allocations = []

    for adset, weight in zip(adsets, normalize_weights(adsets)):
        allocated = round(total_budget * weight, 2)
        bidding = determine_bidding(adset, strategy.approach, constraints)
        allocation = BudgetAllocation(
            adset_id=adset.adset_id,
            name=adset.name,
            total_budget=allocated,
            allocated_budget=allocated,
            budget_strategy=_daily_budget(allocated, duration_days, adset, constraints),
            bidding_strategy=bidding,
            pacing_strategy=PacingStrategy(
                delivery_type=(
                    "ACCELERATED"
                    if adset.strategy.type == AdSetType.RETARGETING
                    and adset.audience_size_estimate.max < ACCELERATED_MAX_REACH
                    else "STANDARD"
                )
            ),
            learning_phase=estimate_learning_phase(adset, bidding.optimization_goal),
            scaling_triggers=scaling_triggers(strategy.approach, constraints),
        )
        allocations.append(allocation)

    _rebalance(allocations, total_budget, duration_days)
    for adset, allocation in zip(adsets, allocations):
        allocation.risk_factors = identify_risk_factors(adset, allocation)

    logger.info(
        "budgets_optimized",
        adsets=len(allocations),
        total_budget=total_budget,
        daily_total=round(sum(a.budget_strategy.daily_budget for a in allocations), 2),
    )
    return allocations
