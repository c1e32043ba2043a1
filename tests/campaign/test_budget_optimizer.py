import pytest

from core.models.audience import AudienceResult, EstimatedReach, ValidationStatus
from core.models.audit import StrategyApproach
from core.models.budget import AdSetBudgetInput
from core.models.strategy import (
    AdSetStrategy,
    AdSetType,
    CampaignConstraints,
    CampaignObjective,
    ExpectedMetrics,
    MetricRange,
    StrategyResult,
    SuccessMetrics,
)
from services.campaign.budget_optimizer import (
    budget_inputs,
    determine_bidding,
    estimate_learning_phase,
    optimize_budgets,
)

BIG_REACH = EstimatedReach(min=1_000_000, max=5_000_000)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _strategy(approach=StrategyApproach.DISCOVERY_FIRST, adsets=None) -> StrategyResult:
    return StrategyResult(
        approach=approach,
        campaign_objective=CampaignObjective.OUTCOME_TRAFFIC,
        adset_strategies=adsets or [],
        success_metrics=SuccessMetrics(primary="CTR"),
    )


def _input(
    adset_id="adset_a",
    adset_type=AdSetType.BROAD,
    weight=1.0,
    reach=BIG_REACH,
    bid_strategy="LOWEST_COST_WITHOUT_CAP",
    goal="LINK_CLICKS",
    ctr=(1.0, 2.0),
) -> AdSetBudgetInput:
    return AdSetBudgetInput(
        adset_id=adset_id,
        strategy=AdSetStrategy(
            name=adset_id.replace("adset_", "").upper(),
            type=adset_type,
            budget_weight=weight,
            bid_strategy=bid_strategy,
            optimization_goal=goal,
            expected_metrics=ExpectedMetrics(ctr_range=MetricRange(min=ctr[0], max=ctr[1])),
        ),
        audience_size_estimate=reach,
    )


# ===========================================================================
# ALLOCATION
# ===========================================================================


class TestAllocation:
    def test_weights_split_total_budget(self):
        allocations = optimize_budgets(
            _strategy(), [_input("adset_a", weight=0.6), _input("adset_b", weight=0.4)], 1000, 10
        )

        assert [a.total_budget for a in allocations] == [600.0, 400.0]
        assert [a.budget_strategy.daily_budget for a in allocations] == [60.0, 40.0]

    def test_zero_weights_split_equally(self):
        allocations = optimize_budgets(
            _strategy(), [_input("adset_a", weight=0), _input("adset_b", weight=0)], 500, 5
        )

        assert [a.total_budget for a in allocations] == [250.0, 250.0]

    def test_daily_floor_of_ten(self):
        allocations = optimize_budgets(
            _strategy(), [_input("adset_a", weight=0.95), _input("adset_b", weight=0.05)], 1000, 10
        )

        assert allocations[1].budget_strategy.daily_budget == 10.0

    def test_small_audience_capped_and_accelerated(self):
        adset = _input(adset_type=AdSetType.RETARGETING, reach=EstimatedReach(min=1_000, max=40_000))
        (allocation,) = optimize_budgets(_strategy(), [adset], 1000, 5)

        assert allocation.budget_strategy.daily_budget == 50.0
        assert allocation.pacing_strategy.delivery_type == "ACCELERATED"
        assert "Very small audience - high risk of quick saturation" not in allocation.risk_factors

    def test_max_daily_constraint(self):
        (allocation,) = optimize_budgets(
            _strategy(), [_input()], 1000, 5, CampaignConstraints(max_daily_budget=100)
        )

        assert allocation.budget_strategy.daily_budget == 100.0
        assert "Capped at maximum daily budget of $100" in allocation.budget_strategy.budget_rationale

    def test_over_allocation_scaled_down(self):
        (allocation,) = optimize_budgets(
            _strategy(), [_input()], 1000, 5, CampaignConstraints(min_daily_budget=400)
        )

        # 400/day for 5 days overshoots 1000 by far more than 10%
        assert allocation.budget_strategy.daily_budget == 200.0
        assert "Budget adjusted to fit total allocation constraint" in allocation.budget_strategy.budget_rationale

    def test_low_daily_budget_is_a_risk(self):
        (allocation,) = optimize_budgets(_strategy(), [_input()], 70, 7)

        assert allocation.budget_strategy.daily_budget == 10.0
        assert "Daily budget may be too low for effective learning phase" in allocation.risk_factors


# ===========================================================================
# BIDDING
# ===========================================================================


class TestBidding:
    def test_hybrid_non_broad_with_cpa_uses_bid_cap(self):
        bidding = determine_bidding(
            _input(adset_type=AdSetType.INTEREST), StrategyApproach.HYBRID, CampaignConstraints(max_cpa=50)
        )

        assert bidding.bid_strategy == "LOWEST_COST_WITH_BID_CAP"
        assert bidding.bid_amount == 40.0

    def test_hybrid_broad_stays_lowest_cost(self):
        bidding = determine_bidding(_input(), StrategyApproach.HYBRID, CampaignConstraints(max_cpa=50))

        assert bidding.bid_strategy == "LOWEST_COST_WITHOUT_CAP"
        assert bidding.bid_amount is None

    def test_scaling_retargeting_prefers_roas(self):
        bidding = determine_bidding(
            _input(adset_type=AdSetType.RETARGETING),
            StrategyApproach.PERFORMANCE_SCALING,
            CampaignConstraints(target_roas=3.0, max_cpa=40),
        )

        assert bidding.bid_strategy == "TARGET_ROAS"
        assert bidding.target_roas == 3.0

    def test_scaling_retargeting_with_cpa_uses_target_cost(self):
        bidding = determine_bidding(
            _input(adset_type=AdSetType.RETARGETING),
            StrategyApproach.PERFORMANCE_SCALING,
            CampaignConstraints(max_cpa=40),
        )

        assert bidding.bid_strategy == "TARGET_COST"
        assert bidding.target_cost == 40

    def test_capped_strategy_without_constraint_downgraded(self):
        bidding = determine_bidding(
            _input(bid_strategy="COST_CAP"), StrategyApproach.DISCOVERY_FIRST, CampaignConstraints()
        )

        assert bidding.bid_strategy == "LOWEST_COST_WITHOUT_CAP"
        assert bidding.rationale[0] == "COST_CAP requested without a cost constraint - using lowest cost"

    def test_adset_goal_is_kept(self):
        bidding = determine_bidding(
            _input(goal="OFFSITE_CONVERSIONS"), StrategyApproach.DISCOVERY_FIRST, CampaignConstraints()
        )

        assert bidding.optimization_goal == "OFFSITE_CONVERSIONS"


# ===========================================================================
# LEARNING PHASE AND INPUT PAIRING
# ===========================================================================


class TestLearningPhase:
    @pytest.mark.parametrize(
        "goal, ctr, expected_days",
        [
            ("LINK_CLICKS", (1.0, 2.0), 7),
            ("OFFSITE_CONVERSIONS", (2.0, 4.0), 3),
            ("POST_ENGAGEMENT", (0.5, 0.5), 14),
            ("LINK_CLICKS", (0.0, 0.0), 14),
        ],
    )
    def test_days_clamped_between_three_and_fourteen(self, goal, ctr, expected_days):
        phase = estimate_learning_phase(_input(ctr=ctr), goal)

        assert phase.expected_duration_days == expected_days


def test_budget_inputs_skip_failed_audiences():
    adsets = [
        AdSetStrategy(name="Good", type=AdSetType.BROAD),
        AdSetStrategy(name="Bad", type=AdSetType.LOOKALIKE),
    ]
    audiences = [
        AudienceResult(adset_id="adset_good", name="Good", type=AdSetType.BROAD),
        AudienceResult(
            adset_id="adset_bad", name="Bad", type=AdSetType.LOOKALIKE, validation_status=ValidationStatus.ERROR
        ),
    ]

    inputs = budget_inputs(_strategy(adsets=adsets), audiences)

    assert [i.adset_id for i in inputs] == ["adset_good"]
    assert inputs[0].name == "Good"
