from core.models.audit import DataLevel, PixelHealth, RawAccountData, StrategyApproach
from services.campaign.account_auditor import (
    audit_account,
    classify_pixel_health,
    empty_audit,
    summarize_performance,
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _make_account(
    spend=5000,
    purchases=80,
    revenue=20000,
    clicks=2000,
    impressions=100000,
    pixel_events=1500,
    custom_audiences=None,
):
    insight = {
        "spend": spend,
        "purchases": purchases,
        "clicks": clicks,
        "impressions": impressions,
    }
    if revenue is not None:
        insight["purchase_value"] = revenue
    return {
        "insights": [insight],
        "pixels": [{"events": [{"event": "Purchase", "count": pixel_events}]}],
        "custom_audiences": custom_audiences
        if custom_audiences is not None
        else [{"name": "Buyers 180d", "approximate_count": 25000}],
        "campaigns": [{"id": "1"}, {"id": "2"}],
    }


# ===========================================================================
# TIER CLASSIFICATION
# ===========================================================================


class TestDataLevel:
    def test_rich_account_with_real_revenue(self):
        result = audit_account(_make_account())

        assert result.data_level == DataLevel.RICH_DATA
        assert result.pixel_health == PixelHealth.RICH
        assert result.recommendations.strategy_approach == StrategyApproach.PERFORMANCE_SCALING
        assert result.account_summary.last_90_days.avg_roas == 4.0
        assert result.account_summary.last_90_days.roas_is_estimated is False

    def test_roas_estimated_from_assumed_order_value(self):
        # 60 conversions * 50 / 1000 spend = 3.0
        result = audit_account(_make_account(spend=1000, purchases=60, revenue=None), assumed_aov=50)

        summary = result.account_summary.last_90_days
        assert summary.roas_is_estimated is True
        assert summary.avg_roas == 3.0
        assert result.data_level == DataLevel.RICH_DATA

    def test_conversions_without_roas_are_low_data(self):
        result = audit_account(_make_account(spend=10000, purchases=60, revenue=1000))

        assert result.data_level == DataLevel.LOW_DATA
        assert result.recommendations.strategy_approach == StrategyApproach.HYBRID

    def test_spend_and_pixel_events_without_conversions_are_low_data(self):
        result = audit_account(_make_account(spend=2000, purchases=0, revenue=None, pixel_events=600))

        assert result.data_level == DataLevel.LOW_DATA

    def test_empty_account_is_zero_data(self):
        result = empty_audit()

        assert result.data_level == DataLevel.ZERO_DATA
        assert result.pixel_health == PixelHealth.NONE
        assert result.recommendations.strategy_approach == StrategyApproach.DISCOVERY_FIRST
        assert result.recommendations.primary_objective == "LINK_CLICKS"

    def test_accepts_typed_raw_data(self):
        result = audit_account(RawAccountData(**_make_account()))

        assert result.data_level == DataLevel.RICH_DATA


# ===========================================================================
# MALFORMED INPUT
# ===========================================================================


class TestMalformedInput:
    def test_none_input_is_zero_data(self):
        assert audit_account(None).data_level == DataLevel.ZERO_DATA

    def test_garbage_numbers_count_as_zero(self):
        data = {
            "insights": [{"spend": "abc", "purchases": None, "clicks": "NaN"}, "not-a-row"],
            "pixels": "oops",
        }
        result = audit_account(data)

        summary = result.account_summary.last_90_days
        assert summary.total_spend == 0
        assert summary.total_conversions == 0
        assert result.usable_events == 0
        assert result.data_level == DataLevel.ZERO_DATA

    def test_zero_spend_gives_zero_roas(self):
        summary = summarize_performance([{"spend": 0, "purchases": 5}], 0, 50)

        assert summary.avg_roas == 0.0
        assert summary.avg_cpa == 0.0


# ===========================================================================
# RISKS AND AUDIENCES
# ===========================================================================


class TestRisks:
    def test_missing_pixel_and_audiences_flagged(self):
        result = audit_account(_make_account(pixel_events=0, custom_audiences=[]))

        assert "No pixel data - install Meta Pixel immediately" in result.risks
        assert "No custom audiences - limited retargeting options" in result.risks

    def test_low_ctr_requires_impressions(self):
        no_delivery = audit_account({"insights": [{"spend": 10}]})
        low_ctr = audit_account(_make_account(clicks=10, impressions=10000))

        assert not any("Low CTR" in risk for risk in no_delivery.risks)
        assert any("Low CTR" in risk for risk in low_ctr.risks)

    def test_high_cpa_flagged(self):
        result = audit_account(_make_account(spend=30000, purchases=100, revenue=90000))

        assert "High CPA - optimize targeting and creatives" in result.risks

    def test_winning_audiences_need_more_than_thousand_people(self):
        audiences = [
            {"name": "Big", "approximate_count": 5000},
            {"name": "Tiny", "approximate_count": 1000},
        ]
        result = audit_account(_make_account(custom_audiences=audiences))

        assert result.winning_audiences == ["Big"]


def test_pixel_health_thresholds():
    assert classify_pixel_health(1001) == PixelHealth.RICH
    assert classify_pixel_health(1000) == PixelHealth.BASIC
    assert classify_pixel_health(101) == PixelHealth.BASIC
    assert classify_pixel_health(100) == PixelHealth.NONE


# ===========================================================================
# THRESHOLD BOUNDARIES
# ===========================================================================

TIER_ORDER = [DataLevel.ZERO_DATA, DataLevel.LOW_DATA, DataLevel.RICH_DATA]


class TestThresholdBoundaries:
    def test_estimated_roas_just_above_floor_is_rich(self):
        # 50 * 50 / 1666.65 = 1.500015
        result = audit_account(_make_account(spend="1666.65", purchases=50, revenue=None), assumed_aov=50)

        assert result.account_summary.last_90_days.avg_roas > 1.5
        assert result.data_level == DataLevel.RICH_DATA

    def test_roas_exactly_at_floor_is_not_rich(self):
        result = audit_account(_make_account(spend=1000, purchases=50, revenue=1500))

        assert result.data_level == DataLevel.LOW_DATA

    def test_spend_just_above_minimum_with_pixel_events_is_low_data(self):
        result = audit_account(_make_account(spend="1000.004", purchases=0, revenue=None, pixel_events=600))

        assert result.data_level == DataLevel.LOW_DATA

    def test_spend_exactly_at_minimum_is_zero_data(self):
        result = audit_account(_make_account(spend=1000, purchases=0, revenue=None, pixel_events=600))

        assert result.data_level == DataLevel.ZERO_DATA

    def test_pixel_events_must_exceed_minimum(self):
        result = audit_account(_make_account(spend=2000, purchases=0, revenue=None, pixel_events=500))

        assert result.data_level == DataLevel.ZERO_DATA

    def test_nine_conversions_are_not_enough_for_low_data(self):
        result = audit_account(_make_account(spend=100, purchases=9, revenue=None, pixel_events=0))
        ten = audit_account(_make_account(spend=100, purchases=10, revenue=None, pixel_events=0))

        assert result.data_level == DataLevel.ZERO_DATA
        assert ten.data_level == DataLevel.LOW_DATA

    def test_cpa_just_above_threshold_is_flagged(self):
        above = audit_account(_make_account(spend="10000.5", purchases=100, revenue=90000))
        at = audit_account(_make_account(spend=10000, purchases=100, revenue=90000))

        assert "High CPA - optimize targeting and creatives" in above.risks
        assert "High CPA - optimize targeting and creatives" not in at.risks

    def test_ctr_just_below_threshold_is_flagged(self):
        below = audit_account(_make_account(clicks=999, impressions=100000))
        above = audit_account(_make_account(clicks=1001, impressions=100000))

        assert any("Low CTR" in risk for risk in below.risks)
        assert not any("Low CTR" in risk for risk in above.risks)


class TestTierMonotonicity:
    def test_more_estimated_conversions_never_lower_the_tier(self):
        levels = [
            audit_account(
                _make_account(spend=1000, purchases=purchases, revenue=None, pixel_events=0),
                assumed_aov=50,
            ).data_level
            for purchases in range(0, 201, 5)
        ]

        ranks = [TIER_ORDER.index(level) for level in levels]
        assert ranks == sorted(ranks)
        assert levels[0] == DataLevel.ZERO_DATA
        assert levels[-1] == DataLevel.RICH_DATA

    def test_more_conversions_with_fixed_revenue_never_lower_the_tier(self):
        levels = [
            audit_account(_make_account(spend=1000, purchases=purchases, revenue=3000, pixel_events=0)).data_level
            for purchases in range(0, 201, 5)
        ]

        ranks = [TIER_ORDER.index(level) for level in levels]
        assert ranks == sorted(ranks)
