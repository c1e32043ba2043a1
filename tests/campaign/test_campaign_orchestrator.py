from unittest.mock import patch

import pytest

from core.models.audience import AudienceResult, EstimatedReach, ValidationStatus
from core.models.audit import StrategyApproach
from core.models.budget import BiddingStrategy, BudgetAllocation, BudgetStrategy
from core.models.creative import (
    CallToAction,
    CallToActionValue,
    CreativeAngle,
    CreativePayload,
    CreativeStrategyResult,
    CreativeVariant,
    LinkData,
    ObjectStorySpec,
    TrackingParameters,
)
from core.models.orchestration import CampaignStructure, Severity
from core.models.placement import PlacementPositions, PlacementResult
from core.models.strategy import (
    AdSetStrategy,
    AdSetType,
    CampaignObjective,
    StrategyResult,
    SuccessMetrics,
)
from exceptions.custom_exceptions import CampaignStructureException
from services.campaign.campaign_orchestrator import (
    add_tracking_to_url,
    detect_special_ad_categories,
    normalize_account_id,
    orchestrate,
    to_minor_units,
)

LANDING = "https://shop.example.com/p?ref=x"


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _variant(adset_id: str, index: int, message: str = "Comfy shoes for every day") -> CreativeVariant:
    return CreativeVariant(
        adset_id=adset_id,
        creative_id=f"{adset_id}_creative_{index}",
        name=f"Variant {index}",
        angle=CreativeAngle.BENEFIT,
        payload=CreativePayload(
            name=f"Variant {index}",
            object_story_spec=ObjectStorySpec(
                link_data=LinkData(
                    link=LANDING,
                    message=message,
                    name="Walk all day",
                    call_to_action=CallToAction(type="SHOP_NOW", value=CallToActionValue()),
                    picture="https://cdn.example.com/shoe.jpg",
                )
            ),
        ),
        tracking_parameters=TrackingParameters(utm_campaign="shoes", utm_content=f"benefit_{index}"),
    )


def _budget(adset_id, total=100.0, daily=25.0, goal="LINK_CLICKS", **bidding) -> BudgetAllocation:
    return BudgetAllocation(
        adset_id=adset_id,
        name=adset_id,
        total_budget=total,
        allocated_budget=total,
        budget_strategy=BudgetStrategy(daily_budget=daily),
        bidding_strategy=BiddingStrategy(optimization_goal=goal, **bidding),
    )


def _structure(
    campaign_name="Footwear - TRAFFIC",
    audiences=None,
    budgets=None,
    creatives=None,
    placements=None,
) -> CampaignStructure:
    audiences = audiences if audiences is not None else [
        AudienceResult(
            adset_id="adset_broad",
            name="Broad",
            type=AdSetType.BROAD,
            estimated_reach=EstimatedReach(min=1_000_000, max=5_000_000),
        )
    ]
    return CampaignStructure(
        strategy=StrategyResult(
            approach=StrategyApproach.DISCOVERY_FIRST,
            campaign_objective=CampaignObjective.OUTCOME_TRAFFIC,
            campaign_name=campaign_name,
            adset_strategies=[AdSetStrategy(name=a.name, type=a.type) for a in audiences] or [
                AdSetStrategy(name="Broad", type=AdSetType.BROAD)
            ],
            success_metrics=SuccessMetrics(primary="CTR"),
        ),
        audiences=audiences,
        budgets=budgets if budgets is not None else [_budget(a.adset_id) for a in audiences],
        creatives=creatives or [],
        placements=placements or [],
    )


# ===========================================================================
# CAMPAIGN PAYLOAD
# ===========================================================================


class TestCampaignPayload:
    def test_spend_cap_in_minor_units(self):
        structure = _structure(budgets=[_budget("adset_broad", total=19.99)])

        result = orchestrate(structure, "act_123")

        payload = result.campaign_payload.payload
        assert result.campaign_payload.endpoint == "/act_123/campaigns"
        assert payload["spend_cap"] == 1999
        assert payload["status"] == "PAUSED"
        assert payload["objective"] == "OUTCOME_TRAFFIC"
        assert payload["special_ad_categories"] == []

    def test_spend_cap_follows_first_budget_with_several_adsets(self):
        audiences = [
            AudienceResult(
                adset_id=adset_id,
                name=adset_id,
                type=AdSetType.BROAD,
                estimated_reach=EstimatedReach(min=1_000_000, max=5_000_000),
            )
            for adset_id in ("adset_a", "adset_b")
        ]
        structure = _structure(
            audiences=audiences,
            budgets=[_budget("adset_a", total=19.99), _budget("adset_b", total=10.0)],
        )

        result = orchestrate(structure, "act_123")

        assert result.campaign_payload.payload["spend_cap"] == 1999
        assert isinstance(result.campaign_payload.payload["spend_cap"], int)
        assert len(result.adset_payloads) == 2

    def test_special_categories_matched_on_whole_words(self):
        housing = orchestrate(_structure(campaign_name="Apartment rentals downtown"), "123")
        boots = orchestrate(_structure(campaign_name="Jobsite boots"), "123")

        assert housing.campaign_payload.payload["special_ad_categories"] == ["HOUSING"]
        assert boots.campaign_payload.payload["special_ad_categories"] == []
        assert any("HOUSING" in flag.message for flag in housing.risk_flags)
        assert not any("Special ad categories" in flag.message for flag in boots.risk_flags)

    def test_special_categories_detected_once_per_run(self):
        with patch(
            "services.campaign.campaign_orchestrator.detect_special_ad_categories",
            wraps=detect_special_ad_categories,
        ) as detect:
            orchestrate(_structure(campaign_name="Apartment rentals downtown"), "123")

        assert detect.call_count == 1

    def test_accepts_plain_dict(self):
        result = orchestrate(_structure().model_dump(mode="json"), "123")

        assert len(result.adset_payloads) == 1
        assert [step.step for step in result.api_execution_order] == [1, 2, 3, 4, 5, 6]


# ===========================================================================
# AD SET PAYLOADS
# ===========================================================================


class TestAdSetPayloads:
    def test_placements_are_top_level_fields(self):
        placement = PlacementResult(
            adset_id="adset_broad",
            name="Broad",
            placements=PlacementPositions(
                facebook_positions=["feed"], instagram_positions=["stream", "reels"]
            ),
        )

        result = orchestrate(_structure(placements=[placement]), "123")

        payload = result.adset_payloads[0].payload
        assert payload["publisher_platforms"] == ["facebook", "instagram"]
        assert payload["instagram_positions"] == ["stream", "reels"]
        assert "publisher_platforms" not in payload["targeting"]
        assert payload["daily_budget"] == 2500
        assert payload["campaign_id"] == "{{CAMPAIGN_ID}}"
        assert payload["billing_event"] == "LINK_CLICKS"

    def test_target_cost_maps_to_cost_cap(self):
        budget = _budget("adset_broad", bid_strategy="TARGET_COST", target_cost=40.0)

        payload = orchestrate(_structure(budgets=[budget]), "123").adset_payloads[0].payload

        assert payload["bid_strategy"] == "COST_CAP"
        assert payload["bid_amount"] == 4000

    def test_target_roas_maps_to_min_roas_floor(self):
        budget = _budget("adset_broad", bid_strategy="TARGET_ROAS", target_roas=3.0)

        payload = orchestrate(_structure(budgets=[budget]), "123").adset_payloads[0].payload

        assert payload["bid_strategy"] == "LOWEST_COST_WITH_MIN_ROAS"
        assert payload["bid_constraints"] == {"roas_average_floor": 30000}

    def test_error_audience_is_skipped_and_flagged(self):
        audiences = [
            AudienceResult(
                adset_id="adset_broad",
                name="Broad",
                type=AdSetType.BROAD,
                estimated_reach=EstimatedReach(min=1_000_000, max=5_000_000),
            ),
            AudienceResult(
                adset_id="adset_lal",
                name="Lookalike",
                type=AdSetType.LOOKALIKE,
                validation_status=ValidationStatus.ERROR,
            ),
        ]

        result = orchestrate(
            _structure(audiences=audiences, budgets=[_budget("adset_broad")]), "123"
        )

        assert [p.payload["name"] for p in result.adset_payloads] == ["Broad"]
        high = [flag.message for flag in result.risk_flags if flag.severity == Severity.HIGH]
        assert "Ad sets skipped due to audience validation errors: Lookalike" in high

    def test_resolution_fills_known_ids(self):
        result = orchestrate(_structure(), "123", page_id="555", pixel_id="777")

        adset = result.adset_payloads[0]
        assert adset.payload["promoted_object"]["page_id"] == "555"
        assert adset.payload["promoted_object"]["pixel_id"] == "777"
        assert adset.dependencies == ["{{CAMPAIGN_ID}}"]


# ===========================================================================
# CREATIVES AND ADS
# ===========================================================================


class TestCreativesAndAds:
    def _with_creatives(self):
        audiences = [
            AudienceResult(adset_id="adset_a", name="A", type=AdSetType.BROAD,
                           estimated_reach=EstimatedReach(min=10_000, max=50_000)),
            AudienceResult(adset_id="adset_b", name="B", type=AdSetType.INTEREST,
                           estimated_reach=EstimatedReach(min=10_000, max=50_000)),
        ]
        creatives = [
            CreativeStrategyResult(adset_id="adset_a", creative_variants=[_variant("adset_a", 1), _variant("adset_a", 2)]),
            CreativeStrategyResult(adset_id="adset_b", creative_variants=[_variant("adset_b", 1)]),
        ]
        return _structure(audiences=audiences, creatives=creatives)

    def test_ads_reference_global_token_indexes(self):
        result = orchestrate(self._with_creatives(), "123")

        assert len(result.creative_payloads) == 3
        last_ad = result.ad_payloads[2].payload
        assert last_ad["adset_id"] == "{{ADSET_1_ID}}"
        assert last_ad["creative"] == {"creative_id": "{{CREATIVE_2_ID}}"}
        assert last_ad["status"] == "PAUSED"

    def test_creative_link_carries_tracking(self):
        result = orchestrate(self._with_creatives(), "123")

        link_data = result.creative_payloads[0].payload["object_story_spec"]["link_data"]
        assert link_data["link"] == (
            "https://shop.example.com/p?ref=x&utm_source=facebook&utm_medium=social"
            "&utm_campaign=shoes&utm_content=benefit_1"
        )
        assert link_data["call_to_action"]["value"]["link"] == link_data["link"]

    def test_limited_creative_variety_is_low_risk(self):
        result = orchestrate(self._with_creatives(), "123")

        low = [flag.message for flag in result.risk_flags if flag.severity == Severity.LOW]
        assert "Limited creative variety may impact performance" in low


# ===========================================================================
# STRUCTURE ERRORS
# ===========================================================================


class TestStructureErrors:
    def test_malformed_dict(self):
        with pytest.raises(CampaignStructureException, match="strategy"):
            orchestrate({"audiences": []}, "123")

    def test_no_audiences(self):
        structure = _structure()
        structure.audiences = []

        with pytest.raises(CampaignStructureException, match="no audiences"):
            orchestrate(structure, "123")

    def test_missing_budget(self):
        with pytest.raises(CampaignStructureException, match="adset_broad"):
            orchestrate(_structure(budgets=[]), "123")

    def test_every_audience_failed(self):
        audience = AudienceResult(
            adset_id="adset_x", name="X", type=AdSetType.INTEREST,
            validation_status=ValidationStatus.ERROR,
        )

        with pytest.raises(CampaignStructureException, match="Every audience failed"):
            orchestrate(_structure(audiences=[audience], budgets=[]), "123")

    def test_blank_account_id(self):
        with pytest.raises(CampaignStructureException):
            normalize_account_id("act_ ")


# ===========================================================================
# HELPERS
# ===========================================================================


@pytest.mark.parametrize(
    "amount, expected",
    [(19.99, 1999), (0.005, 1), (10, 1000), (0.1 + 0.2, 30)],
)
def test_to_minor_units(amount, expected):
    assert to_minor_units(amount) == expected


def test_add_tracking_to_url_without_params_keeps_url():
    empty = TrackingParameters(utm_source="", utm_medium="")

    assert add_tracking_to_url(LANDING, empty) == LANDING
