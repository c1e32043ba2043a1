from core.models.strategy import CampaignObjective
from services.campaign.odax_objectives import get_optimization_goals, is_compatible_goal, map_to_odax


class TestMapToOdax:
    def test_legacy_names_are_mapped(self):
        assert map_to_odax("CONVERSIONS") == CampaignObjective.OUTCOME_SALES
        assert map_to_odax("link_clicks") == CampaignObjective.OUTCOME_TRAFFIC
        assert map_to_odax("BRAND_AWARENESS") == CampaignObjective.OUTCOME_AWARENESS

    def test_odax_names_pass_through(self):
        assert map_to_odax("OUTCOME_LEADS") == CampaignObjective.OUTCOME_LEADS

    def test_unknown_defaults_to_traffic(self):
        assert map_to_odax("SOMETHING_ELSE") == CampaignObjective.OUTCOME_TRAFFIC
        assert map_to_odax("") == CampaignObjective.OUTCOME_TRAFFIC


class TestOptimizationGoals:
    def test_awareness_collects_goals_from_every_legacy_name(self):
        assert get_optimization_goals("OUTCOME_AWARENESS") == ["REACH", "IMPRESSIONS", "AD_RECALL_LIFT"]

    def test_unknown_objective_defaults_to_link_clicks(self):
        assert get_optimization_goals("NOPE") == ["LINK_CLICKS"]

    def test_compatibility(self):
        assert is_compatible_goal("OUTCOME_SALES", "OFFSITE_CONVERSIONS")
        assert not is_compatible_goal("OUTCOME_SALES", "REACH")
