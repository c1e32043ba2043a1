import pytest

from core.models.audience import AudienceResult, EstimatedReach
from core.models.creative import AssetType, CreativeAsset, Dimensions, FormatVariant
from core.models.placement import AdSetPlacementInput, VolumePotential
from core.models.strategy import AdSetType
from services.campaign.placement_intelligence import analyze_creative_formats, determine_placements

BIG_REACH = EstimatedReach(min=1_000_000, max=10_000_000)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _image(width=None, height=None) -> CreativeAsset:
    dimensions = Dimensions(width=width, height=height) if width else None
    return CreativeAsset(type=AssetType.IMAGE, asset_url="https://cdn.example.com/i.jpg", dimensions=dimensions)


def _video(width=None, height=None, duration=15.0) -> CreativeAsset:
    dimensions = Dimensions(width=width, height=height) if width else None
    return CreativeAsset(
        type=AssetType.VIDEO, asset_url="https://cdn.example.com/v.mp4", dimensions=dimensions, duration=duration
    )


def _adset(adset_type=AdSetType.BROAD, reach=BIG_REACH) -> AdSetPlacementInput:
    return AdSetPlacementInput(adset_id="adset_1", name="Ad Set 1", type=adset_type, audience_size_estimate=reach)


def _place(adset, assets):
    return determine_placements([adset], assets).placement_strategies[0]


# ===========================================================================
# FORMAT ANALYSIS
# ===========================================================================


class TestFormatAnalysis:
    def test_dimensionless_image_counts_as_square_and_landscape(self):
        formats = analyze_creative_formats([_image()])

        assert formats.has_square_image and formats.has_landscape_image
        assert not formats.has_portrait_image
        assert formats.total_assets == 1

    def test_near_square_within_tolerance(self):
        formats = analyze_creative_formats([_image(1000, 1005)])

        assert formats.has_square_image
        assert not formats.has_portrait_image

    def test_vertical_video_and_durations(self):
        formats = analyze_creative_formats([_video(1080, 1920, duration=22)])

        assert formats.has_vertical_video
        assert formats.has_video
        assert formats.video_durations == [22]

    def test_format_variants_are_marked(self):
        asset = _image(1200, 628)
        asset.format_variants = [FormatVariant(aspect_ratio="4:5", dimensions=Dimensions(width=1080, height=1350))]
        formats = analyze_creative_formats([asset])

        assert formats.has_landscape_image
        assert formats.has_portrait_image

    def test_carousel_only_sets_carousel(self):
        formats = analyze_creative_formats([CreativeAsset(type=AssetType.CAROUSEL, asset_url="x")])

        assert formats.has_carousel
        assert not formats.has_square_image


# ===========================================================================
# PLACEMENT SELECTION
# ===========================================================================


class TestPlacementSelection:
    def test_single_image_broad(self):
        result = _place(_adset(), [_image()])

        assert result.placements.facebook_positions == ["feed", "right_hand_column"]
        assert result.placements.instagram_positions == ["stream"]
        assert result.placements.audience_network_positions == []
        assert "Missing vertical video - cannot use Instagram Reels (high-performing placement)" in result.warnings
        assert "Missing Stories placements - consider adding vertical format creatives" in result.warnings

    def test_audience_network_needs_three_assets_with_square_and_landscape(self):
        result = _place(_adset(), [_image(), _image(), _image()])

        assert result.placements.audience_network_positions == ["native", "banner"]
        assert "audience_network" in result.performance_expectations

    def test_three_square_images_do_not_unlock_audience_network(self):
        result = _place(_adset(), [_image(1080, 1080)] * 3)

        assert result.placements.audience_network_positions == []

    @pytest.mark.parametrize("adset_type", list(AdSetType))
    def test_square_only_assets_never_unlock_reels_or_audience_network(self, adset_type):
        square_assets = [_image(1080, 1080), _image(1200, 1200), _video(1080, 1080)]

        result = _place(_adset(adset_type), square_assets)

        assert "reels" not in result.placements.instagram_positions
        assert result.placements.audience_network_positions == []
        assert "instagram_reels" not in result.performance_expectations
        assert "audience_network" not in result.performance_expectations

    def test_vertical_video_unlocks_reels_and_stories(self):
        result = _place(_adset(), [_video(1080, 1920)])

        assert "reels" in result.placements.instagram_positions
        assert "story" in result.placements.instagram_positions
        assert "story" in result.placements.facebook_positions
        assert result.creative_requirements[0].placement == "instagram_reels"

    def test_no_usable_assets_is_critical_not_fatal(self):
        result = _place(_adset(), [])

        assert result.placements.total() == 0
        assert "CRITICAL: No placements selected - check creative format compatibility" in result.warnings


# ===========================================================================
# AUDIENCE TUNING
# ===========================================================================


class TestAudienceTuning:
    def test_retargeting_drops_audience_network_and_boosts_ctr(self):
        result = _place(_adset(AdSetType.RETARGETING), [_image(), _image(), _image()])

        assert result.placements.audience_network_positions == []
        assert "audience_network" not in result.performance_expectations
        assert result.placements.messenger_positions == ["messenger_home"]
        feed = result.performance_expectations["facebook_feed"].expected_ctr_range
        assert (feed.min, feed.max) == (1.8, 3.75)

    def test_interest_with_square_images_gets_no_messenger(self):
        result = _place(_adset(AdSetType.INTEREST), [_image(1080, 1080), _image(1080, 1080)])

        assert result.placements.messenger_positions == []
        assert "messenger" not in result.performance_expectations

    def test_retargeting_with_square_images_gets_messenger(self):
        result = _place(_adset(AdSetType.RETARGETING), [_image(1080, 1080)])

        assert result.placements.messenger_positions == ["messenger_home"]

    def test_interest_reels_volume_is_high(self):
        result = _place(_adset(AdSetType.INTEREST), [_video(1080, 1920)])

        assert result.performance_expectations["instagram_reels"].volume_potential == VolumePotential.HIGH

    def test_small_audience_avoids_audience_network(self):
        result = _place(_adset(reach=EstimatedReach(min=5_000, max=50_000)), [_image(), _image(), _image()])

        assert result.placements.audience_network_positions == []
        assert "Small audience: Avoiding Audience Network to prevent saturation" in result.placement_rationale

    def test_accepts_constructed_audiences(self):
        audience = AudienceResult(
            adset_id="adset_x", name="X", type=AdSetType.LOOKALIKE, estimated_reach=BIG_REACH
        )
        result = determine_placements([audience], [_image()]).placement_strategies[0]

        assert result.adset_id == "adset_x"
        assert "Lookalike: Balanced placement mix for optimal learning" in result.placement_rationale
