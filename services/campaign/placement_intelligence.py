"""Per-ad-set placement selection gated on the creative formats available."""

from typing import Iterable, List, Optional, Union

import structlog

from core.models.audience import AudienceResult
from core.models.creative import AssetType, CreativeAsset, Dimensions
from core.models.placement import (
    AdSetPlacementInput,
    CreativeRequirement,
    FormatAnalysis,
    PerformanceExpectation,
    PlacementIntelligenceResult,
    PlacementResult,
    VolumePotential,
)
from core.models.strategy import AdSetType, MetricRange

logger = structlog.get_logger(__name__)

SQUARE_TOLERANCE = 0.01
AUDIENCE_NETWORK_MIN_ASSETS = 3
SMALL_AUDIENCE_MAX_REACH = 100_000
RETARGETING_CTR_BOOST = 1.5

# placement key -> (ctr range, cpm range, volume)
PLACEMENT_BENCHMARKS = {
    "facebook_feed": ((1.2, 2.5), (15, 35), VolumePotential.HIGH),
    "instagram_feed": ((1.5, 3.0), (20, 40), VolumePotential.HIGH),
    "instagram_reels": ((2.0, 4.0), (25, 45), VolumePotential.MEDIUM),
    "stories": ((1.8, 3.5), (20, 40), VolumePotential.MEDIUM),
    "right_column": ((0.8, 1.5), (8, 20), VolumePotential.MEDIUM),
    "audience_network": ((0.5, 1.2), (5, 15), VolumePotential.HIGH),
    "messenger": ((1.0, 2.0), (15, 30), VolumePotential.LOW),
}

REELS_REQUIREMENT = CreativeRequirement(
    placement="instagram_reels",
    required_formats=["vertical_video"],
    recommended_specs={
        "aspect_ratio": "9:16",
        "duration": "15-30 seconds",
        "resolution": "1080x1920",
    },
)

AUDIENCE_RATIONALE = {
    AdSetType.RETARGETING: "Retargeting: Prioritizing high-intent placements (Feed, Stories)",
    AdSetType.BROAD: "Broad audience: Using all compatible placements for maximum reach",
    AdSetType.LOOKALIKE: "Lookalike: Balanced placement mix for optimal learning",
    AdSetType.INTEREST: "Interest targeting: Emphasizing engagement-focused placements",
}


def _orientation(dimensions: Dimensions) -> str:
    ratio = dimensions.width / dimensions.height
    if abs(ratio - 1) <= SQUARE_TOLERANCE:
        return "square"
    return "landscape" if ratio > 1 else "vertical"


def _mark(analysis: FormatAnalysis, asset_type: AssetType, orientation: str) -> None:
    if asset_type == AssetType.VIDEO:
        field = {"square": "has_square_video", "landscape": "has_landscape_video"}.get(
            orientation, "has_vertical_video"
        )
    else:
        field = {"square": "has_square_image", "landscape": "has_landscape_image"}.get(
            orientation, "has_portrait_image"
        )
    setattr(analysis, field, True)


def analyze_creative_formats(assets: Iterable[CreativeAsset]) -> FormatAnalysis:
    assets = list(assets)
    analysis = FormatAnalysis(total_assets=len(assets))

    for asset in assets:
        if asset.type == AssetType.CAROUSEL:
            analysis.has_carousel = True
            continue

        if asset.type == AssetType.VIDEO and asset.duration:
            analysis.video_durations.append(asset.duration)

        if asset.dimensions:
            _mark(analysis, asset.type, _orientation(asset.dimensions))
        elif asset.type == AssetType.VIDEO:
            # No dimensions: assume the common export sizes exist
            analysis.has_square_video = True
            analysis.has_vertical_video = True
        else:
            analysis.has_square_image = True
            analysis.has_landscape_image = True

        for variant in asset.format_variants:
            _mark(analysis, asset.type, _orientation(variant.dimensions))

    return analysis


def _expect(result: PlacementResult, key: str) -> None:
    (ctr_min, ctr_max), (cpm_min, cpm_max), volume = PLACEMENT_BENCHMARKS[key]
    result.performance_expectations[key] = PerformanceExpectation(
        expected_ctr_range=MetricRange(min=ctr_min, max=ctr_max),
        expected_cpm_range=MetricRange(min=cpm_min, max=cpm_max),
        volume_potential=volume,
    )


def _select_placements(adset: AdSetPlacementInput, formats: FormatAnalysis) -> PlacementResult:
    result = PlacementResult(adset_id=adset.adset_id, name=adset.name)
    positions = result.placements

    if (
        formats.has_square_image
        or formats.has_landscape_image
        or formats.has_square_video
        or formats.has_landscape_video
    ):
        positions.facebook_positions.append("feed")
        result.placement_rationale.append("Facebook Feed: High-quality images/videos available")
        _expect(result, "facebook_feed")

    if formats.has_square_image or formats.has_square_video:
        positions.instagram_positions.append("stream")
        result.placement_rationale.append("Instagram Feed: Square format creatives available")
        _expect(result, "instagram_feed")

    if formats.has_vertical_video:
        positions.instagram_positions.append("reels")
        result.placement_rationale.append("Instagram Reels: Vertical video content available")
        _expect(result, "instagram_reels")
        result.creative_requirements.append(REELS_REQUIREMENT.model_copy(deep=True))
    else:
        result.warnings.append(
            "Missing vertical video - cannot use Instagram Reels (high-performing placement)"
        )

    if formats.has_vertical_video or formats.has_portrait_image:
        positions.facebook_positions.append("story")
        positions.instagram_positions.append("story")
        result.placement_rationale.append("Stories: Vertical format creatives available")
        _expect(result, "stories")

    if formats.has_square_image or formats.has_landscape_image:
        positions.facebook_positions.append("right_hand_column")
        result.placement_rationale.append("Right Column: Lower cost, good for retargeting")
        _expect(result, "right_column")

    if (
        formats.total_assets >= AUDIENCE_NETWORK_MIN_ASSETS
        and formats.has_square_image
        and formats.has_landscape_image
    ):
        positions.audience_network_positions.extend(["native", "banner"])
        result.placement_rationale.append(
            "Audience Network: Sufficient creative variety for external placements"
        )
        _expect(result, "audience_network")

    if adset.type == AdSetType.RETARGETING and formats.has_square_image:
        positions.messenger_positions.append("messenger_home")
        result.placement_rationale.append("Messenger: Retargeting audience with square images")
        _expect(result, "messenger")

    return result


def tune_for_audience(result: PlacementResult, adset: AdSetPlacementInput) -> None:
    result.placement_rationale.append(AUDIENCE_RATIONALE[adset.type])

    if adset.type == AdSetType.RETARGETING:
        result.placements.audience_network_positions = []
        result.performance_expectations.pop("audience_network", None)
        for expectation in result.performance_expectations.values():
            ctr = expectation.expected_ctr_range
            expectation.expected_ctr_range = MetricRange(
                min=round(ctr.min * RETARGETING_CTR_BOOST, 4),
                max=round(ctr.max * RETARGETING_CTR_BOOST, 4),
            )

    if adset.type == AdSetType.INTEREST and "instagram_reels" in result.performance_expectations:
        result.performance_expectations["instagram_reels"].volume_potential = VolumePotential.HIGH

    if (
        adset.audience_size_estimate.max < SMALL_AUDIENCE_MAX_REACH
        and result.placements.audience_network_positions
    ):
        result.placements.audience_network_positions = []
        result.performance_expectations.pop("audience_network", None)
        result.placement_rationale.append(
            "Small audience: Avoiding Audience Network to prevent saturation"
        )


def validate_placements(result: PlacementResult) -> None:
    positions = result.placements
    total = positions.total()

    if total == 0:
        result.warnings.append(
            "CRITICAL: No placements selected - check creative format compatibility"
        )
    elif total == 1:
        result.warnings.append("Limited placement diversity - may restrict reach and learning")

    if "reels" not in positions.instagram_positions:
        result.warnings.append(
            "Missing Instagram Reels - consider adding vertical video for better performance"
        )
    if "story" not in positions.facebook_positions and "story" not in positions.instagram_positions:
        result.warnings.append(
            "Missing Stories placements - consider adding vertical format creatives"
        )

    for requirement in result.creative_requirements:
        if requirement.placement == "instagram_reels" and "reels" not in positions.instagram_positions:
            result.warnings.append("Creative requirements not met for selected placements")


def placement_input(audience: AudienceResult) -> AdSetPlacementInput:
    return AdSetPlacementInput(
        adset_id=audience.adset_id,
        name=audience.name,
        type=audience.type,
        audience_size_estimate=audience.estimated_reach,
    )


def determine_placements(
    adsets: List[Union[AdSetPlacementInput, AudienceResult]],
    creative_assets: List[CreativeAsset],
    formats: Optional[FormatAnalysis] = None,
) -> PlacementIntelligenceResult:
    """Select placements for every ad set.

    Zero placements is reported as a CRITICAL warning on that ad set, never
    raised; the pipeline carries on with an empty placement set.
    """
    formats = formats or analyze_creative_formats(creative_assets)
    strategies = []
    for adset in adsets:
        if isinstance(adset, AudienceResult):
            adset = placement_input(adset)
        result = _select_placements(adset, formats)
        tune_for_audience(result, adset)
        validate_placements(result)
        strategies.append(result)

    logger.info(
        "placements_determined",
        adsets=len(strategies),
        total_assets=formats.total_assets,
        has_vertical_video=formats.has_vertical_video,
        critical=sum(1 for s in strategies if s.placements.total() == 0),
    )
    return PlacementIntelligenceResult(placement_strategies=strategies)
