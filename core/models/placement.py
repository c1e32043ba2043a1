from enum import Enum
from typing import Dict, List

from pydantic import BaseModel, Field

from core.models.audience import EstimatedReach
from core.models.strategy import AdSetType, MetricRange


class VolumePotential(str, Enum):
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"


class FormatAnalysis(BaseModel):
    has_square_image: bool = False
    has_landscape_image: bool = False
    has_portrait_image: bool = False
    has_square_video: bool = False
    has_landscape_video: bool = False
    has_vertical_video: bool = False
    has_carousel: bool = False
    video_durations: List[float] = Field(default_factory=list)
    total_assets: int = 0

    @property
    def has_video(self) -> bool:
        return self.has_square_video or self.has_landscape_video or self.has_vertical_video


class AdSetPlacementInput(BaseModel):
    adset_id: str
    name: str
    type: AdSetType
    audience_size_estimate: EstimatedReach = Field(default_factory=EstimatedReach)


class PlacementPositions(BaseModel):
    facebook_positions: List[str] = Field(default_factory=list)
    instagram_positions: List[str] = Field(default_factory=list)
    audience_network_positions: List[str] = Field(default_factory=list)
    messenger_positions: List[str] = Field(default_factory=list)

    def total(self) -> int:
        return (
            len(self.facebook_positions)
            + len(self.instagram_positions)
            + len(self.audience_network_positions)
            + len(self.messenger_positions)
        )


class CreativeRequirement(BaseModel):
    placement: str
    required_formats: List[str] = Field(default_factory=list)
    recommended_specs: Dict[str, str] = Field(default_factory=dict)


class PerformanceExpectation(BaseModel):
    expected_ctr_range: MetricRange
    expected_cpm_range: MetricRange
    volume_potential: VolumePotential


class PlacementResult(BaseModel):
    adset_id: str
    name: str
    placements: PlacementPositions = Field(default_factory=PlacementPositions)
    placement_rationale: List[str] = Field(default_factory=list)
    creative_requirements: List[CreativeRequirement] = Field(default_factory=list)
    performance_expectations: Dict[str, PerformanceExpectation] = Field(default_factory=dict)
    warnings: List[str] = Field(default_factory=list)


class PlacementIntelligenceResult(BaseModel):
    placement_strategies: List[PlacementResult] = Field(default_factory=list)
