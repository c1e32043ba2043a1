from enum import Enum
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, Field


class AssetType(str, Enum):
    IMAGE = "image"
    VIDEO = "video"
    CAROUSEL = "carousel"


class Dimensions(BaseModel):
    width: int = Field(..., gt=0)
    height: int = Field(..., gt=0)


class FormatVariant(BaseModel):
    aspect_ratio: str = ""
    dimensions: Dimensions


class CreativeAsset(BaseModel):
    type: AssetType = AssetType.IMAGE
    asset_url: str
    dimensions: Optional[Dimensions] = None
    duration: Optional[float] = None
    format_variants: List[FormatVariant] = Field(default_factory=list)


class BaseCreativeAsset(CreativeAsset):
    """Creative asset plus the copy the creative stage builds variants from."""

    primary_texts: List[str] = Field(default_factory=list)
    headlines: List[str] = Field(default_factory=list)
    descriptions: List[str] = Field(default_factory=list)
    cta: str = "LEARN_MORE"
    landing_page_url: str
    creative_family: str = "primary"


class BrandGuidelines(BaseModel):
    tone: str = "professional"
    voice: str = "friendly and approachable"
    key_messages: List[str] = Field(default_factory=list)
    avoid_words: List[str] = Field(default_factory=list)


class CreativeAngle(str, Enum):
    PAIN = "pain"
    BENEFIT = "benefit"
    SOCIAL_PROOF = "social_proof"
    OFFER = "offer"
    URGENCY = "urgency"
    CURIOSITY = "curiosity"


class CallToActionValue(BaseModel):
    link: str = ""
    link_caption: str = ""


class CallToAction(BaseModel):
    type: str = "LEARN_MORE"
    value: CallToActionValue = Field(default_factory=CallToActionValue)


class LinkData(BaseModel):
    link: str
    message: str
    name: str
    description: Optional[str] = None
    call_to_action: CallToAction = Field(default_factory=CallToAction)
    picture: Optional[str] = None
    video_id: Optional[str] = None


class ObjectStorySpec(BaseModel):
    page_id: str = "{{PAGE_ID}}"
    link_data: LinkData


class CreativePayload(BaseModel):
    name: str
    object_story_spec: ObjectStorySpec
    instagram_actor_id: Optional[str] = None


class TrackingParameters(BaseModel):
    utm_source: str = "facebook"
    utm_medium: str = "social"
    utm_campaign: str = ""
    utm_content: str = ""


class CreativeVariant(BaseModel):
    adset_id: str
    creative_id: str
    name: str
    creative_family: str = "primary"
    hypothesis: str = ""
    angle: CreativeAngle
    expected_metric: Literal["CTR", "CVR", "ENGAGEMENT"] = "CTR"
    payload: CreativePayload
    tracking_parameters: TrackingParameters = Field(default_factory=TrackingParameters)
    instagram_hashtags: List[str] = Field(default_factory=list)


class PerformancePrediction(BaseModel):
    expected_ctr: float = 0.0
    expected_cvr: float = 0.0
    confidence_level: Literal["HIGH", "MEDIUM", "LOW"] = "MEDIUM"


class CreativeTestPlan(BaseModel):
    primary_test: str = "Creative Angle Testing"
    variables: List[str] = Field(default_factory=list)
    success_criteria: str = ""
    duration_days: int = 7


class CreativeStrategyResult(BaseModel):
    adset_id: str
    creative_variants: List[CreativeVariant] = Field(default_factory=list)
    testing_framework: CreativeTestPlan = Field(default_factory=CreativeTestPlan)
    performance_predictions: Dict[str, PerformancePrediction] = Field(default_factory=dict)
    ai_insights: str = ""
    is_fallback: bool = False
