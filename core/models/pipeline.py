from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator

from core.models.audit import RawAccountData
from core.models.orchestration import CampaignOrchestrationResult
from core.models.strategy import BusinessGoal, CampaignConstraints, CampaignFlags


class CampaignPurpose(str, Enum):
    CONVERSION = "conversion"
    LEADS = "leads"
    TRAFFIC = "traffic"
    AWARENESS = "awareness"
    ENGAGEMENT = "engagement"

    def to_business_goal(self) -> BusinessGoal:
        return {
            CampaignPurpose.CONVERSION: BusinessGoal.PURCHASE,
            CampaignPurpose.LEADS: BusinessGoal.LEAD,
            CampaignPurpose.TRAFFIC: BusinessGoal.TRAFFIC,
            CampaignPurpose.AWARENESS: BusinessGoal.AWARENESS,
            CampaignPurpose.ENGAGEMENT: BusinessGoal.ENGAGEMENT,
        }[self]


class PipelineStatus(str, Enum):
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"


class PipelineStage(str, Enum):
    CONTENT_EXTRACTION = "content_extraction"
    SEMANTIC_ANALYSIS = "semantic_analysis"
    ACCOUNT_AUDIT = "account_audit"
    STRATEGY = "strategy"
    AUDIENCES = "audiences"
    PLACEMENTS = "placements"
    CREATIVES = "creatives"
    BUDGET = "budget"
    ASSEMBLY = "assembly"
    DONE = "done"


class BuildCampaignRequest(BaseModel):
    product_url: str = Field(..., alias="productUrl")
    campaign_purpose: CampaignPurpose = Field(
        default=CampaignPurpose.TRAFFIC, alias="campaignPurpose"
    )
    budget: float = Field(..., gt=0)
    duration_days: int = Field(default=7, ge=1, alias="durationDays")
    geo_targets: List[str] = Field(default_factory=list, alias="geoTargets")
    ad_account_id: Optional[str] = Field(default=None, alias="adAccountId")
    page_id: Optional[str] = Field(default=None, alias="pageId")
    pixel_id: Optional[str] = Field(default=None, alias="pixelId")
    raw_account_data: Optional[RawAccountData] = Field(default=None, alias="rawAccountData")
    constraints: CampaignConstraints = Field(default_factory=CampaignConstraints)
    flags: CampaignFlags = Field(default_factory=CampaignFlags)

    model_config = {"populate_by_name": True}

    @field_validator("product_url")
    @classmethod
    def validate_url_scheme(cls, value: str) -> str:
        value = value.strip()
        if not value.startswith(("http://", "https://")):
            raise ValueError("productUrl must be an http(s) URL")
        return value

    @field_validator("geo_targets")
    @classmethod
    def normalize_geos(cls, value: List[str]) -> List[str]:
        return [geo.strip().upper() for geo in value if geo and geo.strip()]


class PipelineProgress(BaseModel):
    job_id: str = ""
    status: PipelineStatus = PipelineStatus.IN_PROGRESS
    current_step: PipelineStage = PipelineStage.CONTENT_EXTRACTION
    steps: Dict[str, Dict[str, Any]] = Field(default_factory=dict)
    final_payload: Optional[CampaignOrchestrationResult] = None
    summary: Dict[str, Any] = Field(default_factory=dict)
    errors: List[str] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
