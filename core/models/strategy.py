from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, Field, field_validator

from core.models.audit import StrategyApproach
from core.models.creative import BaseCreativeAsset


class CampaignObjective(str, Enum):
    OUTCOME_SALES = "OUTCOME_SALES"
    OUTCOME_LEADS = "OUTCOME_LEADS"
    OUTCOME_TRAFFIC = "OUTCOME_TRAFFIC"
    OUTCOME_AWARENESS = "OUTCOME_AWARENESS"
    OUTCOME_ENGAGEMENT = "OUTCOME_ENGAGEMENT"
    OUTCOME_APP_PROMOTION = "OUTCOME_APP_PROMOTION"


class BusinessGoal(str, Enum):
    PURCHASE = "PURCHASE"
    LEAD = "LEAD"
    TRAFFIC = "TRAFFIC"
    AWARENESS = "AWARENESS"
    ENGAGEMENT = "ENGAGEMENT"


class AdSetType(str, Enum):
    RETARGETING = "retargeting"
    LOOKALIKE = "lookalike"
    INTEREST = "interest"
    BROAD = "broad"


class MetricRange(BaseModel):
    min: float = 0.0
    max: float = 0.0


class ExpectedMetrics(BaseModel):
    ctr_range: MetricRange = Field(default_factory=MetricRange)
    cpm_range: MetricRange = Field(default_factory=MetricRange)
    learning_phase_days: int = 7


class AudienceParameters(BaseModel):
    type: str = ""
    days: Optional[int] = None
    percentage: Optional[float] = None
    interests: List[str] = Field(default_factory=list)
    exclusions: List[str] = Field(default_factory=list)


class AdSetStrategy(BaseModel):
    name: str
    type: AdSetType
    rationale: str = ""
    audience_parameters: AudienceParameters = Field(default_factory=AudienceParameters)
    budget_weight: float = 0.0
    optimization_goal: str = "LINK_CLICKS"
    bid_strategy: str = "LOWEST_COST_WITHOUT_CAP"
    creative_count: int = 1
    expected_metrics: ExpectedMetrics = Field(default_factory=ExpectedMetrics)

    @field_validator("creative_count")
    @classmethod
    def at_least_one_creative(cls, value: int) -> int:
        return max(value, 1)

    @field_validator("budget_weight")
    @classmethod
    def non_negative_weight(cls, value: float) -> float:
        return max(value, 0.0)


class StrategyTimeline(BaseModel):
    phase_1_days: Optional[int] = None
    phase_2_start: Optional[str] = None
    scaling_triggers: List[str] = Field(default_factory=list)


class OptimizationStep(BaseModel):
    day: int
    action: str
    trigger: str


class SuccessMetrics(BaseModel):
    primary: str
    secondary: List[str] = Field(default_factory=list)
    thresholds: Dict[str, float] = Field(default_factory=dict)


class StrategyResult(BaseModel):
    approach: StrategyApproach
    campaign_objective: CampaignObjective
    campaign_name: str = ""
    timeline: StrategyTimeline = Field(default_factory=StrategyTimeline)
    adset_strategies: List[AdSetStrategy] = Field(default_factory=list)
    budget_allocation: Dict[str, float] = Field(default_factory=dict)
    optimization_sequence: List[OptimizationStep] = Field(default_factory=list)
    success_metrics: SuccessMetrics
    risk_mitigation: List[str] = Field(default_factory=list)
    ai_reasoning: str = ""
    is_fallback: bool = False


class CampaignConstraints(BaseModel):
    max_cpa: Optional[float] = Field(default=None, gt=0)
    max_cpm: Optional[float] = Field(default=None, gt=0)
    target_roas: Optional[float] = Field(default=None, gt=0)
    min_daily_budget: Optional[float] = Field(default=None, gt=0)
    max_daily_budget: Optional[float] = Field(default=None, gt=0)
    prefer_reels_only: bool = False


class CampaignFlags(BaseModel):
    force_broad: bool = False
    test_mode: bool = False
    max_adsets: int = Field(default=4, ge=1)


class CampaignInput(BaseModel):
    campaign_name: str
    budget_total: float = Field(default=1000.0, gt=0)
    duration_days: int = Field(default=7, ge=1)
    creative_assets: List[BaseCreativeAsset] = Field(default_factory=list)
    desired_geos: List[str] = Field(default_factory=list)
    constraints: CampaignConstraints = Field(default_factory=CampaignConstraints)
    flags: CampaignFlags = Field(default_factory=CampaignFlags)
