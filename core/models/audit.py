from enum import Enum
from typing import Any, Dict, List

from pydantic import BaseModel, Field, field_validator


class DataLevel(str, Enum):
    ZERO_DATA = "ZERO_DATA"
    LOW_DATA = "LOW_DATA"
    RICH_DATA = "RICH_DATA"


class PixelHealth(str, Enum):
    NONE = "NONE"
    BASIC = "BASIC"
    RICH = "RICH"


class StrategyApproach(str, Enum):
    PERFORMANCE_SCALING = "PERFORMANCE_SCALING"
    HYBRID = "HYBRID"
    DISCOVERY_FIRST = "DISCOVERY_FIRST"


class RawAccountData(BaseModel):
    """Uninterpreted Graph API data for one ad account."""

    insights: List[Dict[str, Any]] = Field(default_factory=list)
    pixels: List[Dict[str, Any]] = Field(default_factory=list)
    custom_audiences: List[Dict[str, Any]] = Field(default_factory=list)
    lookalike_audiences: List[Dict[str, Any]] = Field(default_factory=list)
    campaigns: List[Dict[str, Any]] = Field(default_factory=list)

    @field_validator("*", mode="before")
    @classmethod
    def none_as_empty(cls, value: Any) -> Any:
        return [] if value is None else value


class PerformanceSummary(BaseModel):
    total_spend: float = 0.0
    total_conversions: float = 0.0
    total_clicks: int = 0
    total_impressions: int = 0
    avg_cpa: float = 0.0
    avg_roas: float = 0.0
    avg_ctr: float = 0.0
    roas_is_estimated: bool = True
    campaigns_count: int = 0


class AudienceSizes(BaseModel):
    custom_audiences: int = 0
    lookalike_audiences: int = 0


class AccountSummary(BaseModel):
    last_90_days: PerformanceSummary = Field(default_factory=PerformanceSummary)
    pixel_events: Dict[str, int] = Field(default_factory=dict)
    audience_sizes: AudienceSizes = Field(default_factory=AudienceSizes)


class AuditRecommendations(BaseModel):
    strategy_approach: StrategyApproach
    primary_objective: str
    budget_allocation: Dict[str, float]


class AuditResult(BaseModel):
    data_level: DataLevel
    pixel_health: PixelHealth
    usable_events: int = 0
    winning_audiences: List[str] = Field(default_factory=list)
    account_summary: AccountSummary = Field(default_factory=AccountSummary)
    risks: List[str] = Field(default_factory=list)
    recommendations: AuditRecommendations
