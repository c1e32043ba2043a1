from typing import List, Literal, Optional

from pydantic import BaseModel, Field

from core.models.audience import EstimatedReach
from core.models.strategy import AdSetStrategy


class BudgetStrategy(BaseModel):
    budget_type: Literal["DAILY", "LIFETIME"] = "DAILY"
    daily_budget: float = 0.0
    lifetime_budget: Optional[float] = None
    budget_rationale: List[str] = Field(default_factory=list)


class BiddingStrategy(BaseModel):
    bid_strategy: str = "LOWEST_COST_WITHOUT_CAP"
    optimization_goal: str = "LINK_CLICKS"
    bid_amount: Optional[float] = None
    target_cost: Optional[float] = None
    target_roas: Optional[float] = None
    rationale: List[str] = Field(default_factory=list)


class AdSetBudgetInput(BaseModel):
    adset_id: str
    strategy: AdSetStrategy
    audience_size_estimate: EstimatedReach = Field(default_factory=EstimatedReach)

    @property
    def name(self) -> str:
        return self.strategy.name


class PacingStrategy(BaseModel):
    delivery_type: Literal["STANDARD", "ACCELERATED"] = "STANDARD"


class LearningPhase(BaseModel):
    expected_duration_days: int = 7
    events_needed: int = 50
    budget_protection: bool = True


class ScalingTrigger(BaseModel):
    metric: str
    threshold: float
    action: str
    timeframe: str


class BudgetAllocation(BaseModel):
    """Per-ad-set budget in decimal currency units."""

    adset_id: str
    name: str
    total_budget: float
    allocated_budget: float = 0.0
    budget_strategy: BudgetStrategy = Field(default_factory=BudgetStrategy)
    bidding_strategy: BiddingStrategy = Field(default_factory=BiddingStrategy)
    pacing_strategy: PacingStrategy = Field(default_factory=PacingStrategy)
    learning_phase: LearningPhase = Field(default_factory=LearningPhase)
    scaling_triggers: List[ScalingTrigger] = Field(default_factory=list)
    risk_factors: List[str] = Field(default_factory=list)
