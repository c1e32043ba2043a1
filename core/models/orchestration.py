from enum import Enum
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field

from core.models.audience import AudienceResult
from core.models.audit import AuditResult
from core.models.budget import BudgetAllocation
from core.models.creative import CreativeStrategyResult
from core.models.placement import PlacementResult
from core.models.strategy import StrategyResult


class Severity(str, Enum):
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"


class ChecklistStatus(str, Enum):
    REQUIRED = "REQUIRED"
    RECOMMENDED = "RECOMMENDED"
    OPTIONAL = "OPTIONAL"


class CampaignStructure(BaseModel):
    """Everything the pipeline produced, handed to the orchestrator."""

    audit: Optional[AuditResult] = None
    strategy: StrategyResult
    audiences: List[AudienceResult] = Field(default_factory=list)
    placements: List[PlacementResult] = Field(default_factory=list)
    creatives: List[CreativeStrategyResult] = Field(default_factory=list)
    budgets: List[BudgetAllocation] = Field(default_factory=list)


class APIPayload(BaseModel):
    endpoint: str
    method: Literal["POST", "GET", "PUT", "DELETE"] = "POST"
    payload: Dict[str, Any] = Field(default_factory=dict)
    dependencies: List[str] = Field(default_factory=list)
    validation_rules: List[str] = Field(default_factory=list)


class ExecutionStep(BaseModel):
    step: int
    description: str
    endpoint: str
    success_criteria: str
    error_handling: str


class ChecklistItem(BaseModel):
    item: str
    status: ChecklistStatus
    description: str


class RiskFlag(BaseModel):
    severity: Severity
    message: str
    mitigation: str


class SupportHook(BaseModel):
    trigger: str
    action: str
    support_tool: str


class RollbackStep(BaseModel):
    step: str
    action: str
    conditions: List[str] = Field(default_factory=list)


class CampaignOrchestrationResult(BaseModel):
    campaign_payload: APIPayload
    adset_payloads: List[APIPayload] = Field(default_factory=list)
    creative_payloads: List[APIPayload] = Field(default_factory=list)
    ad_payloads: List[APIPayload] = Field(default_factory=list)
    api_execution_order: List[ExecutionStep] = Field(default_factory=list)
    validation_checklist: List[ChecklistItem] = Field(default_factory=list)
    risk_flags: List[RiskFlag] = Field(default_factory=list)
    support_hooks: List[SupportHook] = Field(default_factory=list)
    rollback_plan: List[RollbackStep] = Field(default_factory=list)


class OrchestrateRequest(BaseModel):
    campaign_structure: Dict[str, Any] = Field(..., alias="campaignStructure")
    account_id: str = Field(..., alias="accountId")
    page_id: Optional[str] = Field(default=None, alias="pageId")
    pixel_id: Optional[str] = Field(default=None, alias="pixelId")

    model_config = {"populate_by_name": True}
