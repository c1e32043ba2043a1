from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field

from core.models.strategy import AdSetType, AudienceParameters

PASS_THROUGH_PREFIX = "PASS_THROUGH_"


class ValidationStatus(str, Enum):
    VALID = "VALID"
    WARNING = "WARNING"
    ERROR = "ERROR"


_SEVERITY = {
    ValidationStatus.VALID: 0,
    ValidationStatus.WARNING: 1,
    ValidationStatus.ERROR: 2,
}


class TargetingEntity(BaseModel):
    id: str
    name: str


class GeoLocations(BaseModel):
    countries: List[str] = Field(default_factory=list)


class FlexibleSpecGroup(BaseModel):
    interests: List[TargetingEntity] = Field(default_factory=list)


class MetaTargeting(BaseModel):
    geo_locations: GeoLocations = Field(default_factory=GeoLocations)
    age_min: int = 18
    age_max: int = 65
    genders: List[int] = Field(default_factory=list)
    flexible_spec: List[FlexibleSpecGroup] = Field(default_factory=list)
    custom_audiences: List[TargetingEntity] = Field(default_factory=list)
    excluded_custom_audiences: List[TargetingEntity] = Field(default_factory=list)
    lookalike_audiences: List[TargetingEntity] = Field(default_factory=list)


class EstimatedReach(BaseModel):
    min: int = 0
    max: int = 0


class MetaInterest(BaseModel):
    id: str
    name: str
    path: List[str] = Field(default_factory=list)
    audience_size_lower_bound: Optional[int] = None
    audience_size_upper_bound: Optional[int] = None
    validated: bool = True

    @property
    def is_pass_through(self) -> bool:
        return self.id.startswith(PASS_THROUGH_PREFIX)


class AudienceRequirement(BaseModel):
    type: AdSetType
    name: str
    parameters: AudienceParameters = Field(default_factory=AudienceParameters)


class AudienceResult(BaseModel):
    adset_id: str
    name: str
    type: AdSetType
    targeting: MetaTargeting = Field(default_factory=MetaTargeting)
    estimated_reach: EstimatedReach = Field(default_factory=EstimatedReach)
    validation_status: ValidationStatus = ValidationStatus.VALID
    validation_messages: List[str] = Field(default_factory=list)
    overlap_warnings: List[str] = Field(default_factory=list)
    exclusion_rationale: List[str] = Field(default_factory=list)
    has_unvalidated_interests: bool = False

    def escalate(self, status: ValidationStatus, message: Optional[str] = None) -> None:
        """Raise the status to ``status`` if it is more severe; never lowers it."""
        if _SEVERITY[status] > _SEVERITY[self.validation_status]:
            self.validation_status = status
        if message:
            self.validation_messages.append(message)

    @property
    def is_usable(self) -> bool:
        return self.validation_status != ValidationStatus.ERROR


class AudienceConstructionResult(BaseModel):
    audiences: List[AudienceResult] = Field(default_factory=list)
