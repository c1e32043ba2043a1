import asyncio
from typing import Dict, List, Optional

import structlog

from adapters.meta.detailed_targeting import MetaInterestAdapter, meta_interest_adapter
from config.campaign_config import CampaignConfig
from core.models.audience import (
    AudienceConstructionResult,
    AudienceRequirement,
    AudienceResult,
    EstimatedReach,
    FlexibleSpecGroup,
    GeoLocations,
    MetaInterest,
    MetaTargeting,
    TargetingEntity,
    ValidationStatus,
)
from core.models.strategy import AdSetStrategy, AdSetType, AudienceParameters, StrategyResult
from utils.text_utils import slugify, title_from_slug

logger = structlog.get_logger(__name__)

# Baseline reach per branch, before the targeting discount
RETARGETING_REACH = (1_000, 50_000)
INTEREST_REACH = (500_000, 2_000_000)
BROAD_REACH = (10_000_000, 50_000_000)
LOOKALIKE_REACH_PER_PERCENT = 2_000_000
LOOKALIKE_REACH_SPREAD = 0.2

INTEREST_DISCOUNT = 0.3
CUSTOM_AUDIENCE_DISCOUNT = 0.1
EXCLUSION_DISCOUNT = 0.9

MIN_REACH = 1_000
MAX_REACH_FOR_LEARNING = 100_000_000
LOOKALIKE_PERCENT_RANGE = (1, 10)
RETARGETING_DAYS_RANGE = (1, 180)
DEFAULT_RETARGETING_DAYS = 30

# Used when the interest lookup service cannot be reached at all
GENERIC_INTEREST_ID = "6003139266461"
STACKED_INTEREST_MODE = "interest_stacked"

OVERLAP_MESSAGES = {
    AdSetType.BROAD: "High overlap risk between {a} and {b} - both use broad targeting",
    AdSetType.INTEREST: "Potential overlap between {a} and {b} - review interest selection",
    AdSetType.LOOKALIKE: "Lookalike overlap between {a} and {b} - consider different percentages",
}


def estimate_reach(audience: AudienceResult) -> None:
    """Discount the branch baseline once per active targeting dimension."""
    targeting = audience.targeting
    multiplier = 1.0
    if targeting.flexible_spec:
        multiplier *= INTEREST_DISCOUNT
    if targeting.custom_audiences:
        multiplier *= CUSTOM_AUDIENCE_DISCOUNT
    if targeting.excluded_custom_audiences:
        multiplier *= EXCLUSION_DISCOUNT

    audience.estimated_reach = EstimatedReach(
        min=int(audience.estimated_reach.min * multiplier),
        max=int(audience.estimated_reach.max * multiplier),
    )


def validate_audience(audience: AudienceResult) -> None:
    reach = audience.estimated_reach
    targeting = audience.targeting

    if reach.max < MIN_REACH and not audience.has_unvalidated_interests:
        audience.escalate(
            ValidationStatus.ERROR,
            "Audience too small - minimum 1,000 people required",
        )
    if reach.min > MAX_REACH_FOR_LEARNING:
        audience.escalate(
            ValidationStatus.WARNING,
            "Very large audience - may impact learning phase efficiency",
        )
    if targeting.age_min >= targeting.age_max:
        audience.escalate(
            ValidationStatus.ERROR,
            "Invalid age range - minimum age must be less than maximum",
        )
    if targeting.custom_audiences and targeting.lookalike_audiences:
        audience.escalate(
            ValidationStatus.WARNING,
            "Using both custom and lookalike audiences may create conflicts",
        )


def detect_overlaps(audiences: List[AudienceResult]) -> None:
    """Warn on every same-type pair of broad, interest or lookalike audiences.

    Type collision only; audience membership is not inspected.
    """
    for i, first in enumerate(audiences):
        for second in audiences[i + 1:]:
            template = OVERLAP_MESSAGES.get(first.type)
            if template is None or first.type != second.type:
                continue
            message = template.format(a=first.name, b=second.name)
            first.overlap_warnings.append(message)
            second.overlap_warnings.append(message)


def _merge_parameters(
    strategy: AdSetStrategy, requirement: Optional[AudienceRequirement]
) -> AudienceParameters:
    params = strategy.audience_parameters.model_copy(deep=True)
    if requirement is None:
        return params

    extra = requirement.parameters
    if not params.type and extra.type:
        params.type = extra.type
    if params.days is None:
        params.days = extra.days
    if params.percentage is None:
        params.percentage = extra.percentage
    if not params.interests:
        params.interests = list(extra.interests)
    if not params.exclusions:
        params.exclusions = list(extra.exclusions)
    return params


class AudienceConstructor:
    def __init__(self, interest_adapter: Optional[MetaInterestAdapter] = None):
        self.interest_adapter = interest_adapter or meta_interest_adapter

    async def construct_audiences(
        self,
        strategy: StrategyResult,
        audience_requirements: Optional[List[AudienceRequirement]] = None,
        geos: Optional[List[str]] = None,
        access_token: Optional[str] = None,
        age_min: int = 18,
        age_max: int = 65,
    ) -> AudienceConstructionResult:
        requirements = {req.name: req for req in audience_requirements or []}
        adsets = strategy.adset_strategies
        parameters = [
            _merge_parameters(adset, requirements.get(adset.name)) for adset in adsets
        ]

        interest_lookup, lookup_failed = await self._resolve_interests(
            [
                interest
                for adset, params in zip(adsets, parameters)
                if adset.type == AdSetType.INTEREST
                for interest in params.interests
            ],
            access_token,
        )

        adset_ids = self._adset_ids(adsets)
        audiences = await asyncio.gather(
            *(
                self._construct_one(
                    adset_id,
                    adset,
                    params,
                    geos or CampaignConfig.DEFAULT_GEOS,
                    interest_lookup,
                    lookup_failed,
                    age_min,
                    age_max,
                )
                for adset_id, adset, params in zip(adset_ids, adsets, parameters)
            )
        )
        audiences = list(audiences)
        detect_overlaps(audiences)

        logger.info(
            "audiences_constructed",
            total=len(audiences),
            errors=sum(1 for a in audiences if a.validation_status == ValidationStatus.ERROR),
            warnings=sum(1 for a in audiences if a.validation_status == ValidationStatus.WARNING),
        )
        return AudienceConstructionResult(audiences=audiences)

    def _adset_ids(self, adsets: List[AdSetStrategy]) -> List[str]:
        ids: List[str] = []
        for adset in adsets:
            base = f"adset_{slugify(adset.name) or 'unnamed'}"
            candidate, suffix = base, 2
            while candidate in ids:
                candidate = f"{base}_{suffix}"
                suffix += 1
            ids.append(candidate)
        return ids

    async def _resolve_interests(
        self, names: List[str], access_token: Optional[str]
    ) -> tuple[Dict[str, MetaInterest], bool]:
        if not names:
            return {}, False
        try:
            interests = await self.interest_adapter.validate_interests(names, access_token)
        except Exception as e:
            logger.warning("interest_service_unavailable", error=str(e), count=len(names))
            return {}, True
        return dict(self._index(names, interests)), False

    def _index(self, names: List[str], interests: List[MetaInterest]):
        # validate_interests answers one entry per distinct name, in order
        distinct: List[str] = []
        for name in names:
            key = name.strip().lower()
            if key and key not in distinct:
                distinct.append(key)
        return zip(distinct, interests)

    async def _construct_one(
        self,
        adset_id: str,
        adset: AdSetStrategy,
        params: AudienceParameters,
        geos: List[str],
        interest_lookup: Dict[str, MetaInterest],
        lookup_failed: bool,
        age_min: int,
        age_max: int,
    ) -> AudienceResult:
        audience = AudienceResult(
            adset_id=adset_id,
            name=adset.name,
            type=adset.type,
            targeting=MetaTargeting(
                geo_locations=GeoLocations(countries=list(geos)),
                age_min=age_min,
                age_max=age_max,
            ),
        )

        if adset.type == AdSetType.RETARGETING:
            built = self._build_retargeting(audience, params)
        elif adset.type == AdSetType.LOOKALIKE:
            built = self._build_lookalike(audience, params)
        elif adset.type == AdSetType.INTEREST:
            built = self._build_interest(audience, params, interest_lookup, lookup_failed)
        else:
            built = self._build_broad(audience, params)

        self._apply_exclusions(audience, params)
        if not built:
            # Parameter errors leave reach at zero; size checks would only add noise
            return audience

        estimate_reach(audience)
        validate_audience(audience)
        return audience

    def _build_retargeting(self, audience: AudienceResult, params: AudienceParameters) -> bool:
        days = params.days if params.days is not None else DEFAULT_RETARGETING_DAYS
        low, high = RETARGETING_DAYS_RANGE
        if not low <= days <= high:
            audience.escalate(
                ValidationStatus.ERROR,
                f"Retargeting days must be between {low} and {high}",
            )
            return False

        audience.targeting.custom_audiences = [
            TargetingEntity(id=f"website_visitors_{days}d", name=f"Website Visitors {days} Days")
        ]
        if not any("purchaser" in exclusion.lower() for exclusion in params.exclusions):
            params.exclusions.append(f"purchasers_{days}d")
        audience.exclusion_rationale.append(
            "Excluding purchasers to avoid wasted spend on converted users"
        )
        audience.estimated_reach = EstimatedReach(min=RETARGETING_REACH[0], max=RETARGETING_REACH[1])
        return True

    def _build_lookalike(self, audience: AudienceResult, params: AudienceParameters) -> bool:
        percentage = params.percentage
        if percentage is None:
            audience.escalate(
                ValidationStatus.ERROR,
                "Lookalike audience requires percentage parameter",
            )
            return False

        low, high = LOOKALIKE_PERCENT_RANGE
        if not low <= percentage <= high:
            audience.escalate(
                ValidationStatus.ERROR,
                f"Lookalike percentage must be between {low} and {high}",
            )
            return False

        label = f"{percentage:g}"
        audience.targeting.lookalike_audiences = [
            TargetingEntity(
                id=f"lookalike_purchasers_{label}pct",
                name=f"Lookalike Purchasers {label}%",
            )
        ]
        audience.exclusion_rationale.append(
            "Excluding website visitors to focus on new prospects"
        )
        base = percentage * LOOKALIKE_REACH_PER_PERCENT
        audience.estimated_reach = EstimatedReach(
            min=int(base * (1 - LOOKALIKE_REACH_SPREAD)),
            max=int(base * (1 + LOOKALIKE_REACH_SPREAD)),
        )
        return True

    def _build_interest(
        self,
        audience: AudienceResult,
        params: AudienceParameters,
        interest_lookup: Dict[str, MetaInterest],
        lookup_failed: bool,
    ) -> bool:
        names = [name.strip() for name in params.interests if name and name.strip()]
        if not names:
            audience.escalate(
                ValidationStatus.ERROR,
                "Interest audience requires at least one interest",
            )
            return False

        entities: List[TargetingEntity] = []
        seen = set()
        for name in names:
            key = name.lower()
            if key in seen:
                continue
            seen.add(key)
            if lookup_failed:
                entities.append(TargetingEntity(id=GENERIC_INTEREST_ID, name=name))
                continue
            interest = interest_lookup.get(key)
            if interest is None:
                continue
            if not interest.validated:
                audience.has_unvalidated_interests = True
            entities.append(TargetingEntity(id=interest.id, name=interest.name))

        if not entities:
            audience.escalate(ValidationStatus.ERROR, "No interests were provided or found.")
            return False

        if lookup_failed:
            audience.has_unvalidated_interests = True
            audience.escalate(
                ValidationStatus.WARNING,
                "Interest validation service unavailable - using generic placeholder interest IDs",
            )
        elif audience.has_unvalidated_interests:
            audience.escalate(
                ValidationStatus.WARNING,
                "Some interests are unvalidated and require a live Meta token for ID mapping before launch.",
            )

        if params.type == STACKED_INTEREST_MODE:
            audience.targeting.flexible_spec = [FlexibleSpecGroup(interests=entities)]
        else:
            audience.targeting.flexible_spec = [
                FlexibleSpecGroup(interests=[entity]) for entity in entities
            ]

        audience.exclusion_rationale.append(
            "Excluding website visitors to focus on cold prospects"
        )
        audience.estimated_reach = EstimatedReach(min=INTEREST_REACH[0], max=INTEREST_REACH[1])
        return True

    def _build_broad(self, audience: AudienceResult, params: AudienceParameters) -> bool:
        audience.exclusion_rationale.append(
            "Minimal targeting to allow Meta algorithm maximum freedom"
        )
        if params.exclusions:
            audience.exclusion_rationale.append(
                "Excluding converters to focus budget on new prospects"
            )
        audience.estimated_reach = EstimatedReach(min=BROAD_REACH[0], max=BROAD_REACH[1])
        return True

    def _apply_exclusions(self, audience: AudienceResult, params: AudienceParameters) -> None:
        seen = set()
        for exclusion in params.exclusions:
            cleaned = exclusion.strip()
            if not cleaned or cleaned in seen:
                continue
            seen.add(cleaned)
            audience.targeting.excluded_custom_audiences.append(
                TargetingEntity(id=cleaned, name=title_from_slug(cleaned))
            )


# Module-level singleton - reused across all requests
audience_constructor = AudienceConstructor()
