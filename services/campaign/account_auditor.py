"""Classifies an ad account's historical data into a maturity tier.

Pure: no network, no side effects, never raises on malformed input. Numbers
that cannot be parsed count as zero and missing lists count as empty.
"""

from collections import defaultdict
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

import structlog

from config.campaign_config import CampaignConfig
from core.models.audit import (
    AccountSummary,
    AuditRecommendations,
    AuditResult,
    AudienceSizes,
    DataLevel,
    PerformanceSummary,
    PixelHealth,
    RawAccountData,
    StrategyApproach,
)

logger = structlog.get_logger(__name__)

RICH_MIN_CONVERSIONS = 50
RICH_MIN_ROAS = 1.5
LOW_MIN_CONVERSIONS = 10
LOW_MIN_SPEND = 1000
LOW_MIN_EVENTS = 500
RICH_PIXEL_EVENTS = 1000
BASIC_PIXEL_EVENTS = 100
WINNING_AUDIENCE_MIN_SIZE = 1000
LOW_CTR_THRESHOLD = 1.0
HIGH_CPA_THRESHOLD = 100

TIER_RECOMMENDATIONS: Dict[DataLevel, AuditRecommendations] = {
    DataLevel.RICH_DATA: AuditRecommendations(
        strategy_approach=StrategyApproach.PERFORMANCE_SCALING,
        primary_objective="CONVERSIONS",
        budget_allocation={
            "retargeting": 0.4,
            "lookalike_1%": 0.3,
            "lookalike_3%": 0.2,
            "broad": 0.1,
        },
    ),
    DataLevel.LOW_DATA: AuditRecommendations(
        strategy_approach=StrategyApproach.HYBRID,
        primary_objective="CONVERSIONS",
        budget_allocation={"interest_1": 0.3, "interest_2": 0.3, "broad": 0.4},
    ),
    DataLevel.ZERO_DATA: AuditRecommendations(
        strategy_approach=StrategyApproach.DISCOVERY_FIRST,
        primary_objective="LINK_CLICKS",
        budget_allocation={"broad_discovery": 0.6, "interest_discovery": 0.4},
    ),
}

REVENUE_KEYS = ("purchase_value", "revenue")


def _to_float(value: Any) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    # NaN and infinities are malformed input too
    if number != number or number in (float("inf"), float("-inf")):
        return 0.0
    return number


def _to_int(value: Any) -> int:
    return int(_to_float(value))


def _records(data: Mapping[str, Any], key: str) -> List[Mapping[str, Any]]:
    items = data.get(key) or []
    if not isinstance(items, Iterable) or isinstance(items, (str, bytes, Mapping)):
        return []
    return [item for item in items if isinstance(item, Mapping)]


def summarize_performance(
    insights: List[Mapping[str, Any]], campaigns_count: int, assumed_aov: float
) -> PerformanceSummary:
    spend = conversions = revenue = 0.0
    clicks = impressions = 0
    for row in insights:
        spend += _to_float(row.get("spend"))
        conversions += _to_float(row.get("purchases")) + _to_float(row.get("leads"))
        clicks += _to_int(row.get("clicks"))
        impressions += _to_int(row.get("impressions"))
        revenue += max(_to_float(row.get(key)) for key in REVENUE_KEYS)

    roas_is_estimated = revenue <= 0
    if spend <= 0:
        avg_roas = 0.0
    elif roas_is_estimated:
        avg_roas = conversions * assumed_aov / spend
    else:
        avg_roas = revenue / spend

    return PerformanceSummary(
        total_spend=spend,
        total_conversions=conversions,
        total_clicks=clicks,
        total_impressions=impressions,
        avg_cpa=spend / conversions if conversions > 0 else 0.0,
        avg_roas=avg_roas,
        avg_ctr=clicks / impressions * 100 if impressions > 0 else 0.0,
        roas_is_estimated=roas_is_estimated,
        campaigns_count=campaigns_count or len(insights),
    )


def count_pixel_events(pixels: List[Mapping[str, Any]]) -> Dict[str, int]:
    events: Dict[str, int] = defaultdict(int)
    for pixel in pixels:
        for event in _records(pixel, "events"):
            name = str(event.get("event") or "UNKNOWN")
            events[name] += max(_to_int(event.get("count")), 0)
    return dict(events)


def classify_pixel_health(usable_events: int) -> PixelHealth:
    if usable_events > RICH_PIXEL_EVENTS:
        return PixelHealth.RICH
    if usable_events > BASIC_PIXEL_EVENTS:
        return PixelHealth.BASIC
    return PixelHealth.NONE


def classify_data_level(summary: PerformanceSummary, usable_events: int) -> DataLevel:
    if (
        summary.total_conversions >= RICH_MIN_CONVERSIONS
        and summary.avg_roas > RICH_MIN_ROAS
    ):
        return DataLevel.RICH_DATA
    if summary.total_conversions >= LOW_MIN_CONVERSIONS or (
        summary.total_spend > LOW_MIN_SPEND and usable_events > LOW_MIN_EVENTS
    ):
        return DataLevel.LOW_DATA
    return DataLevel.ZERO_DATA


def identify_risks(
    pixel_health: PixelHealth, custom_audience_count: int, summary: PerformanceSummary
) -> List[str]:
    risks = []
    if pixel_health == PixelHealth.NONE:
        risks.append("No pixel data - install Meta Pixel immediately")
    if custom_audience_count == 0:
        risks.append("No custom audiences - limited retargeting options")
    if summary.total_impressions > 0 and summary.avg_ctr < LOW_CTR_THRESHOLD:
        risks.append("Low CTR indicates creative fatigue or poor targeting")
    if summary.avg_cpa > HIGH_CPA_THRESHOLD:
        risks.append("High CPA - optimize targeting and creatives")
    return risks


def audit_account(
    account_data: Optional[Union[RawAccountData, Mapping[str, Any]]],
    assumed_aov: Optional[float] = None,
) -> AuditResult:
    if isinstance(account_data, RawAccountData):
        data: Mapping[str, Any] = account_data.model_dump()
    elif isinstance(account_data, Mapping):
        data = account_data
    else:
        data = {}

    aov = CampaignConfig.AUDIT_ASSUMED_AOV if assumed_aov is None else assumed_aov
    insights = _records(data, "insights")
    custom_audiences = _records(data, "custom_audiences")
    lookalike_audiences = _records(data, "lookalike_audiences")

    summary = summarize_performance(insights, len(_records(data, "campaigns")), aov)
    pixel_events = count_pixel_events(_records(data, "pixels"))
    usable_events = sum(pixel_events.values())
    pixel_health = classify_pixel_health(usable_events)
    data_level = classify_data_level(summary, usable_events)

    winning_audiences = [
        str(audience.get("name") or audience.get("id") or "")
        for audience in custom_audiences
        if _to_int(audience.get("approximate_count")) > WINNING_AUDIENCE_MIN_SIZE
    ]

    result = AuditResult(
        data_level=data_level,
        pixel_health=pixel_health,
        usable_events=usable_events,
        winning_audiences=winning_audiences,
        account_summary=AccountSummary(
            last_90_days=summary,
            pixel_events=pixel_events,
            audience_sizes=AudienceSizes(
                custom_audiences=len(custom_audiences),
                lookalike_audiences=len(lookalike_audiences),
            ),
        ),
        risks=identify_risks(pixel_health, len(custom_audiences), summary),
        recommendations=TIER_RECOMMENDATIONS[data_level].model_copy(deep=True),
    )

    logger.info(
        "account_audited",
        data_level=data_level.value,
        pixel_health=pixel_health.value,
        conversions=summary.total_conversions,
        roas=summary.avg_roas,
        roas_is_estimated=summary.roas_is_estimated,
        risks=len(result.risks),
    )
    return result


def empty_audit() -> AuditResult:
    """Audit of an account with no history, used when no account data is supplied."""
    return audit_account({})
