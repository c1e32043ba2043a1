import asyncio
import json
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import structlog
from pydantic import BaseModel, Field, ValidationError

from agents.shared.llm import chat_completion, response_text
from config.campaign_config import CampaignConfig
from core.models.creative import (
    AssetType,
    BaseCreativeAsset,
    BrandGuidelines,
    CallToAction,
    CallToActionValue,
    CreativeAngle,
    CreativePayload,
    CreativeStrategyResult,
    CreativeTestPlan,
    CreativeVariant,
    LinkData,
    ObjectStorySpec,
    PerformancePrediction,
    TrackingParameters,
)
from core.models.placement import PlacementPositions
from core.models.strategy import AdSetType
from exceptions.custom_exceptions import AIProcessingException
from utils.json_utils import strip_code_fences
from utils.prompt_loader import load_prompt
from utils.text_utils import slugify

logger = structlog.get_logger(__name__)

ALLOWED_CTAS = {
    "LEARN_MORE", "SHOP_NOW", "SIGN_UP", "DOWNLOAD",
    "GET_QUOTE", "CONTACT_US", "BOOK_TRAVEL", "APPLY_NOW",
}
CTA_LABELS = {
    "learn more": "LEARN_MORE",
    "shop now": "SHOP_NOW",
    "sign up": "SIGN_UP",
    "download": "DOWNLOAD",
    "get quote": "GET_QUOTE",
    "contact us": "CONTACT_US",
    "book now": "BOOK_TRAVEL",
    "apply now": "APPLY_NOW",
}

FALLBACK_ANGLES: Dict[AdSetType, List[CreativeAngle]] = {
    AdSetType.RETARGETING: [CreativeAngle.OFFER, CreativeAngle.URGENCY, CreativeAngle.SOCIAL_PROOF],
    AdSetType.LOOKALIKE: [
        CreativeAngle.BENEFIT, CreativeAngle.SOCIAL_PROOF, CreativeAngle.PAIN, CreativeAngle.OFFER,
    ],
    AdSetType.INTEREST: [
        CreativeAngle.PAIN, CreativeAngle.BENEFIT, CreativeAngle.CURIOSITY, CreativeAngle.SOCIAL_PROOF,
    ],
    AdSetType.BROAD: [
        CreativeAngle.BENEFIT, CreativeAngle.PAIN, CreativeAngle.SOCIAL_PROOF,
        CreativeAngle.CURIOSITY, CreativeAngle.OFFER,
    ],
}

ANGLE_METRICS = {
    CreativeAngle.PAIN: "CTR",
    CreativeAngle.BENEFIT: "CVR",
    CreativeAngle.SOCIAL_PROOF: "CVR",
    CreativeAngle.OFFER: "CVR",
    CreativeAngle.URGENCY: "CTR",
    CreativeAngle.CURIOSITY: "ENGAGEMENT",
}

AUDIENCE_GUIDELINES = {
    AdSetType.RETARGETING: (
        "High-intent audience that knows your brand. Focus on offers, urgency, and social proof. "
        "Use direct language and clear value propositions."
    ),
    AdSetType.LOOKALIKE: (
        "Similar to your customers but may not know your brand. Lead with benefits and social proof. "
        "Build trust and credibility."
    ),
    AdSetType.INTEREST: (
        "Targeted by interests but cold audience. Hook with pain points or curiosity. "
        "Educate about your solution."
    ),
    AdSetType.BROAD: (
        "Cold, diverse audience. Use broad appeal, strong hooks, and clear value propositions. "
        "Test multiple angles."
    ),
}

FALLBACK_INSIGHTS = "Fallback strategy due to AI generation failure"
FALLBACK_TEST_PLAN = CreativeTestPlan(
    primary_test="Creative Angle Testing",
    variables=["message_angle", "visual_style", "cta_type"],
    success_criteria="CTR > 1.5% AND CVR > 2%",
    duration_days=7,
)


@dataclass
class CreativeBrief:
    adset_id: str
    name: str
    type: AdSetType
    creative_count: int
    placements: PlacementPositions = field(default_factory=PlacementPositions)


class _LLMVariant(BaseModel):
    name: str
    angle: CreativeAngle
    hypothesis: str = ""
    primary_text: str
    headline: str
    description: Optional[str] = None
    cta_type: str = "LEARN_MORE"
    expected_metric: str = "CTR"
    instagram_hashtags: List[str] = Field(default_factory=list)
    performance_prediction: PerformancePrediction = Field(default_factory=PerformancePrediction)


class _LLMCreativeOutput(BaseModel):
    creative_variants: List[_LLMVariant]
    testing_framework: CreativeTestPlan = Field(default_factory=CreativeTestPlan)
    ai_insights: str = ""


def normalize_cta(value: Optional[str]) -> str:
    if not value:
        return "LEARN_MORE"
    cleaned = value.strip()
    if cleaned.upper() in ALLOWED_CTAS:
        return cleaned.upper()
    return CTA_LABELS.get(cleaned.lower(), "LEARN_MORE")


def _tracking(brief: CreativeBrief, angle: CreativeAngle, index: int) -> TrackingParameters:
    return TrackingParameters(
        utm_campaign=slugify(brief.name),
        utm_content=f"{angle.value}_{index + 1}",
    )


def _attach_media(link_data: LinkData, asset: BaseCreativeAsset) -> None:
    if asset.type == AssetType.VIDEO:
        link_data.video_id = asset.asset_url
    elif asset.type == AssetType.IMAGE:
        link_data.picture = asset.asset_url


def _build_variant(
    brief: CreativeBrief,
    asset: BaseCreativeAsset,
    index: int,
    *,
    name: str,
    angle: CreativeAngle,
    hypothesis: str,
    expected_metric: str,
    message: str,
    headline: str,
    description: Optional[str],
    cta: str,
    hashtags: Optional[List[str]] = None,
) -> CreativeVariant:
    link_data = LinkData(
        link=asset.landing_page_url,
        message=message,
        name=headline,
        description=description,
        call_to_action=CallToAction(
            type=normalize_cta(cta),
            value=CallToActionValue(link=asset.landing_page_url),
        ),
    )
    _attach_media(link_data, asset)
    return CreativeVariant(
        adset_id=brief.adset_id,
        creative_id=f"{brief.adset_id}_creative_{index + 1}",
        name=name,
        creative_family=asset.creative_family,
        hypothesis=hypothesis,
        angle=angle,
        expected_metric=expected_metric if expected_metric in ("CTR", "CVR", "ENGAGEMENT") else "CTR",
        payload=CreativePayload(name=name, object_story_spec=ObjectStorySpec(link_data=link_data)),
        tracking_parameters=_tracking(brief, angle, index),
        instagram_hashtags=hashtags or [],
    )


def fallback_variant(brief: CreativeBrief, assets: List[BaseCreativeAsset], index: int) -> CreativeVariant:
    asset = assets[index % len(assets)]
    angles = FALLBACK_ANGLES[brief.type]
    angle = angles[index % len(angles)]
    label = angle.value.replace("_", " ").capitalize()
    return _build_variant(
        brief,
        asset,
        index,
        name=f"{brief.name} - {label} {index + 1}",
        angle=angle,
        hypothesis=f"{angle.value} angle will resonate with {brief.type.value} audience",
        expected_metric=ANGLE_METRICS[angle],
        message=asset.primary_texts[0] if asset.primary_texts else "Discover our solution",
        headline=asset.headlines[0] if asset.headlines else "Learn More",
        description=asset.descriptions[0] if asset.descriptions else None,
        cta=asset.cta,
    )


def fallback_strategy(brief: CreativeBrief, assets: List[BaseCreativeAsset]) -> CreativeStrategyResult:
    variants = [fallback_variant(brief, assets, i) for i in range(brief.creative_count)] if assets else []
    return CreativeStrategyResult(
        adset_id=brief.adset_id,
        creative_variants=variants,
        testing_framework=FALLBACK_TEST_PLAN.model_copy(deep=True),
        ai_insights=FALLBACK_INSIGHTS,
        is_fallback=True,
    )


class CreativeStrategyAgent:
    def __init__(self, model: Optional[str] = None):
        self.model = model or CampaignConfig.CREATIVE_MODEL

    async def generate_creatives(
        self,
        adsets: List[CreativeBrief],
        creative_assets: List[BaseCreativeAsset],
        brand_guidelines: Optional[BrandGuidelines] = None,
    ) -> List[CreativeStrategyResult]:
        guidelines = brand_guidelines or BrandGuidelines()
        results = await asyncio.gather(
            *(self._for_adset(brief, creative_assets, guidelines) for brief in adsets)
        )
        logger.info(
            "creatives_generated",
            adsets=len(results),
            variants=sum(len(r.creative_variants) for r in results),
            fallbacks=sum(1 for r in results if r.is_fallback),
        )
        return list(results)

    async def _for_adset(
        self,
        brief: CreativeBrief,
        assets: List[BaseCreativeAsset],
        guidelines: BrandGuidelines,
    ) -> CreativeStrategyResult:
        if not assets:
            logger.warning("creative_assets_missing", adset_id=brief.adset_id)
            return fallback_strategy(brief, assets)
        try:
            return await self._generate(brief, assets, guidelines)
        except Exception as e:
            logger.warning(
                "creative.fallback_used",
                adset_id=brief.adset_id,
                error=str(e) or type(e).__name__,
            )
            return fallback_strategy(brief, assets)

    async def _generate(
        self,
        brief: CreativeBrief,
        assets: List[BaseCreativeAsset],
        guidelines: BrandGuidelines,
    ) -> CreativeStrategyResult:
        prompt = load_prompt("meta/creative_strategy.txt").format(**self._prompt_fields(brief, assets, guidelines))
        response = await chat_completion(
            [
                {
                    "role": "system",
                    "content": (
                        "You are an expert Meta Ads creative strategist with deep knowledge of "
                        "audience psychology and platform best practices. Respond only with valid JSON."
                    ),
                },
                {"role": "user", "content": prompt},
            ],
            model=self.model,
            timeout=CampaignConfig.LLM_TIMEOUT_SECONDS,
            temperature=0.7,
            response_format={"type": "json_object"},
        )
        content = response_text(response)
        if not content:
            raise AIProcessingException("LLM returned empty creative strategy")

        try:
            output = _LLMCreativeOutput.model_validate(json.loads(strip_code_fences(content)))
        except (json.JSONDecodeError, ValidationError) as e:
            logger.error("Failed to parse creative strategy", adset_id=brief.adset_id, error=str(e))
            raise AIProcessingException("Invalid creative strategy from LLM")

        if not output.creative_variants:
            raise AIProcessingException("LLM creative strategy contains no variants")

        variants: List[CreativeVariant] = []
        predictions: Dict[str, PerformancePrediction] = {}
        for index, generated in enumerate(output.creative_variants[: brief.creative_count]):
            variant = _build_variant(
                brief,
                assets[index % len(assets)],
                index,
                name=generated.name,
                angle=generated.angle,
                hypothesis=generated.hypothesis,
                expected_metric=generated.expected_metric,
                message=generated.primary_text,
                headline=generated.headline,
                description=generated.description,
                cta=generated.cta_type,
                hashtags=generated.instagram_hashtags,
            )
            variants.append(variant)
            predictions[variant.creative_id] = generated.performance_prediction

        # Top up short answers so every ad set gets its planned count
        for index in range(len(variants), brief.creative_count):
            variants.append(fallback_variant(brief, assets, index))

        return CreativeStrategyResult(
            adset_id=brief.adset_id,
            creative_variants=variants,
            testing_framework=output.testing_framework,
            performance_predictions=predictions,
            ai_insights=output.ai_insights,
        )

    def _prompt_fields(
        self,
        brief: CreativeBrief,
        assets: List[BaseCreativeAsset],
        guidelines: BrandGuidelines,
    ) -> Dict[str, Any]:
        asset_lines = []
        for i, asset in enumerate(assets, start=1):
            asset_lines.append(
                f"Asset {i}:\n"
                f"- Type: {asset.type.value}\n"
                f"- Current Headlines: {', '.join(asset.headlines) or 'N/A'}\n"
                f"- Current Primary Texts: {', '.join(asset.primary_texts) or 'N/A'}\n"
                f"- CTA: {asset.cta}\n"
                f"- Landing Page: {asset.landing_page_url}"
            )
        angle_focus = (
            "focus on offer, urgency, social_proof"
            if brief.type == AdSetType.RETARGETING
            else "mix pain, benefit, curiosity, social_proof"
        )
        return {
            "creative_count": brief.creative_count,
            "adset_name": brief.name,
            "adset_type": brief.type.value,
            "placements": brief.placements.model_dump_json(),
            "assets": "\n".join(asset_lines),
            "tone": guidelines.tone,
            "voice": guidelines.voice,
            "key_messages": ", ".join(guidelines.key_messages) or "N/A",
            "avoid_words": ", ".join(guidelines.avoid_words) or "N/A",
            "angle_focus": angle_focus,
            "audience_guidelines": AUDIENCE_GUIDELINES[brief.type],
        }


# Module-level singleton - reused across all requests
creative_agent = CreativeStrategyAgent()
