"""End-to-end campaign construction: product URL in, Meta payloads out.

Stages run strictly in order. After each one the whole progress object is
published to the sink so a caller can poll it; a failure still publishes the
partial snapshot together with the error.
"""

import time
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import structlog
import structlog.contextvars

from agents.meta.creative_agent import CreativeBrief, CreativeStrategyAgent, creative_agent
from agents.meta.semantic_agent import SemanticAnalyzer, semantic_analyzer
from agents.meta.strategy_agent import StrategyEngine, strategy_engine
from config.campaign_config import CampaignConfig
from core.infrastructure.context import auth_context
from core.models.audience import AudienceResult
from core.models.content import ExtractedContent, SemanticAnalysis
from core.models.creative import AssetType, BaseCreativeAsset, BrandGuidelines
from core.models.orchestration import CampaignStructure
from core.models.pipeline import (
    BuildCampaignRequest,
    PipelineProgress,
    PipelineStage,
    PipelineStatus,
)
from core.models.placement import PlacementPositions
from core.models.strategy import CampaignInput
from exceptions.custom_exceptions import BusinessValidationException
from services.campaign.account_auditor import audit_account, empty_audit
from services.campaign.audience_constructor import AudienceConstructor, audience_constructor
from services.campaign.budget_optimizer import budget_inputs, optimize_budgets
from services.campaign.campaign_orchestrator import orchestrate
from services.campaign.content_extractor import extract_content, fetch_html
from services.campaign.placement_intelligence import determine_placements
from services.campaign.progress_store import ProgressSink

logger = structlog.get_logger(__name__)

ACCOUNT_PLACEHOLDER = "{{AD_ACCOUNT_ID}}"
AVOID_WORDS = ["cheap", "spam"]


def base_creative_assets(
    content: ExtractedContent, analysis: SemanticAnalysis, landing_page_url: str
) -> List[BaseCreativeAsset]:
    images = content.images[: CampaignConfig.MAX_BASE_ASSETS] or [CampaignConfig.PLACEHOLDER_IMAGE_URL]
    primary_texts = [analysis.value_proposition] if analysis.value_proposition else []
    descriptions = [analysis.unique_selling_point] if analysis.unique_selling_point else []
    return [
        BaseCreativeAsset(
            type=AssetType.IMAGE,
            asset_url=url,
            primary_texts=primary_texts,
            headlines=[content.title],
            descriptions=descriptions,
            cta="LEARN_MORE",
            landing_page_url=landing_page_url,
        )
        for url in images
    ]


def brand_guidelines(analysis: SemanticAnalysis) -> BrandGuidelines:
    return BrandGuidelines(
        tone="professional",
        voice=analysis.brand_tone or "friendly and approachable",
        key_messages=[m for m in (analysis.value_proposition, analysis.unique_selling_point) if m],
        avoid_words=list(AVOID_WORDS),
    )


def campaign_name(analysis: SemanticAnalysis, request: BuildCampaignRequest) -> str:
    today = datetime.now(timezone.utc).date().isoformat()
    return f"{analysis.category} - {request.campaign_purpose.value.upper()} - {today}"


def _usable(audiences: List[AudienceResult]) -> List[AudienceResult]:
    return [a for a in audiences if a.is_usable]


class CampaignBuilder:
    def __init__(
        self,
        semantic: Optional[SemanticAnalyzer] = None,
        strategy: Optional[StrategyEngine] = None,
        audiences: Optional[AudienceConstructor] = None,
        creatives: Optional[CreativeStrategyAgent] = None,
    ):
        self.semantic = semantic or semantic_analyzer
        self.strategy = strategy or strategy_engine
        self.audiences = audiences or audience_constructor
        self.creatives = creatives or creative_agent

    async def build(
        self,
        request: BuildCampaignRequest,
        sink: Optional[ProgressSink] = None,
        job_id: Optional[str] = None,
    ) -> PipelineProgress:
        progress = PipelineProgress(job_id=job_id or uuid.uuid4().hex)
        structlog.contextvars.bind_contextvars(job_id=progress.job_id, product_url=request.product_url)
        logger.info("campaign_build_started", purpose=request.campaign_purpose.value, budget=request.budget)
        try:
            await self._run(request, progress, sink)
        except Exception as e:
            message = str(e) or type(e).__name__
            progress.status = PipelineStatus.FAILED
            progress.errors.append(message)
            progress.steps[progress.current_step.value] = {"status": "failed", "error": message}
            logger.error("campaign_build_failed", step=progress.current_step.value, error=message)
            await self._publish(progress, sink)
        finally:
            structlog.contextvars.unbind_contextvars("job_id", "product_url")
        return progress

    async def _run(
        self, request: BuildCampaignRequest, progress: PipelineProgress, sink: Optional[ProgressSink]
    ) -> None:
        # 1. content
        started = self._begin(progress, PipelineStage.CONTENT_EXTRACTION)
        await self._publish(progress, sink)
        html = await fetch_html(request.product_url)
        content = extract_content(html, base_url=request.product_url)
        product_info = content.structured_content.product_info
        await self._complete(
            progress,
            sink,
            started,
            title=content.title,
            description=content.metadata.get("description", ""),
            images_found=len(content.images),
            features_found=len(product_info.features),
            benefits_found=len(product_info.benefits),
            price=product_info.price,
        )

        # 2. semantic analysis
        started = self._begin(progress, PipelineStage.SEMANTIC_ANALYSIS)
        geos = request.geo_targets or CampaignConfig.DEFAULT_GEOS
        analysis = await self.semantic.analyze(content.analysis_text(), geos=geos)
        await self._complete(
            progress,
            sink,
            started,
            summary=analysis.summary,
            category=analysis.category,
            brand_tone=analysis.brand_tone,
            value_proposition=analysis.value_proposition,
            target_audience=analysis.audience_persona,
            keywords=analysis.keywords[:10],
            target_segments=[s.segment for s in analysis.target_segments],
            main_competitors=[c.name for c in analysis.competitor_analysis.main_competitors],
        )

        # 3. account audit
        started = self._begin(progress, PipelineStage.ACCOUNT_AUDIT)
        audit = audit_account(request.raw_account_data) if request.raw_account_data else empty_audit()
        await self._complete(
            progress,
            sink,
            started,
            data_level=audit.data_level.value,
            pixel_health=audit.pixel_health.value,
            risks=audit.risks,
        )

        # 4. strategy
        started = self._begin(progress, PipelineStage.STRATEGY)
        assets = base_creative_assets(content, analysis, request.product_url)
        campaign_input = CampaignInput(
            campaign_name=campaign_name(analysis, request),
            budget_total=request.budget,
            duration_days=request.duration_days,
            creative_assets=assets,
            desired_geos=geos,
            constraints=request.constraints,
            flags=request.flags,
        )
        strategy = await self.strategy.strategize(
            audit, analysis, request.campaign_purpose.to_business_goal(), campaign_input
        )
        if not strategy.adset_strategies:
            raise BusinessValidationException("Strategy produced no ad sets")
        if strategy.is_fallback:
            progress.warnings.append(f"Strategy: {strategy.ai_reasoning}")
        await self._complete(
            progress,
            sink,
            started,
            approach=strategy.approach.value,
            campaign_objective=strategy.campaign_objective.value,
            campaign_name=strategy.campaign_name,
            adsets_planned=len(strategy.adset_strategies),
            adset_types=[a.type.value for a in strategy.adset_strategies],
            budget_allocation=strategy.budget_allocation,
            ai_reasoning=strategy.ai_reasoning,
            is_fallback=strategy.is_fallback,
        )

        # 5. audiences
        started = self._begin(progress, PipelineStage.AUDIENCES)
        constructed = await self.audiences.construct_audiences(
            strategy, geos=geos, access_token=auth_context.access_token or None
        )
        audiences = constructed.audiences
        for audience in audiences:
            progress.warnings.extend(f"{audience.name}: {m}" for m in audience.validation_messages)
            progress.warnings.extend(f"{audience.name}: {m}" for m in audience.overlap_warnings)
        usable = _usable(audiences)
        if not usable:
            raise BusinessValidationException("Every audience failed validation; nothing can be launched")
        await self._complete(
            progress,
            sink,
            started,
            audiences_created=len(audiences),
            audience_details=[
                {
                    "name": a.name,
                    "type": a.type.value,
                    "estimated_reach": a.estimated_reach.model_dump(),
                    "validation_status": a.validation_status.value,
                    "warnings": a.validation_messages,
                }
                for a in audiences
            ],
        )

        # 6. placements
        started = self._begin(progress, PipelineStage.PLACEMENTS)
        placements = determine_placements(usable, assets).placement_strategies
        for placement in placements:
            progress.warnings.extend(f"{placement.name}: {w}" for w in placement.warnings)
        await self._complete(
            progress,
            sink,
            started,
            placements_optimized=len(placements),
            placement_summary=[
                {
                    "adset": p.name,
                    "total_positions": p.placements.total(),
                    "warnings": p.warnings,
                }
                for p in placements
            ],
        )

        # 7. creatives
        started = self._begin(progress, PipelineStage.CREATIVES)
        adset_by_id = {
            audience.adset_id: adset for adset, audience in zip(strategy.adset_strategies, audiences)
        }
        placement_by_id = {p.adset_id: p.placements for p in placements}
        briefs = [
            CreativeBrief(
                adset_id=audience.adset_id,
                name=audience.name,
                type=audience.type,
                creative_count=adset_by_id[audience.adset_id].creative_count,
                placements=placement_by_id.get(audience.adset_id) or PlacementPositions(),
            )
            for audience in usable
        ]
        creatives = await self.creatives.generate_creatives(briefs, assets, brand_guidelines(analysis))
        total_creatives = sum(len(c.creative_variants) for c in creatives)
        await self._complete(
            progress,
            sink,
            started,
            total_creatives=total_creatives,
            creative_breakdown=[
                {
                    "adset": c.adset_id,
                    "variants": len(c.creative_variants),
                    "angles": [v.angle.value for v in c.creative_variants],
                    "is_fallback": c.is_fallback,
                }
                for c in creatives
            ],
        )

        # 8. budget
        started = self._begin(progress, PipelineStage.BUDGET)
        budgets = optimize_budgets(
            strategy,
            budget_inputs(strategy, audiences),
            request.budget,
            request.duration_days,
            request.constraints,
        )
        await self._complete(
            progress,
            sink,
            started,
            total_budget=request.budget,
            budget_allocations=[
                {
                    "adset": b.name,
                    "daily_budget": b.budget_strategy.daily_budget,
                    "bid_strategy": b.bidding_strategy.bid_strategy,
                    "optimization_goal": b.bidding_strategy.optimization_goal,
                }
                for b in budgets
            ],
        )

        # 9. assembly
        started = self._begin(progress, PipelineStage.ASSEMBLY)
        structure = CampaignStructure(
            audit=audit,
            strategy=strategy,
            audiences=audiences,
            placements=placements,
            creatives=creatives,
            budgets=budgets,
        )
        result = orchestrate(
            structure,
            account_id=request.ad_account_id or ACCOUNT_PLACEHOLDER,
            page_id=request.page_id,
            pixel_id=request.pixel_id,
        )
        progress.final_payload = result
        progress.summary = {
            "product": analysis.summary,
            "strategy": strategy.approach.value,
            "campaign_name": strategy.campaign_name,
            "total_budget": request.budget,
            "adsets_created": len(result.adset_payloads),
            "creatives_generated": total_creatives,
            "total_ads": len(result.ad_payloads),
        }
        progress.status = PipelineStatus.COMPLETED
        await self._complete(
            progress,
            sink,
            started,
            next_step=PipelineStage.DONE,
            campaign_name=result.campaign_payload.payload.get("name"),
            objective=result.campaign_payload.payload.get("objective"),
            ad_sets=len(result.adset_payloads),
            creatives=len(result.creative_payloads),
            ads=len(result.ad_payloads),
            risk_flags=[flag.model_dump(mode="json") for flag in result.risk_flags],
        )
        logger.info("campaign_build_completed", **progress.summary)

    def _begin(self, progress: PipelineProgress, stage: PipelineStage) -> float:
        progress.current_step = stage
        return time.perf_counter()

    async def _complete(
        self,
        progress: PipelineProgress,
        sink: Optional[ProgressSink],
        started: float,
        next_step: Optional[PipelineStage] = None,
        **details: Any,
    ) -> None:
        step: Dict[str, Any] = {"status": "completed", **details}
        step["duration_ms"] = round((time.perf_counter() - started) * 1000, 1)
        progress.steps[progress.current_step.value] = step
        logger.info("campaign_build_step", step=progress.current_step.value, duration_ms=step["duration_ms"])
        if next_step is not None:
            progress.current_step = next_step
        await self._publish(progress, sink)

    async def _publish(self, progress: PipelineProgress, sink: Optional[ProgressSink]) -> None:
        if sink is None:
            return
        progress.updated_at = datetime.now(timezone.utc)
        try:
            await sink.publish(progress)
        except Exception as e:
            logger.warning("progress_publish_failed", step=progress.current_step.value, error=str(e))


# Module-level singleton - reused across all requests
campaign_builder = CampaignBuilder()


async def build_campaign(
    request: BuildCampaignRequest,
    sink: Optional[ProgressSink] = None,
    job_id: Optional[str] = None,
) -> PipelineProgress:
    return await campaign_builder.build(request, sink, job_id)
