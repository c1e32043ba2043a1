import json
from typing import List, Optional

import structlog
from pydantic import ValidationError

from agents.shared.llm import chat_completion, response_text
from config.campaign_config import CampaignConfig
from core.models.content import SemanticAnalysis
from exceptions.custom_exceptions import AIProcessingException
from utils.json_utils import strip_code_fences
from utils.prompt_loader import load_prompt
from utils.text_utils import safe_truncate

logger = structlog.get_logger(__name__)

SYSTEM_PROMPT = (
    "You are an elite growth auditor specializing in hyper-local competitive "
    "intelligence. You never confuse neighbouring regional brands. "
    "Respond only with valid JSON."
)


class SemanticAnalyzer:
    def __init__(self, model: Optional[str] = None):
        self.model = model or CampaignConfig.SEMANTIC_MODEL

    async def analyze(self, text: str, geos: Optional[List[str]] = None) -> SemanticAnalysis:
        if not text or not text.strip():
            raise AIProcessingException("No content available for semantic analysis")

        prompt = load_prompt("meta/semantic_analysis.txt").format(
            content=safe_truncate(text, CampaignConfig.MAX_TEXT_CHARS),
            region=", ".join(geos) if geos else "Infer from the content",
        )
        messages = [
            {"role": "system", "content": SYSTEM_PROMPT},
            {"role": "user", "content": prompt},
        ]

        try:
            response = await chat_completion(
                messages,
                model=self.model,
                timeout=CampaignConfig.LLM_TIMEOUT_SECONDS,
                temperature=0.2,
                response_format={"type": "json_object"},
            )
        except Exception as e:
            logger.error("Semantic analysis call failed", error=str(e) or type(e).__name__)
            raise AIProcessingException(f"AI semantic analysis failed: {e}") from e

        content = response_text(response)
        if not content:
            raise AIProcessingException("AI semantic analysis returned no content")

        try:
            analysis = SemanticAnalysis.model_validate(json.loads(strip_code_fences(content)))
        except (json.JSONDecodeError, ValidationError) as e:
            logger.error("Failed to parse semantic analysis", error=str(e))
            raise AIProcessingException("AI semantic analysis returned invalid JSON")

        logger.info(
            "semantic_analysis_completed",
            category=analysis.category,
            keywords=len(analysis.keywords),
            competitors=len(analysis.competitor_analysis.main_competitors),
        )
        return analysis


semantic_analyzer = SemanticAnalyzer()
