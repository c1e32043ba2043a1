import os
from typing import List


def _split_csv(value: str) -> List[str]:
    return [item.strip().upper() for item in value.split(",") if item.strip()]


class CampaignConfig:
    # ===== LLM =====
    OPENAI_API_KEY: str = os.getenv("OPENAI_API_KEY", "")
    STRATEGY_MODEL: str = os.getenv("CAMPAIGN_STRATEGY_MODEL", "gpt-4.1")
    SEMANTIC_MODEL: str = os.getenv("CAMPAIGN_SEMANTIC_MODEL", "gpt-4.1")
    CREATIVE_MODEL: str = os.getenv("CAMPAIGN_CREATIVE_MODEL", "gpt-4.1-mini")
    LLM_TIMEOUT_SECONDS: float = float(os.getenv("CAMPAIGN_LLM_TIMEOUT", "60"))

    # ===== META GRAPH API =====
    META_GRAPH_VERSION: str = os.getenv("META_GRAPH_VERSION", "v22.0")
    META_HTTP_TIMEOUT: float = float(os.getenv("META_HTTP_TIMEOUT", "30"))

    # ===== CAMPAIGN DEFAULTS =====
    DEFAULT_GEOS: List[str] = _split_csv(os.getenv("CAMPAIGN_DEFAULT_GEOS", "US"))
    DEFAULT_CAMPAIGN_DAYS: int = int(os.getenv("CAMPAIGN_DEFAULT_DAYS", "7"))
    MAX_TOTAL_CREATIVES: int = int(os.getenv("CAMPAIGN_MAX_CREATIVES", "5"))
    MAX_BASE_ASSETS: int = 5
    PLACEHOLDER_IMAGE_URL: str = "https://placehold.co/1080x1080?text=Product+Image"

    # ===== AUDIT =====
    # Revenue per conversion used when insights carry no purchase value.
    AUDIT_ASSUMED_AOV: float = float(os.getenv("AUDIT_ASSUMED_AOV", "50"))

    # ===== CONTENT EXTRACTION =====
    FETCH_TIMEOUT_SECONDS: float = float(os.getenv("CAMPAIGN_FETCH_TIMEOUT", "15"))
    USER_AGENT: str = os.getenv(
        "SCRAPER_USER_AGENT",
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
    )
    MAX_TEXT_CHARS: int = 50000

    # ===== JOBS =====
    JOB_TTL_MINUTES: int = int(os.getenv("CAMPAIGN_JOB_TTL_MINUTES", "60"))
