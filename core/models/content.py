from typing import Dict, List, Optional

from pydantic import BaseModel, Field


class LinkItem(BaseModel):
    text: str
    href: str


class ProductInfo(BaseModel):
    price: Optional[str] = None
    features: List[str] = Field(default_factory=list)
    benefits: List[str] = Field(default_factory=list)
    testimonials: List[str] = Field(default_factory=list)


class StructuredContent(BaseModel):
    headings: List[str] = Field(default_factory=list)
    paragraphs: List[str] = Field(default_factory=list)
    lists: List[str] = Field(default_factory=list)
    links: List[LinkItem] = Field(default_factory=list)
    product_info: ProductInfo = Field(default_factory=ProductInfo)


class ExtractedContent(BaseModel):
    title: str = ""
    text_blocks: List[str] = Field(default_factory=list)
    images: List[str] = Field(default_factory=list)
    metadata: Dict[str, str] = Field(default_factory=dict)
    structured_content: StructuredContent = Field(default_factory=StructuredContent)

    def analysis_text(self, limit: int = 15000) -> str:
        """Flatten the most useful parts of the page into one prompt-sized string."""
        product_info = self.structured_content.product_info
        lines = [
            f"Title: {self.title}",
            f"Description: {self.metadata.get('description', '')}",
            *self.text_blocks[:10],
            *self.structured_content.headings[:5],
            *product_info.features[:5],
            *product_info.benefits[:5],
        ]
        return "\n".join(lines)[:limit]


class TargetSegment(BaseModel):
    segment: str
    description: str = ""
    pain_points: List[str] = Field(default_factory=list)


class GeographicAnalysis(BaseModel):
    origin_country: str = ""
    primary_markets: List[str] = Field(default_factory=list)
    cultural_context: str = ""
    local_preferences: List[str] = Field(default_factory=list)
    regional_competitors: List[str] = Field(default_factory=list)


class Competitor(BaseModel):
    name: str
    region: str = ""
    estimated_price_range: str = ""
    core_strategy: str = ""


class CompetitorAnalysis(BaseModel):
    main_competitors: List[Competitor] = Field(default_factory=list)
    competitive_advantages: List[str] = Field(default_factory=list)
    market_positioning: str = ""
    gap_analysis: str = ""
    win_strategy: str = ""


class MarketSizeEstimation(BaseModel):
    total_addressable_market: str = ""
    serviceable_addressable_market: str = ""
    target_market_size: str = ""
    growth_potential: str = ""


class SemanticAnalysis(BaseModel):
    summary: str
    keywords: List[str] = Field(default_factory=list)
    value_proposition: str = ""
    unique_selling_point: str = ""
    brand_tone: str = ""
    audience_persona: str = ""
    category: str = "General"
    use_cases: List[str] = Field(default_factory=list)
    target_segments: List[TargetSegment] = Field(default_factory=list)
    geographic_analysis: GeographicAnalysis = Field(default_factory=GeographicAnalysis)
    competitor_analysis: CompetitorAnalysis = Field(default_factory=CompetitorAnalysis)
    market_size_estimation: MarketSizeEstimation = Field(default_factory=MarketSizeEstimation)
