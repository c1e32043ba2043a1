from typing import Dict, List, Optional
from urllib.parse import urljoin, urlparse

import httpx
from bs4 import BeautifulSoup
from structlog import get_logger  # type: ignore

from config.campaign_config import CampaignConfig
from core.infrastructure.http_client import http_request
from core.models.content import ExtractedContent, LinkItem, ProductInfo, StructuredContent
from exceptions.custom_exceptions import ContentFetchException

logger = get_logger(__name__)

NOISE_SELECTORS = "script, style, noscript, nav, footer, header, .cookie, .popup, .modal"
HEADING_TAGS = ["h1", "h2", "h3", "h4", "h5", "h6"]
HTML_CONTENT_TYPES = ("text/html", "application/xhtml+xml")

META_NAME_FIELDS = {
    "description": "description",
    "keywords": "keywords",
    "author": "author",
    "twitter_title": "twitter:title",
    "twitter_description": "twitter:description",
}
META_PROPERTY_FIELDS = {
    "og_title": "og:title",
    "og_description": "og:description",
    "og_image": "og:image",
    "published_time": "article:published_time",
}

MAX_TEXT_BLOCKS = 50
MAX_IMAGES = 20
MAX_HEADINGS = 20
MAX_PARAGRAPHS = 30
MAX_LIST_ITEMS = 50
MAX_LINKS = 30
MAX_FEATURES = 20
MAX_BENEFITS = 20
MAX_TESTIMONIALS = 10


async def fetch_html(url: str) -> str:
    parsed = urlparse(url)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise ContentFetchException("Only http and https URLs can be fetched", details={"url": url})

    try:
        response = await http_request(
            "GET",
            url,
            max_attempts=2,
            base_delay=1.0,
            headers={"User-Agent": CampaignConfig.USER_AGENT, "Accept": "text/html"},
            timeout=CampaignConfig.FETCH_TIMEOUT_SECONDS,
            follow_redirects=True,
        )
    except httpx.HTTPStatusError as e:
        logger.warning("content_fetch_failed", url=url, status=e.response.status_code)
        raise ContentFetchException(
            f"Failed to fetch page: HTTP {e.response.status_code}",
            details={"url": url, "status": e.response.status_code},
        ) from e
    except httpx.HTTPError as e:
        logger.warning("content_fetch_failed", url=url, error=str(e))
        raise ContentFetchException(f"Failed to fetch page: {e}", details={"url": url}) from e

    content_type = response.headers.get("content-type", "")
    if content_type and not content_type.lower().startswith(HTML_CONTENT_TYPES):
        raise ContentFetchException(
            "URL did not return an HTML page",
            details={"url": url, "content_type": content_type},
        )

    logger.info("content_fetched", url=url, bytes=len(response.content))
    return response.text


class ContentExtractor:
    def extract(self, html: str, base_url: Optional[str] = None) -> ExtractedContent:
        soup = BeautifulSoup(html or "", "html.parser")
        # Metadata lives in <head>; read it before stripping page chrome
        metadata = self._extract_metadata(soup)
        for element in soup.select(NOISE_SELECTORS):
            element.decompose()

        return ExtractedContent(
            title=self._extract_title(soup),
            text_blocks=self._extract_text_blocks(soup),
            images=self._extract_images(soup, base_url),
            metadata=metadata,
            structured_content=StructuredContent(
                headings=self._texts(soup.find_all(HEADING_TAGS), 0)[:MAX_HEADINGS],
                paragraphs=self._texts(soup.find_all("p"), 30)[:MAX_PARAGRAPHS],
                lists=self._texts(soup.select("ul li, ol li"), 10)[:MAX_LIST_ITEMS],
                links=self._extract_links(soup),
                product_info=self._extract_product_info(soup),
            ),
        )

    def _texts(self, elements, min_length: int) -> List[str]:
        texts = []
        for element in elements:
            text = element.get_text(" ", strip=True)
            if text and len(text) > min_length:
                texts.append(text)
        return texts

    def _extract_title(self, soup: BeautifulSoup) -> str:
        if soup.title and soup.title.string and soup.title.string.strip():
            return soup.title.string.strip()
        h1 = soup.find("h1")
        if h1 and h1.get_text(strip=True):
            return h1.get_text(" ", strip=True)
        return "Untitled"

    def _extract_text_blocks(self, soup: BeautifulSoup) -> List[str]:
        return self._texts(soup.find_all(["p", *HEADING_TAGS]), 20)[:MAX_TEXT_BLOCKS]

    def _extract_images(self, soup: BeautifulSoup, base_url: Optional[str]) -> List[str]:
        images = []
        for img in soup.find_all("img"):
            src = img.get("src") or img.get("data-src")
            alt = (img.get("alt") or "").strip()
            if not src or not alt:
                continue
            lowered = src.lower()
            if "icon" in lowered or "logo" in lowered or lowered.startswith("data:"):
                continue
            url = urljoin(base_url, src) if base_url else src
            if url not in images:
                images.append(url)
        return images[:MAX_IMAGES]

    def _extract_metadata(self, soup: BeautifulSoup) -> Dict[str, str]:
        metadata = {}
        for key, name in META_NAME_FIELDS.items():
            tag = soup.find("meta", attrs={"name": name})
            metadata[key] = tag.get("content", "").strip() if tag else ""
        for key, prop in META_PROPERTY_FIELDS.items():
            tag = soup.find("meta", attrs={"property": prop})
            metadata[key] = tag.get("content", "").strip() if tag else ""
        canonical = soup.find("link", rel="canonical")
        metadata["canonical"] = canonical.get("href", "").strip() if canonical else ""
        return metadata

    def _extract_links(self, soup: BeautifulSoup) -> List[LinkItem]:
        links = []
        for a in soup.find_all("a", href=True):
            text = a.get_text(" ", strip=True)
            if 5 < len(text) < 100:
                links.append(LinkItem(text=text, href=a["href"]))
        return links[:MAX_LINKS]

    def _extract_product_info(self, soup: BeautifulSoup) -> ProductInfo:
        price_tag = soup.select_one(".price, [class*='price'], [data-price]") or soup.select_one(
            "[class*='cost']"
        )
        price = price_tag.get_text(" ", strip=True) if price_tag else ""
        return ProductInfo(
            price=price or None,
            features=self._texts(soup.select(".feature, .features, [class*='feature']"), 10)[:MAX_FEATURES],
            benefits=self._texts(soup.select(".benefit, .benefits, [class*='benefit']"), 10)[:MAX_BENEFITS],
            testimonials=self._texts(
                soup.select(".testimonial, .review, .quote, [class*='testimonial'], [class*='review']"),
                20,
            )[:MAX_TESTIMONIALS],
        )


# Module-level singleton - reused across all requests
content_extractor = ContentExtractor()


def extract_content(html: str, base_url: Optional[str] = None) -> ExtractedContent:
    return content_extractor.extract(html, base_url)
