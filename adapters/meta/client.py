from typing import Any, Optional

import httpx
import structlog

from adapters.meta.exceptions import MetaAPIError
from config.campaign_config import CampaignConfig

META_BASE_URL = f"https://graph.facebook.com/{CampaignConfig.META_GRAPH_VERSION}"

logger = structlog.get_logger(__name__)

# Module-level client - reused across all requests for connection pooling
_http_client: Optional[httpx.AsyncClient] = None


def _get_http_client() -> httpx.AsyncClient:
    global _http_client
    if _http_client is None:
        _http_client = httpx.AsyncClient(
            base_url=META_BASE_URL,
            timeout=CampaignConfig.META_HTTP_TIMEOUT,
        )
    return _http_client


async def close_meta_http_client() -> None:
    global _http_client
    if _http_client is not None:
        await _http_client.aclose()
        _http_client = None


class MetaClient:
    """Read-only Graph API access used by the pipeline (interest search)."""

    def __init__(self, access_token: str):
        self.access_token = access_token

    def _headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.access_token}"}

    async def get(
        self,
        endpoint: str,
        params: Optional[dict[str, Any]] = None,
    ) -> dict[str, Any]:
        client = _get_http_client()
        response = await client.get(endpoint, params=params, headers=self._headers())
        return self._handle_response(response)

    def _handle_response(self, response: httpx.Response) -> dict[str, Any]:
        if response.status_code != 200:
            try:
                error_data = response.json()
            except ValueError:
                error_data = {"error": {"message": response.text[:200]}}
            logger.error(
                "Meta API error", status=response.status_code, error=error_data
            )
            error_msg = error_data.get("error", {}).get("message", "Unknown error")
            raise MetaAPIError(error_msg, response.status_code, error_data)

        return response.json()
