"""Placeholder tokens for IDs that only exist once Meta objects are created.

Payloads reference parents by token (``{{CAMPAIGN_ID}}``, ``{{ADSET_0_ID}}``).
A resolution map is built once from whatever IDs are known and applied in a
single pass over the fixed set of fields that can hold a token.
"""

from typing import Any, Dict, List, Optional

from core.models.orchestration import APIPayload

CAMPAIGN_ID = "{{CAMPAIGN_ID}}"
PAGE_ID = "{{PAGE_ID}}"
PIXEL_ID = "{{PIXEL_ID}}"
INSTAGRAM_ACTOR_ID = "{{INSTAGRAM_ACTOR_ID}}"
APPLICATION_ID = "{{APPLICATION_ID}}"
APP_STORE_URL = "{{APP_STORE_URL}}"

PROMOTED_OBJECT_FIELDS = ("page_id", "pixel_id", "application_id", "object_store_url")


def adset_token(index: int) -> str:
    return f"{{{{ADSET_{index}_ID}}}}"


def creative_token(index: int) -> str:
    return f"{{{{CREATIVE_{index}_ID}}}}"


def build_resolution_map(
    campaign_id: Optional[str] = None,
    page_id: Optional[str] = None,
    pixel_id: Optional[str] = None,
    instagram_actor_id: Optional[str] = None,
    application_id: Optional[str] = None,
    app_store_url: Optional[str] = None,
    adset_ids: Optional[List[str]] = None,
    creative_ids: Optional[List[str]] = None,
) -> Dict[str, str]:
    """Map every token whose real value is known; unknown IDs are left out."""
    known = {
        CAMPAIGN_ID: campaign_id,
        PAGE_ID: page_id,
        PIXEL_ID: pixel_id,
        INSTAGRAM_ACTOR_ID: instagram_actor_id,
        APPLICATION_ID: application_id,
        APP_STORE_URL: app_store_url,
    }
    resolution = {token: str(value) for token, value in known.items() if value}
    for index, value in enumerate(adset_ids or []):
        if value:
            resolution[adset_token(index)] = str(value)
    for index, value in enumerate(creative_ids or []):
        if value:
            resolution[creative_token(index)] = str(value)
    return resolution


def _sub(value: Any, resolution: Dict[str, str]) -> Any:
    if isinstance(value, str):
        return resolution.get(value, value)
    return value


def resolve_payload(api_payload: APIPayload, resolution: Dict[str, str]) -> APIPayload:
    """Return a copy of ``api_payload`` with known tokens substituted."""
    if not resolution:
        return api_payload

    resolved = api_payload.model_copy(deep=True)
    body = resolved.payload

    for field in ("campaign_id", "adset_id", "instagram_actor_id"):
        if field in body:
            body[field] = _sub(body[field], resolution)

    creative = body.get("creative")
    if isinstance(creative, dict) and "creative_id" in creative:
        creative["creative_id"] = _sub(creative["creative_id"], resolution)

    promoted = body.get("promoted_object")
    if isinstance(promoted, dict):
        for field in PROMOTED_OBJECT_FIELDS:
            if field in promoted:
                promoted[field] = _sub(promoted[field], resolution)

    story = body.get("object_story_spec")
    if isinstance(story, dict) and "page_id" in story:
        story["page_id"] = _sub(story["page_id"], resolution)

    for spec in body.get("tracking_specs") or []:
        if isinstance(spec, dict) and isinstance(spec.get("fb_pixel"), list):
            spec["fb_pixel"] = [_sub(pixel, resolution) for pixel in spec["fb_pixel"]]

    resolved.dependencies = [dep for dep in resolved.dependencies if dep not in resolution]
    return resolved
