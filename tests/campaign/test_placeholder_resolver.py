from core.models.orchestration import APIPayload
from services.campaign.placeholder_resolver import (
    CAMPAIGN_ID,
    PAGE_ID,
    PIXEL_ID,
    adset_token,
    build_resolution_map,
    creative_token,
    resolve_payload,
)


def _ad_payload() -> APIPayload:
    return APIPayload(
        endpoint="/act_1/ads",
        payload={
            "adset_id": adset_token(0),
            "creative": {"creative_id": creative_token(1)},
            "tracking_specs": [{"action.type": ["offsite_conversion"], "fb_pixel": [PIXEL_ID]}],
        },
        dependencies=[adset_token(0), creative_token(1), PIXEL_ID],
    )


def test_tokens_use_double_braces():
    assert adset_token(0) == "{{ADSET_0_ID}}"
    assert creative_token(12) == "{{CREATIVE_12_ID}}"


def test_resolution_map_skips_unknown_ids():
    resolution = build_resolution_map(
        campaign_id="c1", page_id=None, pixel_id="", adset_ids=["a0", None], creative_ids=["cr0"]
    )

    assert resolution == {CAMPAIGN_ID: "c1", adset_token(0): "a0", creative_token(0): "cr0"}


def test_resolve_payload_substitutes_known_tokens():
    resolution = build_resolution_map(pixel_id="777", adset_ids=["a0"])

    resolved = resolve_payload(_ad_payload(), resolution)

    assert resolved.payload["adset_id"] == "a0"
    assert resolved.payload["tracking_specs"][0]["fb_pixel"] == ["777"]
    # Unresolved tokens stay in place and remain dependencies
    assert resolved.payload["creative"]["creative_id"] == creative_token(1)
    assert resolved.dependencies == [creative_token(1)]


def test_resolve_payload_leaves_original_untouched():
    original = _ad_payload()

    resolve_payload(original, {adset_token(0): "a0"})

    assert original.payload["adset_id"] == adset_token(0)


def test_empty_resolution_returns_same_payload():
    original = _ad_payload()

    assert resolve_payload(original, {}) is original


def test_page_id_resolved_inside_story_spec():
    creative = APIPayload(
        endpoint="/act_1/adcreatives",
        payload={"object_story_spec": {"page_id": PAGE_ID, "link_data": {"link": "https://x.io"}}},
        dependencies=[PAGE_ID],
    )

    resolved = resolve_payload(creative, build_resolution_map(page_id="555"))

    assert resolved.payload["object_story_spec"]["page_id"] == "555"
    assert resolved.dependencies == []
