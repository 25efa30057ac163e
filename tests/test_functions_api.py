import json

import httpx
import pytest

from closet.auth.deps import get_current_user_id
from closet.core.errors import AICreditsExhausted, AIUpstreamError, MissingCategories, NotFound
from closet.main import app
from closet.services.llm import get_ai_gateway
from closet.services.llm.client import AIGateway
from closet.workflows.functions import FunctionsClient
from tests.fixtures import USER, add_item, image_reply, status_error

FRAME = "data:image/jpeg;base64,/9j/AAAA"


def _prompt(fake) -> str:
    return fake.calls[-1]["messages"][0]["content"]


# detect-clothing


@pytest.mark.asyncio
async def test_detect_without_image_is_not_ready(client: httpx.AsyncClient, fake_ai):
    fake = fake_ai('{"ready": true, "confidence": 99}')
    resp = await client.post("/v1/functions/detect-clothing", json={})
    assert resp.status_code == 200
    body = resp.json()
    assert body["ready"] is False
    assert body["feedback"] == "No image provided"
    assert fake.calls == []


@pytest.mark.asyncio
async def test_detect_clamps_confidence(client: httpx.AsyncClient, fake_ai):
    fake_ai('{"ready": true, "confidence": 150, "feedback": "Good - capturing!", "clothing_type": "jeans"}')
    resp = await client.post("/v1/functions/detect-clothing", json={"imageBase64": FRAME})
    assert resp.status_code == 200
    body = resp.json()
    assert body == {"ready": True, "confidence": 100, "feedback": "Good - capturing!", "clothing_type": "jeans"}


@pytest.mark.asyncio
async def test_detect_rate_limited_is_soft_not_ready(client: httpx.AsyncClient, fake_ai):
    fake_ai(status_error(429))
    resp = await client.post("/v1/functions/detect-clothing", json={"imageBase64": FRAME})
    assert resp.status_code == 200
    assert resp.json()["ready"] is False
    assert resp.json()["feedback"] == "Please wait a moment..."


@pytest.mark.asyncio
async def test_detect_unparseable_reply_is_scanning(client: httpx.AsyncClient, fake_ai):
    fake_ai("I think there is a shirt")
    resp = await client.post("/v1/functions/detect-clothing", json={"imageBase64": FRAME})
    assert resp.status_code == 200
    assert resp.json() == {"ready": False, "confidence": 0, "feedback": "Scanning...", "clothing_type": None}


@pytest.mark.asyncio
async def test_detect_upstream_fault_is_error_scanning(client: httpx.AsyncClient, fake_ai):
    fake_ai(status_error(500))
    resp = await client.post("/v1/functions/detect-clothing", json={"imageBase64": FRAME})
    assert resp.status_code == 502
    body = resp.json()
    assert body["ready"] is False
    assert body["feedback"] == "Error scanning"


@pytest.mark.asyncio
async def test_unconfigured_key_is_server_error(client: httpx.AsyncClient):
    app.dependency_overrides[get_ai_gateway] = lambda: AIGateway(api_key="")
    try:
        resp = await client.post("/v1/functions/detect-clothing", json={"imageBase64": FRAME})
        assert resp.status_code == 500
        assert resp.json()["error"] == "AI service not configured"
        resp = await client.post("/v1/functions/analyze-clothing", json={"imageBase64": FRAME})
        assert resp.status_code == 500
    finally:
        app.dependency_overrides.pop(get_ai_gateway, None)


# analyze-clothing


@pytest.mark.asyncio
async def test_analyze_returns_vocabulary_tags(client: httpx.AsyncClient, fake_ai):
    fake = fake_ai(
        '```json\n{"category": "tops", "subtype": "polo", "primary_color": "navy", '
        '"season": "summer", "pattern": "solid", "dress_level": "smart-casual", "layer_role": "base"}\n```'
    )
    resp = await client.post("/v1/functions/analyze-clothing", json={"imageBase64": FRAME})
    assert resp.status_code == 200
    assert resp.json() == {
        "category": "tops",
        "subtype": "polo",
        "primary_color": "navy",
        "season": "summer",
        "pattern": "solid",
        "dress_level": "smart-casual",
        "layer_role": "base",
    }
    content = fake.calls[0]["messages"][0]["content"]
    assert content[1] == {"type": "image_url", "image_url": {"url": FRAME}}


@pytest.mark.asyncio
async def test_analyze_omits_off_vocabulary_tags(client: httpx.AsyncClient, fake_ai):
    fake_ai('{"category": "tops", "subtype": "cape", "primary_color": "plaid-ish", "season": 3}')
    resp = await client.post("/v1/functions/analyze-clothing", json={"imageBase64": FRAME})
    assert resp.status_code == 200
    assert resp.json() == {"category": "tops"}


@pytest.mark.asyncio
async def test_analyze_parse_failure(client: httpx.AsyncClient, fake_ai):
    fake_ai("no idea")
    resp = await client.post("/v1/functions/analyze-clothing", json={"imageBase64": FRAME})
    assert resp.status_code == 500
    assert resp.json()["error"] == "Failed to parse AI response"


@pytest.mark.asyncio
async def test_analyze_missing_image(client: httpx.AsyncClient, fake_ai):
    fake_ai("{}")
    resp = await client.post("/v1/functions/analyze-clothing", json={})
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_analyze_rate_limited(client: httpx.AsyncClient, fake_ai):
    fake_ai(status_error(429))
    resp = await client.post("/v1/functions/analyze-clothing", json={"imageBase64": FRAME})
    assert resp.status_code == 429
    assert "Rate limit" in resp.json()["error"]


# remove-background


@pytest.mark.asyncio
async def test_remove_background_returns_image(client: httpx.AsyncClient, fake_ai):
    fake = fake_ai(image_reply("data:image/png;base64,iVBORw0KGgo="))
    resp = await client.post("/v1/functions/remove-background", json={"imageBase64": FRAME})
    assert resp.status_code == 200
    assert resp.json() == {"image": "data:image/png;base64,iVBORw0KGgo="}
    call = fake.calls[0]
    assert call["model"] == AIGateway().model_image
    assert call["extra_body"] == {"modalities": ["image", "text"]}


@pytest.mark.asyncio
async def test_remove_background_credits_exhausted(client: httpx.AsyncClient, fake_ai):
    fake_ai(status_error(402))
    resp = await client.post("/v1/functions/remove-background", json={"imageBase64": FRAME})
    assert resp.status_code == 402
    assert "credits" in resp.json()["error"]


@pytest.mark.asyncio
async def test_remove_background_without_image_in_reply(client: httpx.AsyncClient, fake_ai):
    fake_ai("Sorry, I can only describe images.")
    resp = await client.post("/v1/functions/remove-background", json={"imageBase64": FRAME})
    assert resp.status_code == 500
    assert resp.json()["error"] == "No image returned from AI"


# build-outfit


@pytest.mark.asyncio
async def test_build_outfit_requires_ids(client: httpx.AsyncClient, fake_ai):
    fake_ai("{}")
    resp = await client.post("/v1/functions/build-outfit", json={"userId": USER})
    assert resp.status_code == 400
    assert resp.json()["error"] == "Missing userId or anchorItemId"


@pytest.mark.asyncio
async def test_build_outfit_unknown_anchor(client: httpx.AsyncClient, fake_ai):
    fake_ai("{}")
    resp = await client.post("/v1/functions/build-outfit", json={"userId": USER, "anchorItemId": "nope"})
    assert resp.status_code == 404
    assert resp.json()["error"] == "Anchor item not found"


@pytest.mark.asyncio
async def test_build_outfit_other_user_is_forbidden(client: httpx.AsyncClient, fake_ai):
    fake_ai("{}")
    resp = await client.post("/v1/functions/build-outfit", json={"userId": "someone-else", "anchorItemId": "x"})
    assert resp.status_code == 403


@pytest.mark.asyncio
@pytest.mark.parametrize("path", ["build-outfit", "suggest-outfit"])
async def test_closet_functions_require_bearer_token(client: httpx.AsyncClient, gateway, fake_ai, path):
    fake_ai("{}")
    anchor = await add_item(gateway, "tops", user_id="victim", notes="private note")
    app.dependency_overrides.pop(get_current_user_id, None)
    resp = await client.post(f"/v1/functions/{path}", json={"userId": "victim", "anchorItemId": anchor.id})
    assert resp.status_code == 401
    assert "private note" not in resp.text


@pytest.mark.asyncio
async def test_build_outfit_flags_empty_category_and_links_shopping(client: httpx.AsyncClient, gateway, fake_ai):
    anchor = await add_item(gateway, "tops", subtype="polo", primary_color="navy")
    jeans = await add_item(gateway, "bottoms", subtype="jeans")
    reply = {
        "closet_picks": {"top": None, "bottom": jeans.id, "shoes": None, "outerwear": None, "accessories": []},
        "shopping_suggestions": [
            {
                "category": "shoes",
                "description": "leather sneakers",
                "color": "white",
                "style": "minimal",
                "reasoning": "Clean and versatile",
            }
        ],
        "outfit_reasoning": "Navy and denim",
        "style_notes": "Roll the sleeves",
    }
    fake = fake_ai(json.dumps(reply))
    resp = await client.post("/v1/functions/build-outfit", json={"userId": USER, "anchorItemId": anchor.id})
    assert resp.status_code == 200
    body = resp.json()
    assert body["anchor_item"]["id"] == anchor.id
    assert body["closet_picks"]["bottom"] == jeans.id
    assert body["shopping_suggestions"][0]["search_url"] == (
        "https://www.google.com/search?q=white+leather+sneakers+minimal&tbm=shop"
    )
    prompt = _prompt(fake)
    assert "NO SHOES IN CLOSET - Suggest a purchase" in prompt
    assert "AVAILABLE TOPS" not in prompt
    assert f"{jeans.id}: jeans (unknown color, unknown)" in prompt


@pytest.mark.asyncio
async def test_build_outfit_drops_invalid_picks(client: httpx.AsyncClient, gateway, fake_ai):
    anchor = await add_item(gateway, "shoes", subtype="boots")
    top = await add_item(gateway, "tops")
    bottom = await add_item(gateway, "bottoms")
    hat = await add_item(gateway, "accessories", subtype="hat")
    belt = await add_item(gateway, "accessories", subtype="belt")
    watch = await add_item(gateway, "accessories", subtype="watch")
    socks = await add_item(gateway, "underwear", subtype="socks")
    other = await add_item(gateway, "bottoms", user_id="other-user")
    reply = {
        "closet_picks": {
            "top": top.id,
            "bottom": other.id,
            "shoes": anchor.id,
            "outerwear": bottom.id,
            "accessories": [socks.id, hat.id, "made-up", belt.id, watch.id],
        }
    }
    fake = fake_ai(json.dumps(reply))
    resp = await client.post("/v1/functions/build-outfit", json={"userId": USER, "anchorItemId": anchor.id})
    assert resp.status_code == 200
    picks = resp.json()["closet_picks"]
    assert picks == {"top": top.id, "bottom": None, "shoes": None, "outerwear": None, "accessories": [hat.id, belt.id]}
    prompt = _prompt(fake)
    assert socks.id not in prompt
    assert other.id not in prompt
    assert "AVAILABLE SHOES" not in prompt


# suggest-outfit


@pytest.mark.asyncio
async def test_suggest_reports_missing_categories(client: httpx.AsyncClient, gateway, fake_ai):
    fake = fake_ai("{}")
    await add_item(gateway, "tops")
    resp = await client.post("/v1/functions/suggest-outfit", json={"userId": USER})
    assert resp.status_code == 400
    assert resp.json() == {"error": "Missing required items", "missing": ["bottoms", "shoes"]}
    assert fake.calls == []


@pytest.mark.asyncio
async def test_suggest_with_one_item_per_required_category(client: httpx.AsyncClient, gateway, fake_ai):
    top = await add_item(gateway, "tops")
    bottom = await add_item(gateway, "bottoms")
    shoes = await add_item(gateway, "shoes")
    reply = {"top": "invented", "bottom": bottom.id, "shoes": shoes.id, "mid_layer": top.id, "reasoning": "Simple."}
    fake_ai(json.dumps(reply))
    resp = await client.post("/v1/functions/suggest-outfit", json={"userId": USER})
    assert resp.status_code == 200
    outfit = resp.json()["outfit"]
    assert outfit["top"] == top.id
    assert outfit["bottom"] == bottom.id
    assert outfit["shoes"] == shoes.id
    assert outfit["mid_layer"] is None
    assert outfit["accessories"] == []
    assert resp.json()["reasoning"] == "Simple."


@pytest.mark.asyncio
async def test_suggest_other_user_is_forbidden(client: httpx.AsyncClient, fake_ai):
    fake_ai("{}")
    resp = await client.post("/v1/functions/suggest-outfit", json={"userId": "someone-else"})
    assert resp.status_code == 403


# client-side mapping


@pytest.mark.asyncio
async def test_functions_client_maps_missing_categories(functions, gateway, fake_ai):
    fake_ai("{}")
    await add_item(gateway, "shoes")
    with pytest.raises(MissingCategories) as ei:
        await functions.suggest_outfit(USER)
    assert ei.value.missing == ["tops", "bottoms"]


@pytest.mark.asyncio
async def test_functions_client_maps_status_codes(functions, fake_ai):
    fake_ai(status_error(402))
    with pytest.raises(AICreditsExhausted):
        await functions.remove_background(FRAME)
    with pytest.raises(NotFound):
        await functions.build_outfit(USER, "missing")


@pytest.mark.asyncio
async def test_functions_client_network_error():
    def refuse(request):
        raise httpx.ConnectError("connection refused", request=request)

    async with httpx.AsyncClient(transport=httpx.MockTransport(refuse)) as http:
        fc = FunctionsClient(http, base_url="http://unreachable/v1/functions")
        with pytest.raises(AIUpstreamError, match="Network error"):
            await fc.analyze_clothing(FRAME)
